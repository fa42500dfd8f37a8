"""GitHub Actions plugin converting workflow files to unified pipelines."""

from .converter import GitHubConverter, GitHubParser
from .expressions import github_expr_to_jexl
from .on import convert_on

__all__ = ["GitHubParser", "GitHubConverter", "github_expr_to_jexl", "convert_on"]
