"""GitLab plugin converting .gitlab-ci.yml files to unified pipelines."""

from .converter import GitLabConverter, GitLabParser
from .merge import coalesce, resolve_extends

__all__ = ["GitLabParser", "GitLabConverter", "coalesce", "resolve_extends"]
