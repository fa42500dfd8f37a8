"""Google Cloud Build plugin converting cloudbuild.yaml files to unified pipelines."""

from .converter import CloudBuildConverter, CloudBuildParser, rewrite_substitutions

__all__ = ["CloudBuildParser", "CloudBuildConverter", "rewrite_substitutions"]
