"""Bitbucket Pipelines plugin converting bitbucket-pipelines.yml documents."""

from .converter import BitbucketConverter, BitbucketParser
from .normalize import normalize

__all__ = ["BitbucketParser", "BitbucketConverter", "normalize"]
