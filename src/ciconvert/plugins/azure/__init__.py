"""Azure DevOps plugin; conversion is not implemented."""

from .converter import AzureConverter

__all__ = ["AzureConverter"]
