"""Rio plugin converting rio.yml files to legacy pipelines."""

from .converter import RioConverter, RioParser

__all__ = ["RioParser", "RioConverter"]
