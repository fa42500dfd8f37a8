"""Common base classes and utilities for core functionality."""

from .base_converter import BaseConverter
from .base_parser import BaseDocumentParser
from .tolerant import DocumentModel, ShortFormModel

__all__ = ["BaseDocumentParser", "BaseConverter", "DocumentModel", "ShortFormModel"]
