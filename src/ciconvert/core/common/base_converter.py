"""Base implementation for pipeline converters."""

import logging
from abc import ABC, abstractmethod
from io import BytesIO, StringIO
from pathlib import Path
from typing import IO, Any

from ..protocols import PipelineConverter
from ..yaml_io import dump_yaml, dump_yaml_all
from .base_parser import BaseDocumentParser

logger = logging.getLogger(__name__)


class BaseConverter(PipelineConverter, ABC):
    """
    Abstract base class for converters.

    ``convert`` is the canonical entry point; the bytes, string and file
    variants are thin adapters over it, so all four return identical output
    for the same document.

    Subclasses must implement:
    - get_parser(): Return the parser for the source format
    - convert_document(): Map a decoded document to the output tree

    Subclasses can optionally override:
    - postprocess(): Rewrite the serialized text before it is returned

    ``extra_options`` names the keyword options a converter accepts besides
    the shared ConverterOptions. ``output_format`` is "v1" for unified
    output and "v0" for converters that emit the legacy format directly.
    """

    name: str = ""
    description: str = ""
    supported_files: list[str] = []
    extra_options: tuple[str, ...] = ()
    output_format: str = "v1"
    encoding: str = "utf-8"

    def __init__(self) -> None:
        self._logger = logger.getChild(self.__class__.__name__)

    @abstractmethod
    def get_parser(self) -> BaseDocumentParser:
        """Return the parser for the source format."""
        pass

    @abstractmethod
    def convert_document(self, document: Any) -> Any:
        """
        Convert a decoded document.

        Every call allocates its own conversion state so that converter
        instances can be reused and shared.

        Returns:
            A model tree, or a list of model trees for multi-document output
        """
        pass

    def convert(self, stream: IO[str] | IO[bytes]) -> bytes:
        content = stream.read()
        if isinstance(content, bytes):
            content = content.decode(self.encoding)
        return self.convert_text(content)

    def convert_bytes(self, data: bytes) -> bytes:
        return self.convert(BytesIO(data))

    def convert_string(self, text: str) -> bytes:
        return self.convert(StringIO(text))

    def convert_file(self, file_path: str | Path) -> bytes:
        with open(file_path, "rb") as f:
            return self.convert(f)

    def convert_text(self, text: str) -> bytes:
        """Parse, convert and serialize one source document."""
        self._logger.info(f"Converting {self.name or 'pipeline'} document")
        document = self.get_parser().parse_string(text)
        result = self.convert_document(document)
        output = self.serialize(result)
        self._logger.info(f"Conversion of {self.name or 'pipeline'} completed")
        return output.encode(self.encoding)

    def serialize(self, result: Any) -> str:
        if isinstance(result, list):
            text = dump_yaml_all(result)
        else:
            text = dump_yaml(result)
        return self.postprocess(text)

    def postprocess(self, text: str) -> str:
        return text

    def get_plugin_info(self) -> dict[str, Any]:
        """
        Get information about this converter.

        Returns:
            Dictionary containing converter information
        """
        return {
            "name": self.name,
            "description": self.description,
            "supported_files": list(self.supported_files),
            "class_name": self.__class__.__name__,
        }
