"""Base implementation for source document parsers."""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..exceptions import DecodeError, ParseError
from ..protocols import DocumentParser
from ..yaml_io import load_yaml, load_yaml_all

logger = logging.getLogger(__name__)


class BaseDocumentParser(DocumentParser, ABC):
    """
    Abstract base class for pipeline document parsers.

    Handles reading and YAML decoding, and turns pydantic validation
    failures into DecodeError values naming the offending field.

    Subclasses must implement:
    - _decode(): Build the provider's typed document tree from plain data

    Subclasses can optionally set:
    - provider: Name used in error messages
    - multi_document: Decode every document of a YAML stream
    """

    provider: str = ""
    multi_document: bool = False

    def __init__(self, encoding: str = "utf-8"):
        """
        Initialize the parser.

        Args:
            encoding: Encoding used to decode bytes and files
        """
        self.encoding = encoding
        self._logger = logger.getChild(self.__class__.__name__)

    @abstractmethod
    def _decode(self, data: Any) -> Any:
        """
        Build the typed document tree from loaded YAML data.

        Args:
            data: Plain data (a list of documents when multi_document is set)

        Returns:
            The provider document tree

        Raises:
            pydantic.ValidationError: When a field matches none of its shapes
        """
        pass

    def parse_string(self, text: str) -> Any:
        """
        Parse pipeline text into the provider document tree.

        Raises:
            ParseError: If the text is not valid YAML
            DecodeError: If a field cannot be decoded
        """
        if self.multi_document:
            data: Any = load_yaml_all(text, provider=self.provider)
        else:
            data = load_yaml(text, provider=self.provider)
            if data is None:
                data = {}

        try:
            document = self._decode(data)
        except ValidationError as e:
            raise self._to_decode_error(e) from e

        self._logger.debug(f"Decoded {self.provider or 'pipeline'} document")
        return document

    def parse_bytes(self, data: bytes) -> Any:
        """Parse pipeline bytes into the provider document tree."""
        try:
            text = data.decode(self.encoding)
        except UnicodeDecodeError as e:
            raise ParseError(
                f"Failed to decode input with encoding {self.encoding}",
                provider=self.provider,
            ) from e
        return self.parse_string(text)

    def parse_file(self, file_path: Path) -> Any:
        """
        Read and parse a pipeline file.

        Raises:
            FileNotFoundError: If the file does not exist
        """
        file_path = Path(file_path)
        if not file_path.is_file():
            raise FileNotFoundError(f"File not found: {file_path}")
        self._logger.info(f"Parsing file: {file_path}")
        return self.parse_bytes(file_path.read_bytes())

    def _to_decode_error(self, error: ValidationError) -> DecodeError:
        first = error.errors()[0]
        field_name = ".".join(str(part) for part in first.get("loc", ())) or None
        message = first.get("msg", str(error))
        if field_name:
            message = f"Cannot decode '{field_name}': {message}"
        self._logger.error(message)
        return DecodeError(message, field_name=field_name, provider=self.provider)
