from pathlib import Path
from typing import IO, Any, Protocol


class DocumentParser(Protocol):
    """Defines the contract for decoding a source pipeline document."""

    def parse_string(self, text: str) -> Any:
        """Decode pipeline text into the provider's typed document tree."""
        ...

    def parse_file(self, file_path: Path) -> Any:
        """Read and decode a pipeline file."""
        ...


class PipelineConverter(Protocol):
    """
    Defines the contract for converting a pipeline document.

    The four entry points are equivalent and must produce identical output
    for equivalent input.
    """

    def convert(self, stream: IO[str] | IO[bytes]) -> bytes:
        """Convert the document read from an open stream."""
        ...

    def convert_bytes(self, data: bytes) -> bytes:
        """Convert the document held in a byte string."""
        ...

    def convert_string(self, text: str) -> bytes:
        """Convert the document held in a string."""
        ...

    def convert_file(self, file_path: str | Path) -> bytes:
        """Convert the document stored at a file path."""
        ...

    def get_plugin_info(self) -> dict:
        """
        Get information about this converter.

        Returns:
            Dictionary with converter metadata (name, description, files)
        """
        ...
