"""YAML loading and dumping helpers shared by parsers and converters."""

import logging
from enum import Enum
from io import StringIO
from typing import Any

from pydantic import BaseModel
from ruamel.yaml import YAML, YAMLError

from .exceptions import ParseError, SerializationError

logger = logging.getLogger(__name__)


def _safe_loader() -> YAML:
    return YAML(typ="safe", pure=True)


def _dumper() -> YAML:
    """Create a YAML dumper configured for pipeline documents."""
    yaml = YAML()
    yaml.indent(mapping=2, sequence=4, offset=2)
    yaml.default_flow_style = False
    yaml.allow_unicode = True
    yaml.width = 4096

    def represent_str(dumper, data: str):
        if "\n" in data:
            return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
        return dumper.represent_str(data)

    yaml.representer.add_representer(str, represent_str)
    return yaml


def load_yaml(text: str, provider: str | None = None) -> Any:
    """
    Load a single YAML document into plain Python values.

    Raises:
        ParseError: If the text is not valid YAML.
    """
    try:
        return _safe_loader().load(text)
    except YAMLError as e:
        raise ParseError(f"Invalid YAML: {e}", provider=provider) from e


def load_yaml_all(text: str, provider: str | None = None) -> list[Any]:
    """
    Load every document of a multi-document YAML stream.

    Empty documents (for example a leading ``---``) are skipped.

    Raises:
        ParseError: If any document is not valid YAML.
    """
    try:
        return [doc for doc in _safe_loader().load_all(text) if doc is not None]
    except YAMLError as e:
        raise ParseError(f"Invalid YAML: {e}", provider=provider) from e


def to_plain(obj: Any) -> Any:
    """
    Convert a model tree to plain dicts and lists.

    None values and empty collections are dropped. A model whose class sets
    ``preserve_empty`` is kept as ``{}`` when all of its fields are empty.
    """
    if obj is None:
        return None
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, str | int | float | bool):
        return obj
    if isinstance(obj, list | tuple):
        items = [to_plain(item) for item in obj]
        items = [item for item in items if item is not None]
        return items if items else None
    if isinstance(obj, dict):
        result = {}
        for key, value in obj.items():
            converted = to_plain(value)
            if converted is not None:
                result[key] = converted
        return result if result else None
    if isinstance(obj, BaseModel):
        result = {}
        for name, info in type(obj).model_fields.items():
            converted = to_plain(getattr(obj, name))
            if converted is not None:
                result[info.alias or name] = converted
        if result:
            return result
        return {} if getattr(obj, "preserve_empty", False) else None
    return str(obj)


def dump_yaml(data: Any) -> str:
    """
    Serialize plain data (or a model tree) to YAML text.

    Raises:
        SerializationError: If the data cannot be represented as YAML.
    """
    if isinstance(data, BaseModel):
        data = to_plain(data) or {}
    stream = StringIO()
    try:
        _dumper().dump(data, stream)
    except (YAMLError, TypeError, ValueError) as e:
        raise SerializationError(f"Failed to serialize pipeline: {e}") from e
    return stream.getvalue()


def dump_yaml_all(documents: list[Any]) -> str:
    """Serialize several documents separated by ``---`` lines."""
    return "---\n".join(dump_yaml(doc) for doc in documents)
