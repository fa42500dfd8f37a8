from __future__ import annotations

from typing import ClassVar

import pytest
from pydantic import BaseModel, Field

from ciconvert.core.exceptions import ParseError
from ciconvert.core.yaml_io import (
    dump_yaml,
    dump_yaml_all,
    load_yaml,
    load_yaml_all,
    to_plain,
)


class Leaf(BaseModel):
    run_as: str | None = Field(default=None, alias="runAs")
    items: list[str] | None = Field(default=None)


class Marker(BaseModel):
    preserve_empty: ClassVar[bool] = True

    value: str | None = None


class Root(BaseModel):
    name: str
    leaf: Leaf | None = None
    marker: Marker | None = None


class TestLoad:
    def test_load_single_document(self) -> None:
        assert load_yaml("a: 1\nb: [x, y]\n") == {"a": 1, "b": ["x", "y"]}

    def test_invalid_yaml_raises_parse_error(self) -> None:
        with pytest.raises(ParseError) as exc:
            load_yaml("a: [1, 2", provider="drone")
        assert exc.value.context["provider"] == "drone"

    def test_load_all_skips_empty_documents(self) -> None:
        text = "---\n---\na: 1\n---\nb: 2\n"
        assert load_yaml_all(text) == [{"a": 1}, {"b": 2}]


class TestToPlain:
    def test_drops_none_and_empty_values(self) -> None:
        root = Root(name="p", leaf=Leaf(items=[]))
        assert to_plain(root) == {"name": "p"}

    def test_uses_aliases(self) -> None:
        root = Root(name="p", leaf=Leaf(runAs="root"))
        assert to_plain(root) == {"name": "p", "leaf": {"runAs": "root"}}

    def test_preserve_empty_keeps_mapping(self) -> None:
        root = Root(name="p", marker=Marker())
        assert to_plain(root) == {"name": "p", "marker": {}}

    def test_keeps_false_and_zero(self) -> None:
        assert to_plain({"a": False, "b": 0, "c": None}) == {"a": False, "b": 0}


class TestDump:
    def test_block_style_indentation(self) -> None:
        assert dump_yaml({"a": ["x", "y"]}) == "a:\n  - x\n  - y\n"

    def test_multiline_strings_use_literal_style(self) -> None:
        text = dump_yaml({"run": "echo a\necho b"})
        assert text.startswith("run: |")
        assert "  echo a\n  echo b" in text

    def test_model_is_converted_first(self) -> None:
        assert dump_yaml(Root(name="p")) == "name: p\n"

    def test_dump_all_separates_documents(self) -> None:
        assert dump_yaml_all([{"a": 1}, {"b": 2}]) == "a: 1\n---\nb: 2\n"
