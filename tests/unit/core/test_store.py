from __future__ import annotations

import pytest

from ciconvert.core.store import Identifiers


@pytest.fixture
def ids() -> Identifiers:
    return Identifiers()


class TestIdentifiers:
    """Unique name generation within one conversion."""

    def test_first_use_returns_base(self, ids: Identifiers) -> None:
        assert ids.generate("build") == "build"

    def test_collisions_get_increasing_suffix(self, ids: Identifiers) -> None:
        assert [ids.generate("build") for _ in range(4)] == [
            "build",
            "build0",
            "build1",
            "build2",
        ]

    def test_first_non_empty_candidate_is_base(self, ids: Identifiers) -> None:
        assert ids.generate(None, "", "test", "other") == "test"

    def test_suffix_skips_registered_names(self, ids: Identifiers) -> None:
        ids.register("step")
        ids.register("step0")
        assert ids.generate("step") == "step1"

    def test_register_reports_duplicates(self, ids: Identifiers) -> None:
        assert ids.register("a") is True
        assert ids.register("a") is False
        assert "a" in ids
        assert len(ids) == 1

    def test_registries_are_independent(self) -> None:
        first, second = Identifiers(), Identifiers()
        first.generate("x")
        assert second.generate("x") == "x"
