from __future__ import annotations

import logging

import pytest

from ciconvert.plugins.gitlab.merge import coalesce, resolve_extends
from ciconvert.plugins.gitlab.models import Job

# one non-empty value for every job keyword
FULL_JOB = {
    "after_script": ["echo after"],
    "artifacts": {"paths": ["dist"]},
    "allow_failure": True,
    "before_script": ["echo before"],
    "cache": {"paths": ["vendor"]},
    "environment": "production",
    "extends": [".template"],
    "image": "alpine:3.19",
    "inherit": {"default": False},
    "interruptible": True,
    "needs": ["build"],
    "parallel": 2,
    "release": {"tag_name": "v1.0.0"},
    "resource_group": "production",
    "retry": 1,
    "rules": [{"if": "$CI"}],
    "script": ["make"],
    "secrets": {"TOKEN": {"vault": "ci/token/value"}},
    "services": ["redis:7"],
    "stage": "deploy",
    "tags": ["docker"],
    "timeout": "1h",
    "trigger": "group/project",
    "variables": {"MODE": "release"},
    "when": "manual",
}


class TestCoalesce:
    def test_fixture_covers_every_keyword(self) -> None:
        assert set(FULL_JOB) == set(Job.model_fields)

    @pytest.mark.parametrize("name", sorted(Job.model_fields))
    def test_empty_child_inherits(self, name: str) -> None:
        parent = Job.model_validate(FULL_JOB)
        merged = coalesce(Job(), parent)
        assert getattr(merged, name) == getattr(parent, name)

    @pytest.mark.parametrize("name", sorted(Job.model_fields))
    def test_child_wins(self, name: str) -> None:
        child = Job.model_validate(FULL_JOB)
        merged = coalesce(child, Job.model_validate({"image": "debian", "stage": "test"}))
        assert getattr(merged, name) == getattr(child, name)

    def test_mappings_merge_by_key(self) -> None:
        child = Job.model_validate({"variables": {"A": "child", "B": "b"}})
        parent = Job.model_validate({"variables": {"A": "parent", "C": "c"}})
        merged = coalesce(child, parent)
        assert {k: v.value for k, v in merged.variables.items()} == {
            "A": "child",
            "B": "b",
            "C": "c",
        }


class TestResolveExtends:
    def test_no_extends(self) -> None:
        job = Job.model_validate({"script": ["make"]})
        assert resolve_extends(job, {}) is job

    def test_later_templates_win(self) -> None:
        templates = {
            ".a": Job.model_validate({"image": "a", "stage": "build"}),
            ".b": Job.model_validate({"image": "b"}),
        }
        job = Job.model_validate({"extends": [".a", ".b"], "script": ["make"]})
        merged = resolve_extends(job, templates)
        assert merged.image.name == "b"
        assert merged.stage == "build"
        assert merged.script == ["make"]
        assert merged.extends == []

    def test_nested_templates(self) -> None:
        templates = {
            ".root": Job.model_validate({"image": "root", "retry": 2}),
            ".child": Job.model_validate({"extends": ".root", "image": "child"}),
        }
        merged = resolve_extends(Job.model_validate({"extends": ".child"}), templates)
        assert merged.image.name == "child"
        assert merged.retry.max == 2

    def test_unknown_and_cyclic_templates(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG, logger="ciconvert.plugins.gitlab.merge")
        templates = {
            ".loop": Job.model_validate({"extends": ".loop", "image": "loop"}),
        }
        job = Job.model_validate({"extends": [".missing", ".loop"]})
        merged = resolve_extends(job, templates)
        assert merged.image.name == "loop"
        assert "Ignoring unknown template '.missing'" in caplog.text
        assert "Ignoring cyclic extends of '.loop'" in caplog.text
