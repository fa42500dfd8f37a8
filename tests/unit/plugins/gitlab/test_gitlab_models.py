from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from ciconvert.plugins.gitlab.models import (
    AllowFailure,
    Change,
    InheritKeys,
    Job,
    Parallel,
    Pipeline,
    Variable,
    Vault,
)


class TestPipelineFromDocument:
    """Sorting of top-level keys into globals, defaults, templates and jobs."""

    def test_keys_are_grouped(self) -> None:
        pipeline = Pipeline.from_document(
            {
                "stages": ["build", "test"],
                "variables": {"GLOBAL": 1},
                "image": "alpine:3.19",
                ".base": {"script": ["echo base"]},
                "build": {"stage": "build", "script": "make"},
                "empty": None,
            }
        )

        assert pipeline.stages == ["build", "test"]
        assert pipeline.variables["GLOBAL"].value == "1"
        assert pipeline.default.image.name == "alpine:3.19"
        assert set(pipeline.templates) == {".base"}
        assert set(pipeline.jobs) == {"build", "empty"}
        assert pipeline.jobs["build"].script == ["make"]
        assert pipeline.jobs["empty"] is None

    def test_default_section_wins_over_globals(self) -> None:
        pipeline = Pipeline.from_document(
            {"image": "alpine", "default": {"image": "debian", "tags": ["docker"]}}
        )
        assert pipeline.default.image.name == "debian"
        assert pipeline.default.tags == ["docker"]

    def test_no_defaults(self) -> None:
        pipeline = Pipeline.from_document({"job": {"script": ["true"]}})
        assert pipeline.default is None

    def test_hidden_anchor_is_ignored(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG, logger="ciconvert.plugins.gitlab.models")
        pipeline = Pipeline.from_document({".versions": ["1", "2"]})
        assert pipeline.templates == {}
        assert "Ignoring hidden key '.versions'" in caplog.text

    def test_include_short_form(self) -> None:
        pipeline = Pipeline.from_document({"include": "ci/build.yml"})
        assert [i.local for i in pipeline.include] == ["ci/build.yml"]

    def test_undecodable_keyword(self) -> None:
        with pytest.raises(ValidationError):
            Pipeline.from_document({"job": {"retry": [1, 2]}})


class TestJobKeywords:
    def test_short_forms(self) -> None:
        job = Job.model_validate(
            {
                "image": "node:20",
                "retry": 2,
                "needs": "build",
                "parallel": 3,
                "environment": "production",
                "trigger": "group/project",
                "cache": {"key": 42, "paths": "node_modules/"},
            }
        )
        assert job.image.name == "node:20"
        assert job.retry.max == 2
        assert [n.job for n in job.needs] == ["build"]
        assert job.parallel.count == 3
        assert job.environment.name == "production"
        assert job.trigger.project == "group/project"
        assert job.cache.key.value == "42"
        assert job.cache.paths == ["node_modules/"]

    def test_rules(self) -> None:
        job = Job.model_validate(
            {"rules": [{"if": "$CI_COMMIT_TAG", "changes": "src/**/*", "when": "never"}]}
        )
        rule = job.rules[0]
        assert rule.if_ == "$CI_COMMIT_TAG"
        assert rule.changes.paths == ["src/**/*"]
        assert rule.when == "never"


class TestAllowFailure:
    @pytest.mark.parametrize(
        "value, allowed, codes",
        [
            (True, True, []),
            (False, False, []),
            ({"exit_codes": 137}, True, [137]),
            ({"exit_codes": [1, 2]}, True, [1, 2]),
        ],
    )
    def test_forms(self, value, allowed: bool, codes: list[int]) -> None:
        allow_failure = AllowFailure.model_validate(value)
        assert allow_failure.value is allowed
        assert allow_failure.exit_codes == codes


class TestInheritKeys:
    def test_boolean(self) -> None:
        assert InheritKeys.model_validate(True).inherits("image")
        assert not InheritKeys.model_validate(False).inherits("image")

    def test_key_list(self) -> None:
        keys = InheritKeys.model_validate(["image", "services"])
        assert keys.inherits("services")
        assert not keys.inherits("before_script")

    def test_job_inherits_default(self) -> None:
        job = Job.model_validate({"inherit": {"default": ["image"]}})
        assert job.inherits_default("image")
        assert not job.inherits_default("retry")
        assert Job().inherits_default("retry")


class TestVault:
    def test_engine_mount(self) -> None:
        vault = Vault.model_validate("production/db/password@ops")
        assert vault.path == "production/db"
        assert vault.field == "password"
        assert vault.engine.name == "kv-v2"
        assert vault.engine.path == "ops"

    def test_without_engine(self) -> None:
        vault = Vault.model_validate("production/db/password")
        assert vault.engine is None
        assert vault.field == "password"

    def test_short_path(self) -> None:
        assert Vault.model_validate("secret").path == "secret"


class TestScalars:
    def test_variable_forms(self) -> None:
        assert Variable.model_validate(None).value == ""
        assert Variable.model_validate(3).value == "3"
        assert Variable.model_validate(True).value == "true"
        described = Variable.model_validate({"value": "x", "description": "d"})
        assert described.description == "d"
        assert described.expand is True

    def test_changes_forms(self) -> None:
        assert Change.model_validate(["a", "b"]).paths == ["a", "b"]
        assert Change.model_validate({"paths": ["a"], "compare_to": "main"}).compare_to == "main"
        with pytest.raises(ValidationError):
            Change.model_validate(3)

    def test_matrix_axis_values(self) -> None:
        parallel = Parallel.model_validate(
            {"matrix": [{"PY": ["3.11", 3.12], "OS": "linux"}]}
        )
        assert parallel.matrix == [{"PY": ["3.11", "3.12"], "OS": ["linux"]}]
