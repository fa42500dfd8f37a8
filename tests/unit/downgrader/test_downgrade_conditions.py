from __future__ import annotations

import pytest

from ciconvert.downgrader.conditions import (
    convert_conditions,
    convert_stage_when,
    convert_step_when,
)
from ciconvert.harness import v1


def when(*cond: dict, expression: str | None = None) -> v1.When:
    return v1.When.model_validate({"cond": list(cond), "eval": expression})


class TestConvertConditions:
    def test_event_in(self) -> None:
        _, condition = convert_conditions(when({"event": {"in": ["push", "pull_request"]}}))
        assert condition == '(<+trigger.event> == "PUSH" || <+trigger.event> == "PR")'

    def test_event_not_in(self) -> None:
        _, condition = convert_conditions(
            when({"event": {"not": {"in": ["tag", "pull_request"]}}})
        )
        assert condition == (
            '(<+trigger.payload.ref> !^ "refs/tags/" && <+trigger.event> != "PR")'
        )

    def test_unknown_event_ignored(self) -> None:
        assert convert_conditions(when({"event": {"in": ["cron"]}})) == (None, None)

    def test_single_branch(self) -> None:
        _, condition = convert_conditions(when({"branch": {"in": ["main"]}}))
        assert condition == '<+trigger.targetBranch> == "main"'

    def test_alternatives_grouped(self) -> None:
        _, condition = convert_conditions(
            when(
                {"branch": {"in": ["main", "develop"]}},
                {"repo": {"not": {"in": ["fork", "mirror"]}}},
            )
        )
        assert condition == (
            '(<+trigger.targetBranch> == "main" || <+trigger.targetBranch> == "develop")'
            ' && <+trigger.payload.repository.name> != "fork"'
            ' && <+trigger.payload.repository.name> != "mirror"'
        )

    def test_ref(self) -> None:
        _, condition = convert_conditions(when({"ref": {"in": ["refs/heads/main"]}}))
        assert condition == '<+trigger.payload.ref> == "refs/heads/main"'

    def test_status(self) -> None:
        status, condition = convert_conditions(
            when({"status": {"eq": "Failure", "in": ["failure", "error"]}}), "deploy"
        )
        assert status == "Failure"
        assert condition == (
            '(<+execution.steps.deploy.status> == "failure"'
            ' || <+execution.steps.deploy.status> == "error")'
        )

    def test_eval(self) -> None:
        assert convert_conditions(when(expression="<+trigger.event> == 'push'")) == (
            None,
            "<+trigger.event> == 'push'",
        )
        _, condition = convert_conditions(
            when({"branch": {"in": ["main"]}}, expression="a || b")
        )
        assert condition == '<+trigger.targetBranch> == "main" && (a || b)'

    def test_blocks_are_alternatives(self) -> None:
        _, condition = convert_conditions(
            when(
                {"event": {"in": ["push"]}, "branch": {"in": ["main"]}},
                {"event": {"in": ["pull_request"]}},
            )
        )
        assert condition == (
            '(((<+trigger.event> == "PUSH") && <+trigger.targetBranch> == "main")'
            ' || (<+trigger.event> == "PR"))'
        )

    def test_blocks_with_eval(self) -> None:
        _, condition = convert_conditions(
            when({"branch": {"in": ["main"]}}, {"branch": {"in": ["dev"]}}, expression="a")
        )
        assert condition == (
            '(<+trigger.targetBranch> == "main" || <+trigger.targetBranch> == "dev")'
            " && (a)"
        )

    def test_empty_blocks_are_skipped(self) -> None:
        _, condition = convert_conditions(
            when({"event": {"in": ["cron"]}}, {"branch": {"in": ["main"]}})
        )
        assert condition == '<+trigger.targetBranch> == "main"'

    def test_values_quoted(self) -> None:
        _, condition = convert_conditions(when({"branch": {"in": ['release "x"']}}))
        assert condition == '<+trigger.targetBranch> == "release \\"x\\""'


class TestWhenBlocks:
    def test_none(self) -> None:
        assert convert_stage_when(None) is None
        assert convert_step_when(None, "build") is None

    def test_stage_defaults_to_success(self) -> None:
        stage_when = convert_stage_when(when({"branch": {"in": ["main"]}}))
        assert stage_when.pipeline_status == "Success"
        assert stage_when.condition == '<+trigger.targetBranch> == "main"'

    def test_step_status(self) -> None:
        step_when = convert_step_when(when({"status": {"eq": "All"}}), "notify")
        assert step_when.stage_status == "All"
        assert step_when.condition is None

    @pytest.mark.parametrize("status", ["Success", "Failure"])
    def test_step_status_kept(self, status: str) -> None:
        assert convert_step_when(when({"status": {"eq": status}}), "s").stage_status == status
