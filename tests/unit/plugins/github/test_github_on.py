from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from ciconvert.plugins.github.models import Pipeline
from ciconvert.harness import v1
from ciconvert.plugins.github.on import On, convert_on


class TestOn:
    """Trigger decoding from every accepted shape."""

    def test_single_event(self) -> None:
        on = On.model_validate("push")
        assert on.push is not None
        assert on.names() == ["push"]

    def test_event_list(self) -> None:
        on = On.model_validate(["push", "pull_request", "issues"])
        assert on.names() == ["push", "pull_request", "issues"]

    def test_mapping_with_filters(self) -> None:
        on = On.model_validate(
            {
                "push": {"branches": "main", "tags": ["v*"]},
                "pull_request": {"types": ["opened"], "branches-ignore": ["dev"]},
                "issues": {"types": "opened"},
                "workflow_dispatch": None,
            }
        )
        assert on.push.branches == ["main"]
        assert on.push.tags == ["v*"]
        assert on.pull_request.branches_ignore == ["dev"]
        assert on.events["issues"].types == ["opened"]
        assert on.workflow_dispatch is not None

    def test_unknown_events_are_ignored(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG)
        on = On.model_validate({"push": {}, "nonsense": {}})
        assert on.names() == ["push"]
        assert any("nonsense" in r.message for r in caplog.records)

    def test_schedule(self) -> None:
        on = On.model_validate({"schedule": [{"cron": "0 0 * * *"}, {"cron": "0 12 * * 1"}]})
        assert on.schedule.cron == ["0 0 * * *", "0 12 * * 1"]

    def test_number_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            On.model_validate(3)

    def test_boolean_on_key(self) -> None:
        pipeline = Pipeline.model_validate({True: "push", "jobs": {}})
        assert pipeline.on is not None
        assert pipeline.on.push is not None


class TestConvertOn:
    def test_branch_filters(self) -> None:
        on = On.model_validate(
            {"push": {"branches": ["main"]}, "pull_request": {"branches": ["main", "dev"]}}
        )
        assert convert_on(on).cond == [
            {"event": v1.Expr(in_=["push"]), "branch": v1.Expr(in_=["main"])},
            {"event": v1.Expr(in_=["pull_request"]), "branch": v1.Expr(in_=["main", "dev"])},
        ]

    def test_ignored_branches_are_negated(self) -> None:
        on = On.model_validate({"pull_request": {"branches-ignore": ["dev"]}})
        (block,) = convert_on(on).cond
        assert block["branch"] == v1.Expr(not_=v1.Expr(in_=["dev"]))

    def test_include_list_wins_over_ignore_list(self) -> None:
        on = On.model_validate({"push": {"branches": ["main"], "branches-ignore": ["dev"]}})
        assert convert_on(on).cond[0]["branch"] == v1.Expr(in_=["main"])

    def test_unfiltered_event_keeps_its_block(self) -> None:
        on = On.model_validate({"push": {"branches": ["main"]}, "pull_request": None})
        assert convert_on(on).cond[1] == {"event": v1.Expr(in_=["pull_request"])}

    def test_no_branch_filters(self) -> None:
        assert convert_on(On.model_validate(["push", "pull_request"])) is None
        assert convert_on(On.model_validate({"push": {"tags": ["v*"]}})) is None
        assert convert_on(None) is None

    def test_other_events_disable_the_condition(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.DEBUG)
        on = On.model_validate({"push": {"branches": ["main"]}, "workflow_dispatch": None})
        assert convert_on(on) is None
        assert "workflow_dispatch" in caplog.text
