"""
Workflow trigger (``on:``) model.

The trigger key accepts an event name, a list of event names, or a mapping
of event names to per-event filters. Events with filters the converter can
use have their own models; all other events share ``Event``.
"""

import logging
from typing import Any

from pydantic import Field, model_validator

from ...core.common.tolerant import DocumentModel, StringOrList
from ...harness import v1

logger = logging.getLogger(__name__)

KNOWN_EVENTS = (
    "branch_protection_rule",
    "check_run",
    "check_suite",
    "create",
    "delete",
    "deployment",
    "deployment_status",
    "discussion",
    "discussion_comment",
    "fork",
    "gollum",
    "issue_comment",
    "issues",
    "label",
    "member",
    "merge_group",
    "milestone",
    "page_build",
    "project",
    "project_card",
    "project_column",
    "public",
    "pull_request",
    "pull_request_review",
    "pull_request_review_comment",
    "pull_request_target",
    "push",
    "registry_package",
    "repository_dispatch",
    "release",
    "schedule",
    "status",
    "watch",
    "workflow_call",
    "workflow_dispatch",
    "workflow_run",
)


class Event(DocumentModel):
    types: StringOrList = Field(default_factory=list)


class Push(DocumentModel):
    branches: StringOrList = Field(default_factory=list)
    branches_ignore: StringOrList = Field(default_factory=list, alias="branches-ignore")
    paths: StringOrList = Field(default_factory=list)
    paths_ignore: StringOrList = Field(default_factory=list, alias="paths-ignore")
    tags: StringOrList = Field(default_factory=list)
    tags_ignore: StringOrList = Field(default_factory=list, alias="tags-ignore")


class PullRequest(Push):
    types: StringOrList = Field(default_factory=list)
    review_approved: bool = Field(default=False, alias="review-approved")
    review_dismissed: bool = Field(default=False, alias="review-dismissed")


class PullRequestTarget(DocumentModel):
    branches: StringOrList = Field(default_factory=list)
    branches_ignore: StringOrList = Field(default_factory=list, alias="branches-ignore")
    types: StringOrList = Field(default_factory=list)


class Schedule(DocumentModel):
    """Cron expressions, from ``[{cron: ...}, ...]`` or a single ``{cron: ...}``."""

    cron: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _collect_cron(cls, data: Any) -> Any:
        if isinstance(data, list):
            return {
                "cron": [
                    item["cron"]
                    for item in data
                    if isinstance(item, dict) and "cron" in item
                ]
            }
        if isinstance(data, dict) and isinstance(data.get("cron"), str):
            return {"cron": [data["cron"]]}
        return data


class Input(DocumentModel):
    default: Any = Field(default=None)
    description: str = Field(default="")
    options: Any = Field(default=None)
    required: bool = Field(default=False)
    type: str = Field(default="")


class WorkflowCallSecret(DocumentModel):
    description: str = Field(default="")
    required: bool = Field(default=False)


class WorkflowCall(DocumentModel):
    inputs: dict[str, Any] | None = Field(default=None)
    outputs: dict[str, Any] | None = Field(default=None)
    secrets: dict[str, WorkflowCallSecret | None] | None = Field(default=None)
    workflows: StringOrList = Field(default_factory=list)


class WorkflowDispatch(DocumentModel):
    inputs: dict[str, Input] | None = Field(default=None)


class WorkflowRun(DocumentModel):
    branches: StringOrList = Field(default_factory=list)
    branches_ignore: StringOrList = Field(default_factory=list, alias="branches-ignore")
    types: StringOrList = Field(default_factory=list)
    workflows: StringOrList = Field(default_factory=list)


class On(DocumentModel):
    """Workflow triggers."""

    push: Push | None = Field(default=None)
    pull_request: PullRequest | None = Field(default=None)
    pull_request_target: PullRequestTarget | None = Field(default=None)
    schedule: Schedule | None = Field(default=None)
    workflow_call: WorkflowCall | None = Field(default=None)
    workflow_dispatch: WorkflowDispatch | None = Field(default=None)
    workflow_run: WorkflowRun | None = Field(default=None)
    events: dict[str, Event] = Field(
        default_factory=dict,
        description="Events without a dedicated model, keyed by event name.",
    )

    @model_validator(mode="before")
    @classmethod
    def _expand_events(cls, data: Any) -> Any:
        if isinstance(data, str):
            data = {data: {}}
        elif isinstance(data, list):
            data = {str(name): {} for name in data}
        if not isinstance(data, dict):
            raise ValueError(f"cannot decode triggers from {type(data).__name__}")
        if "events" in data and isinstance(data["events"], dict):
            return data

        result: dict[str, Any] = {"events": {}}
        for name, value in data.items():
            if name not in KNOWN_EVENTS:
                logger.debug(f"Ignoring unknown trigger event '{name}'")
                continue
            if value is None:
                value = {}
            if name in cls.model_fields:
                result[name] = value
            else:
                result["events"][name] = value
        return result

    def names(self) -> list[str]:
        """Names of every configured event."""
        names = [
            name
            for name in type(self).model_fields
            if name != "events" and getattr(self, name) is not None
        ]
        return names + list(self.events)


# events whose branch filters become stage conditions
BRANCH_EVENTS = ("push", "pull_request")


def _branch_expr(trigger: Push) -> v1.Expr | None:
    # an include list takes precedence over an exclude list
    if trigger.branches:
        return v1.Expr(in_=list(trigger.branches))
    if trigger.branches_ignore:
        return v1.Expr(not_=v1.Expr(in_=list(trigger.branches_ignore)))
    return None


def convert_on(on: On | None) -> v1.When | None:
    """
    Translate push and pull_request branch filters into a stage condition.

    Each of the two triggers becomes one condition block matching its event
    and, when filtered, the target branch. Returns None when neither
    trigger filters on branches, or when the workflow also runs on other
    events that a branch condition would exclude.
    """
    if on is None:
        return None

    blocks = []
    filtered = False
    for event in BRANCH_EVENTS:
        trigger = getattr(on, event)
        if trigger is None:
            continue
        block = {"event": v1.Expr(in_=[event])}
        branch = _branch_expr(trigger)
        if branch is not None:
            block["branch"] = branch
            filtered = True
        blocks.append(block)

    if not filtered:
        return None

    others = [name for name in on.names() if name not in BRANCH_EVENTS]
    if others:
        logger.debug(
            f"Not emitting branch conditions; the workflow also runs on {', '.join(others)}"
        )
        return None
    return v1.When(cond=blocks)
