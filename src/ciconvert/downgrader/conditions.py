"""Translation of unified ``when`` blocks into legacy conditions."""

import json

from ..harness import v0, v1

DEFAULT_STATUS = "Success"

# event name -> (expression, value, operator, inverse operator)
EVENTS = {
    "pull_request": ("<+trigger.event>", "PR", "==", "!="),
    "push": ("<+trigger.event>", "PUSH", "==", "!="),
    "tag": ("<+trigger.payload.ref>", "refs/tags/", "=^", "!^"),
}

FIELDS = {
    "branch": "<+trigger.targetBranch>",
    "repo": "<+trigger.payload.repository.name>",
    "ref": "<+trigger.payload.ref>",
}


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _event_conditions(expr: v1.Expr) -> list[str]:
    conditions = []
    matches = [
        f"{EVENTS[e][0]} {EVENTS[e][2]} {_quote(EVENTS[e][1])}"
        for e in expr.in_ or []
        if e in EVENTS
    ]
    if matches:
        conditions.append(f"({' || '.join(matches)})")
    excluded = expr.not_.in_ if expr.not_ is not None else None
    misses = [
        f"{EVENTS[e][0]} {EVENTS[e][3]} {_quote(EVENTS[e][1])}"
        for e in excluded or []
        if e in EVENTS
    ]
    if misses:
        conditions.append(f"({' && '.join(misses)})")
    return conditions


def _any(matches: list[str]) -> str:
    return matches[0] if len(matches) == 1 else f"({' || '.join(matches)})"


def _field_conditions(variable: str, expr: v1.Expr) -> list[str]:
    conditions = []
    if expr.in_:
        conditions.append(_any([f"{variable} == {_quote(value)}" for value in expr.in_]))
    if expr.not_ is not None and expr.not_.in_:
        conditions.append(
            " && ".join(f"{variable} != {_quote(value)}" for value in expr.not_.in_)
        )
    return conditions


def convert_conditions(when: v1.When, step_id: str = "") -> tuple[str | None, str | None]:
    """
    Flatten a ``when`` block.

    Returns:
        The required status (from ``status: {eq: ...}``) and the condition
        expression, either of which may be None. The conditions of one block
        are joined with ``&&`` and blocks are alternatives joined with
        ``||``; a free-form ``eval`` expression must hold as well.
    """
    status = None
    alternatives: list[str] = []
    for block in when.cond or []:
        conditions: list[str] = []
        for key, expr in block.items():
            if key == "event":
                conditions.extend(_event_conditions(expr))
            elif key == "status":
                if expr.eq:
                    status = expr.eq
                if expr.in_:
                    conditions.append(
                        _any(
                            [
                                f"<+execution.steps.{step_id}.status> == {_quote(value)}"
                                for value in expr.in_
                            ]
                        )
                    )
            elif key in FIELDS:
                conditions.extend(_field_conditions(FIELDS[key], expr))
        if conditions:
            alternatives.append(" && ".join(conditions))

    if len(alternatives) > 1:
        alternatives = [_any([f"({a})" if " && " in a else a for a in alternatives])]
    if when.eval:
        alternatives.append(f"({when.eval})" if alternatives else when.eval)
    return status, " && ".join(alternatives) or None


def convert_stage_when(when: v1.When | None) -> v0.StageWhen | None:
    if when is None:
        return None
    status, condition = convert_conditions(when)
    return v0.StageWhen(pipeline_status=status or DEFAULT_STATUS, condition=condition)


def convert_step_when(when: v1.When | None, step_id: str) -> v0.StepWhen | None:
    if when is None:
        return None
    status, condition = convert_conditions(when, step_id)
    return v0.StepWhen(stage_status=status or DEFAULT_STATUS, condition=condition)
