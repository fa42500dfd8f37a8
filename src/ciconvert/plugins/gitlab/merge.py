"""Resolution of ``extends`` against hidden template jobs."""

import logging
from typing import Any

from .models import Job

logger = logging.getLogger(__name__)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value is False or value == 0 or (
        isinstance(value, list | dict) and not value
    )


def coalesce(child: Job, parent: Job) -> Job:
    """
    Merge two jobs field by field; the child wins wherever it sets a value.

    Mappings are merged key by key, so a child variable overrides the
    parent's variable of the same name and keeps the others.
    """
    merged: dict[str, Any] = {}
    for name in Job.model_fields:
        child_value = getattr(child, name)
        parent_value = getattr(parent, name)
        if isinstance(child_value, dict) and isinstance(parent_value, dict):
            merged[name] = {**parent_value, **child_value}
        elif _is_empty(child_value):
            merged[name] = parent_value
        else:
            merged[name] = child_value
    return Job.model_construct(**merged)


def resolve_extends(
    job: Job, templates: dict[str, Job | None], seen: tuple[str, ...] = ()
) -> Job:
    """
    Return the job with every template it extends merged in.

    Templates are applied in the order listed, later ones overriding earlier
    ones, and the job's own keys override them all. Templates may extend
    other templates; unknown names and cycles are ignored.
    """
    if not job.extends:
        return job

    base: Job | None = None
    for name in job.extends:
        template = templates.get(name)
        if template is None:
            logger.debug(f"Ignoring unknown template '{name}'")
            continue
        if name in seen:
            logger.debug(f"Ignoring cyclic extends of '{name}'")
            continue
        template = resolve_extends(template, templates, seen + (name,))
        base = template if base is None else coalesce(template, base)

    if base is None:
        return job
    merged = coalesce(job, base)
    merged.extends = []
    return merged
