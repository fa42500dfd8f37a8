"""Stage-level aggregation helpers for Bitbucket conversion."""

from .models import Options, Size, Stage, Step, Steps


def extract_steps(stage: Stage) -> list[Step]:
    """List the steps of a stage, including those inside parallel blocks."""
    steps: list[Step] = []
    for entry in stage.steps:
        if entry.step is not None:
            steps.append(entry.step)
        if entry.parallel is not None:
            steps.extend(
                inner.step for inner in entry.parallel.steps if inner.step is not None
            )
    return steps


def extract_all_steps(entries: list[Steps]) -> list[Step]:
    steps: list[Step] = []
    for entry in entries:
        if entry.stage is not None:
            steps.extend(extract_steps(entry.stage))
    return steps


def extract_size(options: Options | None, stage: Stage) -> Size:
    """Return the largest size declared globally or by any step of the stage."""
    size = options.size if options is not None else Size.NONE
    for step in extract_steps(stage):
        if step.size > size:
            size = step.size
    return size


def _unique_sorted(values) -> list[str]:
    return sorted(set(values))


def extract_runs_on(stage: Stage) -> list[str]:
    return _unique_sorted(tag for step in extract_steps(stage) for tag in step.runs_on)


def extract_caches(stage: Stage) -> list[str]:
    return _unique_sorted(name for step in extract_steps(stage) for name in step.caches)


def extract_services(stage: Stage) -> list[str]:
    return _unique_sorted(
        name for step in extract_steps(stage) for name in step.services
    )
