"""Normalization of Bitbucket documents before conversion."""

from .models import Config, Stage, Steps


def group_orphan_steps(entries: list[Steps]) -> list[Steps]:
    """
    Group top-level steps that are not wrapped in a stage.

    Consecutive orphan steps (and parallel blocks) are collected into one
    synthetic stage; explicit stages are kept as they are and end the
    current synthetic stage, so grouping never crosses a stage boundary.
    """
    grouped: list[Steps] = []
    current: Stage | None = None
    for entry in entries:
        if entry.stage is not None:
            current = None
            grouped.append(entry)
            continue
        if current is None:
            current = Stage()
            grouped.append(Steps(stage=current))
        current.steps.append(entry)
    return grouped


def normalize(config: Config) -> Config:
    """
    Return a copy of the config whose default pipeline holds only stages.

    Normalizing an already normalized config returns an equal config.
    """
    pipelines = config.pipelines.model_copy(
        update={"default": group_orphan_steps(config.pipelines.default)}
    )
    return config.model_copy(update={"pipelines": pipelines})
