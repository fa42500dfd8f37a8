"""GitHub Actions to unified pipeline converter."""

import logging
import re
from typing import Any

from ...core.common.base_converter import BaseConverter
from ...core.common.base_parser import BaseDocumentParser
from ...core.durations import format_duration
from ...core.options import ConverterOptions
from ...harness import v1
from .expressions import github_expr_to_jexl
from .models import Container, Job, Pipeline, Service, Step, Strategy
from .on import convert_on

logger = logging.getLogger(__name__)

_CHECKOUT_ACTION = re.compile(r"^actions/checkout@")


class GitHubParser(BaseDocumentParser):
    provider = "github"

    def _decode(self, data: Any) -> Pipeline:
        return Pipeline.model_validate(data)


def is_checkout_action(uses: str) -> bool:
    return bool(_CHECKOUT_ACTION.match(uses))


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int | float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            logger.debug(f"Ignoring non-numeric fetch-depth '{value}'")
    return 0


def convert_clone(steps: list[Step]) -> v1.Clone | None:
    """Clone settings of the first checkout step."""
    for step in steps:
        if not is_checkout_action(step.uses):
            continue
        depth = _to_int((step.with_ or {}).get("fetch-depth"))
        return v1.Clone(depth=depth or None)
    return None


def convert_if(expression: str) -> v1.When | None:
    if not expression:
        return None
    return v1.When(eval=github_expr_to_jexl(expression))


def merge_when(trigger: v1.When | None, condition: v1.When | None) -> v1.When | None:
    """Combine the workflow trigger blocks with a job condition."""
    if trigger is None or condition is None:
        return trigger or condition
    return v1.When(cond=trigger.cond, eval=condition.eval)


def convert_runs_on(labels: list[str]) -> v1.Platform | None:
    """Guess the platform from the runner labels; the architecture is amd64."""
    if not labels:
        return None
    text = " ".join(labels)
    if any(name in text for name in ("macos", "darwin", "mac")):
        os_name = "macos"
    elif "win" in text:
        os_name = "windows"
    else:
        os_name = "linux"
    return v1.Platform(os=os_name, arch="amd64")


def convert_strategy(strategy: Strategy | None) -> v1.Strategy | None:
    if strategy is None or strategy.matrix is None:
        return None
    matrix = strategy.matrix
    return v1.Strategy(
        spec=v1.Matrix(
            axis=dict(matrix.axis) or None,
            include=_stringify_maps(matrix.include),
            exclude=_stringify_maps(matrix.exclude),
            concurrency=strategy.max_parallel or None,
        )
    )


def _stringify_maps(items: list[dict[str, Any]]) -> list[dict[str, str]] | None:
    result = [{key: _format_value(value) for key, value in item.items()} for item in items]
    return result or None


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def convert_mounts(volumes: list[str]) -> list[v1.Mount] | None:
    """Convert ``name:path`` volume strings; a bare path has no name."""
    mounts = []
    for volume in volumes:
        name, sep, path = volume.partition(":")
        if sep:
            mounts.append(v1.Mount(name=name, path=path.split(":")[0]))
        else:
            mounts.append(v1.Mount(path=name))
    return mounts or None


def convert_service(name: str, service: Service) -> v1.Step:
    return v1.Step(
        name=name,
        spec=v1.StepBackground(
            image=service.image or None,
            envs=dict(service.env) if service.env else None,
            mount=convert_mounts(service.volumes),
            ports=list(service.ports) or None,
            args=list(service.options) or None,
        ),
    )


def convert_with(values: dict[str, Any] | None) -> dict[str, Any] | None:
    """Action inputs; floating point numbers are kept as written."""
    if not values:
        return None
    result = {}
    for key, value in values.items():
        if isinstance(value, float):
            result[key] = f"{value:g}"
        else:
            result[key] = value
    return result


def convert_action(step: Step) -> v1.StepAction:
    return v1.StepAction(
        uses=step.uses,
        with_=convert_with(step.with_),
        envs=dict(step.env) if step.env else None,
    )


def convert_run(step: Step, container: Container | None) -> v1.StepExec:
    spec = v1.StepExec(
        run=step.run or None,
        shell=step.shell or None,
        envs=dict(step.env) if step.env else None,
    )
    if container is not None and container.image:
        spec.image = container.image
    return spec


def convert_continue_on_error(step: Step) -> v1.Failure | None:
    if not step.continue_on_error:
        return None
    return v1.Failure(errors=["all"], action=v1.FailureAction(type="ignore"))


def convert_timeout(minutes: int) -> str | None:
    if not minutes:
        return None
    return format_duration(minutes * 60)


def convert_steps(job: Job) -> list[v1.Step]:
    steps = [
        convert_service(name, service)
        for name, service in job.services.items()
        if service is not None
    ]
    for step in job.steps:
        # cloning is configured on the stage
        if is_checkout_action(step.uses):
            continue
        if step.uses:
            spec: v1.StepSpec = convert_action(step)
        else:
            spec = convert_run(step, job.container)
        steps.append(
            v1.Step(
                name=step.name or None,
                when=convert_if(step.if_),
                failure=convert_continue_on_error(step),
                timeout=convert_timeout(step.timeout_minutes),
                spec=spec,
            )
        )
    return steps


class GitHubConverter(BaseConverter):
    """
    Converts GitHub Actions workflows to a unified pipeline.

    Each job becomes a stage, in document order. The checkout action is
    replaced by the stage clone settings.
    """

    name = "github"
    description = "GitHub Actions"
    supported_files = [".github/workflows/*.yml", ".github/workflows/*.yaml"]

    def __init__(self, options: ConverterOptions | None = None):
        super().__init__()
        self.options = options or ConverterOptions()

    def get_parser(self) -> GitHubParser:
        return GitHubParser()

    def convert_document(self, document: Pipeline) -> v1.Config:
        pipeline = v1.Pipeline()
        if document.env:
            pipeline.options = v1.Default(envs=dict(document.env))

        trigger = convert_on(document.on)
        for name, job in document.jobs.items():
            if job is None:
                self._logger.debug(f"Skipping empty job '{name}'")
                continue
            pipeline.stages.append(self._convert_job(name, job, trigger))

        return v1.Config(spec=pipeline)

    def _convert_job(self, name: str, job: Job, trigger: v1.When | None) -> v1.Stage:
        return v1.Stage(
            name=name,
            strategy=convert_strategy(job.strategy),
            when=merge_when(trigger, convert_if(job.if_)),
            spec=v1.StageCI(
                clone=convert_clone(job.steps),
                envs=dict(job.env) if job.env else None,
                platform=convert_runs_on(job.runs_on),
                runtime=self._convert_runtime(),
                steps=convert_steps(job),
            ),
        )

    def _convert_runtime(self) -> v1.Runtime:
        if self.options.kube_enabled:
            return v1.Runtime(
                spec=v1.RuntimeKubernetes(
                    namespace=self.options.kube_namespace,
                    connector=self.options.kube_connector,
                )
            )
        return v1.Runtime(spec=v1.RuntimeCloud())
