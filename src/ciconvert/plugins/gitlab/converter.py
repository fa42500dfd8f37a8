"""GitLab CI to unified pipeline converter."""

import logging
from dataclasses import dataclass, field
from typing import Any

from ...core.common.base_converter import BaseConverter
from ...core.common.base_parser import BaseDocumentParser
from ...core.durations import format_duration, parse_duration
from ...core.exceptions import DecodeError
from ...core.options import ConverterOptions
from ...core.store import Identifiers
from ...harness import v1
from .merge import resolve_extends
from .models import (
    AllowFailure,
    Cache,
    Default,
    Image,
    Job,
    Pipeline,
    Retry,
    Secret,
    Variable,
)

logger = logging.getLogger(__name__)

DEFAULT_STAGES = [".pre", "build", "test", "deploy", ".post"]
DEFAULT_JOB_STAGE = "test"

PULL_POLICIES = {
    "always": "always",
    "never": "never",
    "if-not-present": "if-not-exists",
}


class GitLabParser(BaseDocumentParser):
    provider = "gitlab"

    def _decode(self, data: Any) -> Pipeline:
        if not isinstance(data, dict):
            raise DecodeError(
                f"Expected a mapping at the document root, got {type(data).__name__}",
                provider=self.provider,
            )
        return Pipeline.from_document(data)


@dataclass
class _Context:
    config: Pipeline
    identifiers: Identifiers = field(default_factory=Identifiers)

    @property
    def default(self) -> Default:
        return self.config.default or Default()


def convert_variables(variables: dict[str, Variable] | None) -> dict[str, str] | None:
    if not variables:
        return None
    return {key: variables[key].value for key in sorted(variables)}


def convert_secrets(secrets: dict[str, Secret] | None) -> dict[str, str]:
    """Job secrets become variables reading the secret of the same name."""
    return {name: f'<+secrets.getValue("{name}")>' for name in sorted(secrets or {})}


def convert_matrix_envs(axis: dict[str, list[str]]) -> dict[str, str]:
    return {name: f"<+matrix.{name}>" for name in sorted(axis)}


def convert_strategy(axis: dict[str, list[str]]) -> v1.Strategy:
    return v1.Strategy(spec=v1.Matrix(axis={k: list(v) for k, v in axis.items()}))


def convert_cache(cache: Cache | None) -> v1.Cache | None:
    if cache is None:
        return None
    return v1.Cache(
        enabled=True,
        key=cache.key.value if cache.key is not None and cache.key.value else None,
        paths=list(cache.paths) or None,
        policy=cache.policy or None,
    )


def convert_image(image: Image | None) -> v1.StepExec:
    """Image name, pull policy and entrypoint of a job image."""
    spec = v1.StepExec()
    if image is None:
        return spec
    spec.image = image.name or None
    # several policies cannot be expressed as one pull setting
    if len(image.pull_policy) == 1:
        spec.pull = PULL_POLICIES.get(image.pull_policy[0])
    if image.entrypoint:
        spec.entrypoint = image.entrypoint[0]
        spec.args = list(image.entrypoint[1:]) or None
    return spec


def convert_retry(retry: Retry | None) -> v1.Failure | None:
    if retry is None or not retry.max:
        return None
    return v1.Failure(
        action=v1.FailureAction(type="retry", spec={"attempts": retry.max})
    )


def convert_allow_failure(allow_failure: AllowFailure | None) -> v1.Failure | None:
    if allow_failure is None or not allow_failure.value:
        return None
    return v1.Failure(errors=["all"], action=v1.FailureAction(type="ignore"))


def convert_timeout(text: str) -> str | None:
    """Normalize a job timeout such as ``1h 30m``; unreadable values are dropped."""
    if not text:
        return None
    try:
        seconds = parse_duration(text.replace(" ", ""))
    except ValueError:
        logger.debug(f"Ignoring unsupported timeout '{text}'")
        return None
    return format_duration(seconds) if seconds else None


def convert_script(job: Job, default: Default) -> str:
    """
    Join before_script, script and after_script into one script.

    A job's own before_script and after_script replace the inherited
    default ones.
    """
    before = job.before_script
    if not before and job.inherits_default("before_script"):
        before = default.before_script
    after = job.after_script
    if not after and job.inherits_default("after_script"):
        after = default.after_script
    return "\n".join([*before, *job.script, *after])


def convert_service(name: str, image: Image) -> v1.Step:
    return v1.Step(
        name=name,
        spec=v1.StepBackground(
            image=image.name,
            entrypoint=image.entrypoint[0] if image.entrypoint else None,
            args=list(image.command) or None,
        ),
    )


def inherited_variables(
    jobs: dict[str, Job], envs: dict[str, str] | None
) -> dict[str, str] | None:
    """Restrict the stage variables to the keys jobs list in inherit.variables."""
    if not envs:
        return envs
    for job in jobs.values():
        inherit = job.inherit.variables if job.inherit is not None else None
        if inherit is not None and inherit.enabled and inherit.keys:
            envs = {key: value for key, value in envs.items() if key in inherit.keys}
    return envs or None


class GitLabConverter(BaseConverter):
    """
    Converts GitLab CI pipelines to a unified pipeline.

    All jobs are converted into a single stage. Jobs are visited stage by
    stage, in name order within a stage; jobs that share a GitLab stage run
    in a parallel step, mirroring how GitLab schedules them.
    """

    name = "gitlab"
    description = "GitLab CI"
    supported_files = [".gitlab-ci.yml"]

    def __init__(self, options: ConverterOptions | None = None):
        super().__init__()
        self.options = options or ConverterOptions()

    def get_parser(self) -> GitLabParser:
        return GitLabParser()

    def convert_document(self, document: Pipeline) -> v1.Config:
        ctx = _Context(config=document)
        jobs = {
            name: resolve_extends(job, document.templates)
            for name, job in sorted(document.jobs.items())
            if job is not None
        }

        stage_names = document.stages or DEFAULT_STAGES
        stage = v1.Stage(
            name=document.stages[-1] if document.stages else DEFAULT_JOB_STAGE,
            spec=v1.StageCI(
                cache=self._convert_cache(ctx, jobs),
                envs=inherited_variables(jobs, convert_variables(document.variables)),
                runtime=self._convert_runtime(),
            ),
        )
        stage.spec.steps.extend(self._convert_services(ctx, jobs))

        for name, job in jobs.items():
            if (job.stage or DEFAULT_JOB_STAGE) not in stage_names:
                self._logger.debug(f"Skipping job '{name}' of undeclared stage '{job.stage}'")

        for stage_name in stage_names:
            steps: list[v1.Step] = []
            for name, job in jobs.items():
                if (job.stage or DEFAULT_JOB_STAGE) != stage_name:
                    continue
                steps.extend(self._convert_job(ctx, name, job))

            if len(steps) > 1:
                stage.spec.steps.append(
                    v1.Step(name=stage_name, spec=v1.StepParallel(steps=steps))
                )
            else:
                stage.spec.steps.extend(steps)

        return v1.Config(spec=v1.Pipeline(stages=[stage]))

    def _convert_runtime(self) -> v1.Runtime:
        if self.options.kube_enabled:
            return v1.Runtime(
                spec=v1.RuntimeKubernetes(
                    namespace=self.options.kube_namespace,
                    connector=self.options.kube_connector,
                )
            )
        return v1.Runtime(spec=v1.RuntimeCloud())

    def _convert_cache(self, ctx: _Context, jobs: dict[str, Job]) -> v1.Cache | None:
        # the stage holds a single cache: the first one declared wins
        for job in jobs.values():
            if job.cache is not None:
                return convert_cache(job.cache)
        return convert_cache(ctx.default.cache)

    def _convert_services(self, ctx: _Context, jobs: dict[str, Job]) -> list[v1.Step]:
        images: dict[str, Image] = {}
        for image in ctx.default.services:
            images.setdefault(image.name, image)
        for job in jobs.values():
            if not job.inherits_default("services"):
                continue
            for image in job.services:
                images.setdefault(image.name, image)

        steps = []
        for image in images.values():
            if not image.name:
                continue
            base = image.alias or image.name.split(":")[0].rsplit("/", 1)[-1]
            steps.append(convert_service(ctx.identifiers.generate(base), image))
        return steps

    def _convert_job(self, ctx: _Context, name: str, job: Job) -> list[v1.Step]:
        if job.trigger is not None:
            self._logger.debug(f"Skipping trigger job '{name}'")
            return []
        if job.parallel is not None and job.parallel.matrix:
            return [
                self._convert_step(ctx, f"{name}-{index}", job, axis)
                for index, axis in enumerate(job.parallel.matrix)
            ]
        return [self._convert_step(ctx, name, job)]

    def _convert_step(
        self,
        ctx: _Context,
        name: str,
        job: Job,
        axis: dict[str, list[str]] | None = None,
    ) -> v1.Step:
        default = ctx.default

        image = job.image
        if image is None and job.inherits_default("image"):
            image = default.image
        spec = convert_image(image)
        spec.run = convert_script(job, default) or None

        envs = convert_variables(job.variables) or {}
        envs.update(convert_secrets(job.secrets))
        if axis:
            envs.update(convert_matrix_envs(axis))
        spec.envs = envs or None

        retry = job.retry
        if retry is None and job.inherits_default("retry"):
            retry = default.retry
        failure = convert_retry(retry) or convert_allow_failure(job.allow_failure)

        timeout = job.timeout
        if not timeout and job.inherits_default("timeout"):
            timeout = default.timeout

        return v1.Step(
            name=ctx.identifiers.generate(name),
            timeout=convert_timeout(timeout),
            strategy=convert_strategy(axis) if axis else None,
            failure=failure,
            spec=spec,
        )
