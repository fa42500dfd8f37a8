"""Google Cloud Build to unified pipeline converter."""

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from ...core.common.base_converter import BaseConverter
from ...core.common.base_parser import BaseDocumentParser
from ...core.durations import format_duration
from ...core.options import ConverterOptions
from ...core.store import Identifiers
from ...harness import v1
from .models import Config, Step, Volume

logger = logging.getLogger(__name__)

GIT_BUILDER = "gcr.io/cloud-builders/git"
DOCKER_BUILDER = "gcr.io/cloud-builders/docker"

# built-in substitutions and the variables that replace them in the output
SUBSTITUTIONS = {
    "PROJECT_ID": "HARNESS_PROJECT_ID",
    "PROJECT_NUMBER": "HARNESS_PROJECT_ID",
    "LOCATION": "LOCATION",
    "BUILD_ID": "DRONE_BUILD_NUMBER",
    "REPO_NAME": "DRONE_REPO_NAME",
    "BRANCH_NAME": "DRONE_COMMIT_BRANCH",
    "TAG_NAME": "DRONE_TAG",
    "REVISION_ID": "DRONE_COMMIT_SHA",
    "COMMIT_SHA": "DRONE_COMMIT_SHA",
    "SHORT_SHA": "DRONE_COMMIT_SHA",
}

# stage variables providing the rewritten substitutions from the trigger
TRIGGER_ENVS = {
    "DRONE_REPO_NAME": "<+trigger.payload.repository.name>",
    "DRONE_COMMIT_BRANCH": "<+trigger.branch>",
    "DRONE_COMMIT_SHA": "<+trigger.commitSha>",
}

_SUBSTITUTION_PATTERN = re.compile(
    r"\b(" + "|".join(sorted(SUBSTITUTIONS, key=len, reverse=True)) + r")\b"
)


class CloudBuildParser(BaseDocumentParser):
    provider = "cloudbuild"

    def _decode(self, data: Any) -> Config:
        return Config.model_validate(data)


@dataclass
class _Context:
    config: Config
    identifiers: Identifiers = field(default_factory=Identifiers)


def convert_env(env: list[str]) -> dict[str, str] | None:
    """Convert ``KEY=VALUE`` entries to a mapping; malformed entries are dropped."""
    result = {}
    for entry in env:
        key, sep, value = entry.partition("=")
        if not sep:
            logger.debug(f"Ignoring malformed environment entry '{entry}'")
            continue
        result[key] = value
    return result or None


def convert_secret_env(names: list[str]) -> dict[str, str] | None:
    return {name: f'<+secrets.getValue("{name}")>' for name in names} or None


def convert_timeout(seconds: float) -> str | None:
    if not seconds:
        return None
    return format_duration(seconds)


def convert_mounts(volumes: list[Volume]) -> list[v1.Mount] | None:
    return [v1.Mount(name=volume.name, path=volume.path) for volume in volumes] or None


def convert_volumes(config: Config) -> list[v1.Volume] | None:
    """Declare a temporary volume for every volume name the steps mount."""
    names: list[str] = []
    for step in config.steps:
        for volume in step.volumes:
            if volume.name and volume.name not in names:
                names.append(volume.name)
    return [v1.Volume(name=name, spec=v1.VolumeTemp()) for name in names] or None


def is_privileged(image: str) -> bool:
    # the docker builder talks to the docker daemon
    return image.startswith(DOCKER_BUILDER)


def rewrite_substitutions(text: str) -> str:
    """Replace built-in substitution names with their pipeline variables."""
    return _SUBSTITUTION_PATTERN.sub(lambda m: SUBSTITUTIONS[m.group(1)], text)


def merge_envs(*sources: dict[str, str] | None) -> dict[str, str]:
    """
    Merge variable mappings with substitution names rewritten in the keys.

    The output text is rewritten as a whole, so keys naming the same
    pipeline variable (``COMMIT_SHA`` and ``SHORT_SHA``) are merged here
    instead; later sources win.
    """
    result: dict[str, str] = {}
    for source in sources:
        for key, value in (source or {}).items():
            result[rewrite_substitutions(key)] = value
    return result


class CloudBuildConverter(BaseConverter):
    """
    Converts Google Cloud Build configurations to a unified pipeline.

    The build becomes a single stage. Git builder steps are dropped
    because the stage clones the repository itself.
    """

    name = "cloudbuild"
    description = "Google Cloud Build"
    supported_files = ["cloudbuild.yaml", "cloudbuild.yml"]

    def __init__(self, options: ConverterOptions | None = None):
        super().__init__()
        self.options = options or ConverterOptions()

    def get_parser(self) -> CloudBuildParser:
        return CloudBuildParser()

    def convert_document(self, document: Config) -> v1.Config:
        ctx = _Context(config=document)

        user = {k: v for k, v in document.substitutions.items() if k.startswith("_")}
        envs = merge_envs(TRIGGER_ENVS, user)
        if document.options is not None:
            envs = merge_envs(
                envs,
                convert_env(document.options.env),
                convert_secret_env(document.options.secret_env),
            )

        stage = v1.Stage(
            name="pipeline",
            desc="converted from google cloud build",
            spec=v1.StageCI(
                envs=envs,
                runtime=self._convert_runtime(),
                steps=self._convert_steps(ctx),
                volumes=convert_volumes(document),
            ),
        )

        pipeline = v1.Pipeline(stages=[stage])
        timeout = convert_timeout(document.timeout)
        if timeout:
            pipeline.options = v1.Default(timeout=timeout)
        return v1.Config(spec=pipeline)

    def postprocess(self, text: str) -> str:
        return rewrite_substitutions(text)

    def _convert_runtime(self) -> v1.Runtime:
        if self.options.kube_enabled:
            return v1.Runtime(
                spec=v1.RuntimeKubernetes(
                    namespace=self.options.kube_namespace,
                    connector=self.options.kube_connector,
                )
            )
        return v1.Runtime(spec=v1.RuntimeCloud())

    def _convert_steps(self, ctx: _Context) -> list[v1.Step]:
        steps = []
        for step in ctx.config.steps:
            if step.name.startswith(GIT_BUILDER):
                self._logger.debug(f"Skipping git builder step '{step.id or step.name}'")
                continue
            steps.append(self._convert_step(ctx, step))
        return steps

    def _convert_step(self, ctx: _Context, step: Step) -> v1.Step:
        envs = merge_envs(convert_env(step.env), convert_secret_env(step.secret_env))

        failure = None
        if step.allow_failure:
            failure = v1.Failure(errors=["all"], action=v1.FailureAction(type="ignore"))

        # the last segment of the builder image is the fallback name
        base = step.name.rstrip("/").rsplit("/", 1)[-1]
        return v1.Step(
            name=ctx.identifiers.generate(step.id, base),
            timeout=convert_timeout(step.timeout),
            failure=failure,
            spec=v1.StepExec(
                image=step.name or None,
                connector=self.options.dockerhub_connector or None,
                privileged=is_privileged(step.name) or None,
                entrypoint=step.entrypoint or None,
                args=list(step.args) or None,
                run=step.script or None,
                envs=envs or None,
                mount=convert_mounts(step.volumes),
            ),
        )
