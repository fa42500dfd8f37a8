"""
Rio pipeline converter.

Rio files have no unified counterpart, so this converter writes legacy
(v0) documents directly: one CI stage per Rio pipeline (or a parallel
group of stages, one per target platform), a run step for the build
commands and a docker build-and-push step per published repository.
"""

import logging
from typing import Any

from ...core.common.base_converter import BaseConverter
from ...core.common.base_parser import BaseDocumentParser
from ...core.options import ConverterOptions
from ...core.store import Identifiers
from ...downgrader.names import convert_name
from ...harness import v0
from .models import Config, Dockerfile, Pipeline

logger = logging.getLogger(__name__)

DEFAULT = "default"
DEFAULT_DOCKER_CONNECTOR = "account.harnessImage"
DEFAULT_NOTIFY_USER_GROUP = "account._account_all_users"
CODEBASE_BUILD = "<+input>"
SHELL = "Sh"

# target platforms with a kubernetes node selector
PLATFORM_ARCH = {
    "linux/amd64": "amd64",
    "linux/arm64": "arm64",
}


class RioParser(BaseDocumentParser):
    provider = "rio"

    def _decode(self, data: Any) -> Config:
        return Config.model_validate({} if data is None else data)


def convert_name_to_id(name: str) -> str:
    """Replace spaces, hyphens and slashes with underscores."""
    for c in " -/":
        name = name.replace(c, "_")
    return name


def docker_tags(dockerfile: Dockerfile) -> list[str]:
    """Extra tags followed by the image version, ``latest`` when unset."""
    return [*dockerfile.extra_tags, dockerfile.version or "latest"]


def build_command(pipeline: Pipeline) -> str:
    return "\n".join(pipeline.build.steps)


def convert_timeout(minutes: int) -> str | None:
    if minutes <= 0:
        return None
    return f"{minutes}m"


class RioConverter(BaseConverter):
    """
    Converts Rio files to legacy pipelines.

    Extra options:
        pipeline_name: Pipeline name, also the source of its identifier.
        organization: Organization identifier.
        project: Project identifier.
        notify_user_group: User group emailed on pipeline success and
            failure when the file enables email notifications.
        github_connector: Codebase connector; when set every stage clones
            the codebase.
    """

    name = "rio"
    description = "Rio (legacy output)"
    supported_files = [".rio.yml"]
    extra_options = (
        "pipeline_name",
        "organization",
        "project",
        "notify_user_group",
        "github_connector",
    )
    output_format = "v0"

    def __init__(
        self,
        options: ConverterOptions | None = None,
        *,
        pipeline_name: str = DEFAULT,
        organization: str = DEFAULT,
        project: str = DEFAULT,
        notify_user_group: str = DEFAULT_NOTIFY_USER_GROUP,
        github_connector: str = "",
    ):
        super().__init__()
        self.options = options or ConverterOptions()
        self.pipeline_name = pipeline_name or DEFAULT
        self.organization = organization or DEFAULT
        self.project = project or DEFAULT
        self.notify_user_group = notify_user_group or DEFAULT_NOTIFY_USER_GROUP
        self.github_connector = github_connector

    @property
    def docker_connector(self) -> str:
        return self.options.dockerhub_connector or DEFAULT_DOCKER_CONNECTOR

    def get_parser(self) -> RioParser:
        return RioParser()

    def convert_document(self, document: Config) -> v0.Config:
        ids = Identifiers()
        pipeline = v0.Pipeline(
            identifier=convert_name_to_id(self.pipeline_name),
            name=self.pipeline_name,
            org_identifier=self.organization,
            project_identifier=self.project,
            stages=[self._convert_stages(p, ids) for p in document.pipelines],
            timeout=convert_timeout(document.timeout),
        )
        if document.notify.email.enabled:
            pipeline.notification_rules = [self._notification_rule()]
        if self.github_connector:
            pipeline.properties = v0.Properties(
                ci=v0.CIProperties(
                    codebase=v0.Codebase(
                        connector_ref=self.github_connector, build=CODEBASE_BUILD
                    )
                )
            )
        return v0.Config(pipeline=pipeline)

    # -- stages ----------------------------------------------------------------

    def _convert_stages(self, pipeline: Pipeline, ids: Identifiers) -> v0.Stages:
        platforms = pipeline.machine.target_platforms
        if not platforms:
            return v0.Stages(stage=self._convert_stage(pipeline, pipeline.name, "", ids))

        stages = []
        for platform in platforms:
            name = f"{pipeline.name}_{convert_name_to_id(platform)}"
            stages.append(v0.Stages(stage=self._convert_stage(pipeline, name, platform, ids)))
        return v0.Stages(parallel=stages)

    def _convert_stage(
        self, pipeline: Pipeline, name: str, platform: str, ids: Identifiers
    ) -> v0.Stage:
        identifier = ids.generate(convert_name_to_id(name), "stage")
        self._logger.debug(f"Converting Rio pipeline '{pipeline.name}' to '{identifier}'")

        infrastructure, runtime, stage_platform = self._convert_infrastructure(platform)
        return v0.Stage(
            identifier=identifier,
            name=convert_name(name) or identifier,
            type=v0.STAGE_TYPE_CI,
            spec=v0.StageCI(
                clone_codebase=True if self.github_connector else None,
                execution=v0.Execution(steps=self._convert_steps(pipeline)),
                infrastructure=infrastructure,
                platform=stage_platform,
                runtime=runtime,
            ),
        )

    def _convert_infrastructure(
        self, platform: str
    ) -> tuple[v0.Infrastructure | None, v0.Runtime | None, v0.Platform | None]:
        arch = PLATFORM_ARCH.get(platform)
        if self.options.kube_enabled:
            spec = v0.InfraSpec(
                connector_ref=self.options.kube_connector,
                namespace=self.options.kube_namespace,
                automount_service_account_token=True,
                os=v0.OS_LINUX,
            )
            if arch:
                spec.node_selector = {"kubernetes.io/arch": arch}
            return v0.Infrastructure(spec=spec), None, None
        return None, v0.Runtime(), v0.Platform(os=v0.OS_LINUX, arch=(arch or "amd64").title())

    # -- steps -----------------------------------------------------------------

    def _convert_steps(self, pipeline: Pipeline) -> list[v0.Steps]:
        steps = []
        if pipeline.build.steps:
            steps.append(
                v0.Steps(
                    step=v0.Step(
                        identifier="Build",
                        name="Build",
                        type=v0.STEP_TYPE_RUN,
                        spec=v0.StepRun(
                            env=dict(pipeline.machine.env) or None,
                            command=build_command(pipeline),
                            shell=SHELL,
                            connector_ref=self.docker_connector,
                            image=pipeline.machine.base_image or None,
                        ),
                    )
                )
            )

        if pipeline.package.dockerfile and not pipeline.package.release:
            self._logger.warning(
                f"Pipeline '{pipeline.name}': release=false is not supported"
            )

        counter = 1
        for dockerfile in pipeline.package.dockerfile:
            for spec in self._convert_docker_steps(dockerfile):
                identifier = f"BuildAndPush_{counter}"
                steps.append(
                    v0.Steps(
                        step=v0.Step(
                            identifier=identifier,
                            name=identifier,
                            type=v0.STEP_TYPE_DOCKER,
                            spec=spec,
                        )
                    )
                )
                counter += 1
        return steps

    def _convert_docker_steps(self, dockerfile: Dockerfile) -> list[v0.StepDocker]:
        """One build-and-push step per published repository."""
        return [
            v0.StepDocker(
                context=dockerfile.context or None,
                dockerfile=dockerfile.dockerfile_path or None,
                repo=publish.repo or None,
                tags=docker_tags(dockerfile),
                build_args=dict(dockerfile.env) or None,
                connector_ref=self.docker_connector,
            )
            for publish in dockerfile.publish
        ]

    def _notification_rule(self) -> v0.NotificationRule:
        return v0.NotificationRule(
            identifier="user_group_notification",
            name="user_group_notification",
            enabled=True,
            pipeline_events=[
                v0.PipelineEvent(type="PipelineSuccess"),
                v0.PipelineEvent(type="PipelineFailed"),
            ],
            notification_method=v0.NotificationMethod(
                type="Email",
                spec=v0.NotificationSpec(user_groups=[self.notify_user_group]),
            ),
        )
