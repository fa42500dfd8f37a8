"""
Downgrader from unified (v1) pipelines to the legacy (v0) pipeline format.

The input is a stream of one or more unified documents. Every document
becomes one legacy pipeline; only CI stages are carried over.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any

from ..core.common.base_converter import BaseConverter
from ..core.common.base_parser import BaseDocumentParser
from ..core.common.tolerant import stringify
from ..core.durations import format_duration, parse_duration
from ..core.store import Identifiers
from ..core.yaml_io import dump_yaml
from ..harness import v0, v1
from .conditions import convert_stage_when, convert_step_when
from .names import convert_name, slug, slug_with_random

logger = logging.getLogger(__name__)

DEFAULT = "default"

CODEBASE_BUILD = "<+input>"
DOCKER_CONNECTOR = "<+input>"

KANIKO_IMAGE = "plugins/kaniko"
ARTIFACTORY_IMAGE = "plugins/artifactory"

# Run steps invoking one of these tools become Test steps with build intelligence.
TEST_COMMANDS = ("mvn ", "gradle ", "gradlew ", "sbt ", "bazel ", "pytest", "rspec")

IMAGE_PULL_POLICIES = {
    "always": v0.IMAGE_PULL_ALWAYS,
    "never": v0.IMAGE_PULL_NEVER,
    "if-not-exists": v0.IMAGE_PULL_IF_NOT_PRESENT,
}

DOCUMENT_SEPARATOR = "\n---\n"


@dataclass
class DowngradeOptions:
    """
    Options of the legacy pipeline documents.

    Attributes:
        codebase_name: Repository name of the pipeline codebase.
        codebase_connector: Connector used to clone the codebase.
        dockerhub_connector: Connector of run, background and plugin images.
        kube_namespace: Namespace of KubernetesDirect infrastructure.
        kube_connector: Cluster connector; when set every stage runs on
            KubernetesDirect infrastructure.
        pipeline_id: Pipeline identifier, the slug of the pipeline name when
            empty.
        pipeline_name: Pipeline name; the unified name is used when this is
            left at "default".
        organization: Organization identifier.
        project: Project identifier.
        default_image: Image of run steps that declare none.
        use_intelligence: Enable build intelligence and Test steps.
        random_id: Append a random suffix to the derived pipeline identifier.
    """

    codebase_name: str = ""
    codebase_connector: str = ""
    dockerhub_connector: str = ""
    kube_namespace: str = DEFAULT
    kube_connector: str = ""
    pipeline_id: str = ""
    pipeline_name: str = DEFAULT
    organization: str = DEFAULT
    project: str = DEFAULT
    default_image: str = ""
    use_intelligence: bool = False
    random_id: bool = False

    def __post_init__(self) -> None:
        self.pipeline_name = self.pipeline_name or DEFAULT
        self.organization = self.organization or DEFAULT
        self.project = self.project or DEFAULT
        self.kube_namespace = self.kube_namespace or DEFAULT


class V1Parser(BaseDocumentParser):
    """Parser of unified pipeline streams, one Config per document."""

    provider = "v1"
    multi_document = True

    def _decode(self, data: list[Any]) -> list[v1.Config]:
        return [v1.Config.model_validate(document) for document in data]


# -- helpers -----------------------------------------------------------------


def convert_timeout(text: str | None) -> str | None:
    """Re-format a duration; zero and unparseable durations are dropped."""
    if not text:
        return None
    try:
        seconds = parse_duration(text)
    except ValueError:
        logger.debug(f"Dropping invalid timeout '{text}'")
        return None
    if seconds <= 0:
        return None
    return format_duration(seconds)


def convert_variables(envs: dict[str, str] | None) -> list[v0.Variable] | None:
    if not envs:
        return None
    return [v0.Variable(name=name, value=envs[name]) for name in sorted(envs)]


def convert_image_pull(pull: str | None) -> str | None:
    if not pull:
        return None
    return IMAGE_PULL_POLICIES.get(pull)


def convert_ports(ports: list[str] | None) -> dict[str, str] | None:
    """Map ``host:container`` port strings to legacy port bindings."""
    bindings = {}
    for port in ports or []:
        host, _, container = port.partition(":")
        bindings[host] = container or host
    return bindings or None


def convert_settings(settings: dict[str, Any] | None) -> dict[str, Any] | None:
    """Render plugin settings as strings and lists of strings."""
    if not settings:
        return None
    converted: dict[str, Any] = {}
    for key, value in settings.items():
        if isinstance(value, list):
            converted[key] = [stringify(item) for item in value]
        elif isinstance(value, dict):
            converted[key] = value
        else:
            converted[key] = stringify(value)
    return converted


def extract_string(settings: dict[str, Any], key: str) -> str | None:
    value = settings.get(key)
    if value is None or isinstance(value, list | dict):
        return None
    return stringify(value)


def extract_string_slice(settings: dict[str, Any], key: str) -> list[str] | None:
    """Read a list setting; comma separated entries are split."""
    value = settings.get(key)
    if value is None:
        return None
    items = value if isinstance(value, list) else [value]
    result = [
        part.strip()
        for item in items
        for part in stringify(item).split(",")
        if part.strip()
    ]
    return result or None


def extract_string_map(settings: dict[str, Any], key: str) -> dict[str, str] | None:
    """Read a mapping setting written as a mapping or as ``k=v`` entries."""
    value = settings.get(key)
    if value is None:
        return None
    if isinstance(value, dict):
        return {str(k): stringify(v) for k, v in value.items()} or None
    items = value if isinstance(value, list) else [value]
    result = {}
    for item in items:
        for pair in stringify(item).split(","):
            name, sep, val = pair.partition("=")
            if sep and name.strip():
                result[name.strip()] = val.strip()
    return result or None


def convert_platform(platform: v1.Platform | None, cloud: bool) -> v0.Platform:
    os_name, arch = "Linux", "Amd64"
    if platform is not None:
        os_name = {
            "linux": "Linux",
            "windows": "Windows",
            "macos": "MacOS",
            "mac": "MacOS",
            "darwin": "MacOS",
        }.get((platform.os or "").lower(), "Linux")
        arch = {"amd64": "Amd64", "arm": "Arm64", "arm64": "Arm64"}.get(
            (platform.arch or "").lower(),
            "Arm64" if os_name == "MacOS" else "Amd64",
        )
    # hosted machines exist for a single architecture per OS
    if cloud and os_name == "MacOS":
        arch = "Arm64"
    elif cloud and os_name == "Windows":
        arch = "Amd64"
    return v0.Platform(os=os_name, arch=arch)


def convert_strategy(strategy: v1.Strategy | None) -> v0.Strategy | None:
    if strategy is None or strategy.spec is None:
        return None
    spec = strategy.spec
    matrix: dict[str, Any] = dict(spec.axis or {})
    if spec.exclude:
        matrix["exclude"] = spec.exclude
    if spec.concurrency:
        matrix["maxConcurrency"] = spec.concurrency
    return v0.Strategy(matrix=matrix) if matrix else None


def _base_image(image: str) -> str:
    """Image name without its tag or digest."""
    name = image.split("@", 1)[0]
    if name.rfind(":") > name.rfind("/"):
        name = name[: name.rfind(":")]
    return name


class Downgrader(BaseConverter):
    """
    Converts unified pipelines to legacy pipelines.

    Group steps have no legacy counterpart: their children are spliced into
    the enclosing step list, recursively. Parallel steps become legacy
    parallel lists, where a group is kept as a step group.
    """

    name = "v1"
    description = "Unified pipeline to legacy pipeline downgrader"
    supported_files = [".harness.yaml"]

    def __init__(self, options: DowngradeOptions | None = None):
        super().__init__()
        self.options = options or DowngradeOptions()

    def get_parser(self) -> BaseDocumentParser:
        return V1Parser(encoding=self.encoding)

    # The downgrade_* entry points mirror the convert_* family.

    def downgrade(self, stream: IO[str] | IO[bytes]) -> bytes:
        return self.convert(stream)

    def downgrade_bytes(self, data: bytes) -> bytes:
        return self.convert_bytes(data)

    def downgrade_string(self, text: str) -> bytes:
        return self.convert_string(text)

    def downgrade_file(self, file_path: str | Path) -> bytes:
        return self.convert_file(file_path)

    def downgrade_from(self, configs: list[v1.Config]) -> bytes:
        """Downgrade unified trees that are already in memory."""
        return self.serialize(self.convert_document(configs)).encode(self.encoding)

    def serialize(self, result: Any) -> str:
        documents = result if isinstance(result, list) else [result]
        return self.postprocess(
            DOCUMENT_SEPARATOR.join(dump_yaml(document) for document in documents)
        )

    def convert_document(self, document: list[v1.Config]) -> list[v0.Config]:
        configs = document if isinstance(document, list) else [document]
        return [self._convert_config(config, Identifiers()) for config in configs]

    # -- pipeline --------------------------------------------------------------

    def _convert_config(self, config: v1.Config, ids: Identifiers) -> v0.Config:
        opts = self.options
        pipeline = config.spec
        source_name = pipeline.name or config.name

        name = opts.pipeline_name
        if name == DEFAULT and source_name:
            name = source_name
        identifier = opts.pipeline_id
        if not identifier:
            identifier = slug_with_random(name) if opts.random_id else slug(name)
        identifier = identifier or DEFAULT

        tags = {
            tag.strip(): ""
            for tag in (config.type or "").split(",")
            if tag.strip()
        }

        default = pipeline.options
        stages = []
        for stage in pipeline.stages:
            if stage.type != "ci":
                self._logger.debug(f"Skipping {stage.type} stage '{stage.name}'")
                continue
            stages.append(v0.Stages(stage=self._convert_stage(stage, default, ids)))

        return v0.Config(
            pipeline=v0.Pipeline(
                identifier=identifier,
                name=convert_name(name) or identifier,
                org_identifier=opts.organization,
                project_identifier=opts.project,
                properties=v0.Properties(
                    ci=v0.CIProperties(
                        codebase=v0.Codebase(
                            repo_name=opts.codebase_name or None,
                            connector_ref=opts.codebase_connector or None,
                            build=CODEBASE_BUILD,
                        )
                    )
                ),
                stages=stages,
                variables=convert_variables(default.envs if default else None),
                tags=tags or None,
            )
        )

    # -- stage -----------------------------------------------------------------

    def _convert_stage(
        self, stage: v1.Stage, default: v1.Default | None, ids: Identifiers
    ) -> v0.Stage:
        spec = stage.spec
        identifier = ids.generate(slug(stage.id), slug(stage.name), slug(stage.type))
        self._logger.debug(f"Downgrading stage '{identifier}'")

        clone = spec.clone or (default.clone if default else None)
        infrastructure, runtime = self._convert_infrastructure(spec.runtime)

        caching = None
        if spec.cache is not None:
            caching = v0.Cache(
                enabled=spec.cache.enabled,
                key=spec.cache.key,
                paths=spec.cache.paths,
            )

        return v0.Stage(
            identifier=identifier,
            name=convert_name(stage.name) or identifier,
            type=v0.STAGE_TYPE_CI,
            spec=v0.StageCI(
                build_intelligence=(
                    v0.BuildIntelligence(enabled=True)
                    if self.options.use_intelligence
                    else None
                ),
                caching=caching,
                clone_codebase=not (clone is not None and clone.disabled),
                execution=v0.Execution(steps=self._convert_steps(spec.steps, ids)),
                infrastructure=infrastructure,
                platform=convert_platform(spec.platform, cloud=runtime is not None),
                runtime=runtime,
            ),
            variables=convert_variables(spec.envs),
            when=convert_stage_when(stage.when),
            strategy=convert_strategy(stage.strategy),
        )

    def _convert_infrastructure(
        self, runtime: v1.Runtime | None
    ) -> tuple[v0.Infrastructure | None, v0.Runtime | None]:
        opts = self.options
        if opts.kube_connector:
            return (
                v0.Infrastructure(
                    spec=v0.InfraSpec(
                        connector_ref=opts.kube_connector,
                        namespace=opts.kube_namespace,
                    )
                ),
                None,
            )
        if runtime is not None and isinstance(runtime.spec, v1.RuntimeKubernetes):
            return (
                v0.Infrastructure(
                    spec=v0.InfraSpec(
                        connector_ref=runtime.spec.connector or opts.kube_connector,
                        namespace=runtime.spec.namespace or opts.kube_namespace,
                    )
                ),
                None,
            )
        return None, v0.Runtime()

    # -- steps -----------------------------------------------------------------

    def _convert_steps(self, steps: list[v1.Step], ids: Identifiers) -> list[v0.Steps]:
        result = []
        for step in steps:
            if isinstance(step.spec, v1.StepGroup):
                result.extend(self._convert_steps(step.spec.steps, ids))
            elif isinstance(step.spec, v1.StepParallel):
                result.append(
                    v0.Steps(parallel=self._convert_parallel(step.spec.steps, ids))
                )
            else:
                converted = self._convert_step(step, ids)
                if converted is not None:
                    result.append(v0.Steps(step=converted))
        return result

    def _convert_parallel(self, steps: list[v1.Step], ids: Identifiers) -> list[v0.Steps]:
        result = []
        for step in steps:
            if isinstance(step.spec, v1.StepGroup):
                identifier = ids.generate(slug(step.id), slug(step.name), "group")
                result.append(
                    v0.Steps(
                        step_group=v0.StepGroup(
                            identifier=identifier,
                            name=convert_name(step.name) or identifier,
                            timeout=convert_timeout(step.timeout),
                            steps=self._convert_steps(step.spec.steps, ids),
                        )
                    )
                )
            elif isinstance(step.spec, v1.StepParallel):
                result.append(
                    v0.Steps(parallel=self._convert_parallel(step.spec.steps, ids))
                )
            else:
                converted = self._convert_step(step, ids)
                if converted is not None:
                    result.append(v0.Steps(step=converted))
        return result

    def _convert_step(self, step: v1.Step, ids: Identifiers) -> v0.Step | None:
        spec = step.spec
        if spec is None:
            self._logger.debug(f"Skipping step '{step.name}' without a spec")
            return None

        identifier = ids.generate(slug(step.id), slug(step.name), slug(step.type))

        if isinstance(spec, v1.StepExec):
            step_type, converted = self._convert_run(spec)
        elif isinstance(spec, v1.StepBackground):
            step_type, converted = v0.STEP_TYPE_BACKGROUND, self._convert_background(spec)
        elif isinstance(spec, v1.StepPlugin):
            step_type, converted = self._convert_plugin(spec)
        elif isinstance(spec, v1.StepAction):
            step_type = v0.STEP_TYPE_ACTION
            converted = v0.StepAction(
                uses=spec.uses, with_=convert_settings(spec.with_), envs=spec.envs
            )
        elif isinstance(spec, v1.StepBitrise):
            step_type = v0.STEP_TYPE_BITRISE
            converted = v0.StepBitrise(
                uses=spec.uses, with_=convert_settings(spec.with_), envs=spec.envs
            )
        else:
            self._logger.debug(f"Skipping unsupported {step.type} step '{identifier}'")
            return None

        return v0.Step(
            identifier=identifier,
            name=convert_name(step.name) or identifier,
            type=step_type,
            timeout=convert_timeout(step.timeout),
            spec=converted,
            when=convert_step_when(step.when, identifier),
            strategy=convert_strategy(step.strategy),
        )

    def _convert_run(self, spec: v1.StepExec) -> tuple[str, v0.StepRun]:
        opts = self.options
        step_type = v0.STEP_TYPE_RUN
        if opts.use_intelligence and any(
            tool in (spec.run or "") for tool in TEST_COMMANDS
        ):
            step_type = v0.STEP_TYPE_TEST

        reports = None
        paths = [path for report in spec.reports or [] for path in report.path or []]
        if paths:
            reports = v0.Report(spec=v0.ReportJunit(paths=paths))

        return step_type, v0.StepRun(
            env=spec.envs,
            command=spec.run,
            connector_ref=spec.connector or opts.dockerhub_connector or None,
            image=spec.image or opts.default_image or None,
            image_pull_policy=convert_image_pull(spec.pull),
            outputs=[v0.Output(name=o.name) for o in spec.outputs or []] or None,
            privileged=spec.privileged,
            run_as_user=spec.user,
            reports=reports,
            shell=spec.shell.title() if spec.shell else None,
        )

    def _convert_background(self, spec: v1.StepBackground) -> v0.StepBackground:
        return v0.StepBackground(
            command=spec.run,
            connector_ref=spec.connector or self.options.dockerhub_connector or None,
            entrypoint=[spec.entrypoint] if spec.entrypoint else None,
            env=spec.envs,
            image=spec.image,
            image_pull_policy=convert_image_pull(spec.pull),
            port_bindings=convert_ports(spec.ports),
            privileged=spec.privileged,
            run_as_user=spec.user,
        )

    def _convert_plugin(self, spec: v1.StepPlugin) -> tuple[str, Any]:
        settings = spec.with_ or {}
        image = _base_image(spec.image or "")

        if image == KANIKO_IMAGE:
            return v0.STEP_TYPE_DOCKER, v0.StepDocker(
                build_args=extract_string_map(settings, "build_args"),
                connector_ref=DOCKER_CONNECTOR,
                context=extract_string(settings, "context"),
                dockerfile=extract_string(settings, "dockerfile"),
                labels=extract_string_map(settings, "custom_labels"),
                privileged=spec.privileged,
                repo=extract_string(settings, "repo"),
                run_as_user=spec.user,
                tags=extract_string_slice(settings, "tags"),
                target=extract_string(settings, "target"),
                caching=True,
            )

        if image == ARTIFACTORY_IMAGE:
            return v0.STEP_TYPE_ARTIFACTORY_UPLOAD, v0.StepArtifactoryUpload(
                connector_ref=DOCKER_CONNECTOR,
                target=extract_string(settings, "target"),
                source_path=extract_string(settings, "source"),
            )

        return v0.STEP_TYPE_PLUGIN, v0.StepPlugin(
            env=spec.envs,
            connector_ref=spec.connector or self.options.dockerhub_connector or None,
            image=spec.image or spec.uses,
            image_pull_policy=convert_image_pull(spec.pull),
            privileged=spec.privileged,
            run_as_user=spec.user,
            settings=convert_settings(spec.with_),
        )
