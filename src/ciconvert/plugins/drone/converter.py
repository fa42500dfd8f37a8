"""Drone to unified pipeline converter."""

import logging
from collections.abc import Callable
from typing import Any

from ...core.common.base_converter import BaseConverter
from ...core.common.base_parser import BaseDocumentParser
from ...core.options import ConverterOptions
from ...harness import v1
from .models import (
    KIND_PIPELINE,
    Condition,
    Conditions,
    Parameter,
    Pipeline,
    Resources,
    Step,
    Variable,
    Volume,
    VolumeMount,
)
from .options import build_options
from .variables import replace_vars, replace_vars_in, sanitize, secret_expression

logger = logging.getLogger(__name__)

# condition keys in the order they are emitted
CONDITION_KEYS = (
    "action",
    "branch",
    "cron",
    "event",
    "instance",
    "paths",
    "ref",
    "repo",
    "status",
    "target",
)

PULL_POLICIES = {"always", "never", "if-not-exists"}

SHELLS = {
    "bash": "bash",
    "sh": "sh",
    "posix": "sh",
    "pwsh": "powershell",
    "powershell": "powershell",
}


class DroneParser(BaseDocumentParser):
    provider = "drone"
    multi_document = True

    def _decode(self, data: Any) -> list[Pipeline]:
        return [Pipeline.model_validate(document) for document in data]


def convert_registry(pipelines: list[Pipeline]) -> v1.Registry | None:
    """
    Collect the pull secrets of every pipeline into registry connectors.

    Drone stores registry credentials per pipeline while the unified
    format keeps them at pipeline level, so the union is used.
    """
    names = sorted({name for p in pipelines for name in p.image_pull_secrets})
    if not names:
        return None
    return v1.Registry(connector=[v1.RegistryConnector(name=name) for name in names])


def convert_expr(condition: Condition) -> v1.Expr | None:
    # include takes precedence over exclude
    if condition.include:
        return v1.Expr(in_=list(condition.include))
    if condition.exclude:
        return v1.Expr(not_=v1.Expr(in_=list(condition.exclude)))
    return None


def convert_cond(conditions: Conditions) -> v1.When | None:
    if conditions.is_empty():
        return None
    exprs = {}
    for key in CONDITION_KEYS:
        expr = convert_expr(getattr(conditions, key))
        if expr is not None:
            exprs[key] = expr
    return v1.When(cond=[exprs])


def convert_clone(pipeline: Pipeline) -> v1.Clone:
    clone = pipeline.clone
    return v1.Clone(
        depth=clone.depth or None,
        disabled=clone.disable or None,
        insecure=clone.skip_verify or None,
        trace=clone.trace or None,
    )


def convert_node(node: dict[str, str]) -> list[str] | None:
    if not node:
        return None
    return sorted(f"{key}:{value}" for key, value in node.items())


def convert_platform(pipeline: Pipeline) -> v1.Platform | None:
    platform = pipeline.platform
    if not platform.os and not platform.arch:
        return None

    if platform.os in ("windows", "win", "win32"):
        os_name = "windows"
    elif platform.os in ("darwin", "macos", "mac"):
        os_name = "macos"
    else:
        os_name = "linux"

    arch = "arm64" if platform.arch in ("arm", "arm64") else "amd64"
    return v1.Platform(os=os_name, arch=arch)


def convert_resource(cpu: int, memory: int) -> v1.Resource | None:
    if not cpu and not memory:
        return None
    return v1.Resource(cpu=cpu or None, memory=memory or None)


def convert_runtime(pipeline: Pipeline, options: ConverterOptions) -> v1.Runtime:
    """
    Select the stage runtime.

    Kubernetes pipelines keep their pod settings; a configured kubernetes
    connector moves every pipeline onto kubernetes.
    """
    if pipeline.type != "kubernetes" and not options.kube_enabled:
        return v1.Runtime(spec=v1.RuntimeMachine())

    requests = pipeline.resources.requests
    spec = v1.RuntimeKubernetes(
        namespace=pipeline.metadata.namespace or None,
        annotations=pipeline.metadata.annotations,
        labels=pipeline.metadata.labels,
        node=pipeline.node_name or None,
        node_selector=pipeline.node_selector,
        service_account=pipeline.service_account_name or None,
    )
    request = convert_resource(requests.cpu, requests.memory)
    if request is not None:
        spec.resources = v1.Resources(requests=request)
    if options.kube_enabled:
        spec.namespace = spec.namespace or options.kube_namespace
        spec.connector = options.kube_connector
    return v1.Runtime(spec=spec)


def convert_volumes(volumes: list[Volume]) -> list[v1.Volume] | None:
    result = []
    for volume in volumes:
        if not volume.name:
            continue
        if volume.temp is not None:
            spec = v1.VolumeTemp(
                medium=volume.temp.medium or None,
                limit=volume.temp.size_limit or None,
            )
        elif volume.host is not None:
            spec = v1.VolumeHost(path=volume.host.path or None)
        else:
            continue
        result.append(v1.Volume(name=volume.name, spec=spec))
    return result or None


def convert_mounts(mounts: list[VolumeMount]) -> list[v1.Mount] | None:
    result = [
        v1.Mount(name=mount.name, path=mount.path)
        for mount in mounts
        if mount.name and mount.path
    ]
    return result or None


def convert_variables(
    environment: dict[str, Variable], org_secrets: list[str]
) -> dict[str, str] | None:
    envs = {}
    for key, variable in environment.items():
        if variable.value:
            envs[sanitize(key)] = replace_vars(variable.value)
        elif variable.secret:
            envs[sanitize(key)] = secret_expression(variable.secret, org_secrets)
    return envs or None


def convert_settings(
    settings: dict[str, Parameter], org_secrets: list[str]
) -> dict[str, Any] | None:
    result = {}
    for key, parameter in settings.items():
        if parameter.secret:
            result[key] = secret_expression(parameter.secret, org_secrets)
        elif parameter.value is not None:
            result[key] = replace_vars_in(parameter.value)
    return result or None


def convert_script(commands: list[str]) -> str | None:
    if not commands:
        return None
    return "\n".join(replace_vars(command) for command in commands)


def convert_args(entrypoint: list[str], command: list[str]) -> list[str] | None:
    """The first entrypoint word is the entrypoint, the rest are arguments."""
    args = list(entrypoint[1:]) + list(command)
    return args or None


def convert_resources(resources: Resources) -> v1.Resources | None:
    limits = convert_resource(resources.limits.cpu, resources.limits.memory)
    if limits is None:
        return None
    return v1.Resources(limits=limits)


def convert_failure(step: Step) -> v1.Failure | None:
    if step.failure != "ignore":
        return None
    return v1.Failure(errors=["all"], action=v1.FailureAction(type="ignore"))


def _container_fields(step: Step, options: ConverterOptions) -> dict[str, Any]:
    return {
        "image": step.image or options.default_image or None,
        "mount": convert_mounts(step.volumes),
        "privileged": step.privileged or None,
        "pull": step.pull if step.pull in PULL_POLICIES else None,
        "user": step.user or None,
        "envs": convert_variables(step.environment, options.org_secrets),
        "resources": convert_resources(step.resources),
    }


def _command_fields(step: Step) -> dict[str, Any]:
    return {
        "shell": SHELLS.get(step.shell),
        "entrypoint": step.entrypoint[0] if step.entrypoint else None,
        "args": convert_args(step.entrypoint, step.command),
        "run": convert_script(step.commands),
    }


def convert_plugin(step: Step, options: ConverterOptions) -> v1.Step:
    spec = v1.StepPlugin(
        **_container_fields(step, options),
        with_=convert_settings(step.settings, options.org_secrets),
    )
    return v1.Step(
        name=step.name or None,
        when=convert_cond(step.when),
        failure=convert_failure(step),
        spec=spec,
    )


def convert_background(step: Step, options: ConverterOptions) -> v1.Step:
    spec = v1.StepBackground(
        **_container_fields(step, options),
        **_command_fields(step),
        network=step.network_mode or None,
    )
    return v1.Step(
        name=step.name or None,
        when=convert_cond(step.when),
        spec=spec,
    )


def convert_run(step: Step, options: ConverterOptions) -> v1.Step:
    spec = v1.StepExec(
        **_container_fields(step, options),
        **_command_fields(step),
        network=step.network_mode or None,
    )
    return v1.Step(
        name=step.name or None,
        when=convert_cond(step.when),
        failure=convert_failure(step),
        spec=spec,
    )


def is_plugin(step: Step) -> bool:
    return bool(step.settings)


def convert_stage(
    pipeline: Pipeline, options: ConverterOptions, steps: list[v1.Step]
) -> v1.Stage:
    return v1.Stage(
        name=pipeline.name or None,
        when=convert_cond(pipeline.trigger),
        delegate=convert_node(pipeline.node),
        spec=v1.StageCI(
            clone=convert_clone(pipeline),
            envs=dict(pipeline.environment) or None,
            platform=convert_platform(pipeline),
            runtime=convert_runtime(pipeline, options),
            steps=steps,
            volumes=convert_volumes(pipeline.volumes),
        ),
    )


def rewrite_output(text: str) -> str:
    """
    Rewrite Drone specific text in the serialized pipeline.

    Drone required double escaped backslashes, which are no longer needed,
    and the workspace moves from ``/drone/src`` to ``/harness``.
    """
    text = text.replace("\\" * 4, "\\" * 2)
    return text.replace("/drone/src", "/harness")


class DroneConverter(BaseConverter):
    """
    Converts ``.drone.yml`` streams to a unified pipeline.

    Every ``pipeline`` document becomes one stage. Services and detached
    steps run as background steps, steps with settings as plugins, and
    all other steps as scripts.
    """

    name = "drone"
    description = "Drone CI"
    supported_files = [".drone.yml"]

    def __init__(
        self,
        options: ConverterOptions | None = None,
        *,
        dockerhub_connector: str | None = None,
        kube_namespace: str | None = None,
        kube_connector: str | None = None,
        org_secrets: list[str] | None = None,
    ):
        super().__init__()
        self.options = build_options(
            options,
            dockerhub_connector=dockerhub_connector,
            kube_namespace=kube_namespace,
            kube_connector=kube_connector,
            org_secrets=org_secrets,
        )

    def get_parser(self) -> DroneParser:
        return DroneParser()

    def convert_document(self, document: list[Pipeline]) -> v1.Config:
        pipeline = v1.Pipeline(options=v1.Default(registry=convert_registry(document)))
        for source in document:
            if source.kind != KIND_PIPELINE:
                self._logger.debug(f"Skipping document of kind '{source.kind}'")
                continue
            steps = self._convert_steps(source)
            pipeline.stages.append(convert_stage(source, self.options, steps))
        return v1.Config(spec=pipeline)

    def _convert_steps(self, pipeline: Pipeline) -> list[v1.Step]:
        steps = [convert_background(s, self.options) for s in pipeline.services]
        for step in pipeline.steps:
            steps.append(self._select_builder(step)(step, self.options))
        return steps

    def _select_builder(
        self, step: Step
    ) -> Callable[[Step, ConverterOptions], v1.Step]:
        if step.detach:
            return convert_background
        if is_plugin(step):
            return convert_plugin
        return convert_run

    def postprocess(self, text: str) -> str:
        return rewrite_output(text)
