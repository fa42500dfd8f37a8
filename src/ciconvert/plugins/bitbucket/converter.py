"""Bitbucket Pipelines to unified pipeline converter."""

import logging
from typing import Any

from ...core.common.base_converter import BaseConverter
from ...core.common.base_parser import BaseDocumentParser
from ...core.durations import format_duration
from ...core.options import ConverterOptions
from ...harness import v1
from .context import BitbucketContext
from .extract import (
    extract_all_steps,
    extract_caches,
    extract_runs_on,
    extract_services,
    extract_size,
    extract_steps,
)
from .models import Clone, Config, Definitions, Script, Size
from .normalize import normalize

logger = logging.getLogger(__name__)

SIZE_CLASSES = {
    Size.X1: "standard",  # 4GB
    Size.X2: "large",  # 8GB
    Size.X4: "xlarge",  # 16GB
    Size.X8: "xxlarge",  # 32GB
}

# cache directories of the caches Bitbucket predefines
WELL_KNOWN_CACHES = {
    "composer": ["~/.composer/cache"],
    "dotnetcore": ["~/.nuget/packages"],
    "gradle": ["~/.gradle/caches"],
    "ivy2": ["~/.ivy2/cache"],
    "maven": ["~/.m2/repository"],
    "node": ["node_modules"],
    "pip": ["~/.cache/pip"],
    "sbt": ["~/.ivy2/cache"],
}

DOCKER_PORTS = ["2375", "2376"]


class BitbucketParser(BaseDocumentParser):
    provider = "bitbucket"

    def _decode(self, data: Any) -> Config:
        return Config.model_validate(data)


class BitbucketConverter(BaseConverter):
    """
    Converts a ``bitbucket-pipelines.yml`` document to a unified pipeline.

    The default pipeline is normalized so that every step belongs to a
    stage; each stage becomes one unified stage whose clone, size, cache,
    service and routing settings are aggregated from its steps.
    """

    name = "bitbucket"
    description = "Bitbucket Pipelines"
    supported_files = ["bitbucket-pipelines.yml"]

    def __init__(self, options: ConverterOptions | None = None):
        super().__init__()
        self.options = options or ConverterOptions()

    def get_parser(self) -> BitbucketParser:
        return BitbucketParser()

    def convert_document(self, document: Config) -> v1.Config:
        config = normalize(document)
        ctx = BitbucketContext(config=config, options=self.options)

        pipeline = v1.Pipeline(options=convert_default(config))
        for entry in config.pipelines.default:
            if entry.stage is None:
                continue
            pipeline.stages.append(self._convert_stage(ctx.for_stage(entry.stage)))

        self._logger.debug(f"Converted {len(pipeline.stages)} stage(s)")
        return v1.Config(spec=pipeline)

    def _convert_stage(self, ctx: BitbucketContext) -> v1.Stage:
        config, stage = ctx.config, ctx.stage
        spec = v1.StageCI(clone=convert_clone(extract_steps(stage)))

        size = extract_size(config.options, stage)
        if self.options.kube_enabled:
            spec.runtime = v1.Runtime(
                spec=v1.RuntimeKubernetes(
                    namespace=self.options.kube_namespace,
                    connector=self.options.kube_connector,
                )
            )
        elif size != Size.NONE:
            spec.runtime = v1.Runtime(spec=v1.RuntimeCloud(size=SIZE_CLASSES[size]))

        caches = extract_caches(stage)
        if caches:
            spec.cache = convert_cache(config.definitions, caches)

        services = extract_services(stage)
        if services:
            spec.steps.extend(self._convert_services(ctx, services))

        if config.options is not None and config.options.docker:
            spec.steps.append(
                v1.Step(
                    name=ctx.identifiers.generate("dind", "service"),
                    spec=v1.StepBackground(
                        image="docker:dind",
                        ports=list(DOCKER_PORTS),
                        network="host",
                        privileged=True,
                    ),
                )
            )

        for entry in stage.steps:
            if entry.parallel is not None:
                spec.steps.append(self._convert_parallel(ctx, entry.parallel.steps))
            if entry.step is not None:
                spec.steps.append(self._convert_step(ctx.for_step(entry.step)))

        # a stage made of a single group holds the group's steps directly
        if len(spec.steps) == 1 and isinstance(spec.steps[0].spec, v1.StepGroup):
            spec.steps = spec.steps[0].spec.steps

        result = v1.Stage(
            name=ctx.identifiers.generate(stage.name, "build"),
            spec=spec,
        )
        runs_on = extract_runs_on(stage)
        if runs_on:
            result.delegate = runs_on
        return result

    def _convert_services(
        self, ctx: BitbucketContext, services: list[str]
    ) -> list[v1.Step]:
        definitions = ctx.config.definitions
        if definitions is None:
            return []

        steps = []
        for name in services:
            service = definitions.services.get(name)
            if service is None or service.image is None:
                self._logger.debug(f"Skipping undefined service '{name}'")
                continue

            spec = v1.StepBackground(
                image=service.image.name,
                envs=service.variables or None,
                network="host",
            )
            if service.type == "docker":
                spec.privileged = True
                spec.ports = list(DOCKER_PORTS)
            if service.image.run_as_user:
                spec.user = str(service.image.run_as_user)
            if service.memory:
                # bitbucket measures memory in megabytes
                spec.resources = v1.Resources(
                    limits=v1.Resource(memory=service.memory * 1000000)
                )

            steps.append(
                v1.Step(name=ctx.identifiers.generate(name, "service"), spec=spec)
            )
        return steps

    def _convert_parallel(self, ctx: BitbucketContext, entries) -> v1.Step:
        spec = v1.StepParallel()
        for entry in entries:
            if entry.step is not None:
                spec.steps.append(self._convert_step(ctx.for_step(entry.step)))
        return v1.Step(
            name=ctx.identifiers.generate("parallel", "parallel"),
            spec=spec,
        )

    def _convert_step(self, ctx: BitbucketContext) -> v1.Step:
        """
        Convert a step into one unified step per script fragment.

        Consecutive command lines form one script fragment; every pipe is a
        fragment of its own. A single fragment is returned as-is, several
        are wrapped in a group.
        """
        step = ctx.step
        steps = [
            self._convert_fragment(ctx, fragment)
            for scripts in (step.script, step.after_script)
            for fragment in split_fragments(scripts)
        ]

        if len(steps) == 1:
            return steps[0]

        return v1.Step(
            name=ctx.identifiers.generate(step.name, "group"),
            spec=v1.StepGroup(steps=steps),
        )

    def _convert_fragment(
        self, ctx: BitbucketContext, fragment: Script | list[str]
    ) -> v1.Step:
        if isinstance(fragment, Script):
            return self._convert_pipe_step(ctx, fragment)
        return self._convert_script_step(ctx, "\n".join(fragment))

    def _convert_script_step(self, ctx: BitbucketContext, text: str) -> v1.Step:
        config, step = ctx.config, ctx.step
        spec = v1.StepExec(run=text)

        # the step image overrides the global image
        for image in (config.image, step.image):
            if image is None:
                continue
            spec.image = image.name.removeprefix("docker://")
            if image.run_as_user:
                spec.user = str(image.run_as_user)

        return v1.Step(
            name=ctx.identifiers.generate(step.name, "run"),
            timeout=step_timeout(config, step.max_time),
            spec=spec,
        )

    def _convert_pipe_step(self, ctx: BitbucketContext, script: Script) -> v1.Step:
        pipe = script.pipe
        spec = v1.StepPlugin(
            image=pipe.image.removeprefix("docker://"),
            with_=dict(pipe.variables or {}) or None,
        )
        return v1.Step(
            name=ctx.identifiers.generate(ctx.step.name, "plugin"),
            timeout=step_timeout(ctx.config, ctx.step.max_time),
            spec=spec,
        )


def split_fragments(scripts: list[Script]) -> list[Script | list[str]]:
    """Split script entries into runs of command lines and single pipes."""
    fragments: list[Script | list[str]] = []
    lines: list[str] = []
    for script in scripts:
        if script.pipe is None:
            lines.append(script.text)
            continue
        if lines:
            fragments.append(lines)
            lines = []
        fragments.append(script)
    if lines:
        fragments.append(lines)
    return fragments


def step_timeout(config: Config, max_time: int) -> str | None:
    """Timeout of a step in minutes, falling back to the global max-time."""
    minutes = max_time
    if not minutes and config.options is not None:
        minutes = config.options.max_time
    if not minutes:
        return None
    return format_duration(minutes * 60)


def convert_clone(steps) -> v1.Clone | None:
    """Aggregate step clone settings: deepest depth wins, insecure is OR'd."""
    clones = [step.clone for step in steps if step.clone is not None]
    if not clones:
        return None

    clone = v1.Clone()
    for src in clones:
        if src.depth is not None and src.depth.value > (clone.depth or 0):
            clone.depth = src.depth.value
        if src.skip_verify:
            clone.insecure = True
    return clone


def convert_clone_global(clone: Clone) -> v1.Clone:
    result = v1.Clone(insecure=clone.skip_verify or None)
    if clone.depth is not None and clone.depth.value:
        result.depth = clone.depth.value
    if clone.enabled is False:
        result.disabled = True
    return result


def convert_cache(definitions: Definitions | None, names: list[str]) -> v1.Cache | None:
    """Collect the paths of the named caches, user defined ones first."""
    paths: list[str] = []
    if definitions is not None:
        for name in names:
            cache = definitions.caches.get(name)
            if cache is not None and cache.path:
                paths.append(cache.path)
    for name in names:
        paths.extend(WELL_KNOWN_CACHES.get(name, []))

    paths = list(dict.fromkeys(paths))
    if not paths:
        return None
    return v1.Cache(enabled=True, paths=paths)


def convert_default(config: Config) -> v1.Default | None:
    """Pipeline-wide defaults from the global clone settings."""
    if config.clone is None:
        return None

    clone = convert_clone_global(config.clone)
    # a step that explicitly enables cloning keeps it enabled globally
    if clone.disabled:
        for step in extract_all_steps(config.pipelines.default):
            if step.clone is not None and step.clone.enabled:
                clone.disabled = None
                break
    return v1.Default(clone=clone)
