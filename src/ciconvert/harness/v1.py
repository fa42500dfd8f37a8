"""
Unified (harness v1) pipeline tree.

Every provider converter populates this tree and the downgrader reads it.
Step, runtime and volume specs form closed variant sets: each variant class
declares its ``kind`` and the owning node derives its ``type`` key from the
variant, so the type never has to be re-derived from optional fields.
"""

from typing import Any, ClassVar, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class HarnessModel(BaseModel):
    """Base class for unified pipeline nodes."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # emit {} instead of omitting the node when every field is empty
    preserve_empty: ClassVar[bool] = False


class SpecVariant(HarnessModel):
    """Base class for the members of a closed spec variant set."""

    kind: ClassVar[str] = ""


def _select_variant(
    data: Any, variants: dict[str, type[SpecVariant]], owner: str
) -> Any:
    """Decode a plain ``spec`` mapping into the variant named by ``type``."""
    if not isinstance(data, dict):
        return data
    spec = data.get("spec")
    if spec is None or isinstance(spec, SpecVariant):
        return data
    kind = data.get("type")
    variant = variants.get(kind)
    if variant is None:
        raise ValueError(f"unknown {owner} type: {kind!r}")
    return {**data, "spec": variant.model_validate(spec)}


def _derive_type(node: Any, owner: str) -> None:
    if node.spec is None:
        return
    if node.type and node.type != node.spec.kind:
        raise ValueError(
            f"{owner} type {node.type!r} does not match spec {node.spec.kind!r}"
        )
    node.type = node.spec.kind


# -- shared leaves -----------------------------------------------------------


class Expr(HarnessModel):
    """A condition expression: equality, membership or a negation."""

    eq: str | None = Field(default=None)
    in_: list[str] | None = Field(default=None, alias="in")
    not_: "Expr | None" = Field(default=None, alias="not")


class When(HarnessModel):
    cond: list[dict[str, Expr]] | None = Field(
        default=None,
        description="Condition blocks; keys within a block are AND'd.",
    )
    eval: str | None = Field(
        default=None, description="Free-form expression evaluated at runtime."
    )


class Matrix(HarnessModel):
    axis: dict[str, list[str]] | None = Field(default=None)
    include: list[dict[str, str]] | None = Field(default=None)
    exclude: list[dict[str, str]] | None = Field(default=None)
    concurrency: int | None = Field(default=None)


class Strategy(HarnessModel):
    type: str = Field(default="matrix")
    spec: Matrix | None = Field(default=None)


class FailureAction(HarnessModel):
    type: str = Field(description="Action type: ignore, retry, fail or abort.")
    spec: dict[str, Any] | None = Field(default=None)


class Failure(HarnessModel):
    errors: list[str] | None = Field(default=None)
    action: FailureAction | None = Field(default=None)


class Clone(HarnessModel):
    disabled: bool | None = Field(default=None)
    depth: int | None = Field(default=None)
    insecure: bool | None = Field(default=None)
    trace: bool | None = Field(default=None)


class Platform(HarnessModel):
    os: str | None = Field(default=None)
    arch: str | None = Field(default=None)


class Cache(HarnessModel):
    enabled: bool | None = Field(default=None)
    key: str | None = Field(default=None)
    paths: list[str] | None = Field(default=None)
    policy: str | None = Field(default=None)


class Resource(HarnessModel):
    cpu: str | int | None = Field(default=None)
    memory: str | int | None = Field(default=None)


class Resources(HarnessModel):
    limits: Resource | None = Field(default=None)
    requests: Resource | None = Field(default=None)


class Mount(HarnessModel):
    name: str | None = Field(default=None)
    path: str


class Report(HarnessModel):
    type: str = Field(default="junit")
    path: list[str] | None = Field(default=None)


class Output(HarnessModel):
    name: str
    value: str | None = Field(default=None)


# -- volumes -----------------------------------------------------------------


class VolumeTemp(SpecVariant):
    kind: ClassVar[str] = "temp"
    preserve_empty: ClassVar[bool] = True

    medium: str | None = Field(default=None)
    limit: str | int | None = Field(default=None)


class VolumeHost(SpecVariant):
    kind: ClassVar[str] = "host"

    path: str | None = Field(default=None)


VOLUME_TYPES: dict[str, type[SpecVariant]] = {
    cls.kind: cls for cls in (VolumeTemp, VolumeHost)
}


class Volume(HarnessModel):
    name: str
    type: str | None = Field(default=None)
    spec: Union[VolumeTemp, VolumeHost, None] = Field(default=None)

    @model_validator(mode="before")
    @classmethod
    def _decode_spec(cls, data: Any) -> Any:
        return _select_variant(data, VOLUME_TYPES, "volume")

    @model_validator(mode="after")
    def _set_type(self) -> "Volume":
        _derive_type(self, "volume")
        return self


# -- runtimes ----------------------------------------------------------------


class RuntimeCloud(SpecVariant):
    kind: ClassVar[str] = "cloud"
    preserve_empty: ClassVar[bool] = True

    size: str | None = Field(default=None)
    image: str | None = Field(default=None)


class RuntimeKubernetes(SpecVariant):
    kind: ClassVar[str] = "kubernetes"

    namespace: str | None = Field(default=None)
    connector: str | None = Field(default=None)
    annotations: dict[str, str] | None = Field(default=None)
    labels: dict[str, str] | None = Field(default=None)
    node: str | None = Field(default=None)
    node_selector: dict[str, str] | None = Field(default=None, alias="node-selector")
    service_account: str | None = Field(default=None, alias="service-account")
    resources: Resources | None = Field(default=None)


class RuntimeMachine(SpecVariant):
    kind: ClassVar[str] = "machine"
    preserve_empty: ClassVar[bool] = True


RUNTIME_TYPES: dict[str, type[SpecVariant]] = {
    cls.kind: cls for cls in (RuntimeCloud, RuntimeKubernetes, RuntimeMachine)
}


class Runtime(HarnessModel):
    type: str | None = Field(default=None)
    spec: Union[RuntimeCloud, RuntimeKubernetes, RuntimeMachine, None] = Field(
        default=None
    )

    @model_validator(mode="before")
    @classmethod
    def _decode_spec(cls, data: Any) -> Any:
        return _select_variant(data, RUNTIME_TYPES, "runtime")

    @model_validator(mode="after")
    def _set_type(self) -> "Runtime":
        _derive_type(self, "runtime")
        return self


# -- steps -------------------------------------------------------------------


class StepExec(SpecVariant):
    """Runs a shell script, optionally inside a container image."""

    kind: ClassVar[str] = "script"

    image: str | None = Field(default=None)
    connector: str | None = Field(default=None)
    pull: str | None = Field(default=None)
    privileged: bool | None = Field(default=None)
    user: str | None = Field(default=None)
    network: str | None = Field(default=None)
    entrypoint: str | None = Field(default=None)
    args: list[str] | None = Field(default=None)
    run: str | None = Field(default=None)
    shell: str | None = Field(default=None)
    envs: dict[str, str] | None = Field(default=None)
    resources: Resources | None = Field(default=None)
    reports: list[Report] | None = Field(default=None)
    outputs: list[Output] | None = Field(default=None)
    mount: list[Mount] | None = Field(default=None)


class StepPlugin(SpecVariant):
    """Runs a plugin image configured through ``with`` settings."""

    kind: ClassVar[str] = "plugin"

    image: str | None = Field(default=None)
    uses: str | None = Field(default=None)
    connector: str | None = Field(default=None)
    pull: str | None = Field(default=None)
    privileged: bool | None = Field(default=None)
    user: str | None = Field(default=None)
    with_: dict[str, Any] | None = Field(default=None, alias="with")
    envs: dict[str, str] | None = Field(default=None)
    resources: Resources | None = Field(default=None)
    reports: list[Report] | None = Field(default=None)
    mount: list[Mount] | None = Field(default=None)


class StepBackground(SpecVariant):
    """Runs a service container for the remainder of the stage."""

    kind: ClassVar[str] = "background"

    image: str | None = Field(default=None)
    connector: str | None = Field(default=None)
    pull: str | None = Field(default=None)
    privileged: bool | None = Field(default=None)
    user: str | None = Field(default=None)
    network: str | None = Field(default=None)
    entrypoint: str | None = Field(default=None)
    args: list[str] | None = Field(default=None)
    run: str | None = Field(default=None)
    shell: str | None = Field(default=None)
    envs: dict[str, str] | None = Field(default=None)
    ports: list[str] | None = Field(default=None)
    resources: Resources | None = Field(default=None)
    mount: list[Mount] | None = Field(default=None)


class StepAction(SpecVariant):
    kind: ClassVar[str] = "action"

    uses: str | None = Field(default=None)
    with_: dict[str, Any] | None = Field(default=None, alias="with")
    envs: dict[str, str] | None = Field(default=None)


class StepBitrise(SpecVariant):
    kind: ClassVar[str] = "bitrise"

    uses: str | None = Field(default=None)
    with_: dict[str, Any] | None = Field(default=None, alias="with")
    envs: dict[str, str] | None = Field(default=None)


class StepGroup(SpecVariant):
    """Runs child steps sequentially as one unit."""

    kind: ClassVar[str] = "group"

    steps: list["Step"] = Field(default_factory=list)


class StepParallel(SpecVariant):
    """Runs child steps concurrently."""

    kind: ClassVar[str] = "parallel"

    steps: list["Step"] = Field(default_factory=list)


STEP_TYPES: dict[str, type[SpecVariant]] = {
    cls.kind: cls
    for cls in (
        StepExec,
        StepPlugin,
        StepBackground,
        StepAction,
        StepBitrise,
        StepGroup,
        StepParallel,
    )
}

StepSpec = Union[
    StepExec,
    StepPlugin,
    StepBackground,
    StepAction,
    StepBitrise,
    StepGroup,
    StepParallel,
]


class Step(HarnessModel):
    """
    An executable unit of a stage.

    ``type`` always mirrors the spec variant; when decoding, the ``type`` key
    selects which variant the ``spec`` mapping is decoded into.
    """

    id: str | None = Field(default=None)
    name: str | None = Field(default=None)
    desc: str | None = Field(default=None)
    type: str | None = Field(default=None)
    timeout: str | None = Field(default=None)
    strategy: Strategy | None = Field(default=None)
    when: When | None = Field(default=None)
    failure: Failure | None = Field(default=None)
    spec: StepSpec | None = Field(default=None)

    @model_validator(mode="before")
    @classmethod
    def _decode_spec(cls, data: Any) -> Any:
        return _select_variant(data, STEP_TYPES, "step")

    @model_validator(mode="after")
    def _set_type(self) -> "Step":
        _derive_type(self, "step")
        return self


# -- stages and pipeline -----------------------------------------------------


class StageCI(HarnessModel):
    cache: Cache | None = Field(default=None)
    clone: Clone | None = Field(default=None)
    envs: dict[str, str] | None = Field(default=None)
    platform: Platform | None = Field(default=None)
    runtime: Runtime | None = Field(default=None)
    steps: list[Step] = Field(default_factory=list)
    volumes: list[Volume] | None = Field(default=None)


class Stage(HarnessModel):
    id: str | None = Field(default=None)
    name: str | None = Field(default=None)
    desc: str | None = Field(default=None)
    type: str = Field(default="ci")
    delegate: list[str] | None = Field(
        default=None, description="Worker routing tags, sorted and unique."
    )
    strategy: Strategy | None = Field(default=None)
    when: When | None = Field(default=None)
    failure: Failure | None = Field(default=None)
    spec: StageCI = Field(default_factory=StageCI)


class RegistryConnector(HarnessModel):
    name: str
    match: str | None = Field(default=None)


class Registry(HarnessModel):
    connector: list[RegistryConnector] | None = Field(default=None)


class Default(HarnessModel):
    """Pipeline-wide defaults inherited by every stage."""

    clone: Clone | None = Field(default=None)
    envs: dict[str, str] | None = Field(default=None)
    registry: Registry | None = Field(default=None)
    timeout: str | None = Field(default=None)


class Pipeline(HarnessModel):
    name: str | None = Field(default=None)
    options: Default | None = Field(default=None)
    stages: list[Stage] = Field(default_factory=list)


class Config(HarnessModel):
    """Root of a unified pipeline document."""

    version: int = Field(default=1)
    kind: str = Field(default="pipeline")
    type: str | None = Field(
        default=None, description="Comma separated pipeline tags."
    )
    name: str | None = Field(default=None)
    spec: Pipeline = Field(default_factory=Pipeline)


Expr.model_rebuild()
StepGroup.model_rebuild()
StepParallel.model_rebuild()
Step.model_rebuild()


def iter_steps(steps: list[Step]):
    """Yield every step, descending into groups and parallel blocks."""
    for step in steps:
        yield step
        if isinstance(step.spec, StepGroup | StepParallel):
            yield from iter_steps(step.spec.steps)
