"""
Drone (.drone.yml) document model.

A Drone file is a stream of YAML documents; only documents of kind
``pipeline`` describe builds; ``secret`` and ``signature`` documents are
decoded and ignored by the converters.
"""

import re
from typing import Annotated, Any

from pydantic import BeforeValidator, Field, model_validator

from ...core.common.tolerant import (
    DocumentModel,
    ScalarString,
    ShortFormModel,
    StringOrList,
)

KIND_PIPELINE = "pipeline"
KIND_SECRET = "secret"
KIND_SIGNATURE = "signature"

_BYTES_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([kmgtp]?)(i?b?)\s*$", re.IGNORECASE)
_BYTES_UNITS = {"": 0, "k": 1, "m": 2, "g": 3, "t": 4, "p": 5}


def parse_bytes_size(value: Any) -> int:
    """
    Decode a memory size: an integer number of bytes or a string with a
    binary unit suffix such as ``512MB`` or ``1g``.

    Raises:
        ValueError: If the value is neither shape
    """
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValueError("cannot decode a byte size from a boolean")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    match = _BYTES_PATTERN.match(str(value))
    if not match:
        raise ValueError(f"invalid byte size: {value!r}")
    number, unit, _ = match.groups()
    return int(float(number) * 1024 ** _BYTES_UNITS[unit.lower()])


BytesSize = Annotated[int, BeforeValidator(parse_bytes_size)]


class Condition(ShortFormModel):
    """A trigger filter: a value, a list of values, or include/exclude lists."""

    primary_field = "include"

    include: StringOrList = Field(default_factory=list)
    exclude: StringOrList = Field(default_factory=list)

    @classmethod
    def expand_short(cls, value: Any) -> dict[str, Any]:
        if isinstance(value, str):
            return {"include": [value]}
        if isinstance(value, list):
            return {"include": value}
        raise ValueError(f"cannot decode condition from {type(value).__name__}")

    def is_empty(self) -> bool:
        return not self.include and not self.exclude


class Conditions(DocumentModel):
    action: Condition = Field(default_factory=Condition)
    branch: Condition = Field(default_factory=Condition)
    cron: Condition = Field(default_factory=Condition)
    event: Condition = Field(default_factory=Condition)
    instance: Condition = Field(default_factory=Condition)
    paths: Condition = Field(default_factory=Condition)
    ref: Condition = Field(default_factory=Condition)
    repo: Condition = Field(default_factory=Condition)
    status: Condition = Field(default_factory=Condition)
    target: Condition = Field(default_factory=Condition)

    def is_empty(self) -> bool:
        return all(
            getattr(self, name).is_empty() for name in type(self).model_fields
        )


class Variable(ShortFormModel):
    """An environment value: a literal or ``{from_secret: name}``."""

    primary_field = "value"
    scalar_types = (str, int, float, bool)

    value: ScalarString = Field(default="")
    secret: str = Field(default="", alias="from_secret")


class Parameter(DocumentModel):
    """A plugin setting: any YAML value or ``{from_secret: name}``."""

    value: Any = Field(default=None)
    secret: str = Field(default="", alias="from_secret")

    @model_validator(mode="before")
    @classmethod
    def _expand_value(cls, data: Any) -> Any:
        if isinstance(data, dict) and set(data) == {"from_secret"}:
            return data
        if isinstance(data, Parameter):
            return data
        return {"value": data}


class Resource(DocumentModel):
    cpu: int = Field(default=0)
    memory: BytesSize = Field(default=0)


class Resources(DocumentModel):
    limits: Resource = Field(default_factory=Resource)
    requests: Resource = Field(default_factory=Resource)


class Clone(DocumentModel):
    disable: bool = Field(default=False)
    depth: int = Field(default=0)
    retries: int = Field(default=0)
    skip_verify: bool = Field(default=False)
    trace: bool = Field(default=False)


class Concurrency(DocumentModel):
    limit: int = Field(default=0)


class Platform(DocumentModel):
    os: str = Field(default="")
    arch: str = Field(default="")
    variant: str = Field(default="")
    version: str = Field(default="")


class Workspace(DocumentModel):
    base: str = Field(default="")
    path: str = Field(default="")


class Metadata(DocumentModel):
    namespace: str = Field(default="")
    annotations: dict[str, str] | None = Field(default=None)
    labels: dict[str, str] | None = Field(default=None)


class VolumeMount(DocumentModel):
    name: str = Field(default="")
    path: str = Field(default="")


class VolumeEmptyDir(DocumentModel):
    medium: str = Field(default="")
    size_limit: BytesSize = Field(default=0)


class VolumeHostPath(DocumentModel):
    path: str = Field(default="")


class Volume(DocumentModel):
    name: str = Field(default="")
    temp: VolumeEmptyDir | None = Field(default=None)
    host: VolumeHostPath | None = Field(default=None)


class Step(DocumentModel):
    name: str = Field(default="")
    image: str = Field(default="")
    command: StringOrList = Field(default_factory=list)
    commands: list[ScalarString] = Field(default_factory=list)
    detach: bool = Field(default=False)
    depends_on: StringOrList = Field(default_factory=list)
    entrypoint: StringOrList = Field(default_factory=list)
    environment: dict[str, Variable] = Field(default_factory=dict)
    failure: str = Field(default="")
    network_mode: str = Field(default="")
    privileged: bool = Field(default=False)
    pull: str = Field(default="")
    resources: Resources = Field(default_factory=Resources)
    settings: dict[str, Parameter] = Field(default_factory=dict)
    shell: str = Field(default="")
    user: ScalarString = Field(default="")
    volumes: list[VolumeMount] = Field(default_factory=list)
    when: Conditions = Field(default_factory=Conditions)
    working_dir: str = Field(default="")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # a key without a value decodes to None; treat it as absent
        if not isinstance(data, dict):
            return data
        data = {k: v for k, v in data.items() if v is not None}
        if isinstance(data.get("environment"), dict):
            env = {k: v for k, v in data["environment"].items() if v is not None}
            data["environment"] = env
        return data


class Pipeline(DocumentModel):
    """One document of a Drone stream."""

    version: str = Field(default="")
    kind: str = Field(default="")
    type: str = Field(default="")
    name: str = Field(default="")
    depends_on: StringOrList = Field(default_factory=list)
    node: dict[str, ScalarString] = Field(default_factory=dict)
    concurrency: Concurrency = Field(default_factory=Concurrency)
    platform: Platform = Field(default_factory=Platform)
    clone: Clone = Field(default_factory=Clone)
    trigger: Conditions = Field(default_factory=Conditions)
    environment: dict[str, ScalarString] = Field(default_factory=dict)
    services: list[Step] = Field(default_factory=list)
    steps: list[Step] = Field(default_factory=list)
    volumes: list[Volume] = Field(default_factory=list)
    image_pull_secrets: list[str] = Field(default_factory=list)
    workspace: Workspace = Field(default_factory=Workspace)

    # kubernetes runner
    metadata: Metadata = Field(default_factory=Metadata)
    node_name: str = Field(default="")
    node_selector: dict[str, str] | None = Field(default=None)
    service_account_name: str = Field(default="")
    resources: Resources = Field(default_factory=Resources)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # ``steps:`` with no entries and similar empty keys
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data
