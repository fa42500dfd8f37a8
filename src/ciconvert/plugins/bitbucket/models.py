"""
Bitbucket Pipelines document model.

Several keys accept more than one shape (for example ``image`` is either an
image name or a mapping with credentials); these are ShortFormModel
subclasses that decode both shapes and encode back to the shortest one.
"""

from enum import IntEnum
from typing import Annotated, Any

from pydantic import BeforeValidator, Field, PlainSerializer, model_validator

from ...core.common.tolerant import DocumentModel, ShortFormModel, StringOrList


class Size(IntEnum):
    """Step machine size. Ordinals follow the amount of memory."""

    NONE = 0
    X1 = 1
    X2 = 2
    X4 = 3
    X8 = 4

    @classmethod
    def parse(cls, value: Any) -> "Size":
        """Decode a size label; unknown labels decode to NONE."""
        if isinstance(value, Size):
            return value
        return _SIZE_LABELS.get(str(value) if value is not None else "", cls.NONE)

    def label(self) -> str:
        return next((k for k, v in _SIZE_LABELS.items() if v == self), "")


_SIZE_LABELS = {"1x": Size.X1, "2x": Size.X2, "4x": Size.X4, "8x": Size.X8}

SizeField = Annotated[
    Size,
    BeforeValidator(Size.parse),
    PlainSerializer(lambda size: size.label() or None),
]


class AWS(DocumentModel):
    access_key: str | None = Field(default=None, alias="access-key")
    secret_key: str | None = Field(default=None, alias="secret-key")
    oidc_role: str | None = Field(default=None, alias="oidc-role")


class Image(ShortFormModel):
    """A container image: ``node:18`` or ``{name: node:18, username: ...}``."""

    primary_field = "name"

    name: str = Field(default="")
    username: str | None = Field(default=None)
    password: str | None = Field(default=None)
    email: str | None = Field(default=None)
    run_as_user: int | None = Field(default=None, alias="run-as-user")
    aws: AWS | None = Field(default=None)


class Depth(ShortFormModel):
    """Clone depth: a number of commits or ``full``."""

    primary_field = "value"

    full: bool = Field(default=False)
    value: int = Field(default=0)

    @classmethod
    def expand_short(cls, value: Any) -> dict[str, Any]:
        if value == "full":
            return {"full": True}
        if isinstance(value, int) and not isinstance(value, bool):
            return {"value": value}
        raise ValueError(f"cannot decode depth from {value!r}")

    def is_short(self) -> bool:
        return True

    def short_value(self) -> Any:
        if self.full:
            return "full"
        return self.value if self.value > 0 else None


class CacheKey(DocumentModel):
    files: list[str] = Field(default_factory=list)


class Cache(ShortFormModel):
    """A cache definition: a path or ``{key: {files: [...]}, path: ...}``."""

    primary_field = "path"

    path: str = Field(default="")
    key: CacheKey | None = Field(default=None)


class Artifacts(ShortFormModel):
    """
    Step artifacts.

    Accepts, in this order: a single path, a list of paths, or a mapping
    with ``download`` and ``paths``.
    """

    primary_field = "paths"

    download: bool | None = Field(default=None)
    paths: list[str] = Field(default_factory=list)

    @classmethod
    def expand_short(cls, value: Any) -> dict[str, Any]:
        if isinstance(value, str):
            return {"paths": [value]}
        if isinstance(value, list):
            return {"paths": value}
        raise ValueError(f"cannot decode artifacts from {type(value).__name__}")

    def short_value(self) -> Any:
        return self.paths or None


class Pipe(DocumentModel):
    name: str | None = Field(default=None)
    image: str = Field(default="", alias="pipe")
    variables: dict[str, Any] | None = Field(default=None)


class Script(ShortFormModel):
    """One script entry: a command line or a pipe invocation."""

    primary_field = "text"

    text: str = Field(default="")
    pipe: Pipe | None = Field(default=None)

    @model_validator(mode="before")
    @classmethod
    def _wrap_pipe(cls, data: Any) -> Any:
        if isinstance(data, dict) and "pipe" in data and not isinstance(
            data["pipe"], dict | Pipe
        ):
            return {"pipe": data}
        return data

    def is_short(self) -> bool:
        return self.pipe is None

    def short_value(self) -> Any:
        return self.text


class Clone(DocumentModel):
    depth: Depth | None = Field(default=None)
    enabled: bool | None = Field(default=None)
    lfs: bool = Field(default=False)
    skip_verify: bool = Field(default=False, alias="skip-ssl-verify")


class Changesets(DocumentModel):
    include_paths: list[str] | None = Field(default=None, alias="includePaths")


class Condition(DocumentModel):
    changesets: Changesets | None = Field(default=None)


class Service(DocumentModel):
    image: Image | None = Field(default=None)
    memory: int = Field(default=0, description="Memory in megabytes.")
    type: str | None = Field(default=None)
    variables: dict[str, str] | None = Field(default=None)


class Definitions(DocumentModel):
    caches: dict[str, Cache] = Field(default_factory=dict)
    services: dict[str, Service] = Field(default_factory=dict)


class Options(DocumentModel):
    docker: bool = Field(default=False)
    max_time: int = Field(default=0, alias="max-time")
    size: SizeField = Field(default=Size.NONE)


class Step(DocumentModel):
    artifacts: Artifacts | None = Field(default=None)
    caches: list[str] = Field(default_factory=list)
    clone: Clone | None = Field(default=None)
    condition: Condition | None = Field(default=None)
    deployment: str | None = Field(default=None)
    fail_fast: bool = Field(default=False, alias="fail-fast")
    image: Image | None = Field(default=None)
    max_time: int = Field(default=0, alias="max-time")
    name: str = Field(default="")
    oidc: bool = Field(default=False)
    runs_on: StringOrList = Field(default_factory=list, alias="runs-on")
    script: list[Script] = Field(default_factory=list)
    after_script: list[Script] = Field(default_factory=list, alias="after-script")
    services: list[str] = Field(default_factory=list)
    size: SizeField = Field(default=Size.NONE)
    trigger: str | None = Field(default=None)


class Parallel(DocumentModel):
    fail_fast: bool = Field(default=False, alias="fail-fast")
    steps: list["Steps"] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _accept_list(cls, data: Any) -> Any:
        # a parallel block may be written directly as a list of steps
        if isinstance(data, list):
            return {"steps": data}
        return data


class Stage(DocumentModel):
    condition: Condition | None = Field(default=None)
    deployment: str | None = Field(default=None)
    name: str = Field(default="")
    steps: list["Steps"] = Field(default_factory=list)
    trigger: str | None = Field(default=None)


class Steps(DocumentModel):
    """An entry of a step list; exactly one member is set."""

    step: Step | None = Field(default=None)
    stage: Stage | None = Field(default=None)
    parallel: Parallel | None = Field(default=None)


class Pipelines(DocumentModel):
    default: list[Steps] = Field(default_factory=list)
    branches: dict[str, list[Steps]] | None = Field(default=None)
    pull_requests: dict[str, list[Steps]] | None = Field(
        default=None, alias="pull-requests"
    )
    tags: dict[str, list[Steps]] | None = Field(default=None)
    custom: dict[str, list[Steps]] | None = Field(default=None)


class Config(DocumentModel):
    """Root of a ``bitbucket-pipelines.yml`` document."""

    clone: Clone | None = Field(default=None)
    definitions: Definitions | None = Field(default=None)
    image: Image | None = Field(default=None)
    options: Options | None = Field(default=None)
    pipelines: Pipelines = Field(default_factory=Pipelines)


Parallel.model_rebuild()
Stage.model_rebuild()
