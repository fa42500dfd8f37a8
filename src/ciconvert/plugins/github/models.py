"""GitHub Actions workflow document model."""

from typing import Any

from pydantic import Field, model_validator

from ...core.common.tolerant import (
    DocumentModel,
    ScalarString,
    ShortFormModel,
    StringOrList,
)
from .on import On


class Credentials(DocumentModel):
    username: str = Field(default="")
    password: str = Field(default="")


class Concurrency(ShortFormModel):
    """A concurrency group name or ``{group, cancel-in-progress}``."""

    primary_field = "group"

    group: str = Field(default="")
    cancel_in_progress: bool = Field(default=False, alias="cancel-in-progress")


class Container(ShortFormModel):
    """A job container: an image name or the full container definition."""

    primary_field = "image"

    image: str = Field(default="")
    env: dict[str, ScalarString] | None = Field(default=None)
    ports: list[ScalarString] = Field(default_factory=list)
    volumes: list[str] = Field(default_factory=list)
    options: str = Field(default="")
    credentials: Credentials | None = Field(default=None)


class Environment(ShortFormModel):
    """A deployment environment name or ``{name, url}``."""

    primary_field = "name"

    name: str = Field(default="")
    url: str = Field(default="")


_PERMISSION_SCOPES = (
    "actions",
    "checks",
    "contents",
    "deployments",
    "id-token",
    "issues",
    "discussions",
    "packages",
    "pages",
    "pull-requests",
    "repository-projects",
    "security-events",
    "statuses",
)


class Permissions(DocumentModel):
    """Token permissions: ``read-all``, ``write-all`` or a scope mapping."""

    read_all: bool = Field(default=False)
    write_all: bool = Field(default=False)
    scopes: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _expand(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {
                "read_all": data == "read-all",
                "write_all": data == "write-all",
            }
        if isinstance(data, dict) and not {"read_all", "write_all", "scopes"} & set(data):
            return {
                "scopes": {k: str(v) for k, v in data.items() if k in _PERMISSION_SCOPES}
            }
        if isinstance(data, dict | Permissions):
            return data
        raise ValueError(f"cannot decode permissions from {type(data).__name__}")

    def encode(self) -> Any:
        if self.read_all:
            return "read-all"
        if self.write_all:
            return "write-all"
        return dict(self.scopes)


class Run(DocumentModel):
    shell: str = Field(default="")
    working_directory: str = Field(default="", alias="working-directory")


class Defaults(DocumentModel):
    run: Run | None = Field(default=None)


class Matrix(DocumentModel):
    """Matrix axes written inline next to the include and exclude lists."""

    axis: dict[str, list[ScalarString]] = Field(default_factory=dict)
    include: list[dict[str, Any]] = Field(default_factory=list)
    exclude: list[dict[str, Any]] = Field(default_factory=list)
    expression: str = Field(
        default="", description="A matrix computed by an expression."
    )

    @model_validator(mode="before")
    @classmethod
    def _collect_axes(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"expression": data}
        if not isinstance(data, dict) or "axis" in data:
            return data
        result: dict[str, Any] = {"axis": {}}
        for key, value in data.items():
            if key in ("include", "exclude"):
                result[key] = value or []
            elif isinstance(value, list):
                result["axis"][key] = value
        return result


class Strategy(DocumentModel):
    matrix: Matrix | None = Field(default=None)
    fail_fast: bool = Field(default=True, alias="fail-fast")
    max_parallel: int = Field(default=0, alias="max-parallel")


class Service(DocumentModel):
    image: str = Field(default="")
    env: dict[str, ScalarString] | None = Field(default=None)
    networks: list[str] = Field(default_factory=list)
    options: StringOrList = Field(default_factory=list)
    ports: list[ScalarString] = Field(default_factory=list)
    volumes: list[str] = Field(default_factory=list)
    credentials: Credentials | None = Field(default=None)


class Secrets(ShortFormModel):
    """Secrets passed to a reusable workflow: ``inherit`` or a mapping."""

    primary_field = "inherit"

    inherit: bool = Field(default=False)
    values: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def expand_short(cls, value: Any) -> dict[str, Any]:
        if value == "inherit":
            return {"inherit": True}
        raise ValueError(f"cannot decode secrets from {value!r}")

    @model_validator(mode="before")
    @classmethod
    def _wrap_values(cls, data: Any) -> Any:
        if isinstance(data, dict) and not {"inherit", "values"} & set(data):
            return {"values": data}
        return data

    def short_value(self) -> Any:
        return "inherit" if self.inherit else None


class Step(DocumentModel):
    id: str = Field(default="")
    name: str = Field(default="")
    uses: str = Field(default="")
    run: str = Field(default="")
    shell: str = Field(default="")
    working_directory: str = Field(default="", alias="working-directory")
    env: dict[str, ScalarString] | None = Field(default=None)
    if_: str = Field(default="", alias="if")
    with_: dict[str, Any] | None = Field(default=None, alias="with")
    continue_on_error: bool = Field(default=False, alias="continue-on-error")
    timeout_minutes: int = Field(default=0, alias="timeout-minutes")


class Job(DocumentModel):
    name: str = Field(default="")
    concurrency: Concurrency | None = Field(default=None)
    container: Container | None = Field(default=None)
    continue_on_error: bool = Field(default=False, alias="continue-on-error")
    defaults: Defaults | None = Field(default=None)
    env: dict[str, ScalarString] | None = Field(default=None)
    environment: Environment | None = Field(default=None)
    if_: str = Field(default="", alias="if")
    needs: StringOrList = Field(default_factory=list)
    outputs: dict[str, str] | None = Field(default=None)
    permissions: Permissions | None = Field(default=None)
    runs_on: StringOrList = Field(default_factory=list, alias="runs-on")
    secrets: Secrets | None = Field(default=None)
    services: dict[str, Service | None] = Field(default_factory=dict)
    steps: list[Step] = Field(default_factory=list)
    strategy: Strategy | None = Field(default=None)
    timeout_minutes: int = Field(default=0, alias="timeout-minutes")
    uses: str = Field(default="")
    with_: dict[str, Any] | None = Field(default=None, alias="with")


class Pipeline(DocumentModel):
    """Root of a workflow file."""

    name: str = Field(default="")
    run_name: str = Field(default="", alias="run-name")
    on: On | None = Field(default=None)
    concurrency: Concurrency | None = Field(default=None)
    defaults: Defaults | None = Field(default=None)
    env: dict[str, ScalarString] | None = Field(default=None)
    permissions: Permissions | None = Field(default=None)
    jobs: dict[str, Job | None] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _trigger_key(cls, data: Any) -> Any:
        # YAML 1.1 loaders read the bare ``on`` key as boolean true
        if isinstance(data, dict) and True in data and "on" not in data:
            data = {("on" if key is True else key): value for key, value in data.items()}
        return data
