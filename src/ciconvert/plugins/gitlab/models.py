"""
GitLab CI document model.

A ``.gitlab-ci.yml`` mixes global keywords, a ``default`` section, hidden
template jobs (keys starting with a dot) and jobs in one mapping.
``Pipeline.from_document`` sorts the top-level keys into those groups;
global keywords that GitLab treats as job defaults are folded into
``Pipeline.default``.
"""

import logging
from typing import Annotated, Any, ClassVar

from pydantic import BeforeValidator, Field, field_validator, model_validator

from ...core.common.tolerant import (
    DocumentModel,
    ScalarString,
    ShortFormModel,
    StringOrList,
)

logger = logging.getLogger(__name__)


def _one_or_many(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


# -- tolerant leaves ---------------------------------------------------------


class Image(ShortFormModel):
    """A container image name or ``{name, entrypoint, pull_policy, ...}``."""

    primary_field = "name"

    name: str = Field(default="")
    alias: str = Field(default="")
    entrypoint: StringOrList = Field(default_factory=list)
    command: StringOrList = Field(default_factory=list)
    pull_policy: StringOrList = Field(default_factory=list)


class CacheKey(ShortFormModel):
    """A literal cache key or a key computed from ``{files, prefix}``."""

    primary_field = "value"
    scalar_types = (str, int)

    value: ScalarString = Field(default="")
    files: StringOrList = Field(default_factory=list)
    prefix: str = Field(default="")


class Cache(DocumentModel):
    paths: StringOrList = Field(default_factory=list)
    key: CacheKey | None = Field(default=None)
    untracked: bool = Field(default=False)
    unprotect: bool = Field(default=False)
    when: str = Field(default="", description="on_success, on_failure or always")
    policy: str = Field(default="", description="pull, push or pull-push")
    fallback_keys: StringOrList = Field(default_factory=list)


class AllowFailure(ShortFormModel):
    """``true``/``false``, or ``{exit_codes: N | [N, ...]}`` which implies true."""

    primary_field = "value"
    scalar_types = (bool,)

    value: bool = Field(default=False)
    exit_codes: list[int] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _exit_codes_allow(cls, data: Any) -> Any:
        if isinstance(data, dict) and "value" not in data:
            return {"value": True, "exit_codes": _one_or_many(data.get("exit_codes"))}
        return data


class Artifacts(DocumentModel):
    paths: StringOrList = Field(default_factory=list)
    exclude: StringOrList = Field(default_factory=list)
    expire_in: str = Field(default="")
    expose_as: str = Field(default="")
    name: str = Field(default="")
    public: bool | None = Field(default=None)
    reports: dict[str, Any] | None = Field(default=None)
    untracked: bool = Field(default=False)
    when: str = Field(default="")


class Kubernetes(DocumentModel):
    namespace: str = Field(default="")


class Environment(ShortFormModel):
    primary_field = "name"

    name: str = Field(default="")
    url: str = Field(default="")
    on_stop: str = Field(default="")
    action: str = Field(default="")
    auto_stop_in: str = Field(default="")
    deployment_tier: str = Field(default="")
    kubernetes: Kubernetes | None = Field(default=None)


class Include(ShortFormModel):
    """An included file; a bare string is a local path."""

    primary_field = "local"

    local: str = Field(default="")
    project: str = Field(default="")
    ref: str = Field(default="")
    remote: str = Field(default="")
    template: str = Field(default="")
    file: StringOrList = Field(default_factory=list)


class InheritKeys(ShortFormModel):
    """``true``/``false`` to inherit everything or nothing, or a list of keys."""

    primary_field = "enabled"
    scalar_types = (bool,)

    enabled: bool = Field(default=True)
    keys: list[str] = Field(default_factory=list)

    @classmethod
    def expand_short(cls, value: Any) -> dict[str, Any]:
        if isinstance(value, list):
            return {"keys": [str(key) for key in value]}
        return super().expand_short(value)

    def inherits(self, key: str) -> bool:
        if not self.enabled:
            return False
        return not self.keys or key in self.keys


class Inherit(DocumentModel):
    default: InheritKeys | None = Field(default=None)
    variables: InheritKeys | None = Field(default=None)


class Need(ShortFormModel):
    primary_field = "job"

    job: str = Field(default="")
    ref: str = Field(default="")
    project: str = Field(default="")
    pipeline: str = Field(default="")
    artifacts: bool = Field(default=False)
    optional: bool = Field(default=False)


Needs = Annotated[list[Need], BeforeValidator(_one_or_many)]
"""One need or a list of needs."""

MatrixAxis = Annotated[list[ScalarString], BeforeValidator(_one_or_many)]


class Parallel(ShortFormModel):
    """A job count, or ``{matrix: [{AXIS: value | [values]}, ...]}``."""

    primary_field = "count"
    scalar_types = (int,)

    count: int = Field(default=0)
    matrix: list[dict[str, MatrixAxis]] = Field(default_factory=list)


RETRY_WHEN = (
    "always",
    "unknown_failure",
    "script_failure",
    "api_failure",
    "stuck_or_timeout_failure",
    "runner_system_failure",
    "runner_unsupported",
    "stale_schedule",
    "job_execution_timeout",
    "archived_failure",
    "scheduler_failure",
    "data_integrity_failure",
)


class Retry(ShortFormModel):
    """A retry count or ``{max, when}``."""

    primary_field = "max"
    scalar_types = (int,)

    max: int = Field(default=0)
    when: StringOrList = Field(default_factory=list)


class Change(ShortFormModel):
    """Changed paths: a path, a list of paths or ``{paths, compare_to}``."""

    primary_field = "paths"

    paths: list[str] = Field(default_factory=list)
    compare_to: str = Field(default="")

    @classmethod
    def expand_short(cls, value: Any) -> dict[str, Any]:
        if isinstance(value, str):
            return {"paths": [value]}
        if isinstance(value, list):
            return {"paths": value}
        raise ValueError(f"cannot decode changes from {type(value).__name__}")


class Rule(DocumentModel):
    if_: str = Field(default="", alias="if")
    changes: Change | None = Field(default=None)
    exists: StringOrList = Field(default_factory=list)
    allow_failure: bool = Field(default=False)
    variables: dict[str, ScalarString] | None = Field(default=None)
    when: str = Field(default="")
    needs: StringOrList = Field(default_factory=list)


class VaultEngine(DocumentModel):
    name: str = Field(default="")
    path: str = Field(default="")


class Vault(ShortFormModel):
    """
    A vault secret reference.

    The short form is ``path/to/secret/field`` optionally followed by
    ``@engine-mount``, which selects a kv-v2 engine at that mount.
    """

    primary_field = "path"

    engine: VaultEngine | None = Field(default=None)
    path: str = Field(default="")
    field: str = Field(default="")

    @classmethod
    def expand_short(cls, value: Any) -> dict[str, Any]:
        if not isinstance(value, str):
            raise ValueError(f"cannot decode vault from {type(value).__name__}")
        parts = value.split("/", 2)
        if len(parts) != 3:
            return {"path": value}
        field, sep, mount = parts[2].partition("@")
        result: dict[str, Any] = {"path": f"{parts[0]}/{parts[1]}", "field": field}
        if sep:
            result["engine"] = {"name": "kv-v2", "path": mount}
        return result


class Secret(DocumentModel):
    vault: Vault | None = Field(default=None)
    file: bool | None = Field(default=None)
    token: str = Field(default="")


class Forward(DocumentModel):
    yaml_variables: bool | None = Field(default=None)
    pipeline_variables: bool = Field(default=False)


class Trigger(ShortFormModel):
    """A downstream project path or the full trigger definition."""

    primary_field = "project"

    project: str = Field(default="")
    branch: str = Field(default="")
    include: str = Field(default="")
    strategy: str = Field(default="")
    forward: Forward | None = Field(default=None)


class Variable(ShortFormModel):
    """A variable value or ``{value, description, options, expand}``."""

    primary_field = "value"
    scalar_types = (str, int, float, bool)

    value: ScalarString = Field(default="")
    description: str = Field(default="")
    options: StringOrList = Field(default_factory=list)
    expand: bool = Field(default=True)

    @classmethod
    def expand_short(cls, value: Any) -> dict[str, Any]:
        if value is None:
            return {"value": ""}
        return super().expand_short(value)

    @field_validator("expand", mode="before")
    @classmethod
    def _expand_default(cls, value: Any) -> bool:
        return value if isinstance(value, bool) else True


class AssetLink(DocumentModel):
    name: str = Field(default="")
    url: str = Field(default="")
    filepath: str = Field(default="")
    link_type: str = Field(default="")


class Assets(DocumentModel):
    links: list[AssetLink] = Field(default_factory=list)


class Release(DocumentModel):
    tag_name: str = Field(default="")
    tag_message: str = Field(default="")
    name: str = Field(default="")
    description: str = Field(default="")
    ref: str = Field(default="")
    milestones: StringOrList = Field(default_factory=list)
    released_at: str = Field(default="")
    assets: Assets | None = Field(default=None)


class Workflow(DocumentModel):
    name: str = Field(default="")
    rules: list[Rule] = Field(default_factory=list)


# -- jobs and pipeline -------------------------------------------------------


class Default(DocumentModel):
    """Job keywords applied to every job that inherits them."""

    after_script: StringOrList = Field(default_factory=list)
    before_script: StringOrList = Field(default_factory=list)
    artifacts: Artifacts | None = Field(default=None)
    cache: Cache | None = Field(default=None)
    image: Image | None = Field(default=None)
    interruptible: bool = Field(default=False)
    retry: Retry | None = Field(default=None)
    services: list[Image] = Field(default_factory=list)
    tags: StringOrList = Field(default_factory=list)
    timeout: str = Field(default="")

    def is_empty(self) -> bool:
        return self == Default()


class Job(DocumentModel):
    after_script: StringOrList = Field(default_factory=list)
    artifacts: Artifacts | None = Field(default=None)
    allow_failure: AllowFailure | None = Field(default=None)
    before_script: StringOrList = Field(default_factory=list)
    cache: Cache | None = Field(default=None)
    environment: Environment | None = Field(default=None)
    extends: StringOrList = Field(default_factory=list)
    image: Image | None = Field(default=None)
    inherit: Inherit | None = Field(default=None)
    interruptible: bool = Field(default=False)
    needs: Needs = Field(default_factory=list)
    parallel: Parallel | None = Field(default=None)
    release: Release | None = Field(default=None)
    resource_group: str = Field(default="")
    retry: Retry | None = Field(default=None)
    rules: list[Rule] = Field(default_factory=list)
    script: StringOrList = Field(default_factory=list)
    secrets: dict[str, Secret] | None = Field(default=None)
    services: list[Image] = Field(default_factory=list)
    stage: str = Field(default="")
    tags: StringOrList = Field(default_factory=list)
    timeout: str = Field(default="")
    trigger: Trigger | None = Field(default=None)
    variables: dict[str, Variable] | None = Field(default=None)
    when: str = Field(
        default="",
        description="on_success, manual, always, on_failure, delayed or never",
    )

    def inherits_default(self, key: str) -> bool:
        if self.inherit is None or self.inherit.default is None:
            return True
        return self.inherit.default.inherits(key)


class Pipeline(DocumentModel):
    default: Default | None = Field(default=None)
    include: list[Include] = Field(default_factory=list)
    stages: list[str] = Field(default_factory=list)
    variables: dict[str, Variable] | None = Field(default=None)
    workflow: Workflow | None = Field(default=None)
    jobs: dict[str, Job | None] = Field(default_factory=dict)
    templates: dict[str, Job | None] = Field(
        default_factory=dict, description="Hidden jobs, keyed with their leading dot."
    )

    # global keywords that act as job defaults
    DEFAULT_KEYWORDS: ClassVar[tuple[str, ...]] = (
        "after_script",
        "artifacts",
        "before_script",
        "cache",
        "image",
        "interruptible",
        "retry",
        "services",
        "tags",
        "timeout",
    )
    GLOBAL_KEYWORDS: ClassVar[tuple[str, ...]] = (
        "default",
        "include",
        "stages",
        "variables",
        "workflow",
    )

    @field_validator("include", mode="before")
    @classmethod
    def _include_list(cls, value: Any) -> Any:
        return _one_or_many(value)

    @classmethod
    def from_document(cls, data: Any) -> "Pipeline":
        """
        Build a pipeline from a loaded ``.gitlab-ci.yml`` mapping.

        Raises:
            pydantic.ValidationError: When a keyword cannot be decoded
        """

        default: dict[str, Any] = {}
        fields: dict[str, Any] = {"jobs": {}, "templates": {}}
        for key, value in data.items():
            key = str(key)
            if key == "default":
                # the default section wins over the deprecated globals
                default.update(value or {})
            elif key in cls.DEFAULT_KEYWORDS:
                default.setdefault(key, value)
            elif key in cls.GLOBAL_KEYWORDS:
                fields[key] = value
            elif key.startswith("."):
                # hidden keys also hold plain YAML anchors
                if isinstance(value, dict):
                    fields["templates"][key] = value
                else:
                    logger.debug(f"Ignoring hidden key '{key}'")
            else:
                fields["jobs"][key] = value

        pipeline = cls.model_validate(fields)
        if default:
            pipeline.default = Default.model_validate(default)
            if pipeline.default.is_empty():
                pipeline.default = None
        logger.debug(
            f"Decoded {len(pipeline.jobs)} jobs and {len(pipeline.templates)} templates"
        )
        return pipeline
