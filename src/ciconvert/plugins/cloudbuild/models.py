"""Google Cloud Build configuration model (cloudbuild.yaml)."""

from typing import Annotated, Any

from pydantic import BeforeValidator, Field

from ...core.common.tolerant import DocumentModel, ScalarString, StringOrList
from ...core.durations import parse_duration


def _duration(value: Any) -> Any:
    if value is None or value == "":
        return 0
    if isinstance(value, str):
        return parse_duration(value)
    return value


Duration = Annotated[float, BeforeValidator(_duration)]
"""A duration in seconds, written as ``"600s"`` in the document."""


class Volume(DocumentModel):
    name: str = Field(default="")
    path: str = Field(default="")


class Pool(DocumentModel):
    name: str = Field(default="")


class Options(DocumentModel):
    source_provenance_hash: StringOrList = Field(
        default_factory=list, alias="sourceProvenanceHash"
    )
    machine_type: str = Field(default="", alias="machineType")
    disk_size_gb: ScalarString = Field(default="", alias="diskSizeGb")
    substitution_option: str = Field(default="", alias="substitutionOption")
    dynamic_substitutions: bool = Field(default=False, alias="dynamicSubstitutions")
    log_streaming_option: str = Field(default="", alias="logStreamingOption")
    logging: str = Field(default="")
    default_logs_bucket_behavior: str = Field(
        default="", alias="defaultLogsBucketBehavior"
    )
    env: list[str] = Field(default_factory=list)
    secret_env: StringOrList = Field(default_factory=list, alias="secretEnv")
    volumes: list[Volume] = Field(default_factory=list)
    pool: Pool | None = Field(default=None)
    requested_verify_option: str = Field(default="", alias="requestedVerifyOption")


class Step(DocumentModel):
    name: str = Field(default="", description="The builder image.")
    args: list[ScalarString] = Field(default_factory=list)
    env: list[str] = Field(default_factory=list)
    allow_failure: bool = Field(default=False, alias="allowFailure")
    allow_exit_codes: list[int] = Field(default_factory=list, alias="allowExitCodes")
    dir: str = Field(default="")
    id: str = Field(default="")
    wait_for: StringOrList = Field(default_factory=list, alias="waitFor")
    entrypoint: str = Field(default="")
    secret_env: StringOrList = Field(default_factory=list, alias="secretEnv")
    volumes: list[Volume] = Field(default_factory=list)
    timeout: Duration = Field(default=0)
    script: str = Field(default="")


class Secret(DocumentModel):
    kms_key_name: str = Field(default="", alias="kmsKeyName")
    secret_env: dict[str, str] = Field(default_factory=dict, alias="secretEnv")


class SecretManagerSecret(DocumentModel):
    version_name: str = Field(default="", alias="versionName")
    env: str = Field(default="")


class AvailableSecrets(DocumentModel):
    secret_manager: list[SecretManagerSecret] = Field(
        default_factory=list, alias="secretManager"
    )
    inline: list[Secret] = Field(default_factory=list)


class ArtifactObjects(DocumentModel):
    location: str = Field(default="")
    paths: list[str] = Field(default_factory=list)


class MavenArtifact(DocumentModel):
    repository: str = Field(default="")
    path: str = Field(default="")
    artifact_id: str = Field(default="", alias="artifactId")
    group_id: str = Field(default="", alias="groupId")
    version: ScalarString = Field(default="")


class PythonPackage(DocumentModel):
    repository: str = Field(default="")
    paths: list[str] = Field(default_factory=list)


class Artifacts(DocumentModel):
    objects: ArtifactObjects | None = Field(default=None)
    maven_artifacts: list[MavenArtifact] = Field(
        default_factory=list, alias="mavenArtifacts"
    )
    python_packages: list[PythonPackage] = Field(
        default_factory=list, alias="pythonPackages"
    )


class Config(DocumentModel):
    """A build: steps plus build-wide settings."""

    steps: list[Step] = Field(default_factory=list)
    timeout: Duration = Field(default=0)
    queue_ttl: Duration = Field(default=0, alias="queueTtl")
    logs_bucket: str = Field(default="", alias="logsBucket")
    options: Options | None = Field(default=None)
    substitutions: dict[str, ScalarString] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    service_account: str = Field(default="", alias="serviceAccount")
    secrets: list[Secret] = Field(default_factory=list)
    available_secrets: AvailableSecrets | None = Field(
        default=None, alias="availableSecrets"
    )
    artifacts: Artifacts | None = Field(default=None)
    images: list[str] = Field(default_factory=list)
