"""Rio pipeline document model (rio.yml)."""

from pydantic import Field

from ...core.common.tolerant import DocumentModel, ScalarString


class Machine(DocumentModel):
    base_image: str = Field(default="", alias="baseImage")
    env: dict[str, ScalarString] = Field(default_factory=dict)
    target_platforms: list[str] = Field(default_factory=list, alias="targetPlatforms")


class Build(DocumentModel):
    template: str = Field(default="")
    steps: list[str] = Field(default_factory=list)


class Reports(DocumentModel):
    findbugs: bool = Field(default=False)
    jacoco: dict[str, str] = Field(default_factory=dict)


class Publish(DocumentModel):
    repo: str = Field(default="")


class Dockerfile(DocumentModel):
    context: str = Field(default="")
    version: ScalarString = Field(default="")
    per_application: bool = Field(default=False, alias="perApplication")
    dockerfile_path: str = Field(default="", alias="dockerfilePath")
    env: dict[str, ScalarString] = Field(default_factory=dict)
    publish: list[Publish] = Field(default_factory=list)
    extra_tags: list[ScalarString] = Field(default_factory=list, alias="extraTags")


class Package(DocumentModel):
    release: bool = Field(default=False)
    dockerfile: list[Dockerfile] = Field(default_factory=list)


class Trigger(DocumentModel):
    git_push: bool = Field(default=False, alias="gitPush")


class Checkout(DocumentModel):
    fetch_tags: bool = Field(default=False, alias="fetchTags")


class Pipeline(DocumentModel):
    name: str = Field(default="")
    branch_name: str = Field(default="", alias="branchName")
    machine: Machine = Field(default_factory=Machine)
    build: Build = Field(default_factory=Build)
    reports: Reports = Field(default_factory=Reports)
    package: Package = Field(default_factory=Package)
    trigger: Trigger = Field(default_factory=Trigger)
    checkout: Checkout = Field(default_factory=Checkout)


class Email(DocumentModel):
    enabled: bool = Field(default=False)


class PullRequestComment(DocumentModel):
    post_on_success: bool = Field(default=False, alias="postOnSuccess")
    post_on_failure: bool = Field(default=False, alias="postOnFailure")


class Notify(DocumentModel):
    email: Email = Field(default_factory=Email)
    pull_request_comment: PullRequestComment = Field(
        default_factory=PullRequestComment, alias="pullRequestComment"
    )


class Config(DocumentModel):
    """A Rio file: a list of pipelines plus notification settings."""

    schema_version: float = Field(default=0, alias="schemaVersion")
    timeout: int = Field(default=0, description="Pipeline timeout in minutes.")
    pipelines: list[Pipeline] = Field(default_factory=list)
    notify: Notify = Field(default_factory=Notify)
