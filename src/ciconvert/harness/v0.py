"""Legacy (v0) pipeline tree produced by the downgrader."""

from typing import Any, ClassVar, Union

from pydantic import Field

from .v1 import HarnessModel

STAGE_TYPE_CI = "CI"

OS_LINUX = "Linux"

INFRA_KUBERNETES_DIRECT = "KubernetesDirect"
RUNTIME_CLOUD = "Cloud"

STEP_TYPE_ACTION = "Action"
STEP_TYPE_ARTIFACTORY_UPLOAD = "ArtifactoryUpload"
STEP_TYPE_BACKGROUND = "Background"
STEP_TYPE_BITRISE = "Bitrise"
STEP_TYPE_DOCKER = "BuildAndPushDockerRegistry"
STEP_TYPE_PLUGIN = "Plugin"
STEP_TYPE_RUN = "Run"
STEP_TYPE_TEST = "Test"

IMAGE_PULL_ALWAYS = "Always"
IMAGE_PULL_IF_NOT_PRESENT = "IfNotPresent"
IMAGE_PULL_NEVER = "Never"


class Variable(HarnessModel):
    name: str
    type: str = Field(default="String", description="Secret, String or Number.")
    value: Any = Field(default=None)


class Codebase(HarnessModel):
    repo_name: str | None = Field(default=None, alias="repoName")
    connector_ref: str | None = Field(default=None, alias="connectorRef")
    build: str | None = Field(default=None)


class CIProperties(HarnessModel):
    codebase: Codebase | None = Field(default=None)


class Properties(HarnessModel):
    ci: CIProperties | None = Field(default=None)


class Cache(HarnessModel):
    enabled: bool | None = Field(default=None)
    key: str | None = Field(default=None)
    paths: list[str] | None = Field(default=None)


class BuildIntelligence(HarnessModel):
    enabled: bool | None = Field(default=None)


class InfraSpec(HarnessModel):
    connector_ref: str | None = Field(default=None, alias="connectorRef")
    namespace: str | None = Field(default=None)
    automount_service_account_token: bool | None = Field(
        default=None, alias="automountServiceAccountToken"
    )
    node_selector: dict[str, str] | None = Field(default=None, alias="nodeSelector")
    os: str | None = Field(default=None)


class Infrastructure(HarnessModel):
    type: str = Field(default=INFRA_KUBERNETES_DIRECT)
    spec: InfraSpec | None = Field(default=None)


class RuntimeSpec(HarnessModel):
    preserve_empty: ClassVar[bool] = True


class Runtime(HarnessModel):
    type: str = Field(default=RUNTIME_CLOUD)
    spec: RuntimeSpec = Field(default_factory=RuntimeSpec)


class Platform(HarnessModel):
    os: str | None = Field(default=None)
    arch: str | None = Field(default=None)


class Strategy(HarnessModel):
    matrix: dict[str, Any] | None = Field(default=None)


class StageWhen(HarnessModel):
    pipeline_status: str | None = Field(default=None, alias="pipelineStatus")
    condition: str | None = Field(default=None)


class StepWhen(HarnessModel):
    stage_status: str | None = Field(default=None, alias="stageStatus")
    condition: str | None = Field(default=None)


class Output(HarnessModel):
    name: str


class ReportJunit(HarnessModel):
    paths: list[str] | None = Field(default=None)


class Report(HarnessModel):
    type: str = Field(default="JUnit")
    spec: ReportJunit | None = Field(default=None)


# -- step specs --------------------------------------------------------------


class StepRun(HarnessModel):
    env: dict[str, str] | None = Field(default=None, alias="envVariables")
    command: str | None = Field(default=None)
    connector_ref: str | None = Field(default=None, alias="connectorRef")
    image: str | None = Field(default=None)
    image_pull_policy: str | None = Field(default=None, alias="imagePullPolicy")
    outputs: list[Output] | None = Field(default=None, alias="outputVariables")
    privileged: bool | None = Field(default=None)
    run_as_user: str | None = Field(default=None, alias="runAsUser")
    reports: Report | None = Field(default=None)
    shell: str | None = Field(default=None)


class StepBackground(HarnessModel):
    command: str | None = Field(default=None)
    connector_ref: str | None = Field(default=None, alias="connectorRef")
    entrypoint: list[str] | None = Field(default=None)
    env: dict[str, str] | None = Field(default=None, alias="envVariables")
    image: str | None = Field(default=None)
    image_pull_policy: str | None = Field(default=None, alias="imagePullPolicy")
    port_bindings: dict[str, str] | None = Field(default=None, alias="portBindings")
    privileged: bool | None = Field(default=None)
    run_as_user: str | None = Field(default=None, alias="runAsUser")


class StepPlugin(HarnessModel):
    env: dict[str, str] | None = Field(default=None, alias="envVariables")
    connector_ref: str | None = Field(default=None, alias="connectorRef")
    image: str | None = Field(default=None)
    image_pull_policy: str | None = Field(default=None, alias="imagePullPolicy")
    privileged: bool | None = Field(default=None)
    run_as_user: str | None = Field(default=None, alias="runAsUser")
    settings: dict[str, Any] | None = Field(default=None)


class StepDocker(HarnessModel):
    build_args: dict[str, str] | None = Field(default=None, alias="buildArgs")
    connector_ref: str | None = Field(default=None, alias="connectorRef")
    context: str | None = Field(default=None)
    dockerfile: str | None = Field(default=None)
    labels: dict[str, str] | None = Field(default=None)
    privileged: bool | None = Field(default=None)
    repo: str | None = Field(default=None)
    run_as_user: str | None = Field(default=None, alias="runAsUser")
    tags: list[str] | None = Field(default=None)
    target: str | None = Field(default=None)
    caching: bool | None = Field(default=None)


class StepArtifactoryUpload(HarnessModel):
    connector_ref: str | None = Field(default=None, alias="connectorRef")
    target: str | None = Field(default=None)
    source_path: str | None = Field(default=None, alias="sourcePath")


class StepAction(HarnessModel):
    uses: str | None = Field(default=None)
    with_: dict[str, Any] | None = Field(default=None, alias="with")
    envs: dict[str, str] | None = Field(default=None, alias="env")


class StepBitrise(HarnessModel):
    uses: str | None = Field(default=None)
    with_: dict[str, Any] | None = Field(default=None, alias="with")
    envs: dict[str, str] | None = Field(default=None, alias="env")


StepSpec = Union[
    StepRun,
    StepBackground,
    StepPlugin,
    StepDocker,
    StepArtifactoryUpload,
    StepAction,
    StepBitrise,
]


class Step(HarnessModel):
    identifier: str | None = Field(default=None)
    name: str | None = Field(default=None)
    type: str | None = Field(default=None)
    timeout: str | None = Field(default=None)
    env: dict[str, str] | None = Field(default=None, alias="envVariables")
    spec: StepSpec | None = Field(default=None)
    when: StepWhen | None = Field(default=None)
    strategy: Strategy | None = Field(default=None)


class StepGroup(HarnessModel):
    identifier: str | None = Field(default=None)
    name: str | None = Field(default=None)
    timeout: str | None = Field(default=None)
    steps: list["Steps"] | None = Field(default=None)


class Steps(HarnessModel):
    """One entry of an execution list: a step, a parallel list or a group."""

    step: Step | None = Field(default=None)
    parallel: list["Steps"] | None = Field(default=None)
    step_group: StepGroup | None = Field(default=None, alias="stepGroup")


class Execution(HarnessModel):
    steps: list[Steps] | None = Field(default=None)


class StageCI(HarnessModel):
    build_intelligence: BuildIntelligence | None = Field(
        default=None, alias="buildIntelligence"
    )
    caching: Cache | None = Field(default=None)
    clone_codebase: bool | None = Field(default=None, alias="cloneCodebase")
    execution: Execution = Field(default_factory=Execution)
    infrastructure: Infrastructure | None = Field(default=None)
    platform: Platform | None = Field(default=None)
    runtime: Runtime | None = Field(default=None)


class Stage(HarnessModel):
    identifier: str | None = Field(default=None)
    name: str | None = Field(default=None)
    type: str = Field(default=STAGE_TYPE_CI)
    spec: StageCI = Field(default_factory=StageCI)
    variables: list[Variable] | None = Field(default=None)
    when: StageWhen | None = Field(default=None)
    strategy: Strategy | None = Field(default=None)


class PipelineEvent(HarnessModel):
    type: str


class NotificationSpec(HarnessModel):
    user_groups: list[str] | None = Field(default=None, alias="userGroups")
    recipients: list[str] | None = Field(default=None)


class NotificationMethod(HarnessModel):
    type: str = Field(default="Email")
    spec: NotificationSpec | None = Field(default=None)


class NotificationRule(HarnessModel):
    identifier: str | None = Field(default=None)
    name: str | None = Field(default=None)
    enabled: bool | None = Field(default=None)
    pipeline_events: list[PipelineEvent] | None = Field(
        default=None, alias="pipelineEvents"
    )
    notification_method: NotificationMethod | None = Field(
        default=None, alias="notificationMethod"
    )


class Stages(HarnessModel):
    stage: Stage | None = Field(default=None)
    parallel: list["Stages"] | None = Field(default=None)


class Pipeline(HarnessModel):
    identifier: str | None = Field(default=None)
    name: str | None = Field(default=None)
    org_identifier: str | None = Field(default=None, alias="orgIdentifier")
    project_identifier: str | None = Field(default=None, alias="projectIdentifier")
    properties: Properties | None = Field(default=None)
    stages: list[Stages] | None = Field(default=None)
    timeout: str | None = Field(default=None)
    variables: list[Variable] | None = Field(default=None)
    tags: dict[str, str] | None = Field(default=None)
    notification_rules: list[NotificationRule] | None = Field(
        default=None, alias="notificationRules"
    )


class Config(HarnessModel):
    """Root of a legacy pipeline document."""

    pipeline: Pipeline = Field(default_factory=Pipeline)


StepGroup.model_rebuild()
Steps.model_rebuild()
Stages.model_rebuild()
