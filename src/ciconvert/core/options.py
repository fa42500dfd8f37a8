"""Construction-time configuration shared by the provider converters."""

from dataclasses import dataclass, field

DEFAULT_NAMESPACE = "default"


@dataclass
class ConverterOptions:
    """
    Options supplied when a converter is created.

    Attributes:
        dockerhub_connector: Default container registry connector name.
        kube_namespace: Kubernetes namespace used when kubernetes is enabled.
        kube_connector: Kubernetes connector; setting it switches the
            emitted runtime from cloud to kubernetes.
        org_secrets: Secret names that live at organization scope.
        default_image: Image used for steps that declare none.
    """

    dockerhub_connector: str = ""
    kube_namespace: str = DEFAULT_NAMESPACE
    kube_connector: str = ""
    org_secrets: list[str] = field(default_factory=list)
    default_image: str = ""

    def __post_init__(self) -> None:
        if not self.kube_namespace:
            self.kube_namespace = DEFAULT_NAMESPACE

    @property
    def kube_enabled(self) -> bool:
        return bool(self.kube_connector)
