"""Options shared by the current and the legacy Drone converters."""

from dataclasses import replace

from ...core.options import ConverterOptions
from .variables import sanitize


def build_options(
    options: ConverterOptions | None = None,
    *,
    dockerhub_connector: str | None = None,
    kube_namespace: str | None = None,
    kube_connector: str | None = None,
    org_secrets: list[str] | None = None,
) -> ConverterOptions:
    """
    Build the options of a Drone converter.

    Explicit keyword values override those of ``options``. Organization
    secret names are sanitized the same way secret references are, so
    that the two can be compared directly; blanks and duplicates are
    dropped.

    Args:
        options: Base options, or None for the defaults
        dockerhub_connector: Default container registry connector
        kube_namespace: Kubernetes namespace
        kube_connector: Kubernetes connector
        org_secrets: Names of organization scoped secrets

    Returns:
        A new ConverterOptions instance
    """
    base = options or ConverterOptions()
    overrides = {
        "dockerhub_connector": dockerhub_connector,
        "kube_namespace": kube_namespace,
        "kube_connector": kube_connector,
        "org_secrets": org_secrets,
    }
    result = replace(
        base, **{key: value for key, value in overrides.items() if value is not None}
    )

    secrets = (sanitize(name.strip()) for name in result.org_secrets)
    result.org_secrets = list(dict.fromkeys(name for name in secrets if name))
    return result
