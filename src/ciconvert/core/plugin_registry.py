"""Registry of the provider converters reachable from the command line."""

import logging
from typing import Any

from .exceptions import UnsupportedProviderError
from .options import ConverterOptions
from .protocols import PipelineConverter

logger = logging.getLogger(__name__)


def _builtin_converters() -> list[type]:
    # Imported on demand; the plugins import the core package themselves.
    from ..plugins.azure.converter import AzureConverter
    from ..plugins.bitbucket.converter import BitbucketConverter
    from ..plugins.cloudbuild.converter import CloudBuildConverter
    from ..plugins.drone.converter import DroneConverter
    from ..plugins.drone.legacy import LegacyDroneConverter
    from ..plugins.github.converter import GitHubConverter
    from ..plugins.gitlab.converter import GitLabConverter
    from ..plugins.jenkins.converter import JenkinsConverter
    from ..plugins.rio.converter import RioConverter

    return [
        AzureConverter,
        BitbucketConverter,
        CloudBuildConverter,
        DroneConverter,
        LegacyDroneConverter,
        GitHubConverter,
        GitLabConverter,
        JenkinsConverter,
        RioConverter,
    ]


class PluginRegistry:
    """
    Maps provider names to converter classes.

    A converter registers under its ``name`` attribute unless a provider
    name is given. The bundled converters are loaded on the first lookup;
    pass ``builtins=False`` for an empty registry.

    Every converter is constructed with the shared ConverterOptions. Other
    keyword options are forwarded only when the converter class lists them
    in ``extra_options``, so callers can hand the same set of options to
    any provider.
    """

    def __init__(self, builtins: bool = True):
        self._converters: dict[str, type[PipelineConverter]] = {}
        self._builtins_pending = builtins
        self._logger = logger.getChild(self.__class__.__name__)

    def register(self, converter_class: type, provider: str | None = None) -> type:
        """
        Register a converter class.

        Returns the class, so this can be used as a class decorator.

        Raises:
            ValueError: If converter_class is missing or no provider name
                can be determined
        """
        if converter_class is None:
            raise ValueError("Converter class cannot be None")

        provider = (provider or getattr(converter_class, "name", "") or "").strip().lower()
        if not provider:
            raise ValueError(f"No provider name for '{converter_class.__name__}'")

        current = self._converters.get(provider)
        if current is not None and current is not converter_class:
            self._logger.warning(
                f"Replacing converter '{current.__name__}' for '{provider}' "
                f"with '{converter_class.__name__}'"
            )

        self._converters[provider] = converter_class
        self._logger.debug(f"Registered '{converter_class.__name__}' for '{provider}'")
        return converter_class

    def _load_builtins(self) -> None:
        if not self._builtins_pending:
            return
        self._builtins_pending = False
        for converter_class in _builtin_converters():
            # explicit registrations take precedence over the bundled ones
            if converter_class.name not in self._converters:
                self.register(converter_class)

    def get_converter_class(self, provider: str) -> type[PipelineConverter]:
        """
        Raises:
            UnsupportedProviderError: If the provider is not registered
        """
        self._load_builtins()
        key = (provider or "").strip().lower()
        if not key:
            raise UnsupportedProviderError("Provider name cannot be empty")

        try:
            return self._converters[key]
        except KeyError:
            available = ", ".join(self.providers()) or "none"
            raise UnsupportedProviderError(
                f"Unknown provider '{key}'. Available providers: {available}",
                provider=key,
            ) from None

    def create_converter(
        self,
        provider: str,
        options: ConverterOptions | None = None,
        **extras: Any,
    ) -> PipelineConverter:
        """
        Create a converter for a provider.

        Args:
            provider: Registered provider name
            options: Options shared by every converter
            **extras: Provider specific options; entries the converter does
                not declare, and entries set to None, are left out

        Raises:
            UnsupportedProviderError: If the provider is not registered
        """
        converter_class = self.get_converter_class(provider)
        accepted = set(getattr(converter_class, "extra_options", ()))

        ignored = sorted(k for k, v in extras.items() if v is not None and k not in accepted)
        if ignored:
            self._logger.debug(
                f"Options not used by '{converter_class.__name__}': {', '.join(ignored)}"
            )

        kwargs = {k: v for k, v in extras.items() if k in accepted and v is not None}
        return converter_class(options or ConverterOptions(), **kwargs)

    def providers(self) -> list[str]:
        """Sorted names of the registered providers."""
        self._load_builtins()
        return sorted(self._converters)

    def describe(self, provider: str) -> dict[str, Any]:
        """
        Converter information of a provider, with its registered name.

        Raises:
            UnsupportedProviderError: If the provider is not registered
        """
        info = self.create_converter(provider).get_plugin_info()
        info["provider"] = provider.strip().lower()
        return info

    def __contains__(self, provider: str) -> bool:
        self._load_builtins()
        return bool(provider) and provider.strip().lower() in self._converters

    def __len__(self) -> int:
        self._load_builtins()
        return len(self._converters)


_global_registry = PluginRegistry()


def get_global_registry() -> PluginRegistry:
    return _global_registry
