"""Provider registry: stores configured continuation provider instances."""

from loomtree.providers.base import ContinuationProvider

_providers: dict[str, ContinuationProvider] = {}


def register_provider(provider: ContinuationProvider) -> None:
    """Register a provider instance by name. Re-registering a name replaces it."""
    _providers[provider.name] = provider


def get_provider(name: str) -> ContinuationProvider:
    """Get a registered provider by name. Raises ProviderNotFoundError if not found."""
    try:
        return _providers[name]
    except KeyError:
        available = ", ".join(_providers.keys()) or "(none)"
        raise ProviderNotFoundError(
            f"Provider '{name}' not registered. Available: {available}"
        ) from None


def list_providers() -> list[str]:
    return list(_providers.keys())


def get_all_providers() -> list[ContinuationProvider]:
    return list(_providers.values())


def clear_providers() -> None:
    """Clear all registered providers. Used in tests and at shutdown."""
    _providers.clear()


class ProviderNotFoundError(Exception):
    pass
