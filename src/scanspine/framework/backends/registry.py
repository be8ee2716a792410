"""Backend registry and enable/disable resolution.

Manifesto:
    Backends are looked up by stable name so configuration files and CLI
    flags can refer to them without import-time coupling.

Tags:
    scanspine, framework, registry, backends, selection

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING

from scanspine.core.errors import ConfigError
from scanspine.core.logging import get_logger

if TYPE_CHECKING:
    from scanspine.core.settings import ScanSettings
    from scanspine.framework.backends.protocol import BaseBackend
    from scanspine.licenses.registry import LicenseRegistry

logger = get_logger(__name__)

# Global backend registry
_registry: dict[str, type[BaseBackend]] = {}


def register_backend(name: str) -> Callable[[type[BaseBackend]], type[BaseBackend]]:
    """Decorator to register a backend class under ``name``."""

    def decorator(cls: type[BaseBackend]) -> type[BaseBackend]:
        if name in _registry:
            raise ValueError(f"Backend '{name}' is already registered")
        cls.name = name
        _registry[name] = cls
        logger.debug("backend_registered", name=name, cls=cls.__name__)
        return cls

    return decorator


def get_backend_class(name: str) -> type[BaseBackend]:
    """Get a backend class by name."""
    if name not in _registry:
        available = ", ".join(sorted(_registry))
        raise ConfigError(f"unknown backend '{name}' (available: {available})")
    return _registry[name]


def list_backends() -> list[str]:
    """List all registered backend names."""
    return sorted(_registry)


def default_enablement() -> dict[str, bool]:
    """Enabled-by-default flag of every registered backend."""
    return {name: cls.default_enabled for name, cls in sorted(_registry.items())}


def resolve_enabled(
    names: Iterable[str],
    config: Mapping[str, bool] | None = None,
    yes: Iterable[str] = (),
    no: Iterable[str] = (),
    *,
    defaults: Mapping[str, bool] | None = None,
) -> list[str]:
    """
    Decide which backends run.

    ``config`` values override ``defaults`` (missing → enabled) to form the
    baseline. A non-empty ``yes`` list enables exactly the named backends; a
    non-empty ``no`` list disables the named ones from the baseline.

    Raises:
        ConfigError: Both lists given, or a name that is not in ``names``
    """
    known = list(dict.fromkeys(names))
    yes = list(yes)
    no = list(no)
    config = dict(config or {})
    defaults = dict(defaults or {})

    if yes and no:
        raise ConfigError("cannot combine backend allow-list and deny-list")
    unknown = sorted({n for n in (*yes, *no, *config) if n not in known})
    if unknown:
        raise ConfigError(f"unknown backend(s): {', '.join(unknown)}")

    if yes:
        return [n for n in known if n in yes]

    baseline = {n: config.get(n, defaults.get(n, True)) for n in known}
    return [n for n in known if baseline[n] and n not in no]


def create_backends(
    settings: ScanSettings,
    *,
    yes: Iterable[str] = (),
    no: Iterable[str] = (),
    registry: LicenseRegistry | None = None,
) -> list[BaseBackend]:
    """Instantiate the backends selected by ``settings.backends`` and the flags."""
    enabled = resolve_enabled(
        list_backends(), settings.backends, yes, no, defaults=default_enablement()
    )
    backends = [get_backend_class(name).from_settings(settings, registry=registry) for name in enabled]
    logger.debug("backends_created", backends=[b.identity for b in backends])
    return backends


def clear_registry() -> None:
    """Clear registry (for testing)."""
    _registry.clear()


__all__ = [
    "register_backend",
    "get_backend_class",
    "list_backends",
    "default_enablement",
    "resolve_enabled",
    "create_backends",
    "clear_registry",
]
