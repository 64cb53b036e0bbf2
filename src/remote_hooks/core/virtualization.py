"""
Import Virtualization Table

A closed mapping from reserved import specifiers to capabilities carried by
the HookContext. This is what `require` means inside hook code: known names
give the host's capability object, anything else gives an empty placeholder.
It is not a general module resolver.
"""

from types import SimpleNamespace
from typing import Any, Callable, Dict, Mapping, Optional

from .context import HookContext

Provider = Callable[[HookContext], Any]

_MISSING = object()


def empty_placeholder() -> SimpleNamespace:
    return SimpleNamespace()


def _null_file_renderer(**props):
    return None


def _markup_runtime(context: HookContext) -> SimpleNamespace:
    factory = context.create_element
    return SimpleNamespace(
        jsx=factory,
        jsxs=factory,
        Fragment=getattr(context.ui, 'Fragment', None),
    )


DEFAULT_PROVIDERS: Dict[str, Provider] = {
    'ui': lambda ctx: ctx.ui if ctx.ui is not None else empty_placeholder(),
    'ui/jsx-runtime': _markup_runtime,
    '@hooks/helpers': lambda ctx: ctx.helpers,
    '@hooks/file-renderer': lambda ctx: ctx.file_renderer or _null_file_renderer,
    '@hooks/layout': lambda ctx: ctx.layout,
    '@hooks/markdown': lambda ctx: ctx.markdown if ctx.markdown is not None else empty_placeholder(),
    '@hooks/theme': lambda ctx: ctx.theme if ctx.theme is not None else empty_placeholder(),
    '@hooks/meta': lambda ctx: ctx.meta,
}


class ImportVirtualizationTable:
    """
    Reserved specifier lookup.

    Args:
        providers: Extra or replacement providers, keyed by specifier.
                   Each provider receives the HookContext of the executing
                   module and returns the capability object.
    """

    def __init__(self, providers: Optional[Mapping[str, Provider]] = None):
        self._providers: Dict[str, Provider] = dict(DEFAULT_PROVIDERS)
        if providers:
            self._providers.update(providers)

    def __contains__(self, specifier: str) -> bool:
        return specifier in self._providers

    def specifiers(self):
        return sorted(self._providers)

    def resolve(self, specifier: str, context: HookContext) -> Any:
        provider = self._providers.get(specifier)
        if provider is None:
            return empty_placeholder()
        return provider(context)

    def require_for(self, context: HookContext) -> Callable[[str], Any]:
        """Build the `require` function injected into one module's namespace"""
        def require(specifier):
            return self.resolve(str(specifier), context)
        return require


def get_binding(obj: Any, name: str, default: Any = _MISSING) -> Any:
    """
    Read one export from a module record.

    Records are mappings (module.exports = {...}) or attribute objects
    (modules, namespaces, dataclasses).

    Raises:
        KeyError: If the binding is missing and no default was given
    """
    if isinstance(obj, Mapping):
        if name in obj:
            return obj[name]
    elif obj is not None and hasattr(obj, name):
        return getattr(obj, name)

    if default is _MISSING:
        raise KeyError(name)
    return default


def has_binding(obj: Any, name: str) -> bool:
    absent = object()
    return get_binding(obj, name, absent) is not absent


def default_binding(obj: Any) -> Any:
    """The module's 'default' export, falling back to the whole record"""
    value = get_binding(obj, 'default', None)
    return value if value is not None else obj
