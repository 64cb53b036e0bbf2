"""
Hook Context

The per-load-tree data handed to every executed module.

A context is built fresh for each top-level load. Child loads derive a copy
scoped to their own path (new ModuleMeta) that keeps the same helpers, so
their own imports go through the same loader and cache.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Any, Awaitable, Callable, Dict, Optional

from .elements import ElementCallback, ElementFactory, make_element_factory
from .paths import dirname


@dataclass(frozen=True)
class ModuleMeta:
    """Where the currently executing module came from"""

    filename: str = ''
    dirname: str = ''
    url: str = ''

    @classmethod
    def for_path(cls, path: str, url: Optional[str] = None) -> 'ModuleMeta':
        return cls(filename=path, dirname=dirname(path), url=url or path)


@dataclass
class HookHelpers:
    """Loader-backed helper functions exposed to hook code"""

    load_module: Optional[Callable[..., Awaitable[Any]]] = None
    build_peer_url: Optional[Callable[[str], str]] = None
    build_repo_headers: Optional[Callable[..., Dict[str, str]]] = None
    register_theme_styles: Optional[Callable[..., None]] = None
    register_themes_from_yaml: Optional[Callable[[str], Awaitable[None]]] = None


@dataclass
class HookContext:
    """
    Capabilities available to executed hook code.

    Fields:
        ui: UI library handle (optional; without it no element factory exists)
        create_element: Element factory; built from ui/on_element when omitted
        helpers: HookHelpers
        file_renderer: Component rendering a file by path
        layout: Optional layout component
        markdown: Markdown renderer capability
        theme: Theme registrar capability
        params: Free-form parameters for the hook
        on_element: Called with (tag, props) whenever a primitive element is created
        meta: ModuleMeta of the module currently executing
    """

    ui: Any = None
    create_element: Optional[ElementFactory] = None
    helpers: HookHelpers = field(default_factory=HookHelpers)
    file_renderer: Optional[Callable[..., Any]] = None
    layout: Any = None
    markdown: Any = None
    theme: Any = None
    params: Dict[str, Any] = field(default_factory=dict)
    on_element: Optional[ElementCallback] = None
    meta: ModuleMeta = field(default_factory=ModuleMeta)

    def __post_init__(self):
        if self.create_element is None:
            self.create_element = make_element_factory(self.ui, self.on_element)

    def scoped(self, path: str, url: Optional[str] = None) -> 'HookContext':
        """Derive the context for a module at `path` (same helpers, new meta)"""
        return replace(self, meta=ModuleMeta.for_path(path, url))

    def repo_headers(self) -> Dict[str, str]:
        builder = self.helpers.build_repo_headers
        if builder is None:
            return {}
        return dict(builder() or {})

    def as_props(self) -> Dict[str, Any]:
        """Shallow field mapping, used as the props of an entry hook's root element"""
        return {f.name: getattr(self, f.name) for f in fields(self)}


def build_repo_headers(branch: Optional[str] = None, repo: Optional[str] = None) -> Dict[str, str]:
    """Request headers selecting a repository branch on the module host"""
    headers = {}
    if branch:
        headers['x-relay-branch'] = branch
    if repo:
        headers['x-relay-repo'] = repo
    return headers
