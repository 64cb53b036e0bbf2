"""
Remote Hooks: load hook modules over HTTP and run them in-process.

A hook is a unit of Python source served by a module host. The loader
fetches it, lowers its import/export dialect, executes it and hands back a
reusable module record.

The loader provides:
- Canonical module paths (one cache entry per resource, however it's named)
- Single-flight loading (concurrent requests share one fetch and one execution)
- Extension fallback (/a/b, /a/b.py, /a/b/index.py)
- ES-style static and dynamic imports between hook modules
- Two execution strategies (sandboxed namespace, native importlib module)
- Phase-tagged diagnostics for every failure

Core Philosophy:
- A module is fetched and executed at most once per loader
- Every failure belongs to exactly one stage: discover, fetch, transform,
  execute or render
- Failures never poison the cache; the next request retries
- The transform and the UI library are collaborators, not part of the loader

Example:
    >>> import asyncio
    >>> from remote_hooks import HookLoader
    >>>
    >>> loader = HookLoader('localhost:8083')
    >>> module = asyncio.run(loader.load_module('/hooks/client/card.py'))
    >>> module.default
    <function Card at 0x...>
"""

from .config import LoaderConfig, get_config, reload_config
from .core.context import HookContext, HookHelpers, ModuleMeta, build_repo_headers
from .core.diagnostics import DiagnosticRecord, Phase
from .core.elements import ElementDescriptor, ElementFactory, NotifyingUI, make_element_factory
from .core.errors import (
    ExecutionError,
    FetchError,
    HookImportError,
    HookLoaderError,
    RenderError,
    TransformError,
)
from .core.paths import normalize
from .runtime.hook_loader import CacheKey, HookLoader

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Loader
    "HookLoader",
    "CacheKey",
    "normalize",
    # Context
    "HookContext",
    "HookHelpers",
    "ModuleMeta",
    "build_repo_headers",
    # Elements
    "ElementDescriptor",
    "ElementFactory",
    "NotifyingUI",
    "make_element_factory",
    # Diagnostics & errors
    "DiagnosticRecord",
    "Phase",
    "HookLoaderError",
    "FetchError",
    "TransformError",
    "ExecutionError",
    "HookImportError",
    "RenderError",
    # Configuration
    "LoaderConfig",
    "get_config",
    "reload_config",
]
