"""
Hook Loader

Loads hook modules from a remote host: fetch, prepare, execute, cache.

Design principles:
- One cache key per (host, canonical path)
- At most one in-flight load per key: concurrent requests await the same
  task (single-flight)
- The pending entry is registered without a suspension point between the
  lookup and the insert, so no second load can sneak in
- Settled results move into the module cache; failures only clear the
  pending entry, so a later attempt can retry
- Waiters are shielded: a caller that gives up never cancels the shared
  load
- Every failure is reported to diagnostics once, tagged with its phase,
  then re-raised to every waiting caller
- No expiry. Entries live until clear_cache(), or until LRU eviction when
  max_entries is set
"""

import asyncio
import contextvars
from collections import OrderedDict
from dataclasses import replace
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from ..config import LoaderConfig, get_config
from ..core import paths
from ..core.context import HookContext, HookHelpers
from ..core.diagnostics import DiagnosticsSink, null_sink, report
from ..core.errors import (
    ExecutionError,
    FetchError,
    HookImportError,
    HookLoaderError,
    RenderError,
    TransformError,
)
from ..core.fetch import DEFAULT_EXTENSION, DEFAULT_INDEX_NAME, FetchGateway
from ..core.self_logger import LoaderLog
from ..core.transform import Transform, TransformPipeline
from ..core.virtualization import ImportVirtualizationTable, get_binding
from .executor import ExecutionEngine


class CacheKey(NamedTuple):
    host: str
    path: str


# Keys being loaded by the current task and its ancestors
_load_chain: contextvars.ContextVar[Tuple[CacheKey, ...]] = contextvars.ContextVar(
    'remote_hooks_load_chain', default=()
)


class HookLoader:
    """
    Remote hook module loader with a coalescing cache.

    Args:
        host: 'host:port' modules are served from
        protocol: 'http' or 'https'
        transform: Optional (code, path) -> code transform
        on_diagnostics: Sink receiving a DiagnosticRecord per failure
        base_dir: Application base directory for bare specifiers
        session: requests-compatible session (default: requests.Session())
        timeout: Per-request fetch timeout in seconds
        extension: Extension tried for extension-less paths
        index_name: Index file tried for extension-less paths
        max_entries: Enable LRU eviction above this many cached modules
                     (None: never evict)
        log_dir: Directory for the loader's TSV log (None: no log)
        virtualization: Reserved import table shared by pipeline and engine
    """

    def __init__(
        self,
        host: str,
        protocol: str = 'http',
        transform: Optional[Transform] = None,
        on_diagnostics: Optional[DiagnosticsSink] = None,
        base_dir: str = paths.DEFAULT_BASE_DIR,
        session: Any = None,
        timeout: float = 10.0,
        extension: str = DEFAULT_EXTENSION,
        index_name: str = DEFAULT_INDEX_NAME,
        max_entries: Optional[int] = None,
        log_dir: Any = None,
        virtualization: Optional[ImportVirtualizationTable] = None,
    ):
        self.host = host
        self.protocol = protocol
        self.base_dir = base_dir
        self.on_diagnostics = on_diagnostics or null_sink
        self.max_entries = max_entries

        self.virtualization = virtualization or ImportVirtualizationTable()
        self.gateway = FetchGateway(
            host,
            protocol=protocol,
            session=session,
            timeout=timeout,
            extension=extension,
            index_name=index_name,
        )
        self.pipeline = TransformPipeline(transform=transform, virtualization=self.virtualization)
        self.engine = ExecutionEngine(virtualization=self.virtualization)

        self.log = LoaderLog(host, log_dir) if log_dir else None

        self._modules: 'OrderedDict[CacheKey, Any]' = OrderedDict()
        self._pending: Dict[CacheKey, asyncio.Future] = {}
        self._waits: Dict[CacheKey, List[CacheKey]] = {}
        self._stats = {'hits': 0, 'misses': 0, 'coalesced': 0, 'evictions': 0}

    @classmethod
    def from_config(cls, config: Optional[LoaderConfig] = None, **overrides) -> 'HookLoader':
        """Build a loader from LoaderConfig (default: the global config)"""
        config = config or get_config()
        options = {
            'host': config.host,
            'protocol': config.protocol,
            'base_dir': config.base_dir,
            'timeout': config.timeout,
            'extension': config.extension,
            'index_name': config.index_name,
            'max_entries': config.max_entries,
            'log_dir': config.log_dir,
        }
        options.update(overrides)
        return cls(**options)

    # Context

    def create_context(self, **fields) -> HookContext:
        """
        Build a fresh context for a top-level load.

        helpers.load_module and helpers.build_peer_url are bound to this
        loader unless the caller supplied their own.
        """
        helpers = fields.pop('helpers', None) or HookHelpers()
        return self._bind(HookContext(helpers=helpers, **fields))

    def _bind(self, context: HookContext) -> HookContext:
        helpers = context.helpers
        if helpers.load_module is not None and helpers.build_peer_url is not None:
            return context

        helpers = replace(helpers)
        bound = replace(context, helpers=helpers)

        if helpers.load_module is None:
            async def load_module(specifier, from_path=None):
                return await self.load_module(specifier, from_path, bound)
            helpers.load_module = load_module

        if helpers.build_peer_url is None:
            helpers.build_peer_url = self.build_peer_url

        return bound

    def build_peer_url(self, path: str) -> str:
        return paths.build_peer_url(f"{self.protocol}://{self.host}", path)

    def cache_key(self, path: str) -> CacheKey:
        return CacheKey(self.host, path)

    # Loading

    async def load_module(
        self,
        specifier: str,
        from_path: Optional[str] = None,
        context: Optional[HookContext] = None,
    ) -> Any:
        """
        Load a module record, sharing work with concurrent identical loads.

        Args:
            specifier: Module specifier ('./x.py', '/abs/y', 'name')
            from_path: Path of the importing module
            context: Context of the load tree (default: a fresh one)

        Returns:
            The module record

        Raises:
            FetchError, TransformError, ExecutionError, HookImportError
        """
        context = self._bind(context) if context is not None else self.create_context()
        path = paths.normalize(specifier, from_path, self.base_dir)
        return await self._load(path, context, entry=False)

    async def load_and_execute_hook(self, hook_path: str, context: Optional[HookContext] = None) -> Any:
        """
        Load an entry hook and create its root element.

        The entry must export a callable `default`; it becomes the type of
        the returned element, with the context fields as props.

        Raises:
            ExecutionError: If the module has no callable default export
            RenderError: If no element factory is available or creation fails
        """
        context = self._bind(context) if context is not None else self.create_context()
        path = paths.normalize(hook_path, None, self.base_dir)

        record = await self._load(path, context, entry=True)

        component = get_binding(record, 'default', None)
        if not callable(component):
            raise self._fail(ExecutionError(
                "hook module does not export a default function",
                path,
                details={'record_type': type(record).__name__},
            ))

        create = context.create_element or getattr(context.ui, 'create_element', None)
        if not callable(create):
            raise self._fail(RenderError("no element factory available", path))

        try:
            element = create(component, context.as_props())
        except HookLoaderError as e:
            raise self._fail(e)
        except Exception as e:
            raise self._fail(RenderError(f"{type(e).__name__}: {e}", path)) from e

        self._log('INFO', 'hook rendered', event='rendered', path=path)
        return element

    async def _load(self, path: str, context: HookContext, entry: bool) -> Any:
        key = self.cache_key(path)

        if key in self._modules:
            self._stats['hits'] += 1
            self._modules.move_to_end(key)
            self._log('DEBUG', 'cache hit', event='cache_hit', path=path)
            return self._modules[key]

        chain = _load_chain.get()
        waiter = chain[-1] if chain else None

        task = self._pending.get(key)
        if task is not None:
            if waiter is not None and self._would_deadlock(waiter, key):
                cycle = ' -> '.join(k.path for k in chain + (key,))
                raise self._fail(HookImportError(
                    f"circular import: {cycle}",
                    waiter.path,
                    details={'specifier': path},
                ))
            self._stats['coalesced'] += 1
            self._log('DEBUG', 'joined pending load', event='coalesced', path=path)
        else:
            self._stats['misses'] += 1
            self._log('DEBUG', 'cache miss', event='cache_miss', path=path)
            task = asyncio.ensure_future(self._run_load(key, context, entry))
            self._pending[key] = task
            task.add_done_callback(lambda done: self._settle(key, done))

        return await self._wait(waiter, key, task)

    async def _wait(self, waiter: Optional[CacheKey], key: CacheKey, task: asyncio.Future) -> Any:
        if waiter is None:
            return await asyncio.shield(task)

        edges = self._waits.setdefault(waiter, [])
        edges.append(key)
        try:
            return await asyncio.shield(task)
        finally:
            edges.remove(key)
            if not edges:
                self._waits.pop(waiter, None)

    def _would_deadlock(self, waiter: CacheKey, target: CacheKey) -> bool:
        """Does `target` (transitively) wait on `waiter`?"""
        stack = [target]
        seen = set()
        while stack:
            key = stack.pop()
            if key == waiter:
                return True
            if key in seen:
                continue
            seen.add(key)
            stack.extend(self._waits.get(key, ()))
        return False

    async def _run_load(self, key: CacheKey, context: HookContext, entry: bool) -> Any:
        """fetch -> prepare -> execute for one key (runs once per key at a time)"""
        _load_chain.set(_load_chain.get() + (key,))
        path = key.path

        async def load_dependency(specifier, from_path):
            return await self.load_module(specifier, from_path, context)

        # Error class for unexpected failures of the step that's running
        stage = FetchError
        try:
            fetched = await self.gateway.fetch(path, headers=context.repo_headers())
            self._log('DEBUG', 'fetched', event='fetched', path=path, url=fetched.url)

            stage = TransformError
            scoped = context.scoped(path, fetched.url)
            prepared = await self.pipeline.prepare(
                fetched.code,
                path,
                scoped,
                load=load_dependency,
                url=fetched.url,
            )
            stage = ExecutionError
            record = await self.engine.execute(prepared, scoped, entry=entry)
        except HookLoaderError as e:
            raise self._fail(e)
        except Exception as e:
            raise self._fail(stage(f"{type(e).__name__}: {e}", path)) from e

        self._log('INFO', 'loaded', event='loaded', path=path, url=fetched.url,
                  strategy=prepared.strategy.value)
        return record

    def _settle(self, key: CacheKey, task: asyncio.Future) -> None:
        if self._pending.get(key) is not task:
            # Cleared while in flight; don't resurrect the entry
            return
        del self._pending[key]

        if task.cancelled() or task.exception() is not None:
            return

        self._modules[key] = task.result()
        while self.max_entries is not None and len(self._modules) > self.max_entries:
            evicted, _ = self._modules.popitem(last=False)
            self._stats['evictions'] += 1
            self._log('DEBUG', 'evicted', event='evicted', path=evicted.path)

    def _fail(self, error: HookLoaderError) -> HookLoaderError:
        """Report a failure once (diagnostics + log) and hand it back for raising"""
        if not error.reported:
            self._log('ERROR', str(error), event='failed', path=error.path, phase=error.phase.value)
            report(self.on_diagnostics, error)
        return error

    def _log(self, level: str, message: str, **fields) -> None:
        if self.log is not None:
            self.log.log(level, message, **fields)

    # Cache management

    def clear_cache(self) -> None:
        """Forget every cached and pending module"""
        self._modules.clear()
        self._pending.clear()
        self._log('INFO', 'cache cleared', event='cleared')

    def get_cache_stats(self) -> Dict[str, int]:
        """
        Get cache statistics.

        Returns:
            Dict with 'hits', 'misses', 'coalesced', 'evictions', 'size', 'pending'
        """
        return {
            **self._stats,
            'size': len(self._modules),
            'pending': len(self._pending),
        }

    def is_cached(self, specifier: str, from_path: Optional[str] = None) -> bool:
        path = paths.normalize(specifier, from_path, self.base_dir)
        return self.cache_key(path) in self._modules
