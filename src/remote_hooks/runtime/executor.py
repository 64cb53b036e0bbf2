"""
Execution Engine

Runs prepared hook code and returns its export bindings.

Two strategies:

- Sandboxed: the code runs via exec() in a fresh namespace that receives
  four injected parameters, `require`, `module`, `exports` and `context`.
  The result is whatever ends up in `module.exports`. Execution is
  synchronous once started.

- Native: the code is a genuine module. `export` syntax is lowered to plain
  assignments, a real module object is built through importlib with the
  module URL as its origin, and the code is compiled with top-level await
  allowed and awaited. Module code can't receive injected parameters, so
  the capabilities it may reference are installed as ambient globals.
  Each load gets its own module namespace, so those globals never leak
  between concurrent native loads.

The result shapes differ on purpose: the sandbox yields `module.exports`,
the native path yields the module object itself (live bindings, top-level
await) at the cost of ambient globals instead of parameters.
"""

import ast
import hashlib
import importlib.abc
import importlib.util
import inspect
import linecache
import re
import sys
from types import ModuleType, SimpleNamespace
from typing import Any, Dict, Optional

from ..core.context import HookContext
from ..core.errors import ExecutionError, HookImportError, HookLoaderError, is_syntax_failure
from ..core.transform import (
    BINDING_FN_NAME,
    DEFAULT_FN_NAME,
    IMPORT_FN_NAME,
    IMPORTS_NAME,
    META_NAME,
    PreparedModule,
    Strategy,
)
from ..core.virtualization import ImportVirtualizationTable, default_binding, get_binding

MODULE_PREFIX = 'remote_hooks.loaded'

EXPORT_DEFAULT_DECL = re.compile(
    r'^export[ \t]+default[ \t]+((?:async[ \t]+)?def|class)[ \t]+([A-Za-z_]\w*)',
    re.MULTILINE,
)
EXPORT_DEFAULT_EXPR = re.compile(r'^export[ \t]+default[ \t]+', re.MULTILINE)
EXPORT_DECL = re.compile(
    r'^export[ \t]+(?=(?:async[ \t]+def|def|class|[A-Za-z_]\w*[ \t]*(?::[^=\n]*)?=))',
    re.MULTILINE,
)


def lower_exports(code: str) -> str:
    """
    Rewrite export syntax into plain Python.

    - `export default def Name(...)` / `export default class Name` keep the
      declaration and bind `default = Name` at the end of the module
    - `export default <expr>` becomes `default = <expr>`
    - `export def` / `export class` / `export NAME = ...` drop the keyword

    Lines are never added before existing code, so line numbers hold.
    """
    trailer = []

    def declaration(match):
        trailer.append(f"default = {match.group(2)}")
        return f"{match.group(1)} {match.group(2)}"

    code = EXPORT_DEFAULT_DECL.sub(declaration, code)
    code = EXPORT_DEFAULT_EXPR.sub('default = ', code)
    code = EXPORT_DECL.sub('', code)

    if trailer:
        code = code.rstrip('\n') + '\n' + '\n'.join(trailer) + '\n'
    return code


def module_name_for(path: str) -> str:
    """Unique importable-looking name for a hook module path"""
    slug = re.sub(r'\W+', '_', path).strip('_') or 'module'
    digest = hashlib.sha256(path.encode()).hexdigest()[:8]
    return f"{MODULE_PREFIX}.{slug}_{digest}"


def register_source(filename: str, code: str) -> None:
    """Make hook source visible to tracebacks and inspect"""
    linecache.cache[filename] = (len(code), None, code.splitlines(True), filename)


def is_usable_record(record: Any) -> bool:
    """Object or function exports are usable even without a default"""
    if record is None:
        return False
    return not isinstance(record, (str, bytes, int, float, bool))


class HookSourceLoader(importlib.abc.InspectLoader):
    """
    importlib loader for source that came over the network.

    The URL is used as the code's filename, so tracebacks and linecache
    entries point at where the source was fetched from.
    """

    def __init__(self, source: str, url: str):
        self.source = source
        self.url = url

    def get_source(self, fullname: str) -> str:
        return self.source

    def is_package(self, fullname: str) -> bool:
        return False

    def get_code(self, fullname: str):
        return compile(
            self.source,
            self.url,
            'exec',
            flags=ast.PyCF_ALLOW_TOP_LEVEL_AWAIT,
            dont_inherit=True,
        )

    def exec_module(self, module: ModuleType) -> None:
        code = self.get_code(module.__name__)
        if code.co_flags & inspect.CO_COROUTINE:
            raise ImportError(f"{self.url} uses top-level await; execute it with ExecutionEngine")
        exec(code, module.__dict__)


class ExecutionEngine:
    """
    Runs PreparedModules with the strategy the pipeline picked.

    Args:
        virtualization: Table backing the `require` given to hook code
    """

    def __init__(self, virtualization: Optional[ImportVirtualizationTable] = None):
        self.virtualization = virtualization or ImportVirtualizationTable()

    async def execute(self, prepared: PreparedModule, context: HookContext, entry: bool = False) -> Any:
        """
        Execute prepared code.

        Args:
            prepared: Output of TransformPipeline.prepare
            context: Context scoped to this module
            entry: True for the top-level entry module

        Returns:
            The module record (module.exports or the module object)

        Raises:
            ExecutionError: If the code fails to compile or run, or an entry
                            module has no usable exports
            HookImportError: If a dynamic import inside the module fails
        """
        try:
            if prepared.strategy is Strategy.NATIVE:
                return await self.run_native(prepared, context)
            return self.run_sandboxed(prepared, context, entry=entry)
        except HookLoaderError:
            raise
        except Exception as e:
            syntax = is_syntax_failure(e)
            details = {
                'strategy': prepared.strategy.value,
                'url': prepared.url,
                'is_syntax_error': syntax,
            }
            if isinstance(e, SyntaxError) and e.lineno:
                details['line'] = e.lineno
            raise ExecutionError(
                f"{type(e).__name__}: {e}",
                prepared.path,
                details=details,
                is_syntax_error=syntax,
            ) from e

    def build_environment(self, prepared: PreparedModule, context: HookContext) -> Dict[str, Any]:
        """Names every hook module can see, whichever strategy runs it"""
        path = prepared.path

        async def hook_import(specifier):
            load = context.helpers.load_module
            if load is None:
                raise HookImportError(
                    "dynamic import unavailable: helpers.load_module is not set",
                    path,
                    details={'specifier': str(specifier)},
                )
            try:
                return await load(str(specifier), path)
            except Exception as e:
                raise HookImportError(
                    f"failed to import {str(specifier)!r}: {e}",
                    path,
                    details={'specifier': str(specifier)},
                ) from e

        factory = context.create_element
        return {
            'require': self.virtualization.require_for(context),
            'context': context,
            IMPORT_FN_NAME: hook_import,
            IMPORTS_NAME: dict(prepared.imports),
            BINDING_FN_NAME: get_binding,
            DEFAULT_FN_NAME: default_binding,
            META_NAME: context.meta,
            '__jsx__': factory,
            '__jsxs__': factory,
            '__Fragment__': getattr(context.ui, 'Fragment', None),
            '__ui__': context.ui,
            '__helpers__': context.helpers,
            '__file_renderer__': context.file_renderer,
        }

    def run_sandboxed(self, prepared: PreparedModule, context: HookContext, entry: bool = False) -> Any:
        """Execute with injected require/module/exports/context"""
        exports = SimpleNamespace()
        module = SimpleNamespace(exports=exports, id=prepared.path, filename=prepared.path)

        namespace = self.build_environment(prepared, context)
        namespace.update({
            '__name__': module_name_for(prepared.path),
            '__file__': prepared.url,
            'module': module,
            'exports': exports,
        })

        register_source(prepared.url, prepared.code)
        exec(compile(prepared.code, prepared.url, 'exec', dont_inherit=True), namespace)

        record = module.exports
        if entry and not callable(get_binding(record, 'default', None)):
            if not is_usable_record(record):
                raise ExecutionError(
                    "module does not export a default function",
                    prepared.path,
                    details={'strategy': prepared.strategy.value, 'url': prepared.url},
                )
        return record

    async def run_native(self, prepared: PreparedModule, context: HookContext) -> ModuleType:
        """Execute as a real module with its own global namespace"""
        source = lower_exports(prepared.code)
        name = module_name_for(prepared.path)

        loader = HookSourceLoader(source, prepared.url)
        spec = importlib.util.spec_from_loader(name, loader, origin=prepared.url)
        module = importlib.util.module_from_spec(spec)
        module.__file__ = prepared.url
        module.__dict__.update(self.build_environment(prepared, context))

        register_source(prepared.url, source)
        code = loader.get_code(name)

        sys.modules[name] = module
        try:
            result = eval(code, module.__dict__)
            if code.co_flags & inspect.CO_COROUTINE:
                await result
        finally:
            sys.modules.pop(name, None)

        return module
