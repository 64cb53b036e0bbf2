"""
Transform Pipeline

Turns fetched hook source into code one of the execution strategies can run.

Steps, strictly in this order (later steps assume the earlier rewrites):
1. Static import resolution - ES-style import lines naming local modules
   are loaded through the loader and rewritten to plain bindings drawn from
   the already-resolved records; reserved specifiers bind through `require`
2. Pluggable transform - host-supplied (code, path) -> code, run when
   configured or when the source looks like markup/typed code
3. Dynamic import rewriting - `import(` becomes a bound loader call,
   `import.meta` becomes the module's meta record
4. Strategy tagging - module-shaped code (export / dynamic import) runs
   natively, everything else in the sandbox

Rewrites keep every statement on its original line so tracebacks from
executed hooks point at the right source line.
"""

import asyncio
import inspect
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

from .context import HookContext
from .errors import HookImportError, TransformError
from .paths import is_local
from .virtualization import ImportVirtualizationTable, has_binding

Loader = Callable[[str, str], Awaitable[Any]]
Transform = Callable[[str, str], Any]

IMPORTS_NAME = '__hook_imports__'
IMPORT_FN_NAME = '__hook_import__'
BINDING_FN_NAME = '__hook_binding__'
DEFAULT_FN_NAME = '__hook_default__'
META_NAME = '__meta__'

TRANSFORM_EXTENSIONS = ('.jsx', '.tsx', '.ts')

STATIC_IMPORT = re.compile(
    r"""^(?P<indent>[ \t]*)import[ \t]+
        (?:(?P<clause>[^"'\n]+?)[ \t]+from[ \t]+)?
        (?P<quote>["'])(?P<spec>[^"'\n]+)(?P=quote)
        [ \t]*;?[ \t]*$""",
    re.MULTILINE | re.VERBOSE,
)
# String literals and comments, scanned left to right so quotes inside one
# never open another; only triple-quoted spans can hide whole import lines
LITERAL = re.compile(
    r'(?P<triple>"""(?:\\.|[^\\])*?"""'
    r"|'''(?:\\.|[^\\])*?''')"
    r'|"(?:\\.|[^\\"\n])*"'
    r"|'(?:\\.|[^\\'\n])*'"
    r'|#[^\n]*',
    re.DOTALL,
)
IDENTIFIER = re.compile(r'^[A-Za-z_]\w*$')
NAMESPACE_CLAUSE = re.compile(r'^\*\s*as\s+([A-Za-z_]\w*)$')

PRAGMA = re.compile(r'@use-jsx|@use-ts|@jsx\s+h', re.MULTILINE)
MARKUP = re.compile(r'<([A-Za-z][\w.]*)(\s+[\w-]+\s*=|\s*/?>)')

DYNAMIC_IMPORT = re.compile(r'(?<![\w.])import\s*\(')
FROM_IMPORT_PREFIX = re.compile(r'^\s*from\s+\S+\s+$')
IMPORT_META_URL = re.compile(r'(?<![\w.])import\.meta\.url\b')
IMPORT_META = re.compile(r'(?<![\w.])import\.meta\b')

MODULE_SHAPED = re.compile(r'^export\b', re.MULTILINE)


class Strategy(str, Enum):
    SANDBOXED = 'sandboxed'
    NATIVE = 'native'


@dataclass
class ImportDeclaration:
    """One static import statement found in raw source"""

    statement: str
    indent: str
    specifier: str
    default: Optional[str] = None
    named: List[Tuple[str, str]] = field(default_factory=list)
    namespace: Optional[str] = None
    start: int = 0
    end: int = 0


@dataclass
class PreparedModule:
    """Executable code plus everything the engine needs to run it"""

    code: str
    strategy: Strategy
    path: str
    url: str
    imports: Dict[str, Any] = field(default_factory=dict)
    transformed: bool = False


def parse_import_clause(clause: str, path: Optional[str] = None):
    """
    Parse the binding clause of an import statement.

    Args:
        clause: Text between 'import' and 'from' ('' for side-effect imports)

    Returns:
        (default_name, [(imported, local), ...], namespace_name)

    Raises:
        HookImportError: If the clause is malformed
    """
    default = None
    named: List[Tuple[str, str]] = []
    namespace = None

    rest = clause.strip()
    if not rest:
        return default, named, namespace

    brace = rest.find('{')
    if brace >= 0:
        if not rest.endswith('}'):
            raise HookImportError(f"malformed import clause: {clause!r}", path)
        head = rest[:brace].strip().rstrip(',').strip()
        for item in rest[brace + 1:-1].split(','):
            item = item.strip()
            if not item:
                continue
            parts = item.split()
            if len(parts) == 1:
                imported = local = parts[0]
            elif len(parts) == 3 and parts[1] == 'as':
                imported, local = parts[0], parts[2]
            else:
                raise HookImportError(f"malformed import binding: {item!r}", path)
            if not (IDENTIFIER.match(imported) and IDENTIFIER.match(local)):
                raise HookImportError(f"malformed import binding: {item!r}", path)
            named.append((imported, local))
        rest = head

    for part in [p.strip() for p in rest.split(',') if p.strip()]:
        star = NAMESPACE_CLAUSE.match(part)
        if star:
            namespace = star.group(1)
        elif IDENTIFIER.match(part) and default is None:
            default = part
        else:
            raise HookImportError(f"malformed import clause: {clause!r}", path)

    return default, named, namespace


def string_spans(code: str) -> List[Tuple[int, int]]:
    """(start, end) offsets of every triple-quoted string in the source"""
    return [m.span() for m in LITERAL.finditer(code) if m.group('triple')]


def find_static_imports(code: str, path: Optional[str] = None) -> List[ImportDeclaration]:
    """Find every ES-style import line in the source, outside string literals"""
    spans = string_spans(code)
    found = []
    for match in STATIC_IMPORT.finditer(code):
        if any(start <= match.start() < end for start, end in spans):
            continue
        default, named, namespace = parse_import_clause(match.group('clause') or '', path)
        found.append(ImportDeclaration(
            statement=match.group(0),
            indent=match.group('indent'),
            specifier=match.group('spec'),
            default=default,
            named=named,
            namespace=namespace,
            start=match.start(),
            end=match.end(),
        ))
    return found


def render_bindings(decl: ImportDeclaration, source: str, strict: bool) -> str:
    """
    Build the single-line replacement for one import statement.

    Args:
        decl: The parsed import
        source: Python expression evaluating to the resolved record
        strict: Named bindings must exist (local modules) or bind None
                (virtualized capabilities)
    """
    statements = []
    if decl.namespace:
        statements.append(f"{decl.namespace} = {source}")
    if decl.default:
        statements.append(f"{decl.default} = {DEFAULT_FN_NAME}({source})")
    for imported, local in decl.named:
        if strict:
            statements.append(f"{local} = {BINDING_FN_NAME}({source}, {imported!r})")
        else:
            statements.append(f"{local} = {BINDING_FN_NAME}({source}, {imported!r}, None)")
    if not statements:
        statements.append('pass')
    return decl.indent + '; '.join(statements)


def needs_transform(code: str, path: str) -> bool:
    """Heuristic: does this source contain markup or typed syntax?"""
    base = path.split('?', 1)[0].split('#', 1)[0]
    return bool(
        PRAGMA.search(code)
        or MARKUP.search(code)
        or base.endswith(TRANSFORM_EXTENSIONS)
    )


def rewrite_dynamic_imports(code: str, url: str) -> str:
    """
    Route import(...) calls and import.meta through the module's bindings.

    `from pkg import (a, b)` is Python syntax, not a dynamic import, and is
    left untouched.
    """
    code = IMPORT_META_URL.sub(lambda m: repr(url), code)
    code = IMPORT_META.sub(META_NAME, code)

    def replace(match):
        line_start = code.rfind('\n', 0, match.start()) + 1
        if FROM_IMPORT_PREFIX.match(code[line_start:match.start()]):
            return match.group(0)
        return f"{IMPORT_FN_NAME}("

    return DYNAMIC_IMPORT.sub(replace, code)


def choose_strategy(code: str) -> Strategy:
    if MODULE_SHAPED.search(code) or f"{IMPORT_FN_NAME}(" in code:
        return Strategy.NATIVE
    return Strategy.SANDBOXED


class TransformPipeline:
    """
    Prepares raw hook source for execution.

    Args:
        transform: Optional host transform, (code, path) -> code; may be
                   async and may return a mapping with 'code'/'error'
        virtualization: Table deciding which specifiers are reserved
    """

    def __init__(
        self,
        transform: Optional[Transform] = None,
        virtualization: Optional[ImportVirtualizationTable] = None,
    ):
        self.transform = transform
        self.virtualization = virtualization or ImportVirtualizationTable()

    async def prepare(
        self,
        raw_code: str,
        path: str,
        context: HookContext,
        load: Optional[Loader] = None,
        url: Optional[str] = None,
    ) -> PreparedModule:
        """
        Run all pipeline steps over one module's source.

        Args:
            raw_code: Fetched source
            path: Canonical module path
            context: Context of the module being prepared
            load: async (specifier, from_path) -> record, used for static
                  imports (default: context.helpers.load_module)
            url: URL the source was fetched from

        Returns:
            PreparedModule

        Raises:
            HookImportError: If a static import can't be resolved
            TransformError: If the transform step fails
        """
        url = url or path
        load = load or context.helpers.load_module

        code, imports = await self.resolve_static_imports(raw_code, path, load)

        transformed = False
        if self.transform is not None or needs_transform(code, path):
            code = await self.run_transform(code, path)
            transformed = True

        code = rewrite_dynamic_imports(code, url)

        return PreparedModule(
            code=code,
            strategy=choose_strategy(code),
            path=path,
            url=url,
            imports=imports,
            transformed=transformed,
        )

    async def resolve_static_imports(
        self,
        code: str,
        path: str,
        load: Optional[Loader],
    ) -> Tuple[str, Dict[str, Any]]:
        """Load local static imports and rewrite every import line to bindings"""
        declarations = find_static_imports(code, path)
        if not declarations:
            return code, {}

        local = []
        for decl in declarations:
            if is_local(decl.specifier) and decl.specifier not in local:
                local.append(decl.specifier)

        if local and load is None:
            raise HookImportError(
                f"no loader available for static imports {local}",
                path,
            )

        results = await asyncio.gather(
            *(load(spec, path) for spec in local),
            return_exceptions=True,
        )

        imports: Dict[str, Any] = {}
        for spec, result in zip(local, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                raise HookImportError(
                    f"failed to import {spec!r}: {result}",
                    path,
                    details={
                        'specifier': spec,
                        'cause_phase': getattr(getattr(result, 'phase', None), 'value', None),
                    },
                ) from result
            imports[spec] = result

        rewritten = code
        for decl in reversed(declarations):
            if decl.specifier in imports:
                record = imports[decl.specifier]
                for imported, _ in decl.named:
                    if not has_binding(record, imported):
                        raise HookImportError(
                            f"cannot import name {imported!r} from {decl.specifier!r}",
                            path,
                            details={'specifier': decl.specifier, 'name': imported},
                        )
                source = f"{IMPORTS_NAME}[{decl.specifier!r}]"
                replacement = render_bindings(decl, source, strict=True)
            else:
                source = f"require({decl.specifier!r})"
                replacement = render_bindings(decl, source, strict=False)
            rewritten = rewritten[:decl.start] + replacement + rewritten[decl.end:]

        return rewritten, imports

    async def run_transform(self, code: str, path: str) -> str:
        """
        Invoke the pluggable transform.

        Raises:
            TransformError: On any failure, empty output or when markup
                            source arrives with no transform configured
        """
        if self.transform is None:
            raise TransformError(
                "source needs a transform but none is configured",
                path,
            )

        try:
            output = self.transform(code, path)
            if inspect.isawaitable(output):
                output = await output
        except TransformError:
            raise
        except Exception as e:
            raise TransformError(
                f"{type(e).__name__}: {e}",
                path,
                details={'input_length': len(code)},
            ) from e

        if isinstance(output, Mapping):
            if output.get('error'):
                raise TransformError(str(output['error']), path)
            output = output.get('code')

        if not isinstance(output, str):
            raise TransformError(
                f"transform returned unexpected type: {type(output).__name__}",
                path,
            )
        if not output.strip():
            raise TransformError("transform returned empty output", path)

        return output
