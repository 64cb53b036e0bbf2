"""
Path Resolver

Turns a module specifier plus the path of the importing module into one
canonical absolute module path.

Design principles:
- Pure functions: no I/O, no exceptions for any string input
- Canonical paths always start with '/' and contain no '.' or '..' segments
- Popping past the root clamps to the root
- Query/hash suffixes are split off, kept verbatim and re-attached

Two specifiers addressing the same resource must produce byte-identical
paths, because the canonical path is half of the cache key.
"""

from typing import List, Optional, Tuple

DEFAULT_BASE_DIR = '/hooks/client'


def split_suffix(specifier: str) -> Tuple[str, str]:
    """Split 'a/b.py?v=1#x' into ('a/b.py', '?v=1#x')"""
    cuts = [i for i in (specifier.find('?'), specifier.find('#')) if i >= 0]
    if not cuts:
        return specifier, ''
    cut = min(cuts)
    return specifier[:cut], specifier[cut:]


def collapse(path: str) -> str:
    """
    Collapse '.' and '..' segments of a path into an absolute path.

    Args:
        path: Slash-separated path, absolute or not

    Returns:
        Absolute path with no empty, '.' or '..' segments
    """
    resolved: List[str] = []
    for part in path.split('/'):
        if part in ('', '.'):
            continue
        if part == '..':
            if resolved:
                resolved.pop()
            continue
        resolved.append(part)
    return '/' + '/'.join(resolved)


def dirname(path: str) -> str:
    """Directory portion of a module path ('' when there is none)"""
    index = path.rfind('/')
    if index <= 0:
        return ''
    return path[:index]


def is_relative(specifier: str) -> bool:
    return specifier in ('.', '..') or specifier.startswith(('./', '../'))


def is_local(specifier: str) -> bool:
    """Relative or absolute local path (as opposed to a bare package name)"""
    return specifier.startswith('/') or is_relative(specifier)


def normalize(
    specifier: str,
    from_path: Optional[str] = None,
    base_dir: str = DEFAULT_BASE_DIR,
) -> str:
    """
    Resolve a specifier to a canonical module path.

    Args:
        specifier: './x.py', '../lib/y', '/abs/z.py' or a bare 'name'
        from_path: Path of the importing module (relative specifiers
                   resolve against its directory)
        base_dir: Application base directory for bare specifiers and for
                  relative specifiers without a usable from_path

    Returns:
        Canonical absolute module path

    Examples:
        >>> normalize('./x.py', '/pkg/a.jsx')
        '/pkg/x.py'
        >>> normalize('../../../x', '/a/b.py')
        '/x'
        >>> normalize('ui-kit', None)
        '/hooks/client/ui-kit'
    """
    path, suffix = split_suffix(specifier)

    if path.startswith('/'):
        joined = path
    elif is_relative(path):
        base = dirname(from_path or '') or base_dir
        joined = f"{base}/{path}"
    else:
        joined = f"{base_dir}/{path}"

    return collapse(joined) + suffix


def build_peer_url(host: str, path: str) -> str:
    """Join a host and a path without doubling the slash between them"""
    if host.endswith('/') and path.startswith('/'):
        return host + path[1:]
    if host.endswith('/') or path.startswith('/'):
        return host + path
    return f"{host}/{path}"
