"""
Fetch Gateway

Retrieves raw module source over HTTP with extension fallback.

Design:
- Candidates are tried in order: literal path, path + extension, the
  index file of the enclosing directory, then the index file inside the
  path itself (all but the first only when the final segment has no
  extension)
- A non-2xx status, an HTML content-type or a transport error means
  "try the next candidate"; only exhausting every candidate is a failure
- The failure surfaces the last observed error, and carries every attempt
  for diagnostics
- requests is blocking, so each GET runs in a worker thread
- No caching here; that's the loader's job
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import requests

from .errors import FetchError
from .paths import dirname, split_suffix

DEFAULT_EXTENSION = '.py'
DEFAULT_INDEX_NAME = 'index.py'


@dataclass(frozen=True)
class FetchResult:
    """Source text and the URL it was actually served from"""

    code: str
    url: str


def build_attempts(
    path: str,
    extension: str = DEFAULT_EXTENSION,
    index_name: str = DEFAULT_INDEX_NAME,
) -> List[str]:
    """
    Build the ordered list of candidate paths for a module path.

    Query and hash suffixes are preserved on every candidate.

    Examples:
        >>> build_attempts('/a/b')
        ['/a/b', '/a/b.py', '/a/index.py', '/a/b/index.py']
        >>> build_attempts('/a/b.py?v=2')
        ['/a/b.py?v=2']
    """
    base, suffix = split_suffix(path)
    last = base.rsplit('/', 1)[-1]

    attempts = [base + suffix]
    if '.' not in last:
        attempts.append(base + extension + suffix)
        attempts.append(dirname(base) + '/' + index_name + suffix)
        own_index = base.rstrip('/') + '/' + index_name + suffix
        if own_index not in attempts:
            attempts.append(own_index)
    return attempts


class FetchGateway:
    """
    HTTP retrieval of module source.

    Args:
        host: 'host:port' the modules are served from
        protocol: 'http' or 'https'
        session: requests-compatible object with a get() method
                 (default: a new requests.Session)
        timeout: Per-request timeout in seconds
        extension: Extension tried for extension-less paths
        index_name: Index file tried for extension-less paths
    """

    def __init__(
        self,
        host: str,
        protocol: str = 'http',
        session: Any = None,
        timeout: float = 10.0,
        extension: str = DEFAULT_EXTENSION,
        index_name: str = DEFAULT_INDEX_NAME,
    ):
        self.host = host
        self.protocol = protocol
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.extension = extension
        self.index_name = index_name

    def url_for(self, path: str) -> str:
        return f"{self.protocol}://{self.host}{path}"

    async def fetch(self, path: str, headers: Optional[Dict[str, str]] = None) -> FetchResult:
        """
        Fetch the source of a canonical module path.

        Args:
            path: Canonical module path
            headers: Extra request headers

        Returns:
            FetchResult for the first candidate that succeeded

        Raises:
            FetchError: If every candidate failed
        """
        attempts: List[Tuple[str, str]] = []

        for candidate in build_attempts(path, self.extension, self.index_name):
            url = self.url_for(candidate)
            try:
                response = await asyncio.to_thread(
                    self.session.get, url, headers=headers or None, timeout=self.timeout
                )
            except requests.RequestException as e:
                attempts.append((url, f"{type(e).__name__}: {e}"))
                continue

            reason = self._reject_reason(response)
            if reason is not None:
                attempts.append((url, reason))
                continue

            try:
                code = response.content.decode('utf-8')
            except UnicodeDecodeError as e:
                attempts.append((url, f"body is not UTF-8 ({e.reason})"))
                continue

            return FetchResult(code=code, url=url)

        last_url, last_reason = attempts[-1]
        raise FetchError(
            f"{last_url} {last_reason}",
            path=path,
            details={'attempts': [{'url': u, 'reason': r} for u, r in attempts]},
            attempts=attempts,
        )

    def _reject_reason(self, response: Any) -> Optional[str]:
        """Why a response can't be used as source (None when it can)"""
        status = response.status_code
        if not 200 <= status < 300:
            return f"-> {status} {getattr(response, 'reason', '') or ''}".rstrip()

        content_type = (response.headers.get('content-type') or '').lower()
        if 'text/html' in content_type:
            return f"returned HTML (content-type={content_type})"

        return None
