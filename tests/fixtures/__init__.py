"""
Test fixtures for the hook loader

This package contains fixtures used for testing:
- Sample hook sources (hooks/client/*.py), served over HTTP by the
  integration tests
- FakeModuleHost, an in-memory stand-in for a requests.Session
"""

import os
from typing import Dict, List, Optional, Tuple, Union
from unittest.mock import Mock

# Path to fixtures directory
FIXTURES_DIR = os.path.dirname(__file__)
HOOKS_DIR = os.path.join(FIXTURES_DIR, 'hooks', 'client')

Body = Union[str, bytes, Tuple[int, Union[str, bytes], str]]


def make_response(status: int = 200, body: Union[str, bytes] = '', content_type: str = 'text/x-python'):
    """Mock of a requests.Response with the fields the fetch gateway reads"""
    response = Mock()
    response.status_code = status
    response.reason = {200: 'OK', 404: 'Not Found', 500: 'Internal Server Error'}.get(status, '')
    response.content = body.encode('utf-8') if isinstance(body, str) else body
    response.headers = {'content-type': content_type}
    return response


class FakeModuleHost:
    """
    Serves module sources from a dict.

    Values are source text (served 200 as text/x-python) or a
    (status, body, content_type) tuple. Unknown paths are 404.
    """

    def __init__(self, files: Optional[Dict[str, Body]] = None, host: str = 'modules.test'):
        self.host = host
        self.files: Dict[str, Body] = dict(files or {})
        self.session = Mock()
        self.session.get.side_effect = self._get

    def _get(self, url, headers=None, timeout=None):
        path = url[len(f"http://{self.host}"):]
        body = self.files.get(path)
        if body is None:
            return make_response(404, 'not found', 'text/plain')
        if isinstance(body, tuple):
            return make_response(*body)
        return make_response(200, body)

    @property
    def urls(self) -> List[str]:
        return [c.args[0] for c in self.session.get.call_args_list]

    def requested(self, path: str) -> int:
        """Number of GETs issued for a path"""
        return self.urls.count(f"http://{self.host}{path}")
