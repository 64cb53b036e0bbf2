"""
Loader Errors

Every failure in the load pipeline is attributable to one stage.

Design:
- One exception class per pipeline stage
- Each error carries the phase, the module path and structured details
- str(error) is prefixed with the error kind and the offending path
- Errors remember whether they were already reported to diagnostics,
  so a failure that bubbles through several loads is reported once per load
"""

import re
from typing import Any, Dict, Optional

from .diagnostics import Phase


class HookLoaderError(Exception):
    """Base exception for hook loading errors"""

    phase = Phase.INIT
    kind = 'HookLoaderError'

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.path = path
        self.details = dict(details or {})
        self.reported = False
        super().__init__(self._format())

    def _format(self) -> str:
        if self.path:
            return f"{self.kind}: {self.path}: {self.message}"
        return f"{self.kind}: {self.message}"


class FetchError(HookLoaderError):
    """Raised when no fetch candidate returned usable source"""

    phase = Phase.FETCH
    kind = 'FetchError'

    def __init__(self, message, path=None, details=None, attempts=None):
        self.attempts = list(attempts or [])
        super().__init__(message, path, details)


class TransformError(HookLoaderError):
    """Raised when the pluggable transform fails or is missing"""

    phase = Phase.TRANSFORM
    kind = 'TransformError'


class ExecutionError(HookLoaderError):
    """Raised when module code throws or has no usable exports"""

    phase = Phase.EXECUTE
    kind = 'ExecutionError'

    def __init__(self, message, path=None, details=None, is_syntax_error=False):
        self.is_syntax_error = is_syntax_error
        super().__init__(message, path, details)


class HookImportError(HookLoaderError):
    """Raised when a static, dynamic or virtualized import can't be resolved"""

    phase = Phase.DISCOVER
    kind = 'ImportError'


class RenderError(HookLoaderError):
    """Raised when the entry module can't be turned into an element"""

    phase = Phase.RENDER
    kind = 'RenderError'


_SYNTAX_ERROR_TEXT = re.compile(
    r"SyntaxError|invalid syntax|unexpected (EOF|indent|token)|was never closed|unmatched",
    re.IGNORECASE,
)


def is_syntax_failure(error: BaseException) -> bool:
    """
    Classify an execution failure as broken code rather than a logic error.

    Syntax errors raised by compile() are recognised by type; anything else
    is judged from the error text, since transforms and nested loaders may
    re-wrap the original exception.
    """
    if isinstance(error, SyntaxError):
        return True
    return bool(_SYNTAX_ERROR_TEXT.search(f"{type(error).__name__}: {error}"))
