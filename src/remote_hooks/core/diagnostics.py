"""
Diagnostics

Phase-tagged failure records handed to a host-supplied sink.

Records are emitted, never stored. The sink is only invoked on failure.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional


class Phase(str, Enum):
    """Pipeline stage a failure is attributed to"""

    INIT = 'init'
    DISCOVER = 'discover'
    FETCH = 'fetch'
    TRANSFORM = 'transform'
    EXECUTE = 'execute'
    RENDER = 'render'


@dataclass
class DiagnosticRecord:
    """One failure report"""

    phase: Phase
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        record = {'phase': self.phase.value}
        if self.error is not None:
            record['error'] = self.error
        if self.details:
            record['details'] = dict(self.details)
        return record


DiagnosticsSink = Callable[[DiagnosticRecord], None]


def null_sink(record: DiagnosticRecord) -> None:
    """Default sink: drop the record"""


def report(sink: DiagnosticsSink, error: BaseException, **details: Any) -> None:
    """
    Report a loader error to the sink once.

    Args:
        sink: Diagnostics callback
        error: The failure (a HookLoaderError or anything else)
        **details: Extra fields merged over the error's own details
    """
    if getattr(error, 'reported', False):
        return

    phase = getattr(error, 'phase', Phase.INIT)
    merged = dict(getattr(error, 'details', None) or {})
    path = getattr(error, 'path', None)
    if path:
        merged.setdefault('path', path)
    merged.update({k: v for k, v in details.items() if v is not None})

    sink(DiagnosticRecord(phase=phase, error=str(error), details=merged))
    error.reported = True
