"""
Loader Log

Each loader logs to itself (not to an external logging system).

Design:
- Logs stored in TSV files (human-readable, grep-able)
- Append-only (immutable history)
- Each loader has its own log directory: logs/{loader_id}/log.tsv
- Log rotation when file exceeds size limit
- Query logs with filters (level, custom fields)

What gets logged: cache hits and misses, coalesced waits, fetches and
every failure with its phase. Successful loads are one INFO line each.
"""

import csv
import hashlib
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

# Fields every loader writes; declared up front so the header covers them
DEFAULT_FIELDS = ['entry_id', 'timestamp', 'level', 'message', 'event', 'path', 'phase', 'url', 'strategy']


class LoaderLog:
    """
    Self-logging for a hook loader.

    Each loader has its own log file stored in:
    logs/{loader_id}/log.tsv
    """

    def __init__(
        self,
        loader_id: str,
        base_dir: Path | str,
        max_log_size: Optional[int] = None,
    ):
        """
        Initialize the loader log.

        Args:
            loader_id: ID of the loader (e.g., the host it loads from)
            base_dir: Base directory for log storage
            max_log_size: Maximum log file size in bytes before rotation
                         (default: 10MB)
        """
        self.loader_id = loader_id
        self.base_dir = Path(base_dir)
        self.max_log_size = max_log_size or (10 * 1024 * 1024)

        self.log_dir = self.base_dir / 'logs' / _safe_dir_name(loader_id)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.log_file = self.log_dir / 'log.tsv'

    def log(self, level: str, message: str, **kwargs) -> None:
        """
        Append one entry.

        Args:
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            message: Log message
            **kwargs: Additional fields to log (path, phase, url, etc.)
        """
        self._rotate_if_needed()

        timestamp = datetime.now().isoformat()
        entry = {
            'entry_id': self._generate_entry_id(timestamp, level, message),
            'timestamp': timestamp,
            'level': level,
            'message': message,
            **kwargs,
        }

        # Don't log empty fields
        entry = {k: v for k, v in entry.items() if v is not None}

        fieldnames = self._get_fieldnames()
        for key in entry.keys():
            if key not in fieldnames:
                fieldnames.append(key)

        is_new_file = not self.log_file.exists()

        with open(self.log_file, 'a', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames, delimiter='\t')

            if is_new_file:
                writer.writeheader()

            writer.writerow(entry)

    def debug(self, message: str, **kwargs) -> None:
        self.log('DEBUG', message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self.log('INFO', message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self.log('WARNING', message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self.log('ERROR', message, **kwargs)

    def get_logs(
        self,
        level: Optional[Union[str, List[str]]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        **filters,
    ) -> List[Dict[str, Any]]:
        """
        Get log entries, oldest first.

        Args:
            level: Filter by level (string or list of strings)
            limit: Maximum number of entries to return
            offset: Number of entries to skip
            **filters: Additional filters (e.g., path='/hooks/client/a.py')

        Returns:
            List of log entries (dictionaries)
        """
        files = sorted(self.log_dir.glob('log-*.tsv'))
        if self.log_file.exists():
            files.append(self.log_file)

        entries = []
        for log_file in files:
            with open(log_file, 'r', newline='') as f:
                reader = csv.DictReader(f, delimiter='\t')
                for row in reader:
                    entries.append(row)

        if level is not None:
            if isinstance(level, str):
                level = [level]
            entries = [e for e in entries if e.get('level') in level]

        for key, value in filters.items():
            entries = [e for e in entries if e.get(key) == value]

        if offset > 0:
            entries = entries[offset:]

        if limit is not None:
            entries = entries[:limit]

        return entries

    def _get_fieldnames(self) -> List[str]:
        """Get existing fieldnames from log file"""
        if not self.log_file.exists():
            return list(DEFAULT_FIELDS)

        with open(self.log_file, 'r', newline='') as f:
            reader = csv.DictReader(f, delimiter='\t')
            return list(reader.fieldnames or DEFAULT_FIELDS)

    def _rotate_if_needed(self) -> None:
        """Rotate log file if it exceeds max size"""
        if not self.log_file.exists():
            return

        if self.log_file.stat().st_size < self.max_log_size:
            return

        # Rotate: rename current log to log-TIMESTAMP.tsv
        timestamp = datetime.now().strftime('%Y%m%d-%H%M%S-%f')
        self.log_file.rename(self.log_dir / f'log-{timestamp}.tsv')

        # Next log() call will create new log.tsv with header

    def _generate_entry_id(self, timestamp: str, level: str, message: str) -> str:
        content = f"{timestamp}:{self.loader_id}:{level}:{message}"
        return hashlib.sha256(content.encode()).hexdigest()[:16]


def _safe_dir_name(loader_id: str) -> str:
    """'localhost:8083' -> 'localhost_8083'"""
    return ''.join(c if c.isalnum() or c in '-_.' else '_' for c in loader_id) or 'loader'
