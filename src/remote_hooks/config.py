"""
Loader configuration

Reads hooks.tsv (key<TAB>value rows) to configure the hook loader.
Falls back to REMOTE_HOOKS_* environment variables, then defaults, for any
key the file doesn't set.
"""

import csv
import os
from pathlib import Path
from typing import Any, Dict, Optional

from .core.fetch import DEFAULT_EXTENSION, DEFAULT_INDEX_NAME
from .core.paths import DEFAULT_BASE_DIR

ENV_PREFIX = 'REMOTE_HOOKS_'

DEFAULTS: Dict[str, str] = {
    'host': 'localhost:8083',
    'protocol': 'http',
    'base_dir': DEFAULT_BASE_DIR,
    'timeout': '10',
    'extension': DEFAULT_EXTENSION,
    'index_name': DEFAULT_INDEX_NAME,
    'max_entries': '',
    'log_dir': '',
}


class LoaderConfig:
    """Load and manage loader configuration"""

    def __init__(self, config_file: str | Path = "hooks.tsv"):
        self.config_file = Path(config_file)
        self.values: Dict[str, str] = {}
        self._load()

    def _load(self):
        """Load configuration from TSV file, then fill gaps from env/defaults"""
        file_values: Dict[str, str] = {}

        if self.config_file.exists():
            with open(self.config_file, 'r', encoding='utf-8') as f:
                reader = csv.reader(
                    (line for line in f if line.strip() and not line.startswith('#')),
                    delimiter='\t'
                )
                for row in reader:
                    if len(row) < 2 or not row[0].strip():
                        continue
                    file_values[row[0].strip()] = row[1].strip()

        for key, default in DEFAULTS.items():
            if key in file_values:
                self.values[key] = file_values[key]
            else:
                self.values[key] = os.environ.get(ENV_PREFIX + key.upper(), default)

        if self.values['protocol'] not in ('http', 'https'):
            raise ValueError(f"Unsupported protocol in loader config: {self.values['protocol']!r}")

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    @property
    def host(self) -> str:
        return self.values['host']

    @property
    def protocol(self) -> str:
        return self.values['protocol']

    @property
    def base_dir(self) -> str:
        return self.values['base_dir']

    @property
    def timeout(self) -> float:
        return float(self.values['timeout'])

    @property
    def extension(self) -> str:
        return self.values['extension']

    @property
    def index_name(self) -> str:
        return self.values['index_name']

    @property
    def max_entries(self) -> Optional[int]:
        """None means no eviction"""
        value = self.values['max_entries']
        return int(value) if value else None

    @property
    def log_dir(self) -> Optional[Path]:
        value = self.values['log_dir']
        return Path(value) if value else None

    def get_url(self, path: str = "") -> str:
        """Get full URL for a module path on the configured host"""
        return f"{self.protocol}://{self.host}{path}"


# Global instance (lazy loaded)
_config = None


def get_config() -> LoaderConfig:
    """Get the global loader configuration"""
    global _config
    if _config is None:
        _config = LoaderConfig()
    return _config


def reload_config(config_file: str | Path = "hooks.tsv") -> LoaderConfig:
    """Reload configuration from file"""
    global _config
    _config = LoaderConfig(config_file)
    return _config
