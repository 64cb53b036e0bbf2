"""
Unit tests for loader configuration

Precedence per key: hooks.tsv, then REMOTE_HOOKS_* environment, then defaults.
"""

import pytest


class TestLoaderConfig:
    """Test reading hooks.tsv"""

    def test_defaults(self, tmp_path, monkeypatch):
        from remote_hooks.config import LoaderConfig

        monkeypatch.delenv('REMOTE_HOOKS_HOST', raising=False)
        monkeypatch.delenv('REMOTE_HOOKS_MAX_ENTRIES', raising=False)
        monkeypatch.delenv('REMOTE_HOOKS_LOG_DIR', raising=False)

        config = LoaderConfig(tmp_path / 'missing.tsv')

        assert config.host == 'localhost:8083'
        assert config.protocol == 'http'
        assert config.base_dir == '/hooks/client'
        assert config.timeout == 10.0
        assert config.extension == '.py'
        assert config.index_name == 'index.py'
        assert config.max_entries is None
        assert config.log_dir is None

    def test_file_values(self, tmp_path):
        from remote_hooks.config import LoaderConfig

        config_file = tmp_path / 'hooks.tsv'
        config_file.write_text(
            '# module host\n'
            'host\tcdn.test:9000\n'
            'timeout\t2.5\n'
            'max_entries\t100\n'
            f'log_dir\t{tmp_path}\n'
        )

        config = LoaderConfig(config_file)

        assert config.host == 'cdn.test:9000'
        assert config.timeout == 2.5
        assert config.max_entries == 100
        assert config.log_dir == tmp_path
        assert config.get_url('/a.py') == 'http://cdn.test:9000/a.py'

    def test_environment_fallback(self, tmp_path, monkeypatch):
        """Environment fills keys the file doesn't set"""
        from remote_hooks.config import LoaderConfig

        config_file = tmp_path / 'hooks.tsv'
        config_file.write_text('host\tfile.test\n')
        monkeypatch.setenv('REMOTE_HOOKS_HOST', 'env.test')
        monkeypatch.setenv('REMOTE_HOOKS_PROTOCOL', 'https')

        config = LoaderConfig(config_file)

        assert config.host == 'file.test'
        assert config.protocol == 'https'

    def test_bad_protocol(self, tmp_path):
        from remote_hooks.config import LoaderConfig

        config_file = tmp_path / 'hooks.tsv'
        config_file.write_text('protocol\tftp\n')

        with pytest.raises(ValueError):
            LoaderConfig(config_file)

    def test_reload_config(self, tmp_path):
        from remote_hooks import config as config_module

        config_file = tmp_path / 'hooks.tsv'
        config_file.write_text('host\treloaded.test\n')

        try:
            config = config_module.reload_config(config_file)

            assert config is config_module.get_config()
            assert config.host == 'reloaded.test'
        finally:
            config_module._config = None
