"""
Unit tests for module path resolution

Canonical paths are half of the cache key, so two specifiers addressing
the same resource must normalize to the same string.
"""

import pytest


class TestNormalize:
    """Test specifier normalization"""

    def test_relative_resolves_against_importer_directory(self):
        """./x resolves next to the importing module"""
        from remote_hooks.core.paths import normalize

        assert normalize('./x.py', '/pkg/a.jsx') == '/pkg/x.py'

    def test_parent_segments(self):
        """../ pops one directory per segment"""
        from remote_hooks.core.paths import normalize

        assert normalize('../lib/y.py', '/a/b/c.py') == '/a/lib/y.py'

    def test_popping_past_root_clamps(self):
        """Too many ../ segments stop at the root"""
        from remote_hooks.core.paths import normalize

        assert normalize('../../../x', '/a/b.py') == '/x'

    def test_absolute_is_collapsed(self):
        """Absolute specifiers only get their dot segments collapsed"""
        from remote_hooks.core.paths import normalize

        assert normalize('/a/./b/../c.py', '/ignored/z.py') == '/a/c.py'
        assert normalize('//a//b.py') == '/a/b.py'

    def test_bare_specifier_rooted_under_base_dir(self):
        """Bare names live under the application base directory"""
        from remote_hooks.core.paths import normalize

        assert normalize('ui-kit') == '/hooks/client/ui-kit'
        assert normalize('ui-kit', '/x/y.py', base_dir='/apps/demo') == '/apps/demo/ui-kit'

    def test_relative_without_usable_importer(self):
        """Relative specifiers fall back to the base dir"""
        from remote_hooks.core.paths import normalize

        assert normalize('./x.py') == '/hooks/client/x.py'
        assert normalize('./x.py', '/top.py') == '/hooks/client/x.py'

    def test_suffix_preserved(self):
        """Query and hash survive untouched"""
        from remote_hooks.core.paths import normalize

        assert normalize('./x.py?v=1#a', '/p/a.py') == '/p/x.py?v=1#a'
        assert normalize('./a/../x?q=../y', '/p/a.py') == '/p/x?q=../y'

    @pytest.mark.parametrize('specifier', [
        './x.py', '../../x', '/a/./b', 'name', '.', '..', '', '?', '#frag', '////',
    ])
    def test_idempotent(self, specifier):
        """Normalizing a normalized path changes nothing"""
        from remote_hooks.core.paths import normalize

        once = normalize(specifier, '/a/b/c.py')
        assert once.startswith('/')
        assert normalize(once, '/somewhere/else.py') == once

    def test_relative_and_absolute_forms_match(self):
        """Both ways of naming a module give one cache key"""
        from remote_hooks.core.paths import normalize

        assert normalize('./lib/../card.py', '/hooks/client/app.py') == normalize('/hooks/client/card.py')


class TestPathHelpers:
    """Test dirname and peer URL helpers"""

    def test_dirname(self):
        from remote_hooks.core.paths import dirname

        assert dirname('/a/b.py') == '/a'
        assert dirname('/x.py') == ''
        assert dirname('x') == ''

    def test_is_local(self):
        from remote_hooks.core.paths import is_local

        assert is_local('./a')
        assert is_local('../a')
        assert is_local('/a')
        assert not is_local('ui')
        assert not is_local('@hooks/helpers')

    def test_build_peer_url_single_slash(self):
        """Host and path are joined with exactly one slash"""
        from remote_hooks.core.paths import build_peer_url

        assert build_peer_url('http://h/', '/a') == 'http://h/a'
        assert build_peer_url('http://h', 'a') == 'http://h/a'
        assert build_peer_url('http://h', '/a') == 'http://h/a'
