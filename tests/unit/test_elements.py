"""
Unit tests for the element factory

Elements are plain descriptors; rendering them is the UI library's job.
"""

from types import SimpleNamespace
from unittest.mock import Mock

import pytest


class TestCreateElement:
    """Test key, ref and props handling"""

    def test_key_from_config_is_stringified(self):
        from remote_hooks.core.elements import ElementFactory

        element = ElementFactory().create('li', {'key': 7, 'title': 'x'})

        assert element.key == '7'
        assert element.props == {'title': 'x'}

    def test_explicit_key_wins(self):
        from remote_hooks.core.elements import ElementFactory

        element = ElementFactory().create('li', {'key': 'config'}, 'explicit')

        assert element.key == 'explicit'
        assert 'key' not in element.props

    def test_no_key(self):
        from remote_hooks.core.elements import ElementFactory

        element = ElementFactory().create('li')

        assert element.key is None
        assert element.props == {}

    def test_ref_extracted(self):
        from remote_hooks.core.elements import ElementFactory

        ref = object()
        element = ElementFactory()('input', {'ref': ref, 'value': 1})

        assert element.ref is ref
        assert element.props == {'value': 1}

    def test_on_element_for_primitive_tags_only(self):
        """Only string types are reported, once each"""
        from remote_hooks.core.elements import ElementFactory

        seen = Mock()
        factory = ElementFactory(on_element=seen)

        def Component(**props):
            return None

        factory.create('span', {'id': 'a', 'key': 1})
        factory.create(Component, {'id': 'b'})

        seen.assert_called_once_with('span', {'id': 'a'})

    def test_on_element_errors_propagate(self):
        from remote_hooks.core.elements import ElementFactory

        def explode(tag, props):
            raise RuntimeError('observer failed')

        with pytest.raises(RuntimeError):
            ElementFactory(on_element=explode).create('div')


class TestElementFactoryConstruction:
    """Test building factories from a UI library"""

    def test_no_ui_gives_no_factory(self):
        from remote_hooks.core.elements import make_element_factory

        assert make_element_factory(None) is None

    def test_marker_probed_from_ui(self):
        """The factory stamps elements with the library's own marker"""
        from remote_hooks.core.elements import make_element_factory

        ui = SimpleNamespace(
            create_element=lambda type, props, *children: SimpleNamespace(element_type='lib.element'),
        )

        element = make_element_factory(ui).create('div')

        assert element.element_type == 'lib.element'

    def test_default_marker(self):
        from remote_hooks.core.elements import ELEMENT_MARKER, make_element_factory

        element = make_element_factory(SimpleNamespace()).create('div')

        assert element.element_type == ELEMENT_MARKER

    def test_incompatible_create_element_gets_default_marker(self):
        """A create_element with another signature falls back to the default"""
        from remote_hooks.core.elements import ELEMENT_MARKER, probe_element_marker

        ui = SimpleNamespace(create_element=lambda: None)

        assert probe_element_marker(ui) == ELEMENT_MARKER

    def test_ui_failures_propagate(self):
        """Only signature mismatches are tolerated while probing"""
        from remote_hooks.core.elements import probe_element_marker

        def create_element(type, props):
            raise RuntimeError('renderer not initialised')

        with pytest.raises(RuntimeError):
            probe_element_marker(SimpleNamespace(create_element=create_element))

    def test_notifying_ui(self):
        """Wrapped libraries report tags and delegate everything else"""
        from remote_hooks.core.elements import NotifyingUI

        library = Mock()
        library.Fragment = 'fragment'
        seen = Mock()
        ui = NotifyingUI(library, seen)

        ui.create_element('p', {'x': 1}, 'child')

        seen.assert_called_once_with('p', {'x': 1})
        library.create_element.assert_called_once_with('p', {'x': 1}, 'child')
        assert ui.Fragment == 'fragment'
