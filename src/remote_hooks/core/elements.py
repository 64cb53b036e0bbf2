"""
Element Factory

Minimal UI element descriptor constructor with the "automatic markup
runtime" calling convention: create(type, config, maybe_key).

Transformed markup calls this directly (as jsx/jsxs), and the loader uses
it to build the root element of an entry hook.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional

ELEMENT_MARKER = 'hook.element'

ElementCallback = Callable[[str, Dict[str, Any]], None]


@dataclass(frozen=True)
class ElementDescriptor:
    """Plain-data description of one UI element instance"""

    type: Any
    props: Dict[str, Any] = field(default_factory=dict)
    key: Optional[str] = None
    ref: Any = None
    element_type: Any = ELEMENT_MARKER


def probe_element_marker(ui: Any) -> Any:
    """
    Find the marker the UI library stamps on its own elements.

    Builds a throwaway element with the library's create_element and reads
    its element_type; libraries whose create_element doesn't accept
    (type, props) get ELEMENT_MARKER. Any other failure propagates.
    """
    create = getattr(ui, 'create_element', None)
    if not callable(create):
        return ELEMENT_MARKER
    try:
        sample = create('div', None)
    except TypeError:
        return ELEMENT_MARKER
    return getattr(sample, 'element_type', None) or ELEMENT_MARKER


class ElementFactory:
    """
    Builds ElementDescriptors and reports primitive tags.

    Args:
        marker: Value for ElementDescriptor.element_type
        on_element: Called as on_element(tag, props) for every element whose
                    type is a plain string
    """

    def __init__(self, marker: Any = ELEMENT_MARKER, on_element: Optional[ElementCallback] = None):
        self.marker = marker
        self.on_element = on_element

    def create(
        self,
        type: Any,
        props_config: Optional[Mapping[str, Any]] = None,
        maybe_key: Any = None,
    ) -> ElementDescriptor:
        """
        Create an element descriptor.

        Args:
            type: Tag name (str) or component reference
            props_config: Props including the optional 'key' and 'ref'
            maybe_key: Explicit key; wins over props_config['key']

        Returns:
            ElementDescriptor with 'key' and 'ref' removed from props
        """
        key = None
        ref = None
        props: Dict[str, Any] = {}

        for name, value in (props_config or {}).items():
            if name == 'key':
                if value is not None:
                    key = str(value)
            elif name == 'ref':
                ref = value
            else:
                props[name] = value

        if maybe_key is not None:
            key = str(maybe_key)

        if isinstance(type, str) and self.on_element is not None:
            self.on_element(type, props)

        return ElementDescriptor(
            type=type,
            props=props,
            key=key,
            ref=ref,
            element_type=self.marker,
        )

    __call__ = create


def make_element_factory(ui: Any = None, on_element: Optional[ElementCallback] = None) -> Optional[ElementFactory]:
    """
    Build an element factory backed by a UI library.

    Returns None when there's no UI library, so contexts without rendering
    can still execute modules that never create elements.
    """
    if ui is None:
        return None
    return ElementFactory(marker=probe_element_marker(ui), on_element=on_element)


class NotifyingUI:
    """
    Wraps a UI library so its own create_element reports primitive tags.

    Everything except create_element is delegated to the wrapped library.
    """

    def __init__(self, ui: Any, on_element: Optional[ElementCallback] = None):
        self._ui = ui
        self._on_element = on_element

    def create_element(self, type: Any, props: Optional[Mapping[str, Any]] = None, *children: Any) -> Any:
        if isinstance(type, str) and self._on_element is not None:
            self._on_element(type, dict(props) if props else None)
        return self._ui.create_element(type, props, *children)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._ui, name)
