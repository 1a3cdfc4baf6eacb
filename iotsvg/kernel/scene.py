"""
IoT SVG Kernel — Scene Graph

The live element tree that render scripts mutate, backed by lxml.

The runtime depends only on the capability surface defined here:
  Scene       parse, query by tb:tag, natural bounding box, size, scale,
              container attachment, serialization
  SvgElement  attribute get/set, children, text, font, fill, listeners,
              animation

Element wrappers are cached per node, so listeners registered on an element
survive re-querying it.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Protocol

from lxml import etree

from iotsvg.kernel.types import NAMESPACE_PREFIX, NAMESPACE_URI, TAG_ATTRIBUTE

SVG_NAMESPACE = "http://www.w3.org/2000/svg"
XLINK_NAMESPACE = "http://www.w3.org/1999/xlink"

KNOWN_PREFIXES: dict[str, str] = {
    NAMESPACE_PREFIX: NAMESPACE_URI,
    "xlink": XLINK_NAMESPACE,
    "svg": SVG_NAMESPACE,
}

_LENGTH_PATTERN = re.compile(r"^\s*(-?\d+(?:\.\d+)?|-?\.\d+)\s*(px)?\s*$")

_UNSET = object()


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------


@dataclass
class Box:
    """Axis-aligned bounding box."""

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


def parse_length(value: str | None) -> float | None:
    """Parse an absolute SVG length ("120", "120px"). Relative units → None."""
    if value is None:
        return None
    match = _LENGTH_PATTERN.match(value)
    if not match:
        return None
    return float(match.group(1))


def parse_view_box(value: str | None) -> Box | None:
    if not value:
        return None
    parts = value.replace(",", " ").split()
    if len(parts) != 4:
        return None
    try:
        x, y, width, height = (float(p) for p in parts)
    except ValueError:
        return None
    return Box(x, y, width, height)


def format_number(value: float) -> str:
    """Render a float without a trailing .0 (200.0 → "200")."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


# ---------------------------------------------------------------------------
# Styles
# ---------------------------------------------------------------------------


def parse_style(style: str | None) -> dict[str, str]:
    result: dict[str, str] = {}
    for declaration in (style or "").split(";"):
        if ":" not in declaration:
            continue
        name, value = declaration.split(":", 1)
        if name.strip():
            result[name.strip()] = value.strip()
    return result


def format_style(style: dict[str, str]) -> str:
    return "; ".join(f"{name}: {value}" for name, value in style.items())


# ---------------------------------------------------------------------------
# Animation
# ---------------------------------------------------------------------------


class Animation:
    """
    Time-based change runner returned by SvgElement.animate().

    Queued changes are applied together once duration + delay milliseconds
    have elapsed on the running event loop, or immediately on finish().
    Outside an event loop changes apply as they are queued.
    """

    def __init__(self, element: SvgElement, duration: float, delay: float = 0) -> None:
        self.element = element
        self.duration = duration
        self.delay = delay
        self.finished = False
        self._changes: list[Callable[[], None]] = []
        self._callbacks: list[Callable[[], None]] = []
        self._handle: asyncio.TimerHandle | None = None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            self._handle = loop.call_later(max(duration + delay, 0) / 1000, self.finish)

    def attr(self, name: str | dict[str, Any], value: Any = None) -> Animation:
        if isinstance(name, dict):
            self._queue(lambda: self.element.attr(name))
        else:
            self._queue(lambda: self.element.attr(name, value))
        return self

    def fill(self, color: str) -> Animation:
        self._queue(lambda: self.element.fill(color))
        return self

    def after(self, callback: Callable[[], None]) -> Animation:
        if self.finished:
            callback()
        else:
            self._callbacks.append(callback)
        return self

    def finish(self) -> None:
        """Apply every pending change now."""
        if self.finished:
            return
        self.finished = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        for change in self._changes:
            change()
        self._changes.clear()
        for callback in self._callbacks:
            callback()
        self._callbacks.clear()
        self.element._animations.discard(self)

    def _queue(self, change: Callable[[], None]) -> None:
        if self.finished or self._handle is None:
            change()
        else:
            self._changes.append(change)


class Timeline:
    """The running animations of one element."""

    def __init__(self, element: SvgElement) -> None:
        self.element = element

    def finish(self) -> None:
        for animation in list(self.element._animations):
            animation.finish()


# ---------------------------------------------------------------------------
# Elements
# ---------------------------------------------------------------------------


class SvgElement:
    """Capability wrapper around one lxml node."""

    def __init__(self, node: etree._Element, scene: Scene) -> None:
        self.node = node
        self.scene = scene
        self._listeners: dict[str, list[Callable[[Any], None]]] = {}
        self._animations: set[Animation] = set()

    def __repr__(self) -> str:
        return f"SvgElement({self.type!r}, id={self.node.get('id')!r})"

    @property
    def type(self) -> str:
        """Local tag name ("text", "tspan", "rect", ...)."""
        return etree.QName(self.node).localname

    # -- attributes --

    def attr(self, name: str | dict[str, Any] | None = None, value: Any = _UNSET) -> Any:
        """
        attr()            → all attributes
        attr(name)        → one attribute (None if missing)
        attr(name, value) → set; value None removes it
        attr(mapping)     → set several
        Setters return the element for chaining.
        """
        if name is None:
            return dict(self.node.attrib)
        if isinstance(name, dict):
            for key, item in name.items():
                self._set(key, item)
            return self
        if value is _UNSET:
            return self.node.get(self._qualify(name))
        self._set(name, value)
        return self

    def _set(self, name: str, value: Any) -> None:
        key = self._qualify(name)
        if value is None:
            self.node.attrib.pop(key, None)
        else:
            self.node.set(key, value if isinstance(value, str) else _attribute_text(value))

    def _qualify(self, name: str) -> str:
        if ":" not in name:
            return name
        prefix, local = name.split(":", 1)
        uri = self.node.nsmap.get(prefix) or KNOWN_PREFIXES.get(prefix)
        if uri is None:
            return name
        return f"{{{uri}}}{local}"

    # -- tree --

    def children(self) -> list[SvgElement]:
        return [self.scene.wrap(child) for child in self.node if isinstance(child.tag, str)]

    def parent(self) -> SvgElement | None:
        parent = self.node.getparent()
        return self.scene.wrap(parent) if parent is not None else None

    # -- content --

    def text(self, value: Any = _UNSET) -> Any:
        """Get the text content, or replace it (children are dropped)."""
        if value is _UNSET:
            return "".join(self.node.itertext())
        for child in list(self.node):
            self.node.remove(child)
        self.node.text = "" if value is None else str(value)
        return self

    def font(self, family: str | dict[str, Any] | None = None, size: Any = None,
             weight: Any = None, style: Any = None) -> SvgElement:
        if isinstance(family, dict):
            return self.font(**family)
        for name, value in (
            ("font-family", family),
            ("font-size", size),
            ("font-weight", weight),
            ("font-style", style),
        ):
            if value is not None:
                self._set(name, value)
        return self

    def fill(self, color: str | None = None) -> Any:
        if color is None:
            return self.node.get("fill")
        self._set("fill", color)
        return self

    # -- events --

    def on(self, trigger: str, handler: Callable[[Any], None]) -> SvgElement:
        self._listeners.setdefault(trigger, []).append(handler)
        return self

    def off(self, trigger: str) -> SvgElement:
        self._listeners.pop(trigger, None)
        return self

    def listeners(self, trigger: str) -> list[Callable[[Any], None]]:
        return list(self._listeners.get(trigger, []))

    def fire(self, trigger: str, event: Any = None) -> None:
        """Deliver a host event (e.g. a click) to this element's listeners."""
        for handler in self.listeners(trigger):
            handler(event)

    # -- animation --

    def timeline(self) -> Timeline:
        return Timeline(self)

    def animate(self, duration: float = 400, delay: float = 0) -> Animation:
        animation = Animation(self, duration, delay)
        if not animation.finished:
            self._animations.add(animation)
        return animation


def _attribute_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return format_number(value)
    return str(value)


# ---------------------------------------------------------------------------
# Scene
# ---------------------------------------------------------------------------


class Container(Protocol):
    """Host surface a scene is attached to."""

    def mount(self, scene: Scene) -> None:
        ...


class Scene:
    """Live SVG tree with tag queries, sizing and attachment."""

    def __init__(self, root: etree._Element) -> None:
        self._wrappers: dict[etree._Element, SvgElement] = {}
        self.root = self.wrap(root)
        self.container: Container | None = None

    @classmethod
    def empty(cls) -> Scene:
        return cls(etree.Element(f"{{{SVG_NAMESPACE}}}svg", nsmap={None: SVG_NAMESPACE}))

    @property
    def node(self) -> etree._Element:
        return self.root.node

    def wrap(self, node: etree._Element) -> SvgElement:
        element = self._wrappers.get(node)
        if element is None:
            element = SvgElement(node, self)
            self._wrappers[node] = element
        return element

    # -- queries --

    def tagged(self) -> list[SvgElement]:
        """Every element carrying a tb:tag attribute, in document order."""
        return [
            self.wrap(node)
            for node in self.node.iterdescendants()
            if isinstance(node.tag, str) and node.get(TAG_ATTRIBUTE) is not None
        ]

    def find_by_tag(self, tag: str) -> list[SvgElement]:
        """Elements whose tb:tag equals tag, in document order."""
        nodes: Iterable[etree._Element] = self.node.xpath(
            ".//*[@tb:tag=$tag]",
            namespaces={NAMESPACE_PREFIX: NAMESPACE_URI},
            tag=tag,
        )
        return [self.wrap(node) for node in nodes]

    @staticmethod
    def tag_of(element: SvgElement) -> str | None:
        return element.node.get(TAG_ATTRIBUTE)

    # -- geometry --

    def bbox(self) -> Box:
        """
        Natural size of the drawing: the viewBox when declared, otherwise
        absolute width/height attributes, otherwise an empty box.
        """
        view_box = parse_view_box(self.node.get("viewBox"))
        if view_box is not None:
            return view_box
        width = parse_length(self.node.get("width"))
        height = parse_length(self.node.get("height"))
        if width is None or height is None:
            return Box()
        return Box(0.0, 0.0, width, height)

    def size(self, width: float, height: float) -> Scene:
        self.node.set("width", format_number(width))
        self.node.set("height", format_number(height))
        return self

    def style(self, name: str) -> str | None:
        return parse_style(self.node.get("style")).get(name)

    def set_style(self, name: str, value: str | None) -> Scene:
        style = parse_style(self.node.get("style"))
        if value is None:
            style.pop(name, None)
        else:
            style[name] = value
        if style:
            self.node.set("style", format_style(style))
        else:
            self.node.attrib.pop("style", None)
        return self

    def scale(self, factor: float) -> Scene:
        """Uniform 2-D scale applied as a CSS transform on the root."""
        return self.set_style("transform", f"scale({format_number(factor)})")

    # -- host --

    def add_to(self, container: Container) -> Scene:
        self.container = container
        container.mount(self)
        return self

    def markup(self) -> str:
        return etree.tostring(self.node, encoding="unicode")
