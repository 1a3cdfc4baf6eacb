"""
IoT SVG Kernel — Runtime

IotSvgObject is the live, data-bound visual built from one SVG document.

Lifecycle:
  init      fetch → parse descriptor → resolve settings → compile scripts →
            build scene → wire triggers → first render → batch acquisition
  (live)    acquired values flow through reactive cells; every accepted
            change triggers one full render pass; tag triggers dispatch
            actions
  destroy   complete cells, dispose getters/setters, close the busy stream

Only fetching the document can fail init(). Everything else degrades:
malformed descriptors become empty metadata, broken scripts become no-ops,
acquisition and dispatch failures go to the error sink as text.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable

from lxml import etree
from pydantic import ValidationError

from iotsvg.kernel.cells import ValueCell
from iotsvg.kernel.colors import ColorProcessor, constant_color
from iotsvg.kernel.formatting import format_value
from iotsvg.kernel.functions import CompiledScripts, compile_scripts
from iotsvg.kernel.host import ValueGetter, ValueSetter, WidgetContext, format_error
from iotsvg.kernel.metadata import parse_document, parse_metadata, strip_metadata
from iotsvg.kernel.scene import Animation, Box, Container, Scene, SvgElement
from iotsvg.kernel.settings import resolve_settings
from iotsvg.kernel.types import (
    ActionBehavior,
    Metadata,
    ValueBehavior,
    WidgetActionBehavior,
    empty_metadata,
    normalize_value,
    values_differ,
)

logger = logging.getLogger(__name__)

_MISSING = object()


# ---------------------------------------------------------------------------
# Script context
# ---------------------------------------------------------------------------


@dataclass
class ActionObserver:
    """Optional completion callbacks for call_action()."""

    next: Callable[[], None] | None = None
    error: Callable[[Any], None] | None = None


class RuntimeApi:
    """Capabilities available to scripts as ctx.api."""

    def __init__(self, runtime: IotSvgObject) -> None:
        self._runtime = runtime

    @staticmethod
    def format_value(value: Any, dec: int | None = None, units: str | None = None,
                     show_zero_decimals: bool = False) -> str | None:
        return format_value(value, dec, units, show_zero_decimals)

    def text(self, element: SvgElement | list[SvgElement], text: Any) -> None:
        """Set the text of text/tspan elements (the first tspan of a text wins)."""
        for e in _elements(element):
            target: SvgElement | None = None
            if e.type == "text":
                children = e.children()
                target = children[0] if children and children[0].type == "tspan" else e
            elif e.type == "tspan":
                target = e
            if target is not None:
                target.text(text)

    def font(self, element: SvgElement | list[SvgElement], font: dict[str, Any] | None,
             color: str | None = None) -> None:
        """Apply a font ({family, size, sizeUnit, weight, style}) and fill color to text elements."""
        for e in _elements(element):
            if e.type != "text":
                continue
            if font:
                size = font.get("size")
                unit = font.get("sizeUnit")
                e.font(
                    family=font.get("family"),
                    size=f"{size}{unit}" if size is not None and unit is not None else None,
                    weight=font.get("weight"),
                    style=font.get("style"),
                )
            if color:
                e.fill(color)

    def animate(self, element: SvgElement, duration: float) -> Animation:
        """Finish running animations, then start a new one."""
        element.timeline().finish()
        return element.animate(duration, 0)

    def disable(self, element: SvgElement | list[SvgElement]) -> None:
        for e in _elements(element):
            e.attr("pointer-events", "none")

    def enable(self, element: SvgElement | list[SvgElement]) -> None:
        for e in _elements(element):
            e.attr("pointer-events", None)

    def call_action(self, event: Any, behavior_id: str, value: Any = None,
                    observer: ActionObserver | None = None) -> asyncio.Task | None:
        return self._runtime.call_action(event, behavior_id, value, observer)

    def set_value(self, value_id: str, value: Any) -> None:
        self._runtime.set_value(value_id, value)


def _elements(element: SvgElement | list[SvgElement]) -> list[SvgElement]:
    return list(element) if isinstance(element, (list, tuple)) else [element]


@dataclass
class RuntimeContext:
    """What every script receives as ctx."""

    api: RuntimeApi
    tags: dict[str, list[SvgElement]] = field(default_factory=dict)
    values: dict[str, Any] = field(default_factory=dict)
    properties: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Runtime
# ---------------------------------------------------------------------------


class IotSvgObject:
    """
    A live SVG visual bound to dashboard data.

        svg = IotSvgObject(ctx, "/assets/tank.svg", settings)
        svg.on_error(show_toast)
        await svg.init()
        svg.add_to(container)
        svg.set_size(320, 240)
        ...
        svg.destroy()
    """

    def __init__(self, ctx: WidgetContext, svg_path: str,
                 input_settings: dict[str, Any] | None = None) -> None:
        self._ctx = ctx
        self._svg_path = svg_path
        self._input_settings = input_settings or {}

        self.metadata: Metadata = empty_metadata()
        self.settings: dict[str, Any] = {}
        self.scripts: CompiledScripts | None = None
        self.scene: Scene | None = None
        self.context: RuntimeContext | None = None
        self.box = Box()
        self.scale: float | None = None

        self._container: Container | None = None
        self._target_width: float | None = None
        self._target_height: float | None = None

        self.loading = ValueCell(False)
        self.acquisition_task: asyncio.Task | None = None
        self.render_count = 0

        self._value_getters: list[ValueGetter] = []
        self._value_setters: dict[str, ValueSetter] = {}
        self._value_actions: list[ValueGetter | ValueSetter] = []
        self._cells: dict[str, ValueCell] = {}
        self._pending: set[asyncio.Task] = set()
        self._destroyed = False
        self._on_error: Callable[[str], None] = lambda message: None

    # -- public surface --

    async def init(self) -> None:
        """
        Load and start the visual.

        Raises whatever the document source raises (TransportError); every
        other problem is recovered locally.
        """
        content = await self._ctx.fetch_text(self._svg_path)
        root = parse_document(content)
        self.metadata = parse_metadata(root)
        self.settings = resolve_settings(self.metadata, self._input_settings)
        self.scripts = compile_scripts(self.metadata)
        self._prepare_scene(root)
        self._initialize()
        logger.info(
            "runtime: loaded %s (%d tags, %d behaviors, %d properties)",
            self._svg_path,
            len(self.metadata.tags),
            len(self.metadata.behavior),
            len(self.metadata.properties),
        )

    def on_error(self, callback: Callable[[str], None]) -> None:
        self._on_error = callback

    def add_to(self, container: Container) -> None:
        self._container = container
        if self.scene is not None:
            self.scene.add_to(container)

    def set_size(self, target_width: float, target_height: float) -> None:
        self._target_width = target_width
        self._target_height = target_height
        if self.scene is not None:
            self.resize()

    def destroy(self) -> None:
        """Release cells, getters/setters and the busy stream. Safe to call twice."""
        if self._destroyed:
            return
        self._destroyed = True
        for cell in self._cells.values():
            cell.complete()
        for action in self._value_actions:
            action.destroy()
        self.loading.complete()
        logger.debug("runtime: destroyed %s", self._svg_path)

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    # -- scene --

    def _prepare_scene(self, root: etree._Element | None) -> None:
        if root is None:
            scene = Scene.empty()
        else:
            strip_metadata(root)
            scene = Scene(root)
        scene.set_style("overflow", "visible")
        scene.set_style("user-select", "none")
        self.box = scene.bbox()
        if not self.box.empty:
            scene.size(self.box.width, self.box.height)
        self.scene = scene
        if self._container is not None:
            scene.add_to(self._container)
        if self._target_width and self._target_height:
            self.resize()

    def resize(self) -> None:
        if not (self._target_width and self._target_height) or self.box.empty:
            return
        # Ratio chosen by target orientation, not by aspect comparison
        if self._target_width < self._target_height:
            scale = self._target_width / self.box.width
        else:
            scale = self._target_height / self.box.height
        self.scale = scale
        self.scene.scale(scale)

    # -- initialize --

    def _initialize(self) -> None:
        self.context = RuntimeContext(api=RuntimeApi(self))

        for element in self.scene.tagged():
            self.context.tags.setdefault(Scene.tag_of(element), []).append(element)

        for prop in self.metadata.properties:
            self.context.properties[prop.id] = self._property_value(prop.id)

        for tag in self.metadata.tags:
            if tag.actions:
                self._wire_tag(tag.tag)

        for behavior in self.metadata.behavior:
            if isinstance(behavior, ValueBehavior):
                self._init_value_behavior(behavior)
            elif isinstance(behavior, ActionBehavior):
                settings = self.settings[behavior.id].model_copy(update={"action_label": behavior.name})
                setter = self._ctx.create_value_setter(settings)
                self._value_setters[behavior.id] = setter
                self._value_actions.append(setter)
            # widgetAction descriptors are read from settings at dispatch time

        self.render_state()

        if self._value_getters:
            self.loading.next(True)
            self.acquisition_task = asyncio.get_running_loop().create_task(self._acquire_all())

    def _wire_tag(self, tag: str) -> None:
        handlers = self.scripts.tag_actions.get(tag, {})
        elements = self.scene.find_by_tag(tag)
        for trigger, handler in handlers.items():
            for element in elements:
                element.attr("cursor", "pointer")
                element.on(trigger, partial(self._run_action, handler, f"{tag}.{trigger}"))

    def _run_action(self, handler: Callable[[Any, Any], None], label: str, event: Any) -> None:
        if self._destroyed:
            return
        try:
            handler(event, self.context)
        except Exception as e:
            logger.exception("runtime: action script %s failed", label)
            self._report(e)

    def _init_value_behavior(self, behavior: ValueBehavior) -> None:
        settings = self.settings[behavior.id].model_copy(update={"action_label": behavior.name})
        initial = normalize_value(settings.default_value, behavior.value_type)

        cell = self._cells.get(behavior.value_id)
        if cell is None:
            cell = ValueCell(initial)
            cell.subscribe(partial(self._on_state_value_changed, behavior.value_id))
            self._cells[behavior.value_id] = cell
        else:
            # Shared value id: the last behavior declared seeds the cell
            cell.reset(initial)
        self.context.values[behavior.value_id] = initial

        getter = self._ctx.create_value_getter(
            settings,
            behavior.value_type,
            partial(self._on_value, behavior.id),
            self._on_acquisition_error,
        )
        self._value_getters.append(getter)
        self._value_actions.append(getter)

    async def _acquire_all(self) -> None:
        await asyncio.gather(
            *(getter.get_value() for getter in self._value_getters),
            return_exceptions=True,
        )
        self.loading.next(False)

    # -- values --

    def _on_value(self, behavior_id: str, value: Any) -> None:
        if self._destroyed:
            logger.debug("runtime: dropping value for %s after destroy", behavior_id)
            return
        behavior = self.metadata.find_behavior(behavior_id)
        if not isinstance(behavior, ValueBehavior):
            return
        self.set_value(behavior.value_id, normalize_value(value, behavior.value_type))

    def _on_acquisition_error(self, err: Any) -> None:
        if self._destroyed:
            logger.debug("runtime: dropping acquisition error after destroy: %s", err)
            return
        self._report(err)

    def set_value(self, value_id: str, value: Any) -> None:
        """Push value into the cell for value_id if it differs from the current one."""
        if self._destroyed:
            return
        cell = self._cells.get(value_id)
        if cell is not None and not cell.closed and values_differ(cell.value, value):
            cell.next(value)

    def _on_state_value_changed(self, value_id: str, value: Any) -> None:
        if values_differ(self.context.values.get(value_id, _MISSING), value):
            self.context.values[value_id] = value
            self.render_state()

    # -- rendering --

    def render_state(self) -> None:
        """One full render pass: root script once, then every tag's script per element."""
        if self.scene is None or self.context is None or self._destroyed:
            return
        self.render_count += 1
        self._run_render(self.scripts.state_render, self.scene, "state_render")
        for tag in self.metadata.tags:
            render = self.scripts.tag_renders[tag.tag]
            for element in self.scene.find_by_tag(tag.tag):
                self._run_render(render, element, tag.tag)

    def _run_render(self, render: Callable[[Any, Any], None], target: Any, label: str) -> None:
        try:
            render(target, self.context)
        except Exception:
            logger.exception("runtime: render script %s failed", label)

    # -- actions --

    def call_action(self, event: Any, behavior_id: str, value: Any = None,
                    observer: ActionObserver | None = None) -> asyncio.Task | None:
        """
        Dispatch the behavior behind behavior_id.

        action        send value through its setter; returns the dispatch task
        widgetAction  hand the resolved descriptor to the host, synchronously
        unknown id    nothing happens
        """
        if self._destroyed:
            return None
        behavior = self.metadata.find_behavior(behavior_id)
        if isinstance(behavior, ActionBehavior):
            setter = self._value_setters.get(behavior_id)
            if setter is None:
                return None
            self.loading.next(True)
            task = asyncio.get_running_loop().create_task(self._dispatch(setter, value, observer))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            return task
        if isinstance(behavior, WidgetActionBehavior):
            self._ctx.on_widget_action(event, self.settings[behavior.id])
        return None

    async def _dispatch(self, setter: ValueSetter, value: Any, observer: ActionObserver | None) -> None:
        try:
            await setter.set_value(value)
        except Exception as e:
            self.loading.next(False)
            if self._destroyed:
                logger.debug("runtime: dropping dispatch error after destroy: %s", e)
                return
            on_error = getattr(observer, "error", None)
            if on_error is not None:
                self._notify_observer(on_error, e)
            self._report(e)
        else:
            self.loading.next(False)
            if self._destroyed:
                return
            on_next = getattr(observer, "next", None)
            if on_next is not None:
                self._notify_observer(on_next)

    def _notify_observer(self, callback: Callable[..., None], *args: Any) -> None:
        try:
            callback(*args)
        except Exception:
            logger.exception("runtime: action observer failed")

    def _report(self, err: Any) -> None:
        message = format_error(self._ctx, err)
        logger.warning("runtime: %s: %s", self._svg_path, message)
        self._on_error(message)

    # -- properties --

    def _property_value(self, property_id: str) -> Any:
        prop = self.metadata.find_property(property_id)
        if prop is None:
            return ""
        value = self.settings.get(property_id)
        if value is not None:
            if prop.type == "color-settings":
                try:
                    return ColorProcessor.from_settings(value)
                except ValidationError as e:
                    logger.warning("runtime: invalid color settings for %s: %s", property_id, e)
                    return ColorProcessor(constant_color("#000"))
            if prop.type == "string":
                return self._ctx.entity_label(self._ctx.custom_translation(value))
            return value
        if prop.type == "string":
            return ""
        if prop.type == "number":
            return 0
        if prop.type == "color":
            return "#000"
        if prop.type == "color-settings":
            return ColorProcessor(constant_color("#000"))
        return None
