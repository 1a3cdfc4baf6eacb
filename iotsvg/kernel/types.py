"""
IoT SVG Kernel — Shared Types

Data classes describing the descriptor embedded in an SVG document:
tags, behaviors and properties. These are the contracts that bind the
kernel together.

The JSON wire format uses camelCase keys. Every class here converts to and
from that format with to_dict()/from_dict(); optional fields are omitted
from to_dict() when unset so a parse → embed cycle is lossless.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Namespace
# ---------------------------------------------------------------------------

NAMESPACE_PREFIX = "tb"
NAMESPACE_URI = "https://thingsboard.io/svg"

METADATA_TAG = f"{{{NAMESPACE_URI}}}metadata"
TAG_ATTRIBUTE = f"{{{NAMESPACE_URI}}}tag"


# ---------------------------------------------------------------------------
# Registries
# ---------------------------------------------------------------------------

VALUE_TYPES: set[str] = {"STRING", "INTEGER", "DOUBLE", "BOOLEAN", "JSON"}

BEHAVIOR_TYPES: set[str] = {"value", "action", "widgetAction"}

PROPERTY_TYPES: set[str] = {
    "string",
    "number",
    "color",
    "color-settings",
    "font",
    "units",
    "switch",
}

# Value type → the value a cell holds when acquisition yields nothing
EMPTY_VALUES: dict[str, Any] = {
    "STRING": "",
    "INTEGER": 0,
    "DOUBLE": 0.0,
    "BOOLEAN": False,
}


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------


@dataclass
class TagAction:
    """A trigger handler declared on a tag (e.g. "click")."""

    action_function: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {}
        if self.action_function is not None:
            d["actionFunction"] = self.action_function
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> TagAction:
        return cls(action_function=d.get("actionFunction"))


@dataclass
class Tag:
    """
    A named group of scene elements. Elements join a tag through the
    tb:tag attribute whose value equals the tag name.
    """

    tag: str
    state_render_function: str | None = None
    actions: dict[str, TagAction] | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"tag": self.tag}
        if self.state_render_function is not None:
            d["stateRenderFunction"] = self.state_render_function
        if self.actions is not None:
            d["actions"] = {trigger: a.to_dict() for trigger, a in self.actions.items()}
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Tag:
        actions = d.get("actions")
        return cls(
            tag=d["tag"],
            state_render_function=d.get("stateRenderFunction"),
            actions=(
                {trigger: TagAction.from_dict(a or {}) for trigger, a in actions.items()}
                if actions is not None
                else None
            ),
        )


# ---------------------------------------------------------------------------
# Behaviors
# ---------------------------------------------------------------------------


@dataclass
class Behavior:
    """Fields shared by every behavior kind."""

    id: str
    name: str
    hint: str | None = None

    type = ""

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"id": self.id, "name": self.name, "type": self.type}
        if self.hint is not None:
            d["hint"] = self.hint
        return d


@dataclass
class ValueBehavior(Behavior):
    """An inbound data binding: acquired values land in the cell for value_id."""

    value_type: str = "BOOLEAN"
    default_value: Any = None
    value_id: str = ""
    true_label: str | None = None
    false_label: str | None = None
    state_label: str | None = None

    type = "value"

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["valueType"] = self.value_type
        d["defaultValue"] = self.default_value
        d["valueId"] = self.value_id
        for key, value in (
            ("trueLabel", self.true_label),
            ("falseLabel", self.false_label),
            ("stateLabel", self.state_label),
        ):
            if value is not None:
                d[key] = value
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ValueBehavior:
        return cls(
            id=d["id"],
            name=d.get("name", ""),
            hint=d.get("hint"),
            value_type=d.get("valueType", "BOOLEAN"),
            default_value=d.get("defaultValue"),
            value_id=d["valueId"],
            true_label=d.get("trueLabel"),
            false_label=d.get("falseLabel"),
            state_label=d.get("stateLabel"),
        )


@dataclass
class ActionBehavior(Behavior):
    """An outbound write: a value is converted and sent to the device."""

    value_to_data_type: str = "CONSTANT"
    constant_value: Any = None
    value_to_data_function: str | None = None

    type = "action"

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["valueToDataType"] = self.value_to_data_type
        d["constantValue"] = self.constant_value
        if self.value_to_data_function is not None:
            d["valueToDataFunction"] = self.value_to_data_function
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ActionBehavior:
        return cls(
            id=d["id"],
            name=d.get("name", ""),
            hint=d.get("hint"),
            value_to_data_type=d.get("valueToDataType", "CONSTANT"),
            constant_value=d.get("constantValue"),
            value_to_data_function=d.get("valueToDataFunction"),
        )


@dataclass
class WidgetActionBehavior(Behavior):
    """Host navigation; the descriptor comes entirely from settings."""

    type = "widgetAction"

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> WidgetActionBehavior:
        return cls(id=d["id"], name=d.get("name", ""), hint=d.get("hint"))


_BEHAVIOR_CLASSES: dict[str, type[Behavior]] = {
    "value": ValueBehavior,
    "action": ActionBehavior,
    "widgetAction": WidgetActionBehavior,
}


def behavior_from_dict(d: dict[str, Any]) -> Behavior | None:
    """Build the behavior subclass named by d["type"]. Unknown types → None."""
    cls = _BEHAVIOR_CLASSES.get(d.get("type", ""))
    if cls is None:
        return None
    return cls.from_dict(d)


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------

# (python attribute, JSON key) for the optional UI hint fields
_PROPERTY_HINTS: tuple[tuple[str, str], ...] = (
    ("required", "required"),
    ("sub_label", "subLabel"),
    ("divider", "divider"),
    ("field_suffix", "fieldSuffix"),
    ("disable_on_property", "disableOnProperty"),
    ("row_class", "rowClass"),
    ("field_class", "fieldClass"),
    ("min", "min"),
    ("max", "max"),
    ("step", "step"),
)


@dataclass
class Property:
    """A designer-configurable parameter, resolved once per instance."""

    id: str
    name: str
    type: str
    default: Any = None
    required: bool | None = None
    sub_label: str | None = None
    divider: bool | None = None
    field_suffix: str | None = None
    disable_on_property: str | None = None
    row_class: str | None = None
    field_class: str | None = None
    min: float | None = None
    max: float | None = None
    step: float | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "default": self.default,
        }
        for attr, key in _PROPERTY_HINTS:
            value = getattr(self, attr)
            if value is not None:
                d[key] = value
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Property:
        hints = {attr: d.get(key) for attr, key in _PROPERTY_HINTS}
        return cls(
            id=d["id"],
            name=d.get("name", ""),
            type=d["type"],
            default=d.get("default"),
            **hints,
        )


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


@dataclass
class Metadata:
    """The descriptor embedded in an SVG document."""

    title: str = ""
    state_render_function: str | None = None
    tags: list[Tag] = field(default_factory=list)
    behavior: list[Behavior] = field(default_factory=list)
    properties: list[Property] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"title": self.title}
        if self.state_render_function is not None:
            d["stateRenderFunction"] = self.state_render_function
        d["tags"] = [t.to_dict() for t in self.tags]
        d["behavior"] = [b.to_dict() for b in self.behavior]
        d["properties"] = [p.to_dict() for p in self.properties]
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Metadata:
        behaviors: list[Behavior] = []
        for raw in d.get("behavior", []):
            behavior = behavior_from_dict(raw)
            if behavior is not None:
                behaviors.append(behavior)
        return cls(
            title=d.get("title", ""),
            state_render_function=d.get("stateRenderFunction"),
            tags=[Tag.from_dict(t) for t in d.get("tags", [])],
            behavior=behaviors,
            properties=[Property.from_dict(p) for p in d.get("properties", [])],
        )

    def find_behavior(self, behavior_id: str) -> Behavior | None:
        for behavior in self.behavior:
            if behavior.id == behavior_id:
                return behavior
        return None

    def find_property(self, property_id: str) -> Property | None:
        for prop in self.properties:
            if prop.id == property_id:
                return prop
        return None


def empty_metadata() -> Metadata:
    """The neutral descriptor used whenever a document carries none."""
    return Metadata(title="", tags=[], behavior=[], properties=[])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def normalize_value(value: Any, value_type: str) -> Any:
    """
    Replace a missing value with the empty value of its declared type.
    STRING → '', INTEGER → 0, DOUBLE → 0.0, BOOLEAN → False, JSON → {}.
    Present values pass through untouched.
    """
    if value is not None:
        return value
    if value_type == "JSON":
        return {}
    return EMPTY_VALUES.get(value_type)


def _value_kind(value: Any) -> type:
    # int and float are one numeric kind; bool stays separate
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float
    return type(value)


def values_differ(a: Any, b: Any) -> bool:
    """
    Strict inequality: values of different kinds always differ (False vs 0),
    while 1 and 1.0 are the same number.
    """
    return _value_kind(a) is not _value_kind(b) or a != b
