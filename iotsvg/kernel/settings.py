"""
IoT SVG Kernel — Settings Resolver

Derives default configuration for every behavior and property of a
descriptor, deep-merges caller overrides on top, and resolves each behavior
entry into its typed settings model.

Settings are keyed by behavior/property id. Behavior entries become
GetValueSettings (value), SetValueSettings (action) or
WidgetActionSettings (widgetAction); property entries stay literal values.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from iotsvg.kernel.types import (
    ActionBehavior,
    Behavior,
    Metadata,
    ValueBehavior,
    WidgetActionBehavior,
)

logger = logging.getLogger(__name__)

DEFAULT_GET_METHOD = "getState"
DEFAULT_SET_METHOD = "setState"
DEFAULT_REQUEST_TIMEOUT_MS = 5000
DEFAULT_POLLING_INTERVAL_MS = 1000
DEFAULT_STATE_KEY = "state"

DEFAULT_DATA_TO_VALUE_FUNCTION = "# Should return boolean value\nreturn data"
DEFAULT_VALUE_TO_DATA_FUNCTION = (
    "# Convert input boolean value to RPC parameters or attribute/time-series value\n"
    "return value"
)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class _SettingsModel(BaseModel):
    """camelCase on the wire, snake_case in Python. Undeclared keys are kept as given."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class RpcSettings(_SettingsModel):
    method: str
    request_timeout: int = DEFAULT_REQUEST_TIMEOUT_MS
    request_persistent: bool = False
    persistent_polling_interval: int = DEFAULT_POLLING_INTERVAL_MS


class AttributeSettings(_SettingsModel):
    key: str = DEFAULT_STATE_KEY
    scope: str | None = None


class TimeSeriesSettings(_SettingsModel):
    key: str = DEFAULT_STATE_KEY


class DataToValueSettings(_SettingsModel):
    type: str = "NONE"
    compare_to_value: Any = True
    data_to_value_function: str = DEFAULT_DATA_TO_VALUE_FUNCTION


class ValueToDataSettings(_SettingsModel):
    type: str = "CONSTANT"
    constant_value: Any = None
    value_to_data_function: str = DEFAULT_VALUE_TO_DATA_FUNCTION


class GetValueSettings(_SettingsModel):
    """How a value behavior acquires its value."""

    action: Literal["DO_NOTHING", "EXECUTE_RPC", "GET_ATTRIBUTE", "GET_TIME_SERIES"] = "DO_NOTHING"
    default_value: Any = None
    execute_rpc: RpcSettings = Field(default_factory=lambda: RpcSettings(method=DEFAULT_GET_METHOD))
    get_attribute: AttributeSettings = Field(default_factory=AttributeSettings)
    get_time_series: TimeSeriesSettings = Field(default_factory=TimeSeriesSettings)
    data_to_value: DataToValueSettings = Field(default_factory=DataToValueSettings)
    action_label: str | None = None


class SetValueSettings(_SettingsModel):
    """How an action behavior dispatches a value."""

    action: Literal["EXECUTE_RPC", "SET_ATTRIBUTE", "ADD_TIME_SERIES"] = "EXECUTE_RPC"
    execute_rpc: RpcSettings = Field(default_factory=lambda: RpcSettings(method=DEFAULT_SET_METHOD))
    set_attribute: AttributeSettings = Field(
        default_factory=lambda: AttributeSettings(scope="SERVER_SCOPE")
    )
    put_time_series: TimeSeriesSettings = Field(default_factory=TimeSeriesSettings)
    value_to_data: ValueToDataSettings = Field(default_factory=ValueToDataSettings)
    action_label: str | None = None


class WidgetActionSettings(_SettingsModel):
    """Descriptor handed to the host widget-action dispatcher."""

    type: str = "updateDashboardState"
    target_dashboard_state_id: str | None = None
    open_right_layout: bool = False
    set_entity_id: bool = True
    state_entity_param_name: str | None = None


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


def default_get_value_settings(behavior: ValueBehavior) -> dict[str, Any]:
    return GetValueSettings(default_value=behavior.default_value).to_dict()


def default_set_value_settings(behavior: ActionBehavior) -> dict[str, Any]:
    value_to_data = ValueToDataSettings(
        type=behavior.value_to_data_type or "CONSTANT",
        constant_value=behavior.constant_value,
        value_to_data_function=behavior.value_to_data_function or DEFAULT_VALUE_TO_DATA_FUNCTION,
    )
    return SetValueSettings(value_to_data=value_to_data).to_dict()


def default_widget_action_settings(behavior: WidgetActionBehavior) -> dict[str, Any]:
    return WidgetActionSettings().to_dict()


def default_settings(metadata: Metadata) -> dict[str, Any]:
    """
    Default configuration for every behavior and property.
    Returns JSON-shaped dicts (camelCase keys) keyed by id.
    """
    settings: dict[str, Any] = {}
    for behavior in metadata.behavior:
        if isinstance(behavior, ValueBehavior):
            settings[behavior.id] = default_get_value_settings(behavior)
        elif isinstance(behavior, ActionBehavior):
            settings[behavior.id] = default_set_value_settings(behavior)
        elif isinstance(behavior, WidgetActionBehavior):
            settings[behavior.id] = default_widget_action_settings(behavior)
    for prop in metadata.properties:
        settings[prop.id] = copy.deepcopy(prop.default)
    return settings


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def merge_deep(defaults: dict[str, Any], overrides: dict[str, Any] | None) -> dict[str, Any]:
    """
    Deep merge: override wins at every nesting level.
    Nested dicts are merged key by key; leaves and lists from the override
    replace the default outright. Neither input is modified.
    """
    result = copy.deepcopy(defaults)
    for key, value in (overrides or {}).items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = merge_deep(current, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

_MODELS: dict[type[Behavior], type[_SettingsModel]] = {
    ValueBehavior: GetValueSettings,
    ActionBehavior: SetValueSettings,
    WidgetActionBehavior: WidgetActionSettings,
}


def resolve_settings(metadata: Metadata, overrides: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Build the resolved settings for one instance.

    defaults → merge_deep(overrides) → typed model per behavior. An override
    that does not fit its model is dropped in favour of that id's defaults.
    Exactly one entry per behavior id and per property id.
    """
    defaults = default_settings(metadata)
    merged = merge_deep(defaults, overrides)

    resolved: dict[str, Any] = {}
    for behavior in metadata.behavior:
        model = _MODELS.get(type(behavior))
        if model is None:
            continue
        try:
            resolved[behavior.id] = model.model_validate(merged[behavior.id])
        except ValidationError as e:
            logger.warning(
                "settings: invalid override for behavior %s, using defaults: %s",
                behavior.id,
                e.errors(include_url=False),
            )
            resolved[behavior.id] = model.model_validate(defaults[behavior.id])
    for prop in metadata.properties:
        resolved[prop.id] = merged.get(prop.id)
    return resolved
