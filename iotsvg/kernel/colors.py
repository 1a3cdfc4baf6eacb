"""
IoT SVG Kernel — Color Processing

Resolves "color-settings" properties into a processor that render scripts
update with the current value and read the resulting color from:

    processor = ctx.properties["fillColor"]
    processor.update(ctx.values["temperature"])
    element.fill(processor.color)
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from iotsvg.kernel.functions import compile_function

DEFAULT_COLOR = "#000"


class ColorRange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: float | None = Field(default=None, alias="from")
    to: float | None = None
    color: str


class ColorSettings(BaseModel):
    """Wire format of a color-settings property value."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: Literal["constant", "range", "function"] = "constant"
    color: str = DEFAULT_COLOR
    range_list: list[ColorRange] = Field(default_factory=list)
    color_function: str | None = None


def constant_color(color: str) -> ColorSettings:
    return ColorSettings(type="constant", color=color)


class ColorProcessor:
    """Current color of a color-settings property."""

    def __init__(self, settings: ColorSettings) -> None:
        self.settings = settings
        self.color = settings.color
        self._function = (
            compile_function(settings.color_function, ("value",), "color_function")
            if settings.type == "function"
            else None
        )

    @classmethod
    def from_settings(cls, settings: ColorSettings | dict[str, Any] | None) -> ColorProcessor:
        if settings is None:
            return cls(constant_color(DEFAULT_COLOR))
        if isinstance(settings, ColorSettings):
            return cls(settings)
        return cls(ColorSettings.model_validate(settings))

    def update(self, value: Any) -> str:
        """Recompute the color for value and return it."""
        if self.settings.type == "range":
            self.color = self._range_color(value)
        elif self._function is not None:
            self.color = self._function(value) or self.settings.color
        return self.color

    def _range_color(self, value: Any) -> str:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return self.settings.color
        for item in self.settings.range_list:
            if item.from_ is not None and value < item.from_:
                continue
            if item.to is not None and value >= item.to:
                continue
            return item.color
        return self.settings.color
