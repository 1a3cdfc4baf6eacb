"""
IoT SVG kernel test configuration.

Shared document builders. Runtime tests use MemoryDocumentSource and
MemoryWidgetContext, so nothing here touches the network.
"""

import pytest

from iotsvg.kernel.metadata import embed_metadata, parse_document, serialize
from iotsvg.kernel.types import (
    ActionBehavior,
    Metadata,
    Property,
    Tag,
    TagAction,
    ValueBehavior,
    WidgetActionBehavior,
)

SVG_TEMPLATE = (
    '<svg xmlns="http://www.w3.org/2000/svg" xmlns:tb="https://thingsboard.io/svg"{attrs}>'
    "{body}"
    "</svg>"
)

# Two lamps (one nested in a group), a label, and an untagged circle
LAMP_BODY = (
    '<rect id="lamp1" tb:tag="lamp" width="10" height="10"/>'
    '<g><rect id="lamp2" tb:tag="lamp" width="10" height="10"/></g>'
    '<text id="label" tb:tag="label"><tspan>?</tspan></text>'
    '<circle id="plain" r="3"/>'
)

TRACE_ROOT = 'svg.root.attr("data-trace", "root")'

TRACE_LABEL = (
    'ctx.api.text(element, "ON" if ctx.values["on"] else "OFF")\n'
    "root = element.scene.root\n"
    'root.attr("data-trace", root.attr("data-trace") + ",label")'
)

TRACE_LAMP = (
    'element.attr("fill", "yellow" if ctx.values["on"] else "gray")\n'
    "root = element.scene.root\n"
    'root.attr("data-trace", root.attr("data-trace") + "," + element.attr("id"))'
)


def make_svg(body: str = LAMP_BODY, view_box: str | None = "0 0 200 100") -> str:
    attrs = f' viewBox="{view_box}"' if view_box else ""
    return SVG_TEMPLATE.format(attrs=attrs, body=body)


def make_document(metadata: Metadata, body: str = LAMP_BODY, view_box: str | None = "0 0 200 100") -> str:
    """SVG markup with metadata embedded."""
    root = parse_document(make_svg(body, view_box))
    return serialize(embed_metadata(root, metadata))


def make_lamp_metadata() -> Metadata:
    """
    A lamp switch: one boolean value, one action, one widget action.
    Renders leave a trace of every script call on the root element.
    """
    return Metadata(
        title="Lamp",
        state_render_function=TRACE_ROOT,
        tags=[
            # declared before lamp on purpose: tag order drives the render pass
            Tag(tag="label", state_render_function=TRACE_LABEL),
            Tag(
                tag="lamp",
                state_render_function=TRACE_LAMP,
                actions={"click": TagAction(action_function='ctx.api.set_value("on", not ctx.values["on"])')},
            ),
        ],
        behavior=[
            ValueBehavior(id="on", name="On", value_type="BOOLEAN", value_id="on"),
            ActionBehavior(id="turnOn", name="Turn on", value_to_data_type="CONSTANT", constant_value=True),
            WidgetActionBehavior(id="details", name="Details"),
        ],
        properties=[
            Property(id="title", name="Title", type="string", default="Lamp"),
        ],
    )


@pytest.fixture
def lamp_metadata():
    return make_lamp_metadata()


@pytest.fixture
def lamp_document(lamp_metadata):
    return make_document(lamp_metadata)
