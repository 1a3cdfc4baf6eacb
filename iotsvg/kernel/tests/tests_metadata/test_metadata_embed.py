"""
IoT SVG Metadata -- Embed Tests

embed_metadata() writes exactly one descriptor, first child of the root,
with the tb namespace declared on the root and the JSON in CDATA.

Covers:
  - Round-trip: parse(embed(D, M)) == M
  - Idempotence: embed(embed(D, M), M) == embed(D, M)
  - Replacement of existing (and stray) descriptors
  - update_metadata_in_content convenience
"""

import json

import pytest

from conftest import make_lamp_metadata, make_svg
from iotsvg.kernel.metadata import (
    descriptor_count,
    embed_metadata,
    metadata_to_json,
    parse_document,
    parse_metadata,
    serialize,
    strip_metadata,
    update_metadata_in_content,
)
from iotsvg.kernel.types import (
    METADATA_TAG,
    NAMESPACE_URI,
    Metadata,
    Property,
    Tag,
    ValueBehavior,
    empty_metadata,
)

PLAIN_SVG = '<svg xmlns="http://www.w3.org/2000/svg" width="40" height="20"><rect id="r"/></svg>'


def make_rich_metadata() -> Metadata:
    """Metadata exercising every optional field that must survive a round trip."""
    return Metadata(
        title="Tank",
        state_render_function="level = ctx.values['level']\nsvg.root.attr('data-level', level)",
        tags=[Tag(tag="fill", state_render_function="element.attr('height', ctx.values['level'])")],
        behavior=[
            ValueBehavior(
                id="level",
                name="Level",
                hint="Liquid level in percent",
                value_type="DOUBLE",
                default_value=12.5,
                value_id="level",
                state_label="Level",
            ),
        ],
        properties=[
            Property(id="max", name="Maximum", type="number", default=100, min=0, max=1000, step=0.5,
                     required=True, field_suffix="%"),
            Property(id="unicode", name="Unicode <&>", type="string", default="über ]]> ok"),
        ],
    )


# ============================================================================
# Round-trip
# ============================================================================


class TestRoundTrip:
    """What goes in comes out unchanged."""

    def test_rich_metadata_round_trip(self):
        metadata = make_rich_metadata()

        root = embed_metadata(parse_document(PLAIN_SVG), metadata)

        assert parse_metadata(serialize(root)) == metadata

    def test_lamp_metadata_round_trip(self):
        metadata = make_lamp_metadata()

        root = embed_metadata(parse_document(PLAIN_SVG), metadata)

        assert parse_metadata(root) == metadata

    def test_empty_metadata_round_trip(self):
        root = embed_metadata(parse_document(PLAIN_SVG), empty_metadata())

        assert parse_metadata(serialize(root)) == empty_metadata()

    def test_json_wire_format_is_camel_case(self):
        data = json.loads(metadata_to_json(make_rich_metadata()))

        assert "stateRenderFunction" in data
        assert data["behavior"][0]["valueType"] == "DOUBLE"
        assert data["behavior"][0]["valueId"] == "level"
        assert data["properties"][0]["fieldSuffix"] == "%"
        # unset optional fields are omitted
        assert "trueLabel" not in data["behavior"][0]
        assert "divider" not in data["properties"][0]


# ============================================================================
# Document structure
# ============================================================================


class TestDocumentStructure:
    """Placement, namespace and encoding of the descriptor."""

    def test_descriptor_is_first_child(self):
        root = embed_metadata(parse_document(PLAIN_SVG), make_lamp_metadata())

        assert root[0].tag == METADATA_TAG

    def test_namespace_declared_on_root(self):
        root = embed_metadata(parse_document(PLAIN_SVG), make_lamp_metadata())

        assert root.nsmap.get("tb") == NAMESPACE_URI
        assert 'xmlns:tb="https://thingsboard.io/svg"' in serialize(root)

    def test_content_is_cdata(self):
        markup = serialize(embed_metadata(parse_document(PLAIN_SVG), make_lamp_metadata()))

        assert "<tb:metadata><![CDATA[" in markup

    def test_json_is_pretty_printed(self):
        root = embed_metadata(parse_document(PLAIN_SVG), make_lamp_metadata())

        assert root[0].text.startswith('{\n  "title": "Lamp"')

    def test_existing_content_kept(self):
        root = embed_metadata(parse_document(PLAIN_SVG), make_lamp_metadata())

        assert root.get("width") == "40"
        assert root[1].get("id") == "r"


# ============================================================================
# Idempotence and replacement
# ============================================================================


class TestIdempotence:
    """Re-embedding replaces, never accumulates."""

    def test_embed_twice_same_markup(self):
        metadata = make_lamp_metadata()
        once = serialize(embed_metadata(parse_document(PLAIN_SVG), metadata))

        twice = serialize(embed_metadata(parse_document(once), metadata))

        assert twice == once

    def test_single_descriptor_after_re_embed(self):
        root = parse_document(PLAIN_SVG)
        embed_metadata(root, make_lamp_metadata())
        embed_metadata(root, make_rich_metadata())

        assert descriptor_count(root) == 1
        assert parse_metadata(root) == make_rich_metadata()

    def test_stray_descriptors_removed(self):
        body = (
            "<g><tb:metadata><![CDATA[{}]]></tb:metadata></g>"
            "<tb:metadata><![CDATA[{}]]></tb:metadata>"
        )
        root = parse_document(make_svg(body))
        assert descriptor_count(root) == 2

        embed_metadata(root, make_lamp_metadata())

        assert descriptor_count(root) == 1
        assert root[0].tag == METADATA_TAG

    def test_strip_metadata(self):
        root = embed_metadata(parse_document(PLAIN_SVG), make_lamp_metadata())

        assert strip_metadata(root) == 1
        assert descriptor_count(root) == 0
        assert parse_metadata(root) == empty_metadata()


class TestUpdateMetadataInContent:
    """Markup in, markup out."""

    def test_update(self):
        content = update_metadata_in_content(PLAIN_SVG, make_lamp_metadata())

        assert parse_metadata(content) == make_lamp_metadata()

    def test_malformed_markup_raises(self):
        with pytest.raises(ValueError):
            update_metadata_in_content("<svg", make_lamp_metadata())
