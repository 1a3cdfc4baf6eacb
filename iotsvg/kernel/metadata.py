"""
IoT SVG Kernel — Metadata Parser & Embedder

Extracts the descriptor from an SVG document and writes it back.

The descriptor is a single <tb:metadata> element, first child of the SVG
root, whose CDATA content is the pretty-printed JSON of the Metadata.
Parsing never fails outward: anything malformed yields empty_metadata().
"""

from __future__ import annotations

import json
import logging

from lxml import etree

from iotsvg.kernel.types import (
    METADATA_TAG,
    NAMESPACE_PREFIX,
    NAMESPACE_URI,
    Metadata,
    empty_metadata,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class MetadataParseError(Exception):
    """Descriptor exists but its JSON is malformed or violates the schema."""
    pass


# ---------------------------------------------------------------------------
# Document parsing
# ---------------------------------------------------------------------------

_PARSER = etree.XMLParser(strip_cdata=False, resolve_entities=False, no_network=True)


def parse_document(content: str | bytes) -> etree._Element | None:
    """
    Parse SVG markup into a live element tree.
    Returns the root element, or None if the markup is not well-formed XML.
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    try:
        return etree.fromstring(content, _PARSER)
    except (etree.XMLSyntaxError, ValueError) as e:
        logger.warning("metadata: failed to parse SVG document: %s", e)
        return None


def serialize(root: etree._Element) -> str:
    """Full markup of the root element."""
    return etree.tostring(root, encoding="unicode")


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def parse_metadata(document: str | bytes | etree._Element | None) -> Metadata:
    """
    Extract the descriptor from an SVG document (markup or parsed root).

    Never raises. Returns empty_metadata() when the document is unusable,
    the descriptor is absent, or its content is not a valid descriptor.
    """
    if document is None:
        return empty_metadata()
    if isinstance(document, (str, bytes)):
        root = parse_document(document)
        if root is None:
            return empty_metadata()
    else:
        root = document

    try:
        element = next(root.iter(METADATA_TAG), None)
        if element is None:
            return empty_metadata()
        return _metadata_from_json(element.text or "")
    except MetadataParseError as e:
        logger.warning("metadata: %s", e)
        return empty_metadata()


def _metadata_from_json(text: str) -> Metadata:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MetadataParseError(f"descriptor is not valid JSON: {e}") from e
    except RecursionError as e:
        raise MetadataParseError("descriptor is nested too deeply") from e
    if not isinstance(data, dict):
        raise MetadataParseError("descriptor must be a JSON object")

    try:
        metadata = Metadata.from_dict(data)
    except (KeyError, TypeError, AttributeError, ValueError, RecursionError) as e:
        raise MetadataParseError(f"descriptor has an unusable structure: {e!r}") from e

    _check_unique("tag", [t.tag for t in metadata.tags])
    _check_unique("behavior id", [b.id for b in metadata.behavior])
    _check_unique("property id", [p.id for p in metadata.properties])
    return metadata


def _check_unique(label: str, names: list[str]) -> None:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise MetadataParseError(f"duplicate {label}: {name!r}")
        seen.add(name)


# ---------------------------------------------------------------------------
# Embedding
# ---------------------------------------------------------------------------


def strip_metadata(root: etree._Element) -> int:
    """Remove every descriptor element. Returns how many were removed."""
    elements = list(root.iter(METADATA_TAG))
    for element in elements:
        parent = element.getparent()
        if parent is not None:
            parent.remove(element)
    return len(elements)


def embed_metadata(root: etree._Element, metadata: Metadata) -> etree._Element:
    """
    Write the descriptor into the document, replacing any existing one.

    Declares the tb namespace on the root and inserts a single
    <tb:metadata> as the first child. Mutates and returns root.
    """
    strip_metadata(root)

    if root.nsmap.get(NAMESPACE_PREFIX) != NAMESPACE_URI:
        # Declare on the root before inserting, so the descriptor reuses it
        keep = [prefix for prefix in root.nsmap if prefix] + [NAMESPACE_PREFIX]
        etree.cleanup_namespaces(
            root,
            top_nsmap={NAMESPACE_PREFIX: NAMESPACE_URI},
            keep_ns_prefixes=keep,
        )

    element = etree.Element(METADATA_TAG, nsmap={NAMESPACE_PREFIX: NAMESPACE_URI})
    element.text = etree.CDATA(_cdata_safe(metadata_to_json(metadata)))
    root.insert(0, element)
    return root


def _cdata_safe(text: str) -> str:
    # "]]>" can only occur inside a JSON string, where > decodes back to ">"
    return text.replace("]]>", "]]\\u003e")


def update_metadata_in_content(content: str, metadata: Metadata) -> str:
    """
    Parse markup, embed the descriptor, return the new markup.
    Raises ValueError if the markup is not well-formed.
    """
    root = parse_document(content)
    if root is None:
        raise ValueError("SVG content is not well-formed XML")
    return serialize(embed_metadata(root, metadata))


def metadata_to_json(metadata: Metadata) -> str:
    """Pretty-printed descriptor JSON, as embedded in documents."""
    return json.dumps(metadata.to_dict(), indent=2)


def metadata_from_json(text: str) -> Metadata:
    """
    Parse a standalone descriptor JSON document.
    Raises MetadataParseError on malformed input (unlike parse_metadata).
    """
    return _metadata_from_json(text)


def descriptor_count(root: etree._Element) -> int:
    """Number of descriptor elements in the document."""
    return sum(1 for _ in root.iter(METADATA_TAG))
