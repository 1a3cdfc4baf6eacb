"""
IoT SVG Kernel — the runtime core.

Components:
  metadata   extract / embed the tb:metadata descriptor
  settings   default settings + deep merge of overrides
  functions  compile trusted script bodies once
  cells      reactive value cells
  scene      lxml-backed scene graph
  runtime    IotSvgObject: render engine, action dispatch, lifecycle
"""

from iotsvg.kernel.metadata import embed_metadata, parse_metadata, serialize
from iotsvg.kernel.runtime import ActionObserver, IotSvgObject
from iotsvg.kernel.settings import default_settings, merge_deep, resolve_settings
from iotsvg.kernel.types import Metadata, empty_metadata

__all__ = [
    "parse_metadata",
    "embed_metadata",
    "serialize",
    "default_settings",
    "merge_deep",
    "resolve_settings",
    "Metadata",
    "empty_metadata",
    "IotSvgObject",
    "ActionObserver",
]
