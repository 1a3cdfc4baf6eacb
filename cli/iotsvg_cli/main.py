"""Main entry point for the IoT SVG CLI."""
from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

from iotsvg.config import config
from iotsvg.kernel.host import MemoryDocumentSource, MemoryWidgetContext
from iotsvg.kernel.metadata import (
    MetadataParseError,
    metadata_from_json,
    metadata_to_json,
    parse_metadata,
    update_metadata_in_content,
)
from iotsvg.kernel.runtime import IotSvgObject
from iotsvg.kernel.settings import default_settings
from iotsvg_cli import __version__


def print_help():
    """Print help message."""
    print(f"""
IoT SVG CLI v{__version__}

Usage:
  iotsvg [options] <command> [arguments]

Commands:
  extract FILE                  Print the embedded descriptor as JSON
  embed FILE METADATA           Embed a descriptor JSON file into an SVG
  defaults FILE                 Print the default settings of an SVG
  render FILE                   Run the SVG with static values, print the result

Options:
  -o, --output PATH             Write output to PATH instead of stdout
  --values PATH                 JSON object of acquired values, keyed by behavior name (render)
  --settings PATH               JSON object of settings overrides, keyed by id (render)
  --size WxH                    Target size, e.g. 320x240 (render)
  -h, --help                    Show this help
  -v, --version                 Show version

Environment:
  IOTSVG_LOG_LEVEL              Logging level (default: WARNING)
""")


def parse_args(args: list[str]) -> dict:
    """
    Parse command line arguments.

    Returns dict with:
        command: str | None (extract, embed, defaults, render)
        positional: list[str]
        output: str | None
        values: str | None
        settings: str | None
        size: tuple[float, float] | None
        show_help: bool
        show_version: bool
        error: str | None
    """
    result = {
        "command": None,
        "positional": [],
        "output": None,
        "values": None,
        "settings": None,
        "size": None,
        "show_help": False,
        "show_version": False,
        "error": None,
    }

    options = {"-o": "output", "--output": "output", "--values": "values", "--settings": "settings"}

    i = 0
    while i < len(args):
        arg = args[i]

        if arg in options:
            if i + 1 < len(args):
                result[options[arg]] = args[i + 1]
                i += 1
            else:
                result["error"] = f"{arg} requires a value"
                return result
        elif arg == "--size":
            if i + 1 < len(args):
                size = parse_size(args[i + 1])
                if size is None:
                    result["error"] = f"Invalid size: {args[i + 1]} (expected WxH)"
                    return result
                result["size"] = size
                i += 1
            else:
                result["error"] = "--size requires a value"
                return result
        elif arg in ("--help", "-h"):
            result["show_help"] = True
        elif arg in ("--version", "-v"):
            result["show_version"] = True
        elif arg.startswith("-"):
            result["error"] = f"Unknown option: {arg}"
            return result
        elif result["command"] is None:
            result["command"] = arg
        else:
            result["positional"].append(arg)

        i += 1

    return result


def parse_size(value: str) -> tuple[float, float] | None:
    """Parse "320x240" into (320.0, 240.0)."""
    parts = value.lower().split("x")
    if len(parts) != 2:
        return None
    try:
        width, height = float(parts[0]), float(parts[1])
    except ValueError:
        return None
    if width <= 0 or height <= 0:
        return None
    return width, height


def write_output(text: str, output: str | None):
    if output:
        Path(output).write_text(text, encoding="utf-8")
    else:
        print(text)


def read_json(path: str | None) -> dict:
    if not path:
        return {}
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object")
    return data


# -- commands --


def cmd_extract(path: str, output: str | None) -> int:
    metadata = parse_metadata(Path(path).read_text(encoding="utf-8"))
    write_output(metadata_to_json(metadata), output)
    return 0


def cmd_embed(path: str, metadata_path: str, output: str | None) -> int:
    try:
        metadata = metadata_from_json(Path(metadata_path).read_text(encoding="utf-8"))
    except MetadataParseError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    try:
        content = update_metadata_in_content(Path(path).read_text(encoding="utf-8"), metadata)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    write_output(content, output)
    return 0


def cmd_defaults(path: str, output: str | None) -> int:
    metadata = parse_metadata(Path(path).read_text(encoding="utf-8"))
    write_output(json.dumps(default_settings(metadata), indent=2), output)
    return 0


async def render_document(
    content: str,
    values: dict,
    settings: dict,
    size: tuple[float, float] | None = None,
) -> tuple[str, list[str]]:
    """
    Run the full runtime over content with static values.
    Returns (rendered markup, error messages).
    """
    errors: list[str] = []
    source = MemoryDocumentSource({"document.svg": content})
    ctx = MemoryWidgetContext(source, values=values)
    svg = IotSvgObject(ctx, "document.svg", settings)
    svg.on_error(errors.append)
    if size is not None:
        svg.set_size(*size)
    await svg.init()
    if svg.acquisition_task is not None:
        await svg.acquisition_task
    markup = svg.scene.markup()
    svg.destroy()
    return markup, errors


def cmd_render(path: str, args: dict) -> int:
    try:
        values = read_json(args["values"])
        settings = read_json(args["settings"])
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    content = Path(path).read_text(encoding="utf-8")
    markup, errors = asyncio.run(render_document(content, values, settings, args["size"]))
    for message in errors:
        print(f"Warning: {message}", file=sys.stderr)
    write_output(markup, args["output"])
    return 0


_ARITY = {"extract": 1, "embed": 2, "defaults": 1, "render": 1}


def main():
    """Main entry point."""
    args = parse_args(sys.argv[1:])
    logging.basicConfig(level=config.LOG_LEVEL.upper(), format="%(levelname)s %(name)s: %(message)s")

    if args["error"]:
        print(f"Error: {args['error']}")
        print("Run 'iotsvg --help' for usage.")
        sys.exit(1)

    # Handle help and version first
    if args["show_help"]:
        print_help()
        return

    if args["show_version"]:
        print(f"iotsvg {__version__}")
        return

    if args["command"] is None:
        print_help()
        return

    command = args["command"]
    if command not in _ARITY:
        print(f"Unknown command: {command}")
        print("Run 'iotsvg --help' for usage.")
        sys.exit(1)

    positional = args["positional"]
    if len(positional) != _ARITY[command]:
        print(f"Error: {command} expects {_ARITY[command]} argument(s)")
        sys.exit(1)

    try:
        if command == "extract":
            code = cmd_extract(positional[0], args["output"])
        elif command == "embed":
            code = cmd_embed(positional[0], positional[1], args["output"])
        elif command == "defaults":
            code = cmd_defaults(positional[0], args["output"])
        else:
            code = cmd_render(positional[0], args)
    except FileNotFoundError as e:
        print(f"Error: {e.filename}: no such file")
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
