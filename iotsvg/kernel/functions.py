"""
IoT SVG Kernel — Function Compiler

Turns the script bodies embedded in a descriptor into callables.

Scripts are Python function bodies authored by dashboard designers and are
trusted: they run with full builtins and may touch anything the context
exposes. Each script is compiled exactly once, when the document loads.

Call shapes:
  root render   (svg, ctx)
  tag render    (element, ctx)
  tag action    (event, ctx)
"""

from __future__ import annotations

import keyword
import logging
import textwrap
from dataclasses import dataclass, field
from typing import Any, Callable

from iotsvg.kernel.types import Metadata

logger = logging.getLogger(__name__)

ROOT_RENDER_PARAMS = ("svg", "ctx")
TAG_RENDER_PARAMS = ("element", "ctx")
ACTION_PARAMS = ("event", "ctx")


class FunctionCompileError(Exception):
    """Script source could not be compiled."""
    pass


# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------


def compile_function(
    source: str | None,
    param_names: tuple[str, ...] | list[str],
    name: str = "script",
) -> Callable[..., Any]:
    """
    Compile a script body into a function taking exactly param_names.

    Empty, missing or invalid source yields a no-op with the same
    parameters; compile failures are logged, never raised.
    """
    if source is None or not source.strip():
        return _noop(param_names, name)
    try:
        return _build(source, param_names, name)
    except FunctionCompileError as e:
        logger.warning("functions: %s", e)
        return _noop(param_names, name)


def _build(source: str, param_names: tuple[str, ...] | list[str], name: str) -> Callable[..., Any]:
    for param in param_names:
        if not param.isidentifier() or keyword.iskeyword(param):
            raise FunctionCompileError(f"{name}: invalid parameter name {param!r}")

    body = textwrap.indent(textwrap.dedent(source).strip("\n"), "    ")
    # trailing pass keeps comment-only bodies valid
    code = f"def {_SCRIPT_NAME}({', '.join(param_names)}):\n{body}\n    pass\n"
    try:
        compiled = compile(code, f"<{name}>", "exec")
    except (SyntaxError, ValueError) as e:
        raise FunctionCompileError(f"{name}: {e}") from e

    namespace: dict[str, Any] = {}
    exec(compiled, namespace)  # noqa: S102
    fn = namespace[_SCRIPT_NAME]
    fn.__name__ = fn.__qualname__ = name
    return fn


def _noop(param_names: tuple[str, ...] | list[str], name: str) -> Callable[..., Any]:
    try:
        return _build("return None", param_names, name)
    except FunctionCompileError:
        return _ignore_args


def _ignore_args(*args: Any, **kwargs: Any) -> None:
    return None


_SCRIPT_NAME = "_iotsvg_script"


# ---------------------------------------------------------------------------
# Descriptor scripts
# ---------------------------------------------------------------------------

StateRender = Callable[[Any, Any], None]
ActionHandler = Callable[[Any, Any], None]


@dataclass
class CompiledScripts:
    """Every script of one descriptor, compiled. Keyed by tag name and trigger."""

    state_render: StateRender
    tag_renders: dict[str, StateRender] = field(default_factory=dict)
    tag_actions: dict[str, dict[str, ActionHandler]] = field(default_factory=dict)


def compile_scripts(metadata: Metadata) -> CompiledScripts:
    """Compile the root render, every tag render and every tag action."""
    scripts = CompiledScripts(
        state_render=compile_function(metadata.state_render_function, ROOT_RENDER_PARAMS, "state_render"),
    )
    for tag in metadata.tags:
        scripts.tag_renders[tag.tag] = compile_function(
            tag.state_render_function,
            TAG_RENDER_PARAMS,
            f"{tag.tag}_render",
        )
        if tag.actions:
            scripts.tag_actions[tag.tag] = {
                trigger: compile_function(action.action_function, ACTION_PARAMS, f"{tag.tag}_{trigger}")
                for trigger, action in tag.actions.items()
            }
    return scripts
