"""
IoT SVG Kernel — Host Collaborators

The runtime talks to the dashboard host only through the interfaces here:

  DocumentSource  fetch the raw SVG text
  ValueGetter     one-shot acquisition of a bound value
  ValueSetter     one-shot dispatch of an action value
  WidgetContext   bundles the above with the widget-action dispatcher and
                  the translation / entity-label helpers

Implement with the real dashboard pipelines in production, or use the
in-memory versions for tests and the command-line tool.
"""

from __future__ import annotations

from typing import Any, Callable

from iotsvg.kernel.settings import GetValueSettings, SetValueSettings, WidgetActionSettings

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class TransportError(Exception):
    """The SVG document could not be fetched. Fatal to init()."""
    pass


class AcquisitionError(Exception):
    """A value getter failed to acquire its value."""
    pass


class DispatchError(Exception):
    """A value setter failed to send its value."""
    pass


def format_error(ctx: WidgetContext, err: Any) -> str:
    """Human-readable message for any failure. Never empty."""
    return ctx.parse_exception(err) or "Unknown Error"


# ---------------------------------------------------------------------------
# Document sources
# ---------------------------------------------------------------------------


class DocumentSource:
    """Abstract source of SVG documents."""

    async def fetch_text(self, url: str) -> str:
        """Return the document text. Raises TransportError on failure."""
        raise NotImplementedError


class MemoryDocumentSource(DocumentSource):
    """In-memory documents keyed by path."""

    def __init__(self, documents: dict[str, str] | None = None) -> None:
        self.documents: dict[str, str] = dict(documents or {})
        self.requests: list[str] = []

    async def fetch_text(self, url: str) -> str:
        self.requests.append(url)
        content = self.documents.get(url)
        if content is None:
            raise TransportError(f"Document not found: {url}")
        return content


# ---------------------------------------------------------------------------
# Value pipelines
# ---------------------------------------------------------------------------

OnValue = Callable[[Any], None]
OnError = Callable[[Any], None]


class ValueGetter:
    """
    Acquires one bound value. get_value() performs a single fetch and
    reports through the callbacks: on_value(raw) on success, on_error(err)
    on failure (the error is re-raised to the awaiting caller too).
    """

    def __init__(
        self,
        settings: GetValueSettings,
        value_type: str,
        on_value: OnValue,
        on_error: OnError,
    ) -> None:
        self.settings = settings
        self.value_type = value_type
        self._on_value = on_value
        self._on_error = on_error
        self.destroyed = False

    async def get_value(self) -> Any:
        try:
            value = await self._fetch()
        except Exception as e:
            self._on_error(e)
            raise
        self._on_value(value)
        return value

    async def _fetch(self) -> Any:
        raise NotImplementedError

    def destroy(self) -> None:
        self.destroyed = True


class ValueSetter:
    """Dispatches one action value. set_value() raises on failure."""

    def __init__(self, settings: SetValueSettings) -> None:
        self.settings = settings
        self.destroyed = False

    async def set_value(self, value: Any) -> Any:
        return await self._send(value)

    async def _send(self, value: Any) -> Any:
        raise NotImplementedError

    def destroy(self) -> None:
        self.destroyed = True


# ---------------------------------------------------------------------------
# Widget context
# ---------------------------------------------------------------------------


class WidgetContext:
    """Everything the runtime needs from the dashboard host."""

    def __init__(self, source: DocumentSource) -> None:
        self.source = source

    async def fetch_text(self, url: str) -> str:
        return await self.source.fetch_text(url)

    def create_value_getter(
        self,
        settings: GetValueSettings,
        value_type: str,
        on_value: OnValue,
        on_error: OnError,
    ) -> ValueGetter:
        raise NotImplementedError

    def create_value_setter(self, settings: SetValueSettings) -> ValueSetter:
        raise NotImplementedError

    def on_widget_action(self, event: Any, action: WidgetActionSettings) -> None:
        raise NotImplementedError

    def parse_exception(self, err: Any) -> str:
        """Extract a message from an error object, a dict or a string."""
        if err is None:
            return ""
        if isinstance(err, str):
            return err
        if isinstance(err, dict):
            return str(err.get("message") or "")
        message = getattr(err, "message", None)
        if isinstance(message, str) and message:
            return message
        return str(err)

    def custom_translation(self, value: str) -> str:
        return value

    def entity_label(self, label: str) -> str:
        return label


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------


class MemoryValueGetter(ValueGetter):
    """Reads from MemoryWidgetContext.values by behavior label."""

    def __init__(self, context: MemoryWidgetContext, *args: Any) -> None:
        super().__init__(*args)
        self._context = context

    async def _fetch(self) -> Any:
        key = self.settings.action_label
        self._context.get_requests.append(key)
        if key in self._context.get_errors:
            raise AcquisitionError(self._context.get_errors[key])
        return self._context.values.get(key)


class MemoryValueSetter(ValueSetter):
    """Records sent values in MemoryWidgetContext.sent."""

    def __init__(self, context: MemoryWidgetContext, settings: SetValueSettings) -> None:
        super().__init__(settings)
        self._context = context

    async def _send(self, value: Any) -> Any:
        key = self.settings.action_label
        if key in self._context.set_errors:
            raise DispatchError(self._context.set_errors[key])
        self._context.sent.append((key, value))
        return value


class MemoryWidgetContext(WidgetContext):
    """
    Host stand-in for tests and offline rendering.

    values      acquired values, keyed by value behavior name
    get_errors  behavior name → error message for failing acquisitions
    set_errors  behavior name → error message for failing dispatches
    sent        (behavior name, value) pairs dispatched so far
    actions     (event, WidgetActionSettings) pairs received
    """

    def __init__(
        self,
        source: DocumentSource,
        values: dict[str, Any] | None = None,
        get_errors: dict[str, str] | None = None,
        set_errors: dict[str, str] | None = None,
    ) -> None:
        super().__init__(source)
        self.values: dict[str, Any] = dict(values or {})
        self.get_errors: dict[str, str] = dict(get_errors or {})
        self.set_errors: dict[str, str] = dict(set_errors or {})
        self.get_requests: list[str | None] = []
        self.sent: list[tuple[str | None, Any]] = []
        self.actions: list[tuple[Any, WidgetActionSettings]] = []
        self.getters: list[MemoryValueGetter] = []
        self.setters: list[MemoryValueSetter] = []

    def create_value_getter(
        self,
        settings: GetValueSettings,
        value_type: str,
        on_value: OnValue,
        on_error: OnError,
    ) -> ValueGetter:
        getter = MemoryValueGetter(self, settings, value_type, on_value, on_error)
        self.getters.append(getter)
        return getter

    def create_value_setter(self, settings: SetValueSettings) -> ValueSetter:
        setter = MemoryValueSetter(self, settings)
        self.setters.append(setter)
        return setter

    def on_widget_action(self, event: Any, action: WidgetActionSettings) -> None:
        self.actions.append((event, action))
