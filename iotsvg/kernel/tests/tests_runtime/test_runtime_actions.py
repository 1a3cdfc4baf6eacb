"""
IoT SVG Runtime -- Action Tests

Tag triggers are wired to compiled action scripts; call_action() routes a
behavior id to its setter (action) or to the host (widgetAction).

Covers:
  - Trigger wiring (cursor, listeners, handler arguments)
  - Action dispatch: busy flag, observer, error sink
  - Widget actions with resolved settings
  - Unknown ids are no-ops
"""

import asyncio

import pytest

from conftest import make_document, make_lamp_metadata
from iotsvg.kernel.host import DispatchError, MemoryDocumentSource, MemoryWidgetContext
from iotsvg.kernel.runtime import ActionObserver, IotSvgObject
from iotsvg.kernel.types import TagAction

# ============================================================================
# Fixtures
# ============================================================================


def make_runtime(metadata=None, settings=None, **ctx_kwargs):
    document = make_document(metadata or make_lamp_metadata())
    ctx = MemoryWidgetContext(MemoryDocumentSource({"doc.svg": document}), **ctx_kwargs)
    return IotSvgObject(ctx, "doc.svg", settings), ctx


async def make_loaded(metadata=None, settings=None, **ctx_kwargs):
    svg, ctx = make_runtime(metadata, settings, **ctx_kwargs)
    errors = []
    svg.on_error(errors.append)
    await svg.init()
    await svg.acquisition_task
    return svg, ctx, errors


class RecordingObserver(ActionObserver):
    def __init__(self):
        self.calls = []
        super().__init__(
            next=lambda: self.calls.append("next"),
            error=lambda err: self.calls.append(("error", err)),
        )


# ============================================================================
# Trigger wiring
# ============================================================================


class TestTriggerWiring:

    @pytest.mark.asyncio
    async def test_cursor_only_on_elements_with_triggers(self):
        svg, _, _ = await make_loaded()

        assert [e.attr("cursor") for e in svg.scene.find_by_tag("lamp")] == ["pointer", "pointer"]
        assert svg.scene.find_by_tag("label")[0].attr("cursor") is None

    @pytest.mark.asyncio
    async def test_one_listener_per_trigger_per_element(self):
        svg, _, _ = await make_loaded()

        for lamp in svg.scene.find_by_tag("lamp"):
            assert len(lamp.listeners("click")) == 1

    @pytest.mark.asyncio
    async def test_click_runs_action_script(self):
        svg, _, _ = await make_loaded()
        before = svg.render_count

        svg.scene.find_by_tag("lamp")[1].fire("click", {"type": "click"})

        assert svg.context.values["on"] is True
        assert svg.render_count == before + 1

        svg.scene.find_by_tag("lamp")[0].fire("click", {"type": "click"})
        assert svg.context.values["on"] is False

    @pytest.mark.asyncio
    async def test_handler_receives_event(self):
        metadata = make_lamp_metadata()
        metadata.tags[1].actions = {
            "click": TagAction(action_function="element_id = event['id']\nctx.api.set_value('on', element_id == 'lamp2')"),
        }
        svg, _, _ = await make_loaded(metadata)

        svg.scene.find_by_tag("lamp")[1].fire("click", {"id": "lamp2"})

        assert svg.context.values["on"] is True

    @pytest.mark.asyncio
    async def test_action_script_error_reported(self):
        metadata = make_lamp_metadata()
        metadata.tags[1].actions = {"click": TagAction(action_function="raise ValueError('bad click')")}
        svg, _, errors = await make_loaded(metadata)

        svg.scene.find_by_tag("lamp")[0].fire("click", {})

        assert errors == ["bad click"]

    @pytest.mark.asyncio
    async def test_script_dispatches_action(self):
        metadata = make_lamp_metadata()
        metadata.tags[1].actions = {
            "click": TagAction(action_function="ctx.api.call_action(event, 'turnOn', True)"),
        }
        svg, ctx, _ = await make_loaded(metadata)

        svg.scene.find_by_tag("lamp")[0].fire("click", {})
        await asyncio.sleep(0.01)

        assert ctx.sent == [("Turn on", True)]


# ============================================================================
# Action behaviors
# ============================================================================


class TestCallAction:

    @pytest.mark.asyncio
    async def test_success(self):
        svg, ctx, errors = await make_loaded()
        observer = RecordingObserver()
        busy = []
        svg.loading.subscribe(busy.append)

        task = svg.call_action(None, "turnOn", True, observer)
        assert svg.loading.value is True
        await task

        assert ctx.sent == [("Turn on", True)]
        assert observer.calls == ["next"]
        assert busy == [True, False]
        assert errors == []

    @pytest.mark.asyncio
    async def test_failure(self):
        svg, ctx, errors = await make_loaded(set_errors={"Turn on": "Device offline"})
        observer = RecordingObserver()
        busy = []
        svg.loading.subscribe(busy.append)

        await svg.call_action(None, "turnOn", True, observer)

        assert ctx.sent == []
        assert len(observer.calls) == 1
        kind, err = observer.calls[0]
        assert kind == "error"
        assert isinstance(err, DispatchError)
        assert errors == ["Device offline"]
        assert busy == [True, False]

    @pytest.mark.asyncio
    async def test_failing_observer_is_logged(self, caplog):
        svg, ctx, errors = await make_loaded()

        def explode():
            raise RuntimeError("observer broke")

        with caplog.at_level("ERROR", logger="iotsvg.kernel.runtime"):
            await svg.call_action(None, "turnOn", True, ActionObserver(next=explode))

        assert ctx.sent == [("Turn on", True)]
        assert svg.loading.value is False
        assert "action observer failed" in caplog.text
        assert errors == []

    @pytest.mark.asyncio
    async def test_without_observer(self):
        svg, ctx, _ = await make_loaded()

        await svg.call_action(None, "turnOn", False)

        assert ctx.sent == [("Turn on", False)]
        assert svg.loading.value is False

    @pytest.mark.asyncio
    async def test_setter_settings(self):
        svg, ctx, _ = await make_loaded(settings={"turnOn": {"executeRpc": {"method": "switchOn"}}})

        setter = ctx.setters[0]
        assert setter.settings.action_label == "Turn on"
        assert setter.settings.execute_rpc.method == "switchOn"
        assert setter.settings.value_to_data.constant_value is True

    @pytest.mark.asyncio
    async def test_unknown_id_is_noop(self):
        svg, ctx, errors = await make_loaded()
        busy = []
        svg.loading.subscribe(busy.append)

        result = svg.call_action(None, "ghost", True)

        assert result is None
        assert ctx.sent == []
        assert ctx.actions == []
        assert busy == []
        assert errors == []

    @pytest.mark.asyncio
    async def test_value_behavior_id_is_noop(self):
        svg, ctx, _ = await make_loaded()

        assert svg.call_action(None, "on", True) is None
        assert ctx.sent == []


# ============================================================================
# Widget actions
# ============================================================================


class TestWidgetAction:

    @pytest.mark.asyncio
    async def test_default_descriptor(self):
        svg, ctx, _ = await make_loaded()
        event = {"type": "click"}

        result = svg.call_action(event, "details")

        assert result is None
        assert len(ctx.actions) == 1
        received_event, descriptor = ctx.actions[0]
        assert received_event is event
        assert descriptor.type == "updateDashboardState"
        assert descriptor.set_entity_id is True

    @pytest.mark.asyncio
    async def test_overridden_descriptor(self):
        svg, ctx, _ = await make_loaded(settings={
            "details": {"targetDashboardStateId": "lamp_details", "openRightLayout": True},
        })

        svg.context.api.call_action({}, "details")

        descriptor = ctx.actions[0][1]
        assert descriptor.target_dashboard_state_id == "lamp_details"
        assert descriptor.open_right_layout is True
        assert svg.loading.value is False

    @pytest.mark.asyncio
    async def test_descriptor_keeps_extra_keys(self):
        svg, ctx, _ = await make_loaded(settings={
            "details": {"type": "openURL", "url": "https://example.com/lamp", "openNewBrowserTab": True},
        })

        svg.call_action({}, "details")

        descriptor = ctx.actions[0][1].to_dict()
        assert descriptor["type"] == "openURL"
        assert descriptor["url"] == "https://example.com/lamp"
        assert descriptor["openNewBrowserTab"] is True
