"""Unit tests for the device twin."""

import asyncio

import pytest

from iot_device_sdk import DeviceClient, Twin
from iot_device_sdk.client.features import FeatureState
from iot_device_sdk.errors import (
    NotConnectedError,
    NotImplementedFeatureError,
    UnauthorizedError,
)
from iot_device_sdk.transport import TransportCapability
from tests.helpers.fake_transport import FakeTransport, NeverRetry, wait_for_background


@pytest.fixture
def twin_doc(fake_transport):
    fake_transport.twin_doc = {
        "desired": {"telemetry": {"interval": 30, "enabled": True}, "$version": 4},
        "reported": {"firmware": "1.0.0"},
    }
    return fake_transport.twin_doc


def listen(twin, event):
    received = []
    twin.events.subscribe(event, received.append)
    return received


class TestTwinGet:
    """Test full twin fetches."""

    @pytest.mark.asyncio
    async def test_get_populates_properties(self, device_client, twin_doc):
        twin = await device_client.get_twin()

        assert isinstance(twin, Twin)
        assert twin.properties.desired == twin_doc["desired"]
        assert twin.properties.reported == {"firmware": "1.0.0"}

    @pytest.mark.asyncio
    async def test_twin_is_created_once(self, device_client, twin_doc):
        first = await device_client.get_twin()
        second = await device_client.get_twin()
        assert first is second
        assert device_client.twin is first

    @pytest.mark.asyncio
    async def test_get_is_retried(self, device_client, fake_transport, twin_doc):
        fake_transport.fail_next("get_twin", NotConnectedError())
        twin = await device_client.get_twin()
        assert twin.properties.reported == {"firmware": "1.0.0"}
        assert fake_transport.call_count("get_twin") == 2

    @pytest.mark.asyncio
    async def test_failed_get_clears_properties(self, device_client, fake_transport, twin_doc):
        """A failed re-fetch leaves empty trees, not stale ones."""
        twin = await device_client.get_twin()
        fake_transport.fail_next("get_twin", UnauthorizedError("revoked"))

        with pytest.raises(UnauthorizedError):
            await twin.get()

        assert twin.properties.desired == {}
        assert twin.properties.reported == {}

    @pytest.mark.asyncio
    async def test_get_replaces_trees(self, device_client, fake_transport, twin_doc):
        twin = await device_client.get_twin()
        fake_transport.twin_doc = {"desired": {"new": 1}, "reported": {}}

        await twin.get()

        assert twin.properties.desired == {"new": 1}
        assert twin.properties.reported == {}

    @pytest.mark.asyncio
    async def test_concurrent_gets_are_serialized(self, device_client, fake_transport, twin_doc):
        twin = await device_client.get_twin()
        fake_transport.block("get_twin")

        first = asyncio.ensure_future(twin.get())
        second = asyncio.ensure_future(twin.get())
        for _ in range(3):
            await asyncio.sleep(0)
        assert fake_transport.call_count("get_twin") == 2  # initial get + first

        fake_transport.release("get_twin")
        await asyncio.gather(first, second)

        assert fake_transport.call_count("get_twin") == 3
        assert twin.properties.desired == twin_doc["desired"]

    @pytest.mark.asyncio
    async def test_get_fires_desired_events(self, device_client, twin_doc):
        twin = await device_client.get_twin()
        root = listen(twin, "properties.desired")
        interval = listen(twin, "properties.desired.telemetry.interval")
        await wait_for_background(twin)
        root.clear()
        interval.clear()

        await twin.get()

        assert root == [twin_doc["desired"]]
        assert interval == [30]

    @pytest.mark.asyncio
    async def test_twin_needs_capability(self):
        client = DeviceClient(FakeTransport(capabilities=[TransportCapability.C2D]))
        with pytest.raises(NotImplementedFeatureError):
            await client.get_twin()


class TestReportedProperties:
    """Test reported-property updates."""

    @pytest.mark.asyncio
    async def test_update_merges_locally(self, device_client, fake_transport, twin_doc):
        twin = await device_client.get_twin()

        await twin.reported_updater.update({"firmware": "1.1.0", "battery": {"level": 80}})

        assert fake_transport.calls["update_twin_reported_properties"] == [
            ({"firmware": "1.1.0", "battery": {"level": 80}},)
        ]
        assert twin.properties.reported == {"firmware": "1.1.0", "battery": {"level": 80}}

    @pytest.mark.asyncio
    async def test_null_deletes_reported_key(self, device_client, fake_transport):
        fake_transport.twin_doc = {"desired": {}, "reported": {"a": 1, "b": 2}}
        twin = await device_client.get_twin()

        await twin.reported_updater.update({"a": None})

        assert twin.properties.reported == {"b": 2}

    @pytest.mark.asyncio
    async def test_failed_update_leaves_tree_unchanged(self, device_client, fake_transport, twin_doc):
        twin = await device_client.get_twin()
        fake_transport.fail_next("update_twin_reported_properties", UnauthorizedError("denied"))

        with pytest.raises(UnauthorizedError):
            await twin.reported_updater.update({"firmware": "2.0.0"})

        assert twin.properties.reported == {"firmware": "1.0.0"}

    @pytest.mark.asyncio
    async def test_update_requires_dict(self, device_client, fake_transport, twin_doc):
        twin = await device_client.get_twin()
        with pytest.raises(TypeError):
            await twin.reported_updater.update(["not", "a", "dict"])
        assert fake_transport.call_count("update_twin_reported_properties") == 0


class TestDesiredPropertyEvents:
    """Test desired-property patches and listeners."""

    @pytest.mark.asyncio
    async def test_patch_fires_scoped_events(self, device_client, fake_transport):
        twin = await device_client.get_twin()
        root = listen(twin, "properties.desired")
        x = listen(twin, "properties.desired.x")
        y = listen(twin, "properties.desired.x.y")
        await wait_for_background(twin)

        fake_transport.push_desired_properties({"x": {"y": 1}})

        assert root == [{"x": {"y": 1}}]
        assert x == [{"y": 1}]
        assert y == [1]
        assert twin.properties.desired == {"x": {"y": 1}}

    @pytest.mark.asyncio
    async def test_patch_only_fires_changed_paths(self, device_client, fake_transport, twin_doc):
        twin = await device_client.get_twin()
        enabled = listen(twin, "properties.desired.telemetry.enabled")
        interval = listen(twin, "properties.desired.telemetry.interval")
        await wait_for_background(twin)
        enabled.clear()
        interval.clear()

        fake_transport.push_desired_properties({"telemetry": {"interval": 60}})

        assert interval == [60]
        assert enabled == []
        assert twin.properties.desired["telemetry"] == {"interval": 60, "enabled": True}

    @pytest.mark.asyncio
    async def test_null_in_patch_deletes_desired_key(self, device_client, fake_transport, twin_doc):
        twin = await device_client.get_twin()
        fake_transport.push_desired_properties({"telemetry": {"enabled": None}})
        assert twin.properties.desired["telemetry"] == {"interval": 30}

    @pytest.mark.asyncio
    async def test_late_subscriber_gets_cached_value_next_tick(self, device_client, twin_doc):
        twin = await device_client.get_twin()
        received = listen(twin, "properties.desired.telemetry.interval")

        assert received == []
        await asyncio.sleep(0)
        assert received == [30]

    @pytest.mark.asyncio
    async def test_replay_only_reaches_new_listener(self, device_client, twin_doc):
        twin = await device_client.get_twin()
        first = listen(twin, "properties.desired.telemetry")
        await wait_for_background(twin)
        second = listen(twin, "properties.desired.telemetry")
        await wait_for_background(twin)

        assert len(first) == 1
        assert len(second) == 1

    @pytest.mark.asyncio
    async def test_replay_includes_falsy_values(self, device_client, fake_transport):
        fake_transport.twin_doc = {"desired": {"count": 0}, "reported": {}}
        twin = await device_client.get_twin()
        received = listen(twin, "properties.desired.count")
        await wait_for_background(twin)
        assert received == [0]

    @pytest.mark.asyncio
    async def test_no_replay_for_missing_path_or_empty_root(self, device_client):
        twin = await device_client.get_twin()
        missing = listen(twin, "properties.desired.nothing")
        root = listen(twin, "properties.desired")
        await wait_for_background(twin)
        assert missing == []
        assert root == []

    @pytest.mark.asyncio
    async def test_first_listener_enables_updates(self, device_client, fake_transport):
        twin = await device_client.get_twin()
        listen(twin, "properties.desired")
        listen(twin, "properties.desired.a")
        await wait_for_background(twin)

        assert fake_transport.call_count("enable_twin_desired_properties_updates") == 1
        assert twin.desired_updates.state is FeatureState.ENABLED

    @pytest.mark.asyncio
    async def test_unrelated_listener_does_not_enable_updates(self, device_client, fake_transport):
        twin = await device_client.get_twin()
        listen(twin, "properties.desiredness")
        listen(twin, "error")
        await wait_for_background(twin)
        assert fake_transport.call_count("enable_twin_desired_properties_updates") == 0

    @pytest.mark.asyncio
    async def test_last_listener_disables_updates(self, device_client, fake_transport):
        twin = await device_client.get_twin()
        root = twin.events.subscribe("properties.desired", lambda value: None)
        leaf = twin.events.subscribe("properties.desired.a", lambda value: None)
        await wait_for_background(twin)

        root.unsubscribe()
        await wait_for_background(twin)
        assert fake_transport.call_count("disable_twin_desired_properties_updates") == 0

        leaf.unsubscribe()
        await wait_for_background(twin)
        assert fake_transport.call_count("disable_twin_desired_properties_updates") == 1
        assert twin.desired_updates.state is FeatureState.DISABLED

    @pytest.mark.asyncio
    async def test_enable_failure_emits_twin_error(self, device_client, fake_transport):
        twin = await device_client.get_twin()
        errors = listen(twin, "error")
        fake_transport.fail_next("enable_twin_desired_properties_updates", UnauthorizedError("denied"))

        listen(twin, "properties.desired")
        await wait_for_background(twin)

        assert isinstance(errors[0], UnauthorizedError)
        assert twin.desired_updates.state is FeatureState.DISABLED


class TestTwinLifecycle:
    """Test retry policy propagation, recovery and close."""

    @pytest.mark.asyncio
    async def test_retry_policy_propagates_to_twin(self, device_client, fake_transport, twin_doc):
        twin = await device_client.get_twin()
        device_client.set_retry_policy(NeverRetry())
        fake_transport.fail_next("get_twin", NotConnectedError())

        with pytest.raises(NotConnectedError):
            await twin.get()
        assert fake_transport.call_count("get_twin") == 2

    @pytest.mark.asyncio
    async def test_desired_updates_recover_after_disconnect(self, device_client, fake_transport):
        twin = await device_client.get_twin()
        listen(twin, "properties.desired")
        await wait_for_background(twin)

        fake_transport.simulate_disconnect(NotConnectedError("link lost"))
        await wait_for_background(device_client, twin)

        assert fake_transport.call_count("enable_twin_desired_properties_updates") == 2
        assert twin.desired_updates.enabled

    @pytest.mark.asyncio
    async def test_close_detaches_twin(self, device_client, fake_transport, twin_doc):
        twin = await device_client.get_twin()
        received = listen(twin, "properties.desired")
        await wait_for_background(twin)
        received.clear()

        await device_client.close()
        fake_transport.push_desired_properties({"a": 1})

        assert received == []
        assert device_client.twin is None
        assert twin.desired_updates.state is FeatureState.DISABLED
