"""
Example: Telemetry, Direct Methods and Twin Properties

This example wires a DeviceClient to a small in-memory transport so it
runs without a hub. Swap ``LoopbackTransport`` for a real MQTT or AMQP
transport to talk to a service.
"""

import asyncio
import json
import logging

from iot_device_sdk import (
    ClientConfig,
    Connected,
    DeviceClient,
    DeviceTransport,
    Disconnected,
    Message,
    MessageEnqueued,
    SharedAccessSignatureUpdated,
    TransportCapability,
)
from iot_device_sdk.models.method import MethodMessage


class LoopbackTransport(DeviceTransport):
    """Transport that keeps everything in memory and prints what it sends."""

    capabilities = frozenset({TransportCapability.METHODS, TransportCapability.TWIN})

    def __init__(self):
        super().__init__()
        self.twin = {"desired": {"interval": 5}, "reported": {}}
        self.method_handlers = {}

    async def connect(self):
        return Connected()

    async def disconnect(self):
        return Disconnected()

    async def update_shared_access_signature(self, sas):
        return SharedAccessSignatureUpdated(need_to_reconnect=False)

    async def send_event(self, message):
        print(f"  -> telemetry {message.get_bytes().decode()}")
        return MessageEnqueued()

    def on_device_method(self, method_name, handler):
        self.method_handlers[method_name] = handler

    async def enable_methods(self):
        pass

    async def disable_methods(self):
        pass

    async def send_method_response(self, response):
        print(f"  -> method response {response.request_id}: {response.status} {response.payload}")

    async def get_twin(self):
        return json.loads(json.dumps(self.twin))

    async def update_twin_reported_properties(self, patch):
        print(f"  -> reported {patch}")

    async def enable_twin_desired_properties_updates(self):
        pass

    async def disable_twin_desired_properties_updates(self):
        pass

    # What the service would do

    def call_method(self, name, payload):
        body = json.dumps(payload).encode()
        self.method_handlers[name](MethodMessage(request_id="1", method_name=name, body=body))

    def update_desired(self, patch):
        self.events.emit("twin_desired_properties_update", patch)


async def example_telemetry_and_twin():
    """Send telemetry at the interval configured through the twin."""
    print("=== Telemetry with Twin ===\n")

    transport = LoopbackTransport()
    client = DeviceClient(transport, config=ClientConfig(diagnostic_sampling_percentage=50))
    await client.open()

    twin = await client.get_twin()
    print(f"Desired properties: {twin.properties.desired}")

    async def on_interval(value):
        print(f"Interval is now {value}s")
        await twin.reported_updater.update({"interval": value})

    twin.events.subscribe("properties.desired.interval", on_interval)

    async def on_reset(request, response):
        print(f"Method {request.method_name} called with {request.payload}")
        await response.send(200, {"reset": True})

    client.on_device_method("reset", on_reset)

    for reading in (21.5, 21.7):
        message = Message(data=json.dumps({"temperature": reading}), content_type="application/json")
        await client.send_event(message)
        if message.diagnostic_property_data:
            print(f"  sampled with id {message.diagnostic_property_data.diagnostic_id}")

    transport.update_desired({"interval": 10})
    transport.call_method("reset", {"hard": False})
    await asyncio.sleep(0.1)

    await client.close()


async def main():
    logging.basicConfig(level=logging.WARNING)
    await example_telemetry_and_twin()


if __name__ == "__main__":
    asyncio.run(main())
