"""Unit tests for direct-method request and response objects."""

import pytest

from iot_device_sdk.errors import ArgumentError, InvalidOperationError
from iot_device_sdk.models import DeviceMethodRequest, DeviceMethodResponse
from tests.helpers.fake_transport import FakeTransport


class TestDeviceMethodRequest:
    """Test request parsing."""

    def test_json_payload(self):
        request = DeviceMethodRequest("1", "reboot", b'{"delay": 5}')
        assert request.payload == {"delay": 5}

    def test_empty_or_invalid_payload(self):
        assert DeviceMethodRequest("1", "reboot").payload is None
        assert DeviceMethodRequest("1", "reboot", b"not json").payload is None

    @pytest.mark.parametrize("request_id,error", [("", ArgumentError), (None, TypeError), (3, TypeError)])
    def test_invalid_request_id(self, request_id, error):
        with pytest.raises(error):
            DeviceMethodRequest(request_id, "reboot")

    def test_missing_method_name(self):
        with pytest.raises(ArgumentError):
            DeviceMethodRequest("1", "")


class TestDeviceMethodResponse:
    """Test response sending."""

    @pytest.mark.asyncio
    async def test_send(self):
        transport = FakeTransport()
        response = DeviceMethodResponse("42", transport)

        await response.send(200, {"result": "ok"})

        assert transport.method_responses == [response]
        assert response.status == 200
        assert response.payload == {"result": "ok"}
        assert response.is_response_complete

    @pytest.mark.asyncio
    async def test_send_twice_fails(self):
        transport = FakeTransport()
        response = DeviceMethodResponse("42", transport)
        await response.send(200)

        with pytest.raises(InvalidOperationError):
            await response.send(200)
        assert transport.call_count("send_method_response") == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["200", None, 2.5, True])
    async def test_status_must_be_int(self, status):
        response = DeviceMethodResponse("42", FakeTransport())
        with pytest.raises(TypeError):
            await response.send(status)
        assert not response.is_response_complete

    def test_requires_transport(self):
        with pytest.raises(ArgumentError):
            DeviceMethodResponse("42", None)
