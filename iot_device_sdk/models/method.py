"""Direct-method request and response objects."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

from ..errors import ArgumentError, InvalidOperationError

if TYPE_CHECKING:
    from ..transport.base import DeviceTransport


@dataclass
class MethodMessage:
    """Raw method invocation as delivered by a transport."""
    request_id: str
    method_name: str = ""
    body: Union[bytes, str, None] = None
    properties: Dict[str, Any] = field(default_factory=dict)


def _require_request_id(request_id: Any) -> str:
    if not isinstance(request_id, str):
        raise TypeError(f"request_id must be a string, got {type(request_id).__name__}")
    if not request_id:
        raise ArgumentError("request_id must not be an empty string")
    return request_id


class DeviceMethodRequest:
    """
    A direct-method call received from the service.

    ``payload`` is the JSON-decoded body, or ``None`` when the body is
    empty or not valid JSON (the raw ``body`` is always available).
    """

    def __init__(self, request_id: str, method_name: str,
                 body: Union[bytes, str, None] = None):
        self.request_id = _require_request_id(request_id)
        if not method_name or not isinstance(method_name, str):
            raise ArgumentError("method_name must be a non-empty string")
        self.method_name = method_name
        self.body = body

    @property
    def payload(self) -> Any:
        if not self.body:
            return None
        try:
            return json.loads(self.body)
        except (ValueError, TypeError):
            return None

    def __repr__(self) -> str:
        return f"DeviceMethodRequest(request_id={self.request_id!r}, method_name={self.method_name!r})"


class DeviceMethodResponse:
    """
    Response to a direct-method call.

    One instance is handed to the method handler together with the request;
    the handler calls ``send`` exactly once.
    """

    def __init__(self, request_id: str, transport: "DeviceTransport"):
        self.request_id = _require_request_id(request_id)
        if transport is None:
            raise ArgumentError("transport cannot be None")
        self.is_response_complete = False
        self.status: Optional[int] = None
        self.payload: Any = None
        self._transport = transport

    async def send(self, status: int, payload: Any = None) -> None:
        """
        Send the response back to the service.

        Raises:
            InvalidOperationError: If the response was already sent
            TypeError: If ``status`` is not an integer
        """
        if self.is_response_complete:
            raise InvalidOperationError(
                "This response has already ended. Cannot end the same response more than once."
            )
        if isinstance(status, bool) or not isinstance(status, int):
            raise TypeError(f"status is {status!r}, expected an integer")

        self.status = status
        self.payload = payload
        self.is_response_complete = True
        await self._transport.send_method_response(self)
