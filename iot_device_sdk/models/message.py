"""Message model shared by telemetry, cloud-to-device and module routing."""

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class DiagnosticPropertyData(BaseModel):
    """Distributed-tracing data attached to a sampled outgoing message."""
    diagnostic_id: str
    creation_time_utc: str

    @property
    def correlation_context(self) -> str:
        return f"creationtimeutc={self.creation_time_utc}"


class Message(BaseModel):
    """
    A message sent to or received from the hub.

    ``lock_token`` is set by transports on received messages and used to
    settle them (complete / reject / abandon).
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: Union[bytes, str] = b""
    properties: Dict[str, str] = Field(default_factory=dict)
    message_id: Optional[str] = None
    correlation_id: Optional[str] = None
    content_type: Optional[str] = None
    content_encoding: Optional[str] = None
    lock_token: Optional[str] = None
    input_name: Optional[str] = None
    output_name: Optional[str] = None
    diagnostic_property_data: Optional[DiagnosticPropertyData] = None
    transport_obj: Any = Field(default=None, exclude=True)

    def get_bytes(self) -> bytes:
        """Return the body as bytes, encoding text as UTF-8."""
        if isinstance(self.data, bytes):
            return self.data
        return self.data.encode("utf-8")
