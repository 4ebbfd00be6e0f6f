"""Client for devices."""

from typing import Any, Dict, Optional

from ..config import ClientConfig
from ..errors import ArgumentError, InvalidOperationError
from ..models.results import SharedAccessSignatureUpdated, TransportConfigured
from ..reliability import RetryPolicy
from ..transport.base import BlobUploader, CredentialsProvider, DeviceTransport
from .internal import InternalClient


class DeviceClient(InternalClient):
    """
    Client used by a device to talk to the hub.

    Adds file upload on top of the shared operations. When a blob uploader
    is given, option changes and renewed tokens are forwarded to it.
    """

    def __init__(
        self,
        transport: DeviceTransport,
        config: Optional[ClientConfig] = None,
        retry_policy: Optional[RetryPolicy] = None,
        credentials_provider: Optional[CredentialsProvider] = None,
        blob_uploader: Optional[BlobUploader] = None,
    ):
        super().__init__(transport, config, retry_policy, credentials_provider)
        self._blob_uploader = blob_uploader

    async def upload_to_blob(self, blob_name: str, stream: Any, stream_length: int) -> None:
        """
        Upload a stream to the storage account linked to the hub.

        Raises:
            ArgumentError: If a parameter is missing
            InvalidOperationError: If the client has no blob uploader
        """
        if not blob_name:
            raise ArgumentError(f"blob_name cannot be {blob_name!r}")
        if not stream:
            raise ArgumentError(f"stream cannot be {stream!r}")
        if not stream_length:
            raise ArgumentError(f"stream_length cannot be {stream_length!r}")
        if self._blob_uploader is None:
            raise InvalidOperationError("This client was created without a blob uploader")

        uploader = self._blob_uploader
        await self._retry(
            "upload_to_blob", lambda: uploader.upload_to_blob(blob_name, stream, stream_length)
        )

    async def set_options(self, options: Dict[str, Any]) -> TransportConfigured:
        result = await super().set_options(options)
        if self._blob_uploader is not None:
            self._blob_uploader.set_options(options)
        return result

    async def update_shared_access_signature(self, sas: str) -> SharedAccessSignatureUpdated:
        result = await super().update_shared_access_signature(sas)
        if self._blob_uploader is not None:
            self._blob_uploader.update_shared_access_signature(sas)
        return result
