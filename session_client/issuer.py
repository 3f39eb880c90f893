"""HTTP client for the connection-details (credential) issuer."""

from __future__ import annotations

from typing import Optional

import httpx
from pydantic import BaseModel, ValidationError

from session_client.config import Config
from session_client.errors import CredentialFetchError
from session_client.models import ConnectionDetails


class ConnectionDetailsPayload(BaseModel):
    """Issuer response body."""
    serverUrl: str
    roomName: str
    participantName: str
    participantToken: str

    def to_details(self) -> ConnectionDetails:
        return ConnectionDetails(
            server_url=self.serverUrl,
            room_name=self.roomName,
            participant_name=self.participantName,
            participant_token=self.participantToken,
        )


class CredentialIssuer:
    """Fetches fresh connection details from the issuer endpoint."""

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url or Config.CONNECTION_DETAILS_URL
        self.timeout = timeout or Config.ISSUER_TIMEOUT_SECONDS
        self._transport = transport

    async def fetch(self) -> ConnectionDetails:
        """Request a new participant credential.

        Returns:
            ConnectionDetails built from the issuer response

        Raises:
            CredentialFetchError: Issuer unreachable, non-2xx, or malformed body
        """
        if not self.url:
            raise CredentialFetchError("CONNECTION_DETAILS_URL is not set")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.get(self.url, headers={"Cache-Control": "no-store"})
        except httpx.HTTPError as e:
            raise CredentialFetchError(f"Issuer unreachable: {e}") from e

        if not r.is_success:
            # issuer answers failures in plain text, surface it as is
            raise CredentialFetchError(r.text, status_code=r.status_code)

        try:
            payload = ConnectionDetailsPayload.model_validate(r.json())
        except (ValueError, ValidationError) as e:
            raise CredentialFetchError(f"Malformed issuer response: {e}", status_code=r.status_code) from e

        return payload.to_details()
