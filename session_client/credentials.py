"""Participant credential caching, staleness and refresh."""

from __future__ import annotations

import asyncio
import re
import time
from typing import Dict, Mapping, Optional
from urllib.parse import unquote

import jwt

from session_client.config import Config
from session_client.errors import ConfigurationError, MissingCredentialError
from session_client.issuer import CredentialIssuer
from session_client.log import setup_logger
from session_client.models import ConnectionDetails

logger = setup_logger(__name__)

_HANDOFF_FRAGMENT_RE = re.compile(r"#/room/([^?]+)\?token=([^&]+)")


def token_expiry(token: str) -> Optional[float]:
    """Expiry claim of a JWT in seconds since epoch, or None if absent/unreadable.

    The signature is not checked, only the issuer can do that.
    """
    if not token:
        return None
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return None
    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None
    return float(exp)


def is_stale(token: str, now: Optional[float] = None, margin: Optional[float] = None) -> bool:
    """True once ``now >= exp - margin``. A token without ``exp`` is always stale."""
    exp = token_expiry(token)
    if exp is None:
        return True
    now = time.time() if now is None else now
    margin = Config.CREDENTIAL_SAFETY_MARGIN_SECONDS if margin is None else margin
    return now >= exp - margin


def parse_handoff_fragment(fragment: str) -> Dict[str, str]:
    """Extract ``room`` and ``token`` from a ``#/room/<room>?token=<token>`` deep link."""
    m = _HANDOFF_FRAGMENT_RE.search(fragment or "")
    if not m:
        return {}
    return {"room": unquote(m.group(1)), "token": m.group(2)}


class CredentialManager:
    """Holds the session's credential and renews it before it expires.

    Concurrent callers during a refresh share the same in-flight request.
    """

    def __init__(
        self,
        issuer: Optional[CredentialIssuer] = None,
        handoff: Optional[Mapping[str, str]] = None,
        default_server_url: Optional[str] = None,
        default_participant_name: str = "user",
        margin: Optional[float] = None,
    ):
        self.issuer = issuer
        self.handoff = dict(handoff or {})
        self.default_server_url = Config.LIVEKIT_URL if default_server_url is None else default_server_url
        self.default_participant_name = default_participant_name
        self.margin = Config.CREDENTIAL_SAFETY_MARGIN_SECONDS if margin is None else margin

        self._credential: Optional[ConnectionDetails] = None
        self._inflight: Optional[asyncio.Task] = None

    @property
    def credential(self) -> Optional[ConnectionDetails]:
        return self._credential

    def is_stale(self, now: Optional[float] = None) -> bool:
        if self._credential is None:
            return True
        return is_stale(self._credential.participant_token, now=now, margin=self.margin)

    def invalidate(self) -> None:
        self._credential = None

    async def current_or_refreshed(self) -> ConnectionDetails:
        """Return the cached credential, refreshing it first if missing or stale."""
        if not self.is_stale():
            return self._credential
        return await self.refresh()

    async def refresh(self) -> ConnectionDetails:
        """Obtain a new credential, joining any refresh already in flight.

        Raises:
            ConfigurationError: Hand-off values incomplete and no issuer configured
            MissingCredentialError: Nothing to bootstrap from and no issuer
            CredentialFetchError: The issuer request failed
        """
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.get_running_loop().create_task(self._load())
            self._inflight.add_done_callback(_consume_exception)
        # A cancelled waiter must not cancel the shared request
        return await asyncio.shield(self._inflight)

    async def _load(self) -> ConnectionDetails:
        details = self._from_handoff()
        if details is not None and not is_stale(details.participant_token, margin=self.margin):
            logger.info("[CREDENTIALS] Using handed-off token for room '%s'", details.room_name)
        elif self.issuer is not None:
            logger.info("[CREDENTIALS] Requesting connection details from %s", self.issuer.url)
            details = await self.issuer.fetch()
        else:
            self._raise_bootstrap_error(details)

        self._credential = details
        return details

    def _from_handoff(self) -> Optional[ConnectionDetails]:
        server = self.handoff.get("server") or self.default_server_url
        room = self.handoff.get("room")
        token = self.handoff.get("token")
        if not (server and room and token):
            return None
        return ConnectionDetails(
            server_url=server,
            room_name=room,
            participant_name=self.handoff.get("name") or self.default_participant_name,
            participant_token=token,
        )

    def _raise_bootstrap_error(self, details: Optional[ConnectionDetails]):
        if details is not None:
            raise MissingCredentialError("Handed-off token has expired and no issuer is configured")

        server = self.handoff.get("server") or self.default_server_url
        fields = {"serverUrl": server, "roomName": self.handoff.get("room"), "token": self.handoff.get("token")}
        if not (fields["roomName"] or fields["token"]):
            raise MissingCredentialError()
        missing = [name for name, value in fields.items() if not value]
        raise ConfigurationError(f"Missing connection details: {', '.join(missing)}")


def _consume_exception(task: asyncio.Task) -> None:
    # outcome is delivered to waiters through shield(), this only marks it retrieved
    if not task.cancelled():
        task.exception()
