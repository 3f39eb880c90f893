"""Per-session orchestration: timeline, end-of-session report and watchdog."""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Sequence

from session_client.config import Config
from session_client.credentials import CredentialManager
from session_client.errors import SessionClientError
from session_client.log import setup_logger
from session_client.models import AgentState, ConnectionDetails, Notification, Timeline, WatchdogTimeout
from session_client.report_trigger import ReportTrigger
from session_client.timeline import merge_timeline
from session_client.transport import RoomTransport
from session_client.watchdog import SessionWatchdog

logger = setup_logger(__name__)


class SessionController:
    """Owns everything scoped to one room session.

    Build a new controller for every session and drop it on disconnect; the
    report latch and the watchdog timer go with it.
    """

    def __init__(
        self,
        transport: RoomTransport,
        credentials: CredentialManager,
        notify: Optional[Callable[[Notification], None]] = None,
        agent_markers: Optional[Sequence[str]] = None,
        watchdog_timeout: Optional[float] = None,
    ):
        self.transport = transport
        self.credentials = credentials
        self.notify = notify or (lambda _n: None)
        self.agent_markers = agent_markers or Config.AGENT_IDENTITY_MARKERS

        self.details: Optional[ConnectionDetails] = None
        self.trigger: Optional[ReportTrigger] = None
        self.watchdog = SessionWatchdog(
            teardown=self._teardown,
            on_timeout=self._on_watchdog_timeout,
            timeout=watchdog_timeout,
        )
        self.timeline: Timeline = ()
        self.listeners: List[Callable[[Timeline], None]] = []

        self._transcriptions: Sequence[Any] = ()
        self._chats: Sequence[Any] = ()
        self._connected = False
        self._started = False
        self._ended = False
        self._closed = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> ConnectionDetails:
        """Join the room with a valid credential and start the watchdog.

        A controller joins at most once; build a new one for the next session.
        """
        if self._started or self._closed:
            raise SessionClientError("Session already started, create a new controller to reconnect")
        self._started = True

        try:
            details = await self.credentials.current_or_refreshed()
        except SessionClientError as e:
            # nothing joined yet, the caller may retry on this controller
            self._started = False
            logger.error("[SESSION] Cannot start session: %s", e)
            self.notify(Notification(title="Connection failed", description=str(e)))
            raise

        try:
            await self.transport.connect(details.server_url, details.participant_token)
        except Exception:
            self._started = False
            raise
        self.details = details
        self.trigger = ReportTrigger(
            session_id=details.room_name,
            side_channel=self.transport,
            notify=self.notify,
        )
        self._connected = True
        logger.info("[SESSION] Joined room '%s' as %s", details.room_name, details.participant_name)

        self.watchdog.set_session_started(True)
        return details

    def on_transcriptions(self, snapshot: Sequence[Any]) -> Timeline:
        self._transcriptions = tuple(snapshot or ())
        return self._recompute()

    def on_chat_messages(self, snapshot: Sequence[Any]) -> Timeline:
        self._chats = tuple(snapshot or ())
        return self._recompute()

    def on_agent_state(self, state: AgentState | str) -> None:
        self.watchdog.on_agent_state(state)

    async def send_chat(self, text: str) -> None:
        logger.debug("[SESSION] Sending chat message: %s", text[:50])
        await self.transport.send_chat(text)

    async def disconnect(self) -> None:
        """Tear down the session. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self.watchdog.dispose()
        if self.trigger is not None:
            await self.trigger.wait()
        if self.watchdog.teardown_task is not None:
            await self.watchdog.teardown_task
        if self._connected:
            self._connected = False
            await self.transport.disconnect()
        logger.info("[SESSION] Session closed")

    def _recompute(self) -> Timeline:
        self.timeline = merge_timeline(self._transcriptions, self._chats, self.agent_markers)
        for listener in self.listeners:
            listener(self.timeline)
        if self.trigger is not None and not (self._ended or self._closed):
            self.trigger.scan(self.timeline)
        return self.timeline

    def _teardown(self):
        if not self._connected:
            return None
        self._connected = False
        return self.transport.disconnect()

    def _on_watchdog_timeout(self, outcome: WatchdogTimeout) -> None:
        self._ended = True
        self.notify(Notification(title="Session ended", description=outcome.reason))
