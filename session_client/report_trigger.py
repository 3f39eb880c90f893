"""End-of-session detection and the one-shot report request."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional

from session_client.config import Config
from session_client.errors import DispatchError
from session_client.log import setup_logger
from session_client.models import (
    DialogueEntry,
    Notification,
    ReportRequest,
    SpeakerRole,
    Timeline,
)
from session_client.transport import SideChannel

logger = setup_logger(__name__)

SPEAKER_LABELS = {
    SpeakerRole.AGENT: "AI",
    SpeakerRole.PATIENT: "Patient",
}


def contains_marker(text: str, marker: str) -> bool:
    if not text:
        return False
    return marker.strip().upper() in text.strip().upper()


def build_report_request(timeline: Timeline, session_id: str, now: Optional[datetime] = None) -> ReportRequest:
    """Snapshot the whole timeline into a report request."""
    now = now or datetime.now(timezone.utc)
    dialogue = tuple(
        DialogueEntry(speaker=SPEAKER_LABELS[m.speaker_role], text=m.text or "")
        for m in timeline
    )
    return ReportRequest(
        session_id=session_id,
        requested_at=now.isoformat(),
        dialogue=dialogue,
    )


class ReportTrigger:
    """Fires at most one report request for the session it belongs to.

    Create one per session. The latch lives on the instance, so a new session
    gets a new trigger and can report again.
    """

    def __init__(
        self,
        session_id: str,
        side_channel: SideChannel,
        notify: Optional[Callable[[Notification], None]] = None,
        marker: Optional[str] = None,
        topic: Optional[str] = None,
    ):
        self.session_id = session_id
        self.side_channel = side_channel
        self.notify = notify or (lambda _n: None)
        # a blank marker would match every message
        self.marker = (marker or "").strip() or Config.SESSION_END_MARKER
        self.topic = topic or Config.REPORT_TOPIC

        self._triggered = False
        self._task: Optional[asyncio.Task] = None
        self.request: Optional[ReportRequest] = None
        self.last_error: Optional[DispatchError] = None

    @property
    def triggered(self) -> bool:
        return self._triggered

    def scan(self, timeline: Timeline) -> Optional[asyncio.Task]:
        """Look for the end marker and dispatch the report if it is the first hit.

        Must be called from inside the running event loop.

        Returns:
            The dispatch task when this call tripped the latch, else None
        """
        if not timeline or self._triggered:
            return None

        if not any(contains_marker(m.text, self.marker) for m in timeline):
            return None

        # Trip before scheduling so re-scans ahead of the send stay no-ops
        self._triggered = True
        self.request = build_report_request(timeline, self.session_id)
        logger.info(
            "[REPORT] %s detected in session %s, requesting report (%d messages)",
            self.marker, self.session_id, len(self.request.dialogue),
        )
        self._task = asyncio.get_running_loop().create_task(self._dispatch(self.request))
        return self._task

    async def _dispatch(self, request: ReportRequest) -> None:
        try:
            await self.side_channel.send_text(request.to_json(), topic=self.topic)
        except Exception as e:
            self.last_error = DispatchError(f"{type(e).__name__}: {e}")
            self.last_error.__cause__ = e
            logger.error("[REPORT] Failed to send report request for session %s: %s", self.session_id, e)
            self.notify(Notification(title="Failed to request report", description=str(e)))
            return

        logger.info("[REPORT] Report request sent on topic '%s'", self.topic)
        self.notify(Notification(
            title="Report requested",
            description="The report generation request has been sent.",
        ))

    async def wait(self) -> None:
        """Wait for an in-flight dispatch, if any."""
        if self._task is not None and not self._task.done():
            await asyncio.wait([self._task])
