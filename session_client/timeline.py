"""Merge live transcription and chat into one ordered conversation timeline.

Both sources arrive independently and out of order. The timeline is never
patched in place: every time either source changes, the whole thing is rebuilt
from the two snapshots, so the same inputs always give the same timeline.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Optional, Sequence

from session_client.config import Config
from session_client.models import Message, Origin, SpeakerRole, Timeline

# Priority order for the message body across the shapes the transport emits
TEXT_FIELDS = ("message", "text", "content", "body")
IDENTITY_FIELDS = ("from", "participant", "sender", "identity")


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def message_text(raw: Any) -> str:
    """First non-empty text field of a raw event, or "" when there is none."""
    if isinstance(raw, str):
        return raw
    for name in TEXT_FIELDS:
        value = _field(raw, name)
        if isinstance(value, str) and value:
            return value
    return ""


def sender_identity(raw: Any) -> str:
    for name in IDENTITY_FIELDS:
        value = _field(raw, name)
        if isinstance(value, str):
            return value
        # participant objects carry the identity one level down
        nested = _field(value, "identity")
        if isinstance(nested, str):
            return nested
    return ""


def _timestamp(raw: Any) -> int:
    value = _field(raw, "timestamp")
    if isinstance(value, bool):
        return 0
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    # inf, nan and anything else sort as 0
    return 0


def classify_speaker(identity: str, agent_markers: Optional[Sequence[str]] = None) -> SpeakerRole:
    """Best-effort speaker role from a free-text participant identity.

    This is a substring heuristic, not an authenticated claim: any identity
    containing one of ``agent_markers`` (case-insensitive) counts as the agent.
    """
    markers = Config.AGENT_IDENTITY_MARKERS if agent_markers is None else agent_markers
    lowered = (identity or "").lower()
    if any(m.lower() in lowered for m in markers if m):
        return SpeakerRole.AGENT
    return SpeakerRole.PATIENT


def _to_message(raw: Any, origin: Origin, index: int, agent_markers: Optional[Sequence[str]]) -> Message:
    identity = sender_identity(raw)
    raw_id = _field(raw, "id")
    msg_id = str(raw_id) if raw_id not in (None, "") else f"{origin.value}-{index}"
    return Message(
        id=msg_id,
        origin=origin,
        speaker_role=classify_speaker(identity, agent_markers),
        text=message_text(raw),
        timestamp=_timestamp(raw),
        sender=identity,
    )


def transcription_to_message(segment: Any, index: int = 0, agent_markers: Optional[Sequence[str]] = None) -> Message:
    return _to_message(segment, Origin.TRANSCRIPTION, index, agent_markers)


def chat_to_message(chat: Any, index: int = 0, agent_markers: Optional[Sequence[str]] = None) -> Message:
    return _to_message(chat, Origin.CHAT, index, agent_markers)


def merge_timeline(
    transcriptions: Iterable[Any],
    chats: Iterable[Any],
    agent_markers: Optional[Sequence[str]] = None,
) -> Timeline:
    """Merge two source snapshots into one timeline sorted by timestamp.

    Args:
        transcriptions: Transcription segments, in arrival order
        chats: Chat messages, in arrival order
        agent_markers: Identity substrings that denote the agent

    Returns:
        Tuple of messages, ascending timestamp; ties keep transcription-then-chat
        arrival order. Identical text in both sources is kept twice.
    """
    merged = [
        transcription_to_message(t, i, agent_markers) for i, t in enumerate(transcriptions or ())
    ]
    merged += [chat_to_message(c, i, agent_markers) for i, c in enumerate(chats or ())]

    # sorted() is stable, equal timestamps keep their input order
    return tuple(sorted(merged, key=lambda m: m.timestamp))
