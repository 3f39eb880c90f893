"""Data models for the session core."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Origin(str, Enum):
    TRANSCRIPTION = "transcription"
    CHAT = "chat"


class SpeakerRole(str, Enum):
    PATIENT = "patient"
    AGENT = "agent"


class AgentState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    PRE_CONNECT_BUFFERING = "pre-connect-buffering"
    INITIALIZING = "initializing"
    LISTENING = "listening"
    THINKING = "thinking"
    SPEAKING = "speaking"
    UNAVAILABLE = "unavailable"

    @property
    def is_available(self) -> bool:
        return self in (AgentState.LISTENING, AgentState.THINKING, AgentState.SPEAKING)


class SessionHealthState(str, Enum):
    WAITING_FOR_AGENT = "waiting_for_agent"
    AVAILABLE = "available"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class Message:
    """A single entry of the merged conversation timeline."""
    id: str
    origin: Origin
    speaker_role: SpeakerRole
    text: str
    timestamp: int  # ms since epoch, as given by the source
    sender: str = ""  # raw identity, display only


Timeline = Tuple[Message, ...]


@dataclass(frozen=True)
class DialogueEntry:
    speaker: str  # "AI" or "Patient"
    text: str

    def to_dict(self):
        return {"speaker": self.speaker, "text": self.text}


@dataclass(frozen=True)
class ReportRequest:
    """Payload asking the backend to generate the end-of-session report."""
    session_id: str
    requested_at: str  # ISO-8601
    dialogue: Tuple[DialogueEntry, ...] = ()
    kind: str = "GENERATE_REPORT"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind,
            "data": {
                "dialogue": [entry.to_dict() for entry in self.dialogue],
                "meta": {
                    "sessionId": self.session_id,
                    "requestedAt": self.requested_at,
                },
            },
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


@dataclass(frozen=True)
class ConnectionDetails:
    """Participant credential plus what it was issued for."""
    server_url: str
    room_name: str
    participant_name: str
    participant_token: str


@dataclass(frozen=True)
class Notification:
    """A user-facing message for the toast collaborator."""
    title: str
    description: str = ""


@dataclass(frozen=True)
class WatchdogTimeout:
    """Outcome reported when the agent never became available."""
    reason: str
    last_agent_state: Optional[AgentState] = None
    timeout_s: float = 0.0
