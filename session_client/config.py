"""Configuration management for connection, report and watchdog settings."""

import os
from typing import List, Optional, Tuple
from pathlib import Path

from dotenv import load_dotenv

# session_client/ sits one level below the project root, .env lives at the root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path)


def _split_markers(raw: str) -> Tuple[str, ...]:
    return tuple(m.strip().lower() for m in raw.split(",") if m.strip())


def _non_empty(raw: Optional[str], default: str) -> str:
    return (raw or "").strip() or default


class Config:
    """Application configuration from environment variables."""

    # Real-time server and the credentials the dev issuer signs tokens with
    LIVEKIT_URL: str = os.getenv("LIVEKIT_URL", "")
    LIVEKIT_API_KEY: Optional[str] = os.getenv("LIVEKIT_API_KEY")
    LIVEKIT_API_SECRET: Optional[str] = os.getenv("LIVEKIT_API_SECRET")

    # Dev issuer settings
    ROOM_NAME: str = os.getenv("ROOM_NAME", "test-room")
    TOKEN_TTL_MINUTES: int = int(os.getenv("TOKEN_TTL_MINUTES", "15"))

    # Where the client asks for fresh connection details
    CONNECTION_DETAILS_URL: str = os.getenv("CONNECTION_DETAILS_URL", "")
    ISSUER_TIMEOUT_SECONDS: float = float(os.getenv("ISSUER_TIMEOUT_SECONDS", "15"))
    CREDENTIAL_SAFETY_MARGIN_SECONDS: int = int(os.getenv("CREDENTIAL_SAFETY_MARGIN_SECONDS", "60"))

    # Speaker classification (substring match on participant identity)
    AGENT_IDENTITY_MARKERS: Tuple[str, ...] = _split_markers(os.getenv("AGENT_IDENTITY_MARKERS", "agent"))

    # End-of-session report
    SESSION_END_MARKER: str = _non_empty(os.getenv("SESSION_END_MARKER"), "[SESSION_END]")
    REPORT_TOPIC: str = os.getenv("REPORT_TOPIC", "report-request")

    # How long the agent gets to become available after session start
    AGENT_WATCHDOG_SECONDS: float = float(os.getenv("AGENT_WATCHDOG_SECONDS", "20"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls) -> List[str]:
        """Validate configuration and return list of missing required settings."""
        missing = []

        if not cls.LIVEKIT_URL:
            missing.append("LIVEKIT_URL")

        # The client can run from a hand-off token alone, only the issuer needs these
        if cls.CONNECTION_DETAILS_URL:
            return missing

        if not cls.LIVEKIT_API_KEY:
            missing.append("LIVEKIT_API_KEY (required to issue tokens)")
        if not cls.LIVEKIT_API_SECRET:
            missing.append("LIVEKIT_API_SECRET (required to issue tokens)")

        return missing
