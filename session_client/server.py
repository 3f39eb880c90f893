"""FastAPI development issuer for participant connection details."""

import random
import time
from typing import Optional

import jwt
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from session_client.config import Config
from session_client.issuer import ConnectionDetailsPayload
from session_client.log import setup_logger

logger = setup_logger(__name__)

app = FastAPI(title="Session connection details issuer")

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)


def create_participant_token(
    identity: str,
    name: str,
    room_name: str,
    api_key: str,
    api_secret: str,
    ttl_minutes: int = 15,
    now: Optional[int] = None,
) -> str:
    """Sign a room access token for one participant.

    Args:
        identity: Unique participant identity
        name: Display name
        room_name: Room the token grants access to
        api_key: Key id, used as the token issuer
        api_secret: Shared secret the token is signed with (HS256)
        ttl_minutes: Token lifetime
        now: Issue time in seconds since epoch (defaults to now)

    Returns:
        Encoded JWT with an ``exp`` claim
    """
    now = int(time.time()) if now is None else now
    claims = {
        "iss": api_key,
        "sub": identity,
        "name": name,
        "nbf": now,
        "exp": now + ttl_minutes * 60,
        "video": {
            "room": room_name,
            "roomJoin": True,
            "canPublish": True,
            "canPublishData": True,
            "canSubscribe": True,
        },
    }
    return jwt.encode(claims, api_secret, algorithm="HS256")


@app.get("/api/connection-details", response_model=ConnectionDetailsPayload)
async def connection_details():
    """Issue fresh connection details for a new participant."""
    try:
        if not Config.LIVEKIT_URL:
            raise RuntimeError("LIVEKIT_URL is not defined")
        if not Config.LIVEKIT_API_KEY:
            raise RuntimeError("LIVEKIT_API_KEY is not defined")
        if not Config.LIVEKIT_API_SECRET:
            raise RuntimeError("LIVEKIT_API_SECRET is not defined")

        participant_name = "user"
        participant_identity = f"voice_assistant_user_{random.randint(0, 9999)}"
        room_name = Config.ROOM_NAME

        token = create_participant_token(
            identity=participant_identity,
            name=participant_name,
            room_name=room_name,
            api_key=Config.LIVEKIT_API_KEY,
            api_secret=Config.LIVEKIT_API_SECRET,
            ttl_minutes=Config.TOKEN_TTL_MINUTES,
        )
    except Exception as e:
        logger.error("[ISSUER] %s", e)
        return PlainTextResponse(str(e), status_code=500)

    payload = ConnectionDetailsPayload(
        serverUrl=Config.LIVEKIT_URL,
        roomName=room_name,
        participantName=participant_name,
        participantToken=token,
    )
    logger.info("[ISSUER] Issued token for %s in room '%s'", participant_identity, room_name)
    return JSONResponse(payload.model_dump(), headers={"Cache-Control": "no-store"})
