import asyncio
import time

import jwt
import pytest

from session_client.models import ConnectionDetails

TEST_SECRET = "test-secret-that-is-long-enough-for-hs256"


def make_token(exp_offset=None, **claims):
    if exp_offset is not None:
        claims["exp"] = int(time.time()) + exp_offset
    claims.setdefault("sub", "voice_assistant_user_1")
    return jwt.encode(claims, TEST_SECRET, algorithm="HS256")


def make_details(token, room="test-room"):
    return ConnectionDetails(
        server_url="wss://example.test",
        room_name=room,
        participant_name="user",
        participant_token=token,
    )


class FakeTransport:
    """In-memory room transport recording every call."""

    def __init__(self, fail_send=None, gate=None):
        self.connected_with = []
        self.disconnects = 0
        self.sent = []
        self.chats = []
        self.fail_send = fail_send
        self.gate = gate

    async def connect(self, server_url, token):
        self.connected_with.append((server_url, token))

    async def disconnect(self):
        self.disconnects += 1

    async def send_chat(self, text):
        self.chats.append(text)

    async def send_text(self, text, topic):
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_send is not None:
            raise self.fail_send
        self.sent.append((text, topic))


class FakeIssuer:
    url = "http://issuer.test/api/connection-details"

    def __init__(self, details=None, error=None, delay=0.01):
        self.details = details
        self.error = error
        self.delay = delay
        self.calls = 0

    async def fetch(self):
        self.calls += 1
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.details


@pytest.fixture
def notifications():
    return []
