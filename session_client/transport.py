"""Real-time room transport boundary.

The transport itself (room join/leave, media tracks, reconnection) lives
outside this package. The session core only talks to it through this interface.
"""

from abc import ABC, abstractmethod


class SideChannel(ABC):
    """Out-of-band reliable data path, tagged by topic."""

    @abstractmethod
    async def send_text(self, text: str, topic: str) -> None:
        """Send a UTF-8 text payload on the given topic.

        Args:
            text: Payload to deliver
            topic: Topic identifier the receiving backend listens on
        """
        pass


class RoomTransport(SideChannel):
    """Abstract interface for the room connection used by a session."""

    @abstractmethod
    async def connect(self, server_url: str, token: str) -> None:
        """Join the room with a participant token."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Leave the room. Must be safe to call more than once."""
        pass

    @abstractmethod
    async def send_chat(self, text: str) -> None:
        """Publish a chat message to the room."""
        pass
