"""Abstract base class for live transcription transports."""

from abc import ABC, abstractmethod
from typing import AsyncIterator

from ..models.session import LiveSessionConfig


class AbstractLiveTransport(ABC):
    """One duplex connection to a remote live transcription service.

    All methods run on the owning session's event loop. Implementations raise
    ConnectionFailureError (never a raw transport exception) on failure.
    """

    @abstractmethod
    async def connect(self, config: LiveSessionConfig) -> None:
        """Open the connection and wait for the service to acknowledge setup."""
        pass

    @abstractmethod
    async def send_audio(self, data: str, mime_type: str) -> None:
        """Send one transport-encoded audio frame tagged with its content type."""
        pass

    @abstractmethod
    def receive_deltas(self) -> AsyncIterator[str]:
        """Yield transcript fragments in receipt order; ends when the service closes."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the connection. Safe to call more than once."""
        pass
