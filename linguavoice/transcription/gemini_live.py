"""Gemini Live transport over the BidiGenerateContent websocket."""

import json
import asyncio
import logging
from typing import Any, AsyncIterator, Dict, Optional

import aiohttp

from .base import AbstractLiveTransport
from ..errors import ConnectionFailureError
from ..models.session import LiveSessionConfig
from ..models.transcription import Language

logger = logging.getLogger(__name__)

DEFAULT_LIVE_URL = (
    "wss://generativelanguage.googleapis.com/ws/"
    "google.ai.generativelanguage.v1beta.GenerativeService.BidiGenerateContent"
)
DEFAULT_LIVE_MODEL = "models/gemini-2.5-flash-native-audio-preview-09-2025"


def build_system_instruction(language: Language) -> str:
    return (
        f"You are a helpful transcriber. "
        f"Your task is to listen to the user's speech in {language.value} and transcribe it. "
        f"Do not respond with spoken audio. Remain silent and just listen."
    )


def build_setup_message(model: str, config: LiveSessionConfig) -> Dict[str, Any]:
    """Opening message: model, response modality, input transcription, listen-only instruction."""
    return {
        "setup": {
            "model": model,
            # The live model only accepts audio responses; we never play them.
            "generationConfig": {"responseModalities": ["AUDIO"]},
            "inputAudioTranscription": {},
            "systemInstruction": {
                "parts": [{"text": build_system_instruction(config.language)}]
            },
        }
    }


def build_audio_message(data: str, mime_type: str) -> Dict[str, Any]:
    return {
        "realtimeInput": {
            "mediaChunks": [{"mimeType": mime_type, "data": data}]
        }
    }


def extract_delta(message: Dict[str, Any]) -> Optional[str]:
    """Pull the input-transcription text out of a server message, if any."""
    server_content = message.get("serverContent") or {}
    transcription = server_content.get("inputTranscription") or {}
    return transcription.get("text") or None


class GeminiLiveTransport(AbstractLiveTransport):
    """Duplex websocket session with the Gemini Live API."""

    def __init__(self,
                 api_key: str,
                 model: str = DEFAULT_LIVE_MODEL,
                 url: str = DEFAULT_LIVE_URL,
                 connect_timeout: float = 15.0):
        self.api_key = api_key
        self.model = model
        self.url = url
        self.connect_timeout = connect_timeout

        self._http: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None

    async def connect(self, config: LiveSessionConfig) -> None:
        self._http = aiohttp.ClientSession()
        try:
            self._ws = await asyncio.wait_for(
                self._http.ws_connect(self.url, params={"key": self.api_key}, heartbeat=20.0),
                timeout=self.connect_timeout,
            )
            await self._ws.send_json(build_setup_message(self.model, config))
            reply = await asyncio.wait_for(self._read_message(), timeout=self.connect_timeout)
        except (aiohttp.ClientError, asyncio.TimeoutError, ConnectionResetError, ConnectionFailureError) as e:
            logger.error(f"Gemini Live connection failed: {e}")
            await self.close()
            raise ConnectionFailureError(ConnectionFailureError.CONNECT_FAILED) from e

        if reply is None or "setupComplete" not in reply:
            logger.error(f"Unexpected setup reply from Gemini Live: {reply}")
            await self.close()
            raise ConnectionFailureError(ConnectionFailureError.CONNECT_FAILED)

        logger.info(f"Gemini Live setup complete (model={self.model}, language={config.language.value})")

    async def send_audio(self, data: str, mime_type: str) -> None:
        if self._ws is None or self._ws.closed:
            raise ConnectionFailureError(ConnectionFailureError.INTERRUPTED)
        try:
            await self._ws.send_json(build_audio_message(data, mime_type))
        except (aiohttp.ClientError, ConnectionResetError) as e:
            raise ConnectionFailureError(ConnectionFailureError.INTERRUPTED) from e

    async def receive_deltas(self) -> AsyncIterator[str]:
        while True:
            message = await self._read_message()
            if message is None:
                logger.info("Gemini Live websocket closed")
                return
            text = extract_delta(message)
            if text is not None:
                yield text

    async def _read_message(self) -> Optional[Dict[str, Any]]:
        """Next JSON message, or None once the socket is closed."""
        if self._ws is None:
            return None
        try:
            msg = await self._ws.receive()
        except aiohttp.ClientError as e:
            raise ConnectionFailureError(ConnectionFailureError.INTERRUPTED) from e

        if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
            try:
                return json.loads(msg.data)
            except ValueError as e:
                raise ConnectionFailureError(
                    ConnectionFailureError.INTERRUPTED,
                    detail=f"Malformed message from the transcription service: {e}",
                ) from e
        if msg.type == aiohttp.WSMsgType.ERROR:
            raise ConnectionFailureError(ConnectionFailureError.INTERRUPTED)
        return None

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        http, self._http = self._http, None
        if ws is not None and not ws.closed:
            await ws.close()
        if http is not None and not http.closed:
            await http.close()
