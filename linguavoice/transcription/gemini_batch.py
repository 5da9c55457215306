"""One-shot Gemini transcription of a complete audio file."""

import re
import asyncio
import time
import base64
import logging
import mimetypes
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

import aiohttp

from ..errors import ConnectionFailureError
from ..models.transcription import Language, TranscriptionResult, UNINTELLIGIBLE

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_BATCH_MODEL = "gemini-2.5-flash"

_TIMESTAMP_RE = re.compile(r"\[?\b\d{1,2}:\d{2}(?::\d{2})?(?:[.,]\d+)?\b\]?")
_SPEAKER_LABEL_RE = re.compile(r"^\s*(?:speaker\s*\w+|spk\s*\d+|person\s*\d+)\s*:", re.IGNORECASE | re.MULTILINE)
_FRAMING_RE = re.compile(
    r"^\s*(?:here(?:'s| is) the transcri|sure[,!]|certainly[,!]|the audio says)",
    re.IGNORECASE,
)


def build_system_instruction(language: Language) -> str:
    return (
        f"You are an expert transcriber.\n"
        f"Your task is to transcribe the provided audio file accurately into {language.value}.\n"
        f"- Return ONLY the transcribed text.\n"
        f"- Do not include timestamps, speaker labels, or conversational filler.\n"
        f"- If the audio is silent or unintelligible, return \"{UNINTELLIGIBLE}\".\n"
        f"- Respect proper punctuation and grammar for {language.value}."
    )


def build_request(audio: bytes, mime_type: str, language: Language) -> Dict[str, Any]:
    """generateContent request body carrying the audio inline."""
    return {
        "systemInstruction": {"parts": [{"text": build_system_instruction(language)}]},
        "generationConfig": {"temperature": 0.1},
        "contents": [{
            "role": "user",
            "parts": [
                {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(audio).decode("ascii")}},
                {"text": f"Transcribe this audio into {language.value}."},
            ],
        }],
    }


def parse_response(payload: Dict[str, Any]) -> str:
    """Extract the transcript; a normal completion with no text becomes the unintelligible sentinel.

    Raises:
        ConnectionFailureError: If the request was blocked or generation stopped abnormally
    """
    block_reason = (payload.get("promptFeedback") or {}).get("blockReason")
    if block_reason:
        logger.error(f"Gemini refused the request: {block_reason}")
        raise ConnectionFailureError(
            ConnectionFailureError.CONNECT_FAILED,
            detail=f"The transcription service refused the request ({block_reason})",
        )

    candidates = payload.get("candidates") or []
    for candidate in candidates:
        finish_reason = candidate.get("finishReason", "STOP")
        if finish_reason != "STOP":
            continue
        texts = [part["text"] for part in (candidate.get("content") or {}).get("parts") or [] if part.get("text")]
        text = "".join(texts).strip()
        return text or UNINTELLIGIBLE

    if candidates:
        reasons = ", ".join(str(c.get("finishReason")) for c in candidates)
        logger.error(f"Gemini stopped without a transcript: {reasons}")
        raise ConnectionFailureError(
            ConnectionFailureError.CONNECT_FAILED,
            detail=f"The transcription service stopped without a transcript ({reasons})",
        )
    return UNINTELLIGIBLE


def contract_violations(text: str) -> List[str]:
    """List ways a transcript breaks the output contract (timestamps, labels, framing)."""
    violations = []
    if not text:
        violations.append("empty transcript")
    if _TIMESTAMP_RE.search(text):
        violations.append("timestamp")
    if _SPEAKER_LABEL_RE.search(text):
        violations.append("speaker label")
    if _FRAMING_RE.search(text):
        violations.append("conversational framing")
    return violations


class GeminiBatchTranscriber:
    """Transcribes whole audio payloads with a single generateContent call."""

    def __init__(self,
                 api_key: str,
                 model: str = DEFAULT_BATCH_MODEL,
                 api_base_url: str = DEFAULT_API_BASE_URL,
                 timeout_seconds: float = 60.0):
        """Initialize batch transcriber.

        Args:
            api_key: Gemini API key
            model: Model used for file transcription
            api_base_url: REST endpoint root
            timeout_seconds: Total timeout for one request
        """
        self.api_key = api_key
        self.model = model
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.service_name = f"Gemini ({model})"

        logger.info(f"GeminiBatchTranscriber initialized with model: {model}")

    async def transcribe_audio(self, audio: bytes, mime_type: str, language: Language) -> TranscriptionResult:
        """Transcribe an audio payload.

        Args:
            audio: Encoded audio in any container the service supports
            mime_type: Declared content type of ``audio``
            language: Target transcription language

        Returns:
            TranscriptionResult whose text is never empty

        Raises:
            ConnectionFailureError: If the request fails, times out, is refused
                or returns a malformed body
        """
        start_time = time.time()
        logger.debug(f"Transcribing {len(audio)} bytes of {mime_type} into {language.value}")

        payload = await self._post(build_request(audio, mime_type, language))
        text = parse_response(payload)

        violations = contract_violations(text)
        if violations:
            logger.warning(f"Transcript does not honour the instruction: {', '.join(violations)}")

        return TranscriptionResult(
            text=text,
            language=language,
            processing_time=time.time() - start_time,
            timestamp=datetime.now(),
            service=self.service_name,
            mime_type=mime_type,
        )

    async def transcribe_file(self, path: str, language: Language) -> TranscriptionResult:
        """Read an audio file, guess its content type and transcribe it."""
        file_path = Path(path)
        mime_type = mimetypes.guess_type(file_path.name)[0] or "audio/webm"
        return await self.transcribe_audio(file_path.read_bytes(), mime_type, language)

    async def _post(self, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.api_base_url}/models/{self.model}:generateContent"
        headers = {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, headers=headers, json=body) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        logger.error(f"Gemini API error: {response.status} - {error_text}")
                        raise ConnectionFailureError(
                            ConnectionFailureError.CONNECT_FAILED,
                            detail=f"Gemini API error: {response.status}",
                        )
                    return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Gemini API request failed: {e}")
            raise ConnectionFailureError(ConnectionFailureError.CONNECT_FAILED) from e
        except ValueError as e:
            logger.error(f"Gemini API returned a body that is not JSON: {e}")
            raise ConnectionFailureError(
                ConnectionFailureError.CONNECT_FAILED,
                detail="Malformed response from the transcription service",
            ) from e
