"""Unit tests for one-shot Gemini file transcription."""

import asyncio
import base64
import json
from unittest.mock import AsyncMock, MagicMock, Mock, patch

import aiohttp
import pytest

from linguavoice.errors import ConnectionFailureError
from linguavoice.models.transcription import Language, UNINTELLIGIBLE
from linguavoice.transcription.gemini_batch import (
    GeminiBatchTranscriber,
    build_request,
    build_system_instruction,
    contract_violations,
    parse_response,
)


def _payload(*texts):
    return {"candidates": [{"content": {"parts": [{"text": text} for text in texts]}}]}


@pytest.mark.unit
class TestRequestAndResponse:
    """Test cases for request building and response parsing."""

    def test_system_instruction(self):
        instruction = build_system_instruction(Language.KHMER)

        assert "into Khmer" in instruction
        assert UNINTELLIGIBLE in instruction
        assert "timestamps" in instruction

    def test_request_carries_audio_inline(self):
        body = build_request(b"\x01\x02\x03", "audio/webm", Language.ENGLISH)

        parts = body["contents"][0]["parts"]
        assert parts[0]["inlineData"] == {
            "mimeType": "audio/webm",
            "data": base64.b64encode(b"\x01\x02\x03").decode("ascii"),
        }
        assert "English" in parts[1]["text"]
        assert body["generationConfig"]["temperature"] == 0.1

    def test_parse_joins_and_strips(self):
        assert parse_response(_payload("  Hello ", "world.  ")) == "Hello world."

    @pytest.mark.parametrize("payload", [
        {},
        {"candidates": []},
        {"candidates": [{"content": {"parts": []}}]},
        _payload("   \n"),
    ])
    def test_empty_output_becomes_sentinel(self, payload):
        assert parse_response(payload) == UNINTELLIGIBLE

    def test_explicit_stop_with_no_text_is_sentinel(self):
        payload = {"candidates": [{"content": {"parts": []}, "finishReason": "STOP"}]}

        assert parse_response(payload) == UNINTELLIGIBLE

    def test_blocked_prompt_raises(self):
        with pytest.raises(ConnectionFailureError) as exc_info:
            parse_response({"promptFeedback": {"blockReason": "SAFETY"}})

        assert "SAFETY" in exc_info.value.detail

    @pytest.mark.parametrize("finish_reason", ["SAFETY", "RECITATION", "OTHER"])
    def test_abnormal_finish_raises(self, finish_reason):
        payload = {"candidates": [{"content": {"parts": []}, "finishReason": finish_reason}]}

        with pytest.raises(ConnectionFailureError) as exc_info:
            parse_response(payload)

        assert finish_reason in exc_info.value.detail

    def test_first_completed_candidate_wins(self):
        payload = {"candidates": [
            {"content": {"parts": []}, "finishReason": "SAFETY"},
            {"content": {"parts": [{"text": "hello"}]}, "finishReason": "STOP"},
        ]}

        assert parse_response(payload) == "hello"


@pytest.mark.unit
class TestContractViolations:
    """Test cases for output contract checks."""

    def test_clean_transcript(self):
        assert contract_violations("I met her at the park yesterday.") == []

    def test_sentinel_is_clean(self):
        assert contract_violations(UNINTELLIGIBLE) == []

    @pytest.mark.parametrize("text,violation", [
        ("", "empty transcript"),
        ("[00:01] hello there", "timestamp"),
        ("Speaker 1: hello", "speaker label"),
        ("Here's the transcription: hello", "conversational framing"),
        ("Sure, the audio says hello", "conversational framing"),
    ])
    def test_detects_violation(self, text, violation):
        assert violation in contract_violations(text)


@pytest.mark.unit
class TestGeminiBatchTranscriber:
    """Test cases for GeminiBatchTranscriber."""

    def test_transcribe_audio(self):
        transcriber = GeminiBatchTranscriber(api_key="k")

        with patch.object(GeminiBatchTranscriber, "_post",
                          new=AsyncMock(return_value=_payload("Hello there."))) as post:
            result = asyncio.run(transcriber.transcribe_audio(b"abc", "audio/wav", Language.ENGLISH))

        assert result.text == "Hello there."
        assert result.language == Language.ENGLISH
        assert result.mime_type == "audio/wav"
        assert result.service == "Gemini (gemini-2.5-flash)"
        assert result.is_unintelligible is False
        assert result.processing_time >= 0
        body = post.call_args.args[0]
        assert body["contents"][0]["parts"][0]["inlineData"]["mimeType"] == "audio/wav"

    def test_silence_yields_sentinel(self):
        transcriber = GeminiBatchTranscriber(api_key="k")

        with patch.object(GeminiBatchTranscriber, "_post", new=AsyncMock(return_value={"candidates": []})):
            result = asyncio.run(transcriber.transcribe_audio(b"\x00" * 32, "audio/wav", Language.KHMER))

        assert result.text == UNINTELLIGIBLE
        assert result.is_unintelligible is True

    def test_transcribe_file_guesses_type(self, tmp_path):
        path = tmp_path / "clip.mp3"
        path.write_bytes(b"ID3fake")
        transcriber = GeminiBatchTranscriber(api_key="k")

        with patch.object(GeminiBatchTranscriber, "_post", new=AsyncMock(return_value=_payload("ok"))) as post:
            result = asyncio.run(transcriber.transcribe_file(str(path), Language.ENGLISH))

        assert result.mime_type == "audio/mpeg"
        inline = post.call_args.args[0]["contents"][0]["parts"][0]["inlineData"]
        assert base64.b64decode(inline["data"]) == b"ID3fake"

    def test_transcribe_file_unknown_type(self, tmp_path):
        path = tmp_path / "clip.lvraw"
        path.write_bytes(b"\x00")
        transcriber = GeminiBatchTranscriber(api_key="k")

        with patch.object(GeminiBatchTranscriber, "_post", new=AsyncMock(return_value=_payload("ok"))):
            result = asyncio.run(transcriber.transcribe_file(str(path), Language.ENGLISH))

        assert result.mime_type == "audio/webm"

    def test_network_error_is_translated(self):
        transcriber = GeminiBatchTranscriber(api_key="k")
        failing = Mock(side_effect=aiohttp.ClientConnectionError("refused"))

        with patch.object(aiohttp.ClientSession, "post", new=failing):
            with pytest.raises(ConnectionFailureError) as exc_info:
                asyncio.run(transcriber.transcribe_audio(b"abc", "audio/wav", Language.ENGLISH))

        assert exc_info.value.reason == ConnectionFailureError.CONNECT_FAILED

    def test_non_json_body_is_translated(self):
        transcriber = GeminiBatchTranscriber(api_key="k")
        response = MagicMock()
        response.status = 200
        response.json = AsyncMock(side_effect=json.JSONDecodeError("Expecting value", "<html>", 0))
        request = MagicMock()
        request.__aenter__ = AsyncMock(return_value=response)
        request.__aexit__ = AsyncMock(return_value=False)

        with patch.object(aiohttp.ClientSession, "post", new=Mock(return_value=request)):
            with pytest.raises(ConnectionFailureError) as exc_info:
                asyncio.run(transcriber.transcribe_audio(b"abc", "audio/wav", Language.ENGLISH))

        assert exc_info.value.reason == ConnectionFailureError.CONNECT_FAILED
        assert exc_info.value.detail == "Malformed response from the transcription service"

    def test_blocked_request_is_not_silence(self):
        transcriber = GeminiBatchTranscriber(api_key="k")
        blocked = {"promptFeedback": {"blockReason": "SAFETY"}}

        with patch.object(GeminiBatchTranscriber, "_post", new=AsyncMock(return_value=blocked)):
            with pytest.raises(ConnectionFailureError):
                asyncio.run(transcriber.transcribe_audio(b"abc", "audio/wav", Language.ENGLISH))
