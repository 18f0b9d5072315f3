import base64
import json
from datetime import datetime, timedelta

import httpx
import pytest
import respx
from sqlmodel import Session

from callsync.clients.ai import AIClientError
from callsync.config import settings
from callsync.models import FailureKind
from callsync.services.call_analysis import parse_analysis
from callsync.services.transcription_service import (
    AudioFetchError,
    claim_record,
    classify_failure,
    encode_audio,
    transcribe_pending,
    transcribe_record,
)

AI_COMPLETIONS = "http://ai.test/v1/chat/completions"
AUDIO_URL = "http://dialer.test/RECORDINGS/MP3/20250101-093015_5566-all.mp3"
AUDIO = b"ID3" + bytes(range(256)) * 40

ANALYSIS = {
    "transcript": "Agent: Hello. Customer: Yes, sign me up.",
    "status": "sale",
    "sub_disposition": "Closed on first call",
    "summary": "Customer agreed to the offer.",
    "reason": "Price was right",
    "agent_response": "good",
    "customer_response": "superb",
}


def _completion(content: str) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
            "usage": {"total_tokens": 42},
        },
    )


class TestTranscribePending:
    @respx.mock
    @pytest.mark.asyncio
    async def test_prose_wrapped_json_is_parsed(self, engine, ai_client, make_record, get_record):
        record_id = make_record()
        respx.get(AUDIO_URL).mock(return_value=httpx.Response(200, content=AUDIO))
        ai_route = respx.post(AI_COMPLETIONS).mock(
            return_value=_completion(f"Here is the analysis:\n{json.dumps(ANALYSIS)}\nHope it helps.")
        )

        result = await transcribe_pending(engine=engine, ai_client=ai_client)

        assert result == {
            "success": True,
            "processed": 1,
            "success_count": 1,
            "fail_count": 0,
            "skipped_count": 0,
        }
        record = get_record(record_id)
        assert record.status == "sale"
        assert record.transcript == ANALYSIS["transcript"]
        assert record.summary == "Customer agreed to the offer."
        assert record.sub_disposition == "Closed on first call"
        assert record.agent_response == "good"
        assert record.customer_response is None
        assert record.analysis_state == "done"
        assert record.analyzed_at is not None

        body = json.loads(ai_route.calls[0].request.content)
        assert body["model"] == "test-model"
        system, user = body["messages"]
        assert system["role"] == "system"
        assert "Return JSON" in system["content"]
        assert user["content"][0] == {"type": "text", "text": "Transcribe and analyze:"}
        audio_part = user["content"][1]
        assert audio_part["type"] == "input_audio"
        assert audio_part["input_audio"]["format"] == "mp3"
        assert audio_part["input_audio"]["data"] == base64.b64encode(AUDIO).decode()
        assert ai_route.calls[0].request.headers["Authorization"] == "Bearer test-key"

    @pytest.mark.asyncio
    async def test_missing_url_is_terminal(self, engine, ai_client, make_record, get_record):
        record_id = make_record(recording_url=None)

        first = await transcribe_pending(engine=engine, ai_client=ai_client)
        second = await transcribe_pending(engine=engine, ai_client=ai_client)

        assert first["fail_count"] == 1
        assert second["processed"] == 0
        record = get_record(record_id)
        assert record.summary == "No recording URL"
        assert record.analysis_state == "failed"
        assert record.failure_kind == "no_recording"

    @respx.mock
    @pytest.mark.asyncio
    async def test_credits_exhausted_is_retried_later(self, engine, ai_client, make_record, get_record):
        record_id = make_record()
        respx.get(AUDIO_URL).mock(return_value=httpx.Response(200, content=AUDIO))
        respx.post(AI_COMPLETIONS).mock(
            side_effect=[
                httpx.Response(402, json={"error": "payment required"}),
                _completion(json.dumps(ANALYSIS)),
            ]
        )

        first = await transcribe_pending(engine=engine, ai_client=ai_client)
        assert first["fail_count"] == 1
        record = get_record(record_id)
        assert record.summary == "Transcription failed: AI credits exhausted (402)"
        assert record.failure_kind == "credits_exhausted"

        second = await transcribe_pending(engine=engine, ai_client=ai_client)
        assert second["success_count"] == 1
        assert get_record(record_id).analysis_state == "done"

    @respx.mock
    @pytest.mark.asyncio
    async def test_rate_limited(self, engine, ai_client, make_record, get_record):
        record_id = make_record()
        respx.get(AUDIO_URL).mock(return_value=httpx.Response(200, content=AUDIO))
        respx.post(AI_COMPLETIONS).mock(return_value=httpx.Response(429, text="slow down"))

        await transcribe_pending(engine=engine, ai_client=ai_client)

        assert get_record(record_id).summary == "Transcription failed: AI rate limited (429)"

    @respx.mock
    @pytest.mark.asyncio
    async def test_audio_fetch_failure(self, engine, ai_client, make_record, get_record):
        record_id = make_record()
        respx.get(AUDIO_URL).mock(return_value=httpx.Response(500))

        await transcribe_pending(engine=engine, ai_client=ai_client)

        record = get_record(record_id)
        assert record.summary == "Transcription failed: Recording fetch failed: HTTP 500"
        assert record.failure_kind == "fetch_failed"

    @respx.mock
    @pytest.mark.asyncio
    async def test_audio_fetch_timeout(self, engine, ai_client, make_record, get_record):
        record_id = make_record()
        respx.get(AUDIO_URL).mock(side_effect=httpx.ReadTimeout("timed out"))

        await transcribe_pending(engine=engine, ai_client=ai_client)

        assert get_record(record_id).summary == "Transcription failed: Audio fetch timeout"

    @respx.mock
    @pytest.mark.asyncio
    async def test_missing_dialer_audio_goes_back_to_locator(
        self, engine, ai_client, make_record, get_record
    ):
        record_id = make_record()
        respx.get(AUDIO_URL).mock(return_value=httpx.Response(404))

        result = await transcribe_pending(engine=engine, ai_client=ai_client)
        again = await transcribe_pending(engine=engine, ai_client=ai_client)

        assert result["fail_count"] == 1
        assert again["processed"] == 0
        record = get_record(record_id)
        assert record.is_processing is True
        assert record.analysis_state == "queued"
        assert record.summary == "Recording not available on server"

    @respx.mock
    @pytest.mark.asyncio
    async def test_unparseable_reply_kept_as_transcript(self, engine, ai_client, make_record, get_record):
        record_id = make_record()
        respx.get(AUDIO_URL).mock(return_value=httpx.Response(200, content=AUDIO))
        respx.post(AI_COMPLETIONS).mock(return_value=_completion("Agent: hello {not json"))

        await transcribe_pending(engine=engine, ai_client=ai_client)

        record = get_record(record_id)
        assert record.transcript == "Agent: hello {not json"
        assert record.summary == "Transcription complete"
        assert record.status == "pending"
        assert record.analysis_state == "done"

    @respx.mock
    @pytest.mark.asyncio
    async def test_oldest_rows_first_up_to_limit(self, engine, ai_client, make_record, get_record):
        now = datetime.now()
        newest = make_record(created_at=now)
        oldest = make_record(created_at=now - timedelta(hours=2))
        middle = make_record(created_at=now - timedelta(hours=1))
        respx.get(AUDIO_URL).mock(return_value=httpx.Response(200, content=AUDIO))
        respx.post(AI_COMPLETIONS).mock(return_value=_completion(json.dumps(ANALYSIS)))

        result = await transcribe_pending(limit=2, concurrency=1, engine=engine, ai_client=ai_client)

        assert result["processed"] == 2
        assert get_record(oldest).analysis_state == "done"
        assert get_record(middle).analysis_state == "done"
        assert get_record(newest).analysis_state == "queued"

    @pytest.mark.asyncio
    async def test_rows_still_converting_are_not_selected(self, engine, ai_client, make_record):
        make_record(is_processing=True)

        result = await transcribe_pending(engine=engine, ai_client=ai_client)

        assert result["processed"] == 0

    @pytest.mark.asyncio
    async def test_requires_api_key(self, engine, make_record, monkeypatch):
        monkeypatch.setattr(settings, "ai_api_key", "")
        make_record()

        result = await transcribe_pending(engine=engine)

        assert result == {"success": False, "error": "AI API key not configured"}


    @respx.mock
    @pytest.mark.asyncio
    async def test_rows_are_claimed_when_their_wave_starts(
        self, engine, ai_client, make_record, get_record
    ):
        start = datetime.now() - timedelta(hours=1)
        ids = [make_record(created_at=start + timedelta(minutes=i)) for i in range(4)]
        seen_while_first_wave_runs = []

        def serve_audio(request):
            seen_while_first_wave_runs.append(get_record(ids[3]).summary)
            return httpx.Response(200, content=AUDIO)

        respx.get(AUDIO_URL).mock(side_effect=serve_audio)
        respx.post(AI_COMPLETIONS).mock(return_value=_completion(json.dumps(ANALYSIS)))

        result = await transcribe_pending(limit=4, concurrency=2, engine=engine, ai_client=ai_client)

        assert result["success_count"] == 4
        assert seen_while_first_wave_runs[0] == "Pending AI analysis"
        assert seen_while_first_wave_runs[-1] == "Transcribing..."


class TestTranscribeRecord:
    @respx.mock
    @pytest.mark.asyncio
    async def test_reprocesses_finished_record(self, engine, ai_client, make_record, get_record):
        record_id = make_record(analysis_state="done", summary="Old summary")
        respx.get(AUDIO_URL).mock(return_value=httpx.Response(200, content=AUDIO))
        respx.post(AI_COMPLETIONS).mock(return_value=_completion(json.dumps(ANALYSIS)))

        result = await transcribe_record(record_id, engine=engine, ai_client=ai_client)

        assert result["success"] is True
        assert result["summary"] == "Customer agreed to the offer."
        assert get_record(record_id).analysis_state == "done"

    @pytest.mark.asyncio
    async def test_unknown_record(self, engine, ai_client):
        result = await transcribe_record(999, engine=engine, ai_client=ai_client)
        assert result["success"] is False


class TestClaimRecord:
    def test_second_claim_loses(self, engine, make_record, get_record):
        record_id = make_record()
        with Session(engine) as session:
            assert claim_record(session, record_id) is True
            assert claim_record(session, record_id) is False
        record = get_record(record_id)
        assert record.analysis_state == "in_progress"
        assert record.summary == "Transcribing..."

    def test_unconditional_claim(self, engine, make_record):
        record_id = make_record(analysis_state="in_progress")
        with Session(engine) as session:
            assert claim_record(session, record_id, conditional=False) is True


class TestClassifyFailure:
    def test_payment_required(self):
        err = AIClientError("AI API error: 402", status_code=402)
        assert classify_failure(err)[0] == FailureKind.CREDITS_EXHAUSTED

    def test_rate_limit(self):
        assert classify_failure(AIClientError("AI API error: 429"))[0] == FailureKind.RATE_LIMITED

    def test_audio_fetch(self):
        kind, detail = classify_failure(AudioFetchError("HTTP 403", status_code=403))
        assert kind == FailureKind.FETCH_FAILED
        assert detail == "HTTP 403"

    def test_timeout(self):
        assert classify_failure(httpx.ReadTimeout("read"))[0] == FailureKind.FETCH_TIMEOUT
        assert classify_failure(RuntimeError("operation aborted"))[0] == FailureKind.FETCH_TIMEOUT

    def test_ai_gateway_timeout_is_not_audio_timeout(self):
        kind, detail = classify_failure(AIClientError("AI request timeout: read timed out"))
        assert kind == FailureKind.ERROR
        assert detail.startswith("AI request timeout")

    def test_generic(self):
        kind, detail = classify_failure(ValueError("x" * 300))
        assert kind == FailureKind.ERROR
        assert len(detail) == 300


def test_encode_audio_matches_single_pass():
    data = bytes(range(256)) * 100
    assert encode_audio(data, chunk_size=999) == base64.b64encode(data).decode()


class TestParseAnalysis:
    def test_non_string_enum_values_fall_back(self):
        reply = json.dumps(
            {
                "transcript": "hi",
                "status": ["sale"],
                "agent_response": {"x": 1},
                "customer_response": ["good"],
            }
        )

        result = parse_analysis(reply)

        assert result["status"] == "pending"
        assert result["agent_response"] is None
        assert result["customer_response"] is None

    def test_text_fields_are_trimmed(self):
        reply = json.dumps({"transcript": "  Agent: hi  ", "summary": "\n Bought it \n", "status": "sale"})

        result = parse_analysis(reply)

        assert result["transcript"] == "Agent: hi"
        assert result["summary"] == "Bought it"
        assert result["reason"] == "See transcript"

    @respx.mock
    @pytest.mark.asyncio
    async def test_malformed_enums_still_finish_the_record(
        self, engine, ai_client, make_record, get_record
    ):
        record_id = make_record()
        respx.get(AUDIO_URL).mock(return_value=httpx.Response(200, content=AUDIO))
        respx.post(AI_COMPLETIONS).mock(
            return_value=_completion(json.dumps({"transcript": "hi", "status": {"v": "sale"}}))
        )

        result = await transcribe_pending(engine=engine, ai_client=ai_client)

        assert result["success_count"] == 1
        record = get_record(record_id)
        assert record.analysis_state == "done"
        assert record.status == "pending"
