"""
Tests for ExpenseExtractionAgent and ExtractionClient.

The Gemini model and the HTTP session are fakes; nothing leaves the process.
"""

import asyncio

import pytest
import requests

from expense_tracker.agents import ExpenseExtractionAgent
from expense_tracker.config import GeminiSettings
from expense_tracker.extraction import (
    ExtractionClient,
    ExtractionNetworkError,
    ExtractionParseError,
    InvalidInputError,
)

from tests.fakes import TODAY, FakeModel


class SlowModel:
    async def generate_content_async(self, prompt):
        await asyncio.sleep(10)


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else str(body)

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class FakeSession:
    """Records posts and replays a canned response or error."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []
        self.closed = False

    def post(self, url, json=None, timeout=None):
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


def make_client(session):
    return ExtractionClient("http://api.test/", timeout_seconds=5, session=session)


class TestExpenseExtractionAgent:
    """Tests for the Gemini-backed agent."""

    def test_extracts_candidate(self, agent, fake_model):
        """Test a clean model response becomes a candidate."""
        result = asyncio.run(agent.extract("I spent 300 on groceries yesterday", "auto"))

        assert result.candidate.amount == "300"
        assert result.candidate.category == "Food"
        assert result.candidate.date == "2024-06-14"
        assert result.detected_language is None

    def test_prompt_carries_transcript_and_today(self, agent, fake_model):
        """Test the model receives the transcript and the reference date."""
        asyncio.run(agent.extract("I spent 300 on groceries yesterday", "auto"))

        prompt = fake_model.prompts[0]
        assert "I spent 300 on groceries yesterday" in prompt
        assert TODAY.isoformat() in prompt

    def test_concrete_language_is_reported(self, agent):
        """Test a concrete request language comes back as detected."""
        result = asyncio.run(agent.extract("gasté 300 en comida", "es-ES"))
        assert result.detected_language == "es-ES"

    def test_script_detection_for_auto(self, agent):
        """Test Devanagari transcripts report hi-IN."""
        result = asyncio.run(agent.extract("मैंने 300 रुपये खर्च किए", "auto"))
        assert result.detected_language == "hi-IN"

    def test_blank_transcript_never_calls_model(self, agent, fake_model):
        """Test blank input fails before the model is called."""
        with pytest.raises(InvalidInputError):
            asyncio.run(agent.extract("   ", "auto"))
        assert fake_model.prompts == []

    def test_model_failure_is_network_error(self):
        """Test exceptions from the model surface as network errors."""
        agent = ExpenseExtractionAgent(
            settings=GeminiSettings(api_key="test-key"),
            model=FakeModel(error=RuntimeError("quota exceeded")),
        )
        with pytest.raises(ExtractionNetworkError, match="quota exceeded"):
            asyncio.run(agent.extract("spent 10 on tea", "auto"))

    def test_timeout_is_network_error(self):
        """Test a hung model call is bounded by the timeout."""
        agent = ExpenseExtractionAgent(
            settings=GeminiSettings(api_key="test-key", request_timeout_seconds=0.05),
            model=SlowModel(),
        )
        with pytest.raises(ExtractionNetworkError, match="did not respond"):
            asyncio.run(agent.extract("spent 10 on tea", "auto"))

    def test_unparseable_response_is_parse_error(self):
        """Test prose without JSON raises ExtractionParseError."""
        agent = ExpenseExtractionAgent(
            settings=GeminiSettings(api_key="test-key"),
            model=FakeModel(text="I cannot help with that."),
        )
        with pytest.raises(ExtractionParseError):
            asyncio.run(agent.extract("spent 10 on tea", "auto"))


class TestExtractionClient:
    """Tests for the HTTP extraction client."""

    def test_posts_transcript_and_language(self):
        """Test the request body and URL."""
        session = FakeSession(FakeResponse(body={
            "amount": "300", "category": "Food", "description": "groceries", "date": "",
            "detectedLanguage": "en-US",
        }))
        result = asyncio.run(make_client(session).extract("spent 300", "auto"))

        call = session.calls[0]
        assert call["url"] == "http://api.test/api/process-voice"
        assert call["json"] == {"transcript": "spent 300", "language": "auto"}
        assert call["timeout"] == 5
        assert result.candidate.amount == "300"
        assert result.detected_language == "en-US"

    def test_missing_fields_become_empty(self):
        """Test partial bodies produce empty fields and no language."""
        session = FakeSession(FakeResponse(body={"amount": 12}))
        result = asyncio.run(make_client(session).extract("spent 12", "auto"))
        assert result.candidate.amount == "12"
        assert result.candidate.category == ""
        assert result.detected_language is None

    def test_blank_transcript_makes_no_request(self):
        """Test blank input is refused locally."""
        session = FakeSession()
        with pytest.raises(InvalidInputError):
            asyncio.run(make_client(session).extract("  ", "auto"))
        assert session.calls == []

    def test_server_error_uses_error_text(self):
        """Test non-2xx responses carry the server's message and status."""
        session = FakeSession(FakeResponse(
            status_code=502,
            body={"error": "Failed to process voice input: boom"},
        ))
        with pytest.raises(ExtractionNetworkError) as exc_info:
            asyncio.run(make_client(session).extract("spent 10", "auto"))
        assert exc_info.value.status_code == 502
        assert "boom" in str(exc_info.value)

    def test_timeout_is_network_error(self):
        """Test a transport timeout maps to ExtractionNetworkError."""
        session = FakeSession(error=requests.Timeout("slow"))
        with pytest.raises(ExtractionNetworkError, match="timed out"):
            asyncio.run(make_client(session).extract("spent 10", "auto"))

    def test_connection_failure_is_network_error(self):
        """Test connection errors map to ExtractionNetworkError."""
        session = FakeSession(error=requests.ConnectionError("refused"))
        with pytest.raises(ExtractionNetworkError):
            asyncio.run(make_client(session).extract("spent 10", "auto"))

    def test_invalid_json_is_parse_error(self):
        """Test a non-JSON success body raises ExtractionParseError."""
        session = FakeSession(FakeResponse(body=ValueError("no json"), text="<html>"))
        with pytest.raises(ExtractionParseError):
            asyncio.run(make_client(session).extract("spent 10", "auto"))

    def test_close_closes_session(self):
        """Test close releases the HTTP session."""
        session = FakeSession()
        make_client(session).close()
        assert session.closed is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
