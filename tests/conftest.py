"""
Pytest fixtures for the chat relay tests.

The OpenAI client is always a mock: `chat.completions.create` is an AsyncMock
whose return values come from `make_completion()`.
"""

import io
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from PIL import Image

from config.settings import Settings
from main import create_app

OPENAI_URL = "https://api.openai.com/v1/chat/completions"


# =============================================================================
# Mock Factories
# =============================================================================


def make_completion(text: str | None, prompt_tokens: int = 12, completion_tokens: int = 34) -> MagicMock:
    """
    Chat completion mock.

    choices[0].message.content and usage are set explicitly so MagicMock does
    not invent attributes the code then trusts.
    """
    completion = MagicMock()
    completion.choices = [MagicMock()]
    completion.choices[0].message.content = text
    completion.usage.prompt_tokens = prompt_tokens
    completion.usage.completion_tokens = completion_tokens
    return completion


def make_openai_client(*replies: str) -> MagicMock:
    """AsyncOpenAI stand-in returning the given replies in order."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=[make_completion(reply) for reply in replies])
    return client


def make_rate_limit_error(message: str = "Rate limit reached for gpt-4-turbo") -> openai.RateLimitError:
    response = httpx.Response(429, request=httpx.Request("POST", OPENAI_URL))
    return openai.RateLimitError(message, response=response, body={"message": message})


def make_api_status_error(message: str = "The server had an error while processing your request.") -> openai.APIStatusError:
    response = httpx.Response(503, request=httpx.Request("POST", OPENAI_URL))
    return openai.InternalServerError(message, response=response, body={"message": message})


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    return Settings(openai_api_key="test-api-key")


@pytest.fixture
def preanalysis_settings() -> Settings:
    return Settings(openai_api_key="test-api-key", image_strategy="preanalysis", analysis_model="gpt-4o-mini")


@pytest.fixture
def openai_client() -> MagicMock:
    return make_openai_client("Turn off the water supply under the sink, then replace the washer.")


@pytest.fixture
def app(settings: Settings, openai_client: MagicMock) -> FastAPI:
    return create_app(settings=settings, openai_client=openai_client)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def png_bytes() -> bytes:
    """A small but real PNG image."""
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), (180, 40, 40)).save(buffer, format="PNG")
    return buffer.getvalue()
