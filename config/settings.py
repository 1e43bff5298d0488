"""Application settings loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file if present

IMAGE_STRATEGIES = ("inline", "preanalysis")


@dataclass(frozen=True)
class Settings:
    """Configuration for the chat relay.

    Attributes:
        openai_api_key: Credential for the model provider; the relay answers
            500 on every request while it is missing.
        openai_model: Vision-capable chat completion model.
        analysis_model: Model used for the image pre-analysis call.
        image_strategy: `inline` sends the image inside the completion request,
            `preanalysis` describes it in a separate call first.
        disconnect_poll_seconds: How often a running relay call checks whether
            the client went away.
        log_level: Root logging level name.
    """

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4-turbo"
    analysis_model: Optional[str] = None
    image_strategy: str = "inline"
    disconnect_poll_seconds: float = 0.25
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.image_strategy not in IMAGE_STRATEGIES:
            raise ValueError(
                f"CHAT_IMAGE_STRATEGY must be one of {', '.join(IMAGE_STRATEGIES)}; got {self.image_strategy!r}"
            )
        if self.disconnect_poll_seconds <= 0:
            raise ValueError("DISCONNECT_POLL_SECONDS must be positive.")

    @property
    def resolved_analysis_model(self) -> str:
        return self.analysis_model or self.openai_model


def load_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4-turbo"),
        analysis_model=os.getenv("OPENAI_ANALYSIS_MODEL") or None,
        image_strategy=os.getenv("CHAT_IMAGE_STRATEGY", "inline").strip().lower(),
        disconnect_poll_seconds=float(os.getenv("DISCONNECT_POLL_SECONDS", "0.25")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
