"""Description: Separate image pre-analysis call used before the main completion."""

import logging
import time
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from services.openai.chat_inputs import build_user_message, text_part
from services.openai.chat_prompts import build_analysis_system_prompt, build_analysis_user_prompt
from services.openai.response_parser import extract_completion_text, extract_usage

LOGGER = logging.getLogger(__name__)

ANALYSIS_TEMPERATURE = 0.2
ANALYSIS_MAX_TOKENS = 600


class ImageAnalyzer:
    """Describe a repair photo in text so the main prompt can reason over it."""

    def __init__(self, client: AsyncOpenAI, model: str) -> None:
        """Initialize the analyzer with an OpenAI async client."""
        if client is None:
            raise ValueError("OpenAI client must be provided.")
        self.client = client
        self.model = model

    async def describe(self, image_url: str, *, text: Optional[str] = None) -> str:
        """Return a textual description of the image.

        Args:
            image_url: Hosted URL or base64 data URL of the image.
            text: The user's question, used to focus the description.
        """
        start_time = time.time()
        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": [text_part(build_analysis_system_prompt())]},
            build_user_message(build_analysis_user_prompt(text), image_url),
        ]
        completion = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=ANALYSIS_TEMPERATURE,
            max_tokens=ANALYSIS_MAX_TOKENS,
        )
        analysis = extract_completion_text(completion)
        LOGGER.info(
            "Image pre-analysis latency: %.3fs usage=%s", time.time() - start_time, extract_usage(completion)
        )
        return analysis
