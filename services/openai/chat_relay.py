"""Prompt relay: one chat turn in, one home repair answer out.

The relay is stateless. For every turn it prepends the assistant persona,
replays the prior history in the chat completion content shape, appends the
new user message and calls the model with fixed sampling parameters.

Images follow one of two strategies, chosen by `Settings.image_strategy`:

- `inline`: the image rides along in the user message as an `image_url`
  content part and the model sees it directly (one call);
- `preanalysis`: `ImageAnalyzer` first turns the image into a text
  description that is embedded in the user message, which is then sent
  text-only (two sequential calls).
"""

import logging
import time
from typing import Any, Dict

from openai import AsyncOpenAI

from config.settings import Settings
from services.openai.chat_inputs import TurnRequest, build_messages, build_user_message
from services.openai.chat_prompts import build_system_prompt, build_user_text_with_analysis
from services.openai.error_mapping import translate_provider_error
from services.openai.image_analyzer import ImageAnalyzer
from services.openai.response_parser import extract_completion_text, extract_usage
from utils.relay_errors import Misconfigured

LOGGER = logging.getLogger(__name__)

SAMPLING_PARAMS: Dict[str, Any] = {
    "temperature": 0.7,
    "max_tokens": 2048,
    "top_p": 1,
    "frequency_penalty": 0,
    "presence_penalty": 0,
    "response_format": {"type": "text"},
}


class PromptRelay:
    """Translate one turn into model calls and return the reply text."""

    def __init__(self, client: AsyncOpenAI | None, settings: Settings) -> None:
        if client is None:
            raise Misconfigured()
        self.client = client
        self.settings = settings
        self.system_prompt = build_system_prompt()

    async def relay(self, turn: TurnRequest) -> str:
        """Return the assistant reply for a turn.

        Raises:
            RelayError: Translated provider failure (rate limit or upstream error).
            asyncio.CancelledError: When the surrounding task is cancelled; the
                in-flight HTTP request to the provider is abandoned with it.
        """
        start = time.time()
        try:
            user_message = await self._build_user_message(turn)
            messages = build_messages(self.system_prompt, turn.history, user_message)
            completion = await self.client.chat.completions.create(
                model=self.settings.openai_model,
                messages=messages,
                **SAMPLING_PARAMS,
            )
            reply = extract_completion_text(completion)
        except Exception as exc:
            raise translate_provider_error(exc) from exc

        LOGGER.info(
            "Chat relay latency: %.3fs strategy=%s history=%d usage=%s",
            time.time() - start,
            self.settings.image_strategy if turn.image else "text",
            len(turn.history),
            extract_usage(completion),
        )
        return reply

    async def _build_user_message(self, turn: TurnRequest) -> Dict[str, Any]:
        if turn.image is None:
            return build_user_message(turn.text, None)
        if self.settings.image_strategy == "preanalysis":
            analyzer = ImageAnalyzer(self.client, self.settings.resolved_analysis_model)
            analysis = await analyzer.describe(turn.image.url, text=turn.text or None)
            return build_user_message(build_user_text_with_analysis(turn.text, analysis), None)
        return build_user_message(turn.text, turn.image.url)
