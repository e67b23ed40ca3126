"""Generation capability consumed as a black box.

The core never produces completions itself. It hands a list of turns and
an optional system prompt to a ``GenerationClient`` and falls back to a
canned reply when the client fails.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from vidya.errors import ExternalServiceError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from vidya.config import GenerationConfig
    from vidya.models import Turn

logger = logging.getLogger(__name__)

FALLBACK_REPLY = (
    "I'm having trouble reaching my knowledge service right now. "
    "Please try again in a moment, or contact the student help desk for urgent questions."
)


@runtime_checkable
class GenerationClient(Protocol):
    """Produces assistant text from conversation turns."""

    async def generate(
        self,
        turns: Sequence[Turn],
        system_prompt: str | None = None,
    ) -> str:
        """Generate a reply for ``turns``.

        Raises:
            ExternalServiceError: If the backend fails, times out or returns nothing
        """
        ...


class GeminiGenerationClient:
    """Gemini-backed generation client (google-genai SDK)."""

    def __init__(self, config: GenerationConfig) -> None:
        self.config = config
        self._client: Any = None

    def _get_client(self) -> Any:
        if self._client is None:
            from google import genai

            try:
                self._client = (
                    genai.Client(api_key=self.config.api_key)
                    if self.config.api_key
                    else genai.Client()
                )
            except Exception as e:
                raise ExternalServiceError("gemini", f"client setup failed: {e}") from e
        return self._client

    async def generate(
        self,
        turns: Sequence[Turn],
        system_prompt: str | None = None,
    ) -> str:
        """Generate a reply with ``client.aio.models.generate_content``.

        Args:
            turns: Conversation turns, oldest first; roles ``user``/``assistant``
            system_prompt: Optional system instruction

        Returns:
            Stripped response text

        Raises:
            ExternalServiceError: On timeout, SDK error or empty output
        """
        from google.genai import types as genai_types

        client = self._get_client()
        contents = [
            genai_types.Content(
                role="model" if turn.role == "assistant" else "user",
                parts=[genai_types.Part(text=turn.text)],
            )
            for turn in turns
            if turn.text
        ]
        if not contents:
            raise ExternalServiceError("gemini", "nothing to generate from")

        try:
            response = await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=self.config.model,
                    contents=contents,
                    config=genai_types.GenerateContentConfig(
                        system_instruction=system_prompt,
                        temperature=self.config.temperature,
                        max_output_tokens=self.config.max_output_tokens,
                    ),
                ),
                timeout=self.config.timeout,
            )
        except TimeoutError as e:
            raise ExternalServiceError("gemini", f"timed out after {self.config.timeout}s") from e
        except ExternalServiceError:
            raise
        except Exception as e:
            raise ExternalServiceError("gemini", f"{e.__class__.__name__}: {e}") from e

        text = (getattr(response, "text", None) or "").strip()
        if not text:
            raise ExternalServiceError("gemini", "empty response")
        return text


async def generate_or_fallback(
    client: GenerationClient | None,
    turns: Sequence[Turn],
    system_prompt: str | None = None,
    fallback: str = FALLBACK_REPLY,
) -> tuple[str, bool]:
    """Call ``client`` and substitute ``fallback`` on failure.

    Returns:
        Tuple of (text, generated) where ``generated`` is False for the fallback
    """
    if client is None:
        return fallback, False
    try:
        return await client.generate(turns, system_prompt=system_prompt), True
    except ExternalServiceError as e:
        logger.warning(f"⚠️ Generation failed, using fallback reply: {e}")
        return fallback, False
    except Exception as e:
        logger.error(f"❌ Generation client raised {e.__class__.__name__}: {e}")
        return fallback, False
