import logging
from typing import List, Type, TypeVar

from openai import AsyncOpenAI
from pydantic import BaseModel

from ..interface import LLMProvider
from ...config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class OpenAIAdapter(LLMProvider):
    """Structured outputs through the OpenAI parse endpoint."""

    def __init__(
        self,
        api_key: str | None,
        model_name: str = settings.OPENAI_MODEL,
        max_retries: int = settings.MAX_RETRIES,
        timeout: float = settings.LLM_TIMEOUT_SECONDS,
    ):
        if not api_key:
            raise ValueError("OPENAI_API_KEY is not configured")
        self.client = AsyncOpenAI(api_key=api_key, max_retries=max_retries, timeout=timeout)
        self.model_name = model_name

    async def generate_structured_output(
        self,
        messages: List[dict],
        response_model: Type[T],
        temperature: float = 0.0
    ) -> T:
        completion = await self.client.beta.chat.completions.parse(
            model=self.model_name,
            messages=messages,
            response_format=response_model,
            temperature=temperature,
        )
        if completion.usage is not None:
            logger.debug(
                "%s: %d prompt / %d completion tokens",
                response_model.__name__,
                completion.usage.prompt_tokens,
                completion.usage.completion_tokens,
            )

        message = completion.choices[0].message
        if message.parsed is None:
            reason = message.refusal or "empty output"
            raise ValueError(f"Model returned no {response_model.__name__}: {reason}")
        return message.parsed
