"""
LLM Service
Thin wrapper over the OpenAI chat completion API used by the assistant
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from openai import OpenAI

from ..config import settings
from ..exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

FALLBACK_RESPONSE = "Sorry, I could not generate a response."


class LLMService:
    """OpenAI chat completions with the assistant's default model settings"""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, temperature: Optional[float] = None):
        self.api_key = api_key or settings.openai_api_key
        self.default_model = model or settings.openai_model
        self.default_temperature = settings.openai_temperature if temperature is None else temperature

        # Initialize client if API key is available
        if self.api_key:
            self.client = OpenAI(api_key=self.api_key)
        else:
            self.client = None

    def generate_chat(
        self,
        messages: List[Dict[str, str]],
        max_completion_tokens: int,
        temperature: Optional[float] = None,
        model: Optional[str] = None
    ) -> Dict[str, Any]:
        """Run one chat completion over an already-assembled message list"""
        if not self.client:
            raise ExternalServiceError("OpenAI API key not configured")

        try:
            response = self.client.chat.completions.create(
                model=model or self.default_model,
                messages=messages,
                temperature=self.default_temperature if temperature is None else temperature,
                max_completion_tokens=max_completion_tokens
            )
        except Exception as e:
            logger.error(f"OpenAI chat completion error: {e}")
            raise ExternalServiceError(f"LLM request failed: {e}") from e

        content = None
        finish_reason = None
        if response.choices:
            content = response.choices[0].message.content
            finish_reason = response.choices[0].finish_reason

        return {
            "content": content or FALLBACK_RESPONSE,
            "model": response.model,
            "usage": {
                "prompt_tokens": response.usage.prompt_tokens if response.usage else 0,
                "completion_tokens": response.usage.completion_tokens if response.usage else 0,
                "total_tokens": response.usage.total_tokens if response.usage else 0
            },
            "finish_reason": finish_reason
        }

    async def complete(self, messages: List[Dict[str, str]], max_completion_tokens: int) -> str:
        """Async entry point; the blocking SDK call runs in a worker thread."""
        result = await asyncio.to_thread(self.generate_chat, messages, max_completion_tokens)
        return result["content"]


def get_llm_service() -> LLMService:
    """Dependency to get LLMService instance"""
    return LLMService()
