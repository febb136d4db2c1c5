"""
Completion client for an OpenAI-compatible chat completions endpoint
"""

import httpx
from typing import Optional
from clients.base import CompletionClient
from clients.http import send_with_retry, bearer_headers
from core.config import settings
from core.exceptions import ClassificationError, MigrationException
import logging

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a data integration expert specializing in billing system migrations."


class HTTPCompletionClient(CompletionClient):

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None
    ):
        self.base_url = (base_url or settings.LLM_API_URL).rstrip("/")
        self.api_key = api_key or settings.LLM_API_KEY
        self.model = model or settings.LLM_MODEL
        self.temperature = settings.COHORT_TEMPERATURE if temperature is None else temperature
        self.timeout = timeout or settings.REQUEST_TIMEOUT
        self.max_retries = max_retries

    async def complete(self, prompt: str, max_tokens: int) -> str:
        url = f"{self.base_url}/chat/completions"
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": max_tokens,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await send_with_retry(
                    client,
                    "POST",
                    url,
                    max_retries=self.max_retries,
                    headers=bearer_headers(self.api_key),
                    json=payload,
                )
        except MigrationException as e:
            raise ClassificationError(e.message, context={"url": url}, original_exception=e)
        except httpx.HTTPError as e:
            raise ClassificationError("Completion request failed", context={"url": url}, original_exception=e)

        if response.status_code >= 400:
            raise ClassificationError(
                f"Completion endpoint returned HTTP {response.status_code}",
                context={"url": url, "status_code": response.status_code, "response_body": response.text[:500]}
            )

        try:
            return response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ClassificationError(
                "Malformed completion response",
                context={"url": url, "response_body": response.text[:500]},
                original_exception=e
            )
