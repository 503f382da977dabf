import asyncio
import logging
import os
from typing import Optional, Protocol, Tuple

import httpx

from smartfi.utils.error_handler import AnalysisRateLimitError, AnalysisServiceError, analysis_retry
from smartfi.utils.llm_provider import current_key, get_llm, has_credentials, rotate_key

logger = logging.getLogger(__name__)


class AnalysisService(Protocol):
    name: str

    def is_configured(self) -> bool: ...

    async def generate(self, prompt: str) -> str: ...


class GeminiService:
    """Gemini generateContent over plain HTTP, keyed by GOOGLE_API_KEY."""

    name = "gemini"
    provider = "google"

    def __init__(
        self,
        endpoint: str,
        timeout: float = 30.0,
        max_attempts: int = 3,
        retry_wait: Tuple[float, float] = (1, 20),
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    def is_configured(self) -> bool:
        return current_key(self.provider) is not None

    async def generate(self, prompt: str) -> str:
        async for attempt in analysis_retry(self.max_attempts, *self.retry_wait):
            with attempt:
                return await self._generate_once(prompt)

    async def _generate_once(self, prompt: str) -> str:
        api_key = current_key(self.provider)
        if not api_key:
            raise AnalysisServiceError("No AI credential configured")

        body = {"contents": [{"parts": [{"text": prompt}]}]}
        try:
            response = await self._http.post(
                self.endpoint,
                params={"key": api_key},
                json=body,
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            # The request URL carries the key, so only the exception type is reported
            raise AnalysisServiceError(f"Gemini request failed: {type(e).__name__}") from e

        if response.status_code == 429:
            rotate_key(self.provider)
            raise AnalysisRateLimitError("Gemini API error: 429")
        if not response.is_success:
            raise AnalysisServiceError(f"Gemini API error: {response.status_code}")

        try:
            text = response.json()["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AnalysisServiceError("Malformed Gemini response: no candidate text") from e

        if not isinstance(text, str) or not text.strip():
            raise AnalysisServiceError("Gemini returned an empty answer")
        return text


class LangChainService:
    """Any chat model from the LLM provider factory (LLM_PROVIDER)."""

    name = "langchain"

    def __init__(
        self,
        temperature: float = 0.3,
        timeout: float = 30.0,
        max_attempts: int = 3,
        retry_wait: Tuple[float, float] = (1, 20),
    ):
        self.temperature = temperature
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait

    def is_configured(self) -> bool:
        return has_credentials()

    async def generate(self, prompt: str) -> str:
        async for attempt in analysis_retry(self.max_attempts, *self.retry_wait):
            with attempt:
                return await self._generate_once(prompt)

    async def _generate_once(self, prompt: str) -> str:
        provider = os.getenv("LLM_PROVIDER", "google").lower()
        try:
            llm = get_llm(temperature=self.temperature)
            response = await asyncio.wait_for(llm.ainvoke(prompt), timeout=self.timeout)
        except Exception as e:
            if "429" in str(e) or "rate limit" in str(e).lower():
                rotate_key(provider)
                raise AnalysisRateLimitError(str(e)) from e
            raise AnalysisServiceError(f"{provider} model call failed: {e}") from e

        content = getattr(response, "content", response)
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part) for part in content
            )
        if not isinstance(content, str) or not content.strip():
            raise AnalysisServiceError(f"{provider} model returned an empty answer")
        return content


def build_analysis_service(settings, http_client: Optional[httpx.AsyncClient] = None) -> AnalysisService:
    if settings.analysis_backend == "langchain":
        return LangChainService(
            timeout=settings.analysis_timeout,
            max_attempts=settings.analysis_max_attempts,
        )
    return GeminiService(
        settings.gemini_endpoint,
        timeout=settings.analysis_timeout,
        max_attempts=settings.analysis_max_attempts,
        http_client=http_client,
    )
