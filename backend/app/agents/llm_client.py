import logging
import time
from typing import Callable, Optional

import groq
from fastapi import HTTPException
from groq import Groq

from app.agents.prompt_builder import SYSTEM_PROMPT
from app.config import settings

logger = logging.getLogger(__name__)


class TimetableLLMClient:
    """Chat-completion round trip with the retry policy the generator needs.

    429, 503, transport errors and empty replies are retried with a linear
    back-off of ``attempt * 2`` seconds; other failures are mapped straight
    to an HTTP error for the caller.
    """

    def __init__(
        self,
        client=None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        max_retries: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if client is None:
            if not settings.LLM_API_KEY:
                logger.error("LLM_API_KEY not configured")
                raise HTTPException(status_code=500, detail="AI service not configured. Please contact support.")
            client = Groq(
                api_key=settings.LLM_API_KEY,
                base_url=settings.LLM_BASE_URL or None,
                timeout=settings.LLM_TIMEOUT_SECONDS,
                max_retries=0,
            )
        self.client = client
        self.model = model or settings.LLM_MODEL
        self.max_tokens = max_tokens or settings.LLM_MAX_TOKENS
        self.max_retries = settings.LLM_MAX_RETRIES if max_retries is None else max_retries
        self._sleep = sleep

    def complete(self, prompt: str, system_prompt: str = SYSTEM_PROMPT) -> str:
        attempt = 0
        while True:
            if attempt > 0:
                logger.info("Retry attempt %s/%s - waiting %s seconds", attempt, self.max_retries, attempt * 2)
                self._sleep(attempt * 2)
            logger.info("Calling completion API (attempt %s/%s)", attempt + 1, self.max_retries + 1)

            try:
                completion = self.client.chat.completions.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": prompt},
                    ],
                )
            except groq.APITimeoutError:
                raise HTTPException(status_code=504, detail="AI request timed out. Try a shorter date range.")
            except groq.APIStatusError as e:
                logger.error("Completion API error: %s %s", e.status_code, e.message)
                if e.status_code in (429, 503) and attempt < self.max_retries:
                    attempt += 1
                    continue
                if e.status_code == 429:
                    raise HTTPException(status_code=429, detail="Rate limit exceeded. Please wait and try again.")
                if e.status_code == 402:
                    raise HTTPException(status_code=402, detail="AI credits exhausted. Please add credits to continue.")
                raise HTTPException(status_code=502, detail=f"AI request failed: {e.status_code}")
            except groq.APIConnectionError as e:
                logger.error("Completion API unreachable: %s", e)
                if attempt < self.max_retries:
                    attempt += 1
                    continue
                raise HTTPException(status_code=502, detail="AI service unreachable. Please try again.")

            content = completion.choices[0].message.content if completion.choices else None
            logger.info("Completion received, length: %s", len(content or ""))
            if content and content.strip():
                return content

            if attempt < self.max_retries:
                attempt += 1
                continue
            raise HTTPException(status_code=500, detail="AI did not generate a response. Please try again.")
