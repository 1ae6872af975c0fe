import logging
import time
from typing import Callable, Dict, List, Optional

import requests
from app.core.config import Settings
from app.core.errors import UpstreamError


logger = logging.getLogger(__name__)

Message = Dict[str, str]


class CompletionClient:
    """Chat-completion client for an OpenRouter-compatible endpoint.

    Each call makes up to ``max_attempts`` requests. A 429 answer waits
    ``2 ** attempt`` seconds before the next request; any other failure is
    retried straight away. No caching happens here.
    """

    def __init__(
        self,
        api_key: str,
        url: str,
        model: str,
        temperature: float = 0.3,
        timeout: float = 60,
        max_attempts: int = 3,
        headers: Optional[Dict[str, str]] = None,
        http: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key
        self.url = url
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.extra_headers = headers or {}
        self.http = http or requests.Session()
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompletionClient":
        return cls(
            api_key=settings.openrouter_api_key,
            url=settings.openrouter_url,
            model=settings.openrouter_model,
            temperature=settings.llm_temperature,
            timeout=settings.llm_timeout,
            max_attempts=settings.llm_max_attempts,
            headers={
                "HTTP-Referer": settings.openrouter_referer,
                "X-Title": settings.openrouter_title,
            },
        )

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        headers.update(self.extra_headers)
        return headers

    @staticmethod
    def _choice_text(payload: dict) -> str:
        content = payload["choices"][0]["message"]["content"]
        if not isinstance(content, str):
            raise ValueError("completion choice carries no text content")
        return content.strip()

    def complete(self, messages: List[Message], max_tokens: int = 1000) -> str:
        body = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": max_tokens,
        }
        last_message = ""
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = self.http.post(
                    self.url,
                    json=body,
                    headers=self._headers(),
                    timeout=self.timeout,
                )
                response.raise_for_status()
                return self._choice_text(response.json())
            except requests.HTTPError as exc:
                status = getattr(exc.response, "status_code", None)
                content = getattr(exc.response, "text", "")
                last_message = f"HTTP {status}: {content or exc}"
                logger.warning("Completion attempt %d/%d failed: %s", attempt, self.max_attempts, last_message)
                if status == 429 and attempt < self.max_attempts:
                    wait = 2 ** attempt
                    logger.info("Rate limited, waiting %ss before retry %d", wait, attempt + 1)
                    self._sleep(wait)
            except requests.RequestException as exc:
                last_message = str(exc)
                logger.warning("Completion attempt %d/%d failed: %s", attempt, self.max_attempts, last_message)
            except (ValueError, KeyError, IndexError, TypeError) as exc:
                last_message = f"malformed completion response: {exc}"
                logger.warning("Completion attempt %d/%d failed: %s", attempt, self.max_attempts, last_message)

        logger.error("Completion endpoint gave up after %d attempts", self.max_attempts)
        raise UpstreamError(attempts=self.max_attempts, last_message=last_message)
