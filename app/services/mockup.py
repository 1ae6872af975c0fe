import json
import logging
from typing import Any, Dict, List, Optional

from app.core.errors import GenerationError, UpstreamError
from app.utils.completion_client import CompletionClient
from app.utils.markup import is_complete_html, strip_code_fence
from app.utils.prompt_loader import load_prompt

logger = logging.getLogger(__name__)

MOCKUP_MAX_TOKENS = 20000
MOCKUP_MAX_ATTEMPTS = 3


class MockupStage:
    """Generates a static HTML mockup from RAOS data.

    Validation failures repeat the whole prompt cycle with a fresh completion
    call; there is no backoff between cycles and no caching of results.
    """

    def __init__(self, client: CompletionClient, max_attempts: int = MOCKUP_MAX_ATTEMPTS):
        self.client = client
        self.max_attempts = max_attempts

    def build_messages(self, app_name: str, raos: List[Dict[str, Any]]) -> List[Dict[str, str]]:
        prompt = load_prompt(
            "mockup_html.txt",
            app_name=app_name,
            raos_json=json.dumps(raos, indent=2, ensure_ascii=False),
        )
        return [{"role": "user", "content": prompt}]

    def generate_mockup(self, app_name: str, raos: List[Dict[str, Any]]) -> str:
        messages = self.build_messages(app_name, raos)
        last_upstream: Optional[UpstreamError] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                content = self.client.complete(messages, max_tokens=MOCKUP_MAX_TOKENS)
            except UpstreamError as exc:
                last_upstream = exc
                logger.warning("Mockup attempt %d/%d: completion failed: %s", attempt, self.max_attempts, exc)
                continue

            last_upstream = None
            html = strip_code_fence(content, "html")
            if is_complete_html(html):
                return html
            logger.warning("Mockup attempt %d/%d returned incomplete HTML (%d chars)", attempt, self.max_attempts, len(html))

        if last_upstream is not None:
            raise GenerationError(self.max_attempts, reason=last_upstream.last_message, upstream=last_upstream) from last_upstream
        raise GenerationError(self.max_attempts, reason="Failed to generate complete HTML after multiple attempts")
