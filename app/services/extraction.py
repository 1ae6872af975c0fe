import json
import logging

from pydantic import ValidationError

from app.core.errors import ExtractionError
from app.schemas.requirement import ExtractionResult
from app.services.extraction_cache import ExtractionCache, normalize_description
from app.utils.completion_client import CompletionClient
from app.utils.markup import strip_code_fence
from app.utils.prompt_loader import load_prompt

logger = logging.getLogger(__name__)

EXTRACTION_MAX_TOKENS = 800


class ExtractionStage:
    def __init__(self, client: CompletionClient, cache: ExtractionCache):
        self.client = client
        self.cache = cache

    def extract(self, description: str) -> ExtractionResult:
        """Turn a free-text app description into RAOS data.

        A malformed answer is not retried here; the completion client's own
        retries are the only retry layer for extraction.
        """
        key = normalize_description(description)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Extraction cache hit for %r", key[:60])
            return cached

        prompt = load_prompt("extract_raos.txt", description=description)
        content = self.client.complete([{"role": "user", "content": prompt}], max_tokens=EXTRACTION_MAX_TOKENS)
        json_str = strip_code_fence(content, "json")

        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as exc:
            logger.error("Model returned invalid JSON: %s", exc)
            raise ExtractionError("invalid JSON", raw=content) from exc
        if not isinstance(data, dict):
            raise ExtractionError("invalid JSON shape: expected an object", raw=content)

        try:
            result = ExtractionResult(**data)
        except ValidationError as exc:
            logger.error("Model JSON does not match the RAOS schema: %s", exc)
            raise ExtractionError("invalid JSON shape", raw=content) from exc
        if not result.app_name.strip():
            raise ExtractionError("invalid JSON shape: empty appName", raw=content)

        self.cache.set(key, result)
        return result
