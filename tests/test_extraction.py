import sys
import os
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

os.environ.setdefault("database_url", "sqlite:///:memory:")
os.environ.setdefault("secret_key", "testsecret")

import pytest

from app.core.errors import ExtractionError, UpstreamError
from app.services.extraction import EXTRACTION_MAX_TOKENS, ExtractionStage
from app.services.extraction_cache import ExtractionCache, normalize_description
from fakes import ScriptedClient, extraction_json, upstream_failure

DESCRIPTION = "Admin manages products, users order products."


def test_extract_parses_model_json():
    client = ScriptedClient([extraction_json()])
    stage = ExtractionStage(client, ExtractionCache())

    result = stage.extract(DESCRIPTION)

    assert result.app_name == "ShopLite"
    assert "Admin" in result.roles
    assert result.raos[0].role == "Admin"
    assert result.raos[0].supplementary.startswith("Product price")
    assert client.calls[0]["max_tokens"] == EXTRACTION_MAX_TOKENS
    prompt = client.calls[0]["messages"][0]["content"]
    assert f'"{DESCRIPTION}"' in prompt
    assert '"appName": "string"' in prompt


def test_extract_strips_markdown_fence():
    client = ScriptedClient(["```json\n" + extraction_json(appName="Fenced") + "\n```"])
    stage = ExtractionStage(client, ExtractionCache())

    assert stage.extract(DESCRIPTION).app_name == "Fenced"


def test_cache_hit_is_case_and_whitespace_insensitive():
    client = ScriptedClient([extraction_json()])
    stage = ExtractionStage(client, ExtractionCache())

    first = stage.extract(DESCRIPTION)
    second = stage.extract(DESCRIPTION)
    upper = stage.extract(DESCRIPTION.upper())
    padded = stage.extract("  " + DESCRIPTION + "  ")

    assert len(client.calls) == 1
    assert first.model_dump() == second.model_dump() == upper.model_dump() == padded.model_dump()


def test_cached_result_cannot_be_mutated_by_caller():
    cache = ExtractionCache()
    stage = ExtractionStage(ScriptedClient([extraction_json()]), cache)

    stage.extract(DESCRIPTION).roles.append("Intruder")

    assert "Intruder" not in cache.get(normalize_description(DESCRIPTION)).roles


def test_invalid_json_raises_extraction_error_without_retry():
    client = ScriptedClient(["Sure! Here is your app: {not json"])
    cache = ExtractionCache()
    stage = ExtractionStage(client, cache)

    with pytest.raises(ExtractionError) as exc_info:
        stage.extract(DESCRIPTION)

    assert exc_info.value.cause == "invalid JSON"
    assert exc_info.value.raw == "Sure! Here is your app: {not json"
    assert len(client.calls) == 1
    assert len(cache) == 0


def test_wrong_shape_raises_extraction_error():
    client = ScriptedClient(['{"entities": ["Product"]}'])
    stage = ExtractionStage(client, ExtractionCache())

    with pytest.raises(ExtractionError) as exc_info:
        stage.extract(DESCRIPTION)
    assert exc_info.value.cause == "invalid JSON shape"


def test_upstream_error_propagates_and_nothing_is_cached():
    cache = ExtractionCache()
    stage = ExtractionStage(ScriptedClient([upstream_failure()]), cache)

    with pytest.raises(UpstreamError):
        stage.extract(DESCRIPTION)
    assert len(cache) == 0
