import asyncio
import json
from types import SimpleNamespace

import httpx
import pytest

from research_pulse.services.llm import RANK_URL, ModelError, VertexModels, parse_json_text

def make_models(handler, project="proj", dims=3):
    return VertexModels(
        project=project,
        embedding_dimensions=dims,
        embedding_max_chars=10,
        credentials=SimpleNamespace(valid=True, token="tok"),
        transport=httpx.MockTransport(handler),
    )

def call(models, method, *args):
    async def go():
        try:
            return await getattr(models, method)(*args)
        finally:
            await models.aclose()

    return asyncio.run(go())

class TestParseJsonText:
    def test_strips_code_fences(self) -> None:
        assert parse_json_text('```json\n{"keep_indices": [1]}\n```') == {"keep_indices": [1]}
        assert parse_json_text('```\n["LLM"]\n```') == ["LLM"]

    def test_plain_json(self) -> None:
        assert parse_json_text(' ["a", "b"] ') == ["a", "b"]

    def test_invalid_json_raises(self) -> None:
        with pytest.raises(ModelError):
            parse_json_text("Sure! Here are the tags: LLM, RL")

class TestVertexModels:
    def test_embed_posts_truncated_text_with_bearer_token(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"predictions": [{"embeddings": {"values": [0.1, 0.2, 0.3]}}]})

        values = call(make_models(handler), "embed", "a very long article text")

        assert values == [0.1, 0.2, 0.3]
        assert seen["auth"] == "Bearer tok"
        assert seen["body"] == {"instances": [{"content": "a very lon"}]}
        assert seen["url"].endswith("/projects/proj/locations/us-central1/publishers/google/models/text-embedding-004:predict")

    def test_embed_rejects_wrong_dimensions(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"predictions": [{"embeddings": {"values": [0.1]}}]})

        with pytest.raises(ModelError):
            call(make_models(handler), "embed", "text")

    def test_generate_json_reads_first_candidate(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            assert body["generationConfig"] == {"responseMimeType": "application/json"}
            text = '```json\n["LLM", "Agents"]\n```'
            return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})

        assert call(make_models(handler), "generate_json", "tag this") == ["LLM", "Agents"]

    def test_generate_json_without_candidates_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"candidates": []})

        with pytest.raises(ModelError):
            call(make_models(handler), "generate_json", "tag this")

    def test_http_error_becomes_model_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="backend exploded")

        with pytest.raises(ModelError, match="500"):
            call(make_models(handler), "embed", "text")

    def test_non_json_body_becomes_model_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>login</html>")

        with pytest.raises(ModelError):
            call(make_models(handler), "embed", "text")

    def test_rank_returns_records(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"records": [{"id": "https://x/a", "score": 0.7}]})

        records = [{"id": "https://x/a", "title": "A", "content": "snippet"}]
        ranked = call(make_models(handler), "rank", "agents", records)

        assert ranked == [{"id": "https://x/a", "score": 0.7}]
        assert seen["url"] == RANK_URL.format(project="proj")
        assert seen["body"]["topN"] == 1
        assert seen["body"]["model"] == "semantic-ranker-512@latest"

    def test_missing_project_fails_without_network(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        models = make_models(handler, project=None)
        assert models.configured is False
        with pytest.raises(ModelError):
            call(models, "embed", "text")
