"""Client for the Google Cloud model endpoints.

Embeddings and JSON generation go to Vertex AI, reranking goes to the
Discovery Engine ranking API. One instance lives for the whole process:
the httpx client and the application default credentials are created on
first use and the access token is only refreshed once it has expired.
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Optional

import google.auth
import google.auth.exceptions
import google.auth.transport.requests
import httpx

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]
RANK_URL = (
    "https://discoveryengine.googleapis.com/v1/projects/{project}"
    "/locations/global/rankingConfigs/default_ranking_config:rank"
)
FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")

class ModelError(Exception):
    """A model call failed or returned something unusable."""

def parse_json_text(text: str) -> Any:
    cleaned = FENCE_RE.sub("", text.strip()).strip()
    try:
        return json.loads(cleaned)
    except ValueError as e:
        raise ModelError(f"model returned invalid JSON: {cleaned[:200]!r}") from e

class VertexModels:
    def __init__(
        self,
        project: Optional[str],
        location: str = "us-central1",
        embedding_model: str = "text-embedding-004",
        embedding_dimensions: int = 768,
        embedding_max_chars: int = 8000,
        generation_model: str = "gemini-2.5-flash",
        rerank_model: str = "semantic-ranker-512@latest",
        timeout_s: int = 30,
        credentials: Any = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.project = project
        self.location = location
        self.embedding_model = embedding_model
        self.embedding_dimensions = embedding_dimensions
        self.embedding_max_chars = embedding_max_chars
        self.generation_model = generation_model
        self.rerank_model = rerank_model
        self._timeout = httpx.Timeout(timeout_s)
        self._transport = transport
        self._credentials = credentials
        self._client: Optional[httpx.AsyncClient] = None
        self._auth_lock = asyncio.Lock()
        if not project:
            logger.warning("GOOGLE_CLOUD_PROJECT not set: embeddings, tagging, filtering and rerank are disabled")

    @property
    def configured(self) -> bool:
        return bool(self.project)

    @property
    def _vertex_base(self) -> str:
        return (
            f"https://{self.location}-aiplatform.googleapis.com/v1/projects/{self.project}"
            f"/locations/{self.location}/publishers/google/models"
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _token(self) -> str:
        if not self.project:
            raise ModelError("GOOGLE_CLOUD_PROJECT is not set")
        async with self._auth_lock:
            try:
                if self._credentials is None:
                    self._credentials, _ = await asyncio.to_thread(google.auth.default, scopes=SCOPES)
                if not self._credentials.valid:
                    request = google.auth.transport.requests.Request()
                    await asyncio.to_thread(self._credentials.refresh, request)
            except google.auth.exceptions.GoogleAuthError as e:
                raise ModelError(f"could not obtain Google credentials: {e}") from e
        token = self._credentials.token
        if not token:
            raise ModelError("failed to get access token")
        return token

    async def _post(self, url: str, body: dict[str, Any]) -> dict[str, Any]:
        token = await self._token()
        try:
            resp = await self._get_client().post(url, json=body, headers={"Authorization": f"Bearer {token}"})
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            raise ModelError(f"{url} returned {e.response.status_code}: {e.response.text[:300]}") from e
        except httpx.HTTPError as e:
            raise ModelError(f"{url} failed: {type(e).__name__}: {e}") from e
        except ValueError as e:
            raise ModelError(f"{url} returned a non-JSON body") from e

    async def embed(self, text: str) -> list[float]:
        body = {"instances": [{"content": text[: self.embedding_max_chars]}]}
        data = await self._post(f"{self._vertex_base}/{self.embedding_model}:predict", body)
        try:
            values = data["predictions"][0]["embeddings"]["values"]
        except (KeyError, IndexError, TypeError) as e:
            raise ModelError("unexpected embedding response shape") from e
        if len(values) != self.embedding_dimensions:
            raise ModelError(f"expected {self.embedding_dimensions} dimensions, got {len(values)}")
        return [float(v) for v in values]

    async def generate_json(self, prompt: str) -> Any:
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"responseMimeType": "application/json"},
        }
        data = await self._post(f"{self._vertex_base}/{self.generation_model}:generateContent", body)
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise ModelError("model returned no content") from e
        return parse_json_text(text)

    async def rank(self, query: str, records: list[dict[str, str]]) -> list[dict[str, Any]]:
        body = {
            "query": query,
            "records": records,
            "topN": len(records),
            # We already hold the record details, only ids and scores are needed
            "ignoreRecordDetailsInResponse": True,
            "model": self.rerank_model,
        }
        data = await self._post(RANK_URL.format(project=self.project), body)
        return data.get("records") or []
