"""
Vector store client: embeddings strategies and Milvus Cloud search.

Responsibility: Resolve an embeddings client from the model name (static table of
supported models), and run similarity search against a named Milvus collection.
"""

import logging
from typing import Any, Protocol

import httpx
from openai import OpenAI

from explore.core.config import (
    EMBED_API_TIMEOUT,
    EMBED_BATCH_SIZE,
    HF_API_KEY,
    HF_INFERENCE_URL,
    MILVUS_TOKEN,
    MILVUS_URI,
    OPENAI_API_KEY,
)
from explore.core.errors import AgentGraphError, ServiceUnavailableError

logger = logging.getLogger(__name__)

# model name -> embeddings strategy
SUPPORTED_EMBEDDING_MODELS: dict[str, str] = {
    "text-embedding-3-small": "openai",
    "sentence-transformers/all-MiniLM-L6-v2": "huggingface",
}


class EmbeddingsClient(Protocol):
    def embed_query(self, text: str) -> list[float]: ...


class OpenAIEmbeddings:
    """OpenAI embeddings API. Newlines are stripped from inputs."""

    def __init__(self, model_name: str) -> None:
        if not OPENAI_API_KEY:
            raise ServiceUnavailableError("OPENAI_API_KEY environment variable required")
        self.model_name = model_name
        self._client = OpenAI(api_key=OPENAI_API_KEY)

    def embed_query(self, text: str) -> list[float]:
        response = self._client.embeddings.create(model=self.model_name, input=[text.replace("\n", " ")])
        return list(response.data[0].embedding)


class HuggingFaceEmbeddings:
    """Hugging Face Inference API feature extraction, normalized for cosine similarity."""

    def __init__(self, model_name: str, batch_size: int = EMBED_BATCH_SIZE) -> None:
        if not HF_API_KEY:
            raise ServiceUnavailableError(
                "HF_API_KEY must be set in .env. Get a token from https://huggingface.co/settings/tokens"
            )
        self.model_name = model_name
        self.batch_size = batch_size
        self._url = f"{HF_INFERENCE_URL}/{model_name}/pipeline/feature-extraction"

    def embed_query(self, text: str) -> list[float]:
        return self.embed_documents([text])[0]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        headers = {"Authorization": f"Bearer {HF_API_KEY}", "Content-Type": "application/json"}
        all_embeddings: list[list[float]] = []
        with httpx.Client(timeout=EMBED_API_TIMEOUT) as client:
            for i in range(0, len(texts), self.batch_size):
                batch = texts[i : i + self.batch_size]
                payload = {"inputs": batch, "options": {"wait_for_model": True}}
                response = client.post(self._url, json=payload, headers=headers)
                if response.status_code == 503:
                    raise ServiceUnavailableError(f"HF model is loading. Retry later. {response.text[:200]}")
                if response.status_code in (401, 403):
                    raise ServiceUnavailableError(
                        "HF token rejected or lacks Inference API permission. Check HF_API_KEY."
                    )
                if response.status_code != 200:
                    raise ServiceUnavailableError(f"HF API error {response.status_code}: {response.text[:200]}")
                result = response.json()
                if isinstance(result, list) and result and isinstance(result[0], list):
                    batch_emb = result
                else:
                    batch_emb = [result]
                for vec in batch_emb:
                    norm = sum(x * x for x in vec) ** 0.5 or 1.0
                    all_embeddings.append([x / norm for x in vec])
        return all_embeddings


def get_embeddings(model_name: str) -> EmbeddingsClient:
    """Return an embeddings client for a supported model name."""
    strategy = SUPPORTED_EMBEDDING_MODELS.get(model_name)
    if strategy == "openai":
        return OpenAIEmbeddings(model_name)
    if strategy == "huggingface":
        return HuggingFaceEmbeddings(model_name)
    raise AgentGraphError(
        f"Embedding strategy not supported: {model_name}. "
        f"Supported strategies: {', '.join(SUPPORTED_EMBEDDING_MODELS)}"
    )


def get_milvus_client() -> Any:
    """Connect to Milvus Cloud and return a client."""
    if not MILVUS_URI or not MILVUS_TOKEN:
        raise ServiceUnavailableError("MILVUS_URI and MILVUS_TOKEN must be set in .env")

    from pymilvus import MilvusClient

    client = MilvusClient(uri=MILVUS_URI, token=MILVUS_TOKEN)
    logger.info("Milvus connection established")
    return client


def search_index(index_name: str, vector: list[float], limit: int) -> list[dict]:
    """
    Search the collection named index_name, return candidates with text, score, metadata.
    """
    logger.info("[vector_store:search_index] IN  index=%s limit=%d", index_name, limit)
    client = get_milvus_client()
    if not client.has_collection(index_name):
        raise AgentGraphError(f"Vector index not found: {index_name}")
    results = client.search(
        collection_name=index_name,
        data=[vector],
        limit=limit,
        output_fields=["id", "text", "source", "chunk_id"],
    )

    # results: list of list of hits (one list per query vector)
    hits = results[0] if results else []
    candidates = []
    for h in hits:
        entity = h.get("entity") or h
        candidates.append({
            "id": entity.get("id", h.get("id")),
            "text": entity.get("text", ""),
            "score": float(h.get("distance", h.get("score", 0.0))),
            "metadata": {
                "source": entity.get("source", ""),
                "chunk_id": entity.get("chunk_id", 0),
            },
        })
    logger.info("[vector_store:search_index] OUT candidates=%d first_scores=%s",
                len(candidates), [round(c["score"], 4) for c in candidates[:5]])
    return candidates
