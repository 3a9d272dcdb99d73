"""
Retrieval: semantic search, keyword boost, HF rerank.

Responsibility: Query the vector index with the session's embeddings model and
return the top chunks for the retrieval tool.
"""

import logging

import httpx

from explore.core.config import (
    HF_API_KEY,
    HF_INFERENCE_URL,
    HF_RERANK_MODEL,
    MIN_SEARCH_FETCH,
    RERANK_API_TIMEOUT,
    SEARCH_FETCH_MULTIPLIER,
)
from explore.services.vector_store import get_embeddings, search_index

logger = logging.getLogger(__name__)

HF_RERANK_URL = f"{HF_INFERENCE_URL}/{HF_RERANK_MODEL}"


def _to_score(item) -> float:
    if isinstance(item, (int, float)):
        return float(item)
    if isinstance(item, list) and item and isinstance(item[0], (int, float)):
        return float(item[0])
    if isinstance(item, dict):
        return float(item.get("score", 0))
    return 0.0


def rerank_with_hf(query: str, results: list[dict], top_k: int) -> list[dict]:
    """
    Rerank candidates using Hugging Face Inference API (BAAI/bge-reranker-base).

    Falls back to the incoming order when no key is configured or the API fails.
    """
    if not results or not query or not HF_API_KEY:
        return results[:top_k]

    inputs = [{"text": query, "text_pair": r["text"]} for r in results]
    headers = {"Authorization": f"Bearer {HF_API_KEY}", "Content-Type": "application/json"}
    payload = {"inputs": inputs, "options": {"wait_for_model": True}}

    try:
        with httpx.Client(timeout=RERANK_API_TIMEOUT) as client:
            response = client.post(HF_RERANK_URL, json=payload, headers=headers)
    except httpx.HTTPError as e:
        logger.warning("Reranker request failed: %s", e)
        return results[:top_k]
    if response.status_code != 200:
        logger.warning("Reranker API error %s: %s", response.status_code, response.text[:200])
        return results[:top_k]
    data = response.json()

    # Router sometimes returns [[s1, s2, ...]]: one element holding every score
    if isinstance(data, dict) and "scores" in data:
        data = data["scores"]
    if not isinstance(data, list) or not data:
        return results[:top_k]
    if len(data) == 1 and isinstance(data[0], list) and len(results) > 1:
        data = data[0]

    scored = sorted(((i, _to_score(s)) for i, s in enumerate(data)), key=lambda x: -x[1])
    reranked = [results[i] for i, _ in scored[:top_k] if i < len(results)]
    logger.info("[retrieval:rerank_with_hf] OUT reranked=%d sources=%s",
                len(reranked), [r.get("metadata", {}).get("source") for r in reranked])
    return reranked


def _boost_by_keywords(query: str, candidates: list[dict]) -> list[dict]:
    """
    Reorder candidates so chunks containing query words come first, then by vector score.
    """
    if not candidates or not query or not query.strip():
        return candidates
    words = [w for w in query.lower().split() if len(w) >= 2]
    if not words:
        return candidates

    def keyword_score(c: dict) -> int:
        text = (c.get("text") or "").lower()
        return sum(1 for w in words if w in text)

    scored = [(c, keyword_score(c)) for c in candidates]
    scored.sort(key=lambda x: (-x[1], -x[0].get("score", 0)))
    return [c for c, _ in scored]


def retrieve_context(
    query: str,
    *,
    index_name: str,
    embedding_model_name: str,
    top_k: int,
    rerank: bool = True,
) -> list[dict]:
    """
    Pipeline: embed query → vector search (index_name) → keyword boost → HF rerank → top_k chunks.
    """
    logger.info("[retrieval:retrieve_context] IN  query=%r index=%s model=%s top_k=%d",
                query, index_name, embedding_model_name, top_k)
    if not query or not query.strip():
        return []
    embeddings = get_embeddings(embedding_model_name)
    vector = embeddings.embed_query(query.strip())
    fetch = max(top_k * SEARCH_FETCH_MULTIPLIER, MIN_SEARCH_FETCH)
    candidates = search_index(index_name, vector, limit=fetch)
    candidates = _boost_by_keywords(query, candidates)
    chunks = rerank_with_hf(query, candidates, top_k) if rerank else candidates[:top_k]
    logger.info("[retrieval:retrieve_context] OUT retrieved %d → kept %d", len(candidates), len(chunks))
    return chunks
