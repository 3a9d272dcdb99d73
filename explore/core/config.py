"""
Application configuration (env, settings, constants).

Responsibility: Centralize environment variables and process-wide constants.
The agent definition itself (prompts, tools, LLMs) lives in a JSON file whose
path is read from ALL_AGENT_CONFIG_PATH; see explore.agent.config_resolver.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Runtime environment
APP_ENV: str = os.getenv("APP_ENV", "development").strip().lower()
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

# Node arguments/results are attached to trace log lines in production only
VERBOSE_LOGGING: bool = APP_ENV == "production"

# Agent definition file (JSON)
ALL_AGENT_CONFIG_PATH: str = os.getenv("ALL_AGENT_CONFIG_PATH", "").strip()

# OpenAI (chat + embeddings)
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "").strip()

# Hugging Face (embeddings / rerank inference)
HF_API_KEY: str = os.getenv("HF_API_KEY", "").strip()
HF_INFERENCE_URL: str = "https://router.huggingface.co/hf-inference/models"
HF_RERANK_MODEL: str = "BAAI/bge-reranker-base"

# Milvus Cloud (from env). Collections are addressed by the agent's indexName.
MILVUS_URI: str = os.getenv("MILVUS_URI", "").strip()
MILVUS_TOKEN: str = os.getenv("MILVUS_TOKEN", "").strip()

# Retrieval: vector search over-fetches before rerank
SEARCH_FETCH_MULTIPLIER: int = 10
MIN_SEARCH_FETCH: int = 50
EMBED_BATCH_SIZE: int = 32

# API timeouts (seconds)
EMBED_API_TIMEOUT: float = 30.0
RERANK_API_TIMEOUT: float = 60.0

# Agent loop
CHAT_HISTORY_WINDOW: int = 4
MOCK_LLM_DELAY: float = float(os.getenv("MOCK_LLM_DELAY", "5.0"))
