"""
Config Resolver: raw agent definition -> validated, immutable AgentConfig.

resolve_agent_config is pure; load_agent_config reads the JSON file and caches
the resolved config per path.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

from pydantic import ValidationError

from explore.agent.registry import AgentRegistry, default_registry
from explore.agent.schema import AgentConfig
from explore.core.config import ALL_AGENT_CONFIG_PATH
from explore.core.errors import ConfigError

logger = logging.getLogger(__name__)


def resolve_agent_config(raw: Mapping[str, Any], registry: AgentRegistry | None = None) -> AgentConfig:
    """Validate shape and references. Raises ConfigError naming the offending field path."""
    try:
        config = AgentConfig.model_validate(dict(raw))
    except ValidationError as e:
        error = e.errors()[0]
        path = ".".join(str(p) for p in error["loc"])
        raise ConfigError(error["msg"], field_path=path) from e
    (registry or default_registry()).validate(config)
    return config


@lru_cache(maxsize=8)
def _load(path: str) -> AgentConfig:
    file = Path(path)
    if not file.is_file():
        raise ConfigError(f"agent config file not found: {path}", field_path="ALL_AGENT_CONFIG_PATH")
    try:
        raw = json.loads(file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid JSON: {e}", field_path=path) from e
    config = resolve_agent_config(raw)
    logger.info("[config_resolver:load] path=%s tools=%s llm=%s",
                path, [t.name for t in config.tools], config.llms[0].provider)
    return config


def load_agent_config(path: str | None = None) -> AgentConfig:
    return _load(path or ALL_AGENT_CONFIG_PATH)
