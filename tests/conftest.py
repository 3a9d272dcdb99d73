from typing import Any

import pytest

from explore.agent.config_resolver import resolve_agent_config
from explore.agent.schema import AgentConfig
from explore.core import session_store

from fakes import make_raw_config


@pytest.fixture
def raw_config() -> dict[str, Any]:
    return make_raw_config()


@pytest.fixture
def agent_config(raw_config: dict[str, Any]) -> AgentConfig:
    return resolve_agent_config(raw_config)


@pytest.fixture(autouse=True)
def clear_sessions():
    session_store.clear()
    yield
    session_store.clear()
