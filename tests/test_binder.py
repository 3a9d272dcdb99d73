"""
Unit tests for the State Binder: bound keys always come from the session state.
"""

import pytest

from explore.agent.binder import bind, bind_arguments
from explore.agent.registry import default_registry
from explore.agent.state import ToolCallProposal, new_conversation_state
from explore.core.errors import ToolArgumentError


@pytest.fixture
def state(agent_config):
    return new_conversation_state("ml courses", "", "chat-1", agent_config)


@pytest.fixture
def search_tool():
    return default_registry().tools.resolve("rag_graph_search")


class TestBind:
    def test_attacker_index_is_overwritten(self, state, search_tool) -> None:
        proposal = ToolCallProposal("rag_graph_search", {"query": "ml", "indexName": "attacker-index"})
        args = bind(proposal, search_tool, state)
        assert args.index_name == "courses"

    def test_every_bound_key_is_overwritten(self, state, search_tool) -> None:
        proposal = ToolCallProposal(
            "rag_graph_search",
            {
                "query": "ml",
                "chatId": "someone-else",
                "topK": 500,
                "embeddingModelName": "evil-model",
                "indexName": "attacker-index",
            },
        )
        args = bind(proposal, search_tool, state)
        assert args.chat_id == "chat-1"
        assert args.top_k == 5
        assert args.embedding_model_name == "text-embedding-3-small"
        assert args.index_name == "courses"
        assert args.query == "ml"

    def test_snake_case_spelling_is_discarded(self, state, search_tool) -> None:
        proposal = ToolCallProposal("rag_graph_search", {"query": "ml", "index_name": "attacker-index"})
        raw = bind_arguments(proposal, search_tool, state)
        assert "index_name" not in raw
        assert raw["indexName"] == "courses"

    def test_binding_is_idempotent(self, state, search_tool) -> None:
        proposal = ToolCallProposal("rag_graph_search", {"query": "ml", "indexName": "attacker-index"})
        first = bind(proposal, search_tool, state)
        again = bind(ToolCallProposal(proposal.name, first.model_dump(by_alias=True)), search_tool, state)
        assert first == again

    def test_proposal_is_not_mutated(self, state, search_tool) -> None:
        arguments = {"query": "ml", "indexName": "attacker-index"}
        bind(ToolCallProposal("rag_graph_search", arguments), search_tool, state)
        assert arguments == {"query": "ml", "indexName": "attacker-index"}

    def test_invalid_arguments_name_tool_and_field(self, state, search_tool) -> None:
        with pytest.raises(ToolArgumentError) as exc:
            bind(ToolCallProposal("rag_graph_search", {}), search_tool, state)
        assert exc.value.tool_name == "rag_graph_search"
        assert exc.value.field == "query"
        assert "rag_graph_search" in exc.value.message

    def test_tool_without_bindings_passes_arguments_through(self, state) -> None:
        tool = default_registry().tools.resolve("final_answer")
        args = bind(ToolCallProposal("final_answer", {"answer": "hi", "researchSteps": "- looked"}), tool, state)
        assert args.answer == "hi"
        assert args.research_steps == "- looked"
