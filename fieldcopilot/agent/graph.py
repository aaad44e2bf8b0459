from __future__ import annotations

import logging

from langgraph.graph import END, StateGraph

from fieldcopilot.agent.parsing import parse_response
from fieldcopilot.agent.prompts import build_messages
from fieldcopilot.core.config import Settings
from fieldcopilot.domain.state import CopilotState
from fieldcopilot.services.job_context import get_job_snapshot
from fieldcopilot.services.job_evidence import get_job_evidence
from fieldcopilot.services.vector_retrieval import retrieve_vector_evidence


logger = logging.getLogger(__name__)


def build_graph(*, session, llm, embeddings, vector_index, settings: Settings):
    graph = StateGraph(CopilotState)

    async def load_context(state: CopilotState) -> dict:
        # Raises JobNotFoundError before any provider is called.
        snapshot = await get_job_snapshot(session, state["tenant_id"], state["job_id"])
        return {"snapshot": snapshot.model_dump()}

    async def gather_evidence(state: CopilotState) -> dict:
        evidence = await get_job_evidence(
            session, state["tenant_id"], state["job_id"], settings.evidence_limit
        )
        return {"evidence": evidence}

    async def retrieve_vectors(state: CopilotState) -> dict:
        vector = await retrieve_vector_evidence(
            tenant_id=state["tenant_id"],
            job_id=state["job_id"],
            query=state["user_message"],
            embeddings=embeddings,
            index=vector_index,
            top_k=settings.retrieval_top_k,
            fallback_top_k=settings.retrieval_fallback_top_k,
            debug=bool(state.get("debug")),
            debug_top_k=settings.retrieval_debug_top_k,
        )
        # Database evidence first, vector matches appended after.
        return {"vector": vector, "evidence": [*state.get("evidence", []), *vector.evidence]}

    async def generate(state: CopilotState) -> dict:
        messages = build_messages(
            state.get("history", []),
            state["snapshot"],
            state.get("evidence", []),
            state["user_message"],
            version=settings.prompt_version,
        )
        completion = await llm.complete(messages)
        parsed = parse_response(completion.content)
        logger.info(
            "copilot_generated job_id=%s evidence=%s citations=%s",
            state["job_id"],
            len(state.get("evidence", [])),
            len(parsed.citations),
        )
        return {
            "raw_content": completion.content,
            "model": completion.model,
            "answer": parsed.answer,
            "citations": parsed.citations,
            "follow_ups": parsed.follow_ups,
        }

    graph.add_node("load_context", load_context)
    graph.add_node("gather_evidence", gather_evidence)
    graph.add_node("retrieve_vectors", retrieve_vectors)
    graph.add_node("generate", generate)

    graph.set_entry_point("load_context")
    graph.add_edge("load_context", "gather_evidence")
    graph.add_edge("gather_evidence", "retrieve_vectors")
    graph.add_edge("retrieve_vectors", "generate")
    graph.add_edge("generate", END)

    return graph.compile()


async def run_graph(
    *,
    session,
    llm,
    embeddings,
    vector_index,
    settings: Settings,
    state: CopilotState,
) -> CopilotState:
    graph = build_graph(
        session=session,
        llm=llm,
        embeddings=embeddings,
        vector_index=vector_index,
        settings=settings,
    )
    return await graph.ainvoke(state)
