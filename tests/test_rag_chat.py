"""Tests for the retrieval-augmented chat agent."""
import time

import pytest

from docchat.core.agents.chat.rag_chat import RAGChatAgent
from docchat.core.config import settings
from docchat.core.exceptions import EmbeddingError, GenerationError, NotFoundError, RetrievalError, ValidationError
from docchat.core.helpers.knowledge import ReferenceKnowledgeLookup
from docchat.db.repositories import KnowledgeRepository, MessageRepository, ShareSessionRepository
from docchat.models.conversation import Message

from conftest import ai_reply

COLLECTION = settings.DOCUMENT_COLLECTION


@pytest.fixture
def agent(db, services):
    return RAGChatAgent(
        db=db,
        embedder=services.embedder,
        vector_index=services.vector_index,
        llm=services.llm,
        reference_lookup=services.reference_lookup,
    )


@pytest.fixture
def ingest(services):
    def run(document):
        return services.processor.process(document.doc_id)

    return run


def _prompt(llm) -> str:
    messages = llm.invoke.call_args.args[0]
    return messages[-1].content


def _messages(db, thread_id):
    return db.query(Message).filter(Message.conversation_id == thread_id).all()


def test_deadline_scenario(agent, stored_docx, ingest, db, llm, vector_index, embedder):
    document = stored_docx("The project deadline is March 5th.", file_name="plan.docx")
    other = stored_docx("Lunch is served at noon in the cafeteria.", file_name="menu.docx")
    ingest(document)
    ingest(other)

    top = vector_index.search(COLLECTION, embedder.embed_query("When is the deadline?"),
                              filter={"conversation_id": "conv-1"}, limit=1)
    assert "March 5th" in top[0].payload["text"]

    message = agent.respond("conv-1", "When is the deadline?")

    assert message.text == "The deadline is March 5th."
    assert message.is_user_message is False
    assert message.is_loading is False
    prompt = _prompt(llm)
    assert "From file plan.docx:" in prompt
    assert "The project deadline is March 5th." in prompt
    assert [m.text for m in _messages(db, "conv-1")] == ["The deadline is March 5th."]


def test_retrieval_is_scoped_per_document(agent, stored_docx, ingest, vector_index):
    first = stored_docx("Alpha facts.", file_name="a.docx")
    second = stored_docx("Beta facts.", file_name="b.docx")
    ingest(first)
    ingest(second)
    vector_index.search_calls.clear()

    agent.respond("conv-1", "facts?")

    filters = [call["filter"] for call in vector_index.search_calls if call["collection"] == COLLECTION]
    assert filters == [
        {"document_id": first.doc_id, "conversation_id": "conv-1"},
        {"document_id": second.doc_id, "conversation_id": "conv-1"},
    ]
    assert all(call["limit"] == 5 for call in vector_index.search_calls if call["collection"] == COLLECTION)


def test_no_documents_still_answers(agent, db, llm):
    llm.invoke.return_value = ai_reply("I don't know.")

    message = agent.respond("empty-conv", "Anything?")

    assert message.text == "I don't know."
    assert "RELEVANT DOCUMENT EXCERPTS:\n(none)" in _prompt(llm)
    assert len(_messages(db, "empty-conv")) == 1


def test_unprocessed_document_contributes_no_block(agent, stored_docx, llm):
    stored_docx("Queued but never processed.")

    agent.respond("conv-1", "What is queued?")

    assert "From file" not in _prompt(llm)


def test_history_is_last_eight_in_order(agent, db, llm):
    repository = MessageRepository(db)
    for i in range(10):
        repository.add("conv-1", f"message {i}", is_user_message=i % 2 == 0)

    agent.respond("conv-1", "next question")

    prompt = _prompt(llm)
    assert "message 1\n" not in prompt
    positions = [prompt.index(f"message {i}") for i in range(2, 10)]
    assert positions == sorted(positions)
    assert "User: message 2" in prompt
    assert "Assistant: message 3" in prompt


def test_blank_message_is_rejected(agent, db, embedder, llm):
    with pytest.raises(ValidationError):
        agent.respond("conv-1", "  \n")

    assert embedder.calls == 0
    llm.invoke.assert_not_called()
    assert _messages(db, "conv-1") == []


def test_embedding_failure_persists_nothing(agent, db, embedder, llm):
    embedder.errors.append(EmbeddingError("provider down"))

    with pytest.raises(EmbeddingError):
        agent.respond("conv-1", "hello")

    llm.invoke.assert_not_called()
    assert _messages(db, "conv-1") == []


def test_search_failure_raises_retrieval_error(agent, stored_docx, ingest, db, vector_index):
    ingest(stored_docx("Some content."))
    vector_index.fail_search = True

    with pytest.raises(RetrievalError):
        agent.respond("conv-1", "hello")
    assert _messages(db, "conv-1") == []


@pytest.mark.parametrize("outcome", [RuntimeError("model down"), ai_reply("   ")])
def test_generation_failure_persists_nothing(agent, db, llm, outcome):
    if isinstance(outcome, Exception):
        llm.invoke.side_effect = outcome
    else:
        llm.invoke.return_value = outcome

    with pytest.raises(GenerationError):
        agent.respond("conv-1", "hello")
    assert _messages(db, "conv-1") == []


def test_share_context_uses_share_thread(agent, db):
    share = ShareSessionRepository(db).create("conv-1")
    MessageRepository(db).add(share.share_id, "shared question", is_user_message=True)

    message = agent.respond("conv-1", "follow up", share_context_id=share.share_id)

    assert message.conversation_id == share.share_id
    assert _messages(db, "conv-1") == []


def test_inactive_or_expired_share_is_rejected(agent, db):
    shares = ShareSessionRepository(db)
    inactive = shares.create("conv-1")
    shares.deactivate(inactive.share_id, "conv-1")
    expired = shares.create("conv-1", expires_at=int(time.time()) - 10)

    for share_id in (inactive.share_id, expired.share_id, "unknown"):
        with pytest.raises(NotFoundError):
            agent.respond("conv-1", "hello", share_context_id=share_id)


def test_curated_answers_are_quoted(agent, db, services, llm):
    question = KnowledgeRepository(db).create_question("What is the refund policy?", "Refunds within 30 days.")
    services.reference_lookup.index_question(question)

    agent.respond("conv-1", "What is the refund policy?")

    assert "Q: What is the refund policy?\nA: Refunds within 30 days." in _prompt(llm)


def test_reference_failure_does_not_break_answer(db, services, llm):
    class BrokenLookup(ReferenceKnowledgeLookup):
        def lookup(self, db, query_vector):
            raise RuntimeError("reference store down")

    agent = RAGChatAgent(
        db, services.embedder, services.vector_index, llm,
        reference_lookup=BrokenLookup(services.vector_index, services.embedder),
    )

    message = agent.respond("conv-1", "hello")
    assert message.text
