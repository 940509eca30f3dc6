"""
Retrieval-augmented chat agent answering questions about a conversation's documents.
"""
import logging
from typing import Any, Dict, List, Optional, TypedDict

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langgraph.graph import END, StateGraph
from langgraph.graph.state import CompiledStateGraph
from sqlalchemy.orm import Session

from docchat.core.agents.chat.prompt import (
    NO_SECTION_CONTENT,
    RAG_ANSWER_SYSTEM_PROMPT,
    RAG_ANSWER_USER_PROMPT_TEMPLATE,
)
from docchat.core.config import settings
from docchat.core.exceptions import EmbeddingError, RetrievalError, ValidationError, VectorIndexError
from docchat.core.helpers.embedder import EmbeddingService
from docchat.core.helpers.knowledge import ReferenceAnswer, ReferenceKnowledgeLookup
from docchat.core.helpers.vector_index import VectorIndex
from docchat.core.llm_config import complete
from docchat.db.repositories import DocumentRepository, MessageRepository, ShareSessionRepository
from docchat.models.conversation import Message

logger = logging.getLogger(__name__)


class RAGChatState(TypedDict, total=False):
    """State for the document chat agent."""
    conversation_id: str
    user_message: str
    share_context_id: Optional[str]

    # Effective message thread (conversation or share session)
    thread_id: str

    documents: List[Dict[str, str]]  # [{doc_id, file_name}]
    history: List[Dict[str, Any]]  # [{text, is_user_message}], oldest first
    query_vector: List[float]

    context_blocks: List[str]
    references: List[ReferenceAnswer]

    prompt: str
    answer: str
    message: Message


class RAGChatAgent:
    """
    Answers a user message grounded in the conversation's documents,
    curated reference answers and recent history.
    """

    def __init__(
        self,
        db: Session,
        embedder: EmbeddingService,
        vector_index: VectorIndex,
        llm: BaseChatModel,
        reference_lookup: Optional[ReferenceKnowledgeLookup] = None,
        collection: str = settings.DOCUMENT_COLLECTION,
        search_limit: int = settings.SEARCH_RESULT_LIMIT,
        history_limit: int = settings.HISTORY_MESSAGE_LIMIT,
    ):
        self.db = db
        self.embedder = embedder
        self.vector_index = vector_index
        self.llm = llm
        self.reference_lookup = reference_lookup
        self.collection = collection
        self.search_limit = search_limit
        self.history_limit = history_limit
        self.graph = self._build_graph()

    def _build_graph(self) -> CompiledStateGraph:
        """Build the LangGraph workflow."""
        workflow = StateGraph(RAGChatState)

        workflow.add_node("resolve_thread", self._resolve_thread)
        workflow.add_node("load_documents", self._load_documents)
        workflow.add_node("load_history", self._load_history)
        workflow.add_node("embed_query", self._embed_query)
        workflow.add_node("retrieve_context", self._retrieve_context)
        workflow.add_node("lookup_references", self._lookup_references)
        workflow.add_node("generate_answer", self._generate_answer)
        workflow.add_node("save_message", self._save_message)

        workflow.set_entry_point("resolve_thread")
        workflow.add_edge("resolve_thread", "load_documents")
        workflow.add_edge("load_documents", "load_history")
        workflow.add_edge("load_history", "embed_query")
        workflow.add_edge("embed_query", "retrieve_context")
        workflow.add_edge("retrieve_context", "lookup_references")
        workflow.add_edge("lookup_references", "generate_answer")
        workflow.add_edge("generate_answer", "save_message")
        workflow.add_edge("save_message", END)

        return workflow.compile()

    def respond(self, conversation_id: str, user_message: str, share_context_id: Optional[str] = None) -> Message:
        """
        Generate and persist the AI reply to a user message.

        Raises:
            ValidationError: The user message is blank
            NotFoundError: Unknown or inactive share session
            EmbeddingError: The user message could not be embedded
            RetrievalError: The vector index could not be searched
            GenerationError: The model failed or returned nothing
        """
        if not user_message or not user_message.strip():
            raise ValidationError("User message must not be blank")
        result = self.graph.invoke({
            "conversation_id": conversation_id,
            "user_message": user_message,
            "share_context_id": share_context_id,
        })
        return result["message"]

    def _resolve_thread(self, state: RAGChatState) -> Dict[str, Any]:
        share_id = state.get("share_context_id")
        if not share_id:
            return {"thread_id": state["conversation_id"]}
        ShareSessionRepository(self.db).get_active(share_id, state["conversation_id"])
        return {"thread_id": share_id}

    def _load_documents(self, state: RAGChatState) -> Dict[str, Any]:
        # every status: unprocessed documents simply have no chunks yet
        documents = DocumentRepository(self.db).list_for_conversation(state["conversation_id"])
        return {"documents": [{"doc_id": d.doc_id, "file_name": d.file_name} for d in documents]}

    def _load_history(self, state: RAGChatState) -> Dict[str, Any]:
        messages = MessageRepository(self.db).recent(state["thread_id"], self.history_limit)
        logger.info(f"Loaded {len(messages)} history messages for thread {state['thread_id']}")
        return {"history": [{"text": m.text, "is_user_message": m.is_user_message} for m in messages]}

    def _embed_query(self, state: RAGChatState) -> Dict[str, Any]:
        try:
            return {"query_vector": self.embedder.embed_query(state["user_message"])}
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(f"Failed to embed user message: {e}", cause=e)

    def _retrieve_context(self, state: RAGChatState) -> Dict[str, Any]:
        documents = state["documents"]
        blocks: List[str] = []
        if not documents:
            return {"context_blocks": blocks}

        try:
            self.vector_index.ensure_collection(self.collection)
            for document in documents:
                hits = self.vector_index.search(
                    self.collection,
                    state["query_vector"],
                    filter={"document_id": document["doc_id"], "conversation_id": state["conversation_id"]},
                    limit=self.search_limit,
                    with_payload=True,
                )
                texts = [
                    hit.payload["text"]
                    for hit in hits
                    if hit.payload and isinstance(hit.payload.get("text"), str) and hit.payload["text"].strip()
                ]
                if not texts:
                    continue
                blocks.append(f"From file {document['file_name']}:\n" + "\n\n".join(texts))
        except VectorIndexError as e:
            raise RetrievalError(f"Vector index unavailable: {e}", cause=e)

        if not blocks:
            logger.info("No relevant context found for the query")
        return {"context_blocks": blocks}

    def _lookup_references(self, state: RAGChatState) -> Dict[str, Any]:
        if self.reference_lookup is None:
            return {"references": []}
        try:
            return {"references": self.reference_lookup.lookup(self.db, state["query_vector"])}
        except Exception as e:
            logger.warning(f"Reference knowledge lookup failed, continuing without it: {e}")
            return {"references": []}

    def _generate_answer(self, state: RAGChatState) -> Dict[str, Any]:
        prompt = build_user_prompt(
            question=state["user_message"],
            context_blocks=state["context_blocks"],
            history=state["history"],
            references=state["references"],
        )
        answer = complete(self.llm, [SystemMessage(content=RAG_ANSWER_SYSTEM_PROMPT), HumanMessage(content=prompt)])
        logger.info("AI response text generated")
        return {"prompt": prompt, "answer": answer}

    def _save_message(self, state: RAGChatState) -> Dict[str, Any]:
        message = MessageRepository(self.db).add(
            state["thread_id"], state["answer"], is_user_message=False, is_loading=False
        )
        logger.info(f"AI message {message.message_id} saved to thread {state['thread_id']}")
        return {"message": message}


def build_user_prompt(
    question: str,
    context_blocks: List[str],
    history: List[Dict[str, Any]],
    references: List[ReferenceAnswer],
) -> str:
    reference_text = "\n\n".join(f"Q: {r.question}\nA: {r.answer}" for r in references)
    history_text = "\n".join(
        f"{'User' if m['is_user_message'] else 'Assistant'}: {m['text']}" for m in history
    )
    return RAG_ANSWER_USER_PROMPT_TEMPLATE.format(
        reference_answers=reference_text or NO_SECTION_CONTENT,
        context="\n\n".join(context_blocks) or NO_SECTION_CONTENT,
        conversation_history=history_text or NO_SECTION_CONTENT,
        question=question,
    )
