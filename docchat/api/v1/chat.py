"""
Chat endpoint producing AI replies grounded in the conversation's documents.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from docchat.core.agents.chat.rag_chat import RAGChatAgent
from docchat.core.config import settings
from docchat.core.dependencies import Services, get_db, get_services
from docchat.core.exceptions import NotFoundError, ValidationError
from docchat.schemas.message import ChatRequest
from docchat.schemas.message import Message as MessageSchema

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/respond", response_model=MessageSchema)
def respond(
    body: ChatRequest,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
) -> Any:
    """Generate, persist and return the AI reply to a user message."""
    agent = RAGChatAgent(
        db=db,
        embedder=services.embedder,
        vector_index=services.vector_index,
        llm=services.llm,
        reference_lookup=services.reference_lookup,
    )
    try:
        return agent.respond(body.conversation_id, body.user_message, body.share_context_id)
    except (NotFoundError, ValidationError):
        raise
    except Exception as e:
        logger.error(f"Error generating response for conversation {body.conversation_id}: {e}")
        content = {"detail": "Failed to get response"}
        if settings.DEBUG:
            content["message"] = str(e)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)
