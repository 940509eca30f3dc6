import logging
import os
from typing import List, Optional

import openai
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage
from langchain_openai import ChatOpenAI
from pydantic import SecretStr

from docchat.core.config import settings
from docchat.core.exceptions import GenerationError

logger = logging.getLogger(__name__)


class LLMFactory:
    """Factory for creating configured LLM instances with tracing."""

    @staticmethod
    def create_llm(
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        tracing_project: Optional[str] = None,
        api_key: Optional[str] = None
    ) -> ChatOpenAI:
        """
        Create a configured ChatOpenAI instance.

        Args:
            model: The model name to use.
            temperature: The temperature for generation.
            tracing_project: The LangSmith project name for tracing.
            api_key: OpenAI API key (optional, defaults to settings).
        """
        # Set env vars for tracing if provided
        if settings.LANGSMITH_TRACING:
            os.environ["LANGCHAIN_TRACING_V2"] = "true"
            os.environ["LANGCHAIN_ENDPOINT"] = settings.LANGSMITH_ENDPOINT
            os.environ["LANGCHAIN_API_KEY"] = settings.LANGSMITH_API_KEY
            os.environ["LANGCHAIN_PROJECT"] = tracing_project or settings.LANGSMITH_PROJECT

        return ChatOpenAI(
            model=model or settings.CHAT_MODEL,
            api_key=SecretStr(api_key or settings.OPENAI_API_KEY),
            temperature=settings.CHAT_TEMPERATURE if temperature is None else temperature,
            max_retries=0,  # retries belong to the caller
        )


def complete(llm: BaseChatModel, messages: List[BaseMessage]) -> str:
    """
    Run one chat completion and return its text.

    Raises:
        GenerationError: If the call fails or the model returns no text
    """
    try:
        result = llm.invoke(messages)
    except openai.OpenAIError as e:
        logger.error(f"Generative model call failed: {e}")
        raise GenerationError(f"Model call failed: {e}", cause=e)
    except Exception as e:
        logger.error(f"Generative model call failed unexpectedly: {e}")
        raise GenerationError(f"Model call failed: {e}", cause=e)

    content = result.content if isinstance(result.content, str) else "".join(
        part.get("text", "") if isinstance(part, dict) else str(part) for part in result.content
    )
    if not content.strip():
        raise GenerationError("Model returned an empty response")
    return content.strip()
