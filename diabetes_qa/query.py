"""Query pipeline for answering questions."""
import logging
from typing import List

from diabetes_qa import config
from diabetes_qa.exceptions import GenerationError
from diabetes_qa.ingest import KnowledgeBase
from diabetes_qa.models import RetrievedPassage
from diabetes_qa.prompts import format_context, get_chat_prompt
from diabetes_qa.providers import Generator

logger = logging.getLogger(__name__)


async def retrieve_context(knowledge_base: KnowledgeBase, question: str, k: int = None) -> List[RetrievedPassage]:
    """
    Retrieve relevant passages for a question.

    Args:
        knowledge_base: Ready knowledge base
        question: User's question
        k: Number of passages to retrieve (default from config)

    Returns:
        Passages ranked by similarity
    """
    if k is None:
        k = config.TOP_K

    return await knowledge_base.search(question, k)


async def answer_question(
    knowledge_base: KnowledgeBase,
    generator: Generator,
    question: str,
    k: int = None,
) -> str:
    """
    Answer a question using the RAG pipeline.

    Args:
        knowledge_base: Ready knowledge base
        generator: Generation provider
        question: User's question, passed to the prompt verbatim
        k: Number of passages to retrieve (default from config)

    Returns:
        The model's answer, unmodified

    Raises:
        NotReadyError: If the index has not been loaded
        EmbeddingError: If the question cannot be embedded
        GenerationError: If generation fails or returns nothing
    """
    passages = await retrieve_context(knowledge_base, question, k)
    logger.info("Retrieved %d passages for chat question", len(passages))

    prompt = get_chat_prompt(format_context(passages), question)
    answer = await generator.generate(prompt)

    if not answer.strip():
        raise GenerationError("Generation provider returned an empty answer")
    return answer
