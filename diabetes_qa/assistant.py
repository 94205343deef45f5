"""Assistant service shared by the HTTP API and the CLI."""
import logging
from typing import Optional

from diabetes_qa import config
from diabetes_qa.exceptions import ValidationError
from diabetes_qa.ingest import KnowledgeBase
from diabetes_qa.models import IngestionResult, UploadedImage
from diabetes_qa.providers import Generator, load_chat_model, load_embeddings
from diabetes_qa.query import answer_question
from diabetes_qa.report import analyze_report

logger = logging.getLogger(__name__)


class Assistant:
    """
    One instance per process, created at startup and injected into handlers.

    Text questions go through retrieval-augmented answering; requests that
    carry an upload go through the report workflow instead.
    """

    def __init__(
        self,
        knowledge_base: KnowledgeBase,
        generator: Generator,
        top_k: int = config.TOP_K,
        report_top_k: int = config.REPORT_TOP_K,
    ):
        self.knowledge_base = knowledge_base
        self.generator = generator
        self.top_k = top_k
        self.report_top_k = report_top_k

    @classmethod
    def from_config(cls) -> "Assistant":
        """Build the assistant with OpenAI providers. Raises ConfigError without a key."""
        config.require_api_key()
        knowledge_base = KnowledgeBase(embeddings=load_embeddings())
        return cls(knowledge_base, Generator(load_chat_model()))

    async def load_document(self, force_rebuild: bool = False) -> IngestionResult:
        return await self.knowledge_base.load(force_rebuild=force_rebuild)

    async def chat(self, message: Optional[str]) -> str:
        """Answer a text-only question."""
        self.knowledge_base.require_ready()
        if not message or not message.strip():
            raise ValidationError("Please provide a message.", field="message")
        return await answer_question(self.knowledge_base, self.generator, message, k=self.top_k)

    async def analyze(self, message: Optional[str] = None, image: Optional[UploadedImage] = None) -> str:
        """
        Handle a chat-or-report request.

        Args:
            message: Optional free-text question
            image: Optional uploaded report

        Returns:
            Analysis, refusal, or chat answer

        Raises:
            ValidationError: If neither a message nor an upload is present
        """
        # Blank text counts as absent; otherwise the message is passed on verbatim
        question = message if message and message.strip() else ""

        if image is not None:
            logger.info("Analyzing blood report upload (%s)", image.mime_type)
            return await analyze_report(
                self.knowledge_base,
                self.generator,
                image,
                question=question,
                k=self.report_top_k,
            )

        if question:
            return await self.chat(question)

        raise ValidationError(
            "Please provide either a message or upload a blood report.",
            details={"fields": ["message", "image"]},
        )
