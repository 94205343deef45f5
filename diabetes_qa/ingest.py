"""Document ingestion pipeline."""
import asyncio
import logging
import uuid
from pathlib import Path
from typing import List, Optional

import fitz

from langchain_community.vectorstores import FAISS
from langchain_community.vectorstores.utils import DistanceStrategy
from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings
from langchain_text_splitters import RecursiveCharacterTextSplitter

from diabetes_qa import config
from diabetes_qa.exceptions import ExtractionError, NotReadyError
from diabetes_qa.models import IngestionResult, IngestionState, RetrievedPassage
from diabetes_qa.vector_store import (
    build_vector_store,
    get_distance_strategy,
    load_vector_store,
    save_vector_store,
    search_vector_store,
    vector_store_exists,
)

logger = logging.getLogger(__name__)

REUSED_MESSAGE = "Loaded existing vector store from disk."
CREATED_MESSAGE = "PDF loaded and vector store created on disk."


def extract_text(pdf_path: Path) -> str:
    """
    Extract plain text from every page of a PDF.

    Args:
        pdf_path: Path to PDF file

    Returns:
        Page texts joined by blank lines

    Raises:
        ExtractionError: If the file is missing or unreadable
    """
    pdf_path = Path(pdf_path)
    if not pdf_path.is_file():
        raise ExtractionError(f"PDF not found: {pdf_path}", path=str(pdf_path))

    try:
        with fitz.open(str(pdf_path)) as doc:
            pages = [page.get_text() for page in doc]
    except Exception as e:
        raise ExtractionError(
            f"Could not read PDF {pdf_path.name}",
            path=str(pdf_path),
            details={"error": str(e)},
        ) from e

    logger.info("Loaded PDF: %s (%d pages)", pdf_path.name, len(pages))
    return "\n\n".join(pages)


def split_text(
    text: str,
    chunk_size: int = config.CHUNK_SIZE,
    chunk_overlap: int = config.CHUNK_OVERLAP,
    source: str = "",
) -> List[Document]:
    """
    Split document text into passages of at most ``chunk_size`` characters.

    Splitting prefers paragraph, then line, then word boundaries and only
    cuts inside a word as a last resort. Empty text gives no passages.

    Args:
        text: Raw document text
        chunk_size: Maximum passage length in characters
        chunk_overlap: Characters shared between neighbouring passages
        source: Document name stored in passage metadata

    Returns:
        Passages in document order
    """
    text_splitter = RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=min(chunk_overlap, chunk_size - 1),
        length_function=len,
        separators=["\n\n", "\n", " ", ""]
    )

    return [
        Document(
            page_content=part,
            metadata={"source": source, "sequence": i, "chunk_id": str(uuid.uuid4())},
        )
        for i, part in enumerate(text_splitter.split_text(text))
    ]


class KnowledgeBase:
    """
    Process-wide handle on the single document's vector index.

    Only ``load`` replaces the index, one caller at a time. Readers take the
    current reference once per request and never block: before the first
    successful load they get NotReadyError. A rebuild swaps the reference
    only after the new index is built and persisted.
    """

    def __init__(
        self,
        embeddings: Embeddings,
        pdf_path: Path = config.PDF_PATH,
        index_dir: Path = config.VECTOR_STORE_DIR,
        chunk_size: int = config.CHUNK_SIZE,
        chunk_overlap: int = config.CHUNK_OVERLAP,
        distance_strategy: Optional[DistanceStrategy] = None,
        timeout: float = config.PROVIDER_TIMEOUT,
    ):
        self.embeddings = embeddings
        self.pdf_path = Path(pdf_path)
        self.index_dir = Path(index_dir)
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.distance_strategy = distance_strategy or get_distance_strategy()
        self.timeout = timeout

        self.state = IngestionState.NOT_LOADED
        self._vector_store: Optional[FAISS] = None
        self._write_lock = asyncio.Lock()

    @property
    def ready(self) -> bool:
        return self._vector_store is not None

    def require_ready(self) -> None:
        if self._vector_store is None:
            raise NotReadyError()

    @property
    def vector_store(self) -> FAISS:
        """The current index. Raises NotReadyError before the first load."""
        vector_store = self._vector_store
        if vector_store is None:
            raise NotReadyError()
        return vector_store

    @property
    def passage_count(self) -> int:
        if self._vector_store is None:
            return 0
        return len(self._vector_store.index_to_docstore_id)

    def _set_state(self, state: IngestionState) -> None:
        logger.info("Ingestion state: %s -> %s", self.state.value, state.value)
        self.state = state

    async def load(self, force_rebuild: bool = False) -> IngestionResult:
        """
        Make the index ready, reusing the on-disk artifact when it exists.

        Calling this again once ready, or with an artifact on disk, never
        re-embeds the document unless ``force_rebuild`` is set.

        Args:
            force_rebuild: Re-read, re-embed and replace the artifact

        Returns:
            IngestionResult describing which path was taken
        """
        async with self._write_lock:
            if self._vector_store is not None and not force_rebuild:
                return IngestionResult(reused=True, passage_count=self.passage_count, message=REUSED_MESSAGE)

            try:
                if not force_rebuild and vector_store_exists(self.index_dir):
                    self._set_state(IngestionState.LOADING)
                    logger.info("Loading existing FAISS vector store from %s", self.index_dir)
                    vector_store = await asyncio.to_thread(
                        load_vector_store, self.index_dir, self.embeddings, self.distance_strategy
                    )
                    reused = True
                else:
                    vector_store = await self._build()
                    reused = False
            except Exception:
                # A failed rebuild keeps serving the previous complete index
                self._set_state(IngestionState.READY if self.ready else IngestionState.FAILED)
                raise

            self._vector_store = vector_store
            self._set_state(IngestionState.READY)

        message = REUSED_MESSAGE if reused else CREATED_MESSAGE
        logger.info("%s (%d passages)", message, self.passage_count)
        return IngestionResult(reused=reused, passage_count=self.passage_count, message=message)

    async def _build(self) -> FAISS:
        """Extract, chunk, embed and persist the document."""
        self._set_state(IngestionState.EXTRACTING)
        text = await asyncio.to_thread(extract_text, self.pdf_path)

        self._set_state(IngestionState.CHUNKING)
        chunks = split_text(text, self.chunk_size, self.chunk_overlap, source=self.pdf_path.name)
        if not chunks:
            raise ExtractionError("PDF contains no extractable text", path=str(self.pdf_path))
        logger.info("Created %d passages from %s", len(chunks), self.pdf_path.name)

        self._set_state(IngestionState.EMBEDDING)
        vector_store = await build_vector_store(chunks, self.embeddings, self.distance_strategy, self.timeout)

        self._set_state(IngestionState.PERSISTING)
        await asyncio.to_thread(save_vector_store, vector_store, self.index_dir)
        return vector_store

    async def search(self, query: str, k: int) -> List[RetrievedPassage]:
        """Top-k passages for ``query`` from the current index."""
        return await search_vector_store(self.vector_store, query, k, timeout=self.timeout)
