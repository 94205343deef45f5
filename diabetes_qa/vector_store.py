"""FAISS vector index: build, persist, restore and search."""
import asyncio
import logging
import math
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional

from langchain_community.vectorstores import FAISS
from langchain_community.vectorstores.utils import DistanceStrategy
from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings

from diabetes_qa import config
from diabetes_qa.exceptions import ConfigError, EmbeddingError, PersistenceError
from diabetes_qa.models import PassageMetadata, RetrievedPassage

logger = logging.getLogger(__name__)

INDEX_FILES = ("index.faiss", "index.pkl")


def get_distance_strategy(name: Optional[str] = None) -> DistanceStrategy:
    """
    Resolve the configured similarity metric.

    Raises:
        ConfigError: If the name is not EUCLIDEAN_DISTANCE or MAX_INNER_PRODUCT
    """
    name = name or config.DISTANCE_STRATEGY
    try:
        strategy = DistanceStrategy[name]
    except KeyError:
        strategy = None
    if strategy not in (DistanceStrategy.EUCLIDEAN_DISTANCE, DistanceStrategy.MAX_INNER_PRODUCT):
        raise ConfigError(
            f"DISTANCE_STRATEGY {name!r} is not supported. "
            "Set DISTANCE_STRATEGY in your .env file to one of:\n"
            "EUCLIDEAN_DISTANCE, MAX_INNER_PRODUCT",
            details={"variable": "DISTANCE_STRATEGY", "value": name},
        )
    return strategy


def build_timeout(passage_count: int, timeout: Optional[float], batch_size: Optional[int] = None) -> Optional[float]:
    """Time allowed for embedding ``passage_count`` passages at ``timeout`` seconds per batch."""
    if timeout is None:
        return None
    batch_size = batch_size or config.EMBEDDING_BATCH_SIZE
    return timeout * max(1, math.ceil(passage_count / batch_size))


async def build_vector_store(
    chunks: List[Document],
    embeddings: Embeddings,
    distance_strategy: Optional[DistanceStrategy] = None,
    timeout: Optional[float] = config.PROVIDER_TIMEOUT,
) -> FAISS:
    """
    Embed every passage and build an in-memory FAISS index.

    A provider failure aborts the whole build; no passage is dropped.

    Args:
        chunks: Passages to index
        embeddings: Embedding provider
        distance_strategy: Similarity metric (default from config)
        timeout: Seconds allowed per embedding batch

    Returns:
        Fully populated FAISS vector store

    Raises:
        EmbeddingError: If embedding fails or times out
    """
    if not chunks:
        raise ValueError("Cannot build a vector index from zero passages")

    distance_strategy = distance_strategy or get_distance_strategy()
    ids = [chunk.metadata["chunk_id"] for chunk in chunks]

    budget = build_timeout(len(chunks), timeout)

    logger.info("Creating embeddings for %d passages...", len(chunks))
    try:
        vector_store = await asyncio.wait_for(
            FAISS.afrom_documents(
                chunks,
                embeddings,
                ids=ids,
                distance_strategy=distance_strategy,
            ),
            timeout=budget,
        )
    except asyncio.TimeoutError as e:
        raise EmbeddingError(
            "Embedding provider timed out",
            details={"passages": len(chunks), "timeout": budget},
        ) from e
    except Exception as e:
        raise EmbeddingError(
            "Embedding provider call failed",
            details={"passages": len(chunks), "error": str(e)},
        ) from e

    return vector_store


def save_vector_store(vector_store: FAISS, location: Path) -> None:
    """
    Persist the index to ``location`` atomically.

    The index is written to a sibling temporary directory and renamed into
    place, so ``location`` either holds a complete artifact or is untouched.

    Raises:
        PersistenceError: On any I/O failure
    """
    location = Path(location)
    staging = None
    backup = None
    try:
        location.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{location.name}-", dir=location.parent))
        vector_store.save_local(str(staging))

        if location.exists():
            backup = location.with_name(f".{location.name}-old-{staging.name}")
            location.rename(backup)
        staging.rename(location)
        staging = None
    except OSError as e:
        if backup is not None and not location.exists():
            backup.rename(location)
            backup = None
        raise PersistenceError(
            "Failed to save vector store",
            operation="save",
            location=str(location),
            details={"error": str(e)},
        ) from e
    finally:
        if staging is not None:
            shutil.rmtree(staging, ignore_errors=True)
        if backup is not None:
            shutil.rmtree(backup, ignore_errors=True)

    logger.info("Vector store saved to %s", location)


def vector_store_exists(location: Path) -> bool:
    """The artifact directory's existence is the reuse signal."""
    return Path(location).is_dir()


def load_vector_store(
    location: Path,
    embeddings: Embeddings,
    distance_strategy: Optional[DistanceStrategy] = None,
) -> FAISS:
    """
    Load a persisted FAISS index from disk.

    Stored vectors are not re-embedded; ``embeddings`` only serves later queries.
    The metric is not part of the artifact and must match the one it was built with.

    Raises:
        PersistenceError: If the artifact is missing or malformed
    """
    location = Path(location)
    distance_strategy = distance_strategy or get_distance_strategy()
    if not vector_store_exists(location):
        raise PersistenceError(
            f"Vector store not found at {location}",
            operation="load",
            location=str(location),
        )

    missing = [name for name in INDEX_FILES if not (location / name).is_file()]
    if missing:
        raise PersistenceError(
            "Vector store artifact is incomplete",
            operation="load",
            location=str(location),
            details={"missing": missing},
        )

    try:
        vector_store = FAISS.load_local(
            str(location),
            embeddings,
            allow_dangerous_deserialization=True,
            distance_strategy=distance_strategy,
        )
    except Exception as e:
        raise PersistenceError(
            "Vector store artifact is malformed",
            operation="load",
            location=str(location),
            details={"error": str(e)},
        ) from e

    return vector_store


def _similarity(raw_score: float, distance_strategy: DistanceStrategy) -> float:
    """Map a raw FAISS score to a similarity where higher is better."""
    if distance_strategy == DistanceStrategy.MAX_INNER_PRODUCT:
        return float(raw_score)
    return 1.0 / (1.0 + float(raw_score))


async def search_vector_store(
    vector_store: FAISS,
    query: str,
    k: int,
    timeout: Optional[float] = config.PROVIDER_TIMEOUT,
) -> List[RetrievedPassage]:
    """
    Retrieve the top-k passages for a query.

    Results are ordered by non-increasing similarity; equal scores keep
    insertion order.

    Raises:
        EmbeddingError: If embedding the query fails or times out
    """
    if k < 1:
        raise ValueError(f"k must be >= 1, got {k}")

    try:
        results = await asyncio.wait_for(
            vector_store.asimilarity_search_with_score(query, k=k),
            timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        raise EmbeddingError("Embedding provider timed out", details={"timeout": timeout}) from e
    except Exception as e:
        raise EmbeddingError(
            "Failed to embed query",
            details={"error": str(e)},
        ) from e

    passages = [
        RetrievedPassage(
            content=doc.page_content,
            metadata=PassageMetadata(**doc.metadata),
            score=_similarity(score, vector_store.distance_strategy),
        )
        for doc, score in results
    ]
    passages.sort(key=lambda p: (-p.score, p.metadata.sequence))
    return passages
