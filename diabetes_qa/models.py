"""Data models for the diabetes assistant."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class PassageMetadata(BaseModel):
    """Metadata stored with every indexed passage."""
    source: str
    sequence: int
    chunk_id: str


class RetrievedPassage(BaseModel):
    """A passage returned from the vector index with its similarity score."""
    content: str
    metadata: PassageMetadata
    score: float


class UploadedImage(BaseModel):
    """An uploaded report image (or PDF) held in memory for one request."""
    data: bytes
    mime_type: str
    filename: Optional[str] = None


class ValidationOutcome(BaseModel):
    """Result of the glucose-report gate."""
    accepted: bool
    raw_response: str


class IngestionState(str, Enum):
    """Lifecycle of the shared vector index."""
    NOT_LOADED = "not_loaded"
    LOADING = "loading"
    EXTRACTING = "extracting"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    PERSISTING = "persisting"
    READY = "ready"
    FAILED = "failed"


class IngestionResult(BaseModel):
    """Outcome of one ingestion run."""
    reused: bool
    passage_count: int
    message: str


class ChatRequest(BaseModel):
    """A text-only chat request."""
    message: str = Field(..., description="User question about diabetes")


class AssistantResponse(BaseModel):
    """Uniform response envelope for every endpoint."""
    success: bool
    message: str


class HealthResponse(BaseModel):
    """Readiness of the shared index."""
    status: str
    ready: bool
