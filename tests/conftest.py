"""
Shared test fixtures.

Providers are faked: embeddings are deterministic hashes of the text (with
call counters), and generation returns scripted responses while recording
every prompt. FAISS and PyMuPDF run for real against tmp_path.
"""

import asyncio
from pathlib import Path
from typing import List, Optional

import fitz
import pytest
from fastapi.testclient import TestClient
from langchain_core.embeddings import DeterministicFakeEmbedding

from diabetes_qa.api import create_app
from diabetes_qa.assistant import Assistant
from diabetes_qa.ingest import KnowledgeBase
from diabetes_qa.models import UploadedImage

EMBEDDING_SIZE = 32

SAMPLE_PAGES = [
    "Diabetes mellitus is a chronic condition in which blood glucose stays too high.\n"
    "Type 1 diabetes is caused by loss of insulin-producing cells.\n"
    "Type 2 diabetes is linked to insulin resistance and lifestyle factors.",
    "A fasting blood glucose below 100 mg/dL is normal.\n"
    "Fasting glucose from 100 to 125 mg/dL indicates prediabetes.\n"
    "Fasting glucose of 126 mg/dL or higher on two tests indicates diabetes.",
    "An HbA1c below 5.7 percent is normal, 5.7 to 6.4 percent is prediabetes,\n"
    "and 6.5 percent or higher indicates diabetes.\n"
    "A random glucose of 200 mg/dL or more with symptoms also suggests diabetes.",
    "Common symptoms include thirst, frequent urination, fatigue and blurred vision.\n"
    "Long-term complications affect the eyes, kidneys, nerves and heart.\n"
    "Regular exercise, diet and medication help keep glucose in range.",
]


class CountingEmbeddings(DeterministicFakeEmbedding):
    """Deterministic embeddings that count provider calls."""

    document_calls: int = 0
    query_calls: int = 0

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        self.document_calls += 1
        return super().embed_documents(texts)

    def embed_query(self, text: str) -> List[float]:
        self.query_calls += 1
        return super().embed_query(text)

    @property
    def total_calls(self) -> int:
        return self.document_calls + self.query_calls


class FailingEmbeddings(DeterministicFakeEmbedding):
    """Embeddings whose provider is down."""

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        raise RuntimeError("embedding service unavailable")

    def embed_query(self, text: str) -> List[float]:
        raise RuntimeError("embedding service unavailable")


class SlowEmbeddings(DeterministicFakeEmbedding):
    """Embeddings whose provider never answers within the caller's timeout."""

    delay: float = 5.0

    async def aembed_documents(self, texts: List[str]) -> List[List[float]]:
        await asyncio.sleep(self.delay)
        return self.embed_documents(texts)

    async def aembed_query(self, text: str) -> List[float]:
        await asyncio.sleep(self.delay)
        return self.embed_query(text)


class RecordingGenerator:
    """Returns scripted responses in order and records (prompt, image) per call."""

    def __init__(self, responses: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.responses = list(responses or [])
        self.error = error
        self.calls: List[tuple] = []

    async def generate(self, prompt: str, image: Optional[UploadedImage] = None) -> str:
        self.calls.append((prompt, image))
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)

    @property
    def prompts(self) -> List[str]:
        return [prompt for prompt, _ in self.calls]


def write_pdf(path: Path, pages: List[str]) -> Path:
    """Write a small text PDF with one page per entry."""
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text, fontsize=10)
    doc.save(str(path))
    doc.close()
    return path


@pytest.fixture
def embeddings() -> CountingEmbeddings:
    return CountingEmbeddings(size=EMBEDDING_SIZE)


@pytest.fixture
def failing_embeddings() -> FailingEmbeddings:
    return FailingEmbeddings(size=EMBEDDING_SIZE)


@pytest.fixture
def sample_pdf(tmp_path: Path) -> Path:
    return write_pdf(tmp_path / "diabetes.pdf", SAMPLE_PAGES)


@pytest.fixture
def index_dir(tmp_path: Path) -> Path:
    return tmp_path / "faiss_vector_store"


@pytest.fixture
def knowledge_base(embeddings: CountingEmbeddings, sample_pdf: Path, index_dir: Path) -> KnowledgeBase:
    return KnowledgeBase(
        embeddings=embeddings,
        pdf_path=sample_pdf,
        index_dir=index_dir,
        chunk_size=200,
        chunk_overlap=0,
    )


@pytest.fixture
def generator() -> RecordingGenerator:
    return RecordingGenerator()


@pytest.fixture
def assistant(knowledge_base: KnowledgeBase, generator: RecordingGenerator) -> Assistant:
    return Assistant(knowledge_base, generator, top_k=4, report_top_k=4)


@pytest.fixture
def client(assistant: Assistant) -> TestClient:
    """TestClient over an app wired to the fake providers."""
    return TestClient(create_app(assistant))


@pytest.fixture
def png_upload() -> UploadedImage:
    return UploadedImage(data=b"\x89PNG\r\n\x1a\nfake-report", mime_type="image/png", filename="report.png")
