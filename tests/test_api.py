"""
Test suite for the HTTP endpoints.

Uses FastAPI TestClient over an app wired to fake providers; FAISS and the
PDF fixture are real.
"""

from pathlib import Path

from fastapi.testclient import TestClient

from diabetes_qa import config
from diabetes_qa.api import ANALYZE_ERROR_MESSAGE, CHAT_ERROR_MESSAGE, LOAD_ERROR_MESSAGE, create_app
from diabetes_qa.assistant import Assistant
from diabetes_qa.exceptions import GenerationError
from diabetes_qa.ingest import CREATED_MESSAGE, REUSED_MESSAGE, KnowledgeBase
from diabetes_qa.prompts import REJECTION_MESSAGE

from conftest import CountingEmbeddings, RecordingGenerator

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-report"


class TestLoadPdf:
    """Test POST /load-pdf."""

    def test_first_load_builds_index(self, client: TestClient) -> None:
        response = client.post("/load-pdf")

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": CREATED_MESSAGE}

    def test_second_load_reuses_index(self, client: TestClient, embeddings: CountingEmbeddings) -> None:
        client.post("/load-pdf")
        calls = embeddings.total_calls

        response = client.post("/load-pdf")

        assert response.json() == {"success": True, "message": REUSED_MESSAGE}
        assert embeddings.total_calls == calls

    def test_restart_reuses_artifact(
        self, client: TestClient, sample_pdf: Path, index_dir: Path, generator: RecordingGenerator
    ) -> None:
        """Should load from disk after a restart without embedding."""
        client.post("/load-pdf")
        fresh = CountingEmbeddings(size=32)
        restarted = TestClient(create_app(Assistant(KnowledgeBase(fresh, sample_pdf, index_dir), generator)))

        response = restarted.post("/load-pdf")

        assert response.json() == {"success": True, "message": REUSED_MESSAGE}
        assert fresh.total_calls == 0

    def test_missing_pdf_returns_500(
        self, embeddings: CountingEmbeddings, tmp_path: Path, generator: RecordingGenerator
    ) -> None:
        knowledge_base = KnowledgeBase(embeddings, tmp_path / "missing.pdf", tmp_path / "index")
        client = TestClient(create_app(Assistant(knowledge_base, generator)))

        response = client.post("/load-pdf")

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": LOAD_ERROR_MESSAGE}

    def test_failed_load_can_be_retried(self, client: TestClient, sample_pdf: Path, tmp_path: Path) -> None:
        """Should succeed on a later call once the PDF is available."""
        moved = sample_pdf.rename(tmp_path / "elsewhere.pdf")
        assert client.post("/load-pdf").status_code == 500

        moved.rename(sample_pdf)
        response = client.post("/load-pdf")

        assert response.json()["success"] is True


class TestChat:
    """Test POST /chat."""

    def test_chat_before_load_returns_400(self, client: TestClient, generator: RecordingGenerator) -> None:
        response = client.post("/chat", json={"message": "What is diabetes?"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "PDF not loaded yet."}
        assert generator.calls == []

    def test_chat_returns_model_answer(self, client: TestClient, generator: RecordingGenerator) -> None:
        client.post("/load-pdf")
        generator.responses = ["Diabetes is a chronic condition."]

        response = client.post("/chat", json={"message": "What is diabetes?"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Diabetes is a chronic condition."}
        assert "Question: What is diabetes?" in generator.prompts[0]

    def test_provider_failure_returns_500(self, client: TestClient, generator: RecordingGenerator) -> None:
        client.post("/load-pdf")
        generator.error = GenerationError("Generation provider call failed")

        response = client.post("/chat", json={"message": "What is diabetes?"})

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": CHAT_ERROR_MESSAGE}

    def test_missing_message_returns_400(self, client: TestClient) -> None:
        client.post("/load-pdf")

        response = client.post("/chat", json={})

        assert response.status_code == 400
        assert response.json()["success"] is False


class TestAnalyze:
    """Test POST /analyze."""

    def test_no_fields_returns_400(self, client: TestClient, generator: RecordingGenerator) -> None:
        client.post("/load-pdf")

        response = client.post("/analyze")

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "Please provide either a message or upload a blood report.",
        }
        assert generator.calls == []

    def test_rejected_image_returns_refusal_after_one_call(
        self, client: TestClient, generator: RecordingGenerator
    ) -> None:
        client.post("/load-pdf")
        generator.responses = ["NO glucose detected"]

        response = client.post("/analyze", files={"image": ("cat.png", PNG_BYTES, "image/png")})

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": REJECTION_MESSAGE}
        assert len(generator.calls) == 1

    def test_accepted_image_is_analyzed(self, client: TestClient, generator: RecordingGenerator) -> None:
        client.post("/load-pdf")
        generator.responses = ["Yes, this is a lab report", "Your fasting glucose is 92 mg/dL (normal)."]

        response = client.post(
            "/analyze",
            data={"message": "Am I diabetic?"},
            files={"image": ("labs.png", PNG_BYTES, "image/png")},
        )

        assert response.json() == {"success": True, "message": "Your fasting glucose is 92 mg/dL (normal)."}
        assert len(generator.calls) == 2
        analysis_prompt, upload = generator.calls[1]
        context = analysis_prompt.split("**Context from diabetes medical document:**\n")[1].split("\n\n**Your task:**")[0]
        assert context.strip()
        assert "**Your question:** Am I diabetic?" in analysis_prompt
        assert upload.data == PNG_BYTES
        assert upload.mime_type == "image/png"

    def test_text_plain_rejected_before_provider_call(
        self, client: TestClient, generator: RecordingGenerator
    ) -> None:
        client.post("/load-pdf")

        response = client.post("/analyze", files={"image": ("notes.txt", b"hello", "text/plain")})

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert generator.calls == []

    def test_oversized_upload_rejected(self, client: TestClient, generator: RecordingGenerator, monkeypatch) -> None:
        client.post("/load-pdf")
        monkeypatch.setattr(config, "MAX_UPLOAD_BYTES", 8)

        response = client.post("/analyze", files={"image": ("big.png", PNG_BYTES, "image/png")})

        assert response.status_code == 400
        assert generator.calls == []

    def test_message_only_falls_back_to_chat(self, client: TestClient, generator: RecordingGenerator) -> None:
        client.post("/load-pdf")
        generator.responses = ["Hi! Ask me anything about diabetes."]

        response = client.post("/analyze", data={"message": "hello"})

        assert response.json() == {"success": True, "message": "Hi! Ask me anything about diabetes."}
        assert generator.calls[0][1] is None

    def test_message_only_before_load_returns_400(self, client: TestClient) -> None:
        response = client.post("/analyze", data={"message": "hello"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "PDF not loaded yet."}

    def test_provider_failure_returns_500(self, client: TestClient, generator: RecordingGenerator) -> None:
        client.post("/load-pdf")
        generator.error = GenerationError("Generation provider timed out")

        response = client.post("/analyze", files={"image": ("labs.png", PNG_BYTES, "image/png")})

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": ANALYZE_ERROR_MESSAGE}


class TestHealth:
    """Test GET /health."""

    def test_reports_state_before_and_after_load(self, client: TestClient) -> None:
        assert client.get("/health").json() == {"status": "not_loaded", "ready": False}

        client.post("/load-pdf")

        assert client.get("/health").json() == {"status": "ready", "ready": True}
