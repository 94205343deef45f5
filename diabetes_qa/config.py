"""Configuration management for the diabetes assistant."""
import os
from pathlib import Path
from dotenv import load_dotenv

from diabetes_qa.exceptions import ConfigError

# Load environment variables
load_dotenv()

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = PROJECT_ROOT / "data"

# The single source document and its persisted index.
# The index directory is not created here: its existence means "reuse".
PDF_PATH = Path(os.getenv("PDF_PATH", str(DATA_DIR / "diabetes.pdf")))
VECTOR_STORE_DIR = Path(os.getenv("VECTOR_STORE_DIR", str(DATA_DIR / "faiss_vector_store")))

# OpenAI Configuration
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")

# One vision-capable model serves chat, validation and report analysis
MODEL_NAME = os.getenv("MODEL_NAME", "gpt-4o")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")

# Retrieval Configuration
TOP_K = int(os.getenv("TOP_K", "4"))
REPORT_TOP_K = int(os.getenv("REPORT_TOP_K", "4"))
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "1000"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "200"))

# EUCLIDEAN_DISTANCE or MAX_INNER_PRODUCT
DISTANCE_STRATEGY = os.getenv("DISTANCE_STRATEGY", "EUCLIDEAN_DISTANCE").upper()

# LLM Configuration
TEMPERATURE = float(os.getenv("TEMPERATURE", "0.2"))
PROVIDER_TIMEOUT = float(os.getenv("PROVIDER_TIMEOUT", "60"))

# Passages per embedding request; a build gets PROVIDER_TIMEOUT per batch
EMBEDDING_BATCH_SIZE = int(os.getenv("EMBEDDING_BATCH_SIZE", "1000"))

# Uploads
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
ALLOWED_UPLOAD_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "image/jpg",
    "image/gif",
    "application/pdf",
})

# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def require_api_key() -> str:
    """
    Return the provider credential or refuse to continue.

    Raises:
        ConfigError: If OPENAI_API_KEY is not set
    """
    if not OPENAI_API_KEY:
        raise ConfigError(
            "OPENAI_API_KEY is not set in environment variables. "
            "Create a .env file in the project root with:\n"
            "OPENAI_API_KEY=your_api_key_here",
            details={"variable": "OPENAI_API_KEY"},
        )
    return OPENAI_API_KEY
