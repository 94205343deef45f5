"""
FastAPI application.

Routes:
- POST /load-pdf - Load or build the document index
- POST /chat - Answer a text question from the document
- POST /analyze - Analyze an uploaded blood report, or answer a question
- GET /health - Index readiness

Every response uses the {success, message} envelope.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from diabetes_qa import config
from diabetes_qa.assistant import Assistant
from diabetes_qa.exceptions import AssistantError
from diabetes_qa.logger import configure_logging
from diabetes_qa.models import AssistantResponse, ChatRequest, HealthResponse, UploadedImage

logger = logging.getLogger(__name__)

LOAD_ERROR_MESSAGE = "Error loading PDF."
CHAT_ERROR_MESSAGE = "Error processing chat message."
ANALYZE_ERROR_MESSAGE = "An error occurred while processing your request. Please try again."

router = APIRouter()


def get_assistant(request: Request) -> Assistant:
    """Return the process-wide assistant created at startup."""
    return request.app.state.assistant


def error_response(error: Exception, fallback_message: str) -> JSONResponse:
    """
    Map an exception to the failure envelope.

    Caller faults keep their own message and status; anything else is
    logged and reported as a 500 with the route's fixed message.
    """
    if isinstance(error, AssistantError) and error.status_code < 500:
        logger.warning("Rejected request: %s", error)
        status_code, message = error.status_code, error.message
    else:
        logger.error("%s %s", fallback_message, error, exc_info=error)
        status_code, message = 500, fallback_message

    return JSONResponse(
        status_code=status_code,
        content=AssistantResponse(success=False, message=message).model_dump(),
    )


async def read_upload(image: Optional[UploadFile]) -> Optional[UploadedImage]:
    """
    Read an uploaded file into memory.

    Browsers send an empty, unnamed part when no file was chosen; that counts
    as no upload. At most one byte past the size limit is read.
    """
    if image is None:
        return None

    data = await image.read(config.MAX_UPLOAD_BYTES + 1)
    if not data and not image.filename:
        return None

    return UploadedImage(
        data=data,
        mime_type=image.content_type or "",
        filename=image.filename or None,
    )


@router.post("/load-pdf", response_model=AssistantResponse)
async def load_pdf(assistant: Assistant = Depends(get_assistant)):
    """Load the persisted index, or build it from the PDF on first run."""
    logger.info("Loading PDF...")
    try:
        result = await assistant.load_document()
    except Exception as e:
        logger.error("Error loading PDF: %s", e, exc_info=e)
        return JSONResponse(
            status_code=500,
            content=AssistantResponse(success=False, message=LOAD_ERROR_MESSAGE).model_dump(),
        )

    return AssistantResponse(success=True, message=result.message)


@router.post("/chat", response_model=AssistantResponse)
async def chat(request: ChatRequest, assistant: Assistant = Depends(get_assistant)):
    """Answer a text question grounded in the document."""
    try:
        answer = await assistant.chat(request.message)
    except Exception as e:
        return error_response(e, CHAT_ERROR_MESSAGE)

    return AssistantResponse(success=True, message=answer)


@router.post("/analyze", response_model=AssistantResponse)
async def analyze(
    message: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    assistant: Assistant = Depends(get_assistant),
):
    """Analyze a blood report upload, or fall back to text chat."""
    try:
        upload = await read_upload(image)
        reply = await assistant.analyze(message=message, image=upload)
    except Exception as e:
        return error_response(e, ANALYZE_ERROR_MESSAGE)

    return AssistantResponse(success=True, message=reply)


@router.get("/health", response_model=HealthResponse)
async def health(assistant: Assistant = Depends(get_assistant)) -> HealthResponse:
    knowledge_base = assistant.knowledge_base
    return HealthResponse(status=knowledge_base.state.value, ready=knowledge_base.ready)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies get the failure envelope with status 400."""
    logger.warning("Invalid request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=400,
        content=AssistantResponse(success=False, message="Invalid request.").model_dump(),
    )


def create_app(assistant: Optional[Assistant] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        assistant: Preconfigured service; built from config at startup when omitted

    Returns:
        FastAPI: Configured application instance
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "assistant", None) is None:
            configure_logging(config.LOG_LEVEL)
            # Raises ConfigError, aborting startup, when the API key is missing
            app.state.assistant = Assistant.from_config()
        logger.info("Diabetes Health Assistant ready")
        yield

    app = FastAPI(
        title="Diabetes Health Assistant",
        description="Document-grounded diabetes chat and blood report analysis",
        version="0.1.0",
        lifespan=lifespan,
    )
    if assistant is not None:
        app.state.assistant = assistant

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.include_router(router)

    return app


app = create_app()
