"""
Blood report workflow.

An upload first goes through a cheap YES/NO gate asking whether it is a
blood test report with glucose values. Only accepted uploads reach the
analysis call, which is grounded in passages retrieved with a fixed
diagnostic-range query.
"""
import logging

from diabetes_qa import config
from diabetes_qa.exceptions import GenerationError, ValidationError
from diabetes_qa.ingest import KnowledgeBase
from diabetes_qa.models import UploadedImage, ValidationOutcome
from diabetes_qa.prompts import (
    REJECTION_MESSAGE,
    REPORT_CONTEXT_QUERY,
    VALIDATION_PROMPT,
    format_context,
    get_analysis_prompt,
)
from diabetes_qa.providers import Generator

logger = logging.getLogger(__name__)


def validate_upload(image: UploadedImage) -> None:
    """
    Check media type and size before any provider call.

    Raises:
        ValidationError: If the upload is empty, too large or of a disallowed type
    """
    if image.mime_type not in config.ALLOWED_UPLOAD_TYPES:
        raise ValidationError(
            "Invalid file type. Only JPG, PNG, GIF, and PDF are allowed.",
            field="image",
            details={"mime_type": image.mime_type},
        )
    if not image.data:
        raise ValidationError("Uploaded file is empty.", field="image")
    if len(image.data) > config.MAX_UPLOAD_BYTES:
        raise ValidationError(
            "File too large. Maximum size is 10MB.",
            field="image",
            details={"size": len(image.data), "limit": config.MAX_UPLOAD_BYTES},
        )


def is_glucose_report(raw_response: str) -> bool:
    """The gate accepts any response containing YES, case-insensitively."""
    return "YES" in raw_response.strip().upper()


async def classify_report(generator: Generator, image: UploadedImage) -> ValidationOutcome:
    """
    Ask the model whether the upload is a blood glucose report.

    Args:
        generator: Generation provider
        image: Validated upload

    Returns:
        ValidationOutcome with the raw model response kept for diagnosis
    """
    raw_response = await generator.generate(VALIDATION_PROMPT, image=image)
    outcome = ValidationOutcome(accepted=is_glucose_report(raw_response), raw_response=raw_response)
    logger.info("Report validation: accepted=%s raw=%r", outcome.accepted, raw_response)
    return outcome


async def analyze_report(
    knowledge_base: KnowledgeBase,
    generator: Generator,
    image: UploadedImage,
    question: str = "",
    k: int = None,
) -> str:
    """
    Validate an uploaded report and, if accepted, analyze it.

    Args:
        knowledge_base: Ready knowledge base
        generator: Generation provider
        image: Upload to analyze
        question: Optional question sent with the upload
        k: Passages of supporting context (default from config)

    Returns:
        The analysis text, or the fixed refusal for rejected uploads
    """
    if k is None:
        k = config.REPORT_TOP_K

    validate_upload(image)
    # Fail before spending a provider call when there is nothing to ground on
    knowledge_base.require_ready()

    outcome = await classify_report(generator, image)
    if not outcome.accepted:
        return REJECTION_MESSAGE

    logger.info("Valid blood report detected. Performing detailed analysis...")
    passages = await knowledge_base.search(REPORT_CONTEXT_QUERY, k)
    prompt = get_analysis_prompt(format_context(passages), question)

    analysis = await generator.generate(prompt, image=image)
    if not analysis.strip():
        raise GenerationError("Generation provider returned an empty analysis")
    return analysis
