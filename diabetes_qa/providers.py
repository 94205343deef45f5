"""Embedding and generation providers."""
import asyncio
import base64
from typing import List, Optional, Union

from langchain_core.embeddings import Embeddings
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage
from langchain_openai import ChatOpenAI, OpenAIEmbeddings

from diabetes_qa import config
from diabetes_qa.exceptions import GenerationError
from diabetes_qa.models import UploadedImage


def load_embeddings() -> Embeddings:
    """
    Create the OpenAI embedding client.

    Retries are disabled: a failed call fails the request.
    """
    return OpenAIEmbeddings(
        model=config.EMBEDDING_MODEL,
        chunk_size=config.EMBEDDING_BATCH_SIZE,
        openai_api_key=config.require_api_key(),
        timeout=config.PROVIDER_TIMEOUT,
        max_retries=0,
    )


def load_chat_model() -> BaseChatModel:
    """Create the vision-capable OpenAI chat model."""
    return ChatOpenAI(
        model=config.MODEL_NAME,
        temperature=config.TEMPERATURE,
        openai_api_key=config.require_api_key(),
        timeout=config.PROVIDER_TIMEOUT,
        max_retries=0,
        max_tokens=4096,
    )


def encode_image_to_base64(data: bytes) -> str:
    """
    Encode raw upload bytes to a base64 string.

    Args:
        data: Raw file bytes

    Returns:
        Base64 encoded string
    """
    return base64.b64encode(data).decode("utf-8")


def build_message_content(prompt: str, image: Optional[UploadedImage] = None) -> Union[str, List[dict]]:
    """
    Build HumanMessage content: plain text, or text followed by the inlined upload.

    Images are sent as data URLs; PDFs are sent as a file part.
    """
    if image is None:
        return prompt

    encoded = encode_image_to_base64(image.data)
    # image/jpg is accepted on upload but is not a registered media type
    mime_type = "image/jpeg" if image.mime_type == "image/jpg" else image.mime_type

    if mime_type == "application/pdf":
        attachment = {
            "type": "file",
            "file": {
                "filename": image.filename or "report.pdf",
                "file_data": f"data:{mime_type};base64,{encoded}",
            },
        }
    else:
        attachment = {
            "type": "image_url",
            "image_url": {"url": f"data:{mime_type};base64,{encoded}"},
        }

    return [{"type": "text", "text": prompt}, attachment]


def _response_text(content) -> str:
    """Flatten an AIMessage content payload to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    raise GenerationError(
        "Generation provider returned unusable output",
        details={"content_type": type(content).__name__},
    )


class Generator:
    """
    Thin async wrapper around a chat model.

    Every call is bounded by ``timeout`` seconds; provider failures surface
    as GenerationError.
    """

    def __init__(self, llm: BaseChatModel, timeout: float = config.PROVIDER_TIMEOUT):
        self.llm = llm
        self.timeout = timeout

    async def generate(self, prompt: str, image: Optional[UploadedImage] = None) -> str:
        """
        Send one prompt (optionally with an inlined image) and return the text.

        Args:
            prompt: Rendered prompt text
            image: Optional upload to attach

        Returns:
            Model text, unmodified
        """
        message = HumanMessage(content=build_message_content(prompt, image))
        try:
            response = await asyncio.wait_for(self.llm.ainvoke([message]), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise GenerationError(
                "Generation provider timed out",
                details={"timeout": self.timeout},
            ) from e
        except Exception as e:
            raise GenerationError(
                "Generation provider call failed",
                details={"error": str(e)},
            ) from e

        return _response_text(response.content)
