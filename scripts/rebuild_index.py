"""Script to rebuild the vector store index from the PDF."""
import asyncio
import sys

from diabetes_qa import config
from diabetes_qa.assistant import Assistant
from diabetes_qa.exceptions import AssistantError
from diabetes_qa.logger import configure_logging


async def rebuild() -> None:
    assistant = Assistant.from_config()
    result = await assistant.load_document(force_rebuild=True)
    print(f"{result.message} ({result.passage_count} passages)")


if __name__ == "__main__":
    configure_logging(config.LOG_LEVEL)
    try:
        asyncio.run(rebuild())
    except AssistantError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
