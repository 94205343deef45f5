"""CLI interface for the diabetes assistant."""
import asyncio
import sys

import uvicorn

from diabetes_qa import config
from diabetes_qa.assistant import Assistant
from diabetes_qa.exceptions import AssistantError, ConfigError
from diabetes_qa.logger import configure_logging
from diabetes_qa.providers import Generator, load_chat_model, load_embeddings

USAGE = """Usage: python -m diabetes_qa.main <command> [args]

Commands:
  serve             Run the HTTP server
  ask "question"    Answer one question from the document
  check             Verify the API key against both providers

Example:
  python -m diabetes_qa.main ask "What is a normal fasting glucose level?"
"""


async def ask(question: str) -> str:
    assistant = Assistant.from_config()
    await assistant.load_document()
    return await assistant.chat(question)


async def check_providers() -> None:
    """Issue one generation and one embedding call."""
    print("Test 1: chat/text generation...")
    reply = await Generator(load_chat_model()).generate("Say hello in one sentence.")
    print(f"  Response: {reply}\n")

    print("Test 2: embeddings...")
    vector = await load_embeddings().aembed_query("This is a test document for embedding generation.")
    print(f"  Generated embedding vector of length: {len(vector)}")
    print(f"  First 5 values: {vector[:5]}\n")

    print("API key is valid for both chat and embeddings.")


def main():
    """Main CLI entry point."""
    if len(sys.argv) < 2 or sys.argv[1] not in ("serve", "ask", "check"):
        print(USAGE)
        sys.exit(1)

    configure_logging(config.LOG_LEVEL)
    command = sys.argv[1]

    try:
        config.require_api_key()

        if command == "serve":
            uvicorn.run("diabetes_qa.api:app", host=config.HOST, port=config.PORT)

        elif command == "ask":
            if len(sys.argv) < 3:
                print(USAGE)
                sys.exit(1)
            question = sys.argv[2]
            print(f"\nQuestion: {question}")
            print("\nProcessing...\n")

            answer = asyncio.run(ask(question))

            print("=" * 60)
            print("ANSWER:")
            print("=" * 60)
            print(answer)
            print("\n")

        else:
            asyncio.run(check_providers())

    except ConfigError as e:
        print(f"ERROR: {e.message}", file=sys.stderr)
        sys.exit(1)
    except AssistantError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
