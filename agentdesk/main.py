"""agentdesk backend entry point."""

import asyncio
import contextlib
import logging

from agentdesk.config import settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


async def _serve() -> None:
    from agentdesk.llm.models import ModelManager
    from agentdesk.server.app import ChatServer

    if not settings.gemini_api_key and not settings.anthropic_api_key:
        logger.warning("No LLM API key configured; /chat will fail until one is set")
    if not settings.elevenlabs_api_key:
        logger.warning("ELEVENLABS_API_KEY is empty; voice endpoints will fail")

    ModelManager.get()
    server = ChatServer()
    await server.start()
    try:
        await asyncio.Event().wait()
    finally:
        await server.stop()


def main() -> None:
    """Run the chat backend until interrupted."""
    logger.info("Starting agentdesk backend on %s:%d...", settings.host, settings.port)
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_serve())


if __name__ == "__main__":
    main()
