import asyncio
import os
import sys
import logging
import aiohttp
from dotenv import load_dotenv

from src.config import load_config
from src.domain.exceptions import ConfigurationException
from src.infrastructure.github_client import GitHubRestClient
from src.infrastructure.llm_client import ChatCompletionClient
from src.infrastructure.memory_store import RepoInfoStore
from src.application.feed import rebuild_global_feed
from src.application.review_gate import ReviewGate
from src.application.update_cycle import UpdateCycle
from src.application.scheduler import UpdateScheduler

# Limit concurrent connections per process
CONNECTOR_LIMIT = 10

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


async def main():
    # Load environment variables from .env file
    load_dotenv()
    configure_logging()

    try:
        config = load_config()
    except ConfigurationException as e:
        logger.error(str(e))
        sys.exit(1)

    if not config.github_token:
        logger.warning("GITHUB_TOKEN is not set; using the unauthenticated rate limit.")

    store = RepoInfoStore()

    async with aiohttp.ClientSession(
        connector=aiohttp.TCPConnector(limit=CONNECTOR_LIMIT),
    ) as session:
        github_client = GitHubRestClient(session=session, token=config.github_token)

        llm_client = None
        if config.ai_review_active:
            llm_client = ChatCompletionClient(
                session=session,
                api_url=config.ai_review_api_url,
                api_key=config.ai_review_api_key,
                model=config.ai_review_model,
                timeout_ms=config.ai_review_timeout_ms,
            )
            logger.info(f"AI review enabled with model {config.ai_review_model}.")

        review_gate = ReviewGate(config, store, github_client, llm_client)
        scheduler = UpdateScheduler(
            config=config,
            store=store,
            update_cycle=UpdateCycle(store, github_client, review_gate),
            rebuild_feed=rebuild_global_feed,
        )

        try:
            await scheduler.initial_load()
            # Runs until the process is stopped
            await asyncio.Event().wait()
        finally:
            await scheduler.stop()


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted by user. Exiting gracefully.")


if __name__ == "__main__":
    run()
