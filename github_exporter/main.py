import asyncio
import signal
import sys
import logging

from github_exporter.config import load_settings
from github_exporter.domain.exceptions import ConfigurationException
from github_exporter.infrastructure.clock import SYSTEM_CLOCK
from github_exporter.infrastructure.github_client import GitHubRestClient
from github_exporter.infrastructure.rate_budget import RateBudget
from github_exporter.infrastructure.scrape_server import start_scrape_server
from github_exporter.application.fetcher import RepositoryFetcher
from github_exporter.application.metric_cache import MetricCache
from github_exporter.application.scheduler import Scheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

async def main():
    try:
        settings = load_settings()
    except ConfigurationException as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info(f"Configured targets: {[str(t) for t in settings.targets]}")

    # Wire the collection engine
    rate_budget = RateBudget(clock=SYSTEM_CLOCK)
    github_client = GitHubRestClient(
        token=settings.github_token,
        rate_budget=rate_budget,
        base_url=settings.api_base_url,
        timeout=settings.request_timeout,
    )
    fetcher = RepositoryFetcher(github_client, workflows_refresh=settings.workflows_refresh)
    cache = MetricCache(settings.targets)
    scheduler = Scheduler(
        targets=settings.targets,
        fetcher=fetcher,
        cache=cache,
        poll_interval=settings.poll_interval,
        concurrency=settings.concurrency,
        max_backoff=settings.max_backoff,
        shutdown_grace=settings.shutdown_grace,
    )

    start_scrape_server(cache, rate_budget, settings.bind_host, settings.bind_port)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        await scheduler.run(stop)
    except Exception as e:
        logger.exception(f"An unexpected error occurred: {e}")
        sys.exit(1)

def run():
    asyncio.run(main())

if __name__ == "__main__":
    run()
