# docs_assistant/main.py

import asyncio
import contextlib
import logging

import uvicorn

from components.api_app.main import create_app
from components.file_watcher.file_watcher import DocsWatcher
from shared.initializer import (
    create_arg_parser,
    initialize_service_from_args,
)

logger = logging.getLogger(__name__)


async def main() -> None:
    """
    Initializes the services, starts the reindex loop with an initial rebuild
    and serves the API until shutdown.
    """
    parser = create_arg_parser()
    parser.description = "Run the documentation assistant."
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config, coordinator, service = initialize_service_from_args(args)

    reindex_task = asyncio.create_task(coordinator.run_loop())
    coordinator.trigger()

    watcher = None  # Will hold watcher instance if enabled
    if config.watcher.enabled:
        logger.info("Initializing DocsWatcher for live file monitoring...")
        watcher = DocsWatcher(config=config, coordinator=coordinator)
        watcher.start()

    app = create_app(
        service,
        coordinator,
        webhook_secret=config.webhook.secret,
        static_dir=config.server.static_dir,
    )
    server_config = uvicorn.Config(app, host=config.server.host, port=config.server.port)
    server = uvicorn.Server(server_config)
    logger.info(
        f"Starting up server on http://{config.server.host}:{config.server.port}"
    )

    try:
        await server.serve()
    finally:
        reindex_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await reindex_task
        if watcher:
            logger.info("Stopping DocsWatcher...")
            watcher.stop()


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("Server shut down gracefully.")


if __name__ == "__main__":
    run()
