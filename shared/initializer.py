"""
Centralized application initializer.

This component is responsible for parsing command-line arguments, loading
configurations, and initializing all the core backend services (backend,
vector index, source fetcher, corpus, reindex coordinator, answer service).
Any construction failure here, such as a missing API key, propagates so the
process stops before it starts serving.
"""

import argparse
import logging
from typing import Tuple

from components.answer_service import AnswerService
from components.embedding_system import create_backend
from components.reindex_coordinator import ReindexCoordinator
from components.source_fetcher import create_fetcher
from components.vector_store.vector_store import ChromaVectorIndex

from shared.config import Config, load_config
from shared.corpus import Corpus

logger = logging.getLogger(__name__)


def create_arg_parser() -> argparse.ArgumentParser:
    """
    Creates and returns the command-line argument parser.

    Returns:
        An ArgumentParser instance with all common arguments defined.
    """
    parser = argparse.ArgumentParser(description="Documentation assistant server.")
    parser.add_argument(
        "-c",
        "--config",
        help="Path to the config folder to use for all config files.",
    )
    parser.add_argument(
        "-a",
        "--app-config",
        help="Path to the app.toml file to use.",
    )
    parser.add_argument(
        "-p",
        "--prompts-config",
        help="Path to the prompts.toml file to use.",
    )
    parser.add_argument(
        "--source-dir",
        help="Serve documents from this local directory instead of GitHub.",
    )
    parser.add_argument(
        "--port",
        type=int,
        help="Port to run the server on.",
    )
    parser.add_argument(
        "--host",
        type=str,
        help="Host to run the server on.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    return parser


def apply_arg_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Apply command-line overrides to the loaded configuration."""
    if args.source_dir:
        logger.info(f"Overriding source with local directory: {args.source_dir}")
        config.source.type = "local"
        config.source.local_dir = args.source_dir
    if args.host:
        logger.info(f"Overriding server host with: {args.host}")
        config.server.host = args.host
    if args.port:
        config.server.port = args.port
    return config


def initialize_services(config: Config) -> Tuple[ReindexCoordinator, AnswerService]:
    """
    Build the backend, vector index, fetcher and corpus, and wire them into
    the reindex coordinator and the answer service, which share one corpus
    and one index.
    """
    logger.info("Initializing backend...")
    backend = create_backend(config)

    logger.info("Initializing vector index...")
    vector_index = ChromaVectorIndex.from_config(
        config.vector_store, dimension=backend.dimension
    )

    logger.info("Initializing source fetcher...")
    fetcher = create_fetcher(config.source)

    corpus = Corpus()
    coordinator = ReindexCoordinator(
        corpus=corpus,
        vector_index=vector_index,
        backend=backend,
        fetcher=fetcher,
        extensions=config.indexing.extensions,
        excluded_dirs=config.indexing.excluded_dirs,
    )
    service = AnswerService(corpus=corpus, vector_index=vector_index, backend=backend)

    logger.info("Core services initialized successfully.")
    return coordinator, service


def initialize_service_from_args(
    args: argparse.Namespace,
) -> Tuple[Config, ReindexCoordinator, AnswerService]:
    """
    Loads configuration and initializes all core components based on command-line
    arguments.

    Args:
        args: Parsed command-line arguments from an ArgumentParser.

    Returns:
        The loaded Config, the reindex coordinator and the answer service.
    """
    logger.info("Initializing application core services...")

    config = load_config(
        config_dir=args.config,
        app_config_path=args.app_config,
        prompts_config_path=args.prompts_config,
    )
    config = apply_arg_overrides(config, args)

    coordinator, service = initialize_services(config)
    return config, coordinator, service
