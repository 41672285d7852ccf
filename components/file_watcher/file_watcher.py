"""File watcher that schedules rebuilds when a local documentation tree changes."""

import logging
import threading
import time
from typing import Any, Callable, Iterable, Optional

from components.reindex_coordinator import ReindexCoordinator
from shared.config import Config
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class DocsEventHandler(FileSystemEventHandler):
    """Handles file system events for the documentation tree."""

    def __init__(
        self,
        on_change: Callable[[], None],
        extensions: Iterable[str] = (".md",),
        debounce_seconds: float = 2,
        poll_interval: float = 0.5,
    ):
        super().__init__()
        self.on_change = on_change
        self.extensions = tuple(ext.lower() for ext in extensions)
        self.debounce_seconds = debounce_seconds
        self.poll_interval = poll_interval

        # Time of the most recent relevant event not yet acted upon
        self._last_event_at: Optional[float] = None
        self._event_lock = threading.Lock()

        # Start debounce worker thread
        self._stop_debounce = threading.Event()
        self._debounce_thread = threading.Thread(
            target=self._debounce_worker, daemon=True
        )
        self._debounce_thread.start()

    def _is_relevant(self, path: Any) -> bool:
        if isinstance(path, bytes):
            path = path.decode(errors="replace")
        return str(path).lower().endswith(self.extensions)

    def on_any_event(self, event: Any) -> None:
        """Handle creation, modification, deletion and moves of documents."""
        if event.is_directory or event.event_type not in (
            "created",
            "modified",
            "deleted",
            "moved",
        ):
            return
        paths = [event.src_path, getattr(event, "dest_path", "")]
        if any(self._is_relevant(path) for path in paths if path):
            logger.debug(f"Documentation change: {event.event_type} {event.src_path}")
            self._schedule_rebuild()

    def _schedule_rebuild(self) -> None:
        with self._event_lock:
            self._last_event_at = time.monotonic()

    def _take_settled_change(self) -> bool:
        """Consume the pending change once it has been quiet long enough."""
        with self._event_lock:
            if self._last_event_at is None:
                return False
            if time.monotonic() - self._last_event_at < self.debounce_seconds:
                return False
            self._last_event_at = None
            return True

    def _debounce_worker(self) -> None:
        """Worker thread that fires once changes have settled."""
        while not self._stop_debounce.wait(self.poll_interval):
            if self._take_settled_change():
                logger.info("Documentation changed, requesting rebuild")
                try:
                    self.on_change()
                except Exception as e:
                    logger.error(f"Error requesting rebuild: {e}")

    def stop(self) -> None:
        """Stop the debounce worker thread."""
        self._stop_debounce.set()
        if self._debounce_thread.is_alive():
            self._debounce_thread.join(timeout=5)


class DocsWatcher:
    """Watches a local documentation source and triggers the coordinator."""

    def __init__(self, config: Config, coordinator: ReindexCoordinator):
        self.config = config
        self.coordinator = coordinator

        self.observer: Any = None
        self.event_handler: DocsEventHandler | None = None

    def start(self) -> None:
        """Start watching the source directory for changes."""
        if not self.config.watcher.enabled:
            logger.info("File watching is disabled in configuration")
            return

        if self.config.source.type.lower() != "local":
            logger.info("File watching only applies to local sources")
            return

        source_path = self.config.source.get_local_path()
        if source_path is None or not source_path.exists():
            logger.warning(f"Source directory does not exist: {source_path}")
            return

        logger.info(f"Starting file watcher for: {source_path}")

        self.event_handler = DocsEventHandler(
            self.coordinator.trigger_threadsafe,
            extensions=self.config.indexing.extensions,
            debounce_seconds=self.config.watcher.debounce_seconds,
        )

        self.observer = Observer()
        self.observer.schedule(self.event_handler, str(source_path), recursive=True)
        self.observer.start()

        logger.info("File watcher started successfully")

    def stop(self) -> None:
        """Stop watching the source directory."""
        if self.observer:
            logger.info("Stopping file watcher")
            self.observer.stop()
            self.observer.join()
            self.observer = None

        if self.event_handler:
            self.event_handler.stop()
            self.event_handler = None

        logger.info("File watcher stopped")

    def is_running(self) -> bool:
        """Check if the watcher is currently running."""
        return self.observer is not None and self.observer.is_alive()
