"""
Filesystem watch dispatcher built on watchdog.

watchdog delivers events on its observer thread. Each event is converted to a
ChangeNotification and handed to the asyncio event loop, where the pipeline
workers pick it up from the notification queue.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from mqtt_file_uploader.config import Settings
from mqtt_file_uploader.core.exceptions import ConfigError
from mqtt_file_uploader.models import ChangeKind, ChangeNotification


class ChangeNotificationHandler(FileSystemEventHandler):
    """Translates watchdog events into change notifications."""

    def __init__(self, deliver: Callable[[ChangeNotification], None]):
        super().__init__()
        self._deliver = deliver
        self.enabled = True

    def on_created(self, event: FileSystemEvent) -> None:
        self._forward(event, ChangeKind.CREATED)

    def on_modified(self, event: FileSystemEvent) -> None:
        # Directory mtime churn accompanies every change inside it
        if event.is_directory:
            return
        self._forward(event, ChangeKind.CHANGED)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._forward(event, ChangeKind.DELETED)

    def _forward(self, event: FileSystemEvent, change_kind: ChangeKind) -> None:
        if not self.enabled:
            return
        self._deliver(
            ChangeNotification(
                full_path=Path(os.fsdecode(event.src_path)),
                change_kind=change_kind,
                is_directory=event.is_directory,
            )
        )


class WatchDispatcher:
    """
    One watchdog schedule per configured directory, all feeding one queue.

    Extension filtering is not delegated to the watch; every change is
    forwarded and the event filter decides in-process.
    """

    def __init__(
        self,
        settings: Settings,
        queue: asyncio.Queue,
        loop: asyncio.AbstractEventLoop,
        observer_factory: Optional[Callable[[], Observer]] = None,
    ):
        self.settings = settings
        self._queue = queue
        self._loop = loop
        self._observer_factory = observer_factory or Observer
        self._observer: Optional[Observer] = None
        self._handler = ChangeNotificationHandler(self._deliver)
        self.dropped_notifications = 0

    def start(self) -> None:
        """
        Register the watches and start notification delivery.

        Raises:
            ConfigError: If a configured directory cannot be watched
        """
        if self._observer is not None:
            logging.warning("Watches are already running")
            return

        observer = self._observer_factory()
        for directory in self.settings.directory_paths:
            try:
                observer.schedule(
                    self._handler,
                    directory,
                    recursive=self.settings.include_subdirectories,
                )
            except OSError as e:
                raise ConfigError(f"Cannot watch directory {directory}: {e}") from e
            logging.info(
                f"Watching {directory}"
                f"{' (including subdirectories)' if self.settings.include_subdirectories else ''}"
            )

        self._handler.enabled = True
        observer.start()
        self._observer = observer

    def stop(self) -> None:
        """Disable delivery, then stop and join the observer thread."""
        self._handler.enabled = False
        observer = self._observer
        if observer is None:
            return

        observer.stop()
        observer.join()
        self._observer = None
        logging.info("All watches stopped")

    def _deliver(self, notification: ChangeNotification) -> None:
        # Runs on the watchdog observer thread
        try:
            self._loop.call_soon_threadsafe(self._enqueue, notification)
        except RuntimeError:
            logging.debug(f"Event loop closed, dropping {notification.full_path}")

    def _enqueue(self, notification: ChangeNotification) -> None:
        try:
            self._queue.put_nowait(notification)
        except asyncio.QueueFull:
            self.dropped_notifications += 1
            logging.warning(
                f"Notification queue full - dropping {notification.change_kind.value} "
                f"event for {notification.full_path}"
            )
