import logging
import threading
from dataclasses import dataclass
from typing import Optional

from mqtt_file_uploader.config import Settings
from mqtt_file_uploader.core.exceptions import PayloadIOError, PublishError
from mqtt_file_uploader.models import (
    ChangeKind,
    ChangeNotification,
    Failed,
    Filtered,
    PipelineResult,
    Published,
)
from mqtt_file_uploader.services.broker.connector import BrokerSession
from .event_filter import EventFilter
from .payload_builder import PayloadBuilder
from .publisher import Publisher

SUCCESS_MESSAGES = {
    ChangeKind.CREATED: "New file uploaded",
    ChangeKind.CHANGED: "File updated",
    ChangeKind.DELETED: "File deleted",
}


@dataclass(frozen=True)
class PipelineContext:
    """Everything a pipeline run needs: the configuration and the live session."""

    settings: Settings
    session: BrokerSession


class PipelineStatistics:
    """Thread-safe counters for a single run."""

    def __init__(self):
        self._lock = threading.Lock()
        self.published = 0
        self.filtered = 0
        self.failed = 0
        self.bytes_published = 0

    def record(self, result: PipelineResult) -> None:
        with self._lock:
            if isinstance(result, Published):
                self.published += 1
                self.bytes_published += result.payload_size
            elif isinstance(result, Filtered):
                self.filtered += 1
            else:
                self.failed += 1

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "published": self.published,
                "filtered": self.filtered,
                "failed": self.failed,
                "bytes_published": self.bytes_published,
            }


class EventPipeline:
    """
    Runs Filter -> Build -> Publish for one change notification.

    Per-event failures (unreadable file, publish error) are logged and returned
    as ``Failed``; they never propagate to the caller, so one bad event cannot
    stop the workers.
    """

    def __init__(
        self,
        context: PipelineContext,
        event_filter: Optional[EventFilter] = None,
        payload_builder: Optional[PayloadBuilder] = None,
        publisher: Optional[Publisher] = None,
        statistics: Optional[PipelineStatistics] = None,
    ):
        self.context = context
        self.event_filter = event_filter or EventFilter(context.settings)
        self.payload_builder = payload_builder or PayloadBuilder(
            compress=context.settings.compress
        )
        self.publisher = publisher or Publisher()
        self.statistics = statistics or PipelineStatistics()

    async def process(self, notification: ChangeNotification) -> PipelineResult:
        result = await self._run(notification)
        self.statistics.record(result)
        return result

    async def _run(self, notification: ChangeNotification) -> PipelineResult:
        path = notification.full_path
        kind = notification.change_kind

        if not self.event_filter.accepts(kind, notification.file_name):
            logging.debug(f"Filtered out {kind.value} event for {path}")
            return Filtered(path=path)

        try:
            payload = await self.payload_builder.build(path, kind)
        except PayloadIOError as e:
            logging.warning(f"Skipping {kind.value} event: {e}")
            return Failed(path=path, change_kind=kind, error=str(e))

        try:
            await self.publisher.publish(
                self.context.session, self.context.settings.topic, payload
            )
        except PublishError as e:
            logging.error(f"Failed to publish {path.name}: {e}")
            return Failed(path=path, change_kind=kind, error=str(e))

        logging.info(f"{SUCCESS_MESSAGES[kind]}: {path.name}")
        return Published(path=path, change_kind=kind, payload_size=len(payload))
