import asyncio
import logging
from typing import Callable, List, Optional

from mqtt_file_uploader.config import Settings
from mqtt_file_uploader.core.exceptions import InvalidStateTransitionError
from mqtt_file_uploader.models import ChangeNotification, LifecycleState
from mqtt_file_uploader.services.broker.connector import BrokerConnector, BrokerSession
from mqtt_file_uploader.services.pipeline.event_pipeline import (
    EventPipeline,
    PipelineContext,
    PipelineStatistics,
)
from mqtt_file_uploader.services.watch_dispatcher import WatchDispatcher

DispatcherFactory = Callable[
    [Settings, asyncio.Queue, asyncio.AbstractEventLoop], WatchDispatcher
]

ALLOWED_TRANSITIONS = {
    LifecycleState.IDLE: {LifecycleState.CONNECTING},
    LifecycleState.CONNECTING: {
        LifecycleState.WATCHING,
        LifecycleState.STOPPING,  # connected, but watch registration failed
        LifecycleState.DISCONNECTED,  # connect failed
    },
    LifecycleState.WATCHING: {LifecycleState.STOPPING},
    LifecycleState.STOPPING: {LifecycleState.DISCONNECTED},
    LifecycleState.DISCONNECTED: set(),
}


class UploaderService:
    """
    Orchestrates one run of the uploader.

    Startup: connect broker -> start pipeline workers -> register watches.
    Shutdown: stop watches -> drain queued notifications -> stop workers ->
    disconnect broker. In-flight pipeline runs are never cancelled.
    """

    def __init__(
        self,
        settings: Settings,
        connector: Optional[BrokerConnector] = None,
        dispatcher_factory: Optional[DispatcherFactory] = None,
    ):
        self.settings = settings
        self.connector = connector or BrokerConnector(settings)
        self._dispatcher_factory = dispatcher_factory or WatchDispatcher
        self.statistics = PipelineStatistics()

        self._state = LifecycleState.IDLE
        self._session: Optional[BrokerSession] = None
        self._dispatcher: Optional[WatchDispatcher] = None
        self._queue: Optional[asyncio.Queue[ChangeNotification]] = None
        self._workers: List[asyncio.Task] = []

    @property
    def state(self) -> LifecycleState:
        return self._state

    def _transition(self, new_state: LifecycleState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self._state]:
            raise InvalidStateTransitionError(self._state.value, new_state.value)
        logging.debug(f"Lifecycle: {self._state.value} -> {new_state.value}")
        self._state = new_state

    async def run(self, stop_event: asyncio.Event) -> PipelineStatistics:
        """
        Run until ``stop_event`` is set.

        Raises:
            BrokerConnectionError: If the broker session cannot be established
            ConfigError: If a watch directory cannot be registered
        """
        self._transition(LifecycleState.CONNECTING)
        try:
            self._session = await asyncio.to_thread(self.connector.connect)
        except Exception:
            self._transition(LifecycleState.DISCONNECTED)
            raise

        try:
            self._queue = asyncio.Queue(maxsize=self.settings.queue_max_size)
            pipeline = EventPipeline(
                PipelineContext(settings=self.settings, session=self._session),
                statistics=self.statistics,
            )
            self._start_workers(pipeline)

            self._dispatcher = self._dispatcher_factory(
                self.settings, self._queue, asyncio.get_running_loop()
            )
            self._dispatcher.start()
            self._transition(LifecycleState.WATCHING)

            logging.info(
                f"Watching {len(self.settings.directory_paths)} director"
                f"{'y' if len(self.settings.directory_paths) == 1 else 'ies'}, "
                f"publishing to '{self.settings.topic}'"
            )
            await stop_event.wait()
        finally:
            await self._shutdown()

        return self.statistics

    def _start_workers(self, pipeline: EventPipeline) -> None:
        for i in range(self.settings.pipeline_workers):
            worker_task = asyncio.create_task(
                self._worker_loop(f"worker-{i + 1}", pipeline),
                name=f"pipeline-worker-{i + 1}",
            )
            self._workers.append(worker_task)
        logging.info(f"Started {len(self._workers)} pipeline workers")

    async def _worker_loop(self, worker_id: str, pipeline: EventPipeline) -> None:
        queue = self._queue
        while True:
            notification = await queue.get()
            try:
                await pipeline.process(notification)
            except Exception as e:
                logging.error(
                    f"Worker {worker_id} failed on {notification.full_path}: {e}",
                    exc_info=True,
                )
            finally:
                queue.task_done()

    async def _shutdown(self) -> None:
        self._transition(LifecycleState.STOPPING)
        logging.info("Stopping uploader...")

        if self._dispatcher is not None:
            await asyncio.to_thread(self._dispatcher.stop)

        if self._queue is not None:
            await self._drain_queue()

        await self._stop_workers()

        if self._session is not None:
            await asyncio.to_thread(self.connector.disconnect, self._session)

        self._transition(LifecycleState.DISCONNECTED)
        stats = self.statistics.snapshot()
        logging.info(
            f"Uploader stopped - published: {stats['published']}, "
            f"filtered: {stats['filtered']}, failed: {stats['failed']}, "
            f"bytes: {stats['bytes_published']}"
        )

    async def _drain_queue(self) -> None:
        queue = self._queue
        timeout = self.settings.shutdown_drain_timeout_seconds
        try:
            await asyncio.wait_for(queue.join(), timeout=timeout)
            return
        except asyncio.TimeoutError:
            pass

        # Drop what has not started yet, let in-flight runs finish
        dropped = 0
        while not queue.empty():
            queue.get_nowait()
            queue.task_done()
            dropped += 1
        logging.warning(
            f"Drain timeout ({timeout}s) - dropped {dropped} queued notifications"
        )
        await queue.join()

    async def _stop_workers(self) -> None:
        for worker in self._workers:
            if not worker.done():
                worker.cancel()

        if self._workers:
            await asyncio.gather(*self._workers, return_exceptions=True)

        self._workers.clear()
        logging.debug("All pipeline workers stopped")
