from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Union


class ChangeKind(str, Enum):
    """
    Type af filsystem-ændring som watcheren rapporterer.

    Only these three kinds ever reach the pipeline. Moves and renames are
    not forwarded by the watch dispatcher.
    """

    CREATED = "Created"
    CHANGED = "Changed"
    DELETED = "Deleted"


class LifecycleState(str, Enum):
    """
    Lifecycle for en uploader-kørsel.

    Workflow: Idle -> Connecting -> Watching -> Stopping -> Disconnected
    Connect failure: Connecting -> Disconnected
    """

    IDLE = "Idle"
    CONNECTING = "Connecting"
    WATCHING = "Watching"  # Connected, watches registered
    STOPPING = "Stopping"
    DISCONNECTED = "Disconnected"


@dataclass(frozen=True)
class ChangeNotification:
    """A single filesystem change handed from the watcher to the pipeline."""

    full_path: Path
    change_kind: ChangeKind
    is_directory: bool = False

    @property
    def file_name(self) -> str:
        return self.full_path.name


@dataclass(frozen=True)
class OutboundMessage:
    topic: str
    payload: bytes


@dataclass(frozen=True)
class Filtered:
    """The notification was rejected by the event filter."""

    path: Path


@dataclass(frozen=True)
class Published:
    """The payload was handed to the broker."""

    path: Path
    change_kind: ChangeKind
    payload_size: int


@dataclass(frozen=True)
class Failed:
    """Reading or publishing failed; the event was not delivered."""

    path: Path
    change_kind: ChangeKind
    error: str


PipelineResult = Union[Filtered, Published, Failed]
