from mqtt_file_uploader.config import Settings
from mqtt_file_uploader.models import ChangeKind


def extract_extension(file_name: str) -> str:
    """Suffix after the final '.', or an empty string when there is none."""
    _, dot, extension = file_name.rpartition(".")
    return extension if dot else ""


def kind_enabled(change_kind: ChangeKind, settings: Settings) -> bool:
    if change_kind is ChangeKind.CREATED:
        return settings.created_event_enabled
    if change_kind is ChangeKind.CHANGED:
        return settings.changed_event_enabled
    if change_kind is ChangeKind.DELETED:
        return settings.deleted_event_enabled
    return False


def accepts(change_kind: ChangeKind, file_name: str, settings: Settings) -> bool:
    """
    Decide whether a change should produce an outbound message.

    Directory names are filtered exactly like file names.
    """
    if not kind_enabled(change_kind, settings):
        return False
    return settings.file_type_filter.matches(extract_extension(file_name))


class EventFilter:
    """Event filter bound to one configuration record."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def accepts(self, change_kind: ChangeKind, file_name: str) -> bool:
        return accepts(change_kind, file_name, self.settings)
