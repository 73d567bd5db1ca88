import asyncio
import gzip
import logging
from pathlib import Path

import aiofiles

from mqtt_file_uploader.core.exceptions import PayloadIOError
from mqtt_file_uploader.models import ChangeKind


def compress_payload(data: bytes) -> bytes:
    """
    Gzip the whole payload in one shot.

    mtime is pinned to 0 so identical input always gives identical output.
    """
    return gzip.compress(data, mtime=0)


class PayloadBuilder:
    """
    Builds the message payload for a change.

    Deleted files produce an empty payload (a tombstone on the topic). Created
    and changed files are read in full; there is no size limit.
    """

    def __init__(self, compress: bool = False):
        self.compress = compress

    async def build(self, full_path: Path, change_kind: ChangeKind) -> bytes:
        """
        Raises:
            PayloadIOError: If the file vanished or cannot be read
        """
        if change_kind is ChangeKind.DELETED:
            data = b""
        else:
            data = await self._read_file(full_path)

        if self.compress:
            data = await asyncio.to_thread(compress_payload, data)

        return data

    async def _read_file(self, full_path: Path) -> bytes:
        try:
            async with aiofiles.open(full_path, "rb") as f:
                data = await f.read()
        except OSError as e:
            raise PayloadIOError(str(full_path), e.strerror or str(e)) from e

        logging.debug(f"Read {len(data)} bytes from {full_path.name}")
        return data
