"""
Tests for the payload builder.
"""

import gzip

import pytest

from mqtt_file_uploader.core.exceptions import PayloadIOError
from mqtt_file_uploader.models import ChangeKind
from mqtt_file_uploader.services.pipeline.payload_builder import (
    PayloadBuilder,
    compress_payload,
)

GZIP_MAGIC = b"\x1f\x8b"


class TestCompressPayload:
    @pytest.mark.parametrize(
        "data",
        [b"", b"a", b"hello world\n" * 100, bytes(range(256)) * 50],
    )
    def test_round_trip(self, data):
        assert gzip.decompress(compress_payload(data)) == data

    def test_output_is_gzip(self):
        assert compress_payload(b"payload")[:2] == GZIP_MAGIC

    def test_deterministic(self):
        assert compress_payload(b"same input") == compress_payload(b"same input")

    def test_empty_input_is_fixed_encoding(self):
        first = compress_payload(b"")
        assert first[:2] == GZIP_MAGIC
        assert first == compress_payload(b"")


class TestPayloadBuilder:
    @pytest.fixture
    def sample_file(self, watch_dir):
        path = watch_dir / "report.txt"
        path.write_bytes(b"line one\nline two\n")
        return path

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", [ChangeKind.CREATED, ChangeKind.CHANGED])
    async def test_reads_full_file(self, sample_file, kind):
        payload = await PayloadBuilder().build(sample_file, kind)
        assert payload == b"line one\nline two\n"

    @pytest.mark.asyncio
    async def test_deleted_gives_empty_payload(self, watch_dir):
        payload = await PayloadBuilder().build(watch_dir / "gone.csv", ChangeKind.DELETED)
        assert payload == b""

    @pytest.mark.asyncio
    async def test_deleted_with_compression(self, watch_dir):
        payload = await PayloadBuilder(compress=True).build(
            watch_dir / "gone.csv", ChangeKind.DELETED
        )
        assert payload == compress_payload(b"")
        assert gzip.decompress(payload) == b""

    @pytest.mark.asyncio
    async def test_compressed_payload(self, sample_file):
        payload = await PayloadBuilder(compress=True).build(sample_file, ChangeKind.CREATED)
        assert payload[:2] == GZIP_MAGIC
        assert gzip.decompress(payload) == sample_file.read_bytes()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("compress", [False, True])
    async def test_building_twice_is_identical(self, sample_file, compress):
        builder = PayloadBuilder(compress=compress)
        first = await builder.build(sample_file, ChangeKind.CHANGED)
        second = await builder.build(sample_file, ChangeKind.CHANGED)
        assert first == second

    @pytest.mark.asyncio
    async def test_vanished_file_raises_payload_io_error(self, watch_dir):
        missing = watch_dir / "vanished.txt"
        with pytest.raises(PayloadIOError) as exc_info:
            await PayloadBuilder().build(missing, ChangeKind.CREATED)
        assert exc_info.value.file_path == str(missing)

    @pytest.mark.asyncio
    async def test_directory_raises_payload_io_error(self, watch_dir):
        subdir = watch_dir / "folder.txt"
        subdir.mkdir()
        with pytest.raises(PayloadIOError):
            await PayloadBuilder().build(subdir, ChangeKind.CREATED)
