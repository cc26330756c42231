"""
Unit tests for the commit writer and the batch accumulator
"""

import asyncio

import pytest

from conftest import xml_row
from core.exceptions import BatchCommitError
from ingestion.batching import BatchAccumulator
from ingestion.stats import PipelineStats
from ingestion.store import RecordStore
from ingestion.writer import SerializedCommitWriter
from models.xml_record import XmlRecord


class TestSerializedCommitWriter:
    """Test the single-writer commit path"""

    @pytest.mark.asyncio
    async def test_submit_commits_batch(self, xml_store):
        writer = SerializedCommitWriter(xml_store).start()

        committed = await writer.submit([xml_row("A"), xml_row("B")])
        await writer.close()

        assert committed == 2
        assert writer.batches_committed == 1
        assert writer.rows_committed == 2
        assert await xml_store.count() == 2

    @pytest.mark.asyncio
    async def test_existing_keys_are_ignored(self, xml_store):
        writer = SerializedCommitWriter(xml_store).start()

        first = await writer.submit([xml_row("A", xml="<first/>")])
        second = await writer.submit([xml_row("A", xml="<second/>"), xml_row("A", xml="<third/>")])
        await writer.close()

        assert (first, second) == (1, 0)
        assert writer.rows_committed == 1

        page = await xml_store.fetch_page(xml_store.model.__table__.select(), limit=10, offset=0)
        assert len(page) == 1
        assert page[0]["xml"] == "<first/>"

    @pytest.mark.asyncio
    async def test_failed_batch_rolls_back_entirely(self, xml_store):
        writer = SerializedCommitWriter(xml_store).start()
        bad_row = {"record_id": "B", "record_type": "sample", "xml": None}

        with pytest.raises(BatchCommitError) as exc_info:
            await writer.submit([xml_row("A"), bad_row])

        # Writer keeps serving after a failure
        assert await writer.submit([xml_row("C")]) == 1
        await writer.close()

        assert exc_info.value.context["batch_size"] == 2
        assert writer.batches_failed == 1
        assert await xml_store.count() == 1
        assert await xml_store.contains(("A", "sample")) is False

    @pytest.mark.asyncio
    async def test_concurrent_submits_are_serialized(self, xml_store):
        writer = SerializedCommitWriter(xml_store).start()

        results = await asyncio.gather(*(
            writer.submit([xml_row(f"R{batch}-{i}") for i in range(5)])
            for batch in range(10)
        ))
        await writer.close()

        assert results == [5] * 10
        assert writer.batches_committed == 10
        assert await xml_store.count() == 50

    @pytest.mark.asyncio
    async def test_submit_requires_running_writer(self, xml_store):
        writer = SerializedCommitWriter(xml_store)

        with pytest.raises(RuntimeError):
            await writer.submit([xml_row("A")])


class TestBatchAccumulator:
    """Test batch boundaries and failure accounting"""

    @pytest.mark.asyncio
    async def test_partial_batch_flushed_once_at_end(self, xml_store):
        writer = SerializedCommitWriter(xml_store).start()
        accumulator = BatchAccumulator(writer, batch_size=10)

        for i in range(7):
            await accumulator.add(xml_row(f"R{i}"))
        assert await xml_store.count() == 0

        await accumulator.flush()
        await accumulator.flush()
        await writer.close()

        assert accumulator.flush_sizes == [7]
        assert await xml_store.count() == 7

    @pytest.mark.asyncio
    async def test_flush_sizes_for_two_and_a_half_batches(self, xml_store):
        writer = SerializedCommitWriter(xml_store).start()
        stats = PipelineStats()
        accumulator = BatchAccumulator(writer, batch_size=4, stats=stats)

        for i in range(10):
            await accumulator.add(xml_row(f"R{i}"))
        await accumulator.flush()
        await writer.close()

        assert accumulator.flush_sizes == [4, 4, 2]
        assert stats.processed == 10
        assert stats.batches_committed == 3

    @pytest.mark.asyncio
    async def test_failed_batch_counted_and_dropped(self, xml_store):
        writer = SerializedCommitWriter(xml_store).start()
        stats = PipelineStats()
        accumulator = BatchAccumulator(writer, batch_size=2, stats=stats)

        await accumulator.add(xml_row("A"))
        await accumulator.add({"record_id": "B", "record_type": "sample", "xml": None})
        await accumulator.add(xml_row("C"))
        await accumulator.flush()
        await writer.close()

        assert stats.failed == 2
        assert stats.batches_failed == 1
        assert stats.processed == 1
        assert len(accumulator) == 0
        assert await xml_store.count() == 1

    def test_batch_size_must_be_positive(self, tmp_path):
        writer = SerializedCommitWriter(RecordStore(tmp_path / "xml.sqlite", XmlRecord))

        with pytest.raises(ValueError):
            BatchAccumulator(writer, batch_size=0)
