"""
Unit tests for the store handle and the dedup gate
"""

import sqlite3

import pytest
from sqlalchemy import select

from conftest import xml_row
from core.exceptions import DedupSkip, StoreUnavailableError
from ingestion.dedup import DedupGate, DedupResult
from ingestion.store import RecordStore
from ingestion.writer import SerializedCommitWriter
from models.sample import SampleRecord
from models.xml_record import XmlRecord


async def insert_rows(store, rows):
    writer = SerializedCommitWriter(store).start()
    try:
        return await writer.submit(rows)
    finally:
        await writer.close()


class TestRecordStore:
    """Test store lifecycle and reads"""

    @pytest.mark.asyncio
    async def test_open_creates_file_and_table(self, tmp_path):
        path = tmp_path / "nested" / "xml.sqlite"

        async with RecordStore(path, XmlRecord) as store:
            assert store.is_open
            assert await store.count() == 0

        assert path.exists()
        assert store.is_open is False

    @pytest.mark.asyncio
    async def test_open_failure_is_fatal(self, tmp_path):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("file in the way")

        with pytest.raises(StoreUnavailableError) as exc_info:
            await RecordStore(blocker / "xml.sqlite", XmlRecord).open()

        assert exc_info.value.context["operation"] == "open"

    @pytest.mark.asyncio
    async def test_open_existing_only_leaves_missing_file_alone(self, tmp_path):
        path = tmp_path / "nested" / "xml.sqlite"
        store = RecordStore(path, XmlRecord)

        with pytest.raises(StoreUnavailableError) as exc_info:
            await store.open(create=False)

        assert exc_info.value.context["operation"] == "open"
        assert store.is_open is False
        assert not path.parent.exists()

    @pytest.mark.asyncio
    async def test_open_existing_only_requires_table(self, tmp_path):
        path = tmp_path / "xml.sqlite"
        async with RecordStore(path, SampleRecord):
            pass

        with pytest.raises(StoreUnavailableError) as exc_info:
            await RecordStore(path, XmlRecord).open(create=False)

        assert exc_info.value.context["table"] == XmlRecord.__tablename__

    @pytest.mark.asyncio
    async def test_open_existing_only_keeps_journal_mode(self, tmp_path):
        path = tmp_path / "plain.sqlite"
        conn = sqlite3.connect(path)
        conn.execute("CREATE TABLE data (sra_id TEXT, type TEXT, xml TEXT, PRIMARY KEY (sra_id, type))")
        conn.commit()
        conn.close()

        store = await RecordStore(path, XmlRecord).open(create=False)
        assert await store.count() == 0
        await store.close()

        conn = sqlite3.connect(path)
        assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "delete"
        conn.close()

    @pytest.mark.asyncio
    async def test_reads_require_open_store(self, tmp_path):
        store = RecordStore(tmp_path / "xml.sqlite", XmlRecord)

        with pytest.raises(StoreUnavailableError):
            await store.contains(("A", "sample"))

    @pytest.mark.asyncio
    async def test_contains_uses_full_key(self, xml_store):
        await insert_rows(xml_store, [xml_row("A", "sample")])

        assert await xml_store.contains(("A", "sample")) is True
        assert await xml_store.contains(("A", "experiment")) is False

        with pytest.raises(ValueError):
            await xml_store.contains(("A",))

    @pytest.mark.asyncio
    async def test_fetch_page_returns_attribute_keys(self, xml_store):
        await insert_rows(xml_store, [xml_row("B"), xml_row("A")])
        stmt = select(XmlRecord.record_id, XmlRecord.record_type, XmlRecord.xml).order_by(XmlRecord.record_id)

        page = await xml_store.fetch_page(stmt, limit=1, offset=1)

        assert len(page) == 1
        assert page[0]["record_id"] == "B"
        assert page[0]["record_type"] == "sample"

    @pytest.mark.asyncio
    async def test_count_with_filter(self, xml_store):
        await insert_rows(xml_store, [xml_row("A"), xml_row("A", "experiment"), xml_row("B")])

        assert await xml_store.count() == 3
        assert await xml_store.count(XmlRecord.record_type == "sample") == 2


class TestDedupGate:
    """Test the existence check"""

    @pytest.mark.asyncio
    async def test_check(self, samples_store):
        await insert_rows(samples_store, [{
            "record_id": "A", "record_type": "sample", "extracted_ids": "[]", "payload": "{}"
        }])
        gate = DedupGate(samples_store)

        assert await gate.check(("A",)) is DedupResult.EXISTS
        assert await gate.check(("B",)) is DedupResult.ABSENT

    @pytest.mark.asyncio
    async def test_ensure_absent_raises_skip(self, samples_store):
        await insert_rows(samples_store, [{
            "record_id": "A", "record_type": "sample", "extracted_ids": "[]", "payload": "{}"
        }])
        gate = DedupGate(samples_store)

        await gate.ensure_absent(("B",))
        with pytest.raises(DedupSkip) as exc_info:
            await gate.ensure_absent(("A",))
        assert exc_info.value.context["table_name"] == SampleRecord.__tablename__
