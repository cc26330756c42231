"""
Pytest configuration and fixtures
"""

import io
import tarfile
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple, Union

import pytest
import pytest_asyncio

from ingestion.store import RecordStore
from models.accession import Accession
from models.sample import SampleRecord
from models.xml_record import XmlRecord

DIRECTORY = None


def sample_xml(accession: str, taxon_ids: Iterable[str] = ("9606",)) -> str:
    """A SAMPLE_SET document shaped like the ones in the SRA metadata dump"""
    names = "".join(
        f"<SAMPLE_NAME><TAXON_ID>{taxon_id}</TAXON_ID>"
        f"<SCIENTIFIC_NAME>Homo sapiens</SCIENTIFIC_NAME></SAMPLE_NAME>"
        for taxon_id in taxon_ids
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<SAMPLE_SET>"
        f'<SAMPLE alias="{accession}_alias" accession="{accession}">'
        "<IDENTIFIERS>"
        f"<PRIMARY_ID>{accession}</PRIMARY_ID>"
        '<EXTERNAL_ID namespace="BioSample">SAMN00000001</EXTERNAL_ID>'
        "</IDENTIFIERS>"
        "<TITLE>Human gut metagenome</TITLE>"
        f"{names}"
        "</SAMPLE>"
        "</SAMPLE_SET>"
    )


def experiment_xml(accession: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<EXPERIMENT_SET><EXPERIMENT accession="{accession}">'
        "<TITLE>Illumina sequencing</TITLE>"
        "</EXPERIMENT></EXPERIMENT_SET>"
    )


def write_archive(
    path: Path,
    entries: Union[Dict[str, Optional[Union[str, bytes]]], Iterable[Tuple[str, Optional[Union[str, bytes]]]]],
    compression: str = "gz"
) -> Path:
    """
    Write a tar archive. A value of DIRECTORY (None) adds a directory entry.
    Entries are a dict, or a list of (name, content) pairs when a name repeats.
    """
    mode = f"w:{compression}" if compression else "w"
    items = entries.items() if isinstance(entries, dict) else entries
    with tarfile.open(path, mode) as tar:
        for name, content in items:
            info = tarfile.TarInfo(name)
            if content is DIRECTORY:
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tar.addfile(info)
                continue
            data = content.encode("utf-8") if isinstance(content, str) else content
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return path


@pytest.fixture
def make_archive(tmp_path):
    """Factory writing archives under tmp_path"""
    def _make(entries, name="NCBI_SRA_Metadata_Full_20240101.tar.gz", compression="gz"):
        return write_archive(tmp_path / name, entries, compression)
    return _make


@pytest.fixture
def example_archive(make_archive):
    """Two samples and one experiment in the dump's folder layout"""
    return make_archive({
        "A": DIRECTORY,
        "A/A.sample.xml": sample_xml("A", ["9606"]),
        "A/A.experiment.xml": experiment_xml("A"),
        "B": DIRECTORY,
        "B/B.sample.xml": sample_xml("B", ["10090"]),
    })


@pytest_asyncio.fixture
async def xml_store(tmp_path):
    store = await RecordStore(tmp_path / "db" / "SRAmetadb_XML.sqlite", XmlRecord).open()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def samples_store(tmp_path):
    store = await RecordStore(tmp_path / "db" / "SRAmetadb_samples.sqlite", SampleRecord).open()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def accessions_store(tmp_path):
    store = await RecordStore(tmp_path / "db" / "SRA_Accessions.sqlite", Accession).open()
    yield store
    await store.close()


def xml_row(record_id: str, record_type: str = "sample", xml: Optional[str] = None) -> dict:
    return {
        "record_id": record_id,
        "record_type": record_type,
        "xml": xml if xml is not None else sample_xml(record_id),
    }
