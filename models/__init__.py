"""
SQLAlchemy ORM models for the store tables.

Each store is its own SQLite file holding a single table:

Models:
    base: Base declarative class
    xml_record: Raw XML per (record id, record type), Store A
    sample: Structured transformed records, Store B
    accession: Rows of the SRA accessions report

Usage:
    from models.xml_record import XmlRecord
    from models.sample import SampleRecord
    from models.accession import Accession, ACCESSION_COLUMNS

Example:
    # Create only the table belonging to a store
    async with engine.begin() as conn:
        await conn.run_sync(
            Base.metadata.create_all, tables=[XmlRecord.__table__]
        )

Keys:
    - XmlRecord: (sra_id, type)
    - SampleRecord: sra_id
    - Accession: accession
"""

from models.accession import ACCESSION_COLUMNS, Accession
from models.base import Base
from models.sample import SampleRecord
from models.xml_record import XmlRecord

__all__ = [
    "Base",
    "XmlRecord",
    "SampleRecord",
    "Accession",
    "ACCESSION_COLUMNS",
]
