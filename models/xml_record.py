from sqlalchemy import Column, String, Text
from models.base import Base


class XmlRecord(Base):
    """
    Raw XML documents unpacked from the metadata archive (Store A).

    Purpose:
    - One row per (record id, record type) archive entry
    - Source table for the transform stage
    - Reprocessing capability without re-reading the archive

    Design Decisions:
    - Composite primary key doubles as the dedup key
    - Rows are only ever inserted (INSERT OR IGNORE), never updated
    """
    __tablename__ = "data"

    record_id = Column("sra_id", String, key="record_id", primary_key=True)
    record_type = Column("type", String, key="record_type", primary_key=True)
    xml = Column(Text, nullable=False)
