from sqlalchemy import Column, Index, String, Text
from models.base import Base


class SampleRecord(Base):
    """
    Structured records produced by the transform stage (Store B).

    extracted_ids and payload hold JSON text: the identifier list in
    document order and the structured XML tree respectively.
    """
    __tablename__ = "samples"

    record_id = Column("sra_id", String, key="record_id", primary_key=True)
    record_type = Column("type", String, key="record_type", nullable=True)
    extracted_ids = Column("taxon_ids", Text, key="extracted_ids", nullable=True)
    payload = Column("json", Text, key="payload", nullable=True)

    __table_args__ = (
        Index("idx_samples_type", "record_type"),
    )
