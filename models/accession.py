from sqlalchemy import BigInteger, Column, Index, String
from models.base import Base

# Column order of SRA_Accessions.tab
ACCESSION_COLUMNS = (
    "accession", "submission", "status", "updated", "published", "received",
    "type", "center", "visibility", "alias", "experiment", "sample", "study",
    "loaded", "spots", "bases", "md5sum", "biosample", "bioproject", "replaced_by",
)


class Accession(Base):
    """
    One row of the SRA accessions report.

    Loaded in bulk from the tab-separated file; the rest of the pipeline only
    reads it.
    """
    __tablename__ = "accessions"

    accession = Column(String, primary_key=True)
    submission = Column(String, nullable=True)
    status = Column(String, nullable=True)
    updated = Column(String, nullable=True)
    published = Column(String, nullable=True)
    received = Column(String, nullable=True)
    type = Column(String, nullable=True)
    center = Column(String, nullable=True)
    visibility = Column(String, nullable=True)
    alias = Column(String, nullable=True)
    experiment = Column(String, nullable=True)
    sample = Column(String, nullable=True)
    study = Column(String, nullable=True)
    loaded = Column(BigInteger, nullable=True)
    spots = Column(BigInteger, nullable=True)
    bases = Column(BigInteger, nullable=True)
    md5sum = Column(String, nullable=True)
    biosample = Column(String, nullable=True)
    bioproject = Column(String, nullable=True)
    replaced_by = Column(String, nullable=True)

    __table_args__ = (
        Index("idx_submission", "submission"),
        Index("idx_type", "type"),
        Index("idx_experiment", "experiment"),
        Index("idx_sample", "sample"),
        Index("idx_study", "study"),
        Index("idx_published", "published"),
    )
