"""
Application configuration using Pydantic Settings
"""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Locations
    DATA_DIR: Path = Path("data")
    DB_DIR: Path = Path("db")
    XML_DB_NAME: str = "SRAmetadb_XML.sqlite"
    SAMPLES_DB_NAME: str = "SRAmetadb_samples.sqlite"
    ACCESSIONS_DB_NAME: str = "SRA_Accessions.sqlite"
    ACCESSIONS_FILE_NAME: str = "SRA_Accessions.tab"

    # Remote sources
    SRA_METADATA_INDEX_URL: str = "https://ftp.ncbi.nlm.nih.gov/sra/reports/Metadata/"
    SRA_ACCESSIONS_URL: str = "https://ftp.ncbi.nlm.nih.gov/sra/reports/Metadata/SRA_Accessions.tab"
    DOWNLOAD_CHUNK_SIZE: int = 1024 * 1024
    DOWNLOAD_TIMEOUT_SECONDS: float = 60.0

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # ETL Configuration
    XML_BATCH_SIZE: int = 2000
    SAMPLE_BATCH_SIZE: int = 10
    ACCESSIONS_BATCH_SIZE: int = 1000
    PAGE_SIZE: int = 100
    PROGRESS_LOG_EVERY: int = 1000

    # Transform worker pool
    WORKER_POOL_SIZE: int = 2
    WORKER_TIMEOUT_SECONDS: float = 10.0
    WORKER_START_METHOD: Optional[str] = None
    TRANSFORM_RECORD_TYPE: str = "sample"
    IDENTIFIER_KEY: str = "taxon_id"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @property
    def xml_db_path(self) -> Path:
        return self.DB_DIR / self.XML_DB_NAME

    @property
    def samples_db_path(self) -> Path:
        return self.DB_DIR / self.SAMPLES_DB_NAME

    @property
    def accessions_db_path(self) -> Path:
        return self.DB_DIR / self.ACCESSIONS_DB_NAME

    @property
    def accessions_file_path(self) -> Path:
        return self.DATA_DIR / self.ACCESSIONS_FILE_NAME


settings = Settings()
