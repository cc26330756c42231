"""
Pipeline runner - wires stores, stages and shutdown handling for one command.

Every run follows the same shape:
    1. open the stores it needs under a ShutdownCoordinator
    2. run the stage with the coordinator's cancellation token
    3. close the stores (also on error or signal)
    4. map the outcome to an exit status

Fatal errors (ArchiveCorruptError, StoreUnavailableError, missing input,
failed download) end the run with EXIT_FATAL. Per-record and per-batch
failures are only counted. A cancelled run that drained cleanly is EXIT_OK.
"""

import functools
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from core.config import settings
from core.exceptions import FatalError, SourceFileNotFoundError
from ingestion.extractors.download import FileDownloader, find_local_archive
from ingestion.loaders.accessions_loader import AccessionsLoader
from ingestion.sample_transform import SampleTransformer
from ingestion.shutdown import EXIT_FATAL, EXIT_OK, CancellationToken, ShutdownCoordinator
from ingestion.stats import PipelineStats
from ingestion.store import RecordStore
from ingestion.transformers.xml_tree import ALWAYS_ARRAY_PATHS, transform_xml
from ingestion.worker_pool import TransformWorkerPool
from ingestion.xml_ingest import XmlArchiveIngestor
from models.accession import Accession
from models.sample import SampleRecord
from models.xml_record import XmlRecord
import logging

logger = logging.getLogger(__name__)

RunResult = Tuple[int, Optional[PipelineStats]]


class PipelineRunner:
    """
    Run pipeline commands against the configured stores.

    Args:
        xml_db_path: Store A location
        samples_db_path: Store B location
        accessions_db_path: Accessions store location
        data_dir: Folder holding downloaded inputs
        token: Externally owned cancellation token (tests); a fresh one per run otherwise
        install_signal_handlers: Bind SIGINT/SIGTERM while a run is active
    """

    def __init__(
        self,
        xml_db_path: Optional[Union[str, Path]] = None,
        samples_db_path: Optional[Union[str, Path]] = None,
        accessions_db_path: Optional[Union[str, Path]] = None,
        data_dir: Optional[Union[str, Path]] = None,
        token: Optional[CancellationToken] = None,
        install_signal_handlers: bool = True
    ):
        self.xml_db_path = Path(xml_db_path or settings.xml_db_path)
        self.samples_db_path = Path(samples_db_path or settings.samples_db_path)
        self.accessions_db_path = Path(accessions_db_path or settings.accessions_db_path)
        self.data_dir = Path(data_dir or settings.DATA_DIR)
        self.token = token
        self.install_signal_handlers = install_signal_handlers

    def _coordinator(self) -> ShutdownCoordinator:
        return ShutdownCoordinator(
            token=self.token,
            install_signal_handlers=self.install_signal_handlers
        )

    @staticmethod
    def _fatal(e: FatalError, command: str) -> RunResult:
        logger.error(
            f"{command} aborted: {e.message}",
            extra={"error_context": e.to_dict()}
        )
        return EXIT_FATAL, None

    @staticmethod
    def _finish(stats: PipelineStats, command: str) -> RunResult:
        if stats.cancelled:
            logger.info(f"{command} stopped early; rerun to continue where it left off")
        if not stats.is_balanced():
            logger.warning(f"{command} counters do not add up: {stats.to_dict()}")
        return EXIT_OK, stats

    async def build_xml_db(
        self,
        archive_path: Optional[Union[str, Path]] = None,
        record_types: Optional[Iterable[str]] = None,
        batch_size: Optional[int] = None
    ) -> RunResult:
        """Stage 1: archive into the XML store"""
        try:
            if archive_path is None:
                archive_path = find_local_archive(self.data_dir)
                if archive_path is None:
                    raise SourceFileNotFoundError(
                        "No metadata archive found; run download-archive first",
                        context={"file_path": str(self.data_dir)}
                    )

            async with self._coordinator() as coordinator:
                store = coordinator.manage(await RecordStore(self.xml_db_path, XmlRecord).open())
                ingestor = XmlArchiveIngestor(store, batch_size=batch_size, record_types=record_types)
                stats = await ingestor.run(archive_path, coordinator.token)
        except FatalError as e:
            return self._fatal(e, "build-xml-db")
        return self._finish(stats, "build-xml-db")

    async def build_samples_db(
        self,
        record_type: Optional[str] = None,
        pool_size: Optional[int] = None,
        timeout: Optional[float] = None,
        batch_size: Optional[int] = None,
        page_size: Optional[int] = None,
        identifier_key: Optional[str] = None
    ) -> RunResult:
        """Stage 2: XML store into the samples store"""
        target = functools.partial(
            transform_xml,
            identifier_key=identifier_key or settings.IDENTIFIER_KEY,
            always_array=ALWAYS_ARRAY_PATHS,
        )
        try:
            if not self.xml_db_path.is_file():
                raise SourceFileNotFoundError(
                    "XML store not found; run build-xml-db first",
                    context={"file_path": str(self.xml_db_path)}
                )

            async with self._coordinator() as coordinator:
                source = coordinator.manage(await RecordStore(self.xml_db_path, XmlRecord).open())
                destination = coordinator.manage(await RecordStore(self.samples_db_path, SampleRecord).open())
                pool = TransformWorkerPool(
                    target,
                    max_workers=pool_size or settings.WORKER_POOL_SIZE,
                    timeout=timeout or settings.WORKER_TIMEOUT_SECONDS,
                    start_method=settings.WORKER_START_METHOD,
                )
                transformer = SampleTransformer(
                    source,
                    destination,
                    pool,
                    record_type=record_type,
                    batch_size=batch_size,
                    page_size=page_size,
                )
                stats = await transformer.run(coordinator.token)
        except FatalError as e:
            return self._fatal(e, "build-samples-db")
        return self._finish(stats, "build-samples-db")

    async def build_accessions_db(
        self,
        tsv_path: Optional[Union[str, Path]] = None,
        batch_size: Optional[int] = None
    ) -> RunResult:
        """Bulk load the accessions report"""
        tsv_path = Path(tsv_path) if tsv_path else self.data_dir / settings.ACCESSIONS_FILE_NAME
        try:
            async with self._coordinator() as coordinator:
                store = coordinator.manage(await RecordStore(self.accessions_db_path, Accession).open())
                loader = AccessionsLoader(store, batch_size=batch_size)
                stats = await loader.load(tsv_path, coordinator.token)
        except FatalError as e:
            return self._fatal(e, "build-accessions-db")
        return self._finish(stats, "build-accessions-db")

    async def download_archive(self, index_url: Optional[str] = None) -> RunResult:
        """Download the newest full metadata archive"""
        downloader = FileDownloader(self.data_dir)
        try:
            async with self._coordinator() as coordinator:
                await downloader.download_latest_archive(index_url, coordinator.token)
        except FatalError as e:
            return self._fatal(e, "download-archive")
        return EXIT_OK, None

    async def download_accessions(self, url: Optional[str] = None) -> RunResult:
        """Download SRA_Accessions.tab"""
        downloader = FileDownloader(self.data_dir)
        try:
            async with self._coordinator() as coordinator:
                await downloader.download_accessions(url, coordinator.token)
        except FatalError as e:
            return self._fatal(e, "download-accessions")
        return EXIT_OK, None

    async def init_stores(self) -> Dict[str, Any]:
        """Create every store file and table; returns store name -> row count"""
        counts: Dict[str, Any] = {}
        for path, model in (
            (self.xml_db_path, XmlRecord),
            (self.samples_db_path, SampleRecord),
            (self.accessions_db_path, Accession),
        ):
            async with RecordStore(path, model) as store:
                counts[store.name] = await store.count()
        return counts
