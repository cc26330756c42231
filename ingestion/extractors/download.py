"""
Streaming downloads of the NCBI SRA metadata files.

Files are written to <data>/tmp first and moved into the data folder only
once complete, so a partial download is never mistaken for a finished one.
An existing destination file is never downloaded again.
"""

import re
import shutil
from pathlib import Path
from typing import Optional, Union

import httpx

from core.config import settings
from core.exceptions import DownloadError
from ingestion.shutdown import CancellationToken
import logging

logger = logging.getLogger(__name__)

ARCHIVE_NAME_PATTERN = re.compile(r"NCBI_SRA_Metadata_Full_(\d{8})\.tar\.gz")


def discover_latest_archive(index_html: str) -> Optional[str]:
    """
    Find the newest full metadata archive name in an index page.

    Returns:
        File name such as NCBI_SRA_Metadata_Full_20240101.tar.gz, or None
    """
    matches = list(ARCHIVE_NAME_PATTERN.finditer(index_html))
    if not matches:
        return None
    # Listing is sorted by name; the dated suffix makes the last one newest
    return matches[-1].group(0)


def find_local_archive(data_dir: Union[str, Path]) -> Optional[Path]:
    """Newest NCBI_SRA_Metadata_Full_*.tar.gz already in data_dir"""
    data_dir = Path(data_dir)
    if not data_dir.is_dir():
        return None
    candidates = sorted(
        path for path in data_dir.iterdir()
        if path.is_file() and ARCHIVE_NAME_PATTERN.fullmatch(path.name)
    )
    return candidates[-1] if candidates else None


class FileDownloader:
    """
    Download files over HTTP into a data folder.

    Args:
        data_dir: Destination folder
        chunk_size: Bytes per streamed chunk
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        data_dir: Optional[Union[str, Path]] = None,
        chunk_size: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.data_dir = Path(data_dir or settings.DATA_DIR)
        self.tmp_dir = self.data_dir / "tmp"
        self.chunk_size = chunk_size or settings.DOWNLOAD_CHUNK_SIZE
        self.timeout = timeout or settings.DOWNLOAD_TIMEOUT_SECONDS
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self.transport,
        )

    async def fetch_index(self, url: str) -> str:
        """GET an index page as text"""
        try:
            async with self._client() as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.text
        except httpx.HTTPStatusError as e:
            raise DownloadError(
                f"Index request failed with HTTP {e.response.status_code}",
                context={"url": url, "status_code": e.response.status_code},
                original_exception=e
            )
        except httpx.HTTPError as e:
            raise DownloadError(
                "Index request failed",
                context={"url": url},
                original_exception=e
            )

    async def download_file(
        self,
        url: str,
        file_name: Optional[str] = None,
        token: Optional[CancellationToken] = None
    ) -> Optional[Path]:
        """
        Download url into the data folder.

        Returns:
            Destination path, or None if the download was cancelled

        Raises:
            DownloadError: On HTTP or network failure
        """
        file_name = file_name or url.rstrip("/").rsplit("/", 1)[-1]
        destination = self.data_dir / file_name
        if destination.exists():
            logger.info(f"{destination} already exists, skipping download")
            return destination

        self.tmp_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = self.tmp_dir / file_name
        logger.info(f"Downloading {url} to {tmp_path}")

        try:
            completed = await self._stream_to(url, tmp_path, token)
        except httpx.HTTPStatusError as e:
            tmp_path.unlink(missing_ok=True)
            raise DownloadError(
                f"Download failed with HTTP {e.response.status_code}",
                context={"url": url, "status_code": e.response.status_code},
                original_exception=e
            )
        except (httpx.HTTPError, OSError) as e:
            tmp_path.unlink(missing_ok=True)
            raise DownloadError(
                "Download failed",
                context={"url": url, "file_path": str(tmp_path)},
                original_exception=e
            )

        if not completed:
            tmp_path.unlink(missing_ok=True)
            logger.warning(f"Download of {file_name} cancelled")
            return None

        shutil.move(str(tmp_path), str(destination))
        logger.info(f"Download complete: {destination}")
        return destination

    async def _stream_to(self, url: str, path: Path, token: Optional[CancellationToken]) -> bool:
        async with self._client() as client:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                total = int(response.headers.get("content-length", 0))
                received = 0
                last_logged = -1

                with open(path, "wb") as fh:
                    async for chunk in response.aiter_bytes(self.chunk_size):
                        if token is not None and token.cancelled:
                            return False
                        fh.write(chunk)
                        received += len(chunk)

                        if total:
                            percent = received * 100 // total
                            if percent // 5 > last_logged:
                                last_logged = percent // 5
                                logger.info(f"Downloading {path.name}: {percent}%")
        return True

    async def download_latest_archive(
        self,
        index_url: Optional[str] = None,
        token: Optional[CancellationToken] = None
    ) -> Optional[Path]:
        """
        Discover and download the newest full metadata archive.

        Raises:
            DownloadError: If the index has no archive or a request fails
        """
        index_url = index_url or settings.SRA_METADATA_INDEX_URL
        file_name = discover_latest_archive(await self.fetch_index(index_url))
        if file_name is None:
            raise DownloadError(
                "No full metadata archive listed in index",
                context={"url": index_url}
            )
        logger.info(f"Latest metadata archive: {file_name}")
        return await self.download_file(index_url.rstrip("/") + "/" + file_name, file_name, token)

    async def download_accessions(
        self,
        url: Optional[str] = None,
        token: Optional[CancellationToken] = None
    ) -> Optional[Path]:
        """Download SRA_Accessions.tab"""
        return await self.download_file(
            url or settings.SRA_ACCESSIONS_URL,
            settings.ACCESSIONS_FILE_NAME,
            token
        )
