"""
Unit tests for the metadata downloader
"""

import httpx
import pytest

from core.exceptions import DownloadError
from ingestion.extractors.download import FileDownloader, discover_latest_archive, find_local_archive

INDEX_URL = "https://ftp.example.org/sra/reports/Metadata/"

INDEX_HTML = """
<html><body><pre>
<a href="NCBI_SRA_Metadata_20240301.tar.gz">NCBI_SRA_Metadata_20240301.tar.gz</a>
<a href="NCBI_SRA_Metadata_Full_20240101.tar.gz">NCBI_SRA_Metadata_Full_20240101.tar.gz</a>
<a href="NCBI_SRA_Metadata_Full_20240201.tar.gz">NCBI_SRA_Metadata_Full_20240201.tar.gz</a>
<a href="SRA_Accessions.tab">SRA_Accessions.tab</a>
</pre></body></html>
"""


def mock_transport(files, requests=None):
    """Serve {url: bytes}; anything else is a 404"""
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(str(request.url))
        body = files.get(str(request.url))
        if body is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, content=body, headers={"content-length": str(len(body))})
    return httpx.MockTransport(handler)


class TestDiscoverLatestArchive:

    def test_picks_newest_full_archive(self):
        assert discover_latest_archive(INDEX_HTML) == "NCBI_SRA_Metadata_Full_20240201.tar.gz"

    def test_no_archive_listed(self):
        assert discover_latest_archive("<html>nothing here</html>") is None

    def test_find_local_archive(self, tmp_path):
        (tmp_path / "NCBI_SRA_Metadata_Full_20240101.tar.gz").write_bytes(b"old")
        (tmp_path / "NCBI_SRA_Metadata_Full_20240201.tar.gz").write_bytes(b"new")
        (tmp_path / "notes.txt").write_text("ignore me")

        assert find_local_archive(tmp_path).name == "NCBI_SRA_Metadata_Full_20240201.tar.gz"
        assert find_local_archive(tmp_path / "missing") is None


class TestFileDownloader:
    """Test streaming downloads through a mock transport"""

    @pytest.mark.asyncio
    async def test_download_file_moves_into_data_dir(self, tmp_path):
        url = INDEX_URL + "SRA_Accessions.tab"
        downloader = FileDownloader(tmp_path, chunk_size=4, transport=mock_transport({url: b"a\tb\nc\td\n"}))

        path = await downloader.download_file(url)

        assert path == tmp_path / "SRA_Accessions.tab"
        assert path.read_bytes() == b"a\tb\nc\td\n"
        assert not (tmp_path / "tmp" / "SRA_Accessions.tab").exists()

    @pytest.mark.asyncio
    async def test_existing_file_is_not_downloaded_again(self, tmp_path):
        (tmp_path / "SRA_Accessions.tab").write_bytes(b"cached")
        requests = []
        downloader = FileDownloader(tmp_path, transport=mock_transport({}, requests))

        path = await downloader.download_file(INDEX_URL + "SRA_Accessions.tab")

        assert path.read_bytes() == b"cached"
        assert requests == []

    @pytest.mark.asyncio
    async def test_http_error_raises_download_error(self, tmp_path):
        downloader = FileDownloader(tmp_path, transport=mock_transport({}))

        with pytest.raises(DownloadError) as exc_info:
            await downloader.download_file(INDEX_URL + "missing.tar.gz")

        assert exc_info.value.context["status_code"] == 404
        assert not (tmp_path / "missing.tar.gz").exists()
        assert not (tmp_path / "tmp" / "missing.tar.gz").exists()

    @pytest.mark.asyncio
    async def test_network_error_raises_download_error(self, tmp_path):
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        downloader = FileDownloader(tmp_path, transport=httpx.MockTransport(refuse))

        with pytest.raises(DownloadError):
            await downloader.fetch_index(INDEX_URL)

    @pytest.mark.asyncio
    async def test_download_latest_archive(self, tmp_path):
        archive_url = INDEX_URL + "NCBI_SRA_Metadata_Full_20240201.tar.gz"
        downloader = FileDownloader(tmp_path, transport=mock_transport({
            INDEX_URL: INDEX_HTML.encode("utf-8"),
            archive_url: b"tarball bytes",
        }))

        path = await downloader.download_latest_archive(INDEX_URL)

        assert path == tmp_path / "NCBI_SRA_Metadata_Full_20240201.tar.gz"
        assert path.read_bytes() == b"tarball bytes"

    @pytest.mark.asyncio
    async def test_index_without_archive(self, tmp_path):
        downloader = FileDownloader(tmp_path, transport=mock_transport({INDEX_URL: b"<html></html>"}))

        with pytest.raises(DownloadError):
            await downloader.download_latest_archive(INDEX_URL)
