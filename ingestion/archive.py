"""
Streaming reader for compressed tar archives.

The reader opens the archive in tarfile's stream mode ("r|*"), which detects
the outer compression layer (gzip, bzip2, xz or none) from the magic bytes
and unpacks members strictly in order without seeking. The consumer pulls
one entry at a time and must read or discard its content before asking for
the next one; the iterator never buffers ahead.
"""

import logging
import lzma
import tarfile
import zlib
from pathlib import Path
from typing import IO, Iterator, Optional, Union

from core.exceptions import ArchiveCorruptError, SourceFileNotFoundError

logger = logging.getLogger(__name__)

_CORRUPTION_ERRORS = (tarfile.TarError, zlib.error, lzma.LZMAError, EOFError, OSError)


class ArchiveEntry:
    """
    One member of the archive.

    Content is only readable until the iterator advances; afterwards the
    underlying stream has moved past it.
    """

    def __init__(self, path: str, size: int, is_file: bool, stream: Optional[IO[bytes]] = None):
        self.path = path
        self.size = size
        self.is_file = is_file
        self._stream = stream
        self._consumed = stream is None

    def read(self) -> bytes:
        """Read the whole entry content"""
        if self._consumed:
            raise ValueError(f"Content of {self.path} was already consumed")
        try:
            return self._stream.read()
        except _CORRUPTION_ERRORS as e:
            raise ArchiveCorruptError(
                "Failed to read archive entry",
                context={"entry_path": self.path},
                original_exception=e
            )
        finally:
            self._consumed = True

    def discard(self):
        """Skip the content without reading it"""
        self._consumed = True

    @property
    def consumed(self) -> bool:
        return self._consumed

    def __repr__(self) -> str:
        return f"ArchiveEntry(path={self.path!r}, size={self.size}, is_file={self.is_file})"


def iter_archive_entries(archive_path: Union[str, Path]) -> Iterator[ArchiveEntry]:
    """
    Lazily iterate over the entries of a (compressed) tar archive.

    Args:
        archive_path: Path to a .tar, .tar.gz, .tar.bz2 or .tar.xz file

    Yields:
        ArchiveEntry objects in archive order

    Raises:
        SourceFileNotFoundError: If the archive does not exist
        ArchiveCorruptError: If decompression or tar parsing fails
    """
    archive_path = Path(archive_path)
    if not archive_path.is_file():
        raise SourceFileNotFoundError(
            "Archive not found",
            context={"file_path": str(archive_path)}
        )

    entries_read = 0
    try:
        with tarfile.open(archive_path, mode="r|*") as tar:
            logger.info(f"Opened archive {archive_path}")
            for member in tar:
                stream = tar.extractfile(member) if member.isfile() else None
                entry = ArchiveEntry(
                    path=member.name,
                    size=member.size,
                    is_file=member.isfile(),
                    stream=stream,
                )
                entries_read += 1
                yield entry
                # Anything the consumer did not read is skipped by tarfile itself
                entry.discard()
    except ArchiveCorruptError:
        raise
    except _CORRUPTION_ERRORS as e:
        raise ArchiveCorruptError(
            "Failed to decompress or unpack archive",
            context={"archive_path": str(archive_path), "entries_read": entries_read},
            original_exception=e
        )

    logger.info(f"Finished reading {entries_read} entries from {archive_path}")
