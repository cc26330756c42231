"""
Entry filter and record key derivation for archive paths.

Relevant entries are named <recordId>/<recordId>.<recordType>.xml; anything
else in the archive is skipped without side effects.
"""

from typing import Iterable, Optional

from core.exceptions import EntrySkipped
from schemas.records import RecordKey

XML_EXTENSION = ".xml"


def derive_record_key(path: str) -> RecordKey:
    """
    Split an entry path into (record_id, record_type).

    Args:
        path: Entry path inside the archive

    Raises:
        EntrySkipped: If the path does not follow the naming convention
    """
    normalized = path[2:] if path.startswith("./") else path
    parts = normalized.split("/")
    if len(parts) != 2 or not parts[0]:
        raise EntrySkipped("Entry is not a per-record file", context={"entry_path": path})

    record_id, file_name = parts
    if not file_name.endswith(XML_EXTENSION):
        raise EntrySkipped("Entry is not an XML file", context={"entry_path": path})

    stem = file_name[: -len(XML_EXTENSION)]
    prefix = f"{record_id}."
    record_type = stem[len(prefix):] if stem.startswith(prefix) else ""
    if not record_type or "." in record_type:
        raise EntrySkipped("Malformed per-record file name", context={"entry_path": path})

    return RecordKey(record_id=record_id, record_type=record_type)


class EntryFilter:
    """
    Select archive entries by naming convention and, optionally, record type.

    Args:
        record_types: Record types to accept (e.g. {"sample"}); None accepts all
    """

    def __init__(self, record_types: Optional[Iterable[str]] = None):
        self.record_types = frozenset(record_types) if record_types else None

    def match(self, path: str, is_file: bool = True) -> RecordKey:
        """
        Return the record key for an accepted entry.

        Raises:
            EntrySkipped: If the entry is not a file, is malformed, or has an
                unwanted record type
        """
        if not is_file:
            raise EntrySkipped("Entry is not a regular file", context={"entry_path": path})

        key = derive_record_key(path)
        if self.record_types is not None and key.record_type not in self.record_types:
            raise EntrySkipped(
                "Record type not selected",
                context={"entry_path": path, "record_type": key.record_type}
            )
        return key
