from dataclasses import dataclass
from enum import Enum


class EntryType(Enum):
    FILE = "file"
    DIRECTORY = "dir"


@dataclass(frozen=True)
class StorageAttributes:
    """A file or (virtual) directory, as returned by listings and metadata calls."""

    path: str
    type: EntryType = EntryType.FILE
    file_size: int | None = None
    last_modified: int | None = None
    mime_type: str | None = None

    @property
    def is_file(self) -> bool:
        return self.type is EntryType.FILE

    @property
    def is_dir(self) -> bool:
        return self.type is EntryType.DIRECTORY

    @classmethod
    def directory(cls, path: str, last_modified: int | None = None) -> "StorageAttributes":
        return cls(path=path, type=EntryType.DIRECTORY, last_modified=last_modified)
