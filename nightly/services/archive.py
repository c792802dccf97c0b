"""Release archive codec and the additive merge.

A ReleaseArchive is an in-memory zip: ordered entries keyed by name. Entries
read from an existing zip keep their bytes, timestamp and attributes so that
writing the archive back leaves them untouched.
"""

from __future__ import annotations

import io
import zlib
from collections.abc import Sequence
from dataclasses import dataclass
from zipfile import ZIP_DEFLATED, BadZipFile, ZipFile, ZipInfo

from nightly.core.result import Err, Ok, Result
from nightly.services.model import Bundle

__all__ = [
    "ArchiveEntry",
    "ArchiveReadError",
    "ReleaseArchive",
    "bundle_entries",
    "empty_archive",
    "merge_entries",
    "read_archive",
    "write_archive",
]

_UNIX = 3

DateTime = tuple[int, int, int, int, int, int]


@dataclass(frozen=True, slots=True)
class ArchiveEntry:
    """One file inside a release zip.

    Attributes:
        name: Archive path (e.g. "qsv_nightly")
        data: Uncompressed bytes
        date_time: ZIP timestamp (year >= 1980)
        external_attr: Raw ZIP external attributes (unix mode in the high word)
        create_system: ZIP "made by" system (3 = unix)
    """

    name: str
    data: bytes
    date_time: DateTime
    external_attr: int
    create_system: int = _UNIX

    @classmethod
    def unix(cls, name: str, data: bytes, date_time: DateTime, mode: int) -> ArchiveEntry:
        return cls(
            name=name,
            data=data,
            date_time=date_time,
            external_attr=(0o100000 | (mode & 0o7777)) << 16,
        )

    @property
    def mode(self) -> int:
        return (self.external_attr >> 16) & 0o7777


@dataclass(frozen=True, slots=True)
class ReleaseArchive:
    name: str
    entries: tuple[ArchiveEntry, ...] = ()

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(e.name for e in self.entries)

    def get(self, name: str) -> ArchiveEntry | None:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None


@dataclass(frozen=True, slots=True)
class ArchiveReadError:
    message: str


def empty_archive(name: str) -> ReleaseArchive:
    return ReleaseArchive(name=name)


def read_archive(name: str, data: bytes) -> Result[ReleaseArchive, ArchiveReadError]:
    """Decode zip bytes into a ReleaseArchive.

    A name stored more than once collapses to its last copy, kept at the
    position of its first.
    """
    entries: dict[str, ArchiveEntry] = {}
    try:
        with ZipFile(io.BytesIO(data)) as zf:
            for info in zf.infolist():
                entries[info.filename] = ArchiveEntry(
                    name=info.filename,
                    data=zf.read(info),
                    date_time=info.date_time,
                    external_attr=info.external_attr,
                    create_system=info.create_system,
                )
    # RuntimeError: encrypted entry. NotImplementedError: unsupported compression.
    except (
        BadZipFile,
        zlib.error,
        EOFError,
        ValueError,
        RuntimeError,
        NotImplementedError,
    ) as e:
        return Err(ArchiveReadError(f"{name} is not a readable zip: {e}"))

    return Ok(ReleaseArchive(name=name, entries=tuple(entries.values())))


def write_archive(archive: ReleaseArchive, *, compression_level: int = 9) -> bytes:
    """Encode the archive as zip bytes (deflate at the given level)."""
    buf = io.BytesIO()
    with ZipFile(buf, "w", compression=ZIP_DEFLATED, compresslevel=compression_level) as zf:
        for entry in archive.entries:
            info = ZipInfo(entry.name, date_time=entry.date_time)
            info.external_attr = entry.external_attr
            info.create_system = entry.create_system
            info.compress_type = ZIP_DEFLATED
            zf.writestr(info, entry.data, compresslevel=compression_level)
    return buf.getvalue()


def bundle_entries(bundle: Bundle) -> Result[tuple[ArchiveEntry, ...], OSError]:
    """Read the staged files of a bundle as archive entries."""
    sealed = bundle.sealed_at
    date_time: DateTime = (
        max(sealed.year, 1980),
        sealed.month,
        sealed.day,
        sealed.hour,
        sealed.minute,
        sealed.second,
    )
    entries: list[ArchiveEntry] = []
    for f in bundle.files:
        try:
            data = f.path.read_bytes()
        except OSError as e:
            return Err(e)
        entries.append(ArchiveEntry.unix(f.name, data, date_time, f.mode))
    return Ok(tuple(entries))


def merge_entries(archive: ReleaseArchive, new: Sequence[ArchiveEntry]) -> ReleaseArchive:
    """Layer new entries onto an archive.

    Entries are keyed by name and the last write wins: a new entry replaces
    every old entry of the same name, in the slot of the first one. Other
    existing entries are kept as they are, new names are appended in order.
    Applying the same entries twice gives the same archive as applying them once.
    """
    merged = {e.name: e for e in archive.entries}
    for entry in new:
        merged[entry.name] = entry
    return ReleaseArchive(name=archive.name, entries=tuple(merged.values()))
