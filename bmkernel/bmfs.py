"""BareMetal File System (BMFS) disk images: layout, directory and file operations."""

from __future__ import annotations

import io
import logging
import shutil
import struct
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from typing import BinaryIO, Iterator, Optional

log = logging.getLogger(__name__)

FS_TAG = b"BMFS"
MIB = 1024 * 1024
BLOCK_SIZE = 2 * MIB
MINIMUM_DISK_SIZE = 6 * MIB
DISK_INFO_OFFSET = 1024
DISK_INFO_SIZE = 512
DIRECTORY_OFFSET = 4096
DIRECTORY_SIZE = 4096
ENTRY_SIZE = 64
MAX_ENTRIES = 64
NAME_SIZE = 32
BOOT_OFFSET = 8192
MBR_SIZE = 512

_FILL_CHUNK = 50 * 1024
_END_MARKER = 0x00
_DELETED_MARKER = 0x01
_FILE_SIZE_OFFSET = 48
_ENTRY = struct.Struct("<32sQQQQ")
_U64 = 1 << 64
_UNITS = {"K": 1, "M": 2, "G": 3, "T": 4, "P": 5}


class BMFSError(Exception):
    """Raised when a BMFS operation cannot be carried out."""


@dataclass
class BMFSEntry:
    """One 64-byte directory record."""

    name: str
    starting_block: int = 0
    reserved_blocks: int = 0
    file_size: int = 0
    unused: int = 0

    @property
    def is_end(self) -> bool:
        return self.name == ""

    @property
    def is_deleted(self) -> bool:
        return self.name.startswith(chr(_DELETED_MARKER))

    def to_bytes(self) -> bytes:
        raw = self.name.encode("utf-8")
        if len(raw) > NAME_SIZE:
            raise BMFSError(f"File name '{self.name}' is longer than {NAME_SIZE} bytes")
        return _ENTRY.pack(
            raw,
            self.starting_block % _U64,
            self.reserved_blocks % _U64,
            self.file_size % _U64,
            self.unused % _U64,
        )

    @classmethod
    def from_bytes(cls, data) -> "BMFSEntry":
        if len(data) < ENTRY_SIZE:
            raise BMFSError(f"A directory entry needs {ENTRY_SIZE} bytes, got {len(data)}")
        raw, start, reserved, size, unused = _ENTRY.unpack_from(bytes(data[:ENTRY_SIZE]))
        name = raw.split(b"\0", 1)[0].decode("utf-8", errors="replace")
        return cls(name, start, reserved, size, unused)


def _write_format(fileobj: BinaryIO) -> None:
    fileobj.seek(DISK_INFO_OFFSET)
    fileobj.write(FS_TAG.ljust(DISK_INFO_SIZE, b"\0"))
    fileobj.seek(DIRECTORY_OFFSET)
    fileobj.write(bytes(DIRECTORY_SIZE))


class BMFSDisk:
    """A BMFS disk image held in a seekable binary file object."""

    def __init__(self, fileobj: BinaryIO):
        self._file = fileobj
        fileobj.seek(0, io.SEEK_END)
        self.disk_size_mib = fileobj.tell() // MIB
        self._disk_info = self._read_at(DISK_INFO_OFFSET, DISK_INFO_SIZE)
        self._directory = bytearray(self._read_at(DIRECTORY_OFFSET, DIRECTORY_SIZE))
        fileobj.seek(0)

    def _read_at(self, offset: int, size: int) -> bytes:
        self._file.seek(offset)
        return self._file.read(size).ljust(size, b"\0")

    def _record(self, slot: int) -> BMFSEntry:
        start = slot * ENTRY_SIZE
        return BMFSEntry.from_bytes(self._directory[start:start + ENTRY_SIZE])

    def _slots(self) -> Iterator[tuple[int, BMFSEntry]]:
        for slot in range(MAX_ENTRIES):
            entry = self._record(slot)
            if entry.is_end:
                return
            if not entry.is_deleted:
                yield slot, entry

    def _locate(self, name: str) -> Optional[tuple[int, BMFSEntry]]:
        for slot, entry in self._slots():
            if entry.name == name:
                return slot, entry
        return None

    def _flush_directory(self) -> None:
        self._file.seek(DIRECTORY_OFFSET)
        self._file.write(bytes(self._directory))
        self._file.flush()

    def is_formatted(self) -> bool:
        tag = self._disk_info.split(b"\0", 1)[0]
        return tag.lower() == FS_TAG.lower()

    def entries(self) -> list[BMFSEntry]:
        return [entry for _, entry in self._slots()]

    def find(self, name: str) -> Optional[BMFSEntry]:
        located = self._locate(name)
        return located[1] if located else None

    def listing(self, disk_name: str) -> str:
        lines = [
            disk_name,
            f"Disk Size: {self.disk_size_mib} MiB",
            f"{'Name':<32}|{'Size (B)':>20}|{'Reserved (MiB)':>20}",
            "=" * 74,
        ]
        lines.extend(
            f"{entry.name:<32} {entry.file_size:>20} {entry.reserved_blocks * 2:>20}"
            for entry in self.entries()
        )
        return "\n".join(lines) + "\n"

    def format(self) -> None:
        self._disk_info = FS_TAG.ljust(DISK_INFO_SIZE, b"\0")
        self._directory = bytearray(DIRECTORY_SIZE)
        _write_format(self._file)
        self._file.flush()

    def create(self, name: str, max_size_mib: int) -> BMFSEntry:
        """Reserve space for a new, empty file and return its directory entry."""
        if not name:
            raise BMFSError("File name not specified.")
        if max_size_mib < 1:
            raise BMFSError("Invalid file size.")
        if max_size_mib % 2:
            max_size_mib += 1
        if self._locate(name) is not None:
            raise BMFSError("File already exists.")
        if len(name.encode("utf-8")) >= NAME_SIZE:
            raise BMFSError(f"File name '{name}' is longer than {NAME_SIZE - 1} bytes")

        blocks_requested = max_size_mib // 2
        num_blocks = self.disk_size_mib // 2
        records = [self._record(slot) for slot in range(MAX_ENTRIES)]

        used = 0
        first_free = None
        for slot, record in enumerate(records):
            if record.is_end:
                used = slot
                if first_free is None:
                    first_free = slot
                break
            if record.is_deleted and first_free is None:
                first_free = slot
        if first_free is None:
            raise BMFSError("Cannot create file: no free directory entries.")

        occupied = sorted(records[:used], key=lambda r: (r.is_deleted, r.starting_block))
        new_start = 0
        prev_end = 1
        for position in range(used + 1):
            record = occupied[position] if position < used else None
            if record is None or record.is_deleted:
                this_start = (num_blocks - 1) % _U64
            else:
                this_start = record.starting_block
            # Block arithmetic is unsigned 64-bit on disk.
            if (this_start - prev_end) % _U64 >= blocks_requested:
                new_start = prev_end
                break
            if record is not None:
                prev_end = (record.starting_block + record.reserved_blocks) % _U64

        if new_start == 0:
            raise BMFSError(f"Cannot create file of size {max_size_mib} MiB.")

        entry = BMFSEntry(name, new_start, blocks_requested, 0, records[first_free].unused)
        offset = first_free * ENTRY_SIZE
        self._directory[offset:offset + ENTRY_SIZE] = entry.to_bytes()
        if first_free == used and used + 1 < MAX_ENTRIES:
            self._directory[(used + 1) * ENTRY_SIZE] = _END_MARKER
        self._flush_directory()
        return entry

    def read_file(self, name: str) -> bytes:
        located = self._locate(name)
        if located is None:
            raise BMFSError("File not found in BMFS.")
        _, entry = located
        self._file.seek(entry.starting_block * BLOCK_SIZE)
        return self._file.read(entry.file_size)

    def write_file(self, name: str, data: bytes) -> None:
        located = self._locate(name)
        if located is None:
            raise BMFSError("File not found in BMFS. A file entry must first be created.")
        slot, entry = located
        if entry.reserved_blocks * BLOCK_SIZE < len(data):
            raise BMFSError("Not enough reserved space in BMFS.")
        self._file.seek(entry.starting_block * BLOCK_SIZE)
        self._file.write(data)
        struct.pack_into("<Q", self._directory, slot * ENTRY_SIZE + _FILE_SIZE_OFFSET, len(data))
        self._flush_directory()

    def delete(self, name: str) -> None:
        located = self._locate(name)
        if located is None:
            raise BMFSError("File not found in BMFS.")
        slot, _ = located
        self._directory[slot * ENTRY_SIZE] = _DELETED_MARKER
        self._flush_directory()


@contextmanager
def open_disk(path) -> Iterator[BMFSDisk]:
    """Open an existing disk image for reading and writing."""
    try:
        fileobj = open(path, "r+b")
    except OSError as exc:
        raise BMFSError(f"Unable to open disk '{path}'") from exc
    with fileobj:
        yield BMFSDisk(fileobj)


def parse_disk_size(text: str) -> int:
    """Parse a size such as '6291456', '64M' or '2G' into bytes."""
    size = 0
    factor = 0
    for position, char in enumerate(text):
        if char in "0123456789":
            digit = ord(char) - ord("0")
            if (size * 10) % _U64 > size:
                size = (size * 10 + digit) % _U64
            elif size == 0:
                size = digit
            else:
                raise BMFSError("Disk size is too large")
        elif position == 0:
            raise BMFSError("A numeric disk size must be specified")
        else:
            unit = _UNITS.get(char.upper())
            if unit is None or position != len(text) - 1:
                raise BMFSError(f"Invalid disk size string: '{text}'")
            factor = unit

    if size > 0:
        for _ in range(factor):
            if (size * 1024) % _U64 > size:
                size = (size * 1024) % _U64
            else:
                raise BMFSError("Disk size is too large")

    if size < MINIMUM_DISK_SIZE:
        raise BMFSError(
            f"Disk size must be at least {MINIMUM_DISK_SIZE} bytes "
            f"({MINIMUM_DISK_SIZE // MIB}MiB)"
        )
    return size


def _open_source(stack: ExitStack, path, label: str) -> Optional[BinaryIO]:
    if path is None:
        return None
    try:
        return stack.enter_context(open(path, "rb"))
    except OSError as exc:
        raise BMFSError(f"Unable to open {label} file '{path}'") from exc


def initialize_disk(path, size, mbr=None, boot=None, kernel=None) -> int:
    """Create a zero-filled, formatted disk image and install boot files.

    Returns the disk size in bytes.
    """
    disk_size = parse_disk_size(str(size))
    boot_type = "boot loader" if kernel is not None else "system"

    with ExitStack() as stack:
        mbr_file = _open_source(stack, mbr, "MBR")
        boot_file = _open_source(stack, boot, boot_type)
        kernel_file = _open_source(stack, kernel, "kernel")
        try:
            disk = stack.enter_context(open(path, "wb"))
        except OSError as exc:
            raise BMFSError(f"Unable to open disk '{path}'") from exc

        try:
            zeros = bytes(_FILL_CHUNK)
            written = 0
            while written < disk_size:
                log.debug(
                    "Formatting disk: %d of %d bytes (%.0f%%)",
                    written, disk_size, written * 100 / disk_size,
                )
                chunk = min(_FILL_CHUNK, disk_size - written)
                disk.write(zeros[:chunk])
                written += chunk
            log.info("Formatting disk: %d of %d bytes (100%%)", written, disk_size)

            _write_format(disk)
            log.info("Format complete.")

            if mbr_file is not None:
                log.info("Writing master boot record.")
                record = mbr_file.read(MBR_SIZE)
                if len(record) != MBR_SIZE:
                    raise BMFSError(f"Failed to read file '{mbr}'")
                disk.seek(0)
                disk.write(record)

            if boot_file is not None:
                log.info("Writing %s file.", boot_type)
                disk.seek(BOOT_OFFSET)
                shutil.copyfileobj(boot_file, disk, _FILL_CHUNK)

            # The kernel immediately follows the boot loader on disk.
            if kernel_file is not None:
                log.info("Writing kernel.")
                shutil.copyfileobj(kernel_file, disk, _FILL_CHUNK)
        except OSError as exc:
            raise BMFSError(f"Failed to write disk '{path}'") from exc

    log.info("Disk initialization complete.")
    return disk_size