"""Command-line front end for BMFS disk images."""

from __future__ import annotations

import re
import sys
from typing import Callable, Optional, Sequence

from bmkernel.bmfs import BMFSDisk, BMFSError, initialize_disk, open_disk

PROG = "bmfs"

_USAGE = (
    "BareMetal File System Utility v1.0\n\n"
    "Usage: {prog} disk function file\n"
    "Disk: the name of the disk file\n"
    "Function: list, read, write, create, delete, format, initialize\n"
    "File: (if applicable)"
)


def _atoi(text: str) -> int:
    """Parse a leading decimal integer, returning 0 when there is none."""
    match = re.match(r"\s*([+-]?\d+)", text)
    return int(match.group(1)) if match else 0


def _arg(args: Sequence[str], position: int) -> Optional[str]:
    return args[position] if len(args) > position else None


def _list(disk: BMFSDisk, disk_name: str, args: Sequence[str]) -> None:
    print(disk.listing(disk_name), end="")


def _format(disk: BMFSDisk, disk_name: str, args: Sequence[str]) -> None:
    flag = _arg(args, 2)
    if flag is not None and flag.upper() == "/FORCE":
        disk.format()
        print("Format complete.")
    else:
        print("Format aborted!")


def _create(disk: BMFSDisk, disk_name: str, args: Sequence[str]) -> None:
    name = _arg(args, 2)
    if name is None:
        print("Error: File name not specified.")
        return
    size_text = _arg(args, 3)
    if size_text is None:
        size_text = input("Maximum file size in MiB: ")
    size = _atoi(size_text)
    if size < 1:
        print("Error: Invalid file size.")
        return
    if disk.find(name) is not None:
        print("Error: File already exists.")
        return
    print("Creating new file...")
    try:
        disk.create(name, size)
    except BMFSError as exc:
        print(f"Error: {exc}")
        return
    print("Complete")


def _read(disk: BMFSDisk, disk_name: str, args: Sequence[str]) -> None:
    name = _arg(args, 2)
    if name is None:
        print("Error: File name not specified.")
        return
    entry = disk.find(name)
    if entry is None:
        print("Error: File not found in BMFS.")
        return
    print(f"Reading '{name}' from BMFS to local file... ", end="")
    data = disk.read_file(name)
    try:
        with open(entry.name, "wb") as local:
            local.write(data)
    except OSError:
        print(f"Error: Could not open local file '{entry.name}'")
        return
    print("Complete")


def _write(disk: BMFSDisk, disk_name: str, args: Sequence[str]) -> None:
    name = _arg(args, 2)
    if name is None:
        print("Error: File name not specified.")
        return
    if disk.find(name) is None:
        print("Error: File not found in BMFS. A file entry must first be created.")
        return
    print(f"Writing local file '{name}' to BMFS... ", end="")
    try:
        with open(name, "rb") as local:
            data = local.read()
    except OSError:
        print(f"Error: Could not open local file '{name}'")
        return
    try:
        disk.write_file(name, data)
    except BMFSError as exc:
        print(exc)
        return
    print("Complete")


def _delete(disk: BMFSDisk, disk_name: str, args: Sequence[str]) -> None:
    name = _arg(args, 2)
    if name is None:
        print("Error: File name not specified.")
        return
    if disk.find(name) is None:
        print("Error: File not found in BMFS.")
        return
    print(f"Deleting file '{name}' from BMFS... ", end="")
    disk.delete(name)
    print("Complete")


_COMMANDS: dict[str, Callable[[BMFSDisk, str, Sequence[str]], None]] = {
    "list": _list,
    "format": _format,
    "create": _create,
    "read": _read,
    "write": _write,
    "delete": _delete,
}


def _initialize(args: Sequence[str]) -> int:
    if len(args) < 3:
        print(f"Usage: {PROG} disk {args[1]} size [mbr_file] [bootloader_file] [kernel_file]")
        return 1
    try:
        initialize_disk(args[0], args[2], _arg(args, 3), _arg(args, 4), _arg(args, 5))
    except BMFSError as exc:
        print(f"Error: {exc}")
        return 1
    print("Disk initialization complete.")
    return 0


def _run(disk: BMFSDisk, disk_name: str, command: str, args: Sequence[str]) -> None:
    if not disk.is_formatted():
        if command == "format":
            disk.format()
            print("Format complete.")
        else:
            print("Error: Not a valid BMFS drive (Disk is not BMFS formatted).")
        return
    handler = _COMMANDS.get(command)
    if handler is None:
        print("Unknown command")
        return
    handler(disk, disk_name, args)


def main(argv=None) -> int:
    """Run the BMFS utility; returns the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) < 2:
        print(_USAGE.format(prog=PROG))
        return 0

    disk_name, command = args[0], args[1].lower()
    if command == "initialize":
        return _initialize(args)

    try:
        with open_disk(disk_name) as disk:
            _run(disk, disk_name, command, args)
    except BMFSError as exc:
        print(f"Error: {exc}")
    return 0


if __name__ == "__main__":
    sys.exit(main())