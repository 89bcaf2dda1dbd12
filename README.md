# bmkernel

Two things in one package:

- **BMFS tooling**: create, format and manage BareMetal File System disk
  images from the command line (`bmfs`) or from Python (`bmkernel.bmfs`).
- **Kernel resources**: the building blocks of a small teaching kernel,
  modelled in Python: a buddy allocator and a free-list allocator, a timer
  tick counter, a priority round-robin scheduler, named semaphores, named
  pipes, a keyboard driver and an I/O manager that routes reads and writes.

## Installation

```
pip install .
```

## The `bmfs` command

```
bmfs DISK FUNCTION [FILE] [...]
```

`FUNCTION` is one of `list`, `read`, `write`, `create`, `delete`, `format` or
`initialize` (case does not matter). Run with fewer than two arguments to see
the usage text.

Create a 6 MiB disk image (sizes take an optional `K`, `M`, `G`, `T` or `P`
suffix; the minimum is 6 MiB):

```
bmfs disk.image initialize 6M
```

The optional files after the size are written into the image in this order:
an MBR (its first 512 bytes go to the start of the disk), a boot loader
(written at byte 8192) and a kernel (written straight after the boot loader).
Given without a kernel, the boot loader file is treated as a combined system
file.

```
bmfs disk.image initialize 128M mbr.sys pxestart.sys kernel64.sys
```

Reserve space for a file (size in MiB, rounded up to an even number; you are
asked for it if left out), then copy the local file of the same name into it:

```
bmfs disk.image create hello.app 2
bmfs disk.image write hello.app
bmfs disk.image list
```

Copy a file out of the image into the current directory, or delete it:

```
bmfs disk.image read hello.app
bmfs disk.image delete hello.app
```

An image without the BMFS tag can be formatted with plain `format`;
reformatting an existing BMFS disk needs `/FORCE`:

```
bmfs disk.image format /FORCE
```

## Using BMFS from Python

```python
from bmkernel.bmfs import open_disk, initialize_disk, parse_disk_size

initialize_disk("disk.image", "6M", None, None, None)
assert parse_disk_size("6M") == 6 * 1024 * 1024

with open_disk("disk.image") as disk:
    disk.create("notes.txt", 2)
    disk.write_file("notes.txt", b"hello")
    print(disk.read_file("notes.txt"))
    for entry in disk.entries():
        print(entry.name, entry.file_size)
    print(disk.listing("disk.image"))
```

`BMFSDisk` also has `is_formatted`, `find`, `format` and `delete`;
directory records are `BMFSEntry` objects with `to_bytes` and `from_bytes`.
Failures raise `bmkernel.bmfs.BMFSError`.

## Kernel resources

```python
from bmkernel.memory import BuddyAllocator, FreeListAllocator
from bmkernel.scheduler import Scheduler
from bmkernel.semaphores import SemaphoreTable
from bmkernel.pipes import PipeTable

heap = FreeListAllocator(1024 * 1024)
address = heap.malloc(100)
heap.free(address)

scheduler = Scheduler()
pid = scheduler.add_process("shell", 1, None)
scheduler.schedule()

semaphores = SemaphoreTable(scheduler)
pipes = PipeTable(semaphores)
fd = pipes.open("channel")
pipes.write(fd, "hi")
print(pipes.read(fd))  # "h"
```

- `bmkernel.memory`: `BuddyAllocator` and `FreeListAllocator` share
  `malloc`, `free`, `available` and `dump`. Addresses are byte offsets into
  the managed region; running out of memory raises `MemoryError`.
- `bmkernel.timer`: `Timer` counts ticks (`tick`, `ticks_elapsed`) at 18
  ticks per second (`seconds_elapsed`).
- `bmkernel.scheduler`: each call to `Scheduler.schedule()` stands for one
  timer tick. It also offers `kill`, `block`, `unblock`, `change_priority`,
  `wait`, `yield_cpu`, `resign`, `current_pid`, `current_process`,
  `kill_foreground` and `list_processes`. A foreground child blocks its
  parent until it is killed.
- `bmkernel.semaphores`: `SemaphoreTable` has `open`, `wait`, `post`,
  `close`, `dump` and `dump_semaphore`. `wait` returns `False` when the
  running process was blocked; it repeats the wait once scheduled again.
- `bmkernel.pipes`: `PipeTable` has `open`, `close`, `write`, `write_char`,
  `read` and `dump`. Descriptors start at 1; `read` returns `None` when the
  running process blocked.
- `bmkernel.keyboard`: `KeyboardDriver.handle` turns scan codes into
  character codes taken with `get_char`; Ctrl+L, Ctrl+D, Ctrl+S (register
  `snapshot`) and Ctrl+C (the `on_interrupt` callback) are handled.
  `classify` tells presses from releases.
- `bmkernel.io`: `IOManager` sends the running process's output to the
  console callable or a pipe, and reads its input from the keyboard or a
  pipe.

## What the package does not do

The kernel resources are models only: there is no boot loader, no machine
to run on, and processes are bookkeeping records with no code of their own
to execute. There is no screen driver; console output goes to whatever
callable you hand to `IOManager`.

## Running the tests

```
pip install .[test]
pytest
```