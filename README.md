# potongos

A small hobby kernel modelled in pure Python. Each part of the kernel is a
plain Python object that you can build, inspect and test without hardware or
an emulator. The package has no dependencies beyond the standard library.

## Modules

- `potongos.errors`: `ErrorCode` and `KernelError`, the kernel's status codes
  raised as exceptions, plus the system limits (`SECTOR_SIZE`, `MAX_PATH`,
  `MAX_PROCESSES`, `HEAP_BLOCK_SIZE`, ...).
- `potongos.strings`: string helpers with the kernel's rules: `tolower`,
  `strncmp`, `istrncmp`, `strnlen_terminator`, `itoa`, `itoa_hex`, `atoi`
  and `tokens` (a generator of the non-empty runs between delimiters).
- `potongos.heap`: `Heap`, an allocator of whole 4096-byte blocks with a
  block table (`malloc`, `free`, `block_to_address`, `address_to_block`), and
  `KernelHeap`, the kernel heap with simulated memory behind it (`kmalloc`,
  `kzalloc`, `kfree`, `read`, `write`).
- `potongos.paging`: `PageDirectory`, a directory that starts out mapping
  every page of the 4 GiB address space to itself, with `set`, `get`, `map`,
  `map_range`, `map_to` and `physical_address`; and the helpers
  `is_aligned`, `align_up`, `align_down` and `page_indexes`.
- `potongos.gdt`: `GdtSegment`, `encode_entry` and `encode_table` for
  descriptor bytes, and `TaskStateSegment.pack`.
- `potongos.disk`: `Disk`, a sector-addressed disk over a byte image (sectors
  past its end read as zeros), and `DiskStreamer` for byte-level `seek` and
  `read`.
- `potongos.pparser`: `parse_path("0:/bin/shell.elf")` returns a `PathRoot`
  with `drive_no` and `parts`.
- `potongos.fstypes`: `FileMode`, `SeekMode`, `StatFlags`, `FileStat` and the
  `Filesystem` base class for drivers.
- `potongos.fat16`: `Fat16`, a read-only FAT16 driver, with `FatHeader`,
  `DirectoryItem` and `FatFileDescriptor`.
- `potongos.file`: `VirtualFileSystem`, which registers drivers, attaches
  disks and hands out descriptor numbers starting at 1 (`fopen`, `fread`,
  `fseek`, `fstat`, `fclose`).
- `potongos.elf`: 32-bit ELF parsing (`ElfHeader`, `ProgramHeader`,
  `SectionHeader`, `ElfFile`) and `load_elf(vfs, filename)`.
- `potongos.keyboard`: `ClassicKeyboard`, which turns scan-code set one into
  characters for a sink, `KeyboardBuffer`, a per-process ring of typed
  characters, and `KeyboardChain`.
- `potongos.task`: `Registers`, `Task` and `TaskList`, the run list with its
  current task.
- `potongos.process`: `Process` (`malloc`, `free`, `inject_arguments`,
  `get_arguments`) and `ProcessManager`, which loads ELF or flat binaries into
  process slots and terminates them.

## Installing

```
pip install .
```

For the tests:

```
pip install .[test]
pytest
```

## Reading a file from a disk image

```python
from potongos.disk import Disk
from potongos.file import VirtualFileSystem
from potongos.fstypes import SeekMode

with open("os.img", "rb") as f:
    image = f.read()

vfs = VirtualFileSystem()
vfs.attach_disk(Disk(image, 0, 512))

fd = vfs.fopen("0:/hello.txt", "r")
print(vfs.fstat(fd).filesize)
data = vfs.fread(fd, 5, 1)
vfs.fseek(fd, 1, SeekMode.SET)
vfs.fclose(fd)
```

Only the mode `"r"` can open a file on FAT16; other modes raise
`KernelError` with `ErrorCode.ERDONLY`. Seeking from the end is not supported.

## Loading a program

```python
from potongos.heap import KernelHeap
from potongos.process import ProcessManager
from potongos.task import TaskList

manager = ProcessManager(vfs, KernelHeap(), TaskList())
process = manager.load_switch("0:/shell.elf")
process.inject_arguments(["shell", "-v"])
print(process.get_arguments())   # (2, ['shell', '-v'])
manager.terminate(process)
```

A file that is not ELF is loaded as a flat binary mapped at
`PROGRAM_VIRTUAL_ADDRESS`.

## Keyboard input

```python
from potongos.keyboard import ClassicKeyboard, KeyboardBuffer

buffer = KeyboardBuffer()
keyboard = ClassicKeyboard(buffer.push)
keyboard.handle_scancode(0x23)   # 'h'
print(buffer.pop())              # 'h'
```

Capslock starts off; the capslock key and left shift (on press and on
release) both toggle it.

## What it does not do

- There is no screen or text console: nothing in the package draws
  characters, colours or a cursor, and kernel messages are not printed.
- There is no command to run; the package is a library only.
- Programs are loaded, mapped and given tasks and registers, but their
  instructions are never executed, and nothing talks to real hardware.
- The FAT16 driver only reads; it cannot create or write files.

## Errors

Failures raise `KernelError`, whose `code` is an `ErrorCode` such as
`ErrorCode.EINVARG` or `ErrorCode.EIO`, and whose `status` is the matching
negative value.