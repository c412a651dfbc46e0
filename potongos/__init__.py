"""A simulated hobby kernel: heap, paging, GDT, disks, FAT16, ELF, keyboard, tasks and processes."""

__version__ = "0.1.0"