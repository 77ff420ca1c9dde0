"""I/O utilities for maptar."""

from .copyfile import copy_crc32c, count_remaining, write_zeroes
from .tarstream import ArchiveWriter

__all__ = ['ArchiveWriter', 'copy_crc32c', 'count_remaining', 'write_zeroes']
