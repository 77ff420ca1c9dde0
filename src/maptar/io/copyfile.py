"""
Buffered copy utilities for moving file bodies into a tar stream.

Tar bodies are written through ``tarfile``'s stream wrapper, which has no file descriptor, so
everything here is a plain user-space copy. The CRC32C of the copied data is computed on the fly
for the verbose listing.
"""

import crc32c as crc32c_lib

__all__ = [
    'copy_crc32c',
    'count_remaining',
    'write_zeroes',
]

# Default buffer size for user-space copies (64 KB)
_DEFAULT_BUFSIZE = 64 * 1024


def copy_crc32c(src, dst, size, bufsize=_DEFAULT_BUFSIZE, initial=0):
    """
    Copy at most ``size`` bytes from ``src`` to ``dst`` and compute their CRC32C.

    Stops early if ``src`` runs out of data.

    Returns:
        Tuple of (bytes_copied, crc32c)
    """
    crc = initial
    bytes_copied = 0
    while bytes_copied < size:
        data = src.read(min(bufsize, size - bytes_copied))
        if not data:
            break
        crc = crc32c_lib.crc32c(data, crc)
        dst.write(data)
        bytes_copied += len(data)
    return bytes_copied, crc


def count_remaining(fileobj, bufsize=_DEFAULT_BUFSIZE):
    """Read ``fileobj`` to EOF and return how many bytes were left."""
    n = 0
    while chunk := fileobj.read(bufsize):
        n += len(chunk)
    return n


def write_zeroes(file, n, bufsize=_DEFAULT_BUFSIZE):
    """Write n zero bytes."""
    if n <= 0:
        return 0

    n_written = 0
    if n >= bufsize:
        zeroes = bytes(bufsize)
        while n >= bufsize:
            file.write(zeroes)
            n_written += bufsize
            n -= bufsize
    if n > 0:
        file.write(bytes(n))
        n_written += n
    return n_written
