"""Header-level tar stream writer on top of :mod:`tarfile`."""

import tarfile
from contextlib import AbstractContextManager

from .copyfile import copy_crc32c, write_zeroes


class ArchiveWriter(AbstractContextManager):
    """Writes tar headers and bodies to a (possibly non-seekable) output stream.

    Unlike :meth:`tarfile.TarFile.addfile`, headers and bodies are written separately, each header
    in its own format, and the caller learns how many body bytes were actually available.

    Args:
        fileobj: binary output stream, e.g. ``sys.stdout.buffer``

    Examples:
        >>> with ArchiveWriter(sys.stdout.buffer) as writer:
        ...     writer.write_header(header)
        ...     writer.write_body(fileobj, header.size)
    """

    def __init__(self, fileobj):
        self._tar = tarfile.open(fileobj=fileobj, mode='w|')
        self.closed = False

    def write_header(self, header):
        """Write a :class:`maptar.core.types.HeaderEntry` in its own format."""
        self.write_tarinfo(header.to_tarinfo(), header.format)

    def write_tarinfo(self, tinfo: tarfile.TarInfo, format: int):
        """Write a raw header block sequence, including any PAX or GNU extension headers."""
        buf = tinfo.tobuf(format, self._tar.encoding, self._tar.errors)
        self._tar.fileobj.write(buf)
        self._tar.offset += len(buf)

    def write_body(self, src, size):
        """Copy up to ``size`` bytes from ``src`` and pad to the tar block boundary.

        Returns:
            Tuple of (bytes_copied, crc32c). Fewer than ``size`` bytes copied leaves the archive
            corrupt, so the caller must treat that as fatal.
        """
        n, crc = copy_crc32c(src, self._tar.fileobj, size)
        blocks, remainder = divmod(n, tarfile.BLOCKSIZE)
        if remainder > 0:
            write_zeroes(self._tar.fileobj, tarfile.BLOCKSIZE - remainder)
            blocks += 1
        self._tar.offset += blocks * tarfile.BLOCKSIZE
        return n, crc

    def close(self):
        """Write the end-of-archive marker and flush. Does not close the output stream."""
        if not self.closed:
            self.closed = True
            self._tar.close()

    def __exit__(self, exc_type, exc_val, exc_tb):
        # A failed run leaves the archive unterminated
        if exc_type is None:
            self.close()
