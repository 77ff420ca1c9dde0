"""Re-emitting the entries of existing tar streams (``-A``)."""

import copy
import io
import logging
import tarfile

from ..exceptions import ConcatenationError
from .paths import STDIN_SOURCE

logger = logging.getLogger(__name__)

_OWNERSHIP_PAX_KEYS = ('uid', 'gid', 'uname', 'gname')


def concatenate(writer, ctx, path=''):
    """Copy all entries of the tar stream(s) in ``path`` to ``writer``.

    The input may hold several tar streams back to back; all of them are read until end of input.
    An empty input is fine.

    Args:
        writer: the :class:`maptar.io.ArchiveWriter`
        ctx: the run context. Its current format, ownership setting, source filters and duplicate
            suppression apply to the copied entries.
        path: file to read, resolved against the context directory. Empty or ``-`` means the
            context's standard input.

    Raises:
        ConcatenationError: If the input is not a valid tar stream.
    """
    if path in ('', STDIN_SOURCE):
        concatenate_fileobj(writer, ctx, ctx.stdin, STDIN_SOURCE)
    else:
        with open(ctx.filesystem_path(path), 'rb') as f:
            concatenate_fileobj(writer, ctx, f, path)


def concatenate_fileobj(writer, ctx, fileobj, name=STDIN_SOURCE):
    reader = fileobj if hasattr(fileobj, 'peek') else io.BufferedReader(fileobj)
    while reader.peek(1):
        try:
            _concatenate_stream(writer, ctx, reader, name)
        except tarfile.TarError as e:
            raise ConcatenationError(name, str(e)) from e


def _concatenate_stream(writer, ctx, reader, name):
    # Block-sized reads so that nothing past this stream's end marker is consumed
    with tarfile.open(fileobj=reader, mode='r|', bufsize=tarfile.BLOCKSIZE) as tar:
        for member in tar:
            entry_name = member.name.rstrip('/') + '/' if member.isdir() else member.name
            if ctx.source_filters.rejects(entry_name) or ctx.is_duplicate(entry_name):
                continue

            dup = copy.copy(member)
            dup.pax_headers = dict(member.pax_headers)
            if ctx.skip_ownership:
                dup.uid, dup.gid, dup.uname, dup.gname = 0, 0, '', ''
                for key in _OWNERSHIP_PAX_KEYS:
                    dup.pax_headers.pop(key, None)
            if not member.isreg():
                # Bodies of other entry types are not carried over
                dup.size = 0
                dup.pax_headers.pop('size', None)

            writer.write_tarinfo(dup, ctx.format)
            ctx.mark_written(entry_name)

            if dup.size > 0:
                n, crc = writer.write_body(tar.extractfile(member), dup.size)
                if n != dup.size:
                    raise ConcatenationError(
                        name, f'short body for {entry_name!r}: got {n}, want {dup.size}'
                    )
                if ctx.verbose:
                    logger.info('%s (%d bytes, crc32c=%08x)', entry_name, n, crc)
            elif ctx.verbose:
                logger.info('%s', entry_name)
