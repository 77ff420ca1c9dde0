"""Writing resolved entries, and whole directory trees, to the archive."""

import io
import logging
import os

from ..exceptions import SizeMismatchError
from ..io.copyfile import count_remaining
from .paths import STDIN_SOURCE, clean_path, is_root_marker, join_destination
from .resolver import ResolvedEntry, resolve, stat_source
from .types import EntryKind, EntryOptions, EntrySpec

logger = logging.getLogger(__name__)


def add_entry(writer, ctx, spec: EntrySpec):
    """Add one parsed entry token to the archive, recursing into directories.

    Args:
        writer: the :class:`maptar.io.ArchiveWriter`
        ctx: the :class:`maptar.core.context.RunContext`
        spec: the parsed token
    """
    emit(writer, ctx, spec.source, spec.destination, spec.options, allow_recursion=True)


def emit(writer, ctx, source, destination, options: EntryOptions, allow_recursion=False):
    """Write the entry for ``source`` as ``destination``, unless filtered or already written.

    If the entry is a directory and both ``allow_recursion`` and the options permit, everything
    below it is added as well, with default options.
    """
    if ctx.source_filters.rejects(source):
        return

    metadata = stat_source(source, ctx)
    entry = resolve(source, destination, options, ctx, metadata)
    if entry is None or ctx.is_duplicate(entry.header.name):
        return

    header = entry.header
    if not is_root_marker(header.name):
        write_entry(writer, ctx, entry)
    elif header.kind is not EntryKind.DIRECTORY:
        return

    if (
        header.kind is EntryKind.DIRECTORY
        and metadata.isdir()
        and allow_recursion
        and options.allow_recursion
    ):
        add_tree(writer, ctx, source, destination)


def write_entry(writer, ctx, entry: ResolvedEntry):
    """Write the header and, for regular files, the body of a resolved entry."""
    header = entry.header
    content = None
    if entry.needs_buffer:
        # The header must state the size before the body, so read everything first
        content = _read_all(entry.source, ctx)
        header.size = len(content)

    writer.write_header(header)
    ctx.mark_written(header.name)

    if header.kind is not EntryKind.REGULAR:
        if ctx.verbose:
            logger.info('%s', header.name)
        return

    if content is not None:
        n, crc = writer.write_body(io.BytesIO(content), header.size)
    else:
        with open(ctx.filesystem_path(entry.source), 'rb') as f:
            n, crc = writer.write_body(f, header.size)
            if n == header.size:
                n += count_remaining(f)
    if n != header.size:
        raise SizeMismatchError(entry.source, n, header.size)

    if ctx.verbose:
        logger.info('%s (%d bytes, crc32c=%08x)', header.name, n, crc)


def add_tree(writer, ctx, source, destination):
    """Add every descendant of directory ``source`` under the archive path ``destination``."""
    root = clean_path(source.rstrip('/') or '/')
    if root == '.':
        # Children of the current directory are plain relative paths
        root = ''
    elif not root.endswith('/'):
        root += '/'

    options = EntryOptions(no_ownership=ctx.skip_ownership)
    for path in walk(ctx, root):
        dest = join_destination(destination, path[len(root):])
        emit(writer, ctx, path, dest, options)


def walk(ctx, root):
    """Yield the paths below directory ``root`` in lexical depth-first pre-order.

    Paths are ``root`` joined with the relative path; directories end with ``/``. Paths rejected
    by the source filters are skipped together with everything below them. The listing is lazy,
    so a directory's contents are read only after the directory itself has been consumed.
    """
    stack = [iter(_list_dir(ctx, root))]
    while stack:
        path = next(stack[-1], None)
        if path is None:
            stack.pop()
            continue
        if ctx.source_filters.rejects(path):
            continue
        yield path
        if path.endswith('/'):
            stack.append(iter(_list_dir(ctx, path)))


def _list_dir(ctx, dirpath):
    with os.scandir(ctx.filesystem_path(dirpath)) as it:
        entries = sorted(it, key=lambda e: e.name)
    return [
        dirpath + e.name + ('/' if e.is_dir(follow_symlinks=False) else '') for e in entries
    ]


def _read_all(source, ctx):
    if source == STDIN_SOURCE:
        return ctx.stdin.read()
    with open(ctx.filesystem_path(source), 'rb') as f:
        return f.read()
