"""Turning a (source, destination, options) triple into a fully resolved tar header."""

import io
import logging
import os
import stat
import tarfile
from dataclasses import dataclass
from typing import Optional

from .context import FORMAT_NAMES
from .paths import STDIN_SOURCE
from .types import EntryKind, EntryOptions, HeaderEntry, Metadata

logger = logging.getLogger(__name__)

# Symlinks under these directories that point to 'pipe:[N]' are shell process substitutions
_PROC_FD_DIRS = ('/proc/self/fd/', '/dev/fd/')


@dataclass
class ResolvedEntry:
    """A header ready to be written, with what is needed to produce its body."""

    source: str
    header: HeaderEntry
    metadata: Metadata

    @property
    def needs_buffer(self) -> bool:
        return self.header.kind is EntryKind.REGULAR and self.metadata.needs_buffer


def stat_source(source: str, ctx) -> Metadata:
    """Stat a source path without following symlinks.

    Standard input (``-``) is ``fstat``-ed and always marked as needing buffering. A symlink to an
    anonymous pipe (``/dev/fd/63 -> pipe:[1234]``) is treated as that pipe's content.
    """
    if source == STDIN_SOURCE:
        try:
            s = os.fstat(ctx.stdin.fileno())
        except (AttributeError, io.UnsupportedOperation):
            # In-memory stream: nothing to stat
            return Metadata(EntryKind.OTHER, mode=0o644, mtime_ns=ctx.start_time_ns,
                            needs_buffer=True)
        metadata = Metadata.from_statresult(s)
        metadata.needs_buffer = True
        return metadata

    path = ctx.filesystem_path(source)
    s = os.lstat(path)
    if not stat.S_ISLNK(s.st_mode):
        return Metadata.from_statresult(s)

    link = os.readlink(path)
    metadata = Metadata.from_statresult(s, link_target=link)
    if _is_process_pipe(source, link):
        metadata.kind = EntryKind.OTHER
        metadata.link_target = None
        metadata.needs_buffer = True
    return metadata


def resolve(source: str, destination: str, options: EntryOptions, ctx,
            metadata: Metadata) -> Optional[ResolvedEntry]:
    """Merge on-disk metadata with the entry options into the header to write.

    Args:
        source: source path as given (used for messages)
        destination: cleaned archive path, see :func:`maptar.core.paths.map_destination`
        options: the entry's overrides
        ctx: the run context, providing the header format, identity lookups and filters
        metadata: result of :func:`stat_source` for ``source``

    Returns:
        The resolved entry, or None if the entry is to be skipped: its kind cannot be archived or
        the destination filters reject it.
    """
    kind = options.force_kind or metadata.kind
    if kind is EntryKind.OTHER:
        if not metadata.needs_buffer:
            logger.warning('skipping file: %s: cannot add file', source)
            return None
        kind = EntryKind.REGULAR

    name = destination
    if kind is EntryKind.DIRECTORY and not name.endswith('/'):
        name += '/'

    if kind in (EntryKind.SYMLINK, EntryKind.HARDLINK):
        link_target = options.link_target or metadata.link_target
    else:
        link_target = ''

    header = HeaderEntry(
        name=name,
        kind=kind,
        mode=options.mode if options.mode is not None else metadata.mode,
        mtime_ns=options.mtime_ns if options.mtime_ns is not None else metadata.mtime_ns,
        size=metadata.size if kind is EntryKind.REGULAR else 0,
        atime_ns=options.atime_ns,
        ctime_ns=options.ctime_ns,
        link_target=link_target,
        format=ctx.format,
    )

    ownership = resolve_ownership(metadata, options, ctx.identities)
    if ownership is not None:
        user, group = ownership
        header.uid, header.uname = user.uid, user.name
        header.gid, header.gname = group.gid, group.name

    if ctx.destination_filters.rejects(header.name):
        return None

    if ctx.format != tarfile.PAX_FORMAT:
        for key, ns in (('atime', header.atime_ns), ('ctime', header.ctime_ns)):
            if ns is not None:
                logger.warning('Warning: %s: %s dropped, %s headers cannot store it',
                               header.name, key, FORMAT_NAMES[ctx.format])
    return ResolvedEntry(source=source, header=header, metadata=metadata)


def resolve_ownership(metadata: Metadata, options: EntryOptions, identities):
    """Decide the (User, Group) for a header, or None to leave ownership out.

    Explicit overrides win; otherwise the file's own uid and gid are looked up. If either lookup
    fails, the header gets no ownership at all.
    """
    if options.no_ownership:
        return None

    user, group = options.user, options.group
    try:
        if user is None:
            if metadata.uid is None:
                return None
            user = identities.user_by_id(metadata.uid)
        if group is None:
            if metadata.gid is None:
                return None
            group = identities.group_by_id(metadata.gid)
    except KeyError:
        return None
    return user, group


def _is_process_pipe(source, link):
    return (
        source.startswith(_PROC_FD_DIRS) and link.startswith('pipe:[') and link.endswith(']')
    )
