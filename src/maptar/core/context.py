"""Mutable state of one archive-building run."""

import logging
import os
import os.path as osp
import sys
import tarfile
import time

from ..exceptions import UsageError
from .filters import MatcherSet
from .identity import Identities

logger = logging.getLogger(__name__)

FORMATS = {
    'ustar': tarfile.USTAR_FORMAT,
    '1988': tarfile.USTAR_FORMAT,
    'posix.1-1988': tarfile.USTAR_FORMAT,
    'pax': tarfile.PAX_FORMAT,
    '2001': tarfile.PAX_FORMAT,
    'posix.1-2001': tarfile.PAX_FORMAT,
    'gnu': tarfile.GNU_FORMAT,
}

FORMAT_NAMES = {
    tarfile.USTAR_FORMAT: 'USTAR',
    tarfile.PAX_FORMAT: 'PAX',
    tarfile.GNU_FORMAT: 'GNU',
}


class RunContext:
    """
    Settings and bookkeeping shared by every entry of one run.

    Command-line flags mutate it as they are encountered, so each setting applies to the entries
    that follow it.

    Args:
        directory: directory that relative sources are resolved against (default: the current
            working directory)
        identities: user/group lookup service (default: the system databases)
        start_time_ns: time substituted for ``now`` in timestamp options
        stdin: binary stream read for the ``-`` source and for ``-A`` without a path (default:
            ``sys.stdin.buffer``)
    """

    def __init__(self, directory=None, identities=None, start_time_ns=None, stdin=None):
        self.initial_directory = osp.abspath(directory if directory is not None else os.getcwd())
        self.directory = self.initial_directory
        """Directory that relative source paths are resolved against."""

        self.identities = identities if identities is not None else Identities()
        self._stdin = stdin

        if start_time_ns is None:
            # Truncated so that 'now' survives a round trip through an option string
            start_time_ns = time.time_ns() // 1000 * 1000
        self.start_time_ns = start_time_ns

        self.format = tarfile.PAX_FORMAT
        """Tar header format for entries written from now on."""

        self.source_filters = MatcherSet()
        self.destination_filters = MatcherSet()

        self.skip_duplicates = True
        """If True, an archive path is written at most once."""

        self.skip_ownership = False
        """If True, entries carry no user/group unless explicitly given."""

        self.verbose = False

        self.written = set()
        """Archive paths written so far. Grows regardless of ``skip_duplicates``."""

    def set_format(self, name: str):
        """Select the header format by name: ustar, pax, gnu or one of their aliases."""
        try:
            new_format = FORMATS[name.lower()]
        except KeyError:
            raise UsageError(f'-F: unrecognized format {name!r}') from None

        if new_format != self.format and self.written:
            logger.warning(
                'Warning: tar format changing mid-stream (%s -> %s)',
                FORMAT_NAMES[self.format],
                FORMAT_NAMES[new_format],
            )
        self.format = new_format

    def change_directory(self, path: str):
        """Resolve later sources against ``path``, taken relative to the initial directory."""
        new_directory = osp.normpath(osp.join(self.initial_directory, path))
        if not osp.isdir(new_directory):
            raise UsageError(f'cd: {path}: no such directory')
        self.directory = new_directory

    def filesystem_path(self, source: str) -> str:
        """Path under which ``source`` is found on the filesystem."""
        return osp.join(self.directory, source)

    def is_duplicate(self, name: str) -> bool:
        return self.skip_duplicates and name in self.written

    def mark_written(self, name: str):
        self.written.add(name)

    @property
    def stdin(self):
        if self._stdin is None:
            self._stdin = sys.stdin.buffer
        return self._stdin
