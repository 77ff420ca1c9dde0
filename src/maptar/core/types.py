import os
import stat
import tarfile
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..util.misc import ns_to_isoformat

NS_PER_SECOND = 1_000_000_000


class EntryKind(Enum):
    """Kind of an archive entry, or of a filesystem object before it becomes one."""

    REGULAR = 'regular'
    DIRECTORY = 'directory'
    SYMLINK = 'symlink'
    HARDLINK = 'hardlink'
    OTHER = 'other'
    """Devices, FIFOs, sockets: anything tar cannot represent natively."""


_TAR_TYPES = {
    EntryKind.REGULAR: tarfile.REGTYPE,
    EntryKind.DIRECTORY: tarfile.DIRTYPE,
    EntryKind.SYMLINK: tarfile.SYMTYPE,
    EntryKind.HARDLINK: tarfile.LNKTYPE,
}


@dataclass(frozen=True)
class User:
    """A POSIX user account: numeric id, login name and primary group id."""

    uid: int
    name: str
    gid: int


@dataclass(frozen=True)
class Group:
    """A POSIX group: numeric id and name."""

    gid: int
    name: str


class Metadata:
    """
    Facts about one filesystem object, as reported by ``lstat``/``fstat``.

    Args:
        kind: regular file, directory, symlink, or other
        mode: permission bits
        mtime_ns: last modification time in nanoseconds since the Unix epoch
        size: size in bytes (regular files only, 0 otherwise)
        uid: owning user ID
        gid: owning group ID
        link_target: target of a symlink
        needs_buffer: True if the content must be read into memory before its size is known
    """

    __slots__ = ('kind', 'mode', 'mtime_ns', 'size', 'uid', 'gid', 'link_target', 'needs_buffer')

    def __init__(
        self,
        kind: EntryKind,
        mode: int = 0,
        mtime_ns: int = 0,
        size: int = 0,
        uid: Optional[int] = None,
        gid: Optional[int] = None,
        link_target: Optional[str] = None,
        needs_buffer: bool = False,
    ):
        self.kind = kind
        self.mode = mode
        self.mtime_ns = mtime_ns
        self.size = size
        self.uid = uid
        self.gid = gid
        self.link_target = link_target
        self.needs_buffer = needs_buffer

    @classmethod
    def from_statresult(cls, s: os.stat_result, link_target: Optional[str] = None):
        """Build metadata from a stat result, obtained from the file system.

        Args:
            s: stat result, from ``os.lstat`` so that symlinks are not followed
            link_target: result of ``os.readlink`` if the object is a symlink
        """
        kind = EntryKind.OTHER
        needs_buffer = False
        if stat.S_ISREG(s.st_mode):
            kind = EntryKind.REGULAR
        elif stat.S_ISDIR(s.st_mode):
            kind = EntryKind.DIRECTORY
        elif stat.S_ISLNK(s.st_mode):
            kind = EntryKind.SYMLINK
        elif stat.S_ISCHR(s.st_mode) or stat.S_ISBLK(s.st_mode) or stat.S_ISFIFO(s.st_mode):
            needs_buffer = True

        return cls(
            kind=kind,
            mode=s.st_mode & 0o777,
            mtime_ns=s.st_mtime_ns,
            size=s.st_size if kind is EntryKind.REGULAR else 0,
            uid=s.st_uid,
            gid=s.st_gid,
            link_target=link_target,
            needs_buffer=needs_buffer,
        )

    def isdir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    def __repr__(self):
        return f'Metadata({self.kind.value}, mode={self.mode:o}, size={self.size})'


@dataclass(frozen=True)
class EntryOptions:
    """Per-entry overrides parsed from the option part of an entry token.

    ``None`` means "not overridden" for every optional field.
    """

    no_recursion: bool = False
    force_kind: Optional[EntryKind] = None
    link_target: Optional[str] = None
    no_ownership: bool = False
    user: Optional[User] = None
    group: Optional[Group] = None
    mode: Optional[int] = None
    mtime_ns: Optional[int] = None
    atime_ns: Optional[int] = None
    ctime_ns: Optional[int] = None

    @property
    def allow_recursion(self) -> bool:
        return not self.no_recursion

    def format(self) -> str:
        """Serialize to the canonical option string that parses back to equal options."""
        fields = []
        if self.force_kind is EntryKind.DIRECTORY:
            fields.append('dir')
        elif self.no_recursion:
            fields.append('norec')
        if self.force_kind is EntryKind.SYMLINK:
            fields.append(f'link={self.link_target}')
        elif self.force_kind is EntryKind.HARDLINK:
            fields.append(f'ref={self.link_target}')
        if self.user is not None:
            fields.append(f'uid={self.user.uid}')
        if self.group is not None:
            fields.append(f'gid={self.group.gid}')
        # After uid/gid, since those clear nouser
        if self.no_ownership:
            fields.append('nouser')
        if self.mode is not None:
            fields.append(f'mode=0{self.mode:o}')
        for name in ('mtime', 'atime', 'ctime'):
            ns = getattr(self, f'{name}_ns')
            if ns is not None:
                fields.append(f'{name}={ns_to_isoformat(ns)}')
        return ','.join(fields)


@dataclass(frozen=True)
class EntrySpec:
    """One parsed entry token: where to read from, where to write to, and how."""

    source: str
    destination: str
    options: EntryOptions = field(default_factory=EntryOptions)


@dataclass
class HeaderEntry:
    """
    A fully resolved archive header, ready to be written.

    Args:
        name: archive path, slash-separated, with a trailing ``/`` for directories
        kind: one of the entry kinds tar can represent
        mode: permission bits
        mtime_ns: modification time in nanoseconds since the Unix epoch
        size: body size in bytes (regular files only)
        uid, gid, uname, gname: ownership; 0 and '' when omitted
        atime_ns, ctime_ns: access and change times, or None if unset
        link_target: target of a symlink or hard link
        format: one of ``tarfile.USTAR_FORMAT``, ``tarfile.GNU_FORMAT``, ``tarfile.PAX_FORMAT``
    """

    name: str
    kind: EntryKind
    mode: int = 0o644
    mtime_ns: int = 0
    size: int = 0
    uid: int = 0
    gid: int = 0
    uname: str = ''
    gname: str = ''
    atime_ns: Optional[int] = None
    ctime_ns: Optional[int] = None
    link_target: str = ''
    format: int = tarfile.PAX_FORMAT

    def to_tarinfo(self) -> tarfile.TarInfo:
        """Convert to a :class:`tarfile.TarInfo` for serialization in ``self.format``.

        Access and change times can only be stored in PAX headers and are dropped otherwise.
        Sub-second modification times are likewise kept only for PAX.
        """
        tinfo = tarfile.TarInfo(name=self.name)
        tinfo.type = _TAR_TYPES[self.kind]
        tinfo.mode = self.mode
        tinfo.uid, tinfo.gid = self.uid, self.gid
        tinfo.uname, tinfo.gname = self.uname, self.gname
        tinfo.size = self.size if self.kind is EntryKind.REGULAR else 0
        tinfo.linkname = self.link_target

        seconds, frac = divmod(self.mtime_ns, NS_PER_SECOND)
        tinfo.mtime = seconds

        if self.format == tarfile.PAX_FORMAT:
            # tarfile keeps preset records, a float mtime would be rounded through str(float)
            if frac:
                tinfo.pax_headers['mtime'] = format_pax_time(self.mtime_ns)
            for key, ns in (('atime', self.atime_ns), ('ctime', self.ctime_ns)):
                if ns is not None:
                    tinfo.pax_headers[key] = format_pax_time(ns)
        return tinfo


def format_pax_time(ns: int) -> str:
    """Format nanoseconds since the epoch as a PAX decimal time value, e.g. '1577836800.5'."""
    sign = '-' if ns < 0 else ''
    seconds, frac = divmod(abs(ns), NS_PER_SECOND)
    if not frac:
        return f'{sign}{seconds}'
    return f'{sign}{seconds}.{frac:09d}'.rstrip('0')
