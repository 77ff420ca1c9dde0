"""Path utilities for mapping filesystem paths to archive paths."""

import os
import posixpath

from ..exceptions import InvalidDestinationError

STDIN_SOURCE = '-'  #: Source token meaning standard input
STDIN_DESTINATION = 'dev/stdin'  #: Archive path used for standard input when none is given

ROOT_MARKERS = ('.', '..', '/')


def to_slash(path):
    """Convert OS path separators to forward slashes."""
    if os.sep != '/':
        path = path.replace(os.sep, '/')
    return path


def clean_path(path):
    """Return the shortest equivalent slash-separated path.

    Collapses repeated separators and ``.`` segments and resolves ``..`` lexically. The empty path
    becomes ``.`` and a rooted path stays rooted.
    """
    if not path:
        return '.'
    x = posixpath.normpath(path)
    # normpath keeps exactly two leading slashes, POSIX allows that but we do not
    if x.startswith('//'):
        x = '/' + x.lstrip('/')
    return x


def default_destination(source):
    """Archive path for a source given without an explicit destination.

    Absolute paths are rebased under ``.`` so that the archive never contains rooted names.
    """
    if source == STDIN_SOURCE:
        return STDIN_DESTINATION
    dest = to_slash(source)
    if dest.startswith('/'):
        dest = clean_path('.' + dest)
    return dest


def map_destination(source, destination=''):
    """Compute the cleaned archive path for a source and an optional destination.

    Raises:
        InvalidDestinationError: If the result would escape the archive root.
    """
    if not destination:
        destination = default_destination(source)
    destination = clean_path(to_slash(destination))
    check_destination(destination)
    return destination


def check_destination(destination):
    if destination == '..' or destination.startswith('../'):
        raise InvalidDestinationError(destination)


def is_root_marker(name):
    """True if the archive name denotes the archive root itself (``.``, ``./``, ``..``, ``/``)."""
    return clean_path(name) in ROOT_MARKERS


def join_destination(prefix, relpath):
    """Place ``relpath`` (relative to a walked directory) under the destination ``prefix``."""
    return clean_path(posixpath.join(prefix, relpath))


def find_unescaped(s, needle):
    """Find first occurrence of needle not preceded by odd number of backslashes.

    Returns index or -1 if not found.
    """
    i = 0
    while i < len(s):
        idx = s.find(needle, i)
        if idx == -1:
            return -1
        # Count preceding backslashes
        num_backslashes = 0
        j = idx - 1
        while j >= 0 and s[j] == '\\':
            num_backslashes += 1
            j -= 1
        if num_backslashes % 2 == 0:
            return idx
        i = idx + 1
    return -1


def unescape(s):
    """Unescape \\: -> : and \\\\ -> \\."""
    result = []
    i = 0
    while i < len(s):
        if s[i] == '\\' and i + 1 < len(s) and s[i + 1] in '\\:':
            result.append(s[i + 1])
            i += 2
        else:
            result.append(s[i])
            i += 1
    return ''.join(result)
