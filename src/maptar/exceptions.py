"""Exceptions raised while building a maptar archive"""


class MaptarError(Exception):
    """Base class for all exceptions in maptar"""

    def __init__(self, message: str):
        super().__init__(message)


class UsageError(MaptarError):
    """Exception raised for malformed command-line flags, e.g. a flag missing its argument."""

    def __init__(self, message: str):
        super().__init__(message)


class EntrySpecError(MaptarError, ValueError):
    """Exception raised when an entry token or its option string cannot be parsed.

    Args:
        token: the entry token (or its source part) that was being parsed
        reason: the rule that was violated
    """

    def __init__(self, token: str, reason: str):
        self.token = token
        self.reason = reason
        super().__init__(f'invalid entry {token!r}: {reason}')


class InvalidDestinationError(MaptarError, ValueError):
    """Exception raised when a destination path would point above the archive root.

    Args:
        destination: the cleaned destination path
    """

    def __init__(self, destination: str):
        self.destination = destination
        super().__init__(f'add file: destination may not contain .. ({destination})')


class IdentityLookupError(MaptarError, KeyError):
    """Exception raised when an explicitly requested user or group does not exist.

    Args:
        what: description of the lookup, e.g. 'owner by name'
        value: the id or name that was looked up
    """

    def __init__(self, what: str, value):
        self.what = what
        self.value = value
        super().__init__(f'unable to lookup {what}: {value!r}')

    def __str__(self):
        # KeyError would quote the message
        return self.args[0]


class SizeMismatchError(MaptarError):
    """Exception raised when the number of body bytes copied differs from the header size.

    This happens when a file changes between being stat'ed and being read.

    Args:
        path: path of the source file
        written: number of bytes actually available
        expected: size declared in the header
    """

    def __init__(self, path: str, written: int, expected: int):
        self.path = path
        self.written = written
        self.expected = expected
        super().__init__(
            f'copy error: size mismatch for {path}: wrote {written}, want {expected}'
        )


class ConcatenationError(MaptarError):
    """Exception raised when a tar stream given to -A cannot be read.

    Args:
        source: path of the stream ('-' for standard input)
        reason: description of the failure
    """

    def __init__(self, source: str, reason: str):
        self.source = source
        super().__init__(f'-A: error concatenating tar stream {source}: {reason}')
