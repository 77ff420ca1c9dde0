"""Maptar writes tar streams to standard output from a list of files, each optionally mapped to a
different archive path and with overridden metadata."""

try:
    from ._version import version as __version__
except ImportError:
    __version__ = "0.1.0"

# Run state
from .core.context import RunContext

# Data types
from .core.types import (
    EntryKind,
    EntryOptions,
    EntrySpec,
    Group,
    HeaderEntry,
    Metadata,
    User,
)

# Parsing
from .core.options import parse_entry_spec, parse_options

# Writing
from .core.concat import concatenate
from .core.emitter import add_entry
from .io.tarstream import ArchiveWriter

# Exceptions
from .exceptions import (
    ConcatenationError,
    EntrySpecError,
    IdentityLookupError,
    InvalidDestinationError,
    MaptarError,
    SizeMismatchError,
    UsageError,
)

# Command-line entry points (for programmatic use)
from .cli.main import main, run

__all__ = [
    # Version
    "__version__",
    # Run state
    "RunContext",
    # Data types
    "EntryKind",
    "EntryOptions",
    "EntrySpec",
    "Group",
    "HeaderEntry",
    "Metadata",
    "User",
    # Parsing
    "parse_entry_spec",
    "parse_options",
    # Writing
    "ArchiveWriter",
    "add_entry",
    "concatenate",
    # Exceptions
    "ConcatenationError",
    "EntrySpecError",
    "IdentityLookupError",
    "InvalidDestinationError",
    "MaptarError",
    "SizeMismatchError",
    "UsageError",
    # Command-line
    "main",
    "run",
]
