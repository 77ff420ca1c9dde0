"""Command-line interface: ``maptar [-h|--help] [FILE|OPTION]...``"""

import logging
import sys
import tarfile
from collections import deque

from ..core.concat import concatenate
from ..core.context import RunContext
from ..core.emitter import add_entry
from ..core.options import parse_entry_spec
from ..exceptions import MaptarError, UsageError
from ..io.tarstream import ArchiveWriter

PROG = 'maptar'

USAGE = f"""\
Usage: {PROG} [-h|--help] [FILE|OPTION]...

Writes a tar file to standard output.

FILE may be a filepath for a file, symlink, or directory. If FILE
contains a ':', the text after the colon is the path to write to the tar
file:

  SRC
      Add file SRC to the tar file as-is.
  SRC:
      Add file SRC to the tar file as-is.
  SRC:DEST
      Add file SRC as DEST to the tar file.

A literal ':' or '\\' in SRC or DEST is written as '\\:' or '\\\\'.

To read a file from standard input, set '-' as the SRC. If no DEST is
given for this, it defaults to dev/stdin (relative). If the link or dir
option is set, - can be used to synthesize an entry.

In the case of SRC: and SRC:DEST, an additional :OPTS may follow
(i.e., SRC::OPTS or SRC:DEST:OPTS), where OPTS is a comma-separated list
of the following options (case-sensitive):

  norec
    For directories, do not recursively add the directory's contents.
  dir
    Force the entry to be a directory. Implies norec.
  link=LINK
    Force the entry to be a symlink pointing to LINK.
  ref=LINK
    Force the entry to be a hard link pointing to LINK.
  nouser
    Strip user and group information from the entry.
  uid=UID | owner=USERNAME
    Set the owner by uid or user name.
  gid=GID | group=GROUPNAME
    Set the group by gid or group name.
  mode=MODE
    Set the file mode (hex with 0x, octal with a leading 0, or decimal).
  mtime=TIME | atime=TIME | ctime=TIME
    Set the modification, access, or change time. TIME is 'now', an
    ISO 8601 timestamp, or an integer Unix timestamp in seconds,
    milliseconds (>=12 digits), or microseconds (>=15 digits).

Whitespace before an option is ignored. Commas are not permitted inside
options.

Options may appear between files and affect the files that follow:

  -h | --help
    When passed as the first argument, print this usage text.
  -D
    Skip entries whose name was already written. (default)
  -d
    Allow duplicate entries with the same name.
  -U
    Do not assign user information to entries.
  -u
    Assign user information to entries. (default)
  -Fformat | -F format
    Set the tar header format: 'pax', '2001', 'posix.1-2001' (default),
    'ustar', '1988', 'posix.1-1988', or 'gnu'.
  -Cdir | -C dir
    Resolve subsequent files relative to dir, which is itself relative
    to the starting directory (-C. resets).
  -OREGEX | -O REGEX
    Skip entries whose archive path (after mapping) matches REGEX.
  -oREGEX | -o REGEX
    Keep only entries whose archive path (after mapping) matches REGEX.
  -IREGEX | -I REGEX
    Skip input paths (as passed) that match REGEX.
  -iREGEX | -i REGEX
    Keep only input paths that match REGEX.
  -Ri, -Ro, -R
    Reset input, output, or all filters, respectively.
  -A [FILE] | -AFILE
    Concatenate the tar stream(s) in FILE (default: standard input).
  -v | -q
    List written entries on standard error, or stop listing them.
"""

logger = logging.getLogger('maptar')


def main(argv=None):
    args = sys.argv[1:] if argv is None else list(argv)
    if not args or args[0] in ('-h', '--help'):
        sys.stderr.write(USAGE)
        sys.exit(2)

    _configure_logging()
    try:
        run(args, sys.stdout.buffer)
    except (MaptarError, OSError, ValueError, tarfile.TarError) as e:
        print(f'{PROG}: {e}', file=sys.stderr)
        sys.exit(1)


def run(args, output, ctx=None):
    """Process the arguments left to right, writing one tar stream to ``output``.

    Args:
        args: command-line arguments, without the program name
        output: binary stream to write the archive to
        ctx: run context to use; a fresh :class:`RunContext` by default

    Returns:
        The run context after processing, e.g. to inspect which paths were written.
    """
    if ctx is None:
        ctx = RunContext()
    args = deque(args)
    if args and args[0] == '--':
        args.popleft()

    with ArchiveWriter(output) as writer:
        while args:
            _handle_arg(args.popleft(), args, writer, ctx)
    return ctx


def _handle_arg(s, args, writer, ctx):
    # Concatenate
    if s == '-A':
        concatenate(writer, ctx, args.popleft() if args else '')
    elif s.startswith('-A'):
        concatenate(writer, ctx, s[2:])

    # Set format
    elif s.startswith('-F'):
        ctx.set_format(s[2:] or _require(args, '-F: missing format (ustar, pax, gnu)'))

    # Filters
    elif s == '-Ri':
        ctx.source_filters.reset()
    elif s == '-Ro':
        ctx.destination_filters.reset()
    elif s == '-R':
        ctx.source_filters.reset()
        ctx.destination_filters.reset()
    elif s[:2] in ('-i', '-I', '-o', '-O'):
        pattern = s[2:] or _require(args, f'{s[:2]}: missing regexp')
        matchers = ctx.source_filters if s[1] in 'iI' else ctx.destination_filters
        if s[1].islower():
            matchers.include(pattern)
        else:
            matchers.exclude(pattern)

    # Flags
    elif s in ('-D', '-d'):
        ctx.skip_duplicates = s == '-D'
    elif s in ('-U', '-u'):
        ctx.skip_ownership = s == '-U'
    elif s in ('-v', '-q'):
        ctx.verbose = s == '-v'

    # Change directory
    elif s.startswith('-C'):
        ctx.change_directory(s[2:] or _require(args, '-C: missing directory'))

    # Add files
    else:
        add_entry(writer, ctx, parse_entry_spec(s, ctx))


def _require(args, message):
    if not args:
        raise UsageError(message)
    return args.popleft()


def _configure_logging():
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(f'{PROG}: %(message)s'))
        logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False


if __name__ == '__main__':
    main()
