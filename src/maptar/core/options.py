"""Parsing of entry tokens (``SRC[:DEST[:OPTS]]``) and their option strings."""

from ..exceptions import EntrySpecError, IdentityLookupError
from ..util.misc import parse_int_literal, parse_timestamp
from .paths import find_unescaped, map_destination, unescape
from .types import EntryKind, EntryOptions, EntrySpec

_LINK_KINDS = {'link': EntryKind.SYMLINK, 'ref': EntryKind.HARDLINK}

# option name -> (identity lookup method, description, numeric)
_IDENTITY_OPTIONS = {
    'uid': ('user_by_id', 'user by id', True),
    'gid': ('group_by_id', 'group by id', True),
    'owner': ('user_by_name', 'owner by name', False),
    'group': ('group_by_name', 'group by name', False),
}


def parse_entry_spec(token, ctx) -> EntrySpec:
    """Parse one entry token into source, destination and options.

    The token is split at the first unescaped ``:`` into source and the rest, and the rest at its
    first unescaped ``:`` into destination and options. ``\\:`` and ``\\\\`` escape a colon and a
    backslash in the source and destination.

    Args:
        token: ``SRC``, ``SRC:``, ``SRC:DEST``, ``SRC:DEST:OPTS`` or ``SRC::OPTS``
        ctx: the :class:`RunContext` supplying defaults and identity lookups

    Raises:
        EntrySpecError: If the token or its options are malformed.
        InvalidDestinationError: If the destination would escape the archive root.
    """
    source, dest, opts = token, '', None
    idx = find_unescaped(token, ':')
    if idx == 0:
        raise EntrySpecError(token, 'no source')
    elif idx > 0:
        source, rest = token[:idx], token[idx + 1:]
        idx = find_unescaped(rest, ':')
        if idx >= 0:
            dest, opts = rest[:idx], rest[idx + 1:]
        else:
            dest = rest

    source = unescape(source)
    dest = unescape(dest)
    if opts is None:
        options = EntryOptions(no_ownership=ctx.skip_ownership)
    else:
        options = parse_options(opts, ctx, token=source)
    return EntrySpec(source=source, destination=map_destination(source, dest), options=options)


def parse_options(text, ctx, token='') -> EntryOptions:
    """Parse a comma-separated option string such as ``norec,mode=0644,owner=root``.

    Args:
        text: the option string
        ctx: the :class:`RunContext`; ``ctx.skip_ownership`` is the default for ``nouser`` and
            ``ctx.identities`` resolves uid/gid/owner/group
        token: name of the entry, used in error messages

    Raises:
        EntrySpecError: On unknown options, conflicting options or malformed values.
        IdentityLookupError: If a requested user or group does not exist.
    """
    fields = dict(no_ownership=ctx.skip_ownership)

    for opt in text.split(','):
        opt = opt.lstrip()
        if not opt:
            continue
        name, has_value, value = opt.partition('=')

        if opt == 'norec':
            fields['no_recursion'] = True
        elif opt == 'dir':
            if 'link_target' in fields:
                raise EntrySpecError(token, f'may not set dir with link={fields["link_target"]}')
            fields['force_kind'] = EntryKind.DIRECTORY
            fields['no_recursion'] = True
        elif has_value and name in _LINK_KINDS:
            if 'link_target' in fields:
                raise EntrySpecError(token, 'link already assigned to file')
            if fields.get('force_kind') is EntryKind.DIRECTORY:
                raise EntrySpecError(token, 'may not set link with dir')
            if not value:
                raise EntrySpecError(token, 'may not set an empty link name')
            fields['force_kind'] = _LINK_KINDS[name]
            fields['link_target'] = value
        elif opt == 'nouser':
            fields['no_ownership'] = True
        elif has_value and name in _IDENTITY_OPTIONS:
            fields['no_ownership'] = False
            key = 'group' if name in ('gid', 'group') else 'user'
            fields[key] = _lookup_identity(ctx.identities, name, value)
        elif has_value and name == 'mode':
            fields['mode'] = _parse_mode(value, token)
        elif has_value and name in ('mtime', 'atime', 'ctime'):
            ns = parse_timestamp(value, ctx.start_time_ns)
            if ns is None:
                raise EntrySpecError(token, f'invalid {name}: {value!r}')
            fields[f'{name}_ns'] = ns
        else:
            raise EntrySpecError(token, f'unexpected option: {opt!r}')

    user = fields.get('user')
    if user is not None and fields.get('group') is None:
        try:
            fields['group'] = ctx.identities.group_by_id(user.gid)
        except KeyError:
            raise IdentityLookupError(f'primary group of uid {user.uid}', user.gid) from None

    return EntryOptions(**fields)


def _lookup_identity(identities, name, value):
    method, what, numeric = _IDENTITY_OPTIONS[name]
    try:
        key = int(value) if numeric else value
        return getattr(identities, method)(key)
    except (KeyError, ValueError):
        raise IdentityLookupError(what, value) from None


def _parse_mode(value, token):
    try:
        mode = parse_int_literal(value)
    except ValueError as e:
        raise EntrySpecError(token, f'invalid mode: {e}') from None
    if mode == 0:
        raise EntrySpecError(token, 'invalid mode: may not be 0')
    elif mode < 0:
        raise EntrySpecError(token, f'invalid mode: may not be negative ({value})')
    return mode
