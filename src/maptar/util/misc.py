import re
from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_INT_PREFIXES = {'0x': 16, '0o': 8, '0b': 2}
_DIGITS = re.compile(r'[+-]?[0-9]+')
_ALNUM = re.compile(r'[0-9a-zA-Z][0-9a-zA-Z_]*')
_ISO_TIMESTAMP = re.compile(
    r'(\d{4})-(\d{2})-(\d{2})'
    r'(?:[Tt ](\d{2}):(\d{2}):(\d{2})(?:[.,](\d{1,9}))?)?'
    r'([Zz]|[+-]\d{2}:?\d{2})?'
)


def datetime_to_ns(dt):
    """Nanoseconds since the epoch. Naive datetimes are taken to be UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    delta = dt - _EPOCH
    return (delta.days * 86400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1000


def ns_to_isoformat(ns):
    """ISO 8601 in UTC with as many fraction digits as needed, up to nanoseconds."""
    seconds, frac = divmod(ns, 1_000_000_000)
    text = (_EPOCH + timedelta(seconds=seconds)).isoformat()
    if not frac:
        return text
    return text.replace('+00:00', f'.{frac:09d}'.rstrip('0') + '+00:00')


def parse_int_literal(text):
    """Parse an integer the way C does: ``0x`` is hex, a leading ``0`` is octal.

    ``0o`` and ``0b`` prefixes and ``_`` digit separators are accepted too.

    Raises:
        ValueError: If ``text`` is not an integer literal.
    """
    sign = 1
    body = text
    if body[:1] in ('+', '-'):
        sign = -1 if body[0] == '-' else 1
        body = body[1:]

    base = _INT_PREFIXES.get(body[:2].lower())
    if base is not None:
        body = body[2:]
    elif len(body) > 1 and body[0] == '0':
        base = 8
        body = body[1:]
    else:
        base = 10

    # int() would also accept surrounding whitespace and a second sign
    if not _ALNUM.fullmatch(body):
        raise ValueError(f'invalid integer literal: {text!r}')
    return sign * int(body, base)


def parse_timestamp(text, now_ns):
    """Parse a timestamp option value into nanoseconds since the epoch.

    Accepted forms:
        - ``now``: ``now_ns``
        - an ISO 8601 / RFC 3339 timestamp with up to nine fraction digits, e.g.
          ``2020-01-02T03:04:05.123456789Z`` (UTC if no offset is given)
        - an integer epoch; >= 15 digits are microseconds, >= 12 milliseconds, otherwise seconds

    Returns:
        The timestamp in nanoseconds, or None if ``text`` is none of the above.
    """
    if text == 'now':
        return now_ns

    # An integer epoch, even one that looks like a date such as 20200101
    if _DIGITS.fullmatch(text):
        value = int(text)
        if len(text) >= 15:
            return value * 1000
        elif len(text) >= 12:
            return value * 1_000_000
        return value * 1_000_000_000

    m = _ISO_TIMESTAMP.fullmatch(text)
    if m is None:
        return None
    year, month, day, hour, minute, second, fraction, offset = m.groups()
    try:
        tz = timezone.utc
        if offset and offset not in ('Z', 'z'):
            sign = -1 if offset[0] == '-' else 1
            digits = offset[1:].replace(':', '')
            tz = timezone(sign * timedelta(hours=int(digits[:2]), minutes=int(digits[2:])))
        dt = datetime(int(year), int(month), int(day), int(hour or 0), int(minute or 0),
                      int(second or 0), tzinfo=tz)
    except ValueError:
        return None
    # datetime stops at microseconds
    return datetime_to_ns(dt) + int((fraction or '').ljust(9, '0'))
