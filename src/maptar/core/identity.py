"""User and group lookups for archive ownership fields."""

import grp
import pwd

from .types import Group, User


class Identities:
    """Looks up users and groups in the system databases, caching results.

    All lookups raise ``KeyError`` if the user or group does not exist.
    """

    def __init__(self):
        self._cache = {}

    def user_by_id(self, uid: int) -> User:
        return self._cached(('uid', uid), lambda: _user(pwd.getpwuid(uid)))

    def user_by_name(self, name: str) -> User:
        return self._cached(('owner', name), lambda: _user(pwd.getpwnam(name)))

    def group_by_id(self, gid: int) -> Group:
        return self._cached(('gid', gid), lambda: _group(grp.getgrgid(gid)))

    def group_by_name(self, name: str) -> Group:
        return self._cached(('group', name), lambda: _group(grp.getgrnam(name)))

    def _cached(self, key, lookup):
        try:
            result = self._cache[key]
        except KeyError:
            try:
                result = lookup()
            except (KeyError, OverflowError):
                result = None
            self._cache[key] = result
        if result is None:
            raise KeyError(key[1])
        return result


def _user(entry):
    return User(uid=entry.pw_uid, name=entry.pw_name, gid=entry.pw_gid)


def _group(entry):
    return Group(gid=entry.gr_gid, name=entry.gr_name)
