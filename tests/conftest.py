import io
import os
import tarfile

import pytest

from maptar.cli.main import run
from maptar.core.context import RunContext
from maptar.core.types import Group, User

# 2020-01-01T00:00:00Z
START_NS = 1577836800 * 1_000_000_000


class FakeIdentities:
    """In-memory replacement for the system user and group databases."""

    def __init__(self):
        uid, gid = os.getuid(), os.getgid()
        self.users = {
            1000: User(uid=1000, name='alice', gid=1000),
            1001: User(uid=1001, name='bob', gid=4242),  # primary group does not exist
            0: User(uid=0, name='root', gid=0),
        }
        self.users.setdefault(uid, User(uid=uid, name='tester', gid=gid))
        self.groups = {
            1000: Group(gid=1000, name='staff'),
            50: Group(gid=50, name='wheel'),
            0: Group(gid=0, name='root'),
        }
        self.groups.setdefault(gid, Group(gid=gid, name='testers'))

    def user_by_id(self, uid):
        return self.users[uid]

    def user_by_name(self, name):
        for user in self.users.values():
            if user.name == name:
                return user
        raise KeyError(name)

    def group_by_id(self, gid):
        return self.groups[gid]

    def group_by_name(self, name):
        for group in self.groups.values():
            if group.name == name:
                return group
        raise KeyError(name)


@pytest.fixture
def identities():
    return FakeIdentities()


@pytest.fixture
def make_ctx(tmp_path, identities):
    """Factory for run contexts rooted at ``tmp_path`` with fake identities."""

    def make(stdin=b''):
        return RunContext(
            directory=tmp_path,
            identities=identities,
            start_time_ns=START_NS,
            stdin=io.BytesIO(stdin),
        )

    return make


@pytest.fixture
def ctx(make_ctx):
    return make_ctx()


@pytest.fixture
def build(make_ctx):
    """Run the command line in-process and return the archive as a list of (TarInfo, body)."""

    def build_archive(*args, stdin=b'', ctx=None):
        out = io.BytesIO()
        run(list(args), out, ctx if ctx is not None else make_ctx(stdin))
        return read_members(out.getvalue())

    return build_archive


def read_members(data):
    members = []
    with tarfile.open(fileobj=io.BytesIO(data), mode='r:') as tar:
        for member in tar:
            body = tar.extractfile(member).read() if member.isreg() else None
            members.append((member, body))
    return members


def names(members):
    """Archive names, with the trailing slash tarfile strips from directories restored."""
    return [m.name + '/' if m.isdir() else m.name for m, _ in members]


@pytest.fixture
def tree(tmp_path):
    """
    A small source tree:

        a/b.txt
        a/c/
        a/d.log
        top.txt
    """
    (tmp_path / 'a').mkdir()
    (tmp_path / 'a/b.txt').write_bytes(b'bee')
    (tmp_path / 'a/c').mkdir()
    (tmp_path / 'a/d.log').write_bytes(b'log line\n')
    (tmp_path / 'top.txt').write_bytes(b'top level')
    return tmp_path
