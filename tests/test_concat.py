"""Tests for -A, copying the entries of existing tar streams (maptar.core.concat)."""

import io
import tarfile

import pytest

from conftest import names, read_members
from maptar.cli.main import run
from maptar.exceptions import ConcatenationError


def make_tar(*entries, format=tarfile.PAX_FORMAT, uid=1000, mtime=1577836800):
    """
    Build a tar stream in memory.

    Entries are (name, data) pairs; data None means a directory and a str means a symlink target.
    """
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode='w', format=format) as tar:
        for name, data in entries:
            info = tarfile.TarInfo(name)
            info.uid, info.gid, info.uname, info.gname = uid, 1000, 'alice', 'staff'
            info.mtime = mtime
            if data is None:
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tar.addfile(info)
            elif isinstance(data, str):
                info.type = tarfile.SYMTYPE
                info.linkname = data
                tar.addfile(info)
            else:
                info.size = len(data)
                tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def header_blocks(data):
    """Raw header blocks of a tar stream, extension headers included, up to the end marker."""
    blocks = []
    pos = 0
    while data[pos:pos + tarfile.BLOCKSIZE].strip(b'\0'):
        block = data[pos:pos + tarfile.BLOCKSIZE]
        blocks.append(block)
        size = int(block[124:136].rstrip(b'\0 ') or b'0', 8)
        pos += tarfile.BLOCKSIZE * (1 + -(-size // tarfile.BLOCKSIZE))
    return blocks


SAMPLE = make_tar(('x', None), ('x/a.txt', b'alpha'), ('x/link', 'a.txt'))


class TestConcatenate:
    def test_from_stdin(self, build):
        members = build('-A', stdin=SAMPLE)
        assert names(members) == ['x/', 'x/a.txt', 'x/link']
        (d, _), (f, body), (ln, _) = members
        assert d.isdir() and d.mode == 0o755
        assert body == b'alpha'
        assert (f.uid, f.uname, f.gname) == (1000, 'alice', 'staff')
        assert f.mtime == 1577836800
        assert ln.issym() and ln.linkname == 'a.txt'

    @pytest.mark.parametrize('args', [['-A', 'in.tar'], ['-Ain.tar']])
    def test_from_file(self, tmp_path, build, args):
        (tmp_path / 'in.tar').write_bytes(SAMPLE)
        assert names(build(*args)) == ['x/', 'x/a.txt', 'x/link']

    def test_explicit_stdin(self, build):
        assert names(build('-A-', stdin=SAMPLE)) == ['x/', 'x/a.txt', 'x/link']

    def test_relative_to_directory(self, tmp_path, build):
        (tmp_path / 'sub').mkdir()
        (tmp_path / 'sub/in.tar').write_bytes(SAMPLE)
        assert len(build('-C', 'sub', '-A', 'in.tar')) == 3

    def test_mixed_with_files(self, tree, build):
        members = build('top.txt', '-A', '-', 'a/b.txt', stdin=SAMPLE)
        assert names(members) == ['top.txt', 'x/', 'x/a.txt', 'x/link', 'a/b.txt']

    def test_empty_input(self, build):
        assert build('-A', stdin=b'') == []

    def test_streams_back_to_back(self, build):
        data = make_tar(('one', b'1')) + make_tar(('two', b'22'), format=tarfile.GNU_FORMAT)
        members = build('-A', stdin=data)
        assert [(m.name, body) for m, body in members] == [('one', b'1'), ('two', b'22')]

    def test_strip_ownership_keeps_sizes(self, build):
        # A uid this large needs a PAX record, which must go as well
        data = make_tar(('big', b'x' * 3000), ('small', b'y'), uid=3_000_000)
        members = build('-U', '-A', stdin=data)
        for member, _ in members:
            assert (member.uid, member.gid, member.uname, member.gname) == (0, 0, '', '')
            assert 'uid' not in member.pax_headers
        assert [(m.size, len(body)) for m, body in members] == [(3000, 3000), (1, 1)]

    def test_ownership_kept_by_default(self, build):
        member, _ = build('-A', stdin=make_tar(('big', b'x'), uid=3_000_000))[0]
        assert member.uid == 3_000_000

    def test_source_filters_apply(self, build):
        assert names(build('-I', r'\.txt$', '-A', stdin=SAMPLE)) == ['x/', 'x/link']
        assert names(build('-I', '^x/$', '-A', stdin=SAMPLE)) == ['x/a.txt', 'x/link']

    def test_duplicates(self, tree, build):
        data = make_tar(('top.txt', b'other'))
        members = build('top.txt', '-A-', 'top.txt:copy', stdin=data)
        assert [(m.name, body) for m, body in members] == [
            ('top.txt', b'top level'),
            ('copy', b'top level'),
        ]

        members = build('-A-', 'top.txt', stdin=data)
        assert [(m.name, body) for m, body in members] == [('top.txt', b'other')]

        assert len(build('top.txt', '-d', '-A', stdin=data)) == 2

    def test_output_format(self, make_ctx):
        # A fractional mtime needs a PAX record in the input
        data = make_tar(('f', b'data'), mtime=1577836800.5)
        assert [block[156:157] for block in header_blocks(data)] == [b'x', b'0']

        out = io.BytesIO()
        run(['-F', 'ustar', '-A', '-'], out, make_ctx(data))
        (header,) = header_blocks(out.getvalue())
        assert header[156:157] == b'0'
        assert header[257:265] == b'ustar\x0000'
        member, body = read_members(out.getvalue())[0]
        assert (member.name, member.mtime, body) == ('f', 1577836800, b'data')


class TestInvalidStreams:
    def test_garbage(self, build):
        with pytest.raises(ConcatenationError, match='error concatenating tar stream -'):
            build('-A', stdin=b'definitely not a tar file\n' * 40)

    def test_truncated_body(self, build):
        data = make_tar(('big', b'x' * 2000), format=tarfile.USTAR_FORMAT)
        with pytest.raises(ConcatenationError):
            build('-A', stdin=data[:1024])

    def test_missing_file(self, build):
        with pytest.raises(FileNotFoundError):
            build('-A', 'nope.tar')
