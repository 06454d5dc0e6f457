import pytest  # noqa
import os
import shutil
import loremutt
import loremutt.dedupe

from unittest import mock

from loremutt.dedupe import MsgidDeduplicator, FormailDeduplicator


def _read(path):
    with open(path, 'rb') as fh:
        return fh.read()


def test_split_mbox_bytes(sampledir):
    chunks = MsgidDeduplicator.split_mbox_bytes(_read(os.path.join(sampledir, 'dupes.mbox')))
    assert len(chunks) == 5
    for chunk in chunks:
        assert chunk.startswith(b'From mboxrd@z ')
    # Escaped From lines in the body are not separators
    assert b'>From the looks of it' in chunks[1]


def test_builtin_dedupe(sampledir, tmp_path):
    src = os.path.join(sampledir, 'dupes.mbox')
    bmbox = _read(src)
    chunks = MsgidDeduplicator.split_mbox_bytes(bmbox)
    deduper = MsgidDeduplicator()
    deduped = deduper.dedupe_bytes(bmbox)
    # Only the re-sent copy of the patch is gone, everything else is kept in order
    assert deduped == chunks[0] + chunks[1] + chunks[3] + chunks[4]
    # Running it again changes nothing
    assert deduper.dedupe_bytes(deduped) == deduped


def test_builtin_dedupe_unique(tmp_path):
    bmbox = b''
    for x in range(0, 5):
        bmbox += b'From mboxrd@z Thu Jan  1 00:00:00 1970\nMessage-Id: <%d@example.com>\n\nBody %d\n\n' % (x, x)
    assert MsgidDeduplicator().dedupe_bytes(bmbox) == bmbox


def test_process_mailbox_raw(sampledir, tmp_path):
    src = os.path.join(str(tmp_path), 'mbox')
    shutil.copyfile(os.path.join(sampledir, 'dupes.mbox'), src)
    dest = os.path.join(str(tmp_path), 'out.mbox')
    assert loremutt.dedupe.process_mailbox(src, dest, None) == dest
    assert not os.path.exists(src)
    assert _read(dest) == _read(os.path.join(sampledir, 'dupes.mbox'))


def test_process_mailbox_builtin(sampledir, tmp_path):
    src = os.path.join(str(tmp_path), 'mbox')
    shutil.copyfile(os.path.join(sampledir, 'dupes.mbox'), src)
    dest = os.path.join(str(tmp_path), 'out.mbox')
    loremutt.dedupe.process_mailbox(src, dest, MsgidDeduplicator())
    assert not os.path.exists(src)
    assert _read(dest).count(b'Message-Id: <20250113-foo-v1-1@example.com>') == 1


@pytest.mark.parametrize('tool,found,expected', [
    ('builtin', False, MsgidDeduplicator),
    ('formail', True, FormailDeduplicator),
    ('formail', False, type(None)),
    ('none', True, type(None)),
])
def test_get_deduplicator(monkeypatch, tool, found, expected):
    monkeypatch.setattr(shutil, 'which', lambda x: f'/usr/bin/{x}' if found else None)
    loremutt.MAIN_CONFIG['dedupe-tool'] = tool
    assert isinstance(loremutt.dedupe.get_deduplicator(), expected)


def test_get_deduplicator_cachesize(monkeypatch):
    monkeypatch.setattr(shutil, 'which', lambda x: f'/usr/bin/{x}')
    loremutt.MAIN_CONFIG['formail-cache-size'] = '5000'
    assert loremutt.dedupe.get_deduplicator('formail').cachesize == 5000
    loremutt.MAIN_CONFIG['formail-cache-size'] = 'lots'
    assert loremutt.dedupe.get_deduplicator('formail').cachesize == 1000000


def test_formail_command(sampledir, tmp_path):
    src = os.path.join(sampledir, 'dupes.mbox')
    dest = os.path.join(str(tmp_path), 'once.mbox')
    with mock.patch('loremutt._run_command', return_value=(0, b'deduped\n', b'')) as rc:
        FormailDeduplicator(cachesize=5000).process(src, dest)
    cachefile = os.path.join(str(tmp_path), '.msgid.cache')
    rc.assert_called_once_with(['formail', '-D', '5000', cachefile, '-s'], stdin=_read(src))
    assert _read(dest) == b'deduped\n'


def test_formail_failure(sampledir, tmp_path):
    src = os.path.join(sampledir, 'dupes.mbox')
    dest = os.path.join(str(tmp_path), 'once.mbox')
    with mock.patch('loremutt._run_command', return_value=(1, b'', b'bad cache\n')):
        with pytest.raises(RuntimeError, match='formail exited with 1: bad cache'):
            FormailDeduplicator().process(src, dest)
    assert not os.path.exists(dest)


@pytest.mark.skipif(shutil.which('formail') is None, reason='formail is not installed')
def test_formail_dedupe(sampledir, tmp_path):
    src = os.path.join(sampledir, 'dupes.mbox')
    dest = os.path.join(str(tmp_path), 'once.mbox')
    FormailDeduplicator().process(src, dest)
    deduped = _read(dest)
    assert deduped.count(b'<20250113-foo-v1-1@example.com>') == 2
    assert deduped.count(b'Message-Id: <reply-1@example.com>') == 1
    assert not os.path.exists(os.path.join(str(tmp_path), '.msgid.cache'))
    # Running it again changes nothing
    dest2 = os.path.join(str(tmp_path), 'twice.mbox')
    FormailDeduplicator().process(dest, dest2)
    assert _read(dest2) == deduped
