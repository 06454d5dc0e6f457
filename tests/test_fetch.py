import pytest  # noqa
import gzip
import os
import loremutt
import loremutt.fetch
import requests

from unittest import mock

from loremutt import ResultMode
from loremutt.query import LoreQuery

SAMPLE_MBOX = b'From mboxrd@z Thu Jan  1 00:00:00 1970\nMessage-Id: <a@b>\n\nHi\n\n'


def _mock_session(status_code=200, content=b'', exc=None):
    resp = mock.Mock()
    resp.status_code = status_code
    resp.content = content
    session = mock.Mock()
    if exc is not None:
        session.post.side_effect = exc
    else:
        session.post.return_value = resp
    return session


def test_get_query_url():
    lquery = LoreQuery(query='patchid:abcdef', resultmode=ResultMode.FULL_THREADS)
    assert (loremutt.fetch.get_query_url(lquery)
            == 'https://lore.kernel.org/all/?q=patchid:abcdef&x=m')


def test_get_query_url_bad_mask():
    lquery = LoreQuery(query='patchid:abcdef', resultmode=ResultMode.FULL_THREADS)
    with pytest.raises(RuntimeError):
        loremutt.fetch.get_query_url(lquery, searchmask='https://example.com/')


@pytest.mark.parametrize('resultmode,insecure', [
    (ResultMode.FULL_THREADS, False),
    (ResultMode.RESULTS_ONLY, True),
])
def test_fetch_mailbox(tmp_path, resultmode, insecure):
    lquery = LoreQuery(query='s:foo', resultmode=resultmode)
    session = _mock_session(content=gzip.compress(SAMPLE_MBOX))
    with mock.patch('loremutt.get_requests_session', return_value=session):
        mboxfile = loremutt.fetch.fetch_mailbox(lquery, str(tmp_path), insecure=insecure)
    url = session.post.call_args[0][0]
    kwargs = session.post.call_args[1]
    assert url == 'https://lore.kernel.org/all/?q=s:foo&x=m'
    assert kwargs['data'] == resultmode.value
    assert kwargs['verify'] is not insecure
    assert mboxfile == os.path.join(str(tmp_path), 'mbox')
    with open(mboxfile, 'rb') as fh:
        assert fh.read() == SAMPLE_MBOX
    assert not os.path.exists(os.path.join(str(tmp_path), 'mbox.gz'))


@pytest.mark.parametrize('status_code,content,exc,error', [
    (404, b'', None, LookupError),
    (500, b'', None, RuntimeError),
    (403, b'', None, RuntimeError),
    (200, b'this is not gzip', None, RuntimeError),
    (200, gzip.compress(SAMPLE_MBOX)[:20], None, RuntimeError),
    (200, gzip.compress(b''), None, LookupError),
    (200, b'', requests.exceptions.SSLError('certificate verify failed'), RuntimeError),
    (200, b'', requests.exceptions.TooManyRedirects('Exceeded 30 redirects'), RuntimeError),
])
def test_fetch_mailbox_errors(tmp_path, status_code, content, exc, error):
    lquery = LoreQuery(query='s:foo', resultmode=ResultMode.RESULTS_ONLY)
    session = _mock_session(status_code=status_code, content=content, exc=exc)
    with mock.patch('loremutt.get_requests_session', return_value=session):
        with pytest.raises(error):
            loremutt.fetch.fetch_mailbox(lquery, str(tmp_path))
    assert not os.path.exists(os.path.join(str(tmp_path), 'mbox'))
