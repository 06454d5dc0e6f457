import pytest  # noqa
import loremutt
import copy
import os


@pytest.fixture(scope="function", autouse=True)
def settestdefaults(tmp_path):
    loremutt.MAIN_CONFIG = copy.deepcopy(loremutt.DEFAULT_CONFIG)
    loremutt.USER_CONFIG = {
        'name': 'Test Override',
        'email': 'test-override@example.com',
    }
    loremutt.REQSESSION = None
    os.environ['EDITOR'] = 'vi'
    yield
    for handler in list(loremutt.logger.handlers):
        loremutt.logger.removeHandler(handler)


@pytest.fixture(scope="function")
def sampledir(request):
    return os.path.join(request.fspath.dirname, 'samples')


def _git(dest, args, author=None):
    gitargs = ['-C', dest,
               '-c', 'user.name=Test Committer', '-c', 'user.email=committer@example.com',
               '-c', 'commit.gpgsign=false']
    gitargs += args
    if author:
        gitargs += ['--author', author]
    ecode, out = loremutt.git_run_command(None, gitargs, logstderr=True)
    assert ecode == 0, out
    return out


def _commit_file(dest, fname, contents, subject, author=None):
    with open(os.path.join(dest, fname), 'w') as fh:
        fh.write(contents)
    _git(dest, ['add', fname])
    _git(dest, ['commit', '-q', '-m', subject], author=author)


@pytest.fixture(scope="function")
def gitdir(tmp_path):
    """A throwaway repository with a regular commit, an empty commit and a
    merge commit, tagged as such."""
    dest = os.path.join(tmp_path, 'repo')
    ecode, out = loremutt.git_run_command(None, ['init', '-q', dest])
    assert ecode == 0
    _commit_file(dest, 'README', 'Hello\n', 'Initial commit')
    _git(dest, ['tag', 'base'])
    _commit_file(dest, 'foo.c', 'int foo(void)\n{\n\treturn 0;\n}\n', 'Fix: null deref in foo()',
                 author='Test Author <author@example.com>')
    _git(dest, ['tag', 'regular'])
    _git(dest, ['commit', '-q', '--allow-empty', '-m', 'Nothing to see here'])
    _git(dest, ['tag', 'empty'])
    _git(dest, ['checkout', '-q', '-b', 'side', 'base'])
    _commit_file(dest, 'bar.c', 'int bar(void)\n{\n\treturn 1;\n}\n', 'Add bar()')
    _git(dest, ['checkout', '-q', '-'])
    _git(dest, ['merge', '-q', '--no-ff', '-m', 'Merge branch side', 'side'])
    _git(dest, ['tag', 'merge'])
    olddir = os.getcwd()
    os.chdir(dest)
    yield dest
    os.chdir(olddir)
