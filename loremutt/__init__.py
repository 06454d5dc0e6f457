# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2020 by the Linux Foundation
import subprocess
import logging
import copy
import enum
import os
import re
# noinspection PyCompatibility
import pwd

import requests

from typing import Optional, Tuple, List, Union, NamedTuple

__VERSION__ = '0.3.0'

logger = logging.getLogger('loremutt')

LOREADDR = 'https://lore.kernel.org'

DEFAULT_CONFIG = {
    # The query is passed already urlencoded
    'searchmask': LOREADDR + '/all/?q=%s&x=m',
    # If not set, we'll use neomutt if we can find it, and mutt otherwise
    'reader': None,
    # formail: pipe through procmail's formail -D
    # builtin: drop repeated message-ids ourselves
    # none: never deduplicate
    'dedupe-tool': 'formail',
    # Size of the message-id cache formail keeps while deduplicating
    'formail-cache-size': '1000000',
    # Additional repositories to look for commits in, tried after the current dir
    'gitdir': list(),
    # Secondary sort key for the reader
    'sort-aux': 'last-date-received',
    # If set, we will source this file at the top of the generated muttrc
    'muttrc-include': None,
}

# Well-known places where people keep their kernel checkouts
DEFAULT_GITDIRS = [
    '~/linux',
    '~/src/linux',
    '~/git/linux',
    '~/work/linux',
]

# This is where we store actual config
MAIN_CONFIG = None
# This is git-config user.*
USER_CONFIG = None

# Used for storing our requests session
REQSESSION = None

SLUG_RE = re.compile(r'[^a-zA-Z0-9]')


class SearchMode(enum.Enum):
    PATCHID = 'patchid'
    SUBJECT = 'subject'
    QUERY = 'query'


class ResultMode(enum.Enum):
    # These are the literal POST bodies public-inbox expects
    FULL_THREADS = 'x=full+threads'
    RESULTS_ONLY = 'z=results+only'


class SortOrder(enum.Enum):
    THREADS = 'threads'
    REVERSE_THREADS = 'reverse-threads'


class LookupConfig(NamedTuple):
    searchmode: SearchMode
    operand: str
    forcemode: Optional[ResultMode] = None
    dedupe: bool = True
    tags: bool = False
    sort: SortOrder = SortOrder.THREADS
    sort_aux: str = 'last-date-received'
    reader: Optional[str] = None
    insecure: bool = False
    qprefix: Optional[str] = None
    muttrc: bool = True
    keep: bool = False
    savembox: Optional[str] = None


def make_slug(text: str, filler: str = '.') -> str:
    """Replace every character that is not an ASCII letter or digit with
    the filler, so the result is usable both as a filename and as a
    loose regex matching the original text."""
    return SLUG_RE.sub(filler, text)


def _run_command(cmdargs: List[str], stdin: Optional[bytes] = None) -> Tuple[int, bytes, bytes]:
    logger.debug('Running %s' % ' '.join(cmdargs))
    sp = subprocess.Popen(cmdargs, stdout=subprocess.PIPE, stdin=subprocess.PIPE, stderr=subprocess.PIPE)
    (output, error) = sp.communicate(input=stdin)
    return sp.returncode, output, error


def git_run_command(gitdir: Optional[str], args: List[str], stdin: Optional[bytes] = None,
                    logstderr: bool = False, decode: bool = True) -> Tuple[int, Union[str, bytes]]:
    cmdargs = ['git', '--no-pager']
    if gitdir:
        if os.path.exists(os.path.join(gitdir, '.git')):
            gitdir = os.path.join(gitdir, '.git')
        cmdargs += ['--git-dir', gitdir]

    # counteract some potential local settings
    if args[0] == 'log':
        args.insert(1, '--no-abbrev-commit')

    cmdargs += args

    ecode, out, err = _run_command(cmdargs, stdin=stdin)

    if decode:
        out = out.decode(errors='replace')

    if logstderr and len(err.strip()):
        if decode:
            err = err.decode(errors='replace')
        logger.debug('Stderr: %s', err)
        out += err

    return ecode, out


def git_get_command_lines(gitdir: Optional[str], args: list) -> List[str]:
    ecode, out = git_run_command(gitdir, args)
    lines = list()
    if out:
        for line in out.split('\n'):
            if line == '':
                continue
            lines.append(line)

    return lines


def git_get_toplevel(path: Optional[str] = None) -> Optional[str]:
    topdir = None
    # Are we in a git tree and if so, what is our toplevel?
    gitargs = ['rev-parse', '--show-toplevel']
    if path:
        gitargs = ['-C', path] + gitargs
    lines = git_get_command_lines(None, gitargs)
    if len(lines) == 1:
        topdir = lines[0]
    return topdir


def git_commit_exists(gitdir: Optional[str], commitish: str) -> bool:
    gitargs = ['cat-file', '-e', f'{commitish}^{{commit}}']
    ecode, out = git_run_command(gitdir, gitargs)
    return ecode == 0


def git_revparse_obj(gitobj: str, gitdir: Optional[str] = None) -> str:
    ecode, out = git_run_command(gitdir, ['rev-parse', '--verify', '--quiet', gitobj])
    if ecode > 0:
        raise RuntimeError('No such object: %s' % gitobj)
    return out.strip()


def get_config_from_git(regexp: str, defaults: Optional[dict] = None,
                        multivals: Optional[list] = None) -> dict:
    if multivals is None:
        multivals = list()
    args = ['config', '-z', '--get-regexp', regexp]
    ecode, out = git_run_command(None, args)
    gitconfig = defaults
    if not gitconfig:
        gitconfig = dict()
    if not out:
        return gitconfig

    for line in out.split('\x00'):
        if not line:
            continue
        try:
            key, value = line.split('\n', 1)
        except ValueError:
            # Boolean-style entry without a value
            key, value = line, 'true'
        chunks = key.split('.')
        cfgkey = chunks[-1].lower()
        if cfgkey in multivals:
            if not isinstance(gitconfig.get(cfgkey), list):
                gitconfig[cfgkey] = list()
            gitconfig[cfgkey].append(value)
        else:
            gitconfig[cfgkey] = value

    return gitconfig


def get_main_config() -> dict:
    global MAIN_CONFIG
    if MAIN_CONFIG is None:
        defcfg = copy.deepcopy(DEFAULT_CONFIG)
        config = get_config_from_git(r'loremutt\..*', defaults=defcfg, multivals=['gitdir'])
        if config['dedupe-tool'] not in ('formail', 'builtin', 'none'):
            logger.critical('loremutt.dedupe-tool must be one of formail, builtin, none: %s',
                            config['dedupe-tool'])
            config['dedupe-tool'] = DEFAULT_CONFIG['dedupe-tool']
        MAIN_CONFIG = config

    return MAIN_CONFIG


def get_user_config() -> dict:
    global USER_CONFIG
    if USER_CONFIG is None:
        USER_CONFIG = get_config_from_git(r'user\..*')
        if 'name' not in USER_CONFIG:
            udata = pwd.getpwuid(os.getuid())
            USER_CONFIG['name'] = udata.pw_gecos
    return USER_CONFIG


def get_editor() -> str:
    corecfg = get_config_from_git(r'core\..*', {'editor': os.environ.get('EDITOR', 'vi')})
    return corecfg.get('editor')


def get_requests_session() -> requests.Session:
    global REQSESSION
    if REQSESSION is None:
        REQSESSION = requests.session()
        REQSESSION.headers.update({'User-Agent': 'loremutt/%s' % __VERSION__})
    return REQSESSION
