#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2020 by the Linux Foundation
#

import os
import shutil
import signal
import subprocess
import loremutt

from typing import List, Optional

from loremutt import LookupConfig
from loremutt.commit import CommitInfo

logger = loremutt.logger

INDEX_FORMAT = '%4C %Z %{%Y-%m-%d %H:%M} %-15.15F %?M?(%3M)&     ? %s'
# Same, but with a column of trailer markers after the flags
TAGS_INDEX_FORMAT = ('%4C %Z %@fixes@%@sob@%@acked@%@reviewed@%@tested@ '
                     '%{%Y-%m-%d %H:%M} %-15.15F %?M?(%3M)&     ? %s')

# hook name, trailer, marker
TRAILER_TAGS = [
    ('fixes', 'Fixes', 'F'),
    ('sob', 'Signed-off-by', 'S'),
    ('acked', 'Acked-by', 'A'),
    ('reviewed', 'Reviewed-by', 'R'),
    ('tested', 'Tested-by', 'T'),
]

SHOW_HEADERS = [
    'from:',
    'to:',
    'cc:',
    'date:',
    'subject:',
    'message-id:',
    'in-reply-to:',
    'list-id:',
]

COLORS = [
    'color normal default default',
    'color indicator black cyan',
    'color tree cyan default',
    'color status brightwhite blue',
    'color tilde blue default',
    'color index brightyellow default "~N"',
    'color index yellow default "~O"',
    'color index brightred default "~F"',
    'color index red default "~D"',
    'color index magenta default "~T"',
    'color hdrdefault cyan default',
    'color header brightyellow default "^From:"',
    'color header brightwhite default "^Subject:"',
    'color header green default "^Date:"',
    'color quoted green default',
    'color quoted1 cyan default',
    'color quoted2 yellow default',
    'color quoted3 magenta default',
    'color signature blue default',
    r'color body brightwhite default "^diff --git .*"',
    r'color body brightwhite default "^(---|\\+\\+\\+) .*"',
    r'color body cyan default "^@@ .*"',
    r'color body green default "^\\+.*"',
    r'color body red default "^-.*"',
]

# Only neomutt knows how to color individual index columns
NEOMUTT_COLORS = [
    'color index_flags brightred default "~F"',
    'color index_date green default',
    'color index_number blue default',
]


def mutt_quote(value: str) -> str:
    for char in ('\\', '"', '`', '$'):
        value = value.replace(char, '\\' + char)
    return '"%s"' % value


def get_reader(override: Optional[str] = None) -> str:
    if override:
        return override
    config = loremutt.get_main_config()
    if config.get('reader'):
        return config['reader']
    if shutil.which('neomutt'):
        return 'neomutt'
    return 'mutt'


def make_muttrc(lconfig: LookupConfig, cinfo: Optional[CommitInfo] = None,
                reader: str = 'mutt', editor: Optional[str] = None,
                usercfg: Optional[dict] = None, include: Optional[str] = None) -> str:
    if usercfg is None:
        usercfg = loremutt.get_user_config()
    if editor is None:
        editor = loremutt.get_editor()

    lines: List[str] = ['# Generated by loremutt %s' % loremutt.__VERSION__]
    if include:
        lines.append('source %s' % mutt_quote(os.path.expanduser(include)))

    # Identity
    if usercfg.get('name'):
        lines.append('set realname=%s' % mutt_quote(usercfg['name']))
    if usercfg.get('email'):
        lines.append('set from=%s' % mutt_quote(usercfg['email']))
    lines.append('set editor=%s' % mutt_quote(editor))

    # Display and compose
    lines += [
        'unset help',
        'unset markers',
        'set use_from=yes',
        'set use_envelope_from=yes',
        'set reverse_name=yes',
        'set reverse_realname=yes',
        'set edit_headers=yes',
        'alternative_order text/plain text/enriched text/html',
        'ignore *',
        'unignore %s' % ' '.join(SHOW_HEADERS),
        'hdr_order %s' % ' '.join(SHOW_HEADERS),
        'set sort=%s' % lconfig.sort.value,
        'set sort_aux=%s' % lconfig.sort_aux,
    ]

    neomutt = os.path.basename(reader).startswith('neomutt')
    if lconfig.tags and not neomutt:
        logger.warning('Trailer tags need neomutt, ignoring --tags for %s', reader)

    if lconfig.tags and neomutt:
        # These have to look at the message body, so they are slow on large mailboxes
        for hookname, trailer, marker in TRAILER_TAGS:
            lines.append("index-format-hook %s \"~b '^%s: '\" \"%s\"" % (hookname, trailer, marker))
            lines.append('index-format-hook %s "~A" " "' % hookname)
        lines.append('set index_format=%s' % mutt_quote(TAGS_INDEX_FORMAT))
    else:
        lines.append('set index_format=%s' % mutt_quote(INDEX_FORMAT))

    lines += COLORS
    if neomutt:
        lines += NEOMUTT_COLORS

    if cinfo is not None:
        if cinfo.token:
            lines.append('color index brightwhite default %s' % mutt_quote('~s %s' % cinfo.token))
        author = loremutt.make_slug(cinfo.author_email)
        committer = loremutt.make_slug(cinfo.committer_email)
        if committer and committer != author:
            lines.append('color index brightcyan default %s' % mutt_quote('~f %s' % committer))
        if author:
            lines.append('color index brightgreen default %s' % mutt_quote('~f %s' % author))

    return '\n'.join(lines) + '\n'


def write_muttrc(muttrc: str, workdir: str) -> str:
    muttrcfile = os.path.join(workdir, 'muttrc')
    with open(muttrcfile, 'w') as fh:
        fh.write(muttrc)
    logger.debug('Wrote %s', muttrcfile)
    return muttrcfile


def launch_reader(reader: str, mboxfile: str, muttrcfile: Optional[str] = None) -> int:
    cmdargs = [reader]
    if muttrcfile:
        cmdargs += ['-F', muttrcfile]
    cmdargs += ['-f', mboxfile]
    logger.debug('Running %s' % ' '.join(cmdargs))
    sp = subprocess.Popen(cmdargs)
    # The reader owns the terminal now, so let it deal with ^C
    prevhandler = signal.signal(signal.SIGINT, signal.SIG_IGN)
    try:
        sp.wait()
    finally:
        signal.signal(signal.SIGINT, prevhandler)
    logger.debug('%s exited with %s', reader, sp.returncode)
    return sp.returncode
