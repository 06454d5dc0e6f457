#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2020 by the Linux Foundation
#

import argparse
import logging
import loremutt
import sys

from typing import List, Optional

from loremutt import SearchMode, ResultMode
from loremutt.query import FILE_PREFIX, FUNCTION_PREFIX

logger = loremutt.logger

QUERY_HELP = """\
By default, the commit's patch-id is looked up and the full threads of all
messages carrying the same patch are shown. Anything containing a colon is
passed to the archive as a search query.

Search prefixes understood by lore.kernel.org:
  s:        match within Subject, e.g. s:"a quick brown fox"
  d:        match date-time range, e.g. d:2.weeks.ago..
  b:        match within message body, including text attachments
  nq:       match non-quoted text within message body
  q:        match quoted text within message body
  f:        match within the From header
  a:        match within the To, Cc, and From headers
  tc:       match within the To and Cc headers
  l:        match List-Id header contents
  m:        match Message-ID
  rt:       match received time, like d: if sender's clock was correct
  bs:       match within the Subject and body
  dfn:      match filename from diff
  dfa:      match diff removed (-) lines
  dfb:      match diff added (+) lines
  dfhh:     match diff hunk header context (usually a function name)
  dfctx:    match diff context lines
  dfpre:    match pre-image git blob ID
  dfpost:   match post-image git blob ID
  patchid:  match `git patch-id --stable' output

Terms may be combined with AND, OR, NOT and parentheses, e.g.:
  loremutt -q 's:"net: fix leak" AND f:davem'
  loremutt -f drivers/net/tun.c
  loremutt -F tun_get_user
"""


class LoreArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, '%s: error: %s\n' % (self.prog, message))


def setup_parser() -> argparse.ArgumentParser:
    # noinspection PyTypeChecker
    parser = LoreArgumentParser(
        prog='loremutt',
        description='Look up a commit or a query on lore.kernel.org and browse the results in mutt',
        epilog=QUERY_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
    )
    parser.add_argument('operand', nargs='*', metavar='COMMITISH|QUERY',
                        help='Commit to look up, or search query when using -q')
    parser.add_argument('-h', '--help', action='store_true', default=False,
                        help='Show this help message and exit')
    parser.add_argument('--version', action='version', version=loremutt.__VERSION__)
    parser.add_argument('-d', '--debug', action='store_true', default=False,
                        help='Add more debugging info to the output')
    parser.add_argument('--quiet', action='store_true', default=False,
                        help='Output critical information only')

    ag_mode = parser.add_argument_group('Search mode', 'What to search for (last one wins)')
    ag_mode.add_argument('-s', '--subject', dest='searchmode', action='store_const', const=SearchMode.SUBJECT,
                         default=SearchMode.PATCHID,
                         help='Search by commit subject instead of patch-id')
    ag_mode.add_argument('-q', '--query', dest='searchmode', action='store_const', const=SearchMode.QUERY,
                         help='Treat arguments as a raw search query')
    ag_mode.add_argument('-f', '--file', dest='qprefix', action='store_const', const=FILE_PREFIX,
                         default=None,
                         help='Search for patches touching this file (%s)' % FILE_PREFIX)
    ag_mode.add_argument('-F', '--function', dest='qprefix', action='store_const', const=FUNCTION_PREFIX,
                         help='Search for patches touching this function (%s)' % FUNCTION_PREFIX)

    ag_res = parser.add_argument_group('Results', 'How to shape the search results (last one wins)')
    ag_res.add_argument('-t', '--thread', dest='forcemode', action='store_const', const=ResultMode.FULL_THREADS,
                        default=None,
                        help='Show full threads of matching messages')
    ag_res.add_argument('-r', '--results', dest='forcemode', action='store_const', const=ResultMode.RESULTS_ONLY,
                        help='Show only the matching messages')
    ag_res.add_argument('--raw', action='store_true', default=False,
                        help='Do not deduplicate the mailbox')
    ag_res.add_argument('--insecure', action='store_true', default=False,
                        help='Do not verify TLS certificates')
    ag_res.add_argument('-o', '--save-mbox', dest='savembox', metavar='PATH', default=None,
                        help='Also save the mailbox into this file')
    ag_res.add_argument('-k', '--keep', action='store_true', default=False,
                        help='Do not remove the temporary directory when done')

    ag_reader = parser.add_argument_group('Reader', 'How to show the results')
    ag_reader.add_argument('-T', '--tags', action='store_true', default=False,
                           help='Mark Fixes/Signed-off-by/Acked-by/Reviewed-by/Tested-by trailers (slow)')
    ag_reader.add_argument('--reverse', action='store_true', default=False,
                           help='Reverse the sort order')
    ag_reader.add_argument('--reader', default=None, metavar='NAME',
                           help='Use this mail reader instead of neomutt or mutt')
    ag_reader.add_argument('--no-muttrc', dest='nomuttrc', action='store_true', default=False,
                           help='Do not pass the generated muttrc to the reader')

    return parser


def cmd(args: Optional[List[str]] = None):
    parser = setup_parser()
    cmdargs = parser.parse_intermixed_args(args)
    logger.setLevel(logging.DEBUG)

    if not logger.handlers:
        ch = logging.StreamHandler()
        formatter = logging.Formatter('%(message)s')
        ch.setFormatter(formatter)
        logger.addHandler(ch)

    for ch in logger.handlers:
        if cmdargs.quiet:
            ch.setLevel(logging.CRITICAL)
        elif cmdargs.debug:
            ch.setLevel(logging.DEBUG)
        else:
            ch.setLevel(logging.INFO)

    if cmdargs.help:
        parser.print_help(sys.stderr)
        sys.exit(0)

    if not ' '.join(cmdargs.operand).strip():
        parser.print_help(sys.stderr)
        sys.exit(1)

    import loremutt.lookup
    loremutt.lookup.main(cmdargs)


if __name__ == '__main__':
    cmd()
