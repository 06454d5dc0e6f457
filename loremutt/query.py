#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2020 by the Linux Foundation
#

import urllib.parse
import loremutt

from typing import Optional, NamedTuple

from loremutt import SearchMode, ResultMode
from loremutt.commit import CommitInfo

logger = loremutt.logger

# Search prefixes we have shorthand flags for
FILE_PREFIX = 'dfn:'
FUNCTION_PREFIX = 'dfhh:'
SUBJECT_PREFIX = 's:'
PATCHID_PREFIX = 'patchid:'


class LoreQuery(NamedTuple):
    # Already urlencoded, ready to drop into the searchmask
    query: str
    resultmode: ResultMode


def resolve_search_mode(searchmode: SearchMode, operand: str, qprefix: Optional[str] = None) -> SearchMode:
    # Anything with a colon in it can only be a search query
    if ':' in operand or qprefix:
        return SearchMode.QUERY
    return searchmode


def encode_query(text: str) -> str:
    # quote_plus turns spaces into + and any literal + into %2B
    return urllib.parse.quote_plus(text, safe=':/')


def make_query_text(operand: str, qprefix: Optional[str] = None) -> str:
    if not qprefix:
        return operand
    if len(operand.split()) > 1 and not operand.startswith('"'):
        operand = '"%s"' % operand
    return qprefix + operand


def build_query(searchmode: SearchMode, operand: Optional[str] = None, cinfo: Optional[CommitInfo] = None,
                patch_id: Optional[str] = None, qprefix: Optional[str] = None,
                forcemode: Optional[ResultMode] = None) -> LoreQuery:
    if searchmode == SearchMode.PATCHID:
        if not patch_id:
            raise ValueError('Patch-id search requires a patch-id')
        query = PATCHID_PREFIX + patch_id
        resultmode = ResultMode.FULL_THREADS
    elif searchmode == SearchMode.SUBJECT:
        if cinfo is None:
            raise ValueError('Subject search requires commit info')
        # We search for the exact phrase, so the subject can't carry its own quotes
        query = SUBJECT_PREFIX + encode_query('"%s"' % cinfo.subject.replace('"', ''))
        resultmode = ResultMode.RESULTS_ONLY
    else:
        if not operand:
            raise ValueError('Query search requires query text')
        query = encode_query(make_query_text(operand, qprefix))
        resultmode = ResultMode.RESULTS_ONLY

    if forcemode is not None:
        logger.debug('Forcing result mode: %s', forcemode.value)
        resultmode = forcemode

    logger.debug('query=%s, resultmode=%s', query, resultmode.value)
    return LoreQuery(query=query, resultmode=resultmode)
