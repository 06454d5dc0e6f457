#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2020 by the Linux Foundation
#

import os
import sys
import shutil
import tempfile
import argparse
import loremutt
import loremutt.commit
import loremutt.query
import loremutt.fetch
import loremutt.dedupe
import loremutt.reader

from contextlib import contextmanager
from typing import Optional

from loremutt import LookupConfig, SearchMode, SortOrder
from loremutt.commit import CommitInfo

logger = loremutt.logger

FALLBACK_MBOX_NAME = 'lore-query'
MAX_SLUG_LENGTH = 200


def make_lookup_config(cmdargs: argparse.Namespace) -> LookupConfig:
    config = loremutt.get_main_config()
    operand = ' '.join(cmdargs.operand)
    searchmode = loremutt.query.resolve_search_mode(cmdargs.searchmode, operand, cmdargs.qprefix)
    if searchmode != SearchMode.QUERY and len(cmdargs.operand) > 1:
        raise ValueError('Expecting a single commitish, use -q to search for free text')
    sort = SortOrder.REVERSE_THREADS if cmdargs.reverse else SortOrder.THREADS

    return LookupConfig(
        searchmode=searchmode,
        operand=operand,
        forcemode=cmdargs.forcemode,
        dedupe=not cmdargs.raw,
        tags=cmdargs.tags,
        sort=sort,
        sort_aux=config['sort-aux'],
        reader=cmdargs.reader,
        insecure=cmdargs.insecure,
        qprefix=cmdargs.qprefix,
        muttrc=not cmdargs.nomuttrc,
        keep=cmdargs.keep,
        savembox=cmdargs.savembox,
    )


def get_mbox_name(cinfo: Optional[CommitInfo], operand: str) -> str:
    if cinfo is not None:
        slug = cinfo.slug
    else:
        slug = loremutt.make_slug(operand)
    slug = slug[:MAX_SLUG_LENGTH]
    if not slug.strip('.'):
        slug = FALLBACK_MBOX_NAME
    return f'{slug}.mbox'


@contextmanager
def lookup_workdir(keep: bool = False):
    """Context manager that creates a private temporary directory, which is
    removed on the way out unless we were asked to keep it."""
    if keep:
        workdir = tempfile.mkdtemp(prefix='loremutt-')
        try:
            yield workdir
        finally:
            logger.info('Keeping %s', workdir)
        return

    with tempfile.TemporaryDirectory(prefix='loremutt-') as workdir:
        yield workdir


def lookup(lconfig: LookupConfig) -> int:
    cinfo = None
    patch_id = None
    if lconfig.searchmode != SearchMode.QUERY:
        resolver = loremutt.commit.GitResolver()
        cinfo = resolver.get_metadata(lconfig.operand)
        logger.info('Looking up: %s', cinfo.subject)
        if lconfig.searchmode == SearchMode.PATCHID:
            patch_id = resolver.get_patch_id(cinfo)

    lquery = loremutt.query.build_query(lconfig.searchmode, operand=lconfig.operand, cinfo=cinfo,
                                        patch_id=patch_id, qprefix=lconfig.qprefix,
                                        forcemode=lconfig.forcemode)

    with lookup_workdir(lconfig.keep) as workdir:
        rawmbox = loremutt.fetch.fetch_mailbox(lquery, workdir, insecure=lconfig.insecure)
        deduper = None
        if lconfig.dedupe:
            deduper = loremutt.dedupe.get_deduplicator()
        mboxfile = os.path.join(workdir, get_mbox_name(cinfo, lconfig.operand))
        loremutt.dedupe.process_mailbox(rawmbox, mboxfile, deduper)

        if lconfig.savembox:
            shutil.copyfile(mboxfile, lconfig.savembox)
            logger.info('Saved mailbox into %s', lconfig.savembox)

        reader = loremutt.reader.get_reader(lconfig.reader)
        muttrcfile = None
        if lconfig.muttrc:
            config = loremutt.get_main_config()
            muttrc = loremutt.reader.make_muttrc(lconfig, cinfo, reader=reader,
                                                 include=config.get('muttrc-include'))
            muttrcfile = loremutt.reader.write_muttrc(muttrc, workdir)

        return loremutt.reader.launch_reader(reader, mboxfile, muttrcfile)


def main(cmdargs: argparse.Namespace) -> None:
    try:
        lconfig = make_lookup_config(cmdargs)
    except ValueError as ex:
        logger.critical('ERROR: %s', ex)
        sys.exit(1)

    logger.debug('lconfig=%s', lconfig)
    try:
        ecode = lookup(lconfig)
    except LookupError as ex:
        logger.critical('%s', ex)
        sys.exit(1)
    except (ValueError, RuntimeError, OSError) as ex:
        logger.critical('ERROR: %s', ex)
        sys.exit(1)

    sys.exit(ecode)
