#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2020 by the Linux Foundation
#

import os
import re
import shutil
import email.parser
import email.message
import loremutt

from typing import List, Optional, Set

logger = loremutt.logger


class Deduplicator:
    name: str = 'none'

    def process(self, src: str, dest: str) -> None:
        raise NotImplementedError

    def __repr__(self):
        return '<%s>' % self.name


class FormailDeduplicator(Deduplicator):
    name = 'formail'
    cachesize: int

    def __init__(self, cachesize: int = 1000000):
        self.cachesize = cachesize

    def process(self, src: str, dest: str) -> None:
        # formail keeps the message-ids it has seen in a cache file, which we
        # keep next to the mailbox so it goes away with it
        cachefile = os.path.join(os.path.dirname(os.path.abspath(dest)), '.msgid.cache')
        args = ['formail', '-D', str(self.cachesize), cachefile, '-s']
        with open(src, 'rb') as fh:
            bmbox = fh.read()
        ecode, out, err = loremutt._run_command(args, stdin=bmbox)
        if ecode > 0:
            raise RuntimeError('formail exited with %s: %s' % (ecode, err.decode(errors='replace').strip()))
        with open(dest, 'wb') as fh:
            fh.write(out)
        if os.path.exists(cachefile):
            os.unlink(cachefile)


class MsgidDeduplicator(Deduplicator):
    """Drops every message whose Message-ID we have already seen.

    Works directly on the mbox bytes: kept messages are written out exactly
    as received and in the same order, and messages without a Message-ID
    are always kept.
    """
    name = 'builtin'

    @staticmethod
    def split_mbox_bytes(bmbox: bytes) -> List[bytes]:
        chunks = list()
        current = list()
        prevblank = True
        for line in bmbox.splitlines(keepends=True):
            if line.startswith(b'From ') and prevblank and current:
                chunks.append(b''.join(current))
                current = list()
            current.append(line)
            prevblank = not line.strip()
        if current:
            chunks.append(b''.join(current))
        return chunks

    @staticmethod
    def get_clean_msgid(msg: email.message.Message, header: str = 'Message-Id') -> Optional[str]:
        msgid = None
        raw = msg.get(header)
        if raw:
            matches = re.search(r'<([^>]+)>', str(raw))
            if matches:
                msgid = matches.groups()[0].strip()
        return msgid

    def dedupe_bytes(self, bmbox: bytes) -> bytes:
        parser = email.parser.BytesHeaderParser()
        seen: Set[str] = set()
        kept = list()
        dropped = 0
        for chunk in self.split_mbox_bytes(bmbox):
            msgid = self.get_clean_msgid(parser.parsebytes(chunk))
            if msgid is not None:
                if msgid in seen:
                    logger.debug('Dropping duplicate message %s', msgid)
                    dropped += 1
                    continue
                seen.add(msgid)
            kept.append(chunk)
        if dropped:
            logger.info('Dropped %s duplicate messages', dropped)
        return b''.join(kept)

    def process(self, src: str, dest: str) -> None:
        with open(src, 'rb') as fh:
            bmbox = fh.read()
        with open(dest, 'wb') as fh:
            fh.write(self.dedupe_bytes(bmbox))


def get_deduplicator(tool: Optional[str] = None) -> Optional[Deduplicator]:
    config = loremutt.get_main_config()
    if tool is None:
        tool = config['dedupe-tool']
    if tool == 'builtin':
        return MsgidDeduplicator()
    if tool == 'formail':
        if shutil.which('formail') is None:
            logger.debug('formail not found, will not deduplicate')
            return None
        try:
            cachesize = int(config['formail-cache-size'])
        except ValueError:
            logger.critical('ERROR: formail-cache-size must be an integer: %s', config['formail-cache-size'])
            cachesize = int(loremutt.DEFAULT_CONFIG['formail-cache-size'])
        return FormailDeduplicator(cachesize)
    return None


def process_mailbox(src: str, dest: str, deduper: Optional[Deduplicator] = None) -> str:
    if deduper is None:
        logger.debug('Not deduplicating, moving %s to %s', src, dest)
        os.replace(src, dest)
        return dest

    logger.debug('Deduplicating %s using %s', src, deduper.name)
    deduper.process(src, dest)
    os.unlink(src)
    return dest
