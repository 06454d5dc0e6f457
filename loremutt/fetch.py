#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2020 by the Linux Foundation
#

import os
import gzip
import zlib
import urllib.parse

import requests
import loremutt

from typing import Optional

from loremutt.query import LoreQuery

logger = loremutt.logger


def get_query_url(lquery: LoreQuery, searchmask: Optional[str] = None) -> str:
    if searchmask is None:
        config = loremutt.get_main_config()
        searchmask = config['searchmask']
    if not searchmask or '%s' not in searchmask:
        raise RuntimeError('loremutt.searchmask must contain %%s: %s' % searchmask)
    return searchmask % lquery.query


def fetch_mailbox(lquery: LoreQuery, workdir: str, insecure: bool = False,
                  searchmask: Optional[str] = None) -> str:
    """Run the search and save the resulting mailbox into workdir.

    Returns the path to the decompressed mbox file. Raises LookupError when
    the archive has nothing matching the query and RuntimeError for any
    other failure."""
    query_url = get_query_url(lquery, searchmask)
    loc = urllib.parse.urlparse(query_url)
    logger.info('Grabbing search results from %s', loc.netloc)
    logger.debug('query_url=%s, data=%s', query_url, lquery.resultmode.value)
    if insecure:
        logger.warning('WARNING: not verifying TLS certificates for %s', loc.netloc)

    session = loremutt.get_requests_session()
    # For the query to retrieve a mbox file, we need to send a POST request
    try:
        resp = session.post(query_url, data=lquery.resultmode.value, verify=not insecure,
                            headers={'Content-Type': 'application/x-www-form-urlencoded'})
    except requests.exceptions.RequestException as ex:
        raise RuntimeError('Unable to query %s: %s' % (loc.netloc, ex)) from ex

    if resp.status_code == 404:
        resp.close()
        raise LookupError('Nothing matching that query.')
    if not 200 <= resp.status_code < 300:
        resp.close()
        raise RuntimeError('Server returned an error: %s' % resp.status_code)

    gzfile = os.path.join(workdir, 'mbox.gz')
    with open(gzfile, 'wb') as fh:
        fh.write(resp.content)
    resp.close()

    mboxfile = os.path.join(workdir, 'mbox')
    try:
        with gzip.open(gzfile, 'rb') as gfh:
            t_mbox = gfh.read()
    except (OSError, EOFError, zlib.error) as ex:
        raise RuntimeError('Unable to decompress the mailbox received from the server: %s' % ex) from ex
    os.unlink(gzfile)

    if not len(t_mbox):
        raise LookupError('No messages found for that query')

    with open(mboxfile, 'wb') as fh:
        fh.write(t_mbox)
    logger.debug('Saved %s bytes into %s', len(t_mbox), mboxfile)

    return mboxfile
