#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2020 by the Linux Foundation
#

import os
import loremutt

from typing import List, Optional, NamedTuple

logger = loremutt.logger


class CommitInfo(NamedTuple):
    commit: str
    gitdir: str
    author_name: str
    author_email: str
    committer_name: str
    committer_email: str
    subject: str
    # Used for the mbox filename
    slug: str
    # Used for highlighting the subject in the reader
    token: str


def get_candidate_gitdirs(extra: Optional[List[str]] = None) -> List[str]:
    candidates = [os.getcwd()]
    if extra:
        candidates += extra
    candidates += loremutt.DEFAULT_GITDIRS
    gitdirs = list()
    for candidate in candidates:
        candidate = os.path.abspath(os.path.expanduser(candidate))
        if candidate not in gitdirs:
            gitdirs.append(candidate)
    return gitdirs


class GitResolver:
    gitdirs: List[str]

    def __init__(self, gitdirs: Optional[List[str]] = None):
        if gitdirs is None:
            config = loremutt.get_main_config()
            gitdirs = get_candidate_gitdirs(config.get('gitdir'))
        self.gitdirs = gitdirs

    def resolve(self, commitish: str) -> str:
        """Return the first candidate repository where commitish resolves
        to a commit object."""
        for gitdir in self.gitdirs:
            if not os.path.isdir(gitdir):
                continue
            topdir = loremutt.git_get_toplevel(gitdir)
            if not topdir:
                logger.debug('Not a git checkout: %s', gitdir)
                continue
            logger.debug('Looking for %s in %s', commitish, topdir)
            if loremutt.git_commit_exists(topdir, commitish):
                logger.debug('Found %s in %s', commitish, topdir)
                return topdir

        raise LookupError('Could not find %s in any of: %s' % (commitish, ', '.join(self.gitdirs)))

    @staticmethod
    def _get_log_field(gitdir: str, commit: str, fmt: str) -> str:
        ecode, out = loremutt.git_run_command(gitdir, ['log', '-1', f'--format={fmt}', commit])
        if ecode > 0:
            raise RuntimeError('Could not get commit info for %s' % commit)
        return out.strip()

    def get_metadata(self, commitish: str, filler: str = '.') -> CommitInfo:
        gitdir = self.resolve(commitish)
        commit = loremutt.git_revparse_obj(f'{commitish}^{{commit}}', gitdir)
        subject = self._get_log_field(gitdir, commit, '%s')
        return CommitInfo(
            commit=commit,
            gitdir=gitdir,
            author_name=self._get_log_field(gitdir, commit, '%an'),
            author_email=self._get_log_field(gitdir, commit, '%ae'),
            committer_name=self._get_log_field(gitdir, commit, '%cn'),
            committer_email=self._get_log_field(gitdir, commit, '%ce'),
            subject=subject,
            slug=loremutt.make_slug(subject, filler),
            token=loremutt.make_slug(subject, filler),
        )

    @staticmethod
    def get_patch_id(cinfo: CommitInfo) -> str:
        gitdir = cinfo.gitdir
        commit = cinfo.commit
        # Make sure it has exactly one parent (not a merge)
        ecode, out = loremutt.git_run_command(gitdir, ['show', '--no-patch', '--format=%p', commit])
        if ecode > 0:
            raise RuntimeError('Could not get commit info for %s' % commit)
        if len(out.split()) > 1:
            raise RuntimeError('%s is a merge commit, cannot compute a patch-id' % commit)

        showargs = [
            'show',
            '--format=email',
            '--binary',
            '--encoding=utf-8',
            '--find-renames',
            commit,
        ]
        ecode, bpatch = loremutt.git_run_command(gitdir, showargs, decode=False)
        if ecode > 0:
            raise RuntimeError('Could not get a patch out of %s' % commit)
        ecode, out = loremutt.git_run_command(gitdir, ['patch-id', '--stable'], stdin=bpatch)
        if ecode > 0 or not len(out.strip()):
            ecode, objtype = loremutt.git_run_command(gitdir, ['cat-file', '-t', commit])
            raise RuntimeError('Could not compute patch-id for %s object %s (empty patch?)'
                               % (objtype.strip(), commit))
        patch_id = out.split(maxsplit=1)[0]
        logger.debug('Patch-id for commit %s is %s', commit, patch_id)
        return patch_id
