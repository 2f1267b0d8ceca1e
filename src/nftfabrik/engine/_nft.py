# Copyright (C) 2026 Linuxfabrik <info@linuxfabrik.ch>
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.
#
# On Debian systems, the complete text of the GNU General Public License
# version 2 can be found in /usr/share/common-licenses/GPL-2.
#
# SPDX-License-Identifier: GPL-2.0-or-later

"""Engine backed by the ``nft`` command line program."""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess

from nftfabrik.core import ChainRef, EngineRejectedError, ListedRule, PrerequisiteMissingError

from ._base import Engine
from ._installer import Installer
from ._listing import parse_rules

logger = logging.getLogger(__name__)


class NftEngine(Engine):
    """Runs one ``nft`` process per operation.

    If *installer* is given and ``nft`` cannot be found, nftables is
    installed before the first operation.
    """

    def __init__(self, nft_path: str = 'nft', installer: Installer | None = None) -> None:
        self.nft_path = nft_path
        self.installer = installer
        self.install_missing = installer is not None
        self._ready = False

    def disable_install(self) -> None:
        self.install_missing = False

    def bootstrap(self) -> None:
        if self._ready:
            return
        if shutil.which(self.nft_path) is None:
            if not self.install_missing:
                raise PrerequisiteMissingError(f'{self.nft_path} not found, install nftables')
            logger.warning('%s not found, installing nftables', self.nft_path)
            self.installer.install()
            if shutil.which(self.nft_path) is None:
                raise PrerequisiteMissingError(
                    f'{self.nft_path} still not found after installing nftables'
                )
        self._ready = True

    def run(self, args: list[str]) -> str:
        """Run ``nft`` with *args* and return its standard output."""
        self.bootstrap()
        cmd = [self.nft_path, *args]
        logger.debug('Running %s', shlex.join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except FileNotFoundError:
            raise PrerequisiteMissingError(f'{self.nft_path} not found') from None
        if result.returncode != 0:
            stderr = result.stderr.strip()
            logger.debug('nft exited with %d: %s', result.returncode, stderr)
            raise EngineRejectedError(
                stderr or f'nft exited with status {result.returncode}',
                command=cmd,
                stderr=stderr,
                returncode=result.returncode,
            )
        return result.stdout

    def apply(self, operation) -> str:
        args = operation.argv()
        if not args:
            raise ValueError(f'{type(operation).__name__} is not an engine operation')
        return self.run(args)

    def list(self, *what: str) -> str:
        return self.run(['list', *what])

    def list_rules(self, chain: ChainRef) -> list[ListedRule]:
        return parse_rules(self.run(['-a', '-j', 'list', 'chain', *chain.tokens()]))

    def version(self) -> str:
        return self.run(['--version']).strip()
