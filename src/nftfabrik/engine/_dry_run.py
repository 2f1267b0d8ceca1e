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

"""Engine that records write operations instead of executing them.

Reads are delegated to a real engine, so intents that need to look at
the current state (rule removal) still see it.
"""

from __future__ import annotations

import logging

from nftfabrik.core import ChainRef, ListedRule

from ._base import Engine

logger = logging.getLogger(__name__)


class DryRunEngine(Engine):
    def __init__(self, reader: Engine) -> None:
        self.reader = reader
        # a dry run must not install packages on the host
        self.reader.disable_install()
        # (operation, ensure) pairs in execution order
        self.recorded: list[tuple] = []

    def bootstrap(self) -> None:
        self.reader.bootstrap()

    def apply(self, operation) -> str:
        logger.debug('Recording %s', operation)
        self.recorded.append((operation, False))
        return ''

    def ensure(self, operation) -> str:
        logger.debug('Recording %s (ensure)', operation)
        self.recorded.append((operation, True))
        return ''

    def clear(self) -> None:
        self.recorded.clear()

    def list(self, *what: str) -> str:
        return self.reader.list(*what)

    def list_rules(self, chain: ChainRef) -> list[ListedRule]:
        return self.reader.list_rules(chain)

    def version(self) -> str:
        return self.reader.version()
