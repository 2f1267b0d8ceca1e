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

"""Flat-file storage of blacklisted and whitelisted addresses."""

from __future__ import annotations

import logging
from pathlib import Path

from nftfabrik.core import PrerequisiteMissingError

logger = logging.getLogger(__name__)


class IPListStore:
    """A line-oriented file with one address per line.

    Every method opens and closes the file itself. There is no locking;
    concurrent writers can lose updates. I/O failures are raised as
    :class:`PrerequisiteMissingError` naming the file.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _failed(self, action: str, e: OSError) -> PrerequisiteMissingError:
        return PrerequisiteMissingError(f'Cannot {action} {self.path}: {e.strerror or e}')

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> list[str]:
        if not self.path.is_file():
            return []
        try:
            with self.path.open(encoding='utf-8') as f:
                return [line.strip() for line in f if line.strip() and not line.lstrip().startswith('#')]
        except OSError as e:
            raise self._failed('read', e) from None

    def append(self, address: str) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open('a', encoding='utf-8') as f:
                f.write(f'{address}\n')
        except OSError as e:
            raise self._failed('write', e) from None
        logger.debug('Appended %s to %s', address, self.path)

    def rewrite_without(self, address: str) -> int:
        """Remove every line equal to *address*. Returns the number removed."""
        if not self.path.is_file():
            return 0
        try:
            with self.path.open(encoding='utf-8') as f:
                lines = f.readlines()
            kept = [line for line in lines if line.strip() != address]
            with self.path.open('w', encoding='utf-8') as f:
                f.writelines(kept)
        except OSError as e:
            raise self._failed('rewrite', e) from None
        removed = len(lines) - len(kept)
        logger.debug('Removed %d line(s) for %s from %s', removed, address, self.path)
        return removed
