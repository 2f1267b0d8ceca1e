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

"""BaseCompiler: error/warning tracking for the rule compiler."""

from __future__ import annotations

import logging
from enum import IntEnum

from nftfabrik.core import InvalidArgumentsError

logger = logging.getLogger(__name__)


class CompilerStatus(IntEnum):
    """Compiler status codes, usable as process exit codes."""

    SUCCESS = 0
    WARNING = 1
    ERROR = 2


class BaseCompiler:
    """Tracks warnings and errors raised while compiling one intent.

    Errors abort compilation with :class:`InvalidArgumentsError`;
    warnings are collected and handed to the caller with the result.
    """

    def __init__(self) -> None:
        self._status: CompilerStatus = CompilerStatus.SUCCESS
        self._errors: list[str] = []
        self._warnings: list[str] = []

    @property
    def status(self) -> CompilerStatus:
        return self._status

    def reset(self) -> None:
        self._status = CompilerStatus.SUCCESS
        self._errors.clear()
        self._warnings.clear()

    def error(self, intent: str, msg: str) -> None:
        """Record an error and abort compilation of *intent*."""
        text = f'{intent}: {msg}'
        self._errors.append(text)
        self._status = CompilerStatus.ERROR
        raise InvalidArgumentsError(text)

    def warning(self, intent: str, msg: str) -> None:
        text = f'{intent}: {msg}'
        logger.warning(text)
        self._warnings.append(text)
        if self._status == CompilerStatus.SUCCESS:
            self._status = CompilerStatus.WARNING

    def get_errors(self) -> list[str]:
        return list(self._errors)

    def get_warnings(self) -> list[str]:
        return list(self._warnings)
