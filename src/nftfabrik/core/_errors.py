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

"""Error taxonomy shared by the compiler, the engines and the applier."""

from __future__ import annotations

from collections.abc import Sequence
from enum import StrEnum


class ErrorKind(StrEnum):
    INVALID_ARGUMENTS = 'invalid-arguments'
    PREREQUISITE_MISSING = 'prerequisite-missing'
    ENGINE_REJECTED = 'engine-rejected'
    UNRESOLVABLE_NAME = 'unresolvable-name'


class NftFabrikError(Exception):
    """Base class of all errors reported as a failed intent."""

    kind: ErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidArgumentsError(NftFabrikError):
    """A required parameter is missing or malformed. No engine call was made."""

    kind = ErrorKind.INVALID_ARGUMENTS


class PrerequisiteMissingError(NftFabrikError):
    """Something the intent depends on does not exist (file, nft binary)."""

    kind = ErrorKind.PREREQUISITE_MISSING


class EngineRejectedError(NftFabrikError):
    """The engine refused an operation.

    The cause is ambiguous (duplicate object, syntax error, permission),
    so the engine's own diagnostic is kept in ``stderr``.
    """

    kind = ErrorKind.ENGINE_REJECTED

    def __init__(
        self,
        message: str,
        command: Sequence[str] = (),
        stderr: str = '',
        returncode: int | None = None,
    ) -> None:
        super().__init__(message)
        self.command = list(command)
        self.stderr = stderr
        self.returncode = returncode


class UnresolvableNameError(NftFabrikError):
    """A DNS lookup returned no addresses."""

    kind = ErrorKind.UNRESOLVABLE_NAME
