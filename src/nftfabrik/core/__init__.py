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

from ._errors import (
    EngineRejectedError,
    ErrorKind,
    InvalidArgumentsError,
    NftFabrikError,
    PrerequisiteMissingError,
    UnresolvableNameError,
)
from ._types import (
    DSTNAT_PRIORITY,
    FILTER_PRIORITY,
    SRCNAT_PRIORITY,
    ChainRef,
    ChainType,
    Family,
    Hook,
    HookSpec,
    ListedRule,
    Matcher,
    ObjectRef,
    Protocol,
    Rule,
    Statement,
    TableRef,
    Verdict,
)

__all__ = [
    'DSTNAT_PRIORITY',
    'FILTER_PRIORITY',
    'SRCNAT_PRIORITY',
    'ChainRef',
    'ChainType',
    'EngineRejectedError',
    'ErrorKind',
    'Family',
    'Hook',
    'HookSpec',
    'InvalidArgumentsError',
    'ListedRule',
    'Matcher',
    'NftFabrikError',
    'ObjectRef',
    'PrerequisiteMissingError',
    'Protocol',
    'Rule',
    'Statement',
    'TableRef',
    'UnresolvableNameError',
    'Verdict',
]
