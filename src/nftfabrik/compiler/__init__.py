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

from ._base import BaseCompiler, CompilerStatus
from ._compiler import BLACKLIST, PAYLOAD_ANCHORS, WHITELIST, NamedList, RuleCompiler
from ._operations import (
    AddElements,
    AddRule,
    CreateChain,
    CreateCounter,
    CreateMap,
    CreateSet,
    CreateTable,
    DeleteChain,
    DeleteElements,
    DeleteRule,
    DeleteTable,
    EnableIPForwarding,
    FlushChain,
    FlushRuleset,
    FlushTable,
    InsertRule,
    LoadFile,
    Operation,
    RawCommand,
)
from ._plan import Plan, Step, StepPolicy
from ._validate import hook_spec

__all__ = [
    'BLACKLIST',
    'PAYLOAD_ANCHORS',
    'WHITELIST',
    'AddElements',
    'AddRule',
    'BaseCompiler',
    'CompilerStatus',
    'CreateChain',
    'CreateCounter',
    'CreateMap',
    'CreateSet',
    'CreateTable',
    'DeleteChain',
    'DeleteElements',
    'DeleteRule',
    'DeleteTable',
    'EnableIPForwarding',
    'FlushChain',
    'FlushRuleset',
    'FlushTable',
    'InsertRule',
    'LoadFile',
    'NamedList',
    'Operation',
    'Plan',
    'RawCommand',
    'RuleCompiler',
    'Step',
    'StepPolicy',
    'hook_spec',
]
