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

"""Value types describing nftables objects: families, tables, chains, rules."""

from __future__ import annotations

import dataclasses
from enum import StrEnum


class Family(StrEnum):
    """nftables address families."""

    IP = 'ip'
    IP6 = 'ip6'
    INET = 'inet'
    ARP = 'arp'
    BRIDGE = 'bridge'
    NETDEV = 'netdev'


class ChainType(StrEnum):
    """Base chain types."""

    FILTER = 'filter'
    NAT = 'nat'
    ROUTE = 'route'


class Hook(StrEnum):
    """Netfilter hooks a base chain can attach to."""

    INPUT = 'input'
    OUTPUT = 'output'
    FORWARD = 'forward'
    PREROUTING = 'prerouting'
    POSTROUTING = 'postrouting'


class Protocol(StrEnum):
    """Transport protocols accepted by port based intents."""

    TCP = 'tcp'
    UDP = 'udp'


class Verdict(StrEnum):
    """Statement keywords a rule can end with."""

    ACCEPT = 'accept'
    DROP = 'drop'
    REJECT = 'reject'
    JUMP = 'jump'
    DNAT = 'dnat'
    SNAT = 'snat'
    MASQUERADE = 'masquerade'
    LOG = 'log'
    COUNTER = 'counter'
    QUOTA = 'quota'


# Priorities used for automatically created base chains.
FILTER_PRIORITY = 0
DSTNAT_PRIORITY = -100
SRCNAT_PRIORITY = 100


@dataclasses.dataclass(frozen=True)
class TableRef:
    family: Family
    name: str

    def tokens(self) -> list[str]:
        return [str(self.family), self.name]

    def __str__(self) -> str:
        return ' '.join(self.tokens())


@dataclasses.dataclass(frozen=True)
class ChainRef:
    table: TableRef
    name: str

    def tokens(self) -> list[str]:
        return [*self.table.tokens(), self.name]

    def __str__(self) -> str:
        return ' '.join(self.tokens())


@dataclasses.dataclass(frozen=True)
class ObjectRef:
    """Reference to a named stateful object (set, map or counter)."""

    table: TableRef
    name: str

    def tokens(self) -> list[str]:
        return [*self.table.tokens(), self.name]

    def __str__(self) -> str:
        return ' '.join(self.tokens())


@dataclasses.dataclass(frozen=True)
class HookSpec:
    """Hook specification that turns a chain into a base chain."""

    type: ChainType
    hook: Hook
    priority: int = FILTER_PRIORITY
    policy: str | None = None


@dataclasses.dataclass(frozen=True)
class Matcher:
    """A single match expression, e.g. ``ip saddr 10.0.0.1``.

    ``left`` is the selector (one or more keywords), ``right`` the value.
    The operator is only printed when it is not equality.
    """

    left: str
    right: str
    op: str = '=='

    def tokens(self) -> list[str]:
        parts = self.left.split()
        if self.op != '==':
            parts.append(self.op)
        parts.append(self.right)
        return parts


@dataclasses.dataclass(frozen=True)
class Statement:
    """The trailing statement of a rule: a verdict, NAT target, log, etc."""

    keyword: str
    args: tuple[str, ...] = ()

    def tokens(self) -> list[str]:
        return [self.keyword, *self.args]


@dataclasses.dataclass(frozen=True)
class Rule:
    """An ordered sequence of matchers followed by exactly one statement."""

    matchers: tuple[Matcher, ...]
    statement: Statement

    def tokens(self) -> list[str]:
        parts: list[str] = []
        for matcher in self.matchers:
            parts.extend(matcher.tokens())
        parts.extend(self.statement.tokens())
        return parts

    def __str__(self) -> str:
        return ' '.join(self.tokens())


@dataclasses.dataclass(frozen=True)
class ListedRule:
    """A rule as reported back by the engine, with its handle.

    Rules listed from the engine may carry more than one statement
    (``counter drop``), so statements are kept as a tuple.
    """

    chain: ChainRef
    handle: int
    matchers: tuple[Matcher, ...]
    statements: tuple[Statement, ...]

    def matches(self, rule: Rule) -> bool:
        """Structural comparison against a rule built by the compiler."""
        return self.matchers == rule.matchers and self.statements == (rule.statement,)
