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

"""Primitive engine operations.

Each operation is a frozen value that knows how to print itself as
``nft`` arguments (``argv()``) and as a line of an ``nft -f`` batch file
(``batch_line()``). Engines execute them; the compiler only builds them.
"""

from __future__ import annotations

import dataclasses

from nftfabrik.core import ChainRef, Family, HookSpec, ObjectRef, Rule, TableRef

from ._print_rule import print_elements, print_hook_spec, print_rule, print_set_spec


@dataclasses.dataclass(frozen=True)
class Operation:
    """Base class of all engine operations."""

    def argv(self) -> list[str]:
        raise NotImplementedError

    def batch_line(self) -> str:
        return ' '.join(self.argv())

    def __str__(self) -> str:
        return self.batch_line()


@dataclasses.dataclass(frozen=True)
class CreateTable(Operation):
    table: TableRef

    def argv(self) -> list[str]:
        return ['create', 'table', *self.table.tokens()]


@dataclasses.dataclass(frozen=True)
class DeleteTable(Operation):
    table: TableRef

    def argv(self) -> list[str]:
        return ['delete', 'table', *self.table.tokens()]


@dataclasses.dataclass(frozen=True)
class FlushTable(Operation):
    table: TableRef

    def argv(self) -> list[str]:
        return ['flush', 'table', *self.table.tokens()]


@dataclasses.dataclass(frozen=True)
class CreateChain(Operation):
    chain: ChainRef
    hook: HookSpec | None = None

    def argv(self) -> list[str]:
        args = ['create', 'chain', *self.chain.tokens()]
        if self.hook is not None:
            args.append(print_hook_spec(self.hook))
        return args


@dataclasses.dataclass(frozen=True)
class DeleteChain(Operation):
    chain: ChainRef

    def argv(self) -> list[str]:
        return ['delete', 'chain', *self.chain.tokens()]


@dataclasses.dataclass(frozen=True)
class FlushChain(Operation):
    chain: ChainRef

    def argv(self) -> list[str]:
        return ['flush', 'chain', *self.chain.tokens()]


@dataclasses.dataclass(frozen=True)
class AddRule(Operation):
    """Append a rule at the end of a chain."""

    chain: ChainRef
    rule: Rule

    def argv(self) -> list[str]:
        return ['add', 'rule', *self.chain.tokens(), *print_rule(self.rule)]


@dataclasses.dataclass(frozen=True)
class InsertRule(Operation):
    """Insert a rule before the rule at *index* (0 = head of the chain)."""

    chain: ChainRef
    rule: Rule
    index: int = 0

    def argv(self) -> list[str]:
        args = ['insert', 'rule', *self.chain.tokens()]
        if self.index:
            args.extend(['index', str(self.index)])
        return [*args, *print_rule(self.rule)]


@dataclasses.dataclass(frozen=True)
class DeleteRule(Operation):
    chain: ChainRef
    handle: int

    def argv(self) -> list[str]:
        return ['delete', 'rule', *self.chain.tokens(), 'handle', str(self.handle)]


@dataclasses.dataclass(frozen=True)
class CreateSet(Operation):
    ref: ObjectRef
    element_type: str
    flags: str = ''

    def argv(self) -> list[str]:
        return [
            'create',
            'set',
            *self.ref.tokens(),
            print_set_spec(self.element_type, self.flags),
        ]


@dataclasses.dataclass(frozen=True)
class CreateMap(Operation):
    ref: ObjectRef
    key_type: str
    data_type: str
    flags: str = ''

    def argv(self) -> list[str]:
        return [
            'create',
            'map',
            *self.ref.tokens(),
            print_set_spec(self.key_type, self.flags, self.data_type),
        ]


@dataclasses.dataclass(frozen=True)
class AddElements(Operation):
    """Add elements to a set or map (map elements are ``key : value``)."""

    ref: ObjectRef
    elements: tuple[str, ...]

    def argv(self) -> list[str]:
        return ['add', 'element', *self.ref.tokens(), print_elements(self.elements)]


@dataclasses.dataclass(frozen=True)
class DeleteElements(Operation):
    ref: ObjectRef
    elements: tuple[str, ...]

    def argv(self) -> list[str]:
        return ['delete', 'element', *self.ref.tokens(), print_elements(self.elements)]


@dataclasses.dataclass(frozen=True)
class CreateCounter(Operation):
    ref: ObjectRef

    def argv(self) -> list[str]:
        return ['create', 'counter', *self.ref.tokens()]


@dataclasses.dataclass(frozen=True)
class FlushRuleset(Operation):
    """Flush every table, or only the tables of *family*."""

    family: Family | None = None

    def argv(self) -> list[str]:
        args = ['flush', 'ruleset']
        if self.family is not None:
            args.append(str(self.family))
        return args


@dataclasses.dataclass(frozen=True)
class LoadFile(Operation):
    """Bulk-load a declarative rule set file (``nft -f``)."""

    path: str

    def argv(self) -> list[str]:
        return ['-f', self.path]

    def batch_line(self) -> str:
        return f'include "{self.path}"'


@dataclasses.dataclass(frozen=True)
class RawCommand(Operation):
    """A primitive command passed through verbatim (``add rule ...``)."""

    args: tuple[str, ...]

    def argv(self) -> list[str]:
        return list(self.args)


@dataclasses.dataclass(frozen=True)
class EnableIPForwarding(Operation):
    """Host side effect: turn on IPv4 forwarding. Not executed by engines."""

    def argv(self) -> list[str]:
        return []

    def batch_line(self) -> str:
        return '# sysctl -w net.ipv4.ip_forward=1'
