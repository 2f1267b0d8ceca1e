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

"""Shared pytest fixtures: an in-memory engine, settings and an applier."""

from __future__ import annotations

import dataclasses

import pytest

from nftfabrik.compiler import (
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
    FlushChain,
    FlushRuleset,
    FlushTable,
    InsertRule,
    LoadFile,
    RawCommand,
)
from nftfabrik.core import ChainRef, EngineRejectedError, ListedRule
from nftfabrik.core.options import Settings
from nftfabrik.driver import Applier, Sysctl
from nftfabrik.engine import Engine

EXISTS = 'Error: Could not process rule: File exists'
MISSING = 'Error: Could not process rule: No such file or directory'


@dataclasses.dataclass
class FakeChain:
    hook: object = None
    rules: list = dataclasses.field(default_factory=list)  # [(handle, Rule)]


@dataclasses.dataclass
class FakeTable:
    chains: dict = dataclasses.field(default_factory=dict)
    sets: dict = dataclasses.field(default_factory=dict)
    counters: set = dataclasses.field(default_factory=set)


class FakeEngine(Engine):
    """Structural stand-in for nftables.

    Keeps tables, chains with ordered rules and handles, sets, maps and
    counters in memory, rejects what nft would reject (duplicate
    ``create``, missing parents, unknown handles) and records every call.
    Extra rejections can be injected with :meth:`reject_when`.
    """

    def __init__(self) -> None:
        self.tables: dict = {}
        self.calls: list = []
        self.bootstraps = 0
        self.loaded: list[str] = []
        self.raw: list[tuple] = []
        self._next_handle = 1
        self._rejections: list = []

    # -- test helpers --

    def reject_when(self, predicate, message='Error: syntax error') -> None:
        self._rejections.append((predicate, message))

    def rules(self, chain: ChainRef) -> list:
        return [rule for _, rule in self.tables[chain.table].chains[chain.name].rules]

    def rule_lines(self, chain: ChainRef) -> list[str]:
        return [str(rule) for rule in self.rules(chain)]

    def has_chain(self, chain: ChainRef) -> bool:
        return chain.table in self.tables and chain.name in self.tables[chain.table].chains

    # -- Engine --

    def bootstrap(self) -> None:
        self.bootstraps += 1

    def _fail(self, message):
        raise EngineRejectedError(message, stderr=message, returncode=1)

    def _table(self, ref):
        if ref not in self.tables:
            self._fail(MISSING)
        return self.tables[ref]

    def _chain(self, ref):
        table = self._table(ref.table)
        if ref.name not in table.chains:
            self._fail(MISSING)
        return table.chains[ref.name]

    def _new_handle(self) -> int:
        handle = self._next_handle
        self._next_handle += 1
        return handle

    def apply(self, operation) -> str:
        self.calls.append(('apply', operation))
        for predicate, message in self._rejections:
            if predicate(operation):
                self._fail(message)

        match operation:
            case CreateTable(table=ref):
                if ref in self.tables:
                    self._fail(EXISTS)
                self.tables[ref] = FakeTable()
            case DeleteTable(table=ref):
                self._table(ref)
                del self.tables[ref]
            case FlushTable(table=ref):
                for chain in self._table(ref).chains.values():
                    chain.rules.clear()
            case CreateChain(chain=ref, hook=hook):
                table = self._table(ref.table)
                if ref.name in table.chains:
                    self._fail(EXISTS)
                table.chains[ref.name] = FakeChain(hook)
            case DeleteChain(chain=ref):
                self._chain(ref)
                del self.tables[ref.table].chains[ref.name]
            case FlushChain(chain=ref):
                self._chain(ref).rules.clear()
            case AddRule(chain=ref, rule=rule):
                self._chain(ref).rules.append((self._new_handle(), rule))
            case InsertRule(chain=ref, rule=rule, index=index):
                self._chain(ref).rules.insert(index, (self._new_handle(), rule))
            case DeleteRule(chain=ref, handle=handle):
                chain = self._chain(ref)
                before = len(chain.rules)
                chain.rules[:] = [(h, r) for h, r in chain.rules if h != handle]
                if len(chain.rules) == before:
                    self._fail(MISSING)
            case CreateSet(ref=ref) | CreateMap(ref=ref):
                table = self._table(ref.table)
                if ref.name in table.sets:
                    self._fail(EXISTS)
                table.sets[ref.name] = set()
            case AddElements(ref=ref, elements=elements):
                table = self._table(ref.table)
                if ref.name not in table.sets:
                    self._fail(MISSING)
                table.sets[ref.name].update(elements)
            case DeleteElements(ref=ref, elements=elements):
                table = self._table(ref.table)
                if ref.name not in table.sets:
                    self._fail(MISSING)
                table.sets[ref.name].difference_update(elements)
            case CreateCounter(ref=ref):
                table = self._table(ref.table)
                if ref.name in table.counters:
                    self._fail(EXISTS)
                table.counters.add(ref.name)
            case FlushRuleset(family=None):
                self.tables.clear()
            case FlushRuleset(family=family):
                for ref in [ref for ref in self.tables if ref.family == family]:
                    del self.tables[ref]
            case LoadFile(path=path):
                self.loaded.append(path)
            case RawCommand(args=args):
                self.raw.append(args)
            case _:
                raise TypeError(f'FakeEngine cannot apply {operation!r}')
        return ''

    def list(self, *what: str) -> str:
        self.calls.append(('list', what))
        lines = []
        for ref, table in self.tables.items():
            lines.append(f'table {ref} {{')
            for name, chain in table.chains.items():
                lines.append(f'\tchain {name} {{')
                lines.extend(f'\t\t{rule}' for _, rule in chain.rules)
                lines.append('\t}')
            lines.append('}')
        return '\n'.join(lines) + '\n' if lines else ''

    def list_rules(self, chain: ChainRef) -> list[ListedRule]:
        self.calls.append(('list_rules', chain))
        return [
            ListedRule(chain, handle, rule.matchers, (rule.statement,))
            for handle, rule in self._chain(chain).rules
        ]

    def version(self) -> str:
        self.calls.append(('version',))
        return 'nftables v1.0.9 (Old Doc Yiannis)'


class FakeResolver:
    def __init__(self, answers=None) -> None:
        self.answers = answers or {}
        self.queries: list[str] = []

    def resolve(self, name):
        self.queries.append(name)
        return list(self.answers.get(name, []))


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def fake_resolver():
    return FakeResolver({'example.com': ['93.184.216.34'], 'multi.example': ['10.0.0.2', '10.0.0.1']})


@pytest.fixture
def settings(tmp_path):
    forward = tmp_path / 'ip_forward'
    forward.write_text('0\n', encoding='ascii')
    return Settings(
        blacklist_file=str(tmp_path / 'blacklist.txt'),
        whitelist_file=str(tmp_path / 'whitelist.txt'),
        backup_dir=str(tmp_path / 'backup'),
        save_file=str(tmp_path / 'nftables.conf'),
        install_log=str(tmp_path / 'install.log'),
        log_file='',
        ip_forward_path=str(forward),
    )


@pytest.fixture
def applier(fake_engine, settings, fake_resolver):
    return Applier(
        fake_engine,
        settings,
        resolver=fake_resolver,
        sysctl=Sysctl(settings.ip_forward_path),
    )
