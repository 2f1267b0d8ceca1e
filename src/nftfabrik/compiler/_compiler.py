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

"""RuleCompiler: translates high-level intents into plans.

A plan is an ordered list of engine operations, each tagged with a
failure policy. Prerequisite objects (tables, chains) are created by
ENSURE steps; the operation the intent is about is REQUIRED. All
arguments are validated here, so an invalid intent never produces a
single step.

Optional context parameters fall back to the configured defaults
(family ``inet``, table ``filter``, chain ``input``; NAT intents use
``ip nat``).
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from nftfabrik.core import (
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
    TableRef,
    Verdict,
)
from nftfabrik.core.options import Settings

from . import _validate as validate
from ._base import BaseCompiler
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
    RawCommand,
)
from ._plan import Plan
from ._print_rule import (
    address_matcher,
    interface_matcher,
    log_statement,
    nat_target,
    payload_matcher,
    port_matcher,
    verdict,
)

# Payload anchors tried in order: transport header, then inner header.
PAYLOAD_ANCHORS = ('th', 'ih')

RAW_VERBS = ('add', 'delete', 'insert', 'replace')


class NamedList:
    """A blacklist or whitelist: which verdict it mirrors and where."""

    TABLE = TableRef(Family.INET, 'filter')
    INPUT = ChainRef(TABLE, 'input')
    OUTPUT = ChainRef(TABLE, 'output')

    def __init__(self, kind: str, verdict_: Verdict, prepend: bool) -> None:
        self.kind = kind
        self.verdict = verdict_
        self.prepend = prepend

    def mirrored_rules(self, address: str) -> list[tuple[ChainRef, Rule]]:
        """The input rule (source match) and output rule (destination match)."""
        return [
            (self.INPUT, Rule((address_matcher(address, 'saddr'),), verdict(self.verdict))),
            (self.OUTPUT, Rule((address_matcher(address, 'daddr'),), verdict(self.verdict))),
        ]


BLACKLIST = NamedList('blacklist', Verdict.DROP, prepend=False)
WHITELIST = NamedList('whitelist', Verdict.ACCEPT, prepend=True)


class RuleCompiler(BaseCompiler):
    """Compiles intents into :class:`Plan` objects."""

    def __init__(self, settings: Settings | None = None) -> None:
        super().__init__()
        self.settings = settings or Settings()

    # -- argument handling --

    def _arg(self, intent: str, check, *args):
        try:
            return check(*args)
        except ValueError as e:
            self.error(intent, str(e))

    def table_ref(self, intent: str, family=None, table=None) -> TableRef:
        fam = self._arg(intent, validate.family, family or self.settings.family)
        name = self._arg(intent, validate.name, table or self.settings.table, 'table')
        return TableRef(fam, name)

    def chain_ref(self, intent: str, family=None, table=None, chain=None) -> ChainRef:
        ref = self.table_ref(intent, family, table)
        name = self._arg(intent, validate.name, chain or self.settings.chain, 'chain')
        return ChainRef(ref, name)

    def _nat_chain(self, intent: str, hook: Hook) -> ChainRef:
        table = self.table_ref(intent, self.settings.nat_family, self.settings.nat_table)
        return ChainRef(table, str(hook))

    @staticmethod
    def default_hook(chain: ChainRef) -> HookSpec | None:
        """Base chain spec for chains named after a hook, else a regular chain."""
        try:
            hook = Hook(chain.name)
        except ValueError:
            return None
        return HookSpec(ChainType.FILTER, hook, FILTER_PRIORITY)

    def _ensure_chain(self, plan: Plan, chain: ChainRef, hook: HookSpec | None = None) -> Plan:
        plan.ensure(CreateTable(chain.table))
        plan.ensure(CreateChain(chain, hook))
        return plan

    def _ensure_nat(self, plan: Plan, *hooks: Hook) -> Plan:
        priorities = {
            Hook.PREROUTING: DSTNAT_PRIORITY,
            Hook.POSTROUTING: SRCNAT_PRIORITY,
        }
        table = self.table_ref(plan.intent, self.settings.nat_family, self.settings.nat_table)
        plan.ensure(CreateTable(table))
        for hook in hooks:
            spec = HookSpec(ChainType.NAT, hook, priorities[hook])
            plan.ensure(CreateChain(ChainRef(table, str(hook)), spec))
        return plan

    def _match_family(self, intent: str, chain: ChainRef, address: str, what='address') -> str:
        return self._arg(intent, validate.address_for_family, address, chain.table.family, what)

    # -- tables and chains --

    def ensure_table(self, family=None, table=None) -> Plan:
        intent = 'ensure-table'
        ref = self.table_ref(intent, family, table)
        return Plan(intent).ensure(CreateTable(ref))

    def ensure_chain(self, family=None, table=None, chain=None, hook=None) -> Plan:
        intent = 'ensure-chain'
        hook = self.parse_hook(intent, hook)
        ref = self.chain_ref(intent, family, table, chain)
        return self._ensure_chain(Plan(intent), ref, hook)

    def table_create(self, family, table) -> Plan:
        intent = 'table-create'
        self._arg(intent, validate.required, family, 'family')
        self._arg(intent, validate.required, table, 'table')
        return Plan(intent).require(CreateTable(self.table_ref(intent, family, table)))

    def table_delete(self, family, table) -> Plan:
        intent = 'table-delete'
        self._arg(intent, validate.required, family, 'family')
        self._arg(intent, validate.required, table, 'table')
        ref = self.table_ref(intent, family, table)
        return Plan(intent).ensure(FlushTable(ref)).require(DeleteTable(ref))

    def table_flush(self, family, table) -> Plan:
        intent = 'table-flush'
        self._arg(intent, validate.required, family, 'family')
        self._arg(intent, validate.required, table, 'table')
        return Plan(intent).require(FlushTable(self.table_ref(intent, family, table)))

    def chain_create(self, family, table, chain, hook=None) -> Plan:
        intent = 'chain-create'
        hook = self.parse_hook(intent, hook)
        for value, what in ((family, 'family'), (table, 'table'), (chain, 'chain')):
            self._arg(intent, validate.required, value, what)
        ref = self.chain_ref(intent, family, table, chain)
        return Plan(intent).require(CreateChain(ref, hook))

    def chain_delete(self, family, table, chain) -> Plan:
        intent = 'chain-delete'
        for value, what in ((family, 'family'), (table, 'table'), (chain, 'chain')):
            self._arg(intent, validate.required, value, what)
        ref = self.chain_ref(intent, family, table, chain)
        return Plan(intent).ensure(FlushChain(ref)).require(DeleteChain(ref))

    def chain_flush(self, family, table, chain) -> Plan:
        intent = 'chain-flush'
        for value, what in ((family, 'family'), (table, 'table'), (chain, 'chain')):
            self._arg(intent, validate.required, value, what)
        return Plan(intent).require(FlushChain(self.chain_ref(intent, family, table, chain)))

    def flush(self, family=None, table=None) -> Plan:
        """Flush one table, or the ruleset (of *family*, if given) when no table is given."""
        if table:
            return self.table_flush(family or self.settings.family, table)
        if family:
            family = self._arg('flush', validate.family, family)
        return Plan('flush').require(FlushRuleset(family or None))

    def reset(self) -> Plan:
        return Plan('reset').require(FlushRuleset())

    def restore(self, path: str) -> Plan:
        intent = 'restore'
        path = self._arg(intent, validate.required, path, 'file')
        return Plan(intent).require(LoadFile(path))

    def raw(self, verb: str, args: Sequence[str]) -> Plan:
        """Pass a primitive command through (``add rule inet filter input ...``)."""
        intent = self._arg('raw', validate.required, verb, 'command')
        if intent not in RAW_VERBS:
            self.error('raw', f'unsupported command {verb!r}')
        if not args:
            self.error(intent, 'missing command arguments')
        return Plan(intent).require(RawCommand((intent, *args)))

    # -- address and port rules --

    def _address_rule(self, intent, verdict_, address, family, table, chain) -> Plan:
        self._arg(intent, validate.required, address, 'ip-address')
        ref = self.chain_ref(intent, family, table, chain)
        address = self._match_family(intent, ref, address, 'ip-address')
        rule = Rule((address_matcher(address, 'saddr'),), verdict(verdict_))
        plan = self._ensure_chain(Plan(intent), ref, self.default_hook(ref))
        return plan.require(AddRule(ref, rule))

    def allow_ip(self, address, family=None, table=None, chain=None) -> Plan:
        return self._address_rule('allow-ip', Verdict.ACCEPT, address, family, table, chain)

    def block_ip(self, address, family=None, table=None, chain=None) -> Plan:
        return self._address_rule('block-ip', Verdict.DROP, address, family, table, chain)

    def _port_rule(self, intent, verdict_, port, protocol, family, table, chain) -> Plan:
        number = self._arg(intent, validate.port, port)
        proto = self._arg(intent, validate.protocol, protocol or Protocol.TCP)
        ref = self.chain_ref(intent, family, table, chain)
        rule = Rule((port_matcher(proto, number),), verdict(verdict_))
        plan = self._ensure_chain(Plan(intent), ref, self.default_hook(ref))
        return plan.require(AddRule(ref, rule))

    def allow_port(self, port, protocol=None, family=None, table=None, chain=None) -> Plan:
        return self._port_rule('allow-port', Verdict.ACCEPT, port, protocol, family, table, chain)

    def block_port(self, port, protocol=None, family=None, table=None, chain=None) -> Plan:
        return self._port_rule('block-port', Verdict.DROP, port, protocol, family, table, chain)

    def limit(self, port, rate, protocol=None, family=None, table=None, chain=None) -> Plan:
        """Accept new traffic to a port only up to a rate."""
        intent = 'limit'
        number = self._arg(intent, validate.port, port)
        rate_ = self._arg(intent, validate.rate, rate)
        proto = self._arg(intent, validate.protocol, protocol or Protocol.TCP)
        ref = self.chain_ref(intent, family, table, chain)
        rule = Rule(
            (port_matcher(proto, number), Matcher('limit rate', rate_)),
            verdict(Verdict.ACCEPT),
        )
        plan = self._ensure_chain(Plan(intent), ref, self.default_hook(ref))
        return plan.require(AddRule(ref, rule))

    # -- NAT --

    def port_forward(self, local_port, remote_ip, remote_port, protocol=None) -> Plan:
        """DNAT local_port to remote_ip:remote_port and masquerade the reply path.

        Enabling IPv4 forwarding is a host side effect executed last; it
        is not undone by removing the rules.
        """
        intent = 'forward'
        lport = self._arg(intent, validate.port, local_port, 'local-port')
        rip = self._arg(intent, validate.host_address, remote_ip, 'remote-ip')
        rport = self._arg(intent, validate.port, remote_port, 'remote-port')
        proto = self._arg(intent, validate.protocol, protocol or Protocol.TCP)
        pre = self._nat_chain(intent, Hook.PREROUTING)
        post = self._nat_chain(intent, Hook.POSTROUTING)
        rip = self._match_family(intent, pre, rip, 'remote-ip')

        dnat = Rule(
            (port_matcher(proto, lport),),
            verdict(Verdict.DNAT, 'to', nat_target(rip, rport)),
        )
        masq = Rule(
            (address_matcher(rip, 'daddr'), port_matcher(proto, rport)),
            verdict(Verdict.MASQUERADE),
        )
        plan = self._ensure_nat(Plan(intent), Hook.PREROUTING, Hook.POSTROUTING)
        plan.require(AddRule(pre, dnat))
        plan.require(AddRule(post, masq))
        return plan.side_effect(EnableIPForwarding())

    def snat(self, source_network, public_ip) -> Plan:
        intent = 'snat'
        post = self._nat_chain(intent, Hook.POSTROUTING)
        src = self._match_family(intent, post, source_network, 'source-network')
        pub = self._arg(intent, validate.host_address, public_ip, 'public-ip')
        pub = self._match_family(intent, post, pub, 'public-ip')
        rule = Rule((address_matcher(src, 'saddr'),), verdict(Verdict.SNAT, 'to', pub))
        plan = self._ensure_nat(Plan(intent), Hook.POSTROUTING)
        return plan.require(AddRule(post, rule))

    def dnat(self, public_port, private_ip, private_port, protocol=None) -> Plan:
        intent = 'dnat'
        pport = self._arg(intent, validate.port, public_port, 'public-port')
        pip = self._arg(intent, validate.host_address, private_ip, 'private-ip')
        dport = self._arg(intent, validate.port, private_port, 'private-port')
        proto = self._arg(intent, validate.protocol, protocol or Protocol.TCP)
        pre = self._nat_chain(intent, Hook.PREROUTING)
        pip = self._match_family(intent, pre, pip, 'private-ip')
        rule = Rule(
            (port_matcher(proto, pport),),
            verdict(Verdict.DNAT, 'to', nat_target(pip, dport)),
        )
        plan = self._ensure_nat(Plan(intent), Hook.PREROUTING)
        return plan.require(AddRule(pre, rule))

    def masquerade(self, interface=None) -> Plan:
        """Masquerade everything leaving through *interface* (default: any)."""
        intent = 'masquerade'
        matchers: tuple[Matcher, ...] = ()
        if interface and interface != '+':
            matchers = (interface_matcher(self._arg(intent, validate.interface, interface)),)
        post = self._nat_chain(intent, Hook.POSTROUTING)
        plan = self._ensure_nat(Plan(intent), Hook.POSTROUTING)
        return plan.require(AddRule(post, Rule(matchers, verdict(Verdict.MASQUERADE))))

    # -- sets, maps, counters --

    def object_ref(self, intent, family, table, name, what) -> ObjectRef:
        self._arg(intent, validate.required, family, 'family')
        self._arg(intent, validate.required, table, 'table')
        ref = self.table_ref(intent, family, table)
        return ObjectRef(ref, self._arg(intent, validate.name, name, what))

    def set_create(self, family, table, name, element_type, flags=None) -> Plan:
        """Create a named set. Not idempotent: fails if the set exists."""
        intent = 'set-create'
        ref = self.object_ref(intent, family, table, name, 'set-name')
        etype = self._arg(intent, validate.element_type, element_type, 'type')
        flags_ = self._arg(intent, validate.flags, flags)
        return Plan(intent).require(CreateSet(ref, etype, flags_))

    def set_add(self, family, table, name, elements: Iterable[str]) -> Plan:
        intent = 'set-add'
        ref = self.object_ref(intent, family, table, name, 'set-name')
        values = self._arg(intent, validate.elements, elements)
        return Plan(intent).require(AddElements(ref, values))

    def set_delete(self, family, table, name, elements: Iterable[str]) -> Plan:
        intent = 'set-delete'
        ref = self.object_ref(intent, family, table, name, 'set-name')
        values = self._arg(intent, validate.elements, elements)
        return Plan(intent).require(DeleteElements(ref, values))

    def map_create(self, family, table, name, key_type, data_type, flags=None) -> Plan:
        intent = 'map-create'
        ref = self.object_ref(intent, family, table, name, 'map-name')
        ktype = self._arg(intent, validate.element_type, key_type, 'key-type')
        dtype = self._arg(intent, validate.element_type, data_type, 'data-type')
        flags_ = self._arg(intent, validate.flags, flags)
        return Plan(intent).require(CreateMap(ref, ktype, dtype, flags_))

    def map_add(self, family, table, name, elements: Iterable[str]) -> Plan:
        intent = 'map-add'
        ref = self.object_ref(intent, family, table, name, 'map-name')
        values = self._arg(intent, validate.map_elements, elements)
        return Plan(intent).require(AddElements(ref, values))

    def map_delete(self, family, table, name, keys: Iterable[str]) -> Plan:
        intent = 'map-delete'
        ref = self.object_ref(intent, family, table, name, 'map-name')
        values = self._arg(intent, validate.elements, keys, 'keys')
        return Plan(intent).require(DeleteElements(ref, values))

    def create_counter(self, family, table, name) -> Plan:
        intent = 'counter'
        ref = self.object_ref(intent, family, table, name, 'counter-name')
        return Plan(intent).require(CreateCounter(ref))

    def set_quota(self, family, table, chain, quota) -> Plan:
        intent = 'quota'
        for value, what in ((family, 'family'), (table, 'table'), (chain, 'chain')):
            self._arg(intent, validate.required, value, what)
        ref = self.chain_ref(intent, family, table, chain)
        tokens = self._arg(intent, validate.quota, quota)
        rule = Rule((), verdict(Verdict.QUOTA, *tokens))
        return Plan(intent).require(AddRule(ref, rule))

    # -- logging --

    def enable_log(self, family=None, table=None, chain=None, prefix=None) -> Plan:
        """Append a non-terminal log rule with a fixed severity level."""
        intent = 'log'
        ref = self.chain_ref(intent, family, table, chain)
        prefix_ = self._arg(intent, validate.log_prefix, prefix or self.settings.log_prefix)
        level = self._arg(intent, validate.log_level, self.settings.log_level)
        plan = self._ensure_chain(Plan(intent), ref, self.default_hook(ref))
        return plan.require(AddRule(ref, Rule((), log_statement(prefix_, level))))

    # -- named lists --

    def list_add(self, named: NamedList, address) -> Plan:
        intent = f'{named.kind}-add'
        address = self._arg(intent, validate.address, address, 'ip-address')
        self._arg(intent, validate.address_for_family, address, Family.INET, 'ip-address')
        plan = Plan(intent)
        plan.ensure(CreateTable(named.TABLE))
        for chain in (named.INPUT, named.OUTPUT):
            plan.ensure(CreateChain(chain, self.default_hook(chain)))
        for chain, rule in named.mirrored_rules(address):
            if named.prepend:
                plan.require(InsertRule(chain, rule, 0))
            else:
                plan.require(AddRule(chain, rule))
        return plan

    def list_address(self, intent: str, address) -> str:
        """Validate and normalize an address for a named list."""
        return self._arg(intent, validate.address, address, 'ip-address')

    def delete_rules(self, intent: str, listed: Iterable[ListedRule]) -> Plan:
        """Delete rules by the handles found when they were listed."""
        plan = Plan(intent)
        for rule in listed:
            plan.require(DeleteRule(rule.chain, rule.handle))
        return plan

    # -- payload matching --

    def payload_string_match(
        self,
        family,
        table,
        chain,
        string,
        port=None,
        offset=None,
        target=None,
        intent='string-match',
    ) -> Plan:
        """Match a fixed window of raw payload against a literal string.

        Best effort only: it works for unencrypted HTTP with a fixed
        header layout and nothing else. The byte offset is converted to a
        bit offset, the string length to a bit length. The transport
        header anchor is tried first, the inner header anchor second.
        """
        for value, what in ((family, 'family'), (table, 'table'), (chain, 'chain')):
            self._arg(intent, validate.required, value, what)
        text = self._arg(intent, validate.text, string, 'string')
        number = self._arg(intent, validate.port, self.settings.payload_port if port is None else port)
        byte_offset = self._arg(
            intent,
            validate.offset,
            self.settings.payload_offset if offset is None else offset,
        )
        verdict_ = self._arg(intent, validate.payload_verdict, target or Verdict.DROP)
        ref = self.chain_ref(intent, family, table, chain)

        bit_offset = byte_offset * 8
        bit_length = len(text.encode('utf-8')) * 8
        candidates = [
            AddRule(
                ref,
                Rule(
                    (
                        port_matcher(Protocol.TCP, number),
                        payload_matcher(anchor, bit_offset, bit_length, text),
                    ),
                    verdict(verdict_),
                ),
            )
            for anchor in PAYLOAD_ANCHORS
        ]
        self.warning(
            intent,
            'payload matching is best effort: plain HTTP with a fixed header '
            'layout only (no HTTPS, no HTTP/2); prefer filtering in the web server',
        )
        plan = self._ensure_chain(Plan(intent), ref, self.default_hook(ref))
        return plan.require(candidates[0], *candidates[1:])

    def block_user_agent(self, user_agent, port=None, offset=None, family=None, table=None, chain=None) -> Plan:
        intent = 'block-user-agent'
        ua = self._arg(intent, validate.text, user_agent, 'user-agent')
        return self.payload_string_match(
            family or self.settings.family,
            table or self.settings.table,
            chain or self.settings.chain,
            f'User-Agent: {ua}',
            port,
            offset,
            Verdict.DROP,
            intent=intent,
        )

    # -- helpers for intents that do not build plans --

    def domain(self, intent: str, value) -> str:
        return self._arg(intent, validate.hostname, value)

    def parse_hook(self, intent: str, value) -> HookSpec | None:
        """Accept a :class:`HookSpec` or its nft text form."""
        if value is None or isinstance(value, HookSpec):
            return value
        return self._arg(intent, validate.hook_spec, value)

    def path(self, intent: str, value, what: str = 'file') -> str:
        return self._arg(intent, validate.required, value, what)
