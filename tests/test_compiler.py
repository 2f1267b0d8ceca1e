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

"""Tests for the intent -> plan compiler."""

import pytest

from nftfabrik.compiler import (
    BLACKLIST,
    WHITELIST,
    AddRule,
    CompilerStatus,
    EnableIPForwarding,
    InsertRule,
    RawCommand,
    RuleCompiler,
    StepPolicy,
)
from nftfabrik.core import (
    ChainRef,
    ChainType,
    Family,
    Hook,
    HookSpec,
    InvalidArgumentsError,
    TableRef,
)
from nftfabrik.core.options import Settings


@pytest.fixture
def compiler():
    return RuleCompiler(Settings())


def _lines(plan):
    return [op.batch_line() for op in plan.operations()]


def _policies(plan):
    return [step.policy for step in plan.steps]


class TestFilterRules:
    def test_allow_ip_defaults(self, compiler):
        plan = compiler.allow_ip('10.0.0.1')
        assert plan.intent == 'allow-ip'
        assert _lines(plan) == [
            'create table inet filter',
            'create chain inet filter input { type filter hook input priority 0; }',
            'add rule inet filter input ip saddr 10.0.0.1 accept',
        ]
        assert _policies(plan) == [StepPolicy.ENSURE, StepPolicy.ENSURE, StepPolicy.REQUIRED]

    def test_block_ip_network(self, compiler):
        plan = compiler.block_ip('192.168.0.0/24', 'ip', 'fw', 'input')
        assert _lines(plan)[-1] == 'add rule ip fw input ip saddr 192.168.0.0/24 drop'

    def test_host_prefix_is_dropped(self, compiler):
        plan = compiler.block_ip('10.0.0.1/32')
        assert _lines(plan)[-1] == 'add rule inet filter input ip saddr 10.0.0.1 drop'

    def test_ipv6_address_uses_ip6_selector(self, compiler):
        plan = compiler.block_ip('2001:db8::1')
        assert _lines(plan)[-1] == 'add rule inet filter input ip6 saddr 2001:db8::1 drop'

    def test_ipv6_address_in_ip_family_is_invalid(self, compiler):
        with pytest.raises(InvalidArgumentsError, match='does not belong to family ip'):
            compiler.block_ip('2001:db8::1', 'ip')

    def test_regular_chain_has_no_hook(self, compiler):
        plan = compiler.allow_ip('10.0.0.1', chain='trusted')
        assert _lines(plan)[1] == 'create chain inet filter trusted'

    def test_output_chain_gets_output_hook(self, compiler):
        plan = compiler.block_ip('10.0.0.1', chain='output')
        assert _lines(plan)[1] == 'create chain inet filter output { type filter hook output priority 0; }'

    def test_allow_port_default_protocol(self, compiler):
        plan = compiler.allow_port('22')
        assert _lines(plan)[-1] == 'add rule inet filter input tcp dport 22 accept'

    def test_block_port_udp(self, compiler):
        plan = compiler.block_port(53, 'UDP')
        assert _lines(plan)[-1] == 'add rule inet filter input udp dport 53 drop'

    def test_limit(self, compiler):
        plan = compiler.limit(22, '10/minute')
        assert _lines(plan)[-1] == 'add rule inet filter input tcp dport 22 limit rate 10/minute accept'

    def test_settings_change_defaults(self):
        compiler = RuleCompiler(Settings(family='ip', table='fw', chain='forward'))
        plan = compiler.allow_port(443)
        assert _lines(plan) == [
            'create table ip fw',
            'create chain ip fw forward { type filter hook forward priority 0; }',
            'add rule ip fw forward tcp dport 443 accept',
        ]


class TestInvalidArguments:
    @pytest.mark.parametrize(
        ('call', 'message'),
        [
            (lambda c: c.allow_ip(''), 'missing required parameter <ip-address>'),
            (lambda c: c.allow_ip(None), 'missing required parameter <ip-address>'),
            (lambda c: c.block_ip('10.0.0.256'), 'invalid ip-address'),
            (lambda c: c.allow_port(0), 'out of range'),
            (lambda c: c.allow_port(70000), 'out of range'),
            (lambda c: c.allow_port('http'), 'invalid port'),
            (lambda c: c.block_port(80, 'sctp'), 'invalid protocol'),
            (lambda c: c.allow_ip('10.0.0.1', 'ipx'), 'invalid family'),
            (lambda c: c.allow_ip('10.0.0.1', table='bad name'), 'invalid table'),
            (lambda c: c.limit(22, 'fast'), 'invalid rate'),
            (lambda c: c.set_quota('inet', 'filter', 'input', 'lots'), 'invalid quota'),
            (lambda c: c.set_create('inet', 'filter', 's', ''), 'missing required parameter <type>'),
            (lambda c: c.set_add('inet', 'filter', 's', []), 'missing required parameter <elements>'),
            (lambda c: c.map_add('inet', 'filter', 'm', ['80 accept']), 'expected key : value'),
            (lambda c: c.port_forward(8080, 'not-an-ip', 80), 'invalid remote-ip'),
            (lambda c: c.raw('list', ['ruleset']), 'unsupported command'),
            (lambda c: c.raw('add', []), 'missing command arguments'),
            (lambda c: c.chain_create('inet', 'filter', 'c', '{ type filter }'), 'invalid chain definition'),
            (lambda c: c.enable_log(prefix='say "hi"'), 'double quotes'),
        ],
    )
    def test_rejected_before_any_step(self, compiler, call, message):
        with pytest.raises(InvalidArgumentsError, match=message):
            call(compiler)
        assert compiler.status == CompilerStatus.ERROR
        assert compiler.get_errors()

    def test_error_names_the_intent(self, compiler):
        with pytest.raises(InvalidArgumentsError) as exc:
            compiler.block_port('')
        assert str(exc.value) == 'block-port: missing required parameter <port>'

    def test_reset_clears_status(self, compiler):
        with pytest.raises(InvalidArgumentsError):
            compiler.allow_ip('')
        compiler.reset()
        assert compiler.status == CompilerStatus.SUCCESS
        assert compiler.get_errors() == []


class TestNat:
    def test_port_forward(self, compiler):
        plan = compiler.port_forward(8080, '192.168.1.10', 80, 'tcp')
        assert plan.intent == 'forward'
        assert _lines(plan) == [
            'create table ip nat',
            'create chain ip nat prerouting { type nat hook prerouting priority -100; }',
            'create chain ip nat postrouting { type nat hook postrouting priority 100; }',
            'add rule ip nat prerouting tcp dport 8080 dnat to 192.168.1.10:80',
            'add rule ip nat postrouting ip daddr 192.168.1.10 tcp dport 80 masquerade',
            '# sysctl -w net.ipv4.ip_forward=1',
        ]
        assert _policies(plan) == [
            StepPolicy.ENSURE,
            StepPolicy.ENSURE,
            StepPolicy.ENSURE,
            StepPolicy.REQUIRED,
            StepPolicy.REQUIRED,
            StepPolicy.SIDE_EFFECT,
        ]
        assert isinstance(plan.steps[-1].operation, EnableIPForwarding)

    def test_snat(self, compiler):
        plan = compiler.snat('10.0.0.0/8', '203.0.113.5')
        assert _lines(plan)[-1] == 'add rule ip nat postrouting ip saddr 10.0.0.0/8 snat to 203.0.113.5'
        assert len(plan) == 3

    def test_dnat_udp(self, compiler):
        plan = compiler.dnat(53, '10.0.0.53', 5353, 'udp')
        assert _lines(plan)[-1] == 'add rule ip nat prerouting udp dport 53 dnat to 10.0.0.53:5353'

    def test_masquerade_interface(self, compiler):
        plan = compiler.masquerade('eth0')
        assert _lines(plan)[-1] == 'add rule ip nat postrouting oifname eth0 masquerade'

    @pytest.mark.parametrize('interface', [None, '', '+'])
    def test_masquerade_any_interface(self, compiler, interface):
        plan = compiler.masquerade(interface)
        assert _lines(plan)[-1] == 'add rule ip nat postrouting masquerade'

    def test_ipv6_nat(self):
        compiler = RuleCompiler(Settings(nat_family='ip6'))
        plan = compiler.dnat(80, '2001:db8::10', 8080)
        assert _lines(plan)[-1] == 'add rule ip6 nat prerouting tcp dport 80 dnat to [2001:db8::10]:8080'


class TestObjects:
    def test_set_create(self, compiler):
        plan = compiler.set_create('inet', 'filter', 'blocked', 'ipv4_addr', 'flags interval;')
        assert _lines(plan) == ['create set inet filter blocked { type ipv4_addr; flags interval; }']
        assert _policies(plan) == [StepPolicy.REQUIRED]

    def test_set_add_and_delete(self, compiler):
        add = compiler.set_add('inet', 'filter', 'blocked', '1.2.3.4, 5.6.7.8')
        delete = compiler.set_delete('inet', 'filter', 'blocked', ['1.2.3.4'])
        assert _lines(add) == ['add element inet filter blocked { 1.2.3.4, 5.6.7.8 }']
        assert _lines(delete) == ['delete element inet filter blocked { 1.2.3.4 }']

    def test_map(self, compiler):
        create = compiler.map_create('inet', 'filter', 'ports', 'inet_service', 'verdict')
        add = compiler.map_add('inet', 'filter', 'ports', ['80 : accept', '443:drop'])
        delete = compiler.map_delete('inet', 'filter', 'ports', ['80'])
        assert _lines(create) == ['create map inet filter ports { type inet_service : verdict; }']
        assert _lines(add) == ['add element inet filter ports { 80 : accept, 443 : drop }']
        assert _lines(delete) == ['delete element inet filter ports { 80 }']

    def test_counter(self, compiler):
        assert _lines(compiler.create_counter('inet', 'filter', 'http')) == [
            'create counter inet filter http'
        ]

    @pytest.mark.parametrize(
        ('quota', 'expected'),
        [
            ('10 mbytes', 'quota 10 mbytes'),
            ('over 1 gbytes', 'quota over 1 gbytes'),
            ('500bytes', 'quota 500 bytes'),
        ],
    )
    def test_quota(self, compiler, quota, expected):
        plan = compiler.set_quota('inet', 'filter', 'input', quota)
        assert _lines(plan) == [f'add rule inet filter input {expected}']


class TestTablesAndChains:
    def test_ensure_table_is_ensure_only(self, compiler):
        plan = compiler.ensure_table('ip6', 'mytable')
        assert _lines(plan) == ['create table ip6 mytable']
        assert _policies(plan) == [StepPolicy.ENSURE]

    def test_ensure_chain_with_definition(self, compiler):
        plan = compiler.ensure_chain('inet', 'filter', 'fwd', '{ type filter hook forward priority 10; policy drop; }')
        assert plan.steps[1].operation.hook == HookSpec(ChainType.FILTER, Hook.FORWARD, 10, 'drop')
        assert _lines(plan)[1] == (
            'create chain inet filter fwd { type filter hook forward priority 10; policy drop; }'
        )

    def test_table_create_is_required(self, compiler):
        plan = compiler.table_create('inet', 'filter')
        assert _policies(plan) == [StepPolicy.REQUIRED]

    def test_table_delete_flushes_first(self, compiler):
        plan = compiler.table_delete('inet', 'filter')
        assert _lines(plan) == ['flush table inet filter', 'delete table inet filter']
        assert _policies(plan) == [StepPolicy.ENSURE, StepPolicy.REQUIRED]

    def test_chain_delete_flushes_first(self, compiler):
        plan = compiler.chain_delete('inet', 'filter', 'fwd')
        assert _lines(plan) == ['flush chain inet filter fwd', 'delete chain inet filter fwd']

    def test_chain_create_needs_all_names(self, compiler):
        with pytest.raises(InvalidArgumentsError, match='<chain>'):
            compiler.chain_create('inet', 'filter', None)

    def test_flush_whole_ruleset(self, compiler):
        assert _lines(compiler.flush()) == ['flush ruleset']
        assert _lines(compiler.reset()) == ['flush ruleset']

    def test_flush_one_table(self, compiler):
        assert _lines(compiler.flush(table='filter')) == ['flush table inet filter']

    def test_flush_one_family(self, compiler):
        assert _lines(compiler.flush('ip6')) == ['flush ruleset ip6']
        with pytest.raises(InvalidArgumentsError):
            compiler.flush('ipx')

    def test_restore_loads_file(self, compiler):
        plan = compiler.restore('/etc/nftables.conf')
        assert plan.operations()[0].argv() == ['-f', '/etc/nftables.conf']

    def test_raw_passthrough(self, compiler):
        plan = compiler.raw('insert', ['rule', 'inet', 'filter', 'input', 'tcp', 'dport', '22', 'accept'])
        assert plan.intent == 'insert'
        assert plan.operations() == [
            RawCommand(('insert', 'rule', 'inet', 'filter', 'input', 'tcp', 'dport', '22', 'accept'))
        ]


class TestNamedLists:
    def test_blacklist_appends_mirrored_rules(self, compiler):
        plan = compiler.list_add(BLACKLIST, '1.2.3.4')
        assert plan.intent == 'blacklist-add'
        assert _lines(plan) == [
            'create table inet filter',
            'create chain inet filter input { type filter hook input priority 0; }',
            'create chain inet filter output { type filter hook output priority 0; }',
            'add rule inet filter input ip saddr 1.2.3.4 drop',
            'add rule inet filter output ip daddr 1.2.3.4 drop',
        ]

    def test_whitelist_inserts_at_head(self, compiler):
        plan = compiler.list_add(WHITELIST, '1.2.3.4')
        ops = plan.operations()[-2:]
        assert all(isinstance(op, InsertRule) and op.index == 0 for op in ops)
        assert [op.batch_line() for op in ops] == [
            'insert rule inet filter input ip saddr 1.2.3.4 accept',
            'insert rule inet filter output ip daddr 1.2.3.4 accept',
        ]

    def test_mirrored_rules(self):
        rules = WHITELIST.mirrored_rules('10.1.0.0/16')
        assert [(str(chain), str(rule)) for chain, rule in rules] == [
            ('inet filter input', 'ip saddr 10.1.0.0/16 accept'),
            ('inet filter output', 'ip daddr 10.1.0.0/16 accept'),
        ]

    def test_invalid_address(self, compiler):
        with pytest.raises(InvalidArgumentsError, match='whitelist-add'):
            compiler.list_add(WHITELIST, '1.2.3')


class TestLogging:
    def test_enable_log_defaults(self, compiler):
        plan = compiler.enable_log()
        assert _lines(plan)[-1] == 'add rule inet filter input log prefix "NFTABLES: " level warn'

    def test_enable_log_prefix(self, compiler):
        plan = compiler.enable_log('inet', 'filter', 'forward', 'FWD')
        assert _lines(plan)[-1] == 'add rule inet filter forward log prefix "FWD: " level warn'


class TestPayloadMatch:
    def test_bit_offsets(self, compiler):
        plan = compiler.payload_string_match('inet', 'filter', 'input', 'GET /admin', 8080, 20)
        step = plan.steps[-1]
        assert step.operation.batch_line() == (
            'add rule inet filter input tcp dport 8080 @th,160,80 "GET /admin" drop'
        )
        assert [op.batch_line() for op in step.fallbacks] == [
            'add rule inet filter input tcp dport 8080 @ih,160,80 "GET /admin" drop'
        ]

    def test_defaults_from_settings(self, compiler):
        plan = compiler.payload_string_match('inet', 'filter', 'input', 'x', target='accept')
        assert plan.steps[-1].operation.batch_line() == (
            'add rule inet filter input tcp dport 80 @th,1600,8 "x" accept'
        )

    def test_multibyte_length(self, compiler):
        plan = compiler.payload_string_match('inet', 'filter', 'input', 'é', 80, 0)
        assert '@th,0,16 "é"' in plan.steps[-1].operation.batch_line()

    def test_is_flagged_best_effort(self, compiler):
        compiler.payload_string_match('inet', 'filter', 'input', 'abc')
        assert compiler.status == CompilerStatus.WARNING
        assert 'best effort' in compiler.get_warnings()[0]

    @pytest.mark.parametrize(
        ('string', 'port', 'offset', 'target', 'message'),
        [
            ('', None, None, None, 'missing required parameter <string>'),
            ('a"b', None, None, None, 'double quotes'),
            ('a\nb', None, None, None, 'control characters'),
            ('abc', 0, None, None, 'out of range'),
            ('abc', None, -1, None, 'must not be negative'),
            ('abc', None, None, 'masquerade', 'invalid target'),
        ],
    )
    def test_invalid(self, compiler, string, port, offset, target, message):
        with pytest.raises(InvalidArgumentsError, match=message):
            compiler.payload_string_match('inet', 'filter', 'input', string, port, offset, target)

    def test_block_user_agent(self, compiler):
        plan = compiler.block_user_agent('curl')
        assert plan.intent == 'block-user-agent'
        op = plan.steps[-1].operation
        assert isinstance(op, AddRule)
        assert op.chain == ChainRef(TableRef(Family.INET, 'filter'), 'input')
        assert op.batch_line() == (
            'add rule inet filter input tcp dport 80 @th,1600,128 "User-Agent: curl" drop'
        )
