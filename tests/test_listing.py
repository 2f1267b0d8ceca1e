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

"""Tests for parsing ``nft -a -j list chain`` output."""

import json

import pytest

from nftfabrik.compiler import BLACKLIST, WHITELIST, RuleCompiler
from nftfabrik.core import ChainRef, EngineRejectedError, Family, Statement, TableRef
from nftfabrik.engine import parse_rules

INPUT = ChainRef(TableRef(Family.INET, 'filter'), 'input')


def _listing(*rules):
    items = [
        {'metainfo': {'version': '1.0.9', 'json_schema_version': 1}},
        {'chain': {'family': 'inet', 'table': 'filter', 'name': 'input', 'handle': 1}},
    ]
    for handle, expr in rules:
        items.append(
            {'rule': {'family': 'inet', 'table': 'filter', 'chain': 'input', 'handle': handle, 'expr': expr}}
        )
    return json.dumps({'nftables': items})


def _match(left, right, op='=='):
    return {'match': {'op': op, 'left': left, 'right': right}}


SADDR = {'payload': {'protocol': 'ip', 'field': 'saddr'}}
DPORT = {'payload': {'protocol': 'tcp', 'field': 'dport'}}


class TestParseRules:
    def test_blacklist_rule_matches_compiled_rule(self):
        text = _listing((4, [_match(SADDR, '1.2.3.4'), {'drop': None}]))
        (listed,) = parse_rules(text)
        assert listed.chain == INPUT
        assert listed.handle == 4
        ((_, rule), _) = BLACKLIST.mirrored_rules('1.2.3.4')
        assert listed.matches(rule)

    def test_prefix_right_hand_side(self):
        text = _listing((9, [_match(SADDR, {'prefix': {'addr': '10.0.0.0', 'len': 8}}), {'accept': None}]))
        (listed,) = parse_rules(text)
        ((_, rule), _) = WHITELIST.mirrored_rules('10.0.0.0/8')
        assert listed.matches(rule)

    def test_longer_address_does_not_match(self):
        text = _listing((5, [_match(SADDR, '1.2.3.40'), {'drop': None}]))
        (listed,) = parse_rules(text)
        ((_, rule), _) = BLACKLIST.mirrored_rules('1.2.3.4')
        assert not listed.matches(rule)

    def test_counter_prevents_match(self):
        text = _listing((6, [_match(SADDR, '1.2.3.4'), {'counter': {'packets': 3, 'bytes': 180}}, {'drop': None}]))
        (listed,) = parse_rules(text)
        assert listed.statements == (
            Statement('counter', ('packets', '3', 'bytes', '180')),
            Statement('drop'),
        )
        ((_, rule), _) = BLACKLIST.mirrored_rules('1.2.3.4')
        assert not listed.matches(rule)

    def test_order_and_handles(self):
        text = _listing(
            (2, [_match(DPORT, 22), {'accept': None}]),
            (3, [_match(DPORT, 23), {'drop': None}]),
        )
        assert [(r.handle, str(r.matchers[0].tokens())) for r in parse_rules(text)] == [
            (2, "['tcp', 'dport', '22']"),
            (3, "['tcp', 'dport', '23']"),
        ]

    def test_raw_payload_round_trip(self):
        compiled = RuleCompiler().payload_string_match('inet', 'filter', 'input', 'GET /admin')
        rule = compiled.steps[-1].operation.rule
        expr = [
            _match(DPORT, 80),
            _match({'payload': {'base': 'th', 'offset': 1600, 'len': 80}}, 'GET /admin'),
            {'drop': None},
        ]
        (listed,) = parse_rules(_listing((7, expr)))
        assert listed.matches(rule)

    def test_raw_payload_as_integer(self):
        value = int.from_bytes(b'abc', 'big')
        expr = [_match({'payload': {'base': 'th', 'offset': 0, 'len': 24}}, value), {'drop': None}]
        (listed,) = parse_rules(_listing((1, expr)))
        assert listed.matchers[0].right == '"abc"'

    @pytest.mark.parametrize(
        ('expr', 'expected'),
        [
            ({'dnat': {'addr': '192.168.1.10', 'port': 80}}, Statement('dnat', ('to', '192.168.1.10:80'))),
            ({'snat': {'addr': '203.0.113.5'}}, Statement('snat', ('to', '203.0.113.5'))),
            ({'masquerade': None}, Statement('masquerade')),
            ({'jump': {'target': 'web'}}, Statement('jump', ('web',))),
            ({'log': {'prefix': 'NFTABLES: ', 'level': 'warn'}}, Statement('log', ('prefix', '"NFTABLES: "', 'level', 'warn'))),
            ({'quota': {'val': 10, 'val_unit': 'mbytes'}}, Statement('quota', ('10', 'mbytes'))),
            ({'quota': {'val': 1, 'val_unit': 'gbytes', 'inv': True}}, Statement('quota', ('over', '1', 'gbytes'))),
            ({'limit': {'rate': 10, 'per': 'minute'}}, Statement('limit', ('rate', '10/minute'))),
            ({'reject': None}, Statement('reject')),
        ],
    )
    def test_statements(self, expr, expected):
        (listed,) = parse_rules(_listing((1, [expr])))
        assert listed.statements == (expected,)

    def test_meta_and_set(self):
        expr = [_match({'meta': {'key': 'iifname'}}, {'set': ['eth0', 'eth1']}), {'accept': None}]
        (listed,) = parse_rules(_listing((1, expr)))
        assert str(listed.matchers[0].tokens()) == "['iifname', '{ eth0, eth1 }']"

    def test_empty_output(self):
        assert parse_rules('') == []

    def test_garbage_is_rejected(self):
        with pytest.raises(EngineRejectedError, match='Cannot parse'):
            parse_rules('table inet filter {')
