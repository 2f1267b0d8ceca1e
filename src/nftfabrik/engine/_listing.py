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

"""Parser for the JSON output of ``nft -a -j list chain``.

Only the expressions the compiler itself produces need an exact
round trip (payload and meta selectors, prefixes, raw payload windows,
the common verdicts and statements). Anything else is rendered in a
form that is stable but will not match a compiled rule.

Example input (abbreviated)::

    {"nftables": [
        {"metainfo": {...}},
        {"chain": {"family": "inet", "table": "filter", "name": "input", ...}},
        {"rule": {"family": "inet", "table": "filter", "chain": "input",
                  "handle": 4,
                  "expr": [{"match": {"op": "==",
                                      "left": {"payload": {"protocol": "ip", "field": "saddr"}},
                                      "right": "1.2.3.4"}},
                           {"drop": null}]}}
    ]}
"""

from __future__ import annotations

import json
import logging

from nftfabrik.core import (
    ChainRef,
    EngineRejectedError,
    Family,
    ListedRule,
    Matcher,
    Statement,
    TableRef,
)

logger = logging.getLogger(__name__)


def _left(expr) -> str:
    if isinstance(expr, dict):
        if 'payload' in expr:
            payload = expr['payload']
            if 'base' in payload:
                return f'@{payload["base"]},{payload["offset"]},{payload["len"]}'
            return f'{payload["protocol"]} {payload["field"]}'
        if 'meta' in expr:
            return expr['meta']['key']
        if 'ct' in expr:
            return f'ct {expr["ct"]["key"]}'
    return _value(expr)


def _value(expr) -> str:
    match expr:
        case str():
            return expr
        case bool():
            return str(expr).lower()
        case int():
            return str(expr)
        case {'prefix': {'addr': addr, 'len': length}}:
            return f'{addr}/{length}'
        case {'range': [low, high]}:
            return f'{_value(low)}-{_value(high)}'
        case {'set': list() as items}:
            return '{ ' + ', '.join(_value(i) for i in items) + ' }'
        case list():
            return ','.join(_value(i) for i in expr)
    return json.dumps(expr, sort_keys=True)


def _raw_payload_text(right) -> str:
    """nft reports a raw payload literal either as text or as an integer."""
    if isinstance(right, int):
        length = max(1, (right.bit_length() + 7) // 8)
        right = right.to_bytes(length, 'big').decode('utf-8', errors='replace')
    if isinstance(right, str) and not right.startswith('"'):
        right = f'"{right}"'
    return right


def _matcher(match: dict) -> Matcher:
    left = _left(match['left'])
    right = match['right']
    if left.startswith('@'):
        value = _raw_payload_text(right)
    else:
        value = _value(right)
    op = match.get('op', '==')
    if op == 'in':
        op = '=='
    return Matcher(left, value, op)


def _nat_target(stmt) -> tuple[str, ...]:
    if not stmt:
        return ()
    addr = stmt.get('addr')
    port = stmt.get('port')
    if addr is None:
        return ('to', f':{port}') if port is not None else ()
    addr = _value(addr)
    if port is None:
        return ('to', addr)
    if ':' in addr:
        return ('to', f'[{addr}]:{port}')
    return ('to', f'{addr}:{port}')


def _statement(key: str, stmt) -> Statement:
    match key:
        case 'accept' | 'drop' | 'masquerade' | 'return' | 'continue':
            return Statement(key)
        case 'reject':
            return Statement(key)
        case 'jump' | 'goto':
            return Statement(key, (stmt['target'],))
        case 'dnat' | 'snat':
            return Statement(key, _nat_target(stmt))
        case 'counter':
            if isinstance(stmt, dict) and 'packets' in stmt:
                return Statement(key, ('packets', str(stmt['packets']), 'bytes', str(stmt['bytes'])))
            return Statement(key)
        case 'log':
            args: list[str] = []
            stmt = stmt or {}
            if 'prefix' in stmt:
                args.extend(['prefix', f'"{stmt["prefix"]}"'])
            if 'level' in stmt:
                args.extend(['level', stmt['level']])
            return Statement(key, tuple(args))
        case 'quota':
            args = ['over'] if stmt.get('inv') else []
            args.extend([str(stmt['val']), stmt.get('val_unit', 'bytes')])
            return Statement(key, tuple(args))
        case 'limit':
            return Statement(key, ('rate', f'{stmt["rate"]}/{stmt.get("per", "second")}'))
    return Statement(key, (json.dumps(stmt, sort_keys=True),) if stmt is not None else ())


def parse_rule(obj: dict) -> ListedRule:
    """Convert one ``{"rule": {...}}`` body into a :class:`ListedRule`."""
    chain = ChainRef(TableRef(Family(obj['family']), obj['table']), obj['chain'])
    matchers: list[Matcher] = []
    statements: list[Statement] = []
    for expr in obj.get('expr', ()):
        ((key, body),) = expr.items()
        if key == 'match':
            matchers.append(_matcher(body))
        else:
            statements.append(_statement(key, body))
    return ListedRule(chain, int(obj['handle']), tuple(matchers), tuple(statements))


def parse_rules(text: str) -> list[ListedRule]:
    """Parse the rules out of ``nft -a -j list ...`` output, in listing order."""
    try:
        data = json.loads(text) if text.strip() else {'nftables': []}
    except json.JSONDecodeError as e:
        raise EngineRejectedError(f'Cannot parse nft JSON output: {e}') from None

    rules = []
    for item in data.get('nftables', []):
        if 'rule' not in item:
            continue
        try:
            rules.append(parse_rule(item['rule']))
        except (KeyError, TypeError, ValueError) as e:
            logger.debug('Skipping unparseable rule %r: %s', item['rule'], e)
    return rules
