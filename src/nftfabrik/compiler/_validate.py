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

"""Argument validators.

Every validator returns the normalized value or raises ``ValueError``
with a message suitable for the user. The compiler turns these into
invalid-arguments errors before any operation is built.
"""

from __future__ import annotations

import ipaddress
import re

from nftfabrik.core import ChainType, Family, Hook, HookSpec, Protocol, Verdict

_NAME_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_.\-]*$')
_INTERFACE_RE = re.compile(r'^[A-Za-z0-9_.:\-]{1,15}\*?$')
_TYPE_RE = re.compile(r'^[a-z0-9_]+( \. [a-z0-9_]+)*$')
_FLAGS_RE = re.compile(r'^[a-z]+(,[a-z]+)*$')
_QUOTA_RE = re.compile(r'^(over\s+|until\s+)?(\d+)\s*([kmg]?bytes)$')
_RATE_RE = re.compile(r'^(\d+)/(second|minute|hour|day|week)$')
_HOSTNAME_RE = re.compile(
    r'^(?=.{1,253}\.?$)'
    r'([A-Za-z0-9_](?:[A-Za-z0-9_-]{0,61}[A-Za-z0-9_])?\.)*'
    r'[A-Za-z0-9_](?:[A-Za-z0-9_-]{0,61}[A-Za-z0-9_])?\.?$'
)
_HOOK_SPEC_RE = re.compile(
    r'^\{?\s*type\s+(?P<type>\w+)\s+hook\s+(?P<hook>\w+)\s+'
    r'priority\s+(?P<priority>-?\d+)\s*;?'
    r'(\s*policy\s+(?P<policy>\w+)\s*;?)?\s*\}?$'
)

LOG_LEVELS = ('emerg', 'alert', 'crit', 'err', 'warn', 'notice', 'info', 'debug', 'audit')
PAYLOAD_VERDICTS = (Verdict.ACCEPT, Verdict.DROP, Verdict.REJECT)
CHAIN_POLICIES = ('accept', 'drop')


def _is_empty(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def required(value, name: str):
    if _is_empty(value):
        raise ValueError(f'missing required parameter <{name}>')
    return value.strip() if isinstance(value, str) else value


def family(value) -> Family:
    value = required(value, 'family')
    try:
        return Family(value)
    except ValueError:
        valid = ', '.join(f.value for f in Family)
        raise ValueError(f'invalid family {value!r} (expected one of: {valid})') from None


def name(value, what: str) -> str:
    value = required(value, what)
    if not _NAME_RE.match(value):
        raise ValueError(f'invalid {what} {value!r}')
    return value


def address(value, what: str = 'address') -> str:
    """Validate an IP address or CIDR network.

    Host prefixes (``/32``, ``/128``) are dropped because nft prints them
    without the prefix, and the printed form is what removal matches on.
    """
    value = required(value, what)
    try:
        net = ipaddress.ip_network(value, strict=False)
    except ValueError:
        raise ValueError(f'invalid {what} {value!r}') from None
    if net.prefixlen == net.max_prefixlen:
        return str(net.network_address)
    return str(net)


def host_address(value, what: str = 'address') -> str:
    value = required(value, what)
    try:
        return str(ipaddress.ip_address(value))
    except ValueError:
        raise ValueError(f'invalid {what} {value!r}') from None


def address_for_family(value, fam: Family, what: str = 'address') -> str:
    normalized = address(value, what)
    version = ipaddress.ip_network(normalized).version
    if (fam is Family.IP and version != 4) or (fam is Family.IP6 and version != 6):
        raise ValueError(f'{what} {value!r} does not belong to family {fam}')
    if fam not in (Family.IP, Family.IP6, Family.INET, Family.BRIDGE, Family.NETDEV):
        raise ValueError(f'family {fam} has no IP address matchers')
    return normalized


def port(value, what: str = 'port') -> int:
    value = required(value, what)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f'invalid {what} {value!r}') from None
    if not 1 <= number <= 65535:
        raise ValueError(f'{what} {number} out of range 1-65535')
    return number


def offset(value, what: str = 'offset') -> int:
    value = required(value, what)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f'invalid {what} {value!r}') from None
    if number < 0:
        raise ValueError(f'{what} must not be negative')
    return number


def protocol(value) -> Protocol:
    value = required(value, 'protocol')
    try:
        return Protocol(value.lower())
    except ValueError:
        raise ValueError(f'invalid protocol {value!r} (expected tcp or udp)') from None


def interface(value) -> str:
    value = required(value, 'interface')
    if not _INTERFACE_RE.match(value):
        raise ValueError(f'invalid interface name {value!r}')
    return value


def element_type(value, what: str = 'type') -> str:
    value = ' '.join(required(value, what).split())
    if not _TYPE_RE.match(value):
        raise ValueError(f'invalid {what} {value!r}')
    return value


def flags(value) -> str:
    """Normalize set flags: ``'flags interval, timeout'`` -> ``'interval,timeout'``."""
    if _is_empty(value):
        return ''
    value = value.strip().rstrip(';').strip()
    if value.startswith('flags '):
        value = value[len('flags ') :]
    value = ','.join(part.strip() for part in value.split(','))
    if not _FLAGS_RE.match(value):
        raise ValueError(f'invalid flags {value!r}')
    return value


def elements(values, what: str = 'elements') -> tuple[str, ...]:
    if isinstance(values, str):
        values = values.replace(',', ' ').split()
    cleaned = tuple(v.strip() for v in (values or ()) if v and v.strip())
    if not cleaned:
        raise ValueError(f'missing required parameter <{what}>')
    for element in cleaned:
        if any(c in element for c in '{};"'):
            raise ValueError(f'invalid element {element!r}')
    return cleaned


def map_elements(values) -> tuple[str, ...]:
    """Validate ``key : value`` pairs; ``key:value`` is accepted too."""
    if isinstance(values, str):
        values = values.split(',')
    pairs = []
    for raw in values or ():
        if not raw or not raw.strip():
            continue
        if ':' not in raw:
            raise ValueError(f'invalid map element {raw!r} (expected key : value)')
        key, _, data = raw.partition(':')
        if not key.strip() or not data.strip():
            raise ValueError(f'invalid map element {raw!r} (expected key : value)')
        pairs.append(f'{key.strip()} : {data.strip()}')
    return elements(pairs)


def quota(value) -> tuple[str, ...]:
    """Parse ``'10 mbytes'`` / ``'over 1 gbytes'`` into nft tokens."""
    value = ' '.join(required(value, 'quota').lower().split())
    m = _QUOTA_RE.match(value)
    if not m:
        raise ValueError(f'invalid quota {value!r} (e.g. "10 mbytes")')
    tokens = []
    if m.group(1):
        tokens.append(m.group(1).strip())
    tokens.extend([m.group(2), m.group(3)])
    return tuple(tokens)


def rate(value) -> str:
    value = required(value, 'rate').replace(' ', '')
    if not _RATE_RE.match(value):
        raise ValueError(f'invalid rate {value!r} (e.g. "10/second")')
    return value


def text(value, what: str) -> str:
    """A literal embedded in double quotes in the nft grammar."""
    if value is None or value == '':
        raise ValueError(f'missing required parameter <{what}>')
    if '"' in value or any(ord(c) < 32 or ord(c) == 127 for c in value):
        raise ValueError(f'{what} must not contain double quotes or control characters')
    return value


def log_prefix(value) -> str:
    value = text(required(value, 'prefix'), 'prefix')
    if len(value) > 125:
        raise ValueError('prefix longer than 125 characters')
    return value


def log_level(value) -> str:
    value = required(value, 'level').lower()
    if value not in LOG_LEVELS:
        raise ValueError(f'invalid log level {value!r}')
    return value


def payload_verdict(value) -> Verdict:
    value = required(value, 'target').lower()
    if value not in PAYLOAD_VERDICTS:
        valid = ', '.join(PAYLOAD_VERDICTS)
        raise ValueError(f'invalid target {value!r} (expected one of: {valid})')
    return Verdict(value)


def hook_spec(value) -> HookSpec | None:
    """Parse ``'{ type filter hook input priority 0; [policy drop;] }'``."""
    if _is_empty(value):
        return None
    m = _HOOK_SPEC_RE.match(value.strip())
    if not m:
        raise ValueError(f'invalid chain definition {value!r}')
    return build_hook_spec(m.group('type'), m.group('hook'), m.group('priority'), m.group('policy'))


def build_hook_spec(chain_type, hook, priority=0, policy=None) -> HookSpec:
    try:
        ctype = ChainType(chain_type)
    except ValueError:
        raise ValueError(f'invalid chain type {chain_type!r}') from None
    try:
        hook_ = Hook(hook)
    except ValueError:
        raise ValueError(f'invalid hook {hook!r}') from None
    try:
        prio = int(priority)
    except (TypeError, ValueError):
        raise ValueError(f'invalid priority {priority!r}') from None
    if policy is not None and policy not in CHAIN_POLICIES:
        raise ValueError(f'invalid policy {policy!r}')
    return HookSpec(ctype, hook_, prio, policy)


def hostname(value) -> str:
    value = required(value, 'domain')
    if not _HOSTNAME_RE.match(value):
        raise ValueError(f'invalid domain name {value!r}')
    return value.rstrip('.').lower()
