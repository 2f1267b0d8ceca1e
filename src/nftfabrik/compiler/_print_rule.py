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

"""nftables syntax generation for rules, chain specs, sets and elements.

Rules are expressed as:

    ip saddr 10.0.0.0/8 tcp dport 22 accept
    tcp dport 8080 dnat to 192.168.1.10:80
    oifname eth0 masquerade

Every function returns argv tokens. ``nft`` joins its arguments with
spaces before parsing, so values that need quoting in the nft grammar
(log prefixes, payload strings) carry their own double quotes.
"""

from __future__ import annotations

import ipaddress

from nftfabrik.core import (
    HookSpec,
    Matcher,
    Protocol,
    Rule,
    Statement,
    Verdict,
)


def quote(text: str) -> str:
    return f'"{text}"'


def address_selector(address: str, direction: str = 'saddr') -> str:
    """Return ``ip saddr`` / ``ip6 daddr`` etc. depending on the address version."""
    net = ipaddress.ip_network(address, strict=False)
    proto = 'ip6' if net.version == 6 else 'ip'
    return f'{proto} {direction}'


def address_matcher(address: str, direction: str = 'saddr') -> Matcher:
    return Matcher(address_selector(address, direction), address)


def port_matcher(protocol: Protocol | str, port: int) -> Matcher:
    return Matcher(f'{protocol} dport', str(port))


def interface_matcher(interface: str, direction: str = 'oifname') -> Matcher:
    return Matcher(direction, interface)


def payload_matcher(anchor: str, bit_offset: int, bit_length: int, text: str) -> Matcher:
    """Raw payload match, e.g. ``@th,1600,64 "GET /x "``."""
    return Matcher(f'@{anchor},{bit_offset},{bit_length}', quote(text))


def verdict(keyword: Verdict | str, *args: str) -> Statement:
    return Statement(str(keyword), tuple(args))


def nat_target(address: str, port: int | None = None) -> str:
    """Format a NAT destination, bracketing IPv6 addresses when a port is given."""
    if port is None:
        return address
    if ':' in address:
        return f'[{address}]:{port}'
    return f'{address}:{port}'


def log_statement(prefix: str, level: str) -> Statement:
    return verdict(Verdict.LOG, 'prefix', quote(f'{prefix}: '), 'level', level)


def print_rule(rule: Rule) -> list[str]:
    return rule.tokens()


def print_hook_spec(spec: HookSpec) -> str:
    """Render a base chain declaration body.

    Example output:
        { type filter hook input priority 0; }
    """
    body = f'type {spec.type} hook {spec.hook} priority {spec.priority};'
    if spec.policy:
        body += f' policy {spec.policy};'
    return f'{{ {body} }}'


def print_set_spec(
    element_type: str,
    flags: str = '',
    data_type: str = '',
) -> str:
    """Render a set or map declaration body.

    Example output:
        { type ipv4_addr; flags interval; }
        { type ipv4_addr : verdict; }
    """
    type_str = f'{element_type} : {data_type}' if data_type else element_type
    body = f'type {type_str};'
    if flags:
        body += f' flags {flags};'
    return f'{{ {body} }}'


def print_elements(elements) -> str:
    return '{ ' + ', '.join(elements) + ' }'
