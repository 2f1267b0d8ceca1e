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

"""CLI entry point: one subcommand per intent.

Positional parameters follow the order of the classic ``nftables.sh``
helper (``allow-ip <ip> [family] [table] [chain]`` and so on); defaults
come from the configuration file.
"""

import argparse
import logging
import sys

import nftfabrik
from nftfabrik.core import NftFabrikError
from nftfabrik.core.options import load_settings
from nftfabrik.driver import Applier, render_batch
from nftfabrik.engine import DryRunEngine, Installer, NftEngine

__author__ = 'Linuxfabrik GmbH, Zurich/Switzerland'

DESCRIPTION = """Manage nftables with high-level intents (allow/block addresses and ports,
port forwarding, NAT, sets and maps, blacklist/whitelist, logging, quotas)."""

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


def _add(subparsers, name, handler, help_text, confirm=None, aliases=()):
    parser = subparsers.add_parser(name, help=help_text, description=help_text, aliases=list(aliases))
    parser.set_defaults(HANDLER=handler, CONFIRM=confirm)
    return parser


def _context(parser, family=True, table=True, chain=True):
    if family:
        parser.add_argument('family', nargs='?', help='address family (default: from config)')
    if table:
        parser.add_argument('table', nargs='?', help='table name (default: from config)')
    if chain:
        parser.add_argument('chain', nargs='?', help='chain name (default: from config)')


def _object(parser, what):
    parser.add_argument('family', help='address family')
    parser.add_argument('table', help='table name')
    parser.add_argument('name', help=f'{what} name')


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='nftfabrik',
        description=DESCRIPTION,
    )

    parser.add_argument(
        '-c',
        '--config',
        default=None,
        dest='CONFIG',
        help='path to the YAML configuration file',
    )

    parser.add_argument(
        '-n',
        '--dry-run',
        action='store_true',
        dest='DRY_RUN',
        help='do not change anything, print the nft batch that would be loaded',
    )

    parser.add_argument(
        '-y',
        '--yes',
        action='store_true',
        dest='YES',
        help='do not ask for confirmation of destructive commands',
    )

    parser.add_argument(
        '-v',
        '--verbose',
        action='count',
        default=0,
        dest='VERBOSE',
        help='verbose output (repeat for higher verbosity)',
    )

    parser.add_argument(
        '-V',
        '--version',
        action='version',
        version=f'%(prog)s: v{nftfabrik.__version__} by {__author__}',
    )

    sub = parser.add_subparsers(dest='COMMAND', required=True, metavar='COMMAND')

    # -- ruleset --
    _add(sub, 'install', lambda a, x: a.install(), 'install nftables and enable the service')
    _add(sub, 'status', lambda a, x: a.status(), 'show version, service state and ruleset summary')

    p = _add(
        sub, 'list',
        lambda a, x: a.list_ruleset(x.FAMILY, None if x.table in (None, 'all') else x.table),
        'list the whole ruleset or one table',
    )
    p.add_argument('table', nargs='?', help='table name (default: all)')
    p.add_argument('--family', dest='FAMILY', default=None, help='family of the table')

    p = _add(
        sub, 'flush',
        lambda a, x: a.flush(x.FAMILY, None if x.table in (None, 'all') else x.table),
        'flush the whole ruleset or one table',
        confirm='Flush the rules',
    )
    p.add_argument('table', nargs='?', help='table name (default: all)')
    p.add_argument('--family', dest='FAMILY', default=None, help='family of the table')

    _add(sub, 'reset', lambda a, x: a.reset(), 'remove all tables, chains and rules',
         confirm='Remove ALL tables, chains and rules')

    p = _add(sub, 'save', lambda a, x: a.save(x.file), 'save the ruleset to a file')
    p.add_argument('file', nargs='?', help='target file (default: from config)')

    p = _add(sub, 'restore', lambda a, x: a.restore(x.file), 'load a saved ruleset',
             confirm='Replace the current rules with the saved ruleset')
    p.add_argument('file', nargs='?', help='ruleset file (default: from config)')

    _add(sub, 'backup', lambda a, x: a.backup(), 'save a timestamped copy of the ruleset')

    # -- raw commands --
    for verb, aliases in (('add', ()), ('delete', ('del',)), ('insert', ()), ('replace', ())):
        p = _add(
            sub, verb,
            lambda a, x, verb=verb: a.raw(verb, x.args),
            f'pass "nft {verb} ..." through unchanged',
            aliases=aliases,
        )
        p.add_argument('args', nargs=argparse.REMAINDER, help='nft arguments')

    # -- tables and chains --
    p = _add(sub, 'table-list', lambda a, x: a.table_list(x.family), 'list tables')
    p.add_argument('family', nargs='?', help='restrict to one family')
    p = _add(sub, 'table-create', lambda a, x: a.table_create(x.family, x.table), 'create a table')
    _context(p, chain=False)
    p = _add(sub, 'table-delete', lambda a, x: a.table_delete(x.family, x.table), 'delete a table',
             confirm='Delete the table and everything in it')
    _context(p, chain=False)
    p = _add(sub, 'table-flush', lambda a, x: a.table_flush(x.family, x.table), 'flush a table')
    _context(p, chain=False)
    p = _add(sub, 'ensure-table', lambda a, x: a.ensure_table(x.family, x.table),
             'create a table unless it exists')
    _context(p, chain=False)

    p = _add(sub, 'chain-list', lambda a, x: a.chain_list(x.family, x.table, x.chain), 'list chains')
    _context(p)
    p = _add(
        sub, 'chain-create',
        lambda a, x: a.chain_create(x.family, x.table, x.chain, x.definition),
        'create a chain',
    )
    _context(p)
    p.add_argument('definition', nargs='?',
                   help="base chain definition, e.g. '{ type filter hook input priority 0; }'")
    p = _add(sub, 'chain-delete', lambda a, x: a.chain_delete(x.family, x.table, x.chain),
             'delete a chain', confirm='Delete the chain and its rules')
    _context(p)
    p = _add(sub, 'chain-flush', lambda a, x: a.chain_flush(x.family, x.table, x.chain), 'flush a chain')
    _context(p)
    p = _add(
        sub, 'ensure-chain',
        lambda a, x: a.ensure_chain(x.family, x.table, x.chain, x.definition),
        'create a table and chain unless they exist',
    )
    _context(p)
    p.add_argument('definition', nargs='?', help='base chain definition')

    # -- address and port rules --
    for name, method in (('allow-ip', 'allow_ip'), ('block-ip', 'block_ip')):
        p = _add(
            sub, name,
            lambda a, x, method=method: getattr(a, method)(x.address, x.family, x.table, x.chain),
            f'{name.split("-")[0]} traffic from an address or network',
        )
        p.add_argument('address', help='IP address or CIDR network')
        _context(p)

    for name, method in (('allow-port', 'allow_port'), ('block-port', 'block_port')):
        p = _add(
            sub, name,
            lambda a, x, method=method: getattr(a, method)(x.port, x.protocol, x.family, x.table, x.chain),
            f'{name.split("-")[0]} traffic to a port',
        )
        p.add_argument('port', help='port number')
        p.add_argument('protocol', nargs='?', help='tcp or udp (default: tcp)')
        _context(p)

    p = _add(
        sub, 'limit',
        lambda a, x: a.limit(x.port, x.rate, x.protocol, x.family, x.table, x.chain),
        'accept traffic to a port up to a rate',
    )
    p.add_argument('port', help='port number')
    p.add_argument('rate', help='rate, e.g. 10/second')
    p.add_argument('protocol', nargs='?', help='tcp or udp (default: tcp)')
    _context(p)

    # -- NAT --
    p = _add(
        sub, 'forward',
        lambda a, x: a.port_forward(x.local_port, x.remote_ip, x.remote_port, x.protocol),
        'forward a local port to a remote address (enables IPv4 forwarding)',
    )
    p.add_argument('local_port')
    p.add_argument('remote_ip')
    p.add_argument('remote_port')
    p.add_argument('protocol', nargs='?', help='tcp or udp (default: tcp)')

    p = _add(sub, 'snat', lambda a, x: a.snat(x.source_network, x.public_ip), 'source NAT a network')
    p.add_argument('source_network')
    p.add_argument('public_ip')

    p = _add(
        sub, 'dnat',
        lambda a, x: a.dnat(x.public_port, x.private_ip, x.private_port, x.protocol),
        'destination NAT a public port',
    )
    p.add_argument('public_port')
    p.add_argument('private_ip')
    p.add_argument('private_port')
    p.add_argument('protocol', nargs='?', help='tcp or udp (default: tcp)')

    p = _add(sub, 'masquerade', lambda a, x: a.masquerade(x.interface), 'masquerade outgoing traffic')
    p.add_argument('interface', nargs='?', help='outgoing interface (default: any)')

    # -- sets and maps --
    p = _add(
        sub, 'set-create',
        lambda a, x: a.set_create(x.family, x.table, x.name, x.type, x.flags),
        'create a named set',
    )
    _object(p, 'set')
    p.add_argument('type', help='element type, e.g. ipv4_addr')
    p.add_argument('flags', nargs='?', help='flags, e.g. interval')
    p = _add(sub, 'set-add', lambda a, x: a.set_add(x.family, x.table, x.name, x.elements),
             'add elements to a set')
    _object(p, 'set')
    p.add_argument('elements', nargs='+')
    p = _add(sub, 'set-delete', lambda a, x: a.set_delete(x.family, x.table, x.name, x.elements),
             'delete elements from a set')
    _object(p, 'set')
    p.add_argument('elements', nargs='+')
    p = _add(sub, 'set-list', lambda a, x: a.set_list(x.family, x.table, x.name), 'list sets')
    p.add_argument('family', nargs='?')
    p.add_argument('table', nargs='?')
    p.add_argument('name', nargs='?')

    p = _add(
        sub, 'map-create',
        lambda a, x: a.map_create(x.family, x.table, x.name, x.key_type, x.data_type, x.flags),
        'create a named map',
    )
    _object(p, 'map')
    p.add_argument('key_type', help='key type, e.g. ipv4_addr')
    p.add_argument('data_type', help='data type, e.g. verdict')
    p.add_argument('flags', nargs='?')
    p = _add(sub, 'map-add', lambda a, x: a.map_add(x.family, x.table, x.name, x.elements),
             'add "key : value" elements to a map')
    _object(p, 'map')
    p.add_argument('elements', nargs='+')
    p = _add(sub, 'map-delete', lambda a, x: a.map_delete(x.family, x.table, x.name, x.keys),
             'delete keys from a map')
    _object(p, 'map')
    p.add_argument('keys', nargs='+')
    p = _add(sub, 'map-list', lambda a, x: a.map_list(x.family, x.table, x.name), 'list maps')
    p.add_argument('family', nargs='?')
    p.add_argument('table', nargs='?')
    p.add_argument('name', nargs='?')

    # -- blacklist and whitelist --
    for kind in ('blacklist', 'whitelist'):
        p = _add(sub, f'{kind}-add', lambda a, x, kind=kind: getattr(a, f'{kind}_add')(x.address),
                 f'add an address to the {kind}')
        p.add_argument('address')
        p = _add(sub, f'{kind}-remove', lambda a, x, kind=kind: getattr(a, f'{kind}_remove')(x.address),
                 f'remove an address from the {kind}')
        p.add_argument('address')
        _add(sub, f'{kind}-list', lambda a, x, kind=kind: getattr(a, f'{kind}_list')(),
             f'show the {kind}')

    # -- logging, counters, quotas --
    p = _add(sub, 'log', lambda a, x: a.enable_log(x.family, x.table, x.chain, x.prefix),
             'log packets passing a chain')
    _context(p)
    p.add_argument('prefix', nargs='?', help='log prefix (default: from config)')

    p = _add(sub, 'counter', lambda a, x: a.create_counter(x.family, x.table, x.name),
             'create a named counter')
    _object(p, 'counter')

    p = _add(sub, 'quota', lambda a, x: a.set_quota(x.family, x.table, x.chain, ' '.join(x.quota)),
             'add a quota rule to a chain')
    p.add_argument('family')
    p.add_argument('table')
    p.add_argument('chain')
    p.add_argument('quota', nargs='+', help='quota, e.g. "10 mbytes" or "over 1 gbytes"')

    # -- payload matching --
    p = _add(
        sub, 'string-match',
        lambda a, x: a.payload_string_match(
            x.family, x.table, x.chain, x.string, x.port, x.offset, x.target
        ),
        'match a literal string at a fixed payload offset (best effort, plain HTTP only)',
    )
    p.add_argument('family')
    p.add_argument('table')
    p.add_argument('chain')
    p.add_argument('string')
    p.add_argument('port', nargs='?', help='tcp port (default: from config)')
    p.add_argument('offset', nargs='?', help='byte offset (default: from config)')
    p.add_argument('target', nargs='?', help='accept, drop or reject (default: drop)')

    p = _add(
        sub, 'block-user-agent',
        lambda a, x: a.block_user_agent(x.user_agent, x.port, x.offset, x.family, x.table, x.chain),
        'drop plain HTTP requests with a User-Agent at a fixed offset (best effort)',
        confirm='Payload matching is unreliable (no HTTPS, no HTTP/2). Continue',
    )
    p.add_argument('user_agent')
    p.add_argument('port', nargs='?', help='tcp port (default: from config)')
    p.add_argument('offset', nargs='?', help='byte offset (default: from config)')
    _context(p)

    # -- DNS --
    p = _add(sub, 'resolve', lambda a, x: a.resolve_detection_ips(x.domain),
             'show the IPv4 addresses of a domain')
    p.add_argument('domain')
    p = _add(sub, 'block-domain', lambda a, x: a.block_domain(x.domain, x.family, x.table, x.chain),
             'block every IPv4 address a domain resolves to')
    p.add_argument('domain')
    _context(p)

    return parser.parse_args(argv)


def setup_logging(verbose, log_file=''):
    """Warnings to stderr by default, more with each ``-v``; everything to *log_file*."""
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbose, logging.DEBUG)
    stderr = logging.StreamHandler(sys.stderr)
    stderr.setLevel(level)
    stderr.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    handlers = [stderr]
    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
        except OSError as e:
            print(f'Warning: cannot write log file {log_file}: {e}', file=sys.stderr)
        else:
            file_handler.setLevel(logging.DEBUG if verbose > 1 else logging.INFO)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            handlers.append(file_handler)
    logging.basicConfig(level=logging.DEBUG, handlers=handlers, force=True)


def confirm(question):
    try:
        answer = input(f'{question}? (yes/no): ')
    except EOFError:
        return False
    return answer.strip().lower() == 'yes'


def build_applier(settings, dry_run=False):
    installer = Installer(settings.install_log)
    engine = NftEngine(settings.nft_path, installer if settings.auto_install else None)
    if dry_run:
        engine = DryRunEngine(engine)
    return Applier(engine, settings, installer=installer)


def main(argv=None):
    args = parse_args(argv)

    try:
        settings = load_settings(args.CONFIG)
    except NftFabrikError as e:
        print(f'Error: {e.message}', file=sys.stderr)
        return 1
    setup_logging(args.VERBOSE, settings.log_file)

    if args.CONFIRM and not args.YES and not args.DRY_RUN and not confirm(args.CONFIRM):
        print('Cancelled', file=sys.stderr)
        return 0

    applier = build_applier(settings, args.DRY_RUN)
    result = args.HANDLER(applier, args)

    for warning in result.warnings:
        print(f'Warning: {warning}', file=sys.stderr)
    if not result.ok:
        message = result.message
        if not message.startswith(f'{result.intent}:'):
            message = f'{result.intent}: {message}'
        print(f'Error: {message}', file=sys.stderr)
        return 1

    if args.DRY_RUN and applier.engine.recorded:
        print(render_batch([result.intent], applier.engine.recorded, result.warnings), end='')
    elif result.output:
        print(result.output.rstrip('\n'))
    else:
        print(result.message)
    return 0


if __name__ == '__main__':
    sys.exit(main())
