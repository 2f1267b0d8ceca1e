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

"""Applier: executes compiled plans against an engine, one result per intent.

Every public method is an intent. Errors raised while compiling or
executing (:class:`~nftfabrik.core.NftFabrikError`) are turned into a
failed :class:`Result` at the intent boundary, so callers never see an
exception for a failed intent.

Execution rules:

* ENSURE steps ignore engine failures (the object probably exists).
* REQUIRED steps try their candidates in order; if all are rejected the
  plan stops and the engine's diagnostics are reported.
* SIDE_EFFECT steps run on the host, after the engine steps before them.

Nothing is retried and nothing is rolled back: a plan that fails half way
leaves the objects it already created in place.
"""

from __future__ import annotations

import dataclasses
import functools
import logging
import shutil
import time
from pathlib import Path

from nftfabrik.compiler import (
    BLACKLIST,
    WHITELIST,
    EnableIPForwarding,
    NamedList,
    Operation,
    Plan,
    RuleCompiler,
    Step,
    StepPolicy,
)
from nftfabrik.core import (
    EngineRejectedError,
    ErrorKind,
    NftFabrikError,
    PrerequisiteMissingError,
    UnresolvableNameError,
)
from nftfabrik.core.options import Settings
from nftfabrik.engine import DryRunEngine, Engine, Installer

from ._resolver import Resolver
from ._store import IPListStore
from ._sysctl import Sysctl

logger = logging.getLogger(__name__)

STATUS_RULESET_LINES = 30


@dataclasses.dataclass
class Result:
    """Outcome of one intent."""

    intent: str
    ok: bool = True
    error: ErrorKind | None = None
    message: str = ''
    output: str = ''
    steps: list[Operation] = dataclasses.field(default_factory=list)
    warnings: list[str] = dataclasses.field(default_factory=list)
    values: list[str] = dataclasses.field(default_factory=list)


def intent(name: str):
    """Run the decorated method as intent *name* and return its :class:`Result`.

    The method receives the result as its first argument and fills in
    ``message``, ``output`` and ``values``.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs) -> Result:
            result = Result(name)
            self.compiler.reset()
            try:
                func(self, result, *args, **kwargs)
            except NftFabrikError as e:
                result.ok = False
                result.error = e.kind
                result.message = e.message
                logger.error('%s failed (%s): %s', name, e.kind, e.message)
            else:
                if not result.message:
                    result.message = f'{name}: done'
                logger.info('%s', result.message)
            result.warnings = self.compiler.get_warnings()
            return result

        wrapper.intent_name = name
        return wrapper

    return decorator


class Applier:
    """One method per intent; see the module docstring for the rules."""

    def __init__(
        self,
        engine: Engine,
        settings: Settings | None = None,
        resolver: Resolver | None = None,
        sysctl: Sysctl | None = None,
        installer: Installer | None = None,
    ) -> None:
        self.engine = engine
        self.settings = settings or Settings()
        self.compiler = RuleCompiler(self.settings)
        self.resolver = resolver or Resolver()
        self.sysctl = sysctl or Sysctl(self.settings.ip_forward_path)
        self.installer = installer or Installer(self.settings.install_log)
        self.stores = {
            BLACKLIST.kind: IPListStore(self.settings.blacklist_file),
            WHITELIST.kind: IPListStore(self.settings.whitelist_file),
        }

    @property
    def dry_run(self) -> bool:
        return isinstance(self.engine, DryRunEngine)

    # -- plan execution --

    def execute(self, plan: Plan, result: Result) -> None:
        if not plan.steps:
            return
        self.engine.bootstrap()
        for step in plan.steps:
            match step.policy:
                case StepPolicy.ENSURE:
                    result.steps.append(step.operation)
                    try:
                        self.engine.ensure(step.operation)
                    except EngineRejectedError as e:
                        logger.debug('Ignoring failed ensure step %s: %s', step.operation, e.message)
                case StepPolicy.REQUIRED:
                    self._apply_required(step, result)
                case StepPolicy.SIDE_EFFECT:
                    result.steps.append(step.operation)
                    self._side_effect(step.operation)

    def _apply_required(self, step: Step, result: Result) -> None:
        errors: list[tuple[Operation, EngineRejectedError]] = []
        for candidate in step.candidates():
            result.steps.append(candidate)
            try:
                self.engine.apply(candidate)
            except EngineRejectedError as e:
                logger.debug('Rejected: %s: %s', candidate, e.message)
                errors.append((candidate, e))
                continue
            if errors:
                logger.info('Fallback %s succeeded after %d rejection(s)', candidate, len(errors))
            return
        if len(errors) == 1:
            raise errors[0][1]
        raise EngineRejectedError(
            'all strategies were rejected: '
            + '; '.join(f'[{op}] {e.message}' for op, e in errors),
            stderr='\n'.join(e.stderr for _, e in errors),
        )

    def _side_effect(self, operation: Operation) -> None:
        if self.dry_run:
            self.engine.apply(operation)
            return
        match operation:
            case EnableIPForwarding():
                self.sysctl.enable_ip_forward()
            case _:
                raise TypeError(f'Unknown side effect {operation!r}')

    def _read(self, func, *args) -> str:
        self.engine.bootstrap()
        return func(*args)

    # -- tables and chains --

    @intent('ensure-table')
    def ensure_table(self, result, family=None, table=None):
        self.execute(self.compiler.ensure_table(family, table), result)

    @intent('ensure-chain')
    def ensure_chain(self, result, family=None, table=None, chain=None, hook=None):
        self.execute(self.compiler.ensure_chain(family, table, chain, hook), result)

    @intent('table-list')
    def table_list(self, result, family=None):
        if family:
            family = self.compiler.table_ref('table-list', family).family
        result.output = self._read(self.engine.list_tables, family)

    @intent('table-create')
    def table_create(self, result, family, table):
        self.execute(self.compiler.table_create(family, table), result)
        result.message = f'Created table {family} {table}'

    @intent('table-delete')
    def table_delete(self, result, family, table):
        self.execute(self.compiler.table_delete(family, table), result)
        result.message = f'Deleted table {family} {table}'

    @intent('table-flush')
    def table_flush(self, result, family, table):
        self.execute(self.compiler.table_flush(family, table), result)
        result.message = f'Flushed table {family} {table}'

    @intent('chain-list')
    def chain_list(self, result, family=None, table=None, chain=None):
        if chain:
            ref = self.compiler.chain_ref('chain-list', family, table, chain)
            result.output = self._read(self.engine.list_chain, ref)
        else:
            if family:
                family = self.compiler.table_ref('chain-list', family).family
            result.output = self._read(self.engine.list_chains, family)

    @intent('chain-create')
    def chain_create(self, result, family, table, chain, hook=None):
        self.execute(self.compiler.chain_create(family, table, chain, hook), result)
        result.message = f'Created chain {family} {table} {chain}'

    @intent('chain-delete')
    def chain_delete(self, result, family, table, chain):
        self.execute(self.compiler.chain_delete(family, table, chain), result)
        result.message = f'Deleted chain {family} {table} {chain}'

    @intent('chain-flush')
    def chain_flush(self, result, family, table, chain):
        self.execute(self.compiler.chain_flush(family, table, chain), result)
        result.message = f'Flushed chain {family} {table} {chain}'

    # -- address and port rules --

    @intent('allow-ip')
    def allow_ip(self, result, address, family=None, table=None, chain=None):
        self.execute(self.compiler.allow_ip(address, family, table, chain), result)
        result.message = f'Allowed {address}'

    @intent('block-ip')
    def block_ip(self, result, address, family=None, table=None, chain=None):
        self.execute(self.compiler.block_ip(address, family, table, chain), result)
        result.message = f'Blocked {address}'

    @intent('allow-port')
    def allow_port(self, result, port, protocol=None, family=None, table=None, chain=None):
        self.execute(self.compiler.allow_port(port, protocol, family, table, chain), result)
        result.message = f'Allowed port {port}/{protocol or "tcp"}'

    @intent('block-port')
    def block_port(self, result, port, protocol=None, family=None, table=None, chain=None):
        self.execute(self.compiler.block_port(port, protocol, family, table, chain), result)
        result.message = f'Blocked port {port}/{protocol or "tcp"}'

    @intent('limit')
    def limit(self, result, port, rate, protocol=None, family=None, table=None, chain=None):
        self.execute(self.compiler.limit(port, rate, protocol, family, table, chain), result)
        result.message = f'Limited port {port}/{protocol or "tcp"} to {rate}'

    # -- NAT --

    @intent('forward')
    def port_forward(self, result, local_port, remote_ip, remote_port, protocol=None):
        self.execute(self.compiler.port_forward(local_port, remote_ip, remote_port, protocol), result)
        result.message = (
            f'Forwarding {protocol or "tcp"}/{local_port} to {remote_ip}:{remote_port}'
        )

    @intent('snat')
    def snat(self, result, source_network, public_ip):
        self.execute(self.compiler.snat(source_network, public_ip), result)
        result.message = f'SNAT {source_network} -> {public_ip}'

    @intent('dnat')
    def dnat(self, result, public_port, private_ip, private_port, protocol=None):
        self.execute(self.compiler.dnat(public_port, private_ip, private_port, protocol), result)
        result.message = f'DNAT {public_port} -> {private_ip}:{private_port}'

    @intent('masquerade')
    def masquerade(self, result, interface=None):
        self.execute(self.compiler.masquerade(interface), result)
        result.message = f'Masquerading on {interface or "all interfaces"}'

    # -- sets, maps, counters, quotas --

    @intent('set-create')
    def set_create(self, result, family, table, name, element_type, flags=None):
        self.execute(self.compiler.set_create(family, table, name, element_type, flags), result)
        result.message = f'Created set {family} {table} {name}'

    @intent('set-add')
    def set_add(self, result, family, table, name, elements):
        self.execute(self.compiler.set_add(family, table, name, elements), result)
        result.message = f'Added elements to set {name}'

    @intent('set-delete')
    def set_delete(self, result, family, table, name, elements):
        self.execute(self.compiler.set_delete(family, table, name, elements), result)
        result.message = f'Deleted elements from set {name}'

    @intent('set-list')
    def set_list(self, result, family=None, table=None, name=None):
        if name:
            ref = self.compiler.object_ref('set-list', family, table, name, 'set-name')
            result.output = self._read(self.engine.list_set, ref)
        else:
            if family:
                family = self.compiler.table_ref('set-list', family).family
            result.output = self._read(self.engine.list_sets, family)

    @intent('map-create')
    def map_create(self, result, family, table, name, key_type, data_type, flags=None):
        plan = self.compiler.map_create(family, table, name, key_type, data_type, flags)
        self.execute(plan, result)
        result.message = f'Created map {family} {table} {name}'

    @intent('map-add')
    def map_add(self, result, family, table, name, elements):
        self.execute(self.compiler.map_add(family, table, name, elements), result)
        result.message = f'Added elements to map {name}'

    @intent('map-delete')
    def map_delete(self, result, family, table, name, keys):
        self.execute(self.compiler.map_delete(family, table, name, keys), result)
        result.message = f'Deleted elements from map {name}'

    @intent('map-list')
    def map_list(self, result, family=None, table=None, name=None):
        if name:
            ref = self.compiler.object_ref('map-list', family, table, name, 'map-name')
            result.output = self._read(self.engine.list_map, ref)
        else:
            if family:
                family = self.compiler.table_ref('map-list', family).family
            result.output = self._read(self.engine.list_maps, family)

    @intent('counter')
    def create_counter(self, result, family, table, name):
        self.execute(self.compiler.create_counter(family, table, name), result)
        result.message = f'Created counter {family} {table} {name}'

    @intent('quota')
    def set_quota(self, result, family, table, chain, quota):
        self.execute(self.compiler.set_quota(family, table, chain, quota), result)
        result.message = f'Set quota {quota} on {family} {table} {chain}'

    # -- logging --

    @intent('log')
    def enable_log(self, result, family=None, table=None, chain=None, prefix=None):
        plan = self.compiler.enable_log(family, table, chain, prefix)
        self.execute(plan, result)
        chain_ = plan.steps[-1].operation.chain
        result.message = f'Enabled logging in {chain_} (prefix: {prefix or self.settings.log_prefix})'

    # -- blacklist and whitelist --

    def _list_add(self, result, named: NamedList, address):
        normalized = self.compiler.list_address(f'{named.kind}-add', address)
        plan = self.compiler.list_add(named, normalized)
        if self.dry_run:
            logger.info('Dry run: not adding %s to %s', normalized, self.stores[named.kind].path)
        else:
            self.stores[named.kind].append(normalized)
        self.execute(plan, result)
        result.message = f'Added {normalized} to the {named.kind}'

    def _list_remove(self, result, named: NamedList, address):
        intent_ = f'{named.kind}-remove'
        normalized = self.compiler.list_address(intent_, address)
        store = self.stores[named.kind]
        if self.dry_run:
            logger.info('Dry run: not removing %s from %s', normalized, store.path)
        else:
            store.rewrite_without(normalized)

        # Handles can change between listing and deleting if something
        # else modifies the chain meanwhile.
        self.engine.bootstrap()
        matches = []
        for chain, rule in named.mirrored_rules(normalized):
            matches.extend(r for r in self.engine.list_rules(chain) if r.matches(rule))
        self.execute(self.compiler.delete_rules(intent_, matches), result)
        result.values = [str(r.handle) for r in matches]
        result.message = (
            f'Removed {normalized} from the {named.kind} ({len(matches)} rule(s) deleted)'
        )

    def _list_show(self, result, named: NamedList):
        store = self.stores[named.kind]
        if not store.exists():
            result.message = f'{store.path} does not exist, the {named.kind} is empty'
            return
        result.values = store.read()
        result.output = '\n'.join(result.values)
        result.message = f'{len(result.values)} address(es) in the {named.kind}'

    @intent('blacklist-add')
    def blacklist_add(self, result, address):
        self._list_add(result, BLACKLIST, address)

    @intent('blacklist-remove')
    def blacklist_remove(self, result, address):
        self._list_remove(result, BLACKLIST, address)

    @intent('blacklist-list')
    def blacklist_list(self, result):
        self._list_show(result, BLACKLIST)

    @intent('whitelist-add')
    def whitelist_add(self, result, address):
        self._list_add(result, WHITELIST, address)

    @intent('whitelist-remove')
    def whitelist_remove(self, result, address):
        self._list_remove(result, WHITELIST, address)

    @intent('whitelist-list')
    def whitelist_list(self, result):
        self._list_show(result, WHITELIST)

    # -- payload matching --

    @intent('string-match')
    def payload_string_match(
        self, result, family, table, chain, string, port=None, offset=None, target=None
    ):
        plan = self.compiler.payload_string_match(family, table, chain, string, port, offset, target)
        self.execute(plan, result)
        result.message = f'Added best-effort payload match for {string!r}'

    @intent('block-user-agent')
    def block_user_agent(
        self, result, user_agent, port=None, offset=None, family=None, table=None, chain=None
    ):
        plan = self.compiler.block_user_agent(user_agent, port, offset, family, table, chain)
        self.execute(plan, result)
        result.message = f'Added best-effort User-Agent block for {user_agent!r}'

    # -- DNS --

    def _resolve(self, intent_: str, domain) -> list[str]:
        name = self.compiler.domain(intent_, domain)
        addresses = self.resolver.resolve(name)
        if not addresses:
            raise UnresolvableNameError(f'{intent_}: {name} did not resolve to any IPv4 address')
        return addresses

    @intent('resolve-detection-ips')
    def resolve_detection_ips(self, result, domain):
        result.values = self._resolve('resolve-detection-ips', domain)
        result.output = '\n'.join(result.values)
        result.message = f'{domain} resolves to {len(result.values)} address(es)'

    @intent('block-domain')
    def block_domain(self, result, domain, family=None, table=None, chain=None):
        addresses = self._resolve('block-domain', domain)
        plan = Plan('block-domain')
        for address in addresses:
            plan.extend(self.compiler.block_ip(address, family, table, chain))
        self.execute(plan, result)
        result.values = addresses
        result.message = f'Blocked {domain} ({", ".join(addresses)})'

    # -- ruleset --

    @intent('list')
    def list_ruleset(self, result, family=None, table=None):
        if table:
            ref = self.compiler.table_ref('list', family, table)
            result.output = self._read(self.engine.list_table, ref)
        else:
            if family:
                family = self.compiler.table_ref('list', family).family
            result.output = self._read(self.engine.list_ruleset, family)

    @intent('status')
    def status(self, result):
        version = self._read(self.engine.version)
        ruleset = self.engine.list_ruleset()
        lines = ruleset.splitlines()
        state = self.installer.service_state()
        out = [
            f'Version: {version}',
            f'Service: {"active" if state.active else "inactive"}, '
            f'{"enabled" if state.enabled else "disabled"} at boot',
            f'Ruleset: {len(lines)} line(s)',
            '',
            *lines[:STATUS_RULESET_LINES],
        ]
        if len(lines) > STATUS_RULESET_LINES:
            out.append(f'... ({len(lines) - STATUS_RULESET_LINES} more line(s))')
        result.output = '\n'.join(out)
        result.values = [version]
        result.message = 'status'

    @intent('flush')
    def flush(self, result, family=None, table=None):
        self.execute(self.compiler.flush(family, table), result)
        if table:
            result.message = f'Flushed table {family or self.settings.family} {table}'
        else:
            result.message = f'Flushed ruleset {family}' if family else 'Flushed ruleset'

    @intent('reset')
    def reset(self, result):
        self.execute(self.compiler.reset(), result)
        result.message = 'Reset: all tables, chains and rules removed'

    def _write_snapshot(self, result, path: Path):
        ruleset = self._read(self.engine.list_ruleset)
        if self.dry_run:
            result.output = ruleset
            logger.info('Dry run: not writing %s', path)
        else:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                with path.open('w', encoding='utf-8') as f:
                    f.write(ruleset)
            except OSError as e:
                raise PrerequisiteMissingError(f'Cannot write {path}: {e.strerror or e}') from None
        result.values = [str(path)]

    @intent('save')
    def save(self, result, path=None):
        target = Path(path or self.settings.save_file)
        self._write_snapshot(result, target)
        result.message = f'Saved ruleset to {target}'

    @intent('backup')
    def backup(self, result):
        name = time.strftime('nftables_%Y%m%d_%H%M%S.nft')
        target = Path(self.settings.backup_dir) / name
        self._write_snapshot(result, target)
        result.message = f'Backed up ruleset to {target}'

    @intent('restore')
    def restore(self, result, path=None):
        path = self.compiler.path('restore', path or self.settings.save_file)
        if not Path(path).is_file():
            raise PrerequisiteMissingError(f'restore: file not found: {path}')
        self.execute(self.compiler.restore(path), result)
        result.message = f'Restored ruleset from {path}'

    @intent('raw')
    def raw(self, result, verb, args):
        plan = self.compiler.raw(verb, args)
        result.intent = plan.intent
        self.execute(plan, result)
        result.message = f'{verb}: done'

    # -- host --

    @intent('install')
    def install(self, result):
        if shutil.which(self.settings.nft_path):
            result.message = 'nftables is already installed'
            return
        if self.dry_run:
            result.message = 'Dry run: nftables would be installed'
            return
        self.installer.install()
        result.message = 'nftables installed'
