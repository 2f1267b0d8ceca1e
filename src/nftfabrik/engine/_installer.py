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

"""Installs nftables on the host when the ``nft`` program is missing.

Package manager output is appended to an install log so that a failed
installation can be diagnosed without re-running it.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from nftfabrik.core import PrerequisiteMissingError

logger = logging.getLogger(__name__)

# Checked in this order; the first one found on $PATH is used.
PACKAGE_MANAGERS: dict[str, list[list[str]]] = {
    'apt-get': [
        ['apt-get', 'update'],
        ['apt-get', 'install', '-y', 'nftables'],
    ],
    'yum': [['yum', 'install', '-y', 'nftables']],
    'dnf': [['dnf', 'install', '-y', 'nftables']],
    'pacman': [['pacman', '-S', '--noconfirm', 'nftables']],
    'zypper': [['zypper', 'install', '-y', 'nftables']],
}

SERVICE = 'nftables'


@dataclass
class ServiceState:
    active: bool
    enabled: bool


class Installer:
    """Detects the package manager, installs nftables and enables the service."""

    def __init__(self, log_path: str | Path = '/tmp/nftables_install.log') -> None:
        self.log_path = Path(log_path)

    @staticmethod
    def detect_package_manager() -> str | None:
        for name in PACKAGE_MANAGERS:
            if shutil.which(name):
                return name
        return None

    def _run(self, cmd: list[str]) -> bool:
        logger.debug('Running %s', ' '.join(cmd))
        with self.log_path.open('a', encoding='utf-8') as log:
            log.write(f'$ {" ".join(cmd)}\n')
            log.flush()
            try:
                result = subprocess.run(cmd, stdout=log, stderr=subprocess.STDOUT, check=False)
            except OSError as e:
                log.write(f'{e}\n')
                return False
        return result.returncode == 0

    def install(self) -> None:
        """Install the nftables package.

        Raises :class:`PrerequisiteMissingError` when no supported package
        manager exists or the installation fails.
        """
        manager = self.detect_package_manager()
        if manager is None:
            raise PrerequisiteMissingError(
                'nft not found and no supported package manager '
                '(apt-get, yum, dnf, pacman, zypper) is available; '
                'install nftables manually'
            )
        logger.info('Installing nftables with %s (log: %s)', manager, self.log_path)
        for cmd in PACKAGE_MANAGERS[manager]:
            if not self._run(cmd):
                raise PrerequisiteMissingError(
                    f'Installing nftables with {manager} failed, see {self.log_path}'
                )
        self.enable_service()

    def enable_service(self) -> None:
        """Enable the nftables service at boot. Failure is only logged."""
        if shutil.which('systemctl') is None:
            logger.warning('systemctl not found, not enabling the %s service', SERVICE)
            return
        if self.service_state().enabled:
            return
        if self._run(['systemctl', 'enable', SERVICE]):
            logger.info('Enabled the %s service', SERVICE)
        else:
            logger.warning('Could not enable the %s service, see %s', SERVICE, self.log_path)

    @staticmethod
    def service_state() -> ServiceState:
        if shutil.which('systemctl') is None:
            return ServiceState(active=False, enabled=False)

        def check(verb: str) -> bool:
            result = subprocess.run(
                ['systemctl', verb, '--quiet', SERVICE],
                capture_output=True,
                check=False,
            )
            return result.returncode == 0

        return ServiceState(active=check('is-active'), enabled=check('is-enabled'))
