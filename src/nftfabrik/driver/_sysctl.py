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

"""Kernel parameters written through /proc."""

from __future__ import annotations

import logging
from pathlib import Path

from nftfabrik.core import PrerequisiteMissingError

logger = logging.getLogger(__name__)


class Sysctl:
    def __init__(self, ip_forward_path: str | Path = '/proc/sys/net/ipv4/ip_forward') -> None:
        self.ip_forward_path = Path(ip_forward_path)

    def enable_ip_forward(self) -> None:
        """Turn on IPv4 forwarding. The setting is global and stays on."""
        try:
            with self.ip_forward_path.open('w', encoding='ascii') as f:
                f.write('1\n')
        except OSError as e:
            raise PrerequisiteMissingError(
                f'Cannot enable IPv4 forwarding via {self.ip_forward_path}: {e.strerror or e}'
            ) from None
        logger.info('Enabled IPv4 forwarding')
