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

from ._base import Engine
from ._dry_run import DryRunEngine
from ._installer import PACKAGE_MANAGERS, Installer, ServiceState
from ._listing import parse_rule, parse_rules
from ._nft import NftEngine

__all__ = [
    'PACKAGE_MANAGERS',
    'DryRunEngine',
    'Engine',
    'Installer',
    'NftEngine',
    'ServiceState',
    'parse_rule',
    'parse_rules',
]
