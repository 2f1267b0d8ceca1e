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

"""Typed option schema with shared defaults.

:class:`Settings` is the single source of truth for:

1. What options exist and their types
2. Default values used by the CLI, the compiler and the applier
3. Documentation of option semantics
"""

from dataclasses import dataclass


@dataclass
class Settings:
    """nftfabrik settings.

    Path options set to ``''`` disable the corresponding feature where that
    makes sense (``log_file``).
    """

    # Engine
    nft_path: str = 'nft'
    auto_install: bool = True
    install_log: str = '/tmp/nftables_install.log'

    # Defaults for intents that take an optional target context
    family: str = 'inet'
    table: str = 'filter'
    chain: str = 'input'
    nat_family: str = 'ip'
    nat_table: str = 'nat'

    # Persistent state
    blacklist_file: str = '/etc/nftables_blacklist.txt'
    whitelist_file: str = '/etc/nftables_whitelist.txt'
    backup_dir: str = '/etc/nftables_backup'
    save_file: str = '/etc/nftables.conf'

    # Logging
    log_file: str = '/tmp/nftfabrik.log'
    log_level: str = 'warn'  # nft log level of rules created by enable-log
    log_prefix: str = 'NFTABLES'

    # Payload matching (byte offset into the transport header)
    payload_port: int = 80
    payload_offset: int = 200

    # Kernel
    ip_forward_path: str = '/proc/sys/net/ipv4/ip_forward'


DEFAULTS = Settings()
