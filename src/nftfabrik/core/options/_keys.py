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

"""Canonical option key definitions using StrEnum.

The keys double as the top-level keys of the YAML configuration file and
as the attribute names of :class:`~nftfabrik.core.options.Settings`, so a
typo is caught at import time instead of silently being ignored.

Example:
    from nftfabrik.core.options import Option

    path = getattr(settings, Option.BLACKLIST_FILE)
"""

from enum import StrEnum


class Option(StrEnum):
    """nftfabrik configuration option keys."""

    # Engine
    NFT_PATH = 'nft_path'
    AUTO_INSTALL = 'auto_install'
    INSTALL_LOG = 'install_log'

    # Default target context
    FAMILY = 'family'
    TABLE = 'table'
    CHAIN = 'chain'
    NAT_FAMILY = 'nat_family'
    NAT_TABLE = 'nat_table'

    # Persistent state
    BLACKLIST_FILE = 'blacklist_file'
    WHITELIST_FILE = 'whitelist_file'
    BACKUP_DIR = 'backup_dir'
    SAVE_FILE = 'save_file'

    # Logging
    LOG_FILE = 'log_file'
    LOG_LEVEL = 'log_level'
    LOG_PREFIX = 'log_prefix'

    # Payload matching
    PAYLOAD_PORT = 'payload_port'
    PAYLOAD_OFFSET = 'payload_offset'

    # Kernel
    IP_FORWARD_PATH = 'ip_forward_path'
