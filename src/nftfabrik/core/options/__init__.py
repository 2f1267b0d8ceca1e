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

"""Typed option keys, the settings schema and the YAML loader.

Usage::

    from nftfabrik.core.options import load_settings

    settings = load_settings('/etc/nftfabrik/nftfabrik.yml', family='ip')
    settings.blacklist_file
"""

from nftfabrik.core.options._config import (
    DEFAULT_CONFIG_FILE,
    ENV_VAR,
    find_config_file,
    load_settings,
)
from nftfabrik.core.options._keys import Option
from nftfabrik.core.options._schemas import DEFAULTS, Settings

__all__ = [
    'DEFAULTS',
    'DEFAULT_CONFIG_FILE',
    'ENV_VAR',
    'Option',
    'Settings',
    'find_config_file',
    'load_settings',
]
