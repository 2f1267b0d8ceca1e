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

"""YAML configuration loader.

Looks for the configuration file in this order:

1. the path passed explicitly (``--config``)
2. ``$NFTFABRIK_CONFIG``
3. ``/etc/nftfabrik/nftfabrik.yml`` (only if it exists)

Values in the file override the :class:`Settings` defaults. Unknown keys
are logged and ignored.
"""

import dataclasses
import logging
import os
import pathlib

import yaml

from nftfabrik.core._errors import InvalidArgumentsError, PrerequisiteMissingError

from ._keys import Option
from ._schemas import Settings

logger = logging.getLogger(__name__)

ENV_VAR = 'NFTFABRIK_CONFIG'
DEFAULT_CONFIG_FILE = pathlib.Path('/etc/nftfabrik/nftfabrik.yml')

# Raises ValueError at import time if Settings and Option drift apart.
_FIELD_TYPES = {Option(f.name): f.type for f in dataclasses.fields(Settings)}


def _coerce(key, value, wanted):
    """Coerce a YAML scalar to the schema type of *key*."""
    if wanted is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ('true', 'yes', '1'):
            return True
        if isinstance(value, str) and value.lower() in ('false', 'no', '0'):
            return False
        if isinstance(value, int):
            return bool(value)
        raise InvalidArgumentsError(f'Option {key}: expected a boolean, got {value!r}')
    if wanted is int:
        try:
            return int(value)
        except (TypeError, ValueError):
            raise InvalidArgumentsError(
                f'Option {key}: expected an integer, got {value!r}'
            ) from None
    if value is None:
        return ''
    return str(value)


def find_config_file(path=None):
    """Return the configuration file to load, or ``None``."""
    if path:
        return pathlib.Path(path)
    env = os.environ.get(ENV_VAR)
    if env:
        return pathlib.Path(env)
    if DEFAULT_CONFIG_FILE.is_file():
        return DEFAULT_CONFIG_FILE
    return None


def load_settings(path=None, **overrides):
    """Build :class:`Settings` from defaults, the config file and *overrides*.

    Overrides with a value of ``None`` are skipped so that argparse
    namespaces can be passed through unchanged.
    """
    values = {}

    config_file = find_config_file(path)
    if config_file is not None:
        if not config_file.is_file():
            raise PrerequisiteMissingError(f'Configuration file not found: {config_file}')
        logger.debug('Loading configuration from %s', config_file)
        try:
            with pathlib.Path.open(config_file, encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise InvalidArgumentsError(f'Configuration file {config_file}: {e}') from None
        if not isinstance(data, dict):
            raise InvalidArgumentsError(
                f'Configuration file {config_file} must contain a mapping'
            )
        values.update(data)

    values.update({k: v for k, v in overrides.items() if v is not None})

    known = {}
    for key, value in values.items():
        if key not in _FIELD_TYPES:
            logger.warning('Ignoring unknown option: %s', key)
            continue
        known[key] = _coerce(key, value, _FIELD_TYPES[key])

    return Settings(**known)
