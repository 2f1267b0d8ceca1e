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

"""DNS lookups for domain based blocking."""

from __future__ import annotations

import ipaddress
import logging
import socket

logger = logging.getLogger(__name__)


class Resolver:
    """Resolves a host name to its IPv4 addresses."""

    def resolve(self, name: str) -> list[str]:
        """Return the distinct IPv4 addresses of *name*, sorted numerically.

        An unknown name yields an empty list rather than an exception.
        """
        try:
            infos = socket.getaddrinfo(name, None, socket.AF_INET, socket.SOCK_STREAM)
        except (socket.gaierror, UnicodeError) as e:
            logger.debug('Lookup of %s failed: %s', name, e)
            return []
        addresses = {info[4][0] for info in infos}
        return sorted(addresses, key=ipaddress.IPv4Address)
