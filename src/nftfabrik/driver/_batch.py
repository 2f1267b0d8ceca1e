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

"""Renders recorded operations as an ``nft -f`` batch script.

The template is looked up in ``~/nftfabrik/templates/nftables/`` before
the packaged ``resources/templates/nftables/``, so a site can change the
header without touching the package.
"""

from __future__ import annotations

import importlib.resources
import time
from collections.abc import Iterable
from pathlib import Path

import jinja2

import nftfabrik

BATCH_TEMPLATE = 'batch.nft.j2'


def _comment(value) -> str:
    """Prefix every line of *value* with ``# `` so it cannot become a command."""
    return '\n'.join(f'# {line}'.rstrip() for line in str(value).splitlines() or [''])


def template_dirs(kind: str = 'nftables') -> list[str]:
    dirs = []
    user_dir = Path.home() / 'nftfabrik' / 'templates' / kind
    if user_dir.is_dir():
        dirs.append(str(user_dir))
    package_dir = importlib.resources.files('nftfabrik') / 'resources' / 'templates' / kind
    dirs.append(str(package_dir))
    return dirs


class BatchRenderer:
    """Jinja2 environment for batch scripts."""

    def __init__(self, template_name: str = BATCH_TEMPLATE, search_path=None) -> None:
        self._env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(search_path or template_dirs()),
            undefined=jinja2.StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self._env.filters['comment'] = _comment
        self._template = self._env.get_template(template_name)

    def render(self, intents: Iterable[str], recorded, warnings: Iterable[str] = ()) -> str:
        return self._template.render(
            version=nftfabrik.__version__,
            timestamp=time.strftime('%a %b %d %H:%M:%S %Y'),
            intents=list(intents),
            warnings=list(warnings),
            lines=batch_lines(recorded),
        )


def batch_lines(recorded: Iterable[tuple]) -> list[str]:
    """One batch line per ``(operation, ensure)`` pair.

    In a batch file ``create`` aborts the whole transaction if the object
    exists, so objects that are only ensured are written with ``add``.
    """
    lines = []
    for operation, ensure in recorded:
        line = operation.batch_line()
        if ensure and line.startswith('create '):
            line = 'add ' + line[len('create ') :]
        lines.append(line)
    return lines


def render_batch(intents: Iterable[str], recorded, warnings: Iterable[str] = ()) -> str:
    return BatchRenderer().render(intents, recorded, warnings)
