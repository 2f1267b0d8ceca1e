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

"""Engine abstraction: the capability the applier executes plans against."""

from __future__ import annotations

import abc

from nftfabrik.core import ChainRef, Family, ListedRule, ObjectRef, TableRef


def _family_arg(family: Family | str | None) -> list[str]:
    return [str(family)] if family else []


class Engine(abc.ABC):
    """Primitive nftables operations.

    Write operations are executed with :meth:`apply`; all listings go
    through :meth:`list`, which returns the engine's text rendering.
    Rules are the only objects that are also returned structurally, since
    deleting a rule needs its handle.
    """

    def bootstrap(self) -> None:
        """Make sure the engine is usable. Called before the first operation."""

    def disable_install(self) -> None:
        """Never install missing engine software from :meth:`bootstrap`."""

    @abc.abstractmethod
    def apply(self, operation) -> str:
        """Execute one operation and return the engine's output.

        Raises :class:`~nftfabrik.core.EngineRejectedError` on failure.
        """

    def ensure(self, operation) -> str:
        """Execute an operation whose failure only means "already exists"."""
        return self.apply(operation)

    @abc.abstractmethod
    def list(self, *what: str) -> str:
        """Return the text of ``nft list <what...>``."""

    @abc.abstractmethod
    def list_rules(self, chain: ChainRef) -> list[ListedRule]:
        """Return the rules of *chain* in order, each with its handle."""

    @abc.abstractmethod
    def version(self) -> str: ...

    def list_ruleset(self, family: Family | str | None = None) -> str:
        return self.list('ruleset', *_family_arg(family))

    def list_tables(self, family: Family | str | None = None) -> str:
        return self.list('tables', *_family_arg(family))

    def list_table(self, table: TableRef) -> str:
        return self.list('table', *table.tokens())

    def list_chains(self, family: Family | str | None = None) -> str:
        return self.list('chains', *_family_arg(family))

    def list_chain(self, chain: ChainRef) -> str:
        return self.list('chain', *chain.tokens())

    def list_sets(self, family: Family | str | None = None) -> str:
        return self.list('sets', *_family_arg(family))

    def list_set(self, ref: ObjectRef) -> str:
        return self.list('set', *ref.tokens())

    def list_maps(self, family: Family | str | None = None) -> str:
        return self.list('maps', *_family_arg(family))

    def list_map(self, ref: ObjectRef) -> str:
        return self.list('map', *ref.tokens())
