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

"""Plan and Step: the compiler's output, consumed by the applier."""

from __future__ import annotations

import dataclasses
from enum import StrEnum

from ._operations import Operation


class StepPolicy(StrEnum):
    """How the applier treats a failure of a step."""

    ENSURE = 'ensure'  # failure means "already exists", ignored
    REQUIRED = 'required'  # failure stops the plan and is reported
    SIDE_EFFECT = 'side-effect'  # executed on the host, not by the engine


@dataclasses.dataclass(frozen=True)
class Step:
    """One operation plus its failure policy.

    ``fallbacks`` are alternative operations tried in order when the
    primary one is rejected; the first success wins.
    """

    operation: Operation
    policy: StepPolicy = StepPolicy.REQUIRED
    fallbacks: tuple[Operation, ...] = ()

    def candidates(self) -> tuple[Operation, ...]:
        return (self.operation, *self.fallbacks)


@dataclasses.dataclass
class Plan:
    """Ordered steps compiled from a single intent."""

    intent: str
    steps: list[Step] = dataclasses.field(default_factory=list)

    def ensure(self, operation: Operation) -> Plan:
        self.steps.append(Step(operation, StepPolicy.ENSURE))
        return self

    def require(self, operation: Operation, *fallbacks: Operation) -> Plan:
        self.steps.append(Step(operation, StepPolicy.REQUIRED, tuple(fallbacks)))
        return self

    def side_effect(self, operation: Operation) -> Plan:
        self.steps.append(Step(operation, StepPolicy.SIDE_EFFECT))
        return self

    def extend(self, other: Plan) -> Plan:
        self.steps.extend(other.steps)
        return self

    def operations(self) -> list[Operation]:
        return [step.operation for step in self.steps]

    def __len__(self) -> int:
        return len(self.steps)
