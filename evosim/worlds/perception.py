# SPDX-License-Identifier: MIT
"""Actions and perceptions exchanged between insects and the bush world."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class ActionType(enum.IntEnum):
    WAIT = 0
    LAY_EGG = 1
    GO_TO_FRUIT = 2
    GO_TO_BRANCH_WEST = 3
    GO_TO_BRANCH_EAST = 4


@dataclass(frozen=True)
class Action:
    kind: ActionType
    intensity: float = 1.0


@dataclass
class Perception:
    """What an insect sitting on a fruit can see."""

    fruits_in_branch: int = 0
    competition_pressure: float = 1.0
    fruit_free: bool = True
    fly_eggs_in_fruit: int = 0
    wasp_eggs_in_fruit: int = 0
    foreign_eggs_in_fruit: int = 0
    own_eggs_in_fruit: int = 0
    current_time: float = 0.0
