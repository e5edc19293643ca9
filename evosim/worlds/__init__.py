# SPDX-License-Identifier: MIT
"""
The bush world scenario: flies, wasps and fruits.
"""

from .bushworld import Bushworld, FlyEgg  # noqa: F401
from .bushworld_statistics import BushworldDatabase  # noqa: F401
from .insects import FLY, GENOME_SIZE, WASP, Fly, Insect, Wasp  # noqa: F401
from .perception import Action, ActionType, Perception  # noqa: F401
