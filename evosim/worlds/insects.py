# SPDX-License-Identifier: MIT
"""
Flies (hosts) and wasps (parasitoids) living in the bush world.

Both species lay an egg whenever their fruit allows it. Otherwise a small
genome-encoded network decides whether to stay on the branch and try another
fruit or to fly to a different branch.
"""

from __future__ import annotations

from typing import List

from evosim.sim.agent import Agent, GeneCursor, squash
from evosim.sim.randomness import randone

from .perception import Action, ActionType, Perception

FLY = "Fly"
WASP = "Wasp"
GENOME_SIZE = 4
TIME_SCALER = 0.05


class Insect(Agent):
    """Bookkeeping shared by flies and wasps: position, branch visits and reward rates."""

    species_name = "Insect"
    parasitoid = False

    def __init__(self, genome, **kwargs) -> None:
        super().__init__(genome, **kwargs)
        self.branch = 0
        self.fruit = 0
        self.last_branch_arrival_time = 0.0
        self.last_branch_leaving_time = -1.0
        self.branch_hopping = True
        self.avg_branch_time = -1.0
        self.travel_time_sum = 0.0
        self.cluster_jumps = 0.0
        self.reward_rate_sum = 0.0
        self.laid_eggs = 0
        self.cluster_laid_eggs = 0
        self.bad_fruits_seen = 0

    def set_position(self, branch: int, fruit: int) -> None:
        assert branch >= 0 and fruit >= 0, f"negative position {branch}/{fruit}"
        self.branch = branch
        self.fruit = fruit

    def is_between_branches(self) -> bool:
        return self.branch_hopping

    def average_branch_time(self) -> float:
        """Mean time spent per visited branch, computed once after death."""
        if self.avg_branch_time == -1.0:
            span = self.life_span()
            if not span:
                self.avg_branch_time = 0.0
            else:
                self.avg_branch_time = (span - self.travel_time_sum) / (self.cluster_jumps + 1.0)
        return self.avg_branch_time

    def average_travel_time(self) -> float:
        return self.travel_time_sum / self.cluster_jumps if self.cluster_jumps else 0.0

    def lifetime_fraction(self, now: float) -> float:
        remaining = self.max_age - self.birth_time
        if not remaining:
            return 0.0
        return (now - self.birth_time) / remaining

    def branch_reward_rate(self, now: float) -> float:
        branch_time = (now - self.last_branch_arrival_time) * TIME_SCALER
        return self.cluster_laid_eggs / branch_time if branch_time else 0.0

    def average_reward_rate(self) -> float:
        return self.reward_rate_sum / self.cluster_jumps if self.cluster_jumps else 0.0

    def cognition_start_statistics(self, perception: Perception) -> None:
        now = perception.current_time
        if self.branch_hopping:
            if self.cluster_jumps:
                self.travel_time_sum += now - self.last_branch_leaving_time
            self.last_branch_arrival_time = now
            self.branch_hopping = False

    def leave_branch(self, cursor: GeneCursor, now: float) -> Action:
        self.reward_rate_sum += self.branch_reward_rate(now)
        if cursor.next() < randone():
            kind = ActionType.GO_TO_BRANCH_WEST
        else:
            kind = ActionType.GO_TO_BRANCH_EAST
        intensity = float(int(1.0 + cursor.next() * 3.0))
        self.branch_hopping = True
        self.cluster_jumps += 1
        self.cluster_laid_eggs = 0
        self.last_branch_leaving_time = now
        return Action(kind, intensity)


class Fly(Insect):
    species_name = FLY

    def __init__(self, genome, **kwargs) -> None:
        super().__init__(genome, **kwargs)
        self.fruits_on_current_branch_seen_free = 0
        self.free_fruits_on_other_branches_seen = 0
        self.foreign_fly_eggs_on_current_branch_seen = 0
        self.own_eggs_seen = 0
        self.all_own_eggs_seen = 0

    def input_signals(self, now: float) -> List[float]:
        return [
            squash(self.foreign_fly_eggs_on_current_branch_seen),
            squash(self.laid_eggs),
            squash(self.cluster_laid_eggs),
            squash(self.cluster_jumps),
            squash(self.lifetime_fraction(now)),
            squash(self.average_reward_rate()),
            squash(self.branch_reward_rate(now)),
        ]

    def cognite(self, perception: Perception, cursor: GeneCursor) -> Action:
        self.cognition_start_statistics(perception)
        now = perception.current_time
        if perception.fruit_free:
            self.laid_eggs += 1
            self.cluster_laid_eggs += 1
            self.fruits_on_current_branch_seen_free += 1
            return Action(ActionType.LAY_EGG, 1.0)

        if not perception.own_eggs_in_fruit:
            self.bad_fruits_seen += 1
        self.foreign_fly_eggs_on_current_branch_seen += perception.foreign_eggs_in_fruit
        self.own_eggs_seen += perception.own_eggs_in_fruit
        self.all_own_eggs_seen += perception.own_eggs_in_fruit

        if cursor.network(self.input_signals(now), self.hidden_layers):
            self.free_fruits_on_other_branches_seen += self.fruits_on_current_branch_seen_free
            self.foreign_fly_eggs_on_current_branch_seen = 0
            self.fruits_on_current_branch_seen_free = 0
            self.own_eggs_seen = 0
            return self.leave_branch(cursor, now)
        return Action(ActionType.GO_TO_FRUIT, 1.0)


class Wasp(Insect):
    species_name = WASP
    parasitoid = True

    def __init__(self, genome, **kwargs) -> None:
        super().__init__(genome, **kwargs)
        self.fly_eggs_seen = 0
        self.empty_fruits_seen = 0
        self.own_eggs_seen = 0
        self.foreign_wasp_eggs_seen = 0

    def input_signals(self, now: float) -> List[float]:
        return [
            squash(self.foreign_wasp_eggs_seen),
            squash(self.empty_fruits_seen),
            squash(self.laid_eggs),
            squash(self.cluster_laid_eggs),
            squash(self.fly_eggs_seen),
            squash(self.cluster_jumps),
            squash(self.bad_fruits_seen),
            squash(self.lifetime_fraction(now)),
            squash(self.average_reward_rate()),
            squash(self.branch_reward_rate(now)),
        ]

    def cognite(self, perception: Perception, cursor: GeneCursor) -> Action:
        self.cognition_start_statistics(perception)
        now = perception.current_time
        if perception.fruit_free:
            self.empty_fruits_seen += 1
        else:
            self.own_eggs_seen += perception.own_eggs_in_fruit
            self.foreign_wasp_eggs_seen += perception.wasp_eggs_in_fruit - perception.own_eggs_in_fruit
            self.fly_eggs_seen += perception.fly_eggs_in_fruit

        if perception.fly_eggs_in_fruit and not perception.wasp_eggs_in_fruit:
            self.laid_eggs += 1
            self.cluster_laid_eggs += 1
            return Action(ActionType.LAY_EGG, 1.0)

        if not perception.own_eggs_in_fruit:
            self.bad_fruits_seen += 1
        if cursor.network(self.input_signals(now), self.hidden_layers):
            self.foreign_wasp_eggs_seen = 0
            self.empty_fruits_seen = 0
            self.fly_eggs_seen = 0
            return self.leave_branch(cursor, now)
        return Action(ActionType.GO_TO_FRUIT, 1.0)
