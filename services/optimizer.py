"""
Population Search Study Scheduler
=================================

Metaheuristic alternative to the exact branch-and-bound solver:

- FitnessEvaluator: reward for preferred slots minus constraint penalties,
  plus a bonus for two-hour blocks
- HillClimber: best-improvement local search over swap, block-swap and shift
  moves that keep the number of selected hours constant
- PopulationOptimizer: Dispersive Flies Optimisation with elitism, random
  restarts and hill climbing applied to part of the population each generation

All randomness comes from an injected ``random.Random`` so runs are
reproducible under a fixed seed.
"""

import logging
import math
import random
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from services.schedule_grid import daily_counts, iter_blocks
from utils.logging_utils import get_logger

logger = get_logger(__name__)

Solution = List[int]


@dataclass(frozen=True)
class OptimizerConfig:
    """Grid shape, constraints and DFO parameters"""

    num_days: int
    hours_per_day: int
    total_hours: int
    required_study_hours: int
    max_daily_hours: int
    population_size: int = 50
    generations: int = 100
    delta: float = 0.009  # random restart probability per coordinate
    hill_climbing_rate: float = 0.3


@dataclass(frozen=True)
class FitnessWeights:
    """Reward and penalty magnitudes used by the fitness function"""

    single_hour_block_penalty: float = 30
    long_block_penalty: float = 40  # per hour beyond two
    two_hour_block_bonus: float = 20
    unavailable_slot_penalty: float = 100000
    negative_slot_penalty: float = 1000
    hours_mismatch_penalty: float = 1000  # per hour off the requirement
    daily_excess_penalty: float = 100  # per hour over the daily cap
    reward_scale: float = 50


@dataclass(frozen=True)
class PenaltyDetails:
    invalid_slot_count: int = 0
    hours_difference: int = 0
    single_hour_block_count: int = 0
    two_hour_block_count: int = 0
    long_block_count: int = 0
    days_exceeding_max_hours: int = 0


@dataclass(frozen=True)
class BonusDetails:
    two_hour_block_count: int = 0
    total_bonus: float = 0.0


@dataclass(frozen=True)
class FitnessReport:
    fitness: float
    reward: float
    penalties: float
    bonus: float
    penalty_details: PenaltyDetails
    bonus_details: BonusDetails


class FitnessEvaluator:
    """Scores binary schedules; stateless between calls"""

    def __init__(
        self,
        config: OptimizerConfig,
        preferences: Optional[Sequence[float]] = None,
        weights: Optional[FitnessWeights] = None,
    ):
        if preferences is None:
            # Uniform variant: every slot equally acceptable
            preferences = [1] * config.total_hours
        if len(preferences) != config.total_hours:
            raise ValueError(
                f"Preference vector length {len(preferences)} != {config.total_hours}"
            )
        self.config = config
        self.preferences = list(preferences)
        self.weights = weights or FitnessWeights()

    def evaluate(self, solution: Sequence[int]) -> FitnessReport:
        """Full fitness with the penalty and bonus breakdown"""
        w = self.weights
        reward = sum(
            self.preferences[i] * solution[i] * w.reward_scale
            for i in range(len(solution))
        )

        penalties = 0.0

        # Hard constraint: no study in unavailable slots
        invalid_slot_count = 0
        for i, selected in enumerate(solution):
            if selected == 1 and self.preferences[i] <= 0:
                invalid_slot_count += 1
                if self.preferences[i] == 0:
                    penalties += w.unavailable_slot_penalty
                else:
                    penalties += w.negative_slot_penalty

        # Total hours should match the requirement
        hours_difference = abs(sum(solution) - self.config.required_study_hours)
        penalties += hours_difference * w.hours_mismatch_penalty

        # Block shape
        block_lengths = Counter()
        bonus = 0.0
        for _, _, length in iter_blocks(
            solution, self.config.num_days, self.config.hours_per_day
        ):
            if length == 1:
                penalties += w.single_hour_block_penalty
                block_lengths["single"] += 1
            elif length == 2:
                bonus += w.two_hour_block_bonus
                block_lengths["two"] += 1
            else:
                penalties += (length - 2) * w.long_block_penalty
                block_lengths["long"] += 1

        # Daily cap
        days_exceeding = 0
        for hours in daily_counts(
            solution, self.config.num_days, self.config.hours_per_day
        ):
            if hours > self.config.max_daily_hours:
                penalties += (hours - self.config.max_daily_hours) * w.daily_excess_penalty
                days_exceeding += 1

        penalty_details = PenaltyDetails(
            invalid_slot_count=invalid_slot_count,
            hours_difference=hours_difference,
            single_hour_block_count=block_lengths["single"],
            two_hour_block_count=block_lengths["two"],
            long_block_count=block_lengths["long"],
            days_exceeding_max_hours=days_exceeding,
        )
        bonus_details = BonusDetails(
            two_hour_block_count=block_lengths["two"], total_bonus=bonus
        )

        return FitnessReport(
            fitness=reward - penalties + bonus,
            reward=reward,
            penalties=penalties,
            bonus=bonus,
            penalty_details=penalty_details,
            bonus_details=bonus_details,
        )

    def calculate_fitness(self, solution: Sequence[int]) -> float:
        return self.evaluate(solution).fitness

    def calculate_penalties(self, solution: Sequence[int]) -> float:
        return self.evaluate(solution).penalties

    def calculate_bonus(self, solution: Sequence[int]) -> float:
        return self.evaluate(solution).bonus


def find_blocks(day_schedule: Sequence[int]) -> List[List[int]]:
    """Index lists of contiguous selected hours within one day"""
    blocks = []
    current = []
    for i, value in enumerate(day_schedule):
        if value == 1:
            current.append(i)
        elif current:
            blocks.append(current)
            current = []
    if current:
        blocks.append(current)
    return blocks


class HillClimber:
    """Local search that never changes the number of selected hours"""

    MOVES = ("swap", "block_swap", "shift")

    def __init__(
        self,
        config: OptimizerConfig,
        fitness_evaluator: FitnessEvaluator,
        rng: Optional[random.Random] = None,
        max_iterations: int = 5,
        max_neighbors: int = 2,
    ):
        self.config = config
        self.fitness_evaluator = fitness_evaluator
        self.rng = rng or random.Random()
        self.max_iterations = max_iterations  # consecutive non-improving rounds
        self.max_neighbors = max_neighbors

    def optimize(self, solution: Sequence[int]) -> Solution:
        current = list(solution)
        current_fitness = self.fitness_evaluator.calculate_fitness(current)

        iterations_without_improvement = 0
        while iterations_without_improvement < self.max_iterations:
            best_neighbor = None
            best_neighbor_fitness = current_fitness

            for neighbor in self.generate_neighbors(current):
                neighbor_fitness = self.fitness_evaluator.calculate_fitness(neighbor)
                if neighbor_fitness > best_neighbor_fitness:
                    best_neighbor = neighbor
                    best_neighbor_fitness = neighbor_fitness

            if best_neighbor is None:
                iterations_without_improvement += 1
                continue

            current = best_neighbor
            current_fitness = best_neighbor_fitness
            iterations_without_improvement = 0

        return current

    def generate_neighbors(self, solution: Sequence[int]) -> List[Solution]:
        solution_hours = sum(solution)
        neighbors = []

        for _ in range(self.max_neighbors):
            move = self.rng.choice(self.MOVES)
            if move == "swap":
                neighbor = self._swap(solution)
            elif move == "block_swap":
                neighbor = self._block_swap(solution)
            else:
                neighbor = self._shift(solution)

            if sum(neighbor) == solution_hours:
                neighbors.append(neighbor)

        return neighbors

    def _swap(self, solution: Sequence[int]) -> Solution:
        """Move one selected hour to a random free slot"""
        neighbor = list(solution)
        ones = [i for i, v in enumerate(neighbor) if v == 1]
        zeros = [i for i, v in enumerate(neighbor) if v != 1]
        if ones and zeros:
            neighbor[self.rng.choice(ones)] = 0
            neighbor[self.rng.choice(zeros)] = 1
        return neighbor

    def _block_swap(self, solution: Sequence[int]) -> Solution:
        """Exchange the hour positions of two equal-length blocks on different days"""
        neighbor = list(solution)
        n_days, hpd = self.config.num_days, self.config.hours_per_day
        if n_days < 2:
            return neighbor

        day1 = self.rng.randrange(n_days)
        day2 = self.rng.randrange(n_days)
        while day2 == day1:
            day2 = self.rng.randrange(n_days)

        row1 = neighbor[day1 * hpd:(day1 + 1) * hpd]
        row2 = neighbor[day2 * hpd:(day2 + 1) * hpd]
        blocks1 = find_blocks(row1)
        blocks2 = find_blocks(row2)
        if not blocks1 or not blocks2:
            return neighbor

        block1 = self.rng.choice(blocks1)
        block2 = self.rng.choice(blocks2)
        if len(block1) != len(block2) or block1 == block2:
            return neighbor

        # Destinations must be free apart from the block being moved
        if any(row1[h] == 1 and h not in block1 for h in block2):
            return neighbor
        if any(row2[h] == 1 and h not in block2 for h in block1):
            return neighbor

        for h in block1:
            row1[h] = 0
        for h in block2:
            row1[h] = 1
        for h in block2:
            row2[h] = 0
        for h in block1:
            row2[h] = 1

        neighbor[day1 * hpd:(day1 + 1) * hpd] = row1
        neighbor[day2 * hpd:(day2 + 1) * hpd] = row2
        return neighbor

    def _shift(self, solution: Sequence[int]) -> Solution:
        """Slide one selected hour to a free adjacent slot, left first"""
        neighbor = list(solution)
        hpd = self.config.hours_per_day
        day = self.rng.randrange(self.config.num_days)
        start = day * hpd

        ones = [h for h in range(hpd) if neighbor[start + h] == 1]
        if not ones:
            return neighbor

        hour = self.rng.choice(ones)
        if hour > 0 and neighbor[start + hour - 1] == 0:
            neighbor[start + hour] = 0
            neighbor[start + hour - 1] = 1
        elif hour < hpd - 1 and neighbor[start + hour + 1] == 0:
            neighbor[start + hour] = 0
            neighbor[start + hour + 1] = 1
        return neighbor


class PopulationOptimizer:
    """Dispersive Flies Optimisation hybridized with hill climbing"""

    def __init__(
        self,
        config: OptimizerConfig,
        fitness_evaluator: FitnessEvaluator,
        rng: Optional[random.Random] = None,
        hill_climber: Optional[HillClimber] = None,
    ):
        self.config = config
        self.fitness_evaluator = fitness_evaluator
        self.rng = rng or random.Random()
        self.hill_climber = hill_climber or HillClimber(
            config, fitness_evaluator, rng=self.rng
        )
        self.fitness_history: List[float] = []

    def initialize_population(self) -> List[Solution]:
        """Random solutions with exactly the required hours on valid slots"""
        valid_indices = [
            i
            for i in range(self.config.total_hours)
            if self.fitness_evaluator.preferences[i] > 0
        ]

        population = []
        for _ in range(self.config.population_size):
            solution = [0] * self.config.total_hours
            shuffled = list(valid_indices)
            self.rng.shuffle(shuffled)
            for idx in shuffled[:self.config.required_study_hours]:
                solution[idx] = 1
            population.append(solution)

        return population

    def optimize_population(
        self,
        population: List[Solution],
        fitness: Optional[List[float]] = None,
    ) -> List[Solution]:
        """One DFO generation: position update for every fly but the best"""
        if fitness is None:
            fitness = [self.fitness_evaluator.calculate_fitness(p) for p in population]

        size = len(population)
        best_idx = 0
        for i in range(1, size):
            if fitness[i] > fitness[best_idx]:
                best_idx = i
        best = population[best_idx]

        new_population = [list(p) for p in population]

        for i in range(size):
            if i == best_idx:
                continue  # elitism

            left = (i - 1 + size) % size
            right = (i + 1) % size
            neighbor = population[left] if fitness[left] > fitness[right] else population[right]
            individual = population[i]

            new_position = []
            for d in range(self.config.total_hours):
                value = neighbor[d] + self.rng.random() * (best[d] - individual[d])

                if self.rng.random() < self.config.delta:
                    value = 1 if self.rng.random() > 0.5 else 0

                new_position.append(1 if value > 0.5 else 0)

            new_population[i] = new_position

        # Hill climb the best fly plus a random share of the others
        selected = [best_idx]
        target = max(1, math.floor(self.config.hill_climbing_rate * self.config.population_size))
        candidates = [i for i in range(size) if i != best_idx]
        while len(selected) < target and candidates:
            selected.append(candidates.pop(self.rng.randrange(len(candidates))))

        for idx in selected:
            new_population[idx] = self.hill_climber.optimize(new_population[idx])

        return new_population

    def run(self) -> Tuple[Solution, float]:
        """Evolve for the configured generations; best seen across all of them"""
        logger.debug(
            "Starting DFO with population %d for %d generations",
            self.config.population_size,
            self.config.generations,
        )
        population = self.initialize_population()
        fitness = None
        best_solution: Solution = [0] * self.config.total_hours
        best_fitness = -math.inf
        self.fitness_history = []

        for generation in range(self.config.generations):
            population = self.optimize_population(population, fitness)
            fitness = [self.fitness_evaluator.calculate_fitness(p) for p in population]

            current_best = max(range(len(population)), key=lambda i: fitness[i])
            if fitness[current_best] > best_fitness:
                best_fitness = fitness[current_best]
                best_solution = list(population[current_best])
                logger.debug(
                    "Generation %d: new best fitness %.2f", generation, best_fitness
                )

            self.fitness_history.append(best_fitness)

        if self.config.generations == 0:
            best_solution = population[0] if population else best_solution
            best_fitness = self.fitness_evaluator.calculate_fitness(best_solution)

        report = self.fitness_evaluator.evaluate(best_solution)
        logger.debug(
            "DFO completed with fitness %.2f",
            report.fitness,
            extra={
                "invalid_slots": report.penalty_details.invalid_slot_count,
                "hours_difference": report.penalty_details.hours_difference,
                "single_hour_blocks": report.penalty_details.single_hour_block_count,
                "two_hour_blocks": report.penalty_details.two_hour_block_count,
                "long_blocks": report.penalty_details.long_block_count,
                "days_over_cap": report.penalty_details.days_exceeding_max_hours,
            },
        )
        if logger.isEnabledFor(logging.DEBUG):
            for day in self.analyze_distribution(best_solution):
                logger.debug("%s: %d hours, blocks %s", day["day"], day["hours"], day["blocks"])

        return best_solution, report.fitness

    def analyze_distribution(
        self, solution: Sequence[int], day_names: Optional[Sequence[str]] = None
    ) -> List[Dict]:
        """Hours and block-length counts for every day of a solution"""
        hours = daily_counts(solution, self.config.num_days, self.config.hours_per_day)
        blocks: Dict[int, Counter] = {day: Counter() for day in range(self.config.num_days)}
        for day, _, length in iter_blocks(
            solution, self.config.num_days, self.config.hours_per_day
        ):
            blocks[day][length] += 1

        summary = []
        for day in range(self.config.num_days):
            name = (
                day_names[day]
                if day_names and day < len(day_names)
                else f"Day {day + 1}"
            )
            summary.append(
                {
                    "day": name,
                    "hours": hours[day],
                    "blocks": dict(sorted(blocks[day].items())),
                }
            )
        return summary
