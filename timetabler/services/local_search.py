from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
import logging
import math
import random

from timetabler.schemas.solver import SolverSettings
from timetabler.services.moves import MoveGenerator
from timetabler.services.scoring import HardSoftScore, ScoreDirector
from timetabler.services.termination import TerminationController

logger = logging.getLogger(__name__)

HARD_ENERGY_FACTOR = 10_000


class SearchPhase(str, Enum):
    improving = "IMPROVING"
    propose_move = "PROPOSE_MOVE"
    evaluate = "EVALUATE"
    accepted = "ACCEPTED"
    rejected = "REJECTED"
    terminated = "TERMINATED"


@dataclass(frozen=True)
class SolverEvent:
    kind: str
    instance: int
    iteration: int
    score: HardSoftScore
    best: HardSoftScore
    elapsed_seconds: float
    message: str = ""


EventSink = Callable[[SolverEvent], None]


@dataclass
class SearchStats:
    iterations: int = 0
    accepted: int = 0
    rejected: int = 0
    improvements: int = 0
    reheats: int = 0
    termination_reason: str | None = None


def annealing_energy(delta: HardSoftScore) -> int:
    return delta.hard * HARD_ENERGY_FACTOR + delta.soft


class LocalSearch:
    def __init__(
        self,
        director: ScoreDirector,
        generator: MoveGenerator,
        termination: TerminationController,
        settings: SolverSettings,
        rng: random.Random,
        *,
        event_sink: EventSink | None = None,
        instance: int = 0,
    ) -> None:
        self.director = director
        self.generator = generator
        self.termination = termination
        self.settings = settings
        self.random = rng
        self.event_sink = event_sink
        self.instance = instance
        self.phase = SearchPhase.improving
        self.temperature = settings.annealing_initial_temperature
        self.best_score = director.score
        self.best_snapshot = director.snapshot()
        self.stats = SearchStats()

    def _emit(self, kind: str, message: str = "") -> None:
        if self.event_sink is None:
            return
        self.event_sink(
            SolverEvent(
                kind=kind,
                instance=self.instance,
                iteration=self.stats.iterations,
                score=self.director.score,
                best=self.best_score,
                elapsed_seconds=self.termination.elapsed(),
                message=message,
            )
        )

    def accepts(self, delta: HardSoftScore) -> bool:
        if delta.hard < 0:
            return True
        if delta.hard == 0:
            if delta.soft <= 0:
                return True
            return self.random.random() < math.exp(-delta.soft / max(self.temperature, 1e-9))
        if delta.hard <= self.settings.hard_tolerance and delta.soft < 0:
            energy = annealing_energy(delta)
            if energy <= 0:
                return True
            return self.random.random() < math.exp(-energy / max(self.temperature, 1e-9))
        return False

    def _cool(self, since_improvement: int) -> None:
        settings = self.settings
        self.temperature = max(settings.annealing_min_temperature, self.temperature * settings.annealing_cooling_rate)
        if since_improvement and since_improvement % settings.reheat_after == 0:
            self.temperature = settings.annealing_initial_temperature
            self.stats.reheats += 1

    def run(self) -> SearchStats:
        stats = self.stats
        since_improvement = 0
        self.phase = SearchPhase.improving
        logger.info("Instance %s: local search starting at %s", self.instance, self.best_score)
        self._emit("search_started")

        while not self.termination.should_stop(
            iterations=stats.iterations,
            since_improvement=since_improvement,
            best=self.best_score,
        ):
            self.phase = SearchPhase.propose_move
            move = self.generator.propose()
            stats.iterations += 1
            if move is None:
                since_improvement += 1
                continue

            self.phase = SearchPhase.evaluate
            delta, undo = self.director.do_move(move)
            if self.termination.deadline_reached():
                self.director.do_move(undo)
                self.termination.reason = "deadline"
                break

            if self.accepts(delta):
                self.phase = SearchPhase.accepted
                stats.accepted += 1
                if self.director.score < self.best_score:
                    self.best_score = self.director.score
                    self.best_snapshot = self.director.snapshot()
                    stats.improvements += 1
                    since_improvement = 0
                    logger.debug("Instance %s: new best %s at move %s", self.instance, self.best_score, stats.iterations)
                    self._emit("new_best")
                else:
                    since_improvement += 1
            else:
                self.phase = SearchPhase.rejected
                stats.rejected += 1
                self.director.do_move(undo)
                since_improvement += 1
            self._cool(since_improvement)

        self.phase = SearchPhase.terminated
        stats.termination_reason = self.termination.reason
        if self.director.score != self.best_score:
            self.director.restore(self.best_snapshot)
        logger.info(
            "Instance %s: local search stopped (%s) after %s moves at %s",
            self.instance,
            stats.termination_reason,
            stats.iterations,
            self.best_score,
        )
        self._emit("search_finished", stats.termination_reason or "")
        return stats
