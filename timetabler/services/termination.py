from __future__ import annotations

from collections.abc import Callable
import time

from timetabler.services.scoring import HardSoftScore


class TerminationController:
    """Decides when local search stops.

    Stops at the wall-clock deadline, after ``max_iterations`` moves when set,
    or once the best score is feasible and has not improved for
    ``plateau_iterations`` consecutive moves.
    """

    def __init__(
        self,
        time_limit_seconds: float,
        *,
        max_iterations: int | None = None,
        plateau_iterations: int = 2000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.clock = clock
        self.started_at = clock()
        self.deadline = self.started_at + time_limit_seconds
        self.max_iterations = max_iterations
        self.plateau_iterations = plateau_iterations
        self.reason: str | None = None

    def elapsed(self) -> float:
        return self.clock() - self.started_at

    def deadline_reached(self) -> bool:
        return self.clock() >= self.deadline

    def should_stop(self, *, iterations: int, since_improvement: int, best: HardSoftScore) -> bool:
        if self.deadline_reached():
            self.reason = "deadline"
        elif self.max_iterations is not None and iterations >= self.max_iterations:
            self.reason = "iteration_limit"
        elif best.is_feasible and since_improvement >= self.plateau_iterations:
            self.reason = "plateau"
        else:
            return False
        return True
