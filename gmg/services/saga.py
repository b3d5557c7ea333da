"""
Minimal saga runner.

Multi-step operations over stores without transactions (OS identity
database, filesystem, git objects) register each step with an optional
compensating action. If a later step fails, completed steps are compensated
in reverse order (the failing step itself is not compensated) and the
original error is re-raised. A failing compensation is logged and
recorded, never allowed to mask the original error.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from gmg.errors import CompensationFailure

logger = logging.getLogger(__name__)


@dataclass
class SagaStep:
    name: str
    action: Callable[[], Any]
    compensate: Callable[[], Any] | None = None


@dataclass
class Saga:
    """Ordered steps with paired compensations."""
    name: str
    steps: list[SagaStep] = field(default_factory=list)
    compensation_failures: list[CompensationFailure] = field(default_factory=list)

    def step(self, name: str, action: Callable[[], Any],
             compensate: Callable[[], Any] | None = None) -> "Saga":
        self.steps.append(SagaStep(name, action, compensate))
        return self

    def run(self) -> None:
        completed: list[SagaStep] = []
        for current in self.steps:
            logger.debug(f"{self.name}: {current.name}")
            try:
                current.action()
            except Exception as exc:
                logger.error(f"{self.name}: step '{current.name}' failed: {exc}")
                self._compensate(completed)
                raise
            completed.append(current)

    def _compensate(self, steps: list[SagaStep]) -> None:
        for done in reversed(steps):
            if done.compensate is None:
                continue
            logger.warning(f"{self.name}: compensating '{done.name}'")
            try:
                done.compensate()
            except Exception as exc:
                failure = CompensationFailure(self.name, done.name, exc)
                self.compensation_failures.append(failure)
                logger.error(str(failure))
