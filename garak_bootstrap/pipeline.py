from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Type

from .errors import BootstrapError, DependencyWarning
from .lib.command import CommandError

logger = logging.getLogger(__name__)

OK = "ok"
WARNING = "warning"
FATAL = "fatal"


@dataclass(frozen=True)
class Outcome:
    """Tagged result of one step: ok, warning(details) or fatal(error)."""

    status: str
    details: tuple = ()
    error: Optional[BootstrapError] = None

    @classmethod
    def ok(cls) -> "Outcome":
        return cls(OK)

    @classmethod
    def warning(cls, *details: str) -> "Outcome":
        return cls(WARNING, tuple(details))

    @classmethod
    def fatal(cls, error: BootstrapError) -> "Outcome":
        return cls(FATAL, (str(error),), error)

    @classmethod
    def from_warnings(cls, warnings: Sequence[Optional[str]]) -> "Outcome":
        found = [w for w in warnings if w]
        return cls.warning(*found) if found else cls.ok()


class Step(Protocol):
    step_id: str

    def run(self, ctx: Any) -> Outcome:
        ...


@dataclass
class PipelineResult:
    ran_steps: List[str] = field(default_factory=list)
    warnings: List[Dict[str, str]] = field(default_factory=list)
    failed_step: Optional[str] = None
    error: Optional[BootstrapError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def best_effort(
    label: str,
    fn: Callable[[], Any],
    *,
    category: Type[Warning] = DependencyWarning,
) -> Optional[str]:
    """Run `fn`; turn a failure into a logged warning message instead of raising."""

    try:
        fn()
    except (CommandError, OSError, BootstrapError) as e:
        msg = f"{label}: {e}"
        logger.warning("%s %s", category.__name__, msg)
        return msg
    return None


def run_pipeline(ctx: Any, steps: Sequence[Step]) -> PipelineResult:
    """Run steps in order, stopping at the first fatal outcome.

    A step may return Outcome.fatal() or raise a BootstrapError; both end the run.
    """

    result = PipelineResult()
    for step in steps:
        logger.info("Running step %s", step.step_id)
        try:
            outcome = step.run(ctx)
        except BootstrapError as e:
            outcome = Outcome.fatal(e)

        result.ran_steps.append(step.step_id)

        if outcome.status == WARNING:
            for d in outcome.details:
                result.warnings.append({"step": step.step_id, "detail": d})
        elif outcome.status == FATAL:
            logger.error("Step %s failed: %s", step.step_id, outcome.error)
            result.failed_step = step.step_id
            result.error = outcome.error
            break

    return result
