from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Sequence

import structlog

logger = structlog.get_logger()


@dataclass
class TeardownStep:
    """One step of an ordered, best-effort teardown.

    A failing non-fatal step is recorded and the sequence continues; a failing
    fatal step is re-raised after being logged.
    """

    name: str
    action: Callable[[], Awaitable[Any]]
    fatal: bool = False


@dataclass
class TeardownReport:
    completed: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def as_dict(self) -> Dict[str, Any]:
        return {"completed": list(self.completed), "errors": dict(self.errors)}


async def run_teardown(steps: Sequence[TeardownStep], **log_context: Any) -> TeardownReport:
    report = TeardownReport()
    for index, step in enumerate(steps, start=1):
        logger.info("Teardown step starting", step=step.name, position=index, total=len(steps), **log_context)
        try:
            await step.action()
        except Exception as e:
            logger.error("Teardown step failed", step=step.name, fatal=step.fatal, error=str(e), **log_context)
            if step.fatal:
                raise
            report.errors[step.name] = str(e)
            continue
        report.completed.append(step.name)
        logger.info("Teardown step completed", step=step.name, **log_context)
    return report
