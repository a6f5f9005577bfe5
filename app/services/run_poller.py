import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional
import structlog
from app.models.schemas import RemoteRun
from app.repositories.interfaces.assistant_provider import IAssistantProvider

logger = structlog.get_logger()

Sleep = Callable[[float], Awaitable[Any]]


class RunOutcomeStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    TIMED_OUT = "timed_out"


# Provider statuses that end polling; "incomplete" is reported as a failure
_TERMINAL = {
    "completed": RunOutcomeStatus.COMPLETED,
    "failed": RunOutcomeStatus.FAILED,
    "incomplete": RunOutcomeStatus.FAILED,
    "cancelled": RunOutcomeStatus.CANCELLED,
    "expired": RunOutcomeStatus.EXPIRED,
}


@dataclass(frozen=True)
class RunOutcome:
    status: RunOutcomeStatus
    attempts: int
    run: Optional[RemoteRun] = None
    message: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.status == RunOutcomeStatus.COMPLETED


def _describe(status: RunOutcomeStatus, run: RemoteRun) -> Optional[str]:
    if status == RunOutcomeStatus.FAILED:
        return f"Run failed: {run.last_error or 'Unknown error'}"
    if status == RunOutcomeStatus.CANCELLED:
        return "Run was cancelled"
    if status == RunOutcomeStatus.EXPIRED:
        return "Run expired"
    return None


async def wait_for_run_completion(
    provider: IAssistantProvider,
    thread_id: str,
    run_id: str,
    poll_interval: float,
    max_attempts: int,
    sleep: Sleep = asyncio.sleep,
    **log_context: Any,
) -> RunOutcome:
    """Poll a run at a fixed interval until it reaches a terminal status.

    Never raises for run-level failures or for running out of attempts; the
    caller decides what a non-completed outcome means. Provider errors while
    fetching the run do propagate.
    """
    for attempt in range(1, max_attempts + 1):
        run = await provider.retrieve_run(thread_id, run_id)
        logger.info(
            "Run status checked",
            run_id=run_id,
            status=run.status,
            attempt=attempt,
            max_attempts=max_attempts,
            **log_context,
        )

        status = _TERMINAL.get(run.status)
        if status is not None:
            if status != RunOutcomeStatus.COMPLETED:
                logger.error("Run ended without completing", run_id=run_id, status=run.status, **log_context)
            return RunOutcome(status=status, attempts=attempt, run=run, message=_describe(status, run))

        if attempt < max_attempts:
            await sleep(poll_interval)

    logger.error("Run timed out", run_id=run_id, attempts=max_attempts, **log_context)
    return RunOutcome(
        status=RunOutcomeStatus.TIMED_OUT,
        attempts=max_attempts,
        message=f"Run timeout after {max_attempts} attempts",
    )
