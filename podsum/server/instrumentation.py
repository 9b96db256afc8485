"""
Stage instrumentation for the processing pipeline.

``run_stage`` wraps one stage call, times it, logs the outcome and returns
either the value or the captured exception. The processor composes these
calls explicitly; nothing is declared on the stage methods themselves.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger("podsum.stage")


@dataclass
class StageOutcome:
    """Result-or-error of one stage, plus its wall-clock duration."""

    stage: str
    value: Any = None
    error: Optional[BaseException] = None
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        """Return the value, or re-raise the exception the stage raised."""
        if self.error is not None:
            raise self.error
        return self.value


def run_stage(job_id: str, stage: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> StageOutcome:
    """
    Run ``func`` as pipeline stage ``stage`` of ``job_id``.

    Exceptions are captured, not raised; call ``unwrap()`` to propagate.
    """
    logger.info(f"Job {job_id}: {stage} started")
    start_time = time.perf_counter()

    try:
        value = func(*args, **kwargs)
    except Exception as e:
        duration = time.perf_counter() - start_time
        logger.error(f"Job {job_id}: {stage} failed after {duration:.2f}s: {e}")
        return StageOutcome(stage=stage, error=e, duration=duration)

    duration = time.perf_counter() - start_time
    logger.info(f"Job {job_id}: {stage} finished in {duration:.2f}s")
    return StageOutcome(stage=stage, value=value, duration=duration)
