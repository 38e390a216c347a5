# =============================================================================
# Execution Tracing — Per-Stage Timing, Outcome and Cost Estimates
# =============================================================================
#
# ExecutionTracer.traced() wraps one stage call and returns the stage's
# result together with a StageTrace. It never raises on stage failure: the
# trace's `success` flag is the only failure signal, and the caller picks a
# fallback value.
#
# A PipelineTrace collects StageTraces for one pipeline invocation. It is
# append-only and frozen by finish().
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from ragagent.services.pricing import (
    ModelPricing,
    default_pricing,
    estimate_cost,
    estimate_tokens,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class StageTrace:
    """Execution record of one pipeline stage."""

    stage_name: str
    start: datetime
    end: datetime
    success: bool
    error_message: str | None = None
    estimated_tokens: int = 0
    estimated_cost: float = 0.0

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage_name": self.stage_name,
            "start": self.start,
            "end": self.end,
            "duration_ms": int(self.duration.total_seconds() * 1000),
            "success": self.success,
            "error_message": self.error_message,
            "estimated_tokens": self.estimated_tokens,
            "estimated_cost": self.estimated_cost,
        }


@dataclass
class PipelineTrace:
    """Ordered stage records plus pipeline-level totals."""

    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    start: datetime = field(default_factory=lambda: datetime.now(UTC))
    end: datetime | None = None
    stages: list[StageTrace] = field(default_factory=list)

    def add(self, stage: StageTrace) -> None:
        if self.end is not None:
            raise RuntimeError("Pipeline trace is finished and can no longer change")
        self.stages.append(stage)

    def finish(self) -> None:
        if self.end is None:
            self.end = datetime.now(UTC)

    @property
    def finished(self) -> bool:
        return self.end is not None

    @property
    def total_duration(self) -> timedelta:
        return (self.end or datetime.now(UTC)) - self.start

    @property
    def total_tokens(self) -> int:
        return sum(s.estimated_tokens for s in self.stages)

    @property
    def total_cost(self) -> float:
        return sum(s.estimated_cost for s in self.stages)

    @property
    def success(self) -> bool:
        return all(s.success for s in self.stages)


# ---------------------------------------------------------------------------
# Tracer
# ---------------------------------------------------------------------------


class ExecutionTracer:
    """Wraps stage calls and produces StageTraces."""

    def __init__(self, pricing: ModelPricing | None = None) -> None:
        self._pricing = pricing or default_pricing()

    async def traced(
        self,
        stage_name: str,
        query: str,
        run_fn: Callable[[str], Awaitable[str]],
    ) -> tuple[str | None, StageTrace]:
        """
        Run `run_fn(query)` and record how it went.

        Returns:
            (response, trace) on success; (None, trace) on failure.
        """
        start = datetime.now(UTC)
        try:
            response = await run_fn(query)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            end = datetime.now(UTC)
            logger.warning("Stage '%s' failed: %s", stage_name, e)
            return None, StageTrace(
                stage_name=stage_name,
                start=start,
                end=end,
                success=False,
                error_message=str(e) or type(e).__name__,
            )

        end = datetime.now(UTC)
        tokens = estimate_tokens(query, response)
        trace = StageTrace(
            stage_name=stage_name,
            start=start,
            end=end,
            success=True,
            estimated_tokens=tokens,
            estimated_cost=estimate_cost(tokens, self._pricing),
        )
        logger.info(
            "Stage '%s' completed in %dms (~%d tokens)",
            stage_name, int(trace.duration.total_seconds() * 1000), tokens,
        )
        return response, trace
