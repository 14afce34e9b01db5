"""
Compensating saga for multi-step provisioning across non-transactional APIs.

A saga is an ordered list of steps, each pairing a forward action with an
optional compensating action. Steps run strictly in sequence; the first failure
stops the forward run and the compensations of all completed steps run in
reverse order. Cancelling the run triggers the same rollback before the
cancellation propagates. Every compensation is attempted, each with a bounded
number of retries. Compensations that still fail are logged and returned as
``RollbackIncomplete`` warnings; they never replace the original error.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from tenacity import AsyncRetrying, before_sleep_log, stop_after_attempt, wait_fixed

from grs.core.errors import RollbackIncomplete

logger = logging.getLogger(__name__)

SagaContext = dict[str, Any]
StepAction = Callable[[SagaContext], Awaitable[Any]]


@dataclass
class SagaStep:
    """
    One provisioning step.

    The action's return value is stored in the saga context under ``name``, so
    later steps and compensations can use identifiers produced earlier.
    """

    name: str
    resource: str
    action: StepAction
    compensation: StepAction | None = None


class SagaError(Exception):
    """A saga step failed; the compensations have already run."""

    def __init__(self, step: SagaStep, cause: Exception, rollback_warnings: list[RollbackIncomplete]):
        super().__init__(f"Step '{step.name}' failed: {cause}")
        self.step = step
        self.cause = cause
        self.rollback_warnings = rollback_warnings


class Saga:
    def __init__(self, name: str, max_attempts: int = 3, retry_delay: float = 1.0):
        self.name = name
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self.steps: list[SagaStep] = []

    def add_step(
        self, name: str, resource: str, action: StepAction, compensation: StepAction | None = None
    ) -> "Saga":
        self.steps.append(SagaStep(name=name, resource=resource, action=action, compensation=compensation))
        return self

    async def execute(self, context: SagaContext | None = None) -> SagaContext:
        """
        Run all steps in order.

        Args:
            context: Initial context shared by all actions and compensations

        Returns:
            The context with every step's result

        Raises:
            SagaError: If a step fails, after compensating the completed steps
            asyncio.CancelledError: If the run is cancelled, after compensating the completed steps
        """
        context = context if context is not None else {}
        completed: list[SagaStep] = []

        for step in self.steps:
            logger.debug(f"[{self.name}] running step {step.name}")
            try:
                context[step.name] = await step.action(context)
            except Exception as e:
                logger.error(f"[{self.name}] step {step.name} failed: {e}")
                warnings = await self._compensate(completed, context)
                raise SagaError(step, e, warnings) from e
            except asyncio.CancelledError:
                logger.warning(f"[{self.name}] cancelled during step {step.name}")
                await self._compensate(completed, context)
                raise
            completed.append(step)

        logger.debug(f"[{self.name}] all {len(completed)} steps completed")
        return context

    async def _compensate(self, completed: list[SagaStep], context: SagaContext) -> list[RollbackIncomplete]:
        warnings: list[RollbackIncomplete] = []
        if completed:
            logger.info(f"[{self.name}] rolling back {len(completed)} completed step(s)")

        for step in reversed(completed):
            if step.compensation is None:
                continue
            try:
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(self.max_attempts),
                    wait=wait_fixed(self.retry_delay),
                    before_sleep=before_sleep_log(logger, logging.WARNING),
                    reraise=True,
                ):
                    with attempt:
                        await step.compensation(context)
                logger.info(f"[{self.name}] rolled back step {step.name}")
            except Exception as e:
                logger.error(
                    f"[{self.name}] rollback of step {step.name} ({step.resource}) failed after "
                    f"{self.max_attempts} attempt(s), manual cleanup required: {e}"
                )
                warnings.append(RollbackIncomplete(step=step.name, resource=step.resource, error=str(e)))

        return warnings
