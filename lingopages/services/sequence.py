"""Multi-object writes over a store without transactions.

:class:`BestEffortSequence` runs writes in order and, when one fails, undoes
the completed ones through their compensations before re-raising.
Compensation is itself best effort: a failing compensation is logged and the
remaining ones still run, so a crash mid-way can leave partial state behind.

:func:`gather_all` fires independent writes together and waits for all of
them; each one's effect stays applied even when another fails.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, NamedTuple, Optional

logger = logging.getLogger(__name__)

Action = Callable[[], Awaitable[Any]]


class Step(NamedTuple):
    name: str
    action: Action
    compensate: Optional[Action]


class BestEffortSequence:
    def __init__(self, name: str) -> None:
        self.name = name
        self.steps: List[Step] = []

    def add(self, name: str, action: Action, compensate: Optional[Action] = None) -> "BestEffortSequence":
        self.steps.append(Step(name, action, compensate))
        return self

    async def run(self) -> None:
        completed: List[Step] = []
        for step in self.steps:
            try:
                await step.action()
            except Exception:
                logger.warning(
                    "%s: step '%s' failed, compensating %d completed step(s)",
                    self.name,
                    step.name,
                    len(completed),
                )
                await self._compensate(completed)
                raise
            completed.append(step)

    async def _compensate(self, completed: List[Step]) -> None:
        for step in reversed(completed):
            if step.compensate is None:
                continue
            try:
                await step.compensate()
            except Exception as exc:
                logger.warning("%s: compensation of '%s' failed: %s", self.name, step.name, exc)


async def gather_all(*aws: Awaitable[Any]) -> List[Any]:
    """Await every awaitable concurrently, then re-raise the first failure, if any."""
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)
