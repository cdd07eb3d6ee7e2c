from __future__ import annotations

import logging
from typing import Awaitable, Callable, Generic, Type, TypeVar

from app.errors import PipelineError
from app.models import ChannelPhase, ChannelState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SideChannel(Generic[T]):
    """Self-contained request/response cycle with its own Idle/Loading/Ready/Failed state.

    Failures end in the Failed state and are never raised to the caller, so a
    side channel cannot fail the search pipeline. A fetch started earlier than the
    latest one is dropped on arrival.
    """

    def __init__(self, name: str, value_type: Type[T]) -> None:
        self.name = name
        self._state_type = ChannelState[value_type]
        self._state: ChannelState[T] = self._state_type()
        self._generation = 0

    @property
    def state(self) -> ChannelState[T]:
        return self._state

    async def run(self, fetch: Callable[[], Awaitable[T]]) -> ChannelState[T]:
        self._generation += 1
        generation = self._generation
        self._state = self._state_type(phase=ChannelPhase.LOADING, value=self._state.value)

        try:
            value = await fetch()
        except PipelineError as e:
            logger.warning("%s side channel failed: %s", self.name, e.message)
            new_state = self._state_type(phase=ChannelPhase.FAILED, error=e.message)
        except Exception:
            logger.exception("%s side channel crashed", self.name)
            new_state = self._state_type(phase=ChannelPhase.FAILED, error=f"{self.name} is unavailable")
        else:
            new_state = self._state_type(phase=ChannelPhase.READY, value=value)

        if generation != self._generation:
            logger.debug("Dropping stale %s result (generation %d < %d)", self.name, generation, self._generation)
            return self._state
        self._state = new_state
        return new_state
