"""State holder for a single routine instance outside of the step flow."""

from __future__ import annotations

import logging
from typing import Annotated, Callable, List, Literal, Optional, Union

from pydantic import Field

from .config import EquiflowConfig, MessagesConfig, load_config
from .contracts import RoutineInstance, RoutineInstanceStatus
from .flow import Error, Loading, _State
from .persistence.repository import RoutineRepository

logger = logging.getLogger(__name__)


class Loaded(_State):
    kind: Literal["loaded"] = "loaded"
    instance: RoutineInstance


DetailState = Annotated[Union[Loading, Loaded, Error], Field(discriminator="kind")]


class RoutineInstanceDetail:
    """Load an instance and offer cancel and restart on it."""

    def __init__(
        self,
        instance_id: str,
        repository: RoutineRepository,
        config: Optional[EquiflowConfig] = None,
    ) -> None:
        self.instance_id = instance_id
        self.repository = repository
        self.messages: MessagesConfig = (config or load_config()).messages
        self._state: DetailState = Loading()
        self._listeners: List[Callable[[DetailState], None]] = []

    @property
    def state(self) -> DetailState:
        return self._state

    @property
    def instance(self) -> Optional[RoutineInstance]:
        return self._state.instance if isinstance(self._state, Loaded) else None

    def subscribe(self, listener: Callable[[DetailState], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: DetailState) -> DetailState:
        self._state = state
        for listener in list(self._listeners):
            listener(state)
        return state

    def _fail(self, message: str, error: Union[Exception, str]) -> DetailState:
        logger.error(f"Routine {self.instance_id}: {message}: {error}")
        return self._set_state(Error(message=message, detail=str(error)))

    def can_cancel(self) -> bool:
        instance = self.instance
        return instance is not None and not instance.is_terminal

    def can_restart(self) -> bool:
        instance = self.instance
        return instance is not None and instance.status == RoutineInstanceStatus.CANCELLED

    async def load(self) -> DetailState:
        self._set_state(Loading())
        try:
            instance = await self.repository.fetch_instance(self.instance_id)
        except Exception as e:
            return self._fail(self.messages.load_failed, e)
        return self._set_state(Loaded(instance=instance))

    async def cancel(self, reason: Optional[str] = None) -> DetailState:
        """Cancel the instance. A blank reason is replaced by the configured default."""
        instance = self.instance
        if instance is not None and instance.is_terminal:
            return self._fail(
                self.messages.cancel_failed,
                f"Routine is already {instance.status.value}",
            )
        reason = reason.strip() if reason else ""
        reason = reason or self.messages.default_cancel_reason
        try:
            cancelled = await self.repository.cancel_instance(self.instance_id, reason)
        except Exception as e:
            return self._fail(self.messages.cancel_failed, e)
        logger.info(f"Cancelled routine {self.instance_id}: {reason}")
        return self._set_state(Loaded(instance=cancelled))

    async def restart(self) -> DetailState:
        """Return a cancelled instance to scheduled."""
        try:
            restarted = await self.repository.restart_instance(self.instance_id)
        except Exception as e:
            return self._fail(self.messages.restart_failed, e)
        logger.info(f"Restarted routine {self.instance_id}")
        return self._set_state(Loaded(instance=restarted))
