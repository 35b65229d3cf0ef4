"""
State Manager for the streaming classifier

Tracks the scheduler lifecycle and notifies registered callbacks when the
state changes.
"""

from enum import Enum
from typing import Optional, Callable
from dataclasses import dataclass
from datetime import datetime
import threading

from soundsense.utils.logger import get_logger

logger = get_logger("soundsense.StateManager")


class SchedulerState(Enum):
    """Scheduler states"""
    IDLE = "idle"        # constructed, no backend yet (or initialization failed)
    READY = "ready"      # backend (and capture source in stream mode) acquired
    RUNNING = "running"  # periodic capture-classify cycles active
    STOPPED = "stopped"  # resources released, needs initialize() to run again


@dataclass
class StateData:
    """Data associated with current state"""
    state: SchedulerState
    timestamp: datetime
    error: Optional[str] = None
    metadata: Optional[dict] = None


class StateManager:
    """
    Lifecycle state for one scheduler instance.

    Handles state transitions and provides callbacks for state changes.
    """

    VALID_TRANSITIONS = {
        SchedulerState.IDLE: [SchedulerState.READY],
        SchedulerState.READY: [SchedulerState.RUNNING, SchedulerState.STOPPED],
        SchedulerState.RUNNING: [SchedulerState.STOPPED],
        SchedulerState.STOPPED: [SchedulerState.READY],
    }

    def __init__(self):
        self._current_state = SchedulerState.IDLE
        self._state_data = StateData(
            state=SchedulerState.IDLE,
            timestamp=datetime.now()
        )
        self._lock = threading.RLock()
        self._callbacks = {state: [] for state in SchedulerState}
        self._global_callbacks = []

    @property
    def current_state(self) -> SchedulerState:
        with self._lock:
            return self._current_state

    @property
    def state_data(self) -> StateData:
        with self._lock:
            return self._state_data

    def transition_to(
        self,
        new_state: SchedulerState,
        **kwargs
    ) -> bool:
        """
        Transition to a new state with optional data.

        Args:
            new_state: Target state
            **kwargs: Additional data for the state (error, metadata)

        Returns:
            bool: True if transition was valid and successful
        """
        with self._lock:
            if not self.is_valid_transition(self._current_state, new_state):
                logger.warning(
                    f"Invalid transition from {self._current_state.value} "
                    f"to {new_state.value}"
                )
                return False

            old_state = self._current_state
            self._current_state = new_state
            self._state_data = StateData(
                state=new_state,
                timestamp=datetime.now(),
                error=kwargs.get('error'),
                metadata=kwargs.get('metadata')
            )

            logger.info(
                f"State transition: {old_state.value} -> {new_state.value}"
            )

            self._execute_callbacks(new_state, old_state)

            return True

    @classmethod
    def is_valid_transition(
        cls,
        from_state: SchedulerState,
        to_state: SchedulerState
    ) -> bool:
        return to_state in cls.VALID_TRANSITIONS.get(from_state, [])

    def register_callback(
        self,
        state: Optional[SchedulerState],
        callback: Callable[[StateData, SchedulerState], None]
    ):
        """
        Register a callback for state changes.

        Args:
            state: Specific state to listen for, or None for all states
            callback: Function to call on state change (receives state_data, old_state)
        """
        with self._lock:
            if state is None:
                self._global_callbacks.append(callback)
            else:
                self._callbacks[state].append(callback)

    def _execute_callbacks(self, new_state: SchedulerState, old_state: SchedulerState):
        for callback in self._callbacks[new_state]:
            try:
                callback(self._state_data, old_state)
            except Exception as e:
                logger.error(f"Error in state callback: {e}")

        for callback in self._global_callbacks:
            try:
                callback(self._state_data, old_state)
            except Exception as e:
                logger.error(f"Error in global callback: {e}")

    def get_state_info(self) -> dict:
        with self._lock:
            return {
                'state': self._current_state.value,
                'timestamp': self._state_data.timestamp.isoformat(),
                'error': self._state_data.error,
                'metadata': self._state_data.metadata
            }
