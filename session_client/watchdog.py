"""Session start-up health watchdog."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, Optional

from session_client.config import Config
from session_client.log import setup_logger
from session_client.models import AgentState, SessionHealthState, WatchdogTimeout

logger = setup_logger(__name__)

AGENT_NEVER_JOINED = "Agent did not join the room."
AGENT_NOT_INITIALIZED = "Agent connected but did not complete initializing."


def timeout_reason(last_state: Optional[AgentState]) -> str:
    if last_state is None or last_state == AgentState.CONNECTING:
        return AGENT_NEVER_JOINED
    return AGENT_NOT_INITIALIZED


class SessionWatchdog:
    """Waits for the agent to become available after the session starts.

    States go WAITING_FOR_AGENT -> AVAILABLE or WAITING_FOR_AGENT -> TIMED_OUT.
    On timeout the session is torn down and the failure reported once; there is
    no retry, reconnecting is up to the user.
    """

    def __init__(
        self,
        teardown: Callable[[], Any],
        on_timeout: Optional[Callable[[WatchdogTimeout], None]] = None,
        timeout: Optional[float] = None,
    ):
        self.teardown = teardown
        self.on_timeout = on_timeout or (lambda _t: None)
        self.timeout = Config.AGENT_WATCHDOG_SECONDS if timeout is None else timeout

        self.state: Optional[SessionHealthState] = None
        self.last_agent_state: Optional[AgentState] = None
        self.outcome: Optional[WatchdogTimeout] = None

        self._session_started = False
        self._handle: Optional[asyncio.TimerHandle] = None
        self.teardown_task: Optional[asyncio.Task] = None
        self._disposed = False

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def set_session_started(self, started: bool) -> None:
        """Feed the external "session started" flag. Arms the timer on False -> True."""
        was_started = self._session_started
        self._session_started = started
        if not started or was_started or self._disposed or self.state is not None:
            return

        self.state = SessionHealthState.WAITING_FOR_AGENT
        if self.last_agent_state is not None and self.last_agent_state.is_available:
            self._become_available()
            return

        logger.info("[WATCHDOG] Session started, waiting %.1fs for the agent", self.timeout)
        self._handle = asyncio.get_running_loop().call_later(self.timeout, self._expire)

    def on_agent_state(self, state: AgentState | str) -> None:
        try:
            state = AgentState(state)
        except ValueError:
            # states this client does not know about never count as available
            logger.debug("[WATCHDOG] Unknown agent state %r, treating as unavailable", state)
            state = AgentState.UNAVAILABLE
        self.last_agent_state = state
        if self.state == SessionHealthState.WAITING_FOR_AGENT and state.is_available:
            self._become_available()

    def dispose(self) -> None:
        """Drop the pending timer. Nothing fires after this."""
        self._disposed = True
        self._cancel_timer()

    def _become_available(self) -> None:
        self._cancel_timer()
        self.state = SessionHealthState.AVAILABLE
        logger.info("[WATCHDOG] Agent available (%s)", self.last_agent_state.value)

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _expire(self) -> None:
        self._handle = None
        if self._disposed or self.state != SessionHealthState.WAITING_FOR_AGENT:
            return

        self.state = SessionHealthState.TIMED_OUT
        self.outcome = WatchdogTimeout(
            reason=timeout_reason(self.last_agent_state),
            last_agent_state=self.last_agent_state,
            timeout_s=self.timeout,
        )
        logger.warning("[WATCHDOG] Session interrupted: %s", self.outcome.reason)

        result = self.teardown()
        if inspect.isawaitable(result):
            self.teardown_task = asyncio.ensure_future(result)
        self.on_timeout(self.outcome)
