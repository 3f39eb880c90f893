import asyncio

from session_client.models import AgentState, SessionHealthState
from session_client.watchdog import (
    AGENT_NEVER_JOINED,
    AGENT_NOT_INITIALIZED,
    SessionWatchdog,
)

TIMEOUT = 0.05


class Recorder:
    def __init__(self):
        self.teardowns = 0
        self.outcomes = []

    def teardown(self):
        self.teardowns += 1

    def on_timeout(self, outcome):
        self.outcomes.append(outcome)


def run_watchdog(steps, recorder, wait=TIMEOUT * 4):
    async def main():
        watchdog = SessionWatchdog(recorder.teardown, recorder.on_timeout, timeout=TIMEOUT)
        for step in steps:
            if isinstance(step, (int, float)):
                await asyncio.sleep(step)
            else:
                step(watchdog)
        await asyncio.sleep(wait)
        return watchdog

    return asyncio.run(main())


def test_times_out_when_agent_never_joins():
    recorder = Recorder()

    watchdog = run_watchdog([lambda w: w.set_session_started(True)], recorder)

    assert watchdog.state == SessionHealthState.TIMED_OUT
    assert recorder.teardowns == 1
    assert [o.reason for o in recorder.outcomes] == [AGENT_NEVER_JOINED]
    assert not watchdog.pending


def test_connecting_agent_reports_not_joined():
    recorder = Recorder()

    run_watchdog([
        lambda w: w.on_agent_state("connecting"),
        lambda w: w.set_session_started(True),
    ], recorder)

    assert recorder.outcomes[0].reason == AGENT_NEVER_JOINED
    assert recorder.outcomes[0].last_agent_state == AgentState.CONNECTING


def test_initializing_agent_reports_incomplete_initialization():
    recorder = Recorder()

    watchdog = run_watchdog([
        lambda w: w.set_session_started(True),
        lambda w: w.on_agent_state(AgentState.CONNECTING),
        lambda w: w.on_agent_state(AgentState.INITIALIZING),
    ], recorder)

    assert watchdog.state == SessionHealthState.TIMED_OUT
    assert recorder.teardowns == 1
    assert recorder.outcomes[0].reason == AGENT_NOT_INITIALIZED


def test_available_agent_cancels_the_timer():
    recorder = Recorder()

    watchdog = run_watchdog([
        lambda w: w.set_session_started(True),
        TIMEOUT / 5,
        lambda w: w.on_agent_state(AgentState.LISTENING),
    ], recorder)

    assert watchdog.state == SessionHealthState.AVAILABLE
    assert recorder.teardowns == 0
    assert recorder.outcomes == []
    assert not watchdog.pending


def test_later_state_changes_do_not_rearm():
    recorder = Recorder()

    watchdog = run_watchdog([
        lambda w: w.set_session_started(True),
        lambda w: w.on_agent_state("speaking"),
        lambda w: w.on_agent_state("connecting"),
        lambda w: w.set_session_started(False),
        lambda w: w.set_session_started(True),
    ], recorder)

    assert watchdog.state == SessionHealthState.AVAILABLE
    assert recorder.teardowns == 0
    assert not watchdog.pending


def test_agent_already_available_at_start():
    recorder = Recorder()

    watchdog = run_watchdog([
        lambda w: w.on_agent_state("thinking"),
        lambda w: w.set_session_started(True),
    ], recorder)

    assert watchdog.state == SessionHealthState.AVAILABLE
    assert not watchdog.pending


def test_not_armed_until_session_starts():
    recorder = Recorder()

    watchdog = run_watchdog([lambda w: w.set_session_started(False)], recorder)

    assert watchdog.state is None
    assert recorder.teardowns == 0
    assert not watchdog.pending


def test_dispose_before_deadline_prevents_firing():
    recorder = Recorder()

    watchdog = run_watchdog([
        lambda w: w.set_session_started(True),
        lambda w: w.dispose(),
    ], recorder)

    assert watchdog.state == SessionHealthState.WAITING_FOR_AGENT
    assert recorder.teardowns == 0
    assert not watchdog.pending


def test_async_teardown_is_scheduled():
    calls = []

    async def teardown():
        calls.append("disconnect")

    async def main():
        watchdog = SessionWatchdog(teardown, timeout=TIMEOUT)
        watchdog.set_session_started(True)
        await asyncio.sleep(TIMEOUT * 2)
        await watchdog.teardown_task
        return watchdog

    watchdog = asyncio.run(main())

    assert calls == ["disconnect"]
    assert watchdog.state == SessionHealthState.TIMED_OUT


def test_pre_connect_buffering_keeps_waiting():
    recorder = Recorder()

    watchdog = run_watchdog([
        lambda w: w.set_session_started(True),
        lambda w: w.on_agent_state("pre-connect-buffering"),
    ], recorder)

    assert watchdog.last_agent_state == AgentState.PRE_CONNECT_BUFFERING
    assert watchdog.state == SessionHealthState.TIMED_OUT
    assert recorder.teardowns == 1
    assert recorder.outcomes[0].reason == AGENT_NOT_INITIALIZED


def test_unknown_agent_state_is_not_available():
    recorder = Recorder()

    watchdog = run_watchdog([
        lambda w: w.set_session_started(True),
        lambda w: w.on_agent_state("warming-up"),
        TIMEOUT / 5,
        lambda w: w.on_agent_state("listening"),
    ], recorder)

    assert watchdog.state == SessionHealthState.AVAILABLE
    assert recorder.teardowns == 0
    assert not watchdog.pending


def test_unknown_agent_state_at_deadline_times_out():
    recorder = Recorder()

    watchdog = run_watchdog([
        lambda w: w.set_session_started(True),
        lambda w: w.on_agent_state("warming-up"),
    ], recorder)

    assert watchdog.last_agent_state == AgentState.UNAVAILABLE
    assert watchdog.state == SessionHealthState.TIMED_OUT
    assert recorder.teardowns == 1
