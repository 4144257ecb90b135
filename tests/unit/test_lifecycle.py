# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from orchestrator.lifecycle import LifecycleEvent as E
from orchestrator.lifecycle import next_state
from session.connection_status import ConnectionState as S


@pytest.mark.parametrize("state,event,expected", [
    (S.DISCONNECTED, E.CONNECT_REQUESTED, S.CONNECTING),
    (S.ERROR, E.CONNECT_REQUESTED, S.CONNECTING),
    (S.CONNECTING, E.REMOTE_OPENED, S.CONNECTED),
    (S.CONNECTING, E.REMOTE_FAILED, S.ERROR),
    (S.CONNECTING, E.REMOTE_ERROR, S.ERROR),
    (S.CONNECTED, E.REMOTE_CLOSED, S.DISCONNECTED),
    (S.CONNECTED, E.REMOTE_ERROR, S.ERROR),
])
def test_transitions(state: S, event: E, expected: S) -> None:
    assert next_state(state, event) is expected


@pytest.mark.parametrize("state,event", [
    (S.CONNECTED, E.CONNECT_REQUESTED),
    (S.CONNECTING, E.CONNECT_REQUESTED),
    (S.DISCONNECTED, E.REMOTE_OPENED),
    (S.DISCONNECTED, E.REMOTE_CLOSED),
    (S.ERROR, E.REMOTE_ERROR),
])
def test_ignored_events(state: S, event: E) -> None:
    assert next_state(state, event) is None


@pytest.mark.parametrize("state", list(S))
def test_disconnect_always_wins(state: S) -> None:
    assert next_state(state, E.DISCONNECT_REQUESTED, tearing_down=True) is S.DISCONNECTED


def test_remote_events_ignored_while_tearing_down() -> None:
    assert next_state(S.CONNECTED, E.REMOTE_CLOSED, tearing_down=True) is None
    assert next_state(S.CONNECTING, E.REMOTE_OPENED, tearing_down=True) is None
