from __future__ import annotations

import pytest

from sse_relay.domain.session import (
    SessionState,
    classify_session,
    mint_session_id,
    session_key,
)


def test_minted_session_ids_are_unique() -> None:
    minted = {mint_session_id() for _ in range(500)}

    assert len(minted) == 500


def test_session_key_uses_prefix() -> None:
    assert session_key("abc") == "session:abc"


def test_session_key_rejects_empty_id() -> None:
    with pytest.raises(ValueError):
        session_key("")


@pytest.mark.parametrize(
    ("durable", "live", "retired", "expected"),
    [
        (False, False, False, SessionState.UNKNOWN),
        (True, True, False, SessionState.OPEN),
        (True, False, False, SessionState.DETACHED),
        (False, False, True, SessionState.CLOSED),
        (True, False, True, SessionState.DETACHED),
    ],
)
def test_classify_session(durable: bool, live: bool, retired: bool, expected: SessionState) -> None:
    assert classify_session(durable=durable, live=live, retired=retired) is expected


def test_classify_session_rejects_live_without_durable_record() -> None:
    with pytest.raises(ValueError):
        classify_session(durable=False, live=True)
