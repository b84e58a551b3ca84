from __future__ import annotations

import pytest


@pytest.fixture
def anyio_backend() -> str:
    # Relay code relies on asyncio tasks and timeouts; run AnyIO tests on asyncio only
    return "asyncio"
