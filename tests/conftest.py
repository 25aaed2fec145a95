"""
Pytest configuration for the governance interview tests.

Testing Standards:
- Async tests run under pytest-asyncio (auto mode enabled in pyproject.toml)
- The LLM is always faked; see tests/helpers/fakes.py
- Unit tests go in tests/unit/
"""

import pytest


@pytest.fixture
def anyio_backend() -> str:
    """Use asyncio as the async backend."""
    return "asyncio"
