import pytest


@pytest.fixture(autouse=True)
def _seed() -> None:
    """Unit tests need no database."""
    return None
