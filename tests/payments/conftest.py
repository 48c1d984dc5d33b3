import pytest
from payments.gateway import reset_collector, reset_gateway


@pytest.fixture(autouse=True)
def reset_processor_seams():
    """Each test builds its own gateway and collector."""
    reset_gateway()
    reset_collector()
    yield
    reset_gateway()
    reset_collector()
