"""Shared BDD fixtures for the Ordering domain."""

import pytest


@pytest.fixture()
def context():
    """Container for what the When steps produced."""
    return {}


@pytest.fixture()
def product_ids():
    """Product id for a display name, e.g. "Silver Ring" -> "prod-silver-ring"."""
    return lambda name: "prod-" + name.lower().replace(" ", "-")
