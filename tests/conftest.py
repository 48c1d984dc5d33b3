import os
from pathlib import Path

import pytest

# Checked in order; the first matching directory wins.
_LAYER_MARKERS = (
    ("domain", pytest.mark.domain),
    ("application", pytest.mark.application),
    ("bdd", pytest.mark.bdd),
    ("integration", pytest.mark.integration),
)


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="PROTEAN_ENV section of domain.toml to run the suite against",
    )


def pytest_sessionstart(session):
    """Select the config environment and bring up the ordering domain.

    The context is pushed before collection because test modules import
    aggregates and handlers that register themselves with the domain.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env

    from ordering.domain import ordering

    ordering.init()
    ordering.domain_context().push()


def pytest_collection_modifyitems(config, items):
    for item in items:
        parts = Path(item.fspath).parts
        for directory, marker in _LAYER_MARKERS:
            if directory in parts:
                item.add_marker(marker)
                break
