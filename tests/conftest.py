"""Shared fixtures for netreach tests."""
from __future__ import annotations
import os
import sys
import pytest

# Ensure src/ is on the path so netreach is importable without install
_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_SRC = os.path.join(_ROOT, "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from netreach.headerspace import SetDomain
from netreach.network_parser import parse_network_file

EXAMPLES_DIR = os.path.join(_ROOT, "examples")


def _model_path(name: str) -> str:
    return os.path.join(EXAMPLES_DIR, name)


# --------------- Header domains ---------------

@pytest.fixture
def set_domain():
    """Eight headers: a 2-bit dst and a 1-bit src."""
    return SetDomain({"dst": 2, "src": 1})


# --------------- Parsed models (BDD-backed) ---------------

@pytest.fixture(scope="session")
def linear_model():
    return parse_network_file(_model_path("linear.net"))


@pytest.fixture(scope="session")
def filtered_model():
    return parse_network_file(_model_path("filtered.net"))


@pytest.fixture(scope="session")
def two_routers_model():
    return parse_network_file(_model_path("two_routers.net"))


@pytest.fixture(scope="session")
def partial_loop_model():
    return parse_network_file(_model_path("partial_loop.net"))


@pytest.fixture(scope="session")
def nat_model():
    return parse_network_file(_model_path("nat.net"))


@pytest.fixture(scope="session")
def campus_model():
    return parse_network_file(_model_path("campus.net"))


# --------------- Loop results ---------------

@pytest.fixture(scope="session")
def two_routers_loops(two_routers_model):
    return two_routers_model.loop_detector().analyze()


@pytest.fixture(scope="session")
def partial_loop_loops(partial_loop_model):
    return partial_loop_model.loop_detector().analyze()
