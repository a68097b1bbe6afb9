"""
Pytest configuration and shared fixtures.
"""
import numpy as np
import pytest

from embedplane.config import Config
from embedplane.session import Session


@pytest.fixture(autouse=True)
def reset_config():
    """Restore config defaults after each test so overrides never leak."""
    snapshot = Config.to_dict()
    yield
    Config.from_dict(snapshot, apply_env_overrides=False)


@pytest.fixture
def rng():
    return np.random.default_rng(7)


@pytest.fixture
def session():
    """Empty 4-dimensional session with a fixed random seed."""
    return Session(dim=4, seed=3)


@pytest.fixture
def demo_session():
    """Session preloaded with the demo items (first item selected)."""
    s = Session(dim=8, seed=11)
    s.seed_demo()
    return s
