# Shared fixtures
from fnmatch import fnmatchcase

import pytest
import numpy as np


class MemoryRedis:
    """Dict-backed stand-in for the redis calls PredictionCache makes"""

    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value
        return True

    def scan_iter(self, match="*"):
        return iter([k for k in list(self.store) if fnmatchcase(k, match)])

    def delete(self, *keys):
        return sum(1 for k in keys if self.store.pop(k, None) is not None)


@pytest.fixture
def score_range():
    """Scores 1..100, one student each"""
    return [float(i) for i in range(1, 101)]


@pytest.fixture
def rng():
    return np.random.default_rng(20240611)


@pytest.fixture
def memory_redis():
    return MemoryRedis()
