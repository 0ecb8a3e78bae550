"""Shared pytest configuration and fixtures for the camera bridge tests."""

import os
import sys
import time
from pathlib import Path

import pytest

# Settings are read at import time, so they have to be in place first.
os.environ.setdefault("CAMERA_SOURCE", "demo")
os.environ.setdefault("AUTO_CONNECT", "false")
os.environ.setdefault("PREVIEW_SIZES", "320x240,160x120")
os.environ.setdefault("CAMERA_FACINGS", "back")

PROJECT_ROOT = Path(__file__).parent.parent
TESTS_ROOT = Path(__file__).parent
for path in (PROJECT_ROOT, TESTS_ROOT):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))


def wait_for(predicate, timeout: float = 2.0, interval: float = 0.005) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def waiter():
    return wait_for
