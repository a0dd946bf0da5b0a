"""Fixtures for management API tests."""

from pathlib import Path

import pytest
import pytest_asyncio

from busmgmt.testing import HarnessConfig, SuiteHarness

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture(scope="session")
def harness_config():
    """Run configuration; replays recorded traffic unless told otherwise."""
    return HarnessConfig.from_env(FIXTURES_DIR)


@pytest_asyncio.fixture
async def harness(request, harness_config):
    """A test-level harness with an open session.

    Recorded traffic lives at `fixtures/<test module>/<test name>.json`.
    Namespaces created under generated names are deleted after the test,
    whatever its outcome.
    """
    suite = request.module.__name__.rsplit(".", 1)[-1]
    test_harness = SuiteHarness(harness_config, suite=suite)
    await test_harness.setup_test(request.node.name)
    yield test_harness
    await test_harness.teardown_test()


@pytest.fixture
def db(harness):
    """The management session of the test-level harness."""
    return harness.db


@pytest.fixture
def dummy_namespace():
    """Wire representation of an active namespace."""
    return {
        "Name": "nodesdk-a1b2c3",
        "Region": "West US",
        "Status": "Active",
        "CreatedAt": "2013-09-04T18:22:41.32Z",
    }
