"""Harness for running management tests live, recording or replaying.

A typical test wires it up like this::

    harness = SuiteHarness(config, suite="test_namespace")
    db = await harness.setup_test("test_create")
    try:
        name = harness.new_name()
        created = await db.namespaces.create(name, "West US")
        await db.activation_poller().wait(name, current=created)
    finally:
        await harness.teardown_test()
"""

import asyncio
import os
import secrets
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional

from busmgmt.client import BusManagement
from busmgmt.exceptions import FixtureError, ReplayMismatchError
from busmgmt.fixtures import FixtureStore
from busmgmt.logging import log
from busmgmt.schemas import Namespace, TransportMode
from busmgmt.transport import TransportController, mode_from_env

if TYPE_CHECKING:
    from busmgmt.repos import NamespaceRepo  # pragma: no cover

DEFAULT_NAME_PREFIX = "nodesdk-"

_issued_names: set[str] = set()
_issued_lock = threading.Lock()


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off", "")


@dataclass(frozen=True)
class HarnessConfig:
    """Run-wide harness configuration, read once at suite start."""

    mode: TransportMode
    fixtures_dir: Path
    live_timing: bool = True
    profile: Optional[str] = None

    @classmethod
    def from_env(cls, fixtures_dir: Path) -> "HarnessConfig":
        """Reads the run configuration from the environment.

        `BUSMGMT_TEST_MODE` selects the transport mode (default: replay),
        `BUSMGMT_LIVE_TIMING` whether recording waits in real time
        (default: on), and `BUSMGMT_FIXTURES` overrides `fixtures_dir`.
        """
        return cls(
            mode=mode_from_env(),
            fixtures_dir=Path(os.getenv("BUSMGMT_FIXTURES", fixtures_dir)),
            live_timing=_env_flag("BUSMGMT_LIVE_TIMING", True),
            profile=os.getenv("BUSMGMT_PROFILE"),
        )


class NameGenerator:
    """Generates namespace names for test resources and tracks them.

    Names are `prefix` plus a random hex suffix, unique within the process.
    When recording, generated names are saved with the fixture; when
    replaying, the recorded names are handed out again so request paths
    match the recording.
    """

    def __init__(self, controller: TransportController, test_id: str):
        self.controller = controller
        self.test_id = test_id
        self.tracked: list[str] = []

    def new_name(self, prefix: str = DEFAULT_NAME_PREFIX, track: bool = True) -> str:
        """Generates a namespace name.

        Args:
            prefix: Leading part of the name; should start with a letter.
            track: If `True`, the name is scheduled for deletion at teardown.
                Pass `False` when no namespace will be created under it.
        """
        if self.controller.mode is TransportMode.REPLAY:
            name = self.controller.store.next_name(self.test_id)
        else:
            name = self._fresh_name(prefix)
            if self.controller.is_recording:
                self.controller.store.record_name(self.test_id, name)

        if track:
            self.tracked.append(name)
        return name

    def untrack(self, name: str) -> None:
        """Removes `name` from cleanup (no namespace was created)."""
        if name in self.tracked:
            self.tracked.remove(name)

    @staticmethod
    def _fresh_name(prefix: str) -> str:
        with _issued_lock:
            while True:
                name = f"{prefix}{secrets.token_hex(3)}"
                if name not in _issued_names:
                    _issued_names.add(name)
                    return name


async def cleanup(
    repo: "NamespaceRepo", names: Iterable[str]
) -> list[tuple[str, BaseException]]:
    """Deletes namespaces, tolerating individual failures.

    Deletes are issued concurrently; every one of them completes (or fails)
    before this returns. Failures are logged, not raised, unless the
    traffic diverged from a recording. A mutable list of names is drained.

    Returns:
        `(name, error)` pairs for the deletes that failed.
    """
    to_delete = list(names)
    if isinstance(names, list):
        names.clear()
    if not to_delete:
        return []

    results = await asyncio.gather(
        *(repo.delete(name) for name in to_delete), return_exceptions=True
    )

    failures = []
    for name, result in zip(to_delete, results):
        if isinstance(result, BaseException):
            log.warning("Failed to clean up namespace %s: %s", name, result)
            failures.append((name, result))
        else:
            log.debug("Cleaned up namespace %s", name)

    for _, error in failures:
        # Diverging from a recording is fatal, even during cleanup.
        if isinstance(error, (ReplayMismatchError, FixtureError)):
            raise error
    return failures


def added_namespaces(
    before: Optional[Iterable[Namespace]], after: Iterable[Namespace]
) -> list[Namespace]:
    """Namespaces in `after` whose names do not appear in `before`."""
    known = {namespace.name for namespace in before or ()}
    return [namespace for namespace in after if namespace.name not in known]


class SuiteHarness:
    """Per-suite test lifecycle: sessions, fixtures, names and cleanup.

    Fixture identities are `<suite>/<test name>`.
    """

    config: HarnessConfig
    controller: TransportController
    suite: str

    def __init__(
        self,
        config: HarnessConfig,
        suite: str,
        controller: Optional[TransportController] = None,
    ):
        self.config = config
        self.suite = suite
        self.controller = controller or TransportController(
            mode=config.mode,
            store=FixtureStore(config.fixtures_dir),
            live_timing=config.live_timing,
        )
        self.db: Optional[BusManagement] = None
        self.names: Optional[NameGenerator] = None
        self.test_id: Optional[str] = None

    @property
    def is_mocked(self) -> bool:
        return self.controller.is_mocked

    @property
    def is_recording(self) -> bool:
        return self.controller.is_recording

    def test_id_for(self, test_name: str) -> str:
        safe_name = test_name.replace("[", "__").replace("]", "").replace("/", "_")
        return f"{self.suite}/{safe_name}"

    async def setup_test(self, test_name: str, **client_kwargs) -> BusManagement:
        """Starts a test: loads or resets its fixture and opens a session."""
        test_id = self.test_id_for(test_name)
        self.controller.start(test_id)
        self.test_id = test_id
        self.names = NameGenerator(self.controller, test_id)
        if self.config.profile is not None:
            client_kwargs.setdefault("profile", self.config.profile)
        try:
            self.db = BusManagement(
                controller=self.controller, test_id=test_id, **client_kwargs
            )
        except Exception:
            self.controller.stop(test_id)
            raise
        return self.db

    def new_name(self, prefix: str = DEFAULT_NAME_PREFIX, track: bool = True) -> str:
        """Generates a tracked namespace name for the running test."""
        return self.names.new_name(prefix=prefix, track=track)

    @property
    def tracked(self) -> list[str]:
        return self.names.tracked if self.names is not None else []

    async def teardown_test(self) -> list[tuple[str, BaseException]]:
        """Ends a test: deletes tracked namespaces and stores its fixture.

        Runs to completion whatever the outcome of the test.
        """
        failures = []
        try:
            if self.db is not None and self.names is not None:
                failures = await cleanup(self.db.namespaces, self.names.tracked)
        finally:
            try:
                if self.db is not None:
                    await self.db.aclose()
            finally:
                if self.test_id is not None:
                    self.controller.stop(self.test_id)
                self.db = None
                self.names = None
                self.test_id = None
        return failures
