"""Persistent store for recorded management API traffic."""

import threading
from collections import deque
from os import PathLike
from pathlib import Path
from typing import Optional, Union

import pydantic

from busmgmt.exceptions import FixtureError, ReplayMismatchError
from busmgmt.logging import log
from busmgmt.schemas import FixtureEntry, FixtureFile

_PENDING = None
_RELEASED = object()


class FixtureStore:
    """Recorded request/response sequences, one JSON file per test.

    Test identities are relative paths (`<suite>/<test>`); the fixture for
    a test lives at `<root>/<test id>.json`. Recorded entries are appended in
    call order and are consumed strictly first-in, first-out during replay.
    """

    root: Path

    def __init__(self, root: Union[str, PathLike]):
        self.root = Path(root)
        self._lock = threading.Lock()
        self._recorded: dict[str, list[Optional[FixtureEntry]]] = {}
        self._recorded_names: dict[str, list[str]] = {}
        self._replay: dict[str, deque[FixtureEntry]] = {}
        self._replay_names: dict[str, deque[str]] = {}

    def path(self, test_id: str) -> Path:
        """Location of the fixture file for `test_id`."""
        return self.root / f"{test_id}.json"

    def reset(self, test_id: str) -> None:
        """Clears recorded traffic for `test_id` ahead of re-recording."""
        with self._lock:
            self._recorded[test_id] = []
            self._recorded_names[test_id] = []

    def reserve(self, test_id: str) -> int:
        """Reserves the next position in the recording for `test_id`.

        Concurrent requests reserve their position when they are issued, so
        the recording reflects issue order rather than completion order.
        """
        with self._lock:
            entries = self._recorded.setdefault(test_id, [])
            entries.append(_PENDING)
            return len(entries) - 1

    def record(
        self, test_id: str, entry: FixtureEntry, slot: Optional[int] = None
    ) -> None:
        """Appends `entry` to the recording (or fills a reserved slot)."""
        with self._lock:
            entries = self._recorded.setdefault(test_id, [])
            if slot is None:
                entries.append(entry)
                return
            if slot >= len(entries) or entries[slot] is not _PENDING:
                raise FixtureError(
                    f"Slot {slot} of fixture {test_id} was not reserved "
                    "or is already recorded."
                )
            entries[slot] = entry

    def release(self, test_id: str, slot: int) -> None:
        """Gives up a reserved slot whose request was abandoned.

        Released slots are left out of the saved recording.
        """
        with self._lock:
            entries = self._recorded.get(test_id, [])
            if slot < len(entries) and entries[slot] is _PENDING:
                entries[slot] = _RELEASED

    def record_name(self, test_id: str, name: str) -> None:
        """Remembers a generated resource name so replay can reuse it."""
        with self._lock:
            self._recorded_names.setdefault(test_id, []).append(name)

    def save(self, test_id: str) -> Path:
        """Writes the recording for `test_id` to disk.

        Raises:
            FixtureError: If a reserved slot never received a response.
        """
        with self._lock:
            entries = self._recorded.get(test_id, [])
            if any(entry is _PENDING for entry in entries):
                raise FixtureError(
                    f"Fixture {test_id} has requests that never completed."
                )
            fixture = FixtureFile(
                names=list(self._recorded_names.get(test_id, [])),
                entries=[entry for entry in entries if entry is not _RELEASED],
            )

        fixture_path = self.path(test_id)
        fixture_path.parent.mkdir(parents=True, exist_ok=True)
        with open(fixture_path, "w", encoding="utf-8") as fixture_fp:
            fixture_fp.write(fixture.model_dump_json(indent=2))
        log.debug("Saved %d entries to %s", len(fixture.entries), fixture_path)
        return fixture_path

    def load(self, test_id: str) -> None:
        """Loads the recording for `test_id` for replay.

        Raises:
            ReplayMismatchError: If no recording exists or it cannot be parsed.
        """
        fixture_path = self.path(test_id)
        try:
            with open(fixture_path, encoding="utf-8") as fixture_fp:
                fixture = FixtureFile.model_validate_json(fixture_fp.read())
        except IOError as ex:
            raise ReplayMismatchError(
                f"No recording for {test_id} at {fixture_path}. "
                "Record it with BUSMGMT_TEST_MODE=record."
            ) from ex
        except pydantic.ValidationError as ex:
            raise ReplayMismatchError(
                f"Recording for {test_id} at {fixture_path} is malformed."
            ) from ex

        with self._lock:
            self._replay[test_id] = deque(fixture.entries)
            self._replay_names[test_id] = deque(fixture.names)
        log.debug("Loaded %d entries from %s", len(fixture.entries), fixture_path)

    def next(self, test_id: str) -> FixtureEntry:
        """Pops the next recorded entry for `test_id`.

        Raises:
            ReplayMismatchError: If the recording is exhausted.
        """
        with self._lock:
            entries = self._replay.get(test_id)
            if not entries:
                raise ReplayMismatchError(
                    f"Recording for {test_id} has no more entries; "
                    "the test issued more requests than were recorded."
                )
            return entries.popleft()

    def next_name(self, test_id: str) -> str:
        """Pops the next recorded resource name for `test_id`."""
        with self._lock:
            names = self._replay_names.get(test_id)
            if not names:
                raise ReplayMismatchError(
                    f"Recording for {test_id} has no more generated names."
                )
            return names.popleft()

    def remaining(self, test_id: str) -> int:
        """Number of replay entries not yet consumed for `test_id`."""
        with self._lock:
            return len(self._replay.get(test_id, ()))

    def discard(self, test_id: str) -> None:
        """Drops all in-memory state for `test_id`."""
        with self._lock:
            for state in (
                self._recorded,
                self._recorded_names,
                self._replay,
                self._replay_names,
            ):
                state.pop(test_id, None)
