"""Live, recording and replaying transports for management API traffic."""

import json
import os
from typing import Any, Optional

import httpx

from busmgmt.exceptions import ConfigError, FixtureError, ReplayMismatchError
from busmgmt.fixtures import FixtureStore
from busmgmt.logging import current_test_id, log
from busmgmt.polling import Clock, InstantClock, WallClock
from busmgmt.schemas import (
    FixtureEntry,
    FixtureRequest,
    FixtureResponse,
    TransportMode,
)

MODE_ENV = "BUSMGMT_TEST_MODE"

# Only these headers survive recording; everything else (dates, request IDs,
# encodings of the original body) would make replays nondeterministic.
_RECORDED_HEADERS = ("content-type",)


def mode_from_env() -> TransportMode:
    """Reads the transport mode for this run from `BUSMGMT_TEST_MODE`.

    Defaults to replaying recorded traffic.
    """
    raw = os.getenv(MODE_ENV, TransportMode.REPLAY.value).strip().lower()
    try:
        return TransportMode(raw)
    except ValueError:
        raise ConfigError(
            f'Unknown transport mode "{raw}" in {MODE_ENV}. '
            f"Expected one of: {', '.join(mode.value for mode in TransportMode)}."
        )


def _apply_filters(text: str, filters: dict[str, str]) -> str:
    for secret, placeholder in filters.items():
        if secret:
            text = text.replace(secret, placeholder)
    return text


def _parse_body(raw: bytes, filters: dict[str, str]) -> Any:
    """Decodes a request body into a comparable value."""
    if not raw:
        return None
    text = _apply_filters(raw.decode("utf-8", errors="replace"), filters)
    try:
        return json.loads(text)
    except ValueError:
        return text


class TransportController:
    """Decides how management API calls reach the network for a test run.

    The mode is fixed at construction and shared by every test in the run.
    Fixture identity is per test: `start` and `stop` bracket a test's
    traffic, and transports created by `wrap` resolve the identity they
    record to or replay from.
    """

    mode: TransportMode
    store: FixtureStore
    live_timing: bool
    filters: dict[str, str]

    def __init__(
        self,
        mode: TransportMode,
        store: FixtureStore,
        live_timing: bool = True,
        filters: Optional[dict[str, str]] = None,
    ):
        self.mode = TransportMode(mode)
        self.store = store
        self.live_timing = live_timing
        self.filters = dict(filters or {})
        self._active: Optional[str] = None
        if self.mode is TransportMode.REPLAY or (
            self.is_recording and not live_timing
        ):
            self._clock: Clock = InstantClock()
        else:
            self._clock = WallClock()

    @property
    def is_mocked(self) -> bool:
        """`True` when traffic is recorded or replayed."""
        return self.mode is not TransportMode.LIVE

    @property
    def is_recording(self) -> bool:
        """`True` when traffic is captured to fixtures."""
        return self.mode is TransportMode.RECORD

    @property
    def clock(self) -> Clock:
        """Clock for timing-sensitive logic such as activation polling.

        One clock serves every poller of this controller, so an
        `InstantClock` collects the delays requested across all of them.
        """
        return self._clock

    @property
    def active_test(self) -> Optional[str]:
        """Fixture identity of the running test, if any."""
        return current_test_id.get() or self._active

    def start(self, test_id: str) -> None:
        """Prepares fixtures for test `test_id`.

        Raises:
            ReplayMismatchError: If replaying and no recording exists.
        """
        if self.mode is TransportMode.REPLAY:
            self.store.load(test_id)
        elif self.mode is TransportMode.RECORD:
            self.store.reset(test_id)

        self._active = test_id
        current_test_id.set(test_id)
        log.debug("Started %s traffic for %s", self.mode.value, test_id)

    def stop(self, test_id: str) -> None:
        """Finishes test `test_id`, persisting its recording if recording."""
        try:
            if self.mode is TransportMode.RECORD:
                self.store.save(test_id)
            elif self.mode is TransportMode.REPLAY:
                remaining = self.store.remaining(test_id)
                if remaining:
                    log.warning(
                        "%d recorded request(s) for %s were never replayed",
                        remaining,
                        test_id,
                    )
        finally:
            self.store.discard(test_id)
            if self._active == test_id:
                self._active = None
            if current_test_id.get() == test_id:
                current_test_id.set(None)

    def wrap(
        self, inner: httpx.AsyncBaseTransport, test_id: Optional[str] = None
    ) -> "RecordReplayTransport":
        """Wraps a live transport according to the run's mode.

        Args:
            inner: Transport that reaches the network.
            test_id: Fixture identity to bind to. If omitted, the identity of
                the running test is resolved per request.
        """
        return RecordReplayTransport(controller=self, inner=inner, test_id=test_id)

    def to_fixture_request(self, request: httpx.Request) -> FixtureRequest:
        """Builds the recorded form of `request` with secrets filtered."""
        return FixtureRequest(
            method=request.method,
            path=_apply_filters(request.url.raw_path.decode("ascii"), self.filters),
            body=_parse_body(request.content, self.filters),
        )


class RecordReplayTransport(httpx.AsyncBaseTransport):
    """An `httpx` transport that forwards, records or replays requests."""

    def __init__(
        self,
        controller: TransportController,
        inner: httpx.AsyncBaseTransport,
        test_id: Optional[str] = None,
    ):
        self.controller = controller
        self.inner = inner
        self.test_id = test_id

    def _resolve_test_id(self) -> str:
        test_id = self.test_id or self.controller.active_test
        if test_id is None:
            raise FixtureError(
                f"Cannot {self.controller.mode.value} traffic outside of a test."
            )
        return test_id

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        mode = self.controller.mode
        if mode is TransportMode.LIVE:
            log.debug("%s %s", request.method, request.url)
            return await self.inner.handle_async_request(request)

        test_id = self._resolve_test_id()
        await request.aread()
        fixture_request = self.controller.to_fixture_request(request)

        if mode is TransportMode.REPLAY:
            return self._replay(test_id, request, fixture_request)
        return await self._record(test_id, request, fixture_request)

    def _replay(
        self, test_id: str, request: httpx.Request, fixture_request: FixtureRequest
    ) -> httpx.Response:
        entry = self.controller.store.next(test_id)
        expected = entry.request
        if (
            expected.signature != fixture_request.signature
            or expected.body != fixture_request.body
        ):
            raise ReplayMismatchError(
                f"Request diverged from recording {test_id}: expected "
                f"{expected.signature} with body {expected.body!r}, got "
                f"{fixture_request.signature} with body {fixture_request.body!r}."
            )

        if entry.error is not None:
            log.debug("Replayed %s -> %s", expected.signature, entry.error)
            raise httpx.TransportError(entry.error, request=request)

        log.debug("Replayed %s -> %d", expected.signature, entry.response.status_code)
        return httpx.Response(
            status_code=entry.response.status_code,
            headers=entry.response.headers,
            content=entry.response.body.encode("utf-8"),
            request=request,
        )

    async def _record(
        self, test_id: str, request: httpx.Request, fixture_request: FixtureRequest
    ) -> httpx.Response:
        store = self.controller.store
        slot = store.reserve(test_id)
        try:
            response = await self.inner.handle_async_request(request)
            try:
                content = await response.aread()
            finally:
                await response.aclose()
        except httpx.TransportError as ex:
            error = _apply_filters(str(ex), self.controller.filters)
            store.record(
                test_id, FixtureEntry(request=fixture_request, error=error), slot=slot
            )
            log.debug("Recorded %s -> %s", fixture_request.signature, error)
            raise
        except BaseException:
            store.release(test_id, slot)
            raise

        headers = {
            key: response.headers[key]
            for key in _RECORDED_HEADERS
            if key in response.headers
        }
        store.record(
            test_id,
            FixtureEntry(
                request=fixture_request,
                response=FixtureResponse(
                    status_code=response.status_code,
                    headers=headers,
                    body=content.decode("utf-8", errors="replace"),
                ),
            ),
            slot=slot,
        )
        log.debug("Recorded %s -> %d", fixture_request.signature, response.status_code)
        return httpx.Response(
            status_code=response.status_code,
            headers=headers,
            content=content,
            request=request,
        )

    async def aclose(self) -> None:
        await self.inner.aclose()
