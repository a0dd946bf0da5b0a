"""Waiting for namespaces to finish server-side activation."""

import asyncio
from enum import Enum
from typing import TYPE_CHECKING, Optional

from busmgmt.exceptions import RemoteError, TransientActivationError
from busmgmt.logging import log
from busmgmt.schemas import Namespace, NamespaceStatus

if TYPE_CHECKING:
    from busmgmt.repos import NamespaceRepo  # pragma: no cover

DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_SETTLE_DELAY = 5.0


class Clock:
    """Schedules delays between polls."""

    async def sleep(self, seconds: float) -> None:
        raise NotImplementedError


class WallClock(Clock):
    """Waits in real time."""

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class InstantClock(Clock):
    """Lets no real time elapse; used when replaying recorded traffic.

    Requested delays are kept in `requested` so callers can inspect the
    schedule that would have been followed against a live service.
    """

    def __init__(self):
        self.requested: list[float] = []

    async def sleep(self, seconds: float) -> None:
        self.requested.append(seconds)
        await asyncio.sleep(0)


class PollState(str, Enum):
    """State of an activation poller."""

    POLLING = "polling"
    SETTLED = "settled"
    FAILED = "failed"


class ActivationPoller:
    """Polls a namespace until it leaves the `Activating` status.

    While the namespace is activating, the poller waits `poll_interval`
    seconds between reads. Once a terminal status is observed it waits a
    final `settle_delay` before releasing the caller: the service rejects
    deletes issued immediately after activation.

    `max_polls` bounds the number of reads; `None` polls until the namespace
    settles or a read fails.
    """

    def __init__(
        self,
        repo: "NamespaceRepo",
        clock: Clock,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        max_polls: Optional[int] = None,
    ):
        if max_polls is not None and max_polls < 1:
            raise ValueError("max_polls must be positive.")
        self.repo = repo
        self.clock = clock
        self.poll_interval = poll_interval
        self.settle_delay = settle_delay
        self.max_polls = max_polls
        self.state = PollState.POLLING
        self.polls = 0

    async def wait(self, name: str, current: Optional[Namespace] = None) -> Namespace:
        """Waits for namespace `name` to settle.

        Args:
            name: Namespace to wait for.
            current: Namespace descriptor already in hand (e.g. the result of
                a create). If its status is terminal, no polling happens.

        Raises:
            TransientActivationError: If the namespace cannot be read, or if
                `max_polls` reads all report `Activating`.

        Returns:
            The settled namespace.
        """
        if current is not None and current.status.is_terminal:
            self.state = PollState.SETTLED
            return current

        self.state = PollState.POLLING
        self.polls = 0
        while True:
            namespace = await self._tick(name)
            if namespace.status is not NamespaceStatus.ACTIVATING:
                log.info(
                    "Namespace %s is %s after %d poll(s)",
                    name,
                    namespace.status.value,
                    self.polls,
                )
                await self.clock.sleep(self.settle_delay)
                self.state = PollState.SETTLED
                return namespace

            if self.max_polls is not None and self.polls >= self.max_polls:
                self.state = PollState.FAILED
                raise TransientActivationError(
                    f"Namespace {name} still activating after {self.polls} polls."
                )

            log.debug("Namespace %s is still activating", name)
            await self.clock.sleep(self.poll_interval)

    async def _tick(self, name: str) -> Namespace:
        self.polls += 1
        try:
            return await self.repo.get(name)
        except RemoteError as ex:
            self.state = PollState.FAILED
            raise TransientActivationError(
                f"Failed to read namespace {name} while waiting for activation: {ex}",
                status_code=ex.status_code,
                code=ex.code,
            ) from ex
