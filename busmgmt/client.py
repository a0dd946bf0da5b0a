"""Service Bus management session."""

import os
import ssl
from pathlib import Path
from typing import Optional

import httpx
import tomlkit

from busmgmt.exceptions import ConfigError
from busmgmt.logging import log
from busmgmt.polling import ActivationPoller, WallClock
from busmgmt.repos import NamespaceRepo, RegionRepo
from busmgmt.schemas import TransportMode
from busmgmt.transport import TransportController

DEFAULT_BUSMGMT_ROOT = Path(os.path.expanduser("~")) / ".busmgmt"
DEFAULT_HOST = "management.core.windows.net"
API_VERSION = "2013-08-01"

# Recordings never contain the real subscription ID; replays run under this one.
PLACEHOLDER_SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000000"


def load_profile(profile: Optional[str] = None) -> dict[str, str]:
    """Loads a client profile from the configuration directory.

    The directory is taken from the `BUSMGMT_ROOT` environment variable,
    falling back to `~/.busmgmt`. The profile defaults to `BUSMGMT_PROFILE`,
    then `default`.

    Raises:
        ConfigError: If the configuration is missing, malformed, or lacks
            the requested profile or one of its required fields.
    """
    if profile is None:
        profile = os.getenv("BUSMGMT_PROFILE", "default")

    BUSMGMT_ROOT = Path(os.getenv("BUSMGMT_ROOT", DEFAULT_BUSMGMT_ROOT))
    try:
        with open(BUSMGMT_ROOT / "config", encoding="utf-8") as config_fp:
            config_raw = config_fp.read()
    except IOError as ex:
        raise ConfigError(
            "Failed to read busmgmt configuration at "
            f"{BUSMGMT_ROOT.resolve()}. "
            "Does a busmgmt configuration directory exist?"
        ) from ex

    try:
        configs = tomlkit.parse(config_raw)
    except tomlkit.exceptions.TOMLKitError as ex:
        raise ConfigError(
            f"Failed to parse busmgmt configuration at {BUSMGMT_ROOT.resolve()}."
        ) from ex

    try:
        config = configs[profile]
    except KeyError:
        raise ConfigError(
            f'Profile "{profile}" not found in configuration '
            f"at {BUSMGMT_ROOT.resolve()}."
        )

    for field in ("subscription_id", "cert"):
        if field not in config:
            raise ConfigError(
                f'Field "{field}" not in profile "{profile}" '
                f"in configuration at {BUSMGMT_ROOT.resolve()}."
            )

    return {
        "subscription_id": str(config["subscription_id"]),
        "cert": str(config["cert"]),
        "key": str(config["key"]) if "key" in config else None,
        "host": str(config["host"]) if "host" in config else None,
    }


def _ssl_context(cert: str, key: Optional[str]) -> ssl.SSLContext:
    """Builds an SSL context presenting the management certificate."""
    context = ssl.create_default_context()
    try:
        context.load_cert_chain(certfile=cert, keyfile=key)
    except (OSError, ssl.SSLError) as ex:
        raise ConfigError(f"Failed to load management certificate {cert}.") from ex
    return context


class BusManagement:
    """Service Bus management session."""

    client: Optional[httpx.AsyncClient]
    subscription_id: str
    controller: Optional[TransportController]
    timeout: int

    _base_url: str

    def __init__(
        self,
        profile: Optional[str] = None,
        subscription_id: Optional[str] = None,
        host: Optional[str] = None,
        cert: Optional[str] = None,
        key: Optional[str] = None,
        timeout: int = 60,
        controller: Optional[TransportController] = None,
        test_id: Optional[str] = None,
    ):
        """Creates a management session.

        If `subscription_id` and `cert` are specified, they are used directly.
        Otherwise, they are loaded for `profile` (see `load_profile`). When
        `controller` replays recorded traffic, no credentials are needed and
        a placeholder subscription is used if none is given.

        Args:
            profile: Configuration profile to load credentials from.
            subscription_id: Subscription that owns the namespaces.
            host: Management endpoint host.
            cert: Path to the management certificate (PEM).
            key: Path to the certificate's private key, if not in `cert`.
            timeout: Request timeout in seconds.
            controller: Transport controller for recording or replaying
                traffic. If omitted, all calls go to the network.
            test_id: Fixture identity to bind traffic to; by default, the
                controller's running test.

        Raises:
            ConfigError: If the configuration is invalid--for instance, if
                only one of `subscription_id` and `cert` is specified.
        """
        self.controller = controller
        self.timeout = timeout
        replaying = controller is not None and controller.mode is TransportMode.REPLAY

        if subscription_id is not None and cert is None and not replaying:
            raise ConfigError(
                f'No certificate specified for subscription "{subscription_id}".'
            )
        if subscription_id is None and cert is not None:
            raise ConfigError("No subscription specified for certificate.")

        if subscription_id is None:
            if replaying:
                subscription_id = PLACEHOLDER_SUBSCRIPTION_ID
            else:
                config = load_profile(profile)
                subscription_id = config["subscription_id"]
                cert = config["cert"]
                key = config["key"]
                host = host or config["host"]

        self.subscription_id = subscription_id
        host = host or DEFAULT_HOST
        self._base_url = (
            f"http://{host}/{subscription_id}/services/servicebus"
            if host.startswith("localhost")
            else f"https://{host}/{subscription_id}/services/servicebus"
        )
        self._base_headers = {
            "User-Agent": "busmgmt-client-py",
            "Accept": "application/json",
            "x-ms-version": API_VERSION,
        }

        if cert is not None and not replaying:
            live_transport = httpx.AsyncHTTPTransport(
                retries=1, verify=_ssl_context(cert, key)
            )
        else:
            live_transport = httpx.AsyncHTTPTransport(retries=1)

        if controller is not None:
            controller.filters.setdefault(subscription_id, PLACEHOLDER_SUBSCRIPTION_ID)
            self._transport = controller.wrap(live_transport, test_id=test_id)
        else:
            self._transport = live_transport

        self.client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._base_headers,
            timeout=timeout,
            transport=self._transport,
        )
        log.debug("Created management session for %s", self._base_url)

    async def __aenter__(self) -> "BusManagement":
        return self

    async def __aexit__(self, exc_type, exc_value, traceback):
        await self.aclose()
        return False

    async def aclose(self) -> None:
        """Closes the underlying HTTP client."""
        if self.client is not None:
            await self.client.aclose()
            self.client = None

    @property
    def namespaces(self) -> NamespaceRepo:
        """Namespaces."""
        return NamespaceRepo(session=self)

    @property
    def regions(self) -> RegionRepo:
        """Regions."""
        return RegionRepo(session=self)

    def activation_poller(self, **kwargs) -> ActivationPoller:
        """Creates an activation poller timed for this session's transport.

        Delays collapse to zero when traffic is replayed.
        """
        clock = self.controller.clock if self.controller is not None else WallClock()
        return ActivationPoller(self.namespaces, clock, **kwargs)
