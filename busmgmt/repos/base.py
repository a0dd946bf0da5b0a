"""Base objects and utilities for management API repositories."""

import re
from dataclasses import dataclass
from functools import wraps
from typing import TYPE_CHECKING, Callable, Optional

import httpx
import pydantic

from busmgmt.exceptions import RemoteError, ValidationError
from busmgmt.logging import log

if TYPE_CHECKING:
    from busmgmt.client import BusManagement


NAMESPACE_NAME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9-]*[a-zA-Z0-9]$")
NAMESPACE_NAME_MIN_LENGTH = 6
NAMESPACE_NAME_MAX_LENGTH = 50
RESERVED_SUFFIXES = ("-sb", "-mgmt", "-cache", "-appfabric")

NAME_RULES = (
    "must start with a letter, contain only letters, numbers and hyphens, "
    "end with a letter or number, be between "
    f"{NAMESPACE_NAME_MIN_LENGTH} and {NAMESPACE_NAME_MAX_LENGTH} characters "
    f"long, and not end with any of: {', '.join(RESERVED_SUFFIXES)}"
)


def validate_namespace_name(name: str) -> str:
    """Checks a namespace name against the service's naming rules.

    Raises:
        ValidationError: If the name is malformed. The message always
            contains "must start with a letter".

    Returns:
        The name, unchanged.
    """
    if (
        not isinstance(name, str)
        or not NAMESPACE_NAME_MIN_LENGTH <= len(name) <= NAMESPACE_NAME_MAX_LENGTH
        or NAMESPACE_NAME_PATTERN.match(name) is None
        or name.lower().endswith(RESERVED_SUFFIXES)
    ):
        raise ValidationError(f"Invalid namespace name {name!r}: the name {NAME_RULES}.")
    return name


def _reason(response: httpx.Response) -> tuple[str, Optional[str]]:
    """Extracts a human-readable reason and error code from an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase, None

    if isinstance(body, dict):
        message = body.get("Message") or body.get("message") or str(body)
        return message, body.get("Code") or body.get("code")
    return str(body), None


def err(message: str) -> Callable:
    """Decorator for mapping HTTP and parsing failures to `RemoteError`.

    Wraps coroutine functions. HTTP failures and unparsable response bodies
    become `RemoteError`;
    `ValidationError` and other client-side errors pass through unchanged.
    """

    def err_decorator(func: Callable) -> Callable:
        @wraps(func)
        async def err_wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except pydantic.ValidationError as ex:
                raise RemoteError(f"{message}: cannot parse response.") from ex
            except httpx.HTTPStatusError as ex:
                reason, code = _reason(ex.response)
                log.debug(
                    "%s %s failed with %d: %s",
                    ex.request.method,
                    ex.request.url,
                    ex.response.status_code,
                    reason,
                )
                raise RemoteError(
                    f"{message}: HTTP {ex.response.status_code}. Reason: {reason}",
                    status_code=ex.response.status_code,
                    code=code,
                ) from ex
            except httpx.HTTPError as ex:
                raise RemoteError(f"{message}: HTTP request failed. {ex}") from ex
            except ValueError as ex:
                # Body is not JSON.
                raise RemoteError(f"{message}: cannot parse response.") from ex

        return err_wrapper

    return err_decorator


@dataclass(frozen=True)
class ObjectRepo:
    """Base class for management API repositories."""

    session: "BusManagement"

    @property
    def client(self) -> httpx.AsyncClient:
        return self.session.client
