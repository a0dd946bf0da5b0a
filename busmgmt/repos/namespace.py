"""Repository for namespaces."""

from dataclasses import dataclass

import pydantic

from busmgmt.repos.base import ObjectRepo, err, validate_namespace_name
from busmgmt.schemas import Namespace, NamespaceAvailability

_namespace_list = pydantic.TypeAdapter(list[Namespace])


@dataclass(frozen=True)
class NamespaceRepo(ObjectRepo):
    """Repository for namespaces."""

    @err("Failed to load namespaces")
    async def all(self) -> list[Namespace]:
        """Gets all namespaces visible to the subscription.

        Namespaces are returned in server order, which is not stable;
        look namespaces up by name rather than by position.
        """
        response = await self.client.get("/namespaces/")
        response.raise_for_status()
        return _namespace_list.validate_python(response.json())

    @err("Failed to load namespace")
    async def get(self, name: str) -> Namespace:
        """Gets a namespace (including its current status) by name.

        Raises:
            RemoteError: If the namespace cannot be read on the server side.
        """
        response = await self.client.get(f"/namespaces/{name}")
        response.raise_for_status()
        return Namespace.model_validate(response.json())

    @err("Failed to create namespace")
    async def create(self, name: str, region: str) -> Namespace:
        """Creates a namespace.

        New namespaces are typically returned in the `Activating` status;
        see `ActivationPoller` for waiting until they are usable.

        Args:
            name: Namespace name. Must start with a letter.
            region: Region code, as listed by `BusManagement.regions`.

        Raises:
            ValidationError: If `name` is malformed. No request is sent.
            RemoteError: If the namespace cannot be created on the server side.

        Returns:
            The new namespace.
        """
        validate_namespace_name(name)
        response = await self.client.put(
            f"/namespaces/{name}", json={"Region": region}
        )
        response.raise_for_status()
        return Namespace.model_validate(response.json())

    @err("Failed to delete namespace")
    async def delete(self, name: str) -> None:
        """Deletes a namespace.

        The service refuses to delete namespaces that are still activating.

        Raises:
            ValidationError: If `name` is malformed. No request is sent.
            RemoteError: If the namespace cannot be deleted on the server side.
        """
        validate_namespace_name(name)
        response = await self.client.delete(f"/namespaces/{name}")
        response.raise_for_status()

    @err("Failed to verify namespace")
    async def verify(self, name: str) -> bool:
        """Checks whether a namespace name is available.

        Raises:
            ValidationError: If `name` is malformed. No request is sent.

        Returns:
            `True` if no namespace uses `name` yet.
        """
        validate_namespace_name(name)
        response = await self.client.get(
            "/namespaces/CheckNamespaceAvailability/", params={"namespace": name}
        )
        response.raise_for_status()
        return NamespaceAvailability.model_validate(response.json()).result
