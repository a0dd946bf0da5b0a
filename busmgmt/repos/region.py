"""Repository for regions."""

from dataclasses import dataclass

import pydantic

from busmgmt.repos.base import ObjectRepo, err
from busmgmt.schemas import Region

_region_list = pydantic.TypeAdapter(list[Region])


@dataclass(frozen=True)
class RegionRepo(ObjectRepo):
    """Repository for the regions namespaces can be created in."""

    @err("Failed to load regions")
    async def all(self) -> list[Region]:
        """Gets the region catalog."""
        response = await self.client.get("/regions/")
        response.raise_for_status()
        return _region_list.validate_python(response.json())

    async def codes(self) -> list[str]:
        """Gets the codes of all available regions."""
        return [region.code for region in await self.all()]
