"""Management API object repositories."""

from busmgmt.repos.namespace import NamespaceRepo
from busmgmt.repos.region import RegionRepo

__all__ = [
    "NamespaceRepo",
    "RegionRepo",
]
