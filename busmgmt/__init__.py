"""Service Bus namespace management client and record/replay test harness."""

from busmgmt.client import BusManagement
from busmgmt.polling import ActivationPoller
from busmgmt.schemas import Namespace, NamespaceStatus, Region, TransportMode
from busmgmt.transport import TransportController

__all__ = [
    "ActivationPoller",
    "BusManagement",
    "Namespace",
    "NamespaceStatus",
    "Region",
    "TransportController",
    "TransportMode",
]
