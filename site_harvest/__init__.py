"""
SiteHarvest package initializer.
Defines package version and exposes the acquisition entry points.
"""
__version__ = "0.2.0"

from site_harvest.builder import build
from site_harvest.driver import TraversalDriver, TraversalOutcome
from site_harvest.models import AcquisitionRequest, Mode, TraversalConfig
from site_harvest.monitor import ChangeMonitor, ContentHashStore

__all__ = [
    "__version__",
    "build",
    "TraversalDriver",
    "TraversalOutcome",
    "AcquisitionRequest",
    "Mode",
    "TraversalConfig",
    "ChangeMonitor",
    "ContentHashStore",
]
