"""
Device collaborators for wotkit Things.

- PollingDevice: base class for background device-driven value updates
- DimmableLight, HumiditySensor: example devices
"""

from .pollingDevice import PollingDevice
from .dimmableLight import DimmableLight
from .humiditySensor import HumiditySensor

__all__ = ['PollingDevice', 'DimmableLight', 'HumiditySensor']
