"""
SDK Logging - Hierarchical logger with automatic name detection.

API:
    from sdk.logging import getLogger

    # Class-level (auto-detect once in __init__)
    class LampDevice:
        def __init__(self):
            self.log = getLogger()  # Auto: 'devices.lamp.LampDevice'

        def fade(self, level):
            self.log.info("Fading", level=level)

    # Module-level (auto-detect once at import)
    log = getLogger()  # Auto: 'wotkit.server.discovery'

    # Global configuration (optional, once at app startup)
    from sdk.logging import configureLogging
    configureLogging(level='DEBUG', logDir='./logs')
"""

from .logger import getLogger, configureLogging

__all__ = [
    'getLogger',
    'configureLogging',
]
