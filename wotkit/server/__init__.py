"""
Package init for wotkit.server
"""

from wotkit.server.server import WebThingServer
from wotkit.server.config import ServerConfig, ConfigError, loadConfig
from wotkit.server.connection import PushConnection
from wotkit.server.discovery import Advertiser, NullAdvertiser, ZeroconfAdvertiser

__all__ = [
    'WebThingServer', 'ServerConfig', 'ConfigError', 'loadConfig', 'PushConnection',
    'Advertiser', 'NullAdvertiser', 'ZeroconfAdvertiser',
]
