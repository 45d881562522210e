"""
Server configuration.

Loaded from a JSON file, merged onto defaults and validated against
CONFIG_SCHEMA. Keyword arguments to WebThingServer cover the same fields.
"""

from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Any, Dict, Optional, Union

import orjson
from jsonschema import Draft7Validator
from jsonschema.exceptions import best_match


CONFIG_SCHEMA = {
    'type': 'object',
    'properties': {
        'name': {'type': ['string', 'null']},
        'host': {'type': 'string'},
        'port': {'type': 'integer', 'minimum': 0, 'maximum': 65535},
        'certfile': {'type': ['string', 'null']},
        'keyfile': {'type': ['string', 'null']},
        'advertise': {'type': 'boolean'},
        'queueSize': {'type': 'integer', 'minimum': 1},
        'maxEvents': {'type': 'integer', 'minimum': 1},
        'maxActions': {'type': 'integer', 'minimum': 1},
        'logLevel': {'enum': ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']},
        'logDir': {'type': ['string', 'null']},
    },
    'additionalProperties': False,
}


class ConfigError(Exception):
    """Configuration file missing, unparseable or invalid"""


@dataclass
class ServerConfig:
    name: Optional[str] = None      # required when hosting more than one thing
    host: str = '0.0.0.0'
    port: int = 80
    certfile: Optional[str] = None  # TLS is enabled when both files are given
    keyfile: Optional[str] = None
    advertise: bool = True
    queueSize: int = 1024           # per push connection
    maxEvents: int = 100
    maxActions: int = 100
    logLevel: str = 'INFO'
    logDir: Optional[str] = None

    @property
    def tls(self) -> bool:
        return bool(self.certfile and self.keyfile)

    @classmethod
    def fromDict(cls, data: Dict[str, Any]) -> 'ServerConfig':
        error = best_match(Draft7Validator(CONFIG_SCHEMA).iter_errors(data))
        if error is not None:
            where = '.'.join(str(p) for p in error.absolute_path) or 'config'
            raise ConfigError(f"Invalid {where}: {error.message}")
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def toDict(self) -> Dict[str, Any]:
        return asdict(self)


def loadConfig(configPath: Union[str, Path]) -> ServerConfig:
    """Load configuration from a JSON file"""
    path = Path(configPath)
    try:
        data = orjson.loads(path.read_bytes())
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except orjson.JSONDecodeError as e:
        raise ConfigError(f"Config file is not valid JSON: {path}: {e}") from e
    return ServerConfig.fromDict(data)
