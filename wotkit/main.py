"""
wotkit demo entry point.

Hosts the example lamp and humidity sensor on one server.

Usage:
    python -m wotkit [--config config/server.json] [--port 8888]
"""

import argparse
import sys

from wotkit.server import WebThingServer, ServerConfig, ConfigError, loadConfig
from sdk.devices import DimmableLight, HumiditySensor
from sdk.logging import getLogger, configureLogging


def parseArgs(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Serve example Web Things')
    parser.add_argument('--config', help='Path to server config JSON')
    parser.add_argument('--port', type=int, help='Override listening port')
    parser.add_argument('--no-advertise', action='store_true', help='Disable mDNS advertisement')
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parseArgs(argv)

    try:
        config = loadConfig(args.config) if args.config else ServerConfig(name='LightAndTempDevice', port=8888)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    if args.port is not None:
        config.port = args.port
    if args.no_advertise:
        config.advertise = False

    configureLogging(logDir=config.logDir, level=config.logLevel)
    log = getLogger()

    options = {'maxEvents': config.maxEvents, 'maxActions': config.maxActions}
    light = DimmableLight(**options)
    sensor = HumiditySensor(**options)

    # More than one thing: the configured name is what gets advertised
    server = WebThingServer.fromConfig([light.getThing(), sensor.getThing()], config)

    sensor.start()
    try:
        log.info("[Main] Serving example things", port=config.port)
        server.run()
    finally:
        sensor.stop()
    return 0


if __name__ == '__main__':
    sys.exit(main())
