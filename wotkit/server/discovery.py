"""
Presence advertisement on the local network (mDNS / DNS-SD).

The server registers one `_webthing._tcp.local.` service while running and
withdraws it on stop. Failures are never fatal: the server keeps serving
and is simply not discoverable.
"""

import socket
from abc import ABC, abstractmethod
from typing import Dict, Optional

from zeroconf import IPVersion
from zeroconf.asyncio import AsyncServiceInfo, AsyncZeroconf

from sdk.logging import getLogger


SERVICE_TYPE = '_webthing._tcp.local.'


class Advertiser(ABC):
    """Registers / deregisters a service name on a port"""

    @abstractmethod
    async def register(self, name: str, port: int, tls: bool = False, path: str = '/'):
        pass

    @abstractmethod
    async def unregister(self):
        pass


class NullAdvertiser(Advertiser):
    """Discovery disabled"""

    async def register(self, name: str, port: int, tls: bool = False, path: str = '/'):
        pass

    async def unregister(self):
        pass


def localAddress() -> str:
    """Best guess at the LAN address of this host"""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # No packet is sent; this only selects the outbound interface
        sock.connect(('10.255.255.255', 1))
        return sock.getsockname()[0]
    except OSError:
        return '127.0.0.1'
    finally:
        sock.close()


class ZeroconfAdvertiser(Advertiser):
    """mDNS advertisement via python-zeroconf"""

    def __init__(self, serviceType: str = SERVICE_TYPE):
        self.serviceType = serviceType
        self.log = getLogger()
        self._zeroconf: Optional[AsyncZeroconf] = None
        self._info: Optional[AsyncServiceInfo] = None

    @property
    def registered(self) -> bool:
        return self._info is not None

    async def register(self, name: str, port: int, tls: bool = False, path: str = '/'):
        if self._info is not None:
            return

        properties: Dict[str, str] = {'path': path}
        if tls:
            properties['tls'] = '1'

        hostname = socket.gethostname().split('.')[0]
        info = AsyncServiceInfo(
            self.serviceType,
            f"{name}.{self.serviceType}",
            addresses=[socket.inet_aton(localAddress())],
            port=port,
            properties=properties,
            server=f"{hostname}.local.",
        )

        try:
            self._zeroconf = AsyncZeroconf(ip_version=IPVersion.V4Only)
            registration = await self._zeroconf.async_register_service(info, allow_name_change=True)
            await registration
            self._info = info
            self.log.info(f"[Discovery] Advertised '{name}' on port {port}")
        except Exception as e:
            self.log.warning(f"[Discovery] Advertisement failed, server not discoverable: {e}")
            await self._closeZeroconf()

    async def unregister(self):
        info, self._info = self._info, None
        if info is not None and self._zeroconf is not None:
            try:
                removal = await self._zeroconf.async_unregister_service(info)
                await removal
                self.log.info(f"[Discovery] Withdrew '{info.name}'")
            except Exception as e:
                self.log.warning(f"[Discovery] Withdraw failed: {e}")
        await self._closeZeroconf()

    async def _closeZeroconf(self):
        zc, self._zeroconf = self._zeroconf, None
        if zc is not None:
            try:
                await zc.async_close()
            except Exception as e:
                self.log.debug(f"[Discovery] Close error: {e}")
