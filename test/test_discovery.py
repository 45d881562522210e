"""
Presence advertisement tests (no network traffic: zeroconf is mocked)
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from wotkit.server import NullAdvertiser, WebThingServer, ZeroconfAdvertiser
from wotkit.server import discovery
from sdk.devices import DimmableLight


def _fakeZeroconf():
    """AsyncZeroconf double whose register/unregister complete immediately"""
    zc = MagicMock()

    async def done():
        return None

    zc.async_register_service = AsyncMock(side_effect=lambda *a, **kw: done())
    zc.async_unregister_service = AsyncMock(side_effect=lambda *a, **kw: done())
    zc.async_close = AsyncMock()
    return zc


class TestZeroconfAdvertiser:

    @pytest.mark.asyncio
    async def test_register_and_unregister(self, monkeypatch):
        zc = _fakeZeroconf()
        monkeypatch.setattr(discovery, 'AsyncZeroconf', lambda **kwargs: zc)
        advertiser = ZeroconfAdvertiser()

        await advertiser.register('My Lamp', 8888, tls=True)

        assert advertiser.registered
        info = zc.async_register_service.call_args.args[0]
        assert info.type == '_webthing._tcp.local.'
        assert info.name == 'My Lamp._webthing._tcp.local.'
        assert info.port == 8888
        assert info.properties[b'path'] == b'/'
        assert info.properties[b'tls'] == b'1'

        await advertiser.unregister()

        assert not advertiser.registered
        zc.async_unregister_service.assert_awaited_once()
        zc.async_close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_register_twice_is_noop(self, monkeypatch):
        zc = _fakeZeroconf()
        monkeypatch.setattr(discovery, 'AsyncZeroconf', lambda **kwargs: zc)
        advertiser = ZeroconfAdvertiser()

        await advertiser.register('Lamp', 80)
        await advertiser.register('Lamp', 80)

        assert zc.async_register_service.await_count == 1
        await advertiser.unregister()

    @pytest.mark.asyncio
    async def test_failure_is_not_fatal(self, monkeypatch):
        def broken(**kwargs):
            raise OSError('no multicast interface')

        monkeypatch.setattr(discovery, 'AsyncZeroconf', broken)
        advertiser = ZeroconfAdvertiser()

        await advertiser.register('Lamp', 80)
        assert not advertiser.registered

        await advertiser.unregister()

    @pytest.mark.asyncio
    async def test_server_runs_without_discovery(self, monkeypatch, scheduler):
        def broken(**kwargs):
            raise OSError('no multicast interface')

        monkeypatch.setattr(discovery, 'AsyncZeroconf', broken)
        lamp = DimmableLight(scheduler=scheduler).getThing()
        server = WebThingServer(lamp, host='127.0.0.1', port=0)

        await server.start()
        try:
            assert server.running
            assert not server.advertiser.registered
        finally:
            await server.stop()

    @pytest.mark.asyncio
    async def test_unregister_without_register(self):
        advertiser = ZeroconfAdvertiser()

        await advertiser.unregister()

        assert not advertiser.registered


class TestNullAdvertiser:

    @pytest.mark.asyncio
    async def test_noop(self):
        advertiser = NullAdvertiser()

        await advertiser.register('Lamp', 80)
        await advertiser.unregister()

    def test_server_uses_null_advertiser_when_disabled(self, scheduler):
        lamp = DimmableLight(scheduler=scheduler).getThing()

        server = WebThingServer(lamp, advertise=False)

        assert isinstance(server.advertiser, NullAdvertiser)


def test_local_address_is_ipv4():
    address = discovery.localAddress()

    assert len(address.split('.')) == 4
