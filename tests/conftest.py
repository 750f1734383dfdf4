"""Pytest configuration and fixtures for the mmap_offline tests."""

from typing import Dict, List, Optional

import pytest
import requests

from mmap_offline.config import ClientConfig
from mmap_offline.geo.projection import Viewport
from mmap_offline.geo.tile_index import GeoBoundingBox
from mmap_offline.storage.kv_store import KeyValueStore
from mmap_offline.storage.tile_cache import TileCache


class FakeResponse:
    def __init__(self, status_code: int = 200, content: bytes = b"PNGDATA"):
        self.status_code = status_code
        self.content = content


class FakeSession:
    """Stand-in for requests.Session that records every GET.

    ``responses`` maps a URL substring to a FakeResponse or an exception
    instance; unmatched URLs get ``default``.
    """

    def __init__(self, default=None, responses: Optional[Dict[str, object]] = None):
        self.default = default if default is not None else FakeResponse()
        self.responses = responses or {}
        self.calls: List[str] = []
        self.timeouts: List[float] = []
        self.headers = {}

    def get(self, url, timeout=None, **kwargs):
        self.calls.append(url)
        self.timeouts.append(timeout)
        result = self.default
        for fragment, resp in self.responses.items():
            if fragment in url:
                result = resp
                break
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def ulsan_bounds():
    return GeoBoundingBox(north=35.525, south=35.495, east=129.445, west=129.410)


@pytest.fixture
def config(tmp_path):
    return ClientConfig(tile_dir=tmp_path / "tiles", state_db=tmp_path / "state.db")


@pytest.fixture
def tile_cache(tmp_path):
    return TileCache(tmp_path / "tiles")


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def offline_session():
    return FakeSession(default=requests.ConnectionError("offline"))


@pytest.fixture
def kv():
    store = KeyValueStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def viewport():
    return Viewport(center_lat=35.51, center_lon=129.4275, zoom=17, width=800, height=600)
