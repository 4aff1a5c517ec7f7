import asyncio
import json
from types import SimpleNamespace

import pytest

from inventory_chat.config import AppConfig

WAREHOUSE_CSV = b"""SKU,Plant,StorageLocation,StorageBin,UnrestrictedStock,UOM
10271,1000,WH01,A-01-03,42,EA
20415,1000,WH01,B-02-11,7,BOX
30027,2000,WH02,C-09-01,0,EA
"""

MATERIAL_CSV = b"""SKU, Description, Manufacturer, ManufacturerPartNumber, MaterialGroup
10271, Hex Bolt M8x40, Acme Fasteners, HB-M8-40, FAST
10272, Hex Bolt M8x60, Acme Fasteners, HB-M8-60, FAST
10273, hex nut M8, Acme Fasteners, HN-M8, FAST
55501, Safety Gloves L, GripWell, SG-L, PPE
"""


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def classification(dataset, columns, value, confidence=0.9):
    return completion(json.dumps(
        {"dataset": dataset, "columns": columns, "value": value, "confidence": confidence}
    ))


class Slow:
    """Queued reply that never answers within a short test timeout."""

    def __init__(self, seconds=5.0):
        self.seconds = seconds


class FakeCompletions:
    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if not self.replies:
            raise AssertionError("unexpected completion call")
        reply = self.replies.pop(0)
        if isinstance(reply, Slow):
            await asyncio.sleep(reply.seconds)
        if isinstance(reply, BaseException):
            raise reply
        return reply


class FakeOpenAI:
    def __init__(self, *replies):
        self.completions = FakeCompletions(replies)
        self.chat = SimpleNamespace(completions=self.completions)

    @property
    def calls(self):
        return self.completions.calls


class FakeDownloader:
    def __init__(self, data):
        self._data = data

    async def readall(self):
        return self._data


class FakeBlobClient:
    def __init__(self, container, name):
        self._container = container
        self._name = name

    async def exists(self):
        return self._name in self._container.blobs

    async def download_blob(self, **kwargs):
        self._container.downloads.append(self._name)
        return FakeDownloader(self._container.blobs[self._name])


class FakeContainer:
    def __init__(self, blobs=None):
        self.blobs = dict(blobs or {})
        self.requested = []
        self.downloads = []

    def get_blob_client(self, name):
        self.requested.append(name)
        return FakeBlobClient(self, name)


@pytest.fixture
def container():
    return FakeContainer({
        "warehouseData.csv": WAREHOUSE_CSV,
        "materialBasicData.csv": MATERIAL_CSV,
        "barcodes.csv": b"",
    })


@pytest.fixture
def config():
    return AppConfig(openai_api_key="sk-test", storage_connection_string="UseDevelopmentStorage=true")
