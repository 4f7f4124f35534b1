import pytest
import pytest_asyncio

from tests.utils.test_helpers import FakeDriver, HostedUI, make_client


@pytest.fixture
def driver():
    return FakeDriver()


@pytest_asyncio.fixture
async def client(driver):
    client = make_client(driver)
    async with client:
        yield client


@pytest.fixture
def ui(client, driver):
    return HostedUI(client.channel, driver)
