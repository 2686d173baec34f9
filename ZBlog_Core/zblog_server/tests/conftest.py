import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from ZBlog_Core.zblog_server import api
from ZBlog_Core.bridge import build_dev_service, create_simulated_ledger


@pytest.fixture
def dev_ledger():
    return create_simulated_ledger()


@pytest.fixture
def dev_service(content_client, signature_client, dev_ledger):
    return build_dev_service(content_client, signature_client, ledger=dev_ledger)


@pytest_asyncio.fixture
async def client(dev_service, content_client, signature_client):
    """Inject a dev service backed by fakeredis into the api module."""
    api.service = dev_service
    api.content_client = content_client
    api.signature_client = signature_client
    transport = ASGITransport(app=api.app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    api.service = api.content_client = api.signature_client = None
