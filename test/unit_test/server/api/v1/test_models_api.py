import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


async def test_list_models(client: AsyncClient):
    response = await client.get("/api/v1/models")
    assert response.status_code == 200
    models = response.json()
    assert [m["deploymentName"] for m in models] == ["gpt-4o", "gpt-4o-mini", "gpt-5-nano"]
    assert models[1]["displayName"] == "gpt-4o Mini"
    assert all(m["description"] for m in models)
