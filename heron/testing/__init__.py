"""
Heron Testing - helpers for exercising applications in-process.

Usage:
    from heron.testing import TestClient

    async def test_index():
        client = TestClient(create_app(AppModule))
        response = await client.get("/")
        assert response.status_code == 200
"""

from .client import TestClient, TestResponse

__all__ = ["TestClient", "TestResponse"]
