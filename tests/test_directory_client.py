"""Tests for the Graph directory client (httpx MockTransport)."""

import asyncio
import sys
import unittest
from pathlib import Path

import httpx

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from src.graph import DirectoryClient, DirectoryError, DirectoryTimeout, DirectoryUnavailable, odata_literal


def _client(handler) -> DirectoryClient:
    return DirectoryClient("token-123", transport=httpx.MockTransport(handler))


class TestDirectoryClient(unittest.TestCase):
    def test_requires_token(self):
        with self.assertRaises(ValueError):
            DirectoryClient("")

    def test_get_sends_bearer_and_parses_json(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"id": "me-1"})

        async def run():
            async with _client(handler) as client:
                return await client.get("/me", params={"$select": "id"})

        self.assertEqual(asyncio.run(run()), {"id": "me-1"})
        self.assertEqual(seen[0].headers["authorization"], "Bearer token-123")
        self.assertEqual(seen[0].url.path, "/v1.0/me")
        self.assertEqual(seen[0].url.params["$select"], "id")

    def test_post_patch_delete(self):
        def handler(request):
            if request.method == "DELETE":
                return httpx.Response(204)
            return httpx.Response(201 if request.method == "POST" else 200, json={"method": request.method, "body": request.content.decode()})

        async def run():
            async with _client(handler) as client:
                created = await client.post("/teams", {"displayName": "X"})
                patched = await client.patch("/teams/1", {"description": "Y"})
                deleted = await client.delete("/teams/1")
                return created, patched, deleted

        created, patched, deleted = asyncio.run(run())
        self.assertEqual(created["method"], "POST")
        self.assertIn('"displayName"', created["body"])
        self.assertEqual(patched["method"], "PATCH")
        self.assertIsNone(deleted)

    def test_error_response_is_classified(self):
        body = {"error": {"code": "Forbidden", "message": "Insufficient privileges"}}

        async def run():
            async with _client(lambda r: httpx.Response(403, json=body)) as client:
                await client.get("/teams")

        with self.assertRaises(DirectoryError) as ctx:
            asyncio.run(run())
        self.assertEqual(ctx.exception.status, 403)
        self.assertEqual(ctx.exception.body, body)
        self.assertEqual(ctx.exception.code, "Forbidden")
        self.assertIn("Insufficient privileges", str(ctx.exception))
        self.assertFalse(ctx.exception.retryable)

    def test_timeout_and_transport_errors_are_retryable(self):
        def timeout(request):
            raise httpx.ReadTimeout("slow", request=request)

        def refused(request):
            raise httpx.ConnectError("refused", request=request)

        for handler, expected in ((timeout, DirectoryTimeout), (refused, DirectoryUnavailable)):
            async def run():
                async with _client(handler) as client:
                    await client.get("/me")

            with self.subTest(expected=expected.__name__):
                with self.assertRaises(expected) as ctx:
                    asyncio.run(run())
                self.assertTrue(ctx.exception.retryable)
                self.assertIsNone(ctx.exception.status)

    def test_iter_collection_follows_next_link(self):
        def handler(request):
            if request.url.params.get("$skiptoken") == "p2":
                return httpx.Response(200, json={"value": [{"id": "c"}]})
            return httpx.Response(
                200,
                json={
                    "value": [{"id": "a"}, {"id": "b"}],
                    "@odata.nextLink": "https://graph.microsoft.com/v1.0/me/joinedTeams?$skiptoken=p2",
                },
            )

        async def run():
            async with _client(handler) as client:
                return [item["id"] async for item in client.iter_collection("/me/joinedTeams")]

        self.assertEqual(asyncio.run(run()), ["a", "b", "c"])

    def test_odata_literal_escapes_quotes(self):
        self.assertEqual(odata_literal("O'Brien"), "'O''Brien'")


if __name__ == "__main__":
    unittest.main()
