"""
Tests for vector index backends

PineconeIndexClient is exercised against httpx.MockTransport; the in-memory
index is tested directly.
"""

import json

import httpx
import pytest


def make_pinecone(handler, namespace="chat"):
    from recall.common.vector_client import PineconeIndexClient
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PineconeIndexClient(host="idx.svc.pinecone.io", api_key="pk", namespace=namespace, http_client=http)


class TestChannelFilter:
    def test_single_channel(self):
        from recall.common.vector_client import build_channel_filter
        assert build_channel_filter("general") == {"channelId": {"$eq": "general"}}

    def test_multiple_channels_win(self):
        from recall.common.vector_client import build_channel_filter
        assert build_channel_filter("general", ["a", "b"]) == {"channelId": {"$in": ["a", "b"]}}

    def test_no_scope(self):
        from recall.common.vector_client import build_channel_filter
        assert build_channel_filter() is None

    def test_matches_filter(self):
        from recall.common.vector_client import matches_filter
        meta = {"channelId": "general"}
        assert matches_filter(meta, {"channelId": {"$eq": "general"}})
        assert not matches_filter(meta, {"channelId": {"$in": ["random"]}})
        assert matches_filter(meta, None)


class TestPineconeIndexClient:
    def test_host_required(self):
        from recall.common.vector_client import PineconeIndexClient
        with pytest.raises(ValueError):
            PineconeIndexClient(host="")

    @pytest.mark.asyncio
    async def test_upsert_posts_records(self):
        from recall.common.vector_client import VectorRecord
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"upsertedCount": 1})

        index = make_pinecone(handler)
        await index.upsert_batch([VectorRecord(id="m1_chunk_0", values=[0.1, 0.2], metadata={"channelId": "g"})])

        assert seen["url"] == "https://idx.svc.pinecone.io/vectors/upsert"
        assert seen["body"]["namespace"] == "chat"
        assert seen["body"]["vectors"][0]["id"] == "m1_chunk_0"

    @pytest.mark.asyncio
    async def test_query_sends_filter_and_parses_matches(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"matches": [
                {"id": "m1_chunk_0", "score": 0.91, "metadata": {"messageId": "m1"}},
                {"id": "m2_chunk_0", "score": 0.72},
            ]})

        index = make_pinecone(handler)
        matches = await index.query([0.1, 0.2], top_k=15, metadata_filter={"channelId": {"$eq": "g"}})

        assert seen["body"]["topK"] == 15
        assert seen["body"]["includeMetadata"] is True
        assert seen["body"]["filter"] == {"channelId": {"$eq": "g"}}
        assert [m.id for m in matches] == ["m1_chunk_0", "m2_chunk_0"]
        assert matches[0].score == pytest.approx(0.91)
        assert matches[1].metadata == {}

    @pytest.mark.asyncio
    async def test_query_without_filter_omits_key(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"matches": []})

        index = make_pinecone(handler)
        assert await index.query([0.1], top_k=3) == []
        assert "filter" not in seen["body"]

    @pytest.mark.asyncio
    async def test_fetch_many(self):
        seen = {}

        def handler(request):
            seen["ids"] = request.url.params.get_list("ids")
            seen["namespace"] = request.url.params.get("namespace")
            return httpx.Response(200, json={"vectors": {
                "m1_chunk_0": {"id": "m1_chunk_0", "values": [0.1], "metadata": {"content": "hi"}},
            }})

        index = make_pinecone(handler)
        found = await index.fetch_many(["m1_chunk_0", "m1"])

        assert seen["ids"] == ["m1_chunk_0", "m1"]
        assert seen["namespace"] == "chat"
        assert list(found) == ["m1_chunk_0"]
        assert found["m1_chunk_0"].metadata["content"] == "hi"

    @pytest.mark.asyncio
    async def test_fetch_by_id_missing(self):
        index = make_pinecone(lambda request: httpx.Response(200, json={"vectors": {}}))
        assert await index.fetch_by_id("nope") is None

    @pytest.mark.asyncio
    async def test_clear_all(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={})

        index = make_pinecone(handler)
        await index.clear_all()

        assert seen["path"] == "/vectors/delete"
        assert seen["body"] == {"deleteAll": True, "namespace": "chat"}

    @pytest.mark.asyncio
    async def test_http_error_propagates(self):
        index = make_pinecone(lambda request: httpx.Response(503, json={"message": "unavailable"}))
        with pytest.raises(httpx.HTTPStatusError):
            await index.query([0.1], top_k=1)


class TestInMemoryVectorIndex:
    @pytest.fixture
    def index(self):
        from recall.common.vector_client import InMemoryVectorIndex
        return InMemoryVectorIndex()

    @pytest.mark.asyncio
    async def test_query_orders_by_cosine(self, index):
        await index.upsert("a", [1.0, 0.0], {"channelId": "g"})
        await index.upsert("b", [0.7, 0.7], {"channelId": "g"})
        await index.upsert("c", [0.0, 1.0], {"channelId": "g"})

        matches = await index.query([1.0, 0.0], top_k=2)

        assert [m.id for m in matches] == ["a", "b"]
        assert matches[0].score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_query_applies_filter(self, index):
        await index.upsert("a", [1.0, 0.0], {"channelId": "g"})
        await index.upsert("b", [1.0, 0.0], {"channelId": "r"})

        matches = await index.query([1.0, 0.0], top_k=5, metadata_filter={"channelId": {"$eq": "r"}})

        assert [m.id for m in matches] == ["b"]

    @pytest.mark.asyncio
    async def test_upsert_overwrites(self, index):
        await index.upsert("a", [1.0, 0.0], {"v": 1})
        await index.upsert("a", [0.0, 1.0], {"v": 2})

        assert len(index) == 1
        assert (await index.fetch_by_id("a")).metadata == {"v": 2}

    @pytest.mark.asyncio
    async def test_dimension_mismatch(self, index):
        await index.upsert("a", [1.0, 0.0], {})
        with pytest.raises(ValueError, match="dimension"):
            await index.query([1.0, 0.0, 0.0], top_k=1)

    @pytest.mark.asyncio
    async def test_clear_all(self, index):
        await index.upsert("a", [1.0], {})
        await index.clear_all()
        assert len(index) == 0
        assert await index.query([1.0], top_k=1) == []
