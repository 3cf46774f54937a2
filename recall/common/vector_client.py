"""
Vector Index Client

Thin async interface over an approximate-nearest-neighbour store.

Backends:
- PineconeIndexClient: Pinecone data-plane REST API over httpx
- InMemoryVectorIndex: numpy cosine index for local development and tests

Filters are equality / set-membership predicates on metadata fields:
    {"channelId": {"$eq": "general"}}
    {"channelId": {"$in": ["general", "random"]}}

Network and provider errors propagate un-wrapped; nothing here retries.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx
import numpy as np

logger = logging.getLogger("recall.common.vector_client")


@dataclass
class VectorRecord:
    """A stored (id, embedding, metadata) triple"""
    id: str
    values: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "values": list(self.values), "metadata": self.metadata}


@dataclass
class CandidateMatch:
    """One result of a similarity query"""
    id: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)


def build_channel_filter(
    channel_id: Optional[str] = None,
    channel_ids: Optional[Sequence[str]] = None,
) -> Optional[Dict[str, Any]]:
    """Metadata filter scoping a query to one channel or a set of channels"""
    if channel_ids:
        return {"channelId": {"$in": list(channel_ids)}}
    if channel_id:
        return {"channelId": {"$eq": channel_id}}
    return None


def matches_filter(metadata: Dict[str, Any], metadata_filter: Optional[Dict[str, Any]]) -> bool:
    """Evaluate an equality / membership filter against record metadata"""
    if not metadata_filter:
        return True
    for key, condition in metadata_filter.items():
        value = metadata.get(key)
        if isinstance(condition, dict):
            if "$eq" in condition and value != condition["$eq"]:
                return False
            if "$in" in condition and value not in condition["$in"]:
                return False
        elif value != condition:
            return False
    return True


class VectorIndex(ABC):
    """Contract shared by all vector index backends"""

    @abstractmethod
    async def upsert_batch(self, records: List[VectorRecord]) -> None:
        """Insert or overwrite records by id"""
        pass

    async def upsert(self, record_id: str, vector: List[float], metadata: Dict[str, Any]) -> None:
        await self.upsert_batch([VectorRecord(id=record_id, values=vector, metadata=metadata)])

    @abstractmethod
    async def query(
        self,
        vector: List[float],
        top_k: int,
        metadata_filter: Optional[Dict[str, Any]] = None,
    ) -> List[CandidateMatch]:
        """Return up to top_k most similar records, best first"""
        pass

    @abstractmethod
    async def fetch_many(self, record_ids: List[str]) -> Dict[str, VectorRecord]:
        """Fetch records by id; missing ids are absent from the result"""
        pass

    async def fetch_by_id(self, record_id: str) -> Optional[VectorRecord]:
        records = await self.fetch_many([record_id])
        return records.get(record_id)

    @abstractmethod
    async def clear_all(self) -> None:
        """Delete every record in the index (namespace)"""
        pass

    async def close(self) -> None:
        pass


class PineconeIndexClient(VectorIndex):
    """
    Pinecone data-plane client.

    Usage:
        index = PineconeIndexClient(host="https://chat-1536-abc.svc.pinecone.io", api_key="...")
        await index.upsert("msg1_chunk_0", vector, {"channelId": "general", ...})
        matches = await index.query(vector, top_k=15, metadata_filter={"channelId": {"$eq": "general"}})
        await index.close()
    """

    def __init__(
        self,
        host: str,
        api_key: str = "",
        namespace: str = "",
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize Pinecone client.

        Args:
            host: Index host URL (scheme optional)
            api_key: Pinecone API key
            namespace: Namespace all operations are scoped to
            timeout: Per-request timeout in seconds
            http_client: Pre-built httpx.AsyncClient (tests, shared pools)
        """
        if not host:
            raise ValueError("Pinecone index host is required")
        if not host.startswith(("http://", "https://")):
            host = f"https://{host}"

        self._host = host.rstrip("/")
        self._namespace = namespace
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=self._host,
            headers={"Api-Key": api_key, "Content-Type": "application/json"},
            timeout=httpx.Timeout(timeout),
        )

    def _url(self, path: str) -> str:
        return f"{self._host}{path}"

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._http.post(self._url(path), json=payload)
        response.raise_for_status()
        return response.json() if response.content else {}

    async def upsert_batch(self, records: List[VectorRecord]) -> None:
        if not records:
            return
        await self._post("/vectors/upsert", {
            "vectors": [r.to_dict() for r in records],
            "namespace": self._namespace,
        })

    async def query(
        self,
        vector: List[float],
        top_k: int,
        metadata_filter: Optional[Dict[str, Any]] = None,
    ) -> List[CandidateMatch]:
        payload = {
            "vector": list(vector),
            "topK": top_k,
            "includeMetadata": True,
            "includeValues": False,
            "namespace": self._namespace,
        }
        if metadata_filter:
            payload["filter"] = metadata_filter

        data = await self._post("/query", payload)

        return [
            CandidateMatch(
                id=m.get("id", ""),
                score=float(m.get("score", 0.0)),
                metadata=m.get("metadata") or {},
            )
            for m in data.get("matches", [])
        ]

    async def fetch_many(self, record_ids: List[str]) -> Dict[str, VectorRecord]:
        if not record_ids:
            return {}
        params = [("ids", rid) for rid in record_ids]
        if self._namespace:
            params.append(("namespace", self._namespace))

        response = await self._http.get(self._url("/vectors/fetch"), params=params)
        response.raise_for_status()
        vectors = response.json().get("vectors", {}) or {}

        return {
            rid: VectorRecord(
                id=raw.get("id", rid),
                values=raw.get("values", []),
                metadata=raw.get("metadata") or {},
            )
            for rid, raw in vectors.items()
        }

    async def clear_all(self) -> None:
        await self._post("/vectors/delete", {"deleteAll": True, "namespace": self._namespace})
        logger.info("Cleared all vectors (namespace=%r)", self._namespace)

    async def close(self) -> None:
        if self._owns_client:
            await self._http.aclose()


class InMemoryVectorIndex(VectorIndex):
    """
    Process-local vector index.

    Scores are cosine similarities computed with a single matrix product,
    so query cost is linear in the number of stored records.
    """

    def __init__(self):
        self._records: Dict[str, VectorRecord] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    async def upsert_batch(self, records: List[VectorRecord]) -> None:
        async with self._lock:
            for record in records:
                self._records[record.id] = VectorRecord(
                    id=record.id,
                    values=list(record.values),
                    metadata=dict(record.metadata),
                )

    async def query(
        self,
        vector: List[float],
        top_k: int,
        metadata_filter: Optional[Dict[str, Any]] = None,
    ) -> List[CandidateMatch]:
        candidates = [
            r for r in self._records.values()
            if matches_filter(r.metadata, metadata_filter)
        ]
        if not candidates or top_k <= 0:
            return []

        matrix = np.array([r.values for r in candidates], dtype=float)
        query_vec = np.asarray(vector, dtype=float)
        if matrix.shape[1] != query_vec.shape[0]:
            raise ValueError(f"Vector dimension mismatch: {matrix.shape[1]} vs {query_vec.shape[0]}")

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query_vec)
        norms[norms == 0] = 1.0
        similarities = np.dot(matrix, query_vec) / norms

        # Get top-k indices
        if len(similarities) <= top_k:
            top_indices = np.argsort(similarities)[::-1]
        else:
            top_indices = np.argpartition(similarities, -top_k)[-top_k:]
            top_indices = top_indices[np.argsort(similarities[top_indices])[::-1]]

        return [
            CandidateMatch(
                id=candidates[idx].id,
                score=float(similarities[idx]),
                metadata=dict(candidates[idx].metadata),
            )
            for idx in top_indices
        ]

    async def fetch_many(self, record_ids: List[str]) -> Dict[str, VectorRecord]:
        return {rid: self._records[rid] for rid in record_ids if rid in self._records}

    async def clear_all(self) -> None:
        async with self._lock:
            self._records.clear()
