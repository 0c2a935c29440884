"""
Qdrant vector store implementation.
"""

from typing import Any
from uuid import NAMESPACE_DNS, UUID, uuid5

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    HnswConfigDiff,
    MatchAny,
    MatchValue,
    OptimizersConfigDiff,
    PointStruct,
    ScalarQuantization,
    ScalarQuantizationConfig,
    ScalarType,
    VectorParams,
)

from mnemorag.core.vector_store.base import VectorSearchResult, VectorStore
from mnemorag.utils.exceptions import ValidationError, VectorStoreError
from mnemorag.utils.logger import get_logger

logger = get_logger(__name__)


class QdrantStore(VectorStore):
    """
    Qdrant vector store for entity and community report embeddings.

    Features:
    - gRPC connection
    - HNSW indexing for fast search
    - Optional int8 quantization
    - Payload indices on `type` and `memory_id`
    """

    def __init__(
        self,
        url: str = "http://localhost:6333",
        collection_name: str = "mnemorag_graph",
        vector_size: int = 768,
        use_grpc: bool = False,
        use_quantization: bool = False,
        hnsw_m: int = 16,
        hnsw_ef_construct: int = 100,
        on_disk: bool = False,
        timeout: int = 30,
    ):
        """
        Initialize Qdrant store.

        Args:
            url: Qdrant URL
            collection_name: Collection name
            vector_size: Embedding dimension
            use_grpc: Use gRPC connection (faster)
            use_quantization: Use int8 quantization (memory efficient)
            hnsw_m: HNSW M parameter (connections per node)
            hnsw_ef_construct: HNSW ef_construct parameter
            on_disk: Store vectors on disk (reduces RAM usage)
            timeout: Request timeout in seconds
        """
        self.url = url
        self.collection_name = collection_name
        self.vector_size = vector_size
        self.use_grpc = use_grpc
        self.use_quantization = use_quantization
        self.hnsw_m = hnsw_m
        self.hnsw_ef_construct = hnsw_ef_construct
        self.on_disk = on_disk
        self.timeout = timeout
        self.client: AsyncQdrantClient | None = None

    def _to_uuid(self, id_str: str) -> str:
        """
        Convert string ID to UUID format consistently.

        Args:
            id_str: String identifier

        Returns:
            UUID string
        """
        try:
            UUID(id_str)
            return id_str
        except ValueError:
            return str(uuid5(NAMESPACE_DNS, id_str))

    async def connect(self) -> None:
        """
        Establish connection to Qdrant.

        Raises:
            VectorStoreError: If connection fails
        """
        if self.client is None:
            try:
                self.client = AsyncQdrantClient(
                    url=self.url,
                    prefer_grpc=self.use_grpc,
                    timeout=self.timeout,
                )
            except Exception as e:
                logger.bind(url=self.url, error=str(e)).error(
                    f"Failed to connect to Qdrant: {e}",
                )
                raise VectorStoreError(f"Failed to connect to Qdrant: {e}") from e

    async def initialize(self) -> None:
        try:
            await self.connect()

            collections = await self.client.get_collections()
            collection_names = [col.name for col in collections.collections]
            if self.collection_name in collection_names:
                return

            vectors_config = VectorParams(
                size=self.vector_size,
                distance=Distance.COSINE,
                hnsw_config=HnswConfigDiff(
                    m=self.hnsw_m,
                    ef_construct=self.hnsw_ef_construct,
                    full_scan_threshold=10000,
                ),
                on_disk=self.on_disk,
            )
            if self.use_quantization:
                vectors_config.quantization_config = ScalarQuantization(
                    scalar=ScalarQuantizationConfig(
                        type=ScalarType.INT8,
                        quantile=0.99,
                        always_ram=True,
                    )
                )

            await self.client.create_collection(
                collection_name=self.collection_name,
                vectors_config=vectors_config,
                optimizers_config=OptimizersConfigDiff(indexing_threshold=20000),
            )

            for field_name in ("type", "memory_id"):
                await self.client.create_payload_index(
                    collection_name=self.collection_name,
                    field_name=field_name,
                    field_schema="keyword",
                )

            logger.bind(collection=self.collection_name, vector_size=self.vector_size).info(
                f"Created Qdrant collection: {self.collection_name}",
            )
        except Exception as e:
            logger.bind(collection=self.collection_name, error=str(e)).error(
                f"Failed to initialize Qdrant collection: {e}",
            )
            raise VectorStoreError(f"Failed to initialize Qdrant collection: {e}") from e

    async def upsert(self, id: str, vector: list[float], payload: dict[str, Any]) -> str:
        if not id or not id.strip():
            raise ValidationError("Vector ID cannot be empty")
        if not vector:
            raise ValidationError("Vector cannot be empty", context={"vector_id": id})

        try:
            await self.connect()
            await self.client.upsert(
                collection_name=self.collection_name,
                points=[
                    PointStruct(
                        id=self._to_uuid(id),
                        vector=vector,
                        payload={**payload, "original_id": id},
                    )
                ],
                wait=True,  # Wait for write to complete for consistency
            )
            return id
        except Exception as e:
            logger.bind(vector_id=id, error=str(e)).error(
                f"Failed to upsert vector {id}: {e}",
            )
            raise VectorStoreError(f"Failed to upsert vector: {e}") from e

    async def search(
        self,
        vector: list[float],
        limit: int = 10,
        filters: dict[str, Any] | None = None,
        score_threshold: float | None = None,
    ) -> list[VectorSearchResult]:
        try:
            await self.connect()
            response = await self.client.query_points(
                collection_name=self.collection_name,
                query=vector,
                limit=limit,
                score_threshold=score_threshold,
                query_filter=self._build_filter(filters),
                with_payload=True,
            )
        except Exception as e:
            logger.bind(collection=self.collection_name, error=str(e)).error(
                f"Vector search failed: {e}",
            )
            raise VectorStoreError(f"Vector search failed: {e}") from e

        results = []
        for point in response.points:
            payload = dict(point.payload or {})
            results.append(
                VectorSearchResult(
                    id=payload.pop("original_id", str(point.id)),
                    score=point.score,
                    payload=payload,
                )
            )
        return results

    async def delete(self, id: str) -> bool:
        if not id or not id.strip():
            raise ValidationError("Vector ID cannot be empty")

        try:
            await self.connect()
            uuid_id = self._to_uuid(id)

            existing = await self.client.retrieve(
                collection_name=self.collection_name,
                ids=[uuid_id],
                with_payload=False,
                with_vectors=False,
            )
            if not existing:
                return False

            await self.client.delete(
                collection_name=self.collection_name,
                points_selector=[uuid_id],
                wait=True,
            )
            return True
        except Exception as e:
            logger.bind(vector_id=id, error=str(e)).error(
                f"Failed to delete vector {id}: {e}",
            )
            raise VectorStoreError(f"Failed to delete vector: {e}") from e

    async def delete_by_memory_id(self, memory_id: str) -> bool:
        if not memory_id or not memory_id.strip():
            raise ValidationError("Memory ID cannot be empty")

        try:
            await self.connect()
            query_filter = self._build_filter({"memory_id": memory_id})

            response = await self.client.count(
                collection_name=self.collection_name,
                count_filter=query_filter,
                exact=True,
            )
            if response.count == 0:
                return False

            await self.client.delete(
                collection_name=self.collection_name,
                points_selector=FilterSelector(filter=query_filter),
                wait=True,
            )
            return True
        except Exception as e:
            logger.bind(memory_id=memory_id, error=str(e)).error(
                f"Failed to delete vectors for memory {memory_id}: {e}",
            )
            raise VectorStoreError(f"Failed to delete vectors: {e}") from e

    async def count(self, filters: dict[str, Any] | None = None) -> int:
        await self.connect()

        if not filters:
            collection_info = await self.client.get_collection(self.collection_name)
            return collection_info.points_count or 0

        response = await self.client.count(
            collection_name=self.collection_name,
            count_filter=self._build_filter(filters),
            exact=True,
        )
        return response.count

    async def close(self) -> None:
        """Close the connection to Qdrant."""
        if self.client is not None:
            await self.client.close()
            self.client = None

    def _build_filter(self, filters: dict[str, Any] | None) -> Filter | None:
        if not filters:
            return None

        conditions = []
        for key, value in filters.items():
            if isinstance(value, list):
                conditions.append(FieldCondition(key=key, match=MatchAny(any=value)))
            else:
                conditions.append(FieldCondition(key=key, match=MatchValue(value=value)))
        return Filter(must=conditions)
