"""
Weighted entity graph used for clustering and graph statistics.
"""

from collections import Counter, deque

from mnemorag.core.graph_store.base import GraphStore
from mnemorag.models.graph import Relationship
from mnemorag.utils.logger import get_logger

logger = get_logger(__name__)


class WeightedGraph:
    """
    Undirected weighted graph over string node ids.

    `adjacency[a][b]` is the summed strength of every relationship between
    a and b, in either direction. Self-loops hold twice the internal weight,
    so a node's degree is always the sum of its adjacency row.
    """

    def __init__(self, adjacency: dict[str, dict[str, float]] | None = None):
        self.adjacency: dict[str, dict[str, float]] = adjacency or {}

    @classmethod
    def from_relationships(cls, relationships: list[Relationship]) -> "WeightedGraph":
        graph = cls()
        for relationship in relationships:
            graph.add_edge(
                relationship.source_entity_id,
                relationship.target_entity_id,
                float(relationship.strength),
            )
        return graph

    def add_edge(self, a: str, b: str, weight: float) -> None:
        if a == b:
            row = self.adjacency.setdefault(a, {})
            row[a] = row.get(a, 0.0) + 2 * weight
            return
        self.adjacency.setdefault(a, {})
        self.adjacency.setdefault(b, {})
        self.adjacency[a][b] = self.adjacency[a].get(b, 0.0) + weight
        self.adjacency[b][a] = self.adjacency[b].get(a, 0.0) + weight

    @property
    def nodes(self) -> list[str]:
        return sorted(self.adjacency)

    @property
    def edge_count(self) -> int:
        pairs = sum(
            1 for node, row in self.adjacency.items() for other in row if other != node
        )
        loops = sum(1 for node, row in self.adjacency.items() if node in row)
        return pairs // 2 + loops

    def degree(self, node: str) -> float:
        return sum(self.adjacency.get(node, {}).values())

    def total_weight(self) -> float:
        """Sum of all degrees, i.e. 2m."""
        return sum(self.degree(node) for node in self.adjacency)

    def neighbors(self, node: str, min_weight: float = 0.0) -> list[str]:
        return sorted(
            other
            for other, weight in self.adjacency.get(node, {}).items()
            if other != node and weight >= min_weight
        )

    def connected_components(self) -> list[set[str]]:
        """Components in ascending order of their smallest node id."""
        seen: set[str] = set()
        components: list[set[str]] = []

        for start in self.nodes:
            if start in seen:
                continue
            stack = [start]
            component: set[str] = set()
            seen.add(start)
            while stack:
                node = stack.pop()
                component.add(node)
                for neighbor in self.adjacency[node]:
                    if neighbor not in seen:
                        seen.add(neighbor)
                        stack.append(neighbor)
            components.append(component)

        return components

    def aggregate(self, partition: dict[str, str]) -> "WeightedGraph":
        """
        Collapse nodes into super-nodes keyed by partition value.

        Edge weights between members of the same super-node become its
        self-loop; weights between super-nodes are summed.
        """
        adjacency: dict[str, dict[str, float]] = {}
        for node, row in self.adjacency.items():
            source = partition[node]
            target_row = adjacency.setdefault(source, {})
            for other, weight in row.items():
                target = partition[other]
                target_row[target] = target_row.get(target, 0.0) + weight
        return WeightedGraph(adjacency)

    def modularity(self, partition: dict[str, str], resolution: float = 1.0) -> float:
        """Newman modularity of a partition, with resolution parameter."""
        return sum(self.modularity_contributions(partition, resolution).values())

    def modularity_contributions(
        self, partition: dict[str, str], resolution: float = 1.0
    ) -> dict[str, float]:
        """Each community's term of the modularity sum."""
        two_m = self.total_weight()
        if two_m == 0:
            return {}

        internal: Counter[str] = Counter()
        totals: Counter[str] = Counter()
        for node, row in self.adjacency.items():
            community = partition[node]
            totals[community] += sum(row.values())
            for other, weight in row.items():
                if partition[other] == community:
                    internal[community] += weight

        return {
            c: internal[c] / two_m - resolution * (totals[c] / two_m) ** 2 for c in totals
        }


class GraphBuilder:
    """
    Loads the entity graph from the store and answers structural queries.

    Example:
        >>> builder = GraphBuilder(graph_store)
        >>> graph = await builder.build()
        >>> stats = await builder.get_statistics()
    """

    def __init__(self, graph_store: GraphStore):
        self.graph_store = graph_store

    async def build(self) -> WeightedGraph:
        """Weighted undirected graph of every entity that has a relationship."""
        relationships = await self.graph_store.list_relationships()
        graph = WeightedGraph.from_relationships(relationships)
        logger.bind(nodes=len(graph.adjacency), edges=graph.edge_count).debug(
            f"Built weighted graph: {len(graph.adjacency)} nodes, {graph.edge_count} edges",
        )
        return graph

    async def get_neighborhood(
        self, entity_id: str, max_depth: int = 2, min_edge_weight: float = 3
    ) -> dict[str, int]:
        """
        Entities reachable from `entity_id` over edges of at least `min_edge_weight`.

        Returns:
            Mapping of entity id to hop distance, excluding the start entity
        """
        graph = await self.build()
        distances: dict[str, int] = {entity_id: 0}
        queue = deque([entity_id])

        while queue:
            current = queue.popleft()
            if distances[current] >= max_depth:
                continue
            for neighbor in graph.neighbors(current, min_weight=min_edge_weight):
                if neighbor not in distances:
                    distances[neighbor] = distances[current] + 1
                    queue.append(neighbor)

        distances.pop(entity_id)
        return distances

    async def get_statistics(self) -> dict:
        """
        Structural statistics of the graph.

        Returns:
            Dict with node/edge counts, average degree, connected components,
            entity type distribution and community counts per level
        """
        graph = await self.build()
        entities = await self.graph_store.list_entities()
        stats = await self.graph_store.get_stats()

        node_count = len(entities)
        edge_count = stats.relationships
        components = graph.connected_components()
        isolated = node_count - len(graph.adjacency)

        return {
            "node_count": node_count,
            "edge_count": edge_count,
            "average_degree": (2 * edge_count / node_count) if node_count else 0.0,
            "connected_components": len(components) + isolated,
            "largest_component": max((len(c) for c in components), default=1 if node_count else 0),
            "isolated_entities": isolated,
            "entity_types": dict(
                sorted(Counter(entity.entity_type.value for entity in entities).items())
            ),
            "communities_per_level": stats.communities_per_level,
            "reports": stats.reports,
        }
