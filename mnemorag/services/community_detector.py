"""
Community Detector - hierarchical Louvain clustering of the entity graph.

Level 0 clusters entities, weighting edges by relationship strength. Each
higher level clusters the communities below it as super-nodes. The whole
hierarchy is computed in memory first and then swapped into the store in
one transaction.
"""

from mnemorag.core.graph_store.base import GraphStore
from mnemorag.models.graph import Community, CommunityReplacement
from mnemorag.services.graph_builder import GraphBuilder, WeightedGraph
from mnemorag.utils.id_generator import generate_community_id
from mnemorag.utils.logger import get_logger

logger = get_logger(__name__)

# Minimum modularity gain for a node to leave its community
EPSILON = 1e-12


def louvain_partition(
    graph: WeightedGraph, resolution: float = 1.0, max_iterations: int = 100
) -> dict[str, str]:
    """
    Local-moving phase of Louvain, run until no node moves.

    Nodes are visited in ascending id order and each starts in a community
    keyed by its own id. A node joins the neighbouring community with the
    largest gain; equal gains go to the lowest community key and a node
    only leaves its own community for a strictly better one, so the result
    is a pure function of the graph.

    Returns:
        Mapping of node id to community key (the id of one of its members)
    """
    nodes = graph.nodes
    partition = {node: node for node in nodes}
    two_m = graph.total_weight()
    if two_m == 0:
        return partition

    degrees = {node: graph.degree(node) for node in nodes}
    totals = dict(degrees)

    for _ in range(max_iterations):
        moved = False
        for node in nodes:
            current = partition[node]
            k_i = degrees[node]
            totals[current] -= k_i

            links: dict[str, float] = {}
            for neighbor, weight in graph.adjacency[node].items():
                if neighbor != node:
                    community = partition[neighbor]
                    links[community] = links.get(community, 0.0) + weight

            best = current
            best_gain = links.get(current, 0.0) - resolution * totals[current] * k_i / two_m
            for community in sorted(links):
                gain = links[community] - resolution * totals[community] * k_i / two_m
                if gain > best_gain + EPSILON:
                    best, best_gain = community, gain

            totals[best] += k_i
            partition[node] = best
            if best != current:
                moved = True

        if not moved:
            break

    return partition


class CommunityDetector:
    """
    Deterministic hierarchical community detection.

    Community ids are derived from level and member set, so an unchanged
    cluster keeps its id (and its report) across rebuilds.

    Example:
        >>> detector = CommunityDetector(graph_store)
        >>> replacement = await detector.rebuild(levels=2)
        >>> replacement.removed_reports  # reports of communities that no longer exist
    """

    def __init__(
        self,
        graph_store: GraphStore,
        resolutions: list[float] | None = None,
        max_iterations: int = 100,
    ):
        self.graph_store = graph_store
        self.resolutions = resolutions
        self.max_iterations = max_iterations
        self.graph_builder = GraphBuilder(graph_store)

    def resolution_for(self, level: int) -> float:
        if self.resolutions and level < len(self.resolutions):
            return self.resolutions[level]
        return 1.0 / (level + 1)

    async def detect(self, levels: int = 1) -> list[Community]:
        """
        Compute every community of levels 0..levels-1 without persisting.

        Entities without relationships are not clustered.
        """
        graph = await self.graph_builder.build()
        if not graph.adjacency:
            return []

        communities: list[Community] = []
        # Super-node key -> entity ids it covers
        members: dict[str, set[str]] = {node: {node} for node in graph.nodes}

        for level in range(levels):
            resolution = self.resolution_for(level)
            partition = louvain_partition(graph, resolution, self.max_iterations)
            contributions = graph.modularity_contributions(partition, resolution)

            groups: dict[str, list[str]] = {}
            for node in graph.nodes:
                groups.setdefault(partition[node], []).append(node)

            level_members: dict[str, set[str]] = {}
            assignment: dict[str, str] = {}
            for key, nodes in groups.items():
                entity_ids: set[str] = set()
                for node in nodes:
                    entity_ids |= members[node]
                community_id = generate_community_id(level, sorted(entity_ids))
                parent_id = self._dominant(nodes, members) if level > 0 else None

                communities.append(
                    Community(
                        id=community_id,
                        level=level,
                        parent_id=parent_id,
                        entity_count=len(entity_ids),
                        resolution=resolution,
                        modularity=contributions.get(key, 0.0),
                        member_ids=sorted(entity_ids),
                    )
                )
                level_members[community_id] = entity_ids
                for node in nodes:
                    assignment[node] = community_id

            logger.bind(
                level=level,
                communities=len(groups),
                nodes=len(graph.adjacency),
                resolution=resolution,
                modularity=round(sum(contributions.values()), 6),
            ).debug(
                f"Level {level}: {len(groups)} communities from {len(graph.adjacency)} nodes",
            )

            graph = graph.aggregate(assignment)
            members = level_members

        return communities

    @staticmethod
    def _dominant(nodes: list[str], members: dict[str, set[str]]) -> str:
        """Lower-level community contributing the most entities, lowest id on ties."""
        return min(nodes, key=lambda node: (-len(members[node]), node))

    async def rebuild(self, levels: int = 1) -> CommunityReplacement:
        """Recompute the hierarchy and atomically replace the stored one."""
        communities = await self.detect(levels)
        replacement = await self.graph_store.replace_communities(communities)
        logger.bind(
            levels=levels,
            communities=len(communities),
            created=len(replacement.created_ids),
            retained=len(replacement.retained_ids),
            removed=len(replacement.removed_ids),
        ).info(
            f"Community rebuild: {len(communities)} communities across {levels} level(s)",
        )
        return replacement

    async def hierarchy_matches(self, levels: int) -> bool:
        """
        Whether the stored hierarchy has exactly the requested levels.

        An empty store matches only while the graph has no relationships.
        """
        stats = await self.graph_store.get_stats()
        stored = {level for level, count in stats.communities_per_level.items() if count > 0}
        if not stored:
            return stats.relationships == 0
        return stored == set(range(levels))
