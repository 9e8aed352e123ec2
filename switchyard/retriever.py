"""
Tool Retriever Module

Provides the search side of the engine: picks the effective limit and
threshold, queries the similarity index, then ranks and groups the
candidates by owning server.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .models import GroupedTool, SearchCandidate, SearchMetadata, SearchResponse, ServerGroup
from .relevance import Embedder, SimilarityIndex
from .threshold import derive_threshold, effective_limit

logger = logging.getLogger(__name__)

FOUND_GUIDELINE = (
    "Found relevant tools. If these tools don't match exactly what you need, "
    "try another search with more specific keywords."
)
FOUND_NEXT_STEPS = "Use the found tools in your servers."
EMPTY_GUIDELINE = "No tools found. Try broadening your search or using different keywords."
EMPTY_NEXT_STEPS = "Consider searching for related capabilities or more general terms."


def _candidate_key(candidate: SearchCandidate) -> Tuple[float, str, str]:
    # Equal scores fall back to tool name, then server name
    return (-candidate.similarity, candidate.tool_name, candidate.server_name)


def rank_candidates(candidates: Iterable[SearchCandidate]) -> List[SearchCandidate]:
    """Sort candidates by similarity, highest first, with a stable name tie-break."""
    return sorted(candidates, key=_candidate_key)


def group_by_server(ranked: List[SearchCandidate]) -> List[ServerGroup]:
    """
    Group ranked candidates by server.

    Groups are ordered by their best similarity (ties by server name) and
    carry the max and mean similarity of their tools.
    """
    buckets: Dict[str, List[SearchCandidate]] = {}
    for candidate in ranked:
        buckets.setdefault(candidate.server_name, []).append(candidate)

    groups = []
    for server_name, members in buckets.items():
        members = sorted(members, key=_candidate_key)
        similarities = [m.similarity for m in members]
        groups.append(ServerGroup(
            server_name=server_name,
            tools=[
                GroupedTool(
                    name=m.tool_name,
                    description=m.description,
                    input_schema=m.input_schema,
                    similarity=m.similarity,
                    server_name=m.server_name,
                )
                for m in members
            ],
            max_similarity=max(similarities),
            avg_similarity=sum(similarities) / len(similarities),
        ))

    groups.sort(key=lambda g: (-g.max_similarity, g.server_name))
    return groups


def build_response(query: str, threshold: float, candidates: Iterable[SearchCandidate]) -> SearchResponse:
    """Rank, group and describe a set of candidates already filtered by the index."""
    ranked = rank_candidates(candidates)
    servers = group_by_server(ranked)
    found = len(ranked) > 0

    return SearchResponse(
        tools=ranked,
        servers=servers,
        metadata=SearchMetadata(
            query=query,
            threshold=threshold,
            total_results=len(ranked),
            server_count=len(servers),
            guideline=FOUND_GUIDELINE if found else EMPTY_GUIDELINE,
            next_steps=FOUND_NEXT_STEPS if found else EMPTY_NEXT_STEPS,
        ),
    )


class Retriever:
    def __init__(self, index: SimilarityIndex, embedder: Embedder):
        self.index = index
        self.embedder = embedder

    def warmup(self):
        """Pre-load the embedding model."""
        self.embedder.warmup()

    def search(self, query: str, limit: Optional[Any] = None, threshold: Optional[Any] = None) -> SearchResponse:
        """
        Retrieve tools matching the query, ranked and grouped by server.
        """
        limit_num = effective_limit(limit)
        threshold_num = derive_threshold(query, threshold)
        logger.info(f"Using similarity threshold: {threshold_num} for query: \"{query}\"")

        query_vec = self.embedder.embed(query)
        candidates = self.index.query(query_vec, limit=limit_num, threshold=threshold_num)

        return build_response(query, threshold_num, candidates)

    def get_tools_for_server(self, server_name: str) -> List[Dict[str, Any]]:
        return self.index.get_tools_for_server(server_name)
