"""
Hybrid Retriever

Runs three retrieval strategies against the graph store concurrently and
merges them into one ranked list:
- semantic: cosine similarity of local embeddings
- keyword: weighted substring hits on title/abstract/keywords/authors
- graph: papers connected to the top keyword hits

A strategy that fails or times out contributes nothing; the merge always
proceeds with whatever succeeded.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..common.config import RetrievalConfig
from ..common.embedding_engine import EmbeddingEngine, get_embedding_engine
from ..common.schemas import Paper
from ..graph.store import GraphStore, ScoredPaper

logger = logging.getLogger("paperkb.retriever.hybrid_retriever")

SEMANTIC = "semantic"
KEYWORD = "keyword"
GRAPH = "graph"

DEFAULT_WEIGHTS = {SEMANTIC: 0.5, KEYWORD: 0.3, GRAPH: 0.2}

_SCORE_ATTR = {SEMANTIC: "similarity", KEYWORD: "relevance", GRAPH: "connection_strength"}


class InvalidQuestionError(ValueError):
    """Raised for an empty or whitespace-only question or query."""


def require_text(text: Optional[str], what: str = "Question") -> str:
    if not text or not text.strip():
        raise InvalidQuestionError(f"{what} is required")
    return text.strip()


@dataclass
class SearchResult:
    """A paper with the scores each strategy gave it"""
    paper: Paper
    similarity: Optional[float] = None  # semantic
    relevance: Optional[float] = None  # keyword
    connection_strength: Optional[float] = None  # graph
    combined_score: float = 0.0
    sources: List[str] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.paper.id

    @property
    def title(self) -> str:
        return self.paper.title

    def strategy_score(self, strategy: str) -> Optional[float]:
        return getattr(self, _SCORE_ATTR[strategy])

    def to_dict(self) -> dict:
        data = self.paper.summary()
        data.update({
            "abstract": self.paper.abstract,
            "similarity": self.similarity,
            "relevance": self.relevance,
            "connection_strength": self.connection_strength,
            "combined_score": round(self.combined_score, 4),
            "sources": list(self.sources),
        })
        return data


@dataclass
class HybridSearchResults:
    """Per-strategy results plus the merged ranking"""
    semantic_results: List[SearchResult] = field(default_factory=list)
    keyword_results: List[SearchResult] = field(default_factory=list)
    graph_results: List[SearchResult] = field(default_factory=list)
    combined_results: List[SearchResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "semantic_results": [r.to_dict() for r in self.semantic_results],
            "keyword_results": [r.to_dict() for r in self.keyword_results],
            "graph_results": [r.to_dict() for r in self.graph_results],
            "combined_results": [r.to_dict() for r in self.combined_results],
        }


def _as_results(scored: List[ScoredPaper], strategy: str) -> List[SearchResult]:
    """Wrap one strategy's hits, keeping only the first hit per paper id."""
    seen = set()
    results = []
    for hit in scored:
        if hit.id in seen:
            continue
        seen.add(hit.id)
        result = SearchResult(paper=hit.paper, sources=[strategy])
        setattr(result, _SCORE_ATTR[strategy], hit.score)
        results.append(result)
    return results


def combine_search_results(
    semantic: List[SearchResult],
    keyword: List[SearchResult],
    graph: List[SearchResult],
    weights: Optional[Dict[str, float]] = None,
    multi_source_bonus: float = 0.1,
) -> List[SearchResult]:
    """
    Merge per-strategy results into one record per paper.

    combined = sum(strategy score x strategy weight) over the strategies
    that found the paper, plus ``multi_source_bonus`` for each strategy
    beyond the first.

    Returns:
        Merged results sorted by combined score (then citation count), descending
    """
    weights = weights or DEFAULT_WEIGHTS
    merged: Dict[str, SearchResult] = {}

    for strategy, results in ((SEMANTIC, semantic), (KEYWORD, keyword), (GRAPH, graph)):
        for result in results:
            score = result.strategy_score(strategy) or 0.0
            record = merged.get(result.id)
            if record is None:
                record = SearchResult(paper=result.paper)
                merged[result.id] = record
            if strategy in record.sources:
                continue
            setattr(record, _SCORE_ATTR[strategy], score)
            record.sources.append(strategy)
            record.combined_score += score * weights.get(strategy, 0.0)

    for record in merged.values():
        if len(record.sources) > 1:
            record.combined_score += multi_source_bonus * (len(record.sources) - 1)

    return sorted(
        merged.values(),
        key=lambda r: (-r.combined_score, -r.paper.citation_count),
    )


class HybridRetriever:
    """
    Hybrid semantic + keyword + graph retrieval.

    Features:
    - Concurrent strategies with per-strategy timeouts
    - Optional topic scoping for every strategy
    - Weighted merge with a multi-source bonus
    """

    def __init__(
        self,
        store: GraphStore,
        embedding_engine: Optional[EmbeddingEngine] = None,
        config: Optional[RetrievalConfig] = None,
    ):
        """
        Initialize retriever.

        Args:
            store: Graph store answering the three queries
            embedding_engine: Embeds the query for the semantic strategy
            config: Weights, floors, and timeouts (defaults if omitted)
        """
        self._store = store
        self._engine = embedding_engine if embedding_engine is not None else get_embedding_engine()
        self._config = config if config is not None else RetrievalConfig()

    @property
    def store(self) -> GraphStore:
        return self._store

    async def search(
        self,
        query: str,
        limit: Optional[int] = None,
        topic: Optional[str] = None,
    ) -> HybridSearchResults:
        """
        Run all three strategies and merge.

        Args:
            query: Free-text query
            limit: Max results per strategy and in the merged list
            topic: Restrict every strategy to one topic

        Returns:
            HybridSearchResults; empty lists when the store is unreachable

        Raises:
            InvalidQuestionError: if the query is empty
        """
        query = require_text(query, "Search query")
        limit = limit or self._config.default_limit

        semantic, keyword, graph = await asyncio.gather(
            self._run(SEMANTIC, self._semantic_search(query, limit, topic)),
            self._run(KEYWORD, self._store.keyword_search(query, limit, topic)),
            self._run(GRAPH, self._graph_search(query, limit, topic)),
        )

        semantic_results = _as_results(semantic, SEMANTIC)
        keyword_results = _as_results(keyword, KEYWORD)
        graph_results = _as_results(graph, GRAPH)

        combined = combine_search_results(
            semantic_results,
            keyword_results,
            graph_results,
            weights=self._config.weights,
            multi_source_bonus=self._config.multi_source_bonus,
        )

        logger.info(
            "Hybrid search %r: %d semantic, %d keyword, %d graph, %d combined",
            query, len(semantic_results), len(keyword_results), len(graph_results), len(combined),
        )

        return HybridSearchResults(
            semantic_results=semantic_results,
            keyword_results=keyword_results,
            graph_results=graph_results,
            combined_results=combined[:limit],
        )

    async def semantic_search(
        self,
        query: str,
        limit: Optional[int] = None,
        topic: Optional[str] = None,
    ) -> List[SearchResult]:
        """Semantic strategy alone."""
        query = require_text(query, "Search query")
        limit = limit or self._config.default_limit
        hits = await self._run(SEMANTIC, self._semantic_search(query, limit, topic))
        return _as_results(hits, SEMANTIC)

    async def _run(self, strategy: str, coro) -> List[ScoredPaper]:
        """Await one strategy under the retrieval timeout; failures yield []."""
        try:
            return await asyncio.wait_for(coro, timeout=self._config.timeout)
        except asyncio.TimeoutError:
            logger.warning("%s search timed out after %.1fs", strategy, self._config.timeout)
            return []
        except Exception as e:
            logger.warning("%s search failed: %s", strategy, e)
            return []

    async def _semantic_search(self, query: str, limit: int, topic: Optional[str]) -> List[ScoredPaper]:
        vector = self._engine.embed(query)
        if not any(vector):
            logger.debug("Query %r embeds to the zero vector", query)
            return []
        return await self._store.semantic_search(
            vector, limit, topic, floor=self._config.semantic_floor,
        )

    async def _graph_search(self, query: str, limit: int, topic: Optional[str]) -> List[ScoredPaper]:
        seeds = await self._store.keyword_search(query, self._config.graph_seed_count, topic)
        if not seeds:
            return []
        return await self._store.graph_search(
            [s.id for s in seeds], limit, topic, depth=self._config.graph_depth,
        )
