"""
In-Memory Graph Store

Reference GraphStore that keeps papers, topics, and relationships in
process memory and answers all three retrieval queries in Python. Default
backend for local use and the store used throughout the test suite.
"""

import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple, Union

from ..common.embedding_engine import EmbeddingEngine, cosine_similarity, get_embedding_engine
from ..common.schemas import ContentType, FullContent, Paper, Relationship
from .store import (
    GraphStore,
    GraphStoreUnavailableError,
    PaperNotFoundError,
    ScoredPaper,
    content_size,
    keyword_needles,
)

logger = logging.getLogger("paperkb.graph.memory_store")


class InMemoryGraphStore(GraphStore):
    """
    Dictionary-backed graph store.

    Relationships are stored directed but traversed undirected. Edges whose
    endpoints are not stored papers are kept and ignored by traversal.
    """

    def __init__(self, embedding_engine: Optional[EmbeddingEngine] = None):
        self._engine = embedding_engine if embedding_engine is not None else get_embedding_engine()
        self._papers: Dict[str, Paper] = {}
        self._topics: Dict[str, List[str]] = defaultdict(list)
        self._edges: Dict[Tuple[str, str, str], Relationship] = {}
        self._connected = True

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._connected = True

    async def close(self) -> None:
        self._connected = False

    def _require_connection(self) -> None:
        if not self._connected:
            raise GraphStoreUnavailableError("In-memory graph store is closed")

    def _in_topic(self, paper_id: str, topic: Optional[str]) -> bool:
        return topic is None or paper_id in self._topics.get(topic, ())

    # =========================================================================
    # Writes
    # =========================================================================

    async def store_paper(
        self,
        paper: Paper,
        topic: str,
        content: Union[bytes, str, None] = None,
    ) -> None:
        self._require_connection()

        content = content if content is not None else paper.full_content
        existing = self._papers.get(paper.id)

        update: Dict[str, Any] = {}
        if content is not None:
            update["full_content"] = content
            update["content_type"] = ContentType.PDF if isinstance(content, bytes) else ContentType.TEXT
        elif existing is not None:
            update["full_content"] = existing.full_content
            update["content_type"] = existing.content_type
        if paper.local_file_path is None and existing is not None:
            update["local_file_path"] = existing.local_file_path

        merged = paper.model_copy(update=update)
        if merged.embedding is None:
            merged.embedding = self._engine.embed(merged.embedding_text)
        merged.has_full_content = merged.full_content is not None

        self._papers[paper.id] = merged
        if topic and paper.id not in self._topics[topic]:
            self._topics[topic].append(paper.id)

        logger.debug(
            "Stored paper %s (%s, %d bytes of content)",
            paper.id, "updated" if existing else "new", content_size(merged.full_content),
        )

    async def store_relationships(self, relationships: Sequence[Relationship]) -> int:
        self._require_connection()
        for rel in relationships:
            key = (rel.source_id, rel.target_id, rel.relationship_type.value)
            self._edges[key] = rel
        return len(relationships)

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_full_content(self, paper_id: str) -> FullContent:
        paper = self._papers.get(paper_id)
        if paper is None:
            raise PaperNotFoundError(paper_id)
        return FullContent(
            paper_id=paper.id,
            title=paper.title,
            content=paper.full_content,
            content_type=paper.content_type,
            has_full_content=paper.has_full_content,
            original_size=content_size(paper.full_content),
        )

    async def get_paper(self, paper_id: str) -> Optional[Paper]:
        return self._papers.get(paper_id)

    async def keyword_search(
        self,
        text: str,
        limit: int = 10,
        topic: Optional[str] = None,
    ) -> List[ScoredPaper]:
        if not self._connected:
            return []
        needles = keyword_needles(text)
        if not needles:
            return []

        def hit(value: str) -> bool:
            value = (value or "").lower()
            return any(n in value for n in needles)

        scored = []
        for paper in self._papers.values():
            if not self._in_topic(paper.id, topic):
                continue
            title_hit = hit(paper.title)
            abstract_hit = hit(paper.abstract)
            keyword_hit = any(hit(kw) for kw in paper.keywords)
            author_hit = any(hit(a) for a in paper.authors)
            if not (title_hit or abstract_hit or keyword_hit or author_hit):
                continue
            relevance = 2 * title_hit + abstract_hit + keyword_hit
            scored.append(ScoredPaper(paper=paper, score=float(relevance)))

        scored.sort(key=lambda s: (-s.score, -s.paper.citation_count))
        return scored[:limit]

    async def author_search(
        self,
        name: str,
        limit: int = 10,
        topic: Optional[str] = None,
    ) -> List[Paper]:
        needle = (name or "").strip().lower()
        if not self._connected or not needle:
            return []
        papers = [
            p for p in self._papers.values()
            if self._in_topic(p.id, topic) and any(needle in a.lower() for a in p.authors)
        ]
        papers.sort(key=lambda p: -p.citation_count)
        return papers[:limit]

    async def semantic_search(
        self,
        vector: Sequence[float],
        limit: int = 10,
        topic: Optional[str] = None,
        floor: float = 0.1,
    ) -> List[ScoredPaper]:
        if not self._connected or not vector:
            return []

        scored = []
        for paper in self._papers.values():
            if not self._in_topic(paper.id, topic):
                continue
            if not paper.embedding or len(paper.embedding) != len(vector):
                continue
            similarity = cosine_similarity(paper.embedding, vector)
            if similarity > floor:
                scored.append(ScoredPaper(paper=paper, score=similarity))

        scored.sort(key=lambda s: -s.score)
        return scored[:limit]

    def _adjacency(self) -> Dict[str, List[Tuple[int, str]]]:
        """Undirected adjacency over edges whose endpoints both exist."""
        adjacency: Dict[str, List[Tuple[int, str]]] = defaultdict(list)
        for edge_id, rel in enumerate(self._edges.values()):
            if rel.source_id not in self._papers or rel.target_id not in self._papers:
                continue
            adjacency[rel.source_id].append((edge_id, rel.target_id))
            adjacency[rel.target_id].append((edge_id, rel.source_id))
        return adjacency

    async def graph_search(
        self,
        seed_ids: Sequence[str],
        limit: int = 10,
        topic: Optional[str] = None,
        depth: int = 2,
    ) -> List[ScoredPaper]:
        if not self._connected or not seed_ids:
            return []

        seeds = set(seed_ids)
        adjacency = self._adjacency()
        reached: Dict[str, Set[int]] = defaultdict(set)

        def walk(node: str, path_edges: List[int], remaining: int) -> None:
            for edge_id, neighbor in adjacency.get(node, ()):
                if edge_id in path_edges:
                    continue
                edges = path_edges + [edge_id]
                if neighbor not in seeds:
                    reached[neighbor].update(edges)
                if remaining > 1:
                    walk(neighbor, edges, remaining - 1)

        for seed in seeds:
            if seed in self._papers:
                walk(seed, [], depth)

        scored = [
            ScoredPaper(paper=self._papers[pid], score=float(len(edges)))
            for pid, edges in reached.items()
            if self._in_topic(pid, topic)
        ]
        scored.sort(key=lambda s: (-s.score, -s.paper.citation_count))
        return scored[:limit]

    async def get_papers_by_topic(self, topic: str, limit: Optional[int] = None) -> List[Paper]:
        if not self._connected:
            return []
        papers = [self._papers[pid] for pid in self._topics.get(topic, ())]
        papers.sort(key=lambda p: -p.citation_count)
        return papers[:limit] if limit is not None else papers

    async def get_all_papers(self) -> List[Paper]:
        return list(self._papers.values())

    async def add_embeddings_to_existing_papers(self, batch_size: int = 10) -> int:
        self._require_connection()
        pending = [
            p for p in self._papers.values()
            if p.embedding is None and (p.title or p.abstract)
        ]
        for start in range(0, len(pending), batch_size):
            for paper in pending[start:start + batch_size]:
                paper.embedding = self._engine.embed(paper.embedding_text)
            logger.debug("Embedded batch of %d papers", len(pending[start:start + batch_size]))
        return len(pending)

    async def get_stats(self) -> Dict[str, Any]:
        papers = list(self._papers.values())
        return {
            "connected": self._connected,
            "backend": "memory",
            "papers": len(papers),
            "papers_with_embeddings": sum(1 for p in papers if p.embedding is not None),
            "papers_with_content": sum(1 for p in papers if p.has_full_content),
            "topics": len(self._topics),
            "relationships": len(self._edges),
        }
