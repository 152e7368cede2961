"""
Graph Store Contract

The persistence collaborator behind retrieval. A store owns papers,
topics, and relationships, and answers the three retrieval queries
(keyword, semantic, graph traversal) plus full-content lookups.

Query operations never raise for connectivity problems: a disconnected
store returns empty lists, so retrieval degrades instead of failing.
Write operations raise GraphStoreUnavailableError.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from ..common.schemas import FullContent, Paper, Relationship

# Query words that never count as keyword hits on their own
KEYWORD_STOP_WORDS = {
    "the", "and", "for", "with", "from", "into", "over", "about", "that",
    "this", "these", "those", "what", "which", "who", "whom", "when", "where",
    "why", "how", "are", "was", "were", "been", "being", "has", "have", "had",
    "does", "did", "can", "could", "should", "would", "will", "may", "might",
    "not", "all", "any", "its", "their", "our", "you", "your", "between",
    "using", "based", "via", "papers", "paper", "research",
}

_TERM_SPLIT = re.compile(r"[^\w]+")


class GraphStoreUnavailableError(RuntimeError):
    """Raised by write operations when the store is not connected."""


class PaperNotFoundError(LookupError):
    """Raised when a paper id is not present in the store."""

    def __init__(self, paper_id: str):
        super().__init__(f"Paper not found: {paper_id}")
        self.paper_id = paper_id


@dataclass
class ScoredPaper:
    """A paper with one strategy's score (similarity, relevance, or connection strength)"""
    paper: Paper
    score: float

    @property
    def id(self) -> str:
        return self.paper.id


def keyword_needles(text: str) -> List[str]:
    """Lowercased substrings a keyword hit may match.

    The whole query phrase, followed by each significant term (longer than
    two characters and not a stop word), without duplicates.
    """
    phrase = (text or "").strip().lower()
    if not phrase:
        return []
    needles = [phrase]
    for term in _TERM_SPLIT.split(phrase):
        if len(term) > 2 and term not in KEYWORD_STOP_WORDS and term not in needles:
            needles.append(term)
    return needles


def content_size(content: Union[bytes, str, None]) -> int:
    if content is None:
        return 0
    if isinstance(content, bytes):
        return len(content)
    return len(content.encode("utf-8"))


class GraphStore(ABC):
    """
    Abstract graph store.

    Implementations: InMemoryGraphStore (default, also the test double)
    and Neo4jGraphStore.
    """

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        ...

    async def connect(self) -> None:
        """Open connections; a no-op for stores without one."""

    async def close(self) -> None:
        """Release connections; a no-op for stores without one."""

    @abstractmethod
    async def store_paper(
        self,
        paper: Paper,
        topic: str,
        content: Union[bytes, str, None] = None,
    ) -> None:
        """Insert or update a paper and attach it to a topic.

        Existing records are updated, not replaced: content and local file
        path keep their stored values when the new write has none. Bytes
        content is stored as application/pdf, str content as text/plain.
        """

    async def store_papers(self, papers: Iterable[Paper], topic: str) -> int:
        count = 0
        for paper in papers:
            await self.store_paper(paper, topic)
            count += 1
        return count

    @abstractmethod
    async def store_relationships(self, relationships: Sequence[Relationship]) -> int:
        """Store relationship edges; returns the number written."""

    @abstractmethod
    async def get_full_content(self, paper_id: str) -> FullContent:
        """Full content of a paper.

        Raises:
            PaperNotFoundError: if the id is unknown
        """

    @abstractmethod
    async def keyword_search(
        self,
        text: str,
        limit: int = 10,
        topic: Optional[str] = None,
    ) -> List[ScoredPaper]:
        """Case-insensitive substring search over title, abstract, keywords, and authors.

        Score: title hit 2, abstract hit 1, any keyword hit 1. Ordered by
        score then citation count, both descending.
        """

    @abstractmethod
    async def author_search(
        self,
        name: str,
        limit: int = 10,
        topic: Optional[str] = None,
    ) -> List[Paper]:
        """Papers with an author whose name contains ``name``, case-insensitively.

        The name is matched as one phrase against author names only.
        Ordered by citation count, descending.
        """

    @abstractmethod
    async def semantic_search(
        self,
        vector: Sequence[float],
        limit: int = 10,
        topic: Optional[str] = None,
        floor: float = 0.1,
    ) -> List[ScoredPaper]:
        """Papers whose embedding has cosine similarity above ``floor``.

        Papers without an embedding or with a different dimension are
        skipped.
        """

    @abstractmethod
    async def graph_search(
        self,
        seed_ids: Sequence[str],
        limit: int = 10,
        topic: Optional[str] = None,
        depth: int = 2,
    ) -> List[ScoredPaper]:
        """Papers within ``depth`` hops of any seed, excluding the seeds.

        Score is the number of distinct relationship edges on paths from
        the seeds to the paper. Ordered by score then citation count.
        """

    @abstractmethod
    async def get_papers_by_topic(self, topic: str, limit: Optional[int] = None) -> List[Paper]:
        """Papers attached to a topic, most cited first."""

    @abstractmethod
    async def add_embeddings_to_existing_papers(self, batch_size: int = 10) -> int:
        """Compute embeddings for stored papers lacking one; returns the count updated."""

    @abstractmethod
    async def get_stats(self) -> Dict[str, Any]:
        ...
