"""
Content and Passages

Full-content fetching and passage extraction shared by single-question
chat and multi-step investigation. Both pipelines receive these as plain
functions rather than through a common base class.

Passage sources:
- full_text: a 500-word chunk of plain-text content scoring above 0.3
- abstract:  the abstract, at 0.8 when full content exists but is not
             extractable (PDF), or 0.5 when there is no content at all
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Union

from ..common.schemas import ContentType
from ..graph.store import GraphStore
from .hybrid_retriever import SearchResult

logger = logging.getLogger("paperkb.retriever.passages")

CHUNK_WORDS = 500
MIN_CHUNK_CHARS = 50
RELEVANCE_THRESHOLD = 0.3
NON_EXTRACTABLE_RELEVANCE = 0.8
NO_CONTENT_RELEVANCE = 0.5
MAX_PASSAGES = 10

_EDGE_PUNCTUATION = re.compile(r"^[^\w]+|[^\w]+$")


@dataclass
class PaperContent:
    """A retrieved paper together with whatever content the store returned"""
    result: SearchResult
    content: Union[bytes, str, None] = None
    content_type: Optional[ContentType] = None
    has_full_content: bool = False

    @property
    def id(self) -> str:
        return self.result.id

    @property
    def title(self) -> str:
        return self.result.paper.title

    @property
    def paper(self):
        return self.result.paper


@dataclass
class Passage:
    """A scored excerpt of a paper"""
    paper_id: str
    paper_title: str
    content: str
    relevance: float
    source: str  # "full_text" or "abstract"

    def to_dict(self) -> dict:
        return {
            "paper_id": self.paper_id,
            "paper_title": self.paper_title,
            "content": self.content,
            "relevance": round(self.relevance, 4),
            "source": self.source,
        }


async def fetch_full_content(
    store: GraphStore,
    results: List[SearchResult],
    top_n: int = 5,
    timeout: float = 10.0,
) -> List[PaperContent]:
    """
    Fetch full content for the top ``top_n`` results, in result order.

    A failed or timed-out fetch keeps the paper with its abstract as
    content and ``has_full_content=False``.
    """
    async def fetch(result: SearchResult) -> PaperContent:
        try:
            full = await asyncio.wait_for(store.get_full_content(result.id), timeout=timeout)
            return PaperContent(
                result=result,
                content=full.content,
                content_type=full.content_type,
                has_full_content=full.has_full_content,
            )
        except Exception as e:
            logger.warning("Could not get content for paper %s: %s", result.id, e)
            return PaperContent(
                result=result,
                content=result.paper.abstract or "",
                content_type=ContentType.TEXT,
                has_full_content=False,
            )

    return list(await asyncio.gather(*(fetch(r) for r in results[:top_n])))


def chunk_text(text: str, max_words: int = CHUNK_WORDS) -> List[str]:
    """Split into ``max_words``-word chunks, dropping chunks of 50 characters or fewer."""
    words = text.split()
    chunks = []
    for start in range(0, len(words), max_words):
        chunk = " ".join(words[start:start + max_words])
        if len(chunk.strip()) > MIN_CHUNK_CHARS:
            chunks.append(chunk)
    return chunks


def question_terms(question: str) -> List[str]:
    """Distinct lowercased question words longer than 3 characters."""
    terms = []
    for word in question.lower().split():
        word = _EDGE_PUNCTUATION.sub("", word)
        if len(word) > 3 and word not in terms:
            terms.append(word)
    return terms


def text_relevance(text: str, question: str) -> float:
    """Fraction of the question's terms that occur in ``text``."""
    terms = question_terms(question)
    if not terms:
        return 0.0
    lowered = text.lower()
    return sum(1 for t in terms if t in lowered) / len(terms)


def extract_relevant_passages(
    papers: List[PaperContent],
    question: str,
    limit: int = MAX_PASSAGES,
) -> List[Passage]:
    """
    Extract and rank passages across papers.

    Returns:
        Top ``limit`` passages by relevance, descending
    """
    passages: List[Passage] = []

    for item in papers:
        if item.content and item.has_full_content:
            if item.content_type == ContentType.TEXT and isinstance(item.content, str):
                for chunk in chunk_text(item.content):
                    relevance = text_relevance(chunk, question)
                    if relevance > RELEVANCE_THRESHOLD:
                        passages.append(Passage(
                            paper_id=item.id,
                            paper_title=item.title,
                            content=chunk,
                            relevance=relevance,
                            source="full_text",
                        ))
            else:
                passages.append(Passage(
                    paper_id=item.id,
                    paper_title=item.title,
                    content=item.paper.abstract or "Abstract not available",
                    relevance=NON_EXTRACTABLE_RELEVANCE,
                    source="abstract",
                ))
        else:
            passages.append(Passage(
                paper_id=item.id,
                paper_title=item.title,
                content=item.paper.abstract or "Content not available",
                relevance=NO_CONTENT_RELEVANCE,
                source="abstract",
            ))

    passages.sort(key=lambda p: -p.relevance)
    return passages[:limit]


def format_passages(passages: List[Passage]) -> str:
    """Render passages as the RESEARCH CONTEXT block of a prompt."""
    return "\n\n".join(
        f"[Source {i}: {p.paper_title}]\n{p.content}"
        for i, p in enumerate(passages, 1)
    )
