"""
Corpus Ingest

Stores a batch of papers under a topic and links them into the graph:
papers are written first, then relationships are inferred over the whole
topic (new and previously stored papers) and written as edges.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..common.schemas import Paper
from .relationships import RelationshipInferrer
from .store import GraphStore

logger = logging.getLogger("paperkb.graph.ingest")


@dataclass
class IngestResult:
    """Counts written by one ingest"""
    topic: str
    papers_stored: int
    relationships_stored: int

    def to_dict(self) -> dict:
        return {
            "topic": self.topic,
            "papers_stored": self.papers_stored,
            "relationships_stored": self.relationships_stored,
        }


async def store_research_graph(
    store: GraphStore,
    papers: Sequence[Paper],
    topic: str,
    inferrer: Optional[RelationshipInferrer] = None,
    relationship_limit: int = 200,
) -> IngestResult:
    """
    Store papers under ``topic`` and the relationships among the topic's papers.

    Args:
        store: Destination graph store
        papers: Papers to insert or update
        topic: Topic the papers are attached to
        inferrer: Relationship inferrer (defaults to RelationshipInferrer())
        relationship_limit: Max relationships inferred for the topic

    Returns:
        IngestResult

    Raises:
        ValueError: if the topic is blank
        GraphStoreUnavailableError: if the store is not connected
    """
    topic = (topic or "").strip()
    if not topic:
        raise ValueError("Topic is required")
    if inferrer is None:
        inferrer = RelationshipInferrer()

    stored = await store.store_papers(papers, topic)
    logger.info("Stored %d papers under topic %r", stored, topic)

    corpus: List[Paper] = await store.get_papers_by_topic(topic)
    relationships = inferrer.infer(corpus, limit=relationship_limit)
    written = await store.store_relationships(relationships) if relationships else 0
    logger.info("Stored %d relationships for topic %r", written, topic)

    return IngestResult(topic=topic, papers_stored=stored, relationships_stored=written)
