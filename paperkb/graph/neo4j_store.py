"""
Neo4j Graph Store

GraphStore backed by Neo4j through the async driver.

Graph model:
- (:Paper {id, title, abstract, ..., embedding, file_content})
- (:Topic {name}), (:Paper)-[:BELONGS_TO]->(:Topic)
- (:Author {name}), (:Author)-[:AUTHORED]->(:Paper)
- (:Paper)-[:RELATED_TO {type, strength}]->(:Paper)

Full content is stored base64-encoded on the paper node. Cosine
similarity uses the Graph Data Science function gds.similarity.cosine.
"""

import base64
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from neo4j import AsyncDriver, AsyncGraphDatabase, Query

from ..common.config import GraphConfig
from ..common.embedding_engine import EmbeddingEngine, get_embedding_engine
from ..common.schemas import ContentType, FullContent, Paper, Relationship
from .store import (
    GraphStore,
    GraphStoreUnavailableError,
    PaperNotFoundError,
    ScoredPaper,
    content_size,
    keyword_needles,
)

logger = logging.getLogger("paperkb.graph.neo4j_store")

_TOPIC_FILTER = "($topic IS NULL OR EXISTS { (p)-[:BELONGS_TO]->(:Topic {name: $topic}) })"

STORE_PAPER_QUERY = """
MERGE (t:Topic {name: $topic})
  ON CREATE SET t.created_at = datetime()
WITH t
MERGE (p:Paper {id: $id})
  ON CREATE SET p.created_at = datetime()
SET p.title = $title, p.abstract = $abstract, p.year = $year,
    p.citation_count = $citation_count, p.venue = $venue, p.url = $url,
    p.doi = $doi, p.authors = $authors, p.keywords = $keywords,
    p.references = $references, p.citations = $citations,
    p.embedding = $embedding, p.embedding_dimension = size($embedding),
    p.file_content = COALESCE($file_content, p.file_content),
    p.content_type = COALESCE($content_type, p.content_type),
    p.original_size = COALESCE($original_size, p.original_size),
    p.local_file_path = COALESCE($local_file_path, p.local_file_path),
    p.last_updated = datetime()
SET p.has_full_content = p.file_content IS NOT NULL
MERGE (p)-[:BELONGS_TO]->(t)
WITH p
UNWIND $authors AS author_name
MERGE (a:Author {name: author_name})
MERGE (a)-[:AUTHORED]->(p)
"""

STORE_RELATIONSHIP_QUERY = """
MATCH (p1:Paper {id: $source_id})
MATCH (p2:Paper {id: $target_id})
MERGE (p1)-[r:RELATED_TO {type: $type}]->(p2)
  ON CREATE SET r.created_at = datetime()
SET r.strength = $strength
"""

FULL_CONTENT_QUERY = """
MATCH (p:Paper {id: $paper_id})
RETURN p.title AS title, p.file_content AS file_content,
       p.content_type AS content_type, p.original_size AS original_size
"""

KEYWORD_QUERY = f"""
MATCH (p:Paper)
WHERE {_TOPIC_FILTER}
WITH p,
  any(n IN $needles WHERE toLower(coalesce(p.title, '')) CONTAINS n) AS title_hit,
  any(n IN $needles WHERE toLower(coalesce(p.abstract, '')) CONTAINS n) AS abstract_hit,
  any(n IN $needles WHERE any(kw IN coalesce(p.keywords, []) WHERE toLower(kw) CONTAINS n)) AS keyword_hit,
  any(n IN $needles WHERE any(au IN coalesce(p.authors, []) WHERE toLower(au) CONTAINS n)) AS author_hit
WHERE title_hit OR abstract_hit OR keyword_hit OR author_hit
WITH p,
  (CASE WHEN title_hit THEN 2 ELSE 0 END)
  + (CASE WHEN abstract_hit THEN 1 ELSE 0 END)
  + (CASE WHEN keyword_hit THEN 1 ELSE 0 END) AS score
RETURN p, score
ORDER BY score DESC, p.citation_count DESC
LIMIT $limit
"""

AUTHOR_QUERY = f"""
MATCH (a:Author)-[:AUTHORED]->(p:Paper)
WHERE toLower(a.name) CONTAINS $name AND {_TOPIC_FILTER}
RETURN DISTINCT p
ORDER BY p.citation_count DESC
LIMIT $limit
"""

SEMANTIC_QUERY = f"""
MATCH (p:Paper)
WHERE p.embedding IS NOT NULL AND size(p.embedding) = size($embedding)
  AND {_TOPIC_FILTER}
WITH p, gds.similarity.cosine(p.embedding, $embedding) AS score
WHERE score > $floor
RETURN p, score
ORDER BY score DESC
LIMIT $limit
"""

GRAPH_QUERY = """
MATCH (seed:Paper) WHERE seed.id IN $seed_ids
MATCH (seed)-[rels:RELATED_TO*1..{depth}]-(p:Paper)
WHERE NOT p.id IN $seed_ids
  AND ($topic IS NULL OR EXISTS {{ (p)-[:BELONGS_TO]->(:Topic {{name: $topic}}) }})
UNWIND rels AS rel
WITH p, count(DISTINCT rel) AS score
RETURN p, score
ORDER BY score DESC, p.citation_count DESC
LIMIT $limit
"""

PAPERS_BY_TOPIC_QUERY = """
MATCH (p:Paper)-[:BELONGS_TO]->(:Topic {name: $topic})
RETURN p
ORDER BY p.citation_count DESC
"""

MISSING_EMBEDDINGS_QUERY = """
MATCH (p:Paper)
WHERE p.embedding IS NULL AND (p.title IS NOT NULL OR p.abstract IS NOT NULL)
RETURN p.id AS id, p.title AS title, p.abstract AS abstract
LIMIT $limit
"""

SET_EMBEDDING_QUERY = """
MATCH (p:Paper {id: $paper_id})
SET p.embedding = $embedding, p.embedding_dimension = size($embedding),
    p.last_updated = datetime()
"""

STATS_QUERY = """
MATCH (p:Paper)
RETURN count(p) AS papers,
       count(p.embedding) AS papers_with_embeddings,
       count(CASE WHEN p.has_full_content THEN 1 END) AS papers_with_content
"""

COUNTS_QUERY = """
CALL { MATCH (t:Topic) RETURN count(t) AS topics }
CALL { MATCH (a:Author) RETURN count(a) AS authors }
CALL { MATCH ()-[r:RELATED_TO]->() RETURN count(r) AS relationships }
RETURN topics, authors, relationships
"""

# Node properties not carried into search results
_HEAVY_PROPERTIES = ("file_content", "embedding_dimension", "created_at", "last_updated", "has_full_content")


def _node_to_paper(node) -> Paper:
    props = dict(node)
    for key in _HEAVY_PROPERTIES:
        props.pop(key, None)
    props["has_full_content"] = bool(dict(node).get("has_full_content"))
    if props.get("year") == 0:
        props["year"] = None
    return Paper(**props)


def _encode_content(content: Union[bytes, str, None]):
    """Base64 payload, content type, and original byte size for storage."""
    if content is None:
        return None, None, None
    if isinstance(content, bytes):
        return base64.b64encode(content).decode("ascii"), ContentType.PDF.value, len(content)
    raw = content.encode("utf-8")
    return base64.b64encode(raw).decode("ascii"), ContentType.TEXT.value, len(raw)


def _decode_content(payload: Optional[str], content_type: Optional[str]) -> Union[bytes, str, None]:
    if not payload:
        return None
    raw = base64.b64decode(payload)
    if content_type == ContentType.TEXT.value:
        return raw.decode("utf-8", errors="replace")
    return raw


class Neo4jGraphStore(GraphStore):
    """
    Neo4j implementation of the graph store.

    Query operations log and return empty lists on any driver error, so a
    database outage degrades retrieval instead of failing it.
    """

    def __init__(
        self,
        config: GraphConfig,
        embedding_engine: Optional[EmbeddingEngine] = None,
    ):
        self.config = config
        self._engine = embedding_engine if embedding_engine is not None else get_embedding_engine()
        self.driver: Optional[AsyncDriver] = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected and self.driver is not None

    async def connect(self) -> None:
        """Open the driver and verify connectivity.

        A failed connection is logged and leaves the store disconnected.
        """
        try:
            self.driver = AsyncGraphDatabase.driver(
                self.config.uri,
                auth=(self.config.username, self.config.password),
                max_connection_pool_size=self.config.max_connection_pool_size,
            )
            await self.driver.verify_connectivity()
            self._connected = True
            logger.info("Connected to Neo4j at %s", self.config.uri)
        except Exception as e:
            logger.error("Failed to connect to Neo4j at %s: %s", self.config.uri, e)
            self._connected = False

    async def close(self) -> None:
        if self.driver:
            await self.driver.close()
            logger.info("Neo4j connection closed")
        self.driver = None
        self._connected = False

    def _query(self, text: str) -> Query:
        return Query(text, timeout=self.config.query_timeout)

    async def _read(self, text: str, **params) -> list:
        async with self.driver.session() as session:
            result = await session.run(self._query(text), params)
            return [record async for record in result]

    async def _write(self, text: str, **params) -> None:
        async with self.driver.session() as session:
            result = await session.run(self._query(text), params)
            await result.consume()

    def _require_connection(self) -> None:
        if not self.is_connected:
            raise GraphStoreUnavailableError("Neo4j not connected")

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
        payload, content_type, original_size = _encode_content(content)
        embedding = paper.embedding or self._engine.embed(paper.embedding_text)

        try:
            await self._write(
                STORE_PAPER_QUERY,
                topic=topic,
                id=paper.id,
                title=paper.title,
                abstract=paper.abstract,
                year=paper.year or 0,
                citation_count=paper.citation_count,
                venue=paper.venue,
                url=paper.url or "",
                doi=paper.doi or "",
                authors=paper.authors,
                keywords=paper.keywords,
                references=paper.references,
                citations=paper.citations,
                embedding=embedding,
                file_content=payload,
                content_type=content_type,
                original_size=original_size,
                local_file_path=paper.local_file_path,
            )
        except Exception as e:
            logger.error("Failed to store paper %s: %s", paper.id, e)
            raise

        logger.debug("Stored paper %s with %dD embedding", paper.id, len(embedding))

    async def store_relationships(self, relationships: Sequence[Relationship]) -> int:
        self._require_connection()
        stored = 0
        for rel in relationships:
            await self._write(
                STORE_RELATIONSHIP_QUERY,
                source_id=rel.source_id,
                target_id=rel.target_id,
                type=rel.relationship_type.value,
                strength=rel.strength,
            )
            stored += 1
        logger.info("Stored %d relationships", stored)
        return stored

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_full_content(self, paper_id: str) -> FullContent:
        self._require_connection()
        records = await self._read(FULL_CONTENT_QUERY, paper_id=paper_id)
        if not records:
            raise PaperNotFoundError(paper_id)

        record = records[0]
        content = _decode_content(record["file_content"], record["content_type"])
        return FullContent(
            paper_id=paper_id,
            title=record["title"] or "",
            content=content,
            content_type=record["content_type"] if content is not None else None,
            has_full_content=content is not None,
            original_size=record["original_size"] or content_size(content),
        )

    async def _scored(self, label: str, text: str, **params) -> List[ScoredPaper]:
        if not self.is_connected:
            return []
        try:
            records = await self._read(text, **params)
        except Exception as e:
            logger.error("Error in %s search: %s", label, e)
            if "gds.similarity.cosine" in str(e):
                logger.error("Graph Data Science library not available; semantic search needs gds.similarity.cosine")
            return []
        return [ScoredPaper(paper=_node_to_paper(r["p"]), score=float(r["score"])) for r in records]

    async def keyword_search(
        self,
        text: str,
        limit: int = 10,
        topic: Optional[str] = None,
    ) -> List[ScoredPaper]:
        needles = keyword_needles(text)
        if not needles:
            return []
        return await self._scored("keyword", KEYWORD_QUERY, needles=needles, limit=limit, topic=topic)

    async def author_search(
        self,
        name: str,
        limit: int = 10,
        topic: Optional[str] = None,
    ) -> List[Paper]:
        name = (name or "").strip().lower()
        if not self.is_connected or not name:
            return []
        try:
            records = await self._read(AUTHOR_QUERY, name=name, limit=limit, topic=topic)
        except Exception as e:
            logger.error("Error in author search: %s", e)
            return []
        return [_node_to_paper(r["p"]) for r in records]

    async def semantic_search(
        self,
        vector: Sequence[float],
        limit: int = 10,
        topic: Optional[str] = None,
        floor: float = 0.1,
    ) -> List[ScoredPaper]:
        if not vector:
            return []
        return await self._scored(
            "semantic", SEMANTIC_QUERY,
            embedding=list(vector), floor=floor, limit=limit, topic=topic,
        )

    async def graph_search(
        self,
        seed_ids: Sequence[str],
        limit: int = 10,
        topic: Optional[str] = None,
        depth: int = 2,
    ) -> List[ScoredPaper]:
        if not seed_ids:
            return []
        # Variable-length bounds cannot be parameterized in Cypher
        query = GRAPH_QUERY.format(depth=int(depth))
        return await self._scored("graph", query, seed_ids=list(seed_ids), limit=limit, topic=topic)

    async def get_papers_by_topic(self, topic: str, limit: Optional[int] = None) -> List[Paper]:
        if not self.is_connected:
            return []
        query = PAPERS_BY_TOPIC_QUERY + ("LIMIT $limit" if limit is not None else "")
        try:
            records = await self._read(query, topic=topic, limit=limit)
        except Exception as e:
            logger.error("Error fetching papers for topic %s: %s", topic, e)
            return []
        return [_node_to_paper(r["p"]) for r in records]

    async def add_embeddings_to_existing_papers(self, batch_size: int = 10) -> int:
        self._require_connection()
        updated = 0
        while True:
            records = await self._read(MISSING_EMBEDDINGS_QUERY, limit=batch_size)
            if not records:
                break
            for record in records:
                text = f"{record['title'] or ''} {record['abstract'] or ''}"[:2000]
                await self._write(
                    SET_EMBEDDING_QUERY,
                    paper_id=record["id"],
                    embedding=self._engine.embed(text),
                )
                updated += 1
            logger.info("Embedded %d papers so far", updated)
        return updated

    async def get_stats(self) -> Dict[str, Any]:
        if not self.is_connected:
            return {"connected": False, "backend": "neo4j"}
        try:
            paper_stats = await self._read(STATS_QUERY)
            counts = await self._read(COUNTS_QUERY)
        except Exception as e:
            logger.error("Error getting database stats: %s", e)
            return {"connected": False, "backend": "neo4j", "error": str(e)}

        stats: Dict[str, Any] = {"connected": True, "backend": "neo4j"}
        if paper_stats:
            stats.update(dict(paper_stats[0]))
        if counts:
            stats.update(dict(counts[0]))
        return stats
