"""
Graph Storage

Paper/topic/relationship persistence behind the GraphStore contract.

Key Components:
- GraphStore: abstract contract used by retrieval
- InMemoryGraphStore: dictionary-backed reference store
- Neo4jGraphStore: Cypher store over the async Neo4j driver
- RelationshipInferrer: derives relationships from paper metadata
- store_research_graph: stores papers and their inferred relationships
"""

from .store import (
    GraphStore,
    GraphStoreUnavailableError,
    PaperNotFoundError,
    ScoredPaper,
)
from .memory_store import InMemoryGraphStore
from .neo4j_store import Neo4jGraphStore
from .relationships import RelationshipInferrer
from .ingest import IngestResult, store_research_graph

__all__ = [
    "GraphStore",
    "GraphStoreUnavailableError",
    "PaperNotFoundError",
    "ScoredPaper",
    "InMemoryGraphStore",
    "Neo4jGraphStore",
    "RelationshipInferrer",
    "IngestResult",
    "store_research_graph",
    "create_graph_store",
]


def create_graph_store(graph_config) -> GraphStore:
    """Build the store selected by ``graph_config.backend``."""
    if graph_config.backend == "neo4j":
        return Neo4jGraphStore(graph_config)
    return InMemoryGraphStore()
