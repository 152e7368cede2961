"""
PaperKB

Research-paper knowledge base with hybrid graph retrieval and multi-step
research investigation.

Philosophy:
- Embeddings are local and deterministic (no embedding API)
- Every answer is grounded in retrieved papers, cited by title
- Single-question chat always answers; investigations are all-or-nothing
- The graph store is a collaborator, swappable between memory and Neo4j

Usage:
    from paperkb.common import load_config, EmbeddingEngine, LLMClient
    from paperkb.graph import InMemoryGraphStore, Neo4jGraphStore
    from paperkb.retriever import HybridRetriever, QuestionAnalyzer, AnswerSynthesizer
    from paperkb.research import ResearchInvestigator
"""

__version__ = "0.1.0"
