"""
PaperKB Common Module

Shared infrastructure for the graph, retriever, and research packages.
"""

from .config import PaperKBConfig, load_config
from .conversation_store import ConversationStore, ConversationTurn
from .embedding_engine import EmbeddingEngine, cosine_similarity, get_embedding_engine
from .llm_client import LLMClient, TextGenerator
from .ttl_cache import TTLCache

__all__ = [
    "PaperKBConfig",
    "load_config",
    "ConversationStore",
    "ConversationTurn",
    "EmbeddingEngine",
    "cosine_similarity",
    "get_embedding_engine",
    "LLMClient",
    "TextGenerator",
    "TTLCache",
]
