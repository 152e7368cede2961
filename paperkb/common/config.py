"""
Configuration Management for PaperKB

Loads configuration from ~/.paperkb/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict

logger = logging.getLogger("paperkb.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".paperkb"
CONFIG_PATH = CONFIG_DIR / "config.json"
LOGS_DIR = CONFIG_DIR / "logs"


@dataclass
class GraphConfig:
    """Graph store configuration"""
    backend: str = "memory"  # "memory" or "neo4j"
    uri: str = "bolt://localhost:7687"
    username: str = "neo4j"
    password: str = ""
    max_connection_pool_size: int = 100
    query_timeout: float = 10.0


@dataclass
class LLMConfig:
    """Shared LLM provider configuration"""
    provider: str = "groq"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash-exp"
    groq_api_key: str = ""
    groq_model: str = "llama3-8b-8192"
    timeout: float = 30.0

    @property
    def model(self) -> str:
        """Model name for the selected provider"""
        return getattr(self, f"{self.provider}_model", "")


@dataclass
class RetrievalConfig:
    """Hybrid retrieval configuration"""
    default_limit: int = 10
    semantic_floor: float = 0.1
    weights: Dict[str, float] = field(
        default_factory=lambda: {"semantic": 0.5, "keyword": 0.3, "graph": 0.2}
    )
    multi_source_bonus: float = 0.1
    graph_seed_count: int = 3
    graph_depth: int = 2
    content_top_n: int = 5
    timeout: float = 10.0


@dataclass
class InvestigationConfig:
    """Multi-step investigation configuration"""
    max_steps: int = 5
    step_search_limit: int = 8
    step_content_top_n: int = 5
    step_delay: float = 0.5  # seconds between steps


@dataclass
class CacheConfig:
    """Search cache and conversation store configuration"""
    max_size: int = 10000
    search_ttl_minutes: int = 30
    conversation_max_sessions: int = 1000


@dataclass
class ServerConfig:
    """HTTP server configuration"""
    host: str = "0.0.0.0"
    port: int = 3002


@dataclass
class PaperKBConfig:
    """Main PaperKB configuration"""
    graph: GraphConfig = field(default_factory=GraphConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    investigation: InvestigationConfig = field(default_factory=InvestigationConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_graph_config(data: dict) -> GraphConfig:
    """Parse graph section from config dict"""
    graph_data = data.get("graph", {})
    return GraphConfig(
        backend=graph_data.get("backend", "memory"),
        uri=graph_data.get("uri", "bolt://localhost:7687"),
        username=graph_data.get("username", "neo4j"),
        password=graph_data.get("password", ""),
        max_connection_pool_size=graph_data.get("max_connection_pool_size", 100),
        query_timeout=graph_data.get("query_timeout", 10.0),
    )


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    return LLMConfig(
        provider=llm_data.get("provider", "groq"),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", "claude-sonnet-4-20250514"),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", "gpt-4o-mini"),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", "gemini-2.0-flash-exp"),
        groq_api_key=llm_data.get("groq_api_key", ""),
        groq_model=llm_data.get("groq_model", "llama3-8b-8192"),
        timeout=llm_data.get("timeout", 30.0),
    )


def _parse_retrieval_config(data: dict) -> RetrievalConfig:
    """Parse retrieval section from config dict.

    Partial ``weights`` objects are merged over the defaults so that a config
    overriding only one strategy weight keeps the other two.
    """
    retrieval_data = data.get("retrieval", {})
    weights = {"semantic": 0.5, "keyword": 0.3, "graph": 0.2}
    weights.update(retrieval_data.get("weights", {}))
    return RetrievalConfig(
        default_limit=retrieval_data.get("default_limit", 10),
        semantic_floor=retrieval_data.get("semantic_floor", 0.1),
        weights=weights,
        multi_source_bonus=retrieval_data.get("multi_source_bonus", 0.1),
        graph_seed_count=retrieval_data.get("graph_seed_count", 3),
        graph_depth=retrieval_data.get("graph_depth", 2),
        content_top_n=retrieval_data.get("content_top_n", 5),
        timeout=retrieval_data.get("timeout", 10.0),
    )


def _parse_investigation_config(data: dict) -> InvestigationConfig:
    """Parse investigation section from config dict"""
    inv_data = data.get("investigation", {})
    return InvestigationConfig(
        max_steps=inv_data.get("max_steps", 5),
        step_search_limit=inv_data.get("step_search_limit", 8),
        step_content_top_n=inv_data.get("step_content_top_n", 5),
        step_delay=inv_data.get("step_delay", 0.5),
    )


def _parse_cache_config(data: dict) -> CacheConfig:
    """Parse cache section from config dict"""
    cache_data = data.get("cache", {})
    return CacheConfig(
        max_size=cache_data.get("max_size", 10000),
        search_ttl_minutes=cache_data.get("search_ttl_minutes", 30),
        conversation_max_sessions=cache_data.get("conversation_max_sessions", 1000),
    )


def _parse_server_config(data: dict) -> ServerConfig:
    """Parse server section from config dict"""
    server_data = data.get("server", {})
    return ServerConfig(
        host=server_data.get("host", "0.0.0.0"),
        port=server_data.get("port", 3002),
    )


def load_config() -> PaperKBConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.paperkb/config.json)
    3. Default values
    """
    config = PaperKBConfig()

    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.graph = _parse_graph_config(data)
            config.llm = _parse_llm_config(data)
            config.retrieval = _parse_retrieval_config(data)
            config.investigation = _parse_investigation_config(data)
            config.cache = _parse_cache_config(data)
            config.server = _parse_server_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file: %s", e)

    if os.getenv("PAPERKB_GRAPH_BACKEND"):
        config.graph.backend = os.getenv("PAPERKB_GRAPH_BACKEND")
    if os.getenv("NEO4J_URI"):
        config.graph.uri = os.getenv("NEO4J_URI")
    if os.getenv("NEO4J_USER"):
        config.graph.username = os.getenv("NEO4J_USER")
    if os.getenv("NEO4J_PASSWORD"):
        config.graph.password = os.getenv("NEO4J_PASSWORD")
        config._env_sourced_keys.add("password")

    if os.getenv("PAPERKB_STEP_DELAY"):
        config.investigation.step_delay = float(os.getenv("PAPERKB_STEP_DELAY"))
    if os.getenv("PORT"):
        config.server.port = int(os.getenv("PORT"))

    # LLM env var overrides (track env-sourced keys)
    _env_llm_map = {
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_MODEL": "google_model",
        "GROQ_API_KEY": "groq_api_key",
        "GROQ_MODEL": "groq_model",
        "PAPERKB_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    return config


def save_config(config: PaperKBConfig) -> None:
    """Save configuration to file.

    Secrets that were sourced from environment variables are written
    as empty strings so that they are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    _llm_api_key_fields = {
        "anthropic_api_key", "openai_api_key", "google_api_key", "groq_api_key",
    }
    llm_section = {
        "provider": config.llm.provider,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "anthropic_model": config.llm.anthropic_model,
        "openai_api_key": config.llm.openai_api_key,
        "openai_model": config.llm.openai_model,
        "google_api_key": config.llm.google_api_key,
        "google_model": config.llm.google_model,
        "groq_api_key": config.llm.groq_api_key,
        "groq_model": config.llm.groq_model,
        "timeout": config.llm.timeout,
    }
    for key in _llm_api_key_fields:
        if key in env_sourced:
            llm_section[key] = ""

    data = {
        "graph": {
            "backend": config.graph.backend,
            "uri": config.graph.uri,
            "username": config.graph.username,
            "password": "" if "password" in env_sourced else config.graph.password,
            "max_connection_pool_size": config.graph.max_connection_pool_size,
            "query_timeout": config.graph.query_timeout,
        },
        "llm": llm_section,
        "retrieval": {
            "default_limit": config.retrieval.default_limit,
            "semantic_floor": config.retrieval.semantic_floor,
            "weights": dict(config.retrieval.weights),
            "multi_source_bonus": config.retrieval.multi_source_bonus,
            "graph_seed_count": config.retrieval.graph_seed_count,
            "graph_depth": config.retrieval.graph_depth,
            "content_top_n": config.retrieval.content_top_n,
            "timeout": config.retrieval.timeout,
        },
        "investigation": {
            "max_steps": config.investigation.max_steps,
            "step_search_limit": config.investigation.step_search_limit,
            "step_content_top_n": config.investigation.step_content_top_n,
            "step_delay": config.investigation.step_delay,
        },
        "cache": {
            "max_size": config.cache.max_size,
            "search_ttl_minutes": config.cache.search_ttl_minutes,
            "conversation_max_sessions": config.cache.conversation_max_sessions,
        },
        "server": {
            "host": config.server.host,
            "port": config.server.port,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)


def ensure_directories() -> None:
    """Ensure required directories exist"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
