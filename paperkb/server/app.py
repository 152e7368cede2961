"""
PaperKB Server

FastAPI server exposing question answering and research analyses over
the paper corpus.

Endpoints:
- GET /health, GET /api/health: Health check
- POST /api/chat: Single-question chat or multi-step investigation
- POST /api/hybrid-search: Semantic + keyword + graph search
- POST /api/semantic-search: Semantic search only
- POST /api/papers: Store papers under a topic and link them
- GET /api/papers/by-author: Papers by author name
- POST /api/research/trends: Yearly trend analysis for a topic
- POST /api/research/synthesize-topics: Cross-topic synthesis
- POST /api/research/compare-methodologies: Methodology comparison
- GET /api/stats: Store and cache statistics
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..common.config import PaperKBConfig, ensure_directories, load_config
from ..common.conversation_store import ConversationStore
from ..common.embedding_engine import get_embedding_engine
from ..common.llm_client import LLMClient, TextGenerator
from ..common.schemas import Paper
from ..common.ttl_cache import TTLCache
from ..graph import GraphStore, GraphStoreUnavailableError, create_graph_store, store_research_graph
from ..research import InvestigationError, ResearchAnalyst, ResearchInvestigator
from ..retriever import (
    AnswerSynthesizer,
    HybridRetriever,
    InvalidQuestionError,
    QuestionAnalyzer,
    ResearchAssistant,
)

load_dotenv()

logger = logging.getLogger("paperkb.server.app")

CHAT_FALLBACK_SUGGESTIONS = [
    "Try asking about specific research topics in your database",
    "Ask about authors or methodologies you're interested in",
    "Request information about recent developments in a field",
]


# Global state
config: Optional[PaperKBConfig] = None
store: Optional[GraphStore] = None
retriever: Optional[HybridRetriever] = None
assistant: Optional[ResearchAssistant] = None
investigator: Optional[ResearchInvestigator] = None
analyst: Optional[ResearchAnalyst] = None
search_cache: Optional[TTLCache] = None
conversations: Optional[ConversationStore] = None


def init_components(
    cfg: PaperKBConfig,
    graph_store: Optional[GraphStore] = None,
    generator: Optional[TextGenerator] = None,
) -> None:
    """Build every service once for the process."""
    global config, store, retriever, assistant, investigator, analyst, search_cache, conversations

    config = cfg
    store = graph_store if graph_store is not None else create_graph_store(cfg.graph)

    if generator is None:
        client = LLMClient.from_config(cfg.llm)
        if client.is_available:
            print(f"[PaperKB] LLM ready ({client.provider}: {client.model})")
        else:
            print("[PaperKB] LLM not available (fallback answers only)")
        generator = client

    engine = get_embedding_engine()
    retriever = HybridRetriever(store, engine, cfg.retrieval)
    search_cache = TTLCache(max_size=cfg.cache.max_size)
    conversations = ConversationStore(max_sessions=cfg.cache.conversation_max_sessions)

    synthesizer = AnswerSynthesizer(
        generator,
        store,
        content_top_n=cfg.retrieval.content_top_n,
        content_timeout=cfg.retrieval.timeout,
    )
    assistant = ResearchAssistant(
        QuestionAnalyzer(generator),
        retriever,
        synthesizer,
        conversations,
        search_limit=cfg.retrieval.default_limit,
    )
    investigator = ResearchInvestigator(
        generator, retriever, store, cfg.investigation, content_timeout=cfg.retrieval.timeout,
    )
    analyst = ResearchAnalyst(generator, retriever)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    print("[PaperKB] Starting up...")

    ensure_directories()
    cfg = load_config()
    print(f"[PaperKB] Loaded config (graph backend: {cfg.graph.backend})")

    init_components(cfg)
    await store.connect()
    if store.is_connected:
        print("[PaperKB] Graph store connected")
    else:
        print("[PaperKB] Warning: graph store not connected (searches return no results)")

    print("[PaperKB] Ready")

    yield

    print("[PaperKB] Shutting down...")
    await store.close()


app = FastAPI(
    title="PaperKB",
    description="Research paper knowledge base with hybrid retrieval",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# Request/Response Models
# =============================================================================

class ChatRequest(BaseModel):
    """Chat request"""
    question: str = ""
    mode: Literal["simple", "advanced", "investigation"] = "simple"
    conversation_id: Optional[str] = None
    topic: Optional[str] = None


class SearchRequest(BaseModel):
    """Hybrid or semantic search request"""
    query: str = ""
    limit: int = Field(default=10, ge=1, le=100)
    topic: Optional[str] = None


class IngestRequest(BaseModel):
    """Papers to store under one topic"""
    topic: str
    papers: List[Paper] = Field(min_length=1)


class TrendsRequest(BaseModel):
    topic: str
    start_year: Optional[int] = None
    end_year: Optional[int] = None


class SynthesizeTopicsRequest(BaseModel):
    topics: List[str] = Field(min_length=1)
    research_focus: Optional[str] = None


class CompareMethodologiesRequest(BaseModel):
    methodologies: List[str] = Field(min_length=1)
    research_area: str


class AnswerData(BaseModel):
    """Single-question chat answer"""
    type: Literal["answer"] = "answer"
    answer: str
    sources: List[Dict[str, Any]]
    suggested_questions: List[str]
    confidence: int
    reasoning: str
    search_type: str
    response_time_ms: int
    topic: str


class InvestigationData(BaseModel):
    """Completed multi-step investigation"""
    type: Literal["investigation"] = "investigation"
    original_question: str
    steps: List[Dict[str, Any]]
    synthesis: str
    conclusions: List[str]
    limitations_and_gaps: List[str]
    suggested_research: List[str]
    sources: List[Dict[str, Any]]
    total_confidence: int
    response_time_ms: int


class ChatResponse(BaseModel):
    success: bool
    message: str
    data: Union[AnswerData, InvestigationData] = Field(discriminator="type")


def _require(component, name: str):
    if component is None:
        raise HTTPException(status_code=503, detail=f"{name} not initialized")
    return component


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
@app.get("/api/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "paperkb",
        "graph_connected": store.is_connected if store is not None else False,
        "timestamp": datetime.utcnow().isoformat(),
    }


@app.post("/api/chat", response_model=ChatResponse)
async def chat(request: ChatRequest):
    """Answer a question, or run an investigation when mode is "investigation"."""
    _require(assistant, "Research assistant")
    if not request.question.strip():
        raise HTTPException(status_code=400, detail="Question is required")

    start = time.monotonic()
    logger.info("Chat request: %r (mode: %s, topic: %s)", request.question, request.mode, request.topic)

    if request.mode == "investigation":
        try:
            investigation = await investigator.investigate(request.question, request.topic)
        except InvestigationError as e:
            logger.error("Investigation failed: %s", e)
            return JSONResponse(status_code=500, content={
                "success": False,
                "message": "Error processing chat request",
                "error": str(e),
                "data": {
                    "question": request.question,
                    "fallback_suggestions": CHAT_FALLBACK_SUGGESTIONS,
                },
            })
        return ChatResponse(
            success=True,
            message="Multi-step investigation completed",
            data=InvestigationData(**investigation.to_dict(), response_time_ms=_elapsed_ms(start)),
        )

    try:
        answer = await assistant.ask(request.question, request.topic, request.conversation_id)
    except InvalidQuestionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return ChatResponse(
        success=True,
        message="Research question answered",
        data=AnswerData(
            answer=answer.answer,
            sources=answer.sources,
            suggested_questions=answer.suggested_questions,
            confidence=answer.confidence,
            reasoning=answer.reasoning,
            search_type=answer.search_type,
            response_time_ms=_elapsed_ms(start),
            topic=request.topic or "all",
        ),
    )


@app.post("/api/hybrid-search")
async def hybrid_search(request: SearchRequest):
    """Hybrid search, cached by normalized query text."""
    _require(retriever, "Retriever")
    if not request.query.strip():
        raise HTTPException(status_code=400, detail="Search query is required")

    key = TTLCache.normalize_key(f"hybrid_{request.limit}_{request.topic or 'all'}", request.query)
    data = search_cache.get(key)
    cached = data is not None
    if not cached:
        results = await retriever.search(request.query, request.limit, request.topic)
        data = {
            "query": request.query,
            **results.to_dict(),
            "count": len(results.combined_results),
            "search_type": "hybrid",
            "topic": request.topic or "all",
        }
        search_cache.set(key, data, ttl_minutes=config.cache.search_ttl_minutes)

    return {
        "success": True,
        "message": f"Found {data['count']} papers",
        "cached": cached,
        "data": data,
    }


@app.post("/api/semantic-search")
async def semantic_search(request: SearchRequest):
    """Semantic search, cached by normalized query text."""
    _require(retriever, "Retriever")
    if not request.query.strip():
        raise HTTPException(status_code=400, detail="Search query is required")

    key = TTLCache.normalize_key(f"semantic_{request.limit}_{request.topic or 'all'}", request.query)
    data = search_cache.get(key)
    cached = data is not None
    if not cached:
        results = await retriever.semantic_search(request.query, request.limit, request.topic)
        data = {
            "query": request.query,
            "results": [r.to_dict() for r in results],
            "count": len(results),
            "search_type": "semantic",
            "topic": request.topic or "all",
        }
        search_cache.set(key, data, ttl_minutes=config.cache.search_ttl_minutes)

    return {
        "success": True,
        "message": f"Found {data['count']} semantically similar papers",
        "cached": cached,
        "data": data,
    }


@app.post("/api/papers")
async def ingest_papers(request: IngestRequest):
    """Store papers under a topic and the relationships inferred among the topic's papers."""
    _require(store, "Graph store")
    if not request.topic.strip():
        raise HTTPException(status_code=400, detail="Topic is required")

    try:
        result = await store_research_graph(store, request.papers, request.topic)
    except GraphStoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))

    # Cached searches predate the new papers
    search_cache.clear()

    return {
        "success": True,
        "message": f"Stored {result.papers_stored} papers and {result.relationships_stored} relationships",
        "data": result.to_dict(),
    }


@app.get("/api/papers/by-author")
async def papers_by_author(
    author: str = "",
    limit: int = Query(default=10, ge=1, le=100),
    topic: Optional[str] = None,
):
    """Papers with an author whose name contains ``author``"""
    _require(assistant, "Research assistant")
    try:
        papers = await assistant.find_papers_by_author(author, limit, topic)
    except InvalidQuestionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "success": True,
        "message": f"Found {len(papers)} papers",
        "data": {
            "author": author,
            "papers": [p.summary() for p in papers],
            "count": len(papers),
            "topic": topic or "all",
        },
    }


@app.post("/api/research/trends")
async def research_trends(request: TrendsRequest):
    """Yearly research trends for a topic"""
    _require(analyst, "Research analyst")
    try:
        data = await analyst.analyze_trends(request.topic, request.start_year, request.end_year)
    except InvalidQuestionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "data": data}


@app.post("/api/research/synthesize-topics")
async def synthesize_topics(request: SynthesizeTopicsRequest):
    """Cross-topic synthesis"""
    _require(analyst, "Research analyst")
    try:
        data = await analyst.synthesize_topics(request.topics, request.research_focus)
    except InvalidQuestionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "data": data}


@app.post("/api/research/compare-methodologies")
async def compare_methodologies(request: CompareMethodologiesRequest):
    """Methodology comparison within a research area"""
    _require(analyst, "Research analyst")
    try:
        data = await analyst.compare_methodologies(request.methodologies, request.research_area)
    except InvalidQuestionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "data": data}


@app.get("/api/stats")
async def get_stats():
    """Get store and cache statistics"""
    stats = {
        "service": "paperkb",
        "timestamp": datetime.utcnow().isoformat(),
    }

    if store is not None:
        stats["graph"] = await store.get_stats()
    if search_cache is not None:
        stats["search_cache"] = search_cache.stats()
    if conversations is not None:
        stats["conversations"] = conversations.stats()

    return stats


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the PaperKB server"""
    import uvicorn

    logging.basicConfig(
        level=os.getenv("PAPERKB_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cfg = load_config()
    print(f"[PaperKB] Starting server on port {cfg.server.port}")
    uvicorn.run(
        "paperkb.server.app:app",
        host=cfg.server.host,
        port=cfg.server.port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
