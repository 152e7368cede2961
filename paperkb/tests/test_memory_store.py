"""Tests for the in-memory graph store."""

import pytest
import pytest_asyncio

from conftest import make_paper
from paperkb.common.embedding_engine import get_embedding_engine
from paperkb.common.schemas import ContentType, Relationship, RelationshipType
from paperkb.graph.store import GraphStoreUnavailableError, PaperNotFoundError, keyword_needles


def rel(source, target, rtype=RelationshipType.CONTENT, strength=0.5):
    return Relationship(source_id=source, target_id=target, relationship_type=rtype, strength=strength)


class TestKeywordNeedles:
    def test_phrase_then_significant_terms(self):
        assert keyword_needles("Transformer attention for NLP") == [
            "transformer attention for nlp", "transformer", "attention", "nlp",
        ]

    def test_empty(self):
        assert keyword_needles("   ") == []


class TestStorePaper:
    @pytest.mark.asyncio
    async def test_computes_embedding(self, store):
        await store.store_paper(make_paper("a", "Graph Networks", "Message passing"), "graphs")
        paper = await store.get_paper("a")
        assert paper.embedding == get_embedding_engine().embed("Graph Networks Message passing")

    @pytest.mark.asyncio
    async def test_content_type_from_content(self, store):
        await store.store_paper(make_paper("t", "Text paper"), "x", content="plain text body")
        await store.store_paper(make_paper("b", "PDF paper"), "x", content=b"%PDF-1.4")

        text = await store.get_full_content("t")
        pdf = await store.get_full_content("b")
        assert text.content_type == ContentType.TEXT
        assert text.has_full_content
        assert pdf.content_type == ContentType.PDF
        assert pdf.original_size == 8

    @pytest.mark.asyncio
    async def test_update_keeps_existing_content(self, store):
        await store.store_paper(make_paper("a", "Old title", local_file_path="/tmp/a.pdf"), "x", content="body")
        await store.store_paper(make_paper("a", "New title", citation_count=5), "y")

        paper = await store.get_paper("a")
        assert paper.title == "New title"
        assert paper.citation_count == 5
        assert paper.full_content == "body"
        assert paper.has_full_content
        assert paper.local_file_path == "/tmp/a.pdf"
        assert [p.id for p in await store.get_papers_by_topic("y")] == ["a"]
        assert [p.id for p in await store.get_papers_by_topic("x")] == ["a"]

    @pytest.mark.asyncio
    async def test_missing_paper_content(self, store):
        with pytest.raises(PaperNotFoundError) as exc:
            await store.get_full_content("nope")
        assert exc.value.paper_id == "nope"

    @pytest.mark.asyncio
    async def test_closed_store_rejects_writes_and_returns_empty_queries(self, research_store):
        await research_store.close()
        with pytest.raises(GraphStoreUnavailableError):
            await research_store.store_paper(make_paper("z", "Z"), "x")
        assert await research_store.keyword_search("attention") == []
        assert await research_store.semantic_search([1.0] * 512) == []
        assert await research_store.graph_search(["p1"]) == []
        assert await research_store.author_search("Kipf") == []
        assert await research_store.get_papers_by_topic("nlp") == []


class TestKeywordSearch:
    @pytest.mark.asyncio
    async def test_weighted_relevance(self, research_store):
        hits = await research_store.keyword_search("attention", limit=10)
        scores = {h.id: h.score for h in hits}
        # p1: title + abstract + keyword; p3: title + abstract
        assert scores["p1"] == 4.0
        assert scores["p3"] == 3.0
        assert "p4" not in scores
        assert hits[0].id == "p1"

    @pytest.mark.asyncio
    async def test_author_only_match_scores_zero(self, research_store):
        hits = await research_store.keyword_search("Kipf")
        assert [(h.id, h.score) for h in hits] == [("p4", 0.0)]

    @pytest.mark.asyncio
    async def test_ties_broken_by_citations(self, store):
        await store.store_paper(make_paper("low", "Graph methods", citation_count=1), "x")
        await store.store_paper(make_paper("high", "Graph models", citation_count=100), "x")
        hits = await store.keyword_search("graph")
        assert [h.id for h in hits] == ["high", "low"]

    @pytest.mark.asyncio
    async def test_topic_filter(self, research_store):
        hits = await research_store.keyword_search("attention", topic="graphs")
        assert [h.id for h in hits] == ["p3"]


class TestAuthorSearch:
    @pytest.mark.asyncio
    async def test_whole_name_against_authors_only(self, research_store):
        await research_store.store_paper(
            make_paper("mp", "Max Pooling in Graph Networks", "max pooling", authors=["Jane Doe"]),
            "graphs",
        )
        papers = await research_store.author_search("max welling")
        assert [p.id for p in papers] == ["p4"]

    @pytest.mark.asyncio
    async def test_most_cited_first_and_topic_scoped(self, store):
        await store.store_paper(make_paper("a", "A", authors=["Ada Lovelace"], citation_count=5), "x")
        await store.store_paper(make_paper("b", "B", authors=["ADA LOVELACE"], citation_count=50), "y")
        assert [p.id for p in await store.author_search("Lovelace")] == ["b", "a"]
        assert [p.id for p in await store.author_search("lovelace", topic="x")] == ["a"]
        assert await store.author_search("  ") == []


class TestSemanticSearch:
    @pytest.mark.asyncio
    async def test_ranked_by_similarity_above_floor(self, research_store):
        vector = get_embedding_engine().embed("graph structured data learning")
        hits = await research_store.semantic_search(vector, limit=10, floor=0.1)
        assert hits
        assert all(h.score > 0.1 for h in hits)
        assert [h.score for h in hits] == sorted((h.score for h in hits), reverse=True)

    @pytest.mark.asyncio
    async def test_dimension_mismatch_excluded(self, store):
        await store.store_paper(make_paper("odd", "Odd", embedding=[1.0, 0.0, 0.0]), "x")
        await store.store_paper(make_paper("ok", "Ok", embedding=[1.0, 0.0]), "x")
        hits = await store.semantic_search([1.0, 0.0], floor=0.1)
        assert [h.id for h in hits] == ["ok"]


class TestGraphSearch:
    @pytest_asyncio.fixture
    async def chain_store(self, store):
        for pid, cites in (("s", 0), ("a", 10), ("b", 20), ("c", 5), ("far", 1)):
            await store.store_paper(make_paper(pid, pid.upper(), citation_count=cites), "t")
        await store.store_relationships([
            rel("s", "a"),
            rel("s", "b", RelationshipType.AUTHOR),
            rel("a", "b"),
            rel("b", "c"),
            rel("c", "far"),
            rel("s", "ghost"),
        ])
        return store

    @pytest.mark.asyncio
    async def test_connection_strength_counts_distinct_edges(self, chain_store):
        hits = await chain_store.graph_search(["s"], limit=10, depth=2)
        scores = {h.id: h.score for h in hits}
        assert "s" not in scores
        assert "far" not in scores  # three hops away
        assert "ghost" not in scores  # dangling
        # a: s-a, s-b-a (edges s-a, s-b, a-b)
        assert scores["a"] == 3.0
        # b: s-b, s-a-b (edges s-b, s-a, a-b)
        assert scores["b"] == 3.0
        # c: s-b-c (edges s-b, b-c)
        assert scores["c"] == 2.0
        # tie broken by citation count
        assert [h.id for h in hits[:2]] == ["b", "a"]

    @pytest.mark.asyncio
    async def test_depth_one(self, chain_store):
        hits = await chain_store.graph_search(["s"], depth=1)
        assert {h.id: h.score for h in hits} == {"a": 1.0, "b": 1.0}

    @pytest.mark.asyncio
    async def test_no_seeds(self, chain_store):
        assert await chain_store.graph_search([]) == []


class TestMaintenance:
    @pytest.mark.asyncio
    async def test_backfill_embeddings(self, store):
        await store.store_paper(make_paper("a", "Paper A", "abstract"), "x")
        paper = await store.get_paper("a")
        paper.embedding = None

        updated = await store.add_embeddings_to_existing_papers(batch_size=1)
        assert updated == 1
        assert (await store.get_paper("a")).embedding is not None

    @pytest.mark.asyncio
    async def test_stats(self, research_store):
        await research_store.store_relationships([rel("p1", "p2")])
        stats = await research_store.get_stats()
        assert stats["connected"] is True
        assert stats["papers"] == 4
        assert stats["papers_with_embeddings"] == 4
        assert stats["papers_with_content"] == 0
        assert stats["topics"] == 2
        assert stats["relationships"] == 1
