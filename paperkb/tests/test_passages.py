"""Tests for content fetching and passage extraction."""

import asyncio
from unittest.mock import patch

import pytest

from conftest import make_paper
from paperkb.common.schemas import ContentType
from paperkb.retriever.hybrid_retriever import SearchResult
from paperkb.retriever.passages import (
    NO_CONTENT_RELEVANCE,
    NON_EXTRACTABLE_RELEVANCE,
    Passage,
    PaperContent,
    chunk_text,
    extract_relevant_passages,
    fetch_full_content,
    format_passages,
    question_terms,
    text_relevance,
)

FILLER = "lorem ipsum dolor sit amet " * 30


def content(paper_id, body=None, content_type=None, has_full=False, abstract="An abstract."):
    paper = make_paper(paper_id, f"Paper {paper_id}", abstract)
    return PaperContent(
        result=SearchResult(paper=paper),
        content=body,
        content_type=content_type,
        has_full_content=has_full,
    )


class TestTextHelpers:
    def test_question_terms_distinct_and_stripped(self):
        assert question_terms("What is graph attention? Graph, attention!") == ["what", "graph", "attention"]

    def test_text_relevance_fraction(self):
        assert text_relevance("graph methods", "graph attention networks") == pytest.approx(1 / 3)
        assert text_relevance("anything", "a an of") == 0.0

    def test_chunk_text(self):
        words = " ".join(f"word{i}" for i in range(1200))
        chunks = chunk_text(words)
        assert len(chunks) == 3
        assert len(chunks[0].split()) == 500
        assert chunk_text("too short") == []


class TestExtractRelevantPassages:
    def test_text_content_yields_relevant_chunks(self):
        body = "graph attention networks " * 10 + FILLER
        passages = extract_relevant_passages(
            [content("a", body, ContentType.TEXT, has_full=True)], "graph attention networks",
        )
        assert len(passages) == 1
        assert passages[0].source == "full_text"
        assert passages[0].relevance == pytest.approx(1.0)

    def test_irrelevant_chunks_dropped(self):
        passages = extract_relevant_passages(
            [content("a", FILLER, ContentType.TEXT, has_full=True)], "graph attention networks",
        )
        assert passages == []

    def test_pdf_content_uses_abstract(self):
        passages = extract_relevant_passages(
            [content("a", b"%PDF-1.4", ContentType.PDF, has_full=True, abstract="")], "graphs",
        )
        assert passages[0].source == "abstract"
        assert passages[0].relevance == NON_EXTRACTABLE_RELEVANCE
        assert passages[0].content == "Abstract not available"

    def test_missing_content_uses_abstract(self):
        passages = extract_relevant_passages([content("a"), content("b", abstract="")], "graphs")
        assert [p.relevance for p in passages] == [NO_CONTENT_RELEVANCE, NO_CONTENT_RELEVANCE]
        assert passages[1].content == "Content not available"

    def test_sorted_and_limited(self):
        papers = [content(str(i)) for i in range(12)]
        papers.append(content("pdf", b"x", ContentType.PDF, has_full=True))
        passages = extract_relevant_passages(papers, "graphs", limit=10)
        assert len(passages) == 10
        assert passages[0].paper_id == "pdf"


class TestFetchFullContent:
    @pytest.mark.asyncio
    async def test_fetches_top_n_in_order(self, store):
        for pid in ("a", "b", "c"):
            await store.store_paper(make_paper(pid, pid), "t", content=f"body of {pid}")
        results = [SearchResult(paper=await store.get_paper(pid)) for pid in ("c", "a", "b")]

        fetched = await fetch_full_content(store, results, top_n=2)
        assert [p.id for p in fetched] == ["c", "a"]
        assert fetched[0].content == "body of c"
        assert fetched[0].has_full_content

    @pytest.mark.asyncio
    async def test_failure_falls_back_to_abstract(self, store):
        missing = SearchResult(paper=make_paper("ghost", "Ghost", "ghost abstract"))
        fetched = await fetch_full_content(store, [missing])
        assert fetched[0].content == "ghost abstract"
        assert fetched[0].content_type == ContentType.TEXT
        assert not fetched[0].has_full_content

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self, store):
        await store.store_paper(make_paper("a", "A", "slow abstract"), "t", content="body")

        async def slow(paper_id):
            await asyncio.sleep(1)

        with patch.object(store, "get_full_content", side_effect=slow):
            fetched = await fetch_full_content(store, [SearchResult(paper=await store.get_paper("a"))], timeout=0.05)
        assert fetched[0].content == "slow abstract"
        assert not fetched[0].has_full_content


def test_format_passages():
    passages = [
        Passage("a", "First", "alpha", 0.9, "abstract"),
        Passage("b", "Second", "beta", 0.5, "abstract"),
    ]
    assert format_passages(passages) == "[Source 1: First]\nalpha\n\n[Source 2: Second]\nbeta"
