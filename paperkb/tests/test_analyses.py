"""Tests for topic synthesis, trend analysis, and methodology comparison."""

import json

import pytest

from conftest import ScriptedGenerator, make_paper
from paperkb.research import ResearchAnalyst
from paperkb.research.analyses import find_topic_intersections
from paperkb.retriever import HybridRetriever, InvalidQuestionError
from paperkb.retriever.hybrid_retriever import SearchResult


def analyst(store, generator):
    return ResearchAnalyst(generator, HybridRetriever(store))


def sr(paper_id):
    return SearchResult(paper=make_paper(paper_id, f"Paper {paper_id}"))


class TestFindTopicIntersections:
    def test_only_papers_in_several_topics(self):
        shared = find_topic_intersections(
            [[sr("a"), sr("b")], [sr("b"), sr("c")], [sr("b"), sr("c")]],
            ["nlp", "graphs", "vision"],
        )
        assert [p["id"] for p in shared] == ["b", "c"]
        assert shared[0]["topics_found"] == ["nlp", "graphs", "vision"]
        assert shared[0]["intersection_score"] == 3
        assert shared[1]["intersection_score"] == 2

    def test_no_overlap(self):
        assert find_topic_intersections([[sr("a")], [sr("b")]], ["x", "y"]) == []


class TestSynthesizeTopics:
    @pytest.mark.asyncio
    async def test_with_llm(self, research_store):
        generator = ScriptedGenerator([
            json.dumps({
                "relationships": [{"topics": ["attention", "graph"], "strength": 0.8}],
                "synthesis": "Attention bridges both areas.",
            }),
            'Recommendations: ["Study graph transformers", "Benchmark jointly"]',
        ])
        result = await analyst(research_store, generator).synthesize_topics(
            ["attention", "graph"], research_focus="architectures",
        )

        assert result["topics"] == ["attention", "graph"]
        assert "p3" in [p["id"] for p in result["intersection_papers"]]
        assert result["analysis"]["synthesis"] == "Attention bridges both areas."
        assert result["recommendations"] == ["Study graph transformers", "Benchmark jointly"]
        assert result["research_focus"] == "architectures"
        assert "Research Focus: architectures" in generator.calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_fallbacks(self, research_store, failing_generator):
        result = await analyst(research_store, failing_generator).synthesize_topics(["attention", "graph"])
        assert result["analysis"] == {
            "relationships": [],
            "synthesis": "Unable to analyze topic relationships",
        }
        assert result["recommendations"] == ["Further analysis needed for specific recommendations"]

    @pytest.mark.asyncio
    async def test_rejects_empty_topics(self, research_store, generator):
        with pytest.raises(ValueError):
            await analyst(research_store, generator).synthesize_topics([])
        with pytest.raises(InvalidQuestionError):
            await analyst(research_store, generator).synthesize_topics(["graphs", " "])


class TestAnalyzeTrends:
    @pytest.mark.asyncio
    async def test_yearly_breakdown(self, research_store):
        generator = ScriptedGenerator([
            json.dumps({
                "trends": [{"pattern": "Growth of attention", "years": [2017, 2018]}],
                "keyDevelopments": ["GAT"],
                "futurePredictions": ["Graph transformers"],
            }),
            json.dumps({"authors": ["Petar Velickovic"], "concepts": ["message passing"]}),
        ])
        result = await analyst(research_store, generator).analyze_trends("graphs", 2015, 2020)

        assert result["time_range"] == {"from": 2015, "to": 2020}
        assert result["yearly_breakdown"] == [
            {
                "year": 2017,
                "paper_count": 1,
                "sample_titles": ["Semi-Supervised Classification with Graph Convolutional Networks"],
                "avg_citations": 20000.0,
                "top_authors": ["Thomas Kipf"],
            },
            {
                "year": 2018,
                "paper_count": 1,
                "sample_titles": ["Graph Attention Networks"],
                "avg_citations": 12000.0,
                "top_authors": ["Petar Velickovic"],
            },
        ]
        assert result["trends"]["key_developments"] == ["GAT"]
        assert result["key_developments"] == ["GAT"]
        assert result["trends"]["future_predictions"] == ["Graph transformers"]
        assert result["emerging_authors"] == ["Petar Velickovic"]
        assert result["emerging_concepts"] == ["message passing"]

    @pytest.mark.asyncio
    async def test_running_average_and_window(self, store, failing_generator):
        for pid, year, cites in (("a", 2020, 10), ("b", 2020, 30), ("c", 2010, 99)):
            await store.store_paper(make_paper(pid, pid, year=year, citation_count=cites), "ml")

        result = await analyst(store, failing_generator).analyze_trends("ml", 2019, 2021)
        assert [y["year"] for y in result["yearly_breakdown"]] == [2020]
        assert result["yearly_breakdown"][0]["avg_citations"] == pytest.approx(20.0)
        assert result["trends"]["trends"] == []
        assert result["emerging_authors"] == []

    @pytest.mark.asyncio
    async def test_default_window(self, research_store, failing_generator):
        import datetime
        result = await analyst(research_store, failing_generator).analyze_trends("nlp")
        year = datetime.date.today().year
        assert result["time_range"] == {"from": year - 5, "to": year}


class TestCompareMethodologies:
    @pytest.mark.asyncio
    async def test_with_llm(self, research_store):
        generator = ScriptedGenerator([
            json.dumps({"strengths": ["parallel"], "limitations": ["memory"],
                        "useCases": ["translation"], "summary": "Self-attention models"}),
            json.dumps({"strengths": ["local"], "limitations": ["oversmoothing"],
                        "useCases": ["citation graphs"], "summary": "Graph convolutions"}),
            json.dumps({"summary": "Different inductive biases", "recommendations": ["Pick by data"],
                        "trends": "Convergence"}),
        ])
        result = await analyst(research_store, generator).compare_methodologies(
            ["attention", "convolution"], "representation learning",
        )

        assert result["methodologies"] == ["attention", "convolution"]
        assert [c["methodology"] for c in result["comparisons"]] == ["attention", "convolution"]
        assert result["comparisons"][0]["strengths"] == ["parallel"]
        assert result["comparisons"][1]["use_cases"] == ["citation graphs"]
        assert result["synthesis"]["summary"] == "Different inductive biases"
        assert result["recommendations"] == ["Pick by data"]
        assert "Self-attention models" in generator.calls[2]["prompt"]

    @pytest.mark.asyncio
    async def test_fallbacks(self, research_store, failing_generator):
        result = await analyst(research_store, failing_generator).compare_methodologies(
            ["attention", "convolution"], "vision",
        )
        first = result["comparisons"][0]
        assert first["strengths"] == ["attention shows promise in vision"]
        assert first["limitations"] == ["Limited analysis available"]
        assert first["use_cases"] == ["Applied in vision research"]
        assert result["synthesis"] == {
            "summary": "Comparison of attention, convolution in vision",
            "recommendations": ["Further analysis needed"],
            "trends": "Mixed adoption across research communities",
        }

    @pytest.mark.asyncio
    async def test_requires_area(self, research_store, generator):
        with pytest.raises(InvalidQuestionError):
            await analyst(research_store, generator).compare_methodologies(["attention"], "")
