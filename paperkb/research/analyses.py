"""
Research Analyses

Corpus-level analyses built on hybrid search:
- synthesize_topics: papers bridging several topics and how the topics relate
- analyze_trends: yearly breakdown of a topic with trend and emerging-element summaries
- compare_methodologies: per-methodology strengths/limitations and a comparison

Generator failures and malformed JSON fall back to templated values.
Store and retrieval failures propagate.
"""

import asyncio
import datetime
import json
import logging
from typing import Any, Dict, List, Optional

from ..common.llm_client import TextGenerator
from ..common.llm_utils import parse_llm_json, parse_llm_json_list, string_list
from ..retriever.hybrid_retriever import HybridRetriever, SearchResult, require_text

logger = logging.getLogger("paperkb.research.analyses")


TOPIC_RELATIONSHIP_PROMPT = """Analyze the relationships between these research topics based on the papers that connect them:

Topics: {topics}
{focus}
Connecting papers: {papers}

Provide JSON response:
{{
  "relationships": [
    {{
      "topics": ["topic1", "topic2"],
      "strength": 0.8,
      "description": "How these topics are related",
      "keyPapers": ["paper1", "paper2"]
    }}
  ],
  "synthesis": "Overall analysis of topic relationships"
}}"""

RECOMMENDATIONS_PROMPT = """Based on the analysis of these research topics:
{topics}

And their relationships:
{analysis}

Generate specific recommendations for:
1. Research directions
2. Potential collaborations
3. Knowledge gaps to address

Format as a JSON array of recommendation strings."""

TREND_PATTERNS_PROMPT = """Analyze research trends for "{topic}" based on this yearly data:
{data}

Provide JSON response:
{{
  "trends": [
    {{
      "pattern": "Description of trend",
      "years": [2020, 2021, 2022],
      "significance": "Why this trend matters"
    }}
  ],
  "keyDevelopments": ["Major developments in the field"],
  "futurePredictions": ["Predicted future directions"]
}}"""

EMERGING_ELEMENTS_PROMPT = """Identify emerging authors and concepts from this research data:
{data}

Provide JSON response:
{{
  "authors": ["List of emerging authors"],
  "concepts": ["List of emerging concepts"]
}}"""

METHODOLOGY_PROMPT = """Analyze the {methodology} methodology in {area} research based on these papers:

Papers: {titles}

Provide analysis in JSON format:
{{
  "strengths": ["Key strength 1", "Key strength 2"],
  "limitations": ["Limitation 1", "Limitation 2"],
  "useCases": ["Best use case 1", "Best use case 2"],
  "summary": "Brief summary of the methodology's role in this research area"
}}"""

COMPARISON_PROMPT = """Compare these methodologies in {area}:

{summaries}

Provide comparative synthesis in JSON:
{{
  "summary": "Overall comparison summary",
  "recommendations": ["When to use methodology X", "When to use methodology Y"],
  "trends": "Current trends in methodology adoption"
}}"""


def find_topic_intersections(
    topic_results: List[List[SearchResult]],
    topics: List[str],
) -> List[Dict[str, Any]]:
    """
    Papers found under more than one topic.

    Returns:
        Paper records annotated with ``topics_found`` and
        ``intersection_score``, most topics first
    """
    found: Dict[str, Dict[str, Any]] = {}
    for topic, results in zip(topics, topic_results):
        for result in results:
            entry = found.setdefault(result.id, {"result": result, "topics": []})
            if topic not in entry["topics"]:
                entry["topics"].append(topic)

    shared = [e for e in found.values() if len(e["topics"]) > 1]
    shared.sort(key=lambda e: -len(e["topics"]))
    return [
        {
            **e["result"].to_dict(),
            "topics_found": e["topics"],
            "intersection_score": len(e["topics"]),
        }
        for e in shared
    ]


class ResearchAnalyst:
    """Topic synthesis, trend analysis, and methodology comparison."""

    def __init__(self, generator: TextGenerator, retriever: HybridRetriever, search_limit: int = 5):
        self._generator = generator
        self._retriever = retriever
        self._search_limit = search_limit

    # ===== Topic synthesis =====

    async def synthesize_topics(
        self,
        topics: List[str],
        research_focus: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Search every topic concurrently and analyze where they meet."""
        topics = [require_text(t, "Topic") for t in topics]
        if not topics:
            raise ValueError("At least one topic is required")
        logger.info("Synthesizing research across topics: %s", ", ".join(topics))

        searches = await asyncio.gather(
            *(self._retriever.search(t, self._search_limit) for t in topics)
        )
        intersections = find_topic_intersections(
            [s.combined_results for s in searches], topics,
        )

        focus = f"Research Focus: {research_focus}" if research_focus else ""
        result = await self._complete_json(
            TOPIC_RELATIONSHIP_PROMPT.format(
                topics=", ".join(topics),
                focus=focus,
                papers=", ".join(p["title"] for p in intersections[:10]) or "none",
            ),
            max_tokens=800,
            temperature=0.3,
        )
        relationships = result.get("relationships")
        analysis = {
            "relationships": relationships if isinstance(relationships, list) else [],
            "synthesis": str(result.get("synthesis") or "Unable to analyze topic relationships"),
        }

        return {
            "topics": topics,
            "intersection_papers": intersections,
            "analysis": analysis,
            "research_focus": research_focus,
            "recommendations": await self._recommendations(topics, analysis),
        }

    async def _recommendations(self, topics: List[str], analysis: Dict[str, Any]) -> List[str]:
        try:
            raw = await self._generator.complete(
                RECOMMENDATIONS_PROMPT.format(
                    topics=", ".join(topics), analysis=json.dumps(analysis, indent=2),
                ),
                max_tokens=400,
                temperature=0.4,
            )
        except Exception as e:
            logger.warning("Recommendation generation failed: %s", e)
            raw = ""

        recommendations = string_list(parse_llm_json_list(raw))
        return recommendations or ["Further analysis needed for specific recommendations"]

    # ===== Trend analysis =====

    async def analyze_trends(
        self,
        topic: str,
        start_year: Optional[int] = None,
        end_year: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Yearly breakdown of a topic plus trend and emerging-element summaries."""
        topic = require_text(topic, "Topic")
        current_year = datetime.date.today().year
        from_year = start_year or current_year - 5
        to_year = end_year or current_year
        logger.info("Analyzing research trends for %r from %d to %d", topic, from_year, to_year)

        yearly = await self.papers_by_year(topic, from_year, to_year)
        data = json.dumps(yearly, indent=2)

        patterns = await self._complete_json(
            TREND_PATTERNS_PROMPT.format(topic=topic, data=data), max_tokens=600, temperature=0.3,
        )
        emerging = await self._complete_json(
            EMERGING_ELEMENTS_PROMPT.format(data=data), max_tokens=400, temperature=0.4,
        )

        trends = patterns.get("trends")
        key_developments = string_list(patterns.get("keyDevelopments"))
        return {
            "topic": topic,
            "time_range": {"from": from_year, "to": to_year},
            "yearly_breakdown": yearly,
            "trends": {
                "trends": trends if isinstance(trends, list) else [],
                "key_developments": key_developments,
                "future_predictions": string_list(patterns.get("futurePredictions")),
            },
            "emerging_authors": string_list(emerging.get("authors")),
            "emerging_concepts": string_list(emerging.get("concepts")),
            "key_developments": key_developments,
        }

    async def papers_by_year(self, topic: str, from_year: int, to_year: int) -> List[Dict[str, Any]]:
        """Per-year paper count, sample titles, mean citations, and first authors."""
        papers = await self._retriever.store.get_papers_by_topic(topic)

        years: Dict[int, Dict[str, Any]] = {}
        for paper in papers:
            if paper.year is None or not from_year <= paper.year <= to_year:
                continue
            entry = years.setdefault(paper.year, {
                "year": paper.year,
                "paper_count": 0,
                "sample_titles": [],
                "avg_citations": 0.0,
                "top_authors": [],
            })
            entry["paper_count"] += 1
            if len(entry["sample_titles"]) < 3:
                entry["sample_titles"].append(paper.title)
            count = entry["paper_count"]
            entry["avg_citations"] = (entry["avg_citations"] * (count - 1) + paper.citation_count) / count
            if paper.authors and len(entry["top_authors"]) < 5:
                entry["top_authors"].append(paper.authors[0])

        return [years[y] for y in sorted(years)]

    # ===== Methodology comparison =====

    async def compare_methodologies(self, methodologies: List[str], research_area: str) -> Dict[str, Any]:
        """Analyze each methodology in turn, then compare them."""
        methodologies = [require_text(m, "Methodology") for m in methodologies]
        if not methodologies:
            raise ValueError("At least one methodology is required")
        research_area = require_text(research_area, "Research area")
        logger.info("Comparing methodologies: %s in %s", " vs ".join(methodologies), research_area)

        comparisons = []
        for methodology in methodologies:
            results = await self._retriever.search(
                f"{methodology} methodology in {research_area}", self._search_limit,
            )
            papers = results.combined_results
            analysis = await self._analyze_methodology(methodology, papers, research_area)
            comparisons.append({
                "methodology": methodology,
                "papers": [r.to_dict() for r in papers],
                "analysis": analysis,
                "strengths": analysis["strengths"],
                "limitations": analysis["limitations"],
                "use_cases": analysis["use_cases"],
            })

        synthesis = await self._compare(comparisons, research_area)
        return {
            "research_area": research_area,
            "methodologies": methodologies,
            "comparisons": comparisons,
            "synthesis": synthesis,
            "recommendations": synthesis["recommendations"],
        }

    async def _analyze_methodology(
        self,
        methodology: str,
        papers: List[SearchResult],
        research_area: str,
    ) -> Dict[str, Any]:
        result = await self._complete_json(
            METHODOLOGY_PROMPT.format(
                methodology=methodology,
                area=research_area,
                titles=", ".join(r.title for r in papers[:3]),
            ),
            max_tokens=300,
            temperature=0.3,
        )
        summary = str(result.get("summary") or "").strip()
        if not summary:
            logger.warning("Methodology analysis unavailable for %r, using template", methodology)
            return {
                "strengths": [f"{methodology} shows promise in {research_area}"],
                "limitations": ["Limited analysis available"],
                "use_cases": [f"Applied in {research_area} research"],
                "summary": f"{methodology} methodology analysis",
            }
        return {
            "strengths": string_list(result.get("strengths")),
            "limitations": string_list(result.get("limitations")),
            "use_cases": string_list(result.get("useCases")),
            "summary": summary,
        }

    async def _compare(self, comparisons: List[Dict[str, Any]], research_area: str) -> Dict[str, Any]:
        result = await self._complete_json(
            COMPARISON_PROMPT.format(
                area=research_area,
                summaries="\n".join(
                    f"{c['methodology']}: {c['analysis']['summary']}" for c in comparisons
                ),
            ),
            max_tokens=400,
            temperature=0.3,
        )
        summary = str(result.get("summary") or "").strip()
        if not summary:
            names = ", ".join(c["methodology"] for c in comparisons)
            return {
                "summary": f"Comparison of {names} in {research_area}",
                "recommendations": ["Further analysis needed"],
                "trends": "Mixed adoption across research communities",
            }
        return {
            "summary": summary,
            "recommendations": string_list(result.get("recommendations")),
            "trends": str(result.get("trends") or ""),
        }

    async def _complete_json(self, prompt: str, max_tokens: int, temperature: float) -> dict:
        try:
            raw = await self._generator.complete(prompt, max_tokens=max_tokens, temperature=temperature)
        except Exception as e:
            logger.warning("Generator call failed: %s", e)
            return {}
        return parse_llm_json(raw)
