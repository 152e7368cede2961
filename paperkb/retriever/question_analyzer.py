"""
Question Analyzer

Classifies a research question (type, entities, search terms, intent)
with an LLM call, falling back to local keyword extraction when the model
fails or returns unusable JSON.

The analysis is advisory context for answer prompts; it never blocks
retrieval.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..common.llm_client import TextGenerator
from ..common.llm_utils import parse_llm_json, string_list

logger = logging.getLogger("paperkb.retriever.question_analyzer")


class QuestionType(str, Enum):
    """Kinds of research question"""
    FACTUAL = "factual"  # "What is X?"
    COMPARATIVE = "comparative"  # "How does X compare to Y?"
    TREND = "trend"  # "How has X evolved?"
    METHODOLOGY = "methodology"  # "How is X measured?"
    CITATION = "citation"  # "Which papers cite X?"
    AUTHOR = "author"  # "What has Y published?"


@dataclass
class QuestionAnalysis:
    """Structured view of a research question"""
    type: QuestionType
    entities: List[str] = field(default_factory=list)
    search_terms: List[str] = field(default_factory=list)
    intent: str = "general research query"

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "entities": list(self.entities),
            "search_terms": list(self.search_terms),
            "intent": self.intent,
        }


class QuestionAnalyzer:
    """
    Analyzes research questions for prompt construction.

    Responsibilities:
    1. Classify question type
    2. Extract key entities (terms, methods, authors)
    3. Suggest search terms
    4. Summarize user intent
    """

    # Stop words for heuristic entity extraction
    STOP_WORDS = {
        "what", "how", "where", "when", "why", "who", "the", "a", "an",
        "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    }

    ANALYSIS_PROMPT = """Analyze this research question and extract key information:

Question: "{question}"

Provide JSON response with:
{{
  "type": "factual|comparative|trend|methodology|citation|author",
  "entities": ["key terms and concepts"],
  "searchTerms": ["optimized search terms"],
  "intent": "what the user wants to accomplish"
}}

Focus on technical terms, research areas, author names, and methodologies.

JSON:"""

    def __init__(self, generator: Optional[TextGenerator] = None):
        """
        Initialize question analyzer.

        Args:
            generator: Text generator for LLM-based analysis. Without one,
                every question takes the heuristic path.
        """
        self._generator = generator

    async def analyze(self, question: str) -> QuestionAnalysis:
        """
        Analyze a research question.

        Args:
            question: Raw user question

        Returns:
            QuestionAnalysis; never raises
        """
        if self._generator is None:
            return self._fallback(question)

        try:
            raw = await self._generator.complete(
                self.ANALYSIS_PROMPT.format(question=question),
                max_tokens=300,
                temperature=0.1,
            )
        except Exception as e:
            logger.warning("Question analysis failed, using simple extraction: %s", e)
            return self._fallback(question)

        result = parse_llm_json(raw)
        if not result:
            logger.warning("Failed to parse question analysis, using fallback")
            return self._fallback(question)

        type_map = {t.value: t for t in QuestionType}
        question_type = type_map.get(str(result.get("type", "")).lower(), QuestionType.FACTUAL)

        return QuestionAnalysis(
            type=question_type,
            entities=string_list(result.get("entities")),
            search_terms=string_list(result.get("searchTerms")) or [question],
            intent=str(result.get("intent") or "general research query"),
        )

    def _fallback(self, question: str) -> QuestionAnalysis:
        return QuestionAnalysis(
            type=QuestionType.FACTUAL,
            entities=self.extract_entities(question),
            search_terms=[question],
            intent="research query",
        )

    def extract_entities(self, question: str) -> List[str]:
        """First five non-stop-words longer than 3 characters."""
        words = re.sub(r"[^\w\s]", " ", question.lower()).split()
        return [w for w in words if len(w) > 3 and w not in self.STOP_WORDS][:5]

    @staticmethod
    def format_for_prompt(analysis: QuestionAnalysis) -> str:
        """Render the analysis as the QUESTION ANALYSIS block of an answer prompt."""
        return "\n".join([
            f"- Type: {analysis.type.value}",
            f"- Key entities: {', '.join(analysis.entities)}",
            f"- Intent: {analysis.intent}",
        ])
