"""
Answer Synthesizer

LLM-based answer synthesis from retrieved papers.

Pipeline for one question:
1. Fetch full content for the top papers
2. Extract relevant passages
3. Generate a grounded answer, then a short reasoning trace
4. Suggest follow-up questions
5. Score confidence from retrieval and passage coverage

Key principle: the top-level ``synthesize`` never raises. Generator
failures fall back to fixed text at each step, and any other failure
yields an apologetic answer with zero confidence.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..common.conversation_store import ConversationTurn
from ..common.llm_client import TextGenerator
from ..common.llm_utils import parse_llm_lines
from ..graph.store import GraphStore
from .hybrid_retriever import SearchResult
from .passages import (
    Passage,
    PaperContent,
    extract_relevant_passages,
    fetch_full_content,
    format_passages,
)
from .question_analyzer import QuestionAnalysis, QuestionAnalyzer

logger = logging.getLogger("paperkb.retriever.synthesizer")


ANSWER_PROMPT = """You are an AI research assistant with access to a comprehensive database of research papers. Answer the user's question using ONLY the provided research context.

QUESTION: {question}

QUESTION ANALYSIS:
{analysis}
{history}
RESEARCH CONTEXT FROM PAPERS:
{context}

INSTRUCTIONS:
1. Answer the question directly using information from the research papers
2. Cite specific papers by title when referencing findings
3. If the context doesn't fully answer the question, acknowledge the limitations
4. Provide specific details, numbers, or findings when available
5. Be conversational but scientifically accurate
6. If comparing approaches, present balanced perspectives from different papers
7. Highlight any conflicting findings between papers

IMPORTANT: Base your answer ONLY on the provided research context. Do not add information not present in the papers.

ANSWER:"""

REASONING_PROMPT = """Based on the research question and your answer, briefly explain your reasoning process:

Question: {question}
Answer: {answer}

Explain in 2-3 sentences:
1. What sources you relied on most heavily
2. Any limitations in the available research
3. The confidence level of your answer

Reasoning:"""

FOLLOW_UP_PROMPT = """Based on this research question and answer, generate 3 good follow-up questions that would help the user explore the topic deeper:

Original Question: {question}
Answer: {answer}
Related Papers: {titles}

Generate 3 specific follow-up questions that:
1. Explore related aspects of the topic
2. Ask about methodologies or applications
3. Investigate recent developments or comparisons

Format as simple questions, one per line:"""

ANSWER_FAILURE = (
    "I found relevant research papers but encountered an error while generating a "
    "comprehensive answer. The papers in your database contain information about your "
    "question, but I'm unable to process it fully at the moment."
)
REASONING_FAILURE = "Answer generation failed due to LLM service error"

# Question/answer exchanges of history shown to the model
HISTORY_EXCHANGES = 3

ERROR_ANSWER = (
    "I apologize, but I encountered an error while searching through the research papers. "
    "Please try rephrasing your question or check if the research database is available."
)
ERROR_REASONING = "Error in processing - using fallback response"
ERROR_SUGGESTIONS = [
    "Can you help me find papers on machine learning?",
    "What research topics are available in the database?",
    "Show me highly cited papers in the system",
]

FALLBACK_FOLLOW_UPS = [
    "Can you tell me more about the methodologies used in these studies?",
    "What are the practical applications of these research findings?",
    "Are there any recent developments in this research area?",
]


@dataclass
class ChatAnswer:
    """Synthesized answer to one question"""
    answer: str
    sources: List[Dict[str, Any]] = field(default_factory=list)
    suggested_questions: List[str] = field(default_factory=list)
    confidence: int = 0  # 0 to 100
    reasoning: str = ""
    search_type: str = "hybrid"
    search_query: str = ""
    total_papers_found: int = 0
    relevant_papers: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "answer": self.answer,
            "sources": self.sources,
            "suggested_questions": self.suggested_questions,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "context": {
                "relevant_papers": self.relevant_papers,
                "search_query": self.search_query,
                "search_type": self.search_type,
                "total_papers_found": self.total_papers_found,
                "confidence": self.confidence,
            },
        }


def error_answer(question: str = "") -> ChatAnswer:
    """The fixed response for a failed single-question pipeline."""
    return ChatAnswer(
        answer=ERROR_ANSWER,
        sources=[],
        suggested_questions=list(ERROR_SUGGESTIONS),
        confidence=0,
        reasoning=ERROR_REASONING,
        search_type="error",
        search_query=question,
    )


class AnswerSynthesizer:
    """
    Synthesizes grounded answers from retrieved papers.

    Falls back to fixed text whenever the generator is unavailable or fails.
    """

    def __init__(
        self,
        generator: TextGenerator,
        store: GraphStore,
        content_top_n: int = 5,
        content_timeout: float = 10.0,
    ):
        """
        Initialize synthesizer.

        Args:
            generator: Text generator for answer, reasoning, and follow-ups
            store: Graph store supplying full content
            content_top_n: Number of top papers whose content is fetched
            content_timeout: Per-paper content fetch timeout in seconds
        """
        self._generator = generator
        self._store = store
        self._content_top_n = content_top_n
        self._content_timeout = content_timeout

    async def synthesize(
        self,
        question: str,
        analysis: QuestionAnalysis,
        results: List[SearchResult],
        history: Optional[List[ConversationTurn]] = None,
    ) -> ChatAnswer:
        """
        Synthesize an answer from combined search results.

        Args:
            question: The user's question
            analysis: Output of QuestionAnalyzer
            results: Combined hybrid-search results, best first
            history: Prior conversation messages (the last 3 exchanges are used)

        Returns:
            ChatAnswer; never raises
        """
        try:
            papers = await fetch_full_content(
                self._store, results, self._content_top_n, self._content_timeout,
            )
            passages = extract_relevant_passages(papers, question)
            logger.info(
                "Synthesizing answer from %d papers, %d passages", len(papers), len(passages),
            )

            answer, reasoning = await self.generate_answer(question, analysis, passages, history or [])
            follow_ups = await self.generate_follow_ups(question, answer, results)

            return ChatAnswer(
                answer=answer,
                sources=[self._source(r) for r in results],
                suggested_questions=follow_ups,
                confidence=self.calculate_confidence(papers, passages),
                reasoning=reasoning,
                search_type="hybrid",
                search_query=question,
                total_papers_found=len(results),
                relevant_papers=[
                    {"id": p.id, "title": p.title, "has_full_content": p.has_full_content}
                    for p in papers
                ],
            )
        except Exception as e:
            logger.error("Answer synthesis failed: %s", e, exc_info=True)
            return error_answer(question)

    async def generate_answer(
        self,
        question: str,
        analysis: QuestionAnalysis,
        passages: List[Passage],
        history: List[ConversationTurn],
    ) -> Tuple[str, str]:
        """
        Generate the answer and a reasoning trace.

        Returns:
            (answer, reasoning); fixed failure text if the generator fails
        """
        history_block = ""
        if history:
            rendered = "\n".join(turn.render() for turn in history[-2 * HISTORY_EXCHANGES:])
            history_block = f"\nCONVERSATION HISTORY:\n{rendered}\n"

        prompt = ANSWER_PROMPT.format(
            question=question,
            analysis=QuestionAnalyzer.format_for_prompt(analysis),
            history=history_block,
            context=format_passages(passages),
        )

        try:
            answer = (await self._generator.complete(prompt, max_tokens=800, temperature=0.3)).strip()
            reasoning = (await self._generator.complete(
                REASONING_PROMPT.format(question=question, answer=answer),
                max_tokens=200,
                temperature=0.2,
            )).strip()
            return answer, reasoning
        except Exception as e:
            logger.warning("Answer generation failed: %s", e)
            return ANSWER_FAILURE, REASONING_FAILURE

    async def generate_follow_ups(
        self,
        question: str,
        answer: str,
        results: List[SearchResult],
    ) -> List[str]:
        """Three follow-up questions, or the generic set on failure."""
        titles = ", ".join(r.title for r in results[:3])
        try:
            raw = await self._generator.complete(
                FOLLOW_UP_PROMPT.format(question=question, answer=answer, titles=titles),
                max_tokens=200,
                temperature=0.5,
            )
        except Exception as e:
            logger.warning("Follow-up generation failed: %s", e)
            return list(FALLBACK_FOLLOW_UPS)

        questions = parse_llm_lines(raw, limit=3)
        return questions or list(FALLBACK_FOLLOW_UPS)

    @staticmethod
    def calculate_confidence(papers: List[PaperContent], passages: List[Passage]) -> int:
        """
        Confidence from 0 to 100.

        Weighted sum of paper-count adequacy (0.3), mean combined score
        (0.4, capped at 1), passage-count adequacy (0.2) and full-content
        fraction (0.1).
        """
        if not papers:
            return 0

        paper_factor = min(len(papers) / 5, 1.0)
        mean_score = sum(p.result.combined_score for p in papers) / len(papers)
        score_factor = min(mean_score, 1.0)
        passage_factor = min(len(passages) / 5, 1.0)
        full_text_factor = sum(1 for p in papers if p.has_full_content) / len(papers)

        confidence = (
            paper_factor * 0.3
            + score_factor * 0.4
            + passage_factor * 0.2
            + full_text_factor * 0.1
        )
        return round(confidence * 100)

    @staticmethod
    def _source(result: SearchResult) -> Dict[str, Any]:
        return result.paper.summary(relevance=round(result.combined_score, 4))
