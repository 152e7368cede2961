"""
Research Investigator

Multi-step investigation of a complex research question.

States (no state is skipped):
    PLANNING -> EXECUTING -> SYNTHESIZING -> GAP_ANALYSIS -> DONE

Each LLM call follows the JSON-with-fallback discipline: a generator
failure or malformed JSON yields a templated result. Any other failure
aborts the whole investigation with InvestigationError; there is no
partial result.

Steps run strictly in sequence because each step's prompt includes the
findings of the steps before it.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ..common.config import InvestigationConfig
from ..common.llm_client import TextGenerator
from ..common.llm_utils import parse_llm_json, string_list
from ..graph.store import GraphStore
from ..retriever.hybrid_retriever import HybridRetriever, InvalidQuestionError, require_text
from ..retriever.passages import (
    Passage,
    PaperContent,
    extract_relevant_passages,
    fetch_full_content,
)

logger = logging.getLogger("paperkb.research.investigator")

__all__ = [
    "InvestigationState",
    "InvestigationError",
    "InvalidQuestionError",
    "PlannedStep",
    "ResearchStep",
    "Investigation",
    "ResearchInvestigator",
]


class InvestigationState(str, Enum):
    """Investigation lifecycle"""
    PLANNING = "planning"
    EXECUTING = "executing"
    SYNTHESIZING = "synthesizing"
    GAP_ANALYSIS = "gap_analysis"
    DONE = "done"


class InvestigationError(RuntimeError):
    """An investigation failed; ``state`` is where it stopped."""

    def __init__(self, message: str, state: InvestigationState):
        super().__init__(message)
        self.state = state


PLANNING_PROMPT = """You are a research methodology expert. Break down this complex research question into 3-5 specific, actionable research steps.

Research Question: "{question}"

Create a systematic investigation plan. Each step should:
1. Focus on one specific aspect of the question
2. Build logically on previous steps
3. Be answerable with academic literature
4. Lead toward answering the main question

Provide JSON response:
{{
  "steps": [
    {{
      "question": "Specific research question for this step",
      "reasoning": "Why this step is important for the overall investigation"
    }}
  ]
}}

Make each step concrete and searchable in academic databases."""

STEP_ANALYSIS_PROMPT = """You are analyzing research findings for a specific step in a larger investigation.

RESEARCH STEP: {question}
REASONING: {reasoning}

PREVIOUS STEPS CONTEXT:
{previous}

CURRENT FINDINGS:
{findings}

Provide a focused analysis for this research step:

1. What does the evidence show about this specific research question?
2. How do these findings relate to the previous steps?
3. What are the key insights and patterns?
4. What questions emerge for further investigation?

Provide JSON response:
{{
  "analysis": "Detailed analysis of the findings for this step",
  "nextSteps": ["Specific follow-up questions or areas to explore"]
}}

Focus on evidence-based conclusions and be specific about what the research shows."""

SYNTHESIS_PROMPT = """You are synthesizing findings from a multi-step research investigation.

ORIGINAL RESEARCH QUESTION: "{question}"

RESEARCH STEPS COMPLETED:
{steps}

Based on all the research steps and findings, provide a comprehensive synthesis:

1. How do the findings from different steps connect and support each other?
2. What is the overall picture that emerges from this investigation?
3. What are the most important conclusions supported by the evidence?
4. How well does this research answer the original question?

Provide JSON response:
{{
  "synthesis": "Comprehensive synthesis connecting all research steps and findings",
  "conclusions": [
    "Key conclusion 1 based on evidence",
    "Key conclusion 2 based on evidence",
    "Key conclusion 3 based on evidence"
  ]
}}"""

GAP_ANALYSIS_PROMPT = """Analyze this research investigation for limitations and future research opportunities.

ORIGINAL QUESTION: "{question}"
SYNTHESIS: {synthesis}

RESEARCH STEPS CONFIDENCE:
{confidences}

Identify:
1. What limitations exist in the current research findings?
2. What gaps remain unanswered?
3. What future research directions would be valuable?
4. What methodological improvements could strengthen the investigation?

Provide JSON response:
{{
  "limitations": ["Specific limitation or constraint in the current research"],
  "futureResearch": ["Specific future research direction"]
}}"""

DIRECT_STEP_REASONING = "Direct investigation of the main question"


@dataclass
class PlannedStep:
    """A sub-question produced by planning"""
    question: str
    reasoning: str


@dataclass(frozen=True)
class ResearchStep:
    """A completed investigation step; read-only once built"""
    id: str
    question: str
    reasoning: str
    findings: List[PaperContent] = field(default_factory=list)
    passages: List[Passage] = field(default_factory=list)
    analysis: str = ""
    confidence: int = 0  # 0 to 100
    next_steps: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "question": self.question,
            "reasoning": self.reasoning,
            "findings": [
                {**f.paper.summary(relevance=round(f.result.combined_score, 4)),
                 "has_full_content": f.has_full_content}
                for f in self.findings
            ],
            "analysis": self.analysis,
            "confidence": self.confidence,
            "next_steps": list(self.next_steps),
        }


@dataclass
class Investigation:
    """Fully materialized result of an investigation"""
    original_question: str
    steps: List[ResearchStep] = field(default_factory=list)
    synthesis: str = ""
    conclusions: List[str] = field(default_factory=list)
    limitations_and_gaps: List[str] = field(default_factory=list)
    suggested_research: List[str] = field(default_factory=list)
    sources: List[Dict[str, Any]] = field(default_factory=list)
    total_confidence: int = 0

    def to_dict(self) -> dict:
        return {
            "original_question": self.original_question,
            "steps": [s.to_dict() for s in self.steps],
            "synthesis": self.synthesis,
            "conclusions": list(self.conclusions),
            "limitations_and_gaps": list(self.limitations_and_gaps),
            "suggested_research": list(self.suggested_research),
            "sources": list(self.sources),
            "total_confidence": self.total_confidence,
        }


StepCallback = Callable[[ResearchStep], Optional[Awaitable[None]]]


def step_confidence(findings: List[PaperContent], passages: List[Passage]) -> int:
    """
    Step confidence from 0 to 100.

    paper-count adequacy x 30 + full-content fraction x 25
    + mean passage relevance x 30 + mean citations / 100 x 15,
    each factor capped at 1.
    """
    if not findings:
        return 0

    paper_factor = min(len(findings) / 5, 1.0)
    full_text_factor = sum(1 for f in findings if f.has_full_content) / len(findings)
    passage_factor = (
        min(sum(p.relevance for p in passages) / len(passages), 1.0) if passages else 0.0
    )
    mean_citations = sum(f.paper.citation_count for f in findings) / len(findings)
    citation_factor = min(mean_citations / 100, 1.0)

    return round(
        paper_factor * 30
        + full_text_factor * 25
        + passage_factor * 30
        + citation_factor * 15
    )


def overall_confidence(steps: List[ResearchStep]) -> int:
    """Mean step confidence, +10 for multi-step investigations, capped at 100."""
    if not steps:
        return 0
    mean = sum(s.confidence for s in steps) / len(steps)
    bonus = 10 if len(steps) > 1 else 0
    return min(100, round(mean + bonus))


def deduplicate_sources(steps: List[ResearchStep]) -> List[Dict[str, Any]]:
    """Every paper found across steps, once, in first-seen order."""
    seen = set()
    sources = []
    for step in steps:
        for finding in step.findings:
            if finding.id in seen:
                continue
            seen.add(finding.id)
            sources.append(finding.paper.summary(relevance=round(finding.result.combined_score, 4)))
    return sources


class ResearchInvestigator:
    """
    Runs multi-step investigations.

    Responsibilities:
    1. Plan up to ``max_steps`` sub-questions
    2. Execute each step: hybrid search, content, passages, analysis
    3. Synthesize across steps
    4. Identify limitations and future research
    """

    def __init__(
        self,
        generator: TextGenerator,
        retriever: HybridRetriever,
        store: Optional[GraphStore] = None,
        config: Optional[InvestigationConfig] = None,
        content_timeout: float = 10.0,
    ):
        """
        Initialize investigator.

        Args:
            generator: Text generator for planning, analysis, and synthesis
            retriever: Hybrid retriever used by every step
            store: Store supplying full content (defaults to the retriever's)
            config: Step count, search limits, and inter-step delay
            content_timeout: Per-paper content fetch timeout in seconds
        """
        self._generator = generator
        self._retriever = retriever
        self._store = store if store is not None else retriever.store
        self._config = config if config is not None else InvestigationConfig()
        self._content_timeout = content_timeout

    async def investigate(
        self,
        question: str,
        topic: Optional[str] = None,
        on_step: Optional[StepCallback] = None,
    ) -> Investigation:
        """
        Investigate a research question.

        Args:
            question: The research question
            topic: Restrict every step's search to one topic
            on_step: Called with each step as it completes

        Returns:
            Investigation

        Raises:
            InvalidQuestionError: if the question is empty
            InvestigationError: on any unrecovered failure
        """
        question = require_text(question)
        logger.info("Starting multi-step investigation: %r", question)

        try:
            state = InvestigationState.PLANNING
            plan = await self.plan(question)
            logger.info("Research plan created with %d steps", len(plan))

            state = InvestigationState.EXECUTING
            steps: List[ResearchStep] = []
            for index, planned in enumerate(plan):
                if index > 0 and self._config.step_delay > 0:
                    await asyncio.sleep(self._config.step_delay)
                logger.info("Executing step %d/%d: %s", index + 1, len(plan), planned.question)
                step = await self.execute_step(index, planned, steps, topic)
                steps.append(step)
                if on_step is not None:
                    maybe = on_step(step)
                    if asyncio.iscoroutine(maybe):
                        await maybe

            state = InvestigationState.SYNTHESIZING
            synthesis, conclusions = await self.synthesize(question, steps)

            state = InvestigationState.GAP_ANALYSIS
            limitations, future_research = await self.identify_gaps(question, synthesis, steps)
        except InvestigationError:
            raise
        except Exception as e:
            logger.error("Investigation failed while %s: %s", state.value, e, exc_info=True)
            raise InvestigationError(
                f"Investigation failed while {state.value}: {e}", state,
            ) from e

        state = InvestigationState.DONE
        investigation = Investigation(
            original_question=question,
            steps=steps,
            synthesis=synthesis,
            conclusions=conclusions,
            limitations_and_gaps=limitations,
            suggested_research=future_research,
            sources=deduplicate_sources(steps),
            total_confidence=overall_confidence(steps),
        )
        logger.info(
            "Investigation complete: %d steps, %d sources, confidence %d",
            len(steps), len(investigation.sources), investigation.total_confidence,
        )
        return investigation

    async def plan(self, question: str) -> List[PlannedStep]:
        """Up to ``max_steps`` planned steps; the question itself on failure."""
        fallback = [PlannedStep(question=question, reasoning=DIRECT_STEP_REASONING)]
        result = await self._complete_json(
            PLANNING_PROMPT.format(question=question), max_tokens=600, temperature=0.2,
        )

        raw_steps = result.get("steps")
        if not isinstance(raw_steps, list):
            logger.warning("Research planning returned no steps, using the question directly")
            return fallback

        steps = []
        for item in raw_steps[:self._config.max_steps]:
            if isinstance(item, dict) and str(item.get("question") or "").strip():
                steps.append(PlannedStep(
                    question=str(item["question"]).strip(),
                    reasoning=str(item.get("reasoning") or "").strip(),
                ))
        return steps or fallback

    async def execute_step(
        self,
        index: int,
        planned: PlannedStep,
        previous: List[ResearchStep],
        topic: Optional[str] = None,
    ) -> ResearchStep:
        """Search, read, and analyze one planned step."""
        previous_context = "\n".join(
            f"{s.question}: {', '.join(f.title for f in s.findings[:2])}"
            for s in previous
        )

        results = await self._retriever.search(
            planned.question, self._config.step_search_limit, topic,
        )
        findings = await fetch_full_content(
            self._store,
            results.combined_results,
            self._config.step_content_top_n,
            self._content_timeout,
        )
        passages = extract_relevant_passages(findings, planned.question)
        analysis, next_steps = await self._analyze_step(planned, passages, previous_context)

        return ResearchStep(
            id=f"step-{index + 1}",
            question=planned.question,
            reasoning=planned.reasoning,
            findings=findings,
            passages=passages,
            analysis=analysis,
            confidence=step_confidence(findings, passages),
            next_steps=next_steps,
        )

    async def synthesize(self, question: str, steps: List[ResearchStep]) -> Tuple[str, List[str]]:
        """Overall synthesis and key conclusions."""
        summaries = "\n\n".join(
            f"Step {i}: {s.question}\n"
            f"Key papers: {', '.join(f.title for f in s.findings[:3])}\n"
            f"Confidence: {s.confidence}%"
            for i, s in enumerate(steps, 1)
        )
        result = await self._complete_json(
            SYNTHESIS_PROMPT.format(question=question, steps=summaries),
            max_tokens=800,
            temperature=0.3,
        )

        synthesis = str(result.get("synthesis") or "").strip()
        if not synthesis:
            logger.warning("Synthesis unavailable, using template")
            return (
                f"Research synthesis for: {question}",
                ["Investigation completed with multiple research steps"],
            )
        return synthesis, string_list(result.get("conclusions"))

    async def identify_gaps(
        self,
        question: str,
        synthesis: str,
        steps: List[ResearchStep],
    ) -> Tuple[List[str], List[str]]:
        """Limitations and future research directions."""
        confidences = "\n".join(f"Step {i}: {s.confidence}% confidence" for i, s in enumerate(steps, 1))
        result = await self._complete_json(
            GAP_ANALYSIS_PROMPT.format(question=question, synthesis=synthesis, confidences=confidences),
            max_tokens=400,
            temperature=0.4,
        )

        limitations = string_list(result.get("limitations"))
        future_research = string_list(result.get("futureResearch"))
        if not limitations and not future_research:
            logger.warning("Gap analysis unavailable, using template")
            return (
                ["Limited scope of available research papers"],
                ["Further investigation with broader literature"],
            )
        return limitations, future_research

    async def _analyze_step(
        self,
        planned: PlannedStep,
        passages: List[Passage],
        previous_context: str,
    ) -> Tuple[str, List[str]]:
        findings_text = "\n\n".join(
            f"[Source {i}]: {p.content}" for i, p in enumerate(passages, 1)
        )
        result = await self._complete_json(
            STEP_ANALYSIS_PROMPT.format(
                question=planned.question,
                reasoning=planned.reasoning,
                previous=previous_context,
                findings=findings_text,
            ),
            max_tokens=500,
            temperature=0.3,
        )

        analysis = str(result.get("analysis") or "").strip()
        if not analysis:
            logger.warning("Step analysis unavailable for %r, using template", planned.question)
            return (
                f"Analysis of findings related to: {planned.question}",
                ["Continue investigation with additional sources"],
            )
        return analysis, string_list(result.get("nextSteps"))

    async def _complete_json(self, prompt: str, max_tokens: int, temperature: float) -> dict:
        """Generator call parsed as a JSON object; {} on failure."""
        try:
            raw = await self._generator.complete(prompt, max_tokens=max_tokens, temperature=temperature)
        except Exception as e:
            logger.warning("Generator call failed: %s", e)
            return {}
        return parse_llm_json(raw)
