"""
Research Assistant

Single-question chat over the paper corpus:
analyze -> hybrid search -> synthesize, with per-conversation history.
"""

import logging
from typing import List, Optional

from ..common.conversation_store import ConversationStore
from ..common.schemas import Paper
from .hybrid_retriever import HybridRetriever, InvalidQuestionError, require_text
from .question_analyzer import QuestionAnalyzer
from .synthesizer import AnswerSynthesizer, ChatAnswer, error_answer

logger = logging.getLogger("paperkb.retriever.assistant")

__all__ = ["ResearchAssistant", "InvalidQuestionError"]


class ResearchAssistant:
    """
    Answers research questions one at a time.

    An empty question raises InvalidQuestionError before any retrieval.
    Every other failure is answered with the fixed error response.
    """

    def __init__(
        self,
        analyzer: QuestionAnalyzer,
        retriever: HybridRetriever,
        synthesizer: AnswerSynthesizer,
        conversations: Optional[ConversationStore] = None,
        search_limit: int = 10,
        history_turns: int = 3,
    ):
        self._analyzer = analyzer
        self._retriever = retriever
        self._synthesizer = synthesizer
        self._conversations = conversations if conversations is not None else ConversationStore()
        self._search_limit = search_limit
        self._history_turns = history_turns

    async def ask(
        self,
        question: str,
        topic: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> ChatAnswer:
        """
        Answer a question.

        Args:
            question: The user's question
            topic: Restrict retrieval to one topic
            conversation_id: Session whose recent turns are used as context

        Returns:
            ChatAnswer

        Raises:
            InvalidQuestionError: if the question is empty
        """
        question = require_text(question)
        history = []
        if conversation_id:
            history = self._conversations.get_history(conversation_id, self._history_turns)

        try:
            analysis = await self._analyzer.analyze(question)
            logger.debug("Question analysis: %s", analysis.to_dict())

            results = await self._retriever.search(question, self._search_limit, topic)
            answer = await self._synthesizer.synthesize(
                question, analysis, results.combined_results, history,
            )
        except Exception as e:
            logger.error("Question answering failed: %s", e, exc_info=True)
            answer = error_answer(question)

        if conversation_id:
            self._conversations.append(conversation_id, question, answer.answer)

        logger.info(
            "Answered %r with %d sources (confidence %d)",
            question, len(answer.sources), answer.confidence,
        )
        return answer

    async def find_papers_by_author(
        self,
        author: str,
        limit: int = 10,
        topic: Optional[str] = None,
    ) -> List[Paper]:
        """Papers with an author whose name contains ``author``, most cited first."""
        author = require_text(author, "Author name")
        papers = await self._retriever.store.author_search(author, limit, topic)
        logger.info("Found %d papers by %r", len(papers), author)
        return papers
