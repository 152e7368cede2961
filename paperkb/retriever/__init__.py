"""
Retriever - Question Answering over the Paper Corpus

Key Components:
- QuestionAnalyzer: Classifies questions and extracts entities
- HybridRetriever: Semantic + keyword + graph search with weighted merge
- passages: Full-content fetching and passage extraction
- AnswerSynthesizer: Grounded answers, reasoning, follow-up questions
- ResearchAssistant: Single-question chat with conversation history

Pipeline:
1. Analyze the question (type, entities, intent)
2. Run the three search strategies concurrently and merge
3. Fetch content for the top papers and extract passages
4. Synthesize an answer with the LLM (falling back on failure)
"""

from .assistant import ResearchAssistant
from .hybrid_retriever import (
    HybridRetriever,
    HybridSearchResults,
    InvalidQuestionError,
    SearchResult,
    combine_search_results,
)
from .passages import Passage, PaperContent, extract_relevant_passages, fetch_full_content
from .question_analyzer import QuestionAnalysis, QuestionAnalyzer, QuestionType
from .synthesizer import AnswerSynthesizer, ChatAnswer

__all__ = [
    "ResearchAssistant",
    "HybridRetriever",
    "HybridSearchResults",
    "InvalidQuestionError",
    "SearchResult",
    "combine_search_results",
    "Passage",
    "PaperContent",
    "extract_relevant_passages",
    "fetch_full_content",
    "QuestionAnalysis",
    "QuestionAnalyzer",
    "QuestionType",
    "AnswerSynthesizer",
    "ChatAnswer",
]
