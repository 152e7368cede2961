"""Tests for QuestionAnalyzer."""

import json
import logging

import pytest

from conftest import ScriptedGenerator
from paperkb.retriever.question_analyzer import QuestionAnalysis, QuestionAnalyzer, QuestionType


class TestQuestionAnalyzer:
    @pytest.mark.asyncio
    async def test_llm_analysis(self):
        generator = ScriptedGenerator([json.dumps({
            "type": "comparative",
            "entities": ["BERT", "GPT"],
            "searchTerms": ["bert vs gpt"],
            "intent": "compare language models",
        })])
        analysis = await QuestionAnalyzer(generator).analyze("How does BERT compare to GPT?")

        assert analysis.type == QuestionType.COMPARATIVE
        assert analysis.entities == ["BERT", "GPT"]
        assert analysis.search_terms == ["bert vs gpt"]
        assert analysis.intent == "compare language models"
        assert generator.calls[0]["max_tokens"] == 300
        assert generator.calls[0]["temperature"] == 0.1

    @pytest.mark.asyncio
    async def test_unknown_type_defaults_to_factual(self):
        generator = ScriptedGenerator(['{"type": "speculative", "entities": []}'])
        analysis = await QuestionAnalyzer(generator).analyze("What is attention?")
        assert analysis.type == QuestionType.FACTUAL
        assert analysis.search_terms == ["What is attention?"]

    @pytest.mark.asyncio
    async def test_invalid_json_falls_back(self, caplog):
        generator = ScriptedGenerator(["not json"])
        with caplog.at_level(logging.WARNING, logger="paperkb.retriever.question_analyzer"):
            analysis = await QuestionAnalyzer(generator).analyze("What are graph attention networks?")

        assert analysis.type == QuestionType.FACTUAL
        assert analysis.entities == ["graph", "attention", "networks"]
        assert analysis.search_terms == ["What are graph attention networks?"]
        assert analysis.intent == "research query"
        assert "fallback" in caplog.text

    @pytest.mark.asyncio
    async def test_generator_failure_falls_back(self, failing_generator):
        analysis = await QuestionAnalyzer(failing_generator).analyze("Who proposed dropout regularization?")
        assert analysis.entities == ["proposed", "dropout", "regularization"]

    @pytest.mark.asyncio
    async def test_no_generator(self):
        analysis = await QuestionAnalyzer().analyze("transformers")
        assert analysis.search_terms == ["transformers"]


class TestHelpers:
    def test_extract_entities_caps_at_five(self):
        analyzer = QuestionAnalyzer()
        entities = analyzer.extract_entities("alpha bravo charlie delta echoes foxtrot golf")
        assert entities == ["alpha", "bravo", "charlie", "delta", "echoes"]

    def test_format_for_prompt(self):
        analysis = QuestionAnalysis(type=QuestionType.TREND, entities=["gnn", "graphs"], intent="track growth")
        assert QuestionAnalyzer.format_for_prompt(analysis) == (
            "- Type: trend\n- Key entities: gnn, graphs\n- Intent: track growth"
        )

    def test_to_dict(self):
        analysis = QuestionAnalysis(type=QuestionType.AUTHOR, search_terms=["hinton"])
        assert analysis.to_dict()["type"] == "author"
        assert analysis.to_dict()["search_terms"] == ["hinton"]
