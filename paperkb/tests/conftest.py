"""Shared fakes for the paperkb test suite."""

from typing import List, Optional, Union

import pytest
import pytest_asyncio

from paperkb.common.schemas import Paper
from paperkb.graph.memory_store import InMemoryGraphStore


class ScriptedGenerator:
    """TextGenerator returning queued responses in order.

    An Exception in the queue is raised instead of returned. When the queue
    is exhausted ``default`` is returned, or raised if it is an Exception.
    """

    def __init__(self, responses: Optional[List[Union[str, Exception]]] = None,
                 default: Union[str, Exception] = ""):
        self.responses = list(responses or [])
        self.default = default
        self.calls = []

    def queue(self, *responses: Union[str, Exception]) -> "ScriptedGenerator":
        self.responses.extend(responses)
        return self

    async def complete(self, prompt: str, *, max_tokens: int = 512, temperature: float = 0.3) -> str:
        self.calls.append({"prompt": prompt, "max_tokens": max_tokens, "temperature": temperature})
        item = self.responses.pop(0) if self.responses else self.default
        if isinstance(item, Exception):
            raise item
        return item


def make_paper(paper_id: str, title: str, abstract: str = "", **kwargs) -> Paper:
    return Paper(id=paper_id, title=title, abstract=abstract, **kwargs)


@pytest.fixture
def generator():
    return ScriptedGenerator()


@pytest.fixture
def failing_generator():
    return ScriptedGenerator(default=RuntimeError("LLM client is not available"))


@pytest.fixture
def store():
    return InMemoryGraphStore()


@pytest_asyncio.fixture
async def research_store():
    """Small corpus on transformers and graph learning."""
    store = InMemoryGraphStore()
    papers = [
        make_paper(
            "p1", "Attention Is All You Need",
            "The transformer architecture relies entirely on attention mechanisms.",
            authors=["Ashish Vaswani", "Noam Shazeer"], year=2017, citation_count=90000,
            venue="NeurIPS", keywords=["transformer", "attention"],
        ),
        make_paper(
            "p2", "BERT: Pre-training of Deep Bidirectional Transformers",
            "Language representation model pre-trained with masked language modeling.",
            authors=["Jacob Devlin", "Ming-Wei Chang"], year=2019, citation_count=70000,
            venue="NAACL", keywords=["language model", "pre-training"],
        ),
        make_paper(
            "p3", "Graph Attention Networks",
            "Attention over graph-structured data with masked self-attention layers.",
            authors=["Petar Velickovic"], year=2018, citation_count=12000,
            venue="ICLR", keywords=["graph neural network"],
        ),
        make_paper(
            "p4", "Semi-Supervised Classification with Graph Convolutional Networks",
            "Scalable approach for semi-supervised learning on graph-structured data.",
            authors=["Thomas Kipf", "Max Welling"], year=2017, citation_count=20000,
            venue="ICLR", keywords=["graph neural network"],
        ),
    ]
    for paper in papers:
        topic = "graphs" if paper.id in ("p3", "p4") else "nlp"
        await store.store_paper(paper, topic)
    return store
