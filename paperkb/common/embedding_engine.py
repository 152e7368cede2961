"""
Embedding Engine

Deterministic, local, hash-based text embeddings for paper similarity.
No model download and no network calls: the same text always yields the
same vector.

Vector layout (512 dimensions):
- [0, 256)   term-frequency features, two hashed placements per token
- [256, 384) bigram/trigram features
- [384, 512) semantic features: research-domain scores, text statistics,
             and paper-specific lexical scores

If the primary encoder fails, a simpler 384-dimensional bag-of-words
embedding is returned instead, so callers must accept either length.
"""

import logging
import re
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

logger = logging.getLogger("paperkb.common.embedding_engine")

DIMENSION = 512
FALLBACK_DIMENSION = 384

TERM_BLOCK = 256
NGRAM_OFFSET = 256
NGRAM_BLOCK = 128
SEMANTIC_OFFSET = 384

_MASK32 = 0xFFFFFFFF

# Research domain indicators; a token counts toward a domain when it
# contains one of the keywords.
DOMAIN_KEYWORDS: Dict[str, List[str]] = {
    "machine_learning": ["learning", "neural", "network", "algorithm", "model", "training"],
    "nlp": ["language", "text", "word", "semantic", "parsing", "embedding"],
    "computer_vision": ["image", "visual", "pixel", "detection", "recognition", "convolution"],
    "robotics": ["robot", "control", "motion", "sensor", "autonomous", "manipulation"],
    "theory": ["theorem", "proof", "complexity", "analysis", "mathematical", "optimization"],
}

PAPER_INDICATORS: Dict[str, List[str]] = {
    "method": ["method", "approach", "technique", "framework", "system"],
    "result": ["result", "performance", "accuracy", "evaluation", "experiment"],
    "novelty": ["novel", "new", "improved", "enhanced", "proposed"],
}

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_NON_WORD = re.compile(r"\W+")
_CAPITALIZED = re.compile(r"[A-Z][a-z]+")


def feature_hash(text: str) -> int:
    """32-bit djb2 hash followed by a murmur3-style avalanche finalizer."""
    h = 5381
    for ch in text:
        h = ((h << 5) + h + ord(ch)) & _MASK32
    h ^= h >> 16
    h = (h * 0x85EBCA6B) & _MASK32
    h ^= h >> 13
    h = (h * 0xC2B2AE35) & _MASK32
    h ^= h >> 16
    return h


def simple_hash(text: str) -> int:
    """31-multiplier string hash, folded to 32 bits."""
    h = 0
    for ch in text:
        h = (h * 31 + ord(ch)) & _MASK32
    return h


def tokenize(text: str) -> List[str]:
    """Lowercase, strip punctuation, split on whitespace, drop tokens of 2 chars or fewer."""
    cleaned = _PUNCTUATION.sub(" ", text.lower())
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    return [w for w in cleaned.split(" ") if len(w) > 2]


def _ngrams(words: List[str], n: int) -> List[str]:
    return [" ".join(words[i:i + n]) for i in range(len(words) - n + 1)]


def _normalize(vector: np.ndarray) -> np.ndarray:
    norm = np.linalg.norm(vector)
    if norm == 0:
        return vector
    return vector / norm


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    """Cosine similarity of two vectors.

    Returns 0.0 when either vector is missing, the lengths differ, or
    either vector has zero magnitude.
    """
    if a is None or b is None or len(a) == 0 or len(a) != len(b):
        return 0.0
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0
    return float(np.dot(va, vb) / denom)


class EmbeddingEngine:
    """
    Local text-to-vector encoder.

    Pure and deterministic. The token hash is injectable so the placement
    scheme can be swapped without touching vector construction.
    """

    def __init__(self, hash_fn: Callable[[str], int] = feature_hash):
        self._hash = hash_fn

    @property
    def dimension(self) -> int:
        return DIMENSION

    def embed(self, text: str) -> List[float]:
        """
        Embed a text.

        Args:
            text: Any text; empty or whitespace-only text embeds to zeros

        Returns:
            512-dimensional L2-normalized vector, or the 384-dimensional
            fallback embedding if the primary encoder raised
        """
        try:
            return self._embed_primary(text).tolist()
        except Exception as e:
            logger.warning("Primary embedding failed (%s), using fallback", e)
            return self._embed_fallback(text).tolist()

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        return [self.embed(t) for t in texts]

    def _embed_primary(self, text: str) -> np.ndarray:
        embedding = np.zeros(DIMENSION, dtype=np.float64)
        if not text or not text.strip():
            return embedding

        words = tokenize(text)
        if not words:
            return embedding

        # Term frequency, distinct tokens in first-seen order
        freq: Dict[str, int] = {}
        for word in words:
            freq[word] = freq.get(word, 0) + 1
        max_freq = max(freq.values())
        for i, (word, count) in enumerate(freq.items()):
            if i >= TERM_BLOCK:
                break
            weight = count / max_freq
            embedding[i % TERM_BLOCK] += weight
            embedding[self._hash(word) % TERM_BLOCK] += weight * 0.5

        grams = _ngrams(words, 2) + _ngrams(words, 3)
        for gram in grams[:NGRAM_BLOCK]:
            idx = NGRAM_OFFSET + self._hash(gram) % NGRAM_BLOCK
            embedding[idx] += 1.0 / np.sqrt(len(gram.split(" ")))

        features = self._semantic_features(text, words)
        embedding[SEMANTIC_OFFSET:SEMANTIC_OFFSET + len(features)] = features

        return _normalize(embedding)

    def _semantic_features(self, text: str, words: List[str]) -> List[float]:
        n = max(len(words), 1)

        def density(keywords: List[str]) -> float:
            return sum(1 for kw in keywords for w in words if kw in w) / n

        features = [density(kws) for kws in DOMAIN_KEYWORDS.values()]
        features.append(sum(len(w) for w in words) / n / 10)
        features.append(len(set(words)) / n)
        features.append(len(_CAPITALIZED.findall(text)) / n)
        features.extend(density(kws) for kws in PAPER_INDICATORS.values())
        return features

    def _embed_fallback(self, text: str) -> np.ndarray:
        embedding = np.zeros(FALLBACK_DIMENSION, dtype=np.float64)
        words = [w for w in _NON_WORD.split((text or "").lower()) if len(w) > 2]
        for index, word in enumerate(words):
            embedding[simple_hash(word) % FALLBACK_DIMENSION] += 1.0 / (index + 1.0)
        return _normalize(embedding)


_engine: Optional[EmbeddingEngine] = None


def get_embedding_engine() -> EmbeddingEngine:
    """Process-wide default engine (stateless, safe to share)."""
    global _engine
    if _engine is None:
        _engine = EmbeddingEngine()
    return _engine
