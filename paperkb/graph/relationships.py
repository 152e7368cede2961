"""
Relationship Inference

Derives paper-to-paper relationships from metadata:
- author: shared authors
- venue: same publication venue
- content: overlapping title/abstract keywords
- temporal: published within a year of each other
- citation: references/citations between papers in the set

Inference is deterministic. Large corpora are reduced to a stratified
sample (by year, most cited first) before pairwise comparison, and
venue/temporal fan-out is capped per paper.
"""

import logging
import math
import re
from collections import defaultdict
from typing import Dict, List, Set

from ..common.schemas import Paper, Relationship, RelationshipType

logger = logging.getLogger("paperkb.graph.relationships")

TYPE_WEIGHTS = {
    RelationshipType.CITATION: 5,
    RelationshipType.AUTHOR: 4,
    RelationshipType.CONTENT: 3,
    RelationshipType.VENUE: 2,
    RelationshipType.TEMPORAL: 1,
}

STOP_WORDS = {
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "is", "are", "was", "were", "be", "been", "being", "have",
    "has", "had", "do", "does", "did", "will", "would", "could", "should",
    "this", "that", "these", "those",
}

MAX_COMPARISONS = 50000
_NON_WORD = re.compile(r"[^\w\s]")


def extract_keywords(text: str, limit: int = 20) -> List[str]:
    """First ``limit`` distinct non-stop-words longer than 3 characters."""
    words = _NON_WORD.sub(" ", (text or "").lower()).split()
    keywords = [w for w in words if len(w) > 3 and w not in STOP_WORDS]
    return list(dict.fromkeys(keywords))[:limit]


class RelationshipInferrer:
    """
    Infers typed relationships among a set of papers.

    Args:
        min_shared_keywords: content relationships need at least this many
        venue_partners: max venue relationships created per paper
        temporal_partners: max temporal relationships created per paper
    """

    def __init__(
        self,
        min_shared_keywords: int = 3,
        venue_partners: int = 3,
        temporal_partners: int = 3,
    ):
        self.min_shared_keywords = min_shared_keywords
        self.venue_partners = venue_partners
        self.temporal_partners = temporal_partners

    def infer(self, papers: List[Paper], limit: int = 200) -> List[Relationship]:
        """
        Infer, de-duplicate, and rank relationships.

        Args:
            papers: Corpus to analyze
            limit: Max relationships returned (highest ranked first)

        Returns:
            Relationships ordered by type weight x strength, descending
        """
        if len(papers) < 2:
            return []

        sample_size = int(min(len(papers), math.sqrt(MAX_COMPARISONS)))
        sampled = self._stratified_sample(papers, sample_size)
        logger.info("Analyzing relationships for %d of %d papers", len(sampled), len(papers))

        relationships: List[Relationship] = []
        relationships.extend(self._author_relationships(sampled, papers))
        relationships.extend(self._venue_relationships(sampled, papers))
        relationships.extend(self._content_relationships(sampled, papers))
        relationships.extend(self._temporal_relationships(sampled))
        relationships.extend(self._citation_relationships(sampled))

        unique = self._deduplicate(relationships)
        unique.sort(key=lambda r: TYPE_WEIGHTS[r.relationship_type] * r.strength, reverse=True)
        logger.info("Found %d relationships (%d after de-duplication)", len(relationships), len(unique))
        return unique[:limit]

    def _stratified_sample(self, papers: List[Paper], size: int) -> List[Paper]:
        if size >= len(papers):
            return list(papers)
        by_year: Dict[int, List[Paper]] = defaultdict(list)
        for paper in papers:
            by_year[paper.year or 0].append(paper)
        per_year = math.ceil(size / len(by_year))
        sample: List[Paper] = []
        for year in sorted(by_year):
            ranked = sorted(by_year[year], key=lambda p: -p.citation_count)
            sample.extend(ranked[:per_year])
        return sample[:size]

    def _author_relationships(self, sampled: List[Paper], corpus: List[Paper]) -> List[Relationship]:
        index: Dict[str, List[Paper]] = defaultdict(list)
        for paper in corpus:
            for author in set(a.lower().strip() for a in paper.authors):
                index[author].append(paper)

        relationships = []
        for paper in sampled:
            own = {a.lower().strip() for a in paper.authors}
            seen: Set[str] = set()
            for author in own:
                for other in index.get(author, ()):
                    if other.id == paper.id or other.id in seen:
                        continue
                    seen.add(other.id)
                    shared = own & {a.lower().strip() for a in other.authors}
                    relationships.append(Relationship(
                        source_id=paper.id,
                        target_id=other.id,
                        relationship_type=RelationshipType.AUTHOR,
                        strength=min(0.9, len(shared) * 0.3),
                        metadata={"author_overlap": sorted(shared)},
                    ))
        return relationships

    def _venue_relationships(self, sampled: List[Paper], corpus: List[Paper]) -> List[Relationship]:
        index: Dict[str, List[Paper]] = defaultdict(list)
        for paper in corpus:
            if paper.venue:
                index[paper.venue.lower().strip()].append(paper)

        relationships = []
        for paper in sampled:
            if not paper.venue:
                continue
            partners = [p for p in index[paper.venue.lower().strip()] if p.id != paper.id]
            partners.sort(key=lambda p: -p.citation_count)
            for other in partners[:self.venue_partners]:
                relationships.append(Relationship(
                    source_id=paper.id,
                    target_id=other.id,
                    relationship_type=RelationshipType.VENUE,
                    strength=0.4,
                    metadata={"venue": paper.venue},
                ))
        return relationships

    def _content_relationships(self, sampled: List[Paper], corpus: List[Paper]) -> List[Relationship]:
        keywords = {p.id: extract_keywords(f"{p.title} {p.abstract}") for p in corpus}
        index: Dict[str, List[str]] = defaultdict(list)
        for paper_id, words in keywords.items():
            for word in words:
                index[word].append(paper_id)

        relationships = []
        for paper in sampled:
            overlap: Dict[str, int] = defaultdict(int)
            for word in keywords[paper.id]:
                for other_id in index[word]:
                    if other_id != paper.id:
                        overlap[other_id] += 1
            for other_id, count in overlap.items():
                if count < self.min_shared_keywords:
                    continue
                shared = [w for w in keywords[paper.id] if w in set(keywords[other_id])]
                relationships.append(Relationship(
                    source_id=paper.id,
                    target_id=other_id,
                    relationship_type=RelationshipType.CONTENT,
                    strength=min(0.8, count * 0.1),
                    metadata={"shared_keywords": shared[:5]},
                ))
        return relationships

    def _temporal_relationships(self, sampled: List[Paper]) -> List[Relationship]:
        relationships = []
        for i, paper in enumerate(sampled):
            if not paper.year:
                continue
            contemporaries = [
                other for other in sampled[i + 1:]
                if other.year and abs(other.year - paper.year) <= 1
            ]
            for other in contemporaries[:self.temporal_partners]:
                relationships.append(Relationship(
                    source_id=paper.id,
                    target_id=other.id,
                    relationship_type=RelationshipType.TEMPORAL,
                    strength=0.3,
                    metadata={"year_difference": abs(other.year - paper.year)},
                ))
        return relationships

    def _citation_relationships(self, sampled: List[Paper]) -> List[Relationship]:
        ids = {p.id for p in sampled}
        relationships = []
        for paper in sampled:
            for ref_id in paper.references:
                if ref_id in ids and ref_id != paper.id:
                    relationships.append(Relationship(
                        source_id=paper.id,
                        target_id=ref_id,
                        relationship_type=RelationshipType.CITATION,
                        strength=0.9,
                    ))
            for cit_id in paper.citations:
                if cit_id in ids and cit_id != paper.id:
                    relationships.append(Relationship(
                        source_id=cit_id,
                        target_id=paper.id,
                        relationship_type=RelationshipType.CITATION,
                        strength=0.9,
                    ))
        return relationships

    @staticmethod
    def _deduplicate(relationships: List[Relationship]) -> List[Relationship]:
        """Keep the first relationship per unordered pair and type."""
        seen = set()
        unique = []
        for rel in relationships:
            key = rel.undirected_key()
            if key not in seen:
                seen.add(key)
                unique.append(rel)
        return unique
