"""
Paper Schema

Papers are created on first discovery and updated (never replaced) when
richer content or embeddings arrive. Relationships reference papers by id
without referential-integrity enforcement; dangling ids are filtered at
query time.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator


class ContentType(str, Enum):
    """Stored full-content MIME types"""
    PDF = "application/pdf"
    TEXT = "text/plain"


class RelationshipType(str, Enum):
    """Kinds of paper-to-paper relationships"""
    CITATION = "citation"
    CONTENT = "content"
    AUTHOR = "author"
    TEMPORAL = "temporal"
    VENUE = "venue"


class Paper(BaseModel):
    """A research paper"""
    id: str
    title: str = "Untitled"
    abstract: str = ""
    authors: List[str] = Field(default_factory=list)
    year: Optional[int] = None
    citation_count: int = 0
    venue: str = ""
    doi: Optional[str] = None
    url: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    embedding: Optional[List[float]] = Field(default=None, repr=False)
    full_content: Optional[Union[bytes, str]] = Field(default=None, repr=False)
    content_type: Optional[ContentType] = None
    has_full_content: bool = False
    local_file_path: Optional[str] = None
    references: List[str] = Field(default_factory=list)
    citations: List[str] = Field(default_factory=list)

    @field_validator("citation_count", mode="before")
    @classmethod
    def _non_negative_citations(cls, v):
        return max(int(v or 0), 0)

    @property
    def embedding_text(self) -> str:
        """Text the embedding is computed from (title + abstract, max 2000 chars)"""
        return f"{self.title or ''} {self.abstract or ''}"[:2000]

    def summary(self, relevance: Optional[float] = None) -> Dict[str, Any]:
        """Lightweight source record for API responses."""
        data = {
            "id": self.id,
            "title": self.title,
            "authors": self.authors,
            "year": self.year,
            "citation_count": self.citation_count,
            "url": self.url,
        }
        if relevance is not None:
            data["relevance"] = relevance
        return data


class Relationship(BaseModel):
    """A typed, weighted edge between two papers"""
    source_id: str
    target_id: str
    relationship_type: RelationshipType
    strength: float = Field(default=0.5, ge=0.0, le=1.0)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def undirected_key(self) -> tuple:
        a, b = sorted((self.source_id, self.target_id))
        return (a, b, self.relationship_type.value)


class FullContent(BaseModel):
    """Result of a full-content lookup"""
    paper_id: str
    title: str = ""
    content: Optional[Union[bytes, str]] = Field(default=None, repr=False)
    content_type: Optional[ContentType] = None
    has_full_content: bool = False
    original_size: int = 0

    @property
    def text(self) -> Optional[str]:
        """Extractable text, if the content is plain text."""
        if self.content_type == ContentType.TEXT and isinstance(self.content, str):
            return self.content
        return None
