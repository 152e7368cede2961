"""
PaperKB Schemas

Papers, relationships, and full-content records.
"""

from .paper import (
    Paper,
    Relationship,
    RelationshipType,
    FullContent,
    ContentType,
)

__all__ = [
    "Paper",
    "Relationship",
    "RelationshipType",
    "FullContent",
    "ContentType",
]
