"""
Research - Multi-Step Investigation and Corpus Analyses

Key Components:
- ResearchInvestigator: plan -> execute steps -> synthesize -> gap analysis
- ResearchAnalyst: topic synthesis, trend analysis, methodology comparison
"""

from .analyses import ResearchAnalyst, find_topic_intersections
from .investigator import (
    Investigation,
    InvestigationError,
    InvestigationState,
    PlannedStep,
    ResearchInvestigator,
    ResearchStep,
)

__all__ = [
    "ResearchAnalyst",
    "find_topic_intersections",
    "Investigation",
    "InvestigationError",
    "InvestigationState",
    "PlannedStep",
    "ResearchInvestigator",
    "ResearchStep",
]
