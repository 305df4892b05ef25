"""
Campaign package: storage of session assets and the analysis service using them.
"""

from .service import (
    BARD_PROMPT,
    CHARACTERS_PROMPT,
    PORTRAIT_PROMPT,
    CachedCampaignAnalysisService,
    CampaignAnalysisService,
    parse_characters,
)
from .storage import CampaignStorage, FileCampaignStorage

__all__ = [
    "BARD_PROMPT",
    "CHARACTERS_PROMPT",
    "PORTRAIT_PROMPT",
    "CachedCampaignAnalysisService",
    "CampaignAnalysisService",
    "CampaignStorage",
    "FileCampaignStorage",
    "parse_characters",
]
