"""Contract generations and what differs between them"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict

class Generation(str, Enum):
    """Contract family a log was emitted by"""
    LEGACY = "legacy"
    CURRENT = "current"

@dataclass(frozen=True)
class GenerationProfile:
    """Per-generation strategy consulted by the handlers"""
    generation: Generation
    applies_offset: bool         # ids are shifted by the chain's namespace offset
    authoritative_balance: bool  # join/withdraw events report the new pool balance
    has_claim_uri: bool          # claim-created events carry the media uri

PROFILES: Dict[Generation, GenerationProfile] = {
    Generation.LEGACY: GenerationProfile(
        generation=Generation.LEGACY,
        applies_offset=False,
        authoritative_balance=False,
        has_claim_uri=False,
    ),
    Generation.CURRENT: GenerationProfile(
        generation=Generation.CURRENT,
        applies_offset=True,
        authoritative_balance=True,
        has_claim_uri=True,
    ),
}

def profile_for(generation: Generation) -> GenerationProfile:
    return PROFILES[Generation(generation)]
