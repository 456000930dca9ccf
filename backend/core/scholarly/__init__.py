from .madhab_schema import ConsensusAnalysis, ConsensusLevel, MadhabRuling
from .consensus_service import ScholarlyConsensusService, determine_consensus_level

__all__ = [
    "ConsensusAnalysis",
    "ConsensusLevel",
    "MadhabRuling",
    "ScholarlyConsensusService",
    "determine_consensus_level",
]
