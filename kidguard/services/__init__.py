# Business Logic Services
from kidguard.services.side_effects import run_best_effort
from kidguard.services.threat_detection import ThreatDetector
from kidguard.services.threat_lexicon import DEFAULT_LEXICON, ThreatLexicon

__all__ = [
    "DEFAULT_LEXICON",
    "ThreatDetector",
    "ThreatLexicon",
    "run_best_effort",
]
