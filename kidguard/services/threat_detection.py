"""Threat detection.

Classifies text against the built-in lexicon plus the child's own
blocked keywords, records a ThreatIncident and notifies the child's
guardian. Detection is deterministic substring matching; confidence is a
heuristic, not a learned score.

Processing is two-phase:
  1. persist (flush) the incident
  2. best-effort guardian alert in a savepoint; failures are logged and
     never undo the incident or fail the caller

analyze() does not commit. The calling service commits once per request.
"""

import math
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from kidguard.config import settings
from kidguard.logging_config import get_logger
from kidguard.models.threat_incident import (
    IncidentStatus,
    ThreatIncident,
    ThreatSeverity,
)
from kidguard.services import parent_alerts, safety_rules
from kidguard.services.directory import GuardianDirectory, ProfileGuardianDirectory
from kidguard.services.side_effects import run_best_effort
from kidguard.services.threat_lexicon import (
    CUSTOM_CATEGORY,
    DEFAULT_LEXICON,
    INTERVENTION_OPTIONS,
    ThreatLexicon,
    max_severity,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class ThreatAssessment:
    """Result of scoring a piece of text."""

    threat_type: str
    severity: ThreatSeverity
    confidence: int
    detected_keywords: tuple[str, ...]


@dataclass(frozen=True)
class EducationalIntervention:
    """Guidance shown to the child right away. Never persisted."""

    message: str
    options: tuple[str, ...] = INTERVENTION_OPTIONS


@dataclass
class ThreatAnalysis:
    """Outcome of analyze(): the stored incident and the child-facing message."""

    incident: ThreatIncident
    intervention: EducationalIntervention
    alert_ids: list[uuid.UUID] = field(default_factory=list)


def compute_confidence(matched: int, lexicon_size: int) -> int:
    """Confidence in [50, 100] for any match, saturating at 100."""
    if matched <= 0 or lexicon_size <= 0:
        return 0
    return min(100, math.floor((matched / lexicon_size) * 100 + 50))


class ThreatDetector:
    """Scores content and records incidents for one child at a time.

    Args:
        lexicon: Built-in categories to match against.
        directory: Resolves the guardian to alert for a child.
    """

    def __init__(
        self,
        lexicon: ThreatLexicon = DEFAULT_LEXICON,
        directory: GuardianDirectory | None = None,
    ):
        self.lexicon = lexicon
        self.directory = directory or ProfileGuardianDirectory()

    def classify(
        self,
        content: str,
        custom_keywords: Iterable[str] = (),
    ) -> ThreatAssessment | None:
        """Match content against the lexicon and custom keywords.

        The first built-in category that matches names the threat; the
        severity is the highest among all matched categories. Custom
        keywords only name the threat when no built-in category matched.

        Returns:
            The assessment, or None when nothing matched.
        """
        content_lower = content.lower()
        detected: list[str] = []
        threat_type: str | None = None
        matched_severities: list[ThreatSeverity] = []

        for category in self.lexicon.categories:
            matches = [term for term in category.terms if term.lower() in content_lower]
            if matches:
                detected.extend(matches)
                matched_severities.append(category.severity)
                if threat_type is None:
                    threat_type = category.name

        custom_terms = [term for term in dict.fromkeys(custom_keywords) if term]
        already = {term.lower() for term in detected}
        custom_matches = [
            term
            for term in custom_terms
            if term.lower() in content_lower and term.lower() not in already
        ]
        if custom_matches:
            detected.extend(custom_matches)
            if threat_type is None:
                threat_type = CUSTOM_CATEGORY

        if threat_type is None:
            return None

        lexicon_size = self.lexicon.size + len(custom_terms)
        return ThreatAssessment(
            threat_type=threat_type,
            severity=max_severity(*matched_severities),
            confidence=compute_confidence(len(detected), lexicon_size),
            detected_keywords=tuple(detected),
        )

    def intervention_for(self, threat_type: str) -> EducationalIntervention:
        """Build the child-facing educational intervention for a category."""
        return EducationalIntervention(message=self.lexicon.message_for(threat_type))

    async def analyze(
        self,
        db: AsyncSession,
        child_id: uuid.UUID,
        content: str,
        context: dict[str, Any] | None = None,
        extra_keywords: Iterable[str] = (),
    ) -> ThreatAnalysis | None:
        """Analyze content on behalf of one child.

        Args:
            db: Database session.
            child_id: The child the incident is recorded against.
            content: Text to analyze.
            context: Caller context stored on the incident.
            extra_keywords: Additional custom terms for this exchange, e.g.
                the other participant's blocked keywords.

        Returns:
            ThreatAnalysis if anything matched, otherwise None (and nothing
            is written).
        """
        policy = await safety_rules.get_policy(db, child_id)
        custom_keywords = [*policy.blocked_keywords, *extra_keywords]

        assessment = self.classify(content, custom_keywords)
        if assessment is None:
            return None

        incident = ThreatIncident(
            id=uuid.uuid4(),
            child_id=child_id,
            threat_type=assessment.threat_type,
            severity=assessment.severity,
            confidence=assessment.confidence,
            detected_keywords=list(assessment.detected_keywords),
            context={
                **(context or {}),
                "original_content": content[: settings.incident_context_max_chars],
            },
            status=IncidentStatus.OPEN,
            parent_notified=False,
        )
        db.add(incident)
        await db.flush()
        await db.refresh(incident)

        logger.info(
            "Threat incident recorded",
            incident_id=str(incident.id),
            child_id=str(child_id),
            threat_type=assessment.threat_type,
            severity=assessment.severity.value,
            confidence=assessment.confidence,
        )

        analysis = ThreatAnalysis(
            incident=incident,
            intervention=self.intervention_for(assessment.threat_type),
        )

        if policy.alert_settings.notify_on_threat:
            alert_id = await run_best_effort(
                db,
                "threat_alert",
                lambda: self._notify_guardian(db, incident),
                incident_id=str(incident.id),
                child_id=str(child_id),
            )
            if alert_id is not None:
                analysis.alert_ids.append(alert_id)
                incident.parent_notified = True
                incident.parent_notified_at = datetime.now(UTC)
                await db.flush()

        return analysis

    async def _notify_guardian(
        self,
        db: AsyncSession,
        incident: ThreatIncident,
    ) -> uuid.UUID | None:
        guardian_id = await self.directory.get_guardian_id(db, incident.child_id)
        if guardian_id is None:
            logger.debug(
                "No guardian linked, skipping threat alert",
                child_id=str(incident.child_id),
            )
            return None

        alert = await parent_alerts.create_threat_alert(
            db, guardian_id, incident.child_id, incident
        )
        return alert.id


_default_detector = ThreatDetector()


def get_threat_detector() -> ThreatDetector:
    """FastAPI dependency returning the process-wide detector."""
    return _default_detector
