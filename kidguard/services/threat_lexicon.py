"""Built-in threat lexicon.

The lexicon is constant configuration: an ordered set of categories,
each with trigger terms, a severity and the educational message shown to
the child when their content hits it.
"""

from dataclasses import dataclass

from kidguard.models.threat_incident import ThreatSeverity

CUSTOM_CATEGORY = "custom_blocked_content"

INTERVENTION_OPTIONS = ("Ignore", "Block", "Tell a Parent")

GENERIC_EDUCATIONAL_MESSAGE = "Let's keep our play safe and happy!"

# Higher rank wins when several categories match
_SEVERITY_RANK = {
    ThreatSeverity.LOW: 0,
    ThreatSeverity.MEDIUM: 1,
    ThreatSeverity.HIGH: 2,
    ThreatSeverity.CRITICAL: 3,
}


def max_severity(*severities: ThreatSeverity) -> ThreatSeverity:
    """Return the most severe of the given severities (LOW if none)."""
    return max(severities, key=_SEVERITY_RANK.__getitem__, default=ThreatSeverity.LOW)


@dataclass(frozen=True)
class ThreatCategory:
    """One lexicon category."""

    name: str
    terms: tuple[str, ...]
    severity: ThreatSeverity
    educational_message: str


@dataclass(frozen=True)
class ThreatLexicon:
    """Ordered, immutable collection of threat categories."""

    categories: tuple[ThreatCategory, ...]
    custom_message: str = (
        "This content is blocked to keep our community safe and happy."
    )
    fallback_message: str = GENERIC_EDUCATIONAL_MESSAGE

    @property
    def size(self) -> int:
        """Total number of built-in terms."""
        return sum(len(category.terms) for category in self.categories)

    def message_for(self, threat_type: str) -> str:
        """Educational message for a category tag."""
        if threat_type == CUSTOM_CATEGORY:
            return self.custom_message
        for category in self.categories:
            if category.name == threat_type:
                return category.educational_message
        return self.fallback_message


DEFAULT_LEXICON = ThreatLexicon(
    categories=(
        ThreatCategory(
            name="violence",
            terms=("kill", "hurt", "weapon", "fight", "attack", "blood"),
            severity=ThreatSeverity.HIGH,
            educational_message=(
                "Remember, we use kind words here. If someone is being mean, "
                "it's best to tell a grown-up you trust."
            ),
        ),
        ThreatCategory(
            name="inappropriate",
            terms=("sex", "nude", "porn", "xxx", "adult"),
            severity=ThreatSeverity.MEDIUM,
            educational_message=(
                "That content isn't for kids. Let's stick to fun games and stories!"
            ),
        ),
        ThreatCategory(
            name="cyberbullying",
            terms=("hate", "stupid", "ugly", "loser", "kill yourself"),
            severity=ThreatSeverity.HIGH,
            educational_message=(
                "Being a hero means being kind. If someone makes you feel sad, "
                "you can ignore them or talk to your parents."
            ),
        ),
        ThreatCategory(
            name="personal_info",
            terms=("address", "phone number", "credit card", "password"),
            severity=ThreatSeverity.LOW,
            educational_message=(
                "Keep your secrets safe! Never share your phone number or "
                "address online without asking your parents first."
            ),
        ),
    ),
)
