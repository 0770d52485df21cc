"""Content disclaimer gate.

The listing view stays hidden behind a modal until the visitor
acknowledges the disclaimer. Acknowledgement is remembered for the rest of
the browsing session and never cleared within it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from openheart.gates.state import BrowserSession

logger = logging.getLogger(__name__)

DISCLAIMER_KEY = "disclaimerAccepted"
ACCEPTED_VALUE = "true"
ACKNOWLEDGE_OPTION_ID = "acknowledge"


@dataclass
class GateOption:
    """An action offered by a gate."""

    id: str
    label: str


@dataclass
class Disclaimer:
    """Content of the disclaimer modal."""

    title: str
    intro: str
    points: list[str]
    legal_notice: str
    options: list[GateOption] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Serialize for the API."""
        return {
            "title": self.title,
            "intro": self.intro,
            "points": list(self.points),
            "legal_notice": self.legal_notice,
            "options": [{"id": o.id, "label": o.label} for o in self.options],
        }

    @classmethod
    def for_site(cls, site_name: str) -> "Disclaimer":
        """Build the standard content warning for a site."""
        return cls(
            title="Content Disclaimer",
            intro="Please read carefully before continuing:",
            points=[
                "The reviews displayed on this platform may contain strong "
                "language and explicit content.",
                "Some reviews may use profanity, offensive terms, or "
                "controversial opinions.",
                "Reviews represent individual experiences and opinions, not "
                f"the views of {site_name}.",
                "We provide this platform for honest feedback, but cannot "
                "control the language used by reviewers.",
                "By continuing, you acknowledge that you may encounter content "
                "that could be considered offensive or inappropriate.",
            ],
            legal_notice=(
                f"{site_name} is not liable for the content of user-generated "
                "reviews. This disclaimer is provided to avoid potential "
                "disputes and legal concerns regarding review content."
            ),
            # Single exit: no dismiss-without-acknowledging
            options=[
                GateOption(id=ACKNOWLEDGE_OPTION_ID, label="I Understand, Continue")
            ],
        )


class DisclaimerGate:
    """Per-session disclaimer acknowledgement."""

    def __init__(self, session: BrowserSession, key: str = DISCLAIMER_KEY):
        self._session = session
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def is_accepted(self) -> bool:
        """True once the flag is present for this session."""
        return bool(self._session.get(self._key))

    def requires_prompt(self) -> bool:
        """True while the modal must be shown before any content."""
        return not self.is_accepted()

    def accept(self) -> bool:
        """Record acknowledgement.

        Returns:
            True if the flag was newly set, False if it was already present
        """
        if self.is_accepted():
            return False
        self._session.set(self._key, ACCEPTED_VALUE)
        logger.info("Disclaimer accepted for session")
        return True
