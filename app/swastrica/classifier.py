"""Deterministic keyword classifier for inbound queries."""

from __future__ import annotations

from swastrica.lexicons import EMERGENCY_LEXICON, MEDICAL_LEXICON, Lexicon, detect_emergency_type
from swastrica.schemas import Classification, Query


class QueryClassifier:
    """Maps (text, image presence) to a category.

    Priority is fixed: emergency terms, then image presence, then medical
    terms, then general. Emergency detection runs before anything else and
    ignores routing overrides.
    """

    def __init__(
        self,
        emergency: Lexicon = EMERGENCY_LEXICON,
        medical: Lexicon = MEDICAL_LEXICON,
    ):
        self._emergency = emergency
        self._medical = medical

    def classify_text(self, text: str, *, has_image: bool = False) -> Classification:
        emergency_hits = self._emergency.matches(text)
        if emergency_hits:
            return Classification(
                category="emergency",
                matched_terms=emergency_hits,
                emergency_type=detect_emergency_type(text),
            )

        medical_hits = self._medical.matches(text)
        if has_image:
            return Classification(category="medical-image", matched_terms=medical_hits)
        if medical_hits:
            return Classification(category="medical-text", matched_terms=medical_hits)
        return Classification(category="general")

    def classify(self, query: Query) -> Classification:
        return self.classify_text(query.text, has_image=query.has_image)


_DEFAULT = QueryClassifier()


def classify(query: Query) -> Classification:
    return _DEFAULT.classify(query)
