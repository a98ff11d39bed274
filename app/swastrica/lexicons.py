"""Keyword lexicons driving query classification.

Lexicons are plain data: ordered tuples of lowercase phrases matched as
case-insensitive substrings. Updating a list never requires touching the
classifier or the router.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Lexicon:
    name: str
    terms: tuple[str, ...]

    def __post_init__(self) -> None:
        normalized = tuple(dict.fromkeys(t.strip().lower() for t in self.terms if t.strip()))
        object.__setattr__(self, "terms", normalized)

    def matches(self, text: str) -> tuple[str, ...]:
        """Every term found in `text`, in lexicon order."""
        lowered = text.lower()
        return tuple(term for term in self.terms if term in lowered)

    def __contains__(self, text: object) -> bool:
        if not isinstance(text, str):
            return False
        lowered = text.lower()
        return any(term in lowered for term in self.terms)


EMERGENCY_TERMS: tuple[str, ...] = (
    # cardiac
    "chest pain",
    "heart attack",
    "cardiac arrest",
    "heart stopped",
    # respiratory
    "cant breathe",
    "cannot breathe",
    "can't breathe",
    "can’t breathe",
    "difficulty breathing",
    "choking",
    "suffocating",
    "stopped breathing",
    # neurological
    "stroke",
    "seizure",
    "unconscious",
    "passed out",
    "fainting",
    "severe headache",
    "worst headache",
    "sudden confusion",
    # stroke signs (FAST)
    "face drooping",
    "arm weakness",
    "speech difficulty",
    "slurred speech",
    "one side weak",
    "facial droop",
    "cant lift arm",
    "numbness one side",
    # trauma and bleeding
    "severe bleeding",
    "heavy bleeding",
    "wont stop bleeding",
    "won't stop bleeding",
    "head injury",
    "serious injury",
    "accident",
    # mental health
    "suicide",
    "suicidal",
    "want to die",
    "kill myself",
    "ending my life",
    "self harm",
    "hurting myself",
    # overdose and poisoning
    "overdose",
    "poisoning",
    "took too many pills",
    # other
    "emergency",
    "dying",
    "life threatening",
    "call 911",
    "ambulance",
    "severe allergic",
    "anaphylaxis",
)

MEDICAL_TERMS: tuple[str, ...] = (
    # symptoms
    "symptom",
    "pain",
    "ache",
    "hurt",
    "sore",
    "fever",
    "nausea",
    "dizzy",
    "fatigue",
    "headache",
    "migraine",
    "cough",
    "cold",
    "flu",
    "infection",
    "swelling",
    "rash",
    "bleeding",
    "vomiting",
    "diarrhea",
    "constipation",
    "cramp",
    "numbness",
    "tingling",
    # medical terms
    "medication",
    "medicine",
    "drug",
    "prescription",
    "dose",
    "dosage",
    "side effect",
    "diagnosis",
    "condition",
    "disease",
    "illness",
    "disorder",
    "syndrome",
    "treatment",
    "therapy",
    "surgery",
    "procedure",
    "test",
    "scan",
    "x-ray",
    "mri",
    # body parts
    "chest",
    "abdomen",
    "liver",
    "kidney",
    "lung",
    "heart",
    "brain",
    "spine",
    # healthcare
    "doctor",
    "physician",
    "hospital",
    "clinic",
    "specialist",
    "cardiologist",
    "dermatologist",
    "neurologist",
    # vitals and metrics
    "blood pressure",
    "glucose",
    "cholesterol",
    "bmi",
    "oxygen",
    "saturation",
    # named conditions
    "diabetes",
    "hypertension",
    "asthma",
    "allergy",
    "arthritis",
    "cancer",
    "depression",
    "anxiety",
    "insomnia",
    "anemia",
    "thyroid",
)

# Checked in order; the first type with a marker in the text wins.
EMERGENCY_TYPES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("cardiac", ("chest pain", "heart attack", "cardiac", "heart stopped")),
    ("respiratory", ("breathe", "breathing", "choking", "suffocating")),
    (
        "stroke",
        (
            "stroke",
            "face drooping",
            "arm weakness",
            "speech difficulty",
            "slurred speech",
            "one side weak",
            "facial droop",
            "cant lift arm",
            "numbness one side",
        ),
    ),
    ("mental_health", ("suicid", "kill myself", "self harm", "want to die", "ending my life", "hurting myself")),
    ("overdose", ("overdose", "poisoning", "too many pills")),
    ("trauma", ("bleeding", "injury", "accident")),
)

EMERGENCY_LEXICON = Lexicon("emergency", EMERGENCY_TERMS)
MEDICAL_LEXICON = Lexicon("medical", MEDICAL_TERMS)


def detect_emergency_type(text: str) -> str:
    lowered = text.lower()
    for name, markers in EMERGENCY_TYPES:
        if any(marker in lowered for marker in markers):
            return name
    return "general"
