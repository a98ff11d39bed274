"""Fixed safety text and response finalization.

None of the text in this module is model-generated. Emergency guidance and
the medical disclaimer are constants so they can be reviewed and tested.
"""

from __future__ import annotations

from swastrica.router import EMERGENCY_MODEL
from swastrica.schemas import BackendResult, Classification, FinalResponse

MEDICAL_DISCLAIMER = (
    "\n\n⚕️ *This information is for educational purposes only and is not a substitute for "
    "professional medical advice, diagnosis, or treatment. Always consult a qualified healthcare "
    "provider with any questions about your health.*"
)

EMERGENCY_GUIDANCE = (
    "🚨 EMERGENCY DETECTED\n\n"
    "If you or someone else is experiencing a medical emergency, please:\n\n"
    "1. Call emergency services immediately (911 in US, 112 in EU, 108 in India, 999 in UK)\n"
    "2. Stay calm and follow dispatcher instructions\n"
    "3. Do not delay seeking professional help\n\n"
    "This AI cannot provide emergency medical care. Your safety is the priority."
)

EMERGENCY_DISCLAIMER = "If this is a life-threatening emergency, call emergency services immediately."

EMERGENCY_INSTRUCTIONS = {
    "cardiac": "If experiencing chest pain, call emergency services immediately. Do not drive yourself to the hospital.",
    "respiratory": (
        "If someone is choking or not breathing, call emergency services. "
        "If trained, begin rescue breathing or CPR."
    ),
    "stroke": "Remember FAST: Face drooping, Arm weakness, Speech difficulty, Time to call emergency services.",
    "mental_health": "You are not alone. Please reach out to a crisis helpline or emergency services immediately.",
    "overdose": (
        "Call emergency services immediately. Do not try to make the person vomit "
        "unless instructed by poison control."
    ),
    "trauma": "Apply pressure to stop bleeding. Keep the person still and call emergency services.",
    "general": "Call emergency services immediately if you believe this is a life-threatening situation.",
}

CRISIS_LINES = (
    "Crisis lines: 988 (US Suicide & Crisis Lifeline), 9152987821 (India iCall), "
    "116123 (UK Samaritans), 112 (International)."
)


def emergency_text(emergency_type: str | None) -> str:
    kind = emergency_type or "general"
    text = EMERGENCY_GUIDANCE + "\n\n" + EMERGENCY_INSTRUCTIONS.get(kind, EMERGENCY_INSTRUCTIONS["general"])
    if kind == "mental_health":
        text += "\n" + CRISIS_LINES
    return text


def finalize(
    classification: Classification,
    result: BackendResult | None,
    *,
    apply_safety: bool | None = None,
) -> FinalResponse:
    """Build the client response. `apply_safety` comes from the routing decision; it defaults to the category."""
    if classification.is_emergency:
        return FinalResponse(
            response=emergency_text(classification.emergency_type),
            model=EMERGENCY_MODEL,
            is_emergency=True,
            is_medical=True,
            disclaimer=EMERGENCY_DISCLAIMER,
            emergency_type=classification.emergency_type or "general",
        )

    if result is None:
        raise ValueError(f"{classification.category} query finalized without a backend result")

    degraded = True if result.degraded else None
    if apply_safety is None:
        apply_safety = classification.is_medical
    if apply_safety:
        return FinalResponse(
            response=result.text + MEDICAL_DISCLAIMER,
            model=result.backend,
            is_emergency=False,
            is_medical=True,
            has_disclaimer=True,
            degraded=degraded,
            note=result.note,
        )

    return FinalResponse(
        response=result.text,
        model=result.backend,
        is_emergency=False,
        is_medical=False,
        degraded=degraded,
        note=result.note,
    )
