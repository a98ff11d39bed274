"""Prompt assembly for each backend kind."""

from __future__ import annotations

from swastrica.router import BACKENDS, GENERAL_BACKEND
from swastrica.schemas import ChatTurn, Query

MEDICAL_HISTORY_TURNS = 8

GENERAL_SYSTEM_PROMPT = """You are Swastrica, a friendly health assistant in the Swastricare app.
Use short sentences. Be encouraging and warm. Keep responses brief (2-4 short sentences).

IDENTITY RULES:
- You were created by the Swastricare team, a product of Onwords.
- Never say you were made by Google, OpenAI, or any other company.

APP CONTEXT:
- Vault: users upload and store medical documents (labs, prescriptions, imaging).
- Tracker: vitals (blood pressure, heart rate, weight), sleep and hydration.
- Medications: reminders, adherence tracking and refill alerts.
- If users ask where something is, point them to the right tab (Home, Tracker, AI, Vault, Profile).
"""

MEDICAL_SYSTEM_PROMPT = """You are Swastrica Medical AI, a knowledgeable health assistant created by the Swastricare team.

MEDICAL GUIDELINES:
1. Provide accurate, evidence-based medical information.
2. Always recommend consulting a healthcare professional for diagnosis and treatment.
3. Never provide specific dosages or prescribe medications.
4. Flag potential emergency symptoms and recommend immediate medical attention.
5. Use clear, simple language that patients can understand.
6. Do not make definitive diagnoses.

SAFETY PRIORITIES:
- Never downplay potentially serious symptoms.
- Recommend professional evaluation for persistent or worsening symptoms.
- Do not give advice that could delay necessary medical care.
"""

VISION_SYSTEM_PROMPT = """You are Swastrica Medical Vision AI, an assistant for reading medical documents and images.

GUIDELINES:
1. Extract all visible text and data accurately.
2. Organize information with clear headings and bullet points.
3. Highlight values outside normal ranges on lab results.
4. Explain medical terms in simple language.
5. Never make definitive diagnoses from images.
6. Recommend professional interpretation for all imaging and flag urgent findings.
"""

_VISION_TASKS = {
    "prescription": (
        "TASK: Analyze this prescription image.\n"
        "Extract the doctor name, date, each medication (name, dosage, frequency, duration), "
        "special instructions and any warnings. Put each medication on its own line."
    ),
    "lab_report": (
        "TASK: Analyze this lab report image.\n"
        "Extract the test names and date, every result with value, unit and reference range, "
        "and flag values outside the normal range (high / low) with a brief explanation."
    ),
    "medical_document": (
        "TASK: Analyze this medical document.\n"
        "Extract the document type, key findings, important dates, relevant history "
        "and any recommended follow-up actions."
    ),
    "imaging": (
        "TASK: Provide general observations about this medical image.\n"
        "This is NOT a diagnostic analysis. Describe the image type, body region and image quality "
        "only, and strongly recommend interpretation by a qualified radiologist."
    ),
}
_VISION_TASKS["xray"] = _VISION_TASKS["imaging"]

_DEFAULT_VISION_TASK = (
    "TASK: Analyze this medical-related image.\n"
    "Identify the type of document or image and extract the relevant information. "
    "For medical images give only general observations."
)


def _history_block(history: tuple[ChatTurn, ...], *, limit: int, user_label: str, assistant_label: str) -> str:
    turns = [t for t in history[-limit:] if t.content.strip()] if limit > 0 else []
    if not turns:
        return ""
    lines = [
        f"{user_label if turn.role == 'user' else assistant_label}: {turn.content.strip()}"
        for turn in turns
    ]
    return "\n".join(lines) + "\n\n"


def build_general_prompt(query: Query, *, max_history: int) -> str:
    history = _history_block(query.history, limit=max_history, user_label="User", assistant_label="Assistant")
    prompt = GENERAL_SYSTEM_PROMPT + "\n"
    if history:
        prompt += "Previous:\n" + history
    return prompt + f"User: {query.text}\n\nAssistant:"


def build_medical_prompt(query: Query, *, max_history: int) -> str:
    history = _history_block(
        query.history,
        limit=min(max_history, MEDICAL_HISTORY_TURNS),
        user_label="Patient",
        assistant_label="Swastrica",
    )
    prompt = MEDICAL_SYSTEM_PROMPT + "\n"
    if history:
        prompt += "Previous Conversation:\n" + history
    return prompt + f"Patient Question: {query.text}\n\nSwastrica Medical Response:"


def build_vision_prompt(query: Query) -> str:
    analysis = (query.analysis_type or "").strip().lower()
    task = _VISION_TASKS.get(analysis, _DEFAULT_VISION_TASK)
    prompt = f"{VISION_SYSTEM_PROMPT}\n{task}"
    if query.text.strip():
        prompt += f"\n\nUser's specific question: {query.text.strip()}"
    return prompt


def build_prompt(backend_id: str, query: Query, *, max_history: int) -> str:
    spec = BACKENDS.get(backend_id) or BACKENDS[GENERAL_BACKEND]
    if spec.kind == "vision":
        return build_vision_prompt(query)
    if spec.kind == "medical":
        return build_medical_prompt(query, max_history=max_history)
    return build_general_prompt(query, max_history=max_history)
