"""Backend registry and category -> backend routing."""

from __future__ import annotations

from dataclasses import dataclass

from swastrica.config import Settings
from swastrica.errors import ValidationError
from swastrica.schemas import Classification, RoutingDecision

GENERAL_BACKEND = "gemini"
MEDICAL_BACKEND = "medgemma-27b"
VISION_BACKEND = "medgemma-4b"

# Sentinels used in the `model` field when no backend answered.
NO_BACKEND = "none"
EMERGENCY_MODEL = "emergency"
ERROR_MODEL = "error"


@dataclass(frozen=True)
class BackendSpec:
    backend_id: str
    kind: str  # general | medical | vision
    multimodal: bool

    @property
    def specialized(self) -> bool:
        return self.kind != "general"


BACKENDS: dict[str, BackendSpec] = {
    GENERAL_BACKEND: BackendSpec(GENERAL_BACKEND, "general", multimodal=True),
    MEDICAL_BACKEND: BackendSpec(MEDICAL_BACKEND, "medical", multimodal=False),
    VISION_BACKEND: BackendSpec(VISION_BACKEND, "vision", multimodal=True),
}

# Names the mobile clients have historically sent as `forceModel`.
_OVERRIDE_ALIASES = {
    "gemini": GENERAL_BACKEND,
    "general": GENERAL_BACKEND,
    "medgemma": MEDICAL_BACKEND,
    "medgemma-27b": MEDICAL_BACKEND,
    "medical": MEDICAL_BACKEND,
    "medgemma-4b": VISION_BACKEND,
    "medgemma-vision": VISION_BACKEND,
    "vision": VISION_BACKEND,
}

_CATEGORY_TARGETS = {
    "medical-image": (VISION_BACKEND, "image-present"),
    "medical-text": (MEDICAL_BACKEND, "keyword-match"),
    "general": (GENERAL_BACKEND, "default"),
}


def resolve_backend(name: str | None) -> str | None:
    """Canonical backend id for a caller-supplied override, or None if absent.

    Raises ValidationError for names that match no known backend.
    """
    if name is None:
        return None
    token = name.strip().lower().replace("_", "-")
    if not token or token == "auto":
        return None
    backend = _OVERRIDE_ALIASES.get(token)
    if backend is None:
        raise ValidationError(f"Unknown model '{name}'.", field="forceModel")
    return backend


def is_specialized(backend_id: str) -> bool:
    spec = BACKENDS.get(backend_id)
    return bool(spec and spec.specialized)


def timeout_for(backend_id: str, settings: Settings) -> float:
    spec = BACKENDS.get(backend_id)
    if spec is None or spec.kind == "general":
        return settings.general_timeout_sec
    if spec.kind == "vision":
        return settings.vision_timeout_sec
    return settings.medical_timeout_sec


def route(classification: Classification, override: str | None = None) -> RoutingDecision:
    apply_safety = classification.category != "general"

    if classification.is_emergency:
        return RoutingDecision(
            target=NO_BACKEND,
            reason="emergency-shortcut",
            category=classification.category,
            apply_safety=True,
        )

    forced = resolve_backend(override)
    if forced is not None:
        return RoutingDecision(
            target=forced,
            reason="override",
            category=classification.category,
            apply_safety=apply_safety,
        )

    target, reason = _CATEGORY_TARGETS[classification.category]
    return RoutingDecision(
        target=target,
        reason=reason,
        category=classification.category,
        apply_safety=apply_safety,
    )
