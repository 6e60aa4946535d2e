"""Per-type validation of submitted answer values.

Each question type reads exactly one value channel and the result carries
that channel only; the other three are cleared.
"""
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

from app.core.exceptions import ValidationError
from app.models.enums import QuestionType

TRUTHY_TOKENS = frozenset(["true", "1", "yes", "y", "on", "بله", "بلی", "اره", "آره"])
FALSY_TOKENS = frozenset(["false", "0", "no", "n", "off", "خیر", "نه"])


@dataclass
class ResponseValue:
    scale_value: Optional[int] = None
    option_value: Optional[str] = None
    option_values: List[str] = field(default_factory=list)
    text_value: Optional[str] = None

    def as_columns(self) -> dict:
        return {
            "scale_value": self.scale_value,
            "option_value": self.option_value,
            "option_values": list(self.option_values),
            "text_value": self.text_value,
        }


def normalize_boolean(raw: Any) -> Optional[str]:
    """Map a truthy/falsy token to ``"TRUE"``/``"FALSE"``; None when unrecognized."""
    if raw is None:
        return None
    if isinstance(raw, bool):
        return "TRUE" if raw else "FALSE"
    text = str(raw).strip()
    if text in ("TRUE", "FALSE"):
        return text
    lowered = text.lower()
    if lowered in TRUTHY_TOKENS:
        return "TRUE"
    if lowered in FALSY_TOKENS:
        return "FALSE"
    return None


def _dedupe(values: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def validate_value(
    question_type: str,
    scale_value: Optional[int] = None,
    option_value: Optional[Any] = None,
    option_values: Optional[List[str]] = None,
    text_value: Optional[str] = None,
    min_scale: Optional[int] = None,
    max_scale: Optional[int] = None,
    valid_options: Optional[List[str]] = None,
) -> ResponseValue:
    """Validate one submitted value against the question's type and constraints."""
    valid_options = valid_options or []

    if question_type == QuestionType.SCALE.value:
        if scale_value is None:
            raise ValidationError("scaleValue required", field="scale_value")
        if min_scale is not None and scale_value < min_scale:
            raise ValidationError("scaleValue below min", field="scale_value", details={"min": min_scale})
        if max_scale is not None and scale_value > max_scale:
            raise ValidationError("scaleValue above max", field="scale_value", details={"max": max_scale})
        return ResponseValue(scale_value=scale_value)

    if question_type == QuestionType.TEXT.value:
        if text_value is None or not str(text_value).strip():
            raise ValidationError("textValue required", field="text_value")
        return ResponseValue(text_value=str(text_value).strip())

    if question_type == QuestionType.BOOLEAN.value:
        if option_value is None:
            raise ValidationError('optionValue required ("TRUE" or "FALSE")', field="option_value")
        normalized = normalize_boolean(option_value)
        if normalized is None:
            raise ValidationError("optionValue must be TRUE or FALSE", field="option_value")
        return ResponseValue(option_value=normalized)

    if question_type == QuestionType.SINGLE_CHOICE.value:
        if not option_value:
            raise ValidationError("optionValue required", field="option_value")
        if option_value not in valid_options:
            raise ValidationError("Invalid optionValue", field="option_value", details={"value": option_value})
        return ResponseValue(option_value=option_value)

    if question_type == QuestionType.MULTI_CHOICE.value:
        if not option_values:
            raise ValidationError("optionValues required", field="option_values")
        invalid = [v for v in option_values if v not in valid_options]
        if invalid:
            raise ValidationError("Invalid optionValues", field="option_values", details={"invalid": invalid})
        return ResponseValue(option_values=_dedupe(option_values))

    raise ValidationError(f"Unsupported question type: {question_type}", field="type")
