"""Validate submitted answers against a survey's question specs.

Pure and synchronous: nothing here touches storage. Every violation is
collected in a single pass so the caregiver sees all problems at once.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Mapping

from app.schemas.survey import (
    BooleanQuestion,
    DateQuestion,
    MultiChoiceQuestion,
    NumberQuestion,
    QuestionSpec,
    SingleChoiceQuestion,
    TextQuestion,
)


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, frozenset)):
        return len(value) == 0
    return False


def parse_number(value: Any) -> float | None:
    """Return ``value`` as a finite float, or None if it is not a number.

    Booleans are rejected even though ``bool`` subclasses ``int``.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def parse_date_value(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def _option_values(spec: SingleChoiceQuestion | MultiChoiceQuestion) -> set[str]:
    return {o.value for o in spec.options}


def _check(spec: QuestionSpec, value: Any) -> list[str]:
    label = spec.label
    if isinstance(spec, TextQuestion):
        if not isinstance(value, str):
            return [f'"{label}" must be text']
        errors = []
        if spec.min_length is not None and len(value) < spec.min_length:
            errors.append(f'"{label}" must be at least {spec.min_length} characters')
        if spec.max_length is not None and len(value) > spec.max_length:
            errors.append(f'"{label}" must be at most {spec.max_length} characters')
        return errors

    if isinstance(spec, NumberQuestion):
        number = parse_number(value)
        if number is None:
            return [f'"{label}" must be a number']
        errors = []
        if spec.min is not None and number < spec.min:
            errors.append(f'"{label}" must be at least {spec.min:g}')
        if spec.max is not None and number > spec.max:
            errors.append(f'"{label}" must be at most {spec.max:g}')
        return errors

    if isinstance(spec, BooleanQuestion):
        if not isinstance(value, bool):
            return [f'"{label}" must be true or false']
        return []

    if isinstance(spec, DateQuestion):
        if parse_date_value(value) is None:
            return [f'"{label}" must be a valid date']
        return []

    if isinstance(spec, SingleChoiceQuestion):
        if not isinstance(value, str):
            return [f'"{label}" must be a single option']
        if spec.options and value not in _option_values(spec):
            return [f'"{label}" has an invalid option "{value}"']
        return []

    if isinstance(spec, MultiChoiceQuestion):
        if not isinstance(value, (list, tuple, set, frozenset)) or not all(
            isinstance(v, str) for v in value
        ):
            return [f'"{label}" must be a list of options']
        allowed = _option_values(spec)
        if not spec.options:
            return []
        return [
            f'"{label}" has an invalid option "{v}"'
            for v in sorted(set(value))
            if v not in allowed
        ]

    return [f'"{label}" has an unsupported question type']


def validate(answers: Mapping[str, Any], questions: Iterable[QuestionSpec]) -> ValidationResult:
    """Check ``answers`` (keyed by question id) against ``questions``."""
    specs = list(questions)
    known = {str(q.id) for q in specs}
    errors: list[str] = []

    for spec in sorted(specs, key=lambda q: q.order_index):
        value = answers.get(str(spec.id))
        if is_empty(value):
            if spec.required:
                errors.append(f'"{spec.label}" is required')
            continue
        errors.extend(_check(spec, value))

    for key in answers:
        if str(key) not in known:
            errors.append(f'Unknown question "{key}"')

    return ValidationResult(valid=not errors, errors=errors)
