"""Naming conventions: case conversion, action names and test file names."""

from __future__ import annotations

import re

_WORD_SPLIT = re.compile(r"[-_.\s]+")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_SEGMENT_SPLIT = re.compile(r"[_.\-:]")


def _words(text: str) -> list[str]:
    words: list[str] = []
    for chunk in _WORD_SPLIT.split(text or ""):
        words.extend(w for w in _CAMEL_BOUNDARY.split(chunk) if w)
    return words


def pascal_case(text: str | None) -> str:
    """``checked_in`` -> ``CheckedIn``, ``bookingId`` -> ``BookingId``."""
    if not text or not isinstance(text, str):
        return ""
    return "".join(w[:1].upper() + w[1:] for w in _words(text))


def camel_case(text: str | None) -> str:
    """``checked_in`` -> ``checkedIn``."""
    pascal = pascal_case(text)
    return pascal[:1].lower() + pascal[1:]


def snake_case(text: str | None) -> str:
    """``BtnCalendarDay`` -> ``btn_calendar_day``."""
    if not text or not isinstance(text, str):
        return ""
    return "_".join(w.lower() for w in _words(text))


def capitalize(text: str | None) -> str:
    """Upper-case the first character only."""
    if not text:
        return ""
    return text[:1].upper() + text[1:]


def normalize_state(name: str | None) -> str:
    """Comparison key for state names (case, underscore and dash insensitive)."""
    if not name:
        return ""
    return re.sub(r"[_\-\s]", "", name).lower()


def state_matches(candidate: str | None, target: str | None) -> bool:
    """True when two state names denote the same state.

    Full names match after normalization. A prefix is stripped from one side
    only: ``booking_accepted`` and ``Booking.accepted`` match ``accepted``,
    but ``logged_in`` never matches ``checked_in``.
    """
    if not candidate or not target:
        return False
    whole_candidate = normalize_state(candidate)
    whole_target = normalize_state(target)
    if whole_candidate == whole_target:
        return True
    return (
        normalize_state(_last_segment(candidate)) == whole_target
        or whole_candidate == normalize_state(_last_segment(target))
    )


def _last_segment(name: str) -> str:
    parts = [p for p in _SEGMENT_SPLIT.split(name) if p]
    return parts[-1] if parts else name


def action_name(target: str, from_state: str | None = None, override: str | None = None) -> str:
    """Action name for a generated test.

    ``{camel(target)}Via{Pascal(from)}`` when the incoming transition is
    known, else the explicit override, else the camel-cased target.
    """
    if from_state:
        return f"{camel_case(target)}Via{pascal_case(from_state)}"
    if override:
        return override
    return camel_case(target)


def spec_file_name(
    action: str, platform_suffix: str, event: str | None = None, extension: str = "spec.js"
) -> str:
    """``{Action}-{EVENT}-{Suffix}-UNIT.spec.js``; event omitted when unknown."""
    parts = [pascal_case(action)]
    if event:
        parts.append(event.replace("_", "").upper())
    parts.append(platform_suffix)
    return "-".join(parts) + f"-UNIT.{extension}"
