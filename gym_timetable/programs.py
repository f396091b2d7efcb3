"""Canonical program codes for free-text gym activity labels."""

from __future__ import annotations

import enum
import re
from typing import Dict, Optional

UNKNOWN = "UNKNOWN"

_WHITESPACE_RE = re.compile(r"\s+")


class Program(enum.Enum):
    BP = "BP"
    BB = "BB"
    BC = "BC"
    SB = "SB"
    ES = "ES"
    RPM = "RPM"
    BS = "BS"
    CX = "CX"
    SPRINT = "SPRINT"
    GRIT = "GRIT"
    BARRE = "BARRE"
    TONE = "TONE"
    CORE = "CORE"


# Keys are cleaned tokens (see ``clean_label``); every code maps to itself.
SYNONYMS: Dict[str, Program] = {
    **{p.value: p for p in Program},
    "BODYPUMP": Program.BP,
    "BODYBALANCE": Program.BB,
    "BODYCOMBAT": Program.BC,
    "SHBAM": Program.SB,
    "DANCE": Program.SB,
    "ESTIRAMENTS": Program.ES,
    "ESTIRAMIENTS": Program.ES,
    "ESTIRAMIENTOS": Program.ES,
    "STRETCH": Program.ES,
    "BODYSTEP": Program.BS,
    "CXWORX": Program.CX,
}

DISPLAY_NAMES = {
    Program.BP: "BodyPump",
    Program.BC: "BodyCombat",
    Program.SB: "Sh'Bam",
    Program.BB: "BodyBalance",
    Program.ES: "Estiraments",
}


def clean_label(raw: Optional[str]) -> str:
    if not raw:
        return ""
    cleaned = _WHITESPACE_RE.sub("", raw.upper()).replace("'", "")
    # repeat until stable so that cleaning stays idempotent ("OUTOUTDOORDOOR")
    while "OUTDOOR" in cleaned:
        cleaned = cleaned.replace("OUTDOOR", "")
    return cleaned


def lookup(raw: Optional[str]) -> Optional[Program]:
    """Return the known program for a label, or None when it is not recognised."""
    return SYNONYMS.get(clean_label(raw))


def normalize(raw: Optional[str]) -> str:
    """Map a raw activity label to its canonical short code.

    Unrecognised labels fall back to their cleaned form, which then acts as
    its own code. ``normalize(normalize(x)) == normalize(x)``.
    """
    cleaned = clean_label(raw)
    program = SYNONYMS.get(cleaned)
    if program is not None:
        return program.value
    return cleaned


def display_name(code: str) -> str:
    program = lookup(code)
    if program is None:
        return code
    return DISPLAY_NAMES.get(program, program.value)
