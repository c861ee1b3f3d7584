"""Prompt text for turning dispatch shorthand into plain-English descriptions."""

from __future__ import annotations

from typing import Final

NOTES_PREFIX_LABEL: Final[str] = "Call Notes:"
USER_PREFIX: Final[str] = "Original Dispatch Notes: "

_TEN_CODES: Final[dict[str, str]] = {
    "10-18": "Holding first engine and truck",
    "10-19": "Holding all units specified",
    "10-24": "Auto fire (RD: on city street, HW: on highway)",
    "10-26": "Food on the stove",
    "10-29": "Structure fire",
    "10-32": "Accidental alarm",
    "10-35": "Defective alarm",
    "10-36": "Water condition / open hydrant / wires down / outside smoke / lock-in",
    "10-45": "Medical aid",
    "10-80": "Inside gas emergency",
    "10-82": "Request hazmat",
    "10-84": "Unit on scene",
    "10-87": "Elevator emergency",
    "10-92": "False alarm",
}

_EXAMPLES: Final[tuple[tuple[str, str], ...]] = (
    (
        "DIFF BREATHING 11 YOA FEMALE TRANS TO EMPRESS",
        "Child (11-year-old female) with difficulty breathing. "
        "Patient transferred to Empress ambulance.",
    ),
    (
        "INSIDE GAS ODOR 15 MIN ETA CON ED GAS: NOTIFY CON ED GAS. (914) 555-0100 "
        "B2 A/C CONNOLLY L74 3 STORY ORDINARY CHECKING 10-19 E307 WAITING FOR CON ED",
        "Gas odor inside 3-story building. B2, L74 investigating. "
        "All units holding. E307 waiting for Con Edison Gas.",
    ),
    (
        "FOOD ON STOVE CALLER ADVISED FIRE ALARM SOUNDING, NO SMOKE OR FLAMES",
        "Food on stove. Alarm sounding but no smoke or flames reported.",
    ),
    (
        "LOW HANGING WIRE CON ED ELECTRIC: NOTIFY CON ED ELECTRIC",
        "Low hanging electrical wire reported. Con Edison Electric has been notified.",
    ),
)


def _render_system_prompt() -> str:
    codes = "\n".join(f"- {code}: {meaning}" for code, meaning in _TEN_CODES.items())
    examples = "\n\n".join(
        f"{USER_PREFIX}{original}\nTransformed Description: {transformed}"
        for original, transformed in _EXAMPLES
    )
    return (
        "You translate emergency dispatch notes into clear descriptions that anyone can "
        "understand without emergency-services training.\n\n"
        "CONSTRAINTS:\n"
        "- Output between 100 and 150 characters.\n"
        "- Expand codes and abbreviations into plain English, but keep unit designations "
        "(B1, L74, E307, ...).\n"
        "- Give both the age and the age group (infant, child, adult, elderly) when known.\n"
        "- Remove all telephone numbers and specific addresses.\n"
        "- 'Empress' is the district ambulance service; 'transfer to Empress' is a patient "
        "handover, not a phone transfer.\n"
        "- Never output numeric 10-codes; translate them.\n"
        "- Keep only critical information; drop system notices and repetition.\n\n"
        f"10-CODES:\n{codes}\n\n"
        f"EXAMPLES:\n\n{examples}\n\n"
        "Transform the following dispatch notes into a plain English description "
        "between 100 and 150 characters."
    )


DISPATCH_NOTES_SYSTEM_PROMPT: Final[str] = _render_system_prompt()
