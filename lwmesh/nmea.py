"""Minimal NMEA 0183 sentence parser extracting the sentence type and GGA time."""

from __future__ import annotations

from dataclasses import dataclass

NMEA_MAX_SENTENCE_LENGTH = 82

_SENTENCE_TYPE_MAX = 5
_TIME_MAX = 19
_TIME_SENTENCE = "GPGGA"


@dataclass
class NMEAData:
    """Fields taken from one NMEA sentence."""

    sentence_type: str = ""
    time: str = ""


def _format_time(token: str) -> str | None:
    if len(token) < 6:
        return None
    hours, minutes, seconds = token[0:2], token[2:4], token[4:6]
    dot = token.find(".")
    frac = token[dot + 1 : dot + 4] if dot >= 0 else "000"
    return f"{hours}:{minutes}:{seconds},{frac} UTC"[:_TIME_MAX]


def parse_sentence(sentence: str) -> NMEAData:
    """Parse a sentence; empty fields are skipped when counting positions."""
    if sentence.startswith("$"):
        sentence = sentence[1:]

    data = NMEAData()
    tokens = (token for token in sentence.split(",") if token)
    for index, token in enumerate(tokens):
        if index == 0:
            data.sentence_type = token[:_SENTENCE_TYPE_MAX]
        elif index == 1:
            if data.sentence_type == _TIME_SENTENCE:
                formatted = _format_time(token)
                if formatted is not None:
                    data.time = formatted
        else:
            break
    return data