"""Script-aware tokenizer for transcript text.

Text is first cut into sentences on terminal punctuation and newlines so that
no token spans a sentence boundary. Each sentence is then segmented with a
strategy picked from the scripts it contains:

- latin: words made of letters/digits, apostrophes kept inside words
- japanese: maximal runs of one script class (kanji, hiragana, katakana,
  latin letters, digits)

The Japanese strategy is a cheap stand-in for a morphological analyzer; it
is deterministic but not linguistically exact.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import List, Optional

SENTENCE_TERMINALS = "。．.！!？?"
_SENTENCE_SPLIT_RE = re.compile(r"[。．.！!？?\r\n]+")
_LATIN_WORD_RE = re.compile(r"[^\W_]+(?:['’][^\W_]+)*")
_JAPANESE_RE = re.compile(r"[\u3040-\u30ff\u31f0-\u31ff\u3400-\u4dbf\u4e00-\u9fff\uff66-\uff9f]")


class Script(str, Enum):
    latin = "latin"
    japanese = "japanese"


def detect_script(text: str) -> Script:
    if text and _JAPANESE_RE.search(text):
        return Script.japanese
    return Script.latin


def script_of(ch: str) -> str:
    """Classify a single character into a script class."""
    code = ord(ch)
    if 0x3040 <= code <= 0x309F:
        return "hiragana"
    if 0x30A0 <= code <= 0x30FF or 0x31F0 <= code <= 0x31FF or 0xFF66 <= code <= 0xFF9F:
        return "katakana"
    if 0x4E00 <= code <= 0x9FFF or 0x3400 <= code <= 0x4DBF or ch == "々":
        return "kanji"
    if ch.isdigit():
        return "digit"
    if ch.isalpha():
        return "latin"
    return "other"


def is_katakana(token: str) -> bool:
    return bool(token) and all(script_of(c) == "katakana" for c in token)


def is_hiragana(token: str) -> bool:
    return bool(token) and all(script_of(c) == "hiragana" or c == "ー" for c in token)


def split_sentences(text: str) -> List[str]:
    if not text:
        return []
    parts = _SENTENCE_SPLIT_RE.split(text)
    return [p.strip() for p in parts if p and p.strip()]


def _segment_latin(sentence: str) -> List[str]:
    return _LATIN_WORD_RE.findall(sentence)


def _segment_japanese(sentence: str) -> List[str]:
    tokens: List[str] = []
    current: List[str] = []
    current_cls: Optional[str] = None
    for ch in sentence:
        cls = script_of(ch)
        # Prolonged sound mark continues whatever run it follows
        if ch == "ー" and current:
            current.append(ch)
            continue
        if cls == "other":
            if current:
                tokens.append("".join(current))
            current, current_cls = [], None
            continue
        if cls != current_cls and current:
            tokens.append("".join(current))
            current = []
        current.append(ch)
        current_cls = cls
    if current:
        tokens.append("".join(current))
    return tokens


def tokenize(text: str, script: Optional[Script] = None) -> List[str]:
    """Split `text` into an ordered list of tokens.

    The script is detected per sentence unless forced with `script`.
    """
    tokens: List[str] = []
    for sentence in split_sentences(text):
        strategy = script or detect_script(sentence)
        if strategy is Script.japanese:
            tokens.extend(_segment_japanese(sentence))
        else:
            tokens.extend(_segment_latin(sentence))
    return tokens
