"""
Significance scoring for transcript text.

Two strategies share one pipeline (tokenize -> score -> truncate -> normalize
-> place):

- word mode: content tokens weighted by frequency, boosted for katakana,
  uppercase-initial and longer tokens once they repeat.
- sentence mode: sentences re-segmented from the raw text, scored by the
  global frequency of their keywords, then boosted by near-duplicate
  neighbors (Jaccard similarity), keyword co-occurrence and density.

Empty or stop-word-only input yields an empty list rather than an error.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

import numpy as np

from app.core.errors import RankingFailure
from app.core.logger import get_logger
from app.schemas.transcript import DisplayMode, RankedItem
from app.services.layout import SphereLayout
from app.services.stopwords import is_stop_word
from app.services.tokenizer import is_hiragana, is_katakana, split_sentences, tokenize

log = get_logger(__name__)


@dataclass
class WordConfig:
    max_items: int = 50
    min_token_length: int = 2
    boost_min_frequency: int = 3
    boost_factor: float = 1.2
    long_token_length: int = 3
    size_min: float = 0.5
    size_max: float = 3.0


@dataclass
class SentenceConfig:
    max_items: int = 15
    min_length: int = 5
    max_length: int = 60
    split_threshold: int = 60
    max_combine_length: int = 40
    keyword_threshold: int = 2
    global_freq_weight: float = 1.0
    similarity_threshold: float = 0.3
    similarity_weight: float = 2.0
    cooccurrence_bonus: float = 0.1
    repetition_bonus: float = 0.15
    single_repeat_bonus: float = 1.1
    density_bonus: float = 0.5
    long_penalty: float = 0.9
    size_min: float = 0.4
    size_max: float = 1.6


@dataclass
class Candidate:
    text: str
    score: float
    frequency: int


# Phrase boundaries: after commas and conjunctive particles, before English
# conjunctions. Zero-width so the delimiters stay with their phrase.
_PHRASE_BOUNDARY_RE = re.compile(
    r"(?<=[、,，])|(?<=けど)|(?<=ので)|(?<=から)|(?<=けれど)"
    r"|(?=\s(?:and|but|so|because|which)\b)",
    re.IGNORECASE,
)
_SENTENCE_FINAL_PATTERNS = ("でした", "ました", "です", "ます", "だ", "た", "ね", "よ")


def is_content_token(token: str, min_length: int = 2) -> bool:
    """True when a token survives the stop-word/length/numeric filters."""
    stripped = token.strip()
    if not stripped:
        return False
    if not any(c.isalnum() for c in stripped):
        return False
    if is_stop_word(stripped):
        return False
    if len(stripped) < min_length:
        return False
    if stripped.isdigit():
        return False
    # Script-run segmentation leaves particles and inflection tails as
    # hiragana-only runs
    if is_hiragana(stripped):
        return False
    return True


def count_frequencies(
    tokens: Iterable[str], min_length: int = 2
) -> Tuple[Dict[str, int], Dict[str, str]]:
    """Count case-normalized content tokens.

    Returns (frequency by normalized token, first-seen surface form). Dicts keep
    insertion order, which is first-appearance order.
    """
    freq: Dict[str, int] = {}
    surface: Dict[str, str] = {}
    for token in tokens:
        if not is_content_token(token, min_length):
            continue
        key = token.strip().lower()
        freq[key] = freq.get(key, 0) + 1
        surface.setdefault(key, token.strip())
    return freq, surface


def token_weight(token: str, frequency: int, config: Optional[WordConfig] = None) -> float:
    cfg = config or WordConfig()
    weight = float(frequency)
    if frequency < cfg.boost_min_frequency:
        return weight
    if is_katakana(token):
        weight *= cfg.boost_factor
    if token[:1].isupper():
        weight *= cfg.boost_factor
    if len(token) >= cfg.long_token_length:
        weight *= cfg.boost_factor
    return weight


def normalize_sizes(scores: Sequence[float], size_min: float, size_max: float) -> List[float]:
    """Min-max scale scores into [size_min, size_max].

    When every score is equal all items get size_min.
    """
    if not scores:
        return []
    hi = max(scores)
    lo = min(scores)
    span = hi - lo
    if span == 0:
        return [size_min for _ in scores]
    return [size_min + (s - lo) / span * (size_max - size_min) for s in scores]


def jaccard(a: Set[str], b: Set[str]) -> float:
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


class RankingStrategy:
    mode: DisplayMode
    size_range: Tuple[float, float]
    default_max_items: int

    def score(self, texts: Sequence[str]) -> List[Candidate]:
        raise NotImplementedError


class WordStrategy(RankingStrategy):
    mode = DisplayMode.word

    def __init__(self, config: Optional[WordConfig] = None) -> None:
        self.config = config or WordConfig()
        self.size_range = (self.config.size_min, self.config.size_max)
        self.default_max_items = self.config.max_items

    def score(self, texts: Sequence[str]) -> List[Candidate]:
        full_text = " ".join(t for t in texts if t)
        freq, surface = count_frequencies(tokenize(full_text), self.config.min_token_length)
        order = {key: i for i, key in enumerate(freq)}
        candidates = [
            Candidate(
                text=surface[key],
                score=token_weight(surface[key], count, self.config),
                frequency=count,
            )
            for key, count in freq.items()
        ]
        candidates.sort(key=lambda c: (-c.score, -c.frequency, order[c.text.lower()]))
        return candidates


class SentenceStrategy(RankingStrategy):
    mode = DisplayMode.sentence

    def __init__(self, config: Optional[SentenceConfig] = None) -> None:
        self.config = config or SentenceConfig()
        self.size_range = (self.config.size_min, self.config.size_max)
        self.default_max_items = self.config.max_items

    # -------------------------
    # Candidate extraction
    # -------------------------
    def _is_sentence_final(self, text: str) -> bool:
        return text.rstrip(" 、,，").endswith(_SENTENCE_FINAL_PATTERNS)

    def resegment(self, sentence: str) -> List[str]:
        """Cut an over-long sentence into phrases and greedily recombine them."""
        cfg = self.config
        phrases = [p for p in _PHRASE_BOUNDARY_RE.split(sentence) if p]
        out: List[str] = []
        acc = ""
        for phrase in phrases:
            if acc and len(acc) + len(phrase) > cfg.max_combine_length:
                out.append(acc)
                acc = phrase
                continue
            acc += phrase
            if self._is_sentence_final(acc) and len(acc.strip()) >= cfg.min_length * 2:
                out.append(acc)
                acc = ""
        if acc:
            out.append(acc)
        return [s.strip(" 、,，") for s in out if s.strip(" 、,，")]

    def candidates(self, texts: Sequence[str]) -> List[str]:
        cfg = self.config
        # Entries are joined on newlines so each entry ends a sentence
        full_text = "\n".join(t for t in texts if t)
        found: List[str] = []
        for sentence in split_sentences(full_text):
            if len(sentence) > cfg.split_threshold:
                found.extend(self.resegment(sentence))
            else:
                found.append(sentence)
        # Exact repeats are kept: they are each other's similarity neighbors
        return [s for s in found if cfg.min_length <= len(s) <= cfg.max_length]

    # -------------------------
    # Scoring
    # -------------------------
    def score(self, texts: Sequence[str]) -> List[Candidate]:
        cfg = self.config
        full_text = " ".join(t for t in texts if t)
        global_freq, _ = count_frequencies(tokenize(full_text))
        if not global_freq:
            return []

        sentences: List[str] = []
        token_sets: List[Set[str]] = []
        keyword_sets: List[Set[str]] = []
        for sentence in self.candidates(texts):
            tokens = {t.strip().lower() for t in tokenize(sentence) if is_content_token(t)}
            keywords = {t for t in tokens if global_freq.get(t, 0) >= cfg.keyword_threshold}
            if not keywords:
                continue
            sentences.append(sentence)
            token_sets.append(tokens)
            keyword_sets.append(keywords)

        if not sentences:
            return []

        base = [
            sum(global_freq[t] * cfg.global_freq_weight for t in keywords)
            for keywords in keyword_sets
        ]
        similarity_gain = [0.0] * len(sentences)
        neighbors = [0] * len(sentences)
        for i in range(len(sentences)):
            for j in range(i + 1, len(sentences)):
                sim = jaccard(token_sets[i], token_sets[j])
                if sim >= cfg.similarity_threshold:
                    similarity_gain[i] += sim * cfg.similarity_weight
                    similarity_gain[j] += sim * cfg.similarity_weight
                    neighbors[i] += 1
                    neighbors[j] += 1

        out: List[Candidate] = []
        for idx, sentence in enumerate(sentences):
            score = base[idx] + similarity_gain[idx]
            k = len(keyword_sets[idx])
            n = neighbors[idx]
            if k >= 2:
                score *= 1 + cfg.cooccurrence_bonus * (k - 1)
            if n >= 2:
                score *= 1 + cfg.repetition_bonus * n
            elif n == 1:
                score *= cfg.single_repeat_bonus
            density = k / len(sentence) * 10
            score *= 1 + cfg.density_bonus * min(density, 1.0)
            if len(sentence) > cfg.max_combine_length:
                score *= cfg.long_penalty
            out.append(Candidate(text=sentence, score=score, frequency=1 + n))

        order: Dict[str, int] = {}
        for i, s in enumerate(sentences):
            order.setdefault(s, i)
        out.sort(key=lambda c: (-c.score, order[c.text]))

        # Repeats collapse to their best-scoring copy
        seen: Set[str] = set()
        unique: List[Candidate] = []
        for c in out:
            if c.text in seen:
                continue
            seen.add(c.text)
            unique.append(c)
        return unique


class SignificanceScorer:
    """Single ranking entry point; the mode picks the strategy."""

    def __init__(
        self,
        word_config: Optional[WordConfig] = None,
        sentence_config: Optional[SentenceConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self._rng = rng if rng is not None else np.random.default_rng()
        self._strategies: Dict[DisplayMode, RankingStrategy] = {
            DisplayMode.word: WordStrategy(word_config),
            DisplayMode.sentence: SentenceStrategy(sentence_config),
        }

    def strategy(self, mode: Union[DisplayMode, str]) -> RankingStrategy:
        try:
            return self._strategies[DisplayMode(mode)]
        except ValueError as e:
            raise RankingFailure(f"Unknown ranking mode: {mode!r}") from e

    def rank(
        self,
        texts: Sequence[str],
        mode: Union[DisplayMode, str] = DisplayMode.word,
        max_items: Optional[int] = None,
    ) -> List[RankedItem]:
        strategy = self.strategy(mode)
        clean = [t for t in texts if isinstance(t, str) and t.strip()]
        if not clean:
            return []

        limit = max_items if max_items is not None else strategy.default_max_items
        if limit <= 0:
            return []
        candidates = strategy.score(clean)[:limit]
        if not candidates:
            log.debug("rank(%s): no significant items in %d texts", strategy.mode.value, len(clean))
            return []

        size_min, size_max = strategy.size_range
        sizes = normalize_sizes([c.score for c in candidates], size_min, size_max)
        items = [
            RankedItem(text=c.text, score=c.score, size=size, frequency=c.frequency)
            for c, size in zip(candidates, sizes)
        ]
        return SphereLayout.for_mode(strategy.mode, rng=self._rng).place(items)
