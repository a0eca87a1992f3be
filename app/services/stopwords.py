from __future__ import annotations

from typing import FrozenSet

JAPANESE_STOP_WORDS: FrozenSet[str] = frozenset({
    "の", "に", "は", "を", "た", "が", "で", "て", "と", "し", "れ", "さ", "ある", "いる",
    "も", "する", "から", "な", "こと", "として", "い", "や", "れる", "など", "なっ",
    "ない", "この", "ため", "その", "あっ", "よう", "また", "もの", "という", "あり",
    "まで", "られ", "なる", "へ", "か", "だ", "これ", "によって", "により", "おり",
    "より", "による", "ず", "なり", "られる", "において", "ば", "なかっ", "なく",
    "しかし", "について", "せ", "だっ", "その後", "できる", "それ", "う", "ので",
    "なお", "のみ", "でき", "き", "つ", "における", "および", "いう", "さらに", "でも",
    "ら", "たり", "その他", "に関する", "たち", "ます", "ん", "なら", "に対して", "特に",
    "せる", "及び", "これら", "とき", "では", "にて", "ほか", "ながら", "うち", "そして",
    "とともに", "ただし", "かつて", "それぞれ", "または", "お", "ほど", "ものの",
    "に対する", "ほとんど", "と共に", "といった", "です", "くる", "こうした", "ところ",
    "でした", "ました", "ません", "ですね", "ですよ", "ね", "よ",
    # demonstratives
    "あれ", "どれ", "ここ", "そこ", "あそこ", "どこ", "あの", "どの", "こう", "そう",
    # fillers
    "えー", "えっと", "ええと", "あのー", "まあ", "うん", "ええ", "なんか", "ちょっと",
})

ENGLISH_STOP_WORDS: FrozenSet[str] = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
    "by", "from", "as", "is", "was", "are", "were", "been", "be", "have", "has", "had",
    "do", "does", "did", "will", "would", "should", "could", "may", "might", "must",
    "can", "this", "that", "these", "those", "i", "you", "he", "she", "it", "we",
    "they", "what", "which", "who", "when", "where", "why", "how", "all", "each",
    "every", "both", "few", "more", "most", "other", "some", "such", "no", "nor",
    "not", "only", "own", "same", "so", "than", "too", "very",
    "me", "my", "your", "our", "their", "his", "her", "its", "them", "us",
    "there", "here", "then", "just", "also", "into", "about", "if", "out", "up",
    "it's", "i'm", "don't", "that's",
    # fillers
    "um", "uh", "erm", "hmm", "yeah", "okay", "ok", "oh", "well",
})

STOP_WORDS: FrozenSet[str] = JAPANESE_STOP_WORDS | ENGLISH_STOP_WORDS


def is_stop_word(token: str) -> bool:
    return token.lower() in STOP_WORDS
