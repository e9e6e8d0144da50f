from __future__ import annotations

import re

_INLINE_WHITESPACE = re.compile(r"[ \t\f\v\u00a0]+")
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_SENTENCE_END = re.compile(r"(?<=[.!?…])\s+")


def normalize_text(text: str) -> str:
    """Collapse whitespace while keeping blank-line paragraph breaks.

    Args:
        text: Raw transcript as returned by the provider.

    Returns:
        Text with unified newlines, trimmed lines, single spaces, and at most
        one blank line between paragraphs.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = [_INLINE_WHITESPACE.sub(" ", line).strip() for line in text.split("\n")]
    return re.sub(r"\n{3,}", "\n\n", "\n".join(lines)).strip()


def split_paragraphs(text: str) -> list[str]:
    """Split normalized text on blank lines, joining wrapped lines inside a paragraph."""
    paragraphs = []
    for block in _PARAGRAPH_BREAK.split(normalize_text(text)):
        paragraph = " ".join(line for line in block.split("\n") if line)
        if paragraph:
            paragraphs.append(paragraph)
    return paragraphs


def _pack(pieces: list[str], max_chars: int, separator: str = " ") -> list[str]:
    groups: list[str] = []
    current = ""
    for piece in pieces:
        candidate = f"{current}{separator}{piece}" if current else piece
        if len(candidate) <= max_chars:
            current = candidate
            continue
        if current:
            groups.append(current)
        current = piece
    if current:
        groups.append(current)
    return groups


def _split_long_sentence(sentence: str, max_chars: int) -> list[str]:
    words: list[str] = []
    for word in sentence.split(" "):
        if len(word) <= max_chars:
            words.append(word)
        else:
            words.extend(word[start : start + max_chars] for start in range(0, len(word), max_chars))
    return _pack(words, max_chars)


def segment_transcript(text: str, max_chars: int = 1200) -> list[str]:
    """Split a transcript into paragraph-aligned segments of bounded length.

    Paragraphs that fit are kept whole.  Longer paragraphs are packed greedily by
    sentence, sentences that still do not fit are packed by word, and a single
    word longer than ``max_chars`` is cut.

    Args:
        text: Transcript text.
        max_chars: Maximum number of characters per segment.

    Returns:
        Non-empty segments in document order.
    """
    if max_chars < 1:
        raise ValueError("max_chars must be positive")

    segments: list[str] = []
    for paragraph in split_paragraphs(text):
        if len(paragraph) <= max_chars:
            segments.append(paragraph)
            continue

        sentences: list[str] = []
        for sentence in _SENTENCE_END.split(paragraph):
            if len(sentence) <= max_chars:
                sentences.append(sentence)
            else:
                sentences.extend(_split_long_sentence(sentence, max_chars))
        segments.extend(_pack(sentences, max_chars))
    return segments
