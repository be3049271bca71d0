"""Pluggable similarity judgment used for dedup before writes.

The default strategy compares titles by token overlap and tags by set
overlap:

    score = max(title, 0.6 * title + 0.4 * tags)

Identical slugs score 1.0. A score at or above the match threshold (0.75)
means UPDATE. Scores in the ambiguous band [0.5, 0.75) resolve to CREATE
and are logged, so unrelated topics are never merged silently. Tag overlap
alone caps at 0.4 and can never produce a match.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from memtree.memory.entry import normalize_tags, slugify

_TOKEN = re.compile(r"[a-z0-9]+")


@runtime_checkable
class SimilarityStrategy(Protocol):
    """Scores how likely two (title, tags) pairs describe the same topic."""

    def score(
        self, title: str, tags: list[str], other_title: str, other_tags: list[str]
    ) -> float: ...


def _jaccard(a: set[str], b: set[str]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def title_tokens(title: str) -> set[str]:
    return set(_TOKEN.findall(title.lower()))


@dataclass
class TokenOverlapSimilarity:
    title_weight: float = 0.6
    tag_weight: float = 0.4

    def score(
        self, title: str, tags: list[str], other_title: str, other_tags: list[str]
    ) -> float:
        if slugify(title) == slugify(other_title):
            return 1.0
        title_score = _jaccard(title_tokens(title), title_tokens(other_title))
        tag_score = _jaccard(set(normalize_tags(tags)), set(normalize_tags(other_tags)))
        return max(title_score, self.title_weight * title_score + self.tag_weight * tag_score)
