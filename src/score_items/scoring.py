"""Relevance and recency scoring against free-text topic instructions.

Instructions are turned into a weighted keyword profile; each item is
scored on how often it mentions the profile's terms and on how recent it
is, then a per-source diversity cap picks the final set.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime

from common.datetime import now_ms, utc_now
from common.models import AIProcessedItem, RankedItem, ScoringAuditRecord, promote
from pipeline_store.base import PipelineStore

logger = logging.getLogger(__name__)

DEFAULT_TOP_K_PER_SOURCE = 3
MAX_PROFILE_TERMS = 40
MAX_OCCURRENCES = 3
MAX_AUDIT_RECORDS = 200

STOP_WORDS = frozenset(
    """
    and the that with from over this into will have has about each their they them such also
    been past days daily brief focus major story stories news very should when relevant where
    what why those between could would other more only your like time term long short week
    weeks months years overall provide clearly describe impact impacts analysis perform
    classification classifying sentiment
    """.split()
)

_PROPER_NOUN_PHRASE = re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)+)\b")
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class KeywordWeight:
    term: str
    weight: int
    is_phrase: bool = False


@dataclass
class InstructionProfile:
    keywords: list[KeywordWeight]
    total_weight: int


def _normalize_punctuation(value: str) -> str:
    return re.sub(r"[–—]", " ", re.sub(r"[’‘]", "'", value))


def normalize_for_scoring(value: str) -> str:
    value = _normalize_punctuation(value.lower())
    value = _NON_ALNUM.sub(" ", value)
    return _WHITESPACE.sub(" ", value).strip()


def build_instruction_profile(instructions: str) -> InstructionProfile:
    """Weight 1 per surviving token occurrence, 2 per proper-noun phrase.

    Only the 40 heaviest terms are kept; total weight falls back to 1.
    """
    normalized = _normalize_punctuation(instructions)
    tokens = [
        token
        for token in _NON_ALNUM.sub(" ", normalized.lower()).split()
        if len(token) >= 3 and token not in STOP_WORDS
    ]

    weights: dict[str, KeywordWeight] = {}

    def add(term: str, weight: int, is_phrase: bool = False) -> None:
        term = _WHITESPACE.sub(" ", term.lower()).strip()
        if not term:
            return
        existing = weights.get(term)
        if existing is None:
            weights[term] = KeywordWeight(term=term, weight=weight, is_phrase=is_phrase)
        else:
            existing.weight += weight
            existing.is_phrase = existing.is_phrase or is_phrase

    for token in tokens:
        add(token, 1)
    for phrase in _PROPER_NOUN_PHRASE.findall(normalized):
        add(phrase, 2, is_phrase=True)

    keywords = sorted(weights.values(), key=lambda k: k.weight, reverse=True)[:MAX_PROFILE_TERMS]
    total_weight = sum(k.weight for k in keywords) or 1
    return InstructionProfile(keywords=keywords, total_weight=total_weight)


def count_occurrences(text: str, term: str) -> int:
    if not term:
        return 0
    return len(re.findall(rf"\b{re.escape(term)}\b", text))


def score_item(item: AIProcessedItem, profile: InstructionProfile, now: datetime | None = None) -> RankedItem:
    now = now or utc_now()
    published_at = item.published_at or now
    age_hours = max(1.0, (now - published_at).total_seconds() / 3600)
    recency_score = 1 / (1 + age_hours / 24)

    text = normalize_for_scoring(f"{item.title} {item.summary or ''} {item.content or ''}")
    matched_weight = 0
    for keyword in profile.keywords:
        occurrences = count_occurrences(text, keyword.term)
        if occurrences:
            matched_weight += keyword.weight * min(occurrences, MAX_OCCURRENCES)
    relevance_score = min(1.0, matched_weight / (profile.total_weight * MAX_OCCURRENCES))

    blended = (
        relevance_score * 0.65
        + recency_score * 0.25
        + (0.05 if item.has_summary else 0)
        + (0.05 if item.is_positive else 0)
    )
    ranking_score = max(0.0, min(100.0, blended * 100))

    return promote(
        item,
        RankedItem,
        ranking_score=ranking_score,
        recency_score=recency_score,
        relevance_score=relevance_score,
    )


def score_items_for_instructions(
    items: list[AIProcessedItem], instructions: str, now: datetime | None = None
) -> list[RankedItem]:
    profile = build_instruction_profile(instructions)
    now = now or utc_now()
    return [score_item(item, profile, now) for item in items]


def _rank_key(item: RankedItem) -> tuple[float, float]:
    published = item.published_at.timestamp() if item.published_at else float("-inf")
    return (-item.ranking_score, -published)


def select_top_ranked_items(
    scored_items: list[RankedItem], top_k_per_source: int = DEFAULT_TOP_K_PER_SOURCE
) -> list[RankedItem]:
    """Top `top_k_per_source` per source, then one global sort.

    Ties on score go to the more recently published item.
    """
    by_source: dict[int, list[RankedItem]] = {}
    for item in scored_items:
        by_source.setdefault(item.source_id, []).append(item)

    selected = []
    for source_items in by_source.values():
        selected.extend(sorted(source_items, key=_rank_key)[:top_k_per_source])
    return sorted(selected, key=_rank_key)


def select_diverse_best_items(
    items: list[AIProcessedItem],
    instructions: str,
    top_k_per_source: int = DEFAULT_TOP_K_PER_SOURCE,
) -> list[RankedItem]:
    return select_top_ranked_items(score_items_for_instructions(items, instructions), top_k_per_source)


def has_ranking_score(item: AIProcessedItem) -> bool:
    return isinstance(item, RankedItem)


def cache_scoring_result(store: PipelineStore, record: ScoringAuditRecord) -> None:
    """Prepend an audit record, keeping the newest 200."""
    cache = store.load_scoring_audit_cache()
    if not record.scored_at:
        record.scored_at = now_ms()
    cache.records = [record, *cache.records][:MAX_AUDIT_RECORDS]
    cache.last_updated = now_ms()
    store.save_scoring_audit_cache(cache)
    logger.info("Cached scoring result for %s (%d scored, %d selected)",
                record.label, len(record.scored_items), len(record.selected_items))


def load_scoring_cache(store: PipelineStore):
    return store.load_scoring_audit_cache()
