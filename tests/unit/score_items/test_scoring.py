"""Tests for score_items.scoring module."""

from datetime import datetime, timedelta, timezone

from common.models import AIProcessedItem, RankedItem, ScoringAuditRecord, Sentiment
from pipeline_store.file_store import FilePipelineStore
from score_items.scoring import (
    MAX_AUDIT_RECORDS,
    build_instruction_profile,
    cache_scoring_result,
    count_occurrences,
    has_ranking_score,
    load_scoring_cache,
    score_items_for_instructions,
    select_diverse_best_items,
    select_top_ranked_items,
)

NOW = datetime(2025, 4, 17, 12, 0, tzinfo=timezone.utc)


def _item(
    item_id: str,
    source_id: int,
    title: str,
    summary: str | None = None,
    hours_ago: float = 1,
    sentiment: Sentiment | None = None,
) -> AIProcessedItem:
    return AIProcessedItem(
        id=item_id,
        source_id=source_id,
        title=title,
        link=f"https://example.com/{item_id}",
        published_at=NOW - timedelta(hours=hours_ago),
        media_type="text",
        media_url=f"https://example.com/{item_id}",
        summary=summary,
        has_summary=summary is not None,
        sentiment=sentiment,
    )


def _ranked(item_id: str, source_id: int, score: float, published_at: datetime | None) -> RankedItem:
    return RankedItem(
        id=item_id,
        source_id=source_id,
        title=item_id,
        link=f"https://example.com/{item_id}",
        published_at=published_at,
        media_type="text",
        media_url=f"https://example.com/{item_id}",
        ranking_score=score,
        recency_score=0.5,
        relevance_score=0.5,
    )


class TestBuildInstructionProfile:
    def test_drops_stop_words_and_short_tokens(self) -> None:
        profile = build_instruction_profile("Focus on the semiconductor news of the day")
        terms = {k.term for k in profile.keywords}
        assert "semiconductor" in terms
        assert "focus" not in terms
        assert "on" not in terms
        assert "the" not in terms

    def test_proper_noun_phrases_weigh_more(self) -> None:
        profile = build_instruction_profile("Follow rules from the European Union on chips")
        phrase = next(k for k in profile.keywords if k.term == "european union")
        assert phrase.weight == 2
        assert phrase.is_phrase is True
        assert profile.keywords[0].term == "european union"

    def test_empty_instructions_have_unit_weight(self) -> None:
        profile = build_instruction_profile("")
        assert profile.keywords == []
        assert profile.total_weight == 1

    def test_profile_is_capped(self) -> None:
        words = " ".join(f"word{chr(97 + i // 26)}{chr(97 + i % 26)}" for i in range(60))
        assert len(build_instruction_profile(words).keywords) == 40


class TestCountOccurrences:
    def test_word_boundaries(self) -> None:
        assert count_occurrences("chip chips chip", "chip") == 2


class TestScoreItems:
    def test_relevance_and_recency(self) -> None:
        items = [
            _item("a", 1, "Semiconductor tariffs hit semiconductor makers"),
            _item("b", 1, "Local football results"),
        ]
        scored = score_items_for_instructions(items, "semiconductor tariffs", now=NOW)

        assert scored[0].relevance_score > scored[1].relevance_score
        assert scored[1].relevance_score == 0
        assert scored[0].ranking_score > scored[1].ranking_score
        assert abs(scored[0].recency_score - 1 / (1 + 1 / 24)) < 1e-9

    def test_age_is_floored_at_one_hour(self) -> None:
        item = _item("a", 1, "x", hours_ago=0)
        scored = score_items_for_instructions([item], "anything", now=NOW)
        assert scored[0].recency_score == 1 / (1 + 1 / 24)

    def test_summary_and_sentiment_boosts(self) -> None:
        plain = _item("a", 1, "Unrelated")
        boosted = _item("b", 1, "Unrelated", summary="Unrelated summary", sentiment=Sentiment.POSITIVE)
        scored = score_items_for_instructions([plain, boosted], "semiconductor", now=NOW)
        assert round(scored[1].ranking_score - scored[0].ranking_score, 6) == 10

    def test_scores_stay_in_range(self) -> None:
        item = _item("a", 1, "chips " * 50, summary="chips", sentiment=Sentiment.POSITIVE, hours_ago=0)
        scored = score_items_for_instructions([item], "chips", now=NOW)
        assert 0 <= scored[0].ranking_score <= 100
        assert scored[0].relevance_score == 1
        assert has_ranking_score(scored[0])


class TestSelectTopRankedItems:
    def test_diversity_cap_keeps_one_per_source(self) -> None:
        items = [
            _item("a1", 1, "Semiconductor export controls tighten on semiconductor tools"),
            _item("a2", 1, "Semiconductor stocks"),
            _item("b1", 2, "Weather update"),
        ]
        selected = select_diverse_best_items(items, "semiconductor export controls", top_k_per_source=1)

        assert sorted(i.id for i in selected) == ["a1", "b1"]
        assert selected[0].id == "a1"

    def test_ties_go_to_most_recent(self) -> None:
        older = _ranked("older", 1, 50.0, NOW - timedelta(hours=5))
        newer = _ranked("newer", 2, 50.0, NOW - timedelta(hours=1))
        undated = _ranked("undated", 3, 50.0, None)

        selected = select_top_ranked_items([older, undated, newer], top_k_per_source=3)

        assert [i.id for i in selected] == ["newer", "older", "undated"]


class TestScoringCache:
    def _record(self, label: str, scored_at: int) -> ScoringAuditRecord:
        return ScoringAuditRecord(
            label=label,
            custom_instructions="chips",
            scored_items=[_ranked("a", 1, 10.0, NOW)],
            selected_items=[],
            top_k_per_source=3,
            scored_at=scored_at,
        )

    def test_prepends_newest(self, tmp_path) -> None:
        store = FilePipelineStore(cache_dir=tmp_path)
        cache_scoring_result(store, self._record("first", 1))
        cache_scoring_result(store, self._record("second", 2))

        cache = load_scoring_cache(store)

        assert [r.label for r in cache.records] == ["second", "first"]
        assert cache.records[1].scored_items[0].published_at == NOW
        assert cache.last_updated > 0

    def test_keeps_newest_records_only(self, tmp_path) -> None:
        store = FilePipelineStore(cache_dir=tmp_path)
        for i in range(MAX_AUDIT_RECORDS + 2):
            cache_scoring_result(store, self._record(f"r{i}", i + 1))

        cache = load_scoring_cache(store)

        assert len(cache.records) == MAX_AUDIT_RECORDS
        assert cache.records[0].label == f"r{MAX_AUDIT_RECORDS + 1}"
