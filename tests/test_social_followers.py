"""Tests for social follower normalization and merge."""

from contact_engine.core.social_followers import (
    canonical_platform,
    coerce_count,
    merge_social_followers,
    normalize_follower,
    normalize_metric,
)


class TestNormalization:
    def test_twitter_folds_into_x(self) -> None:
        assert canonical_platform("Twitter") == "x"
        assert canonical_platform("x") == "x"

    def test_unknown_platform_becomes_other(self) -> None:
        assert canonical_platform("mastodon") == "other"
        assert canonical_platform(None) == "other"

    def test_metric_inference(self) -> None:
        assert normalize_metric("subs") == "subscribers"
        assert normalize_metric("Subscriber") == "subscribers"
        assert normalize_metric("fans") == "followers"
        assert normalize_metric(None) is None
        assert normalize_metric("") is None

    def test_count_coercion(self) -> None:
        assert coerce_count("12,300") == 12300
        assert coerce_count(12.6) == 13
        assert coerce_count("12.3K") is None
        assert coerce_count(-5) is None
        assert coerce_count(True) is None
        assert coerce_count(None) is None

    def test_entry_without_count_is_dropped(self) -> None:
        assert normalize_follower({"platform": "instagram"}) is None
        assert normalize_follower("not a dict") is None


class TestMerge:
    def test_both_empty_is_no_signal(self) -> None:
        assert merge_social_followers([], []) is None
        assert merge_social_followers(None, [{"platform": "x"}]) is None

    def test_higher_count_wins(self) -> None:
        merged = merge_social_followers(
            [{"platform": "instagram", "count": 100}],
            [{"platform": "instagram", "count": 50}],
        )
        assert merged is not None
        assert len(merged) == 1
        assert merged[0].count == 100

    def test_twitter_and_x_collapse_to_one_entry(self) -> None:
        merged = merge_social_followers(
            [{"platform": "x", "count": 10}],
            [{"platform": "twitter", "count": 20, "handle": "@jane"}],
        )
        assert merged is not None
        assert [(f.platform, f.count) for f in merged] == [("x", 20)]
        assert all(f.platform != "twitter" for f in merged)

    def test_tie_prefers_entry_with_url_or_handle(self) -> None:
        merged = merge_social_followers(
            [{"platform": "github", "count": 7}],
            [{"platform": "github", "count": 7, "url": "https://github.com/jane"}],
        )
        assert merged is not None
        assert merged[0].url == "https://github.com/jane"

    def test_full_tie_keeps_first_and_borrows_label(self) -> None:
        merged = merge_social_followers(
            [{"platform": "tiktok", "count": 7}],
            [{"platform": "tiktok", "count": 7, "label": "TikTok"}],
        )
        assert merged is not None
        assert merged[0].label == "TikTok"

    def test_one_entry_per_platform_sorted_by_count(self) -> None:
        merged = merge_social_followers(
            [
                {"platform": "youtube", "count": "56000", "metric": "subs"},
                {"platform": "instagram", "count": 1200},
            ],
            [
                {"platform": "linkedin", "count": 900},
                {"platform": "instagram", "count": 1500},
            ],
        )
        assert merged is not None
        platforms = [f.platform for f in merged]
        assert platforms == ["youtube", "instagram", "linkedin"]
        assert len(set(platforms)) == len(platforms)
        assert merged[0].metric == "subscribers"

    def test_existing_only_returns_canonical_copy(self) -> None:
        merged = merge_social_followers([{"platform": "Instagram", "count": 5}], [])
        assert merged is not None
        assert merged[0].platform == "instagram"
