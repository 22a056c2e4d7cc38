"""Tests for block progress."""

import pytest

from archive_bot.progress import (
    ProgressStatus,
    blocks_remaining,
    compute_progress,
    feed_progress,
    is_complete,
)
from tests.fakes import CONTENT_KEY, META_KEY, FakeFeed


def all_true(index: int) -> bool:
    return True


def all_false(index: int) -> bool:
    return False


def even_only(index: int) -> bool:
    return index % 2 == 0


class TestComputeProgress:
    """need/have counts over a meta feed and its content feed."""

    def test_complete_feeds(self) -> None:
        assert compute_progress(10, 5, all_true, all_true) == ProgressStatus(15, 15)

    def test_nothing_downloaded(self) -> None:
        assert compute_progress(10, 0, all_false, all_false) == ProgressStatus(10, 0)

    def test_empty_archive_is_complete(self) -> None:
        status = compute_progress(0, 0, all_false, all_false)
        assert status == ProgressStatus(0, 0)
        assert status.percentage == 100.0

    def test_partial_progress(self) -> None:
        status = compute_progress(4, 6, all_true, even_only)
        assert status == ProgressStatus(need=10, have=7)
        assert status.percentage == 70.0

    def test_zero_length_feed_never_queries_predicate(self) -> None:
        def explode(index: int) -> bool:
            raise AssertionError("predicate called for empty feed")

        assert blocks_remaining(0, explode) == 0

    def test_unknown_content_contributes_nothing(self) -> None:
        assert compute_progress(3, 0, all_true, all_false) == ProgressStatus(3, 3)


class TestProgressStatus:
    """Invariants of the derived status."""

    @pytest.mark.parametrize(("need", "have"), [(-1, 0), (1, -1), (1, 2)])
    def test_should_reject_inconsistent_counts(self, need: int, have: int) -> None:
        with pytest.raises(ValueError):
            ProgressStatus(need=need, have=have)

    def test_percentage(self) -> None:
        assert ProgressStatus(need=3, have=1).percentage == pytest.approx(33.333333)


class TestFeedProgress:
    """Progress computed from store feeds."""

    def test_meta_only(self) -> None:
        feed = FakeFeed(META_KEY, length=4, present={0, 1})
        assert feed_progress(feed) == ProgressStatus(need=4, have=2)

    def test_meta_and_content(self) -> None:
        feed = FakeFeed(META_KEY, length=2, present={0, 1})
        content = FakeFeed(CONTENT_KEY, length=8, present={0, 1, 2})
        assert feed_progress(feed, content) == ProgressStatus(need=10, have=5)

    def test_is_complete(self) -> None:
        assert is_complete(FakeFeed(CONTENT_KEY, length=2, present={0, 1}))
        assert not is_complete(FakeFeed(CONTENT_KEY, length=2, present={0}))
        assert not is_complete(FakeFeed(CONTENT_KEY, length=0))
