"""Tests for grouping language variants into signals."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from govsignals.aggregation.grouper import SignalGrouper
from govsignals.ingestion.base import FetchedItem, RawFeedItem
from govsignals.ingestion.identity import NoticeIdentityResolver

KINGS_ROAD = "https://www.td.gov.hk/en/notice/12345.htm"
EN_PUBLISHED = datetime(2024, 1, 10, 8, 0, tzinfo=UTC)


def _fetched(source, language, title, link=KINGS_ROAD, published_at=EN_PUBLISHED, body="", guid=None):
    item = RawFeedItem(guid=guid or f"{language}-{link}", title=title, link=link, published_at=published_at, body=body)
    return FetchedItem(item=item, language=language, source=source)


@pytest.fixture
def grouper():
    return SignalGrouper(NoticeIdentityResolver(), anchor_language="en")


class TestSignalGrouper:
    """Validate identity grouping, timestamp selection and anchor gating."""

    def test_kings_road_variants_become_one_signal(self, grouper, make_source):
        source = make_source()
        signals = grouper.group([
            _fetched(source, "en", "Road closure on King's Road", body="<p>Eastbound lanes closed.</p>"),
            _fetched(source, "zh-TW", "英皇道封路", published_at=EN_PUBLISHED + timedelta(minutes=5)),
        ])

        assert len(signals) == 1
        signal = signals[0]
        assert signal.notice_id == "12345"
        assert signal.feed_group == "transport_notices"
        assert signal.source_identifier == "transport_notices_12345"
        assert signal.category == "transport_notice"
        assert signal.published_at == EN_PUBLISHED
        assert set(signal.languages) == {"en", "zh-TW"}
        assert signal.languages["en"].body == "Eastbound lanes closed."
        assert signal.urls == {"en": KINGS_ROAD, "zh-TW": KINGS_ROAD}

    def test_earliest_timestamp_wins_regardless_of_order(self, grouper, make_source):
        source = make_source()
        signals = grouper.group([
            _fetched(source, "zh-TW", "英皇道封路", published_at=EN_PUBLISHED + timedelta(minutes=5)),
            _fetched(source, "en", "Road closure on King's Road"),
        ])
        assert signals[0].published_at == EN_PUBLISHED

    def test_timestamps_are_normalized_to_utc(self, grouper, make_source):
        source = make_source()
        hong_kong = timezone(timedelta(hours=8))
        signals = grouper.group([
            _fetched(source, "en", "Road closure", published_at=datetime(2024, 1, 10, 15, 0, tzinfo=hong_kong)),
            _fetched(source, "zh-TW", "封路", published_at=datetime(2024, 1, 10, 8, 30)),
        ])
        assert signals[0].published_at == datetime(2024, 1, 10, 7, 0, tzinfo=UTC)

    def test_signal_without_anchor_title_is_dropped(self, grouper, make_source):
        source = make_source()
        signals = grouper.group([
            _fetched(source, "zh-TW", "英皇道封路"),
            _fetched(source, "en", "Lane closure", link="https://www.td.gov.hk/en/notice/200.htm"),
        ])
        assert [s.notice_id for s in signals] == ["200"]

    def test_blank_anchor_title_after_cleanup_is_dropped(self, grouper, make_source):
        source = make_source()
        assert grouper.group([_fetched(source, "en", "<p> &nbsp; </p>")]) == []

    def test_distinct_identities_stay_apart(self, grouper, make_source):
        source = make_source()
        signals = grouper.group([
            _fetched(source, "en", "First", link="https://www.td.gov.hk/en/notice/1.htm"),
            _fetched(source, "en", "Second", link="https://www.td.gov.hk/en/notice/2.htm"),
        ])
        assert sorted(s.notice_id for s in signals) == ["1", "2"]

    def test_same_identity_in_different_groups_stays_apart(self, grouper, make_source):
        notices = make_source()
        press = make_source(id="src-press", feed_group="td_press")
        signals = grouper.group([
            _fetched(notices, "en", "Road closure"),
            _fetched(press, "en", "Road closure press release"),
        ])
        assert sorted(s.source_identifier for s in signals) == ["td_press_12345", "transport_notices_12345"]

    def test_unresolvable_item_is_skipped(self, make_source):
        grouper = SignalGrouper(NoticeIdentityResolver(strategies=[lambda link, source, title: None]))
        assert grouper.group([_fetched(make_source(), "en", "Road closure")]) == []

    def test_source_priority_boost_is_carried(self, grouper, make_source):
        source = make_source(scraping_config={"identity_pattern": r"/notice/(\d+)\.htm", "priority_boost": 15})
        (signal,) = grouper.group([_fetched(source, "en", "Road closure")])
        assert signal.priority_boost == 15

    def test_unknown_feed_group_is_administrative(self, grouper, make_source):
        source = make_source(feed_group="lcsd_notices")
        (signal,) = grouper.group([_fetched(source, "en", "Pool closure")])
        assert signal.category == "administrative"

    def test_later_variant_in_same_language_replaces_earlier(self, grouper, make_source):
        source = make_source()
        (signal,) = grouper.group([
            _fetched(source, "en", "Road closure"),
            _fetched(source, "en", "Road closure (revised)"),
        ])
        assert signal.languages["en"].title == "Road closure (revised)"

    def test_deterministic_fallback_groups_across_runs(self, grouper, make_source):
        source = make_source(feed_group="chp_press", scraping_config={})
        items = [_fetched(source, "en", "Flu update", link="")]
        first = grouper.group(items)
        second = grouper.group(items)
        assert first[0].source_identifier == second[0].source_identifier
        assert first[0].notice_id.startswith("item_")
