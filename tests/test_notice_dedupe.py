# tests/test_notice_dedupe.py
from modules.notice_watch.lib.dedupe import DedupeStats, dedupe
from modules.notice_watch.lib.models import NoticeRecord


def _rec(link, title="t", date="2025-01-01"):
    return NoticeRecord(title=title, link=link, post_date=date)


def test_first_occurrence_wins_and_order_is_kept():
    recs = [
        _rec("https://x/a", title="A first", date="2025-01-02"),
        _rec("https://x/b"),
        _rec("https://x/a", title="A again", date="01-02"),
        _rec("https://x/c"),
        _rec("https://x/b"),
    ]
    stats = DedupeStats()
    out = list(dedupe(recs, stats=stats))

    assert [r.link for r in out] == ["https://x/a", "https://x/b", "https://x/c"]
    assert out[0].title == "A first"
    assert out[0].post_date == "2025-01-02"
    assert stats.kept == 3
    assert stats.dropped == 2


def test_only_link_is_compared():
    # Same title and date, different links: both kept
    out = list(dedupe([_rec("https://x/1", title="Same"), _rec("https://x/2", title="Same")]))
    assert len(out) == 2


def test_empty_input():
    stats = DedupeStats()
    assert list(dedupe([], stats=stats)) == []
    assert stats == DedupeStats(kept=0, dropped=0)


def test_consumes_lazily():
    seen = []

    def gen():
        for link in ("https://x/1", "https://x/1", "https://x/2"):
            seen.append(link)
            yield _rec(link)

    it = dedupe(gen())
    first = next(it)
    assert first.link == "https://x/1"
    assert seen == ["https://x/1"]
