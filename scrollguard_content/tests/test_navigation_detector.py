from __future__ import annotations

from scrollguard_content.capabilities import VIEWPORT
from scrollguard_content.navigation_detector import NavigationDetector
from tests.page_doubles import ManualScheduler, SimulatedPage


def build(page: SimulatedPage) -> tuple[NavigationDetector, ManualScheduler, list[str]]:
    scheduler = ManualScheduler()
    detector = NavigationDetector(page, after=scheduler.after, after_cancel=scheduler.after_cancel)
    seen: list[str] = []
    detector.start(seen.append)
    return detector, scheduler, seen


def test_popstate_emits_new_url_once() -> None:
    page = SimulatedPage("https://x.com/home")
    _detector, _scheduler, seen = build(page)

    page.pop_state("https://x.com/explore")
    page.dispatch(VIEWPORT, "popstate")

    assert seen == ["https://x.com/explore"]


def test_poll_catches_page_initiated_push_state() -> None:
    page = SimulatedPage("https://x.com/home")
    _detector, scheduler, seen = build(page)

    page.push_state("https://x.com/jack")
    scheduler.advance(499)
    assert seen == []
    scheduler.advance(1)
    assert seen == ["https://x.com/jack"]

    scheduler.advance(5000)
    assert seen == ["https://x.com/jack"]


def test_title_mutation_triggers_check() -> None:
    page = SimulatedPage("https://x.com/home")
    _detector, _scheduler, seen = build(page)

    page.set_title_text()
    assert seen == []

    page.push_state("https://x.com/search?q=python")
    page.set_title_text()
    assert seen == ["https://x.com/search?q=python"]


def test_signals_share_one_dedupe() -> None:
    page = SimulatedPage("https://x.com/home")
    _detector, scheduler, seen = build(page)

    page.pop_state("https://x.com/explore")
    page.set_title_text()
    scheduler.advance(1000)

    assert seen == ["https://x.com/explore"]


def test_missing_title_still_detects_via_other_signals() -> None:
    page = SimulatedPage("https://x.com/home", with_title=False)
    _detector, scheduler, seen = build(page)

    assert page.observer_count() == 0
    page.push_state("https://x.com/explore")
    scheduler.advance(500)

    assert seen == ["https://x.com/explore"]


def test_stop_releases_everything() -> None:
    page = SimulatedPage("https://x.com/home")
    detector, scheduler, seen = build(page)

    detector.stop()
    page.pop_state("https://x.com/explore")
    page.set_title_text()
    scheduler.advance(2000)

    assert seen == []
    assert page.listener_count() == 0
    assert page.observer_count() == 0
    assert scheduler.pending_count() == 0
    assert detector.active is False


def test_restart_replaces_previous_session() -> None:
    page = SimulatedPage("https://x.com/home")
    detector, scheduler, first = build(page)
    second: list[str] = []

    detector.start(second.append)
    page.pop_state("https://x.com/explore")
    scheduler.advance(500)

    assert first == []
    assert second == ["https://x.com/explore"]
    assert page.listener_count(VIEWPORT, "popstate") == 1
    assert page.observer_count() == 1
    assert scheduler.pending_count() == 1
