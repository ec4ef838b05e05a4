from __future__ import annotations

from datetime import date, datetime

from scholarlens.domain.research import ResearchSession
from scholarlens.infrastructure.stores.export import (
    article_filename,
    export_filename,
    render_article_html,
)


def test_export_filename_for_one_session_and_full_history():
    now = datetime(2024, 3, 5, 14, 7, 9, 123456)
    session = ResearchSession(query="climate policy", summary="", timestamp=1)

    assert export_filename(session, now) == "scholarlens_export_climate_policy_2024-03-05T14-07-09.json"
    assert export_filename(None, now) == "scholarlens_export_full_2024-03-05T14-07-09.json"


def test_article_filename_truncates_query():
    name = article_filename("renewable energy storage systems", today=date(2024, 1, 2))

    assert name == "article_renewable_energy_sto_2024-01-02.html"


def test_render_article_html_escapes_title_only():
    page = render_article_html("<h1>Body</h1>", "a < b")

    assert "<title>Scientific article: a &lt; b</title>" in page
    assert "<h1>Body</h1>" in page
    assert "@page" in page
