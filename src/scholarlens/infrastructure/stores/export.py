"""Download artifacts: session JSON file names and the standalone article page."""

from __future__ import annotations

import html
from datetime import date, datetime
from typing import Optional

from scholarlens.domain.research import ResearchSession

ABNT_CSS = """
    body {
        font-family: Arial, sans-serif;
        font-size: 12pt;
        line-height: 1.5;
        background-color: #fff;
        color: #000;
    }
    @media print {
        @page {
            size: A4;
            margin: 3cm 2cm 2cm 3cm;
        }
        body {
            margin: 0;
            padding: 0;
        }
    }
    .abnt-cover-page {
        text-align: center;
        height: 90vh;
        display: flex;
        flex-direction: column;
        justify-content: space-between;
    }
    h1, h2, h3, h4, h5, h6 {
        font-family: Arial, Helvetica, sans-serif;
        color: #000;
        font-weight: bold;
    }
    h1 {
        font-size: 14pt;
        text-align: center;
        text-transform: uppercase;
        margin-top: 3cm;
        margin-bottom: 2cm;
    }
    h2 {
        font-size: 12pt;
        text-transform: uppercase;
        margin-top: 1.5cm;
        margin-bottom: 1cm;
    }
    p {
        text-indent: 1.25cm;
        text-align: justify;
        margin: 0 0 0.5cm 0;
        padding: 0;
    }
    div#abnt-references ul {
        list-style: none;
        padding-left: 0;
    }
    div#abnt-references li {
        text-indent: -1.25cm;
        padding-left: 1.25cm;
        margin-bottom: 0.5cm;
        line-height: 1.2;
    }
    a {
        color: #000;
        text-decoration: none;
    }
"""


def _slug(text: str, limit: int) -> str:
    return (text or "")[:limit].replace(" ", "_")


def export_filename(session: Optional[ResearchSession] = None, now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now()).isoformat()[:19].replace(":", "-")
    if session is not None:
        return f"scholarlens_export_{_slug(session.query, 15)}_{stamp}.json"
    return f"scholarlens_export_full_{stamp}.json"


def article_filename(query: str, today: Optional[date] = None) -> str:
    return f"article_{_slug(query, 20)}_{(today or date.today()).isoformat()}.html"


def render_article_html(article_html: str, query: str) -> str:
    """Wrap a generated article body in a printable HTML document."""
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Scientific article: {html.escape(query)}</title>
    <style>{ABNT_CSS}</style>
</head>
<body>
    {article_html}
</body>
</html>"""
