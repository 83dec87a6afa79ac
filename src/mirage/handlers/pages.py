"""Server-rendered pages: homepage, stats page, and the error page.

Every interpolated value goes through ``html.escape``.
"""

from __future__ import annotations

from html import escape
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mirage.models.website import SiteStats, WebsiteSummary

SITE_NAME = "thiswebsiteisnot.online"

EXAMPLE_PATHS: tuple[tuple[str, str], ...] = (
    ("coffee-shop", "A local roaster that has been online since the early days"),
    ("time-tracker", "Productivity software for people who hate productivity software"),
    ("plant-care", "Everything your fern wishes you knew"),
    ("memory-palace", "A mnemonic training academy"),
)

_BASE_STYLE = """\
*{margin:0;padding:0;box-sizing:border-box}
body{font-family:Inter,-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;
background:#fff;color:#000;min-height:100vh;padding:2rem 1rem;line-height:1.5}
.container{max-width:800px;margin:0 auto}
h1{font-size:clamp(2rem,5vw,3rem);font-weight:900;margin-bottom:1.5rem;
letter-spacing:-.02em;text-align:center}
a{color:#000;font-weight:500;text-decoration:none}
a:hover{text-decoration:underline}
.subtitle{opacity:.7;text-align:center;margin-bottom:2rem}
.button{display:inline-block;border:2px solid #000;padding:12px 24px;font-weight:600;
margin-top:2rem}
.button:hover{background:#000;color:#fff;text-decoration:none}"""


def _layout(title: str, body: str, extra_style: str = "") -> str:
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n<head>\n'
        '<meta charset="UTF-8">\n'
        '<meta name="viewport" content="width=device-width, initial-scale=1.0">\n'
        f"<title>{escape(title)}</title>\n"
        f"<style>\n{_BASE_STYLE}\n{extra_style}</style>\n"
        f"</head>\n<body>\n<div class=\"container\">\n{body}\n</div>\n</body>\n</html>\n"
    )


def homepage() -> str:
    examples = "\n".join(
        f'<a href="/{path}" class="example"><strong>/{path}</strong>'
        f"<small>{escape(blurb)}</small></a>"
        for path, blurb in EXAMPLE_PATHS
    )
    body = (
        f"<h1>{SITE_NAME}</h1>\n"
        '<p class="subtitle">Type any path after the domain and a website that never '
        "existed will be generated for it. Every page is unique and stays put once made.</p>\n"
        f'<div class="examples">\n{examples}\n</div>\n'
        '<p style="text-align:center"><a class="button" href="/stats">Site statistics</a></p>'
    )
    style = (
        ".examples{display:grid;grid-template-columns:repeat(auto-fit,minmax(200px,1fr));"
        "gap:15px}\n"
        ".example{display:block;background:#000;color:#fff;padding:20px}\n"
        ".example:hover{background:#333;text-decoration:none}\n"
        ".example strong{display:block;margin-bottom:5px}\n"
        ".example small{opacity:.7}\n"
    )
    return _layout(SITE_NAME, body, style)


def _generator_line(site: WebsiteSummary) -> str:
    if site.generator_handle:
        handle = escape(site.generator_handle)
        return (
            f'<div class="generator">by <a href="https://x.com/{handle}" '
            f'target="_blank" rel="noopener">@{handle}</a></div>'
        )
    return '<div class="generator">by Anonymous</div>'


def _site_list(heading: str, sites: list[WebsiteSummary], *, show_date: bool) -> str:
    if not sites:
        return ""
    items = []
    for site in sites:
        path = escape(site.path)
        meta = f"{site.view_count} views"
        if show_date:
            meta = f"{site.created_at:%Y-%m-%d} · {meta}"
        items.append(
            '<div class="item"><div>'
            f'<a href="/{path}">{escape(site.title or site.path)}</a>{_generator_line(site)}'
            f'</div><div class="meta">{meta}</div></div>'
        )
    return f'<div class="section"><h2>{heading}</h2>\n' + "\n".join(items) + "\n</div>"


def stats_page(stats: SiteStats, error: str | None = None) -> str:
    notice = f'<p class="subtitle">Stats unavailable: {escape(error)}</p>\n' if error else ""
    body = (
        "<h1>Site Statistics</h1>\n"
        f"{notice}"
        '<div class="grid">'
        f'<div class="card"><div class="number">{stats.total_websites:,}</div>'
        "<div>Websites Generated</div></div>"
        f'<div class="card"><div class="number">{stats.total_views:,}</div>'
        "<div>Total Views</div></div>"
        "</div>\n"
        f"{_site_list('Most Popular', stats.popular, show_date=False)}\n"
        f"{_site_list('Recently Generated', stats.recent, show_date=True)}\n"
        '<p style="text-align:center"><a class="button" href="/">Back home</a></p>'
    )
    style = (
        ".grid{display:grid;grid-template-columns:repeat(auto-fit,minmax(200px,1fr));"
        "gap:20px;margin-bottom:40px}\n"
        ".card,.section{background:#f8f9fa;border:1px solid #e9ecef;padding:20px;"
        "text-align:center;margin-bottom:20px}\n"
        ".section{text-align:left}\n"
        ".number{font-size:2rem;font-weight:700}\n"
        ".item{display:flex;justify-content:space-between;padding:10px 0;"
        "border-bottom:1px solid #e9ecef}\n"
        ".generator{font-size:.8em;color:#666}\n"
        ".meta{opacity:.7;font-size:.85em}\n"
    )
    return _layout(f"Stats - {SITE_NAME}", body, style)


def error_page(path: str, message: str, suggestion: str = "") -> str:
    """Friendly failure page naming the requested path. Never shows a traceback."""
    hint = f"<p>{escape(suggestion)}</p>" if suggestion else ""
    body = (
        "<h1>Oops!</h1>\n"
        '<p class="subtitle">Something went wrong while generating '
        f"<strong>/{escape(path)}</strong></p>\n"
        f'<div class="details">{escape(message)}{hint}</div>\n'
        '<p style="text-align:center">'
        f'<a class="button" href="/{escape(path)}">Try again</a> '
        '<a class="button" href="/">Go home</a></p>'
    )
    style = (
        ".details{background:#f8f9fa;border:1px solid #e9ecef;padding:1.5rem;"
        "font-family:'SF Mono',Monaco,monospace;font-size:.9rem}\n"
    )
    return _layout(f"Error - {SITE_NAME}", body, style)
