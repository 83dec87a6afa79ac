"""Cleanup and decoration of generated HTML.

Raw completions arrive with chatty preambles, markdown fences and stale
years. ``clean`` turns them into a servable document in a fixed order:

  1. Remove blocks injected by a previous pass (marker comments)
  2. Strip the preamble, in two stages:
       a. known preamble phrasings (``PREAMBLE_PATTERNS``, first match wins)
       b. everything before the ``<!DOCTYPE html>`` marker
  3. Strip a trailing markdown fence
  4. Replace the two previous calendar years with the current one
  5. Trim surrounding whitespace
  6. Inject the metadata block right after the ``<head>`` tag
  7. Inject the attribution footer right before ``</body>``

Injected blocks are wrapped in marker comments and removed verbatim in
step 1, so running ``clean`` on its own output with the same inputs is a
no-op. Steps 6 and 7 are ``decorate``, which the HTTP layer also runs on
stored pages so the visit count and attribution are current when served.
The footer carries the storage key in ``data-path``; its attribution form
posts that key, never the browser's percent-encoded location.
Nothing here raises for malformed but non-empty HTML; extraction
failures fall back to the default title and description.
"""

from __future__ import annotations

import html as html_lib
import json
import re
from collections import Counter
from typing import TYPE_CHECKING

import structlog

from mirage.models.website import DEFAULT_DESCRIPTION, DEFAULT_TITLE

if TYPE_CHECKING:
    from datetime import datetime

log = structlog.get_logger()

DEFAULT_BASE_URL = "https://thiswebsiteisnot.online"
SITE_NAME = "ThisWebsiteIsNot.Online"
DESCRIPTION_LENGTH = 160

DOCTYPE_MARKER_RE = re.compile(r"<!DOCTYPE html>", re.IGNORECASE)

# Stage 2a of preamble stripping. Ordered most specific first; only the
# first pattern that matches is applied. Every pattern is anchored at the
# start and cannot match text that already begins with a tag.
PREAMBLE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^Here'?s? (?:the |a )?(?:comprehensive |complete )?HTML "
        r"(?:code |website |page )?for [^\n:]*:\s*(?:```\s*html)?\s*",
        r"^Here'?s? (?:the |a )?(?:complete |comprehensive )?website (?:code |HTML )?"
        r"for [^\n:]*:\s*(?:```\s*html)?\s*",
        r"^Here is (?:the |a )?(?:complete )?HTML code for (?:a|the) (?:complete, unique )?"
        r"website(?: based on the URL path \"[^\"]*\")?:\s*(?:```\s*html)?\s*",
        r"^Here'?s? (?:the |a )?complete HTML page for [^\n:]*:\s*(?:```\s*html)?\s*",
        r"^Here'?s? a creative interpretation of [^\n:]*:\s*(?:```\s*html)?\s*",
        r"^[^<]*?```\s*html\s*",
        r"^```\s*",
    )
)

TRAILING_FENCE_RE = re.compile(r"\s*```\s*$")

META_START = "<!-- mirage:meta:start -->"
META_END = "<!-- mirage:meta:end -->"
FOOTER_START = "<!-- mirage:footer:start -->"
FOOTER_END = "<!-- mirage:footer:end -->"

_META_BLOCK_RE = re.compile(re.escape(META_START) + r".*?" + re.escape(META_END), re.DOTALL)
_FOOTER_BLOCK_RE = re.compile(
    re.escape(FOOTER_START) + r".*?" + re.escape(FOOTER_END), re.DOTALL
)

_HEAD_OPEN_RE = re.compile(r"<head(?:\s[^>]*)?>", re.IGNORECASE)
_BODY_CLOSE_RE = re.compile(r"</body\s*>", re.IGNORECASE)
_TITLE_RE = re.compile(r"<title[^>]*>([^<]+)</title>", re.IGNORECASE)
_META_DESCRIPTION_RES = (
    re.compile(
        r"<meta[^>]*name=[\"']description[\"'][^>]*content=[\"']([^\"']+)[\"'][^>]*>",
        re.IGNORECASE,
    ),
    re.compile(
        r"<meta[^>]*content=[\"']([^\"']+)[\"'][^>]*name=[\"']description[\"'][^>]*>",
        re.IGNORECASE,
    ),
)
_BODY_RE = re.compile(r"<body[^>]*>(.*?)</body>", re.IGNORECASE | re.DOTALL)
_NON_TEXT_BLOCK_RE = re.compile(r"<(script|style)[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")
_WORD_RE = re.compile(r"\b[a-z]{3,15}\b")

STOP_WORDS: frozenset[str] = frozenset(
    {
        "the", "and", "but", "for", "with", "are", "was", "were", "been", "have",
        "has", "had", "does", "did", "will", "would", "could", "should", "may",
        "might", "must", "can", "this", "that", "these", "those", "you", "your",
        "our", "from", "all", "not", "more", "any", "its", "their",
    }
)  # fmt: skip


# ---------------------------------------------------------------------------
# Cleanup steps
# ---------------------------------------------------------------------------


def strip_managed_blocks(text: str) -> str:
    """Remove metadata and footer blocks injected by an earlier pass."""
    text = _META_BLOCK_RE.sub("", text)
    return _FOOTER_BLOCK_RE.sub("", text)


def strip_preamble(text: str) -> str:
    """Drop model chatter before the document.

    Stage one removes the first known preamble phrasing that matches. Stage
    two drops everything before the first doctype marker, whatever it says.
    """
    for pattern in PREAMBLE_PATTERNS:
        stripped, count = pattern.subn("", text, count=1)
        if count:
            log.debug("preamble_pattern_stripped", pattern=pattern.pattern[:40])
            text = stripped
            break

    match = DOCTYPE_MARKER_RE.search(text)
    if match is not None and match.start() > 0:
        log.debug("preamble_trimmed_before_doctype", chars=match.start())
        text = text[match.start() :]
    return text


def strip_trailing_fence(text: str) -> str:
    return TRAILING_FENCE_RE.sub("", text)


def normalize_years(text: str, current_year: int) -> str:
    """Replace literal occurrences of the two previous years with the current one."""
    stale = re.compile(f"{current_year - 1}|{current_year - 2}")
    replaced, count = stale.subn(str(current_year), text)
    if count:
        log.debug("stale_years_replaced", count=count, year=current_year)
    return replaced


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def extract_title(html: str) -> str:
    """Text of the first ``<title>``, or the default title."""
    match = _TITLE_RE.search(html)
    if match is None:
        return DEFAULT_TITLE
    title = _WHITESPACE_RE.sub(" ", html_lib.unescape(match.group(1))).strip()
    return title or DEFAULT_TITLE


def _visible_text(fragment: str) -> str:
    text = _NON_TEXT_BLOCK_RE.sub(" ", fragment)
    text = _TAG_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", html_lib.unescape(text)).strip()


def extract_description(html: str) -> str:
    """First meta description, else the first 160 characters of body text."""
    for pattern in _META_DESCRIPTION_RES:
        match = pattern.search(html)
        if match is not None:
            description = match.group(1).strip()
            if description:
                return html_lib.unescape(description)

    body = _BODY_RE.search(html)
    if body is None:
        return DEFAULT_DESCRIPTION
    text = _visible_text(body.group(1))
    if not text:
        return DEFAULT_DESCRIPTION
    if len(text) > DESCRIPTION_LENGTH:
        return text[:DESCRIPTION_LENGTH] + "..."
    return text


def extract_keywords(html: str, path: str, limit: int = 12) -> str:
    """Path-based keywords followed by the most frequent words on the page."""
    body = _BODY_RE.search(html)
    text = _visible_text(body.group(1) if body else html).lower()
    counts = Counter(word for word in _WORD_RE.findall(text) if word not in STOP_WORDS)
    top_words = [word for word, _ in counts.most_common(8)]

    topic = path.replace("-", " ")
    keywords = [topic, f"{topic} business", f"{topic} service", f"{topic} online", *top_words]
    return ", ".join(list(dict.fromkeys(keywords))[:limit])


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _attr(value: str) -> str:
    return html_lib.escape(value, quote=True)


def _json_ld(data: dict) -> str:
    # "</" inside a script element would end it early
    return json.dumps(data, indent=2, ensure_ascii=False).replace("</", "<\\/")


def render_metadata(
    *,
    path: str,
    title: str,
    description: str,
    keywords: str,
    generated_at: datetime,
    generator_handle: str | None = None,
    base_url: str = DEFAULT_BASE_URL,
) -> str:
    """Build the SEO block injected after ``<head>``."""
    url = f"{base_url}/{path}"
    published = generated_at.isoformat()
    author = f"@{generator_handle}" if generator_handle else SITE_NAME
    generator = f"{SITE_NAME} by @{generator_handle}" if generator_handle else SITE_NAME

    creators: list[dict] = [{"@type": "Organization", "name": SITE_NAME, "url": base_url}]
    if generator_handle:
        creators.append(
            {
                "@type": "Person",
                "name": f"@{generator_handle}",
                "jobTitle": "Website Generator",
                "url": f"https://x.com/{generator_handle}",
            }
        )

    structured = {
        "@context": "https://schema.org",
        "@type": ["WebPage", "CreativeWork"],
        "name": title,
        "description": description,
        "url": url,
        "dateCreated": published,
        "datePublished": published,
        "inLanguage": "en-US",
        "keywords": keywords,
        "isPartOf": {"@type": "WebSite", "name": SITE_NAME, "url": base_url},
        "creator": creators,
        "breadcrumb": {
            "@type": "BreadcrumbList",
            "itemListElement": [
                {"@type": "ListItem", "position": 1, "name": "Home", "item": base_url},
                {"@type": "ListItem", "position": 2, "name": title, "item": url},
            ],
        },
    }

    lines = [
        META_START,
        f'<meta name="title" content="{_attr(title)}">',
        f'<meta name="description" content="{_attr(description)}">',
        f'<meta name="keywords" content="{_attr(keywords)}">',
        f'<meta name="author" content="{_attr(author)}">',
        f'<meta name="generator" content="{_attr(generator)}">',
        '<meta name="robots" content="index, follow, max-snippet:-1">',
        '<meta name="viewport" content="width=device-width, initial-scale=1.0">',
        f'<link rel="canonical" href="{_attr(url)}">',
        '<meta property="og:type" content="website">',
        f'<meta property="og:url" content="{_attr(url)}">',
        f'<meta property="og:title" content="{_attr(title)}">',
        f'<meta property="og:description" content="{_attr(description)}">',
        f'<meta property="og:site_name" content="{SITE_NAME}">',
        f'<meta property="article:published_time" content="{published}">',
        '<meta name="twitter:card" content="summary_large_image">',
        f'<meta name="twitter:title" content="{_attr(title)}">',
        f'<meta name="twitter:description" content="{_attr(description)}">',
        '<script type="application/ld+json">',
        _json_ld(structured),
        "</script>",
        META_END,
    ]
    return "\n".join(lines)


_FOOTER_STYLE = """\
<style>
#mirage-footer{position:fixed;bottom:10px;right:10px;z-index:9999;min-width:160px;
padding:12px 16px;border-radius:8px;border:1px solid rgba(0,0,0,.1);
background:rgba(255,255,255,.95);color:#000;font:11px/1.4 Inter,-apple-system,sans-serif;
box-shadow:0 4px 20px rgba(0,0,0,.15)}
#mirage-footer a{color:#000;font-weight:500;text-decoration:none}
#mirage-footer input{width:100%;padding:6px 8px;margin-bottom:6px;font-size:10px}
#mirage-footer button{padding:4px 12px;font-size:9px;margin-right:6px;cursor:pointer}
.mirage-muted{opacity:.6;font-size:9px}
</style>"""

_FOOTER_SCRIPT = """\
<script>
(function () {
  var prompt = document.getElementById('mirage-generator-prompt');
  var footer = document.getElementById('mirage-footer');
  if (!prompt || !footer) { return; }
  function show(handle) {
    var who = handle ? '@' + handle : '@Anonymous';
    var href = handle ? 'https://x.com/' + handle : '/stats';
    prompt.innerHTML = 'Generated by: <a target="_blank" href="' + href + '">' + who + '</a>';
  }
  document.getElementById('mirage-save').onclick = function () {
    var handle = document.getElementById('mirage-handle').value.trim().replace(/^@/, '');
    if (handle && !/^[a-zA-Z0-9_]{1,15}$/.test(handle)) {
      alert('Please enter a valid X handle (1-15 letters, numbers, or underscores)');
      return;
    }
    fetch('/api/update-generator', {
      method: 'POST',
      headers: {'Content-Type': 'application/json'},
      body: JSON.stringify({path: footer.dataset.path, xHandle: handle})
    }).then(function (r) { return r.json(); }).then(function (data) {
      if (data.success) { show(handle.toLowerCase()); }
      else { alert('Failed to save generator info: ' + (data.error || 'Unknown error')); }
    }).catch(function () { alert('Network error while saving generator info'); });
  };
  document.getElementById('mirage-skip').onclick = function () { show(''); };
})();
</script>"""


def format_generated_date(generated_at: datetime) -> str:
    """``Oct 19, 2026`` style date used in the footer."""
    return f"{generated_at:%b} {generated_at.day}, {generated_at.year}"


def render_footer(
    *,
    path: str,
    generated_at: datetime,
    view_count: int,
    generator_handle: str | None = None,
    is_new_generation: bool = False,
) -> str:
    """Build the attribution footer injected before ``</body>``."""
    views = max(view_count, 1)
    visited = f"Visited: {views} time{'s' if views != 1 else ''}"

    if is_new_generation and not generator_handle:
        attribution = (
            '<div id="mirage-generator-prompt">'
            "<div><strong>This is a new generation!</strong></div>"
            '<input type="text" id="mirage-handle" placeholder="Your X handle" maxlength="16">'
            '<div class="mirage-muted">Enter your X handle or leave empty for anonymous</div>'
            '<button id="mirage-save" type="button">Save</button>'
            '<button id="mirage-skip" type="button">Skip</button>'
            "</div>"
        )
        script = "\n" + _FOOTER_SCRIPT
    elif generator_handle:
        handle = _attr(generator_handle)
        attribution = (
            f'<div>Generated by: <a href="https://x.com/{handle}" target="_blank" '
            f'rel="noopener">@{handle}</a></div>'
        )
        script = ""
    else:
        attribution = '<div>Generated by: <a href="/stats">@Anonymous</a></div>'
        script = ""

    return (
        f"{FOOTER_START}\n"
        f"{_FOOTER_STYLE}\n"
        f'<div id="mirage-footer" data-path="{_attr(path)}">'
        f"<div><strong>Generated: {format_generated_date(generated_at)}</strong></div>"
        f"{attribution}"
        f"<div>{visited}</div>"
        f'<div class="mirage-muted">Powered by <a href="/">{SITE_NAME}</a></div>'
        f"</div>{script}\n"
        f"{FOOTER_END}"
    )


# ---------------------------------------------------------------------------
# Injection
# ---------------------------------------------------------------------------


def inject_metadata(html: str, block: str) -> str:
    """Insert the block right after the head-open tag; no head, no block."""
    match = _HEAD_OPEN_RE.search(html)
    if match is None:
        log.debug("metadata_skipped", reason="no_head_tag")
        return html
    return html[: match.end()] + block + html[match.end() :]


def inject_footer(html: str, footer: str) -> str:
    """Insert the footer before ``</body>``, or append it when there is none."""
    html = _FOOTER_BLOCK_RE.sub("", html)
    match = _BODY_CLOSE_RE.search(html)
    if match is None:
        return html + footer
    return html[: match.start()] + footer + html[match.start() :]


def refresh_footer(
    html: str,
    *,
    path: str,
    generated_at: datetime,
    view_count: int,
    generator_handle: str | None = None,
    is_new_generation: bool = False,
) -> str:
    """Replace the footer of a stored document, leaving everything else intact."""
    footer = render_footer(
        path=path,
        generated_at=generated_at,
        view_count=view_count,
        generator_handle=generator_handle,
        is_new_generation=is_new_generation,
    )
    return inject_footer(html, footer)


def decorate(
    html: str,
    path: str,
    generated_at: datetime,
    *,
    view_count: int = 1,
    generator_handle: str | None = None,
    is_new_generation: bool = False,
    base_url: str = DEFAULT_BASE_URL,
) -> str:
    """Re-render the metadata block and the footer of a cleaned document.

    Both blocks are removed first, so the page content is untouched and a
    changed attribution or view count shows up in every injected tag.
    """
    text = strip_managed_blocks(html)
    metadata = render_metadata(
        path=path,
        title=extract_title(text),
        description=extract_description(text),
        keywords=extract_keywords(text, path),
        generated_at=generated_at,
        generator_handle=generator_handle,
        base_url=base_url,
    )
    return refresh_footer(
        inject_metadata(text, metadata),
        path=path,
        generated_at=generated_at,
        view_count=view_count,
        generator_handle=generator_handle,
        is_new_generation=is_new_generation,
    )


def clean(
    raw_text: str,
    path: str,
    generated_at: datetime,
    *,
    view_count: int = 1,
    generator_handle: str | None = None,
    is_new_generation: bool = False,
    base_url: str = DEFAULT_BASE_URL,
) -> str:
    """Turn a raw completion into the final document for ``path``."""
    text = strip_managed_blocks(raw_text)
    text = strip_preamble(text)
    text = strip_trailing_fence(text)
    text = normalize_years(text, generated_at.year)
    return decorate(
        text.strip(),
        path,
        generated_at,
        view_count=view_count,
        generator_handle=generator_handle,
        is_new_generation=is_new_generation,
        base_url=base_url,
    )
