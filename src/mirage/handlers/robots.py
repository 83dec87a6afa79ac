"""Handler for /robots.txt."""

from __future__ import annotations

ALLOWED_AGENTS: tuple[str, ...] = ("Googlebot", "Bingbot", "Slurp", "DuckDuckBot", "Baiduspider")
BLOCKED_AGENTS: tuple[str, ...] = ("AhrefsBot", "SemrushBot", "MJ12bot", "DotBot")
CRAWL_DELAY_SECONDS = 2


def build_robots(base_url: str) -> str:
    lines = ["User-agent: *", "Allow: /", "", "# Major search engines"]
    for agent in ALLOWED_AGENTS:
        lines.extend([f"User-agent: {agent}", "Allow: /", ""])

    lines.append("# SEO crawlers")
    for agent in BLOCKED_AGENTS:
        lines.extend([f"User-agent: {agent}", "Disallow: /", ""])

    lines.extend(
        [
            f"Sitemap: {base_url}/sitemap.xml",
            "",
            f"Crawl-delay: {CRAWL_DELAY_SECONDS}",
        ]
    )
    return "\n".join(lines) + "\n"
