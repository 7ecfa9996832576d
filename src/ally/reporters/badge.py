from __future__ import annotations

from ally.engine.scoring import score_badge_color, score_hex_color

BADGE_FORMATS: tuple[str, ...] = ("url", "markdown", "svg")
BADGE_LABEL = "a11y score"


def render_badge_url(score: int) -> str:
    return f"https://img.shields.io/badge/a11y_score-{score}%25-{score_badge_color(score)}"


def render_badge_markdown(score: int) -> str:
    return f"![Accessibility Score]({render_badge_url(score)})"


def render_badge_svg(score: int) -> str:
    """
    Render a self-contained shields.io style SVG badge.

    Widths are approximated from character counts; there is no font metrics
    lookup.
    """

    color = score_hex_color(score)
    value = f"{score}%"
    label_width = len(BADGE_LABEL) * 6.5 + 10
    value_width = len(value) * 7 + 10
    total_width = label_width + value_width

    label_x = _fmt(label_width / 2 * 10)
    value_x = _fmt((label_width + value_width / 2) * 10)
    label_len = _fmt((label_width - 10) * 10)
    value_len = _fmt((value_width - 10) * 10)

    return "\n".join(
        [
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{_fmt(total_width)}" height="20" role="img" '
            f'aria-label="{BADGE_LABEL}: {value}">',
            f"  <title>{BADGE_LABEL}: {value}</title>",
            '  <linearGradient id="s" x2="0" y2="100%">',
            '    <stop offset="0" stop-color="#bbb" stop-opacity=".1"/>',
            '    <stop offset="1" stop-opacity=".1"/>',
            "  </linearGradient>",
            '  <clipPath id="r">',
            f'    <rect width="{_fmt(total_width)}" height="20" rx="3" fill="#fff"/>',
            "  </clipPath>",
            '  <g clip-path="url(#r)">',
            f'    <rect width="{_fmt(label_width)}" height="20" fill="#555"/>',
            f'    <rect x="{_fmt(label_width)}" width="{_fmt(value_width)}" height="20" fill="{color}"/>',
            f'    <rect width="{_fmt(total_width)}" height="20" fill="url(#s)"/>',
            "  </g>",
            '  <g fill="#fff" text-anchor="middle" font-family="Verdana,Geneva,DejaVu Sans,sans-serif" '
            'text-rendering="geometricPrecision" font-size="110">',
            f'    <text aria-hidden="true" x="{label_x}" y="150" fill="#010101" fill-opacity=".3" '
            f'transform="scale(.1)" textLength="{label_len}">{BADGE_LABEL}</text>',
            f'    <text x="{label_x}" y="140" transform="scale(.1)" textLength="{label_len}">{BADGE_LABEL}</text>',
            f'    <text aria-hidden="true" x="{value_x}" y="150" fill="#010101" fill-opacity=".3" '
            f'transform="scale(.1)" textLength="{value_len}">{value}</text>',
            f'    <text x="{value_x}" y="140" transform="scale(.1)" textLength="{value_len}">{value}</text>',
            "  </g>",
            "</svg>",
        ]
    )


def render_badge(score: int, fmt: str) -> str:
    normalized = fmt.strip().lower()
    if normalized == "url":
        return render_badge_url(score)
    if normalized == "markdown":
        return render_badge_markdown(score)
    if normalized == "svg":
        return render_badge_svg(score)
    raise ValueError(f"Unsupported badge format: {fmt!r}. Use: {', '.join(BADGE_FORMATS)}.")


def _fmt(value: float) -> str:
    return f"{value:g}"
