"""
Text-level fixes for common axe-core violations.

Every pattern receives the raw HTML of one offending node (as reported by
axe-core) and returns a patched fragment, or None when no safe fix exists or
the fragment is already compliant. Patterns are idempotent: feeding a
pattern's own output back in returns None.

Fragments are usually a single element, so patterns inspect the opening tag
with small regexes instead of parsing HTML.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

logger = logging.getLogger(__name__)

FixFn = Callable[[str], str | None]
ConfidenceLevel = Literal["high", "medium", "low"]

DEFAULT_FIX_THRESHOLD = 0.9


@dataclass(frozen=True, slots=True)
class FixPattern:
    rule_id: str
    confidence: float
    apply: FixFn


FIX_PATTERNS: dict[str, FixPattern] = {}


def fix_pattern(*rule_ids: str, confidence: float) -> Callable[[FixFn], FixFn]:
    def register(fn: FixFn) -> FixFn:
        for rule_id in rule_ids:
            if rule_id in FIX_PATTERNS:
                raise ValueError(f"Duplicate fix pattern for {rule_id!r}")
            FIX_PATTERNS[rule_id] = FixPattern(rule_id=rule_id, confidence=confidence, apply=fn)
        return fn

    return register


# --- Helpers -----------------------------------------------------------------

_OPENING_TAG_RE = re.compile(r"<[a-z][a-z0-9-]*(?:\s[^<>]*)?/?>", re.IGNORECASE)
_TAG_NAME_RE = re.compile(r"<([a-z][a-z0-9-]*)", re.IGNORECASE)
_TEXT_RE = re.compile(r">([^<]+)<")


def _opening_tag(html: str) -> str:
    match = _OPENING_TAG_RE.search(html)
    return match.group(0) if match else html


def _attr_re(attr: str) -> re.Pattern[str]:
    return re.compile(
        rf"(?<![\w:-]){re.escape(attr)}\s*=\s*(?:\"(?P<dq>[^\"]*)\"|'(?P<sq>[^']*)')",
        re.IGNORECASE,
    )


def get_attr(html: str, attr: str) -> str | None:
    """Return the value of `attr` on the fragment's first opening tag."""

    match = _attr_re(attr).search(_opening_tag(html))
    if match is None:
        return None
    value = match.group("dq")
    return value if value is not None else match.group("sq")


def has_attr(html: str, attr: str) -> bool:
    pattern = rf"\s{re.escape(attr)}(?=\s*=|\s|/?>|$)"
    return re.search(pattern, _opening_tag(html), re.IGNORECASE) is not None


def set_attr(html: str, attr: str, value: str) -> str:
    """Replace the value of an existing attribute on the first opening tag."""

    tag = _opening_tag(html)
    replaced = _attr_re(attr).sub(lambda _m: f'{attr}="{_quote(value)}"', tag, count=1)
    return html.replace(tag, replaced, 1)


def add_attr(html: str, tag: str, attr: str, value: str) -> str:
    """Insert `attr="value"` right after the first `<tag` (works for `<tag>`, `<tag/>` and `<tag ...>`)."""

    pattern = re.compile(rf"<({re.escape(tag)})(?=[\s/>])", re.IGNORECASE)
    return pattern.sub(lambda m: f'<{m.group(1)} {attr}="{_quote(value)}"', html, count=1)


def get_tag_name(html: str) -> str | None:
    match = _TAG_NAME_RE.search(html)
    return match.group(1).lower() if match else None


def infer_description(html: str, fallback: str) -> str:
    title = get_attr(html, "title")
    if title:
        return title

    for attr in ("name", "id"):
        value = get_attr(html, attr)
        if value:
            return _humanize(value)

    placeholder = get_attr(html, "placeholder")
    if placeholder:
        return placeholder

    text = _TEXT_RE.search(html)
    if text and text.group(1).strip():
        return " ".join(text.group(1).split())

    return fallback


def _humanize(value: str) -> str:
    return re.sub(r"[-_]", " ", value).strip()


def _file_stem(url: str) -> str:
    name = url.split("?", 1)[0].split("#", 1)[0].rstrip("/").split("/")[-1]
    return _humanize(re.sub(r"\.[^.]+$", "", name))


def _quote(value: str) -> str:
    return value.replace('"', "&quot;")


def _with_comment(html: str, comment: str) -> str | None:
    if comment in html:
        return None
    return f"<!-- {comment} -->\n{html}"


# --- Images and media ---------------------------------------------------------


@fix_pattern("image-alt", confidence=0.7)
def _image_alt(html: str) -> str | None:
    if get_tag_name(html) != "img" or has_attr(html, "alt"):
        return None
    src = get_attr(html, "src")
    alt = (_file_stem(src) if src else "") or "[describe image]"
    return add_attr(html, "img", "alt", alt)


_REDUNDANT_ALT_RE = re.compile(r"^(?:(?:image|picture|photo|graphic|icon)\s+(?:of|showing)\s+)+", re.IGNORECASE)


@fix_pattern("image-redundant-alt", confidence=0.9)
def _image_redundant_alt(html: str) -> str | None:
    alt = get_attr(html, "alt")
    if not alt:
        return None
    cleaned = _REDUNDANT_ALT_RE.sub("", alt)
    if cleaned == alt or not cleaned.strip():
        return None
    return set_attr(html, "alt", cleaned)


@fix_pattern("svg-img-alt", confidence=0.7)
def _svg_img_alt(html: str) -> str | None:
    if get_tag_name(html) != "svg":
        return None
    if has_attr(html, "aria-label") or has_attr(html, "aria-labelledby"):
        return None
    fixed = html
    if get_attr(html, "role") != "img":
        fixed = add_attr(fixed, "svg", "role", "img")
    return add_attr(fixed, "svg", "aria-label", "[SVG description]")


_CAPTION_TRACK = '<track kind="captions" src="[captions.vtt]" srclang="en" label="English">'


@fix_pattern("video-caption", confidence=0.5)
def _video_caption(html: str) -> str | None:
    if "<track" in html.lower():
        return None
    closing = re.search(r"</video\s*>", html, re.IGNORECASE)
    if closing:
        return f"{html[: closing.start()]}  {_CAPTION_TRACK}\n{html[closing.start():]}"
    return _with_comment(html, 'Add captions track: <track kind="captions" src="captions.vtt" srclang="en">')


@fix_pattern("audio-caption", confidence=0.3)
def _audio_caption(html: str) -> str | None:
    return _with_comment(html, "Provide a transcript for this audio content")


# --- Interactive elements ----------------------------------------------------


def _has_accessible_name_attr(html: str) -> bool:
    return has_attr(html, "aria-label") or has_attr(html, "aria-labelledby")


@fix_pattern("button-name", confidence=0.75)
def _button_name(html: str) -> str | None:
    tag = get_tag_name(html)
    if tag is None or _has_accessible_name_attr(html):
        return None
    return add_attr(html, tag, "aria-label", infer_description(html, "[action description]"))


@fix_pattern("link-name", confidence=0.7)
def _link_name(html: str) -> str | None:
    tag = get_tag_name(html)
    if tag is None or _has_accessible_name_attr(html):
        return None
    href = get_attr(html, "href")
    desc = (_file_stem(href) if href and href != "#" else "") or "[link description]"
    return add_attr(html, tag, "aria-label", desc)


@fix_pattern("input-button-name", confidence=0.9)
def _input_button_name(html: str) -> str | None:
    if get_tag_name(html) != "input" or has_attr(html, "value") or has_attr(html, "aria-label"):
        return None
    input_type = (get_attr(html, "type") or "").lower()
    value = {"submit": "Submit", "reset": "Reset"}.get(input_type, "Button")
    return add_attr(html, "input", "value", value)


@fix_pattern("aria-command-name", confidence=0.6)
def _aria_command_name(html: str) -> str | None:
    tag = get_tag_name(html)
    if tag is None or _has_accessible_name_attr(html):
        return None
    role = get_attr(html, "role")
    desc = f"[{role} description]" if role else "[command description]"
    return add_attr(html, tag, "aria-label", desc)


# --- Forms --------------------------------------------------------------------


@fix_pattern("label", confidence=0.75)
def _label(html: str) -> str | None:
    tag = get_tag_name(html)
    if tag is None or _has_accessible_name_attr(html):
        return None
    # An id means a <label for=...> may already exist elsewhere in the page.
    if has_attr(html, "id"):
        return None
    name = get_attr(html, "name")
    desc = _humanize(name) if name else f"{get_attr(html, 'type') or 'text'} input"
    return add_attr(html, tag, "aria-label", desc)


@fix_pattern("select-name", confidence=0.75)
def _select_name(html: str) -> str | None:
    if get_tag_name(html) != "select" or _has_accessible_name_attr(html):
        return None
    name = get_attr(html, "name")
    return add_attr(html, "select", "aria-label", _humanize(name) if name else "Select option")


_AUTOCOMPLETE_TOKENS = {
    "email": "email",
    "phone": "tel",
    "tel": "tel",
    "name": "name",
    "fname": "given-name",
    "firstname": "given-name",
    "lname": "family-name",
    "lastname": "family-name",
    "address": "street-address",
    "city": "address-level2",
    "state": "address-level1",
    "zip": "postal-code",
    "postal": "postal-code",
    "country": "country-name",
    "username": "username",
    "password": "current-password",
}


@fix_pattern("autocomplete-valid", confidence=0.7)
def _autocomplete_valid(html: str) -> str | None:
    if get_tag_name(html) != "input":
        return None
    name = (get_attr(html, "name") or "").lower()
    input_type = (get_attr(html, "type") or "").lower()
    token = _AUTOCOMPLETE_TOKENS.get(name) or _AUTOCOMPLETE_TOKENS.get(input_type) or "off"

    current = get_attr(html, "autocomplete")
    if current is not None:
        if current.strip().lower() == token:
            return None
        return set_attr(html, "autocomplete", token)
    return add_attr(html, "input", "autocomplete", token)


@fix_pattern("form-field-multiple-labels", confidence=0.3)
def _form_field_multiple_labels(html: str) -> str | None:
    return _with_comment(html, "FIX: Remove duplicate labels or use aria-labelledby")


# --- Document structure -----------------------------------------------------


@fix_pattern("html-has-lang", confidence=0.95)
def _html_has_lang(html: str) -> str | None:
    if get_tag_name(html) != "html" or has_attr(html, "lang"):
        return None
    return add_attr(html, "html", "lang", "en")


_TITLE_ELEMENT = "<title>[Page Title]</title>"


@fix_pattern("document-title", confidence=0.6)
def _document_title(html: str) -> str | None:
    if re.search(r"<title[\s>]", html, re.IGNORECASE):
        return None
    head_close = re.search(r"</head\s*>", html, re.IGNORECASE)
    if head_close:
        return f"{html[: head_close.start()]}  {_TITLE_ELEMENT}\n{html[head_close.start():]}"
    if get_tag_name(html) == "html":
        tag = _opening_tag(html)
        return html.replace(tag, f"{tag}\n  {_TITLE_ELEMENT}", 1)
    return None


_VIEWPORT_BLOCKERS = (
    re.compile(r"^user-scalable\s*=\s*(no|0)$", re.IGNORECASE),
    re.compile(r"^maximum-scale\s*=\s*1(\.0+)?$", re.IGNORECASE),
)


@fix_pattern("meta-viewport", confidence=0.95)
def _meta_viewport(html: str) -> str | None:
    content = get_attr(html, "content")
    if content is None:
        return None
    parts = [p.strip() for p in content.split(",") if p.strip()]
    kept = [p for p in parts if not any(rx.match(p) for rx in _VIEWPORT_BLOCKERS)]
    if len(kept) == len(parts):
        return None
    return set_attr(html, "content", ", ".join(kept))


@fix_pattern("heading-order", confidence=0.4)
def _heading_order(html: str) -> str | None:
    # Only the fragment is known, not the preceding heading; h2 is the usual fix.
    match = re.match(r"\s*<h([1-6])", html, re.IGNORECASE)
    if match is None or match.group(1) == "2":
        return None
    fixed = re.sub(r"<h[1-6](?=[\s>])", "<h2", html, count=1, flags=re.IGNORECASE)
    return re.sub(r"</h[1-6]\s*>", "</h2>", fixed, count=1, flags=re.IGNORECASE)


_EMPTY_HEADING_RE = re.compile(r"<(h[1-6])([^>]*)>(\s*)</h[1-6]\s*>", re.IGNORECASE)


@fix_pattern("empty-heading", confidence=0.5)
def _empty_heading(html: str) -> str | None:
    if not _EMPTY_HEADING_RE.search(html):
        return None
    return _EMPTY_HEADING_RE.sub(r"<\1\2>[Heading text]</\1>", html, count=1)


# --- Landmarks ----------------------------------------------------------------


@fix_pattern("landmark-one-main", confidence=0.3)
def _landmark_one_main(html: str) -> str | None:
    tag = get_tag_name(html)
    # Whole-document nodes cannot be wrapped in <main>.
    if tag is None or tag in {"html", "body", "main"} or re.search(r"<main[\s>]", html, re.IGNORECASE):
        return None
    return f"<main>\n{html}\n</main>"


@fix_pattern("region", confidence=0.5)
def _region(html: str) -> str | None:
    tag = get_tag_name(html)
    if tag is None or has_attr(html, "role"):
        return None
    fixed = add_attr(html, tag, "role", "region")
    if not _has_accessible_name_attr(html):
        fixed = add_attr(fixed, tag, "aria-label", "[region description]")
    return fixed


@fix_pattern("bypass", confidence=0.6)
def _bypass(html: str) -> str | None:
    if 'class="skip-link"' in html or 'href="#main-content"' in html:
        return None
    return (
        "<!-- Add skip link at start of body -->\n"
        '<a href="#main-content" class="skip-link">Skip to main content</a>\n'
        f"{html}"
    )


# --- Tables -------------------------------------------------------------------


@fix_pattern("td-headers-attr", confidence=0.4)
def _td_headers_attr(html: str) -> str | None:
    if get_tag_name(html) != "td" or has_attr(html, "headers"):
        return None
    return add_attr(html, "td", "headers", "[header-id]")


@fix_pattern("th-has-data-cells", confidence=0.8)
def _th_has_data_cells(html: str) -> str | None:
    if get_tag_name(html) != "th" or has_attr(html, "scope"):
        return None
    return add_attr(html, "th", "scope", "col")


# --- ARIA ---------------------------------------------------------------------

_REQUIRED_CHILD_ROLE = {
    "menu": "menuitem",
    "menubar": "menuitem",
    "list": "listitem",
    "listbox": "option",
    "grid": "row",
    "table": "row",
    "tree": "treeitem",
    "tablist": "tab",
    "radiogroup": "radio",
}

_REQUIRED_PARENT_ROLE = {
    "menuitem": "menu",
    "option": "listbox",
    "row": "table",
    "tab": "tablist",
    "treeitem": "tree",
    "listitem": "list",
}


@fix_pattern("aria-required-children", confidence=0.5)
def _aria_required_children(html: str) -> str | None:
    role = get_attr(html, "role")
    tag = get_tag_name(html)
    child_role = _REQUIRED_CHILD_ROLE.get(role or "")
    if tag is None or child_role is None or f'role="{child_role}"' in html:
        return None

    child = f'\n  <div role="{child_role}">[content]</div>\n</{tag}>'
    stripped = html.strip()
    if stripped.endswith("/>") and _opening_tag(stripped) == stripped:
        return f"{stripped[:-2].rstrip()}>{child}"
    empty = re.fullmatch(r"(<[^>]+>)\s*</[^>]+>", stripped)
    if empty:
        return f"{empty.group(1)}{child}"
    return _with_comment(html, f'Add role="{child_role}" to child elements')


@fix_pattern("aria-required-parent", confidence=0.5)
def _aria_required_parent(html: str) -> str | None:
    parent_role = _REQUIRED_PARENT_ROLE.get(get_attr(html, "role") or "")
    if parent_role is None:
        return None
    return f'<div role="{parent_role}">\n  {html}\n</div>'


@fix_pattern("aria-hidden-focus", confidence=0.6)
def _aria_hidden_focus(html: str) -> str | None:
    tag = get_tag_name(html)
    if tag is None or not has_attr(html, "aria-hidden"):
        return None
    tabindex = get_attr(html, "tabindex")
    if tabindex is not None:
        return None if tabindex.strip() == "-1" else set_attr(html, "tabindex", "-1")
    return add_attr(html, tag, "tabindex", "-1")


_ARIA_VALUE_FIXES = (
    ("aria-expanded", ("true", "false"), "false"),
    ("aria-checked", ("true", "false", "mixed"), "false"),
    ("aria-selected", ("true", "false"), "false"),
    ("aria-pressed", ("true", "false", "mixed"), "false"),
    ("aria-hidden", ("true", "false"), "true"),
)


@fix_pattern("aria-valid-attr-value", confidence=0.85)
def _aria_valid_attr_value(html: str) -> str | None:
    fixed = html
    for attr, allowed, default in _ARIA_VALUE_FIXES:
        value = get_attr(fixed, attr)
        if value is not None and value.strip().lower() not in allowed:
            fixed = set_attr(fixed, attr, default)
    return None if fixed == html else fixed


# --- Keyboard -----------------------------------------------------------------


def _positive_tabindex_to_zero(html: str) -> str | None:
    tabindex = get_attr(html, "tabindex")
    if tabindex is None:
        return None
    try:
        value = int(tabindex.strip())
    except ValueError:
        return None
    if value <= 0:
        return None
    return set_attr(html, "tabindex", "0")


@fix_pattern("tabindex", confidence=0.95)
def _tabindex(html: str) -> str | None:
    return _positive_tabindex_to_zero(html)


@fix_pattern("focus-order-semantics", confidence=0.7)
def _focus_order_semantics(html: str) -> str | None:
    return _positive_tabindex_to_zero(html)


@fix_pattern("focus-visible", confidence=0.3)
def _focus_visible(html: str) -> str | None:
    tag = get_tag_name(html)
    if tag is None:
        return None
    return _with_comment(html, f"Add CSS: {tag}:focus-visible {{ outline: 2px solid #005fcc; }}")


@fix_pattern("scrollable-region-focusable", confidence=0.9)
def _scrollable_region_focusable(html: str) -> str | None:
    tag = get_tag_name(html)
    if tag is None or has_attr(html, "tabindex"):
        return None
    return add_attr(html, tag, "tabindex", "0")


# --- Lists --------------------------------------------------------------------


@fix_pattern("list", "listitem", confidence=0.7)
def _orphan_list_item(html: str) -> str | None:
    if get_tag_name(html) != "li" or not html.lstrip().lower().startswith("<li"):
        return None
    return f"<ul>\n  {html}\n</ul>"


# --- Frames -------------------------------------------------------------------


@fix_pattern("frame-title", confidence=0.8)
def _frame_title(html: str) -> str | None:
    tag = get_tag_name(html)
    if tag not in {"iframe", "frame"} or has_attr(html, "title"):
        return None
    src = get_attr(html, "src")
    title = (_file_stem(src) if src else "") or "Embedded content"
    return add_attr(html, tag, "title", title)


@fix_pattern("frame-focusable-content", confidence=0.6)
def _frame_focusable_content(html: str) -> str | None:
    tag = get_tag_name(html)
    if tag not in {"iframe", "frame"} or has_attr(html, "tabindex"):
        return None
    return add_attr(html, tag, "tabindex", "0")


# --- Colour and links -----------------------------------------------------------


@fix_pattern("color-contrast", confidence=0.2)
def _color_contrast(html: str) -> str | None:
    return _with_comment(
        html,
        "CONTRAST FIX: Increase color contrast ratio to at least 4.5:1 for normal text, 3:1 for large text",
    )


@fix_pattern("link-in-text-block", confidence=0.85)
def _link_in_text_block(html: str) -> str | None:
    if get_tag_name(html) != "a" or re.search(r"text-decoration\s*:\s*underline", html, re.IGNORECASE):
        return None
    style = get_attr(html, "style")
    if style is not None:
        return set_attr(html, "style", f"text-decoration: underline; {style}".strip())
    return add_attr(html, "a", "style", "text-decoration: underline")


# --- IDs ----------------------------------------------------------------------


@fix_pattern("duplicate-id", "duplicate-id-active", "duplicate-id-aria", confidence=0.6)
def _duplicate_id(html: str) -> str | None:
    element_id = get_attr(html, "id")
    # A numeric suffix marks an id this pattern (or the author) already made unique.
    if not element_id or re.search(r"-\d+$", element_id):
        return None
    return set_attr(html, "id", f"{element_id}-2")


# --- Public API -----------------------------------------------------------------


def generate_suggested_fix(rule_id: str, html: str) -> str | None:
    """
    Return the patched fragment for `rule_id`, or None.

    None covers unknown rule ids, already-compliant fragments, and fragments
    the pattern cannot make sense of.
    """

    pattern = FIX_PATTERNS.get(rule_id)
    if pattern is None or not html:
        return None
    try:
        fixed = pattern.apply(html)
    except (ValueError, IndexError, re.error) as exc:
        logger.debug("fix pattern %s failed on %r: %s", rule_id, html[:80], exc)
        return None
    if not fixed or fixed == html:
        return None
    return fixed


def get_fix_confidence(rule_id: str) -> float | None:
    pattern = FIX_PATTERNS.get(rule_id)
    return pattern.confidence if pattern is not None else None


def confidence_level(confidence: float) -> ConfidenceLevel:
    if confidence >= 0.9:
        return "high"
    if confidence >= 0.7:
        return "medium"
    return "low"


def fixable_rule_ids() -> frozenset[str]:
    return frozenset(FIX_PATTERNS)
