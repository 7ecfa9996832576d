from __future__ import annotations

from dataclasses import dataclass

from ally.engine.types import Violation

GENERIC_IMPACT = "Users with disabilities may have difficulty using this part of the page."


@dataclass(frozen=True, slots=True)
class Explanation:
    problem: str
    impact: str
    fix: str


@dataclass(frozen=True, slots=True)
class WcagCriterion:
    criterion: str
    why: str


EXPLANATIONS: dict[str, Explanation] = {
    "image-alt": Explanation(
        problem="Images are missing alt text, which describes the image content.",
        impact='Screen reader users cannot understand what the image shows. They only hear "image" with no context.',
        fix='Add an alt attribute to each image describing its content. For decorative images, use alt="".',
    ),
    "button-name": Explanation(
        problem="Buttons don't have accessible names that describe their purpose.",
        impact='Screen reader users hear "button" but don\'t know what the button does.',
        fix="Add visible text inside the button, or use aria-label to provide a description.",
    ),
    "link-name": Explanation(
        problem="Links don't have text that describes where they go.",
        impact='Screen reader users hear "link" but don\'t know where clicking will take them.',
        fix='Add descriptive text inside the link. Avoid "click here" or "read more".',
    ),
    "color-contrast": Explanation(
        problem="Text doesn't have enough contrast against its background.",
        impact="People with low vision or color blindness struggle to read the text.",
        fix="Use colors with at least 4.5:1 contrast ratio for normal text, 3:1 for large text.",
    ),
    "html-has-lang": Explanation(
        problem="The HTML document doesn't specify a language.",
        impact="Screen readers may pronounce words incorrectly if they don't know the language.",
        fix='Add lang="en" (or appropriate language code) to the <html> element.',
    ),
    "label": Explanation(
        problem="Form inputs are missing labels that describe what to enter.",
        impact="Screen reader users don't know what information to type in the field.",
        fix="Add a <label> element connected to the input via for/id attributes.",
    ),
    "landmark-one-main": Explanation(
        problem="The page doesn't have a main landmark to identify primary content.",
        impact="Screen reader users can't quickly navigate to the main content of the page.",
        fix="Wrap your main content in a <main> element.",
    ),
    "region": Explanation(
        problem="Content exists outside of landmark regions.",
        impact="Screen reader users have difficulty understanding the page structure.",
        fix="Organize content into semantic landmarks: header, nav, main, aside, footer.",
    ),
    "aria-required-attr": Explanation(
        problem="ARIA roles are missing required attributes.",
        impact="Assistive technology may not correctly interpret the element's purpose.",
        fix="Add the required ARIA attributes for the role being used.",
    ),
    "tabindex": Explanation(
        problem="Elements have tabindex greater than 0, which disrupts natural focus order.",
        impact="Keyboard users experience confusing, unpredictable navigation.",
        fix='Use tabindex="0" to make elements focusable, or tabindex="-1" to remove from tab order.',
    ),
}


WCAG_CRITERIA: dict[str, WcagCriterion] = {
    "button-name": WcagCriterion("4.1.2 Name, Role, Value (Level A)", "Buttons must have discernible text for screen readers."),
    "image-alt": WcagCriterion(
        "1.1.1 Non-text Content (Level A)", "Images must have alternative text for users who cannot see them."
    ),
    "link-name": WcagCriterion(
        "2.4.4 Link Purpose (In Context) (Level A)", "Links must have discernible text to indicate their destination."
    ),
    "label": WcagCriterion(
        "1.3.1 Info and Relationships (Level A)", "Form inputs must have labels so users know what to enter."
    ),
    "html-has-lang": WcagCriterion(
        "3.1.1 Language of Page (Level A)",
        "Screen readers need to know the page language to pronounce text correctly.",
    ),
    "color-contrast": WcagCriterion(
        "1.4.3 Contrast (Minimum) (Level AA)",
        "Text must have sufficient contrast with its background to be readable.",
    ),
    "heading-order": WcagCriterion(
        "1.3.1 Info and Relationships (Level A)",
        "Headings must be in logical order for document structure navigation.",
    ),
    "aria-hidden-focus": WcagCriterion(
        "4.1.2 Name, Role, Value (Level A)", "Hidden elements should not be focusable by keyboard users."
    ),
    "frame-title": WcagCriterion(
        "2.4.1 Bypass Blocks (Level A)",
        "iframes need titles so users understand their content without loading them.",
    ),
    "select-name": WcagCriterion(
        "1.3.1 Info and Relationships (Level A)", "Select elements must have accessible names for form navigation."
    ),
    "bypass": WcagCriterion(
        "2.4.1 Bypass Blocks (Level A)", "Users need a way to skip repetitive content like navigation."
    ),
    "landmark-one-main": WcagCriterion(
        "1.3.1 Info and Relationships (Level A)",
        "Pages need a main landmark so users can quickly find primary content.",
    ),
    "meta-viewport": WcagCriterion(
        "1.4.4 Resize Text (Level AA)", "Users must be able to zoom and resize text for readability."
    ),
    "document-title": WcagCriterion(
        "2.4.2 Page Titled (Level A)", "Pages need titles so users can identify them in tabs and history."
    ),
    "duplicate-id": WcagCriterion(
        "4.1.1 Parsing (Level A)", "Duplicate IDs cause assistive technologies to behave unpredictably."
    ),
}


def explain_violation(violation: Violation) -> Explanation:
    """Plain-language explanation; unknown rules fall back to axe's own text."""

    known = EXPLANATIONS.get(violation.id)
    if known is not None:
        return known
    return Explanation(problem=violation.description, impact=GENERIC_IMPACT, fix=violation.help)


def explain_rule(rule_id: str) -> Explanation | None:
    return EXPLANATIONS.get(rule_id.strip().lower())


def wcag_criterion(rule_id: str) -> WcagCriterion | None:
    return WCAG_CRITERIA.get(rule_id.strip().lower())


def unique_violations(violations: list[Violation], *, severity: str | None = None, limit: int | None = None) -> list[Violation]:
    """First violation per rule id, in report order, optionally filtered by impact."""

    seen: dict[str, Violation] = {}
    for v in violations:
        if severity is not None and v.impact != severity:
            continue
        seen.setdefault(v.id, v)
    out = list(seen.values())
    return out if limit is None else out[: max(0, limit)]
