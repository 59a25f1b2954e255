"""Ordered locator sets for grok.com's framework-rendered UI.

Each ``LocatorSet`` is a priority-ordered tuple of ``Probe`` values. Callers
try probes in order and the first match wins; only exhausting the whole set
counts as a miss. The selectors are best-effort and may need updating when
the site ships a redesign.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Probe:
    """A single CSS selector candidate."""

    selector: str


@dataclass(frozen=True)
class LocatorSet:
    """A named, ordered list of probes."""

    name: str
    probes: tuple[Probe, ...]

    @classmethod
    def of(cls, name: str, *selectors: str) -> LocatorSet:
        return cls(name, tuple(Probe(s) for s in selectors))

    @property
    def selectors(self) -> list[str]:
        return [p.selector for p in self.probes]

    def __iter__(self):
        return iter(self.probes)

    def __len__(self) -> int:
        return len(self.probes)


INPUT_AREA = LocatorSet.of(
    "input-area",
    'textarea[data-testid="grok-compose-input"]',
    'div[data-testid="grok-compose-input"]',
    'textarea[placeholder*="Ask"]',
    'textarea[placeholder*="Message"]',
    'textarea[placeholder*="Type"]',
    'div[contenteditable="true"][data-lexical-editor="true"]',
    'div[contenteditable="true"][role="textbox"]',
    'div[contenteditable="true"]',
    'textarea[aria-label*="message"]',
    'textarea[aria-label*="Ask"]',
    "#prompt-textarea",
    "textarea:not([readonly]):not([disabled])",
)

SUBMIT_CONTROL = LocatorSet.of(
    "submit-control",
    'button[data-testid="grok-compose-submit"]',
    'button[aria-label*="Send"]',
    'button[aria-label*="send"]',
    'button[aria-label*="Submit"]',
    'button[type="submit"]',
    'button[data-testid*="send"]',
)

# More specific containers first.
RESPONSE_CONTAINER = LocatorSet.of(
    "response-container",
    '[class*="response"][class*="content"]',
    '[data-testid="grok-response-content"]',
    '[data-testid="responseText"]',
    '[data-testid="response-content"]',
    '[data-testid="message-content"]',
    '[data-testid="assistant-message"]',
    '[data-message-role="assistant"]',
    '[data-role="assistant"]',
    ".response-content",
    ".message-content",
    'article[data-testid*="response"]',
    'article[data-testid*="message"]',
    '[role="article"]',
    ".prose",
    ".markdown-body",
    '[class*="message"][class*="assistant"]',
    '[class*="assistant"] [class*="content"]',
    'div[class*="markdown"]',
    "main article",
    'section[role="region"] article',
)

# The Stop button is deliberately absent: it stays visible after completion.
BUSY_INDICATOR = LocatorSet.of(
    "busy-indicator",
    '[data-testid="grok-streaming-indicator"]',
    '[data-testid="loading"]',
    '[data-testid*="loading"]',
    '[data-testid*="thinking"]',
    '[data-testid*="generating"]',
    '[aria-label*="Loading"]',
    '[aria-label*="Generating"]',
    '[aria-label*="Thinking"]',
    'svg[class*="animate-spin"]',
    'svg[class*="spinner"]',
    ".loading-indicator",
    '[class*="streaming"]',
    '[class*="thinking"]',
    '[class*="generating"]',
)

THINK_TOGGLE = LocatorSet.of(
    "think-toggle",
    'button[data-testid="think-toggle"]',
    'button[aria-label*="Think"]',
    'button[aria-label*="think"]',
    'button[title*="Think"]',
    '[data-testid*="think"]',
    'button[class*="think"]',
)

DEEP_SEARCH_TOGGLE = LocatorSet.of(
    "deep-search-toggle",
    'button[data-testid="deepsearch-toggle"]',
    'button[data-testid="deep-search-toggle"]',
    'button[aria-label*="DeepSearch"]',
    'button[aria-label*="Deep Search"]',
    'button[aria-label*="deep search"]',
    'button[title*="DeepSearch"]',
    'button[title*="Deep Search"]',
    '[data-testid*="deepsearch"]',
    '[data-testid*="deep-search"]',
    'button[class*="deepsearch"]',
    'button[class*="deep-search"]',
)

IMAGE_RESULT = LocatorSet.of(
    "image-result",
    '[data-testid*="generated-image"] img',
    '[data-testid*="image-result"] img',
    ".response-content img",
    '[class*="generated"] img',
    '[class*="image-result"] img',
    'article img[src^="blob:"]',
    'article img[src^="http"]',
    '[role="article"] img',
)

MODE_TOGGLES: dict[str, LocatorSet] = {
    "think": THINK_TOGGLE,
    "deep-search": DEEP_SEARCH_TOGGLE,
}
