"""Removal of model reasoning spans (<think>...</think>) from output text."""

import re

THINK_START = "<think>"
THINK_END = "</think>"

_THINK_SPAN = re.compile(r"<think>.*?</think>", re.DOTALL)
_EXTRA_NEWLINES = re.compile(r"\n{3,}")


def filter_reasoning(text: str) -> str:
    """Strip every complete reasoning span from buffered text and tidy the rest."""
    if not text:
        return text
    text = _THINK_SPAN.sub("", text)
    text = _EXTRA_NEWLINES.sub("\n\n", text)
    return text.strip()


class ReasoningSpanFilter:
    """
    Incremental filter for streamed text.

    Spans may open in one fragment and close several fragments later, so
    the filter remembers whether it is currently inside a span. One
    instance serves one conversation turn.
    """

    def __init__(self):
        self.inside_span = False

    def feed(self, fragment: str) -> str:
        """Return the visible part of ``fragment``."""
        visible = []
        rest = fragment

        while rest:
            if self.inside_span:
                end = rest.find(THINK_END)
                if end < 0:
                    return "".join(visible)
                rest = rest[end + len(THINK_END):]
                self.inside_span = False
            else:
                start = rest.find(THINK_START)
                if start < 0:
                    visible.append(rest)
                    break
                visible.append(rest[:start])
                rest = rest[start + len(THINK_START):]
                self.inside_span = True

        return "".join(visible)
