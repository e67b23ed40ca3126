"""Answer composition: evidence-grounded answers and canned branch replies."""

from vidya.composer.composer import ComposedAnswer, ResponseComposer
from vidya.composer.formatting import (
    apply_length_preference,
    apply_style_preference,
    format_response,
    with_greeting,
)

__all__ = [
    "ComposedAnswer",
    "ResponseComposer",
    "apply_length_preference",
    "apply_style_preference",
    "format_response",
    "with_greeting",
]
