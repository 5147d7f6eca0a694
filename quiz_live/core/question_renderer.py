"""Markdown rendering of question text for participant clients.

Question text is authored as markdown with ``$...$`` math. The server turns it
into an HTML fragment once per broadcast; math stays as TeX source and is
typeset on the client, so quiz files stay independent of any math engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt

from quiz_live.core.models import Question


@dataclass(slots=True)
class QuestionRenderer:
    """Converts markdown-with-math into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str) -> str:
        """Render a markdown string into an HTML fragment."""

        sanitized = markdown_text.strip()
        if not sanitized:
            return "<p><em>No content provided.</em></p>"
        return self._markdown.render(sanitized)

    def render_public_question(self, question: Question) -> dict[str, object]:
        """Participant view of a question plus its rendered HTML."""

        payload = question.to_public_dict()
        payload["html"] = self.render_fragment(question.text)
        return payload


# Shared instance used by the gateway.
renderer = QuestionRenderer()
