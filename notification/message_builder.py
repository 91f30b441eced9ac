import html
from typing import List, Optional

from pydantic import BaseModel


class MatchSummaryItem(BaseModel):
    title: str
    company: str
    score: int
    freshness: str
    url: Optional[str] = None


class MatchSummaryMessage(BaseModel):
    subject: str
    text: str
    html: str


def format_cents(cents: int) -> str:
    return f"${cents / 100:.2f}"


class NotificationMessageBuilder:
    def __init__(self, base_url: str = "http://localhost:8080", top_matches: int = 5):
        self.base_url = base_url.rstrip('/')
        self.top_matches = top_matches

    def top(self, items: List[MatchSummaryItem]) -> List[MatchSummaryItem]:
        return sorted(items, key=lambda item: item.score, reverse=True)[:self.top_matches]

    def build_match_summary(self, items: List[MatchSummaryItem], fee_charged_cents: int) -> MatchSummaryMessage:
        """Summary of a run's kept matches. The fee line only appears when a fee was charged."""
        count = len(items)
        top_items = self.top(items)
        noun = "match" if count == 1 else "matches"
        subject = f"You have {count} new {noun}"

        lines = [f"We found {count} new {noun} for you.", ""]
        html_items = []
        for item in top_items:
            line = f"- {item.title} at {item.company}: score {item.score}/100 ({item.freshness})"
            if item.url:
                line += f" {item.url}"
            lines.append(line)

            link = f' - <a href="{html.escape(item.url, quote=True)}">View</a>' if item.url else ""
            html_items.append(
                f"<li><strong>{html.escape(item.title)}</strong> at {html.escape(item.company)}"
                f" - score {item.score}/100 ({html.escape(item.freshness)}){link}</li>"
            )

        fee_line = ""
        if fee_charged_cents > 0:
            fee_line = f"We applied your daily matching fee of {format_cents(fee_charged_cents)}."
            lines.extend(["", fee_line])

        lines.extend(["", f"Review your matches: {self.base_url}/matches"])

        html_body = (
            f"<h2>We found {count} new {noun} for you</h2>"
            f"<ul>{''.join(html_items)}</ul>"
            + (f"<p>{fee_line}</p>" if fee_line else "")
            + f'<p><a href="{html.escape(self.base_url, quote=True)}/matches">Review your matches</a></p>'
        )

        return MatchSummaryMessage(subject=subject, text="\n".join(lines), html=html_body)
