"""
Message Formatting
==================

Telegram Markdown texts sent to subscribers: cycle notices and item
messages.
"""

from enum import Enum

from ..database.models import UnreadResult
from ..utils.validators import TelegramValidator


PARSING_STARTED = "News parsing..."
NO_FRESH_NEWS = "No more fresh news"
FEED_CLEARED = "Feed is clear"


class ItemFormat(str, Enum):
    """Available item message styles."""
    BRIEF = "brief"
    DETAILED = "detailed"


def fresh_news_notice(unread_count: int) -> str:
    return f"*Fresh News available ({unread_count})*"


def cycle_notice(result: UnreadResult) -> str:
    """Notice sent at the end of an ingestion cycle."""
    if result.is_none or result.unread_count <= 0:
        return NO_FRESH_NEWS
    return fresh_news_notice(result.unread_count)


def format_item(result: UnreadResult, style: ItemFormat = ItemFormat.BRIEF) -> str:
    """Render the first unread item of a subscriber.

    ``DETAILED`` adds the full story when the item carries one. The result can
    exceed one Telegram message; the notifier splits it.
    """
    if result.is_none:
        return NO_FRESH_NEWS

    item = result.item
    escape = TelegramValidator.sanitize_markdown

    sections = [
        fresh_news_notice(result.unread_count),
        f"*{escape(item.title or item.link)}*",
    ]
    if item.summary:
        sections.append(f"*Summary:* {escape(item.summary)}")

    full_story = item.details.get("full_story", "")
    if style == ItemFormat.DETAILED and full_story:
        sections.append(f"*Full Story:* {escape(full_story)}")

    sections.append(f"[Read More]({item.link})")
    return "\n\n".join(sections)
