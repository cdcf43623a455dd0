"""Display helpers for a single post."""
from html import escape
from typing import Optional


# PUBLIC_INTERFACE
def tweet_box_label(text: str, username: Optional[str] = None) -> str:
    """Return ``"username: text"``, or just ``text`` when there is no username."""
    if username:
        return f"{username}: {text}"
    return text


def render_tweet_box(text: str, username: Optional[str] = None) -> str:
    return f"<div><h3>{escape(tweet_box_label(text, username))}</h3></div>"
