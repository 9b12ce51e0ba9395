from __future__ import annotations

from typing import Iterable, assert_never

from ..errors import EmptyThread
from .client import AgentsClient
from .types import ContentItem, ImageReferenceItem, TextItem


def join_text(content: Iterable[ContentItem]) -> str:
    """Concatenate the text segments of a message in order, dropping everything else."""
    parts: list[str] = []
    for item in content:
        match item:
            case TextItem(text=text):
                parts.append(text)
            case ImageReferenceItem():
                continue
            case _:
                assert_never(item)
    return "".join(parts)


async def extract_latest_reply(client: AgentsClient, thread_id: str) -> str:
    """Return the text of the most recent message on ``thread_id``."""
    messages = await client.list_messages(thread_id, order="desc", limit=1)
    if not messages:
        raise EmptyThread(thread_id)
    return join_text(messages[0].content)
