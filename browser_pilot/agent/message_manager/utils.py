from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import anyio

from browser_pilot.llm.messages import BaseMessage

logger = logging.getLogger(__name__)

SNAPSHOT_CLIP_MARKER = "[clipped for brevity]"
SCREENSHOT_CLIP_MARKER = "[screenshot clipped for brevity]"


def clip_snapshot_text(text: str) -> str:
    """Keep the title and URL lines of a page outline and drop the rest."""
    kept = [line for line in text.splitlines() if line.lstrip("> ").startswith(("Title:", "URL:"))]
    return "\n".join(kept + [SNAPSHOT_CLIP_MARKER])


def format_conversation(messages: list[BaseMessage], result: Optional[str] = None) -> str:
    lines: list[str] = []
    for message in messages:
        header = f"## {message.role}"
        if message.kind:
            header += f" ({message.kind})"
        lines.append(header)
        lines.append("")
        lines.append(message.text)
        if message.has_image:
            lines.append("[image]")
        lines.append("")
    if result is not None:
        lines += ["## result", "", result, ""]
    return "\n".join(lines)


async def save_conversation(
    messages: list[BaseMessage],
    target: str | Path,
    result: Optional[str] = None,
    encoding: str = "utf-8",
) -> None:
    """Write the conversation as a Markdown transcript."""
    target_path = anyio.Path(target)
    await target_path.parent.mkdir(parents=True, exist_ok=True)
    await target_path.write_text(format_conversation(messages, result), encoding=encoding)
    logger.debug(f"Saved conversation with {len(messages)} messages to {target}")
