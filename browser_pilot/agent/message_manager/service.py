from __future__ import annotations

import json
import logging
from typing import Optional

from browser_pilot.agent.message_manager.utils import SCREENSHOT_CLIP_MARKER, SNAPSHOT_CLIP_MARKER, clip_snapshot_text
from browser_pilot.exceptions import ConversationBudgetExceeded
from browser_pilot.llm.messages import (
    AssistantMessage,
    BaseMessage,
    ContentPartTextParam,
    SystemMessage,
    UserMessage,
)
from browser_pilot.llm.views import ToolCall

logger = logging.getLogger(__name__)

PINNED_KINDS = frozenset({"system", "task"})


class MessageManager:
    """
    Bounded conversation for one task.

    Eviction policy when the conversation exceeds ``max_messages``:
    the system prompt, the task/plan message and the most recent page
    snapshot are pinned. Everything else belongs to a step group (the
    iteration that produced it) and whole groups are evicted oldest first.
    If only pinned messages are left and the budget is still exceeded,
    ConversationBudgetExceeded is raised.

    Only the latest snapshot is kept in full; older ones are clipped to
    their title/URL lines and their screenshots are replaced by a marker.
    """

    def __init__(self, max_messages: int = 100):
        self.max_messages = max_messages
        self._messages: list[BaseMessage] = []
        self.evicted = 0

    @property
    def messages(self) -> list[BaseMessage]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def set_system_message(self, message: SystemMessage) -> None:
        self._messages = [m for m in self._messages if m.kind != "system"]
        self._messages.insert(0, message.model_copy(update={"kind": "system"}))

    def add_task_message(self, text: str) -> None:
        self._messages.append(UserMessage(content=text, kind="task"))

    def add_context(self, text: str, group: int = 0) -> None:
        """Supplementary context such as search results."""
        self._messages.append(UserMessage(content=text, kind="context", group=group))

    def add_snapshot(self, message: UserMessage, group: int) -> None:
        self._clip_previous_snapshots()
        self._messages.append(message.model_copy(update={"kind": "snapshot", "group": group}))
        self.trim()

    def add_action(self, tool_call: ToolCall, group: int) -> None:
        self._messages.append(
            AssistantMessage(
                content=f"{tool_call.name}({tool_call.arguments if isinstance(tool_call.arguments, str) else _compact(tool_call.arguments)})",
                tool_calls=[tool_call],
                kind="action",
                group=group,
            )
        )
        self.trim()

    def add_observation(self, text: str, group: int) -> None:
        self._messages.append(UserMessage(content=text, kind="observation", group=group))
        self.trim()

    def add_feedback(self, text: str, group: int) -> None:
        self._messages.append(UserMessage(content=text, kind="feedback", group=group))
        self.trim()

    def _latest_snapshot_index(self) -> Optional[int]:
        for i in range(len(self._messages) - 1, -1, -1):
            if self._messages[i].kind == "snapshot":
                return i
        return None

    def _is_pinned(self, index: int, latest_snapshot: Optional[int]) -> bool:
        return self._messages[index].kind in PINNED_KINDS or index == latest_snapshot

    def trim(self) -> None:
        while len(self._messages) > self.max_messages:
            latest_snapshot = self._latest_snapshot_index()
            groups = [
                m.group if m.group is not None else -1
                for i, m in enumerate(self._messages)
                if not self._is_pinned(i, latest_snapshot)
            ]
            if not groups:
                raise ConversationBudgetExceeded(
                    f"Conversation holds {len(self._messages)} pinned messages, over the budget of {self.max_messages}"
                )
            oldest = min(groups)
            before = len(self._messages)
            self._messages = [
                m
                for i, m in enumerate(self._messages)
                if self._is_pinned(i, latest_snapshot) or (m.group if m.group is not None else -1) != oldest
            ]
            self.evicted += before - len(self._messages)
            logger.debug(f"Evicted step group {oldest} ({before - len(self._messages)} messages)")

    def _clip_previous_snapshots(self) -> None:
        for i, message in enumerate(self._messages):
            if message.kind != "snapshot" or SNAPSHOT_CLIP_MARKER in message.text:
                continue
            content: list = [ContentPartTextParam(text=clip_snapshot_text(message.text))]
            if message.has_image:
                content.append(ContentPartTextParam(text=SCREENSHOT_CLIP_MARKER))
            self._messages[i] = message.model_copy(update={"content": content if len(content) > 1 else content[0].text})

    def recent(self, limit: int) -> list[BaseMessage]:
        """The last ``limit`` messages, excluding the system prompt."""
        return [m for m in self._messages if m.kind != "system"][-limit:]

    def history_text(self, limit: int = 30) -> str:
        return "\n\n".join(f"[{m.role}] {m.text}" for m in self.recent(limit))


def _compact(arguments: dict) -> str:
    return json.dumps(arguments, ensure_ascii=False, default=str)
