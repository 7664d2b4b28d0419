import pytest

from browser_pilot.agent.message_manager.service import MessageManager
from browser_pilot.agent.message_manager.utils import (
    SCREENSHOT_CLIP_MARKER,
    SNAPSHOT_CLIP_MARKER,
    format_conversation,
    save_conversation,
)
from browser_pilot.exceptions import ConversationBudgetExceeded
from browser_pilot.llm.messages import ContentPartImageParam, ContentPartTextParam, ImageURL, SystemMessage, UserMessage
from browser_pilot.llm.views import ToolCall


def snapshot(n, image=False):
    text = f"> Title: Page {n}\n> URL: https://example.com/{n}\n>\n> - button \"Go\" [ref=s{n}e0]"
    if image:
        return UserMessage(content=[
            ContentPartTextParam(text=text),
            ContentPartImageParam(image_url=ImageURL(url="data:image/png;base64,aGVsbG8=")),
        ])
    return UserMessage(content=text)


def add_step(manager, n):
    manager.add_snapshot(snapshot(n), n)
    manager.add_action(ToolCall(name="click", arguments={"ref": f"s{n}e0"}), n)
    manager.add_observation(f"Action click ref=s{n}e0 succeeded.", n)


def new_manager(max_messages):
    manager = MessageManager(max_messages=max_messages)
    manager.set_system_message(SystemMessage(content="system rules"))
    manager.add_task_message("Task: find the title")
    return manager


def test_whole_oldest_step_group_is_evicted_first():
    manager = new_manager(6)
    add_step(manager, 1)
    add_step(manager, 2)

    kinds = [m.kind for m in manager.messages]
    groups = [m.group for m in manager.messages]
    assert kinds == ["system", "task", "snapshot", "action", "observation"]
    assert 1 not in groups
    assert manager.evicted == 3
    assert len(manager) <= 6


def test_system_task_and_latest_snapshot_survive_trimming():
    manager = new_manager(5)
    for n in range(1, 8):
        add_step(manager, n)

    messages = manager.messages
    assert messages[0].kind == "system"
    assert messages[1].kind == "task"
    latest = [m for m in messages if m.kind == "snapshot"][-1]
    assert "Page 7" in latest.text
    assert SNAPSHOT_CLIP_MARKER not in latest.text
    assert len(manager) <= 5


def test_budget_that_cannot_hold_pinned_messages_raises():
    manager = new_manager(2)
    with pytest.raises(ConversationBudgetExceeded):
        manager.add_snapshot(snapshot(1), 1)


def test_only_latest_snapshot_is_kept_in_full():
    manager = new_manager(50)
    manager.add_snapshot(snapshot(1, image=True), 1)
    manager.add_snapshot(snapshot(2, image=True), 2)

    first, second = [m for m in manager.messages if m.kind == "snapshot"]
    assert first.text.splitlines() == ["> Title: Page 1", "> URL: https://example.com/1", SNAPSHOT_CLIP_MARKER, SCREENSHOT_CLIP_MARKER]
    assert not first.has_image
    assert second.has_image
    assert "[ref=s2e0]" in second.text


def test_history_text_skips_system_prompt_and_honours_limit():
    manager = new_manager(50)
    add_step(manager, 1)

    history = manager.history_text(limit=2)
    assert "system rules" not in history
    assert history.startswith("[assistant] click")
    assert history.endswith("succeeded.")


@pytest.mark.asyncio
async def test_conversation_transcript_is_written(tmp_path):
    manager = new_manager(50)
    add_step(manager, 1)
    target = tmp_path / "runs" / "conversation.md"

    await save_conversation(manager.messages, target, result="Example Domain")

    written = target.read_text(encoding="utf-8")
    assert written == format_conversation(manager.messages, "Example Domain")
    assert "## system (system)" in written
    assert written.rstrip().endswith("Example Domain")
