"""
Shared stubs: a scripted model and an in-memory browser. No network, no real browser.
"""

import json
import os

os.environ.setdefault("PILOT_SETUP_LOGGING", "false")

import pytest

from browser_pilot.config import PilotConfig
from browser_pilot.dom.views import AccessibleNode
from browser_pilot.exceptions import BrowserActionError
from browser_pilot.llm.views import ChatInvokeCompletion, ChatInvokeUsage, ToolCall


def tool_call(name, **arguments):
    """A completion whose single tool call is ``name(**arguments)``."""
    return ChatInvokeCompletion(
        tool_calls=[ToolCall(id=f"call-{name}", name=name, arguments=json.dumps(arguments))],
        usage=ChatInvokeUsage(prompt_tokens=10, completion_tokens=5),
        model="scripted",
    )


def plan_call(url=None, **extra):
    args = {
        "success_criteria": "The page title is reported",
        "plan": "1. Open the page\n2. Read the title",
        "action_items": ["Open page", "Read title"],
    }
    if url:
        args["url"] = url
    args.update(extra)
    return tool_call("create_plan", **args)


def verdict(quality, assessment="ok", feedback=None):
    args = {"task_assessment": assessment, "completion_quality": quality}
    if feedback:
        args["feedback"] = feedback
    return tool_call("validate_task", **args)


class ScriptedLLM:
    """Replays canned completions in order. Exceptions in the script are raised instead.

    Once the script is exhausted ``default(call_index)`` supplies the response.
    """

    model = "scripted"

    def __init__(self, script=None, default=None):
        self.script = list(script or [])
        self.default = default
        self.calls = []

    async def ainvoke(self, messages, tools=None, tool_choice=None, max_tokens=None):
        self.calls.append({"messages": list(messages), "tools": tools, "tool_choice": tool_choice})
        if self.script:
            item = self.script.pop(0)
        elif self.default is not None:
            item = self.default(len(self.calls))
        else:
            raise AssertionError("ScriptedLLM ran out of responses")
        if isinstance(item, BaseException):
            raise item
        return item


def example_tree():
    return AccessibleNode(
        role="WebArea",
        name="Example Domain",
        children=[
            AccessibleNode(role="heading", name="Example Domain", level=1),
            AccessibleNode(role="button", name="More", handle="h-1"),
            AccessibleNode(role="link", name="Docs", handle="h-2", url="https://example.com/docs"),
            AccessibleNode(role="textbox", name="Search", handle="h-3"),
        ],
    )


class DummyTab:
    def __init__(self, browser):
        self.browser = browser
        self.url = "about:blank"

    async def goto(self, url):
        self.url = url
        self.browser.side_quest_urls.append(url)

    async def wait_for_load_state(self, state="load", timeout=None):
        return None

    async def get_markdown(self):
        return "1. [Example Domain](https://example.com)\nAn example page."

    async def get_url(self):
        return self.url


class DummyBrowser:
    """In-memory browser. Clicking the Docs link (handle h-2) navigates."""

    def __init__(self, url="about:blank"):
        self.url = url
        self.started = False
        self.shutdown_calls = 0
        self.actions = []
        self.side_quest_urls = []
        self.tabs_open = 0
        self.fail_actions = False

    async def start(self):
        self.started = True

    async def shutdown(self):
        self.shutdown_calls += 1

    async def goto(self, url):
        self.url = url

    async def go_back(self):
        self.url = "https://example.com"

    async def go_forward(self):
        return None

    async def get_url(self):
        return self.url

    async def get_title(self):
        return "Example Domain" if self.url != "about:blank" else ""

    async def get_tree_with_refs(self):
        return example_tree()

    async def get_markdown(self):
        return "# Example Domain\n\nThis domain is for use in illustrative examples."

    async def get_screenshot(self, with_marks=False):
        return "aGVsbG8="

    async def perform_action(self, handle, action, value=None):
        self.actions.append((handle, action, value))
        if self.fail_actions:
            raise BrowserActionError(f"Element with reference '{handle}' not found or not interactable")
        if action == "goto":
            self.url = value
        elif action == "click" and handle == "h-2":
            self.url = "https://example.com/docs"

    async def wait_for_load_state(self, state="load", timeout=None):
        return None

    async def run_in_temporary_tab(self, fn):
        self.tabs_open += 1
        try:
            return await fn(DummyTab(self))
        finally:
            self.tabs_open -= 1


@pytest.fixture
def browser():
    return DummyBrowser()


@pytest.fixture
def fast_config():
    """Default budgets with no backoff delays."""
    return PilotConfig(retry_initial_delay=0.0, retry_max_delay=0.01, network_idle_timeout=0.5)
