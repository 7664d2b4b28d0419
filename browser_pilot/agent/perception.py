from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Awaitable, Callable, Mapping, Optional, TypeVar

from browser_pilot.agent.events import EventEmitter, EventType
from browser_pilot.exceptions import StaleRefError

if TYPE_CHECKING:
    from browser_pilot.browser.views import BrowserCapability, TemporaryTab
    from browser_pilot.dom.views import AccessibleNode

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RefTarget:
    """What a ref points at inside one snapshot."""
    ref: str
    handle: str
    role: str
    name: str


@dataclass(frozen=True)
class PerceptionSnapshot:
    """
    Point-in-time view of the page: a text rendering for the model plus the
    ref index used to ground the model's choice back onto a live element.
    Refs carry the snapshot generation, so a ref from another snapshot never resolves here.
    """
    generation: int
    url: str
    title: str
    text: str
    index: Mapping[str, RefTarget] = field(default_factory=dict)
    screenshot: Optional[str] = None

    @property
    def refs(self) -> list[str]:
        return list(self.index)

    def resolve(self, ref: str) -> RefTarget:
        try:
            return self.index[ref]
        except KeyError:
            raise StaleRefError(ref, self.generation) from None

    @property
    def is_blank(self) -> bool:
        return self.url in ("", "about:blank")


def render_tree(root: AccessibleNode, generation: int) -> tuple[str, dict[str, RefTarget]]:
    """Render ``root`` as an indented outline and assign a fresh ref to every actionable node."""
    lines: list[str] = []
    index: dict[str, RefTarget] = {}

    def visit(node: AccessibleNode, depth: int) -> None:
        indent = "  " * depth
        if node.role == "text":
            lines.append(f"{indent}- text: {node.name}")
            return
        line = f"{indent}- {node.role}"
        if node.name:
            line += f' "{node.name}"'
        if node.level:
            line += f" [level={node.level}]"
        if node.checked is not None:
            line += " [checked]" if node.checked else " [unchecked]"
        if node.disabled:
            line += " [disabled]"
        if node.value:
            line += f' [value="{node.value}"]'
        if node.is_interactive:
            ref = f"s{generation}e{len(index)}"
            index[ref] = RefTarget(ref=ref, handle=node.handle, role=node.role, name=node.name)
            line += f" [ref={ref}]"
        if node.url:
            line += f" [url={node.url}]"
        lines.append(line)
        for child in node.children:
            visit(child, depth + 1)

    visit(root, 0)
    return "\n".join(lines), index


class Perception:
    """Owns the current snapshot for one task and grounds refs against it."""

    def __init__(self, browser: BrowserCapability, emitter: Optional[EventEmitter] = None, vision: bool = False):
        self.browser = browser
        self.emitter = emitter
        self.vision = vision
        self._generation = 0
        self._latest: Optional[PerceptionSnapshot] = None

    @property
    def latest(self) -> Optional[PerceptionSnapshot]:
        return self._latest

    async def snapshot(self) -> PerceptionSnapshot:
        tree = await self.browser.get_tree_with_refs()
        url = await self.browser.get_url()
        title = await self.browser.get_title()

        self._generation += 1
        text, index = render_tree(tree, self._generation)
        screenshot = None
        if self.vision:
            screenshot = await self.browser.get_screenshot(with_marks=True)
            if self.emitter is not None:
                self.emitter.emit(EventType.BROWSER_SCREENSHOT_CAPTURED_IMAGE, {
                    "url": url,
                    "generation": self._generation,
                    "image": screenshot,
                    "mediaType": "image/png",
                })

        snap = PerceptionSnapshot(
            generation=self._generation,
            url=url,
            title=title,
            text=text,
            index=MappingProxyType(index),
            screenshot=screenshot,
        )
        self._latest = snap
        logger.debug(f"Snapshot {snap.generation} of {url}: {len(index)} refs")
        return snap

    def resolve(self, ref: str) -> RefTarget:
        if self._latest is None:
            raise StaleRefError(ref)
        return self._latest.resolve(ref)

    def invalidate(self) -> None:
        """Drop the current snapshot; every issued ref becomes stale."""
        self._latest = None

    async def run_side_quest(self, fn: Callable[[TemporaryTab], Awaitable[T]]) -> T:
        """Run ``fn`` in an isolated temporary tab. The tab is closed by the browser on every exit path."""
        logger.debug("Starting side quest in a temporary tab")
        return await self.browser.run_in_temporary_tab(fn)
