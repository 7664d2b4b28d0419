import asyncio
import logging
from functools import partial
from typing import TYPE_CHECKING, Optional

from markdownify import markdownify

from browser_pilot.dom.views import AccessibleNode

if TYPE_CHECKING:
	from browser_pilot.browser.types import Page

HANDLE_ATTRIBUTE = 'data-pilot-handle'

CONTENT_TIMEOUT = 10.0
MARKDOWN_TIMEOUT = 5.0

# Walks the DOM, stamps every element that can be acted upon with a handle
# attribute and returns a compact role/name tree.
_TREE_JS = """
(opts) => {
  const attr = opts.attr;
  let counter = opts.start;
  const implicitRoles = {
    A: 'link', BUTTON: 'button', SELECT: 'combobox', TEXTAREA: 'textbox', OPTION: 'option',
    H1: 'heading', H2: 'heading', H3: 'heading', H4: 'heading', H5: 'heading', H6: 'heading',
    NAV: 'navigation', MAIN: 'main', FORM: 'form', TABLE: 'table', TR: 'row', TD: 'cell', TH: 'columnheader',
    UL: 'list', OL: 'list', LI: 'listitem', IMG: 'img', P: 'paragraph', LABEL: 'label', SUMMARY: 'button'
  };
  const inputRoles = {
    checkbox: 'checkbox', radio: 'radio', button: 'button', submit: 'button', reset: 'button',
    search: 'searchbox', range: 'slider', number: 'spinbutton'
  };
  const skip = new Set(['SCRIPT', 'STYLE', 'NOSCRIPT', 'TEMPLATE', 'SVG', 'HEAD', 'META', 'LINK']);

  const visible = (el) => {
    const style = window.getComputedStyle(el);
    if (style.display === 'none' || style.visibility === 'hidden') return false;
    const rect = el.getBoundingClientRect();
    return rect.width > 0 || rect.height > 0 || el.tagName === 'OPTION';
  };
  const roleOf = (el) => {
    const explicit = el.getAttribute('role');
    if (explicit) return explicit.split(' ')[0];
    if (el.tagName === 'INPUT') return inputRoles[(el.type || 'text').toLowerCase()] || 'textbox';
    if (el.isContentEditable) return 'textbox';
    return implicitRoles[el.tagName] || null;
  };
  const nameOf = (el) => {
    const label = el.getAttribute('aria-label') || el.getAttribute('alt') || el.getAttribute('title');
    if (label) return label;
    if (el.labels && el.labels.length) return el.labels[0].innerText;
    if (el.tagName === 'INPUT' || el.tagName === 'TEXTAREA') return el.getAttribute('placeholder') || '';
    return '';
  };
  const interactive = (el, role) =>
    ['link', 'button', 'textbox', 'searchbox', 'combobox', 'checkbox', 'radio', 'slider', 'spinbutton',
     'option', 'menuitem', 'tab', 'switch'].includes(role) || el.onclick != null || el.tabIndex >= 0 && role;

  const walk = (el) => {
    if (skip.has(el.tagName) || !visible(el)) return [];
    const role = roleOf(el);
    const children = [];
    for (const child of el.childNodes) {
      if (child.nodeType === Node.TEXT_NODE) {
        const text = child.textContent.replace(/\\s+/g, ' ').trim();
        if (text) children.push({ role: 'text', name: text.slice(0, 300) });
      } else if (child.nodeType === Node.ELEMENT_NODE) {
        children.push(...walk(child));
      }
    }
    if (!role) return children;
    const node = { role, name: nameOf(el).trim().slice(0, 300), children };
    if (interactive(el, role) && !el.disabled) {
      const handle = String(counter++);
      el.setAttribute(attr, handle);
      node.handle = handle;
    }
    if (el.disabled) node.disabled = true;
    if (el.tagName === 'A' && el.href) node.url = el.href;
    if (role === 'heading') node.level = Number(el.tagName.slice(1)) || undefined;
    if ('value' in el && el.tagName !== 'BUTTON' && el.type !== 'checkbox' && el.type !== 'radio') node.value = String(el.value || '');
    if (el.type === 'checkbox' || el.type === 'radio') node.checked = !!el.checked;
    if (!node.name && children.length === 1 && children[0].role === 'text') {
      node.name = children[0].name;
      node.children = [];
    }
    return [node];
  };

  document.querySelectorAll('[' + attr + ']').forEach((el) => el.removeAttribute(attr));
  return { role: 'document', name: document.title, children: walk(document.body || document.documentElement), next: counter };
}
"""

_MARKS_JS = """
(attr) => {
  const layer = document.createElement('div');
  layer.id = '__pilot_marks__';
  layer.style.cssText = 'position:fixed;inset:0;pointer-events:none;z-index:2147483647';
  document.querySelectorAll('[' + attr + ']').forEach((el) => {
    const rect = el.getBoundingClientRect();
    if (!rect.width || !rect.height) return;
    const box = document.createElement('div');
    box.style.cssText = `position:fixed;left:${rect.left}px;top:${rect.top}px;width:${rect.width}px;height:${rect.height}px;outline:2px solid #e5484d`;
    const tag = document.createElement('span');
    tag.textContent = el.getAttribute(attr);
    tag.style.cssText = 'position:absolute;top:-14px;left:0;font:10px monospace;background:#e5484d;color:#fff;padding:0 2px';
    box.appendChild(tag);
    layer.appendChild(box);
  });
  document.documentElement.appendChild(layer);
}
"""

_CLEAR_MARKS_JS = "() => { const layer = document.getElementById('__pilot_marks__'); if (layer) layer.remove(); }"


class DomService:
	"""Extracts the accessible tree and page markdown from a Playwright page."""

	logger: logging.Logger

	def __init__(self, page: 'Page', logger: Optional[logging.Logger] = None):
		self.page = page
		self.logger = logger or logging.getLogger(__name__)
		self._next_handle = 0

	async def get_tree(self) -> AccessibleNode:
		result = await self.page.evaluate(_TREE_JS, {'attr': HANDLE_ATTRIBUTE, 'start': self._next_handle})
		self._next_handle = int(result.pop('next', self._next_handle))
		tree = AccessibleNode.from_dict(result)
		self.logger.debug(f'Extracted tree with {sum(1 for n in tree.walk() if n.handle)} actionable nodes')
		return tree

	async def get_markdown(self) -> str:
		html = await asyncio.wait_for(self.page.content(), timeout=CONTENT_TIMEOUT)
		# Converted on a worker thread
		loop = asyncio.get_running_loop()
		convert = partial(markdownify, heading_style='ATX')
		markdown = await asyncio.wait_for(loop.run_in_executor(None, convert, html), timeout=MARKDOWN_TIMEOUT)
		return markdown.strip()

	def locator_for(self, handle: str):
		return self.page.locator(f'[{HANDLE_ATTRIBUTE}="{handle}"]').first

	async def draw_marks(self) -> None:
		await self.page.evaluate(_MARKS_JS, HANDLE_ATTRIBUTE)

	async def clear_marks(self) -> None:
		await self.page.evaluate(_CLEAR_MARKS_JS)
