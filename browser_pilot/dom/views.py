from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

INTERACTIVE_ROLES = frozenset(
	{
		'button',
		'link',
		'textbox',
		'searchbox',
		'combobox',
		'listbox',
		'option',
		'checkbox',
		'radio',
		'switch',
		'slider',
		'spinbutton',
		'menuitem',
		'menuitemcheckbox',
		'menuitemradio',
		'tab',
		'treeitem',
	}
)


@dataclass
class AccessibleNode:
	"""One node of the accessibility-style tree extracted from a page.

	`handle` is assigned by the browser driver and is only meaningful to it.
	Refs for the model are assigned later, per snapshot.
	"""

	role: str
	name: str = ''
	handle: Optional[str] = None
	value: Optional[str] = None
	checked: Optional[bool] = None
	disabled: bool = False
	url: Optional[str] = None
	level: Optional[int] = None
	children: list['AccessibleNode'] = field(default_factory=list)

	@property
	def is_interactive(self) -> bool:
		return self.handle is not None and (self.role in INTERACTIVE_ROLES or self.url is not None)

	def walk(self) -> Iterator['AccessibleNode']:
		yield self
		for child in self.children:
			yield from child.walk()

	@classmethod
	def from_dict(cls, data: dict[str, Any]) -> 'AccessibleNode':
		return cls(
			role=data.get('role') or 'generic',
			name=(data.get('name') or '').strip(),
			handle=data.get('handle'),
			value=data.get('value'),
			checked=data.get('checked'),
			disabled=bool(data.get('disabled', False)),
			url=data.get('url'),
			level=data.get('level'),
			children=[cls.from_dict(c) for c in data.get('children') or []],
		)
