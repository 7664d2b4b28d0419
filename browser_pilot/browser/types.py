# centralize imports for browser typing

import sys

from patchright._impl._errors import TargetClosedError as PatchrightTargetClosedError
from patchright.async_api import TimeoutError as PatchrightTimeoutError
from patchright.async_api import Browser as PatchrightBrowser
from patchright.async_api import BrowserContext as PatchrightBrowserContext
from patchright.async_api import Locator as PatchrightLocator
from patchright.async_api import Page as PatchrightPage
from patchright.async_api import async_playwright as async_patchright
from playwright._impl._api_structures import ProxySettings, ViewportSize
from playwright._impl._errors import TargetClosedError as PlaywrightTargetClosedError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import Browser as PlaywrightBrowser
from playwright.async_api import BrowserContext as PlaywrightBrowserContext
from playwright.async_api import Locator as PlaywrightLocator
from playwright.async_api import Page as PlaywrightPage
from playwright.async_api import async_playwright

Browser = PatchrightBrowser | PlaywrightBrowser
BrowserContext = PatchrightBrowserContext | PlaywrightBrowserContext
Page = PatchrightPage | PlaywrightPage
Locator = PatchrightLocator | PlaywrightLocator

# isinstance-friendly tuples
TargetClosedError = (PatchrightTargetClosedError, PlaywrightTargetClosedError)
DriverTimeoutError = (PatchrightTimeoutError, PlaywrightTimeoutError)

# pydantic needs typing_extensions.TypedDict on Python < 3.12
if sys.version_info < (3, 12):
	from typing_extensions import TypedDict

	ProxySettings = TypedDict('ProxySettings', ProxySettings.__annotations__, total=ProxySettings.__total__)
	ViewportSize = TypedDict('ViewportSize', ViewportSize.__annotations__, total=ViewportSize.__total__)

__all__ = [
	'Browser',
	'BrowserContext',
	'Page',
	'Locator',
	'TargetClosedError',
	'DriverTimeoutError',
	'ProxySettings',
	'ViewportSize',
	'async_playwright',
	'async_patchright',
]
