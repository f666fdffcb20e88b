"""
User-agent classification.

The single place where user agents are sniffed; every breakdown calls
classify_device / classify_browser. Both are total: any string (or None)
maps to exactly one category.

Order is fixed:
  device   tablet|ipad  → Tablet, then mobile → Mobile, else Desktop
  browser  chrome & !edg → Chrome, firefox → Firefox,
           safari & !chrome → Safari, edg → Edge, else Other
"""
from __future__ import annotations

import enum
import re
from typing import Optional


class Device(str, enum.Enum):
    mobile = "Mobile"
    tablet = "Tablet"
    desktop = "Desktop"


class Browser(str, enum.Enum):
    chrome = "Chrome"
    firefox = "Firefox"
    safari = "Safari"
    edge = "Edge"
    other = "Other"


_TABLET = re.compile(r"tablet|ipad", re.IGNORECASE)
_MOBILE = re.compile(r"mobile", re.IGNORECASE)

_CHROME = re.compile(r"chrome", re.IGNORECASE)
_EDGE = re.compile(r"edg", re.IGNORECASE)
_FIREFOX = re.compile(r"firefox", re.IGNORECASE)
_SAFARI = re.compile(r"safari", re.IGNORECASE)


def classify_device(user_agent: Optional[str]) -> Device:
    # iPad user agents also carry "Mobile/..."; tablet wins.
    ua = user_agent or ""
    if _TABLET.search(ua):
        return Device.tablet
    if _MOBILE.search(ua):
        return Device.mobile
    return Device.desktop


def classify_browser(user_agent: Optional[str]) -> Browser:
    ua = user_agent or ""
    if _CHROME.search(ua) and not _EDGE.search(ua):
        return Browser.chrome
    if _FIREFOX.search(ua):
        return Browser.firefox
    if _SAFARI.search(ua) and not _CHROME.search(ua):
        return Browser.safari
    if _EDGE.search(ua):
        return Browser.edge
    return Browser.other
