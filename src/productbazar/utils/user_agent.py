"""Minimal user agent classification into device, OS and browser."""

import re

from productbazar.models.view import DeviceType

_TABLET_RE = re.compile(r"ipad|tablet|kindle|silk|playbook|(android(?!.*mobile))", re.I)
_MOBILE_RE = re.compile(r"mobi|iphone|ipod|android.*mobile|windows phone|blackberry|opera mini", re.I)

_OS_RULES = (
    (re.compile(r"windows", re.I), "Windows"),
    (re.compile(r"iphone|ipad|ipod|ios", re.I), "iOS"),
    (re.compile(r"mac os x|macintosh", re.I), "macOS"),
    (re.compile(r"android", re.I), "Android"),
    (re.compile(r"cros", re.I), "ChromeOS"),
    (re.compile(r"linux", re.I), "Linux"),
)

# Order matters: Edge and Opera UAs also contain "Chrome", Chrome contains "Safari"
_BROWSER_RULES = (
    (re.compile(r"edg(e|a|ios)?/", re.I), "Edge"),
    (re.compile(r"opr/|opera", re.I), "Opera"),
    (re.compile(r"samsungbrowser", re.I), "Samsung Internet"),
    (re.compile(r"firefox|fxios", re.I), "Firefox"),
    (re.compile(r"chrome|crios", re.I), "Chrome"),
    (re.compile(r"safari", re.I), "Safari"),
)


def parse_device(user_agent: str | None) -> DeviceType:
    if not user_agent:
        return DeviceType.OTHER
    if _TABLET_RE.search(user_agent):
        return DeviceType.TABLET
    if _MOBILE_RE.search(user_agent):
        return DeviceType.MOBILE
    if re.search(r"windows|macintosh|x11|linux|cros", user_agent, re.I):
        return DeviceType.DESKTOP
    return DeviceType.OTHER


def parse_os(user_agent: str | None) -> str | None:
    if not user_agent:
        return None
    for pattern, name in _OS_RULES:
        if pattern.search(user_agent):
            return name
    return None


def parse_browser(user_agent: str | None) -> str | None:
    if not user_agent:
        return None
    for pattern, name in _BROWSER_RULES:
        if pattern.search(user_agent):
            return name
    return None


def parse_user_agent(user_agent: str | None) -> dict:
    return {
        "device": parse_device(user_agent),
        "os": parse_os(user_agent),
        "browser": parse_browser(user_agent),
    }
