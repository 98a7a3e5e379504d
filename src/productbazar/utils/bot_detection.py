"""Heuristic bot detection for view tracking.

A request counts as automated when any signal fires: a bot-like user agent,
a known crawler IP range, a headless browser fingerprint, two or more missing
standard headers, or an automation tool header.
"""

import ipaddress
import re
from collections.abc import Mapping

BOT_UA_PATTERN = re.compile(
    "|".join(
        [
            # General identifiers
            r"bot", r"crawler", r"spider", r"slurp", r"archiver", r"monitoring",
            r"analyzer", r"scraper", r"probe", r"phantom", r"headless", r"selenium",
            # Tools
            r"chrome-lighthouse", r"lighthouse", r"pingdom", r"gtmetrix", r"pagespeed",
            r"uptimerobot", r"statuscake", r"checkly", r"screaming frog", r"ahrefs",
            r"semrush", r"majestic",
            # Link preview fetchers
            r"facebookexternalhit", r"whatsapp", r"telegram", r"discord", r"slack",
            r"linkedin", r"pinterest", r"embedly",
            # Search engines
            r"yandex", r"baidu", r"duckduck", r"exabot",
            # HTTP clients and scanners
            r"curl/", r"wget/", r"python-requests", r"python-httpx", r"aiohttp",
            r"go-http-client", r"java/", r"okhttp", r"nessus", r"nikto", r"acunetix",
            r"jmeter", r"blazemeter",
        ]
    ),
    re.IGNORECASE,
)

HEADLESS_FINGERPRINTS = (
    "HeadlessChrome",
    "PhantomJS",
    "Puppeteer",
    "Headless",
    "Electron",
    "Nightmare",
    "Selenium",
    "webdriver",
    "slimerjs",
    "jsdom",
    "zombie.js",
)

AUTOMATION_HEADERS = (
    "x-puppeteer",
    "x-puppeteer-version",
    "x-selenium",
    "x-automated-browser",
    "x-automation",
    "x-testing-request",
    "x-lighthouse",
    "x-crawler",
    "x-bot",
    "x-scraper",
)

COMMON_HEADERS = ("accept", "accept-language", "accept-encoding", "user-agent")

BOT_NETWORKS = [
    ipaddress.ip_network(cidr)
    for cidr in (
        "66.249.64.0/19",  # Googlebot
        "64.233.160.0/19",  # Google
        "216.239.32.0/19",  # Google
        "209.85.128.0/17",  # Google
        "66.102.0.0/20",  # Google
        "157.55.39.0/24",  # Bingbot
        "207.46.13.0/24",  # Bingbot
        "40.77.167.0/24",  # Bingbot
        "13.66.139.0/24",  # Bingbot
        "52.167.144.0/24",  # Bingbot
        "72.30.196.0/24",  # Yahoo Slurp
        "98.137.11.0/24",  # Yahoo
        "180.76.15.0/24",  # Baiduspider
        "123.125.71.0/24",  # Baidu
        "100.43.64.0/18",  # Yandex
        "141.8.142.0/24",  # Yandex
        "199.59.148.0/22",  # Twitter
        "69.63.176.0/21",  # Facebook
        "173.252.64.0/18",  # Facebook
        "31.13.24.0/21",  # Facebook
        "108.174.0.0/20",  # LinkedIn
        "54.36.148.0/23",  # OVH crawler
    )
]

_LOCAL_ADDRESSES = {"0.0.0.0", "127.0.0.1", "::1", "testclient"}


def _header(headers: Mapping[str, str], name: str) -> str:
    # Starlette Headers are case-insensitive; plain dicts are normalised here
    value = headers.get(name)
    if value is None and not hasattr(headers, "getlist"):
        lowered = {k.lower(): v for k, v in headers.items()}
        value = lowered.get(name)
    return value or ""


def matches_bot_user_agent(user_agent: str) -> bool:
    return bool(user_agent) and bool(BOT_UA_PATTERN.search(user_agent))


def has_headless_fingerprint(user_agent: str) -> bool:
    return any(marker in user_agent for marker in HEADLESS_FINGERPRINTS)


def is_bot_ip(ip: str | None) -> bool:
    if not ip or ip in _LOCAL_ADDRESSES:
        return False
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return any(address in network for network in BOT_NETWORKS)


def missing_common_headers(headers: Mapping[str, str]) -> bool:
    return sum(1 for name in COMMON_HEADERS if not _header(headers, name)) >= 2


def has_automation_header(headers: Mapping[str, str]) -> bool:
    return any(_header(headers, name) for name in AUTOMATION_HEADERS)


def is_bot_request(headers: Mapping[str, str], ip: str | None = None) -> bool:
    """Return True when the request looks automated."""
    user_agent = _header(headers, "user-agent")
    return (
        matches_bot_user_agent(user_agent)
        or has_headless_fingerprint(user_agent)
        or is_bot_ip(ip)
        or missing_common_headers(headers)
        or has_automation_header(headers)
    )
