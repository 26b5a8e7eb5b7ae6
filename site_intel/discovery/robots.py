# site_intel/discovery/robots.py
"""
Parser and checker for robots.txt rules, plus its ``Sitemap:`` declarations.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import urljoin, urlparse

from site_intel.errors import NetworkError
from site_intel.http import HttpClient
from site_intel.logger import logger


class RobotsTxtRules:
    """Parser and checker for robots.txt rules."""

    def __init__(self, text: str) -> None:
        self.groups: List[Dict[str, Any]] = []
        self.sitemaps: List[str] = []
        self._parse(text)

    def can_fetch(self, user_agent: str, path: str) -> bool:
        """Return True if the user_agent can fetch the given path under the rules."""
        group = self._match_group(user_agent)
        if not group:
            return True
        # longest matching rule wins; allow wins a tie
        best_len = -1
        allowed = True
        for directive, rule in group.get("directives", []):
            if rule and path.startswith(rule):
                if len(rule) > best_len or (len(rule) == best_len and directive == "allow"):
                    best_len = len(rule)
                    allowed = directive == "allow"
        return allowed

    def can_fetch_url(self, user_agent: str, url: str) -> bool:
        parsed = urlparse(url)
        return self.can_fetch(user_agent, parsed.path or "/")

    def crawl_delay(self, user_agent: str) -> Optional[float]:
        group = self._match_group(user_agent)
        return group.get("crawl_delay") if group else None

    def _parse(self, text: str) -> None:
        """Parse robots.txt content into user-agent groups and directives."""
        current: Optional[Dict[str, Any]] = None
        in_agent_block = False
        for line in text.splitlines():
            line = line.split("#", 1)[0].strip()
            if not line:
                continue
            key, _, val = line.partition(":")
            key = key.strip().lower()
            val = val.strip()
            if key == "user-agent":
                # consecutive user-agent lines share one group
                if current is not None and in_agent_block:
                    current["agents"].append(val)
                else:
                    current = {"agents": [val], "directives": [], "crawl_delay": None}
                    self.groups.append(current)
                in_agent_block = True
                continue
            in_agent_block = False
            if key == "sitemap" and val:
                self.sitemaps.append(val)
            elif key in ("allow", "disallow") and current is not None:
                # skip empty disallow (means allow all)
                if key == "disallow" and not val:
                    continue
                current["directives"].append((key, val))
            elif key == "crawl-delay" and current is not None:
                try:
                    current["crawl_delay"] = float(val)
                except ValueError:
                    logger.debug("Ignoring bad crawl-delay %r", val)

    def _match_group(self, ua: str) -> Optional[Dict[str, Any]]:
        """Select the most specific group matching the user-agent, '*' as fallback."""
        ua = ua.lower()
        wildcard = None
        for group in self.groups:
            for agent in group.get("agents", []):
                if agent == "*":
                    wildcard = wildcard or group
                elif ua.startswith(agent.lower()):
                    return group
        return wildcard


ALLOW_ALL = RobotsTxtRules("")


async def fetch_robots(client: HttpClient, base_url: str) -> RobotsTxtRules:
    """Download ``/robots.txt``; a missing or unreachable file allows everything."""
    url = urljoin(base_url, "/robots.txt")
    try:
        text = await client.get_text(url)
    except NetworkError as exc:
        logger.info("No usable robots.txt at %s (%s)", url, exc)
        return ALLOW_ALL
    rules = RobotsTxtRules(text)
    logger.debug("robots.txt: %d groups, %d sitemaps", len(rules.groups), len(rules.sitemaps))
    return rules


__all__ = ["RobotsTxtRules", "fetch_robots", "ALLOW_ALL"]
