"""
Multi-platform bounty scraper.

Finds the source repositories behind active listings on:
- Code4rena (contest page links)
- Sherlock (contest API, RUNNING contests)
- Immunefi (bug bounty pages)
- Hats Finance (subgraph vaults + IPFS descriptions)

Pages are fetched as plain HTML/JSON; nothing is rendered. Failed requests
are logged and produce no references; there are no retries.
"""

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any

import aiohttp
from bs4 import BeautifulSoup

from .repository import RepositoryReference, normalize_repo_url, reference_from_link


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30

_MARKDOWN_GITHUB_LINK = re.compile(r"https?://github\.com/[^\s)\]>\"'<]+")


def extract_links(html: str, needle: str = "github.com") -> list[str]:
    """All anchor hrefs in an HTML document containing ``needle``, in order."""
    soup = BeautifulSoup(html, "html.parser")
    links = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"]
        if needle in href:
            links.append(href)
    return links


def extract_markdown_links(text: str) -> list[str]:
    """GitHub URLs appearing anywhere in a markdown document."""
    return [link.rstrip(".,;") for link in _MARKDOWN_GITHUB_LINK.findall(text or "")]


def _mapping(value: Any) -> dict:
    """``value`` if it is a JSON object, else an empty one."""
    return value if isinstance(value, dict) else {}


def _sequence(value: Any) -> list:
    """``value`` if it is a JSON array, else an empty one."""
    return value if isinstance(value, list) else []


def dedupe_references(references: list[RepositoryReference]) -> list[RepositoryReference]:
    """Drop repeated (url, commit) pairs, keeping first occurrence."""
    seen = set()
    unique = []
    for ref in references:
        key = (ref.url, ref.commit)
        if key in seen:
            continue
        seen.add(key)
        unique.append(ref)
    return unique


class BaseScraper(ABC):
    """Base class for platform scrapers."""

    platform: str = "unknown"

    def __init__(self, session: aiohttp.ClientSession | None = None, timeout: int = DEFAULT_TIMEOUT):
        self._session = session
        self._owns_session = False
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def __aenter__(self):
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self

    async def __aexit__(self, *args):
        if self._owns_session and self._session:
            await self._session.close()

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("Scraper not initialized. Use async with or call __aenter__")
        return self._session

    async def fetch_text(self, url: str, **kwargs) -> str | None:
        """GET a page as text, None on any failure."""
        try:
            async with self.session.get(url, timeout=self.timeout, **kwargs) as resp:
                if resp.status != 200:
                    logger.warning("%s: GET %s returned %s", self.platform, url, resp.status)
                    return None
                return await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("%s: GET %s failed: %s", self.platform, url, e)
            return None

    async def fetch_json(self, url: str, **kwargs) -> Any | None:
        """GET a JSON document, None on any failure."""
        text = await self.fetch_text(url, **kwargs)
        if text is None:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("%s: invalid JSON from %s: %s", self.platform, url, e)
            return None

    @abstractmethod
    async def discover(self) -> list[RepositoryReference]:
        """Find repositories behind currently active listings."""
        pass


class Code4renaScraper(BaseScraper):
    """Scraper for Code4rena contests."""

    platform = "code4rena"
    URL = "https://code4rena.com/contests"

    # Organisation links present on every page
    IGNORED_LINKS = {
        "https://github.com/code-423n4",
        "https://github.com/code-423n4/",
        "https://github.com/code-423n4/media-kit",
    }

    def references_from_page(self, html: str) -> list[RepositoryReference]:
        references = []
        for link in extract_links(html):
            if link in self.IGNORED_LINKS:
                continue
            ref = reference_from_link(self.platform, link)
            if ref:
                logger.debug("Found github link %s", link)
                references.append(ref)
        return dedupe_references(references)

    async def discover(self) -> list[RepositoryReference]:
        html = await self.fetch_text(self.URL)
        if html is None:
            return []

        references = self.references_from_page(html)
        logger.info("%s: found %d repos", self.platform, len(references))
        return references


class SherlockScraper(BaseScraper):
    """Scraper for Sherlock contests.

    The contest list API gives ids and states; each RUNNING contest's
    description (markdown) links to the audited repository at a commit.
    """

    platform = "sherlock"
    API_URL = "https://mainnet-contest.sherlock.xyz/contests"

    @staticmethod
    def running_contest_ids(contests: Any) -> list[Any]:
        if not isinstance(contests, list):
            return []
        return [
            c.get("id") for c in contests
            if isinstance(c, dict) and c.get("status") == "RUNNING" and c.get("id") is not None
        ]

    def references_from_description(self, description: str) -> list[RepositoryReference]:
        references = []
        for link in extract_markdown_links(description):
            ref = reference_from_link(self.platform, link, pin_commit=True)
            if ref:
                logger.info("Found github link %s with sha %s", ref.url, ref.commit)
                references.append(ref)
            else:
                logger.debug("Skipping GitHub URL without commit %s", link)
        return references

    async def _contest_references(self, contest_id: Any) -> list[RepositoryReference]:
        contest_url = f"{self.API_URL}/{contest_id}"
        logger.debug("Retrieving %s", contest_url)
        contest = await self.fetch_json(contest_url)
        if not isinstance(contest, dict):
            return []
        description = contest.get("description")
        if not isinstance(description, str):
            return []
        return self.references_from_description(description)

    async def discover(self) -> list[RepositoryReference]:
        contests = await self.fetch_json(self.API_URL)
        if contests is None:
            return []

        results = await asyncio.gather(*[
            self._contest_references(contest_id)
            for contest_id in self.running_contest_ids(contests)
        ])
        references = dedupe_references([ref for refs in results for ref in refs])
        logger.info("%s: found %d repos", self.platform, len(references))
        return references


class ImmunefiScraper(BaseScraper):
    """Scraper for Immunefi bug bounties."""

    platform = "immunefi"
    BASE_URL = "https://immunefi.com"
    EXPLORE_URL = "https://immunefi.com/explore/"
    HEADERS = {
        "User-Agent": "Mozilla/5.0 (compatible; bountyforge/1.0)"
    }
    MAX_BOUNTIES = 50

    def bounty_paths(self, html: str) -> list[str]:
        """Bounty page paths from the explore page (Next.js data and anchors)."""
        paths = []

        soup = BeautifulSoup(html, "html.parser")
        script_tag = soup.find("script", id="__NEXT_DATA__")
        if script_tag and script_tag.string:
            try:
                data = json.loads(script_tag.string)
            except json.JSONDecodeError:
                data = {}
            page_props = _mapping(_mapping(_mapping(data).get("props")).get("pageProps"))
            for bounty in _sequence(page_props.get("bounties")):
                if isinstance(bounty, dict) and bounty.get("id"):
                    paths.append(f"/bounty/{bounty['id']}/")

        for link in extract_links(html, needle="/bounty/"):
            paths.append(link.removeprefix(self.BASE_URL))

        return list(dict.fromkeys(paths))[:self.MAX_BOUNTIES]

    def references_from_bounty(self, html: str) -> list[RepositoryReference]:
        references = []
        for link in extract_links(html):
            if "immunefi-team" in link:
                continue
            url = normalize_repo_url(link)
            if url is None:
                logger.debug("Couldn't parse the url %s", link)
                continue
            ref = reference_from_link(self.platform, url)
            if ref:
                references.append(ref)
        return references

    async def _bounty_references(self, path: str) -> list[RepositoryReference]:
        html = await self.fetch_text(f"{self.BASE_URL}{path}", headers=self.HEADERS)
        if html is None:
            return []
        return self.references_from_bounty(html)

    async def discover(self) -> list[RepositoryReference]:
        html = await self.fetch_text(self.EXPLORE_URL, headers=self.HEADERS)
        if html is None:
            return []

        results = await asyncio.gather(*[
            self._bounty_references(path) for path in self.bounty_paths(html)
        ])
        references = dedupe_references([ref for refs in results for ref in refs])
        for ref in references:
            logger.info("Formatted github link: %s", ref.url)
        return references


class HatsScraper(BaseScraper):
    """Scraper for Hats Finance vaults.

    Vault descriptions live on IPFS; each severity lists the contracts it
    covers as GitHub links.
    """

    platform = "hats"
    SUBGRAPH_URLS = [
        "https://api.thegraph.com/subgraphs/name/hats-finance/hats",
        "https://api.thegraph.com/subgraphs/name/hats-finance/hats_polygon",
        "https://api.thegraph.com/subgraphs/name/hats-finance/hats_arbitrum",
        "https://api.thegraph.com/subgraphs/name/hats-finance/hats_optimism",
    ]
    IPFS_URL = "https://ipfs.io/ipfs"
    IPFS_TIMEOUT = 3
    QUERY = """
    query Vaults {
      masters {
        vaults {
          id
          descriptionHash
        }
      }
    }
    """

    @staticmethod
    def description_hashes(response: Any) -> list[str]:
        """IPFS hashes of every vault in a GraphQL response."""
        if not isinstance(response, dict):
            return []
        hashes = []
        for master in _sequence(_mapping(response.get("data")).get("masters")):
            for vault in _sequence(_mapping(master).get("vaults")):
                if not isinstance(vault, dict):
                    continue
                description_hash = vault.get("descriptionHash")
                if description_hash:
                    logger.debug("Found vault %s with description hash %s", vault.get("id"), description_hash)
                    hashes.append(description_hash)
        return hashes

    @staticmethod
    def covered_links(description: Any) -> list[str]:
        """GitHub links listed under ``severities[].contracts-covered``."""
        if not isinstance(description, dict):
            return []
        links = []
        for severity in _sequence(description.get("severities")):
            for covered in _sequence(_mapping(severity).get("contracts-covered")):
                if not isinstance(covered, dict):
                    continue
                for link in covered.values():
                    if isinstance(link, str) and "github.com" in link:
                        links.append(link)
        return links

    async def _query_subgraph(self, url: str) -> list[str]:
        logger.info("Querying %s", url)
        try:
            async with self.session.post(
                url,
                json={"query": self.QUERY},
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            ) as resp:
                if resp.status != 200:
                    logger.warning("hats: subgraph %s returned %s", url, resp.status)
                    return []
                return self.description_hashes(await resp.json(content_type=None))
        except (aiohttp.ClientError, asyncio.TimeoutError, json.JSONDecodeError) as e:
            logger.warning("hats: subgraph %s failed: %s", url, e)
            return []

    async def _vault_links(self, description_hash: str) -> list[str]:
        url = f"{self.IPFS_URL}/{description_hash}"
        try:
            async with self.session.get(url, timeout=aiohttp.ClientTimeout(total=self.IPFS_TIMEOUT)) as resp:
                if resp.status != 200:
                    return []
                return self.covered_links(await resp.json(content_type=None))
        except (aiohttp.ClientError, asyncio.TimeoutError, json.JSONDecodeError) as e:
            logger.warning("Failed to send IPFS request for %s: %s", description_hash, e)
            return []

    async def discover(self) -> list[RepositoryReference]:
        hash_lists = await asyncio.gather(*[self._query_subgraph(url) for url in self.SUBGRAPH_URLS])
        hashes = list(dict.fromkeys(h for hashes in hash_lists for h in hashes))

        link_lists = await asyncio.gather(*[self._vault_links(h) for h in hashes])

        references = []
        for links in link_lists:
            for link in links:
                url = normalize_repo_url(link)
                if url is None:
                    logger.debug("Couldn't parse the url %s", link)
                    continue
                ref = reference_from_link(self.platform, url)
                if ref:
                    references.append(ref)

        references = dedupe_references(references)
        for ref in references:
            logger.info("Found github repo: %s", ref.url)
        return references


class BountyDiscovery:
    """Unified repository discovery across all platforms."""

    SCRAPERS = {
        "code4rena": Code4renaScraper,
        "sherlock": SherlockScraper,
        "immunefi": ImmunefiScraper,
        "hats": HatsScraper,
    }

    def __init__(self, timeout: int = DEFAULT_TIMEOUT):
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self):
        self._session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, *args):
        if self._session:
            await self._session.close()

    async def discover_platform(self, platform: str) -> list[RepositoryReference]:
        """Discover repositories from one platform."""
        if platform not in self.SCRAPERS:
            raise ValueError(f"Unknown platform: {platform}. Available: {list(self.SCRAPERS.keys())}")

        scraper_class = self.SCRAPERS[platform]
        async with scraper_class(self._session, timeout=self.timeout) as scraper:
            return await scraper.discover()

    async def discover_all(self, platforms: list[str] | None = None) -> dict[str, list[RepositoryReference]]:
        """Discover from several platforms concurrently."""
        if platforms is None:
            platforms = list(self.SCRAPERS.keys())

        results: dict[str, list[RepositoryReference]] = {}

        async def discover_one(platform: str):
            try:
                results[platform] = await self.discover_platform(platform)
            except Exception as e:
                logger.error("Failed to scrape %s: %s", platform, e)
                results[platform] = []

        await asyncio.gather(*[discover_one(platform) for platform in platforms])

        return {platform: results.get(platform, []) for platform in platforms}

    @classmethod
    def available_platforms(cls) -> list[str]:
        """Get list of available platforms."""
        return list(cls.SCRAPERS.keys())
