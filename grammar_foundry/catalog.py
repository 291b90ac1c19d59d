from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from html.parser import HTMLParser
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

import httpx
import yaml

from .errors import CatalogError
from .models import CatalogEntry

logger = logging.getLogger(__name__)

PARSER_LIST_URL = "https://github.com/tree-sitter/tree-sitter/wiki/List-of-parsers"


def dedupe_entries(pairs: Iterable[Tuple[str, str]]) -> Set[CatalogEntry]:
    """Collapse ``(name, locator)`` pairs into a set with one entry per name.

    The first locator seen for a name wins; later ones are logged and dropped.
    """

    seen: Dict[str, CatalogEntry] = {}
    for name, locator in pairs:
        name = name.strip()
        locator = locator.strip()
        if not name or not locator:
            continue
        existing = seen.get(name)
        if existing is None:
            seen[name] = CatalogEntry(name=name, source_locator=locator)
        elif existing.source_locator != locator:
            logger.warning(
                "duplicate catalog name %s: keeping %s, ignoring %s",
                name,
                existing.source_locator,
                locator,
            )
    return set(seen.values())


class _ParserListExtractor(HTMLParser):
    """Collect the first link of every ``li`` inside ``div.markdown-body``."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.pairs: List[Tuple[str, str]] = []
        self._div_stack: List[bool] = []
        self._body_depth = 0
        # One flag per open ``li``: has its first link been seen yet.
        self._li_linked: List[bool] = []
        self._href: Optional[str] = None
        self._text: List[str] = []

    def handle_starttag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        attributes = dict(attrs)
        if tag == "div":
            is_body = "markdown-body" in (attributes.get("class") or "").split()
            self._div_stack.append(is_body)
            if is_body:
                self._body_depth += 1
        elif tag == "li" and self._body_depth:
            self._li_linked.append(False)
        elif tag == "a" and self._href is None and not all(self._li_linked):
            href = attributes.get("href")
            if href:
                self._href = href
                self._text = []

    def handle_endtag(self, tag: str) -> None:
        if tag == "div" and self._div_stack:
            if self._div_stack.pop():
                self._body_depth -= 1
        elif tag == "li" and self._li_linked:
            self._li_linked.pop()
        elif tag == "a" and self._href is not None:
            text = "".join(self._text).strip()
            if text:
                self.pairs.append((text, self._href))
            self._href = None
            self._li_linked = [True] * len(self._li_linked)

    def handle_data(self, data: str) -> None:
        if self._href is not None:
            self._text.append(data)


def parse_parser_list(html: str) -> Set[CatalogEntry]:
    extractor = _ParserListExtractor()
    extractor.feed(html)
    extractor.close()
    if not extractor.pairs:
        raise CatalogError("No parser links found under div.markdown-body")
    return dedupe_entries(extractor.pairs)


def scrape_parsers(
    url: str = PARSER_LIST_URL,
    *,
    client: httpx.Client | None = None,
    timeout: float = 30.0,
) -> Set[CatalogEntry]:
    """Fetch the Tree-sitter parser list page and return its catalog entries."""

    owns_client = client is None
    http_client = client or httpx.Client(timeout=timeout, follow_redirects=True)
    try:
        response = http_client.get(url)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        raise CatalogError(f"Failed to fetch parser list from {url}: {exc}") from exc
    finally:
        if owns_client:
            http_client.close()
    entries = parse_parser_list(response.text)
    logger.info("scraped %d parsers from %s", len(entries), url)
    return entries


@dataclass
class ParserCatalog:
    """Offline catalog file listing grammar repositories.

    The file holds a top-level ``parsers`` list of ``{name, url}`` objects, as
    JSON or YAML.
    """

    path: Path
    _cache: Optional[Set[CatalogEntry]] = None

    @classmethod
    def from_file(cls, path: str | Path) -> "ParserCatalog":
        return cls(path=Path(path))

    def _load(self) -> Set[CatalogEntry]:
        if self._cache is not None:
            return self._cache

        try:
            raw_text = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CatalogError(f"Cannot read catalog {self.path}: {exc}") from exc
        try:
            raw_data = json.loads(raw_text)
        except json.JSONDecodeError:
            try:
                raw_data = yaml.safe_load(raw_text)
            except yaml.YAMLError as exc:
                raise CatalogError(f"Catalog {self.path} is neither JSON nor YAML") from exc

        if not isinstance(raw_data, dict) or not isinstance(raw_data.get("parsers"), list):
            raise CatalogError("Catalog must contain a top-level 'parsers' list")

        try:
            pairs = [(entry["name"], entry["url"]) for entry in raw_data["parsers"]]
        except (KeyError, TypeError) as exc:
            raise CatalogError("Every catalog entry needs a 'name' and a 'url'") from exc

        self._cache = dedupe_entries(pairs)
        return self._cache

    def entries(self) -> Set[CatalogEntry]:
        return set(self._load())

    def __len__(self) -> int:
        return len(self._load())

    def __contains__(self, name: str) -> bool:
        return any(entry.name == name for entry in self._load())
