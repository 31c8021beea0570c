# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_indieauth

"""
Collects candidate endpoint links from a fetched profile document.

Order matters: every `Link` header entry comes before any HTML `<link>` element, so a
relation declared in the headers always wins over one embedded in the page.
"""

import re
from collections.abc import Iterable, Iterator
from typing import NamedTuple

from bs4 import BeautifulSoup

HTML_MEDIA_TYPES = frozenset({"text/html", "application/xhtml+xml"})

# <uri-reference> followed by its ";"-separated parameters (RFC 8288 section 3)
_LINK_VALUE = re.compile(r'<([^>]*)>((?:\s*;\s*[^\s=;,]+(?:\s*=\s*(?:"(?:[^"\\]|\\.)*"|[^;,]*))?)*)')
_LINK_PARAM = re.compile(r';\s*([^\s=;,]+)(?:\s*=\s*(?:"((?:[^"\\]|\\.)*)"|([^;,]*)))?')


class Link(NamedTuple):
    rel: str
    url: str


class LinkSet:
    """
    An ordered sequence of (relation, raw URL) pairs.
    """

    def __init__(self, links: Iterable[Link] = ()) -> None:
        self._links = list(links)

    def __iter__(self) -> Iterator[Link]:
        return iter(self._links)

    def __len__(self) -> int:
        return len(self._links)

    def __repr__(self) -> str:
        return f"LinkSet({self._links!r})"

    def filter_by_rel(self, rel: str) -> list[str]:
        """Returns the URLs declared for `rel`, in precedence order."""
        rel = rel.lower()
        return [link.url for link in self._links if link.rel == rel]

    def first(self, rel: str) -> str | None:
        """Returns the winning URL for `rel`, or None if it was never declared."""
        matches = self.filter_by_rel(rel)
        return matches[0] if matches else None


def parse_link_headers(values: Iterable[str]) -> list[Link]:
    """
    Parses one or more `Link` header values.

    Each header line may hold several comma-separated entries. An entry with
    `rel="a b"` yields one Link per relation. Entries without a rel are ignored.
    """
    links: list[Link] = []
    for value in values:
        for match in _LINK_VALUE.finditer(value):
            url = match.group(1).strip()
            rel_value: str | None = None
            for param in _LINK_PARAM.finditer(match.group(2)):
                if param.group(1).lower() != "rel":
                    continue
                quoted, bare = param.group(2), param.group(3)
                rel_value = quoted.replace('\\"', '"') if quoted is not None else (bare or "").strip()
                # Only the first rel parameter counts
                break
            if rel_value is None:
                continue
            for rel in rel_value.split():
                links.append(Link(rel.lower(), url))
    return links


def parse_html_links(document: str) -> list[Link]:
    """
    Extracts every `<link rel=... href=...>` element of an HTML document, in document order.

    The document is parsed the way a browser would (html5lib), so markup inside
    `<title>`, `<textarea>`, `<xmp>` and similar text-only elements is never mistaken
    for a link. `<noscript>` content is treated as inert, as with scripting enabled.
    """
    soup = BeautifulSoup(document, "html5lib")
    links: list[Link] = []
    for element in soup.find_all("link", href=True):
        if element.find_parent("noscript") is not None:
            continue
        rel = element.get("rel") or []
        rels = rel.split() if isinstance(rel, str) else rel
        href = str(element["href"]).strip()
        for value in rels:
            links.append(Link(value.lower(), href))
    return links


def build_link_set(header_values: Iterable[str], body: bytes, media_type: str, charset: str | None = None) -> LinkSet:
    """
    Builds the LinkSet for a fetched profile.

    Args:
        header_values: Raw `Link` header values, in response order.
        body: The response body.
        media_type: The response media type; the body is only parsed when it is HTML.
        charset: Declared character set of the body, if any.

    Returns:
        LinkSet: Header links followed by HTML links.
    """
    links = parse_link_headers(header_values)
    if media_type in HTML_MEDIA_TYPES:
        try:
            document = body.decode(charset or "utf-8", errors="replace")
        except LookupError:
            document = body.decode("utf-8", errors="replace")
        links.extend(parse_html_links(document))
    return LinkSet(links)
