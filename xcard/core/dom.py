"""DOM query capability shared by live pages and HTML snapshots."""

from typing import Protocol, runtime_checkable

from bs4 import BeautifulSoup, Tag


class DomNode(Protocol):
    """A matched element."""

    def text(self) -> str: ...

    def attr(self, name: str) -> str | None: ...

    def query(self, selector: str) -> "DomNode | None": ...

    def query_all(self, selector: str) -> "list[DomNode]": ...


@runtime_checkable
class DomView(Protocol):
    """Selector queries against one state of a page."""

    def query(self, selector: str) -> DomNode | None: ...

    def query_all(self, selector: str) -> list[DomNode]: ...


class DomSource(Protocol):
    """Anything that can produce a fresh DomView, possibly after I/O."""

    async def snapshot(self) -> DomView: ...


class SoupNode:
    """DomNode backed by a BeautifulSoup Tag."""

    __slots__ = ("_tag",)

    def __init__(self, tag: Tag):
        self._tag = tag

    def text(self) -> str:
        return self._tag.get_text(strip=True)

    def attr(self, name: str) -> str | None:
        value = self._tag.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    def query(self, selector: str) -> "SoupNode | None":
        found = self._tag.select_one(selector)
        return SoupNode(found) if found is not None else None

    def query_all(self, selector: str) -> "list[SoupNode]":
        return [SoupNode(tag) for tag in self._tag.select(selector)]

    def __repr__(self) -> str:
        return f"SoupNode(<{self._tag.name}>)"


class SoupDomView:
    """DomView over a static HTML document, parsed with lxml."""

    def __init__(self, html: str | BeautifulSoup):
        self.soup = html if isinstance(html, BeautifulSoup) else BeautifulSoup(html, "lxml")

    def query(self, selector: str) -> SoupNode | None:
        tag = self.soup.select_one(selector)
        return SoupNode(tag) if tag is not None else None

    def query_all(self, selector: str) -> list[SoupNode]:
        return [SoupNode(tag) for tag in self.soup.select(selector)]


class StaticDomSource:
    """DomSource that always returns the same view."""

    def __init__(self, view: DomView):
        self.view = view

    @classmethod
    def from_html(cls, html: str) -> "StaticDomSource":
        return cls(SoupDomView(html))

    async def snapshot(self) -> DomView:
        return self.view


class SequenceDomSource:
    """
    DomSource that replays a sequence of HTML states, one per snapshot.

    Models a page hydrating over time; the last state repeats once the
    sequence is exhausted.
    """

    def __init__(self, states: list[str]):
        if not states:
            raise ValueError("at least one page state is required")
        self._views = [SoupDomView(html) for html in states]
        self.snapshots_taken = 0

    async def snapshot(self) -> DomView:
        index = min(self.snapshots_taken, len(self._views) - 1)
        self.snapshots_taken += 1
        return self._views[index]


class PageDomSource:
    """DomSource over a live Playwright page; each snapshot re-reads the DOM."""

    def __init__(self, page):
        self.page = page

    async def snapshot(self) -> DomView:
        html = await self.page.content()
        return SoupDomView(html)
