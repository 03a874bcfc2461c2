from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from bs4 import BeautifulSoup, Comment

NEXT_DATA_SCRIPT_ID = "__NEXT_DATA__"
_INVISIBLE_TAGS = ("script", "style", "noscript", "template")


@dataclass
class PageSnapshot:
    """Rendered HTML of one page as handed over by the browser session."""
    url: str
    html: str
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    _soup: Optional[BeautifulSoup] = field(default=None, init=False, repr=False, compare=False)

    @property
    def soup(self) -> BeautifulSoup:
        # Shared by all extractors, which only read from it.
        if self._soup is None:
            self._soup = BeautifulSoup(self.html or "", "html.parser")
        return self._soup

    def linked_data_texts(self) -> List[str]:
        return [tag.string or tag.get_text() for tag in self.soup.find_all("script", type="application/ld+json")]

    def embedded_json_text(self, script_id: str = NEXT_DATA_SCRIPT_ID) -> Optional[str]:
        tag = self.soup.find("script", id=script_id)
        if tag is None:
            return None
        return tag.string or tag.get_text()

    def visible_text(self) -> str:
        body = self.soup.body or self.soup
        parts = [
            text for text in body.find_all(string=True)
            if not isinstance(text, Comment)
            and text.parent is not None and text.parent.name not in _INVISIBLE_TAGS
        ]
        return " ".join(part.strip() for part in parts if part.strip())
