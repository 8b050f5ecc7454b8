# services/bookstore.py: source of scraped bookstore records
import abc
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class BookstoreScraper(abc.ABC):
    """Returns raw book records for bookstore sections.

    Each record is a dict with at least bookstore_id, bookstore_part_number,
    bookstore_used_price and bookstore_new_price; isbn, title and the other
    descriptive fields are optional.
    """

    @abc.abstractmethod
    def get_books(self, section_ids: List[str]) -> List[Dict]:
        """Raw records for every book assigned to the given sections."""


class JsonDumpScraper(BookstoreScraper):
    """Reads records saved by an earlier scrape run.

    The file holds either a list of records or an object mapping section ids
    to lists of records.
    """

    def __init__(self, path):
        self.path = Path(path)

    def get_books(self, section_ids: Optional[List[str]] = None) -> List[Dict]:
        with self.path.open(encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, list):
            books = data
        elif isinstance(data, dict):
            wanted = [str(s) for s in section_ids] if section_ids else list(data)
            books = [book for sid in wanted for book in data.get(sid, [])]
        else:
            raise ValueError(f"{self.path}: expected a list or an object of records")
        logger.info("Loaded %d scraped records from %s", len(books), self.path)
        return books
