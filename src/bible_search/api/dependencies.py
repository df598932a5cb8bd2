from functools import lru_cache

from ..search import BibleSearchEngine


@lru_cache
def get_search_engine() -> BibleSearchEngine:
    return BibleSearchEngine()
