"""
Search cache configuration settings
"""
import os


def _env_flag(name: str, default: str = "1") -> bool:
    return os.getenv(name, default).strip().lower() not in {"0", "false", "no", "off"}


class CacheConfig:
    """Configuration class for search cache settings"""

    # "memory" keeps entries in-process, "redis" shares them across workers
    BACKEND = os.getenv("SEARCH_CACHE_BACKEND", "memory")
    ENABLED = _env_flag("SEARCH_CACHE_ENABLED")

    SEARCH_RESULTS_TTL = int(os.getenv("SEARCH_CACHE_TTL", "300"))  # 5 minutes
    MAX_ENTRIES = int(os.getenv("SEARCH_CACHE_MAX_ENTRIES", "1000"))

    # Cache key prefixes
    SEARCH_PREFIX = "leads:search:"
    META_PREFIX = "leads:search-meta:"
    LRU_KEY = META_PREFIX + "lru"
    LEAD_INDEX_PREFIX = META_PREFIX + "lead:"
    HEALTH_CHECK_KEY = META_PREFIX + "health_check"
    # Outside META_PREFIX so a flush never resets it
    GENERATION_KEY = "leads:search-generation"

    @classmethod
    def get_key_prefix(cls, key_type: str) -> str:
        """Get key prefix based on type"""
        prefix_map = {
            "search": cls.SEARCH_PREFIX,
            "meta": cls.META_PREFIX,
            "lead_index": cls.LEAD_INDEX_PREFIX,
        }
        return prefix_map.get(key_type, "")
