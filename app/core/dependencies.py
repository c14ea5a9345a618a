from functools import lru_cache

from app.ai.manager import AIManager


@lru_cache
def get_ai_manager() -> AIManager:
    """Process-wide AI manager (registry counters live as long as it does).

    Tests swap it through ``app.dependency_overrides[get_ai_manager]``.
    """
    return AIManager()
