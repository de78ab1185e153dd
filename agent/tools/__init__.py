from agent.tools.trending import FALLBACK_TOPICS, TrendingService

__all__ = ["FALLBACK_TOPICS", "TrendingService"]
