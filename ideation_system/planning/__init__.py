from .planner import ResearchPlanner, ResearchRequest, build_query

__all__ = ["ResearchPlanner", "ResearchRequest", "build_query"]
