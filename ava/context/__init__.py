from ava.context.resolvers import RESOLVERS, ResolverInput, resolve
from ava.context.search_intent import analyze_search_intent

__all__ = ["RESOLVERS", "ResolverInput", "analyze_search_intent", "resolve"]
