"""
MCP Server Instructions - usage guide for AI agents.

Kept apart from server.py so the text can be edited without touching wiring.
"""

from __future__ import annotations

SERVER_INSTRUCTIONS = """
Web Intelligence MCP Server - multi-provider web search for AI agents

═══════════════════════════════════════════════════════════════════════════════
🎯 CHOOSING A TOOL
═══════════════════════════════════════════════════════════════════════════════

web_search               Default entry point. Routes the query to one or more
                         search providers (Serper, Linkup, Tavily), merges and
                         deduplicates the results, and returns a synthesized
                         answer when one is available.
analyze_search_strategy  Preview how a conversational query would be routed
                         (vector / graph / hybrid) without calling any provider.
provider_search          Query exactly one provider (debugging).
web_intelligence_health  Probe every configured provider.

═══════════════════════════════════════════════════════════════════════════════
⚡ URGENCY
═══════════════════════════════════════════════════════════════════════════════

fast           one provider, lowest latency (~3s budget)
balanced       link-ranked + answer-synthesizing provider in parallel (default)
comprehensive  every compatible provider in parallel (~12s budget)

═══════════════════════════════════════════════════════════════════════════════
🧭 INTENT
═══════════════════════════════════════════════════════════════════════════════

general | job | company | person | news
Pass `location` with job searches and `company` with company/person searches.

Example:
    web_search(query="OpenAI latest funding", intent="news", urgency="balanced")

Partial provider failures are reported under "Provider errors"; the remaining
results are still valid.
"""
