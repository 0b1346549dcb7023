"""Web search tool (simulated results)."""

import json
from typing import Annotated
from urllib.parse import quote

from langchain_core.tools import tool

_RESULT_TEMPLATES = [
    ("{q} - Wikipedia", "https://en.wikipedia.org/wiki/{u}",
     "Comprehensive information about {q}, including history, applications and related concepts."),
    ("Understanding {q} - Expert Guide", "https://example.com/guide/{u}",
     "An in-depth guide to {q} for beginners and experts alike."),
    ("{q} - Latest News and Updates", "https://news.example.com/{u}",
     "The latest news about {q}, with analysis of recent developments."),
    ("How to Use {q} - Tutorial", "https://tutorials.example.com/{u}",
     "Step-by-step tutorial on {q} with practical examples."),
    ("{q} Best Practices", "https://bestpractices.example.com/{u}",
     "Industry best practices for {q} and common pitfalls to avoid."),
]


@tool
def web_search(
    query: Annotated[str, "Search query"],
    num_results: Annotated[int, "Number of results to return (default 3, max 5)"] = 3,
) -> str:
    """Search the web for information (simulated results for demonstration).

    NOTE: Results are generated locally; integrate a search API for real data.
    """
    count = max(1, min(num_results, len(_RESULT_TEMPLATES)))
    encoded = quote(query)
    results = [
        {
            "title": title.format(q=query),
            "url": url.format(u=encoded),
            "snippet": snippet.format(q=query),
        }
        for title, url, snippet in _RESULT_TEMPLATES[:count]
    ]
    return json.dumps({"query": query, "results": results, "simulated": True}, ensure_ascii=False)


__all__ = ["web_search"]
