"""Report ledger — the record of community reports filed against forum content.

The ledger provides:
- Filing: one report per reporter per content item, for all time
- Queries: per-content history, the unresolved queue, statistics
- Resolution: bulk resolution by content, manual resolution by moderators
"""
