"""forumguard — heuristic content analysis and community report escalation
for forum posts and topics."""

__version__ = "0.1.0"
