"""Backlink Opportunity & Monitoring Engine.

Discovers achievable link sources for a website, tracks them through an
outreach lifecycle, and reconciles periodic backlink snapshots into a
history of gained and lost links.
"""

__version__ = "0.1.0"
