"""
Farsi Hub - Autonomous Content Generator

Periodically discovers trending topics, drafts magazine-style Persian articles
and cover images through Google Gemini, and keeps them in a local article store
for the site to render.
"""

__version__ = "0.1.0"
