"""
markcat - render a project directory as markdown.

This package walks a directory tree, honors ``.gitignore``-style ignore
files and optional allow/deny lists, and writes every remaining file as a
labeled, fenced markdown block, ready to paste into a chat or a review.
"""

__version__ = "0.1.0"
