"""Command line interface for gh-issue-dependency."""
