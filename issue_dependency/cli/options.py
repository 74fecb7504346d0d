"""Standardized CLI option definitions shared by the dependency commands.

Keeping them in one place gives every command the same shorthand flags.
"""

import typer

# Repository context
REPO_OPTION = typer.Option(
    None,
    "--repo",
    "-R",
    help="Select another repository using the [HOST/]OWNER/REPO format",
)

# Relationship options - comma-separated issue references
BLOCKED_BY_OPTION = typer.Option(
    None,
    "--blocked-by",
    "-b",
    help="Issue reference(s) that block this issue (comma-separated)",
)

BLOCKS_OPTION = typer.Option(
    None,
    "--blocks",
    "-B",
    help="Issue reference(s) that this issue blocks (comma-separated)",
)

# Behavior options - control command behavior
DRY_RUN_OPTION = typer.Option(
    False, "--dry-run", "-d", help="Preview changes without applying them"
)

FORCE_OPTION = typer.Option(
    False, "--force", "-f", help="Apply changes without confirmation"
)

ALL_OPTION = typer.Option(
    False, "--all", "-a", help="Remove every dependency relationship of the issue"
)

# Output options
FORMAT_OPTION = typer.Option(
    "table", "--format", help="Output format: table (default), json, csv"
)

STATE_OPTION = typer.Option(
    "all",
    "--state",
    "-s",
    help="Filter dependencies by issue state: all (default), open, closed",
)

DETAILED_OPTION = typer.Option(
    False,
    "--detailed",
    help="Show assignees, labels and URLs of related issues",
)

VERBOSE_OPTION = typer.Option(
    False, "--verbose", "-v", help="Show debug logging"
)
