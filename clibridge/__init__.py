"""clibridge - managed subprocess bridge for AI CLIs.

Runs an external AI CLI (Claude Code by default) as a supervised child
process, resolves its authentication state, and streams classified output
to UI sinks.
"""

__version__ = "0.1.0"
