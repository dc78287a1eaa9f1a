"""
Dispatcher - Task routing and execution tracking for coding tools.

This package analyzes free-form coding requests, routes them to the best
available backend tool (local CLI or remote HTTP service), and tracks each
invocation as a session with message history and terminal status.
"""

__version__ = "0.1.0"
