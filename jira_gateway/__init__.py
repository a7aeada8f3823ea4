"""
Jira Gateway - a rate-limited, sanitizing MCP gateway to Jira Cloud.
"""

__version__ = "0.1.0"
