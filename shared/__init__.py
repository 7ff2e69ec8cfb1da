"""
Shared utilities for cluster start components.

This package contains common functionality used by the orchestrator, master and node:
- logging_config: Consistent logging setup
- errors: Fatal bootstrap error taxonomy
- flagtypes: Address/CIDR/list flag values with provided-vs-default tracking
- netutil: Local IPv4 discovery and hostname lookup
- clientconfig: API client address and identity
"""
