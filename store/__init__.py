"""
Backing store access for the start command.

- client: v2 keys HTTP client used by the readiness gate and node components
- embedded: launcher for a store server running alongside the master
"""
