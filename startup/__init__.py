"""
Start command: the bootstrap orchestrator for a cluster node.

Decides which of the store, master and node run in this process, resolves
the addresses they use, waits for the backing store, establishes the root
of trust and launches every collaborator in dependency order.

Stages (strictly downstream):
- roles: role resolution from the positional argument
- addresses: address/scheme/port defaulting
- store_gate: bounded store readiness poll
- trust: certificate authority and internal identities
- sequencer: startup plan and ordered launch
"""
