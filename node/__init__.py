"""
Node collaborators launched by the start command: container runtime check,
network proxy and workload agent.
"""
