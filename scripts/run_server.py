"""
Cluster Server Launcher

Starts an all-in-one server, or a master or node when given that role.

This launcher provides:
- Embedded store, master API, console assets and controllers (all-in-one, master)
- Network proxy and workload agent (all-in-one, node)
- Certificate authority bootstrap for TLS masters

Usage:
    python scripts/run_server.py
    python scripts/run_server.py master --nodes host1,host2
    python scripts/run_server.py node --master 10.0.0.5

Environment Variables:
    CLUSTER_MASTER_PORT: Default master port (default: 8443)
    CLUSTER_STORE_PORT: Default store port (default: 4001)
    KUBERNETES_NETWORK_CONTAINER_IMAGE: Per-workload network container image
"""
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from startup.cli import main


if __name__ == "__main__":
    sys.exit(main())
