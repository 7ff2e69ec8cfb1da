"""
Master collaborators launched by the start command.

- config: MasterConfig with run_* launch hooks
- api / assets: FastAPI apps for the API and console listeners
- controllers: polling controller loops
- events: background event recorder
- kube: embedded workload-orchestration master
"""
