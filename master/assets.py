"""
Asset listener app.

Serves the web console's bootstrap configuration so the console knows where
the master and workload-orchestration APIs live.
"""

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel


class ConsoleConfig(BaseModel):
    master_url: str
    master_prefix: str = "/osapi"
    kubernetes_url: str
    kubernetes_prefix: str = "/api"


def create_asset_app(master_url: str, kubernetes_url: str) -> FastAPI:
    app = FastAPI(title="Cluster Console Assets")
    console = ConsoleConfig(master_url=master_url, kubernetes_url=kubernetes_url)

    @app.get("/healthz", response_class=PlainTextResponse)
    def healthz():
        return "ok"

    @app.get("/config.json", response_model=ConsoleConfig)
    def config_json():
        return console

    @app.get("/config.js", response_class=PlainTextResponse)
    def config_js():
        return f"window.OPENSHIFT_CONFIG = {console.model_dump_json()};"

    return app
