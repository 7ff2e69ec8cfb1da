"""
Master API listener app.

Serves the platform API (``/osapi``) and, when the workload-orchestration
master is embedded, its API (``/api``) from the same listener. Resources are
read from and written to the backing store under ``/registry``.
"""

import logging
import re
import uuid
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from store.client import StoreClient, StoreError, is_not_found

logger = logging.getLogger(__name__)

API_VERSION = "v1beta1"
REGISTRY_PREFIX = "registry"


class VersionInfo(BaseModel):
    """Server version"""
    major: str = "0"
    minor: str = "3"
    gitVersion: str = "v0.3"


class APIVersions(BaseModel):
    versions: List[str]


class ResourceList(BaseModel):
    """Items stored under one registry key"""
    kind: str
    items: List[Dict]


class EventRequest(BaseModel):
    reason: str
    message: str
    source: Dict = {}
    involvedObject: Dict = {}
    timestamp: Optional[str] = None


def cors_origin_regex(allowed_origins: List[str]) -> Optional[str]:
    """
    Combine allowed origins (plain hosts or regular expressions) into one
    pattern matched against the full ``Origin`` header.
    """
    patterns = [o for o in allowed_origins if o]
    if not patterns:
        return None
    for pattern in patterns:
        re.compile(pattern)
    return r"^https?://(?:" + "|".join(f"(?:{p})" for p in patterns) + r")(?::\d+)?$"


def list_registry(store: StoreClient, resource: str) -> List[Dict]:
    try:
        payload = store.get(f"/{REGISTRY_PREFIX}/{resource}", recursive=True)
    except StoreError as e:
        if is_not_found(e):
            return []
        raise HTTPException(status_code=503, detail=f"store unavailable: {e}")
    nodes = (payload.get("node") or {}).get("nodes") or []
    return [{"key": n.get("key"), "value": n.get("value")} for n in nodes if not n.get("dir")]


def create_api_app(
    store: StoreClient,
    cors_allowed_origins: List[str],
    require_authentication: bool = False,
    node_hosts: Optional[List[str]] = None,
    embed_kube: bool = False,
) -> FastAPI:
    app = FastAPI(title="Cluster Master API")

    regex = cors_origin_regex(cors_allowed_origins)
    if regex:
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=regex,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def authenticate(request: Request):
        if require_authentication and not request.headers.get("authorization"):
            raise HTTPException(status_code=401, detail="authentication required")

    @app.get("/healthz")
    def healthz():
        return "ok"

    @app.get("/version", response_model=VersionInfo)
    def version():
        return VersionInfo()

    osapi = APIRouter(prefix="/osapi", dependencies=[Depends(authenticate)])

    @osapi.get("", response_model=APIVersions)
    def osapi_versions():
        return APIVersions(versions=[API_VERSION])

    @osapi.get(f"/{API_VERSION}/{{resource}}", response_model=ResourceList)
    def osapi_list(resource: str):
        return ResourceList(kind=f"{resource}List", items=list_registry(store, resource))

    app.include_router(osapi)

    if embed_kube:
        api = APIRouter(prefix="/api", dependencies=[Depends(authenticate)])

        @api.get("", response_model=APIVersions)
        def api_versions():
            return APIVersions(versions=[API_VERSION])

        @api.get(f"/{API_VERSION}/minions", response_model=ResourceList)
        def list_minions():
            return ResourceList(kind="MinionList", items=[{"id": host} for host in (node_hosts or [])])

        @api.post(f"/{API_VERSION}/events", status_code=201)
        def create_event(event: EventRequest):
            name = f"{event.involvedObject.get('name', 'event')}.{uuid.uuid4().hex[:12]}"
            try:
                store.set(f"/{REGISTRY_PREFIX}/events/{name}", event.model_dump_json(), ttl=2 * 24 * 3600)
            except StoreError as e:
                raise HTTPException(status_code=503, detail=f"store unavailable: {e}")
            return {"name": name}

        @api.get(f"/{API_VERSION}/{{resource}}", response_model=ResourceList)
        def api_list(resource: str):
            return ResourceList(kind=f"{resource}List", items=list_registry(store, resource))

        app.include_router(api)

    return app
