"""REST API for host statistics, read from the saved host data."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from denyspam import __version__
from denyspam.hosts.models import SORT_KEYS, sort_hosts

router = APIRouter(tags=["hosts"])


@router.get("/status")
def status(request: Request):
    snapshot = request.app.state.store.load()
    return {
        "version": __version__,
        "last_offset": snapshot.last_offset,
        "hosts": len(snapshot.hosts),
        "blocked": sum(1 for h in snapshot.hosts if h.blocked),
    }


@router.get("/hosts")
def list_hosts(
    request: Request,
    sort: str = "address",
    desc: bool = False,
    address: str | None = None,
):
    if sort not in SORT_KEYS:
        return JSONResponse(
            status_code=400,
            content={"detail": f"sort must be one of {', '.join(SORT_KEYS)}"},
        )
    hosts = request.app.state.store.read_hosts()
    if address is not None:
        hosts = [h for h in hosts if h.address == address]
    return [h.to_dict() for h in sort_hosts(hosts, sort_by=sort, descending=desc)]


@router.get("/hosts/{address}")
def get_host(address: str, request: Request):
    for host in request.app.state.store.read_hosts():
        if host.address == address:
            return host.to_dict()
    return JSONResponse(
        status_code=404,
        content={"detail": "Host not found"},
    )
