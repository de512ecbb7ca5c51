"""HTTP API for the store.

Run with: maildisk serve
Or directly: python -m maildisk.web
"""

from urllib.parse import quote, unquote

import uvicorn
import yaml
from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from .config import (
    MASKED_PASSWORD,
    TRANSPORTS,
    AccountConfig,
    ServerConfig,
    get_preset,
    load_config,
    save_config,
)
from .errors import NotConfiguredError, StoreError, UsageError
from .imap import check_imap
from .smtp import check_smtp
from .store import ObjectStore


app = FastAPI(title="maildisk")

STATUS_BY_KIND = {
    "not_configured": 400,
    "usage": 400,
    "not_found": 404,
    "decode": 422,
    "connection": 502,
}


def read_config() -> AccountConfig | None:
    try:
        return load_config()
    except (yaml.YAMLError, ValueError, OSError) as e:
        raise NotConfiguredError(f"Could not read config: {e}") from e


def get_store() -> ObjectStore:
    return ObjectStore(read_config())


def failure(error: StoreError) -> JSONResponse:
    body = {"success": False, "error": error.message, "kind": error.kind}
    return JSONResponse(body, status_code=STATUS_BY_KIND.get(error.kind, 500))


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    return failure(exc)


def parse_id(object_id: str) -> int:
    if object_id.isdecimal() and int(object_id) > 0:
        return int(object_id)
    raise UsageError(f"Invalid id: {object_id}")


def content_disposition(filename: str) -> str:
    """``attachment`` with an ASCII fallback plus the RFC 5987 UTF-8 name."""
    fallback = filename.encode("ascii", "replace").decode().replace('"', "_").replace("?", "_")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


@app.get("/objects")
def api_list(keyword: str | None = None, limit: int | None = None):
    """List stored files, newest first."""
    objects = get_store().list(keyword=keyword or None, limit=limit).unwrap()
    return [o.to_dict() for o in objects]


@app.post("/objects")
async def api_upload(request: Request):
    """Store the raw request body; the file name comes from X-Filename."""
    data = await request.body()
    filename = unquote(request.headers.get("x-filename", ""))
    store = get_store()
    result = await run_in_threadpool(store.upload, data, filename)
    receipt = result.unwrap()
    return receipt.to_dict()


@app.get("/objects/{object_id}")
def api_download(object_id: str):
    obj = get_store().download(parse_id(object_id)).unwrap()
    return Response(
        content=obj.data,
        media_type=obj.media_type,
        headers={"Content-Disposition": content_disposition(obj.filename)},
    )


@app.delete("/objects/{object_id}")
def api_delete(object_id: str):
    uid = get_store().delete(parse_id(object_id)).unwrap()
    return {"success": True, "id": uid}


@app.get("/config")
def api_get_config():
    """Current config with the password masked."""
    config = read_config()
    return {"success": True, "config": config.masked() if config else None}


def _server_from_body(data) -> ServerConfig | None:
    if not isinstance(data, dict) or not data.get("host"):
        return None
    try:
        return ServerConfig(host=str(data["host"]), port=int(data["port"]), ssl=bool(data.get("ssl", True)))
    except (KeyError, TypeError, ValueError) as e:
        raise UsageError(f"Invalid server settings: {data}") from e


@app.post("/config")
def api_save_config(body: dict = Body(...)):
    """Save account settings from a preset name or explicit servers.

    A password of ``********`` (as returned by GET /config) keeps the stored one.
    """
    existing = read_config()
    user = body.get("user")
    if not user:
        raise UsageError("user is required")

    password = body.get("password")
    if password == MASKED_PASSWORD or not password:
        password = existing.password if existing else ""
    if not password:
        raise UsageError("password is required")

    preset_name = body.get("preset")
    if preset_name:
        preset = get_preset(preset_name)
        if not preset:
            raise UsageError(f"Unknown preset: {preset_name}")
        imap, smtp = preset["imap"], preset["smtp"]
    else:
        imap, smtp = _server_from_body(body.get("imap")), _server_from_body(body.get("smtp"))
        if not imap or not smtp:
            raise UsageError("Specify a preset, or both imap and smtp servers")

    transport = body.get("transport") or (existing.transport if existing else "smtp")
    if transport not in TRANSPORTS:
        raise UsageError(f"Unknown transport: {transport}")

    config = AccountConfig(user=user, password=password, imap=imap, smtp=smtp, transport=transport)
    if existing:
        config.mailbox = existing.mailbox
        config.tag = existing.tag
        config.connect_timeout = existing.connect_timeout
        config.auth_timeout = existing.auth_timeout
    if body.get("mailbox"):
        config.mailbox = body["mailbox"]
    if body.get("tag"):
        config.tag = body["tag"]

    save_config(config)
    return {"success": True, "config": config.masked()}


@app.post("/test/imap")
def api_test_imap():
    check_imap(read_config())
    return {"success": True}


@app.post("/test/smtp")
def api_test_smtp():
    check_smtp(read_config())
    return {"success": True}


def main(host: str = "127.0.0.1", port: int = 5174):
    """Run the web server."""
    print(f"Starting maildisk at http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="warning")


if __name__ == "__main__":
    main()
