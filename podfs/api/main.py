import io
import logging
import threading
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from podfs.config import load_settings
from podfs.errors import RemoteError, RemoteErrorType
from podfs.fs.multipod import MultiPodFs
from podfs.logging_config import configure_logging, get_logging_config
from podfs.models.files import FileEntry
from podfs.providers.exec.kubectl import KubectlProvider

logger = logging.getLogger(__name__)

app = FastAPI(title="podfs")

# MultiPodFs keeps a single working directory; requests take turns.
FS_LOCK = threading.Lock()
_fs: Optional[MultiPodFs] = None

STATUS_BY_KIND = {
    RemoteErrorType.NOT_CONNECTED: 503,
    RemoteErrorType.CONNECTION_ERROR: 502,
    RemoteErrorType.PROTOCOL_ERROR: 502,
    RemoteErrorType.NO_SUCH_FILE_OR_DIRECTORY: 404,
    RemoteErrorType.DIRECTORY_ALREADY_EXISTS: 409,
    RemoteErrorType.DIRECTORY_NOT_EMPTY: 409,
    RemoteErrorType.COULD_NOT_REMOVE_FILE: 409,
    RemoteErrorType.FILE_CREATE_DENIED: 409,
    RemoteErrorType.COULD_NOT_OPEN_FILE: 400,
    RemoteErrorType.STAT_FAILED: 400,
    RemoteErrorType.UNSUPPORTED_FEATURE: 501,
    RemoteErrorType.IO_ERROR: 500,
}


class MkdirRequest(BaseModel):
    path: str
    mode: str = "755"


class TransferRequest(BaseModel):
    src: str
    dest: str


class SymlinkRequest(BaseModel):
    path: str
    target: str


class ExecRequest(BaseModel):
    command: str


def get_fs() -> MultiPodFs:
    """Build the process-wide filesystem from settings on first use."""
    global _fs
    with FS_LOCK:
        if _fs is None:
            settings = load_settings()
            configure_logging(settings.log_level)
            fs = MultiPodFs(
                KubectlProvider(
                    kubectl=settings.kubectl,
                    namespace=settings.namespace,
                    context=settings.context,
                    kubeconfig=settings.kubeconfig,
                )
            )
            fs.connect()
            _fs = fs
        return _fs


def entry_payload(entry: FileEntry) -> dict:
    return {
        "path": entry.path,
        "name": entry.name,
        "kind": entry.kind.value,
        "mode": str(entry.mode) if entry.mode is not None else None,
        "uid": entry.uid,
        "gid": entry.gid,
        "size": entry.size,
        "modified": entry.modified.isoformat() if entry.modified else None,
        "symlink": entry.symlink,
    }


@app.exception_handler(RemoteError)
async def remote_error_handler(request: Request, exc: RemoteError):
    logger.error(f"Remote filesystem error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=STATUS_BY_KIND.get(exc.kind, 500),
        content={"error": exc.kind.value, "detail": exc.detail},
    )


@app.exception_handler(ValueError)
async def validation_error_handler(request: Request, exc: ValueError):
    logger.error(f"Validation error: {exc}")
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.get("/health")
def health_check() -> dict:
    return {"status": "ok"}


@app.get("/fs/pwd")
def pwd(fs: MultiPodFs = Depends(get_fs)) -> dict:
    with FS_LOCK:
        return {"path": fs.pwd()}


@app.post("/fs/cd")
def change_dir(path: str = Query(...), fs: MultiPodFs = Depends(get_fs)) -> dict:
    with FS_LOCK:
        return {"path": fs.change_dir(path)}


@app.get("/fs/list")
def list_dir(path: str = Query("."), fs: MultiPodFs = Depends(get_fs)) -> dict:
    with FS_LOCK:
        entries = fs.list_dir(path)
    return {"entries": [entry_payload(entry) for entry in entries]}


@app.get("/fs/stat")
def stat(path: str = Query(...), fs: MultiPodFs = Depends(get_fs)) -> dict:
    with FS_LOCK:
        return entry_payload(fs.stat(path))


@app.get("/fs/exists")
def exists(path: str = Query(...), fs: MultiPodFs = Depends(get_fs)) -> dict:
    with FS_LOCK:
        return {"exists": fs.exists(path)}


@app.post("/fs/mkdir", status_code=201)
def create_dir(payload: MkdirRequest, fs: MultiPodFs = Depends(get_fs)) -> dict:
    mode = int(payload.mode, 8)
    with FS_LOCK:
        fs.create_dir(payload.path, mode)
    return {"path": payload.path}


@app.delete("/fs/entry")
def remove(
    path: str = Query(...),
    recursive: bool = Query(False),
    fs: MultiPodFs = Depends(get_fs),
) -> dict:
    with FS_LOCK:
        entry = fs.stat(path)
        if not entry.is_dir:
            fs.remove_file(path)
        elif recursive:
            fs.remove_dir_all(path)
        else:
            fs.remove_dir(path)
    return {"removed": path}


@app.post("/fs/copy")
def copy(payload: TransferRequest, fs: MultiPodFs = Depends(get_fs)) -> dict:
    with FS_LOCK:
        fs.copy(payload.src, payload.dest)
    return {"path": payload.dest}


@app.post("/fs/move")
def move(payload: TransferRequest, fs: MultiPodFs = Depends(get_fs)) -> dict:
    with FS_LOCK:
        fs.move(payload.src, payload.dest)
    return {"path": payload.dest}


@app.post("/fs/symlink", status_code=201)
def symlink(payload: SymlinkRequest, fs: MultiPodFs = Depends(get_fs)) -> dict:
    with FS_LOCK:
        fs.symlink(payload.path, payload.target)
    return {"path": payload.path, "target": payload.target}


@app.post("/fs/exec")
def exec_command(payload: ExecRequest, fs: MultiPodFs = Depends(get_fs)) -> dict:
    with FS_LOCK:
        result = fs.exec(payload.command)
    return {"exit_code": result.exit_code, "stdout": result.stdout}


@app.get("/fs/file")
def download(path: str = Query(...), fs: MultiPodFs = Depends(get_fs)) -> Response:
    buffer = io.BytesIO()
    with FS_LOCK:
        fs.open_file(path, buffer)
    return Response(content=buffer.getvalue(), media_type="application/octet-stream")


@app.put("/fs/file", status_code=201)
async def upload(
    request: Request, path: str = Query(...), fs: MultiPodFs = Depends(get_fs)
) -> dict:
    data = await request.body()

    def write() -> int:
        with FS_LOCK:
            return fs.create_file(path, data)

    size = await run_in_threadpool(write)
    return {"path": path, "size": size}


if __name__ == "__main__":
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "podfs.api.main:app",
        log_level=settings.log_level.lower(),
        log_config=get_logging_config(settings.log_level),
    )
