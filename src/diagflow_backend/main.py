from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from .configuration import describe_config, make_runtime_config
from .errors import DeliveryError, DiagFlowError
from .file_store import FileStore
from .job_store import JobStore
from .models import ImageUploaded, JobCreated, JobRecord, SubmitReportRequest
from .reporting import ReportService

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    logging.getLogger("diagflow_backend").setLevel(getattr(logging, str(level).upper(), logging.INFO))


settings = make_runtime_config()
configure_logging(settings.logging.level)

file_store = FileStore(
    root=Path(settings.storage.upload_dir),
    url_prefix=settings.storage.url_prefix,
    max_upload_mb=float(settings.storage.max_upload_mb),
    allowed_extensions=list(settings.storage.allowed_extensions),
    allow_webp=bool(settings.storage.allow_webp),
)
job_store = JobStore()
report_service = ReportService.from_config(settings, file_store)


@asynccontextmanager
async def lifespan(_: FastAPI):
    logger.info(
        f"DiagFlow API serving {file_store.root.resolve()} "
        f"(email {'enabled' if report_service.gateway.configured else 'not configured'})"
    )
    logger.debug(f"Effective configuration: {describe_config(settings)}")
    yield
    report_service.close()


app = FastAPI(title="DiagFlow API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.server.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount(file_store.url_prefix, StaticFiles(directory=file_store.root), name="uploads")


def get_file_store() -> FileStore:
    return file_store


def get_job_store() -> JobStore:
    return job_store


def get_report_service() -> ReportService:
    return report_service


def _failure(status_code: int, error: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error, **extra})


@app.exception_handler(DiagFlowError)
async def diagflow_error_handler(_: Request, exc: DiagFlowError) -> JSONResponse:
    extra: Dict[str, Any] = {}
    if isinstance(exc, DeliveryError) and exc.artifact is not None:
        extra["pdfPath"] = file_store.url_for(exc.artifact)
    return _failure(exc.status_code, exc.message, **extra)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _failure(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    detail = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return _failure(400, f"Invalid request: {detail}")


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _failure(500, "Internal server error")


@app.get("/")
def root() -> Dict[str, Any]:
    return {
        "message": "DiagFlow API is running",
        "version": app.version,
        "endpoints": [
            "POST /api/jobs - Save diagnostic job",
            "GET /api/jobs - List saved jobs",
            "POST /api/images/upload - Upload diagnostic images",
            "POST /api/submit-report - Generate PDF and email report",
        ],
    }


@app.get("/health")
def healthcheck() -> Dict[str, str]:
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.post("/api/jobs", response_model=JobCreated)
def create_job(payload: Dict[str, Any] = Body(...), store: JobStore = Depends(get_job_store)) -> JobCreated:
    record = store.create(payload)
    return JobCreated(job_id=record.id)


@app.get("/api/jobs", response_model=List[JobRecord])
def list_jobs(
    roNumber: Optional[str] = None,
    vin: Optional[str] = None,
    store: JobStore = Depends(get_job_store),
) -> List[JobRecord]:
    return store.list(ro_number=roNumber, vin=vin)


@app.get("/api/jobs/{job_id}", response_model=JobRecord)
def get_job(job_id: str, store: JobStore = Depends(get_job_store)) -> JobRecord:
    record = store.get(job_id)
    if not record:
        raise HTTPException(status_code=404, detail="Job not found")
    return record


@app.put("/api/jobs/{job_id}", response_model=JobRecord)
def update_job(
    job_id: str,
    changes: Dict[str, Any] = Body(...),
    store: JobStore = Depends(get_job_store),
) -> JobRecord:
    record = store.update(job_id, changes)
    if not record:
        raise HTTPException(status_code=404, detail="Job not found")
    return record


@app.delete("/api/jobs/{job_id}")
def delete_job(job_id: str, store: JobStore = Depends(get_job_store)) -> Dict[str, Any]:
    if not store.delete(job_id):
        raise HTTPException(status_code=404, detail="Job not found")
    return {"success": True, "message": "Job deleted"}


@app.post("/api/images/upload", response_model=ImageUploaded, response_model_exclude_none=True)
async def upload_image(
    image: Optional[UploadFile] = File(None),
    stepId: Optional[str] = Form(None),
    store: FileStore = Depends(get_file_store),
) -> ImageUploaded:
    if image is None or not image.filename:
        raise HTTPException(status_code=400, detail="No image file uploaded")

    stored = await store.save_upload(image)
    logger.info(f"Image uploaded for step {stepId}: {stored.name}")
    return ImageUploaded(image_url=store.url_for(stored), filename=stored.name, step_id=stepId)


@app.post("/api/submit-report")
def submit_report(
    request: SubmitReportRequest,
    service: ReportService = Depends(get_report_service),
    store: FileStore = Depends(get_file_store),
) -> Dict[str, Any]:
    result = service.submit(request.email, request.report_data)
    if not result.sent:
        return {"success": True, "message": result.message, "pdfPath": store.url_for(result.artifact)}
    return {"success": True, "message": result.message, "recipient": result.recipient}


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=settings.server.host, port=int(settings.server.port))
