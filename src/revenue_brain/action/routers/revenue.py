"""Revenue analysis routes — JSON rows or an uploaded spreadsheet in, report out."""

import gzip
import logging
import zlib
from io import BytesIO
from typing import Any, Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from pydantic import BaseModel, Field

from config.settings import settings
from revenue_brain.ingestion.matrix_loader import matrix_from_dataframe, matrix_from_rows, read_table
from revenue_brain.metrics.cohort_analysis import COHORT_POLICIES
from revenue_brain.metrics.engine import analyze_revenue
from revenue_brain.metrics.matrix import MatrixValidationError, RevenueMatrix

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/revenue", tags=["revenue"])

_GUNZIP_CHUNK = 64 * 1024


class AnalyzeRequest(BaseModel):
    rows: list[dict[str, Any]] = Field(default_factory=list)
    cohort_policy: Optional[str] = None


def _resolve_policy(policy: Optional[str]) -> str:
    policy = policy or settings.default_cohort_policy
    if policy not in COHORT_POLICIES:
        raise HTTPException(
            status_code=422,
            detail=f"Unknown cohort_policy {policy!r}; expected one of {list(COHORT_POLICIES)}",
        )
    return policy


def _report(matrix: RevenueMatrix, policy: str) -> dict:
    return analyze_revenue(matrix, cohort_policy=policy).to_dict()


def _too_large() -> HTTPException:
    return HTTPException(status_code=413, detail=f"File exceeds {settings.max_upload_mb} MB")


def _gunzip(contents: bytes, limit: int) -> bytes:
    """Inflate gzip *contents* in chunks, giving up with 413 past *limit* bytes."""
    out = bytearray()
    with gzip.GzipFile(fileobj=BytesIO(contents)) as fh:
        while True:
            chunk = fh.read(_GUNZIP_CHUNK)
            if not chunk:
                break
            out += chunk
            if len(out) > limit:
                raise _too_large()
    return bytes(out)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/analyze")
async def analyze_rows(req: AnalyzeRequest) -> dict:
    """Analyze spreadsheet-style rows posted as JSON."""
    policy = _resolve_policy(req.cohort_policy)
    try:
        matrix = matrix_from_rows(req.rows)
    except MatrixValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return _report(matrix, policy)


@router.post("/upload")
async def analyze_upload(
    file: UploadFile = File(...),
    cohort_policy: Optional[str] = Form(None),
) -> dict:
    """Analyze an uploaded CSV or Excel file (optionally gzip-compressed)."""
    policy = _resolve_policy(cohort_policy)

    contents = await file.read()
    file_name = file.filename or "upload.csv"
    limit = settings.max_upload_mb * 1024 * 1024
    if len(contents) > limit:
        raise _too_large()

    if file_name.endswith(".gz"):
        try:
            contents = _gunzip(contents, limit)
        except (OSError, EOFError, zlib.error) as exc:
            logger.exception("Could not decompress upload %s", file_name)
            raise HTTPException(status_code=400, detail=f"Could not decompress {file_name}: {exc}")
        file_name = file_name[:-3]

    try:
        df = read_table(contents, file_name)
    except Exception as exc:
        logger.exception("Could not parse upload %s", file_name)
        raise HTTPException(status_code=400, detail=f"Could not parse {file_name}: {exc}")

    try:
        matrix = matrix_from_dataframe(df)
    except MatrixValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    logger.info("Upload %s: %d customers, %d months", file_name, len(matrix), len(matrix.axis))
    return _report(matrix, policy)
