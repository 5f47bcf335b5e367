from fastapi import FastAPI, UploadFile, File, HTTPException, Query
from fastapi.responses import Response
from fastapi.middleware.cors import CORSMiddleware
from .config import load_settings
from .errors import GFSBoxError
from .exporters import (
    export_excel,
    format_deviations_text,
    format_greymap,
    format_sbox,
    parse_sbox,
    render_greymap_png,
)
from .linear_analysis import analyze, validate_sbox
from .sbox_math import sbox_math
from .schemas import (
    ExcelExportRequest,
    IrreducibleListResponse,
    LinearAnalysisResponse,
    SBoxPayload,
    SBoxRequest,
    SBoxResponse,
)
from functools import lru_cache
from typing import Optional, Tuple
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor

# Configure logging
logger = logging.getLogger("uvicorn")

settings = load_settings()

app = FastAPI(title="gfsbox")

# Global resources for heavy analysis operations
analysis_semaphore = asyncio.Semaphore(settings.max_concurrent_jobs)
thread_pool = ThreadPoolExecutor(max_workers=settings.worker_threads)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Max-Deviation"]
)

# --- Helpers ---

async def _run_heavy(func, *args):
    async with analysis_semaphore:
        return await asyncio.get_running_loop().run_in_executor(thread_pool, func, *args)

async def _read_upload_file_limited(file: UploadFile, limit_kb: int):
    contents = await file.read(limit_kb * 1024 + 1)
    if len(contents) > limit_kb * 1024:
        raise HTTPException(status_code=413, detail=f"File too large. Maximum size is {limit_kb}KB.")
    return contents

def _attachment(filename):
    return {"Content-Disposition": f'attachment; filename="{filename}"'}

def _validated(sbox):
    try:
        validate_sbox(sbox)
    except GFSBoxError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return sbox

@lru_cache(maxsize=1)
def _irreducible_polys() -> Tuple[int, ...]:
    return tuple(sbox_math.list_irreducible_polys())

def _analysis_response(analysis):
    return {
        "max_deviation": analysis.max_deviation,
        "row_maxima": analysis.row_maxima(),
        "elapsed_ms": analysis.elapsed_ms,
    }

# --- Routes ---

@app.get("/")
def read_root():
    return {
        "service": "gfsbox",
        "default_poly": settings.default_poly,
        "routes": ["/sbox", "/irreducible-polys", "/linear-analysis", "/export/sbox", "/export/deviations", "/export-excel", "/random-sbox"],
    }

@app.post("/sbox", response_model=SBoxResponse)
def derive_sbox(req: SBoxRequest):
    poly = settings.default_poly if req.poly is None else req.poly
    result = sbox_math.generate_sbox(poly, raw_inverse=req.raw_inverse)
    if not result.inverses.is_complete:
        logger.warning(f"⚠️ 0x{poly:x} is reducible, {len(result.inverses.unresolved)} bytes unresolved")
    return {
        "poly": result.poly,
        "sbox": result.values,
        "raw_inverse": result.raw_inverse,
        "is_bijective": sbox_math.check_bijective(result.values),
        "unresolved": result.inverses.unresolved,
    }

@app.get("/irreducible-polys", response_model=IrreducibleListResponse)
async def irreducible_polys():
    polys = list(await _run_heavy(_irreducible_polys))
    return {"count": len(polys), "polys": polys, "hex": [f"0x{p:x}" for p in polys]}

@app.post("/linear-analysis", response_model=LinearAnalysisResponse)
async def linear_analysis(payload: SBoxPayload):
    sbox = _validated(payload.sbox)
    logger.info("📊 Running linear analysis...")
    analysis = await _run_heavy(analyze, sbox)
    return _analysis_response(analysis)

@app.post("/linear-analysis/upload", response_model=LinearAnalysisResponse)
async def linear_analysis_upload(file: UploadFile = File(...)):
    contents = await _read_upload_file_limited(file, settings.max_upload_kb)
    try:
        sbox = parse_sbox(contents.decode("utf-8", errors="replace"))
    except GFSBoxError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info(f"📥 Analysing uploaded S-box: {file.filename}")
    analysis = await _run_heavy(analyze, sbox)
    return _analysis_response(analysis)

@app.post("/export/sbox")
def export_sbox(payload: SBoxPayload):
    sbox = _validated(payload.sbox)
    return Response(content=format_sbox(sbox), media_type="text/plain", headers=_attachment("sbox.txt"))

@app.post("/export/deviations")
async def export_deviations(
    payload: SBoxPayload,
    fmt: str = Query("txt", alias="format", pattern="^(txt|pgm|png)$"),
    name: str = Query("deviations", pattern=r"^[\w.-]+$"),
):
    sbox = _validated(payload.sbox)
    try:
        analysis = await _run_heavy(analyze, sbox)
        headers = {"X-Max-Deviation": f"{analysis.max_deviation:g}"}
        if fmt == "txt":
            content, media_type = format_deviations_text(analysis.sorted_deviations), "text/plain"
        elif fmt == "pgm":
            content, media_type = format_greymap(analysis.sorted_deviations), "image/x-portable-graymap"
        else:
            content, media_type = render_greymap_png(analysis.sorted_deviations), "image/png"
        headers.update(_attachment(f"{name}.{fmt}"))
        return Response(content=content, media_type=media_type, headers=headers)
    except Exception as e:
        import traceback
        error_detail = f"{str(e)}\n{traceback.format_exc()}"
        logger.error(f"❌ FATAL ERROR in export_deviations: {error_detail}")
        raise HTTPException(status_code=500, detail=error_detail)

@app.get("/random-sbox", response_model=SBoxPayload)
def random_sbox(seed: Optional[int] = None):
    return {"sbox": sbox_math.random_sbox(seed)}

@app.post("/export-excel")
def export_excel_route(req: ExcelExportRequest):
    sbox = _validated(req.sbox)
    content = export_excel(sbox, req.summary)
    return Response(
        content=content,
        headers=_attachment("sbox_analysis.xlsx"),
        media_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    )
