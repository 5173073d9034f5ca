from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from typing import Any, Optional
from carbon_credit.config.settings import Settings
from carbon_credit.errors import (
    CarbonCreditError,
    InsufficientBalance,
    IntegrationFault,
    InvalidStateTransition,
    LedgerTransactionError,
    NotAuthorized,
    OracleUnavailable,
    UploadError,
    ValidationError,
)
from carbon_credit.models import ClaimState, MediaFile
from carbon_credit.platform import CarbonCreditPlatform
import uvicorn
import os
import sys
from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler
import logging

app = FastAPI()
settings = Settings()
platform = CarbonCreditPlatform(settings)

# Set up logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Most specific first: InsufficientBalance is a LedgerTransactionError
STATUS_CODES = [
    (ValidationError, 422),
    (NotAuthorized, 403),
    (InvalidStateTransition, 409),
    (InsufficientBalance, 409),
    (UploadError, 502),
    (OracleUnavailable, 503),
    (LedgerTransactionError, 502),
    (IntegrationFault, 500),
]


class BorrowRequestBody(BaseModel):
    seller: str
    amount: Any


class CodeChangeHandler(FileSystemEventHandler):
    def on_modified(self, event):
        if event.src_path.endswith('.py'):
            print("\nCode change detected. Restarting...")
            os.execv(sys.executable, [sys.executable] + sys.argv)


async def get_platform() -> CarbonCreditPlatform:
    # Initialize on first use
    if not platform.initialized:
        await platform.initialize()
    return platform


@app.exception_handler(CarbonCreditError)
async def carbon_credit_error_handler(request: Request, exc: CarbonCreditError):
    status_code = next(
        (code for error_type, code in STATUS_CODES if isinstance(exc, error_type)),
        500
    )
    logger.info(f"{request.method} {request.url.path} failed with {exc.kind}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.kind, "message": str(exc)}
    )


@app.get("/")
async def root():
    """Health check endpoint"""
    return {"status": "Carbon credit coordinator is running"}


@app.get("/api/organizations")
async def list_organizations(platform: CarbonCreditPlatform = Depends(get_platform)):
    organizations = await platform.directory.list_organizations()
    return [
        {**org.model_dump(mode="json"), "has_photo": org.photo is not None}
        for org in organizations
    ]


@app.get("/api/media/{content_hash}")
async def get_media(content_hash: str, platform: CarbonCreditPlatform = Depends(get_platform)):
    data = await platform.media.get(content_hash)
    if data is None:
        return JSONResponse(status_code=404, content={"error": "not_found", "message": "No image"})
    return Response(content=data, media_type="application/octet-stream")


@app.post("/api/claims")
async def submit_claim(
    coordinates_x: str = Form(...),
    coordinates_y: str = Form(...),
    acres: str = Form(...),
    demanded_tokens: str = Form(...),
    project_name: str = Form(...),
    project_details: str = Form(""),
    photo: Optional[UploadFile] = File(None),
    platform: CarbonCreditPlatform = Depends(get_platform)
):
    """Submit a claim and run it through estimation and approval"""
    evidence = None
    if photo is not None and photo.filename:
        evidence = MediaFile(
            filename=photo.filename,
            content_type=photo.content_type or "application/octet-stream",
            data=await photo.read()
        )

    result = await platform.claims.submit({
        "coordinates_x": coordinates_x,
        "coordinates_y": coordinates_y,
        "acres": acres,
        "demanded_tokens": demanded_tokens,
        "project_name": project_name,
        "project_details": project_details
    }, evidence)

    # 202: recorded on the ledger but still waiting for approval
    status_code = 201 if result.state == ClaimState.APPROVED else 202
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


@app.get("/api/requests")
async def list_requests(address: Optional[str] = None,
                        platform: CarbonCreditPlatform = Depends(get_platform)):
    requests = await platform.requests.list_requests(address)
    return [
        {
            "id": req.id,
            "buyer": req.buyer,
            "seller": req.potential_seller,
            "amount": str(req.amount),
            "price": str(platform.requests.quote(req)),
            "status": req.status.label
        }
        for req in requests
    ]


@app.post("/api/requests", status_code=201)
async def create_request(body: BorrowRequestBody,
                         platform: CarbonCreditPlatform = Depends(get_platform)):
    request_id = await platform.requests.create_request(body.seller, body.amount)
    return {"id": request_id, "status": "Pending"}


@app.post("/api/requests/{request_id}/approve")
async def approve_request(request_id: int, platform: CarbonCreditPlatform = Depends(get_platform)):
    status = await platform.requests.handle_request(request_id, True)
    return {"id": request_id, "status": status.label}


@app.post("/api/requests/{request_id}/decline")
async def decline_request(request_id: int, platform: CarbonCreditPlatform = Depends(get_platform)):
    status = await platform.requests.handle_request(request_id, False)
    return {"id": request_id, "status": status.label}


if __name__ == "__main__":
    port = int(os.getenv("PORT", 8000))
    if "--dev" in sys.argv:
        # Restart on code changes
        observer = Observer()
        observer.schedule(CodeChangeHandler(), path='carbon_credit', recursive=True)
        observer.start()
        print("Development mode: watching for code changes...")
        try:
            uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
        finally:
            observer.stop()
            observer.join()
    else:
        uvicorn.run(app, host="0.0.0.0", port=port)
