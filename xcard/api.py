"""FastAPI web server for xcard name tag generation."""

import json
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from xcard import __version__
from xcard.config import CardConfig, PageSize
from xcard.core.compositor import compose_single, document_filename
from xcard.core.orchestrator import CardMaker
from xcard.core.renderer import ERROR_CORRECTION_LEVELS
from xcard.core.urls import validate_profile_url
from xcard.exceptions import BatchTooLargeError, ErrorCode, NoValidProfilesError, XcardError
from xcard.logging import configure_logging, get_logger
from xcard.models.layout import DuplexMode, FrameSize, TileConfig

_log = get_logger("api")

ERROR_STATUS = {
    ErrorCode.INVALID_URL: 400,
    ErrorCode.BATCH_TOO_LARGE: 400,
    ErrorCode.INVALID_LAYOUT_CONFIG: 400,
    ErrorCode.MISSING_REQUIRED_FIELD: 422,
    ErrorCode.NO_VALID_PROFILES: 422,
    ErrorCode.FETCH_FAILED: 502,
    ErrorCode.ASSET_FETCH_FAILED: 502,
    ErrorCode.EXTRACTION_TIMEOUT: 504,
    ErrorCode.RENDER_ERROR: 500,
    ErrorCode.CACHE_ERROR: 500,
    ErrorCode.CONFIG_ERROR: 500,
}


# Request/Response models
class ProfileUrlRequest(BaseModel):
    """Request body carrying one profile URL."""

    model_config = ConfigDict(populate_by_name=True)

    profile_url: str = Field(..., alias="profileUrl", description="X profile URL, e.g. https://x.com/username")


class LayoutOptions(BaseModel):
    """Page layout options for multi-card documents.

    Accepts camelCase keys (``pageSize``, ``doubleSided``, ``frontFrameSize``)
    as well as the field names.
    """

    model_config = ConfigDict(populate_by_name=True)

    page_size: PageSize = Field(
        default=PageSize.LETTER, alias="pageSize", description="Paper size: 'A4' or 'Letter'"
    )
    columns: int | None = Field(default=None, ge=1, description="Cards per row; computed if omitted")
    rows: int | None = Field(default=None, ge=1, description="Cards per column; computed if omitted")
    spacing: float = Field(default=10.0, ge=0, description="Gap between cards in points")
    margin: float = Field(default=36.0, ge=0, description="Page margin in points")
    double_sided: bool = Field(default=False, alias="doubleSided", description="Also print QR backs")
    duplex_mode: DuplexMode = Field(
        default=DuplexMode.PAGES,
        alias="duplexMode",
        description="'pages' (mirrored back pages) or 'split' (fronts left, backs right)",
    )
    front_frame_size: FrameSize | None = Field(
        default=None, alias="frontFrameSize", description="Printed front size {w, h} in points"
    )
    back_frame_size: FrameSize | None = Field(
        default=None, alias="backFrameSize", description="Printed back size {w, h}; defaults to the front"
    )

    def to_tile_config(self, config: CardConfig) -> TileConfig:
        return TileConfig(
            page_size=self.page_size,
            margin=self.margin,
            columns=self.columns,
            rows=self.rows,
            spacing=self.spacing,
            double_sided=self.double_sided,
            duplex_mode=self.duplex_mode,
            front_frame_size=self.front_frame_size or FrameSize(w=config.card_width_pt, h=config.card_height_pt),
            back_frame_size=self.back_frame_size,
        )


class MultipleRequest(BaseModel):
    """Request body for a multi-card document."""

    model_config = ConfigDict(populate_by_name=True)

    profile_urls: list[str] = Field(..., alias="profileUrls", min_length=1)
    options: LayoutOptions = Field(default_factory=LayoutOptions)


class ValidateResponse(BaseModel):
    valid: bool
    accessible: bool
    username: str | None = None
    normalized_url: str | None = None
    error: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage the shared CardMaker lifecycle."""
    config = CardConfig()
    configure_logging(config)
    async with CardMaker(config) as maker:
        app.state.maker = maker
        yield


app = FastAPI(
    title="xcard API",
    description="Printable name tags from X profiles",
    version=__version__,
    lifespan=lifespan,
)


def get_maker(request: Request) -> CardMaker:
    return request.app.state.maker


def _pdf_response(pdf: bytes, filename: str, headers: dict | None = None) -> Response:
    all_headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    all_headers.update(headers or {})
    return Response(content=pdf, media_type="application/pdf", headers=all_headers)


def _error_body(error: dict) -> dict:
    return {"error": error, "timestamp": datetime.now().isoformat()}


def _debug_enabled(request: Request) -> bool:
    maker = getattr(request.app.state, "maker", None)
    return maker is not None and maker.config.debug


@app.exception_handler(XcardError)
async def xcard_error_handler(request: Request, exc: XcardError) -> JSONResponse:
    status = ERROR_STATUS.get(exc.code, 500)
    _log.warning(
        "request_failed",
        path=request.url.path,
        code=exc.code.value,
        status=status,
        retryable=exc.retryable,
    )
    body = _error_body(exc.to_dict())
    if isinstance(exc, NoValidProfilesError) and exc.failed:
        body["error"]["skipped"] = [item.to_dict() for item in exc.failed]
    return JSONResponse(status_code=status, content=body)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    _log.error("request_crashed", path=request.url.path, error=str(exc), exc_info=exc)
    message = "An unexpected error occurred; please try again"
    if _debug_enabled(request):
        message = f"{message} ({type(exc).__name__}: {exc})"
    return JSONResponse(
        status_code=500,
        content=_error_body({"code": "INTERNAL_ERROR", "message": message}),
    )


@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    """Check API health status."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now().isoformat(),
    )


@app.post("/api/name-tag/generate", tags=["Name tags"])
async def generate(request: ProfileUrlRequest, maker: CardMaker = Depends(get_maker)):
    """Generate a two-sided name tag PDF (front, then QR back) for one profile."""
    card = await maker.make_card(request.profile_url, include_back=True)
    pdf = compose_single(card, maker.config.page_size, FrameSize(
        w=maker.config.card_width_pt, h=maker.config.card_height_pt,
    ))
    return _pdf_response(pdf, document_filename([card.username]))


@app.post("/api/name-tag/generate-simple", tags=["Name tags"])
async def generate_simple(request: ProfileUrlRequest, maker: CardMaker = Depends(get_maker)):
    """Generate a front-only name tag PDF (no QR back)."""
    card = await maker.make_card(request.profile_url, include_back=False)
    pdf = compose_single(card, maker.config.page_size, FrameSize(
        w=maker.config.card_width_pt, h=maker.config.card_height_pt,
    ))
    return _pdf_response(pdf, f"nametag-simple-{card.username}.pdf")


@app.post("/api/name-tag/generate-multiple", tags=["Name tags"])
async def generate_multiple(request: MultipleRequest, maker: CardMaker = Depends(get_maker)):
    """
    Tile name tags for many profiles into one paginated PDF.

    Invalid or failed URLs are skipped and listed in the X-Skipped-URLs header.
    """
    urls = request.profile_urls
    limit = maker.config.max_batch_size
    if len(urls) > limit:
        raise BatchTooLargeError(f"Maximum {limit} profiles can be processed at once")

    result = await maker.build_document(urls, tile_config=request.options.to_tile_config(maker.config))

    skipped = [item.url for item in result.batch.failed]
    headers = {}
    if skipped:
        headers["X-Skipped-URLs"] = json.dumps(skipped)
        headers["X-Warning"] = f"{len(skipped)} profile URLs were skipped"
    return _pdf_response(result.pdf, result.filename, headers)


@app.post("/api/name-tag/validate", response_model=ValidateResponse, tags=["Name tags"])
async def validate(request: ProfileUrlRequest, maker: CardMaker = Depends(get_maker)):
    """Check URL format, then whether the profile page is accessible."""
    validation = validate_profile_url(request.profile_url, maker.config.reject_ambiguous_fragments)
    if not validation.valid:
        return ValidateResponse(valid=False, accessible=False, error=validation.error)

    accessible = await maker.validate_profile(validation.normalized_url)
    return ValidateResponse(
        valid=True,
        accessible=accessible,
        username=validation.username,
        normalized_url=validation.normalized_url,
    )


@app.get("/api/name-tag/options", tags=["System"])
async def options(maker: CardMaker = Depends(get_maker)):
    """Supported options and defaults."""
    config = maker.config
    return {
        "single": {
            "supportedFormats": ["pdf"],
            "nameTagDimensions": {"width": "3.5 inches", "height": "2.25 inches"},
        },
        "multiple": {
            "maxProfiles": config.max_batch_size,
            "paperSizes": [size.value for size in PageSize],
            "duplexModes": [mode.value for mode in DuplexMode],
            "defaultSpacing": config.spacing_pt,
            "defaultMargin": config.margin_pt,
        },
        "qrCode": {
            "errorCorrectionLevels": list(ERROR_CORRECTION_LEVELS),
            "defaultLevel": config.qr_error_correction,
        },
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
