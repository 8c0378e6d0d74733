import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError as PydanticValidationError

from directory_app.auth import decode_token
from directory_app.dependencies import AdminUser, BearerToken, HistoryRepoDep, ImportServiceDep
from directory_app.exceptions import AppError, NotFoundError, UnauthorizedError
from directory_app.importer.template import TEMPLATE_FILENAME, build_template_csv
from directory_app.listings.schemas import (
    BatchFailure,
    BatchRequest,
    BatchResponse,
    ImportHistoryCreate,
    ImportHistoryResponse,
    ListingResponse,
)

logger = structlog.get_logger()

router = APIRouter()


def _failure(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content=BatchFailure(error=message).model_dump())


@router.post("/import", response_model=BatchResponse)
async def import_batch(
    request: Request,
    service: ImportServiceDep,
    token: BearerToken,
) -> BatchResponse | JSONResponse:
    try:
        if token is None:
            raise UnauthorizedError("Unauthorized")
        claims = decode_token(token)
        try:
            body = await request.json()
        except ValueError:
            # Undecodable bytes and invalid JSON alike
            return _failure("Request body must be JSON")
        payload = BatchRequest.model_validate(body)
        results = await service.process_batch(
            payload.rows,
            skip_logos=payload.skip_logos,
            duplicate_handling=payload.duplicate_handling,
            user_id=claims.get("sub"),
            import_id=payload.import_id,
        )
    except AppError as exc:
        logger.warning("import_batch_rejected", error=exc.message, code=exc.code)
        return _failure(exc.message)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        return _failure(f"Malformed request: {location}: {first['msg']}")
    except Exception as exc:
        logger.exception("import_batch_failed")
        return _failure(str(exc) or type(exc).__name__)

    return BatchResponse(success=True, results=results)


@router.get("/import/template")
async def download_template() -> Response:
    return Response(
        content=build_template_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{TEMPLATE_FILENAME}"'},
    )


@router.post("/imports", status_code=201, response_model=ImportHistoryResponse)
async def create_import(
    data: ImportHistoryCreate,
    history: HistoryRepoDep,
    admin: AdminUser,
) -> ImportHistoryResponse:
    import_id = await history.create(admin, data.file_name, data.total_rows)
    record = await history.get_by_id(import_id)
    return ImportHistoryResponse(**record)


@router.get("/imports", response_model=list[ImportHistoryResponse])
async def list_imports(
    history: HistoryRepoDep,
    _admin: AdminUser,
    limit: int = 50,
) -> list[ImportHistoryResponse]:
    return [ImportHistoryResponse(**record) for record in await history.list_all(limit)]


@router.get("/imports/{import_id}", response_model=ImportHistoryResponse)
async def get_import(
    import_id: str,
    history: HistoryRepoDep,
    _admin: AdminUser,
) -> ImportHistoryResponse:
    record = await history.get_by_id(import_id)
    if record is None:
        raise NotFoundError("Import", import_id)
    return ImportHistoryResponse(**record)


@router.get("/{listing_id}", response_model=ListingResponse)
async def get_listing(
    listing_id: str,
    service: ImportServiceDep,
    _admin: AdminUser,
) -> ListingResponse:
    return await service.get_listing(listing_id)
