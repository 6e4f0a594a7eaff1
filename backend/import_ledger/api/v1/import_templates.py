"""Public CSV template downloads (no auth)."""
from fastapi import APIRouter, HTTPException, Response, status

from import_ledger.core.errors import InvalidEntityTypeError
from import_ledger.models.import_job import parse_entity_type
from import_ledger.services.templates import template_for

router = APIRouter()


@router.get("/{entity_type}", response_class=Response, summary="Download the CSV template for an entity type")
async def download_template(entity_type: str):
    try:
        parsed = parse_entity_type(entity_type)
    except InvalidEntityTypeError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid entity type. Must be CLIENT or TRANSACTION.",
        )

    filename, body = template_for(parsed)
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
