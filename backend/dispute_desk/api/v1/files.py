import mimetypes

from fastapi import APIRouter, Depends, Path
from fastapi.responses import Response

from dispute_desk.api import deps
from dispute_desk.core.exceptions import NotFound
from dispute_desk.services.context import ClientContext
from dispute_desk.services.message_repository import ATTACHMENTS_PREFIX

router = APIRouter()


@router.get("/{key:path}")
async def get_stored_file(
    key: str = Path(..., title="Storage key"),
    context: ClientContext = Depends(deps.get_context),
):
    """
    Serve chat attachments by the URL handed out at upload time.
    """
    if not key.startswith(f"{ATTACHMENTS_PREFIX}/"):
        raise NotFound("File not found")

    content = await context.storage.read_file(key)
    media_type = mimetypes.guess_type(key)[0] or "application/octet-stream"
    filename = key.rsplit("/", 1)[-1]
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'inline; filename="{filename}"'},
    )
