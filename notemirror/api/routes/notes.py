"""Note saving endpoint."""

import logging

from fastapi import APIRouter, Depends

from notemirror.api.dependencies import ConfigDep, StoreDep, enforce_rate_limit, require_api_key
from notemirror.api.exceptions import NoteMirrorAPIError
from notemirror.api.models import SaveNoteRequest, SaveNoteResponse
from notemirror.core.config import AppConfig
from notemirror.utils.validation import validate_category, validate_filename

logger = logging.getLogger(__name__)

router = APIRouter()


def check_save_request(payload: SaveNoteRequest, config: AppConfig) -> None:
    """Validate a save request, raising a 400 error with the first problem found."""
    if not payload.category or not payload.filename or not payload.content:
        raise NoteMirrorAPIError("Missing required fields: category, filename, content")

    limit = config.api.max_content_bytes
    if len(payload.content.encode("utf-8")) > limit:
        raise NoteMirrorAPIError(f"Content exceeds {limit // (1024 * 1024)}MB limit")

    try:
        validate_filename(payload.filename)
        validate_category(payload.category)
    except ValueError as e:
        raise NoteMirrorAPIError(str(e)) from e


@router.post(
    "/save-note",
    response_model=SaveNoteResponse,
    dependencies=[Depends(enforce_rate_limit), Depends(require_api_key)],
)
async def save_note(payload: SaveNoteRequest, config: ConfigDep, store: StoreDep):
    """Save a note into its (possibly nested) category folder.

    Missing category folders are created; a note with the same name in the
    target folder is overwritten.
    """
    check_save_request(payload, config)

    root_id = config.drive.notes_folder_id
    if not root_id:
        logger.error("drive.notes_folder_id is not configured")
        raise NoteMirrorAPIError("Internal Server Error", status_code=500)

    try:
        folder_id = root_id
        for segment in payload.category.split("/"):
            folder_id = await store.get_or_create_folder(folder_id, segment)

        saved = await store.create_or_update_note(folder_id, payload.filename, payload.content)
    except Exception as e:
        logger.error(f"Error saving note {payload.category}/{payload.filename}: {e}", exc_info=True)
        raise NoteMirrorAPIError("Internal Server Error", status_code=500) from e

    logger.info(f"Saved note {payload.category}/{payload.filename}")
    return SaveNoteResponse(message="Note saved successfully", link=saved.view_link)
