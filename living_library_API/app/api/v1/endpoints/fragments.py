# fragments.py
# Description: Fragment lifecycle endpoints: list/search, create, read, update, delete and process.
#
# Imports
from datetime import datetime
from typing import List, Optional
#
# 3rd-party Libraries
from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from loguru import logger
#
# Local Imports
from living_library_API.app.api.v1.API_Deps.Library_Deps import (
    get_classification_service,
    get_embedding_service,
    get_library_db,
    get_media_storage,
    get_transcription_service,
)
from living_library_API.app.api.v1.API_Deps.v1_endpoint_deps import error_response, handle_library_errors
from living_library_API.app.api.v1.schemas.fragment_schemas import (
    DeleteResponse,
    FragmentCreate,
    FragmentDetailEnvelope,
    FragmentEnvelope,
    FragmentListResponse,
    FragmentUpdate,
    Visibility,
)
from living_library_API.app.core.AI_Services.AI_Interfaces import (
    ClassificationService,
    EmbeddingService,
    TranscriptionService,
)
from living_library_API.app.core.AuthNZ.User_DB_Handling import User, get_request_user
from living_library_API.app.core.DB_Management.Library_DB import LibraryDB
from living_library_API.app.core.exceptions import LibraryError, PIIDetectedError
from living_library_API.app.core.Fragments.Fragment_Processing import FragmentProcessor
from living_library_API.app.core.Storage.Media_Storage import MediaStorage
from living_library_API.app.core.Utils.Utils import to_utc_iso, utc_now
#
#######################################################################################################################
#
# Functions:

router = APIRouter()


@router.get(
    "/",
    response_model=FragmentListResponse,
    summary="List and search fragments",
    tags=["Fragments"],
)
async def list_fragments(
        q: str = Query("", description="Case-insensitive match on title, body and transcript"),
        limit: int = Query(20, ge=1, le=100),
        offset: int = Query(0, ge=0),
        visibility: Optional[Visibility] = Query(None),
        tags: Optional[List[str]] = Query(None),
        emotions: Optional[List[str]] = Query(None),
        themes: Optional[List[str]] = Query(None),
        date_from: Optional[datetime] = Query(None, alias="dateFrom"),
        date_to: Optional[datetime] = Query(None, alias="dateTo"),
        db: LibraryDB = Depends(get_library_db),
        current_user: User = Depends(get_request_user),
):
    try:
        fragments = db.list_fragments(
            current_user.id, q=q, visibility=visibility, tags=tags, emotions=emotions, themes=themes,
            date_from=date_from, date_to=date_to, limit=limit, offset=offset,
        )
        logger.debug(f"User {current_user.id} listed {len(fragments)} fragments (q='{q[:30]}', offset={offset})")
        return {"fragments": fragments, "pagination": {"offset": offset, "limit": limit, "total": len(fragments)}}
    except Exception as e:
        handle_library_errors(e, "fragments")


@router.post(
    "/",
    response_model=FragmentEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Create a fragment",
    tags=["Fragments"],
)
async def create_fragment(
        fragment_in: FragmentCreate,
        db: LibraryDB = Depends(get_library_db),
        classifier: ClassificationService = Depends(get_classification_service),
        current_user: User = Depends(get_request_user),
):
    try:
        detections = await classifier.detect_pii(f"{fragment_in.title} {fragment_in.body}")
        if detections:
            raise PIIDetectedError([d.model_dump() for d in detections])

        data = fragment_in.to_db_dict()
        data['status'] = 'PROCESSING'
        fragment = db.add_fragment(current_user.id, data)
        logger.info(f"User {current_user.id} created fragment {fragment['id']}")
        return {"fragment": fragment}
    except PIIDetectedError as e:
        logger.warning(f"Fragment from user {current_user.id} rejected: {len(e.detections)} PII detection(s)")
        return error_response(status.HTTP_400_BAD_REQUEST, e.message, piiDetections=e.detections)
    except Exception as e:
        handle_library_errors(e, "fragment")


@router.get(
    "/{fragment_id}",
    response_model=FragmentDetailEnvelope,
    summary="Get a fragment with its links",
    tags=["Fragments"],
)
async def get_fragment(
        fragment_id: str = Path(..., description="Fragment ID"),
        db: LibraryDB = Depends(get_library_db),
        current_user: User = Depends(get_request_user),
):
    try:
        fragment = db.get_fragment_with_links(fragment_id, current_user.id)
        if fragment is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Fragment not found")
        return {"fragment": fragment}
    except Exception as e:
        handle_library_errors(e, "fragment")


@router.put(
    "/{fragment_id}",
    response_model=FragmentEnvelope,
    summary="Update an owned fragment",
    tags=["Fragments"],
)
async def update_fragment(
        fragment_update: FragmentUpdate,
        fragment_id: str = Path(..., description="Fragment ID"),
        db: LibraryDB = Depends(get_library_db),
        current_user: User = Depends(get_request_user),
):
    try:
        data = fragment_update.to_db_dict(exclude_unset=True)
        if fragment_update.title or fragment_update.body:
            # Content changed: derived metadata is stale until the fragment is processed again
            data['status'] = 'PROCESSING'
        fragment = db.update_fragment(fragment_id, current_user.id, data)
        if fragment is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Fragment not found or access denied")
        return {"fragment": fragment}
    except Exception as e:
        handle_library_errors(e, "fragment")


@router.delete(
    "/{fragment_id}",
    response_model=DeleteResponse,
    summary="Delete an owned fragment and its media",
    tags=["Fragments"],
)
async def delete_fragment(
        fragment_id: str = Path(..., description="Fragment ID"),
        db: LibraryDB = Depends(get_library_db),
        storage: MediaStorage = Depends(get_media_storage),
        current_user: User = Depends(get_request_user),
):
    try:
        fragment = db.get_fragment_by_id(fragment_id)
        if fragment is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Fragment not found")
        if fragment['user_id'] != current_user.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

        for media_item in fragment.get('media') or []:
            try:
                object_path = storage.path_from_url(media_item.get('url', ''))
                if object_path:
                    storage.remove([object_path])
            except LibraryError as media_error:
                logger.error(f"Failed to delete media file for fragment {fragment_id}: {media_error}")

        if not db.delete_fragment(fragment_id, current_user.id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Fragment not found")
        db.add_audit_event(current_user.id, 'fragment_deleted', fragment_id, {"deleted_at": to_utc_iso(utc_now())})
        return {"success": True}
    except Exception as e:
        handle_library_errors(e, "fragment")


@router.post(
    "/{fragment_id}/process",
    response_model=FragmentEnvelope,
    summary="Transcribe, embed, classify and link a fragment",
    tags=["Fragments"],
)
async def process_fragment(
        fragment_id: str = Path(..., description="Fragment ID"),
        db: LibraryDB = Depends(get_library_db),
        transcription: TranscriptionService = Depends(get_transcription_service),
        embedding: EmbeddingService = Depends(get_embedding_service),
        classifier: ClassificationService = Depends(get_classification_service),
        current_user: User = Depends(get_request_user),
):
    try:
        processor = FragmentProcessor(db, transcription, embedding, classifier)
        fragment = await processor.process(fragment_id, current_user.id)
        return {"fragment": fragment}
    except Exception as e:
        handle_library_errors(e, "fragment processing")

#
# End of fragments.py
#######################################################################################################################
