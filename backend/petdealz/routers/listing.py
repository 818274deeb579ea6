from typing import List, Optional

from fastapi import APIRouter, Depends, Form, Query, Request, UploadFile, File
from fastapi.concurrency import run_in_threadpool

from petdealz.deps import current_user_id, get_listing_service
from petdealz.errors import TooManyMedia
from petdealz.models.listing import ListingSubmission
from petdealz.repository import MAX_MEDIA_PER_LISTING
from petdealz.routers.image_upload import read_upload
from petdealz.service import ListingService

router = APIRouter(tags=["Listing"])


@router.post("/post-listing")
async def post_listing(
    request: Request,
    title: str = Form(...),
    description: str = Form(...),
    category: str = Form(...),
    location: str = Form(...),
    price: float = Form(...),
    media: List[UploadFile] = File(default=[]),
    service: ListingService = Depends(get_listing_service),
    user_id: int = Depends(current_user_id),
):
    # Reject before buffering any upload; submit() re-checks both.
    if len(media) > MAX_MEDIA_PER_LISTING:
        raise TooManyMedia(len(media), MAX_MEDIA_PER_LISTING)
    submission = ListingSubmission(
        title=title,
        description=description,
        category=category,
        location=location,
        price=price,
        media=[await read_upload(f) for f in media],
    )
    listing = await run_in_threadpool(service.submit, request, submission)
    return {"message": "Listing posted successfully!", "listing": service.serialize(listing)}


@router.get("/get-listings")
def get_listings(
    request: Request,
    owner_id: Optional[int] = Query(default=None, alias="ownerId"),
    mine: bool = False,
    service: ListingService = Depends(get_listing_service),
):
    if mine:
        owner_id = current_user_id(request)
    return service.list(owner_id)
