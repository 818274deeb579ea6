from fastapi import APIRouter, Depends, Request, UploadFile, File
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse, StreamingResponse

from petdealz.deps import get_listing_service
from petdealz.errors import MediaNotFound
from petdealz.models.listing import MediaUpload
from petdealz.service import ListingService

router = APIRouter(tags=["Media"])

CHUNK_SIZE = 64 * 1024


async def read_upload(file: UploadFile) -> MediaUpload:
    return MediaUpload(
        filename=file.filename,
        content_type=file.content_type or "application/octet-stream",
        payload=await file.read(),
    )


@router.post("/upload")
async def upload_image(
    request: Request,
    file: UploadFile = File(...),
    service: ListingService = Depends(get_listing_service),
):
    upload = await read_upload(file)
    ref = await run_in_threadpool(service.upload, request, upload)
    return {
        "message": "File uploaded successfully!",
        "fileId": ref.storage_key,
        "url": service.media_url(ref),
    }


def _iter_stream(stream):
    try:
        while True:
            chunk = stream.read(CHUNK_SIZE)
            if not chunk:
                break
            yield chunk
    finally:
        stream.close()


@router.get("/image/{storage_key}")
def get_image(storage_key: str, service: ListingService = Depends(get_listing_service)):
    resolved = service.store.resolve(storage_key)
    if resolved.is_redirect:
        return RedirectResponse(url=resolved.url, status_code=302)
    if resolved.stream is None:
        raise MediaNotFound(storage_key)
    return StreamingResponse(_iter_stream(resolved.stream), media_type=resolved.content_type)
