import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

from starlette.requests import HTTPConnection

from petdealz.auth.identity import IdentityContext
from petdealz.errors import (
    InvalidListing,
    ListingError,
    MediaNotFound,
    NoMedia,
    PersistenceFailure,
    StorageFailure,
    TooManyMedia,
)
from petdealz.models.listing import ListingSubmission, MediaRef, MediaUpload, StoredListing
from petdealz.policy import ContentPolicy
from petdealz.repository import MAX_MEDIA_PER_LISTING, ListingRepository
from petdealz.storage.base import MediaStore

logger = logging.getLogger(__name__)


class ListingService:
    """
    Submits and lists classified posts.

    A submission is checked in a fixed order: identity, text policy,
    listing fields, media count. Media is only stored once all checks pass,
    and stored media is cleaned up if anything after that fails.
    """

    def __init__(
        self,
        store: MediaStore,
        repository: ListingRepository,
        policy: ContentPolicy,
        identity: IdentityContext,
        placeholder_url: str = "default.jpg",
        upload_workers: int = 1,
    ):
        self.store = store
        self.repository = repository
        self.policy = policy
        self.identity = identity
        self.placeholder_url = placeholder_url
        self.upload_workers = upload_workers

    def submit(self, request: HTTPConnection, submission: ListingSubmission) -> StoredListing:
        owner_id = self.identity.current_user_id(request)

        violation = self.policy.validate(submission.description)
        if violation is not None:
            logger.warning("Listing from user %s rejected by %s", owner_id, violation.rule)
            raise violation

        self._check_fields(submission)
        self._check_media_count(submission.media)

        refs = self._store_media(submission.media)
        try:
            listing = self.repository.create(
                owner_id=owner_id,
                title=submission.title.strip(),
                description=submission.description,
                category=submission.category,
                location=submission.location,
                price=submission.price,
                media=refs,
            )
        except ListingError:
            self._cleanup(refs)
            raise
        except Exception as e:
            self._cleanup(refs)
            raise PersistenceFailure("Failed to save listing") from e

        logger.info("Listing %s posted by user %s with %d media", listing.id, owner_id, len(refs))
        return listing

    def _check_fields(self, submission: ListingSubmission):
        if not submission.title or not submission.title.strip():
            raise InvalidListing("Title is required")
        if not math.isfinite(submission.price) or submission.price < 0:
            raise InvalidListing("Price must be a non-negative number")

    def _check_media_count(self, media: List[MediaUpload]):
        if not media:
            logger.warning("Listing rejected: no media attached")
            raise NoMedia()
        if len(media) > MAX_MEDIA_PER_LISTING:
            logger.warning("Listing rejected: %d media attached", len(media))
            raise TooManyMedia(len(media), MAX_MEDIA_PER_LISTING)

    def _store_media(self, media: List[MediaUpload]) -> List[MediaRef]:
        """Store every upload, returning refs in upload order regardless of completion order."""
        with ThreadPoolExecutor(max_workers=min(self.upload_workers, len(media))) as pool:
            futures = [pool.submit(self.store.put, m.payload, m.filename, m.content_type) for m in media]

        refs = []
        failure = None
        for future in futures:
            try:
                refs.append(future.result())
            except Exception as e:
                if failure is None:
                    failure = e

        if failure is not None:
            logger.error("Media upload failed, removing %d stored files", len(refs), exc_info=failure)
            self._cleanup(refs)
            if isinstance(failure, StorageFailure):
                raise failure
            raise StorageFailure("Failed to store media") from failure
        return refs

    def _cleanup(self, refs: List[MediaRef]):
        for ref in refs:
            try:
                self.store.delete(ref)
            except Exception:
                # Orphans are left for an out-of-band sweep.
                logger.warning("Could not remove media %s after failed submission", ref.storage_key, exc_info=True)

    def media_url(self, ref: MediaRef) -> str:
        try:
            return self.store.url_for(ref)
        except MediaNotFound:
            logger.warning("Media %s not resolvable, using placeholder", ref.storage_key)
        except StorageFailure:
            logger.warning("Media %s lookup failed, using placeholder", ref.storage_key, exc_info=True)
        return self.placeholder_url

    def serialize(self, listing: StoredListing) -> dict:
        return {
            "id": listing.id,
            "ownerId": listing.owner_id,
            "title": listing.title,
            "description": listing.description,
            "category": listing.category,
            "location": listing.location,
            "price": listing.price,
            "media": [self.media_url(ref) for ref in listing.media],
            "createdAt": listing.created_at.isoformat(),
        }

    def list(self, owner_id: Optional[int] = None) -> List[dict]:
        if owner_id is None:
            listings = self.repository.find_all()
        else:
            listings = self.repository.find_by_owner(owner_id)
        return [self.serialize(listing) for listing in listings]

    def upload(self, request: HTTPConnection, upload: MediaUpload) -> MediaRef:
        """Store a single file outside of a listing submission."""
        self.identity.current_user_id(request)
        return self.store.put(upload.payload, upload.filename, upload.content_type)
