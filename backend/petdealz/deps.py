from fastapi import Request

from petdealz.auth.identity import IdentityContext
from petdealz.errors import ListingError
from petdealz.service import ListingService


class ServiceUnavailable(ListingError):
    status_code = 503


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise ServiceUnavailable("Service is starting up")
    return value


def get_listing_service(request: Request) -> ListingService:
    return _state(request, "listing_service")


def get_identity(request: Request) -> IdentityContext:
    return _state(request, "identity")


def get_engine(request: Request):
    return _state(request, "engine")


def current_user_id(request: Request) -> int:
    return get_identity(request).current_user_id(request)
