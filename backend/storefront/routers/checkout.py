"""
Poster checkout API routes.
"""
from fastapi import APIRouter

from storefront.core.logging import get_logger
from storefront.dependencies import OptionalAuth, ServicesDep
from storefront.schemas.checkout import CheckoutResponse, PosterCheckoutRequest

logger = get_logger(__name__)

router = APIRouter(prefix="/checkout", tags=["checkout"])


@router.post("/poster", response_model=CheckoutResponse)
async def create_poster_checkout(
    checkout_request: PosterCheckoutRequest,
    services: ServicesDep,
    auth: OptionalAuth,
) -> CheckoutResponse:
    """
    Start a hosted checkout for one poster variant.

    Guests may check out; a valid session token links the order to the
    caller's account.
    """
    url = await services.checkout.create_poster_checkout(checkout_request, auth)
    return CheckoutResponse(url=url)
