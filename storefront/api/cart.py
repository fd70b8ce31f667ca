"""Cart API endpoints.

Provides endpoints for the caller's cart:
- GET /cart - computed cart view
- POST /cart/items - add a variant
- PUT /cart/items/{item_id} - set a line's quantity
- DELETE /cart/items/{item_id} - remove a line
- DELETE /cart - clear the cart
- POST /cart/coupon - attach a coupon
- DELETE /cart/coupon - detach the coupon
"""

from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Depends

from storefront.api.deps import get_cart_service
from storefront.api.schemas import (
    AddCartItemRequest,
    ApiResponse,
    ApplyCouponRequest,
    CartResponse,
    ErrorResponse,
    UpdateCartItemRequest,
)
from storefront.api.security import CurrentUser, get_current_user
from storefront.application.cart_service import CartService, CartView

router = APIRouter(prefix="/cart", tags=["Cart"], responses={401: {"model": ErrorResponse}})

UserDep = Annotated[CurrentUser, Depends(get_current_user)]
ServiceDep = Annotated[CartService, Depends(get_cart_service)]


def cart_to_response(view: CartView) -> CartResponse:
    """Convert CartView to CartResponse."""
    return CartResponse.model_validate(asdict(view))


def _envelope(view: CartView, message: str) -> ApiResponse[CartResponse]:
    return ApiResponse[CartResponse](data=cart_to_response(view), message=message)


@router.get("", response_model=ApiResponse[CartResponse], summary="Get cart")
async def get_cart(user: UserDep, service: ServiceDep) -> ApiResponse[CartResponse]:
    """Get the caller's cart with computed totals."""
    return _envelope(await service.get_cart(user.id), "Cart retrieved")


@router.post(
    "/items",
    response_model=ApiResponse[CartResponse],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Add item to cart",
)
async def add_item(
    body: AddCartItemRequest, user: UserDep, service: ServiceDep
) -> ApiResponse[CartResponse]:
    """Add a variant to the cart, merging with an existing line.

    The combined quantity is checked against current stock.
    """
    view = await service.add_item(user.id, body.variant_id, body.quantity)
    return _envelope(view, "Item added to cart")


@router.put(
    "/items/{item_id}",
    response_model=ApiResponse[CartResponse],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Update cart item quantity",
)
async def update_item(
    item_id: str, body: UpdateCartItemRequest, user: UserDep, service: ServiceDep
) -> ApiResponse[CartResponse]:
    """Set the quantity of a cart line."""
    view = await service.update_item(user.id, item_id, body.quantity)
    return _envelope(view, "Cart item updated")


@router.delete(
    "/items/{item_id}",
    response_model=ApiResponse[CartResponse],
    responses={404: {"model": ErrorResponse}},
    summary="Remove cart item",
)
async def remove_item(item_id: str, user: UserDep, service: ServiceDep) -> ApiResponse[CartResponse]:
    view = await service.remove_item(user.id, item_id)
    return _envelope(view, "Item removed from cart")


@router.delete("", response_model=ApiResponse[CartResponse], summary="Clear cart")
async def clear_cart(user: UserDep, service: ServiceDep) -> ApiResponse[CartResponse]:
    view = await service.clear_cart(user.id)
    return _envelope(view, "Cart cleared")


@router.post(
    "/coupon",
    response_model=ApiResponse[CartResponse],
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Apply coupon",
)
async def apply_coupon(
    body: ApplyCouponRequest, user: UserDep, service: ServiceDep
) -> ApiResponse[CartResponse]:
    """Attach a coupon to the cart.

    The coupon must be active, inside its validity window, below its
    usage cap and its minimum order amount must be met.
    """
    view = await service.apply_coupon(user.id, body.code)
    return _envelope(view, "Coupon applied")


@router.delete("/coupon", response_model=ApiResponse[CartResponse], summary="Remove coupon")
async def remove_coupon(user: UserDep, service: ServiceDep) -> ApiResponse[CartResponse]:
    view = await service.remove_coupon(user.id)
    return _envelope(view, "Coupon removed")
