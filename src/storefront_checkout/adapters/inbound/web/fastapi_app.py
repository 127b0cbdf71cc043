from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Any

from fastapi import Depends, FastAPI, Header, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from returns.result import Result, Success

from storefront_checkout.core.domain.model.catalog import (
    Buyer,
    CartLine,
    CheckoutSession,
    CheckoutSource,
)
from storefront_checkout.core.domain.model.errors import (
    AuthenticationRequired,
    CheckoutError,
    Forbidden,
    InsufficientStock,
    InvalidTransition,
    NotFound,
    OutOfStock,
    StorageFailure,
    ValidationError,
)
from storefront_checkout.core.domain.model.inventory import StockRequest
from storefront_checkout.core.domain.model.order import Order, OrderDetails, ShippingAddress
from storefront_checkout.core.domain.service.validation import require_buyer
from storefront_checkout.core.ports.inbound.cancel_order import CancelOrderCommand
from storefront_checkout.core.ports.inbound.checkout_session import BuildCheckoutSessionQuery
from storefront_checkout.core.ports.inbound.get_order import GetOrderQuery
from storefront_checkout.core.ports.inbound.list_orders import ListOrdersQuery, OrderStatsQuery
from storefront_checkout.core.ports.inbound.order_status import SetOrderStatusCommand
from storefront_checkout.core.ports.inbound.place_order import PlaceOrderCommand

if TYPE_CHECKING:
    from storefront_checkout.bootstrap import UseCases

logger = logging.getLogger(__name__)

# ---- HTTP DTOs (adapter layer) ---------------------------------------------


class StockLineIn(BaseModel):
    product_id: str = Field(min_length=1, examples=["SKU-1"])
    quantity: int = Field(gt=0, examples=[2])


class ValidateStockRequest(BaseModel):
    lines: list[StockLineIn] = Field(min_length=1)


class StockVerdictItemOut(BaseModel):
    product_id: str
    product_name: str | None
    requested: int
    available: int
    sufficient: bool


class StockVerdictResponse(BaseModel):
    valid: bool
    items: list[StockVerdictItemOut]


class CheckoutSessionRequest(BaseModel):
    source: CheckoutSource = Field(examples=["cart"])
    product_id: str | None = Field(None, examples=["SKU-1"])


class CheckoutLineOut(BaseModel):
    product_id: str
    name: str
    quantity: int
    unit_price: str
    subtotal: str


class CheckoutSessionResponse(BaseModel):
    source: str
    currency: str
    total: str
    lines: list[CheckoutLineOut]


class ShippingIn(BaseModel):
    name: str = Field(examples=["Asha Rao"])
    email: str = Field(examples=["asha@example.com"])
    phone: str = Field(examples=["9876543210"])
    address: str = Field(examples=["12 MG Road"])
    address_line2: str = ""
    city: str = Field(examples=["Bengaluru"])
    state: str = Field(examples=["Karnataka"])
    pincode: str = Field(examples=["560001"])
    notes: str = ""


class PlaceOrderRequest(CheckoutSessionRequest):
    shipping: ShippingIn
    payment_mode: str = Field("cod", examples=["cod"])


class OrderLineOut(BaseModel):
    product_id: str
    quantity: int
    price: str
    subtotal: str


class OrderSummaryOut(BaseModel):
    order_id: str
    user_id: str
    status: str
    payment_mode: str
    total: str
    currency: str
    created_at: str


class OrderDetailsResponse(OrderSummaryOut):
    email: str
    shipping_address: dict[str, str]
    lines: list[OrderLineOut]


class OrderListResponse(BaseModel):
    offset: int
    limit: int
    items: list[OrderSummaryOut]


class OrderStatsResponse(BaseModel):
    day: str | None
    total_orders: int
    total_revenue: str
    currency: str


class StatusChangeRequest(BaseModel):
    status: str = Field(min_length=1, examples=["packed"])


class CartItemIn(BaseModel):
    product_id: str = Field(min_length=1, examples=["SKU-1"])


class CartQuantityIn(BaseModel):
    quantity: int = Field(examples=[2])


class CartLineOut(BaseModel):
    product_id: str
    quantity: int


class CartResponse(BaseModel):
    items: list[CartLineOut]
    item_count: int
    total_quantity: int


class ErrorResponse(BaseModel):
    type: str
    message: str
    details: list[dict[str, Any]] | None = None


class DomainRejection(Exception):
    """Carries a domain error out of a route to the registered handler."""

    def __init__(self, error: CheckoutError) -> None:
        super().__init__(str(error))
        self.error = error


def _map_error_to_http(err: CheckoutError) -> tuple[int, ErrorResponse]:
    body = ErrorResponse(type=type(err).__name__, message=err.message)

    if isinstance(err, ValidationError):
        return 400, body

    if isinstance(err, AuthenticationRequired):
        return 401, body

    if isinstance(err, Forbidden):
        return 403, body

    if isinstance(err, NotFound):
        body.details = [{"entity": err.entity, "key": err.key}]
        return 404, body

    if isinstance(err, InsufficientStock):
        body.details = [
            {
                "product_id": it.product_id,
                "product_name": it.product_name,
                "requested": it.requested,
                "available": it.available,
            }
            for it in err.shortages()
        ]
        return 409, body

    if isinstance(err, OutOfStock):
        body.details = [{"product_id": err.product_id}]
        return 409, body

    if isinstance(err, InvalidTransition):
        body.details = [{"current": err.current, "requested": err.requested}]
        return 409, body

    if isinstance(err, StorageFailure):
        return 503, body

    return 500, body


def _unwrap(result: Result) -> Any:
    if isinstance(result, Success):
        return result.unwrap()
    raise DomainRejection(result.failure())


def current_buyer(
    user_id: str | None = Header(None, alias="X-User-Id"),
    email: str | None = Header(None, alias="X-User-Email"),
) -> Buyer | None:
    if not user_id:
        return None
    return Buyer(user_id=user_id, email=email or "")


# ---- view mapping -------------------------------------------------------------


def _summary(order: Order) -> dict[str, Any]:
    return {
        "order_id": str(order.order_id.value),
        "user_id": order.user_id,
        "status": order.status.value,
        "payment_mode": order.payment_mode.value,
        "total": str(order.total_amount.amount),
        "currency": order.total_amount.currency,
        "created_at": order.created_at.isoformat(),
    }


def _details(details: OrderDetails) -> dict[str, Any]:
    return {
        **_summary(details.order),
        "email": details.order.email,
        "shipping_address": details.order.shipping_address.as_dict(),
        "lines": [
            OrderLineOut(
                product_id=ln.product_id,
                quantity=ln.quantity,
                price=str(ln.price.amount),
                subtotal=str(ln.subtotal().amount),
            )
            for ln in details.lines
        ],
    }


def _session_view(session: CheckoutSession) -> CheckoutSessionResponse:
    return CheckoutSessionResponse(
        source=session.source.value,
        currency=session.currency,
        total=str(session.total.amount),
        lines=[
            CheckoutLineOut(
                product_id=ln.product_id,
                name=ln.product.name,
                quantity=ln.quantity,
                unit_price=str(ln.unit_price.amount),
                subtotal=str(ln.subtotal().amount),
            )
            for ln in session.lines
        ],
    )


def _cart_view(lines: list[CartLine] | tuple[CartLine, ...]) -> CartResponse:
    return CartResponse(
        items=[CartLineOut(product_id=ln.product_id, quantity=ln.quantity) for ln in lines],
        item_count=len(lines),
        total_quantity=sum(ln.quantity for ln in lines),
    )


def create_app(usecases: "UseCases") -> FastAPI:
    app = FastAPI(title="storefront_checkout")

    # --- exception handlers --------------------------------------------------

    @app.exception_handler(DomainRejection)
    async def handle_domain_error(_: Request, exc: DomainRejection) -> JSONResponse:
        status, body = _map_error_to_http(exc.error)
        if status >= 500:
            logger.error("request failed: %s", exc.error)
        return JSONResponse(status_code=status, content=body.model_dump())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        _: Request, exc: RequestValidationError
    ) -> JSONResponse:
        body = ErrorResponse(
            type="RequestValidationError",
            message="invalid request",
            details=[
                {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()
            ],
        )
        return JSONResponse(status_code=400, content=body.model_dump())

    @app.exception_handler(Exception)
    async def handle_unexpected(_: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled error")
        body = ErrorResponse(type=type(exc).__name__, message="internal server error")
        return JSONResponse(status_code=500, content=body.model_dump())

    errors = {
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    }

    # --- routes --------------------------------------------------------------

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/stock/validate", response_model=StockVerdictResponse, responses=errors)
    def validate_stock(req: ValidateStockRequest) -> Any:
        verdict = _unwrap(
            usecases.validate_stock.validate(
                tuple(StockRequest(ln.product_id, ln.quantity) for ln in req.lines)
            )
        )
        return StockVerdictResponse(
            valid=verdict.valid,
            items=[
                StockVerdictItemOut(
                    product_id=it.product_id,
                    product_name=it.product_name,
                    requested=it.requested,
                    available=it.available,
                    sufficient=it.sufficient,
                )
                for it in verdict.per_item
            ],
        )

    def build_session(
        req: CheckoutSessionRequest, buyer: Buyer | None
    ) -> Result[CheckoutSession, CheckoutError]:
        return usecases.checkout_session.build(
            BuildCheckoutSessionQuery(source=req.source, buyer=buyer, product_id=req.product_id)
        )

    @app.post("/checkout/session", response_model=CheckoutSessionResponse, responses=errors)
    def checkout_session(
        req: CheckoutSessionRequest, buyer: Buyer | None = Depends(current_buyer)
    ) -> Any:
        return _session_view(_unwrap(build_session(req, buyer)))

    @app.post(
        "/orders", response_model=OrderDetailsResponse, status_code=201, responses=errors
    )
    def place_order(
        req: PlaceOrderRequest,
        response: Response,
        buyer: Buyer | None = Depends(current_buyer),
    ) -> Any:
        # the session is rebuilt here so prices come from the catalog, not the client
        session = _unwrap(build_session(req, buyer))
        receipt = _unwrap(
            usecases.place_order.place_order(
                PlaceOrderCommand(
                    buyer=buyer,
                    shipping=ShippingAddress(**req.shipping.model_dump()),
                    payment_mode=req.payment_mode,
                    session=session,
                )
            )
        )
        order_id = str(receipt.order.order_id.value)
        response.headers["Location"] = f"/orders/{order_id}"
        # owed stock adjustments stay in the outbox
        return OrderDetailsResponse(
            **_details(OrderDetails(order=receipt.order, lines=receipt.lines))
        )

    @app.get("/orders", response_model=OrderListResponse, responses=errors)
    def my_orders(
        offset: int = Query(0, ge=0),
        limit: int = Query(10, ge=1, le=100),
        buyer: Buyer | None = Depends(current_buyer),
    ) -> Any:
        me = _unwrap(require_buyer(buyer))
        items = _unwrap(
            usecases.list_orders.list_orders(
                ListOrdersQuery(offset=offset, limit=limit, user_id=me.user_id)
            )
        )
        return OrderListResponse(
            offset=offset, limit=limit, items=[OrderSummaryOut(**_summary(o)) for o in items]
        )

    @app.get("/orders/{order_id}", response_model=OrderDetailsResponse, responses=errors)
    def my_order(order_id: str, buyer: Buyer | None = Depends(current_buyer)) -> Any:
        me = _unwrap(require_buyer(buyer))
        view = _unwrap(usecases.get_order.get_order(GetOrderQuery(order_id=order_id, buyer=me)))
        return OrderDetailsResponse(**_details(view))

    @app.post("/orders/{order_id}/cancel", response_model=OrderSummaryOut, responses=errors)
    def cancel_order(order_id: str, buyer: Buyer | None = Depends(current_buyer)) -> Any:
        order = _unwrap(
            usecases.cancel_order.cancel_order(CancelOrderCommand(order_id=order_id, buyer=buyer))
        )
        return OrderSummaryOut(**_summary(order))

    # --- cart ------------------------------------------------------------------

    @app.get("/cart", response_model=CartResponse, responses=errors)
    def get_cart(buyer: Buyer | None = Depends(current_buyer)) -> Any:
        return _cart_view(tuple(_unwrap(usecases.carts.list(buyer))))

    @app.post("/cart/items", response_model=CartLineOut, status_code=201, responses=errors)
    def add_to_cart(req: CartItemIn, buyer: Buyer | None = Depends(current_buyer)) -> Any:
        line = _unwrap(usecases.carts.add(buyer, req.product_id))
        return CartLineOut(product_id=line.product_id, quantity=line.quantity)

    @app.put("/cart/items/{product_id}", response_model=CartLineOut, responses=errors)
    def set_cart_quantity(
        product_id: str, req: CartQuantityIn, buyer: Buyer | None = Depends(current_buyer)
    ) -> Any:
        line = _unwrap(usecases.carts.set_quantity(buyer, product_id, req.quantity))
        return CartLineOut(product_id=line.product_id, quantity=line.quantity)

    @app.delete("/cart/items/{product_id}", status_code=204, responses=errors)
    def remove_from_cart(product_id: str, buyer: Buyer | None = Depends(current_buyer)) -> Response:
        _unwrap(usecases.carts.remove(buyer, product_id))
        return Response(status_code=204)

    @app.delete("/cart", responses=errors)
    def clear_cart(buyer: Buyer | None = Depends(current_buyer)) -> dict[str, int]:
        return {"removed": _unwrap(usecases.carts.clear(buyer))}

    # --- admin -------------------------------------------------------------------
    # role checks belong to the auth proxy in front of this service

    @app.get("/admin/orders", response_model=OrderListResponse, responses=errors)
    def list_orders(
        offset: int = Query(0, ge=0),
        limit: int = Query(10, ge=1, le=100),
        user_id: str | None = Query(None, min_length=1),
        sort_by: str = Query("created_at"),
        sort_dir: str = Query("desc"),
    ) -> Any:
        items = _unwrap(
            usecases.list_orders.list_orders(
                ListOrdersQuery(
                    offset=offset,
                    limit=limit,
                    user_id=user_id,
                    sort_by=sort_by,
                    sort_dir=sort_dir,
                )
            )
        )
        return OrderListResponse(
            offset=offset, limit=limit, items=[OrderSummaryOut(**_summary(o)) for o in items]
        )

    # registered before /admin/orders/{order_id} so "stats" is not taken for an id
    @app.get("/admin/orders/stats", response_model=OrderStatsResponse, responses=errors)
    def order_stats(day: date | None = Query(None)) -> Any:
        stats = _unwrap(usecases.list_orders.stats(OrderStatsQuery(day=day)))
        return OrderStatsResponse(
            day=day.isoformat() if day else None,
            total_orders=stats.total_orders,
            total_revenue=str(stats.total_revenue.amount),
            currency=stats.total_revenue.currency,
        )

    @app.get("/admin/orders/{order_id}", response_model=OrderDetailsResponse, responses=errors)
    def admin_order(order_id: str) -> Any:
        view = _unwrap(usecases.get_order.get_order(GetOrderQuery(order_id=order_id)))
        return OrderDetailsResponse(**_details(view))

    @app.put(
        "/admin/orders/{order_id}/status", response_model=OrderSummaryOut, responses=errors
    )
    def set_status(order_id: str, req: StatusChangeRequest) -> Any:
        order = _unwrap(
            usecases.set_status.set_status(
                SetOrderStatusCommand(order_id=order_id, status=req.status)
            )
        )
        return OrderSummaryOut(**_summary(order))

    return app
