"""Tests for order history listing."""

import pytest
from returns.result import Failure

from storefront_checkout.core.domain.model.catalog import CheckoutSource
from storefront_checkout.core.domain.model.errors import ValidationError
from storefront_checkout.core.domain.model.order import Money
from storefront_checkout.core.ports.inbound.list_orders import ListOrdersQuery


class TestListOrders:
    @pytest.mark.parametrize(
        "query",
        [
            ListOrdersQuery(offset=-1),
            ListOrdersQuery(limit=0),
            ListOrdersQuery(limit=101),
            ListOrdersQuery(sort_by="email"),
            ListOrdersQuery(sort_dir="up"),
            ListOrdersQuery(user_id="   "),
        ],
    )
    def test_rejects_bad_queries(self, usecases, query):
        result = usecases.list_orders.list_orders(query)

        assert isinstance(result, Failure)
        assert isinstance(result.failure(), ValidationError)

    def test_buyer_filter_is_trimmed(self, usecases, buyer, other_buyer, checkout):
        checkout(buyer, CheckoutSource.BUY_NOW, "P1").unwrap()
        checkout(other_buyer, CheckoutSource.BUY_NOW, "P1").unwrap()

        mine = usecases.list_orders.list_orders(ListOrdersQuery(user_id=" u-1 ")).unwrap()

        assert [o.user_id for o in mine] == ["u-1"]

    def test_sorts_by_total(self, usecases, buyer, checkout):
        checkout(buyer, CheckoutSource.BUY_NOW, "P2").unwrap()
        checkout(buyer, CheckoutSource.BUY_NOW, "P1").unwrap()

        cheapest_first = usecases.list_orders.list_orders(
            ListOrdersQuery(sort_by="total", sort_dir="asc")
        ).unwrap()

        assert [o.total_amount for o in cheapest_first] == [Money.of("100.00"), Money.of("200.00")]
