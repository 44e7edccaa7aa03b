"""Placing an order from a cart.

Stock is held, never deducted, at this point. Each line draws on variation
option holds when its configuration selects tracked options, otherwise on a
product-level hold. Bundle lines hold stock for every required member and
every selected optional member. Demand is summed per product and per
variation before anything is held, so each stock source is read, checked and
written once.
"""

import json
from collections import defaultdict

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.cart.handoff import begin_checkout
from storefront.cart.identity import identity_from
from storefront.cart.lookup import require_cart
from storefront.cart.management import validate_cart_for_checkout
from storefront.cart.totals import compute_totals
from storefront.catalogue import reader
from storefront.domain import storefront
from storefront.inventory import ledger
from storefront.inventory.reservation import reserve_stock
from storefront.order.order import Order
from storefront.pricing.configuration import ProductConfiguration

logger = structlog.get_logger(__name__)


class StockDemand:
    """Units an order needs, keyed by the stock source they come from."""

    def __init__(self):
        self.products = defaultdict(int)
        self.options = defaultdict(lambda: defaultdict(int))

    def add(self, product_id, config: ProductConfiguration, quantity: int):
        pairs = ledger.tracked_selections(product_id, config) if config.has_variation_selections() else []
        if not pairs:
            self.products[product_id] += quantity
            return
        for variation_id, option_id in pairs:
            self.options[variation_id][option_id] += quantity

    def add_line(self, product, config: ProductConfiguration, quantity: int):
        if not product.is_bundle:
            self.add(product.id, config, quantity)
            return

        selected = set(config.selected_optional())
        for member in reader.bundle_items_for(product.id):
            if not member.is_required and member.id not in selected:
                continue
            sub_config = (
                config.bundle_items.configuration_for(member.id) if config.bundle_items else ProductConfiguration()
            )
            self.add(member.product_id, sub_config, quantity * (member.quantity or 1))


def hold_stock(order_id, demand: StockDemand) -> int:
    """Create every hold for an order. Returns the number of reservation rows written."""
    count = 0
    for product_id, quantity in sorted(demand.products.items()):
        reserve_stock(order_id, product_id, quantity)
        count += 1
    for variation_id, quantities in sorted(demand.options.items()):
        count += len(ledger.reserve_variation_options(order_id, variation_id, dict(quantities)))
    return count


def create_order(identity, shipping_address=None) -> Order:
    cart = require_cart(identity)
    valid, errors = validate_cart_for_checkout(cart)
    if not valid:
        raise ValidationError({"cart": errors})

    totals = compute_totals(cart)
    demand = StockDemand()
    lines = []
    for item in cart.items:
        product = reader.get_active_product(item.product_id)
        demand.add_line(product, item.config, item.quantity)
        lines.append(
            {
                "product_id": item.product_id,
                "name": product.name,
                "quantity": item.quantity,
                "configuration": item.configuration,
                "unit_price": item.unit_price,
                "total_price": item.total_price,
            }
        )

    order = Order.create(cart, totals, lines, shipping_address=shipping_address)
    holds = hold_stock(order.id, demand)
    current_domain.repository_for(Order).add(order)
    begin_checkout(cart.id)

    logger.info(
        "Order created",
        order_id=str(order.id),
        cart_id=str(cart.id),
        grand_total=order.grand_total,
        holds=holds,
    )
    return order


@storefront.command(part_of="Order")
class CreateOrder:
    user_id = Identifier()
    session_id = String(max_length=255)
    shipping_address = Text()  # JSON: street, city, state, postal_code, country


@storefront.command_handler(part_of=Order)
class CreateOrderHandler:
    @handle(CreateOrder)
    def create_order(self, command):
        shipping_address = json.loads(command.shipping_address) if command.shipping_address else None
        order = create_order(
            identity_from(session_id=command.session_id, user_id=command.user_id),
            shipping_address=shipping_address,
        )
        return str(order.id)
