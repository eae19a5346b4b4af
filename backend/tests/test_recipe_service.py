"""
Recipe links and requirement resolution.
"""

from decimal import Decimal

import pytest

from cafe_pos.models import RecipeLink
from cafe_pos.services import recipe_service
from cafe_pos.services.order_service import OrderLineRequest
from cafe_pos.services.recipe_service import RecipeError, RecipeResolver
from cafe_pos.validation import ValidationError

from conftest import make_item, make_product


def _line(product, quantity):
    return OrderLineRequest(product_id=product.id, quantity=quantity, unit_price_minor=product.price_minor)


class TestResolver:
    def test_sums_requirements_across_lines(self, db_session, latte, cup, milk):
        required = RecipeResolver(db_session).resolve([_line(latte, 2), _line(latte, 1)])

        assert required == {cup.id: Decimal("3"), milk.id: Decimal("600")}

    def test_product_without_links_contributes_nothing(self, db_session, cookie):
        assert RecipeResolver(db_session).resolve([_line(cookie, 5)]) == {}

    def test_shared_item_is_summed_across_products(self, db_session, drinks, latte, cup):
        tea = make_product(db_session, drinks, "Tea", "0.900", {cup: 1})

        required = RecipeResolver(db_session).resolve([_line(latte, 2), _line(tea, 3)])

        assert required[cup.id] == Decimal("5")

    def test_keeps_fractional_precision(self, db_session, drinks):
        syrup = make_item(db_session, "Syrup", 10)
        mocha = make_product(db_session, drinks, "Mocha", "1.800", {syrup: "0.25"})

        required = RecipeResolver(db_session).resolve([_line(mocha, 3)])

        assert required[syrup.id] == Decimal("0.75")

    def test_empty_lines(self, db_session):
        assert RecipeResolver(db_session).resolve([]) == {}


class TestRecipeLinks:
    def test_relinking_overwrites_multiplier(self, db_session, latte, cup):
        link = recipe_service.set_recipe_link(latte.id, cup.id, 2)

        assert link.quantity_per_order == Decimal("2")
        assert db_session.query(RecipeLink).filter_by(product_id=latte.id, inventory_item_id=cup.id).count() == 1

    def test_new_link_defaults_to_one(self, db_session, cookie, cup):
        link = recipe_service.set_recipe_link(cookie.id, cup.id)

        assert link.quantity_per_order == Decimal("1")
        assert [l.inventory_item_id for l in recipe_service.list_links(product_id=cookie.id)] == [cup.id]

    @pytest.mark.parametrize("multiplier", [0, -1, "abc"])
    def test_rejects_non_positive_multiplier(self, db_session, cookie, cup, multiplier):
        with pytest.raises(ValidationError):
            recipe_service.set_recipe_link(cookie.id, cup.id, multiplier)

    def test_unknown_product_or_item(self, db_session, cookie, cup):
        with pytest.raises(RecipeError):
            recipe_service.set_recipe_link(999, cup.id, 1)
        with pytest.raises(RecipeError):
            recipe_service.set_recipe_link(cookie.id, 999, 1)

    def test_remove_link(self, db_session, latte, cup, milk):
        link = db_session.query(RecipeLink).filter_by(product_id=latte.id, inventory_item_id=cup.id).one()

        recipe_service.remove_link(link.id)

        assert [l.inventory_item_id for l in recipe_service.list_links(product_id=latte.id)] == [milk.id]
        with pytest.raises(RecipeError):
            recipe_service.remove_link(link.id)
