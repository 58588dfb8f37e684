"""
Product and customer master data services.
"""

import pytest

from posledger.errors import ConflictError, NotFoundError
from posledger.models import ActivityLog, Customer, Product
from posledger.services import customer_service, products_service


class TestProductsService:

    def test_create_defaults(self, db_session, make_product):
        product = make_product(stock=0)
        assert product.min_stock_level == 10
        assert product.cost_cents == 0
        assert product.stock_quantity == 0
        assert product.movements == []

    def test_duplicate_barcode(self, db_session, make_product):
        make_product(barcode="123")
        with pytest.raises(ConflictError, match="Barcode"):
            make_product(barcode="123")

    def test_update_ignores_stock(self, db_session, make_product):
        product = make_product(stock=4)
        products_service.update_product(product.id, patch={"stock_quantity": 100, "name": "Renamed"})
        db_session.expire_all()
        product = db_session.get(Product, product.id)
        assert product.stock_quantity == 4
        assert product.name == "Renamed"

    def test_update_sku_conflict(self, db_session, make_product):
        make_product(sku="A")
        b = make_product(sku="B")
        with pytest.raises(ConflictError):
            products_service.update_product(b.id, patch={"sku": "A"})

    def test_update_bumps_version(self, db_session, make_product):
        product = make_product()
        before = product.version_id
        products_service.update_product(product.id, patch={"price_cents": 1234})
        assert db_session.get(Product, product.id).version_id == before + 1

    def test_deactivate(self, db_session, make_product):
        product = make_product()
        products_service.deactivate_product(product.id)
        with pytest.raises(NotFoundError):
            products_service.get_product(product.id)
        with pytest.raises(NotFoundError):
            products_service.lookup_product(product.sku)

    def test_categories_distinct_sorted(self, db_session, make_product):
        make_product(category="Drinks")
        make_product(category="Bakery")
        make_product(category="Drinks")
        make_product(category=None)
        assert products_service.list_categories() == ["Bakery", "Drinks"]

    def test_pagination(self, db_session, make_product):
        for i in range(5):
            make_product(name=f"Item {i}")
        page = products_service.list_products(page=2, per_page=2)
        assert [p["name"] for p in page["items"]] == ["Item 2", "Item 3"]
        assert page["pagination"] == {
            "page": 2, "per_page": 2, "total": 5, "total_pages": 3, "has_next": True, "has_prev": True,
        }

    def test_writes_activity(self, db_session, make_product):
        product = make_product()
        entry = db_session.query(ActivityLog).filter_by(action="create_product").one()
        assert entry.entity_id == product.id


class TestCustomerService:

    def test_duplicate_contact_among_active_only(self, db_session, make_customer):
        first = make_customer(phone="0801", email="a@x.test")
        with pytest.raises(ConflictError):
            make_customer(phone="0801")
        with pytest.raises(ConflictError):
            make_customer(email="a@x.test")

        first.is_active = False
        db_session.commit()
        assert make_customer(phone="0801").phone == "0801"

    def test_update_keeps_balance_field(self, db_session, make_customer):
        customer = make_customer(credit_limit_cents=1000)
        customer_service.update_customer(
            customer.id, patch={"credit_limit_cents": 5000, "outstanding_balance_cents": 999}
        )
        db_session.expire_all()
        customer = db_session.get(Customer, customer.id)
        assert customer.credit_limit_cents == 5000
        assert customer.outstanding_balance_cents == 0

    def test_update_contact_conflict(self, db_session, make_customer):
        make_customer(phone="0801")
        other = make_customer(phone="0802")
        with pytest.raises(ConflictError):
            customer_service.update_customer(other.id, patch={"phone": "0801"})

    def test_update_missing(self, db_session):
        with pytest.raises(NotFoundError):
            customer_service.update_customer(777, patch={"name": "X"})

    def test_list_search(self, db_session, make_customer):
        make_customer(name="Bola", phone="0901")
        make_customer(name="Chidi", email="chidi@x.test")
        assert [c["name"] for c in customer_service.list_customers(search="chi")["items"]] == ["Chidi"]
        assert [c["name"] for c in customer_service.list_customers(search="0901")["items"]] == ["Bola"]

    def test_quick_search_limits(self, db_session, make_customer):
        for i in range(12):
            make_customer(name=f"Kemi {i:02d}")
        assert len(customer_service.search_customers("Kemi")) == 10
        assert customer_service.search_customers("K") == []
        assert customer_service.search_customers(None) == []

    def test_available_credit(self, db_session, make_customer):
        assert make_customer(credit_limit_cents=0).available_credit_cents is None
        assert make_customer(credit_limit_cents=700).available_credit_cents == 700
