import pytest

from posledger.errors import ValidationError
from posledger.models import Customer, Product
from posledger.money import MAX_QUANTITY, coerce_cents, format_cents
from posledger.routes.customers import CUSTOMER_POLICY
from posledger.routes.products import PRODUCT_CREATE_POLICY
from posledger.validation import enforce_rules_customer, enforce_rules_product, validate_payload


@pytest.mark.parametrize(
    "cents,expected",
    [(0, "₦0.00"), (5, "₦0.05"), (8000, "₦80.00"), (123456, "₦1234.56"), (-250, "-₦2.50")],
)
def test_format_cents(cents, expected):
    assert format_cents(cents) == expected


def test_format_cents_custom_symbol():
    assert format_cents(199, "$") == "$1.99"


@pytest.mark.parametrize("value,expected", [(0, 0), (150, 150), ("42", 42), (" 7 ", 7)])
def test_coerce_cents_accepts(value, expected):
    assert coerce_cents(value, "amount") == expected


@pytest.mark.parametrize("value", [None, True, 1.0, "1.5", "1e3", "", -1, 10**12])
def test_coerce_cents_rejects(value):
    with pytest.raises(ValidationError):
        coerce_cents(value, "amount")


def test_coerce_cents_zero_flag():
    with pytest.raises(ValidationError):
        coerce_cents(0, "amount", allow_zero=False)


class TestPayloadValidation:

    def test_product_create_normalizes(self):
        patch = validate_payload(
            model=Product,
            payload={"sku": " ABC ", "name": "Soap", "price_cents": "250", "barcode": ""},
            policy=PRODUCT_CREATE_POLICY,
            partial=False,
        )
        enforce_rules_product(patch)
        assert patch == {"sku": "ABC", "name": "Soap", "price_cents": 250, "barcode": None}

    @pytest.mark.parametrize(
        "payload",
        [
            {"sku": "A", "name": "", "price_cents": 1},
            {"sku": "A", "name": "N", "price_cents": None},
            {"sku": "A" * 65, "name": "N", "price_cents": 1},
            {"sku": "A", "name": "N", "price_cents": "1e2"},
            {"sku": "A", "name": "N"},
        ],
    )
    def test_product_create_rejects(self, payload):
        with pytest.raises(ValidationError):
            validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)

    def test_customer_blank_contact_becomes_null(self):
        patch = validate_payload(
            model=Customer,
            payload={"name": "Ada", "phone": "  ", "email": ""},
            policy=CUSTOMER_POLICY,
            partial=False,
        )
        enforce_rules_customer(patch)
        assert patch["phone"] is None
        assert patch["email"] is None

    @pytest.mark.parametrize("field", ["stock_quantity", "min_stock_level"])
    def test_product_quantity_range(self, field):
        enforce_rules_product({field: MAX_QUANTITY})
        with pytest.raises(ValidationError, match=field):
            enforce_rules_product({field: MAX_QUANTITY + 1})
        with pytest.raises(ValidationError, match=field):
            enforce_rules_product({field: -1})

    def test_customer_limit_range(self):
        with pytest.raises(ValidationError):
            enforce_rules_customer({"credit_limit_cents": 10**10})
