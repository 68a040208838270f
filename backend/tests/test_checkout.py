"""
Tests for the poster checkout endpoint.
"""
from jose import jwt

from conftest import JWT_SECRET

CHECKOUT_URL = "/api/checkout/poster"


def checkout_body(**overrides) -> dict:
    return {"posterId": "aurora", "size": "18x24", "paper": "standard", **overrides}


class TestPosterCheckout:
    """Tests for POST /api/checkout/poster."""

    async def test_guest_checkout(self, async_client, payments):
        """Test that a guest gets a hosted checkout URL."""
        response = await async_client.post(CHECKOUT_URL, json=checkout_body())

        assert response.status_code == 200
        assert response.json() == {"url": "https://checkout.stripe.test/cs_new_1"}

        params = payments.created[0]
        line_item = params["line_items"][0]
        assert line_item["price_data"]["unit_amount"] == 3900
        assert line_item["quantity"] == 1
        assert params["metadata"]["poster_id"] == "aurora"
        assert params["metadata"]["print_url"] == "https://posters.test/prints/aurora_18x24_in_STRICT.png"
        assert "account_id" not in params["metadata"]
        assert "customer_email" not in params

    async def test_signed_in_checkout(self, async_client, payments):
        """Test that a valid session token links the checkout to the account."""
        token = jwt.encode({"sub": "user_42", "email": "ada@example.com"}, JWT_SECRET, algorithm="HS256")

        response = await async_client.post(
            CHECKOUT_URL,
            json=checkout_body(),
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 200
        params = payments.created[0]
        assert params["metadata"]["account_id"] == "user_42"
        assert params["customer_email"] == "ada@example.com"

    async def test_invalid_token_falls_back_to_guest(self, async_client, payments):
        """Test that a forged token is treated as a guest checkout."""
        token = jwt.encode({"sub": "user_42"}, "not-the-secret", algorithm="HS256")

        response = await async_client.post(
            CHECKOUT_URL,
            json=checkout_body(),
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 200
        assert "account_id" not in payments.created[0]["metadata"]

    async def test_art_mode_and_quantity_clamp(self, async_client, payments):
        """Test mode normalization and quantity clamping."""
        response = await async_client.post(
            CHECKOUT_URL,
            json=checkout_body(mode="art", quantity=50, paper="FINEART", size="A2"),
        )

        assert response.status_code == 200
        params = payments.created[0]
        assert params["line_items"][0]["quantity"] == 10
        assert params["line_items"][0]["price_data"]["unit_amount"] == 7900
        assert params["metadata"]["mode"] == "ART"
        assert params["metadata"]["print_url"].endswith("aurora_A2_420x594mm_ART.png")

    async def test_unknown_poster(self, async_client):
        """Test that an unknown poster returns 404."""
        response = await async_client.post(CHECKOUT_URL, json=checkout_body(posterId="missing"))

        assert response.status_code == 404
        assert response.json()["type"] == "NotFoundError"

    async def test_variant_without_price(self, async_client):
        """Test that an unpriced variant is refused."""
        response = await async_client.post(CHECKOUT_URL, json=checkout_body(paper="fineart", size="12x18"))

        assert response.status_code == 422
        assert response.json()["detail"] == "missing price for variant"

    async def test_invalid_size(self, async_client, payments):
        """Test that an unsupported size fails request validation."""
        response = await async_client.post(CHECKOUT_URL, json=checkout_body(size="24x36"))

        assert response.status_code == 422
        assert payments.created == []
