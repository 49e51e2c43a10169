"""
Tests for the product catalog and ingredient ("alimento") endpoints.
"""

import pytest
from sqlalchemy.exc import OperationalError

from rest_api.services.domain import ProductService
from shared.utils.exceptions import DatabaseError, DuplicateEntityError, NotFoundError


class TestProductService:
    def test_create_trims_and_checks_duplicates(self, db_session, seed_tenant):
        service = ProductService(db_session)

        created = service.create({"name": "  Empanada  ", "price_cents": 1500}, seed_tenant.id, None, None)

        assert created.name == "Empanada"
        with pytest.raises(DuplicateEntityError):
            service.create({"name": "EMPANADA", "price_cents": 100}, seed_tenant.id, None, None)

    def test_soft_deleted_product_frees_its_name(self, db_session, seed_tenant, make_product):
        service = ProductService(db_session)
        product = make_product("Churrasco")

        service.delete(product.id, seed_tenant.id, None, None)

        assert service.create({"name": "Churrasco", "price_cents": 100}, seed_tenant.id, None, None).id != product.id
        with pytest.raises(NotFoundError):
            service.get_by_id(product.id, seed_tenant.id)

    def test_failed_commit_becomes_database_error(self, db_session, seed_tenant, monkeypatch):
        service = ProductService(db_session)

        def broken_commit():
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(db_session, "commit", broken_commit)

        with pytest.raises(DatabaseError) as exc_info:
            service.create({"name": "Cazuela", "price_cents": 4500}, seed_tenant.id, None, None)

        assert exc_info.value.status_code == 500
        assert "crear producto" in exc_info.value.detail


class TestProductEndpoints:
    def test_crud_flow(self, client, auth_headers):
        created = client.post(
            "/api/products",
            json={"name": "Pisco Sour", "price_cents": 4500, "category": "Bebidas"},
            headers=auth_headers,
        )
        product_id = created.json()["data"]["id"]

        updated = client.put(f"/api/products/{product_id}", json={"price_cents": 5000}, headers=auth_headers)
        listed = client.get("/api/products", params={"category": "Bebidas"}, headers=auth_headers)
        deleted = client.delete(f"/api/products/{product_id}", headers=auth_headers)
        after = client.get(f"/api/products/{product_id}", headers=auth_headers)

        assert created.status_code == 201
        assert updated.json()["data"]["price_cents"] == 5000
        assert updated.json()["data"]["name"] == "Pisco Sour"
        assert [p["id"] for p in listed.json()["data"]] == [product_id]
        assert deleted.status_code == 200
        assert after.status_code == 404

    def test_negative_price_rejected(self, client, auth_headers):
        response = client.post("/api/products", json={"name": "Gratis", "price_cents": -1}, headers=auth_headers)

        assert response.status_code == 400

    def test_unsafe_image_url_rejected(self, client, auth_headers):
        response = client.post(
            "/api/products",
            json={"name": "Torta", "price_cents": 100, "image": "javascript:alert(1)"},
            headers=auth_headers,
        )

        assert response.status_code == 400

    def test_waiter_can_view_but_not_create(self, client, waiter_auth_headers, make_product):
        make_product("Completo")

        listed = client.get("/api/products", headers=waiter_auth_headers)
        created = client.post(
            "/api/products", json={"name": "Nuevo", "price_cents": 100}, headers=waiter_auth_headers
        )

        assert listed.status_code == 200
        assert created.status_code == 403
        assert created.json()["message"] == "No autorizado para crear productos"

    def test_public_menu_lists_available_products(self, client, seed_tenant, seed_branch, make_product):
        make_product("Completo")
        make_product("Agotado", available=False)

        response = client.get("/api/products/public/restaurante", params={"restaurante": "la picada"})

        assert response.status_code == 200
        assert [p["name"] for p in response.json()["data"]] == ["Completo"]

    def test_public_menu_unknown_restaurant(self, client, seed_tenant):
        response = client.get("/api/products/public/restaurante", params={"restaurante": "Inexistente"})

        assert response.status_code == 404

    def test_public_menu_unknown_site(self, client, seed_tenant, seed_branch):
        response = client.get(
            "/api/products/public/restaurante", params={"restaurante": "La Picada", "sede": "Marte"}
        )

        assert response.status_code == 404


class TestIngredientEndpoints:
    def test_create_with_recipe_links(self, client, auth_headers, make_product):
        completo = make_product("Completo")
        italiano = make_product("Italiano")

        response = client.post(
            "/api/alimentos",
            json={
                "name": "Palta",
                "stock": 20,
                "unit_cost_cents": 300,
                "products": [
                    {"product_id": completo.id, "quantity_required": 1},
                    {"product_id": italiano.id, "quantity_required": 2},
                ],
            },
            headers=auth_headers,
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["stock"] == 20
        assert {(p["product_id"], p["quantity_required"]) for p in data["products"]} == {
            (completo.id, 1),
            (italiano.id, 2),
        }

    def test_ingredient_needs_a_product(self, client, auth_headers):
        response = client.post("/api/alimentos", json={"name": "Sal", "products": []}, headers=auth_headers)

        assert response.status_code == 400

    def test_duplicate_link_rejected(self, client, auth_headers, make_product):
        completo = make_product("Completo")

        response = client.post(
            "/api/alimentos",
            json={
                "name": "Tomate",
                "products": [
                    {"product_id": completo.id, "quantity_required": 1},
                    {"product_id": completo.id, "quantity_required": 2},
                ],
            },
            headers=auth_headers,
        )

        assert response.status_code == 400

    def test_unknown_product_link(self, client, auth_headers):
        response = client.post(
            "/api/alimentos",
            json={"name": "Tomate", "products": [{"product_id": 4242, "quantity_required": 1}]},
            headers=auth_headers,
        )

        assert response.status_code == 404

    def test_restock_and_relink(self, client, auth_headers, make_product, make_ingredient):
        completo = make_product("Completo")
        italiano = make_product("Italiano")
        bread = make_ingredient("Pan", stock=0, links={completo: 1})

        response = client.put(
            f"/api/alimentos/{bread.id}",
            json={"stock": 50, "products": [{"product_id": italiano.id, "quantity_required": 1}]},
            headers=auth_headers,
        )

        data = response.json()["data"]
        assert data["stock"] == 50
        assert [p["product_id"] for p in data["products"]] == [italiano.id]

    def test_delete_ingredient(self, client, auth_headers, make_product, make_ingredient):
        bread = make_ingredient("Pan", links={make_product("Completo"): 1})

        client.delete(f"/api/alimentos/{bread.id}", headers=auth_headers)
        listed = client.get("/api/alimentos", headers=auth_headers)

        assert listed.json()["data"] == []
