"""Tests for the /api/services endpoints."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from src.repositories.services import ServiceRepository
from src.services.llm_service import AllProvidersFailedError


@pytest.fixture
def catalog(db, run):
    services = ServiceRepository(db)
    rows = [
        ("Teeth Whitening", "cosmetic-dentistry", True),
        ("Dental Implants", "prosthodontics", True),
        ("Braces", "orthodontics", False),
    ]
    return [
        run(services.insert({
            "name": name,
            "slug": name.lower().replace(" ", "-"),
            "category": category,
            "shortDescription": f"{name} for the whole family",
            "isActive": True,
            "isPopular": popular,
            "seo": {"keywords": [name.lower()]},
            "analytics": {"viewCount": 0, "bookingCount": 0},
        }))
        for name, category, popular in rows
    ]


# ── Catalog ──────────────────────────────────────────────────────────


class TestCatalog:
    def test_list_sorted_by_name_with_pagination(self, client, catalog):
        body = client.get("/api/services").json()
        assert [s["name"] for s in body["data"]] == ["Braces", "Dental Implants", "Teeth Whitening"]
        assert body["pagination"] == {"page": 1, "limit": 50, "total": 3, "totalPages": 1}

    def test_list_filters_by_category(self, client, catalog):
        body = client.get("/api/services", params={"category": "orthodontics"}).json()
        assert [s["name"] for s in body["data"]] == ["Braces"]

    def test_search_requires_two_characters(self, client, catalog):
        response = client.get("/api/services/search", params={"q": "a"})
        assert response.status_code == 400
        assert response.json()["message"] == "Search term must be at least 2 characters"

    def test_search_matches_case_insensitively(self, client, catalog):
        body = client.get("/api/services/search", params={"q": "IMPLANT"}).json()
        assert [s["name"] for s in body["data"]] == ["Dental Implants"]
        assert body["count"] == 1

    def test_popular_only_returns_popular(self, client, catalog):
        names = {s["name"] for s in client.get("/api/services/popular").json()["data"]}
        assert names == {"Teeth Whitening", "Dental Implants"}

    def test_categories_include_every_category(self, client, catalog):
        data = client.get("/api/services/categories").json()["data"]
        assert len(data) == 10
        counts = {c["id"]: c["count"] for c in data}
        assert counts["orthodontics"] == 1
        assert counts["endodontics"] == 0

    def test_unknown_category_rejected(self, client):
        response = client.get("/api/services/category/astrology")
        assert response.status_code == 400

    def test_lookup_by_slug_counts_a_view(self, client, catalog):
        first = client.get("/api/services/dental-implants").json()["data"]
        second = client.get(f"/api/services/{first['_id']}").json()["data"]
        assert first["analytics"]["viewCount"] == 1
        assert second["analytics"]["viewCount"] == 2

    def test_missing_service_is_404(self, client):
        response = client.get("/api/services/64b7f0c2a1b2c3d4e5f60718")
        assert response.status_code == 404


class TestCatalogWrites:
    def test_create_requires_doctor(self, client, login):
        login("client")
        response = client.post("/api/services", json={"name": "Veneers", "shortDescription": "Thin shells"})
        assert response.status_code == 403

    def test_create_and_reject_duplicate(self, client, login):
        login("doctor")
        payload = {"name": "Porcelain Veneers", "shortDescription": "Thin shells", "category": "cosmetic-dentistry"}
        created = client.post("/api/services", json=payload)
        assert created.status_code == 201
        data = created.json()["data"]
        assert data["slug"] == "porcelain-veneers"
        assert data["seo"]["metaTitle"] == "Porcelain Veneers | Professional Dental Care"

        duplicate = client.post("/api/services", json=payload)
        assert duplicate.status_code == 409

    def test_create_validates_fields(self, client, login):
        login("doctor")
        response = client.post("/api/services", json={"name": "X", "shortDescription": "y", "category": "magic"})
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "category"

    def test_update_keeps_slug(self, client, login, catalog):
        login("doctor")
        service_id = str(catalog[0]["_id"])
        response = client.put(f"/api/services/{service_id}", json={"shortDescription": "Brighter smiles", "slug": "x"})
        data = response.json()["data"]
        assert data["shortDescription"] == "Brighter smiles"
        assert data["slug"] == "teeth-whitening"

    def test_soft_delete_deactivates(self, client, login, catalog, db, run):
        login("doctor")
        response = client.delete(f"/api/services/{catalog[2]['_id']}")
        assert response.json()["message"] == "Service deactivated successfully"
        stored = run(db.dental_services.find_one({"_id": catalog[2]["_id"]}))
        assert stored["isActive"] is False

    def test_permanent_delete_removes_pages(self, client, login, catalog, db, run):
        login("doctor")
        run(db.service_pages.insert_one({"serviceId": catalog[2]["_id"], "title": "Braces"}))
        body = client.delete(f"/api/services/{catalog[2]['_id']}", params={"permanent": "true"}).json()
        assert body["deletedPages"] == 1
        assert run(db.dental_services.find_one({"_id": catalog[2]["_id"]})) is None

    def test_invalid_id_is_400(self, client, login):
        login("doctor")
        response = client.delete("/api/services/not-an-id")
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_SERVICE_ID"


# ── Service pages ────────────────────────────────────────────────────


class TestServicePages:
    def test_create_then_update_same_page(self, client, login, website, catalog):
        doctor = login("doctor")
        site = website(doctor)
        payload = {"websiteId": str(site["_id"]), "serviceId": str(catalog[1]["_id"])}

        created = client.post("/api/services/pages", json=payload)
        assert created.status_code == 201
        page = created.json()["data"]
        assert page["title"] == "Dental Implants"
        assert page["slug"] == "dental-implants"
        assert page["status"] == "draft"

        updated = client.post("/api/services/pages", json={**payload, "title": "Implants in Porto"})
        assert updated.status_code == 200
        assert updated.json()["data"]["_id"] == page["_id"]
        assert updated.json()["data"]["title"] == "Implants in Porto"

        listed = client.get("/api/services/pages").json()
        assert listed["pagination"]["total"] == 1

    def test_page_for_foreign_website_is_404(self, client, login, website, catalog, db, run):
        login("doctor")
        other = {"_id": run(db.users.insert_one({"email": "o@example.com"})).inserted_id}
        site = website(other)
        response = client.post(
            "/api/services/pages", json={"websiteId": str(site["_id"]), "serviceId": str(catalog[0]["_id"])},
        )
        assert response.status_code == 404

    def test_status_change_stamps_published_at(self, client, login, website, catalog):
        doctor = login("doctor")
        site = website(doctor)
        page = client.post(
            "/api/services/pages", json={"websiteId": str(site["_id"]), "serviceId": str(catalog[1]["_id"])},
        ).json()["data"]

        published = client.patch(f"/api/services/pages/{page['_id']}/status", json={"status": "published"})
        assert published.json()["data"]["status"] == "published"
        assert published.json()["data"]["publishedAt"] is not None

        bad = client.patch(f"/api/services/pages/{page['_id']}/status", json={"status": "live"})
        assert bad.status_code == 422

    def test_get_page_counts_views(self, client, login, website, catalog):
        doctor = login("doctor")
        site = website(doctor)
        page = client.post(
            "/api/services/pages", json={"websiteId": str(site["_id"]), "serviceId": str(catalog[1]["_id"])},
        ).json()["data"]
        client.get(f"/api/services/pages/{page['_id']}")
        data = client.get(f"/api/services/pages/{page['_id']}").json()["data"]
        assert data["analytics"]["views"] == 2

    def test_other_doctor_cannot_edit(self, client, app, login, website, catalog, db, run):
        owner = login("doctor")
        site = website(owner)
        page = client.post(
            "/api/services/pages", json={"websiteId": str(site["_id"]), "serviceId": str(catalog[1]["_id"])},
        ).json()["data"]

        login("doctor", email="intruder@example.com", googleId="google-intruder")
        response = client.put(f"/api/services/pages/{page['_id']}", json={"title": "Mine now"})
        assert response.status_code == 403

    def test_public_page_needs_publication(self, client, login, website, catalog):
        doctor = login("doctor")
        site = website(doctor)
        page = client.post(
            "/api/services/pages", json={"websiteId": str(site["_id"]), "serviceId": str(catalog[1]["_id"])},
        ).json()["data"]
        url = f"/api/services/public/page/{site['_id']}/dental-implants"

        assert client.get(url).status_code == 404
        client.patch(f"/api/services/pages/{page['_id']}/status", json={"status": "published"})
        body = client.get(url).json()["data"]
        assert body["page"]["_id"] == page["_id"]
        assert body["website"]["url"] == "https://smile-studio.docwebsite.app"
        assert body["blogs"] == []

    def test_get_page_counts_unique_visitors(self, client, login, website, catalog):
        doctor = login("doctor")
        site = website(doctor)
        page = client.post(
            "/api/services/pages", json={"websiteId": str(site["_id"]), "serviceId": str(catalog[1]["_id"])},
        ).json()["data"]
        client.get(f"/api/services/pages/{page['_id']}", params={"unique": "true"})
        analytics = client.get(f"/api/services/pages/{page['_id']}").json()["data"]["analytics"]
        assert (analytics["views"], analytics["uniqueViews"]) == (2, 1)
        assert analytics["lastViewed"] is not None

    def test_deleted_service_hides_integrated_page(self, client, login, website, db, run):
        doctor = login("doctor")
        site = website(doctor)
        generated = client.post(
            "/api/services/generate-content-from-data",
            json={"serviceName": "Dental Implants", "websiteId": str(site["_id"]), "fastMode": True},
        ).json()["data"]
        url = f"/api/services/public/page/{site['_id']}/dental-implants"
        assert client.get(url).status_code == 200

        client.delete(f"/api/services/{generated['service']['_id']}")
        response = client.get(url)
        assert response.status_code == 404
        assert response.json()["code"] == "PAGE_NOT_FOUND"

    def test_deactivated_service_hides_page(self, client, login, website, catalog, db, run):
        doctor = login("doctor")
        site = website(doctor)
        page = client.post(
            "/api/services/pages",
            json={"websiteId": str(site["_id"]), "serviceId": str(catalog[1]["_id"]), "status": "published"},
        ).json()["data"]
        url = f"/api/services/public/page/{site['_id']}/{page['slug']}"
        assert client.get(url).status_code == 200

        run(db.dental_services.update_one({"_id": catalog[1]["_id"]}, {"$set": {"isActive": False}}))
        assert client.get(url).status_code == 404


# ── Generation ───────────────────────────────────────────────────────


class TestGenerateContent:
    def test_fast_mode_creates_page_and_blogs(self, client, login, website, db, run):
        doctor = login("doctor")
        site = website(doctor)
        payload = {"serviceName": "Dental Implants", "websiteId": str(site["_id"]), "fastMode": True}

        response = client.post("/api/services/generate-content-from-data", json=payload)
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Service content generated successfully"
        assert body["blogsGenerated"] == 6
        page = body["data"]["page"]
        assert page["isIntegrated"] is True
        assert page["generation"]["fastMode"] is True
        assert len(page["content"]["faq"]) <= 25
        assert all(len(b["title"]) <= 60 for b in page["content"]["benefits"])
        assert page["readingTime"] >= 1

    def test_repeating_generation_updates_instead_of_duplicating(self, client, login, website, db, run):
        doctor = login("doctor")
        site = website(doctor)
        payload = {"serviceName": "Dental Implants", "websiteId": str(site["_id"]), "fastMode": True}

        first = client.post("/api/services/generate-content-from-data", json=payload).json()
        second = client.post("/api/services/generate-content-from-data", json=payload).json()

        assert second["message"] == "Service content updated successfully"
        assert second["data"]["page"]["_id"] == first["data"]["page"]["_id"]
        assert run(db.service_pages.count_documents({})) == 1
        assert run(db.blogs.count_documents({})) == 6
        assert run(db.dental_services.count_documents({})) == 1

    def test_website_id_required(self, client, login):
        login("doctor")
        response = client.post("/api/services/generate-content-from-data", json={"serviceName": "Implants"})
        assert response.status_code == 400
        assert response.json()["code"] == "WEBSITE_ID_REQUIRED"

    def test_name_without_latin_characters_is_rejected(self, client, login, website, db, run):
        doctor = login("doctor")
        site = website(doctor)
        response = client.post(
            "/api/services/generate-content-from-data",
            json={"serviceName": "牙齿美白", "websiteId": str(site["_id"]), "fastMode": True},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_SERVICE_NAME"
        assert run(db.dental_services.count_documents({})) == 0

    def test_invalid_website_id(self, client, login):
        login("doctor")
        response = client.post(
            "/api/services/generate-content-from-data", json={"serviceName": "Implants", "websiteId": "abc"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_WEBSITE_ID"

    def test_all_providers_failing_is_500(self, client, app, login, website, db, run):
        doctor = login("doctor")
        site = website(doctor)
        app.state.llm_service.generate_comprehensive_content = AsyncMock(
            side_effect=AllProvidersFailedError("All providers failed. Last error: quota"),
        )
        response = client.post(
            "/api/services/generate-content-from-data",
            json={"serviceName": "Dental Implants", "websiteId": str(site["_id"])},
        )
        assert response.status_code == 500
        body = response.json()
        assert body["code"] == "GENERATION_FAILED"
        assert "quota" in body["error"]
        assert run(db.service_pages.count_documents({})) == 0

    def test_llm_status(self, client, app, login):
        login("client")
        app.state.llm_service.get_provider_status.return_value = {"enabledProviders": ["google"]}
        body = client.get("/api/services/llm/status").json()
        assert body["data"]["enabledProviders"] == ["google"]

    def test_clear_llm_cache_for_a_service(self, client, app, login):
        login("doctor")
        app.state.llm_service.clear_cache.return_value = 3
        response = client.delete("/api/services/llm/cache", params={"serviceName": "Implants"})
        assert response.status_code == 200
        assert response.json()["data"] == {"removed": 3, "serviceName": "Implants"}
        app.state.llm_service.clear_cache.assert_called_once_with("Implants")

    def test_clearing_llm_cache_needs_a_doctor(self, client, login):
        login("client")
        assert client.delete("/api/services/llm/cache").status_code == 403
