"""
StudioGen Backend - Project API Integration Tests
===================================================

What:  /api/projects CRUD, saving images and serving them from /api/files.
How:   Real app over ASGITransport, SQLite database, temporary STORAGE_ROOT.
"""

import uuid

import pytest

from conftest import bearer, signup_user


async def _create(client, headers, name="Summer campaign"):
    response = await client.post("/api/projects", json={"name": name}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestProjectCrud:
    @pytest.mark.asyncio
    async def test_create_and_get(self, client, auth_headers):
        created = await _create(client, auth_headers, "  Summer campaign  ")

        assert created["name"] == "Summer campaign"
        assert created["images"] == []
        assert isinstance(created["createdAt"], int)

        fetched = await client.get(f"/api/projects/{created['id']}", headers=auth_headers)
        assert fetched.status_code == 200
        assert fetched.json()["data"]["id"] == created["id"]

    @pytest.mark.asyncio
    async def test_list_is_empty_for_new_user(self, client, auth_headers):
        response = await client.get("/api/projects", headers=auth_headers)
        assert response.json() == {"success": True, "data": []}

    @pytest.mark.asyncio
    async def test_rename(self, client, auth_headers):
        created = await _create(client, auth_headers)

        response = await client.patch(
            f"/api/projects/{created['id']}", json={"name": "Autumn"}, headers=auth_headers
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["name"] == "Autumn"
        assert data["updatedAt"] >= created["updatedAt"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "   ", "x" * 101])
    async def test_invalid_name_rejected(self, client, auth_headers, name):
        response = await client.post("/api/projects", json={"name": name}, headers=auth_headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_blank_rename_rejected(self, client, auth_headers):
        created = await _create(client, auth_headers)

        response = await client.patch(
            f"/api/projects/{created['id']}", json={"name": " \t "}, headers=auth_headers
        )
        assert response.status_code == 400

        fetched = await client.get(f"/api/projects/{created['id']}", headers=auth_headers)
        assert fetched.json()["data"]["name"] == "Summer campaign"

    @pytest.mark.asyncio
    async def test_delete(self, client, auth_headers):
        created = await _create(client, auth_headers)

        response = await client.delete(f"/api/projects/{created['id']}", headers=auth_headers)
        assert response.json() == {"success": True, "message": "Project deleted successfully"}

        missing = await client.get(f"/api/projects/{created['id']}", headers=auth_headers)
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client):
        response = await client.get("/api/projects")
        assert response.status_code == 401


class TestOwnership:
    @pytest.mark.asyncio
    async def test_other_users_project_is_not_found(self, client, auth_headers):
        created = await _create(client, auth_headers)
        stranger = await signup_user(client, identifier="stranger@example.com")
        headers = bearer(stranger["accessToken"])

        for method in ("get", "delete"):
            response = await getattr(client, method)(f"/api/projects/{created['id']}", headers=headers)
            assert response.status_code == 404
            assert response.json()["error"] == "not_found"

        listing = await client.get("/api/projects", headers=headers)
        assert listing.json()["data"] == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("project_id", ["not-a-uuid", str(uuid.uuid4())])
    async def test_malformed_or_unknown_id(self, client, auth_headers, project_id):
        response = await client.get(f"/api/projects/{project_id}", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Project not found"


class TestProjectImages:
    @pytest.mark.asyncio
    async def test_data_url_is_stored_and_served(self, client, auth_headers, png_data_url, png_bytes):
        project = await _create(client, auth_headers)

        response = await client.post(
            f"/api/projects/{project['id']}/images",
            json={"imageUrl": png_data_url, "prompt": "Iced latte", "settings": {"format": "1:1"}},
            headers=auth_headers,
        )

        assert response.status_code == 201
        image = response.json()["data"]
        assert image["imageUrl"].startswith("/api/files/")
        assert image["imageUrl"].endswith(".png")
        assert image["prompt"] == "Iced latte"
        assert image["settings"] == {"format": "1:1"}

        served = await client.get(image["imageUrl"])
        assert served.status_code == 200
        assert served.content == png_bytes
        assert served.headers["content-type"] == "image/png"
        assert "immutable" in served.headers["cache-control"]

    @pytest.mark.asyncio
    async def test_external_url_is_kept(self, client, auth_headers):
        project = await _create(client, auth_headers)
        url = "https://cdn.example.com/poster.png"

        response = await client.post(
            f"/api/projects/{project['id']}/images", json={"imageUrl": url}, headers=auth_headers
        )

        assert response.json()["data"]["imageUrl"] == url
        assert response.json()["data"]["prompt"] == ""

    @pytest.mark.asyncio
    async def test_invalid_image_payload_rejected(self, client, auth_headers):
        project = await _create(client, auth_headers)
        response = await client.post(
            f"/api/projects/{project['id']}/images",
            json={"imageUrl": "data:image/png;base64,bm90IGFuIGltYWdl"},
            headers=auth_headers,
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_list_shows_count_and_four_previews(self, client, auth_headers):
        project = await _create(client, auth_headers)
        empty = await _create(client, auth_headers, "Empty")
        for index in range(6):
            await client.post(
                f"/api/projects/{project['id']}/images",
                json={"imageUrl": f"https://cdn.example.com/{index}.png"},
                headers=auth_headers,
            )

        listing = (await client.get("/api/projects", headers=auth_headers)).json()["data"]

        # Adding images bumps updated_at, so the busy project comes first
        assert [p["id"] for p in listing] == [project["id"], empty["id"]]
        assert listing[0]["imageCount"] == 6
        assert len(listing[0]["previewImages"]) == 4
        assert listing[1]["imageCount"] == 0
        assert listing[1]["previewImages"] == []

        detail = (await client.get(f"/api/projects/{project['id']}", headers=auth_headers)).json()["data"]
        assert len(detail["images"]) == 6

    @pytest.mark.asyncio
    async def test_delete_image_removes_file(self, client, auth_headers, png_data_url):
        project = await _create(client, auth_headers)
        image = (
            await client.post(
                f"/api/projects/{project['id']}/images",
                json={"imageUrl": png_data_url},
                headers=auth_headers,
            )
        ).json()["data"]

        response = await client.delete(
            f"/api/projects/{project['id']}/images/{image['id']}", headers=auth_headers
        )
        assert response.json()["message"] == "Image deleted successfully"

        assert (await client.get(image["imageUrl"])).status_code == 404
        again = await client.delete(
            f"/api/projects/{project['id']}/images/{image['id']}", headers=auth_headers
        )
        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_files_route_rejects_traversal(self, client):
        response = await client.get("/api/files/..%2F..%2Fetc%2Fpasswd")
        assert response.status_code == 404
