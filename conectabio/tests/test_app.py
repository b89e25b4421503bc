import base64
import io
import os
import unittest
from unittest.mock import MagicMock, patch

os.environ.setdefault("USE_IN_MEMORY_BACKENDS", "true")

from fastapi.testclient import TestClient
from pypdf import PdfWriter

from conectabio.app import create_app
from conectabio.auth import InMemoryAuthClient
from conectabio.config import get_settings
from conectabio.db import InMemoryDbClient
from conectabio.dependencies import get_auth_client, get_db_client, get_storage_client
from conectabio.storage import InMemoryStorageClient


def pdf_data_uri(page_count: int) -> str:
    writer = PdfWriter()
    for _ in range(page_count):
        writer.add_blank_page(width=200, height=200)
    buffer = io.BytesIO()
    writer.write(buffer)
    return "data:application/pdf;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


class ConectaBioApiTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(create_app())
        db = get_db_client()
        if isinstance(db, InMemoryDbClient):
            db.reset()
        storage = get_storage_client()
        if isinstance(storage, InMemoryStorageClient):
            storage.reset()
        auth = get_auth_client()
        if isinstance(auth, InMemoryAuthClient):
            auth.reset()

    def _sign_up_and_login(self, username: str = "ana", email: str = "ana@example.com") -> dict:
        response = self.client.post(
            "/api/auth/signup",
            json={"email": email, "password": "secret123", "username": username},
        )
        self.assertEqual(response.status_code, 201)
        response = self.client.post(
            "/api/auth/login", json={"email": email, "password": "secret123"}
        )
        self.assertEqual(response.status_code, 200)
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")

    def test_signup_login_and_edit_page(self):
        response = self.client.post(
            "/api/auth/signup",
            json={"email": "ana@example.com", "password": "secret123", "username": "Ana Maria"},
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["username"], "anamaria")

        login = self.client.post(
            "/api/auth/login", json={"email": "ana@example.com", "password": "secret123"}
        )
        self.assertEqual(login.status_code, 200)
        self.assertEqual(login.json()["redirect"], "/anamaria/edit")
        headers = {"Authorization": f"Bearer {login.json()['access_token']}"}

        page = self.client.get("/api/pages/anamaria/edit", headers=headers)
        self.assertEqual(page.status_code, 200)
        payload = page.json()
        self.assertTrue(payload["empty"])
        self.assertEqual(payload["profile"]["role"], "free")

    def test_signup_rejects_taken_and_short_usernames(self):
        self._sign_up_and_login()

        taken = self.client.post(
            "/api/auth/signup",
            json={"email": "other@example.com", "password": "secret123", "username": "ANA"},
        )
        self.assertEqual(taken.status_code, 400)

        short = self.client.post(
            "/api/auth/signup",
            json={"email": "other@example.com", "password": "secret123", "username": "a!"},
        )
        self.assertEqual(short.status_code, 400)

        weak = self.client.post(
            "/api/auth/signup",
            json={"email": "other@example.com", "password": "123", "username": "other"},
        )
        self.assertEqual(weak.status_code, 400)

    def test_login_with_wrong_password(self):
        self._sign_up_and_login()
        response = self.client.post(
            "/api/auth/login", json={"email": "ana@example.com", "password": "wrong-pass"}
        )
        self.assertEqual(response.status_code, 401)

    def test_username_availability(self):
        self._sign_up_and_login()
        self.assertFalse(self.client.get("/api/usernames/Ana").json()["available"])
        self.assertTrue(self.client.get("/api/usernames/bia").json()["available"])
        self.assertEqual(self.client.get("/api/usernames/ab").status_code, 400)

    def test_edit_page_requires_auth_and_canonical_username(self):
        self.assertEqual(self.client.get("/api/pages/ana/edit").status_code, 401)

        headers = self._sign_up_and_login()
        response = self.client.get("/api/pages/someone-else/edit", headers=headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["redirect"], "/ana/edit")
        self.assertIsNone(response.json()["profile"])

    def test_card_lifecycle(self):
        headers = self._sign_up_and_login()

        title = self.client.post("/api/cards", json={"type": "title"}, headers=headers)
        self.assertEqual(title.status_code, 201)
        self.assertEqual(title.json()["card"]["title"], "New title")
        self.assertEqual(title.json()["notifications"][0]["message"], "Card added!")

        link = self.client.post(
            "/api/cards",
            json={"type": "link", "fields": {"link": "https://shop.example.com"}},
            headers=headers,
        )
        link_id = link.json()["card"]["id"]
        layout = link.json()["layout"]
        self.assertEqual([entry["y"] for entry in layout], [0, 1])

        updated = self.client.patch(
            f"/api/cards/{link_id}", json={"fields": {"tag": "New"}}, headers=headers
        )
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.json()["card"]["tag_bg_color"], "#F97316")

        deleted = self.client.delete(f"/api/cards/{link_id}", headers=headers)
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(len(deleted.json()["layout"]), 1)

        missing = self.client.delete(f"/api/cards/{link_id}", headers=headers)
        self.assertEqual(missing.status_code, 404)

    def test_unknown_card_type(self):
        headers = self._sign_up_and_login()
        response = self.client.post("/api/cards", json={"type": "video"}, headers=headers)
        self.assertEqual(response.status_code, 400)

    def test_badly_typed_card_values_are_rejected_and_not_stored(self):
        headers = self._sign_up_and_login()

        created = self.client.post(
            "/api/cards",
            json={"type": "document", "fields": {"price": 9.9}},
            headers=headers,
        )
        self.assertEqual(created.status_code, 400)
        self.assertEqual(get_db_client().cards, {})

        card_id = self.client.post(
            "/api/cards", json={"type": "document"}, headers=headers
        ).json()["card"]["id"]
        patched = self.client.patch(
            f"/api/cards/{card_id}",
            json={"fields": {"obscuration_settings": {"percentage": 500}}},
            headers=headers,
        )
        self.assertEqual(patched.status_code, 400)
        self.assertEqual(
            get_db_client().cards[card_id]["obscuration_settings"], {"percentage": 100}
        )

        public = self.client.get("/api/pages/ana")
        self.assertEqual(public.status_code, 200)
        self.assertEqual(len(public.json()["cards"]), 1)
        self.assertEqual(
            self.client.get("/api/pages/ana/edit", headers=headers).status_code, 200
        )

    def test_save_profile_rejects_fractional_coordinates(self):
        headers = self._sign_up_and_login()

        response = self.client.put(
            "/api/profile",
            json={"name": "Ana", "layout": [{"i": "x", "x": 0.5, "y": 0, "w": 1, "h": 1}]},
            headers=headers,
        )

        self.assertEqual(response.status_code, 400)
        profile = get_db_client().get_profile_by_username("ana")
        self.assertIsNone(profile["layout_config"])
        self.assertIsNone(profile["name"])

    def test_save_profile_and_resize(self):
        headers = self._sign_up_and_login()
        card_id = self.client.post(
            "/api/cards", json={"type": "note"}, headers=headers
        ).json()["card"]["id"]

        saved = self.client.put(
            "/api/profile",
            json={
                "name": "Ana",
                "bio": "Links",
                "layout": [{"i": card_id, "x": 1, "y": 0, "w": 1, "h": 2}],
            },
            headers=headers,
        )
        self.assertEqual(saved.status_code, 200)
        self.assertEqual(saved.json()["profile"]["bio"], "Links")

        resized = self.client.post(
            f"/api/cards/{card_id}/resize", json={"preset": "banner"}, headers=headers
        )
        self.assertEqual(resized.status_code, 200)
        self.assertEqual(
            resized.json()["layout"], [{"i": card_id, "x": 1, "y": 0, "w": 2, "h": 1}]
        )

        page = self.client.get("/api/pages/ana/edit", headers=headers).json()
        self.assertEqual(page["profile"]["name"], "Ana")
        self.assertEqual(page["layout"][0]["w"], 2)

    def test_public_page(self):
        headers = self._sign_up_and_login()
        self.client.post("/api/cards", json={"type": "title"}, headers=headers)

        anonymous = self.client.get("/api/pages/ana")
        self.assertEqual(anonymous.status_code, 200)
        self.assertFalse(anonymous.json()["is_owner"])
        self.assertEqual(anonymous.json()["layout"][0]["h"], 0.5)

        mobile = self.client.get("/api/pages/ana", params={"mode": "mobile"})
        self.assertEqual(mobile.json()["layout"][0]["w"], 2)

        owner = self.client.get("/api/pages/ana", headers=headers)
        self.assertEqual(owner.json()["redirect"], "/ana/edit")

        self.assertEqual(self.client.get("/api/pages/nobody").status_code, 404)

    def test_public_page_hides_analytics_unless_enabled(self):
        self._sign_up_and_login()
        db = get_db_client()
        user_id = db.get_profile_by_username("ana")["id"]
        db.update_profile(user_id, {"ga_tracking_id": "G-123"})

        self.assertIsNone(self.client.get("/api/pages/ana").json()["profile"]["ga_tracking_id"])

        db.update_profile(user_id, {"show_analytics": True})
        self.assertEqual(
            self.client.get("/api/pages/ana").json()["profile"]["ga_tracking_id"], "G-123"
        )

    def test_document_upload(self):
        headers = self._sign_up_and_login()
        card_id = self.client.post(
            "/api/cards", json={"type": "document"}, headers=headers
        ).json()["card"]["id"]

        response = self.client.post(
            f"/api/cards/{card_id}/document",
            json={
                "file_data_uri": pdf_data_uri(3),
                "file_name": "ebook.pdf",
                "obscuration_percentage": 50,
            },
            headers=headers,
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual((payload["total_pages"], payload["preview_pages"]), (3, 2))
        self.assertEqual(payload["card"]["obscuration_settings"], {"percentage": 50})
        self.assertIn("-processed-", payload["card"]["processed_file_path"])

        bad = self.client.post(
            f"/api/cards/{card_id}/document",
            json={"file_data_uri": "nope", "file_name": "x.pdf", "obscuration_percentage": 50},
            headers=headers,
        )
        self.assertEqual(bad.status_code, 400)

    def test_document_upload_needs_document_card(self):
        headers = self._sign_up_and_login()
        card_id = self.client.post(
            "/api/cards", json={"type": "link"}, headers=headers
        ).json()["card"]["id"]

        response = self.client.post(
            f"/api/cards/{card_id}/document",
            json={
                "file_data_uri": pdf_data_uri(1),
                "file_name": "x.pdf",
                "obscuration_percentage": 100,
            },
            headers=headers,
        )
        self.assertEqual(response.status_code, 400)

    def test_document_upload_failure_returns_502(self):
        headers = self._sign_up_and_login()
        card_id = self.client.post(
            "/api/cards", json={"type": "document"}, headers=headers
        ).json()["card"]["id"]
        get_storage_client().fail_uploads_matching.append("-processed-")

        response = self.client.post(
            f"/api/cards/{card_id}/document",
            json={
                "file_data_uri": pdf_data_uri(2),
                "file_name": "x.pdf",
                "obscuration_percentage": 50,
            },
            headers=headers,
        )
        self.assertEqual(response.status_code, 502)
        self.assertEqual(get_storage_client().stored_objects, {})

    def test_avatar_and_image_uploads(self):
        headers = self._sign_up_and_login()

        avatar = self.client.post(
            "/api/profile/avatar",
            files={"file": ("me.png", b"png-bytes", "image/png")},
            headers=headers,
        )
        self.assertEqual(avatar.status_code, 200)
        self.assertIn("/avatars/", avatar.json()["avatar_url"])

        image = self.client.post(
            "/api/cards/image",
            files={"file": ("photo.jpg", b"jpg-bytes", "image/jpeg")},
            headers=headers,
        )
        self.assertEqual(image.status_code, 201)
        self.assertEqual(image.json()["card"]["type"], "image")
        self.assertTrue(image.json()["card"]["background_image"].endswith(".jpg"))

    def test_redeem_invite(self):
        headers = self._sign_up_and_login()

        invalid = self.client.post("/api/profile/invite", json={"code": "NOPE"}, headers=headers)
        self.assertEqual(invalid.status_code, 400)

        with patch.object(get_settings(), "invite_codes", ["VIP2024"]):
            valid = self.client.post(
                "/api/profile/invite", json={"code": "VIP2024"}, headers=headers
            )
        self.assertEqual(valid.status_code, 200)
        self.assertEqual(valid.json()["profile"]["role"], "pro")

    @patch("conectabio.scraper.requests.get")
    def test_scrape(self, mock_get):
        headers = self._sign_up_and_login()
        response = MagicMock()
        response.content = b'<html><head><title>My Blog</title></head></html>'
        response.url = "https://blog.example.com/"
        mock_get.return_value = response

        result = self.client.post(
            "/api/scrape", json={"url": "https://blog.example.com/"}, headers=headers
        )
        self.assertEqual(result.status_code, 200)
        self.assertEqual(result.json()["profile_name"], "My Blog")
        self.assertEqual(result.json()["recent_posts"], [])

    def test_logout_revokes_token(self):
        headers = self._sign_up_and_login()
        self.assertEqual(self.client.post("/api/auth/logout", headers=headers).status_code, 200)
        self.assertEqual(self.client.get("/api/pages/ana/edit", headers=headers).status_code, 401)


if __name__ == "__main__":
    unittest.main()
