"""
Tests for the post endpoints.

Uses Flask's test client against an app backed by a temporary SQLite store.

Running Tests:
    $ poetry run pytest tests/test_posts.py -v
"""
import pytest

from storage import new_object_id

POST_BODY = {"title": "Hello World", "content": "abc", "author": "Jane", "published": "true"}


class TestIndex:
    def test_banner(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.get_json()["title"] == "Blog API"

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.get_json() == {"status": "healthy"}

    def test_unknown_route_is_json_404(self, client):
        response = client.get("/nope")
        assert response.status_code == 404
        assert "error" in response.get_json()

    def test_method_not_allowed(self, client):
        response = client.patch("/posts")
        assert response.status_code == 405
        assert "error" in response.get_json()


class TestCreatePost:
    def test_create_returns_stored_post(self, client, auth_headers):
        response = client.post("/posts", json=POST_BODY, headers=auth_headers)

        assert response.status_code == 200
        post = response.get_json()
        assert post["title"] == "Hello World"
        assert post["slug"] == "hello-world"
        assert post["published"] is True
        assert post["likes"] == 0
        assert len(post["_id"]) == 24
        assert client.get(f"/posts/{post['_id']}").get_json() == post

    def test_duplicate_title_rejected(self, client, auth_headers):
        client.post("/posts", json=POST_BODY, headers=auth_headers)

        response = client.post("/posts", json=POST_BODY, headers=auth_headers)
        assert response.status_code == 400
        assert response.get_json() == {"error": "Post title already taken. Try a different title."}
        assert len(client.get("/posts").get_json()) == 1

    def test_duplicate_after_trim(self, client, auth_headers):
        client.post("/posts", json=POST_BODY, headers=auth_headers)

        response = client.post("/posts", json={**POST_BODY, "title": "  Hello World "}, headers=auth_headers)
        assert response.status_code == 400

    def test_validation_errors(self, client, auth_headers):
        response = client.post(
            "/posts",
            json={"title": "ab", "content": "abc", "author": "Jane", "published": "yes"},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.get_json() == [
            {"error": "Post title field must contain between 3 and 160 characters."},
            {"error": "Post publish value must be either true or false."},
        ]
        assert client.get("/posts").get_json() == []

    def test_json_boolean_published(self, client, auth_headers):
        response = client.post("/posts", json={**POST_BODY, "published": False}, headers=auth_headers)

        assert response.status_code == 200
        assert response.get_json()["published"] is False

    def test_client_cannot_set_likes(self, client, auth_headers):
        response = client.post("/posts", json={**POST_BODY, "likes": 50}, headers=auth_headers)
        assert response.get_json()["likes"] == 0

    @pytest.mark.parametrize("title", ["Hi!", "!!!"])
    def test_title_without_enough_slug_characters(self, client, auth_headers, title):
        response = client.post("/posts", json={**POST_BODY, "title": title}, headers=auth_headers)

        assert response.status_code == 400
        assert response.get_json() == [{"error": "Post title must contain at least 3 letters or digits."}]
        assert client.get("/posts").get_json() == []

    def test_slug_collision_rejected(self, client, auth_headers):
        client.post("/posts", json=POST_BODY, headers=auth_headers)

        response = client.post("/posts", json={**POST_BODY, "title": "hello world!"}, headers=auth_headers)
        assert response.status_code == 400
        assert response.get_json() == {"error": "Post title already taken. Try a different title."}
        assert [p["slug"] for p in client.get("/posts").get_json()] == ["hello-world"]

    def test_non_ascii_title_slug(self, client, auth_headers):
        response = client.post("/posts", json={**POST_BODY, "title": "Café & Crème"}, headers=auth_headers)

        assert response.status_code == 200
        assert response.get_json()["slug"] == "cafe-and-creme"


class TestReadPosts:
    def test_empty_list(self, client):
        response = client.get("/posts")
        assert response.status_code == 200
        assert response.get_json() == []

    def test_list_newest_first(self, client, make_post):
        first = make_post(title="First post")
        second = make_post(title="Second post")

        ids = [p["_id"] for p in client.get("/posts").get_json()]
        assert ids == [second["_id"], first["_id"]]

    def test_published_filter(self, client, make_post):
        make_post(title="Draft post", published="false")
        live = make_post(title="Live post", published="true")

        response = client.get("/posts?published=true")
        assert [p["_id"] for p in response.get_json()] == [live["_id"]]

    def test_bad_published_filter(self, client):
        response = client.get("/posts?published=TRUE")
        assert response.status_code == 400

    def test_get_invalid_id(self, client):
        response = client.get("/posts/xyz")
        assert response.status_code == 400
        assert response.get_json() == {"error": "Invalid path parameter."}

    def test_get_missing_post(self, client):
        response = client.get(f"/posts/{new_object_id()}")
        assert response.status_code == 404
        assert response.get_json() == {"error": "Post not found."}


class TestEditPost:
    def test_edit_regenerates_slug(self, client, auth_headers, make_post):
        post = make_post()

        response = client.put(
            f"/posts/{post['_id']}",
            json={"title": "Brand New: Title!", "content": "changed", "author": "Jane", "published": "false"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        edited = response.get_json()
        assert edited["slug"] == "brand-new-title"
        assert edited["content"] == "changed"
        assert edited["published"] is False
        assert edited["create_date"] == post["create_date"]
        assert edited["update_date"] >= post["update_date"]

    def test_edit_keeping_own_title(self, client, auth_headers, make_post):
        post = make_post()

        response = client.put(f"/posts/{post['_id']}", json={**POST_BODY, "content": "edited"}, headers=auth_headers)
        assert response.status_code == 200

    def test_edit_to_other_posts_title(self, client, auth_headers, make_post):
        make_post(title="Taken title")
        post = make_post(title="My title")

        response = client.put(
            f"/posts/{post['_id']}",
            json={**POST_BODY, "title": "Taken title"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.get_json() == {"error": "Post title already taken. Try a different title."}

    def test_edit_to_other_posts_slug(self, client, auth_headers, make_post):
        make_post(title="Taken title")
        post = make_post(title="My title")

        response = client.put(
            f"/posts/{post['_id']}",
            json={**POST_BODY, "title": "TAKEN title!"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.get_json() == {"error": "Post title already taken. Try a different title."}

    def test_edit_own_title_punctuation(self, client, auth_headers, make_post):
        post = make_post()

        response = client.put(
            f"/posts/{post['_id']}",
            json={**POST_BODY, "title": "Hello, World!"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.get_json()["slug"] == "hello-world"

    def test_edit_title_too_short_for_slug(self, client, auth_headers, make_post):
        post = make_post()

        response = client.put(f"/posts/{post['_id']}", json={**POST_BODY, "title": "!!!"}, headers=auth_headers)
        assert response.status_code == 400
        assert client.get(f"/posts/{post['_id']}").get_json()["title"] == "Hello World"

    def test_edit_missing_post(self, client, auth_headers):
        response = client.put(f"/posts/{new_object_id()}", json=POST_BODY, headers=auth_headers)
        assert response.status_code == 404

    def test_edit_requires_token(self, client, make_post):
        post = make_post()
        response = client.put(f"/posts/{post['_id']}", json=POST_BODY)
        assert response.status_code == 401

    def test_edit_validation(self, client, auth_headers, make_post):
        post = make_post()
        response = client.put(f"/posts/{post['_id']}", json={"title": "New"}, headers=auth_headers)

        assert response.status_code == 400
        assert len(response.get_json()) == 3


class TestDeletePost:
    def test_delete(self, client, auth_headers, make_post):
        post = make_post()

        response = client.delete(f"/posts/{post['_id']}", headers=auth_headers)
        assert response.status_code == 200
        assert response.get_json() == {"message": "Post deleted successfully."}
        assert client.get(f"/posts/{post['_id']}").status_code == 404

    def test_delete_missing(self, client, auth_headers):
        response = client.delete(f"/posts/{new_object_id()}", headers=auth_headers)
        assert response.status_code == 404

    def test_delete_invalid_id(self, client, auth_headers):
        response = client.delete("/posts/xyz", headers=auth_headers)
        assert response.status_code == 400
        assert response.get_json() == {"error": "Invalid path parameter."}

    def test_delete_requires_token(self, client, make_post):
        post = make_post()
        assert client.delete(f"/posts/{post['_id']}").status_code == 401
        assert client.get(f"/posts/{post['_id']}").status_code == 200


class TestLikes:
    def test_like_and_unlike(self, client, make_post):
        post = make_post()

        liked = client.put(f"/posts/{post['_id']}/like")
        assert liked.status_code == 200
        assert liked.get_json()["likes"] == 1

        unliked = client.put(f"/posts/{post['_id']}/unlike")
        assert unliked.status_code == 200
        assert unliked.get_json()["likes"] == 0

    def test_unlike_at_zero(self, client, make_post):
        post = make_post()

        response = client.put(f"/posts/{post['_id']}/unlike")
        assert response.status_code == 400
        assert response.get_json() == {"error": "Post has no likes."}
        assert client.get(f"/posts/{post['_id']}").get_json()["likes"] == 0

    def test_like_missing_post(self, client):
        assert client.put(f"/posts/{new_object_id()}/like").status_code == 404
        assert client.put(f"/posts/{new_object_id()}/unlike").status_code == 404

    def test_like_invalid_id(self, client):
        assert client.put("/posts/xyz/like").status_code == 400

    def test_likes_need_no_token(self, client, make_post):
        post = make_post()
        assert client.put(f"/posts/{post['_id']}/like").status_code == 200


class TestBulkPublish:
    def test_publish_all_only_touches_drafts(self, client, auth_headers, make_post):
        make_post(title="Draft one", published="false")
        make_post(title="Draft two", published="false")
        make_post(title="Already live", published="true")

        response = client.put("/posts/publish-all", headers=auth_headers)
        assert response.status_code == 200
        assert response.get_json()["modified"] == 2
        assert all(p["published"] for p in client.get("/posts").get_json())

    def test_publish_all_twice(self, client, auth_headers, make_post):
        make_post(published="false")
        client.put("/posts/publish-all", headers=auth_headers)

        response = client.put("/posts/publish-all", headers=auth_headers)
        assert response.status_code == 400
        assert response.get_json() == {"error": "No posts to publish."}

    def test_unpublish_all(self, client, auth_headers, make_post):
        make_post(published="true")

        response = client.put("/posts/unpublish-all", headers=auth_headers)
        assert response.get_json()["modified"] == 1

        response = client.put("/posts/unpublish-all", headers=auth_headers)
        assert response.status_code == 400
        assert response.get_json() == {"error": "No posts to unpublish."}

    def test_bulk_requires_token(self, client):
        assert client.put("/posts/publish-all").status_code == 401
        assert client.put("/posts/unpublish-all").status_code == 401


def test_scenario(client, auth_headers, store):
    """Create, duplicate, bad delete and comment unlike at zero, end to end."""
    created = client.post("/posts", json=POST_BODY, headers=auth_headers)
    assert created.status_code == 200
    post = created.get_json()
    assert store.get_post(post["_id"])["slug"] == "hello-world"

    duplicate = client.post("/posts", json=POST_BODY, headers=auth_headers)
    assert duplicate.status_code == 400
    assert duplicate.get_json()["error"].startswith("Post title already taken.")

    bad_delete = client.delete("/posts/xyz", headers=auth_headers)
    assert bad_delete.status_code == 400
    assert bad_delete.get_json() == {"error": "Invalid path parameter."}

    comment = client.post(f"/posts/{post['_id']}/comments", json={"author": "Bob", "content": "Nice"}).get_json()
    unlike = client.put(f"/posts/{post['_id']}/comments/{comment['_id']}/unlike")
    assert unlike.status_code == 400
    assert unlike.get_json() == {"error": "Comment has no likes."}
