"""HTTP routes, sessions and page rendering"""
from decimal import Decimal

import pytest

from crud.post import get_active_posts


@pytest.fixture
def calculus(seeder):
    async def build(catalog):
        book = await catalog.book(title="Calculus: Early Transcendentals", bookstore_new_price=Decimal("210"))
        (section,) = await catalog.course("MAT 103", "C01")
        await catalog.assign(book, section)
        return book

    return seeder(build)


def login(client, netid="jd1"):
    return client.post("/login", data={"username": netid}, follow_redirects=False)


class TestPages:

    def test_home(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "<title>BookSwap | Example University</title>" in response.text
        assert 'class="logged-out search"' in response.text
        assert 'id="login"' in response.text
        assert 'id="about"' in response.text

    def test_search_by_course(self, client, calculus):
        response = client.get("/search", params={"q": "MAT 103"})
        assert response.status_code == 200
        assert "BookSwap | Search: MAT 103" in response.text
        assert "Calculus: Early Transcendentals" in response.text
        assert "MAT 103 (C01)" in response.text
        assert "No student offers yet" in response.text

    def test_search_without_results(self, client, calculus):
        response = client.get("/search", params={"q": "poetry"})
        assert "No books found." in response.text


class TestLogin:

    def test_login_returns_to_last_page(self, client, calculus):
        client.get("/search", params={"q": "calculus"})
        response = login(client)
        assert response.status_code == 303
        assert response.headers["location"] == "/search?q=calculus"

        page = client.get("/")
        assert 'class="logged-in search"' in page.text
        assert "Log out" in page.text

    def test_login_without_netid(self, client):
        response = client.post("/login", data={"username": ""}, follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/"
        assert 'class="logged-out' in client.get("/").text

    def test_get_login_redirects(self, client):
        response = client.get("/login", follow_redirects=False)
        assert response.status_code == 303

    def test_logout(self, client):
        login(client)
        response = client.get("/logout", follow_redirects=False)
        assert response.headers["location"] == "/"
        assert client.get("/my-posts", follow_redirects=False).headers["location"] == "/"


class TestSelling:

    def test_sell_requires_login(self, client, calculus, seeder):
        response = client.post(f"/sell/{calculus.bid}", data={"price": "80"}, follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/"
        assert seeder(lambda c: get_active_posts(c.db, calculus.bid)) == []

    def test_sell_and_manage_post(self, client, calculus, seeder):
        login(client)
        client.get("/search", params={"q": "calculus"})
        response = client.post(f"/sell/{calculus.bid}", data={"price": "80", "notes": "like new"},
                               follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/search?q=calculus"

        posts = seeder(lambda c: get_active_posts(c.db, calculus.bid))
        assert [p.price for p in posts] == [Decimal("80")]
        pid = posts[0].pid

        results = client.get("/search", params={"q": "calculus"}).text
        assert "1 student offer from $80" in results
        assert "Edit your post" in results

        my_posts = client.get("/my-posts")
        assert my_posts.status_code == 200
        assert "Calculus: Early Transcendentals" in my_posts.text

        response = client.post(f"/my-posts/{pid}", data={"price": "75"}, follow_redirects=False)
        assert response.headers["location"] == "/my-posts"
        assert seeder(lambda c: get_active_posts(c.db, calculus.bid))[0].price == Decimal("75")

        response = client.post("/myposts/deactivate", data={"pid": str(pid)}, follow_redirects=False)
        assert response.headers["location"] == "/my-posts"
        assert seeder(lambda c: get_active_posts(c.db, calculus.bid)) == []
        assert "You are not selling any books." in client.get("/my-posts").text

    def test_bad_price(self, client, calculus):
        login(client)
        response = client.post(f"/sell/{calculus.bid}", data={"price": "free"})
        assert response.status_code == 400

    def test_unknown_book(self, client):
        login(client)
        response = client.post("/sell/9999", data={"price": "10"})
        assert response.status_code == 404

    def test_cannot_touch_other_users_posts(self, client, calculus, seeder):
        async def build(catalog):
            owner = await catalog.user("owner")
            return await catalog.post(calculus, owner, Decimal("50"))

        post = seeder(build)
        login(client, "intruder")
        assert client.post(f"/my-posts/{post.pid}", data={"price": "1"}).status_code == 404
        assert client.post("/myposts/deactivate", data={"pid": str(post.pid)}).status_code == 404
        assert [p.price for p in seeder(lambda c: get_active_posts(c.db, calculus.bid))] == [Decimal("50")]
