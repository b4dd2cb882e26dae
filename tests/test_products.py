def test_create_product_requires_admin(client):
    response = client.post("/api/products", json={"name": "Kikoi", "price": 800})
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Not authenticated"}


def test_product_crud(client, product, admin_headers):
    assert product["stock"] == 10
    assert product["sold"] == 0

    listed = client.get("/api/products", params={"category": "crafts"}).json()
    assert [p["id"] for p in listed] == [product["id"]]
    assert client.get("/api/products", params={"category": "food"}).json() == []

    response = client.put(f"/api/products/{product['id']}", json={"price": 1800}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["price"] == 1800
    assert response.json()["name"] == "Kiondo basket"

    assert client.delete(f"/api/products/{product['id']}", headers=admin_headers).status_code == 204
    assert client.get(f"/api/products/{product['id']}").status_code == 404


def test_update_without_fields(client, product, admin_headers):
    response = client.put(f"/api/products/{product['id']}", json={}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "No fields to update"


def test_negative_stock_rejected(client, admin_headers):
    response = client.post("/api/products", json={"name": "Kikoi", "price": 800, "stock": -1}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid fields: stock"


def create(client, admin_headers, **fields):
    payload = {"name": "Item", "price": 100, **fields}
    response = client.post("/api/products", json=payload, headers=admin_headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_search_matches_name_description_and_keywords(client, admin_headers):
    basket = create(client, admin_headers, name="Kiondo basket", keywords=["sisal"])
    shuka = create(client, admin_headers, name="Maasai shuka", description="Red checked BLANKET")
    create(client, admin_headers, name="Soapstone bowl")

    def search(term):
        return [p["id"] for p in client.get("/api/products", params={"q": term}).json()]

    assert search("KIONDO") == [basket["id"]]
    assert search("blanket") == [shuka["id"]]
    assert search("sisal") == [basket["id"]]
    assert search("100%") == []


def test_price_filters_and_sorting(client, admin_headers):
    cheap = create(client, admin_headers, name="Bead bracelet", price=300)
    mid = create(client, admin_headers, name="Kikoi", price=900)
    dear = create(client, admin_headers, name="Carved giraffe", price=4000)

    listed = client.get("/api/products", params={"minPrice": 500, "sortBy": "price_desc"}).json()
    assert [p["id"] for p in listed] == [dear["id"], mid["id"]]

    listed = client.get("/api/products", params={"maxPrice": 900, "sortBy": "price_asc"}).json()
    assert [p["id"] for p in listed] == [cheap["id"], mid["id"]]

    response = client.get("/api/products", params={"sortBy": "cheapest"})
    assert response.status_code == 400


def test_featured_products(client, admin_headers):
    featured = create(client, admin_headers, name="Kiondo basket", featured=True)
    plain = create(client, admin_headers, name="Kikoi")

    listed = client.get("/api/products/featured").json()
    assert [p["id"] for p in listed] == [featured["id"]]
    assert listed[0]["featured"] is True

    client.put(f"/api/products/{plain['id']}", json={"featured": True, "keywords": ["cotton"]}, headers=admin_headers)
    updated = client.get(f"/api/products/{plain['id']}").json()
    assert updated["featured"] is True
    assert updated["keywords"] == ["cotton"]
    assert len(client.get("/api/products", params={"featured": "true"}).json()) == 2


def test_categories(client, admin_headers):
    response = client.post("/api/categories", json={"id": "crafts", "name": "Crafts"}, headers=admin_headers)
    assert response.status_code == 201
    client.post("/api/categories", json={"id": "art", "name": "Art"}, headers=admin_headers)

    assert [c["id"] for c in client.get("/api/categories").json()] == ["art", "crafts"]
    assert client.get("/api/categories/crafts").json()["name"] == "Crafts"

    missing = client.get("/api/categories/food")
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "error": "Category not found"}

    duplicate = client.post("/api/categories", json={"id": "crafts", "name": "Crafts"}, headers=admin_headers)
    assert duplicate.status_code == 409
    assert client.post("/api/categories", json={"id": "toys", "name": "Toys"}).status_code == 401


def test_reviews_update_product_rating(client, product):
    url = f"/api/products/{product['id']}/reviews"
    first = client.post(url, json={"user_id": "user-1", "user_name": "Wanjiku", "rating": 5, "comment": "<b>Lovely</b>"})
    assert first.status_code == 201
    assert first.json()["comment"] == "&lt;b&gt;Lovely&lt;/b&gt;"
    client.post(url, json={"user_id": "user-2", "rating": 4})

    reviews = client.get(url).json()
    assert [r["user_id"] for r in reviews] == ["user-2", "user-1"]

    stored = client.get(f"/api/products/{product['id']}").json()
    assert stored["rating"] == 4.5
    assert stored["review_count"] == 2

    best = client.get("/api/products", params={"sortBy": "rating"}).json()
    assert best[0]["id"] == product["id"]


def test_review_validation(client, product):
    response = client.post(f"/api/products/{product['id']}/reviews", json={"user_id": "user-1", "rating": 6})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid fields: rating"

    response = client.post("/api/products/missing/reviews", json={"user_id": "user-1", "rating": 3})
    assert response.status_code == 404
