from conftest import auth_headers


def test_list_without_customer_creates_nothing(client, gateway, owner):
    response = client.get("/api/payment-methods", headers=auth_headers(owner))

    assert response.status_code == 200
    assert response.json() == {"payment_methods": [], "default_payment_method": None}
    assert gateway.calls_of("create_customer") == []


def test_owner_saves_cards_on_the_school(client, db, gateway, school, owner):
    response = client.post("/api/payment-methods", headers=auth_headers(owner))

    assert response.status_code == 200
    body = response.json()
    assert body["entity_type"] == "school"
    assert body["entity_id"] == school.id
    db.refresh(school)
    assert body["customer_id"] == school.stripe_customer_id


def test_parent_saves_cards_on_the_family(client, factory, school):
    parent = factory.profile(school)
    family = factory.family(school, parent)

    response = client.post("/api/payment-methods", headers=auth_headers(parent))

    assert response.status_code == 200
    assert response.json()["entity_type"] == "family"
    assert response.json()["entity_id"] == family.id


def test_list_and_default(client, db, gateway, school, owner):
    school.stripe_customer_id = gateway.create_customer(owner.email, school.name)
    db.commit()
    first = gateway.add_card(school.stripe_customer_id, "1111")
    second = gateway.add_card(school.stripe_customer_id, "2222")
    headers = auth_headers(owner)

    listed = client.get("/api/payment-methods", headers=headers).json()
    assert [card["id"] for card in listed["payment_methods"]] == [first, second]
    assert listed["default_payment_method"] == first

    response = client.post(f"/api/payment-methods/{second}/default", headers=headers)
    assert response.status_code == 200
    assert client.get("/api/payment-methods", headers=headers).json()["default_payment_method"] == second


def test_foreign_card_not_found(client, db, gateway, factory, school, owner):
    school.stripe_customer_id = gateway.create_customer(owner.email, school.name)
    db.commit()
    other_school = factory.school()
    other_customer = gateway.create_customer("x@example.com", other_school.name)
    foreign = gateway.add_card(other_customer)

    headers = auth_headers(owner)
    assert client.post(f"/api/payment-methods/{foreign}/default", headers=headers).status_code == 404
    response = client.delete(f"/api/payment-methods/{foreign}", headers=headers)
    assert response.status_code == 404
    assert response.json() == {"error": "Payment method not found"}
    assert gateway.calls_of("detach_payment_method") == []


def test_detach_own_card(client, db, gateway, school, owner):
    school.stripe_customer_id = gateway.create_customer(owner.email, school.name)
    db.commit()
    card = gateway.add_card(school.stripe_customer_id)

    response = client.delete(f"/api/payment-methods/{card}", headers=auth_headers(owner))

    assert response.status_code == 200
    assert gateway.list_cards(school.stripe_customer_id) == []
