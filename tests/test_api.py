from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from brokerdesk import crud
from brokerdesk.database import Base, get_session
from brokerdesk.main import app


@pytest.fixture()
def db_session():
    engine = create_engine(
        "sqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    session = SessionLocal()
    crud.seed_default_settings(session)
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def client(db_session):
    def override_session():
        try:
            yield db_session
        finally:
            db_session.rollback()

    app.dependency_overrides[get_session] = override_session

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.pop(get_session, None)


def _money(value) -> Decimal:
    return Decimal(str(value))


def _seed_office(client, name="Tirana Centre"):
    response = client.post("/offices", json={"name": name, "city": "Tirana"})
    assert response.status_code == 201
    return response.json()


def _seed_agent(client, office_id, first_name, email):
    response = client.post(
        "/agents",
        json={"office_id": office_id, "first_name": first_name, "last_name": "Agent", "email": email},
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture()
def seeded(client):
    office = _seed_office(client)
    primary = _seed_agent(client, office["id"], "Arta", "arta@example.com")
    collaborator = _seed_agent(client, office["id"], "Besa", "besa@example.com")
    return office, primary, collaborator


def _create_transaction(client, office, primary, collaborator=None, **overrides):
    body = {
        "type": "SALE",
        "office_id": office["id"],
        "primary_agent_id": primary["id"],
        "collaborating_agent_id": collaborator["id"] if collaborator else None,
        "property_ref": "PROP-1",
        "client_ref": "CLI-1",
        "gross_amount": "250000",
    }
    body.update(overrides)
    return client.post("/transactions", json=body)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_create_transaction_returns_persisted_split(client, seeded):
    office, primary, collaborator = seeded

    response = _create_transaction(client, office, primary, collaborator)

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "OPEN"
    assert data["has_collaborating_agent"] is True
    assert _money(data["commission_amount"]) == Decimal("7500")
    assert _money(data["office_share"]) == Decimal("3750")
    assert _money(data["primary_agent_share"]) == Decimal("1875")
    assert _money(data["collaborating_agent_share"]) == Decimal("1875")

    fetched = client.get(f"/transactions/{data['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["office_share"] == data["office_share"]


def test_rental_transaction_split(client, seeded):
    office, primary, _ = seeded

    response = _create_transaction(client, office, primary, type="rent", gross_amount="500", currency="all")

    assert response.status_code == 201
    data = response.json()
    assert data["type"] == "RENT"
    assert data["currency"] == "ALL"
    assert _money(data["commission_amount"]) == Decimal("250")
    assert _money(data["office_share"]) == Decimal("187.5")
    assert _money(data["primary_agent_share"]) == Decimal("62.5")
    assert _money(data["collaborating_agent_share"]) == Decimal("0")


def test_create_transaction_validation(client, seeded):
    office, primary, _ = seeded

    assert _create_transaction(client, office, primary, gross_amount="-10").status_code == 422
    assert _create_transaction(client, office, primary, type="LEASE").status_code == 422

    same_agent = _create_transaction(client, office, primary, primary)
    assert same_agent.status_code == 400
    assert "differ" in same_agent.json()["detail"]

    missing_office = _create_transaction(client, {"id": 9999}, primary)
    assert missing_office.status_code == 400


def test_list_transactions_envelope_and_filters(client, seeded):
    office, primary, collaborator = seeded
    _create_transaction(client, office, primary)
    _create_transaction(client, office, primary, collaborator, type="RENT", gross_amount="800")
    _create_transaction(client, office, collaborator, gross_amount="90000")

    response = client.get("/transactions", params={"limit": 2})
    assert response.status_code == 200
    payload = response.json()
    assert len(payload["items"]) == 2
    assert payload["pagination"] == {"total": 3, "limit": 2, "offset": 0, "has_more": True}

    rentals = client.get("/transactions", params={"type": "rent"}).json()
    assert [item["type"] for item in rentals["items"]] == ["RENT"]

    involving = client.get("/transactions", params={"agent_id": collaborator["id"]}).json()
    assert involving["pagination"]["total"] == 2

    large = client.get("/transactions", params={"min_amount": "100000"}).json()
    assert large["pagination"]["total"] == 1

    assert client.get("/transactions", params={"status": "ARCHIVED"}).status_code == 400
    assert client.get("/transactions", params={"start": "not-a-date"}).status_code == 400


def test_update_recomputes_only_financial_edits(client, seeded):
    office, primary, collaborator = seeded
    created = _create_transaction(client, office, primary).json()

    notes_only = client.put(f"/transactions/{created['id']}", json={"notes": "Viewing done"})
    assert notes_only.status_code == 200
    assert notes_only.json()["notes"] == "Viewing done"
    assert notes_only.json()["office_share"] == created["office_share"]

    with_collaborator = client.put(
        f"/transactions/{created['id']}",
        json={"collaborating_agent_id": collaborator["id"]},
    )
    assert with_collaborator.status_code == 200
    data = with_collaborator.json()
    assert _money(data["office_share"]) == Decimal("3750")
    assert _money(data["collaborating_agent_share"]) == Decimal("1875")


def test_closed_transaction_is_locked(client, seeded):
    office, primary, _ = seeded
    created = _create_transaction(client, office, primary).json()

    closed = client.patch(f"/transactions/{created['id']}/status", json={"status": "closed"})
    assert closed.status_code == 200
    assert closed.json()["status"] == "CLOSED"
    assert closed.json()["close_date"] == date.today().isoformat()

    assert client.put(f"/transactions/{created['id']}", json={"notes": "x"}).status_code == 400
    assert client.delete(f"/transactions/{created['id']}").status_code == 400
    assert client.patch(f"/transactions/{created['id']}/status", json={"status": "DONE"}).status_code == 422


def test_delete_open_transaction(client, seeded):
    office, primary, _ = seeded
    created = _create_transaction(client, office, primary).json()

    assert client.delete(f"/transactions/{created['id']}").status_code == 204
    assert client.get(f"/transactions/{created['id']}").status_code == 404


def test_transaction_stats(client, seeded):
    office, primary, _ = seeded
    first = _create_transaction(client, office, primary).json()
    _create_transaction(client, office, primary, type="RENT", gross_amount="500")
    client.patch(f"/transactions/{first['id']}/status", json={"status": "CLOSED"})

    stats = client.get("/transactions/stats").json()

    assert stats["total_transactions"] == 2
    assert stats["status_breakdown"]["closed"] == 1
    assert stats["type_breakdown"] == {"sale": 1, "rent": 1}
    assert _money(stats["total_commission"]) == Decimal("7500")
    assert stats["conversion_rate"] == 50


@pytest.mark.parametrize(
    "fields, collaborating",
    [
        ({"type": "SALE", "gross_amount": "123456.78"}, True),
        ({"type": "RENT", "gross_amount": "100.005"}, False),
        ({"type": "SALE", "gross_amount": "250000", "commission_amount": "100.005"}, True),
    ],
)
def test_commission_preview_matches_created_transaction(client, seeded, fields, collaborating):
    office, primary, collaborator = seeded

    preview = client.post("/commission/preview", json={**fields, "has_collaborating_agent": collaborating})
    created = _create_transaction(client, office, primary, collaborator if collaborating else None, **fields)

    assert preview.status_code == 200
    assert created.status_code == 201
    for key in ("commission_amount", "office_share", "primary_agent_share", "collaborating_agent_share"):
        assert _money(preview.json()[key]) == _money(created.json()[key])


def test_commission_preview_rounds_sub_cent_inputs(client):
    rent = client.post("/commission/preview", json={"type": "RENT", "gross_amount": "100.005"}).json()
    assert _money(rent["commission_amount"]) == Decimal("50.01")

    explicit = client.post("/commission/preview", json={"commission_amount": "100.005"}).json()
    assert _money(explicit["commission_amount"]) == Decimal("100.01")


def test_commission_preview_scenarios(client):
    solo = client.post("/commission/preview", json={"commission_amount": "7500"}).json()
    assert _money(solo["office_share"]) == Decimal("5625")
    assert _money(solo["primary_agent_share"]) == Decimal("1875")

    zero = client.post("/commission/preview", json={"commission_amount": "0", "has_collaborating_agent": True})
    assert zero.status_code == 200
    assert _money(zero.json()["office_share"]) == Decimal("0")


def test_commission_preview_rejects_bad_input(client):
    assert client.post("/commission/preview", json={"commission_amount": "-100"}).status_code == 422
    assert client.post("/commission/preview", json={"type": "SALE", "gross_amount": "0"}).status_code == 422

    assert client.post("/commission/preview", json={}).status_code == 400
    assert client.post("/commission/preview", json={"commission_amount": "1", "split_ratio": "2"}).status_code == 422


def test_commission_rates_and_settings(client):
    rates = client.get("/commission/rates").json()
    assert _money(rates["sale"]) == Decimal("0.03")
    assert _money(rates["rent"]) == Decimal("0.5")
    assert _money(rates["eur_to_all"]) == Decimal("97.3")

    keys = {item["key"] for item in client.get("/settings").json()}
    assert keys == {"EUR_TO_ALL_RATE", "COMMISSION_SALE_RATE", "COMMISSION_RENT_RATE"}

    updated = client.put("/settings/commission_sale_rate", json={"value": "0.04"})
    assert updated.status_code == 200
    assert _money(updated.json()["value"]) == Decimal("0.04")

    preview = client.post("/commission/preview", json={"type": "SALE", "gross_amount": "100000"}).json()
    assert _money(preview["commission_amount"]) == Decimal("4000")

    assert client.put("/settings/COMMISSION_RENT_RATE", json={"value": "1.5"}).status_code == 400
    assert client.put("/settings/UNKNOWN", json={"value": "1"}).status_code == 404
    assert client.put("/settings/EUR_TO_ALL_RATE", json={"value": "0"}).status_code == 422


def test_offices_and_agents(client, seeded):
    office, primary, _ = seeded

    assert client.post("/offices", json={"name": "tirana centre", "city": "Tirana"}).status_code == 400

    listing = client.get("/offices").json()
    assert listing["pagination"]["total"] == 1
    assert listing["items"][0]["name"] == "Tirana Centre"

    duplicate_email = client.post(
        "/agents",
        json={"office_id": office["id"], "first_name": "X", "last_name": "Y", "email": "ARTA@example.com"},
    )
    assert duplicate_email.status_code == 400

    deactivated = client.post(f"/agents/{primary['id']}/deactivate")
    assert deactivated.json()["is_active"] is False
    active = client.get("/agents", params={"active": True}).json()
    assert [item["first_name"] for item in active["items"]] == ["Besa"]

    assert client.delete(f"/offices/{office['id']}").status_code == 400
    stats = client.get(f"/offices/{office['id']}/stats").json()
    assert stats["agents"] == 2
    assert stats["active_agents"] == 1

    empty = _seed_office(client, name="Durres")
    assert client.delete(f"/offices/{empty['id']}").status_code == 204
    assert client.get(f"/offices/{empty['id']}").status_code == 404


def test_agent_earnings_report(client, seeded):
    office, primary, collaborator = seeded
    sale = _create_transaction(client, office, primary, collaborator).json()
    rent = _create_transaction(
        client, office, collaborator, type="RENT", gross_amount="38920", currency="ALL"
    ).json()
    _create_transaction(client, office, collaborator, gross_amount="90000")
    for item in (sale, rent):
        client.patch(f"/transactions/{item['id']}/status", json={"status": "CLOSED"})

    response = client.get(f"/reports/agents/{collaborator['id']}/earnings")

    assert response.status_code == 200
    data = response.json()
    assert data["transactions_counted"] == 2
    # 1875 EUR from the sale plus 4865 ALL (50 EUR) from the rental
    assert _money(data["by_type"]["sale"]["eur"]) == Decimal("1875")
    assert _money(data["by_type"]["rent"]["eur"]) == Decimal("50")
    assert _money(data["total_eur"]) == Decimal("1925")

    future = client.get(
        f"/reports/agents/{collaborator['id']}/earnings",
        params={"start": "2999-01-01"},
    ).json()
    assert future["transactions_counted"] == 0

    assert client.get("/reports/agents/9999/earnings").status_code == 404


def test_agent_with_transactions_cannot_change_office(client, seeded):
    office, primary, collaborator = seeded
    other = _seed_office(client, name="Durres")
    _create_transaction(client, office, primary)

    def _move(agent):
        return client.put(
            f"/agents/{agent['id']}",
            json={
                "office_id": other["id"],
                "first_name": agent["first_name"],
                "last_name": agent["last_name"],
                "email": agent["email"],
            },
        )

    blocked = _move(primary)
    assert blocked.status_code == 400
    assert client.get(f"/agents/{primary['id']}").json()["office_id"] == office["id"]

    moved = _move(collaborator)
    assert moved.status_code == 200
    assert moved.json()["office_id"] == other["id"]
