"""Reconciliation session endpoints, end to end over HTTP."""

from decimal import Decimal
from uuid import uuid4

import pytest

from tests.test_api_statements import CSV_CONTENT, create_bank_account, upload_statement

BASE = "/bank-reconciliation/reconciliations"


async def post_cash_entry(client, cash_account_id: str, offset_account_id: str, amount: str, entry_date: str) -> dict:
    """Create and post an entry moving ``amount`` through cash. Returns the cash line."""
    value = Decimal(amount)
    cash_direction, offset_direction = ("DEBIT", "CREDIT") if value > 0 else ("CREDIT", "DEBIT")
    created = await client.post(
        "/journal-entries",
        json={
            "entry_date": entry_date,
            "memo": f"Cash {amount}",
            "lines": [
                {"account_id": cash_account_id, "direction": cash_direction, "amount": str(abs(value))},
                {"account_id": offset_account_id, "direction": offset_direction, "amount": str(abs(value))},
            ],
        },
    )
    assert created.status_code == 201
    posted = await client.post(f"/journal-entries/{created.json()['id']}/post")
    assert posted.status_code == 200
    return next(line for line in posted.json()["lines"] if line["account_id"] == cash_account_id)


@pytest.fixture
def reconciliation_setup(client):
    """Bank account with beginning balance 1000, an imported statement and two posted ledger lines."""

    async def _setup() -> dict:
        bank_account = await create_bank_account(client)
        offset = await client.post("/accounts", json={"name": "Clearing", "type": "EQUITY"})
        statement = (await upload_statement(client, bank_account["id"])).json()
        imported = await client.post(
            "/bank-reconciliation/transactions/import",
            data={"statement_id": statement["id"]},
            files={"file": ("january.csv", CSV_CONTENT, "text/csv")},
        )
        assert imported.status_code == 201
        transactions = (
            await client.get(f"/bank-reconciliation/statements/{statement['id']}/transactions")
        ).json()

        cash_id = bank_account["gl_account_id"]
        deposit = await post_cash_entry(client, cash_id, offset.json()["id"], "1500.00", "2024-01-05")
        check = await post_cash_entry(client, cash_id, offset.json()["id"], "-250.75", "2024-01-11")
        return {
            "bank_account": bank_account,
            "statement": statement,
            "transactions": transactions,
            "lines": [deposit, check],
        }

    return _setup


async def open_session(client, setup: dict, **overrides):
    payload = {
        "bank_account_id": setup["bank_account"]["id"],
        "bank_statement_id": setup["statement"]["id"],
        "reconciliation_date": "2024-01-31",
    }
    payload.update(overrides)
    return await client.post(BASE, json=payload)


@pytest.mark.asyncio
async def test_auto_match_and_close(client, reconciliation_setup):
    """
    GIVEN an imported statement whose transactions both have posted ledger counterparts
    WHEN a session is opened, auto-matched and closed
    THEN the statement is reconciled and the bank account records the result
    """
    setup = await reconciliation_setup()

    created = await open_session(client, setup)
    assert created.status_code == 201
    session = created.json()
    assert session["status"] == "created"
    assert Decimal(session["book_balance"]) == Decimal("1000.00")
    assert Decimal(session["difference"]) == Decimal("1249.25")
    assert session["matches"] == []

    matched = await client.post(f"{BASE}/{session['id']}/auto-match", json={"date_tolerance_days": 1})
    assert matched.status_code == 200
    body = matched.json()
    assert body["matches"] == 2
    assert [pair["journal_line_id"] for pair in body["pairs"]] == [line["id"] for line in setup["lines"]]
    assert body["reconciliation"]["status"] == "balanced"
    assert Decimal(body["reconciliation"]["difference"]) == Decimal("0")

    closed = await client.post(f"{BASE}/{session['id']}/close")
    assert closed.status_code == 200
    assert closed.json()["status"] == "closed"
    assert closed.json()["closed_at"] is not None

    statement = await client.get(f"/bank-reconciliation/statements/{setup['statement']['id']}")
    assert statement.json()["status"] == "reconciled"
    bank_account = await client.get(f"/bank-accounts/{setup['bank_account']['id']}")
    assert bank_account.json()["last_reconciliation_id"] == session["id"]
    assert Decimal(bank_account.json()["reconciled_balance"]) == Decimal("2249.25")

    detail = await client.get(f"{BASE}/{session['id']}")
    assert len(detail.json()["matches"]) == 2

    rerun = await client.post(f"{BASE}/{session['id']}/auto-match")
    assert rerun.status_code == 409


@pytest.mark.asyncio
async def test_auto_match_without_body_uses_defaults(client, reconciliation_setup):
    setup = await reconciliation_setup()
    session = (await open_session(client, setup)).json()

    response = await client.post(f"{BASE}/{session['id']}/auto-match")

    assert response.status_code == 200
    assert response.json()["matches"] == 2


@pytest.mark.asyncio
async def test_auto_match_with_zero_tolerance_leaves_late_line(client, reconciliation_setup):
    setup = await reconciliation_setup()
    session = (await open_session(client, setup)).json()

    response = await client.post(f"{BASE}/{session['id']}/auto-match", json={"date_tolerance_days": 0})

    assert response.json()["matches"] == 1
    assert response.json()["reconciliation"]["status"] == "in_progress"
    assert Decimal(response.json()["reconciliation"]["difference"]) == Decimal("-250.75")

    unmatched = await client.get(f"{BASE}/{session['id']}/unmatched", params={"date_tolerance_days": 1})
    assert unmatched.status_code == 200
    assert [t["id"] for t in unmatched.json()["transactions"]] == [setup["transactions"][1]["id"]]
    assert [c["id"] for c in unmatched.json()["candidates"]] == [setup["lines"][1]["id"]]


@pytest.mark.asyncio
async def test_negative_tolerance_is_rejected(client, reconciliation_setup):
    setup = await reconciliation_setup()
    session = (await open_session(client, setup)).json()

    response = await client.post(f"{BASE}/{session['id']}/auto-match", json={"date_tolerance_days": -1})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_manual_match_and_unmatch(client, reconciliation_setup):
    setup = await reconciliation_setup()
    session = (await open_session(client, setup)).json()
    txn, line = setup["transactions"][0], setup["lines"][0]

    created = await client.post(
        f"{BASE}/{session['id']}/matches", json={"transaction_id": txn["id"], "journal_line_id": line["id"]}
    )
    assert created.status_code == 201
    assert created.json()["match_type"] == "manual"

    duplicate = await client.post(
        f"{BASE}/{session['id']}/matches", json={"transaction_id": txn["id"], "journal_line_id": line["id"]}
    )
    assert duplicate.status_code == 409

    removed = await client.delete(f"{BASE}/{session['id']}/matches/{txn['id']}")
    assert removed.status_code == 200
    assert removed.json()["status"] == "created"
    assert Decimal(removed.json()["difference"]) == Decimal("1249.25")

    again = await client.delete(f"{BASE}/{session['id']}/matches/{txn['id']}")
    assert again.status_code == 200


@pytest.mark.asyncio
async def test_adjustments_and_summary(client, reconciliation_setup):
    setup = await reconciliation_setup()
    session = (await open_session(client, setup)).json()
    await client.post(
        f"{BASE}/{session['id']}/matches",
        json={"transaction_id": setup["transactions"][0]["id"], "journal_line_id": setup["lines"][0]["id"]},
    )

    adjustment = await client.post(
        f"{BASE}/{session['id']}/adjustments",
        json={
            "adjustment_date": "2024-01-31",
            "description": "Check cleared late",
            "adjustment_type": "other",
            "amount": "-250.75",
        },
    )
    assert adjustment.status_code == 201

    summary = await client.get(f"{BASE}/{session['id']}/summary")
    assert summary.status_code == 200
    data = summary.json()
    assert data["status"] == "balanced"
    assert data["is_balanced"] is True
    assert data["matched_transactions"] == 1
    assert data["unmatched_transactions"] == 1
    assert data["adjustment_count"] == 1
    assert Decimal(data["matched_total"]) == Decimal("1500.00")
    assert Decimal(data["adjustments_total"]) == Decimal("-250.75")

    deleted = await client.delete(f"{BASE}/{session['id']}/adjustments/{adjustment.json()['id']}")
    assert deleted.status_code == 200
    assert deleted.json()["status"] == "in_progress"


@pytest.mark.asyncio
async def test_update_and_approve_adjustment(client, reconciliation_setup):
    setup = await reconciliation_setup()
    session = (await open_session(client, setup)).json()
    await client.post(
        f"{BASE}/{session['id']}/matches",
        json={"transaction_id": setup["transactions"][0]["id"], "journal_line_id": setup["lines"][0]["id"]},
    )
    created = await client.post(
        f"{BASE}/{session['id']}/adjustments",
        json={"adjustment_date": "2024-01-31", "description": "Check", "amount": "-200.00"},
    )
    assert created.json()["status"] == "pending"
    adjustment_url = f"{BASE}/{session['id']}/adjustments/{created.json()['id']}"

    updated = await client.put(adjustment_url, json={"amount": "-250.75", "status": "approved"})

    assert updated.status_code == 200
    assert updated.json()["status"] == "approved"
    assert Decimal(updated.json()["amount"]) == Decimal("-250.75")
    summary = (await client.get(f"{BASE}/{session['id']}/summary")).json()
    assert summary["status"] == "balanced"
    assert summary["approved_adjustments"] == 1
    assert summary["pending_adjustments"] == 0

    invalid = await client.put(adjustment_url, json={"status": "rejected"})
    assert invalid.status_code == 422
    zero = await client.put(adjustment_url, json={"amount": "0"})
    assert zero.status_code == 400
    missing = await client.put(f"{BASE}/{session['id']}/adjustments/{uuid4()}", json={"description": "x"})
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_zero_adjustment_is_rejected(client, reconciliation_setup):
    setup = await reconciliation_setup()
    session = (await open_session(client, setup)).json()

    response = await client.post(
        f"{BASE}/{session['id']}/adjustments",
        json={"adjustment_date": "2024-01-31", "description": "Nothing", "amount": "0.00"},
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_unbalanced_close_is_rejected(client, reconciliation_setup):
    setup = await reconciliation_setup()
    session = (await open_session(client, setup)).json()

    response = await client.post(f"{BASE}/{session['id']}/close")

    assert response.status_code == 400
    assert "not balanced" in response.json()["detail"]


@pytest.mark.asyncio
async def test_update_recomputes_difference(client, reconciliation_setup):
    setup = await reconciliation_setup()
    session = (await open_session(client, setup)).json()

    response = await client.put(f"{BASE}/{session['id']}", json={"statement_balance": "1000.00"})

    assert response.status_code == 200
    assert Decimal(response.json()["difference"]) == Decimal("0")
    assert response.json()["status"] == "created"


@pytest.mark.asyncio
async def test_one_open_session_per_statement(client, reconciliation_setup):
    setup = await reconciliation_setup()
    assert (await open_session(client, setup)).status_code == 201

    second = await open_session(client, setup)

    assert second.status_code == 409
    listing = await client.get(BASE, params={"bank_account_id": setup["bank_account"]["id"]})
    assert listing.json()["total"] == 1


@pytest.mark.asyncio
async def test_referenced_statement_cannot_be_deleted(client, reconciliation_setup):
    setup = await reconciliation_setup()
    await open_session(client, setup)

    response = await client.delete(f"/bank-reconciliation/statements/{setup['statement']['id']}")

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_unknown_session_is_404(client):
    missing = uuid4()

    assert (await client.get(f"{BASE}/{missing}")).status_code == 404
    assert (await client.post(f"{BASE}/{missing}/auto-match")).status_code == 404
    assert (await client.get(f"{BASE}/{missing}/summary")).status_code == 404
