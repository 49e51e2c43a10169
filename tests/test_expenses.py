"""
Tests for the /api/expenses endpoints.
"""


def create_expense(client, headers, lines, expense_date=None):
    body = {"lines": [{"description": d, "amount_cents": a} for d, a in lines]}
    if expense_date is not None:
        body["expense_date"] = expense_date
    return client.post("/api/expenses", json=body, headers=headers)


class TestExpenseEndpoints:
    def test_total_is_sum_of_lines(self, client, auth_headers):
        response = create_expense(client, auth_headers, [("Gas", 2000), ("Servilletas", 650)])

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["total_cents"] == 2650
        assert [line["description"] for line in data["lines"]] == ["Gas", "Servilletas"]
        assert data["included_in_closing"] is False

    def test_expense_needs_a_line(self, client, auth_headers):
        response = client.post("/api/expenses", json={"lines": []}, headers=auth_headers)

        assert response.status_code == 400

    def test_update_replaces_lines(self, client, auth_headers):
        expense_id = create_expense(client, auth_headers, [("Gas", 2000)]).json()["data"]["id"]

        response = client.put(
            f"/api/expenses/{expense_id}",
            json={"lines": [{"description": "Gas licuado", "amount_cents": 2500}]},
            headers=auth_headers,
        )

        assert response.json()["data"]["total_cents"] == 2500

    def test_month_filter(self, client, auth_headers):
        create_expense(client, auth_headers, [("Arriendo", 300000)], "2024-03-05T12:00:00")
        create_expense(client, auth_headers, [("Luz", 40000)], "2024-04-02T12:00:00")

        response = client.get("/api/expenses", params={"month": "2024-03"}, headers=auth_headers)

        assert [e["total_cents"] for e in response.json()["data"]] == [300000]

    def test_malformed_month(self, client, auth_headers):
        response = client.get("/api/expenses", params={"month": "marzo"}, headers=auth_headers)

        assert response.status_code == 400

    def test_summary(self, client, auth_headers):
        create_expense(client, auth_headers, [("Gas", 2000), ("Hielo", 1000)])
        create_expense(client, auth_headers, [("Pan", 1001)])

        response = client.get("/api/expenses/stats/summary", headers=auth_headers)

        assert response.json()["data"] == {
            "total_cents": 4001,
            "record_count": 2,
            "line_count": 3,
            "average_per_record_cents": 2000,
        }

    def test_delete_hides_expense(self, client, auth_headers):
        expense_id = create_expense(client, auth_headers, [("Gas", 2000)]).json()["data"]["id"]

        client.delete(f"/api/expenses/{expense_id}", headers=auth_headers)

        assert client.get(f"/api/expenses/{expense_id}", headers=auth_headers).status_code == 404

    def test_waiter_has_no_expense_access(self, client, waiter_auth_headers):
        response = client.get("/api/expenses", headers=waiter_auth_headers)

        assert response.status_code == 403

    def test_included_expense_cannot_be_deleted(self, client, auth_headers, make_expense, db_session):
        expense = make_expense([("Gas", 2000)])
        expense.included_in_closing = True
        db_session.commit()

        response = client.delete(f"/api/expenses/{expense.id}", headers=auth_headers)

        assert response.status_code == 400
