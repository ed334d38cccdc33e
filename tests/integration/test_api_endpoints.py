"""Integration tests for API endpoints."""

from decimal import Decimal
from uuid import uuid4

import pytest
from httpx import AsyncClient

from paystub_engine.models import LegalParameter


def stub_payload(employee, **overrides) -> dict:
    payload = {
        "employee_id": str(employee.employee_id),
        "pay_period": "2024-05-01",
        "base_salary": "2400.00",
    }
    payload.update(overrides)
    return payload


async def create_stub(client: AsyncClient, employee, **overrides) -> dict:
    response = await client.post("/api/v1/pay-stubs", json=stub_payload(employee, **overrides))
    assert response.status_code == 201, response.text
    return response.json()


class TestHealthEndpoints:
    """Test health check endpoints."""

    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"
        assert "version" in data

    @pytest.mark.asyncio
    async def test_readiness_check(self, client: AsyncClient):
        response = await client.get("/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    @pytest.mark.asyncio
    async def test_liveness_check(self, client: AsyncClient):
        response = await client.get("/live")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"


class TestPayStubEndpoints:
    """Test pay stub generation and review endpoints."""

    @pytest.mark.asyncio
    async def test_generate_pay_stub(self, client, company, employee, default_parameters):
        data = await create_stub(client, employee)

        assert data["status"] == "DRAFT"
        assert data["company_id"] == str(company.company_id)
        assert data["payroll_run_id"] is not None
        assert Decimal(data["gross_salary"]) == Decimal("2400.00")
        assert Decimal(data["social_security"]) == Decimal("210.00")
        assert Decimal(data["educational_insurance"]) == Decimal("30.00")
        assert Decimal(data["net_salary"]) == Decimal("2160.00")

    @pytest.mark.asyncio
    async def test_generate_with_items(self, client, company, employee, default_parameters):
        data = await create_stub(
            client,
            employee,
            deductions=[{"amount": "50", "type": "LOAN"}],
            allowances=[{"amount": "100", "type": "TRANSPORT"}],
        )

        assert [d["deduction_type"] for d in data["deductions"]] == ["LOAN"]
        assert [a["allowance_type"] for a in data["allowances"]] == ["TRANSPORT"]
        assert Decimal(data["gross_salary"]) == Decimal("2500.00")
        assert Decimal(data["other_deductions"]) == Decimal("50.00")

    @pytest.mark.asyncio
    async def test_duplicate_stub_conflicts(self, client, company, employee, default_parameters):
        await create_stub(client, employee)

        response = await client.post("/api/v1/pay-stubs", json=stub_payload(employee))
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    @pytest.mark.asyncio
    async def test_unknown_employee(self, client, company, default_parameters):
        payload = {
            "employee_id": str(uuid4()),
            "pay_period": "2024-05-01",
            "base_salary": "2400.00",
        }
        response = await client.post("/api/v1/pay-stubs", json=payload)
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_days_worked_above_working_days(
        self, client, company, employee, default_parameters
    ):
        response = await client.post(
            "/api/v1/pay-stubs",
            json=stub_payload(employee, working_days=20, days_worked=25),
        )
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_negative_salary_rejected_by_schema(self, client, company, employee):
        response = await client.post(
            "/api/v1/pay-stubs", json=stub_payload(employee, base_salary="-1")
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_missing_bracket_table(
        self, client, session_factory, company, employee, default_parameters
    ):
        async with session_factory() as session:
            await session.execute(
                LegalParameter.__table__.delete().where(LegalParameter.category == "isr")
            )
            await session.commit()

        response = await client.post("/api/v1/pay-stubs", json=stub_payload(employee))
        assert response.status_code == 422
        assert response.json()["code"] == "CONFIGURATION_ERROR"

    @pytest.mark.asyncio
    async def test_get_and_list(
        self, client, company, employee, second_employee, default_parameters
    ):
        first = await create_stub(client, employee)
        await create_stub(client, second_employee, base_salary="1500.00")

        response = await client.get(f"/api/v1/pay-stubs/{first['pay_stub_id']}")
        assert response.status_code == 200
        assert response.json()["stub_number"] == first["stub_number"]

        response = await client.get(
            "/api/v1/pay-stubs", params={"company_id": str(company.company_id)}
        )
        assert response.status_code == 200
        assert response.json()["total"] == 2

        response = await client.get(
            "/api/v1/pay-stubs", params={"employee_id": str(employee.employee_id)}
        )
        assert [s["pay_stub_id"] for s in response.json()["items"]] == [first["pay_stub_id"]]

    @pytest.mark.asyncio
    async def test_list_unknown_status(self, client):
        response = await client.get("/api/v1/pay-stubs", params={"status": "PAID"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_get_unknown_stub(self, client):
        response = await client.get(f"/api/v1/pay-stubs/{uuid4()}")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_approve_and_reject(
        self, client, company, employee, second_employee, default_parameters
    ):
        first = await create_stub(client, employee)
        second = await create_stub(client, second_employee, base_salary="1500.00")

        response = await client.put(
            f"/api/v1/pay-stubs/{first['pay_stub_id']}/approve",
            json={"approved_by": "auditor", "comments": "ok"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "APPROVED"
        assert response.json()["approved_by"] == "auditor"

        response = await client.put(
            f"/api/v1/pay-stubs/{second['pay_stub_id']}/reject",
            json={"comments": "wrong salary"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "REJECTED"

        # Review outcomes are terminal
        response = await client.put(
            f"/api/v1/pay-stubs/{second['pay_stub_id']}/approve",
            json={"approved_by": "auditor"},
        )
        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_TRANSITION"

    @pytest.mark.asyncio
    async def test_approve_requires_approver(self, client, company, employee, default_parameters):
        stub = await create_stub(client, employee)

        response = await client.put(
            f"/api/v1/pay-stubs/{stub['pay_stub_id']}/approve", json={"approved_by": ""}
        )
        assert response.status_code == 422


class TestBatchEndpoint:
    """Test batch generation."""

    @pytest.mark.asyncio
    async def test_batch_reports_created_and_skipped(
        self, client, company, employee, second_employee, default_parameters
    ):
        payload = {
            "company_id": str(company.company_id),
            "period_date": "2024-05-01",
            "stubs": [
                {"employee_id": str(employee.employee_id), "base_salary": "2400.00"},
                {"employee_id": str(uuid4()), "base_salary": "900.00"},
                {"employee_id": str(second_employee.employee_id), "base_salary": "1500.00"},
            ],
        }
        response = await client.post("/api/v1/pay-stubs/batch", json=payload)

        assert response.status_code == 201
        data = response.json()
        assert data["created_count"] == 2
        assert data["skipped_count"] == 1
        assert data["skipped"][0]["index"] == 1
        assert data["skipped"][0]["code"] == "NOT_FOUND"
        assert Decimal(data["run"]["total_gross"]) == Decimal("3900.00")
        assert {s["payroll_run_id"] for s in data["created"]} == {data["run"]["payroll_run_id"]}

    @pytest.mark.asyncio
    async def test_batch_requires_items(self, client, company):
        response = await client.post(
            "/api/v1/pay-stubs/batch",
            json={"company_id": str(company.company_id), "period_date": "2024-05-01", "stubs": []},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_batch_unknown_company(self, client, employee):
        payload = {
            "company_id": str(uuid4()),
            "period_date": "2024-05-01",
            "stubs": [{"employee_id": str(employee.employee_id), "base_salary": "2400.00"}],
        }
        response = await client.post("/api/v1/pay-stubs/batch", json=payload)
        assert response.status_code == 404


class TestPayrollRunEndpoints:
    """Test payroll run endpoints."""

    @pytest.mark.asyncio
    async def test_get_run_and_stubs(self, client, company, employee, default_parameters):
        stub = await create_stub(client, employee)
        run_id = stub["payroll_run_id"]

        response = await client.get(f"/api/v1/payroll-runs/{run_id}")
        assert response.status_code == 200
        run = response.json()
        assert run["period_date"] == "2024-05-01"
        assert run["status"] == "DRAFT"
        assert Decimal(run["total_net"]) == Decimal("2160.00")

        response = await client.get(f"/api/v1/payroll-runs/{run_id}/stubs")
        assert response.status_code == 200
        assert response.json()["total"] == 1

    @pytest.mark.asyncio
    async def test_recompute(self, client, company, employee, default_parameters):
        stub = await create_stub(client, employee)

        response = await client.post(f"/api/v1/payroll-runs/{stub['payroll_run_id']}/recompute")
        assert response.status_code == 200
        assert Decimal(response.json()["total_gross"]) == Decimal("2400.00")

    @pytest.mark.asyncio
    async def test_unknown_run(self, client):
        response = await client.get(f"/api/v1/payroll-runs/{uuid4()}")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_approve_run(self, client, company, employee, default_parameters):
        stub = await create_stub(client, employee)
        run_id = stub["payroll_run_id"]

        # Pending stubs block approval
        response = await client.post(
            f"/api/v1/payroll-runs/{run_id}/approve", json={"approved_by": "manager"}
        )
        assert response.status_code == 409

        await client.put(
            f"/api/v1/pay-stubs/{stub['pay_stub_id']}/approve", json={"approved_by": "auditor"}
        )
        response = await client.post(
            f"/api/v1/payroll-runs/{run_id}/approve", json={"approved_by": "manager"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "APPROVED"
        assert response.json()["approved_by"] == "manager"

        # An approved run takes no further stubs
        response = await client.post(
            "/api/v1/pay-stubs", json=stub_payload(employee, pay_period="2024-05-20")
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_approve_run_rejects_comments(
        self, client, company, employee, default_parameters
    ):
        stub = await create_stub(client, employee)
        await client.put(
            f"/api/v1/pay-stubs/{stub['pay_stub_id']}/approve", json={"approved_by": "auditor"}
        )

        response = await client.post(
            f"/api/v1/payroll-runs/{stub['payroll_run_id']}/approve",
            json={"approved_by": "manager", "comments": "looks fine"},
        )
        assert response.status_code == 422

        response = await client.get(f"/api/v1/payroll-runs/{stub['payroll_run_id']}")
        assert response.json()["status"] == "DRAFT"


class TestLegalParameterEndpoints:
    """Test legal parameter administration."""

    @pytest.mark.asyncio
    async def test_available_keys(self, client):
        response = await client.get("/api/v1/legal-parameters/keys")
        assert response.status_code == 200
        keys = [k["key"] for k in response.json()]
        assert "ss_empleado" in keys
        assert "isr_r4" in keys

    @pytest.mark.asyncio
    async def test_list_and_isr_rates(self, client, company, default_parameters):
        params = {"company_id": str(company.company_id)}

        response = await client.get("/api/v1/legal-parameters", params=params)
        assert response.status_code == 200
        assert len(response.json()) == default_parameters

        response = await client.get(
            "/api/v1/legal-parameters", params={**params, "category": "social_security"}
        )
        assert {p["key"] for p in response.json()} == {"ss_empleado", "ss_patrono"}

        response = await client.get("/api/v1/legal-parameters/isr/rates", params=params)
        assert [p["key"] for p in response.json()] == ["isr_r1", "isr_r2", "isr_r3", "isr_r4"]

    @pytest.mark.asyncio
    async def test_create_get_and_delete(self, client, company):
        payload = {
            "company_id": str(company.company_id),
            "key": "Riesgo Profesional",
            "name": "Occupational Risk",
            "category": "other",
            "type": "employer",
            "percentage": "0.98",
            "effective_date": "2024-01-01",
        }
        response = await client.post("/api/v1/legal-parameters", json=payload)
        assert response.status_code == 201
        created = response.json()
        assert created["key"] == "riesgo_profesional"
        assert created["status"] == "active"

        response = await client.get(f"/api/v1/legal-parameters/{created['legal_parameter_id']}")
        assert response.status_code == 200

        response = await client.post("/api/v1/legal-parameters", json=payload)
        assert response.status_code == 409

        response = await client.delete(f"/api/v1/legal-parameters/{created['legal_parameter_id']}")
        assert response.status_code == 204

        response = await client.get(f"/api/v1/legal-parameters/{created['legal_parameter_id']}")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_create_rejects_unknown_category(self, client, company):
        payload = {
            "company_id": str(company.company_id),
            "key": "pension",
            "name": "Pension",
            "category": "pension",
            "type": "employee",
            "percentage": "1",
        }
        response = await client.post("/api/v1/legal-parameters", json=payload)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_approved_reference_freezes_rate(
        self, client, company, employee, default_parameters
    ):
        stub = await create_stub(client, employee)
        await client.put(
            f"/api/v1/pay-stubs/{stub['pay_stub_id']}/approve", json={"approved_by": "auditor"}
        )
        rows = (
            await client.get(
                "/api/v1/legal-parameters", params={"company_id": str(company.company_id)}
            )
        ).json()
        ss = next(p for p in rows if p["key"] == "ss_empleado")
        url = f"/api/v1/legal-parameters/{ss['legal_parameter_id']}"

        response = await client.put(url, json={"percentage": "9.75"})
        assert response.status_code == 409

        response = await client.put(url, json={"name": "CSS - Employee"})
        assert response.status_code == 200
        assert response.json()["name"] == "CSS - Employee"

        response = await client.delete(url)
        assert response.status_code == 409

        response = await client.post(
            f"{url}/supersede",
            json={"key": "ss_empleado_2025", "effective_date": "2025-01-01", "percentage": "9.75"},
        )
        assert response.status_code == 201
        assert Decimal(response.json()["percentage"]) == Decimal("9.75")
        assert response.json()["effective_date"] == "2025-01-01"

    @pytest.mark.asyncio
    async def test_unknown_parameter(self, client):
        response = await client.get(f"/api/v1/legal-parameters/{uuid4()}")
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"
