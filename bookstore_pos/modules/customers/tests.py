"""
Tests para el módulo de Clientes
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pydantic import ValidationError as PydanticValidationError

from bookstore_pos.common.exceptions import ConflictError, NotFoundError, ValidationError
from bookstore_pos.modules.customers.models import Customer
from bookstore_pos.modules.customers.schemas import CustomerCreate, CustomerUpdate
from bookstore_pos.modules.customers.service import CustomerService
from bookstore_pos.modules.pos.models import Sale, TenderType
from bookstore_pos.modules.pos.schemas import SaleCreate
from bookstore_pos.modules.pos.services import SaleService


class TestCustomerService:

    def test_create_normalizes_cpf(self, db_session, customer):
        assert customer.cpf == "52998224725"
        assert customer.name == "Maria Silva"
        assert CustomerService(db_session).customer_exists(customer.id) is True
        assert CustomerService(db_session).customer_exists(9999) is False

    def test_duplicate_cpf(self, db_session, customer):
        with pytest.raises(ConflictError) as exc_info:
            CustomerService(db_session).create_customer(
                CustomerCreate(name="Outra Maria", cpf="52998224725")
            )
        assert exc_info.value.details["cpf"] == "52998224725"

    def test_invalid_cpf(self):
        with pytest.raises(PydanticValidationError):
            CustomerCreate(name="João", cpf="123.456.789-00")

    def test_get_unknown_customer(self, db_session):
        with pytest.raises(NotFoundError) as exc_info:
            CustomerService(db_session).get_customer(9999)
        assert exc_info.value.code == "CUSTOMER_NOT_FOUND"

    def test_search_by_name_and_cpf(self, db_session, customer):
        service = CustomerService(db_session)
        service.create_customer(CustomerCreate(name="João Souza", cpf="111.444.777-35"))

        assert service.list_customers(search="silva").total == 1
        assert service.list_customers(search="111.444").items[0].name == "João Souza"
        assert service.list_customers().total == 2

    def test_get_by_cpf_masked_or_digits(self, db_session, customer):
        service = CustomerService(db_session)

        assert service.get_by_cpf("529.982.247-25").id == customer.id
        assert service.get_by_cpf("52998224725").id == customer.id

    def test_get_by_cpf_unknown_and_invalid(self, db_session, customer):
        service = CustomerService(db_session)

        with pytest.raises(NotFoundError) as exc_info:
            service.get_by_cpf("111.444.777-35")
        assert exc_info.value.code == "CUSTOMER_NOT_FOUND"

        with pytest.raises(ValidationError):
            service.get_by_cpf("123.456.789-00")


class TestCustomerUpdate:

    def test_update_partial(self, db_session, customer):
        updated = CustomerService(db_session).update_customer(
            customer.id, CustomerUpdate(email="maria.silva@livraria.com.br")
        )

        assert updated.email == "maria.silva@livraria.com.br"
        assert updated.name == "Maria Silva"
        assert updated.cpf == "52998224725"

    def test_update_keeps_own_cpf(self, db_session, customer):
        updated = CustomerService(db_session).update_customer(
            customer.id, CustomerUpdate(name="Maria da Silva", cpf="529.982.247-25")
        )

        assert updated.name == "Maria da Silva"
        assert updated.cpf == "52998224725"

    def test_update_to_taken_cpf(self, db_session, customer):
        service = CustomerService(db_session)
        other = service.create_customer(CustomerCreate(name="João Souza", cpf="111.444.777-35"))

        with pytest.raises(ConflictError) as exc_info:
            service.update_customer(other.id, CustomerUpdate(cpf="52998224725"))
        assert exc_info.value.details["cpf"] == "52998224725"

        db_session.refresh(other)
        assert other.cpf == "11144477735"

    def test_update_rejects_null_name(self, db_session, customer):
        with pytest.raises(ValidationError):
            CustomerService(db_session).update_customer(customer.id, CustomerUpdate(name=None))

    def test_update_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            CustomerService(db_session).update_customer(9999, CustomerUpdate(name="Ninguém"))


class TestCustomerDelete:

    def test_delete_keeps_sales(self, db_session, open_session, operator, book_a, customer):
        sale = SaleService(db_session).create_sale(
            SaleCreate(
                customer_id=customer.id,
                tender_type=TenderType.PIX,
                lines=[{"book_id": book_a.id, "quantity": 1}]
            ),
            operator.id
        )

        result = CustomerService(db_session).delete_customer(customer.id)

        assert result["sales_detached"] == 1
        assert db_session.get(Customer, customer.id) is None
        kept = db_session.get(Sale, sale.sale_id)
        db_session.refresh(kept)
        assert kept.customer_id is None
        assert kept.total == Decimal("50.00")

    def test_delete_without_sales(self, db_session, customer):
        result = CustomerService(db_session).delete_customer(customer.id)

        assert result["sales_detached"] == 0
        assert CustomerService(db_session).customer_exists(customer.id) is False

    def test_delete_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            CustomerService(db_session).delete_customer(9999)


class TestCustomerStatistics:

    def test_empty(self, db_session):
        stats = CustomerService(db_session).statistics()

        assert stats.total_customers == 0
        assert stats.customers_with_email == 0
        assert stats.customers_last_30_days == 0

    def test_counts_by_registration_date(self, db_session, customer):
        service = CustomerService(db_session)
        recent = service.create_customer(CustomerCreate(name="João Souza", cpf="111.444.777-35"))
        old = service.create_customer(CustomerCreate(name="Ana Lima", cpf="390.533.447-05", email="ana@livraria.com.br"))

        now = datetime.now(timezone.utc).replace(tzinfo=None)
        recent.created_at = now - timedelta(days=3)
        old.created_at = now - timedelta(days=60)
        db_session.commit()

        stats = service.statistics()
        assert stats.total_customers == 3
        assert stats.customers_with_email == 2
        assert stats.customers_today == 1
        assert stats.customers_last_7_days == 2
        assert stats.customers_last_30_days == 2


class TestCustomerAPI:

    def test_create_and_get(self, client, auth_headers):
        response = client.post(
            "/api/v1/customers/",
            json={"name": "João Souza", "cpf": "111.444.777-35"},
            headers=auth_headers
        )
        assert response.status_code == 201
        customer_id = response.json()["id"]

        response = client.get(f"/api/v1/customers/{customer_id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["cpf"] == "11144477735"

    def test_invalid_cpf_returns_422(self, client, auth_headers):
        response = client.post(
            "/api/v1/customers/",
            json={"name": "João", "cpf": "123.456.789-00"},
            headers=auth_headers
        )
        assert response.status_code == 422

    def test_unknown_customer(self, client, auth_headers):
        response = client.get("/api/v1/customers/9999", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "CUSTOMER_NOT_FOUND"

    def test_get_by_cpf(self, client, auth_headers, customer):
        response = client.get("/api/v1/customers/cpf/529.982.247-25", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["id"] == customer.id

    def test_update_and_delete(self, client, auth_headers, customer):
        response = client.put(
            f"/api/v1/customers/{customer.id}",
            json={"name": "Maria da Silva"},
            headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Maria da Silva"
        assert response.json()["email"] == "maria@livraria.com.br"

        response = client.delete(f"/api/v1/customers/{customer.id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["sales_detached"] == 0

        response = client.get(f"/api/v1/customers/{customer.id}", headers=auth_headers)
        assert response.status_code == 404

    def test_update_taken_cpf_returns_409(self, client, auth_headers, customer):
        other = client.post(
            "/api/v1/customers/",
            json={"name": "João Souza", "cpf": "111.444.777-35"},
            headers=auth_headers
        ).json()

        response = client.put(
            f"/api/v1/customers/{other['id']}",
            json={"cpf": "529.982.247-25"},
            headers=auth_headers
        )
        assert response.status_code == 409

    def test_statistics(self, client, auth_headers, customer):
        response = client.get("/api/v1/customers/statistics", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {
            "total_customers": 1,
            "customers_with_email": 1,
            "customers_today": 1,
            "customers_last_7_days": 1,
            "customers_last_30_days": 1
        }
