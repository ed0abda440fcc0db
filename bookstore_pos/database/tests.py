"""
Tests de las migraciones de Alembic

El esquema migrado debe coincidir con el de los modelos, incluyendo el
índice único parcial de la caja abierta y los CHECK de montos.
"""

import pytest
from alembic import command
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError

import migrate
from bookstore_pos.database.database import load_models


@pytest.fixture
def migrated_url(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    command.upgrade(migrate.get_alembic_config(url), "head")
    return url


@pytest.fixture
def migrated_engine(migrated_url):
    engine = create_engine(migrated_url)
    yield engine
    engine.dispose()


class TestMigrations:

    def test_upgrade_creates_model_tables(self, migrated_engine):
        tables = set(inspect(migrated_engine).get_table_names()) - {"alembic_version"}

        assert tables == set(load_models().tables)

    def test_single_open_index(self, migrated_engine):
        indexes = {index["name"]: index for index in inspect(migrated_engine).get_indexes("cash_sessions")}

        assert "uq_cash_session_single_open" in indexes
        assert indexes["uq_cash_session_single_open"]["unique"]
        assert indexes["uq_cash_session_single_open"]["column_names"] == ["status"]

    def test_check_constraints(self, migrated_engine):
        inspector = inspect(migrated_engine)

        def names(table):
            return {check["name"] for check in inspector.get_check_constraints(table)}

        assert names("sale_lines") == {"ck_sale_line_quantity", "ck_sale_line_discount"}
        assert names("stock_lines") == {"ck_stock_line_non_negative"}
        assert names("price_lines") == {"ck_price_line_non_negative"}
        assert names("cash_sessions") == {"ck_cash_session_opening_float"}
        assert names("cash_movements") == {"ck_cash_movement_positive"}

    def test_second_open_session_rejected(self, migrated_engine):
        insert_session = text(
            "INSERT INTO cash_sessions (status, opening_float, registered_cash, registered_credit, "
            "registered_debit, registered_pix, registered_other, opened_by, opened_at) "
            "VALUES (:status, 0, 0, 0, 0, 0, 0, 1, CURRENT_TIMESTAMP)"
        )
        with migrated_engine.begin() as connection:
            connection.execute(text(
                "INSERT INTO operators (username, name, password_hash, is_active) "
                "VALUES ('caixa01', 'Caixa 01', 'x', 1)"
            ))
            connection.execute(insert_session, {"status": "CLOSED"})
            connection.execute(insert_session, {"status": "CLOSED"})
            connection.execute(insert_session, {"status": "OPEN"})

        with pytest.raises(IntegrityError):
            with migrated_engine.begin() as connection:
                connection.execute(insert_session, {"status": "OPEN"})

    def test_negative_stock_rejected(self, migrated_engine):
        with pytest.raises(IntegrityError):
            with migrated_engine.begin() as connection:
                connection.execute(text(
                    "INSERT INTO books (isbn, title, author) VALUES ('9788535914849', 'Dom Casmurro', 'Machado de Assis')"
                ))
                connection.execute(text(
                    "INSERT INTO stock_lines (book_id, condition, quantity) VALUES (1, 'NEW', -1)"
                ))

    def test_downgrade_drops_everything(self, migrated_url, migrated_engine):
        command.downgrade(migrate.get_alembic_config(migrated_url), "base")

        assert set(inspect(migrated_engine).get_table_names()) == {"alembic_version"}
