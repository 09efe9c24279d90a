"""Unit tests for mapping store failures to StoreUnavailableError"""

import pytest
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from school_ledger.domain.exceptions import StoreUnavailableError
from school_ledger.infrastructure.database.repositories import store_call


@pytest.mark.parametrize("error_class", [OperationalError, InterfaceError])
def test_connectivity_errors_become_store_unavailable(error_class):
    @store_call
    def list_debts():
        raise error_class("SELECT 1", {}, Exception("server closed the connection"))

    with pytest.raises(StoreUnavailableError, match="list_debts"):
        list_debts()


def test_other_database_errors_propagate():
    @store_call
    def add_debt():
        raise IntegrityError("INSERT", {}, Exception("duplicate key"))

    with pytest.raises(IntegrityError):
        add_debt()
