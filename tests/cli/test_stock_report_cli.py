"""Smoke tests for scripts/stock_report.py against a throwaway SQLite file."""

from datetime import date
from decimal import Decimal

import pytest

from scripts import stock_report
from stock_kernel.db.engine import create_database_engine, create_session_factory
from stock_services.inventory_service import InventoryService


@pytest.fixture
def db_url(tmp_path):
    url = f"sqlite:///{tmp_path / 'report.db'}"
    assert stock_report.main(["--db-url", url, "init-db"]) == 0
    return url


@pytest.fixture
def seeded(db_url, clock):
    engine = create_database_engine(db_url)
    inventory = InventoryService(create_session_factory(engine), clock=clock)
    product = inventory.create_product("WIDGET-1", "Widget", reorder_level=Decimal("20"))
    inventory.receive(product.id, Decimal("15"), Decimal("10"), date(2024, 1, 1))
    engine.dispose()
    return db_url


class TestStockReportCli:
    def test_valuate(self, seeded, capsys):
        code = stock_report.main(["--db-url", seeded, "valuate", "--method", "average"])

        out = capsys.readouterr().out
        assert code == 0
        assert "STOCK VALUATION" in out
        assert "WIDGET-1" in out
        assert "150.00" in out

    def test_alerts_lists_low_stock(self, seeded, capsys):
        assert stock_report.main(["--db-url", seeded, "alerts"]) == 0

        out = capsys.readouterr().out
        assert "OPEN ALERTS (1)" in out
        assert "low_stock" in out

    def test_sweep(self, seeded, capsys):
        assert stock_report.main(["--db-url", seeded, "sweep"]) == 0

        assert "ALERT SWEEP" in capsys.readouterr().out

    def test_reorder(self, seeded, capsys):
        assert stock_report.main(["--db-url", seeded, "reorder"]) == 0

        assert "WIDGET-1" in capsys.readouterr().out

    def test_reconcile_passes(self, seeded, capsys):
        assert stock_report.main(["--db-url", seeded, "reconcile"]) == 0

        assert "[OK  ] WIDGET-1" in capsys.readouterr().out

    def test_unknown_command(self):
        with pytest.raises(SystemExit):
            stock_report.main(["explode"])
