from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import closing
from pathlib import Path
from typing import Dict, List

import pytest

from entities import SCHEMA, StaffInfo
from sqltool import Dao
from sqltool.exceptions import ConfigurationError, InitializationError, SQLExecutionError
from sqltool.infrastructure import create_data_source
from sqltool.utils.logging import SQL_LOGGER_NAME

FIND_STAFF = "SELECT * FROM staff_info WHERE 1 = 1 #[AND position = :position] ORDER BY staff_id"


def test_crud_round_trip(dao: Dao, row_counter) -> None:
    june = StaffInfo(staff_id="01", staff_name="June", position="dev")

    assert dao.insert(june) == 1
    assert dao.save(StaffInfo(staff_id="01", age=30)) == 1
    assert dao.get(StaffInfo(staff_id="01")) == StaffInfo(staff_id="01", staff_name="June", position="dev", age=30)

    assert dao.hard_save(StaffInfo(staff_id="01", staff_name="June")) == 1
    assert dao.get(StaffInfo(staff_id="01")).position is None

    assert dao.delete(StaffInfo(staff_id="01")) == 1
    assert row_counter("staff_info") == 0


def test_batches_use_configured_batch_size(dao: Dao, row_counter) -> None:
    rows = [StaffInfo(staff_id=f"0{i}", position="dev" if i % 2 else "ops") for i in range(1, 6)]

    assert dao.settings.default_batch_size == 2
    assert dao.insert(rows) == 5
    assert row_counter("staff_info") == 5
    assert len(dao.select(StaffInfo, FIND_STAFF, {"position": "dev"})) == 3


def test_dsql_operations(dao: Dao) -> None:
    dao.save([StaffInfo(staff_id="01", staff_name="June"), StaffInfo(staff_id="02", staff_name="May")])

    assert dao.execute_update("UPDATE staff_info SET position = :position", ("position", "ops")) == 2
    assert dao.execute("SELECT 1") is True
    assert dao.get(int, "SELECT COUNT(*) FROM staff_info WHERE position = :position", {"position": "ops"}) == 2
    assert dao.select(dict, "SELECT staff_id, staff_name FROM staff_info ORDER BY staff_id") == [
        {"staff_id": "01", "staff_name": "June"},
        {"staff_id": "02", "staff_name": "May"},
    ]


def test_transaction_rolls_back_on_error(dao: Dao, row_counter) -> None:
    with pytest.raises(RuntimeError):
        with dao.transaction() as tx:
            dao.executor.insert(tx, StaffInfo(staff_id="01"))
            dao.executor.insert(tx, StaffInfo(staff_id="02"))
            raise RuntimeError("abort")

    assert not tx.active
    assert row_counter("staff_info") == 0
    assert dao.insert(StaffInfo(staff_id="03")) == 1


def test_transaction_commits_all_statements(dao: Dao, row_counter) -> None:
    with dao.transaction() as tx:
        assert tx.datasource == "default"
        dao.executor.insert(tx, StaffInfo(staff_id="01"))
        dao.executor.save(tx, StaffInfo(staff_id="01", staff_name="June"))

    assert row_counter("staff_info", "staff_name = ?", ("June",)) == 1


def test_failed_statement_is_rolled_back(dao: Dao, row_counter) -> None:
    dao.insert(StaffInfo(staff_id="01"))

    with pytest.raises(SQLExecutionError):
        dao.insert([StaffInfo(staff_id="02"), StaffInfo(staff_id="01")])

    assert row_counter("staff_info") == 1
    assert dao.insert(StaffInfo(staff_id="02")) == 1


def test_show_sql_logs_statements(dao: Dao, caplog) -> None:
    with caplog.at_level(logging.INFO, logger=SQL_LOGGER_NAME):
        dao.delete(StaffInfo(staff_id="01"))

    messages = [r.getMessage() for r in caplog.records if r.name == SQL_LOGGER_NAME]
    assert messages == ["Execute SQL: DELETE FROM staff_info WHERE staff_id = ?"]


def test_named_datasource(sqlite_properties: Dict[str, str], tmp_path: Path, row_counter) -> None:
    archive = tmp_path / "archive.db"
    with closing(sqlite3.connect(archive)) as conn:
        conn.executescript(SCHEMA)
    properties = {**sqlite_properties, "sqltool.datasource.archive.url": f"sqlite:///{archive}"}

    with Dao.build(properties) as dao:
        assert dao.insert(StaffInfo(staff_id="01"), datasource="archive") == 1
        assert dao.save(StaffInfo(staff_id="02", staff_name="May"), datasource="archive") == 1
        assert dao.get(StaffInfo(staff_id="01"), datasource="archive") == StaffInfo(staff_id="01")
        with pytest.raises(ConfigurationError, match="No datasource named 'missing'"):
            dao.insert(StaffInfo(staff_id="03"), datasource="missing")

    assert row_counter("staff_info") == 0
    with closing(sqlite3.connect(archive)) as conn:
        assert conn.execute("SELECT COUNT(*) FROM staff_info").fetchone() == (2,)


def test_close_releases_registry(sqlite_properties: Dict[str, str]) -> None:
    with Dao.build(sqlite_properties) as dao:
        assert dao.registry.names() == ["default"]

    assert dao.registry.names() == []


def test_build_rejects_unknown_driver_option(sqlite_properties: Dict[str, str]) -> None:
    with pytest.raises(InitializationError) as excinfo:
        Dao.build({**sqlite_properties, "sqltool.datasource.maxActive": "5"})

    assert "maxActive" in str(excinfo.value.__cause__)


def test_pooled_connections_are_usable_from_other_threads(dao: Dao) -> None:
    dao.insert(StaffInfo(staff_id="01", staff_name="June"))
    outcome: Dict[str, object] = {}

    def fetch() -> None:
        try:
            outcome["row"] = dao.get(StaffInfo(staff_id="01"))
            outcome["saved"] = dao.save(StaffInfo(staff_id="02", staff_name="Ray"))
        except Exception as exc:  # noqa: BLE001 - reported to the main thread
            outcome["error"] = exc

    worker = threading.Thread(target=fetch)
    worker.start()
    worker.join(timeout=10)

    assert "error" not in outcome, outcome.get("error")
    assert outcome["row"] == StaffInfo(staff_id="01", staff_name="June")
    assert outcome["saved"] == 1
    assert dao.get(StaffInfo(staff_id="02")).staff_name == "Ray"


def test_build_closes_datasources_when_templates_fail(sqlite_properties: Dict[str, str]) -> None:
    built: List = []

    def factory(name, config, dialect):
        data_source = create_data_source(name, config, dialect)
        built.append(data_source)
        return data_source

    properties = {**sqlite_properties, "sqltool.basePackages": "sqltool_missing_templates_pkg"}

    with pytest.raises(ConfigurationError, match="cannot be found"):
        Dao.build(properties, factory=factory)

    assert len(built) == 1


def test_templates_from_base_packages(sqlite_properties: Dict[str, str], tmp_path: Path) -> None:
    templates = tmp_path / "dsql"
    templates.mkdir()
    (templates / "staff.dsql.xml").write_text(
        "<dsqls><dsql id='staff_names'><script>SELECT staff_name FROM staff_info ORDER BY staff_id</script></dsql></dsqls>",
        encoding="utf-8",
    )
    properties = {**sqlite_properties, "sqltool.basePackages": str(templates)}

    with Dao.build(properties) as dao:
        dao.insert([StaffInfo(staff_id="01", staff_name="June"), StaffInfo(staff_id="02", staff_name="May")])
        assert dao.select(str, "staff_names") == ["June", "May"]
