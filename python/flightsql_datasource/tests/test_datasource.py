"""Tests for the datasource entry points."""

import logging

import pyarrow as pa
import pyarrow.flight as flight
import pytest

from flightsql_datasource import datasource as datasource_module
from flightsql_datasource.datasource import FlightSQLDatasource, new_datasource
from flightsql_datasource.exceptions import ConfigurationError
from flightsql_datasource.models import (
    DataQuery,
    DataSourceInstanceSettings,
    HealthStatus,
    QueryDataRequest,
    Status,
)
from flightsql_datasource.settings import ConnectionConfig


@pytest.fixture
def datasource(fake_client, runtime_config):
    config = ConnectionConfig(host="localhost:8082", database="metrics", token="secret")
    return FlightSQLDatasource(config, fake_client, runtime_config)


class TestQueryData:
    """Each query of a request gets its own response slot."""

    def test_sibling_failures_are_isolated(self, datasource, fake_client, select_one):
        fake_client.add_result("select 1", select_one)
        fake_client.fail("select broken", flight.FlightServerError("syntax error"))
        request = QueryDataRequest(queries=[
            DataQuery(ref_id="A", json=b'{"queryText": "select 1"}'),
            DataQuery(ref_id="B", json=b"{not json"),
            DataQuery(ref_id="C", json=b'{"queryText": "select broken"}'),
        ])

        response = datasource.query_data(request)

        assert set(response.responses) == {"A", "B", "C"}
        ok = response.responses["A"]
        assert ok.error is None
        assert ok.frames[0].column(0) == [1]

        bad = response.responses["B"]
        assert bad.status is Status.BAD_REQUEST
        assert bad.error.startswith("unmarshal query request: ")

        failed = response.responses["C"]
        assert failed.status is Status.INTERNAL
        assert "syntax error" in failed.error
        assert fake_client.executed == ["select 1", "select broken"]

    def test_unconvertible_value_does_not_affect_siblings(self, datasource, fake_client, select_one):
        fake_client.add_result("select t", pa.table({"t": pa.array([10**12], type=pa.timestamp("s"))}))
        fake_client.add_result("select 1", select_one)
        request = QueryDataRequest(queries=[
            DataQuery(ref_id="A", json=b'{"queryText": "select t"}'),
            DataQuery(ref_id="B", json=b'{"queryText": "select 1"}'),
        ])

        response = datasource.query_data(request)

        assert response.responses["A"].status is Status.INTERNAL
        assert "value out of range" in response.responses["A"].error
        assert response.responses["B"].error is None
        assert response.responses["B"].frames[0].column(0) == [1]

    def test_mistyped_query_text_is_a_bad_request(self, datasource, fake_client):
        request = QueryDataRequest(queries=[DataQuery(ref_id="A", json=b'{"queryText": 42}')])

        response = datasource.query_data(request)

        assert response.responses["A"].status is Status.BAD_REQUEST
        assert fake_client.executed == []

    def test_empty_request(self, datasource):
        assert datasource.query_data(QueryDataRequest()).responses == {}


class TestCheckHealth:
    def test_ok(self, datasource, fake_client, select_one):
        fake_client.add_result("select 1", select_one)

        result = datasource.check_health()

        assert result.status is HealthStatus.OK
        assert result.message == "OK"
        assert fake_client.executed == ["select 1"]

    def test_error_message_is_prefixed(self, datasource, fake_client):
        fake_client.fail("select 1", flight.FlightUnavailableError("connection refused"))

        result = datasource.check_health()

        assert result.status is HealthStatus.ERROR
        assert result.message.startswith("ERROR: flightsql: ")
        assert "connection refused" in result.message


class TestMetadata:
    def test_get_sql_info(self, datasource, fake_client):
        fake_client.add_result(
            "GetSqlInfo",
            pa.table({"info_name": pa.array([0], type=pa.uint32()), "value": pa.array(["engine"])}),
        )

        response = datasource.get_sql_info()

        assert response.error is None
        assert fake_client.metadata_calls == ["GetSqlInfo"]
        assert response.frames[0].meta.executed_query_string == "GetSqlInfo"

    def test_get_tables(self, datasource, fake_client):
        fake_client.add_result(
            "GetTables",
            pa.table({"table_name": ["cpu", "mem"], "table_type": ["BASE TABLE", "BASE TABLE"]}),
        )

        response = datasource.get_tables()

        assert response.frames[0].field_by_name("table_name").values == ["cpu", "mem"]

    def test_get_columns_reads_one_row(self, datasource, fake_client):
        fake_client.add_result("select * from cpu limit 1", pa.table({"host": ["a"], "usage": [1.0]}))

        response = datasource.get_columns("cpu")

        assert fake_client.executed == ["select * from cpu limit 1"]
        assert [f.name for f in response.frames[0].fields] == ["host", "usage"]


class TestDispose:
    def test_closes_client_once(self, datasource, fake_client):
        datasource.dispose()
        datasource.dispose()

        assert fake_client.close_calls == 1

    def test_close_failure_is_logged(self, datasource, fake_client, caplog):
        fake_client.close_error = RuntimeError("channel already closed")

        with caplog.at_level(logging.ERROR, logger="flightsql.datasource"):
            datasource.dispose()

        assert "channel already closed" in caplog.text


class TestNewDatasource:
    def test_malformed_settings(self, runtime_config):
        settings = DataSourceInstanceSettings(json_data=b"{nope")

        with pytest.raises(ConfigurationError, match="^config: "):
            new_datasource(settings, runtime_config)

    def test_mistyped_secure_flag(self, runtime_config):
        settings = DataSourceInstanceSettings(json_data=b'{"host": "h:1", "secure": "yes"}')

        with pytest.raises(ConfigurationError, match="secure"):
            new_datasource(settings, runtime_config)

    def test_builds_transport_from_settings(self, monkeypatch, fake_client, runtime_config):
        seen = []

        def fake_build(config, runtime):
            seen.append((config, runtime))
            return fake_client

        monkeypatch.setattr(datasource_module, "build_transport", fake_build)
        settings = DataSourceInstanceSettings(
            json_data=b'{"host": "h:1", "database": "db", "token": "t", "secure": true}'
        )

        ds = new_datasource(settings, runtime_config)

        ((config, runtime),) = seen
        assert config == ConnectionConfig(host="h:1", database="db", token="t", secure=True)
        assert runtime is runtime_config
        assert ds.executor.call_headers() == [(b"bucket-name", b"db")]
