"""Tests for the command line interface."""

import json

import pytest

from mincore.api.cli.commands.crawl import build_request
from mincore.api.cli.commands.query import parse_filters
from mincore.api.cli.main import async_main, create_parser
from mincore.providers.database.duckdb_provider import DuckDBProvider
from tests.helpers import PERSON_ALPHABETS, people


class TestParseFilters:
    def test_value_and_prefix(self):
        assert parse_filters(["SN=smi*", "uid=u01"]) == {"sn": "smi*", "uid": "u01"}

    def test_value_may_contain_equals(self):
        assert parse_filters(["sn=a=b"]) == {"sn": "a=b"}

    @pytest.mark.parametrize("terms", [["smith"], ["=smith"], ["sn=a", "sn=b"]])
    def test_rejected_terms(self, terms):
        with pytest.raises(ValueError):
            parse_filters(terms)


def test_crawl_arguments():
    args = create_parser().parse_args(
        ["crawl", "sn", "--start", "b", "--lodis", "Smith", "--core", "--volume-cap", "4"]
    )
    assert args.command == "crawl"
    assert (args.attribute, args.start, args.end) == ("sn", "b", None)
    assert args.lodis == "Smith"
    assert args.core is True
    assert args.volume_cap == 4


class TestBuildRequest:
    def parse(self, *argv):
        return create_parser().parse_args(["crawl", *argv])

    async def test_plain_range(self, make_services):
        services = await make_services([], volume_cap=4, alphabets=PERSON_ALPHABETS)

        request = build_request(self.parse("SN", "--end", "C", "--core"), services)

        (order,) = request.orders
        assert (order.field, order.start, order.end) == ("sn", " ", "c")
        assert order.volume_cap == 4
        assert order.lodis is None
        assert (request.core.field, request.core.start, request.core.end) == ("sn", " ", "c")

    async def test_lodis_range(self, make_services):
        services = await make_services([], volume_cap=4, alphabets=PERSON_ALPHABETS)

        request = build_request(self.parse("sn", "--lodis", "Smith", "--core"), services)

        (order,) = request.orders
        assert (order.field, order.start, order.end) == ("uid", "0", None)
        assert (order.lodis_field, order.lodis_value) == ("sn", "smith")
        assert request.core.lodis_value == "smith"
        assert request.core.field == "sn"

    async def test_invalid_requests(self, make_services):
        services = await make_services([])

        with pytest.raises(ValueError, match="Unknown attribute"):
            build_request(self.parse("cn"), services)
        with pytest.raises(ValueError, match="Empty range"):
            build_request(self.parse("sn", "--start", "b", "--end", "a"), services)


class TestCommands:
    @pytest.fixture
    def common(self, tmp_path, clean_environment):
        fixture = tmp_path / "people.json"
        fixture.write_text(json.dumps(people("smith", "smythe", "brown", "smith")))
        return [
            "--fixture", str(fixture),
            "--db", str(tmp_path / "db"),
            "--volume-cap", "2",
            "--buffer", "0",
            "--pause", "0",
        ]

    async def test_crawl_then_query(self, common, tmp_path, capsys):
        await async_main(["crawl", "sn", "--core", *common])
        await async_main(["query", "sn=smi*", *common])

        output = capsys.readouterr().out
        assert "Crawl complete" in output
        assert "u04" in output

        store = DuckDBProvider(tmp_path / "db" / "mirror.duckdb", ["sn", "uid"], "uid")
        store.connect()
        try:
            assert [e.key for e in store.all_entries()] == ["u01", "u02", "u03", "u04"]
            assert store.list_splinters("sn")
        finally:
            store.disconnect()

    async def test_unknown_attribute_exits(self, common):
        with pytest.raises(SystemExit) as exc_info:
            await async_main(["crawl", "cn", *common])
        assert exc_info.value.code == 1

    async def test_buffer_must_be_below_volume_cap(self, common):
        with pytest.raises(SystemExit):
            await async_main(["query", "sn=a", *common, "--buffer", "2"])

    async def test_missing_command(self, capsys):
        with pytest.raises(SystemExit):
            await async_main([])
