import pytest

from mdc.compose import CommandResult
from mdc.discovery import Target
from mdc.ps import (
    PsRow,
    first_non_empty,
    format_publishers,
    merge_ps_rows,
    merge_ps_text,
    parse_ps_json,
    ports_text,
    render_ps_table,
    status_text,
)

ROOT = Target(directory="/work", file="/work/compose.yaml", label=".")
API = Target(directory="/work/api", file="/work/api/compose.yaml", label="api")


def test_parse_ps_json_array():
    assert parse_ps_json('[{"ID":"1"},{"ID":"2"}]') == [{"ID": "1"}, {"ID": "2"}]


def test_parse_ps_json_single_object():
    assert parse_ps_json('  {"ID":"1"}\n') == [{"ID": "1"}]


def test_parse_ps_json_lines():
    raw = '{"ID":"1"}\n\n{"ID":"2"}\r\n'
    assert parse_ps_json(raw) == [{"ID": "1"}, {"ID": "2"}]


def test_parse_ps_json_empty_and_null():
    assert parse_ps_json("   ") == []
    assert parse_ps_json("null") == []


def test_parse_ps_json_invalid():
    with pytest.raises(ValueError, match="parse docker compose ps json"):
        parse_ps_json("not json")


def test_parse_ps_json_array_of_scalars_is_invalid():
    with pytest.raises(ValueError, match="parse docker compose ps json"):
        parse_ps_json("[1, 2]")


def test_first_non_empty_skips_blank_and_null():
    entry = {"ID": "  ", "Id": None, "Name": "web-1"}
    assert first_non_empty(entry, "ID", "Id", "Name") == "web-1"
    assert first_non_empty(entry, "Missing") == ""


def test_first_non_empty_formats_numbers():
    assert first_non_empty({"Port": 8080.0}, "Port") == "8080"
    assert first_non_empty({"Port": 80}, "Port") == "80"
    assert first_non_empty({"Flag": True}, "Flag") == "true"


@pytest.mark.parametrize(
    "entry, expected",
    [
        ({"State": "running", "Health": "healthy"}, "running (healthy)"),
        ({"Health": "starting"}, "starting"),
        ({"State": "running", "Health": "none"}, "running"),
        ({"Status": "Up 2 minutes"}, "Up 2 minutes"),
        ({"ExitCode": 0}, "exit 0"),
        ({}, "unknown"),
    ],
)
def test_status_text(entry, expected):
    assert status_text(entry) == expected


def test_format_publishers_variants():
    publishers = [
        {"URL": "0.0.0.0", "PublishedPort": 8080, "TargetPort": 80, "Protocol": "TCP"},
        {"PublishedPort": 5432, "TargetPort": 5432, "Protocol": "tcp"},
        {"PublishedPort": 9000},
        "ignored",
    ]
    assert format_publishers(publishers) == "0.0.0.0:8080->80/tcp, 5432->5432/tcp, 9000"


def test_format_publishers_rejects_non_lists():
    assert format_publishers({"PublishedPort": 1}) == ""
    assert format_publishers([]) == ""


def test_ports_text_falls_back_to_ports_field():
    assert ports_text({"Publishers": [], "Ports": "80/tcp"}) == "80/tcp"
    assert ports_text({}) == ""


def test_merge_ps_rows_from_json():
    results = [
        CommandResult(
            target=ROOT,
            stdout='[{"ID":"1","Name":"root-web-1","Service":"web","State":"running",'
            '"Health":"healthy","Publishers":[{"URL":"0.0.0.0","PublishedPort":8080,'
            '"TargetPort":80,"Protocol":"tcp"}]}]',
        ),
        CommandResult(
            target=API,
            stdout='[{"ID":"2","Name":"api-web-1","Service":"web","State":"running","Publishers":[]}]',
        ),
    ]

    rows = merge_ps_rows(results)

    assert rows == [
        PsRow(name="api-web-1", service="web", status="running", ports="", key="2"),
        PsRow(
            name="root-web-1",
            service="web",
            status="running (healthy)",
            ports="0.0.0.0:8080->80/tcp",
            key="1",
        ),
    ]


def test_merge_ps_rows_deduplicates_and_skips_keyless():
    results = [
        CommandResult(target=ROOT, stdout='{"ID":"1","Name":"a","State":"exited"}'),
        CommandResult(target=API, stdout='{"ID":"1","Name":"a","State":"running"}\n{"Service":"x"}'),
    ]
    rows = merge_ps_rows(results)
    assert [(row.key, row.status) for row in rows] == [("1", "running")]


def test_merge_ps_rows_sorts_by_name_then_key():
    results = [CommandResult(target=ROOT, stdout='[{"ID":"b","Name":"x"},{"ID":"a","Name":"x"},{"ID":"c","Name":"w"}]')]
    assert [row.key for row in merge_ps_rows(results)] == ["c", "a", "b"]


def test_merge_ps_rows_raises_result_error():
    results = [CommandResult(target=ROOT, stderr="unsupported", exit_code=1, error=RuntimeError("boom"))]
    with pytest.raises(RuntimeError, match="boom"):
        merge_ps_rows(results)


def test_render_ps_table():
    rows = [PsRow(name="a", service="web", status="running", ports="", key="1")]
    table = render_ps_table(rows)
    lines = table.split("\n")
    assert table.endswith("\n")
    assert lines[0] == "NAME  SERVICE  STATUS   PORTS"
    assert lines[1] == "a     web      running       "
    assert table.count("NAME") == 1


def test_render_ps_table_aligns_columns():
    rows = [
        PsRow(name="a-very-long-name", service="s", status="up", ports="1->2/tcp", key="1"),
        PsRow(name="b", service="longer-service", status="exited", ports="", key="2"),
    ]
    lines = render_ps_table(rows).rstrip("\n").split("\n")
    service_column = lines[0].index("SERVICE")
    assert lines[1][service_column:].startswith("s ")
    assert lines[2][service_column:].startswith("longer-service")


def test_merge_ps_text_deduplicates_header():
    results = [
        CommandResult(target=ROOT, stdout="NAME SERVICE STATUS\n. web running\n"),
        CommandResult(target=API, stdout=""),
        CommandResult(target=API, stdout="NAME SERVICE STATUS\napi web running\n"),
    ]
    assert merge_ps_text(results) == "NAME SERVICE STATUS\n. web running\napi web running\n"


def test_merge_ps_text_empty():
    assert merge_ps_text([CommandResult(target=ROOT, stdout="  \n")]) == ""