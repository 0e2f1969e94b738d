"""
Tests for batch provisioning.
"""
import pytest

from provisioner.models.account import ProvisioningRequest, ProvisioningStatus
from provisioner.services.batch_service import BatchService, iter_records, parse_record


@pytest.fixture
def batch(service, error_trail):
    return BatchService(service, error_trail, ProvisioningRequest(raw_name="", normalize=True))


@pytest.mark.parametrize(
    "line,expected",
    [
        ("shop\n", "shop"),
        ("  shop  ", "shop"),
        ("", None),
        ("   \n", None),
        ("# comment", None),
        ("; comment", None),
        ("shop # inline", "shop"),
        ("shop;inline", "shop"),
        ("shop.com ; a # b", "shop.com"),
    ],
)
def test_parse_record(line, expected):
    assert parse_record(line) == expected


def test_iter_records_keeps_source_line_numbers():
    lines = ["# header\n", "\n", "alpha\n", "beta # second\n"]
    assert list(iter_records(lines)) == [(3, "alpha"), (4, "beta")]


def test_bad_record_does_not_stop_batch(batch, connection, error_trail):
    """A malformed line is attributed to its line number and the batch continues."""
    lines = [
        "alpha.com\n",
        "# skip me\n",
        "bad name!\n",
        "gamma.org\n",
    ]
    seen = []

    report = batch.process_lines(lines, on_outcome=seen.append)

    assert [o.line_no for o in report.outcomes] == [1, 3, 4]
    assert seen == report.outcomes
    assert [o.line_no for o in report.failures] == [3]
    assert report.failures[0].error.startswith("Line 3 (bad name!): ")
    assert [r.resolved_name for r in report.results] == ["alpha_com", "gamma_org"]
    assert connection.schemas == {"alpha_com", "gamma_org"}

    trail = error_trail.path.read_text()
    assert "Line 3 (bad name!): invalid characters" in trail
    assert "alpha" not in trail


def test_server_failure_on_one_record(batch, connection, server_error, error_trail):
    connection.fail_on("CREATE DATABASE `beta`", server_error(1007, "database exists"))

    report = batch.process_lines(["alpha\n", "beta\n", "gamma\n"])

    assert [o.failed for o in report.outcomes] == [False, True, False]
    assert "Line 2 (beta): create database failed for 'beta'" in error_trail.path.read_text()
    assert connection.schemas == {"alpha", "gamma"}


def test_skipped_records_are_reported_in_order(batch, connection):
    connection.schemas.add("beta")

    report = batch.process_lines(["alpha", "beta", "gamma"])

    assert [r.status for r in report.results] == [
        ProvisioningStatus.CREATED,
        ProvisioningStatus.SKIPPED,
        ProvisioningStatus.CREATED,
    ]
    assert report.failures == []


def test_unexpected_error_is_isolated(batch, service, monkeypatch):
    calls = []
    original = service.provision

    def flaky(request):
        calls.append(request.raw_name)
        if request.raw_name == "boom":
            raise RuntimeError("driver exploded")
        return original(request)

    monkeypatch.setattr(service, "provision", flaky)

    report = batch.process_lines(["boom", "after"])

    assert calls == ["boom", "after"]
    assert report.failures[0].error == "Line 1 (boom): unexpected error: driver exploded"
    assert report.results[0].resolved_name == "after"


def test_process_file(batch, tmp_path):
    names = tmp_path / "names.txt"
    names.write_text("; customers\nshop-one.se\n\nshop-two.se # new\n", encoding="utf-8")

    report = batch.process_file(names)

    assert [(o.line_no, o.raw) for o in report.outcomes] == [(2, "shop-one.se"), (4, "shop-two.se")]


def test_process_file_missing(batch, tmp_path):
    with pytest.raises(OSError):
        batch.process_file(tmp_path / "missing.txt")


def test_undecodable_line_fails_alone(batch, connection, error_trail, tmp_path):
    names = tmp_path / "names.txt"
    names.write_bytes(b"alpha\nbad\xff\xfename\n gamma\n")

    report = batch.process_file(names)

    assert [o.line_no for o in report.failures] == [2]
    assert report.failures[0].error.startswith("Line 2 (bad\ufffd")
    assert [r.resolved_name for r in report.results] == ["alpha", "gamma"]
    assert connection.schemas == {"alpha", "gamma"}
    assert "Line 2 (" in error_trail.path.read_text(encoding="utf-8")
