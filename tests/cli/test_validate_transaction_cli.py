"""
Tests for the validate_transaction operator script.

Runs ``main()`` in-process against reference and transaction files written
to a temporary directory, and checks the exit code and JSON report.
"""

import importlib.util
import json
from pathlib import Path

import pytest
import yaml

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "validate_transaction.py"


@pytest.fixture(scope="module")
def cli():
    spec = importlib.util.spec_from_file_location("validate_transaction", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _reference(expiry="2026-12-31", licence_type="WDA"):
    return {
        "substances": [
            {"code": "MORPH", "name": "Morphine", "opium_act_list": "list_i"},
        ],
        "customers": [{
            "customer_id": "CUST-1",
            "business_name": "Apotheek Centrum",
            "business_category": "community_pharmacy",
            "approval_status": "approved",
        }],
        "licences": [{
            "licence_id": "LIC-1",
            "licence_number": "WDA-001",
            "licence_type": licence_type,
            "holder_id": "CUST-1",
            "issue_date": "2024-01-01",
            "expiry_date": expiry,
            "substances": [{"substance_code": "MORPH"}],
        }],
    }


def _transaction(customer_id="CUST-1"):
    return {
        "transaction_id": "TX-CLI",
        "external_id": "SO-2001",
        "customer_id": customer_id,
        "transaction_date": "2025-06-15",
        "lines": [
            {"line_number": 1, "substance_code": "MORPH", "quantity": "10", "line_value": "42.00"},
        ],
    }


@pytest.fixture
def write_inputs(tmp_path):
    def _write(reference, transaction):
        ref_path = tmp_path / "reference.yaml"
        tx_path = tmp_path / "transaction.json"
        ref_path.write_text(yaml.safe_dump(reference))
        tx_path.write_text(json.dumps(transaction))
        return ["--reference", str(ref_path), "--transaction", str(tx_path)]

    return _write


def _output(capsys):
    return json.loads(capsys.readouterr().out)


class TestExitCodes:

    def test_passed(self, cli, write_inputs, capsys):
        argv = write_inputs(_reference(), _transaction())
        assert cli.main(argv) == cli.EXIT_PASSED
        report = _output(capsys)
        assert report["config_id"] == "NL-WHOLESALE"
        assert report["result"]["status"] == "passed"
        assert report["result"]["lines"][0]["covering_licence_number"] == "WDA-001"

    def test_failed_on_expired_licence(self, cli, write_inputs, capsys):
        argv = write_inputs(_reference(expiry="2025-01-31"), _transaction())
        assert cli.main(argv) == cli.EXIT_FAILED
        report = _output(capsys)
        assert report["result"]["status"] == "failed"
        assert report["result"]["violations"]

    def test_unknown_customer(self, cli, write_inputs, capsys):
        argv = write_inputs(_reference(), _transaction(customer_id="CUST-404"))
        assert cli.main(argv) == cli.EXIT_NOT_VALIDATED
        assert _output(capsys)["error"] == "CUSTOMER_NOT_FOUND"

    def test_missing_file(self, cli, tmp_path, capsys):
        argv = [
            "--reference", str(tmp_path / "absent.yaml"),
            "--transaction", str(tmp_path / "absent.json"),
        ]
        assert cli.main(argv) == cli.EXIT_NOT_VALIDATED
        assert _output(capsys)["error"] == "INVALID_INPUT"

    def test_unknown_licence_type(self, cli, write_inputs, capsys):
        argv = write_inputs(_reference(licence_type="GUILD"), _transaction())
        assert cli.main(argv) == cli.EXIT_NOT_VALIDATED
        report = _output(capsys)
        assert report["error"] == "INVALID_INPUT"
        assert "GUILD" in report["message"]


class TestParser:

    def test_requires_inputs(self, cli):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_defaults(self, cli):
        args = cli.build_parser().parse_args(["--reference", "r.yaml", "--transaction", "t.json"])
        assert args.config is None
        assert args.log_level == "WARNING"
