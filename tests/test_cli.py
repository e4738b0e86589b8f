"""Tests for memberforge CLI commands."""

import pytest
import yaml
from click.testing import CliRunner

from conftest import account_candidate
from memberforge.cli.main import cli
from memberforge.membership.constants import MESSAGES


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def write_candidate(tmp_path):
    def write(data, name="candidate.yaml"):
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data))
        return str(path)

    return write


def leave_candidate(**overrides):
    fields = {
        "eligibility": {"kind": "account", "value": "Q6"},
        "parentalLeaveFrom": "2025-03-01",
        "parentalLeaveTo": "2025-09-01",
        "parentalLeaveExpected": "FULL_YEAR",
    }
    fields.update(overrides)
    return account_candidate(**fields)


class TestValidate:
    def test_valid_candidate(self, runner, write_candidate):
        result = runner.invoke(cli, ["validate", write_candidate(account_candidate())])

        assert result.exit_code == 0
        assert "candidate.yaml is valid." in result.output
        assert "category: OT_PR" in result.output

    def test_invalid_candidate(self, runner, write_candidate):
        path = write_candidate(account_candidate(affiliateId="aff-1"))

        result = runner.invoke(cli, ["validate", path])

        assert result.exit_code == 1
        assert MESSAGES["MULTIPLE_USER_REFERENCES"] in result.output
        assert "(user-reference)" in result.output
        assert "1 error(s) found" in result.output

    def test_warnings_do_not_fail(self, runner, write_candidate):
        path = write_candidate(account_candidate(retirementStart="2020-01-01"))

        result = runner.invoke(cli, ["validate", path])

        assert result.exit_code == 0
        assert MESSAGES["RETIREMENT_DATE_UNEXPECTED"] in result.output
        assert "1 warning(s) found." in result.output

    def test_today_option(self, runner, write_candidate):
        path = write_candidate(leave_candidate())

        before = runner.invoke(cli, ["validate", path, "--today", "2025-02-01"])
        after = runner.invoke(cli, ["validate", path, "--today", "2025-06-15"])

        assert before.exit_code == 1
        assert "[parentalLeaveFrom]" in before.output
        assert after.exit_code == 0

    def test_used_leave_option(self, runner, write_candidate):
        path = write_candidate(leave_candidate())

        result = runner.invoke(
            cli, ["validate", path, "--today", "2025-06-15", "--used-leave", "FULL_YEAR"]
        )

        assert result.exit_code == 1
        assert "Full Year (12 months) parental leave has already been used" in result.output

    def test_update_payload(self, runner, write_candidate):
        path = write_candidate({"status": "INACTIVE"})

        create = runner.invoke(cli, ["validate", path])
        update = runner.invoke(cli, ["validate", path, "--operation", "update"])

        assert create.exit_code == 1
        assert update.exit_code == 0

    def test_json_candidate(self, runner, tmp_path):
        path = tmp_path / "candidate.json"
        path.write_text('{"affiliateId": "aff-1", "membershipYear": "2025"}')

        result = runner.invoke(cli, ["validate", str(path)])

        assert result.exit_code == 0
        assert "candidate.json is valid." in result.output

    def test_not_a_mapping(self, runner, write_candidate):
        result = runner.invoke(cli, ["validate", write_candidate(["a", "b"])])

        assert result.exit_code == 1
        assert "must contain a mapping" in result.output

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["validate", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 2


class TestRules:
    def test_lists_rules(self, runner):
        result = runner.invoke(cli, ["rules"])

        assert result.exit_code == 0
        assert "8 rule(s):" in result.output
        assert "parental-leave-expected [create]" in result.output
        assert "requires: parentalLeaveExpected" in result.output
