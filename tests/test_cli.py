"""Tests for the admin CLI."""

from click.testing import CliRunner

from portal_api.cli import cli
from portal_api.db.models import User
from portal_api.services import permission_service


def test_verify_calendar_not_configured():
    result = CliRunner().invoke(cli, ["verify-calendar"])

    assert result.exit_code == 1
    assert "Auth mode: not configured" in result.output
    assert "not_configured" in result.output


def test_create_user_and_grant_role(db):
    runner = CliRunner()

    created = runner.invoke(cli, ["create-user", "--email", "Head@Portal.io", "--name", "Head"])
    assert "✓ Created user head@portal.io" in created.output

    granted = runner.invoke(
        cli, ["grant-role", "--email", "head@portal.io", "--role", "Higher Management"]
    )
    assert "now holds: Higher Management" in granted.output

    user = db.query(User).filter(User.email == "head@portal.io").one()
    assert permission_service.roles_of(db, user.id) == {"Higher Management"}

    token = runner.invoke(cli, ["issue-token", "--email", "head@portal.io"])
    assert token.exit_code == 0
    assert token.output.count(".") == 2


def test_grant_role_unknown_user(db):
    result = CliRunner().invoke(cli, ["grant-role", "--email", "ghost@portal.io", "--role", "superuser"])
    assert "not found" in result.output
