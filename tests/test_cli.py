"""Tests for the command-line interface."""

import re

import bcrypt
from click.testing import CliRunner

from tarsit.cli import main

STRONG_PASSWORD = "Tr1cky!Horse"


class TestTokenCommands:
    """Tests for gen-token and gen-code."""

    def test_gen_token_default(self):
        """Test the default token is 64 hex chars."""
        result = CliRunner().invoke(main, ["gen-token"])

        assert result.exit_code == 0
        assert re.fullmatch(r"[0-9a-f]{64}", result.output.strip())

    def test_gen_token_bytes(self):
        """Test --bytes sets the token size."""
        result = CliRunner().invoke(main, ["gen-token", "--bytes", "8"])

        assert len(result.output.strip()) == 16

    def test_gen_token_rejects_zero(self):
        """Test zero bytes is refused."""
        assert CliRunner().invoke(main, ["gen-token", "-b", "0"]).exit_code != 0

    def test_gen_code(self):
        """Test codes have the requested number of digits."""
        result = CliRunner().invoke(main, ["gen-code", "--length", "4"])

        assert result.exit_code == 0
        assert re.fullmatch(r"[1-9][0-9]{3}", result.output.strip())


class TestHashPassword:
    """Tests for hash-password."""

    def test_hash_password(self):
        """Test the printed hash verifies the password."""
        result = CliRunner().invoke(
            main,
            ["hash-password", "--rounds", "4"],
            input=f"{STRONG_PASSWORD}\n{STRONG_PASSWORD}\n",
        )

        assert result.exit_code == 0
        hashed = result.output.strip().splitlines()[-1]
        assert bcrypt.checkpw(STRONG_PASSWORD.encode(), hashed.encode())

    def test_weak_password_rejected(self):
        """Test weak passwords exit with an error."""
        result = CliRunner().invoke(
            main,
            ["hash-password", "--rounds", "4"],
            input="weak\nweak\n",
        )

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_no_check(self):
        """Test --no-check hashes any password."""
        result = CliRunner().invoke(
            main,
            ["hash-password", "--rounds", "4", "--no-check"],
            input="weak\nweak\n",
        )

        assert result.exit_code == 0


class TestCleanupSessions:
    """Tests for cleanup-sessions."""

    def test_cleanup_empty_store(self, tmp_path):
        """Test cleanup on a fresh directory."""
        result = CliRunner().invoke(main, ["cleanup-sessions", "--dir", str(tmp_path)])

        assert result.exit_code == 0
        assert "Removed 0 expired session(s)" in result.output
