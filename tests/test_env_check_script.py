"""Tests for the environment drift detection script."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from app.core.config import load_settings
from scripts import check_env

ENV_KEYS = [
    "JOBBER_CLIENT_ID",
    "JOBBER_CLIENT_SECRET",
    "MAILER_ADDRESS",
    "RESEND_API_KEY",
    "TOKEN_STORE_BACKEND",
    "DYNAMODB_TABLE_NAME",
]

VALID_ENV = {
    "JOBBER_CLIENT_ID": "abc",
    "JOBBER_CLIENT_SECRET": "secret",
    "MAILER_ADDRESS": "lookup@example.com",
    "RESEND_API_KEY": "re_test",
}


def _write_env(env_path: Path, **values: str) -> None:
    contents = "\n".join(f"{key}={value}" for key, value in values.items())
    env_path.write_text(contents + "\n", encoding="utf-8")


def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.mark.parametrize("command", ["record", "verify", "check"])
def test_main_requires_existing_env_file(tmp_path: Path, command: str) -> None:
    env_file = tmp_path / ".missing-env"
    hash_file = tmp_path / ".env.sha256"

    argv = [command, "--env-file", str(env_file)]
    if command != "check":
        argv.extend(["--hash-file", str(hash_file)])

    exit_code = check_env.main(argv)
    assert exit_code == check_env.EXIT_RUNTIME_ERROR


def test_record_and_verify_detects_mismatched_checksum(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    hash_file = tmp_path / ".env.sha256"

    _clear_env(monkeypatch)
    _write_env(env_file, **VALID_ENV)

    exit_code = check_env.main(
        ["record", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_OK
    assert hash_file.read_text(encoding="utf-8").strip()

    _clear_env(monkeypatch)
    exit_code = check_env.main(
        ["verify", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_OK

    _write_env(env_file, **{**VALID_ENV, "JOBBER_CLIENT_SECRET": "different"})

    _clear_env(monkeypatch)
    exit_code = check_env.main(
        ["verify", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_CHECKSUM_ERROR


def test_verify_without_baseline_is_runtime_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    _clear_env(monkeypatch)
    _write_env(env_file, **VALID_ENV)

    exit_code = check_env.main(
        ["verify", "--env-file", str(env_file), "--hash-file", str(tmp_path / "none")]
    )
    assert exit_code == check_env.EXIT_RUNTIME_ERROR


def test_validation_failure_for_missing_required_values(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    hash_file = tmp_path / ".env.sha256"

    _clear_env(monkeypatch)
    _write_env(env_file, JOBBER_CLIENT_ID="abc", MAILER_ADDRESS="lookup@example.com")

    exit_code = check_env.main(
        ["record", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_VALIDATION_ERROR
    assert not hash_file.exists()


def test_invalid_mailer_address_fails_validation(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    _clear_env(monkeypatch)
    _write_env(env_file, **{**VALID_ENV, "MAILER_ADDRESS": "not-an-email"})

    assert check_env.main(["check", "--env-file", str(env_file)]) == (
        check_env.EXIT_VALIDATION_ERROR
    )


def test_strict_check_flags_dynamodb_without_table(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = tmp_path / ".env"
    _clear_env(monkeypatch)
    _write_env(env_file, **{**VALID_ENV, "TOKEN_STORE_BACKEND": "dynamodb"})

    assert check_env.main(["check", "--env-file", str(env_file)]) == check_env.EXIT_OK
    assert "DYNAMODB_TABLE_NAME" in capsys.readouterr().err

    _clear_env(monkeypatch)
    assert check_env.main(["check", "--strict", "--env-file", str(env_file)]) == (
        check_env.EXIT_VALIDATION_ERROR
    )


def test_load_settings_reads_every_section_from_env_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / "custom.env"
    _clear_env(monkeypatch)
    monkeypatch.delenv("TOKEN_ENCRYPTION_SECRET", raising=False)
    _write_env(
        env_file,
        **VALID_ENV,
        TOKEN_STORE_BACKEND="dynamodb",
        DYNAMODB_TABLE_NAME="jobber-tokens",
        TOKEN_ENCRYPTION_SECRET="from-file",
    )

    settings = load_settings(str(env_file))

    assert settings.jobber.client_id == "abc"
    assert settings.token_store.backend == "dynamodb"
    assert settings.aws.dynamodb_table_name == "jobber-tokens"
    assert settings.security.token_encryption_secret == "from-file"
    assert settings.mailer.resend_api_key == "re_test"
    # The file is read by the settings sources, not copied into the process environment.
    assert "JOBBER_CLIENT_ID" not in os.environ
    assert "TOKEN_ENCRYPTION_SECRET" not in os.environ


def test_process_environment_overrides_env_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / "custom.env"
    _clear_env(monkeypatch)
    _write_env(env_file, **VALID_ENV)
    monkeypatch.setenv("JOBBER_CLIENT_ID", "from-environment")

    assert load_settings(str(env_file)).jobber.client_id == "from-environment"
