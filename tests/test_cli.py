"""Tests for sku_uploader CLI helpers."""
import argparse
import logging
import os
from pathlib import Path

import pytest

from sku_uploader.cli import (
    CLIError,
    _build_parser,
    _build_settings,
    _collect_files,
    _load_env_file,
    _parse_env_line,
    _setup_logging,
    run_cli,
)
from sku_uploader.errors import ConfigError
from sku_uploader.models import UploadStrategy


@pytest.fixture(autouse=True)
def restore_root_logger():
    root_logger = logging.getLogger()
    handlers, level = list(root_logger.handlers), root_logger.level
    yield
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


def test_load_env_file(tmp_path, monkeypatch):
    env_path = tmp_path / ".env"
    env_path.write_text(
        "\n".join(
            [
                "# shop credentials",
                "SHOPIFY_STORE=demo-shop.myshopify.com",
                "SHOPIFY_ACCESS_TOKEN='shpat_123'",
                "export SKU_UPLOADER_MAX_PARALLEL=3",
                "not a pair",
            ]
        ),
        encoding="utf-8",
    )

    monkeypatch.delenv("SHOPIFY_STORE", raising=False)
    monkeypatch.delenv("SHOPIFY_ACCESS_TOKEN", raising=False)
    monkeypatch.delenv("SKU_UPLOADER_MAX_PARALLEL", raising=False)

    _load_env_file(env_path)

    assert os.environ["SHOPIFY_STORE"] == "demo-shop.myshopify.com"
    assert os.environ["SHOPIFY_ACCESS_TOKEN"] == "shpat_123"
    assert os.environ["SKU_UPLOADER_MAX_PARALLEL"] == "3"


@pytest.mark.parametrize("line,expected", [
    ("SHOPIFY_STORE=demo.myshopify.com", ("SHOPIFY_STORE", "demo.myshopify.com")),
    ("export  TOKEN = \"a=b\"", ("TOKEN", "a=b")),
    ("# comment", None),
    ("=orphan", None),
    ("", None),
])
def test_parse_env_line(line, expected):
    assert _parse_env_line(line) == expected


def test_load_env_file_keeps_existing_values(tmp_path, monkeypatch):
    env_path = tmp_path / ".env"
    env_path.write_text("SHOPIFY_STORE=from-file.myshopify.com\n", encoding="utf-8")
    monkeypatch.setenv("SHOPIFY_STORE", "from-shell.myshopify.com")

    _load_env_file(env_path)
    assert os.environ["SHOPIFY_STORE"] == "from-shell.myshopify.com"

    _load_env_file(env_path, override=True)
    assert os.environ["SHOPIFY_STORE"] == "from-file.myshopify.com"


def test_load_env_file_missing(tmp_path):
    with pytest.raises(CLIError, match="env file not found"):
        _load_env_file(tmp_path / "nope.env")


def test_collect_files_sorted_and_skips_hidden(tmp_path):
    (tmp_path / "B-1.jpg").write_bytes(b"b")
    (tmp_path / "A-2.jpg").write_bytes(b"a")
    (tmp_path / ".DS_Store").write_bytes(b"x")
    (tmp_path / "nested").mkdir()

    files = _collect_files(tmp_path)

    assert [f.name for f in files] == ["A-2.jpg", "B-1.jpg"]
    assert _collect_files(tmp_path / "A-2.jpg") == [tmp_path / "A-2.jpg"]


def test_build_settings_from_flags():
    args = _build_parser().parse_args(
        ["images", "--strategy", "prepend", "--seo", "-a", "1=Front", "-a", "2=Back", "-n"]
    )
    settings = _build_settings(args)

    assert settings.upload_strategy == UploadStrategy.PREPEND
    assert settings.dry_run is True
    assert settings.alt_text_for("Summer Dress", 1) == "Summer Dress - Front"
    assert settings.alt_text_for("Summer Dress", 3) == "Summer Dress - View 03"


def test_build_settings_rejects_malformed_alt_text():
    args = argparse.Namespace(dry_run=False, strategy="append", seo=True, alt_text=["Front"])
    with pytest.raises(ConfigError, match="POS=TEXT"):
        _build_settings(args)


def test_setup_logging_defaults_to_silent():
    mode = _setup_logging(debug=False, silent=False, log_level=None)
    assert mode == "silent"
    assert logging.getLogger().isEnabledFor(logging.ERROR) is False


def test_setup_logging_silent_keeps_errors():
    mode = _setup_logging(debug=False, silent=True, log_level=None)
    root_logger = logging.getLogger()
    assert mode == "ERROR"
    assert root_logger.isEnabledFor(logging.ERROR) is True
    assert root_logger.isEnabledFor(logging.WARNING) is False
    assert len(root_logger.handlers) == 1


def test_setup_logging_explicit_level():
    assert _setup_logging(debug=False, silent=False, log_level="warning") == "WARNING"
    assert _setup_logging(debug=False, silent=False, log_level="chatty") == "INFO"


def test_setup_logging_debug_mode():
    mode = _setup_logging(debug=True, silent=False, log_level=None)
    assert mode == "DEBUG"
    assert logging.getLogger().isEnabledFor(logging.DEBUG) is True


def test_run_cli_without_source_prints_help(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert run_cli([]) == 0
    assert "sku-upload" in capsys.readouterr().out


def test_run_cli_missing_source(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert run_cli([str(tmp_path / "missing")]) == 1
    assert "source does not exist" in capsys.readouterr().err


def test_run_cli_missing_credentials(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("SHOPIFY_STORE", raising=False)
    monkeypatch.delenv("SHOPIFY_ACCESS_TOKEN", raising=False)
    (tmp_path / "DRESS-1.jpg").write_bytes(b"jpeg")

    assert run_cli([str(tmp_path)]) == 1
    err = capsys.readouterr().err
    assert "SHOPIFY_STORE" in err and "SHOPIFY_ACCESS_TOKEN" in err


def test_run_cli_rejects_zero_concurrency(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "DRESS-1.jpg").write_bytes(b"jpeg")

    code = run_cli([str(tmp_path), "--store", "demo.myshopify.com", "--token", "t", "-j", "0"])

    assert code == 1
    assert "concurrency must be at least 1" in capsys.readouterr().err
