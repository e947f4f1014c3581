import json
from pathlib import Path

import pytest

from iptuapi.__main__ import EXIT_API_ERROR, EXIT_CONFIG_ERROR, main
from iptuapi.config import API_KEY_ENV
from iptuapi.testing import MockTransport


def write_config(tmp_path: Path) -> Path:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
        api_key: cli-key
        client:
          base_url: https://api.test/v1
          retry:
            max_retries: 0
        obs:
          log_level: WARNING
        """,
        encoding="utf-8",
    )
    return config_path


def test_cli_prints_result(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    transport = MockTransport().add_response(MockTransport.success_response([{"codigo": "sp"}]))

    code = main(["--config", str(write_config(tmp_path)), "cidades"], transport=transport)

    assert code == 0
    assert json.loads(capsys.readouterr().out) == [{"codigo": "sp"}]
    assert transport.last_request.headers["X-API-Key"] == "cli-key"
    assert transport.last_request.url == "https://api.test/v1/iptu-tools/cidades"


def test_cli_endereco_flags(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    transport = MockTransport().add_response(MockTransport.success_response({"sql": "X"}))

    code = main(
        ["--config", str(write_config(tmp_path)), "endereco", "Avenida Paulista", "--numero", "1000", "--historico"],
        transport=transport,
    )

    assert code == 0
    assert "incluir_historico=true" in transport.last_request.url
    assert "numero=1000" in transport.last_request.url


def test_cli_api_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    transport = MockTransport().add_response(MockTransport.error_response(404, "Imovel nao encontrado"))

    code = main(["--config", str(write_config(tmp_path)), "sql", "000"], transport=transport)

    assert code == EXIT_API_ERROR
    payload = json.loads(capsys.readouterr().out)
    assert payload["kind"] == "not_found"
    assert payload["message"] == "Imovel nao encontrado"
    assert payload["http_status"] == 404


def test_cli_missing_api_key(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.delenv(API_KEY_ENV, raising=False)

    code = main(["cidades"], transport=MockTransport())

    assert code == EXIT_CONFIG_ERROR
    assert API_KEY_ENV in capsys.readouterr().err
