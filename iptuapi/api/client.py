from __future__ import annotations

import re
import threading
import time
from typing import Any, Callable, Iterable, Mapping

from iptuapi import __version__
from iptuapi.api.engine import EngineMetrics, RequestEngine
from iptuapi.api.ratelimit import RateLimitSnapshot
from iptuapi.api.transport import Transport
from iptuapi.config import ClientConfig

_NON_DIGITS = re.compile(r"\D")


def _format_param(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _params(**values: Any) -> dict[str, str]:
    return {key: _format_param(value) for key, value in values.items() if value is not None}


def _flags(**flags: bool) -> dict[str, str]:
    return {key: "true" for key, enabled in flags.items() if enabled}


class IPTUClient:
    """
    Client for the IPTU API.

    Property lookups by address, SQL (contribuinte number), CEP and
    coordinates; market valuation (Pro and Enterprise plans); public data
    helpers (IPTU history, CNPJ, IPCA correction) and the IPTU payment tools.

    Example:
        >>> with IPTUClient("my-api-key") as client:
        ...     imovel = client.consulta_endereco("Avenida Paulista", "1000")
        ...     client.rate_limit.remaining

    Every method returns the decoded JSON body and raises
    :class:`iptuapi.api.errors.ApiError` on failure.
    """

    VERSION = __version__

    def __init__(
        self,
        api_key: str,
        config: ClientConfig | None = None,
        *,
        transport: Transport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._engine = RequestEngine(config or ClientConfig(), api_key, transport=transport, sleep=sleep)

    def close(self) -> None:
        self._engine.close()

    def __enter__(self) -> "IPTUClient":
        return self

    def __exit__(self, *_exc) -> None:
        self.close()

    @property
    def rate_limit(self) -> RateLimitSnapshot | None:
        """Rate-limit information reported by the most recent response."""
        return self._engine.rate_limit

    @property
    def last_request_id(self) -> str | None:
        """Request id of the most recent response, useful for support tickets."""
        return self._engine.last_request_id

    @property
    def metrics(self) -> EngineMetrics:
        return self._engine.metrics

    def _request(
        self,
        method: str,
        path: str,
        params: Mapping[str, str] | None = None,
        body: Any | None = None,
        cancel: threading.Event | None = None,
        route: str | None = None,
    ) -> Any:
        return self._engine.request(method, path, params, body, route=route, cancel=cancel)

    # ------------ consulta ------------
    def consulta_endereco(
        self,
        logradouro: str,
        numero: str | None = None,
        cidade: str = "sp",
        *,
        incluir_historico: bool = False,
        incluir_comparaveis: bool = False,
        incluir_zoneamento: bool = False,
        cancel: threading.Event | None = None,
    ) -> Any:
        """Look up IPTU data by street name and optional number."""
        params = _params(logradouro=logradouro, cidade=cidade, numero=numero)
        params.update(
            _flags(
                incluir_historico=incluir_historico,
                incluir_comparaveis=incluir_comparaveis,
                incluir_zoneamento=incluir_zoneamento,
            )
        )
        return self._request("GET", "/consulta/endereco", params, cancel=cancel)

    def consulta_sql(
        self,
        sql: str,
        cidade: str = "sp",
        *,
        incluir_historico: bool = False,
        incluir_comparaveis: bool = False,
        cancel: threading.Event | None = None,
    ) -> Any:
        """Full property record by SQL (contribuinte) number."""
        params = _params(cidade=cidade)
        params.update(
            _flags(incluir_historico=incluir_historico, incluir_comparaveis=incluir_comparaveis)
        )
        return self._request("GET", f"/consulta/sql/{sql}", params, cancel=cancel, route="/consulta/sql/{sql}")

    def consulta_cep(self, cep: str, cidade: str = "sp", *, cancel: threading.Event | None = None) -> Any:
        cep = _NON_DIGITS.sub("", cep)
        return self._request(
            "GET", f"/consulta/cep/{cep}", _params(cidade=cidade), cancel=cancel, route="/consulta/cep/{cep}"
        )

    def consulta_zoneamento(
        self, latitude: float, longitude: float, *, cancel: threading.Event | None = None
    ) -> Any:
        return self._request(
            "GET",
            "/consulta/zoneamento",
            _params(latitude=latitude, longitude=longitude),
            cancel=cancel,
        )

    # ------------ valuation (Pro+) ------------
    def valuation_estimate(self, params: Mapping[str, Any], *, cancel: threading.Event | None = None) -> Any:
        """ML market value estimate. Pro and Enterprise plans only."""
        return self._request("POST", "/valuation/estimate", body=dict(params), cancel=cancel)

    def valuation_batch(
        self, imoveis: Iterable[Mapping[str, Any]], *, cancel: threading.Event | None = None
    ) -> Any:
        """Batch valuation of up to 100 properties. Enterprise plan only."""
        body = {"imoveis": [dict(imovel) for imovel in imoveis]}
        return self._request("POST", "/valuation/estimate/batch", body=body, cancel=cancel)

    def valuation_comparables(
        self,
        bairro: str,
        area_min: float,
        area_max: float,
        cidade: str = "sp",
        limit: int = 10,
        *,
        cancel: threading.Event | None = None,
    ) -> Any:
        params = _params(bairro=bairro, area_min=area_min, area_max=area_max, cidade=cidade, limit=limit)
        return self._request("GET", "/valuation/comparables", params, cancel=cancel)

    # ------------ dados ------------
    def dados_iptu_historico(
        self, sql: str, cidade: str = "sp", *, cancel: threading.Event | None = None
    ) -> Any:
        return self._request(
            "GET",
            f"/dados/iptu/historico/{sql}",
            _params(cidade=cidade),
            cancel=cancel,
            route="/dados/iptu/historico/{sql}",
        )

    def dados_cnpj(self, cnpj: str, *, cancel: threading.Event | None = None) -> Any:
        cnpj = _NON_DIGITS.sub("", cnpj)
        return self._request("GET", f"/dados/cnpj/{cnpj}", cancel=cancel, route="/dados/cnpj/{cnpj}")

    def dados_ipca_corrigir(
        self,
        valor: float,
        data_origem: str,
        data_destino: str | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> Any:
        """Correct a value by IPCA between two months (``YYYY-MM``)."""
        params = _params(valor=valor, data_origem=data_origem, data_destino=data_destino)
        return self._request("GET", "/dados/ipca/corrigir", params, cancel=cancel)

    # ------------ iptu tools ------------
    def iptu_tools_cidades(self, *, cancel: threading.Event | None = None) -> Any:
        return self._request("GET", "/iptu-tools/cidades", cancel=cancel)

    def iptu_tools_calendario(self, cidade: str = "sp", *, cancel: threading.Event | None = None) -> Any:
        return self._request("GET", "/iptu-tools/calendario", _params(cidade=cidade), cancel=cancel)

    def iptu_tools_simulador(
        self,
        valor_iptu: float,
        cidade: str = "sp",
        valor_venal: float | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> Any:
        """Compare paying IPTU upfront against paying in installments."""
        body: dict[str, Any] = {"valor_iptu": valor_iptu, "cidade": cidade}
        if valor_venal is not None:
            body["valor_venal"] = valor_venal
        return self._request("POST", "/iptu-tools/simulador", body=body, cancel=cancel)

    def iptu_tools_isencao(
        self, valor_venal: float, cidade: str = "sp", *, cancel: threading.Event | None = None
    ) -> Any:
        params = _params(valor_venal=valor_venal, cidade=cidade)
        return self._request("GET", "/iptu-tools/isencao", params, cancel=cancel)

    def iptu_tools_proximo_vencimento(
        self, cidade: str = "sp", parcela: int = 1, *, cancel: threading.Event | None = None
    ) -> Any:
        params = _params(cidade=cidade, parcela=parcela)
        return self._request("GET", "/iptu-tools/proximo-vencimento", params, cancel=cancel)
