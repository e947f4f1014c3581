from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from iptuapi import __version__
from iptuapi.api.client import IPTUClient
from iptuapi.api.errors import ApiError
from iptuapi.config import AppConfig, ConfigError, load_config, resolve_api_key
from iptuapi.obs.logging import LogSettings, build_logger, log_event

EXIT_API_ERROR = 1
EXIT_CONFIG_ERROR = 2


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="iptuapi", description="IPTU API command line client")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Path to config YAML")
    parser.add_argument("--log-level", help="Logging level (overrides config)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    endereco = subparsers.add_parser("endereco", help="Look up a property by address")
    endereco.add_argument("logradouro", help="Street name")
    endereco.add_argument("--numero", help="Street number")
    endereco.add_argument("--cidade", default="sp")
    endereco.add_argument("--historico", action="store_true", help="Include value history")
    endereco.add_argument("--comparaveis", action="store_true", help="Include comparables")
    endereco.add_argument("--zoneamento", action="store_true", help="Include zoning")

    sql = subparsers.add_parser("sql", help="Look up a property by SQL number")
    sql.add_argument("sql")
    sql.add_argument("--cidade", default="sp")
    sql.add_argument("--historico", action="store_true", help="Include value history")
    sql.add_argument("--comparaveis", action="store_true", help="Include comparables")

    cep = subparsers.add_parser("cep", help="List properties for a CEP")
    cep.add_argument("cep")
    cep.add_argument("--cidade", default="sp")

    cnpj = subparsers.add_parser("cnpj", help="Company registration data")
    cnpj.add_argument("cnpj")

    subparsers.add_parser("cidades", help="Cities with an IPTU calendar")

    calendario = subparsers.add_parser("calendario", help="IPTU calendar for a city")
    calendario.add_argument("--cidade", default="sp")

    return parser.parse_args(argv)


def dispatch(client: IPTUClient, args: argparse.Namespace) -> Any:
    if args.command == "endereco":
        return client.consulta_endereco(
            args.logradouro,
            args.numero,
            args.cidade,
            incluir_historico=args.historico,
            incluir_comparaveis=args.comparaveis,
            incluir_zoneamento=args.zoneamento,
        )
    if args.command == "sql":
        return client.consulta_sql(
            args.sql,
            args.cidade,
            incluir_historico=args.historico,
            incluir_comparaveis=args.comparaveis,
        )
    if args.command == "cep":
        return client.consulta_cep(args.cep, args.cidade)
    if args.command == "cnpj":
        return client.dados_cnpj(args.cnpj)
    if args.command == "cidades":
        return client.iptu_tools_cidades()
    if args.command == "calendario":
        return client.iptu_tools_calendario(args.cidade)
    raise ValueError(f"Unsupported command: {args.command}")


def main(argv: list[str] | None = None, *, transport=None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)

    try:
        config = load_config(Path(args.config)).config if args.config else AppConfig()
        api_key = resolve_api_key(config)
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_CONFIG_ERROR

    logger = build_logger(
        LogSettings(
            level=(args.log_level or config.obs.log_level).upper(),
            jsonl=config.obs.log_jsonl,
        )
    )
    client_config = config.client.model_copy(update={"logger": logger})

    with IPTUClient(api_key, client_config, transport=transport) as client:
        try:
            result = dispatch(client, args)
        except ApiError as exc:
            log_event(logger, logging.ERROR, "command_failed", str(exc), command=args.command)
            print(json.dumps(exc.to_dict(), ensure_ascii=False, indent=2))
            return EXIT_API_ERROR

    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
