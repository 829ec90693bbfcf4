from __future__ import annotations

import argparse
import json
import logging
from typing import List, Optional, Sequence, Tuple

from .client import METHODS, MAX_LIMIT_PARAM, XBRLUSClient
from .config_loader import DEFAULT_CONFIG_PATH, load_config
from .errors import ConfigurationError, XBRLUSError
from .token_store import Credentials, FileTokenStore, TokenStore

logger = logging.getLogger("xbrlus-cli")

DEFAULT_TOKEN_FILE = "~/.xbrlus/tokens.json"


def _key_value(text: str) -> Tuple[str, str]:
    key, sep, value = text.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected key=value, got {text!r}")
    return key, value


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="XBRL US API client (login + paginated calls)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    common = dict(
        config=dict(
            default=DEFAULT_CONFIG_PATH,
            help="Path to the YAML config file (section 'api')",
        ),
        env_file=dict(
            default=None,
            help="Path to a .env file with XBRLUS_* overrides (defaults to ./.env)",
        ),
        token_file=dict(
            default=DEFAULT_TOKEN_FILE,
            help="JSON file the access/refresh tokens are kept in",
        ),
        token_secret=dict(
            default=None,
            help="Keep tokens in this Secret Manager secret instead of --token-file",
        ),
        gcp_project_id=dict(
            default=None,
            help="GCP project holding --token-secret",
        ),
    )

    login_cmd = subparsers.add_parser("login", help="Obtain a fresh token pair")
    login_cmd.add_argument("--config", **common["config"])
    login_cmd.add_argument("--env-file", **common["env_file"])
    login_cmd.add_argument("--token-file", **common["token_file"])
    login_cmd.add_argument("--token-secret", **common["token_secret"])
    login_cmd.add_argument("--gcp-project-id", **common["gcp_project_id"])
    login_cmd.add_argument("--username", default=None, help="Overrides the configured username")
    login_cmd.add_argument("--password", default=None, help="Overrides the configured password")

    call_cmd = subparsers.add_parser("call", help="Call a route and print the merged JSON")
    call_cmd.add_argument("--config", **common["config"])
    call_cmd.add_argument("--env-file", **common["env_file"])
    call_cmd.add_argument("--token-file", **common["token_file"])
    call_cmd.add_argument("--token-secret", **common["token_secret"])
    call_cmd.add_argument("--gcp-project-id", **common["gcp_project_id"])
    call_cmd.add_argument("route", help="API route, e.g. /api/v1/fact/search")
    call_cmd.add_argument(
        "--param",
        type=_key_value,
        action="append",
        default=[],
        help="Request parameter as key=value (repeatable)",
    )
    call_cmd.add_argument("--method", default="GET", choices=METHODS)
    call_cmd.add_argument(
        "--json",
        action="store_true",
        help="Send non-GET parameters as a JSON body",
    )
    call_cmd.add_argument(
        "--max-limit",
        type=int,
        default=None,
        help="Stop fetching further pages once this many records are held",
    )

    args = parser.parse_args(argv)
    if args.token_secret and not args.gcp_project_id:
        parser.error("--token-secret requires --gcp-project-id")
    return args


def build_token_store(args: argparse.Namespace) -> Tuple[TokenStore, str]:
    """Return the store selected on the command line and a label for logs."""

    if args.token_secret:
        # google-cloud-secret-manager is only loaded when a secret is used
        from .gcp_secret_storage import SecretManagerTokenStore

        store = SecretManagerTokenStore(args.gcp_project_id, args.token_secret)
        return store, f"secret {args.token_secret} (project {args.gcp_project_id})"

    file_store = FileTokenStore(args.token_file)
    return file_store, str(file_store.path)


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s %(message)s")
    args = parse_args(argv)

    try:
        config = load_config(
            config_path=args.config,
            env_file=args.env_file,
            username=getattr(args, "username", None),
            password=getattr(args, "password", None),
        )
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 1

    store, location = build_token_store(args)

    # errors below are already logged by the client's error handler
    try:
        if args.command == "login":
            store.save(Credentials())
            XBRLUSClient(config, token_store=store).close()
            logger.info("Tokens saved to %s", location)
            return 0

        params: List[Tuple[str, object]] = list(args.param)
        if args.max_limit is not None:
            params.append((MAX_LIMIT_PARAM, args.max_limit))

        with XBRLUSClient(config, token_store=store) as client:
            result = client.call(args.route, params, method=args.method, encode_json=args.json)
    except XBRLUSError:
        return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
