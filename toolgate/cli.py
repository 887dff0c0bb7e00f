"""
CLI for operating the tool gateway.

Usage:
    python -m toolgate.cli token
    python -m toolgate.cli token --backend disk --show
    python -m toolgate.cli ip 8.8.8.8 1.1.1.1
    python -m toolgate.cli serve --port 8080
"""

import argparse
import sys
from datetime import datetime, timezone

from toolgate.errors import GatewayError
from toolgate.schemas import BackendKind
from toolgate.services import build_services
from toolgate.utils import configure_logging


def cmd_token(args, services):
    """Fetch a usable upload token, refreshing it if needed."""
    backend = services.backend(args.backend)
    record = services.token_manager.get_record(backend)
    expires = datetime.fromtimestamp(record.expiresAt, tz=timezone.utc)

    print()
    print(f"  Backend: {backend.kind.value}")
    print(f"  Issued:  {datetime.fromtimestamp(record.issuedAt, tz=timezone.utc).isoformat()}")
    print(f"  Expires: {expires.isoformat()}")
    if args.show:
        print(f"  Token:   {record.token}")
    print()


def cmd_ip(args, services):
    """Resolve IP addresses through the cache."""
    failed = False
    for ip in args.ips:
        try:
            info = services.lookup_cache.resolve(ip)
        except GatewayError as e:
            print(f"  {ip}: error ({e.code}) {e.message}")
            failed = True
            continue
        print(f"  {ip}: {info.get('description')}")
        if args.verbose:
            print(f"      {info.get('detailedDescription')}")
    if failed:
        sys.exit(1)


def cmd_serve(args, services):
    """Run the API server."""
    from toolgate.api_server import create_app

    app = create_app(services)
    print(f"""
╔══════════════════════════════════════════════════════════════╗
║                      Tool Gateway API                        ║
╠══════════════════════════════════════════════════════════════╣
║  API:      http://{args.host}:{args.port}/v1/
║  Health:   http://{args.host}:{args.port}/v1/health
╠══════════════════════════════════════════════════════════════╣
║  Press Ctrl+C to stop                                        ║
╚══════════════════════════════════════════════════════════════╝
    """)
    app.run(host=args.host, port=args.port, debug=args.debug, threaded=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tool Gateway")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    parser.add_argument("--db", help="Database path (defaults to GATEWAY_DB_URI)")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # token
    token_parser = subparsers.add_parser("token", help="Get a fresh upload token")
    token_parser.add_argument(
        "--backend",
        type=str.upper,
        choices=[k.value for k in BackendKind],
        help="Token store (defaults to TOKEN_BACKEND)",
    )
    token_parser.add_argument("--show", action="store_true", help="Print the token itself")

    # ip
    ip_parser = subparsers.add_parser("ip", help="Look up IP addresses")
    ip_parser.add_argument("ips", nargs="+", help="Addresses to resolve")
    ip_parser.add_argument("-v", "--verbose", action="store_true", help="Print detailed descriptions")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--port", type=int, default=8080, help="Port to run on")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    configure_logging(args.log_level)
    services = build_services(db_uri=args.db)

    commands = {
        "token": cmd_token,
        "ip": cmd_ip,
        "serve": cmd_serve,
    }
    try:
        commands[args.command](args, services)
    except GatewayError as e:
        print(f"  Error ({e.code}): {e.message}")
        sys.exit(1)
    finally:
        services.connector.close()


if __name__ == "__main__":
    main()
