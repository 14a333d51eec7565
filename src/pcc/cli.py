from __future__ import annotations

import argparse
import json
import logging
import sys

from .client import Client, TransferError
from .constants import DEFAULT_BACKLOG, DEFAULT_CHUNK_SIZE, DEFAULT_HOST
from .counts import CharCounts
from .net import TcpEndpoint
from .server import Server
from .shutdown import ServerShutdown, ShutdownCoordinator

log = logging.getLogger(__name__)


class ArgumentParser(argparse.ArgumentParser):
    """Usage errors exit with status 1 like every other failure."""

    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def port_number(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port: {value!r}") from None
    if not 0 <= port <= 0xFFFF:
        raise argparse.ArgumentTypeError(f"port out of range: {port}")
    return port


def positive_int(value: str) -> int:
    n = int(value)
    if n <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {n}")
    return n


def listen(args: argparse.Namespace) -> TcpEndpoint:
    try:
        return TcpEndpoint.listening(args.host, args.port, backlog=args.backlog)
    except OSError as exc:
        raise SystemExit(f"failed to listen on {args.host}:{args.port}: {exc}") from exc


def cmd_server(args: argparse.Namespace) -> int:
    coordinator = ShutdownCoordinator()
    table = CharCounts()
    server: Server | None = None

    # installed before binding: a stop during setup still prints the report
    previous = coordinator.install()
    try:
        with listen(args) as listener:
            server = Server(listener, coordinator=coordinator, table=table, chunk_size=args.chunk_size)
            log.info("listening on %s:%d (backlog=%d)", *listener.address, args.backlog)
            server.serve_forever()
    except ServerShutdown:
        pass
    except OSError as exc:
        raise SystemExit(f"server failed: {exc}") from exc
    finally:
        coordinator.restore(previous)

    if args.json:
        payload = {
            "role": "server",
            "completed": server.completed if server else 0,
            "aborted": server.aborted if server else 0,
            "counts": {chr(code): n for code, n in table.items()},
        }
        print(json.dumps(payload, indent=2))
    else:
        for line in table.report_lines():
            print(line)
    return 0


def cmd_client(args: argparse.Namespace) -> int:
    client = Client(
        args.host,
        args.port,
        args.file,
        chunk_size=args.chunk_size,
        timeout=args.timeout,
    )
    try:
        count = client.run()
    except (OSError, ValueError, TransferError) as exc:
        raise SystemExit(f"transfer to {args.host}:{args.port} failed: {exc}") from exc

    if args.json:
        print(json.dumps({"role": "client", "file": args.file, "printable": count}, indent=2))
    else:
        print(f"# of printable characters: {count}")
    return 0


def add_server_args(x: argparse.ArgumentParser) -> None:
    x.add_argument("port", type=port_number, help="TCP port to listen on")
    x.add_argument("--host", default=DEFAULT_HOST)
    x.add_argument("--backlog", type=positive_int, default=DEFAULT_BACKLOG)
    x.set_defaults(func=cmd_server)


def add_client_args(x: argparse.ArgumentParser) -> None:
    x.add_argument("host", help="server IPv4 address, dotted-decimal")
    x.add_argument("port", type=port_number)
    x.add_argument("file", help="file to send")
    x.add_argument("--timeout", type=float, default=None, help="socket timeout in seconds")
    x.set_defaults(func=cmd_client)


def add_common(x: argparse.ArgumentParser) -> None:
    x.add_argument("--chunk-size", type=positive_int, default=DEFAULT_CHUNK_SIZE)
    x.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    x.add_argument("--json", action="store_true")


def run(args: argparse.Namespace) -> int:
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(message)s",
        stream=sys.stderr,
    )
    return int(args.func(args))


def main(argv: list[str] | None = None) -> int:
    p = ArgumentParser(prog="pcc", description="Printable character counting over TCP.")
    sub = p.add_subparsers(dest="cmd", required=True, parser_class=ArgumentParser)

    server = sub.add_parser("server", help="count printable characters of incoming files")
    add_server_args(server)
    add_common(server)

    client = sub.add_parser("client", help="send a file and print its printable count")
    add_client_args(client)
    add_common(client)

    return run(p.parse_args(argv))


def server_main(argv: list[str] | None = None) -> int:
    p = ArgumentParser(prog="pcc-server", description="Printable character counting server.")
    add_server_args(p)
    add_common(p)
    return run(p.parse_args(argv))


def client_main(argv: list[str] | None = None) -> int:
    p = ArgumentParser(prog="pcc-client", description="Send a file to a pcc server.")
    add_client_args(p)
    add_common(p)
    return run(p.parse_args(argv))


if __name__ == "__main__":
    raise SystemExit(main())
