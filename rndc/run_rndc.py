import argparse
import asyncio
import logging
import os
import sys
from typing import List, Mapping, Optional, Tuple

from .errors import ConfigError, RndcError
from .keyfile import load_key
from .messages import CommandResult
from .session import RndcClient

"""
run_rndc.py — command-line entry point.

Quick examples:
  python -m rndc.run_rndc -s 127.0.0.1 -y c2VjcmV0 status
  python -m rndc.run_rndc -k /etc/bind/rndc.key reload example.com
  RNDC_SERVER=10.0.0.53:953 RNDC_SECRET=... rndc-client flush

Where settings come from (first hit wins):
  flags  ->  RNDC_SERVER / RNDC_ALGORITHM / RNDC_SECRET / RNDC_KEYFILE  ->  defaults

Exit status: 0 when the daemon reports success, 1 when it reports failure,
2 when the client itself could not complete the exchange.
"""

DEFAULT_SERVER = "127.0.0.1"
DEFAULT_ALGORITHM = "hmac-sha256"

EXIT_OK = 0
EXIT_REMOTE_FAILURE = 1
EXIT_CLIENT_ERROR = 2


# -------------------------
# Configuration
# -------------------------

def resolve_server(args: argparse.Namespace, environ: Mapping[str, str]) -> str:
    """Combine -s/RNDC_SERVER with an optional -p into one address string."""
    server = args.server or environ.get("RNDC_SERVER") or DEFAULT_SERVER
    if args.port is None:
        return server
    host = server
    if host.startswith("[") and "]" in host:
        host = host[1:host.index("]")]
    elif host.count(":") == 1:
        host = host.split(":")[0]
    if ":" in host:
        host = f"[{host}]"
    return f"{host}:{args.port}"


def resolve_credentials(args: argparse.Namespace, environ: Mapping[str, str]) -> Tuple[str, str]:
    """
    Return (algorithm name, base64 secret).

    Flags beat the environment as a whole: -y, then -k, then RNDC_SECRET,
    then RNDC_KEYFILE. Within a level an inline secret beats a key file.
    A key file supplies its own algorithm unless -a overrides it.
    """
    for secret, keyfile in ((args.secret, args.keyfile),
                            (environ.get("RNDC_SECRET"), environ.get("RNDC_KEYFILE"))):
        if secret:
            algorithm = args.algorithm or environ.get("RNDC_ALGORITHM") or DEFAULT_ALGORITHM
            return algorithm, secret
        if keyfile:
            key = load_key(keyfile, args.keyname)
            return args.algorithm or key.algorithm.canonical_name, key.secret
    raise ConfigError("No key given: use -y, -k, RNDC_SECRET or RNDC_KEYFILE")


# -------------------------
# Runner
# -------------------------

async def run_command(client: RndcClient, command: str) -> CommandResult:
    """Run one command and print what the daemon said."""
    result = await client.execute_async(command)
    if result.text:
        print(result.text)
    if not result.succeeded:
        print(f"rndc: '{command}' failed: {result.error or 'failure'}", file=sys.stderr)
    return result


# -------------------------
# Argument parsing
# -------------------------

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="rndc-client",
        description="Send one control command to a name server.",
    )
    p.add_argument("-s", "--server", help="host or host:port (default 127.0.0.1:953)")
    p.add_argument("-p", "--port", type=int, help="port, overrides any port in --server")
    p.add_argument("-a", "--algorithm", help="hmac-md5, hmac-sha1 ... hmac-sha512")
    p.add_argument("-y", "--secret", help="base64 secret")
    p.add_argument("-k", "--keyfile", help="file holding a key clause")
    p.add_argument("-n", "--keyname", help="key to use from --keyfile (default: first)")
    p.add_argument("-t", "--timeout", type=float, help="connect/read timeout in seconds")
    p.add_argument("--verify", action="store_true", help="check the response signature")
    p.add_argument("-V", "--verbose", action="store_true", help="debug logging")
    p.add_argument("command", nargs=argparse.REMAINDER, help="command and its arguments")
    return p.parse_args(argv)


# -------------------------
# Main entrypoint
# -------------------------

def main(argv: Optional[List[str]] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    args = parse_args(argv)
    environ = os.environ if environ is None else environ

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        print("rndc: no command given", file=sys.stderr)
        return EXIT_CLIENT_ERROR
    command = " ".join(args.command)

    try:
        algorithm, secret = resolve_credentials(args, environ)
        client = RndcClient.create(
            resolve_server(args, environ),
            algorithm,
            secret,
            timeout=args.timeout,
            verify_responses=args.verify,
        )
        result = asyncio.run(run_command(client, command))
    except RndcError as exc:
        print(f"rndc: {exc}", file=sys.stderr)
        return EXIT_CLIENT_ERROR

    return EXIT_OK if result.succeeded else EXIT_REMOTE_FAILURE


if __name__ == "__main__":
    sys.exit(main())
