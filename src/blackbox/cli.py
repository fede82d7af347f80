"""Blackbox CLI — commitment, signing, and relaying from the command line.

Usage:
    python -m blackbox.cli commit --sender 0x.. --recipient 0x.. --amount 1000 --timestamp 1700000000
    python -m blackbox.cli sign --recipient 0x.. --amount 1000
    python -m blackbox.cli verify --commitment 0x.. --signature 0x.. --sender 0x..
    python -m blackbox.cli relay --sender 0x.. --recipient 0x.. --amount 1000 \\
        --timestamp 1700000000 --signature 0x..
    python -m blackbox.cli demo

Keys are read from the environment (or --env-file) at signing time and
are never printed.
"""

from __future__ import annotations

import argparse
import json
import sys
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

from blackbox.config import RelayerConfig, SENDER_KEY_VARS, load_environment
from blackbox.crypto.authenticator import SignatureLike, sign_commitment, verify
from blackbox.crypto.codec import commit, encode
from blackbox.crypto.credential import SigningCredential
from blackbox.engine.relayer import RelayerPipeline
from blackbox.errors import BlackboxError
from blackbox.ledger.memory import InMemoryLedger
from blackbox.models.transfer import Commitment, TransferRecord
from blackbox.persistence.event_log import EventLog
from blackbox.service import RelayService, ServiceResult


# Well-known Hardhat development accounts; never hold real funds.
DEV_SENDER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
DEV_RECIPIENT = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"


def _record_from_args(args: argparse.Namespace, sender: str) -> TransferRecord:
    timestamp = args.timestamp if args.timestamp is not None else int(time.time())
    return TransferRecord(
        sender=sender,
        recipient=args.recipient,
        amount=args.amount,
        timestamp=timestamp,
    )


def cmd_commit(args: argparse.Namespace) -> int:
    record = _record_from_args(args, args.sender)
    print(json.dumps({
        "encoded": "0x" + encode(record).hex(),
        "commitment": commit(record).hex(),
        "timestamp": record.timestamp,
    }, indent=2))
    return 0


def cmd_sign(args: argparse.Namespace) -> int:
    environ = load_environment(args.env_file)
    credential = SigningCredential.from_env(*SENDER_KEY_VARS, environ=environ)
    record = _record_from_args(args, credential.address)
    signed = sign_commitment(credential, record)
    print(json.dumps({
        "sender": record.sender,
        "recipient": record.recipient,
        "amount": record.amount,
        "timestamp": record.timestamp,
        "commitment": signed.commitment.hex(),
        "signature": "0x" + signed.signature.hex(),
    }, indent=2))
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    recovered = verify(Commitment.from_hex(args.commitment), args.signature)
    print(f"Recovered signer: {recovered}")
    if args.sender is None:
        return 0
    if recovered.lower() == args.sender.lower():
        print("Signature verification: VALID")
        return 0
    print("Signature verification: INVALID", file=sys.stderr)
    return 1


def relay_until_interrupted(
    service: RelayService,
    record: TransferRecord,
    signature: SignatureLike,
    timeout: float | None = None,
) -> ServiceResult:
    """Relay on a worker thread; Ctrl-C cancels the relay instead of killing it."""
    cancel = threading.Event()
    pool = ThreadPoolExecutor(max_workers=1)
    future = pool.submit(service.relay, record, signature, timeout, cancel)
    try:
        return _wait(future)
    except KeyboardInterrupt:
        print("Interrupted, cancelling relay...", file=sys.stderr)
        cancel.set()
        return future.result()
    finally:
        pool.shutdown(wait=False)


def _wait(future: Future) -> ServiceResult:
    return future.result()


def cmd_relay(args: argparse.Namespace) -> int:
    environ = load_environment(args.env_file)
    config = RelayerConfig.from_env(environ=environ)
    service = RelayService.from_config(config, environ=environ)
    record = _record_from_args(args, args.sender)
    result = relay_until_interrupted(service, record, args.signature, timeout=args.timeout)
    print(json.dumps(result.data, indent=2))
    if result.success:
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_demo(args: argparse.Namespace) -> int:
    """Run user → relayer → ledger → audit against an in-memory ledger."""
    environ = load_environment(args.env_file)
    credential = SigningCredential.from_env(*SENDER_KEY_VARS, environ=environ)
    if not any(environ.get(name) for name in SENDER_KEY_VARS):
        credential = SigningCredential.from_key(DEV_SENDER_KEY, label="hardhat-dev-0")

    print("======== BLACKBOX PRIVACY DEMO ========")
    print()
    print("1. User creates a transfer and commits to it (client-side)")
    record = TransferRecord.now(credential.address, DEV_RECIPIENT, args.amount)
    signed = sign_commitment(credential, record)
    print(f"   From:       {record.sender}")
    print(f"   To:         {record.recipient}")
    print(f"   Amount:     {record.amount}")
    print(f"   Commitment: {signed.commitment.hex()}")
    print(f"   Signature:  0x{signed.signature.hex()}")

    print()
    print("2. Relayer authenticates and submits the commitment")
    ledger = InMemoryLedger()
    event_log = EventLog()
    pipeline = RelayerPipeline(ledger, event_log=event_log)
    outcome = pipeline.relay_signed(record, signed, timeout=args.timeout)
    for event in event_log.events():
        print(f"   [{event.event_kind.value}]")

    print()
    print("3. Ledger view (everything public)")
    for call in ledger.calls:
        print(f"   submit(0x{call.hex()})")
    for event in ledger.events:
        print(f"   block {event.block_number}: {event.name}(commitment: 0x{event.commitment.hex()})")

    print()
    if outcome.confirmed:
        print("PRIVATE TRANSFER CONFIRMED: emitted commitment matches")
        print("Sender, recipient and amount never left the client and relayer.")
        return 0
    print(f"Failed: {outcome.reason.value}: {outcome.detail}", file=sys.stderr)
    return 1


def _add_record_args(parser: argparse.ArgumentParser, with_sender: bool = True) -> None:
    if with_sender:
        parser.add_argument("--sender", required=True, help="Sender address (0x...)")
    parser.add_argument("--recipient", required=True, help="Recipient address (0x...)")
    parser.add_argument("--amount", required=True, type=int, help="Amount (uint256)")
    parser.add_argument(
        "--timestamp", type=int, default=None,
        help="UNIX timestamp in seconds (default: now)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blackbox",
        description="Blackbox — commitment-based private transfers via a relayer",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=Path(".env"),
        help="Path to .env file (default: .env)",
    )
    sub = parser.add_subparsers(dest="command")

    # commit
    p_commit = sub.add_parser("commit", help="Encode a transfer and print its commitment")
    _add_record_args(p_commit)

    # sign
    p_sign = sub.add_parser("sign", help="Sign a transfer with SENDER_PRIVATE_KEY")
    _add_record_args(p_sign, with_sender=False)

    # verify
    p_verify = sub.add_parser("verify", help="Recover the signer of a commitment")
    p_verify.add_argument("--commitment", required=True, help="Commitment (0x + 64 hex)")
    p_verify.add_argument("--signature", required=True, help="Signature (0x + 130 hex)")
    p_verify.add_argument("--sender", help="Expected sender address")

    # relay
    p_relay = sub.add_parser("relay", help="Relay a signed transfer to the configured ledger")
    _add_record_args(p_relay)
    p_relay.add_argument("--signature", required=True, help="Sender signature (0x...)")
    p_relay.add_argument("--timeout", type=float, default=None, help="Receipt deadline (s)")

    # demo
    p_demo = sub.add_parser("demo", help="End-to-end demo against an in-memory ledger")
    p_demo.add_argument("--amount", type=int, default=1000, help="Amount (default: 1000)")
    p_demo.add_argument("--timeout", type=float, default=30.0, help="Receipt deadline (s)")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "commit": cmd_commit,
        "sign": cmd_sign,
        "verify": cmd_verify,
        "relay": cmd_relay,
        "demo": cmd_demo,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except (BlackboxError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
