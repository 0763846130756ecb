"""
autosend CLI: batch native / token transfers from one or many wallets.

Every choice can be passed as a flag; anything missing is asked
interactively. Nothing is sent until the preview is confirmed.

  autosend                                  fully interactive
  autosend --network 1 --mode one-to-many --key-source env --amount 0.01
  autosend --network BSC --token 0x... --mode many-to-one --all --recipient 0x... --yes

Files read from the working directory: rpc.json, pk.txt, address.txt, .env
"""

import argparse
import asyncio
import sys
from typing import List, Optional, Sequence

from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn
from web3 import AsyncWeb3, Web3

from autosend import __version__
from autosend.config import (
    DEFAULT_CONCURRENCY,
    SendPolicy,
    clamp_concurrency,
    load_dotenv_file,
    load_networks,
)
from autosend.jobs import (
    ADDRESS_FILE,
    KEY_FILE,
    NATIVE_DECIMALS,
    format_amount,
    many_to_one,
    one_to_many,
    parse_amount,
    read_lines,
    token_balance_jobs,
)
from autosend.log import setup_logging
from autosend.pool import DispatchPool
from autosend.report import write_results
from autosend.schema import JobResult, JobState, Network, TransferJob
from autosend.token import TokenInfo, read_token_info
from autosend.wallet import key_from_env

ONE_TO_MANY = "one-to-many"
MANY_TO_ONE = "many-to-one"

console = Console()


class UsageError(Exception):
    """Missing or invalid input detected before dispatch; exits with status 1."""


# --- prompts ---

def _ask(message: str, default: Optional[str] = None) -> str:
    suffix = f" [{default}]" if default is not None else ""
    answer = input(f"{message}{suffix}: ").strip()
    return answer or (default or "")


def _choose(message: str, options: Sequence[str]) -> int:
    """Numbered menu; returns the 0-based index."""
    console.print(f"[bold blue]{escape(message)}[/]")
    for i, option in enumerate(options, start=1):
        console.print(f"  [bold]{i}.[/] {escape(option)}")
    while True:
        answer = input(f"Enter choice (1-{len(options)}): ").strip()
        if answer.isdigit() and 1 <= int(answer) <= len(options):
            return int(answer) - 1
        console.print("[yellow]Invalid choice.[/]")


def _confirm(message: str, default: bool = False) -> bool:
    hint = "Y/n" if default else "y/N"
    answer = input(f"{message} ({hint}): ").strip().lower()
    if not answer:
        return default
    return answer in ("y", "yes")


# --- selection steps ---

def print_header(networks: List[Network]) -> None:
    lines = [
        "[bold cyan]AUTO SEND[/]",
        "[green]Multi-chain token / native batch sender[/]",
        f"[grey50]Version {__version__}[/]",
        "",
        "Follow the prompts. ALWAYS test with small amounts first.",
    ]
    console.print(Panel("\n".join(lines), border_style="cyan", padding=(1, 2)))
    console.print("[yellow]Available networks:[/]")
    for i, network in enumerate(networks, start=1):
        console.print(f"  [bold]{i}.[/] {escape(network.name)}")
    console.print()


def choose_network(networks: List[Network], selector: Optional[str]) -> Network:
    if selector:
        if selector.isdigit() and 1 <= int(selector) <= len(networks):
            return networks[int(selector) - 1]
        for network in networks:
            if network.name.lower() == selector.lower():
                return network
        raise UsageError(f"Unknown network: {selector}")
    return networks[_choose("Choose network", [n.name for n in networks])]


def choose_token(args: argparse.Namespace) -> Optional[str]:
    if args.token:
        return args.token
    if args.native:
        return None
    choice = _choose("What to send", ["Token (ERC20/BEP20)", "Native coin (ETH/BNB/...)"])
    if choice == 1:
        return None
    token = _ask("Token contract address (0x...)")
    if not token:
        raise UsageError("No token contract given")
    return token


def choose_mode(args: argparse.Namespace) -> str:
    if args.mode:
        return args.mode
    choice = _choose("Send mode", ["1 wallet -> many addresses", "many wallets -> 1 address"])
    return ONE_TO_MANY if choice == 0 else MANY_TO_ONE


def choose_single_key(args: argparse.Namespace) -> str:
    source = args.key_source
    if not source:
        choice = _choose("Sender private key source", [".env PRIVATE_KEY (single)", f"{KEY_FILE} (one per line)"])
        source = "env" if choice == 0 else "file"
    if source == "env":
        try:
            return key_from_env()
        except RuntimeError as e:
            raise UsageError(str(e)) from e
    keys = read_lines(KEY_FILE)
    if not keys:
        raise UsageError(f"{KEY_FILE} is empty (put one private key per line)")
    if len(keys) == 1:
        return keys[0]
    if args.key_index:
        if not 1 <= args.key_index <= len(keys):
            raise UsageError(f"--key-index must be between 1 and {len(keys)}")
        return keys[args.key_index - 1]
    return keys[_choose("Pick sender", [f"#{i}" for i in range(1, len(keys) + 1)])]


def choose_recipient(args: argparse.Namespace) -> str:
    if args.recipient:
        return args.recipient
    if _confirm(f"Take the recipient from {ADDRESS_FILE} (first line)?"):
        addresses = read_lines(ADDRESS_FILE)
        if not addresses:
            raise UsageError(f"{ADDRESS_FILE} is empty")
        return addresses[0]
    recipient = _ask("Recipient address (0x...)")
    if not recipient:
        raise UsageError("No recipient address given")
    return recipient


def choose_amount(args: argparse.Namespace, mode: str, decimals: int, unit: str) -> Optional[int]:
    """Smallest-unit amount, or None for 'entire balance'."""
    if args.all:
        if mode != MANY_TO_ONE:
            raise UsageError("--all is only available in many-to-one mode")
        return None
    text = args.amount
    if not text and mode == MANY_TO_ONE:
        choice = _choose("For each sender wallet", ["Fixed amount per wallet", f"Send entire {unit} balance"])
        if choice == 1:
            return None
    if not text:
        label = "per recipient" if mode == ONE_TO_MANY else "per wallet"
        text = _ask(f"Amount of {unit} {label} (e.g. 0.01) [decimals {decimals}]")
    try:
        return parse_amount(text, decimals)
    except ValueError as e:
        raise UsageError(str(e)) from e


def choose_concurrency(args: argparse.Namespace) -> int:
    if args.concurrency is not None:
        return clamp_concurrency(args.concurrency)
    answer = _ask("Concurrency (parallel wallets)", str(DEFAULT_CONCURRENCY))
    return clamp_concurrency(int(answer) if answer.isdigit() else None)


# --- progress ---

class RichProgressSink:
    """Progress bar advanced once per finished job, one coloured line per result."""

    def __init__(self, progress: Progress, task_id):
        self.progress = progress
        self.task_id = task_id

    def transition(self, index: int, job: TransferJob, state: JobState) -> None:
        if state is JobState.AMOUNT_RESOLVING:
            logger.debug(f"#{index + 1} resolving entire balance of {job.sender}")

    def finished(self, result: JobResult) -> None:
        self.progress.advance(self.task_id)
        if result.ok:
            self.progress.console.print(
                f"[green]Tx OK: {result.tx_hash} | from {result.sender} -> {escape(result.recipient)}[/]"
            )
        else:
            self.progress.console.print(
                f"[red]Tx FAILED from {result.sender} -> {escape(result.recipient)}: {escape(result.error or '')}[/]"
            )


def print_preview(jobs: List[TransferJob], decimals: int, unit: str) -> None:
    console.print("\n[magenta]--- PREVIEW TRANSACTIONS ---[/]\n")
    for i, job in enumerate(jobs, start=1):
        if job.sends_entire_balance:
            amount = "entire balance - gas"
        else:
            amount = format_amount(job.amount.value, decimals)
        console.print(
            f"[grey50]{i}.[/] [yellow]{job.sender}[/] -> [green]{escape(job.recipient)}[/] | {amount} [cyan]{escape(unit)}[/]"
        )
    console.print()


def connect(network: Network, policy: SendPolicy) -> AsyncWeb3:
    return AsyncWeb3(
        AsyncWeb3.AsyncHTTPProvider(network.endpoint, request_kwargs={"timeout": policy.request_timeout})
    )


async def dispatch(w3: AsyncWeb3, network: Network, policy: SendPolicy, jobs: List[TransferJob], concurrency: int) -> List[JobResult]:
    columns = (
        TextColumn("[bold]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("Tx"),
        TimeElapsedColumn(),
    )
    with Progress(*columns, console=console) as progress:
        task_id = progress.add_task(network.name, total=len(jobs))
        pool = DispatchPool(w3, network.chain_id, policy=policy, sink=RichProgressSink(progress, task_id))
        return await pool.run(jobs, concurrency)


async def send_command(args: argparse.Namespace, networks: List[Network], policy: SendPolicy) -> int:
    network = choose_network(networks, args.network)
    w3 = connect(network, policy)
    logger.info(f"Using {network.name} ({network.endpoint}, chain {network.chain_id})")

    token_address = choose_token(args)
    token: Optional[TokenInfo] = None
    if token_address:
        if not Web3.is_address(token_address):
            raise UsageError(f"Invalid token contract address: {token_address}")
        token = await read_token_info(w3, token_address)
        if not token.symbol:
            console.print(f"[yellow]Could not read decimals/symbol, using {token.decimals} decimals.[/]")
    decimals = token.decimals if token else NATIVE_DECIMALS
    unit = (token.symbol or "TOKEN") if token else "NATIVE"

    mode = choose_mode(args)
    if mode == ONE_TO_MANY:
        key = choose_single_key(args)
        recipients = read_lines(args.address_file)
        if not recipients:
            raise UsageError(f"{args.address_file} is missing or empty (one recipient address per line)")
        amount = choose_amount(args, mode, decimals, unit)
        concurrency = choose_concurrency(args)
        jobs = one_to_many(key, recipients, amount, token.address if token else None)
    else:
        keys = read_lines(KEY_FILE)
        if not keys:
            raise UsageError(f"{KEY_FILE} is missing or empty (one private key per line)")
        recipient = choose_recipient(args)
        amount = choose_amount(args, mode, decimals, unit)
        concurrency = choose_concurrency(args)
        if amount is None and token:
            jobs = await token_balance_jobs(w3, keys, recipient, token.address)
        else:
            jobs = many_to_one(keys, recipient, amount, token.address if token else None)

    print_preview(jobs, decimals, unit)
    if not args.yes and not _confirm("[!] Send all transactions? (MAKE SURE this is the right network!)"):
        console.print("[yellow]Cancelled.[/]")
        return 0

    results = await dispatch(w3, network, policy, jobs, concurrency)
    out_path = write_results(results, args.output)
    ok = sum(1 for r in results if r.ok)
    console.print(f"\n[cyan]Done: {ok}/{len(results)} succeeded. Results saved to: {out_path}[/]")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autosend",
        description="Batch-send native coins or tokens from one or many wallets.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--rpc-file", default=None, help="Network list (default: rpc.json or $AUTOSEND_RPC_FILE)")
    parser.add_argument("--network", default=None, help="Network name or 1-based index from the list")
    asset = parser.add_mutually_exclusive_group()
    asset.add_argument("--token", default=None, help="Token contract address (omit for native)")
    asset.add_argument("--native", action="store_true", help="Send the native coin")
    parser.add_argument("--mode", choices=[ONE_TO_MANY, MANY_TO_ONE], default=None)
    parser.add_argument("--key-source", choices=["env", "file"], default=None, help="one-to-many sender key source")
    parser.add_argument("--key-index", type=int, default=None, help="1-based line of pk.txt to send from")
    parser.add_argument("--recipient", default=None, help="many-to-one destination address")
    parser.add_argument("--address-file", default=ADDRESS_FILE, help="one-to-many recipient list")
    amount = parser.add_mutually_exclusive_group()
    amount.add_argument("--amount", default=None, help="Human amount, e.g. 0.01")
    amount.add_argument("--all", action="store_true", help="many-to-one: send each wallet's entire balance")
    parser.add_argument("--concurrency", type=int, default=None, help="Parallel jobs, 1-50 (default 4)")
    parser.add_argument("--output", default=None, help="Result file (default: send_results_<ms>.csv)")
    parser.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING (default: $AUTOSEND_LOG_LEVEL or WARNING)")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    load_dotenv_file()
    setup_logging(args.log_level, console=console)

    try:
        policy = SendPolicy.from_env()
        networks = load_networks(args.rpc_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]{escape(str(e))}[/]")
        return 1

    print_header(networks)
    try:
        return asyncio.run(send_command(args, networks, policy))
    except (UsageError, ValueError) as e:
        console.print(f"[red]{escape(str(e))}[/]")
        return 1
    except (KeyboardInterrupt, EOFError):
        console.print("\n[yellow]Cancelled.[/]")
        return 130


if __name__ == "__main__":
    sys.exit(main())
