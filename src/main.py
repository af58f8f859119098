"""CLI entrypoint for quoting and executing swaps."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from decimal import Decimal
from typing import Optional

from chain.client import ChainClient
from chain.signer import LocalWalletProvider
from config import SwapOptions, get_env, load_network_config
from core.base_types import Token
from core.errors import SwapError
from pricing.quote import SwapSettings
from swap.controller import SwapController


def _slippage(value: str) -> Decimal:
    try:
        return SwapSettings(max_slippage=value).max_slippage
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _minutes(value: str) -> int:
    minutes = int(value)
    if minutes <= 0:
        raise argparse.ArgumentTypeError("deadline must be positive")
    return minutes


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="AMM swap quote and execution CLI")
    parser.add_argument(
        "--network",
        default=get_env("SWAP_NETWORK", "kasplex-testnet"),
        help="Network preset name",
    )
    parser.add_argument("--partner-key", default=get_env("SWAP_PARTNER_KEY"))
    parser.add_argument("--max-hops", type=int, default=3)
    parser.add_argument("--log-level", default="WARNING")
    subparsers = parser.add_subparsers(dest="command")

    tokens = subparsers.add_parser("tokens", help="List tokens known to the pair graph")
    tokens.add_argument("--search", default=None, help="Symbol or name substring")
    tokens.add_argument("--limit", type=int, default=100)

    for name, help_text in (
        ("quote", "Compute a quote"),
        ("swap", "Quote, approve if needed, and swap (needs PRIVATE_KEY)"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--sell", required=True, help="Token address, symbol, or 'native'")
        sub.add_argument("--buy", required=True, help="Token address, symbol, or 'native'")
        sub.add_argument("--amount", required=True, help="Human-readable amount")
        sub.add_argument(
            "--exact-out",
            action="store_true",
            help="Treat --amount as the amount to receive",
        )
        sub.add_argument(
            "--slippage", type=_slippage, default=None, help="Max slippage in percent"
        )
        sub.add_argument("--deadline", type=_minutes, default=None, help="Minutes")

    subparsers.add_parser("partner-fee", help="Print the partner fee in percent")

    parser.set_defaults(command="tokens", search=None, limit=100)
    return parser


def _resolve_token(controller: SwapController, ref: str) -> Token:
    if ref.lower() == "native":
        return controller.network.native_token
    found = controller.graph.token(ref) if ref.startswith("0x") else None
    if found is None:
        matches = [
            t for t in controller.graph.tokens() if t.symbol.lower() == ref.lower()
        ]
        found = matches[0] if matches else None
    if found is None:
        raise SystemExit(f"Unknown token: {ref}")
    return found


def _print_state(controller: SwapController) -> None:
    state = controller.get_state()
    if state.error:
        print(f"error: {state.error}", file=sys.stderr)
        return
    computed = state.computed
    if computed is None or state.trade is None:
        print("no quote", file=sys.stderr)
        return
    print(f"route:      {state.trade.route!r}")
    print(f"amount in:  {computed.amount_in}")
    print(f"amount out: {computed.amount_out}")
    if computed.max_amount_in is not None:
        print(f"max in:     {computed.max_amount_in}")
    if computed.min_amount_out is not None:
        print(f"min out:    {computed.min_amount_out}")


async def _run(args: argparse.Namespace) -> int:
    network = load_network_config(args.network)
    client = ChainClient([network.rpc_url])
    options = SwapOptions(partner_key=args.partner_key, max_hops=args.max_hops)
    wallet = LocalWalletProvider(client, network.chain_id)

    async with SwapController(network, options, wallet=wallet, client=client) as controller:
        if args.command == "tokens":
            for token in await controller.get_tokens_from_graph(args.limit, args.search):
                print(f"{token.symbol:<12} {token.address.checksum} {token.decimals}")
            return 0

        if args.command == "partner-fee":
            print(f"{await controller.get_partner_fee()}%")
            return 0

        await controller.graph.wait_until_ready()
        settings: dict[str, object] = {}
        if args.slippage is not None:
            settings["max_slippage"] = args.slippage
        if args.deadline is not None:
            settings["deadline"] = args.deadline
        if args.command == "swap":
            try:
                await controller.connect_wallet()
            except ValueError as exc:
                print(f"wallet: {exc}", file=sys.stderr)
                return 1
        await controller.set_data(
            from_token=_resolve_token(controller, args.sell),
            to_token=_resolve_token(controller, args.buy),
            amount=args.amount,
            is_output_amount=args.exact_out,
            settings=settings,
        )
        _print_state(controller)
        if controller.get_state().error:
            return 1

        if args.command == "swap":
            try:
                tx_hash = await controller.swap()
            except SwapError as exc:
                print(f"swap failed: {exc}", file=sys.stderr)
                return 1
            print(f"tx: {tx_hash}")
        return 0


def main(argv: Optional[list[str]] = None) -> None:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    raise SystemExit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
