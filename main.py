"""
Vault Zap CLI

Вход в concentrated-liquidity хранилище одним токеном и выход в один токен.

    python main.py estimate-in  --vault 0x... --token FRAX --amount 5000000000000000000
    python main.py estimate-out --vault 0x... --token DOLA --lp 1000000000000000000
    python main.py zap-in  --vault 0x... --token FRAX --amount 5000000000000000000
    python main.py zap-out --vault 0x... --token DOLA --lp 1000000000000000000
    python main.py simulate --amount 5000000000000000000

Суммы в wei. Токен: символ из config.TOKENS_ETH или адрес.
"""

import argparse
import logging
import os
import sys

from dotenv import load_dotenv
from eth_account import Account
from web3 import Web3

from config import (
    DEFAULT_SLIPPAGE,
    TOKENS_ETH,
    ZapConfig,
    apply_slippage,
    get_chain_config,
    get_token,
)
from vault_zap import SimulatedChain, Zapper, ZapError
from vault_zap.contracts import build_web3_backend, encode_extra
from vault_zap.contracts.hypervisor import Web3PoolReader
from vault_zap.estimator import estimate_zap_in, estimate_zap_out
from vault_zap.math.ticks import Q96

load_dotenv()


def resolve_token(value: str) -> str:
    """Символ из реестра или адрес."""
    if value.startswith("0x"):
        return Web3.to_checksum_address(value)
    return get_token(value.upper()).address


def _rpc_url(args) -> str:
    return os.getenv("RPC_URL") or get_chain_config(args.chain).rpc_url


def _reader(args) -> Web3PoolReader:
    w3 = Web3(Web3.HTTPProvider(_rpc_url(args)))
    return Web3PoolReader(w3, use_global_state=get_chain_config(args.chain).algebra)


# ============================================================
# COMMANDS
# ============================================================

def cmd_estimate_in(args) -> int:
    state = _reader(args).get_state(args.vault)
    estimate = estimate_zap_in(state, resolve_token(args.token), args.amount)
    print(f"Estimated liquidity: {estimate}")
    print(f"Min liquidity ({args.slippage}% slippage): {apply_slippage(estimate, args.slippage)}")
    return 0


def cmd_estimate_out(args) -> int:
    state = _reader(args).get_state(args.vault)
    estimate = estimate_zap_out(state, resolve_token(args.token), args.lp)
    print(f"Estimated output: {estimate}")
    print(f"Min output ({args.slippage}% slippage): {apply_slippage(estimate, args.slippage)}")
    return 0


def _live_zapper(args):
    private_key = os.getenv("PRIVATE_KEY")
    if not private_key:
        print("ERROR: PRIVATE_KEY not found in .env file")
        print("Create .env file with: PRIVATE_KEY=0x...")
        return None, None

    chain = get_chain_config(args.chain)
    w3 = Web3(Web3.HTTPProvider(_rpc_url(args)))
    account = Account.from_key(private_key)
    backend = build_web3_backend(
        w3, account, uni_proxy=chain.uni_proxy, algebra=chain.algebra, swap_fee=chain.swap_fee,
        vaults=(args.vault,),
    )

    print(f"Account: {account.address}")
    return Zapper(backend, address=account.address, config=ZapConfig.from_env()), chain


def _confirm(args, prompt: str) -> bool:
    if args.yes:
        return True
    return input(f"{prompt} (yes/no): ").strip().lower() == "yes"


def cmd_zap_in(args) -> int:
    zapper, chain = _live_zapper(args)
    if zapper is None:
        return 1

    token = resolve_token(args.token)
    estimate = zapper.calc_min_to_amount_for_zap_in(args.vault, token, args.amount)
    min_liquidity = apply_slippage(estimate, args.slippage)
    print(f"Estimated liquidity: {estimate}, minimum: {min_liquidity}")

    if not _confirm(args, "Выполнить zap_in?"):
        print("Отменено")
        return 0

    extra = encode_extra(chain.swap_router)
    liquidity = zapper.zap_in(args.vault, token, zapper.address, args.amount, min_liquidity, extra)
    print(f"\n SUCCESS! Liquidity minted: {liquidity}")
    return 0


def cmd_zap_out(args) -> int:
    zapper, chain = _live_zapper(args)
    if zapper is None:
        return 1

    token = resolve_token(args.token)
    estimate = zapper.calc_min_to_amount_for_zap_out(args.vault, token, args.lp)
    min_out = apply_slippage(estimate, args.slippage)
    print(f"Estimated output: {estimate}, minimum: {min_out}")

    if not _confirm(args, "Выполнить zap_out?"):
        print("Отменено")
        return 0

    extra = encode_extra(chain.swap_router)
    amount_out = zapper.zap_out(args.vault, args.lp, token, min_out, extra)
    print(f"\n SUCCESS! Received: {amount_out}")
    return 0


def cmd_simulate(args) -> int:
    """Прогон zap_in -> zap_out на стабильной паре FRAX/DOLA в памяти."""
    frax = TOKENS_ETH["FRAX"].address
    dola = TOKENS_ETH["DOLA"].address
    pool_address = "0x000000000000000000000000000000000000b001"
    vault_address = "0x000000000000000000000000000000000000c001"
    zap_address = "0x000000000000000000000000000000000000d001"
    user = "0x000000000000000000000000000000000000e001"

    chain = SimulatedChain()
    pool = chain.add_pool(pool_address, frax, dola, sqrt_price_x96=Q96, liquidity=args.pool_liquidity, fee=args.fee)
    chain.add_vault(vault_address, pool, tick_lower=-args.width, tick_upper=args.width)
    chain.ledger.mint(frax, user, args.amount)
    chain.ledger.approve(frax, user, zap_address, args.amount)

    zapper = Zapper(chain.backend(zap_address), address=zap_address, account=user, config=ZapConfig.from_env())
    extra = encode_extra(chain.router_address)

    estimate = zapper.calc_min_to_amount_for_zap_in(vault_address, frax, args.amount)
    result = zapper.zap_in_detailed(
        vault_address, frax, user, args.amount, apply_slippage(estimate, args.slippage), extra
    )
    print(f"zap_in:  {args.amount} FRAX -> {result.liquidity} liquidity "
          f"(estimate {estimate}, passes {result.passes})")
    print(f"  residue on zap: FRAX {chain.ledger.balance_of(frax, zap_address)}, "
          f"DOLA {chain.ledger.balance_of(dola, zap_address)}")

    chain.ledger.approve(vault_address, user, zap_address, result.liquidity)
    out = zapper.zap_out_detailed(vault_address, result.liquidity, frax, 0, extra)
    print(f"zap_out: {result.liquidity} shares -> {out.amount0}/{out.amount1}, swapped {out.swapped} "
          f"-> {out.amount_out} FRAX")
    return 0


# ============================================================
# ENTRY POINT
# ============================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Vault Zap: single-token vault entry and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="DEBUG logging")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_live_options(p):
        p.add_argument("--vault", required=True, help="Hypervisor (vault) address")
        p.add_argument("--token", required=True, help="Token symbol or address")
        p.add_argument("--chain", type=int, default=1, help="Chain id (default: 1)")
        p.add_argument("--slippage", type=float, default=DEFAULT_SLIPPAGE, help="Slippage, %% (default: 0.5)")

    p = sub.add_parser("estimate-in", help="Estimate liquidity for zap_in")
    add_live_options(p)
    p.add_argument("--amount", type=int, required=True, help="Input amount, wei")
    p.set_defaults(func=cmd_estimate_in)

    p = sub.add_parser("estimate-out", help="Estimate output for zap_out")
    add_live_options(p)
    p.add_argument("--lp", type=int, required=True, help="Vault shares, wei")
    p.set_defaults(func=cmd_estimate_out)

    p = sub.add_parser("zap-in", help="Zap a single token into the vault (requires PRIVATE_KEY)")
    add_live_options(p)
    p.add_argument("--amount", type=int, required=True, help="Input amount, wei")
    p.add_argument("--yes", action="store_true", help="Skip confirmation")
    p.set_defaults(func=cmd_zap_in)

    p = sub.add_parser("zap-out", help="Zap vault shares out to a single token (requires PRIVATE_KEY)")
    add_live_options(p)
    p.add_argument("--lp", type=int, required=True, help="Vault shares, wei")
    p.add_argument("--yes", action="store_true", help="Skip confirmation")
    p.set_defaults(func=cmd_zap_out)

    p = sub.add_parser("simulate", help="In-memory FRAX/DOLA zap_in -> zap_out dry run")
    p.add_argument("--amount", type=int, default=5 * 10 ** 18, help="FRAX amount, wei")
    p.add_argument("--pool-liquidity", type=int, default=10 ** 24, help="Pool liquidity")
    p.add_argument("--fee", type=int, default=100, help="Pool fee, pips")
    p.add_argument("--width", type=int, default=100, help="Position half-width, ticks")
    p.add_argument("--slippage", type=float, default=DEFAULT_SLIPPAGE, help="Slippage, %% (default: 0.5)")
    p.set_defaults(func=cmd_simulate)

    return parser


def main(argv=None) -> int:
    """Главная функция."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    )

    try:
        return args.func(args)
    except ZapError as e:
        print(f"\n FAILED: {type(e).__name__}: {e}")
        return 1
    except ValueError as e:
        print(f"\n ERROR: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
