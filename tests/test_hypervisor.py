"""
Tests for vault_zap/contracts/hypervisor.py (web3 adapters).

Covers:
- parse_transfer_amount: Transfer event filtering and summing
- Web3PoolReader: slot0 vs globalState, missing ticks, read failures
- Web3VaultOracle / Web3VaultDepositor: UniProxy calls, share parsing
- Web3SwapRouter: Algebra vs Uniswap V3 params
- Web3TokenLedger: signer checks, approve skip, snapshot/restore
- build_web3_backend wiring
"""

from unittest.mock import MagicMock

import pytest

from vault_zap.contracts.abis import ALGEBRA_SWAP_ROUTER_ABI, SWAP_ROUTER_V3_ABI
from vault_zap.contracts.hypervisor import (
    Web3PoolReader,
    Web3SwapRouter,
    Web3TokenLedger,
    Web3VaultDepositor,
    Web3VaultOracle,
    build_web3_backend,
    parse_transfer_amount,
)
from vault_zap.errors import PoolStateUnavailable, TransferFailure
from vault_zap.math.ticks import Q96

from conftest import (
    DOLA, FRAX, POOL, USER, VAULT, WALLET, ZAP,
    make_receipt, make_transfer_log,
)

ZERO = "0x" + "0" * 40
PROXY = "0x000000000000000000000000000000000000abcd"
ROUTER = "0x000000000000000000000000000000000000a1ef"


@pytest.fixture
def contract(mock_w3):
    """Один мок-контракт на все адреса."""
    mock_contract = MagicMock()
    mock_w3.eth.contract.return_value = mock_contract
    return mock_contract


@pytest.fixture
def sender():
    mock_sender = MagicMock()
    mock_sender.address = WALLET
    mock_sender.send.return_value = make_receipt()
    return mock_sender


def _hypervisor_reads(contract, sqrt_price=Q96):
    contract.functions.token0.return_value.call.return_value = FRAX
    contract.functions.token1.return_value.call.return_value = DOLA
    contract.functions.pool.return_value.call.return_value = POOL
    contract.functions.slot0.return_value.call.return_value = (sqrt_price, 0, 0, 1, 1, 0, True)
    contract.functions.globalState.return_value.call.return_value = (sqrt_price, 0, 0, 0, 0, 0, True)
    contract.functions.baseLower.return_value.call.return_value = -100
    contract.functions.baseUpper.return_value.call.return_value = 100


# ============================================================
# parse_transfer_amount
# ============================================================

class TestParseTransferAmount:

    def test_single_transfer(self):
        receipt = make_receipt(logs=[make_transfer_log(DOLA, POOL, ZAP, 12345)])
        assert parse_transfer_amount(receipt, DOLA, ZAP) == 12345

    def test_sums_matching_transfers(self):
        receipt = make_receipt(logs=[
            make_transfer_log(FRAX, VAULT, ZAP, 10),
            make_transfer_log(FRAX, POOL, ZAP, 5),
        ])
        assert parse_transfer_amount(receipt, FRAX, ZAP) == 15

    def test_ignores_other_token_and_recipient(self):
        receipt = make_receipt(logs=[
            make_transfer_log(FRAX, POOL, ZAP, 10),
            make_transfer_log(DOLA, POOL, USER, 7),
        ])
        assert parse_transfer_amount(receipt, DOLA, ZAP) is None

    def test_hex_string_data(self):
        log = make_transfer_log(DOLA, POOL, ZAP, 0)
        log['data'] = hex(255)
        receipt = make_receipt(logs=[log])
        assert parse_transfer_amount(receipt, DOLA, ZAP) == 255

    def test_short_topics_skipped(self):
        log = make_transfer_log(DOLA, POOL, ZAP, 1)
        log['topics'] = log['topics'][:1]
        assert parse_transfer_amount(make_receipt(logs=[log]), DOLA, ZAP) is None

    def test_no_logs(self):
        assert parse_transfer_amount(make_receipt(), DOLA, ZAP) is None


# ============================================================
# Web3PoolReader
# ============================================================

class TestWeb3PoolReader:

    def test_slot0(self, mock_w3, contract):
        _hypervisor_reads(contract)
        state = Web3PoolReader(mock_w3).get_state(VAULT)

        assert state.sqrt_price_x96 == Q96
        assert (state.token0, state.token1) == (FRAX, DOLA)
        assert (state.tick_lower, state.tick_upper) == (-100, 100)
        contract.functions.globalState.assert_not_called()

    def test_global_state(self, mock_w3, contract):
        _hypervisor_reads(contract, sqrt_price=2 * Q96)
        state = Web3PoolReader(mock_w3, use_global_state=True).get_state(VAULT)

        assert state.sqrt_price_x96 == 2 * Q96
        contract.functions.slot0.assert_not_called()

    def test_missing_ticks(self, mock_w3, contract):
        _hypervisor_reads(contract)
        contract.functions.baseLower.return_value.call.side_effect = Exception("no baseLower")

        state = Web3PoolReader(mock_w3).get_state(VAULT)
        assert not state.has_tick_bounds

    def test_token_read_failure(self, mock_w3, contract):
        _hypervisor_reads(contract)
        contract.functions.token0.return_value.call.side_effect = Exception("RPC error")

        with pytest.raises(PoolStateUnavailable):
            Web3PoolReader(mock_w3).get_state(VAULT)

    def test_uninitialized_pool(self, mock_w3, contract):
        _hypervisor_reads(contract, sqrt_price=0)
        with pytest.raises(PoolStateUnavailable):
            Web3PoolReader(mock_w3).get_state(VAULT)


# ============================================================
# Web3VaultOracle / Web3VaultDepositor
# ============================================================

class TestWeb3VaultOracle:

    def test_deposit_amount(self, mock_w3, contract):
        contract.functions.getDepositAmount.return_value.call.return_value = (90, 110)
        oracle = Web3VaultOracle(mock_w3, PROXY)
        assert oracle.get_deposit_amount(VAULT, FRAX, 100) == (90, 110)

    def test_failure(self, mock_w3, contract):
        contract.functions.getDepositAmount.return_value.call.side_effect = Exception("revert")
        oracle = Web3VaultOracle(mock_w3, PROXY)
        with pytest.raises(PoolStateUnavailable):
            oracle.get_deposit_amount(VAULT, FRAX, 100)


class TestWeb3VaultDepositor:

    def test_deposit_parses_minted_shares(self, mock_w3, contract, sender):
        contract.functions.balanceOf.return_value.call.return_value = 0
        sender.send.return_value = make_receipt(logs=[make_transfer_log(VAULT, ZERO, USER, 500)])

        shares = Web3VaultDepositor(mock_w3, sender, PROXY).deposit(10, 20, USER, VAULT, (0, 0, 0, 0))

        assert shares == 500
        assert sender.send.call_args[0][1] == 'deposit'
        args = contract.functions.deposit.call_args[0]
        assert args[0:2] == (10, 20)
        assert args[4] == [0, 0, 0, 0]

    def test_deposit_falls_back_to_balance_delta(self, mock_w3, contract, sender):
        contract.functions.balanceOf.return_value.call.side_effect = [100, 160]
        shares = Web3VaultDepositor(mock_w3, sender, PROXY).deposit(10, 20, USER, VAULT, (0, 0, 0, 0))
        assert shares == 60

    def test_withdraw_parses_both_legs(self, mock_w3, contract, sender):
        _hypervisor_reads(contract)
        sender.send.return_value = make_receipt(logs=[
            make_transfer_log(FRAX, VAULT, ZAP, 10),
            make_transfer_log(DOLA, VAULT, ZAP, 20),
        ])

        amounts = Web3VaultDepositor(mock_w3, sender, PROXY).withdraw(50, ZAP, ZAP, VAULT, (0, 0, 0, 0))

        assert amounts == (10, 20)
        assert sender.send.call_args[0][1] == 'withdraw'

    def test_withdraw_missing_leg_is_zero(self, mock_w3, contract, sender):
        _hypervisor_reads(contract)
        sender.send.return_value = make_receipt(logs=[make_transfer_log(DOLA, VAULT, ZAP, 20)])
        assert Web3VaultDepositor(mock_w3, sender, PROXY).withdraw(50, ZAP, ZAP, VAULT, (0, 0, 0, 0)) == (0, 20)


# ============================================================
# Web3SwapRouter
# ============================================================

class TestWeb3SwapRouter:

    def test_algebra_params(self, mock_w3, contract, sender):
        sender.send.return_value = make_receipt(logs=[make_transfer_log(DOLA, POOL, ZAP, 99)])
        router = Web3SwapRouter(mock_w3, sender)

        out = router.exact_input_single(ROUTER, FRAX, DOLA, ZAP, 1000, 100, 0, 0)

        assert out == 99
        assert mock_w3.eth.contract.call_args[1]['abi'] == ALGEBRA_SWAP_ROUTER_ABI
        params = contract.functions.exactInputSingle.call_args[0][0]
        assert len(params) == 7
        assert params[3:] == (1000, 100, 0, 0)

    def test_v3_params_carry_fee(self, mock_w3, contract, sender):
        sender.send.return_value = make_receipt(logs=[make_transfer_log(DOLA, POOL, ZAP, 99)])
        router = Web3SwapRouter(mock_w3, sender, fee=100)

        router.exact_input_single(ROUTER, FRAX, DOLA, ZAP, 1000, 100)

        assert mock_w3.eth.contract.call_args[1]['abi'] == SWAP_ROUTER_V3_ABI
        params = contract.functions.exactInputSingle.call_args[0][0]
        assert len(params) == 8
        assert params[2] == 100

    def test_unparsed_output_is_zero(self, mock_w3, contract, sender):
        router = Web3SwapRouter(mock_w3, sender)
        assert router.exact_input_single(ROUTER, FRAX, DOLA, ZAP, 1000, 100) == 0

    def test_send_failure_propagates(self, mock_w3, contract, sender):
        sender.send.side_effect = TransferFailure("swap transaction reverted")
        with pytest.raises(TransferFailure):
            Web3SwapRouter(mock_w3, sender).exact_input_single(ROUTER, FRAX, DOLA, ZAP, 1000, 100)


# ============================================================
# Web3TokenLedger
# ============================================================

class TestWeb3TokenLedger:

    def test_approve_requires_signer(self, mock_w3, contract, sender):
        ledger = Web3TokenLedger(mock_w3, sender)
        with pytest.raises(TransferFailure):
            ledger.approve(FRAX, USER, VAULT, 10)
        sender.send.assert_not_called()

    def test_approve_skipped_when_sufficient(self, mock_w3, contract, sender):
        contract.functions.allowance.return_value.call.return_value = 100
        Web3TokenLedger(mock_w3, sender).approve(FRAX, WALLET, VAULT, 100)
        sender.send.assert_not_called()

    def test_approve_sent(self, mock_w3, contract, sender):
        contract.functions.allowance.return_value.call.return_value = 0
        Web3TokenLedger(mock_w3, sender).approve(FRAX, WALLET.lower(), VAULT, 100)

        assert sender.send.call_args[0][1] == 'approve'
        assert contract.functions.approve.call_args[0][1] == 100

    def test_transfer_from_requires_signer_as_spender(self, mock_w3, contract, sender):
        ledger = Web3TokenLedger(mock_w3, sender)
        with pytest.raises(TransferFailure):
            ledger.transfer_from(FRAX, ZAP, USER, ZAP, 10)

        ledger.transfer_from(FRAX, WALLET, USER, WALLET, 10)
        assert sender.send.call_args[0][1] == 'transfer'

    def test_snapshot_covers_watched_balances(self, mock_w3, contract, sender):
        contract.functions.balanceOf.return_value.call.return_value = 42
        ledger = Web3TokenLedger(mock_w3, sender)
        ledger.balance_of(FRAX, WALLET)
        ledger.balance_of(DOLA, WALLET)

        snap = ledger.snapshot()

        assert snap == {(FRAX.lower(), WALLET.lower()): 42, (DOLA.lower(), WALLET.lower()): 42}

    def test_watch_vault_seeds_snapshot(self, mock_w3, contract, sender):
        """Снимок до первого balance_of уже содержит токены и доли хранилища."""
        _hypervisor_reads(contract)
        contract.functions.balanceOf.return_value.call.return_value = 5
        ledger = Web3TokenLedger(mock_w3, sender)

        ledger.watch_vault(VAULT)

        holder = WALLET.lower()
        assert ledger.snapshot() == {
            (FRAX.lower(), holder): 5,
            (DOLA.lower(), holder): 5,
            (VAULT.lower(), holder): 5,
        }

    def test_watch_vault_read_failure(self, mock_w3, contract, sender):
        contract.functions.token0.return_value.call.side_effect = Exception("rpc down")
        with pytest.raises(PoolStateUnavailable):
            Web3TokenLedger(mock_w3, sender).watch_vault(VAULT)

    def test_restore_does_not_send(self, mock_w3, contract, sender):
        contract.functions.balanceOf.return_value.call.return_value = 42
        ledger = Web3TokenLedger(mock_w3, sender)
        ledger.balance_of(FRAX, WALLET)
        snap = ledger.snapshot()

        contract.functions.balanceOf.return_value.call.return_value = 40
        ledger.restore(snap)

        sender.send.assert_not_called()


# ============================================================
# build_web3_backend
# ============================================================

class TestBuildWeb3Backend:

    def test_algebra(self, mock_w3, contract, sender):
        backend = build_web3_backend(mock_w3, MagicMock(address=WALLET), PROXY, sender=sender)

        assert backend.pools.use_global_state is True
        assert backend.router.fee is None
        assert backend.participants == [backend.tokens]

    def test_uniswap_v3(self, mock_w3, contract, sender):
        backend = build_web3_backend(
            mock_w3, MagicMock(address=WALLET), PROXY, algebra=False, swap_fee=100, sender=sender
        )

        assert backend.pools.use_global_state is False
        assert backend.router.fee == 100
        assert backend.vault.sender is sender

    def test_vaults_watched_from_start(self, mock_w3, contract, sender):
        _hypervisor_reads(contract)
        contract.functions.balanceOf.return_value.call.return_value = 0
        backend = build_web3_backend(mock_w3, MagicMock(address=WALLET), PROXY, sender=sender, vaults=[VAULT])

        snap = backend.tokens.snapshot()
        assert (FRAX.lower(), WALLET.lower()) in snap
        assert (VAULT.lower(), WALLET.lower()) in snap
