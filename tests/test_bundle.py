"""
Bundle Model Test Suite

Covers bundle construction, wire serialization, pre-flight validation and
decoding of simulation, submission and stats records.

File: tests/test_bundle.py

Run with: python -m pytest tests/test_bundle.py -v
"""

import json
from datetime import datetime, timezone

import pytest
from eth_utils import encode_hex, is_checksum_address, keccak

from flashbundle.bundle import (
    BundleRequest,
    BundleStats,
    BundleTransaction,
    GetBundleStatsParams,
    SendBundleResponse,
    SimulatedBundle,
    SimulatedTransaction,
    TransactionKind,
)
from flashbundle.exceptions import ParameterError
from flashbundle.user import UserStats


BUNDLE_HASH = "0x73b1e258c7a42fd0230b2fd05529c5d4b6fcb66c227783f8bece8aeacdd1db2e"


# =============================================================================
# BUNDLE CONSTRUCTION
# =============================================================================

class TestBundleRequest:
    """Test suite for building and serializing bundles."""

    def test_serializes_to_exact_wire_format(self):
        """Serialized bundle matches the relay wire format byte for byte."""
        bundle = (
            BundleRequest()
            .push_transaction(b"\x01")
            .push_revertible_transaction(b"\x02")
            .set_block(2)
            .set_min_timestamp(1000)
            .set_max_timestamp(2000)
            .set_simulation_timestamp(1000)
            .set_simulation_block(1)
            .set_simulation_basefee(333333)
        )

        assert json.dumps(bundle.to_dict(), separators=(",", ":")) == (
            '{"txs":["0x01","0x02"],'
            '"revertingTxHashes":["0xf2ee15ea639b73fa3db9b34a245bdfa015c260c598b211bf05a1ecc4b3e3b4f2"],'
            '"blockNumber":"0x2","minTimestamp":1000,"maxTimestamp":2000,'
            '"stateBlockNumber":"0x1","timestamp":1000,"baseFee":333333}'
        )

    def test_empty_bundle_serializes_only_txs(self):
        assert BundleRequest().to_dict() == {"txs": []}

    def test_empty_reverting_list_is_omitted(self):
        data = BundleRequest().push_transaction(b"\x01").set_block(10).to_dict()

        assert "revertingTxHashes" not in data
        assert data == {"txs": ["0x01"], "blockNumber": "0xa"}

    def test_transaction_hashes_follow_push_order(self):
        bundle = (
            BundleRequest()
            .push_transaction("0x03")
            .push_revertible_transaction(b"\x01")
            .push_transaction(bytearray(b"\x02"))
        )

        assert bundle.transaction_hashes() == [
            encode_hex(keccak(b"\x03")),
            encode_hex(keccak(b"\x01")),
            encode_hex(keccak(b"\x02")),
        ]
        assert bundle.revertible_transaction_hashes == (encode_hex(keccak(b"\x01")),)

    def test_setters_leave_original_untouched(self):
        original = BundleRequest().push_transaction(b"\x01")
        updated = original.set_block(5).push_transaction(b"\x02")

        assert original.block is None
        assert len(original.transactions) == 1
        assert updated.block == 5
        assert len(updated.transactions) == 2

    def test_signed_transaction_hash_matches_signer(self, signed_transaction):
        """A pre-signed transaction hashes to the hash eth_account computed."""
        bundle = BundleRequest().push_transaction(signed_transaction)
        tx = bundle.transactions[0]

        assert tx.kind is TransactionKind.SIGNED
        assert tx.signed is signed_transaction
        assert bundle.transaction_hashes() == [encode_hex(signed_transaction.hash)]

    def test_signed_and_raw_encodings_are_equal(self, signed_transaction):
        raw = bytes(signed_transaction.raw_transaction)

        signed = BundleTransaction.from_signed(signed_transaction)
        plain = BundleTransaction.from_raw(raw)

        assert signed == plain
        assert signed.to_hex() == plain.to_hex() == encode_hex(raw)

    def test_rejects_object_without_raw_encoding(self):
        with pytest.raises(TypeError):
            BundleRequest().push_transaction(object())


# =============================================================================
# VALIDATION
# =============================================================================

class TestBundleValidation:
    """Test suite for pre-flight parameter checks."""

    def test_submission_requires_transactions(self):
        with pytest.raises(ParameterError):
            BundleRequest().set_block(1).validate_for_submission()

    def test_submission_requires_target_block(self):
        with pytest.raises(ParameterError):
            BundleRequest().push_transaction(b"\x01").validate_for_submission()

    def test_submission_rejects_lone_min_timestamp(self):
        bundle = BundleRequest().push_transaction(b"\x01").set_block(1).set_min_timestamp(10)

        with pytest.raises(ParameterError):
            bundle.validate_for_submission()

    def test_submission_rejects_lone_max_timestamp(self):
        bundle = BundleRequest().push_transaction(b"\x01").set_block(1).set_max_timestamp(10)

        with pytest.raises(ParameterError):
            bundle.validate_for_submission()

    def test_submission_accepts_complete_bundle(self):
        bundle = (
            BundleRequest()
            .push_transaction(b"\x01")
            .set_block(1)
            .set_min_timestamp(10)
            .set_max_timestamp(20)
        )

        bundle.validate_for_submission()

    @pytest.mark.parametrize("bundle", [
        BundleRequest().set_simulation_block(1).set_simulation_timestamp(0),
        BundleRequest().set_block(2).set_simulation_timestamp(0),
        BundleRequest().set_block(2).set_simulation_block(1),
    ])
    def test_simulation_requires_all_parameters(self, bundle):
        with pytest.raises(ParameterError):
            bundle.validate_for_simulation()

    def test_simulation_allows_empty_bundle(self):
        BundleRequest().set_block(2).set_simulation_block(1).set_simulation_timestamp(0).validate_for_simulation()


# =============================================================================
# SIMULATION RESULTS
# =============================================================================

class TestSimulationResults:
    """Test suite for decoding eth_callBundle results."""

    def test_simulated_bundle_decodes(self, simulated_bundle_payload):
        bundle = SimulatedBundle.from_dict(simulated_bundle_payload)

        assert bundle.hash == BUNDLE_HASH
        assert bundle.coinbase_diff == 20000000000126000
        assert bundle.coinbase_tip == 20000000000000000
        assert bundle.gas_price == 476190476193
        assert bundle.gas_used == 42000
        assert bundle.gas_fees == 126000
        assert bundle.simulation_block == 5221585
        assert len(bundle.transactions) == 3

    def test_simulated_transactions_decode(self, simulated_bundle_payload):
        first, second, third = SimulatedBundle.from_dict(simulated_bundle_payload).transactions

        assert first.error == "execution reverted"
        assert first.value == b""
        assert first.gas_used == 21000
        assert first.from_address.lower() == "0x02a727155aef8609c9f7f2179b2a1f560b39f5a0"
        assert is_checksum_address(first.from_address)

        assert second.error is None
        assert second.value == b"\x01"
        assert second.to_address.lower() == "0x73625f59cadc5009cb458b751b3e7b6b48c06f2c"

        # "0x" marks contract creation
        assert third.to_address is None

    def test_effective_gas_price(self, simulated_bundle_payload):
        bundle = SimulatedBundle.from_dict(simulated_bundle_payload)

        assert bundle.effective_gas_price() == 476190476193
        assert bundle.transactions[0].effective_gas_price() == 476190476193

    def test_effective_gas_price_without_gas(self, simulated_bundle_payload):
        payload = dict(simulated_bundle_payload, totalGasUsed="0x0", results=[])

        assert SimulatedBundle.from_dict(payload).effective_gas_price() == 0

    def test_simulated_transaction_with_revert_reason(self):
        tx = SimulatedTransaction.from_dict({
            "coinbaseDiff": "0x10",
            "ethSentToCoinbase": 0,
            "fromAddress": "0x02a727155aef8609c9f7f2179b2a1f560b39f5a0",
            "gasFees": "10",
            "gasPrice": "1",
            "gasUsed": "21000",
            "toAddress": "0x73625f59cadc5009cb458b751b3e7b6b48c06f2c",
            "txHash": "0x669b4704a7d993a946cdd6e2f95233f308ce0c4649d2e04944e8299efcaa098a",
            "error": "execution reverted",
            "revert": "transfer failed",
        })

        assert tx.error == "execution reverted"
        assert tx.revert == "transfer failed"
        assert tx.value is None
        assert tx.coinbase_diff == 16
        assert is_checksum_address(tx.from_address)
        assert is_checksum_address(tx.to_address)

    def test_results_are_required(self, simulated_bundle_payload):
        payload = dict(simulated_bundle_payload)
        del payload["results"]

        with pytest.raises(KeyError):
            SimulatedBundle.from_dict(payload)

    def test_malformed_number_is_rejected(self, simulated_bundle_payload):
        payload = dict(simulated_bundle_payload, coinbaseDiff="not-a-number")

        with pytest.raises(ValueError):
            SimulatedBundle.from_dict(payload)


# =============================================================================
# SUBMISSION AND STATS RECORDS
# =============================================================================

class TestRecords:
    """Test suite for submission acknowledgments and stats."""

    def test_send_response_with_hash(self):
        response = SendBundleResponse.from_result({"bundleHash": BUNDLE_HASH.upper().replace("0X", "0x")})

        assert response.bundle_hash == BUNDLE_HASH

    def test_send_response_without_hash(self):
        assert SendBundleResponse.from_result(None).bundle_hash is None
        assert SendBundleResponse.from_result({}).bundle_hash is None

    def test_send_response_as_plain_string(self):
        assert SendBundleResponse.from_result(BUNDLE_HASH).bundle_hash == BUNDLE_HASH

    def test_bundle_stats_decode(self):
        stats = BundleStats.from_dict({
            "isSimulated": True,
            "isSentToMiners": True,
            "isHighPriority": True,
            "simulatedAt": "2021-08-06T21:36:06.317Z",
            "submittedAt": "2021-08-06T21:36:06.250Z",
            "sentToMinersAt": "2021-08-06T21:36:06.343Z",
        })

        assert stats.is_simulated is True
        assert stats.is_sent_to_miners is True
        assert stats.is_high_priority is True
        assert stats.simulated_at == datetime(2021, 8, 6, 21, 36, 6, 317000, tzinfo=timezone.utc)
        assert stats.submitted_at.isoformat() == "2021-08-06T21:36:06.250000+00:00"
        assert stats.sent_to_miners_at == datetime(2021, 8, 6, 21, 36, 6, 343000, tzinfo=timezone.utc)

    def test_bundle_stats_without_timestamps(self):
        stats = BundleStats.from_dict({
            "isSimulated": False,
            "isSentToMiners": False,
            "isHighPriority": False,
        })

        assert stats.simulated_at is None
        assert stats.submitted_at is None
        assert stats.sent_to_miners_at is None

    def test_bundle_stats_params(self):
        params = GetBundleStatsParams(bundle_hash=BUNDLE_HASH, block_number=255)

        assert params.to_dict() == {"bundleHash": BUNDLE_HASH, "blockNumber": "0xff"}

    def test_user_stats_decode(self):
        stats = UserStats.from_dict({
            "isHighPriority": True,
            "allTimeValidatorPayments": "1280749594841588639",
            "allTimeGasSimulated": "30049470846",
            "last7dValidatorPayments": "1280749594841588639",
            "last7dGasSimulated": "30049470846",
            "last1dValidatorPayments": "142305510537954293",
            "last1dGasSimulated": "2731770076",
        })

        assert stats.is_high_priority is True
        assert stats.all_time_validator_payments == 1280749594841588639
        assert stats.all_time_gas_simulated == 30049470846
        assert stats.last_7d_validator_payments == 1280749594841588639
        assert stats.last_7d_gas_simulated == 30049470846
        assert stats.last_1d_validator_payments == 142305510537954293
        assert stats.last_1d_gas_simulated == 2731770076
