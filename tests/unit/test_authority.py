"""
test_authority.py - Unit tests for authority collaborators and their use by the Ledger
"""

import pytest
from decimal import Decimal

from stakeledger import (
    Authority, TrustAllAuthority, SignatureAuthority, Unauthorized, Ledger,
)
from conftest import T0


class TestTrustAllAuthority:

    def test_everyone_is_authorized(self):
        authority = TrustAllAuthority()
        assert isinstance(authority, Authority)
        assert authority.has_auth("anyone")
        assert authority.require_auth("anyone") is None
        assert authority.has_shared_payer("a", "b")


class TestSignatureAuthority:

    def test_nobody_signed_outside_block(self, authority):
        assert isinstance(authority, Authority)
        assert not authority.has_auth("alice")
        with pytest.raises(Unauthorized, match="missing authority of alice"):
            authority.require_auth("alice")

    def test_signed_by_scopes_signers(self, authority):
        with authority.signed_by("alice", "bob"):
            assert authority.signers == frozenset({"alice", "bob"})
            authority.require_auth("bob")
        assert authority.signers == frozenset()

    def test_nested_blocks_restore_previous(self, authority):
        with authority.signed_by("alice"):
            with authority.signed_by("bob"):
                assert not authority.has_auth("alice")
            assert authority.has_auth("alice")

    def test_signers_restored_after_exception(self, authority):
        with pytest.raises(RuntimeError):
            with authority.signed_by("alice"):
                raise RuntimeError("boom")
        assert not authority.has_auth("alice")

    def test_shared_payer_needs_both_grants(self, authority):
        authority.grant_payer("alice", "agent")
        with authority.signed_by("agent"):
            assert not authority.has_shared_payer("alice", "bob")
            authority.grant_payer("bob", "agent")
            assert authority.has_shared_payer("alice", "bob")
        assert not authority.has_shared_payer("alice", "bob")

    def test_revoke_payer(self, authority):
        authority.grant_payer("alice", "agent")
        authority.grant_payer("bob", "agent")
        authority.revoke_payer("alice", "agent")
        with authority.signed_by("agent"):
            assert not authority.has_shared_payer("alice", "bob")


class TestLedgerAuthorization:
    """Actions consult the authority before doing anything."""

    def test_create_requires_contract_account(self, authority):
        ledger = Ledger("boatwingio", T0, verbose=False, authority=authority)
        ledger.register_account("issuer")
        with authority.signed_by("issuer"):
            with pytest.raises(Unauthorized):
                ledger.create_asset("issuer", "X", Decimal("10"))
        assert ledger.list_assets() == []

    def test_issue_requires_issuer(self, signed_ledger, authority):
        with authority.signed_by("alice"):
            with pytest.raises(Unauthorized):
                signed_ledger.issue("issuer", "X", Decimal("1"))
        assert signed_ledger.get_supply("X") == Decimal("500")

    def test_config_requires_issuer(self, signed_ledger, authority):
        with authority.signed_by("alice"):
            with pytest.raises(Unauthorized):
                signed_ledger.set_unlock_delay("X", 0)
            with pytest.raises(Unauthorized):
                signed_ledger.set_transfer_fee("X", 1, "alice")

    def test_lock_requires_holder(self, signed_ledger, authority):
        with authority.signed_by("bob"):
            with pytest.raises(Unauthorized):
                signed_ledger.lock("alice", "X", Decimal("1"))
        assert signed_ledger.get_locked("alice", "X") == Decimal("0")

    def test_transfer_requires_sender(self, signed_ledger, authority):
        with authority.signed_by("bob"):
            with pytest.raises(Unauthorized):
                signed_ledger.transfer("alice", "bob", "X", Decimal("1"))

    def test_transfer_by_shared_payer(self, signed_ledger, authority):
        authority.grant_payer("alice", "agent")
        authority.grant_payer("bob", "agent")
        with authority.signed_by("agent"):
            signed_ledger.transfer("alice", "bob", "X", Decimal("10"))
        assert signed_ledger.get_balance("bob", "X") == Decimal("10")
        assert signed_ledger.get_record("bob", "X").storage_payer == "alice"

    def test_recipient_pays_when_it_signs(self, signed_ledger, authority):
        with authority.signed_by("alice", "bob"):
            signed_ledger.transfer("alice", "bob", "X", Decimal("10"))
        assert signed_ledger.get_record("bob", "X").storage_payer == "bob"

    def test_open_requires_payer(self, signed_ledger, authority):
        with authority.signed_by("bob"):
            with pytest.raises(Unauthorized):
                signed_ledger.open("bob", "X", "alice")
            signed_ledger.open("bob", "X", "bob")
        assert signed_ledger.get_record("bob", "X").storage_payer == "bob"

    def test_claim_cycle_requires_holder(self, signed_ledger, authority):
        with authority.signed_by("alice"):
            signed_ledger.lock("alice", "X", Decimal("50"))
            signed_ledger.request_unlock("alice", "X", Decimal("50"))
        signed_ledger.advance_by(signed_ledger.get_asset("X").unlock_delay)
        with authority.signed_by("bob"):
            with pytest.raises(Unauthorized):
                signed_ledger.claim("alice", "X")
            with pytest.raises(Unauthorized):
                signed_ledger.cancel_unlock("alice", "X")
        with authority.signed_by("alice"):
            signed_ledger.claim("alice", "X")
        assert signed_ledger.get_locked("alice", "X") == Decimal("0")
