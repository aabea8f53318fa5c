"""Tests for canispect.core.principal — textual codec and sentinels."""

from __future__ import annotations

import pytest
from pydantic import BaseModel

from canispect.core.principal import ANONYMOUS_PRINCIPAL, Principal, PrincipalError
from canispect.session.identity import Ed25519Identity


class TestPrincipalText:
    def test_anonymous_sentinel_text(self):
        assert Principal.anonymous().to_text() == "2vxsx-fae"
        assert Principal.from_text("2vxsx-fae").is_anonymous

    def test_management_canister_text(self):
        assert Principal.management_canister().to_text() == "aaaaa-aa"

    def test_canister_id_decodes_to_raw_bytes(self):
        ledger = Principal.from_text("ryjl3-tyaaa-aaaaa-aaaba-cai")
        assert ledger.raw == bytes([0, 0, 0, 0, 0, 0, 0, 2, 1, 1])

    def test_roundtrip_arbitrary_bytes(self):
        p = Principal(bytes(range(29)))
        assert Principal.from_text(p.to_text()) == p

    def test_text_is_dash_grouped_lowercase(self):
        text = Principal(b"\xff" * 12).to_text()
        groups = text.split("-")
        assert all(len(g) == 5 for g in groups[:-1])
        assert 0 < len(groups[-1]) <= 5
        assert text == text.lower()

    def test_bad_checksum_rejected(self):
        text = Principal(bytes(range(10))).to_text()
        tampered = ("b" if text[0] != "b" else "c") + text[1:]
        with pytest.raises(PrincipalError):
            Principal.from_text(tampered)

    def test_uppercase_is_not_canonical(self):
        with pytest.raises(PrincipalError):
            Principal.from_text("2VXSX-FAE")

    def test_garbage_rejected(self):
        with pytest.raises(PrincipalError):
            Principal.from_text("not a principal!")

    def test_too_long_rejected(self):
        with pytest.raises(PrincipalError):
            Principal(b"\x00" * 30)


class TestSelfAuthenticating:
    def test_ed25519_identity_principal(self):
        identity = Ed25519Identity.generate()
        p = identity.principal
        assert len(p.raw) == 29
        assert p.raw[-1] == 0x02
        assert not p.is_anonymous
        assert p == Principal.self_authenticating(identity.public_key_der)

    def test_pem_roundtrip_keeps_principal(self):
        identity = Ed25519Identity.generate()
        restored = Ed25519Identity.from_pem(identity.to_pem())
        assert restored.principal == identity.principal


class TestPydanticIntegration:
    class _Model(BaseModel):
        owner: Principal
        canister: Principal | None = None

    def test_validates_from_text(self):
        m = self._Model(owner="2vxsx-fae")
        assert m.owner is not None and m.owner == ANONYMOUS_PRINCIPAL

    def test_serializes_to_text(self):
        m = self._Model(owner=ANONYMOUS_PRINCIPAL)
        assert m.model_dump(mode="json") == {"owner": "2vxsx-fae", "canister": None}

    def test_invalid_text_is_validation_error(self):
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            self._Model(owner="zzzzz")
