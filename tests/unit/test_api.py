"""Tests for the REST API."""

import pytest
from fastapi.testclient import TestClient

from conftest import RecordingBackend, RecordingVerifier, StaticVerifier
from shadow.api.routes import create_app, status_for
from shadow.config import ShadowSettings
from shadow.core.client import ShadowClient
from shadow.core.commitment import Commitment
from shadow.core.note import serialize_note
from shadow.crypto.field import field_to_hex, random_field_element
from shadow.crypto.stealth import generate_meta_address, pay, scan
from shadow.exceptions import (
    CapacityExceededError,
    InvalidNoteError,
    InvalidProofError,
    NullifierReuseError,
    ShadowError,
    StaleRootError,
    VerificationError,
)
from shadow.proving.prover import Prover
from shadow.storage import DatabaseManager

API_DEPTH = 10


@pytest.fixture
def api_backend():
    return RecordingBackend()


@pytest.fixture
def api(tmp_path, api_backend):
    """TestClient with its lifespan running against a temporary database."""
    url = f"sqlite:///{tmp_path / 'api.db'}"
    settings = ShadowSettings(tree_depth=API_DEPTH, root_history_size=3, database_url=url, _env_file=None)
    db = DatabaseManager(url)
    app = create_app(settings=settings, verifier=RecordingVerifier(api_backend), db=db)
    with TestClient(app) as client:
        yield client
    db.engine.dispose()


@pytest.fixture
def sdk(api, api_backend):
    """Client-side SDK bound to the app's pool and group."""
    state = api.app.state
    return ShadowClient(state.pool, Prover(api_backend), state.identity_group)


def _deposit(api):
    deposit = Commitment.generate()
    response = api.post("/deposit", json={"commitment": field_to_hex(deposit.commitment)})
    assert response.status_code == 200
    deposit.leaf_index = response.json()["leaf_index"]
    return deposit


class TestSystemEndpoints:
    def test_health(self, api):
        response = api.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "operational"

    def test_state(self, api):
        data = api.get("/state").json()
        assert data["depth"] == API_DEPTH
        assert data["capacity"] == 2**API_DEPTH
        assert data["next_index"] == 0
        assert data["root_history_size"] == 3


class TestPoolEndpoints:
    """Tests for deposit, Merkle path and withdrawal endpoints."""

    def test_deposit(self, api):
        deposit = _deposit(api)
        assert deposit.leaf_index == 0
        assert api.get("/state").json()["num_deposits"] == 1

    def test_deposit_bad_hex(self, api):
        response = api.post("/deposit", json={"commitment": "0x1234"})
        assert response.status_code == 400
        assert response.json()["code"] == "ValidationError"

    def test_deposit_out_of_field(self, api):
        response = api.post("/deposit", json={"commitment": "0x" + "ff" * 32})
        assert response.status_code == 400
        assert response.json()["code"] == "InvalidFieldElementError"

    def test_duplicate_deposit(self, api):
        commitment = field_to_hex(random_field_element())
        api.post("/deposit", json={"commitment": commitment})
        response = api.post("/deposit", json={"commitment": commitment})
        assert response.status_code == 400

    def test_merkle_proof(self, api):
        deposit = _deposit(api)
        data = api.get(f"/merkle/proof/{deposit.leaf_index}").json()
        assert data["leaf"] == field_to_hex(deposit.commitment)
        assert len(data["siblings"]) == API_DEPTH
        assert data["root"] == api.get("/state").json()["root"]

    def test_merkle_proof_missing_leaf(self, api):
        response = api.get("/merkle/proof/5")
        assert response.status_code == 400
        assert response.json()["code"] == "IndexOutOfRangeError"

    def test_withdraw(self, api, sdk, address):
        deposit = _deposit(api)
        recipient = address()
        package = sdk.create_withdrawal(serialize_note(deposit), recipient)
        response = api.post("/withdraw", json=package.to_dict())
        assert response.status_code == 200
        data = response.json()
        assert data["recipient"] == recipient
        assert data["amount"] == api.get("/state").json()["denomination"]

        again = api.post("/withdraw", json=package.to_dict())
        assert again.status_code == 409
        assert again.json()["code"] == "NullifierReuseError"

    def test_withdraw_stale_root(self, api, sdk, address):
        deposit = _deposit(api)
        package = sdk.create_withdrawal(serialize_note(deposit), address())
        for _ in range(3):
            _deposit(api)
        response = api.post("/withdraw", json=package.to_dict())
        assert response.status_code == 409
        assert response.json()["code"] == "StaleRootError"

    def test_withdraw_fee_above_relayer_limit(self, api, sdk, address):
        deposit = _deposit(api)
        limit = api.app.state.pool.max_fee
        package = sdk.create_withdrawal(serialize_note(deposit), address(), relayer=address(), fee=limit + 1)
        response = api.post("/withdraw", json=package.to_dict())
        assert response.status_code == 400

    def test_withdraw_forged_proof(self, api, sdk, address):
        deposit = _deposit(api)
        package = sdk.create_withdrawal(serialize_note(deposit), address())
        data = package.to_dict()
        data["recipient"] = address()
        response = api.post("/withdraw", json=data)
        assert response.status_code == 400
        assert response.json()["code"] == "InvalidProofError"

    def test_withdraw_malformed_proof(self, api, sdk, address):
        deposit = _deposit(api)
        data = sdk.create_withdrawal(serialize_note(deposit), address()).to_dict()
        data["proof"]["pi_a"] = ["x", "y"]
        response = api.post("/withdraw", json=data)
        assert response.status_code == 400

    def test_withdraw_bad_address(self, api, sdk, address):
        deposit = _deposit(api)
        data = sdk.create_withdrawal(serialize_note(deposit), address()).to_dict()
        data["recipient"] = "0" * 40
        response = api.post("/withdraw", json=data)
        assert response.status_code == 400
        assert response.json()["code"] == "InvalidAddressError"


class TestIdentityEndpoints:
    def test_register_and_signal(self, api, sdk):
        identity = sdk.create_identity()
        response = api.post("/identity/register", json={"identity_commitment": field_to_hex(identity.commitment)})
        assert response.status_code == 200
        assert response.json()["leaf_index"] == 0

        package = sdk.prove_signal(identity, 99, "hello")
        first = api.post("/identity/signal", json=package.to_dict())
        assert first.status_code == 200
        assert first.json()["nullifier_hash"] == field_to_hex(identity.nullifier_hash(99))

        second = api.post("/identity/signal", json=package.to_dict())
        assert second.status_code == 409

    def test_signal_text_mismatch(self, api, sdk):
        identity = sdk.create_identity()
        api.post("/identity/register", json={"identity_commitment": field_to_hex(identity.commitment)})
        data = sdk.prove_signal(identity, 99, "hello").to_dict()
        data["signal"] = "goodbye"
        response = api.post("/identity/signal", json=data)
        assert response.status_code == 400


class TestStealthEndpoints:
    """Tests for announcement publishing and listing."""

    def test_announce_and_scan(self, api):
        kit = generate_meta_address()
        payment = pay(kit.meta_address)
        response = api.post("/stealth/announce", json=payment.to_dict())
        assert response.status_code == 200
        assert response.json()["stealth_address"] == payment.stealth_address

        listing = api.get("/stealth/announcements").json()
        assert listing["count"] == 1
        matches = scan(kit, listing["announcements"])
        assert [m.announcement.stealth_address for m in matches] == [payment.stealth_address]

    def test_default_timestamp(self, api):
        data = pay(generate_meta_address().meta_address).to_dict()
        del data["timestamp"]
        response = api.post("/stealth/announce", json=data)
        assert response.json()["timestamp"] > 0

    def test_pagination(self, api):
        kit = generate_meta_address()
        ids = [api.post("/stealth/announce", json=pay(kit.meta_address).to_dict()).json()["id"] for _ in range(3)]
        listing = api.get("/stealth/announcements", params={"after_id": ids[0], "limit": 1}).json()
        assert [a["id"] for a in listing["announcements"]] == [ids[1]]

    def test_bad_announcement(self, api):
        data = pay(generate_meta_address().meta_address).to_dict()
        data["view_tag"] = 300
        assert api.post("/stealth/announce", json=data).status_code == 400

    def test_bad_stealth_address(self, api):
        data = pay(generate_meta_address().meta_address).to_dict()
        data["stealth_address"] = "0" * 40
        response = api.post("/stealth/announce", json=data)
        assert response.status_code == 400
        assert response.json()["code"] == "StealthError"


class TestStatusMapping:
    def test_status_codes(self):
        assert status_for(StaleRootError("x")) == 409
        assert status_for(NullifierReuseError("x")) == 409
        assert status_for(CapacityExceededError("x")) == 507
        assert status_for(InvalidNoteError("x")) == 400
        assert status_for(InvalidProofError("x")) == 400
        assert status_for(VerificationError("x")) == 503
        assert status_for(ShadowError("x")) == 500

    def test_verifier_unavailable(self, tmp_path, address):
        """Test a verifier that cannot run maps to 503."""

        class BrokenVerifier(StaticVerifier):
            def verify(self, circuit_name, public_signals, proof):
                raise VerificationError("verifier offline")

        url = f"sqlite:///{tmp_path / 'broken.db'}"
        settings = ShadowSettings(tree_depth=API_DEPTH, database_url=url, _env_file=None)
        db = DatabaseManager(url)
        backend = RecordingBackend()
        with TestClient(create_app(settings=settings, verifier=BrokenVerifier(), db=db)) as api:
            deposit = _deposit(api)
            sdk = ShadowClient(api.app.state.pool, Prover(backend))
            package = sdk.create_withdrawal(serialize_note(deposit), address())
            response = api.post("/withdraw", json=package.to_dict())
        db.engine.dispose()
        assert response.status_code == 503
