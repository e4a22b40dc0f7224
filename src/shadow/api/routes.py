"""REST API endpoints for the Shadow pool service."""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shadow.config import ShadowSettings, get_settings
from shadow.core.identity import IdentityGroup
from shadow.core.pool import ShadowPool
from shadow.crypto.field import hex_to_field
from shadow.crypto.stealth import StealthPayment
from shadow.exceptions import (
    CapacityExceededError,
    InputValidationError,
    NullifierReuseError,
    ProofError,
    ShadowError,
    StaleRootError,
    StealthError,
    VerificationError,
)
from shadow.models.schemas import (
    AnnouncementListResponse,
    AnnouncementRequest,
    AnnouncementResponse,
    DepositRequest,
    DepositResponse,
    HealthResponse,
    IdentityRegisterRequest,
    IdentityRegisterResponse,
    MerkleProofResponse,
    PoolStateResponse,
    SignalRequest,
    SignalResponse,
    WithdrawalRequest,
    WithdrawalResponse,
)
from shadow.proving.backend import ProofVerifier, SnarkjsVerifier
from shadow.proving.proof import Groth16Proof, SignalPackage, WithdrawalPackage
from shadow.storage import DatabaseManager, get_db_manager

logger = logging.getLogger(__name__)

# Most specific first; the first isinstance match wins
ERROR_STATUS = (
    (StaleRootError, 409),
    (NullifierReuseError, 409),
    (CapacityExceededError, 507),
    (InputValidationError, 400),
    (ProofError, 400),
    (StealthError, 400),
    (VerificationError, 503),
)


def status_for(exc: ShadowError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


# Dependencies
def get_pool(request: Request) -> ShadowPool:
    return request.app.state.pool


def get_identity_group(request: Request) -> IdentityGroup:
    return request.app.state.identity_group


def get_db(request: Request) -> DatabaseManager:
    return request.app.state.db


def create_app(
    settings: Optional[ShadowSettings] = None,
    verifier: Optional[ProofVerifier] = None,
    db: Optional[DatabaseManager] = None,
) -> FastAPI:
    """
    Build the API application.

    The pool, identity group and database are created on startup, so
    importing this module has no side effects.

    Args:
        settings: Defaults to get_settings()
        verifier: Defaults to SnarkjsVerifier over settings.circuits_path
        db: Defaults to the global DatabaseManager for settings.database_url
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(
            level=settings.log_level.upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        database = db or get_db_manager(settings.database_url)
        database.create_tables()
        proof_verifier = verifier or SnarkjsVerifier(
            settings.circuits_path, binary=settings.snarkjs_binary, timeout=settings.proof_timeout
        )

        app.state.settings = settings
        app.state.db = database
        app.state.pool = ShadowPool(
            denomination=settings.denomination,
            verifier=proof_verifier,
            depth=settings.tree_depth,
            root_history_size=settings.root_history_size,
            db=database,
            pool_id=settings.pool_id,
            max_fee=settings.max_relayer_fee(),
        )
        app.state.identity_group = IdentityGroup(
            verifier=proof_verifier,
            depth=settings.tree_depth,
            root_history_size=settings.root_history_size,
            db=database,
            group_id=settings.identity_group_id,
        )
        logger.info(f"Shadow API ready: pool '{settings.pool_id}', depth {settings.tree_depth}")
        yield

    app = FastAPI(
        title="Shadow Protocol API",
        description="Anonymity pool, identity group and stealth announcement service",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Convert pydantic validation errors (422) to 400
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        error_messages = []
        for error in exc.errors():
            field = " -> ".join(str(loc) for loc in error["loc"])
            error_messages.append(f"{field}: {error['msg']}")
        return JSONResponse(status_code=400, content={"detail": "; ".join(error_messages), "code": "ValidationError"})

    @app.exception_handler(ShadowError)
    async def shadow_exception_handler(request: Request, exc: ShadowError):
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error(f"{request.url.path} failed: {exc}")
        return JSONResponse(status_code=status_code, content={"detail": str(exc), "code": type(exc).__name__})

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:
    """Attach all endpoints to app."""

    # ========================================================================
    # Health & System Endpoints
    # ========================================================================

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check():
        """Check service health and status."""
        return HealthResponse(status="operational")

    @app.get("/state", response_model=PoolStateResponse, tags=["System"])
    async def get_state(pool: ShadowPool = Depends(get_pool)):
        """Get current pool state."""
        return pool.state().to_dict()

    # ========================================================================
    # Pool Endpoints
    # ========================================================================

    @app.post("/deposit", response_model=DepositResponse, tags=["Pool"])
    def deposit(request: DepositRequest, pool: ShadowPool = Depends(get_pool)):
        """
        Append a commitment to the pool.

        - **commitment**: H(secret, nullifier), computed client-side
        """
        return pool.deposit(hex_to_field(request.commitment)).to_dict()

    @app.get("/merkle/proof/{leaf_index}", response_model=MerkleProofResponse, tags=["Pool"])
    def merkle_proof(leaf_index: int, pool: ShadowPool = Depends(get_pool)):
        """Inclusion path for a leaf against the current root."""
        return pool.merkle_proof(leaf_index).to_dict()

    @app.post("/withdraw", response_model=WithdrawalResponse, tags=["Pool"])
    def withdraw(request: WithdrawalRequest, pool: ShadowPool = Depends(get_pool)):
        """
        Submit a withdrawal proof.

        Rejections: 409 for a stale root or spent note, 400 for a bad fee,
        malformed input or an invalid proof.
        """
        package = WithdrawalPackage(
            root=hex_to_field(request.root),
            nullifier_hash=hex_to_field(request.nullifier_hash),
            recipient=request.recipient,
            relayer=request.relayer,
            fee=request.fee,
            proof=Groth16Proof.from_dict(request.proof.model_dump()),
        )
        return pool.withdraw(package).to_dict()

    # ========================================================================
    # Identity Endpoints
    # ========================================================================

    @app.post("/identity/register", response_model=IdentityRegisterResponse, tags=["Identity"])
    def register_identity(request: IdentityRegisterRequest, group: IdentityGroup = Depends(get_identity_group)):
        """Register an identity commitment."""
        return group.register(hex_to_field(request.identity_commitment)).to_dict()

    @app.post("/identity/signal", response_model=SignalResponse, tags=["Identity"])
    def identity_signal(request: SignalRequest, group: IdentityGroup = Depends(get_identity_group)):
        """Submit a humanship proof for one external nullifier."""
        external_nullifier = hex_to_field(request.external_nullifier)
        package = SignalPackage(
            root=hex_to_field(request.root),
            nullifier_hash=hex_to_field(request.nullifier_hash),
            external_nullifier=external_nullifier,
            signal_hash=hex_to_field(request.signal_hash),
            proof=Groth16Proof.from_dict(request.proof.model_dump()),
            signal=request.signal,
        )
        return group.signal(package, external_nullifier).to_dict()

    # ========================================================================
    # Stealth Endpoints
    # ========================================================================

    @app.post("/stealth/announce", response_model=AnnouncementResponse, tags=["Stealth"])
    def announce(request: AnnouncementRequest, db: DatabaseManager = Depends(get_db)):
        """Publish a stealth payment announcement."""
        data = request.model_dump()
        if data["timestamp"] is None:
            data["timestamp"] = int(time.time())
        payment = StealthPayment.from_dict(data)

        session = db.get_session()
        try:
            record = db.add_announcement(
                session,
                stealth_address=payment.stealth_address,
                ephemeral_public_key=payment.ephemeral_public_key,
                view_tag=payment.view_tag,
                timestamp=payment.timestamp,
            )
            return record.to_dict()
        finally:
            session.close()

    @app.get("/stealth/announcements", response_model=AnnouncementListResponse, tags=["Stealth"])
    def list_announcements(
        after_id: int = Query(default=0, ge=0),
        limit: int = Query(default=1000, ge=1, le=10000),
        db: DatabaseManager = Depends(get_db),
    ):
        """Announcements newer than after_id, for receivers to scan."""
        session = db.get_session()
        try:
            records = db.list_announcements(session, after_id=after_id, limit=limit)
            announcements = [AnnouncementResponse(**record.to_dict()) for record in records]
        finally:
            session.close()
        return AnnouncementListResponse(announcements=announcements, count=len(announcements))


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
