import logging
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..config import Settings, get_settings
from ..db.utils import dt_iso
from ..errors import FairDrawError
from ..storage.base import DrawStore
from .. import workflows
from .schemas import ComplianceReportRequest, ConductDrawRequest, PublishCommitmentRequest

logger = logging.getLogger(__name__)


def create_app(
    store: Optional[DrawStore] = None, settings: Optional[Settings] = None
) -> FastAPI:
    """Build the draw API around ``store``.

    When ``store`` is omitted a SQL store is created for ``settings.db_url``;
    its tables must already exist (``scripts/init_db.py`` or Alembic).
    """
    settings = settings or get_settings()
    if store is None:
        store = workflows.build_store(database_url=settings.db_url)

    app = FastAPI(title="fairdraw")
    app.state.store = store
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------- Error handling ----------
    @app.exception_handler(FairDrawError)
    async def _fairdraw_error(request: Request, exc: FairDrawError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = sorted(
            {str(err["loc"][-1]) for err in exc.errors() if err.get("loc")}
        )
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "Missing or invalid field(s): " + ", ".join(fields),
            },
        )

    @app.exception_handler(HTTPException)
    async def _http_error(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.detail},
        )

    # ---------- Dependencies ----------
    def get_store(request: Request) -> DrawStore:
        return request.app.state.store

    def require_admin(
        request: Request, x_admin_token: Optional[str] = Header(None)
    ) -> None:
        expected = request.app.state.settings.admin_token
        if expected and x_admin_token != expected:
            raise HTTPException(status_code=403, detail="Operator token required")

    # ---------- Routes ----------
    @app.get("/")
    def read_root():
        return {"message": "fairdraw provably-fair draw service"}

    @app.post("/api/draw-audits")
    def publish_commitment(
        body: PublishCommitmentRequest,
        store: DrawStore = Depends(get_store),
        _: None = Depends(require_admin),
    ):
        commitment = workflows.publish_seed_commitment(
            store,
            body.raffle_id,
            body.draw_scheduled_at,
            settings=app.state.settings,
        )
        return {
            "success": True,
            "message": "Seed commitment published successfully",
            "data": {
                "raffleId": commitment.raffle_id,
                "commitmentHash": commitment.commitment_hash,
                "drawScheduledAt": dt_iso(commitment.scheduled_draw_time),
                "publishedAt": dt_iso(commitment.published_at),
                "note": (
                    "This commitment hash will be used to verify the fairness of the "
                    "draw. The actual seed will be revealed after the draw is complete."
                ),
            },
        }

    @app.get("/api/draw-audits")
    def list_draw_audits(
        raffle_id: Optional[str] = Query(None, alias="raffleId"),
        store: DrawStore = Depends(get_store),
    ):
        audits = workflows.list_public_audits(store, raffle_id)
        return {
            "success": True,
            "count": len(audits),
            "data": audits,
            "transparency": workflows.transparency_block(),
        }

    @app.get("/api/draw-audits/{audit_id}/proof")
    def draw_proof(audit_id: str, store: DrawStore = Depends(get_store)):
        return {"success": True, "data": workflows.get_draw_proof(store, audit_id)}

    @app.get("/api/verify-draw")
    def verify_draw(
        raffle_id: Optional[str] = Query(None, alias="raffleId"),
        audit_id: Optional[str] = Query(None, alias="auditId"),
        store: DrawStore = Depends(get_store),
    ):
        if not raffle_id or not audit_id:
            return JSONResponse(
                status_code=400,
                content={"success": False, "error": "Missing raffleId or auditId parameter"},
            )

        verified, view = workflows.verify_draw(store, raffle_id, audit_id)
        if not verified:
            return {
                "success": False,
                "verified": False,
                "message": "Draw verification failed - results could not be reproduced",
                "data": {"raffleId": raffle_id, "auditId": audit_id},
            }
        return {
            "success": True,
            "verified": True,
            "message": "Draw verification successful",
            "data": {
                "raffleId": raffle_id,
                "auditId": audit_id,
                "drawMethod": view["drawMethod"],
                "timestamp": view["timestamp"],
                "winningTicketNumber": view["winningTicketNumber"],
                "totalTickets": view["totalTickets"],
                "participantCount": view["participantCount"],
                "seedHash": view["seedHash"],
                "isVerified": view["isVerified"],
                "verifiedAt": view["verifiedAt"],
            },
        }

    @app.post("/api/verify-draw")
    def compliance_report(
        body: ComplianceReportRequest, store: DrawStore = Depends(get_store)
    ):
        return {
            "success": True,
            "data": workflows.generate_compliance_report(store, body.raffle_id),
        }

    @app.post("/api/draws")
    def conduct_draw(
        body: ConductDrawRequest,
        store: DrawStore = Depends(get_store),
        _: None = Depends(require_admin),
    ):
        result = workflows.run_draw(
            store, body.raffle_id, body.total_tickets, body.participant_count
        )
        return {
            "success": True,
            "data": {
                "drawId": result.draw_id,
                "raffleId": result.raffle_id,
                "winningTicketNumber": result.winning_ticket_number,
                "method": result.method.value,
                "computedAt": dt_iso(result.computed_at),
            },
        }

    return app
