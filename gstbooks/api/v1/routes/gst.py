# gstbooks/api/v1/routes/gst.py
"""
V1 API endpoints for GST credentials, GSTR-2A reconciliation and return summaries.

Flow for a new credential:
    POST /gst/credentials                      -> PENDING
    POST /gst/credentials/{id}/otp             -> transaction_id
    POST /gst/credentials/{id}/authenticate    -> AUTHENTICATED
    POST /gst/credentials/{id}/reconcile
    GET  /gst/credentials/{id}/returns/{gstr1|gstr2|gstr3b}
"""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from gstbooks.api.v1.deps import (
    get_orchestrator,
    get_organization_id,
    get_returns_service,
    get_workflow,
)
from gstbooks.api.v1.envelope import ok
from gstbooks.api.v1.schemas.gst import (
    AuthenticateRequest,
    CredentialCreateRequest,
    CredentialResponse,
    CredentialUpdateRequest,
    OtpResponse,
    PeriodOptionsResponse,
    ReconcileRequest,
    SelectActiveRequest,
)
from gstbooks.domain.models.gst import GSTCredential
from gstbooks.domain.services.gst_credential import CredentialHealth, GSTCredentialWorkflow
from gstbooks.domain.services.gst_reconciliation import ReconciliationOrchestrator, format_summary
from gstbooks.domain.services.gst_returns import GSTReturnsService
from gstbooks.domain.services.return_periods import recent_return_periods, selectable_financial_years

logger = logging.getLogger("api.v1.gst")

router = APIRouter(prefix="/gst", tags=["GST"])


# ============================================================
# Helpers
# ============================================================

def _to_credential_response(
    credential: GSTCredential,
    health: CredentialHealth,
    active_id: str | None = None,
) -> dict:
    return CredentialResponse(
        id=credential.id,
        gstin=credential.gstin,
        email=credential.email,
        state_code=credential.state_code,
        ip_address=credential.ip_address,
        auth_status=credential.auth_status.value,
        token_expiry=credential.token_expiry.isoformat() if credential.token_expiry else None,
        is_usable=health.is_usable,
        needs_refresh=health.needs_refresh,
        next_action=health.next_action,
        is_active=active_id is not None and credential.id == active_id,
    ).model_dump()


async def _load_credential(
    workflow: GSTCredentialWorkflow, credential_id: str, organization_id: str,
) -> GSTCredential:
    credential = await workflow.get(credential_id)
    if credential.organization_id and credential.organization_id != organization_id:
        raise HTTPException(status_code=404, detail="GST credential not found")
    return credential


# ============================================================
# Credentials
# ============================================================

@router.get("/credentials", summary="List GST credentials")
async def list_credentials(
    organization_id: str = Depends(get_organization_id),
    workflow: GSTCredentialWorkflow = Depends(get_workflow),
):
    credentials = await workflow.list_credentials(organization_id)
    active = await workflow.get_active(organization_id)
    active_id = active.id if active else None
    items = []
    for credential in credentials:
        items.append(_to_credential_response(credential, await workflow.health(credential), active_id))
    return ok(data=items)


@router.post("/credentials", summary="Register a GST credential")
async def create_credential(
    body: CredentialCreateRequest,
    organization_id: str = Depends(get_organization_id),
    workflow: GSTCredentialWorkflow = Depends(get_workflow),
):
    credential = await workflow.create(
        organization_id, body.gstin, body.email, body.state_code, body.ip_address,
    )
    return ok(
        data=_to_credential_response(credential, workflow.evaluate(credential)),
        message="GST credential created. Request an OTP to authenticate.",
    )


@router.get("/credentials/active", summary="Get the active GST credential")
async def get_active_credential(
    organization_id: str = Depends(get_organization_id),
    workflow: GSTCredentialWorkflow = Depends(get_workflow),
):
    credential = await workflow.get_active(organization_id)
    if credential is None:
        return ok(data=None, message="No GST credential registered")
    return ok(data=_to_credential_response(credential, await workflow.health(credential), credential.id))


@router.put("/credentials/active", summary="Select the active GST credential")
async def select_active_credential(
    body: SelectActiveRequest,
    organization_id: str = Depends(get_organization_id),
    workflow: GSTCredentialWorkflow = Depends(get_workflow),
):
    credential = await workflow.select_active(organization_id, body.credential_id)
    return ok(data=_to_credential_response(credential, await workflow.health(credential), credential.id))


@router.patch("/credentials/{credential_id}", summary="Update a GST credential")
async def update_credential(
    credential_id: str,
    body: CredentialUpdateRequest,
    organization_id: str = Depends(get_organization_id),
    workflow: GSTCredentialWorkflow = Depends(get_workflow),
):
    await _load_credential(workflow, credential_id, organization_id)
    credential = await workflow.update(
        credential_id, email=body.email, state_code=body.state_code, ip_address=body.ip_address,
    )
    return ok(data=_to_credential_response(credential, await workflow.health(credential)))


@router.delete("/credentials/{credential_id}", summary="Delete a GST credential")
async def delete_credential(
    credential_id: str,
    organization_id: str = Depends(get_organization_id),
    workflow: GSTCredentialWorkflow = Depends(get_workflow),
):
    await _load_credential(workflow, credential_id, organization_id)
    await workflow.delete(credential_id, organization_id)
    return ok(message="GST credential deleted")


@router.get("/credentials/{credential_id}/health", summary="Usability of a GST credential")
async def credential_health(
    credential_id: str,
    refresh: bool = False,
    organization_id: str = Depends(get_organization_id),
    workflow: GSTCredentialWorkflow = Depends(get_workflow),
):
    """Local reading of the token; ``refresh=true`` also asks the backend."""
    credential = await _load_credential(workflow, credential_id, organization_id)
    data = (await workflow.health(credential)).to_dict()
    if refresh:
        snap = await workflow.refresh_status(credential_id)
        data["server"] = snap.model_dump(mode="json")
        if not snap.authenticated:
            data["is_usable"] = False
            data["needs_refresh"] = False
            if data["next_action"] in ("reconcile", "refresh"):
                data["next_action"] = "request_otp"
    return ok(data=data)


# ============================================================
# OTP authentication
# ============================================================

@router.post("/credentials/{credential_id}/otp", summary="Request an OTP")
async def request_otp(
    credential_id: str,
    organization_id: str = Depends(get_organization_id),
    workflow: GSTCredentialWorkflow = Depends(get_workflow),
):
    await _load_credential(workflow, credential_id, organization_id)
    txn = await workflow.request_otp(credential_id)
    return ok(data=OtpResponse(transaction_id=txn).model_dump(), message="OTP sent")


@router.post("/credentials/{credential_id}/authenticate", summary="Verify the OTP")
async def authenticate(
    credential_id: str,
    body: AuthenticateRequest,
    organization_id: str = Depends(get_organization_id),
    workflow: GSTCredentialWorkflow = Depends(get_workflow),
):
    current = await _load_credential(workflow, credential_id, organization_id)
    credential = await workflow.authenticate(
        credential_id, body.otp, body.transaction_id, previous_status=current.auth_status,
    )
    health = await workflow.health(credential)
    message = "GST authentication successful" if health.is_usable else "GST authentication did not complete"
    return ok(data=_to_credential_response(credential, health), message=message)


# ============================================================
# Reconciliation
# ============================================================

@router.post("/credentials/{credential_id}/reconcile", summary="Reconcile books with GSTR-2A")
async def reconcile(
    credential_id: str,
    body: ReconcileRequest,
    organization_id: str = Depends(get_organization_id),
    workflow: GSTCredentialWorkflow = Depends(get_workflow),
    orchestrator: ReconciliationOrchestrator = Depends(get_orchestrator),
):
    credential = await _load_credential(workflow, credential_id, organization_id)
    result = await orchestrator.reconcile(
        credential,
        body.return_period,
        body.financial_year,
        [*body.documents, *body.books_entries],
        fetch_remote_return=body.fetch_remote_return,
    )
    return ok(
        data={
            "reconciliation": result.model_dump(mode="json"),
            "summary": format_summary(result, body.return_period),
        },
        message="Nothing to reconcile" if result.is_empty else "Reconciliation complete",
    )


@router.get("/credentials/{credential_id}/returns/{return_type}", summary="GSTR-1, GSTR-2 or GSTR-3B summary")
async def get_return(
    credential_id: str,
    return_type: str,
    return_period: str = Query(...),
    financial_year: str = Query(...),
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    organization_id: str = Depends(get_organization_id),
    workflow: GSTCredentialWorkflow = Depends(get_workflow),
    service: GSTReturnsService = Depends(get_returns_service),
):
    """Network summary by default; a books-format report when both dates are given."""
    credential = await _load_credential(workflow, credential_id, organization_id)
    data = await service.fetch(credential, return_type, return_period, financial_year, from_date, to_date)
    return ok(data=data)


@router.get("/periods", summary="Selectable return periods and financial years")
async def period_options():
    today = date.today()
    return ok(data=PeriodOptionsResponse(
        return_periods=recent_return_periods(today),
        financial_years=selectable_financial_years(today),
    ).model_dump())
