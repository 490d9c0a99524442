"""
api/routes/accounts.py -- Customer banking routes and public information pages.

Routes:
  GET /myAccount, /myBalance, /myLoans, /myCards  -- AUTHENTICATED
  GET /notices, /contact                          -- PUBLIC

The payloads are placeholders for the banking backend; the point of these
routes is the access rules in front of them.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.models import AccountDataResponse, InfoResponse
from auth.dependencies import get_current_principal
from auth.models import CredentialRecord

router = APIRouter()


@router.get("/myAccount", response_model=AccountDataResponse)
async def my_account(principal: CredentialRecord = Depends(get_current_principal)) -> AccountDataResponse:
    return AccountDataResponse(
        email=principal.identifier,
        section="account",
        details={"customer_id": principal.id or 0, "role": principal.role},
    )


@router.get("/myBalance", response_model=AccountDataResponse)
async def my_balance(principal: CredentialRecord = Depends(get_current_principal)) -> AccountDataResponse:
    return AccountDataResponse(email=principal.identifier, section="balance", details={"currency": "USD"})


@router.get("/myLoans", response_model=AccountDataResponse)
async def my_loans(principal: CredentialRecord = Depends(get_current_principal)) -> AccountDataResponse:
    return AccountDataResponse(email=principal.identifier, section="loans")


@router.get("/myCards", response_model=AccountDataResponse)
async def my_cards(principal: CredentialRecord = Depends(get_current_principal)) -> AccountDataResponse:
    return AccountDataResponse(email=principal.identifier, section="cards")


@router.get("/notices", response_model=InfoResponse)
async def notices() -> InfoResponse:
    return InfoResponse(section="notices", items=["Online banking maintenance is scheduled for Sunday 02:00 UTC."])


@router.get("/contact", response_model=InfoResponse)
async def contact() -> InfoResponse:
    return InfoResponse(section="contact", items=["support@eazybank.example", "+1-555-0100"])
