from __future__ import annotations
from fastapi import APIRouter, Depends, Response, status
from .contracts import (
    CurrentUser, LoginRequest, MetaPayload, RefreshRequest, RegisterRequest, RequestContext, UWFResponse,
)
from .deps import get_auth_service, get_current_user, get_request_context
from .service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])

# Errors raised below are rendered by errors.register_error_handlers.

@router.post("/register", response_model=UWFResponse, status_code=status.HTTP_201_CREATED)
def register(
    req: RegisterRequest,
    svc: AuthService = Depends(get_auth_service),
    ctx: RequestContext = Depends(get_request_context),
):
    tokens = svc.register(req.email, req.password, name=req.name, ctx=ctx)
    return UWFResponse(ok=True, result=tokens, meta=MetaPayload(request_id=ctx.request_id))

@router.post("/login", response_model=UWFResponse)
def login(
    req: LoginRequest,
    svc: AuthService = Depends(get_auth_service),
    ctx: RequestContext = Depends(get_request_context),
):
    tokens = svc.login(req.email, req.password, ctx=ctx)
    return UWFResponse(ok=True, result=tokens, meta=MetaPayload(request_id=ctx.request_id))

@router.post("/refresh", response_model=UWFResponse)
def refresh(
    req: RefreshRequest,
    svc: AuthService = Depends(get_auth_service),
    ctx: RequestContext = Depends(get_request_context),
):
    tokens = svc.refresh(req.refresh_token, ctx=ctx)
    return UWFResponse(ok=True, result=tokens, meta=MetaPayload(request_id=ctx.request_id))

@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    req: RefreshRequest,
    current_user: CurrentUser = Depends(get_current_user),
    svc: AuthService = Depends(get_auth_service),
    ctx: RequestContext = Depends(get_request_context),
):
    svc.logout(req.refresh_token, ctx=ctx)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.post("/logout-all", status_code=status.HTTP_204_NO_CONTENT)
def logout_all(
    current_user: CurrentUser = Depends(get_current_user),
    svc: AuthService = Depends(get_auth_service),
    ctx: RequestContext = Depends(get_request_context),
):
    svc.logout_all(current_user.id, ctx=ctx)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.get("/profile", response_model=UWFResponse)
def profile(
    current_user: CurrentUser = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
):
    return UWFResponse(ok=True, result=current_user, meta=MetaPayload(request_id=ctx.request_id))
