"""Pydantic request/response models for the REST API.

These models define the HTTP request bodies and response shapes the
host application exchanges with the unlock service.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


# ===================================================================
# Session
# ===================================================================


class SessionRequest(BaseModel):
    player: str = Field(min_length=1)


class SessionResponse(BaseModel):
    player: str
    unlocked: int = 0
    total: int = 0
    needs_sync: bool = False


# ===================================================================
# Item queries
# ===================================================================


class ItemStatusResponse(BaseModel):
    iid: int
    available: bool
    missing: List[str] = Field(default_factory=list)


class LockedActionRequest(BaseModel):
    action: str = "use"
    item_name: str = ""


class LockedActionResponse(BaseModel):
    iid: int
    blocked: bool
    lines: List[str] = Field(default_factory=list)


# ===================================================================
# Mutations
# ===================================================================


class UnlockRequest(BaseModel):
    manual: bool = False


class UnlockByNameRequest(BaseModel):
    name: Optional[str] = None
    message: Optional[str] = None
    manual: bool = False


class PageEntry(BaseModel):
    iid: int
    obtained: bool


class ReconcileRequest(BaseModel):
    entries: List[PageEntry] = Field(default_factory=list)


class ResetRequest(BaseModel):
    manual_only: bool = False


class MutationResponse(BaseModel):
    changed: bool
    newly_available: List[str] = Field(default_factory=list)
    notices: List[str] = Field(default_factory=list)


# ===================================================================
# Ledger / config
# ===================================================================


class LedgerEntry(BaseModel):
    iid: int
    name: str


class LedgerResponse(BaseModel):
    player: str
    unlocked: int
    total: int
    manually_added: List[int] = Field(default_factory=list)
    manually_locked: List[int] = Field(default_factory=list)
    items: List[LedgerEntry] = Field(default_factory=list)


class ConfigPatch(BaseModel):
    restrict_grand_exchange: Optional[bool] = None
    restrict_item_usage: Optional[bool] = None
    restrict_bank_withdraw: Optional[bool] = None
    restrict_clue_items: Optional[bool] = None
    free_tabs: Optional[List[str]] = None
    chat_message_on_unlock: Optional[bool] = None
    show_newly_available: Optional[bool] = None
    newly_available_preview: Optional[int] = Field(default=None, ge=0)
