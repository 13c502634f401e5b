"""
vigil.api.routes.anticheat — Anti-cheat endpoints
==================================================

Bot-facing routes (any valid service token):
    - POST /anticheat/commands                 record a command execution
    - POST /anticheat/violations               record a rate-limit violation
    - GET  /anticheat/users/{id}/timing        timing analysis
    - GET  /anticheat/users/{id}/behavior      behavioral score
    - GET  /anticheat/users/{id}/enforcement   enforcement action
    - GET  /anticheat/users/{id}/trust         current trust score

Moderator routes (admin token):
    - GET  /anticheat/users/{id}/suspicion     full score breakdown
    - POST /anticheat/users/{id}/trust         apply a trust delta
    - GET  /anticheat/flags                    open suspicion flags
    - POST /anticheat/flags/{id}/resolve       resolve a flag
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from vigil.api.deps import AdminDep, ClientDep, ServiceDep

router = APIRouter(prefix="/anticheat", tags=["anticheat"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class CommandIn(BaseModel):
    user_id: int
    guild_id: str
    command_name: str
    success: bool = True
    response_time_ms: int | None = None
    metadata: dict[str, Any] | None = None


class CommandRecorded(BaseModel):
    recorded: bool
    event_id: int


class ViolationIn(BaseModel):
    user_id: int
    guild_id: str
    command_name: str
    violation_type: str


class ViolationRecorded(BaseModel):
    recorded: bool
    violation_id: int


class TimingOut(BaseModel):
    has_timing_pattern: bool
    cv: float
    suspicion_level: str
    cooldown_snipe_rate: float
    has_cooldown_snipping: bool
    has_unnatural_consistency: bool
    reason: str
    command_count: int


class BehaviorOut(BaseModel):
    score: int
    has_natural_breaks: bool
    has_repetitive_sequences: bool
    social_ratio: float
    reasons: list[str]


class BreakdownOut(BaseModel):
    timing_score: int
    behavioral_score: int
    social_score: int
    account_score: int
    rate_limit_score: int


class SuspicionOut(BaseModel):
    total_score: int
    breakdown: BreakdownOut
    recommendation: str
    reasons: list[str]
    flag_id: int | None = None


class EnforcementOut(BaseModel):
    action: str
    message: str | None = None
    rate_limit_multiplier: float | None = None
    captcha_type: str | None = None
    restrict_duration_ms: int | None = None
    suspicion_score: int
    trust_score: int


class TrustOut(BaseModel):
    user_id: int
    guild_id: str
    score: int


class TrustDeltaIn(BaseModel):
    guild_id: str
    delta: int
    reason: str


class TrustDeltaOut(BaseModel):
    updated: bool
    old_score: int
    new_score: int


class FlagOut(BaseModel):
    id: int
    user_id: int
    guild_id: str
    total_score: int
    recommendation: str
    reason: str | None
    detected_at: str
    resolved: bool
    resolution_notes: str | None = None


class ResolveIn(BaseModel):
    notes: str = Field(..., max_length=2000)


def _flag_out(row) -> FlagOut:
    return FlagOut(
        id=row.id,
        user_id=row.user_id,
        guild_id=row.guild_id,
        total_score=row.total_score,
        recommendation=row.recommendation,
        reason=row.reason,
        detected_at=row.detected_at.isoformat(),
        resolved=row.resolved,
        resolution_notes=row.resolution_notes,
    )


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------
@router.post("/commands", response_model=CommandRecorded, status_code=201)
async def record_command(
    client: ClientDep,
    body: CommandIn,
    service: ServiceDep,
):
    result = await service.record_command_execution(
        body.user_id,
        body.guild_id,
        body.command_name,
        success=body.success,
        response_time_ms=body.response_time_ms,
        metadata=body.metadata,
    )
    return CommandRecorded(recorded=result.recorded, event_id=result.event_id)


@router.post("/violations", response_model=ViolationRecorded, status_code=201)
async def record_violation(
    client: ClientDep,
    body: ViolationIn,
    service: ServiceDep,
):
    violation_id = await service.record_rate_limit_violation(
        body.user_id, body.guild_id, body.command_name, body.violation_type
    )
    return ViolationRecorded(recorded=True, violation_id=violation_id)


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------
@router.get("/users/{user_id}/timing", response_model=TimingOut)
async def get_timing(
    client: ClientDep,
    user_id: int,
    service: ServiceDep,
):
    report = await service.analyze_timing_patterns(user_id)
    return TimingOut(
        has_timing_pattern=report.has_timing_pattern,
        cv=report.cv,
        suspicion_level=report.level.value,
        cooldown_snipe_rate=report.cooldown_snipe_rate,
        has_cooldown_snipping=report.has_cooldown_snipping,
        has_unnatural_consistency=report.has_unnatural_consistency,
        reason=report.reason,
        command_count=report.command_count,
    )


@router.get("/users/{user_id}/behavior", response_model=BehaviorOut)
async def get_behavior(
    client: ClientDep,
    user_id: int,
    service: ServiceDep,
    guild_id: str = Query(...),
):
    result = await service.calculate_behavioral_score(user_id, guild_id)
    return BehaviorOut(
        score=result.score,
        has_natural_breaks=result.has_natural_breaks,
        has_repetitive_sequences=result.has_repetitive_sequences,
        social_ratio=result.social_ratio,
        reasons=result.reasons,
    )


@router.get("/users/{user_id}/suspicion", response_model=SuspicionOut)
async def get_suspicion(
    admin: AdminDep,
    user_id: int,
    service: ServiceDep,
    guild_id: str = Query(...),
):
    report = await service.calculate_suspicion_score(user_id, guild_id)
    scores = report.breakdown.to_dict()
    total = scores.pop("total_score")
    return SuspicionOut(
        total_score=total,
        breakdown=BreakdownOut(**scores),
        recommendation=report.recommendation.value,
        reasons=report.reasons,
        flag_id=report.flag_id,
    )


@router.get(
    "/users/{user_id}/enforcement",
    response_model=EnforcementOut,
    response_model_exclude_none=True,
)
async def get_enforcement(
    client: ClientDep,
    user_id: int,
    service: ServiceDep,
    guild_id: str = Query(...),
):
    report = await service.get_enforcement_action(user_id, guild_id)
    return EnforcementOut(
        **report.action.to_dict(),
        suspicion_score=report.suspicion_score,
        trust_score=report.trust_score,
    )


# ---------------------------------------------------------------------------
# Trust
# ---------------------------------------------------------------------------
@router.get("/users/{user_id}/trust", response_model=TrustOut)
async def get_trust(
    client: ClientDep,
    user_id: int,
    service: ServiceDep,
    guild_id: str = Query(...),
):
    row = await service.get_trust_score(user_id, guild_id)
    return TrustOut(user_id=row.user_id, guild_id=row.guild_id, score=row.score)


@router.post("/users/{user_id}/trust", response_model=TrustDeltaOut)
async def update_trust(
    admin: AdminDep,
    user_id: int,
    body: TrustDeltaIn,
    service: ServiceDep,
):
    result = await service.update_trust_score(
        user_id, body.guild_id, body.delta, body.reason
    )
    return TrustDeltaOut(
        updated=True, old_score=result.old_score, new_score=result.new_score
    )


# ---------------------------------------------------------------------------
# Flags
# ---------------------------------------------------------------------------
@router.get("/flags", response_model=list[FlagOut])
async def list_flags(
    admin: AdminDep,
    service: ServiceDep,
    guild_id: str = Query(...),
    limit: int = Query(50, ge=1, le=200),
):
    rows = await service.list_open_flags(guild_id, limit=limit)
    return [_flag_out(r) for r in rows]


@router.post("/flags/{flag_id}/resolve", response_model=FlagOut)
async def resolve_flag(
    admin: AdminDep,
    flag_id: int,
    body: ResolveIn,
    service: ServiceDep,
):
    row = await service.resolve_flag(flag_id, body.notes)
    return _flag_out(row)
