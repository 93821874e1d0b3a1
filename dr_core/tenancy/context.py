# dr_core/tenancy/context.py
"""
Ambient tenant context.

State lives in a ContextVar, so every thread and every asyncio task sees its
own snapshot. The request middleware clears it on entry and on exit; scoped
helpers (``with_tenant`` / ``using_tenant``) always restore the snapshot that
was active before them, including when the wrapped call raises.
"""
from __future__ import annotations

import contextvars
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional, TypeVar
from uuid import UUID

import structlog

from dr_core.common.events import publish
from dr_core.tenancy.exceptions import NoTenantContext, TenantMismatch

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class TenantState:
    tenant_id: Optional[UUID] = None
    tenant: Any = None
    principal: Any = None
    is_global_override: bool = False

    @property
    def is_active(self) -> bool:
        return self.tenant_id is not None and not self.is_global_override


EMPTY_STATE = TenantState()

_state: contextvars.ContextVar[TenantState] = contextvars.ContextVar(
    "dr_core_tenant_state", default=EMPTY_STATE
)


def _principal_id(principal) -> Any:
    return getattr(principal, "pk", None) if principal is not None else None


def _tenant_is_usable(tenant) -> bool:
    from dr_core.tenants.models import TenantStatus

    status = getattr(tenant, "status", TenantStatus.ACTIVE)
    return status == TenantStatus.ACTIVE


class TenantContext:
    """
    Facade over the per-request tenant state.

    Use the module-level ``tenant_context`` instance; it holds no state of its own.
    """

    # -----------------------------
    # transitions
    # -----------------------------
    def set_tenant(self, tenant, principal) -> None:
        if principal is None:
            raise TenantMismatch()
        if not _tenant_is_usable(tenant):
            raise TenantMismatch()

        # imported lazily so tests can monkeypatch the membership check
        from dr_core.tenants.services import membership

        if not membership.is_user_member_of_tenant(user_id=principal.pk, tenant_id=tenant.pk):
            logger.info(
                "tenant_context.membership_denied",
                tenant_id=str(tenant.pk),
                user_id=_principal_id(principal),
            )
            raise TenantMismatch()

        self._replace(TenantState(tenant_id=tenant.pk, tenant=tenant, principal=principal))
        logger.debug(
            "tenant_context.set",
            tenant_id=str(tenant.pk),
            tenant_code=getattr(tenant, "code", None),
            user_id=_principal_id(principal),
        )

    def set_global_override(self, principal) -> None:
        self._replace(TenantState(principal=principal, is_global_override=True))
        logger.warning("tenant_context.global_override", user_id=_principal_id(principal))

    def clear(self) -> None:
        self._replace(EMPTY_STATE)

    def snapshot(self) -> TenantState:
        return _state.get()

    def restore(self, state: TenantState) -> None:
        self._replace(state)

    def _replace(self, state: TenantState) -> None:
        previous = _state.get()
        _state.set(state)
        if previous != state:
            publish(
                "tenant_context.changed",
                {
                    "tenant_id": str(state.tenant_id) if state.tenant_id else None,
                    "is_global_override": state.is_global_override,
                },
            )

    # -----------------------------
    # scoped execution
    # -----------------------------
    @contextmanager
    def using_tenant(self, tenant, principal) -> Iterator[TenantState]:
        previous = self.snapshot()
        try:
            self.set_tenant(tenant, principal)
            yield self.snapshot()
        finally:
            self.restore(previous)

    @contextmanager
    def using_global_override(self, principal) -> Iterator[TenantState]:
        previous = self.snapshot()
        try:
            self.set_global_override(principal)
            yield self.snapshot()
        finally:
            self.restore(previous)

    def with_tenant(self, tenant, principal, fn: Callable[..., T], *args, **kwargs) -> T:
        with self.using_tenant(tenant, principal):
            return fn(*args, **kwargs)

    def with_global_override(self, principal, fn: Callable[..., T], *args, **kwargs) -> T:
        with self.using_global_override(principal):
            return fn(*args, **kwargs)

    # -----------------------------
    # queries
    # -----------------------------
    def is_active(self) -> bool:
        return _state.get().is_active

    def is_global_override(self) -> bool:
        return _state.get().is_global_override

    def tenant_id(self) -> Optional[UUID]:
        return _state.get().tenant_id

    def tenant(self):
        return _state.get().tenant

    def principal(self):
        return _state.get().principal

    def require_tenant(self):
        state = _state.get()
        if not state.is_active:
            raise NoTenantContext()
        return state.tenant

    def cache_tag(self) -> str:
        state = _state.get()
        if not state.is_active:
            raise NoTenantContext()
        return tenant_cache_tag(state.tenant_id)

    def cache_tags(self) -> list[str]:
        state = _state.get()
        if not state.is_active:
            raise NoTenantContext()
        tags = [tenant_cache_tag(state.tenant_id)]
        code = getattr(state.tenant, "code", None)
        if code:
            tags.append(f"tenant-code:{code}")
        return tags


def tenant_cache_tag(tenant_id) -> str:
    return f"tenant:{tenant_id}"


tenant_context = TenantContext()
