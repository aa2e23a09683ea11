# tests/conftest.py

"""
Pytest configuration and shared fixtures for testing.
"""

import pytest
from datetime import datetime, timezone
from fastapi.testclient import TestClient
from typing import Generator

from main import create_app
from dependencies.auth import (
    CurrentUser,
    get_approval_engine,
    get_context_resolver,
    get_current_user,
    get_repository,
    get_room_transfer_service,
)
from models.approval import CreateApprovalInput, WorkflowActor
from models.context import UserContext
from models.enums import ActorType, ContextType
from services.approval_engine import ApprovalEngine
from services.context_resolver import ContextResolver
from services.room_transfer import RoomTransferService
from fakes import InMemoryRepository, RecordingAuditSink, RecordingNotifier


FIXED_NOW = datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc)


def fixed_clock():
    return FIXED_NOW


# -----------------------------------------------------
# Store
# -----------------------------------------------------
@pytest.fixture
def repo() -> InMemoryRepository:
    """A workspace with one tenant in room 101, an empty room 102 and a full room 103."""
    r = InMemoryRepository()
    r.seed("workspaces", {"id": "ws-1", "name": "Sunrise PG", "owner_user_id": "owner-user", "is_active": True})
    r.seed(
        "rooms",
        {"id": "room-1", "room_number": "101", "property_id": "prop-1", "total_beds": 2, "occupied_beds": 1, "notes": None},
        {"id": "room-2", "room_number": "102", "property_id": "prop-1", "total_beds": 2, "occupied_beds": 0, "notes": None},
        {"id": "room-3", "room_number": "103", "property_id": "prop-2", "total_beds": 1, "occupied_beds": 1, "notes": None},
    )
    r.seed("tenants", {
        "id": "tenant-1",
        "workspace_id": "ws-1",
        "owner_id": "owner-user",
        "user_id": "tenant-user",
        "name": "Raj",
        "email": "raj@example.com",
        "phone": "+911111111111",
        "status": "active",
        "room_id": "room-1",
        "bed_id": "bed-1",
        "property_id": "prop-1",
        "monthly_rent": 8000,
        "notes": None,
        "address": None,
        "addresses": [
            {"line1": "12 Old Street", "city": "Pune", "is_primary": True},
            {"line1": "Office Park", "city": "Pune", "is_primary": False},
        ],
    })
    r.seed("tenant_stays", {
        "id": "stay-1",
        "tenant_id": "tenant-1",
        "owner_id": "owner-user",
        "room_id": "room-1",
        "status": "active",
        "stay_number": 1,
        "monthly_rent": 8000,
    })
    r.seed("bills", {
        "id": "bill-1",
        "tenant_id": "tenant-1",
        "bill_number": "B-0001",
        "total_amount": 5000,
        "paid_amount": 2000,
        "balance_due": 3000,
        "late_fee": 100,
        "status": "overdue",
        "due_date": "2026-01-05",
        "notes": "Generated",
    })
    r.seed("payments", {"id": "pay-1", "tenant_id": "tenant-1", "amount": 4000, "notes": None})
    r.seed("complaints", {"id": "complaint-1", "tenant_id": "tenant-1", "status": "open"})
    r.seed("user_profiles", {"id": "profile-1", "user_id": "tenant-user", "name": "Raj", "email": "raj@example.com"})
    return r


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def audit() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def transfer_service(repo, audit) -> RoomTransferService:
    return RoomTransferService(repo, audit, clock=fixed_clock)


@pytest.fixture
def engine(repo, notifier, audit, transfer_service) -> ApprovalEngine:
    return ApprovalEngine(repo, notifier=notifier, audit_sink=audit, transfer_service=transfer_service, clock=fixed_clock)


# -----------------------------------------------------
# Actors
# -----------------------------------------------------
@pytest.fixture
def owner_actor() -> WorkflowActor:
    return WorkflowActor(actor_id="owner-user", actor_type=ActorType.owner, workspace_id="ws-1")


@pytest.fixture
def tenant_actor() -> WorkflowActor:
    return WorkflowActor(actor_id="tenant-user", actor_type=ActorType.tenant, workspace_id="ws-1")


@pytest.fixture
def file_approval(engine, tenant_actor):
    """File a pending approval for tenant-1 and return its id."""
    def _file(approval_type, payload=None, **overrides):
        data = {
            "tenant_id": "tenant-1",
            "workspace_id": "ws-1",
            "owner_id": "owner-user",
            "type": approval_type,
            "title": f"{approval_type} request",
            "payload": payload or {},
        }
        data.update(overrides)
        return engine.create_approval(CreateApprovalInput(**data), tenant_actor).approval_id
    return _file


# -----------------------------------------------------
# HTTP
# -----------------------------------------------------
def make_user(context_type=ContextType.owner, permissions=None, entity_id=None, is_platform_admin=False, workspace_id="ws-1"):
    return CurrentUser(
        auth_user_id=f"{context_type}-user",
        email=f"{context_type}@example.com",
        context=UserContext(
            context_id=f"ctx-{context_type}",
            user_id=f"{context_type}-user",
            workspace_id=workspace_id,
            context_type=context_type,
            entity_id=entity_id,
            permissions=permissions or [],
        ),
        is_platform_admin=is_platform_admin,
    )


@pytest.fixture
def current_user():
    """Mutable holder so a test can swap the caller mid-test."""
    return {"user": make_user()}


@pytest.fixture
def login_as(current_user):
    """Switch the authenticated caller, e.g. login_as(ContextType.staff, permissions=[...])."""
    def _login(context_type=ContextType.owner, **kwargs):
        current_user["user"] = make_user(context_type, **kwargs)
        return current_user["user"]
    return _login


@pytest.fixture(scope="function")
def app(repo, engine, transfer_service, current_user):
    """Create a test FastAPI application wired to the in-memory store."""
    application = create_app()
    application.dependency_overrides[get_repository] = lambda: repo
    application.dependency_overrides[get_approval_engine] = lambda: engine
    application.dependency_overrides[get_room_transfer_service] = lambda: transfer_service
    application.dependency_overrides[get_context_resolver] = lambda: ContextResolver(repo, clock=fixed_clock)
    application.dependency_overrides[get_current_user] = lambda: current_user["user"]
    return application


@pytest.fixture(scope="function")
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application."""
    with TestClient(app) as test_client:
        yield test_client
