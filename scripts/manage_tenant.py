"""CLI for restaurant (tenant) administration.

Usage::

    uv run python -m scripts.manage_tenant <command> [options]

Commands:
    create-tenant       Create a new restaurant
    list-tenants        List all restaurants
    set-origins         Replace a restaurant's allowed origins
    deactivate-tenant   Deactivate a restaurant
    issue-token         Mint an access token for an actor
    audit               Query audit records
"""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Callable
from datetime import datetime

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from restaurant_tenancy.auth.actor import Actor, Role
from restaurant_tenancy.auth.tokens import issue_access_token
from restaurant_tenancy.config import settings
from restaurant_tenancy.storage.orm import AuditLog, Restaurant


def get_sync_session() -> Session:
    """Create sync session for CLI operations.

    A plain ``Session``: operator commands work across restaurants and
    are not tenant-scoped.
    """
    engine = create_engine(settings.database_url)
    return Session(engine)


def _find_restaurant(session: Session, name: str) -> Restaurant:
    restaurant = session.execute(
        select(Restaurant).where(Restaurant.name == name)
    ).scalar_one_or_none()
    if restaurant is None:
        print(f"Restaurant not found: {name}", file=sys.stderr)
        sys.exit(1)
    return restaurant


def _parse_origins(raw: str) -> list[str]:
    return [o.strip() for o in raw.split(",") if o.strip()]


def create_tenant(args: argparse.Namespace) -> None:
    """Create a new restaurant."""
    with get_sync_session() as session:
        existing = session.execute(
            select(Restaurant).where(Restaurant.name == args.name)
        ).scalar_one_or_none()
        if existing is not None:
            print(f"Restaurant already exists: {args.name}", file=sys.stderr)
            sys.exit(1)

        restaurant = Restaurant(
            name=args.name,
            allowed_origins=_parse_origins(args.origins or ""),
        )
        session.add(restaurant)
        session.commit()
        print(f"Restaurant created: {args.name} (id: {restaurant.id})")


def list_tenants(_args: argparse.Namespace) -> None:
    """List all restaurants."""
    with get_sync_session() as session:
        restaurants = (
            session.execute(select(Restaurant).order_by(Restaurant.id)).scalars().all()
        )

        if not restaurants:
            print("No restaurants found.")
            return

        print("Restaurants:")
        for r in restaurants:
            status = "active" if r.is_active else "inactive"
            origins = ", ".join(r.allowed_origins) if r.allowed_origins else "any"
            print(f"  {r.id}. {r.name} ({status}, origins: {origins})")


def set_origins(args: argparse.Namespace) -> None:
    """Replace the allowed origins of a restaurant.

    An empty list means the restaurant does not restrict origins.
    """
    origins = _parse_origins(args.origins)
    with get_sync_session() as session:
        restaurant = _find_restaurant(session, args.name)
        restaurant.allowed_origins = origins
        session.commit()
        shown = ", ".join(origins) if origins else "any"
        print(f"Allowed origins for {args.name}: {shown}")


def deactivate_tenant(args: argparse.Namespace) -> None:
    """Deactivate a restaurant (its requests resolve as not found)."""
    with get_sync_session() as session:
        restaurant = _find_restaurant(session, args.name)
        if not restaurant.is_active:
            print(f"Restaurant already inactive: {args.name}", file=sys.stderr)
            sys.exit(1)

        restaurant.is_active = False
        session.commit()
        print(f"Restaurant deactivated: {args.name}")


def issue_token(args: argparse.Namespace) -> None:
    """Mint an access token, e.g. for local testing or service accounts."""
    if args.role != Role.SUPER_ADMIN and args.restaurant_id is None:
        print("--restaurant-id is required for non super admin roles", file=sys.stderr)
        sys.exit(1)

    actor = Actor(
        id=args.user_id,
        role=args.role,
        tenant_id=args.restaurant_id,
        email=args.email,
    )
    token = issue_access_token(
        actor,
        secret=settings.jwt_secret.get_secret_value(),
        algorithm=settings.jwt_algorithm,
        ttl_seconds=args.ttl or settings.access_token_ttl_seconds,
    )
    print(token)


def audit(args: argparse.Namespace) -> None:
    """Print audit records matching the filters, newest first."""
    stmt = select(AuditLog)
    if args.user_id is not None:
        stmt = stmt.where(AuditLog.user_id == args.user_id)
    if args.restaurant_id is not None:
        stmt = stmt.where(AuditLog.restaurant_id == args.restaurant_id)
    if args.action is not None:
        stmt = stmt.where(AuditLog.action == args.action)
    if args.since is not None:
        stmt = stmt.where(AuditLog.created_at >= args.since)
    if args.until is not None:
        stmt = stmt.where(AuditLog.created_at < args.until)
    stmt = stmt.order_by(AuditLog.created_at.desc()).limit(args.limit)

    with get_sync_session() as session:
        records = session.execute(stmt).scalars().all()

        if not records:
            print("No audit records found.")
            return

        for rec in records:
            print(
                f"{rec.created_at.isoformat(timespec='seconds')} "
                f"[{rec.severity}] {rec.action} "
                f"user={rec.user_id} restaurant={rec.restaurant_id} "
                f"resource={rec.resource_type}:{rec.resource_id} "
                f"{json.dumps(rec.details, sort_keys=True)}"
            )


def main() -> None:
    """Parse arguments and dispatch to command handler."""
    parser = argparse.ArgumentParser(description="Restaurant tenancy CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    # create-tenant
    p = sub.add_parser("create-tenant", help="Create a new restaurant")
    p.add_argument("--name", required=True, help="Restaurant name")
    p.add_argument("--origins", help="Comma-separated allowed origins")

    # list-tenants
    sub.add_parser("list-tenants", help="List all restaurants")

    # set-origins
    p = sub.add_parser("set-origins", help="Replace allowed origins")
    p.add_argument("--name", required=True, help="Restaurant name")
    p.add_argument("--origins", required=True, help="Comma-separated, '' for any")

    # deactivate-tenant
    p = sub.add_parser("deactivate-tenant", help="Deactivate a restaurant")
    p.add_argument("--name", required=True, help="Restaurant name")

    # issue-token
    p = sub.add_parser("issue-token", help="Mint an access token")
    p.add_argument("--user-id", type=int, required=True)
    p.add_argument("--role", choices=[r.value for r in Role], default=Role.STAFF.value)
    p.add_argument("--restaurant-id", type=int, help="Actor's own restaurant")
    p.add_argument("--email")
    p.add_argument("--ttl", type=int, help="Lifetime in seconds")

    # audit
    p = sub.add_parser("audit", help="Query audit records")
    p.add_argument("--user-id", type=int)
    p.add_argument("--restaurant-id", type=int)
    p.add_argument("--action", help="e.g. tenant_access, suspicious_activity")
    p.add_argument("--since", type=datetime.fromisoformat)
    p.add_argument("--until", type=datetime.fromisoformat)
    p.add_argument("--limit", type=int, default=50)

    args = parser.parse_args()
    commands: dict[str, Callable[[argparse.Namespace], None]] = {
        "create-tenant": create_tenant,
        "list-tenants": list_tenants,
        "set-origins": set_origins,
        "deactivate-tenant": deactivate_tenant,
        "issue-token": issue_token,
        "audit": audit,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
