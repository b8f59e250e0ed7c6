"""CLI utilities for seeding reference data."""

# purpose: give administrators a repeatable way to load investigators, staff and research activities
# status: active
# depends_on: compliance_portal.database, compliance_portal.models

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import typer
from sqlalchemy.orm import Session

from .. import models
from ..auth import get_password_hash
from ..database import Base, engine, session_scope

app = typer.Typer(help="Reference data maintenance commands")

DEFAULT_FIXTURE: dict[str, list[dict[str, Any]]] = {
    "scientists": [
        {
            "name": "Dr. Ada Reyes",
            "email": "ada.reyes@example.org",
            "department": "Molecular Oncology",
            "title": "Associate Member",
            "is_principal_investigator": True,
        },
        {
            "name": "Dr. Tomas Lind",
            "email": "tomas.lind@example.org",
            "department": "Immunology",
            "title": "Senior Member",
            "is_principal_investigator": True,
        },
        {
            "name": "Priya Natarajan",
            "email": "priya.natarajan@example.org",
            "department": "Molecular Oncology",
            "title": "Research Associate",
        },
    ],
    "research_activities": [
        {
            "sdr_number": "SDR-1001",
            "title": "Lentiviral delivery of tumour suppressors",
            "principal_investigator": "ada.reyes@example.org",
            "staff": ["priya.natarajan@example.org"],
        },
        {
            "sdr_number": "SDR-1002",
            "title": "T cell exhaustion markers in solid tumours",
            "principal_investigator": "tomas.lind@example.org",
            "staff": [],
        },
    ],
}


def _initials(name: str) -> str:
    parts = [part for part in name.replace("Dr.", "").split() if part]
    return "".join(part[0] for part in parts)[:2].upper()


def seed_reference_data(session: Session, fixture: dict[str, list[dict[str, Any]]]) -> dict[str, int]:
    """Insert scientists and research activities that are not already present."""

    created = {"scientists": 0, "research_activities": 0, "staff": 0}
    by_email: dict[str, models.Scientist] = {}
    for entry in fixture.get("scientists", []):
        email = entry.get("email")
        scientist = (
            session.query(models.Scientist).filter(models.Scientist.email == email).first()
            if email
            else None
        )
        if scientist is None:
            scientist = models.Scientist(
                name=entry["name"],
                email=email,
                department=entry.get("department"),
                title=entry.get("title"),
                profile_image_initials=entry.get("profile_image_initials") or _initials(entry["name"]),
                is_principal_investigator=bool(entry.get("is_principal_investigator")),
            )
            session.add(scientist)
            session.flush()
            created["scientists"] += 1
        if email:
            by_email[email] = scientist

    for entry in fixture.get("research_activities", []):
        activity = (
            session.query(models.ResearchActivity)
            .filter(models.ResearchActivity.sdr_number == entry["sdr_number"])
            .first()
        )
        if activity is None:
            pi = by_email.get(entry.get("principal_investigator") or "")
            activity = models.ResearchActivity(
                sdr_number=entry["sdr_number"],
                title=entry["title"],
                status=entry.get("status", "active"),
                principal_investigator_id=pi.id if pi else None,
            )
            session.add(activity)
            session.flush()
            created["research_activities"] += 1
        assigned = {member.scientist_id for member in activity.staff}
        for email in entry.get("staff", []):
            scientist = by_email.get(email)
            if scientist is None or scientist.id in assigned:
                continue
            session.add(
                models.ResearchActivityStaff(
                    research_activity_id=activity.id, scientist_id=scientist.id
                )
            )
            assigned.add(scientist.id)
            created["staff"] += 1
    return created


@app.command("reference-data")
def reference_data_command(
    fixture: Optional[Path] = typer.Option(None, help="JSON file with scientists and research_activities"),
) -> None:
    """Load reference data, creating tables first when they are missing."""

    data = DEFAULT_FIXTURE
    if fixture is not None:
        try:
            data = json.loads(fixture.read_text())
        except (OSError, ValueError) as exc:
            raise typer.BadParameter(str(exc))
    Base.metadata.create_all(bind=engine)
    with session_scope() as session:
        summary = seed_reference_data(session, data)
    typer.echo(json.dumps(summary))


@app.command("create-user")
def create_user_command(
    email: str = typer.Option(..., help="Login email"),
    password: str = typer.Option(..., help="Initial password"),
    full_name: str = typer.Option("", help="Display name"),
    role: str = typer.Option("researcher", help="researcher, reviewer or office"),
    admin: bool = typer.Option(False, help="Grant administrator rights"),
) -> None:
    Base.metadata.create_all(bind=engine)
    with session_scope() as session:
        if session.query(models.User).filter(models.User.email == email).first():
            raise typer.BadParameter(f"User {email} already exists")
        user = models.User(
            email=email,
            hashed_password=get_password_hash(password),
            full_name=full_name or None,
            role=role,
            is_admin=admin,
        )
        session.add(user)
        session.flush()
        summary = {"id": str(user.id), "email": user.email, "role": user.role}
    typer.echo(json.dumps(summary))


if __name__ == "__main__":
    app()
