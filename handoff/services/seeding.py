"""
Demo data - two projects for the Acme Corporation client.

Every row has a fixed id and is written with upsert, so seeding twice leaves
the same data behind.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from handoff.api.auth import get_password_hash
from handoff.errors import NotFoundError
from handoff.models.client import Client
from handoff.models.comment import Comment
from handoff.models.deliverable import ApprovalStatus, Deliverable
from handoff.models.freelancer import Freelancer, ProjectFreelancer
from handoff.models.project import Project, ProjectStep, StepStatus
from handoff.models.shared_file import SharedFile
from handoff.models.user import User, UserRole
from handoff.services.deliverables import promote_newest_version
from handoff.services.gateway import PersistenceGateway
from handoff.utils.helpers import new_id, utcnow
from handoff.utils.validators import require_id

logger = logging.getLogger(__name__)

DESIGNER_USER_ID = "550e8400-e29b-41d4-a716-446655440000"
CLIENT_USER_ID = "550e8400-e29b-41d4-a716-446655440001"
CLIENT_ID = "550e8400-e29b-41d4-a716-446655440002"
WEBSITE_PROJECT_ID = "550e8400-e29b-41d4-a716-446655440003"
FREELANCER_ID = "550e8400-e29b-41d4-a716-446655440010"
BRAND_PROJECT_ID = "550e8400-e29b-41d4-a716-446655440020"

DESIGNER_EMAIL = "designer@example.com"
CLIENT_EMAIL = "client@example.com"
DEMO_PASSWORD = "handoff123"

LOGO_REFINEMENT = "Logo Refinement"


def _id(block: int, n: int) -> str:
    """Fixed demo ids: block 1 for the website project, block 2 for the brand project"""
    return f"550e8400-e29b-41d4-a716-4466554{block}{n:04d}"


def _placeholder(text: str) -> str:
    return f"/placeholder.svg?height=600&width=450&text={text.replace(' ', '+')}"


async def _seed_people(gateway: PersistenceGateway) -> None:
    await gateway.upsert(User, [
        {
            "id": DESIGNER_USER_ID,
            "email": DESIGNER_EMAIL,
            "full_name": "Alex Morgan",
            "avatar_url": "/placeholder.svg?height=64&width=64&text=AM",
            "role": UserRole.DESIGNER.value,
            "hashed_password": get_password_hash(DEMO_PASSWORD),
        },
        {
            "id": CLIENT_USER_ID,
            "email": CLIENT_EMAIL,
            "full_name": "John Smith",
            "avatar_url": "/placeholder.svg?height=64&width=64&text=JS",
            "role": UserRole.CLIENT.value,
            "hashed_password": get_password_hash(DEMO_PASSWORD),
        },
    ])
    await gateway.upsert(Client, [{
        "id": CLIENT_ID,
        "user_id": CLIENT_USER_ID,
        "name": "John Smith",
        "company": "Acme Corporation",
        "email": "john@acme.com",
        "phone": "+1 (555) 123-4567",
        "role": "Marketing Director",
        "logo_url": "/placeholder.svg?height=48&width=48&text=AC",
        "initials": "AC",
        "created_by": DESIGNER_USER_ID,
    }])
    await gateway.upsert(Freelancer, [{
        "id": FREELANCER_ID,
        "user_id": DESIGNER_USER_ID,
        "company": "Studio Creative",
        "role": "UI/UX Designer",
        "phone": "+1 (555) 123-4567",
        "logo_url": "/placeholder.svg?height=32&width=32&text=SC",
        "initials": "AM",
    }])


async def _seed_project(
    gateway: PersistenceGateway,
    project: Dict[str, Any],
    steps: List[Dict[str, Any]],
    deliverables: List[Dict[str, Any]],
    comments: List[Dict[str, Any]],
    shared_files: Optional[List[Dict[str, Any]]] = None,
) -> None:
    """Write one project tree inside a single transaction"""
    async with gateway.unit_of_work():
        await _seed_people(gateway)
        await gateway.upsert(Project, [project])
        await gateway.upsert(ProjectFreelancer, [{
            "project_id": project["id"],
            "freelancer_id": FREELANCER_ID,
            "role": "Lead Designer",
        }])
        await gateway.upsert(ProjectStep, steps)

        # Versions added since the last seed may hold the latest flag; drop it first
        step_ids = [s["id"] for s in steps]
        await gateway.update(Deliverable, {"step_id": step_ids, "is_latest": True}, {"is_latest": False})
        await gateway.upsert(Deliverable, deliverables)
        # Versions added after an earlier seed keep the flag when they are the newest
        for step_id in step_ids:
            await promote_newest_version(gateway, step_id)
        await gateway.upsert(Comment, comments)
        if shared_files:
            await gateway.upsert(SharedFile, shared_files)


def _version(
    ident: str,
    project_id: str,
    step_id: str,
    title: str,
    version_name: str,
    number: int,
    status: ApprovalStatus,
    is_latest: bool,
    file_name: str,
    description: str,
    created_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    row = {
        "id": ident,
        "project_id": project_id,
        "step_id": step_id,
        "title": title,
        "description": description,
        "file_url": _placeholder(title),
        "file_name": file_name,
        "file_type": file_name.rsplit(".", 1)[-1],
        "created_by": DESIGNER_USER_ID,
        "version_name": version_name,
        "version_number": number,
        "is_latest": is_latest,
        "status": status.value,
    }
    if created_at is not None:
        row["created_at"] = created_at
    return row


def _comment(
    ident: str,
    project_id: str,
    deliverable_id: str,
    content: str,
    created_at: datetime,
    milestone_name: str,
    version_name: str,
    is_client: bool,
) -> Dict[str, Any]:
    return {
        "id": ident,
        "deliverable_id": deliverable_id,
        "project_id": project_id,
        "user_id": CLIENT_USER_ID if is_client else DESIGNER_USER_ID,
        "client_id": CLIENT_ID if is_client else None,
        "content": content,
        "created_at": created_at,
        "milestone_name": milestone_name,
        "version_name": version_name,
        "is_client": is_client,
    }


async def seed_database(gateway: PersistenceGateway) -> Dict[str, Any]:
    """The "Website Redesign" demo project"""
    pid = WEBSITE_PROJECT_ID
    brief, wireframes, design, development, launch = (_id(1, n) for n in range(1, 6))

    steps = [
        {"id": brief, "project_id": pid, "title": "Brief", "description": "Project requirements and goals",
         "status": StepStatus.COMPLETED.value, "order_index": 0, "due_date": date(2025, 4, 5), "icon": "FileText"},
        {"id": wireframes, "project_id": pid, "title": "Wireframes", "description": "Low-fidelity layouts and user flows",
         "status": StepStatus.COMPLETED.value, "order_index": 1, "due_date": date(2025, 4, 10), "icon": "Layout"},
        {"id": design, "project_id": pid, "title": "Design", "description": "High-fidelity visual designs",
         "status": StepStatus.CURRENT.value, "order_index": 2, "due_date": date(2025, 4, 20), "icon": "Palette"},
        {"id": development, "project_id": pid, "title": "Development", "description": "Implementation and coding",
         "status": StepStatus.UPCOMING.value, "order_index": 3, "due_date": date(2025, 5, 5), "icon": "Code"},
        {"id": launch, "project_id": pid, "title": "Launch", "description": "Deployment and go-live",
         "status": StepStatus.UPCOMING.value, "order_index": 4, "due_date": date(2025, 5, 15), "icon": "Rocket"},
    ]

    approved, pending = ApprovalStatus.APPROVED, ApprovalStatus.PENDING
    d_brief, d_wire1, d_wire2, d_design1, d_design2, d_design3 = (_id(1, n) for n in range(11, 17))
    deliverables = [
        _version(d_brief, pid, brief, "Initial Brief", "Initial Brief", 1, approved, True,
                 "project_brief.pdf", "Initial project brief with requirements and goals"),
        _version(d_wire1, pid, wireframes, "First Draft", "First Draft", 1, approved, False,
                 "wireframes_v1.jpg", "Initial wireframes for homepage and key pages"),
        _version(d_wire2, pid, wireframes, "Revised Draft", "Revised Draft", 2, approved, True,
                 "wireframes_v2.jpg", "Revised wireframes based on feedback"),
        _version(d_design1, pid, design, "Design Concept", "Version 1.0", 1, approved, False,
                 "design_v1.jpg", "Initial design concept based on approved wireframes"),
        _version(d_design2, pid, design, "Revised Design", "Version 2.0", 2, approved, False,
                 "design_v2.jpg", "Revised design with updated color palette"),
        _version(d_design3, pid, design, "Final Design", "Version 3.0", 3, pending, True,
                 "design_v3.jpg", "Final design with enhanced call-to-action elements"),
    ]

    comments = [
        _comment(_id(1, 21), pid, d_brief, "Here's the initial brief document based on our discovery meeting.",
                 datetime(2025, 4, 1, 10, 23), "Brief", "Initial Brief", False),
        _comment(_id(1, 22), pid, d_brief, "Thanks for the detailed brief. This looks good to proceed with.",
                 datetime(2025, 4, 1, 11, 45), "Brief", "Initial Brief", True),
        _comment(_id(1, 23), pid, d_wire1, "Here are the initial wireframes for your review.",
                 datetime(2025, 4, 5, 9, 15), "Wireframes", "First Draft", False),
        _comment(_id(1, 24), pid, d_wire1,
                 "The navigation structure needs some adjustments. Can we make the main menu more prominent?",
                 datetime(2025, 4, 5, 14, 30), "Wireframes", "First Draft", True),
        _comment(_id(1, 25), pid, d_design3, "Here's the final design with enhanced call-to-action elements.",
                 datetime(2025, 4, 15, 10, 23), "Design", "Version 3.0", False),
        _comment(_id(1, 26), pid, d_design3,
                 "I like the new header design, but can we make the call-to-action button more prominent?",
                 datetime(2025, 4, 15, 11, 45), "Design", "Version 3.0", True),
    ]

    shared_files = [
        {"id": _id(1, 31), "project_id": pid, "title": "Feedback on Homepage",
         "description": "My thoughts on the current design", "file_name": "homepage_feedback.pdf",
         "file_type": "pdf", "file_size": "1.20 MB", "file_url": _placeholder("Homepage Feedback"),
         "uploaded_by": CLIENT_USER_ID, "is_client": True, "client_id": CLIENT_ID, "status": "Viewed",
         "created_at": datetime(2025, 4, 10)},
        {"id": _id(1, 32), "project_id": pid, "title": "Logo Alternatives",
         "description": "Some ideas for the logo", "file_name": "logo_alternatives.zip",
         "file_type": "zip", "file_size": "4.50 MB", "file_url": _placeholder("Logo Alternatives"),
         "uploaded_by": DESIGNER_USER_ID, "is_client": False, "status": "New",
         "created_at": datetime(2025, 4, 8)},
    ]

    project = {
        "id": pid,
        "title": "Website Redesign",
        "internal_name": "ACME Website Redesign",
        "status": "in_progress",
        "client_id": CLIENT_ID,
        "created_by": DESIGNER_USER_ID,
        "start_date": date(2025, 4, 1),
        "end_date": date(2025, 5, 15),
        "color_theme": "teal",
        "project_number": "2023-089",
        "progress": 40,
    }
    await _seed_project(gateway, project, steps, deliverables, comments, shared_files)
    logger.info(f"Seeded project {pid} 'Website Redesign'")
    return {"message": "Database seeded successfully", "project_id": pid}


async def seed_brand_redesign(gateway: PersistenceGateway) -> Dict[str, Any]:
    """The "Brand Redesign" demo project, with Logo Refinement as the current step"""
    pid = BRAND_PROJECT_ID
    step_ids = [_id(2, n) for n in range(1, 8)]
    titles = [
        ("Discovery", "Needs analysis and research", "Search", date(2025, 3, 15)),
        ("Brand Strategy", "Brand strategy definition", "Lightbulb", date(2025, 3, 31)),
        ("Logo Concepts", "Logo concept exploration", "Palette", date(2025, 4, 15)),
        (LOGO_REFINEMENT, "Refinement of the selected logo", "Edit", date(2025, 4, 30)),
        ("Brand Guidelines", "Brand guide creation", "Book", date(2025, 5, 15)),
        ("Collateral Design", "Marketing collateral design", "FileText", date(2025, 6, 15)),
        ("Delivery", "Final file delivery", "Package", date(2025, 6, 30)),
    ]
    current = 3
    steps = []
    for index, (step_id, (title, description, icon, due)) in enumerate(zip(step_ids, titles)):
        if index < current:
            status = StepStatus.COMPLETED
        elif index == current:
            status = StepStatus.CURRENT
        else:
            status = StepStatus.UPCOMING
        steps.append({
            "id": step_id, "project_id": pid, "title": title, "description": description,
            "status": status.value, "order_index": index, "due_date": due, "icon": icon,
        })

    approved, rejected = ApprovalStatus.APPROVED, ApprovalStatus.REJECTED
    discovery, strategy, concepts = step_ids[0], step_ids[1], step_ids[2]
    d_audit, d_pos1, d_pos2, d_concepts = (_id(2, n) for n in range(11, 15))
    deliverables = [
        _version(d_audit, pid, discovery, "Brand Audit", "Brand Audit v1", 1, approved, True,
                 "brand_audit.pdf", "Audit of the current identity and competitors", datetime(2025, 3, 5, 10)),
        _version(d_pos1, pid, strategy, "Brand Positioning", "Brand Positioning v1", 1, rejected, False,
                 "brand_positioning.pdf", "Brand positioning document", datetime(2025, 3, 20, 9, 15)),
        _version(d_pos2, pid, strategy, "Brand Positioning", "Brand Positioning v2", 2, approved, True,
                 "brand_positioning_v2.pdf", "Revised brand positioning document", datetime(2025, 3, 25, 11, 45)),
        _version(d_concepts, pid, concepts, "Logo Concepts", "Logo Concepts v1", 1, approved, True,
                 "logo_concepts.pdf", "Three logo directions", datetime(2025, 4, 10, 14)),
    ]

    comments = [
        _comment(_id(2, 21), pid, d_pos1, "The positioning feels too corporate for our audience.",
                 datetime(2025, 3, 21, 10), "Brand Strategy", "Brand Positioning v1", True),
        _comment(_id(2, 22), pid, d_pos2, "Reworked the tone to be warmer and more direct.",
                 datetime(2025, 3, 25, 12), "Brand Strategy", "Brand Positioning v2", False),
        _comment(_id(2, 23), pid, d_concepts, "Direction B is our favourite, let's refine it.",
                 datetime(2025, 4, 12, 9, 30), "Logo Concepts", "Logo Concepts v1", True),
    ]

    project = {
        "id": pid,
        "title": "Brand Redesign",
        "internal_name": "ACME Brand Redesign 2025",
        "status": "in_progress",
        "client_id": CLIENT_ID,
        "created_by": DESIGNER_USER_ID,
        "start_date": date(2025, 3, 1),
        "end_date": date(2025, 6, 30),
        "color_theme": "indigo",
        "project_number": "2025-042",
        "progress": round(current / len(steps) * 100),
    }
    await _seed_project(gateway, project, steps, deliverables, comments)
    logger.info(f"Seeded project {pid} 'Brand Redesign'")
    return {"message": "Brand Redesign project seeded successfully", "project_id": pid}


async def add_logo_deliverables(gateway: PersistenceGateway, project_id: str = BRAND_PROJECT_ID) -> Dict[str, Any]:
    """Add a pending color-variations version and a short thread to the Logo Refinement step"""
    project_id = require_id(project_id, "Project ID")
    step = await gateway.query_one(ProjectStep, {"project_id": project_id, "title": LOGO_REFINEMENT})
    if step is None:
        raise NotFoundError(f"Step '{LOGO_REFINEMENT}' not found")

    now = utcnow()
    async with gateway.unit_of_work():
        newest = await gateway.query_one(Deliverable, {"step_id": step.id}, order_by=["-version_number"])
        number = (newest.version_number + 1) if newest else 1
        version_name = f"Color Variations v{number}"

        await gateway.update(Deliverable, {"step_id": step.id, "is_latest": True}, {"is_latest": False})
        [deliverable] = await gateway.insert(Deliverable, [
            _version(new_id(), project_id, step.id, "Logo Color Variations", version_name, number,
                     ApprovalStatus.PENDING, True, "logo_color_variations.pdf",
                     "Color variations for the selected logo", now)
        ])
        comments = await gateway.insert(Comment, [
            _comment(new_id(), project_id, deliverable.id,
                     "I really like the palette. Could we see a version with cooler tones?",
                     now, LOGO_REFINEMENT, version_name, True),
            _comment(new_id(), project_id, deliverable.id,
                     "Of course, I'll prepare a cooler version. Do you prefer blues or greens?",
                     now + timedelta(hours=1), LOGO_REFINEMENT, version_name, False),
        ])

    logger.info(f"Added deliverable {deliverable.id} with {len(comments)} comments to step {step.id}")
    return {
        "message": "Deliverables and comments added successfully",
        "step_id": step.id,
        "deliverable_id": deliverable.id,
        "comment_ids": [c.id for c in comments],
    }


async def check_data(gateway: PersistenceGateway) -> Dict[str, Any]:
    counts = {}
    for model in (User, Client, Freelancer, Project, ProjectStep, Deliverable, Comment, SharedFile):
        counts[model.__tablename__] = await gateway.count(model)
    projects = await gateway.query(Project, order_by=["-created_at"])
    return {
        "counts": counts,
        "projects": [{"id": p.id, "title": p.title, "progress": p.progress} for p in projects],
    }


async def diagnose_project(gateway: PersistenceGateway, project_id: str) -> Dict[str, Any]:
    """Consistency report for one project: step order, current step and latest flags"""
    project_id = require_id(project_id, "Project ID")
    project = await gateway.query_one(Project, {"id": project_id})
    if project is None:
        raise NotFoundError("Project not found")

    steps = await gateway.query(ProjectStep, {"project_id": project_id}, order_by=["order_index"])
    deliverables = []
    if steps:
        deliverables = await gateway.query(
            Deliverable, {"step_id": [s.id for s in steps]}, order_by=["version_number"]
        )

    issues = []
    if not steps:
        issues.append("Project has no steps")
    current = [s for s in steps if s.status == StepStatus.CURRENT.value]
    if len(current) > 1:
        issues.append(f"{len(current)} steps are marked current")
    order = [s.order_index for s in steps]
    if len(set(order)) != len(order):
        issues.append("Duplicate order_index values")

    report = []
    for step in steps:
        versions = [d for d in deliverables if d.step_id == step.id]
        latest = [d.id for d in versions if d.is_latest]
        if versions and not latest:
            issues.append(f"Step '{step.title}' has versions but none is latest")
        if len(latest) > 1:
            issues.append(f"Step '{step.title}' has {len(latest)} latest versions")
        report.append({
            "id": step.id,
            "title": step.title,
            "status": step.status,
            "order_index": step.order_index,
            "versions": len(versions),
            "latest_id": latest[0] if latest else None,
        })

    return {
        "project": {"id": project.id, "title": project.title, "progress": project.progress},
        "steps": report,
        "issues": issues,
    }
