"""Flow structure endpoints — the section list used for navigation menus.

Read-only and unauthenticated: the flow definition is not user data.
"""

from fastapi import APIRouter, Depends

from onboarding_flow.registry import SchemaRegistry

from onboarding_server.dependencies import get_registry

router = APIRouter(prefix="/sections", tags=["sections"])


@router.get("")
def list_sections(
    registry: SchemaRegistry = Depends(get_registry),
) -> list[dict]:
    """Return every section in flow order with its question count."""
    return [
        {
            "id": section.id,
            "icon": section.icon,
            "title": section.title,
            "description": section.description,
            "question_count": len(section.questions),
        }
        for section in (registry.get_section(sid) for sid in registry.section_order)
    ]


@router.get("/{section_id}")
def get_section(
    section_id: str,
    registry: SchemaRegistry = Depends(get_registry),
) -> dict:
    """Return one section's banner data.  404 for unknown ids."""
    section = registry.get_section(section_id)
    return {
        "id": section.id,
        "icon": section.icon,
        "title": section.title,
        "description": section.description,
        "question_count": len(section.questions),
    }
