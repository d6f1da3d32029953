"""Display metadata for each resource type (label, icon, colours)."""

from __future__ import annotations

from typing import NamedTuple

from app.models.catalog.resource_model import ResourceType


class ResourceTypeInfo(NamedTuple):
    label: str
    icon: str
    color: str
    background_color: str


RESOURCE_TYPE_INFO: dict[ResourceType, ResourceTypeInfo] = {
    ResourceType.youtube: ResourceTypeInfo("YouTube", "Youtube", "#FF0000", "#FFE5E5"),
    ResourceType.udemy: ResourceTypeInfo("Udemy", "GraduationCap", "#A435F0", "#F3E8FF"),
    ResourceType.coursera: ResourceTypeInfo("Coursera", "Award", "#0056D2", "#E0F2FE"),
    ResourceType.edx: ResourceTypeInfo("edX", "BookOpen", "#02262B", "#E0F2F1"),
    ResourceType.linkedin_learning: ResourceTypeInfo("LinkedIn Learning", "Linkedin", "#0A66C2", "#DBEAFE"),
    ResourceType.pluralsight: ResourceTypeInfo("Pluralsight", "Code", "#F15B2A", "#FEE2E2"),
    ResourceType.skillshare: ResourceTypeInfo("Skillshare", "Palette", "#00FF84", "#D1FAE5"),
    ResourceType.khan_academy: ResourceTypeInfo("Khan Academy", "School", "#14BF96", "#D1FAE5"),
    ResourceType.freecodecamp: ResourceTypeInfo("freeCodeCamp", "Terminal", "#0A0A23", "#E0E7FF"),
    ResourceType.codecademy: ResourceTypeInfo("Codecademy", "Code2", "#1F4056", "#DBEAFE"),
    ResourceType.udacity: ResourceTypeInfo("Udacity", "Rocket", "#02B3E4", "#CFFAFE"),
    ResourceType.medium: ResourceTypeInfo("Medium", "FileText", "#000000", "#F3F4F6"),
    ResourceType.blog: ResourceTypeInfo("Blog", "Newspaper", "#6366F1", "#E0E7FF"),
    ResourceType.documentation: ResourceTypeInfo("Documentation", "Book", "#8B5CF6", "#F3E8FF"),
    ResourceType.github: ResourceTypeInfo("GitHub", "Github", "#181717", "#F3F4F6"),
    ResourceType.podcast: ResourceTypeInfo("Podcast", "Mic", "#8B5CF6", "#F3E8FF"),
    ResourceType.book: ResourceTypeInfo("Book", "BookOpen", "#F59E0B", "#FEF3C7"),
    ResourceType.article: ResourceTypeInfo("Article", "FileText", "#10B981", "#D1FAE5"),
    ResourceType.video: ResourceTypeInfo("Video", "Video", "#EF4444", "#FEE2E2"),
    ResourceType.interactive: ResourceTypeInfo("Interactive", "MousePointer", "#EC4899", "#FCE7F3"),
    ResourceType.other: ResourceTypeInfo("Other", "Link", "#6B7280", "#F3F4F6"),
}

_FALLBACK = RESOURCE_TYPE_INFO[ResourceType.other]


def type_info(resource_type: ResourceType | str) -> ResourceTypeInfo:
    try:
        return RESOURCE_TYPE_INFO[ResourceType(resource_type)]
    except ValueError:
        return _FALLBACK


def list_resource_types() -> list[dict]:
    return [
        {
            "type": resource_type.value,
            "label": info.label,
            "icon": info.icon,
            "color": info.color,
            "background_color": info.background_color,
        }
        for resource_type, info in RESOURCE_TYPE_INFO.items()
    ]
