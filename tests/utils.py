"""Utility helpers for test factories."""

from __future__ import annotations

import threading
import time
from typing import Callable, Union

from app.models.catalog.resource_model import LearningType, Resource, ResourceType
from app.models.catalog.skill_model import AudienceCategory, Skill, slugify


def create_skill(db, **kwargs) -> Skill:
    name = kwargs.pop("name", "Web Development")
    defaults = {
        "name": name,
        "slug": slugify(name),
        "category": AudienceCategory.students,
        "description": f"{name} resources",
    }
    defaults.update(kwargs)
    skill = Skill(**defaults)
    db.add(skill)
    db.commit()
    db.refresh(skill)
    return skill


def create_resource(db, skill: Skill, *, member: bool = True, **kwargs) -> Resource:
    """Insert a resource owned by ``skill``; ``member`` also lists it on the skill."""
    defaults = {
        "title": "Intro course",
        "url": f"https://example.org/course/{len(skill.owned_resources) + 1}-{skill.id}",
        "type": ResourceType.article,
        "learning_type": LearningType.free,
        "category": skill.category,
        "verified": True,
        "is_active": True,
        "rating": 0.0,
        "enrollment_count": 0,
    }
    defaults.update(kwargs)
    resource = Resource(skill_id=skill.id, **defaults)
    db.add(resource)
    db.commit()
    if member:
        skill.resources.append(resource)
        db.commit()
    db.refresh(resource)
    return resource


class FakeResponse:
    def __init__(self, status_code: int):
        self.status_code = status_code
        self.closed = False

    def close(self) -> None:
        self.closed = True


Outcome = Union[int, BaseException, Callable[[str], Union[int, BaseException]]]


class FakeHttpSession:
    """Stand-in for ``requests.Session`` that records every ``head`` call.

    ``responses`` maps a URL to a status code or an exception to raise;
    anything unmapped answers ``default``.
    """

    def __init__(self, responses: dict[str, Outcome] | None = None, default: Outcome = 200, delay: float = 0.0):
        self.responses = dict(responses or {})
        self.default = default
        self.delay = delay
        self.calls: list[tuple[str, dict]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def head(self, url: str, **kwargs) -> FakeResponse:
        with self._lock:
            self.calls.append((url, kwargs))
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            outcome = self.responses.get(url, self.default)
            if callable(outcome) and not isinstance(outcome, BaseException):
                outcome = outcome(url)
            if isinstance(outcome, BaseException):
                raise outcome
            return FakeResponse(outcome)
        finally:
            with self._lock:
                self.in_flight -= 1
