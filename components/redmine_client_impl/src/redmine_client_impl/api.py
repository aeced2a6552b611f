"""Redmine resource sub-clients.

Each class only builds paths and JSON bodies; the client does the rest.
``API_FACTORIES`` maps the names accepted by RedmineClient.api() to the
class that serves them.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from tracker_client_interface.client import TrackerClient
from tracker_client_interface.resource import ResourceApi


def _body(root: str, params: dict) -> str:
    #Redmine wants every write payload wrapped in the singular resource name
    return json.dumps({root: params})


class _CrudApi(ResourceApi):
    """Shared list/show/create/update/remove for resources living at /<plural>.json."""

    _PLURAL = ""
    _SINGULAR = ""

    def all(self, params: dict | None = None) -> Any:
        return self._get(f"/{self._PLURAL}.json", params)

    def show(self, resource_id: int | str, params: dict | None = None) -> Any:
        return self._get(f"/{self._PLURAL}/{resource_id}.json", params)

    def create(self, params: dict) -> Any:
        return self._post(f"/{self._PLURAL}.json", _body(self._SINGULAR, params))

    def update(self, resource_id: int | str, params: dict) -> Any:
        return self._put(f"/{self._PLURAL}/{resource_id}.json", _body(self._SINGULAR, params))

    def remove(self, resource_id: int | str) -> Any:
        return self._delete(f"/{self._PLURAL}/{resource_id}.json")


class _ProjectScopedApi(ResourceApi):
    """Resources listed and created under a project but addressed directly afterwards."""

    _PLURAL = ""
    _SINGULAR = ""

    def all(self, project_id: int | str, params: dict | None = None) -> Any:
        return self._get(f"/projects/{project_id}/{self._PLURAL}.json", params)

    def show(self, resource_id: int | str) -> Any:
        return self._get(f"/{self._PLURAL}/{resource_id}.json")

    def create(self, project_id: int | str, params: dict) -> Any:
        return self._post(f"/projects/{project_id}/{self._PLURAL}.json", _body(self._SINGULAR, params))

    def update(self, resource_id: int | str, params: dict) -> Any:
        return self._put(f"/{self._PLURAL}/{resource_id}.json", _body(self._SINGULAR, params))

    def remove(self, resource_id: int | str) -> Any:
        return self._delete(f"/{self._PLURAL}/{resource_id}.json")


class _ListOnlyApi(ResourceApi):
    _PATH = ""

    def all(self) -> Any:
        return self._get(self._PATH)


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------

class Attachment(ResourceApi):
    def show(self, attachment_id: int | str) -> Any:
        return self._get(f"/attachments/{attachment_id}.json")

    def upload(self, data: bytes | str) -> Any:
        """Upload raw file content. The returned token is then referenced from an issue's "uploads"."""
        return self._post("/uploads.json", data)

    def remove(self, attachment_id: int | str) -> Any:
        return self._delete(f"/attachments/{attachment_id}.json")


class Group(_CrudApi):
    _PLURAL = "groups"
    _SINGULAR = "group"

    def add_user(self, group_id: int | str, user_id: int) -> Any:
        return self._post(f"/groups/{group_id}/users.json", json.dumps({"user_id": user_id}))

    def remove_user(self, group_id: int | str, user_id: int) -> Any:
        return self._delete(f"/groups/{group_id}/users/{user_id}.json")


class CustomField(_ListOnlyApi):
    _PATH = "/custom_fields.json"


class Issue(_CrudApi):
    _PLURAL = "issues"
    _SINGULAR = "issue"

    def add_watcher(self, issue_id: int | str, user_id: int) -> Any:
        return self._post(f"/issues/{issue_id}/watchers.json", json.dumps({"user_id": user_id}))

    def remove_watcher(self, issue_id: int | str, user_id: int) -> Any:
        return self._delete(f"/issues/{issue_id}/watchers/{user_id}.json")

    def add_note(self, issue_id: int | str, note: str) -> Any:
        """Add a journal note to an issue without touching any other field."""
        return self.update(issue_id, {"notes": note})


class IssueCategory(_ProjectScopedApi):
    _PLURAL = "issue_categories"
    _SINGULAR = "issue_category"


class IssuePriority(_ListOnlyApi):
    _PATH = "/enumerations/issue_priorities.json"


class IssueRelation(ResourceApi):
    def all(self, issue_id: int | str) -> Any:
        return self._get(f"/issues/{issue_id}/relations.json")

    def show(self, relation_id: int | str) -> Any:
        return self._get(f"/relations/{relation_id}.json")

    def create(self, issue_id: int | str, params: dict) -> Any:
        return self._post(f"/issues/{issue_id}/relations.json", _body("relation", params))

    def remove(self, relation_id: int | str) -> Any:
        return self._delete(f"/relations/{relation_id}.json")


class IssueStatus(_ListOnlyApi):
    _PATH = "/issue_statuses.json"


class Membership(_ProjectScopedApi):
    _PLURAL = "memberships"
    _SINGULAR = "membership"


class News(ResourceApi):
    def all(self, project_id: int | str | None = None, params: dict | None = None) -> Any:
        if project_id is None:
            return self._get("/news.json", params)
        return self._get(f"/projects/{project_id}/news.json", params)


class Project(_CrudApi):
    _PLURAL = "projects"
    _SINGULAR = "project"


class Query(_ListOnlyApi):
    _PATH = "/queries.json"


class Role(ResourceApi):
    def all(self) -> Any:
        return self._get("/roles.json")

    def show(self, role_id: int | str) -> Any:
        return self._get(f"/roles/{role_id}.json")


class TimeEntry(_CrudApi):
    _PLURAL = "time_entries"
    _SINGULAR = "time_entry"


class TimeEntryActivity(_ListOnlyApi):
    _PATH = "/enumerations/time_entry_activities.json"


class Tracker(_ListOnlyApi):
    _PATH = "/trackers.json"


class User(_CrudApi):
    _PLURAL = "users"
    _SINGULAR = "user"

    def current(self, params: dict | None = None) -> Any:
        """Return the user owning the API key."""
        return self._get("/users/current.json", params)


class Version(_ProjectScopedApi):
    _PLURAL = "versions"
    _SINGULAR = "version"


class Wiki(ResourceApi):
    def all(self, project_id: int | str) -> Any:
        return self._get(f"/projects/{project_id}/wiki/index.json")

    def show(self, project_id: int | str, page: str, version: int | None = None) -> Any:
        if version is None:
            return self._get(f"/projects/{project_id}/wiki/{page}.json")
        return self._get(f"/projects/{project_id}/wiki/{page}/{version}.json")

    def create(self, project_id: int | str, page: str, params: dict) -> Any:
        #Redmine creates wiki pages with PUT, same as updating them
        return self._put(f"/projects/{project_id}/wiki/{page}.json", _body("wiki_page", params))

    def update(self, project_id: int | str, page: str, params: dict) -> Any:
        return self._put(f"/projects/{project_id}/wiki/{page}.json", _body("wiki_page", params))

    def remove(self, project_id: int | str, page: str) -> Any:
        return self._delete(f"/projects/{project_id}/wiki/{page}.json")


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

API_FACTORIES: dict[str, Callable[[TrackerClient], ResourceApi]] = {
    "attachment":          Attachment,
    "group":               Group,
    "custom_fields":       CustomField,
    "issue":               Issue,
    "issue_category":      IssueCategory,
    "issue_priority":      IssuePriority,
    "issue_relation":      IssueRelation,
    "issue_status":        IssueStatus,
    "membership":          Membership,
    "news":                News,
    "project":             Project,
    "query":               Query,
    "role":                Role,
    "time_entry":          TimeEntry,
    "time_entry_activity": TimeEntryActivity,
    "tracker":             Tracker,
    "user":                User,
    "version":             Version,
    "wiki":                Wiki,
}
