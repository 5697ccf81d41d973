"""
Behavioural tests shared by both storage backends.

Every test here runs once against JsonStore and once against SQLiteStore
through the parametrized `store` fixture.
"""

import pytest

from reqgather.core.errors import ValidationError


class TestProjects:
    """Project operations."""

    def test_create_project(self, store, project_data):
        """Created projects get an ID and matching timestamps."""
        project = store.create_project(project_data)

        assert project.id
        assert project.name == "Checkout Revamp"
        assert project.created_at == project.updated_at

    def test_create_then_get_round_trip(self, store, project_data):
        """A created project reads back identically."""
        created = store.create_project(project_data)
        fetched = store.get_project_by_id(created.id)

        assert fetched == created

    def test_create_project_rejects_blank_name(self, store):
        """Invalid input raises before anything is written."""
        with pytest.raises(ValidationError):
            store.create_project({"name": "  "})

        assert store.list_projects() == []

    def test_list_projects_in_creation_order(self, store):
        """Listing is stable across calls."""
        first = store.create_project({"name": "Alpha"})
        second = store.create_project({"name": "Beta"})

        assert [p.id for p in store.list_projects()] == [first.id, second.id]

    def test_partial_update_preserves_other_fields(self, store, project_data):
        """Only supplied fields change; updatedAt moves forward."""
        project = store.create_project(project_data)

        updated = store.update_project(project.id, {"description": "Mobile too"})

        assert updated.name == project.name
        assert updated.description == "Mobile too"
        assert updated.created_at == project.created_at
        assert updated.updated_at >= project.updated_at
        assert store.get_project_by_id(project.id) == updated

    def test_update_missing_project_returns_none(self, store):
        """Not-found is reported by None and nothing is written."""
        assert store.update_project("missing", {"name": "X"}) is None
        assert store.list_projects() == []

    def test_delete_missing_project_returns_false(self, store, project_data):
        """Deleting an unknown ID leaves existing data alone."""
        project = store.create_project(project_data)

        assert store.delete_project("missing") is False
        assert store.get_project_by_id(project.id) == project

    @pytest.mark.parametrize("term", ["check", "CHECK", "Revamp", "kout re"])
    def test_find_by_name_is_case_insensitive(self, store, project_data, term):
        """Substring search ignores case."""
        project = store.create_project(project_data)
        store.create_project({"name": "Billing"})

        assert [p.id for p in store.find_projects_by_name(term)] == [project.id]

    def test_find_without_term_returns_all(self, store):
        """Empty or missing term lists everything."""
        store.create_project({"name": "Alpha"})
        store.create_project({"name": "Beta"})

        assert len(store.find_projects_by_name(None)) == 2
        assert len(store.find_projects_by_name("")) == 2

    def test_find_treats_wildcards_literally(self, store):
        """SQL wildcard characters in the term match themselves."""
        store.create_project({"name": "100% uptime"})
        store.create_project({"name": "Billing"})

        assert [p.name for p in store.find_projects_by_name("%")] == ["100% uptime"]
        assert store.find_projects_by_name("_") == []


class TestRequirements:
    """Requirement operations."""

    def test_create_requirement(self, store, project_data, make_requirement):
        """New requirements start as draft with normalized tags."""
        project = store.create_project(project_data)

        req = make_requirement(store, project.id, tags=[" ux", "checkout", "ux", ""])

        assert req.status == "draft"
        assert req.project_id == project.id
        assert req.tags == ["ux", "checkout"]
        assert req.created_at == req.updated_at

    def test_create_then_get_round_trip(self, store, project_data, make_requirement):
        """A created requirement reads back identically."""
        project = store.create_project(project_data)
        req = make_requirement(store, project.id)

        assert store.get_requirement_by_id(req.id) == req

    def test_create_ignores_supplied_status(self, store, project_data, make_requirement):
        """Status always starts as draft."""
        project = store.create_project(project_data)
        req = make_requirement(store, project.id, status="approved")

        assert req.status == "draft"

    def test_create_requires_existing_project(self, store, make_requirement):
        """An unknown projectId is invalid input."""
        with pytest.raises(ValidationError):
            make_requirement(store, "missing")

        assert store.list_requirements() == []

    def test_create_rejects_bad_priority(self, store, project_data, make_requirement):
        """Enum fields are validated."""
        project = store.create_project(project_data)

        with pytest.raises(ValidationError):
            make_requirement(store, project.id, priority="urgent")

        assert store.list_requirements() == []

    def test_list_by_project(self, store, make_requirement):
        """Only the project's requirements are returned."""
        alpha = store.create_project({"name": "Alpha"})
        beta = store.create_project({"name": "Beta"})
        mine = make_requirement(store, alpha.id, title="Mine")
        make_requirement(store, beta.id, title="Theirs")

        assert [r.id for r in store.list_requirements_by_project(alpha.id)] == [mine.id]
        assert store.list_requirements_by_project("missing") == []
        assert len(store.list_requirements()) == 2

    def test_partial_update_preserves_other_fields(self, store, project_data, make_requirement):
        """Updating status leaves title, tags and createdAt untouched."""
        project = store.create_project(project_data)
        req = make_requirement(store, project.id)

        updated = store.update_requirement(req.id, {"status": "approved"})

        assert updated.status == "approved"
        assert updated.title == req.title
        assert updated.tags == req.tags
        assert updated.created_at == req.created_at
        assert updated.updated_at >= req.updated_at

    def test_update_replaces_tags(self, store, project_data, make_requirement):
        """Supplied tags become exactly the stored set."""
        project = store.create_project(project_data)
        req = make_requirement(store, project.id, tags=["a", "b"])

        updated = store.update_requirement(req.id, {"tags": ["b", "c"]})

        assert set(updated.tags) == {"b", "c"}
        assert set(store.get_requirement_by_id(req.id).tags) == {"b", "c"}

    def test_update_with_same_tags_is_idempotent(self, store, project_data, make_requirement):
        """Reapplying the same tag set leaves it unchanged."""
        project = store.create_project(project_data)
        req = make_requirement(store, project.id, tags=["a", "b"])

        store.update_requirement(req.id, {"tags": ["b", "c"]})
        again = store.update_requirement(req.id, {"tags": ["b", "c"]})

        assert sorted(again.tags) == ["b", "c"]

    def test_update_with_empty_tags_clears(self, store, project_data, make_requirement):
        """An empty list removes every tag."""
        project = store.create_project(project_data)
        req = make_requirement(store, project.id, tags=["a", "b"])

        assert store.update_requirement(req.id, {"tags": []}).tags == []

    def test_update_without_tags_keeps_them(self, store, project_data, make_requirement):
        """Omitting tags leaves the stored set alone."""
        project = store.create_project(project_data)
        req = make_requirement(store, project.id, tags=["a", "b"])

        updated = store.update_requirement(req.id, {"title": "Renamed"})

        assert updated.tags == ["a", "b"]

    def test_update_rejects_bad_status(self, store, project_data, make_requirement):
        """Invalid updates raise and leave the record untouched."""
        project = store.create_project(project_data)
        req = make_requirement(store, project.id)

        with pytest.raises(ValidationError):
            store.update_requirement(req.id, {"status": "shipped"})

        assert store.get_requirement_by_id(req.id) == req

    def test_update_missing_requirement_returns_none(self, store, project_data, make_requirement):
        """Not-found is reported by None and nothing is written."""
        project = store.create_project(project_data)
        make_requirement(store, project.id)
        before = store.list_requirements()
        document = getattr(store, "requirements_path", None)
        document_bytes = document.read_bytes() if document else None

        assert store.update_requirement("missing", {"title": "X", "tags": ["new"]}) is None

        assert store.list_requirements() == before
        if document:
            assert document.read_bytes() == document_bytes

    def test_delete_missing_requirement_writes_nothing(self, store, project_data, make_requirement):
        """Deleting an unknown ID leaves existing requirements alone."""
        project = store.create_project(project_data)
        make_requirement(store, project.id)
        before = store.list_requirements()

        assert store.delete_requirement("missing") is False
        assert store.list_requirements() == before

    def test_delete_requirement(self, store, project_data, make_requirement):
        """Deleted requirements are gone; deleting again reports False."""
        project = store.create_project(project_data)
        req = make_requirement(store, project.id)

        assert store.delete_requirement(req.id) is True
        assert store.get_requirement_by_id(req.id) is None
        assert store.delete_requirement(req.id) is False


class TestCascadeDelete:
    """Deleting a project removes everything it owns."""

    def test_cascade_removes_requirements(self, store, make_requirement):
        """No requirement of a deleted project survives."""
        doomed = store.create_project({"name": "Doomed"})
        kept = store.create_project({"name": "Kept"})
        make_requirement(store, doomed.id, title="One")
        make_requirement(store, doomed.id, title="Two")
        survivor = make_requirement(store, kept.id, title="Three")

        assert store.delete_project(doomed.id) is True

        assert store.get_project_by_id(doomed.id) is None
        assert store.list_requirements_by_project(doomed.id) == []
        assert [r.id for r in store.list_requirements()] == [survivor.id]

    def test_cascade_on_empty_project(self, store):
        """A project without requirements deletes cleanly."""
        project = store.create_project({"name": "Empty"})

        assert store.delete_project(project.id) is True
        assert store.list_projects() == []


class TestEndToEnd:
    """Full lifecycle of a project and its requirements."""

    def test_scenario(self, store):
        """Create, update, reconcile tags, then cascade-delete."""
        project = store.create_project({"name": "Mobile App", "description": "iOS and Android"})

        login = store.create_requirement({
            "title": "Login",
            "description": "Users sign in with email",
            "type": "functional",
            "priority": "high",
            "projectId": project.id,
            "tags": ["auth", "mvp"],
        })
        perf = store.create_requirement({
            "title": "Fast start",
            "description": "Cold start under two seconds",
            "type": "non-functional",
            "priority": "medium",
            "projectId": project.id,
        })

        assert len(store.list_requirements_by_project(project.id)) == 2
        assert perf.tags == []

        login = store.update_requirement(login.id, {"status": "approved", "tags": ["auth", "security"]})
        assert login.status == "approved"
        assert set(login.tags) == {"auth", "security"}

        assert [p.id for p in store.find_projects_by_name("mobile")] == [project.id]

        assert store.delete_project(project.id) is True
        assert store.list_projects() == []
        assert store.list_requirements() == []
