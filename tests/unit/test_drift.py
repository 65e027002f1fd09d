"""Unit tests for drift detection."""

from sentry_provider.core.drift import DriftDetector
from sentry_provider.resources.projects import ProjectResource, ProjectState
from sentry_provider.resources.teams import TeamState


def make_team(**overrides):
    values = {"organization": "acme", "name": "core-team", "slug": "core-team", "internal_id": "1"}
    values.update(overrides)
    return TeamState(**values)


class TestDriftDetector:
    """Test comparing recorded and fresh state."""

    def test_no_drift(self):
        report = DriftDetector().detect(make_team(), make_team())

        assert report.changes == {}
        assert report.has_drift is False

    def test_changed_field_reported(self):
        previous = make_team()
        fresh = make_team(name="Core Team")

        report = DriftDetector().detect(previous, fresh)

        assert set(report.changes) == {"name"}
        assert report.changes["name"].old == "core-team"
        assert report.changes["name"].new == "Core Team"

    def test_fresh_state_always_wins(self):
        previous = make_team()
        fresh = make_team(name="Renamed in UI")

        report = DriftDetector().detect(previous, fresh)

        assert report.state is fresh
        assert report.state.name == "Renamed in UI"

    def test_without_previous_state(self):
        fresh = make_team()

        report = DriftDetector().detect(None, fresh)

        assert report.state is fresh
        assert report.has_drift is False

    def test_gone_remotely_requires_recreate(self):
        report = DriftDetector().detect(make_team(), None)

        assert report.state is None
        assert report.recreate_required is True

    def test_nothing_recorded_and_nothing_remote(self):
        report = DriftDetector().detect(None, None)

        assert report.recreate_required is False

    def test_server_default_not_reported_for_unset_field(self):
        previous = ProjectState(organization="acme", name="web", slug="web", teams=["core"])
        fresh = ProjectState(
            organization="acme",
            name="web",
            slug="web",
            teams=["core"],
            platform="other",
            resolveAge=0,
        )

        report = DriftDetector(ProjectResource.server_defaults).detect(previous, fresh)

        assert report.changes == {}

    def test_non_default_value_reported_for_unset_field(self):
        previous = ProjectState(organization="acme", name="web", slug="web", teams=["core"])
        fresh = ProjectState(
            organization="acme", name="web", slug="web", teams=["core"], platform="python"
        )

        report = DriftDetector(ProjectResource.server_defaults).detect(previous, fresh)

        assert set(report.changes) == {"platform"}

    def test_ordered_collections_compared_by_position(self):
        previous = ProjectState(organization="acme", name="web", slug="web", teams=["a", "b"])
        fresh = ProjectState(organization="acme", name="web", slug="web", teams=["b", "a"])

        report = DriftDetector().detect(previous, fresh)

        assert set(report.changes) == {"teams"}
