"""Tests for dependency path resolution."""

from pathlib import Path

from src.generator.config import ProjectConfig
from src.generator.resolvers.path_resolver import PathResolver, as_reference
from tests.conftest import make_context


def _touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("module.exports = {};\n")
    return path


def _resolver(project, **config):
    ctx = make_context(project_root=project, config=ProjectConfig.model_validate(config))
    return PathResolver(ctx), ctx


def test_as_reference_shape():
    base = Path("/p/tests/implications")

    assert as_reference(base, Path("/p/tests/implications/Local.js")) == "./Local"
    assert as_reference(base, Path("/p/tests/screens/A.screen.ts")) == "../screens/A.screen"
    assert as_reference(base, Path("/p/tests/ai-testing/utils")) == "../ai-testing/utils"


class TestResolveReference:
    def test_project_rooted_target(self, project):
        resolver, ctx = _resolver(project)

        reference = resolver.resolve_reference(
            ctx.output_path, "tests\\screenObjects\\BookingDetails.js"
        )

        assert reference == "../screenObjects/BookingDetails"
        assert ctx.degradations == []

    def test_project_rooted_beats_search_paths(self, project):
        _touch(project / "shared" / "BookingDetails.js")
        resolver, ctx = _resolver(project, searchPaths=["shared/*.js"])

        reference = resolver.resolve_reference(ctx.output_path, "tests/pages/BookingDetails.js")

        assert reference == "../pages/BookingDetails"

    def test_platform_globs_before_shared_globs(self, project):
        _touch(project / "web" / "pages" / "booking" / "BookingDetails.js")
        _touch(project / "shared" / "BookingDetails.js")
        resolver, ctx = _resolver(
            project,
            screenPaths={"web": ["web/pages/**/*.js"]},
            searchPaths=["shared/*.js"],
        )

        assert resolver.resolve_reference(ctx.output_path, "BookingDetails.js") == (
            "../../web/pages/booking/BookingDetails"
        )
        assert resolver.resolve_reference(ctx.output_path, "BookingDetails.js", "cms") == (
            "../../shared/BookingDetails"
        )

    def test_name_variants_match_screen_suffix(self, project):
        _touch(project / "shared" / "BookingDetails.screen.js")
        resolver, ctx = _resolver(project, searchPaths=["shared/*.js"])

        assert resolver.resolve_reference(ctx.output_path, "bookingDetails") == (
            "../../shared/BookingDetails.screen"
        )

    def test_absolute_patterns_are_ignored(self, project):
        resolver, ctx = _resolver(project, searchPaths=[str(project / "*.js")])
        _touch(project / "Nowhere.js")

        reference = resolver.resolve_reference(ctx.output_path, "Nowhere.js")

        assert reference == "../Nowhere"
        assert ctx.degradations[0].component == "path"

    def test_walks_up_to_conventional_directory(self, project):
        _touch(project / "tests" / "screenObjects" / "booking" / "BookingDetails.js")
        resolver, ctx = _resolver(project)

        assert resolver.resolve_reference(ctx.output_path, "BookingDetails") == (
            "../screenObjects/booking/BookingDetails"
        )

    def test_guess_is_recorded(self, project):
        resolver, ctx = _resolver(project)

        reference = resolver.resolve_reference(ctx.output_path, "Missing.js")

        assert reference == "../Missing"
        assert ctx.degradations[0].subject == "Missing.js"
        assert ctx.degradations[0].fallback == "../Missing"


class TestUtilsDir:
    def test_found_by_walking_up(self, project):
        resolver, ctx = _resolver(project)

        assert resolver.resolve_utils_dir(ctx.output_path) == "../ai-testing/utils"
        assert ctx.degradations == []

    def test_configured_path(self, project):
        resolver, ctx = _resolver(project, utilsPath="lib/utils")

        assert resolver.resolve_utils_dir(ctx.output_path) == "../../lib/utils"

    def test_missing_utilities_degrade(self, tmp_path):
        (tmp_path / "tests" / "implications").mkdir(parents=True)
        resolver, ctx = _resolver(tmp_path)

        assert resolver.resolve_utils_dir(ctx.output_path) == "../ai-testing/utils"
        assert ctx.degradations[0].subject == "TestContext utilities"
