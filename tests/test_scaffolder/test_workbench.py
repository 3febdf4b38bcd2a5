"""Tests for the workbench operations (stackforge.scaffolder.workbench).

Covers:
- initialize_project / add_model / add_route / add_middleware / add_service
- Idempotent re-application and suggestions
- Persistence: files on disk, index survives a new session
- review() scoping and plan / implement integration
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from stackforge.config import Config, TypeCheckConfig
from stackforge.scaffolder.expander import ERRORS_PATH, REGISTRAR_PATH, SCHEMA_PATH
from stackforge.scaffolder.models import ResourceDescriptor
from stackforge.scaffolder.naming import InvalidNameError
from stackforge.scaffolder.workbench import Workbench
from stackforge.reviewer.models import Severity

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# In-memory operations
# ---------------------------------------------------------------------------


class TestInMemoryOperations:
    @pytest.mark.asyncio
    async def test_initialize_project(self, bench: Workbench):
        result = await bench.initialize_project("blog-api")
        assert result.operation == "initialize-project"
        assert REGISTRAR_PATH in result.written
        assert ERRORS_PATH in result.written
        assert result.hook_results == []
        assert result.type_check_passed is True
        assert result.suggestions == ["add_model(ResourceDescriptor(...)) to define the first resource"]

    @pytest.mark.asyncio
    async def test_invalid_project_name(self, bench: Workbench):
        with pytest.raises(InvalidNameError):
            await bench.initialize_project("")

    @pytest.mark.asyncio
    async def test_add_model_inserts_before_anchor(self, bench: Workbench, post_descriptor: ResourceDescriptor):
        await bench.initialize_project("blog-api")
        result = await bench.add_model(post_descriptor)
        schema = bench.tree.files[SCHEMA_PATH]
        assert result.written == [SCHEMA_PATH]
        assert schema.index("model Post {") < schema.index("// @forge:models")
        assert result.suggestions == [
            "add_route('post', ['list', 'getById', 'create', 'update', 'delete']) to scaffold /posts"
        ]

    @pytest.mark.asyncio
    async def test_add_route_reuses_known_descriptor(self, bench: Workbench, post_descriptor: ResourceDescriptor):
        await bench.initialize_project("blog-api")
        await bench.add_model(post_descriptor)
        result = await bench.add_route("posts", ["list", "create"])
        assert "post:model" in result.skipped
        validator = bench.tree.files["src/validators/post.validator.ts"]
        assert "title: z.string()," in validator
        registrar = bench.tree.files[REGISTRAR_PATH]
        assert registrar.count("router.use(postRoutes);") == 1

    @pytest.mark.asyncio
    async def test_add_route_twice_is_a_no_op(self, bench: Workbench, post_descriptor: ResourceDescriptor):
        await bench.initialize_project("blog-api")
        await bench.add_route(post_descriptor, ["list", "getById", "create"])
        snapshot = dict(bench.tree.files)
        again = await bench.add_route(post_descriptor, ["list", "getById", "create"])
        assert again.written == []
        assert len(again.skipped) == 15
        assert bench.tree.files == snapshot

    @pytest.mark.asyncio
    async def test_add_route_extends_existing_routes(self, bench: Workbench, comment_descriptor: ResourceDescriptor):
        await bench.initialize_project("blog-api")
        await bench.add_route(comment_descriptor, ["list"])
        result = await bench.add_route(comment_descriptor, ["delete"])
        routes = bench.tree.files["src/routes/comment.routes.ts"]
        assert "src/routes/comment.routes.ts" in result.written
        assert routes.index("commentController.list") < routes.index("commentController.remove")

    @pytest.mark.asyncio
    async def test_add_middleware_and_service(self, bench: Workbench):
        await bench.initialize_project("blog-api")
        middleware = await bench.add_middleware("auth")
        assert middleware.written == ["src/middleware/require-auth.ts"]
        assert ERRORS_PATH in middleware.skipped
        service = await bench.add_service("mailer", ["send"])
        assert service.written == ["src/services/mailer.service.ts"]

    @pytest.mark.asyncio
    async def test_reinitialise_resets_index(self, bench: Workbench, comment_descriptor: ResourceDescriptor):
        await bench.initialize_project("blog-api")
        await bench.add_route(comment_descriptor, ["list"])
        assert bench.index.has("comment", "comment:register")
        await bench.initialize_project("blog-api")
        assert bench.index.entries == {}
        assert "commentRoutes" not in bench.tree.files[REGISTRAR_PATH]


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


class TestReview:
    @pytest.mark.asyncio
    async def test_scaffolded_resource_passes(self, bench: Workbench, comment_descriptor: ResourceDescriptor):
        await bench.initialize_project("blog-api")
        await bench.add_route(comment_descriptor, ["list", "getById", "create", "update", "delete"])
        report = bench.review()
        assert report.passed
        assert report.counts_by_severity[Severity.HIGH] == 0
        messages = {finding.message for finding in report.findings}
        assert "Model Comment has no exported TypeScript interface" in messages
        assert "POST route has no authentication middleware" in messages

    @pytest.mark.asyncio
    async def test_scope_filters_findings(self, bench: Workbench, comment_descriptor: ResourceDescriptor):
        await bench.initialize_project("blog-api")
        await bench.add_route(comment_descriptor, ["create"])
        report = bench.review("src/routes")
        assert report.findings
        assert all(f.location.file.startswith("src/routes/") for f in report.findings)

    @pytest.mark.asyncio
    async def test_undefined_relation_target_is_high(self, bench: Workbench, post_descriptor: ResourceDescriptor):
        await bench.initialize_project("blog-api")
        await bench.add_model(post_descriptor)
        report = bench.review()
        assert not report.passed
        assert any(
            f.message == "Field Post.user references undefined model User" for f in report.groups["schema"]
        )

    @pytest.mark.asyncio
    async def test_verbose_review_prints_report(self, post_descriptor: ResourceDescriptor):
        bench = Workbench(Config(), persist=False, verbose=True)
        with patch("stackforge.scaffolder.workbench.print_header") as header, \
                patch("stackforge.scaffolder.workbench.print_summary_table"), \
                patch("stackforge.scaffolder.workbench.print_success"), \
                patch("stackforge.scaffolder.workbench.print_report") as printed, \
                patch("stackforge.scaffolder.workbench.print_error") as error:
            await bench.initialize_project("blog-api")
            await bench.add_model(post_descriptor)
            report = bench.review()
        header.assert_called_once_with("Initialising blog-api")
        printed.assert_called_once_with(report)
        error.assert_called_once()


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


class TestPlanAndImplement:
    def test_plan(self, bench: Workbench):
        graph = bench.plan("add comments")
        assert graph.ids == ["schema.comment", "api.comment", "types.comment"]
        assert all(node.owner_domain for node in graph.nodes)

    @pytest.mark.asyncio
    async def test_implement(self, bench: Workbench, comment_descriptor: ResourceDescriptor):
        await bench.initialize_project("blog-api")
        report = await bench.implement("add comments", [comment_descriptor])
        assert report.done
        assert report.waves == [["schema.comment"], ["api.comment", "types.comment"]]
        assert "src/types/comment.types.ts" in report.written
        assert "body String" in bench.tree.files[SCHEMA_PATH]
        assert bench.review().passed


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class TestPersistence:
    @pytest.mark.asyncio
    async def test_files_written_to_disk(self, disk_bench: Workbench, tmp_project_dir: Path):
        await disk_bench.initialize_project("blog-api")
        assert (tmp_project_dir / "package.json").exists()
        assert (tmp_project_dir / ".env.example").exists()
        assert (tmp_project_dir / ".stackforge" / "index.json").exists()

    @pytest.mark.asyncio
    async def test_index_survives_new_session(
        self, config: Config, tmp_project_dir: Path, comment_descriptor: ResourceDescriptor
    ):
        first = Workbench(config)
        await first.initialize_project("blog-api")
        await first.add_route(comment_descriptor, ["list"])

        index = json.loads((tmp_project_dir / ".stackforge" / "index.json").read_text(encoding="utf-8"))
        assert index["entries"]["comment"]["comment:register"] == REGISTRAR_PATH

        second = Workbench(config)
        again = await second.add_route(comment_descriptor, ["list"])
        assert again.written == []
        registrar = (tmp_project_dir / REGISTRAR_PATH).read_text(encoding="utf-8")
        assert registrar.count("router.use(commentRoutes);") == 1

    @pytest.mark.asyncio
    async def test_type_check_runs_after_initialisation(self, tmp_project_dir: Path, comment_descriptor):
        bench = Workbench(Config(project_root=tmp_project_dir, type_check=TypeCheckConfig(command=["tsc"])))
        with patch(
            "stackforge.scaffolder.hooks.run_command",
            new_callable=AsyncMock,
            return_value=(1, "error TS1005", ""),
        ) as mock_run:
            await bench.initialize_project("blog-api")
            result = await bench.add_route(comment_descriptor, ["list"])

        assert mock_run.await_count > 0
        assert len(result.hook_results) == len(result.written)
        assert result.type_check_passed is False
        # Failing checks never roll back writes.
        assert (tmp_project_dir / "src/routes/comment.routes.ts").exists()
