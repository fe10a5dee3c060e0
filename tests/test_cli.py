"""
CLI: `heron generate` and `heron version`.
"""

import pytest
from click.testing import CliRunner

from heron import __version__
from heron.cli.__main__ import cli
from heron.cli.generators import generate, render, template_context, to_pascal, to_snake
from heron.controller.metadata import collect_controller
from heron.di import Lifetime
from heron.di.decorators import declared_lifetime


@pytest.fixture
def runner():
    return CliRunner()


def load_source(source, filename):
    namespace = {}
    exec(compile(source, filename, "exec"), namespace)
    return namespace


# ============================================================================
# Naming
# ============================================================================

class TestNaming:

    @pytest.mark.parametrize("raw, pascal, snake", [
        ("users", "Users", "users"),
        ("user-profile", "UserProfile", "user_profile"),
        ("user_profile", "UserProfile", "user_profile"),
        ("userProfile", "UserProfile", "user_profile"),
    ])
    def test_case_conversion(self, raw, pascal, snake):
        assert to_pascal(raw) == pascal
        assert to_snake(raw) == snake

    def test_controller_context(self):
        ctx = template_context("controller", "Users")
        assert ctx["class_name"] == "UsersController"
        assert ctx["prefix"] == "/users"
        assert ctx["resource_singular"] == "user"
        assert ctx["resource_plural"] == "users"

    def test_suffix_not_doubled(self):
        assert template_context("service", "UsersService")["class_name"] == "UsersService"

    def test_kebab_prefix(self):
        assert template_context("controller", "UserProfile")["prefix"] == "/user-profile"


# ============================================================================
# Generators
# ============================================================================

class TestGenerators:

    def test_generated_controller_is_usable(self):
        source = render("controller", "Users", prefix="/api/users")
        namespace = load_source(source, "users_controller.py")
        descriptor = collect_controller(namespace["UsersController"])

        assert descriptor.prefix == "/api/users"
        assert [(r.http_method, r.path) for r in descriptor.routes] == [
            ("GET", "/"),
            ("POST", "/"),
            ("GET", "/:id"),
            ("PUT", "/:id"),
            ("DELETE", "/:id"),
        ]
        assert descriptor.routes[1].status_code == 201

    def test_generated_service_scope(self):
        namespace = load_source(render("service", "Users", scope="request"), "users_service.py")
        assert declared_lifetime(namespace["UsersService"]) is Lifetime.REQUEST

    @pytest.mark.parametrize("kind, class_name", [
        ("module", "UsersModule"),
        ("guard", "UsersGuard"),
        ("middleware", "UsersMiddleware"),
    ])
    def test_other_kinds_render(self, kind, class_name):
        namespace = load_source(render(kind, "Users"), f"users_{kind}.py")
        assert class_name in namespace

    def test_unknown_kind(self):
        with pytest.raises(ValueError, match="Unknown kind"):
            render("repository", "Users")

    def test_generate_writes_file(self, tmp_path):
        path = generate("controller", "Users", tmp_path / "app")
        assert path == tmp_path / "app" / "users_controller.py"
        assert 'class UsersController:' in path.read_text()

    def test_generate_refuses_overwrite(self, tmp_path):
        generate("service", "Users", tmp_path)
        with pytest.raises(FileExistsError):
            generate("service", "Users", tmp_path)
        generate("service", "Users", tmp_path, force=True, scope="transient")
        assert 'scope="transient"' in (tmp_path / "users_service.py").read_text()


# ============================================================================
# Commands
# ============================================================================

class TestCommands:

    def test_generate_command(self, runner, tmp_path):
        result = runner.invoke(cli, ["generate", "controller", "Users", "--output", str(tmp_path)], obj={})
        assert result.exit_code == 0, result.output
        assert "Generated controller 'Users'" in result.output
        assert (tmp_path / "users_controller.py").exists()

    def test_generate_with_prefix(self, runner, tmp_path):
        result = runner.invoke(
            cli,
            ["generate", "controller", "Products", "-o", str(tmp_path), "--prefix", "/api/products"],
            obj={},
        )
        assert result.exit_code == 0
        assert '@controller("/api/products")' in (tmp_path / "products_controller.py").read_text()

    def test_existing_file_fails(self, runner, tmp_path):
        args = ["generate", "module", "Users", "--output", str(tmp_path)]
        assert runner.invoke(cli, args, obj={}).exit_code == 0
        result = runner.invoke(cli, args, obj={})
        assert result.exit_code == 1
        assert "already exists" in result.output

        forced = runner.invoke(cli, [*args, "--force"], obj={})
        assert forced.exit_code == 0

    def test_quiet(self, runner, tmp_path):
        result = runner.invoke(cli, ["--quiet", "generate", "guard", "Admin", "-o", str(tmp_path)], obj={})
        assert result.exit_code == 0
        assert result.output == ""
        assert (tmp_path / "admin_guard.py").exists()

    def test_unknown_kind_rejected(self, runner, tmp_path):
        result = runner.invoke(cli, ["generate", "widget", "Users", "-o", str(tmp_path)], obj={})
        assert result.exit_code == 2

    def test_version(self, runner):
        result = runner.invoke(cli, ["version"], obj={})
        assert result.output.strip() == f"heron {__version__}"

        flag = runner.invoke(cli, ["--version"], obj={})
        assert __version__ in flag.output
