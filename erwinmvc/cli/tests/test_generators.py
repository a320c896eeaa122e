"""
Tests for the model, controller and resource generators
"""

import importlib
import sqlite3
from pathlib import Path

import pytest
from starlette.testclient import TestClient

from ...core.naming import InvalidNameError
from ..commands.controller import generate_controller
from ..commands.model import generate_model
from ..commands.resource import ResourceOptions, generate_resource
from ..project import GeneratorError, ResourceNames, find_model_migration, register_in_manifest
from ..templates import TemplateRenderer


def table_names(db_file: Path):
    with sqlite3.connect(db_file) as connection:
        rows = connection.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {name for (name,) in rows}


def load_server(project_dir, monkeypatch):
    monkeypatch.syspath_prepend(str(project_dir))
    return importlib.import_module("server")


class TestResourceNames:

    def test_simple_name(self):
        names = ResourceNames.from_name("post")

        assert names.model_name == "Post"
        assert names.controller_name == "PostController"
        assert names.resource_path == "posts"
        assert names.table_name == "posts"

    def test_irregular_and_compound_names(self):
        assert ResourceNames.from_name("Person").resource_path == "people"
        assert ResourceNames.from_name("Category").table_name == "categories"

        names = ResourceNames.from_name("BlogPost")
        assert names.resource_path == "blogposts"
        assert names.table_name == "blog_posts"
        assert names.singular_var == "blog_post"
        assert names.plural_var == "blog_posts"

    @pytest.mark.parametrize("name", ["", "2posts", "blog-post"])
    def test_invalid_names(self, name):
        with pytest.raises(InvalidNameError):
            ResourceNames.from_name(name)

    @pytest.mark.parametrize("name", ["Class", "Import", "global", "Lambda"])
    def test_rejects_python_keywords(self, name):
        with pytest.raises(InvalidNameError, match="reserved word"):
            ResourceNames.from_name(name)

    def test_generated_variables_are_valid_python(self):
        for name in ("Post", "Person", "BlogPost", "Classroom"):
            names = ResourceNames.from_name(name)
            compile(f"{names.singular_var} = 1\n{names.plural_var} = [{names.singular_var}]\n", name, "exec")


class TestManifest:

    def test_registers_controller_once(self, project):
        names = ResourceNames.from_name("Person")

        assert register_in_manifest(names, form_routes=True)
        assert not register_in_manifest(names, form_routes=True)

        manifest = (project / "app" / "routes.py").read_text()
        assert manifest.count("from app.controllers import PersonController\n") == 1
        assert 'registry.add("PersonController", PersonController, resource="people")' in manifest
        assert '    Route("/people/create", PersonController.create' in manifest
        assert manifest.index("import PersonController") < manifest.index("# erwinmvc: controller imports")

    def test_missing_manifest(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert not register_in_manifest(ResourceNames.from_name("Post"))


class TestGenerateModel:

    def test_requires_migrations_directory(self, project):
        with pytest.raises(GeneratorError, match="migrations/ not found"):
            generate_model("Post")

    def test_writes_and_applies_migration(self, project):
        (project / "migrations").mkdir()

        migration = generate_model("Post")

        content = migration.read_text()
        assert migration.name.endswith("_create_posts.sql")
        assert "CREATE TABLE IF NOT EXISTS posts (" in content
        assert "DROP TABLE IF EXISTS posts;" in content
        assert find_model_migration("posts") == Path("migrations") / migration.name
        assert "posts" in table_names(project / "dev.db")

    def test_skip_migrate(self, project):
        (project / "migrations").mkdir()

        generate_model("Post", skip_migrate=True)

        assert not (project / "dev.db").exists()

    def test_refuses_existing_model(self, project):
        (project / "migrations").mkdir()
        generate_model("Post", skip_migrate=True)

        with pytest.raises(GeneratorError, match="Model Post already exists"):
            generate_model("post", skip_migrate=True)


class TestGenerateController:

    def test_writes_controller_views_and_manifest(self, project, capsys):
        controller = generate_controller("Post")

        assert controller == Path("app/controllers/PostController.py")
        source = controller.read_text()
        for action in ("index", "show", "store", "update", "destroy"):
            assert f"async def {action}(request: Request)" in source
        assert 'TABLE = "posts"' in source

        assert (project / "app/views/posts/index.html").is_file()
        assert (project / "app/views/posts/show.html").is_file()
        assert "url_for('posts.show'" in (project / "app/views/posts/index.html").read_text()
        assert 'registry.add("PostController", PostController, resource="posts")' in (
            project / "app/routes.py"
        ).read_text()

        output = capsys.readouterr().out
        assert "DELETE /posts/{id}" in output

    def test_irregular_plural_resource(self, project):
        generate_controller("Person", views=False)

        manifest = (project / "app/routes.py").read_text()
        assert 'resource="people"' in manifest
        assert not (project / "app/views/people").exists()

    def test_refuses_to_overwrite(self, project):
        generate_controller("Post")
        (project / "app/controllers/PostController.py").write_text("# customised\n")

        with pytest.raises(GeneratorError, match="already exists"):
            generate_controller("Post")

        assert (project / "app/controllers/PostController.py").read_text() == "# customised\n"

    def test_keyword_name_writes_nothing(self, project):
        with pytest.raises(InvalidNameError):
            generate_controller("Class")

        assert not (project / "app/controllers/ClassController.py").exists()
        assert "ClassController" not in (project / "app/routes.py").read_text()


class TestGenerateResource:

    def test_without_migrations_skips_model(self, project, capsys):
        result = generate_resource("Person")

        assert result.migration is None
        assert result.controller == Path("app/controllers/PersonController.py")
        assert result.registered
        assert [p.name for p in result.views] == ["index.html", "show.html", "create.html", "edit.html"]
        assert "Skipping model" in capsys.readouterr().out

    def test_existing_parts_are_skipped(self, project, capsys):
        (project / "migrations").mkdir()
        generate_resource("Person", ResourceOptions(skip_migrate=True))
        capsys.readouterr()

        result = generate_resource("Person", ResourceOptions(skip_migrate=True))

        assert result.migration is None
        assert result.controller is None
        assert result.views == []
        assert not result.registered
        output = capsys.readouterr().out
        assert "Model Person already exists, skipping..." in output
        assert "Controller PersonController.py already exists, skipping..." in output

    def test_api_only(self, project):
        result = generate_resource("Tag", ResourceOptions(api_only=True))

        source = result.controller.read_text()
        assert "JSONResponse" in source
        assert "async def create" not in source
        assert result.views == []
        assert "/tags/create" not in (project / "app/routes.py").read_text()

    def test_summary_lists_routes_in_match_order(self, project, capsys):
        generate_resource("Person", ResourceOptions(skip_views=True))

        lines = [" ".join(line.split()) for line in capsys.readouterr().out.splitlines()]
        routes = lines[lines.index("Routes:") + 1:][:7]
        assert routes == [
            "GET /people/create -> create",
            "GET /people/{id}/edit -> edit",
            "GET /people -> index",
            "GET /people/{id} -> show",
            "POST /people -> store",
            "PUT /people/{id} -> update",
            "DELETE /people/{id} -> destroy",
        ]

    def test_api_only_summary_has_no_form_pages(self, project, capsys):
        generate_resource("Tag", ResourceOptions(api_only=True))

        output = capsys.readouterr().out
        assert "-> destroy" in output
        assert "/tags/create" not in output
        assert "-> edit" not in output

    def test_skip_flags(self, project):
        (project / "migrations").mkdir()

        result = generate_resource(
            "Tag",
            ResourceOptions(skip_model=True, skip_controller=True, skip_views=True),
        )

        assert result == type(result)()
        assert list((project / "migrations").iterdir()) == []

    def test_generic_view_fallback(self, project, tmp_path):
        templates_dir = tmp_path / "templates"
        templates_dir.mkdir()
        (templates_dir / "view.html.j2").write_text("[[ view_type ]] view for [[ model_name ]]\n")

        result = generate_resource(
            "Tag",
            ResourceOptions(skip_model=True, skip_controller=True),
            renderer=TemplateRenderer(templates_dir),
        )

        assert len(result.views) == 4
        assert (project / "app/views/tags/edit.html").read_text() == "edit view for Tag\n"


class TestGeneratedApplication:

    def test_resource_crud_through_html_forms(self, project, monkeypatch):
        (project / "migrations").mkdir()
        generate_resource("Person")
        server = load_server(project, monkeypatch)

        with TestClient(server.app) as client:
            assert "Welcome" in client.get("/").text
            assert "No people yet." in client.get("/people").text
            assert "Create Person" in client.get("/people/create").text

            created = client.post("/people", data={"ignored": "value"})
            assert created.status_code == 200
            assert str(created.url).endswith("/people/1")
            assert "Person #1" in created.text

            assert "Edit Person #1" in client.get("/people/1/edit").text
            assert client.put("/people/1", data={}).status_code == 200

            missing = client.get("/people/99")
            assert missing.status_code == 404
            assert "Person not found" in missing.text

            deleted = client.delete("/people/1")
            assert str(deleted.url).endswith("/people")
            assert "No people yet." in deleted.text

    def test_api_controller_crud(self, project, monkeypatch):
        (project / "migrations").mkdir()
        generate_resource("Tag", ResourceOptions(api_only=True))
        server = load_server(project, monkeypatch)

        with TestClient(server.app) as client:
            created = client.post("/tags", json={})
            assert created.status_code == 201
            assert created.json()["id"] == 1

            assert [tag["id"] for tag in client.get("/tags").json()] == [1]
            assert client.get("/tags/1").json()["id"] == 1
            assert client.put("/tags/2", json={}).status_code == 404
            assert client.delete("/tags/1").status_code == 204
            assert client.get("/tags/1").status_code == 404
            assert client.delete("/tags/1").status_code == 404
