"""Tests for the NestJS generator (dddgen.generator).

Covers:
- Naming and type helpers used by templates
- Module skeleton generation
- Entity generation for both ORMs and optional files
- Error cases and rollback through the transaction scope
"""

from __future__ import annotations

import subprocess

import pytest

from dddgen.config import FeaturesConfig, Settings
from dddgen.errors import DuplicateEntityError, GenerationError, UnknownModuleError
from dddgen.generator import (
    MODULE_DIRECTORIES,
    NestGenerator,
    camel_case,
    field_to_column,
    field_to_prisma,
    field_to_typescript,
    kebab_case,
    pascal_case,
    plural,
    snake_case,
)
from dddgen.schema import EntityOptions, FieldSpec
from dddgen.transaction import TransactionScope


pytestmark = pytest.mark.unit


@pytest.fixture
def scope() -> TransactionScope:
    return TransactionScope()


@pytest.fixture
def generator(scope) -> NestGenerator:
    return NestGenerator(scope)


def _module_dir(base, module="users"):
    return base / "src" / "modules" / module


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestNaming:
    @pytest.mark.parametrize(
        ("value", "camel", "pascal", "snake", "kebab"),
        [
            ("UserProfile", "userProfile", "UserProfile", "user_profile", "user-profile"),
            ("order_item", "orderItem", "OrderItem", "order_item", "order-item"),
            ("blog-post", "blogPost", "BlogPost", "blog_post", "blog-post"),
        ],
    )
    def test_case_conversions(self, value, camel, pascal, snake, kebab):
        assert camel_case(value) == camel
        assert pascal_case(value) == pascal
        assert snake_case(value) == snake
        assert kebab_case(value) == kebab

    @pytest.mark.parametrize(
        ("word", "expected"),
        [("user", "users"), ("category", "categories"), ("day", "days"), ("address", "addresses")],
    )
    def test_plural(self, word, expected):
        assert plural(word) == expected


class TestTypeMapping:
    def test_typescript_types(self):
        assert field_to_typescript(FieldSpec.parse("n:int")) == "number"
        assert field_to_typescript(FieldSpec.parse("d:Date")) == "Date"
        assert field_to_typescript(FieldSpec.parse("tags:string[]")) == "string[]"
        assert field_to_typescript(FieldSpec.parse("x:mystery")) == "string"

    def test_enum_type(self):
        assert field_to_typescript(FieldSpec.parse("status:enum:draft,published")) == "'draft' | 'published'"

    def test_column_and_prisma_types(self):
        assert field_to_column(FieldSpec.parse("bio:text")) == "text"
        assert field_to_column(FieldSpec.parse("tags:string[]")) == "simple-array"
        assert field_to_prisma(FieldSpec.parse("bio:text:optional")) == "String?"
        assert field_to_prisma(FieldSpec.parse("at:Date")) == "DateTime"


# ---------------------------------------------------------------------------
# Modules
# ---------------------------------------------------------------------------


class TestGenerateModule:
    def test_creates_barrels_and_module_file(self, generator, tmp_path):
        generator.generate_module("users", base_path=tmp_path)
        module_dir = _module_dir(tmp_path)

        for directory, barrel in MODULE_DIRECTORIES.items():
            index = module_dir / directory / "index.ts"
            assert index.read_text() == f"export const {barrel} = [];\n"

        module_ts = (module_dir / "users.module.ts").read_text()
        assert "export class UsersModule {}" in module_ts
        assert "import { Entities } from './application/domain/entities';" in module_ts
        assert "TypeOrmModule.forFeature([...OrmEntities])" in module_ts
        assert "@Global()" not in module_ts
        assert len(generator.files) == len(MODULE_DIRECTORIES) + 1

    def test_shared_module_is_global(self, generator, tmp_path):
        generator.generate_module("common", base_path=tmp_path, shared=True)
        module_ts = (_module_dir(tmp_path, "common") / "common.module.ts").read_text()
        assert "@Global()" in module_ts
        assert "exports: [...Services, ...Repositories]" in module_ts

    def test_existing_module_is_skipped(self, generator, tmp_path):
        generator.generate_module("users", base_path=tmp_path)
        count = len(generator.files)
        generator.generate_module("users", base_path=tmp_path)
        assert len(generator.files) == count

    def test_custom_modules_path(self, scope, tmp_path):
        settings = Settings.model_validate({"paths": {"modules": "apps/api"}})
        NestGenerator(scope, settings).generate_module("billing", base_path=tmp_path)
        assert (tmp_path / "apps" / "api" / "billing" / "billing.module.ts").is_file()

    def test_absolute_modules_path_outside_project(self, scope, tmp_path):
        elsewhere = tmp_path / "elsewhere"
        project = tmp_path / "project"
        project.mkdir()
        generator = NestGenerator(scope, Settings.model_validate({"paths": {"modules": str(elsewhere)}}))
        generator.generate_module("catalog", base_path=project)

        module_file = elsewhere / "catalog" / "catalog.module.ts"
        assert module_file.is_file()
        assert generator.files[-1].path == str(module_file)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


class TestGenerateEntity:
    def test_base_files(self, generator, tmp_path):
        generator.generate_module("users", base_path=tmp_path)
        before = len(generator.files)
        generator.generate_entity(
            "User",
            base_path=tmp_path,
            module="users",
            fields="email:string:unique bio:text:optional",
            options=EntityOptions(),
        )
        module_dir = _module_dir(tmp_path)

        assert len(generator.files) - before == 8
        entity = (module_dir / "application/domain/entities/user.entity.ts").read_text()
        assert "export class User {" in entity
        assert "bio?: string;" in entity

        orm = (module_dir / "infrastructure/orm-entities/user.orm-entity.ts").read_text()
        assert "@Entity('users')" in orm
        assert "unique: true" in orm
        assert "nullable: true" in orm

        dto = (module_dir / "application/dto/requests/create-user.dto.ts").read_text()
        assert "@IsOptional()" in dto

        index = (module_dir / "application/domain/entities/index.ts").read_text()
        assert "export * from './user.entity';" in index

    def test_prisma_model(self, scope, tmp_path):
        generator = NestGenerator(scope, Settings(orm="prisma"))
        generator.generate_module("blog", base_path=tmp_path)
        generator.generate_entity(
            "BlogPost", base_path=tmp_path, module="blog", fields="title:string", options=EntityOptions()
        )
        model = (_module_dir(tmp_path, "blog") / "infrastructure/orm-entities/blog-post.prisma").read_text()
        assert "model BlogPost {" in model
        assert "title String" in model
        assert '@@map("blog_posts")' in model

    def test_optional_files(self, generator, tmp_path):
        generator.generate_module("posts", base_path=tmp_path)
        generator.generate_entity(
            "Post",
            base_path=tmp_path,
            module="posts",
            fields="title:string",
            options=EntityOptions(with_tests=True, with_graphql=True, with_events=True, with_queries=True),
        )
        module_dir = _module_dir(tmp_path, "posts")
        assert (module_dir / "application/domain/services/post.service.spec.ts").is_file()
        assert (module_dir / "application/resolvers/post.resolver.ts").is_file()
        assert (module_dir / "application/domain/events/post-created.event.ts").is_file()
        assert (module_dir / "application/queries/get-post.query.ts").is_file()
        assert "extends AggregateRoot" in (module_dir / "application/domain/entities/post.entity.ts").read_text()

    def test_feature_defaults_apply_when_option_unset(self, scope, tmp_path):
        generator = NestGenerator(scope, Settings(features=FeaturesConfig(tests=True)))
        generator.generate_module("posts", base_path=tmp_path)
        generator.generate_entity("Post", base_path=tmp_path, module="posts", fields="", options=EntityOptions())
        generator.generate_entity(
            "Draft", base_path=tmp_path, module="posts", fields="", options=EntityOptions(with_tests=False)
        )
        services = _module_dir(tmp_path, "posts") / "application/domain/services"
        assert (services / "post.service.spec.ts").is_file()
        assert not (services / "draft.service.spec.ts").exists()

    def test_unknown_module(self, generator, tmp_path):
        with pytest.raises(UnknownModuleError) as exc_info:
            generator.generate_entity("User", base_path=tmp_path, module="users", fields="", options=EntityOptions())
        assert exc_info.value.code == "E4000"

    def test_duplicate_entity(self, generator, tmp_path):
        generator.generate_module("users", base_path=tmp_path)
        kwargs = dict(base_path=tmp_path, module="users", fields="email:string", options=EntityOptions())
        generator.generate_entity("User", **kwargs)
        with pytest.raises(DuplicateEntityError):
            generator.generate_entity("User", **kwargs)

    def test_writes_are_rolled_back(self, scope, generator, tmp_path):
        scope.begin("batch")
        generator.generate_module("users", base_path=tmp_path)
        generator.generate_entity("User", base_path=tmp_path, module="users", fields="", options=EntityOptions())
        scope.rollback()
        assert not (tmp_path / "src").exists()


class TestInstallDependencies:
    def test_runs_npm_once_per_package_set(self, generator, tmp_path, monkeypatch):
        calls = []

        def fake_run(cmd, **kwargs):
            calls.append(cmd)
            return subprocess.CompletedProcess(cmd, 0, "", "")

        monkeypatch.setattr(subprocess, "run", fake_run)
        generator.install_dependencies(tmp_path, {"with_events"})
        generator.install_dependencies(tmp_path, {"with_events"})

        assert len(calls) == 1
        assert calls[0][:3] == ["npm", "install", "--save"]
        assert "@nestjs/typeorm" in calls[0]
        assert "@nestjs/cqrs" in calls[0]

    def test_failure_becomes_generation_error(self, generator, tmp_path, monkeypatch):
        def fake_run(cmd, **kwargs):
            raise subprocess.CalledProcessError(1, cmd, stderr="ERESOLVE")

        monkeypatch.setattr(subprocess, "run", fake_run)
        with pytest.raises(GenerationError, match="ERESOLVE"):
            generator.install_dependencies(tmp_path, set())
