import unittest

import pytest

from modinject import (
    BindingNotFoundError,
    FactoryBinding,
    ModuleBuilder,
    Params,
    Qualifier,
    ResolutionError,
    SingletonBinding,
    module,
)


class Repo: ...


class Service:
    def __init__(self, repo: Repo):
        self.repo = repo


class TestModuleBuilder(unittest.TestCase):
    builder: ModuleBuilder

    def setUp(self):
        self.builder = ModuleBuilder()

    def test_factory_registers_factory_binding(self):
        self.builder.factory(Repo, lambda _: Repo())

        (binding,) = self.builder.bindings.values()
        assert isinstance(binding, FactoryBinding)

    def test_singleton_registers_singleton_binding(self):
        self.builder.singleton(Repo, lambda _: Repo(), qualifier=Qualifier("main"))

        (key,) = self.builder.bindings
        assert key.qualifier == "main"
        assert isinstance(self.builder.bindings[key], SingletonBinding)

    def test_instance_sees_earlier_declarations(self):
        self.builder.singleton(Repo, lambda _: Repo())
        repo = self.builder.instance(Repo)

        self.builder.factory(Service, lambda _: Service(repo))
        assert self.builder.instance(Service).repo is repo

    def test_instance_forward_reference_raises(self):
        with pytest.raises(BindingNotFoundError):
            self.builder.instance(Repo)

    def test_decorator_form_registers_and_returns_function(self):
        @self.builder.factory(Repo)
        def make_repo(params: Params) -> Repo:
            return Repo()

        @self.builder.singleton(Service)
        def make_service(params: Params) -> Service:
            return Service(self.builder.instance(Repo))

        assert callable(make_repo)
        assert make_repo.__name__ == "make_repo"
        assert callable(make_service)
        assert isinstance(self.builder.instance(Repo), Repo)
        assert self.builder.instance(Service) is self.builder.instance(Service)

    def test_non_callable_producer_raises_type_error(self):
        with pytest.raises(TypeError):
            self.builder.factory(Repo, Repo())  # type: ignore[arg-type]

    def test_seeded_bindings_are_copied(self):
        self.builder.factory(Repo, lambda _: Repo())
        child = ModuleBuilder(self.builder.bindings)
        child.factory(Service, lambda _: Service(Repo()))

        assert len(child.bindings) == 2
        assert len(self.builder.bindings) == 1


def test_eager_forward_reference_in_declaration_fails():
    def declare(b: ModuleBuilder) -> None:
        b.instance(Repo)
        b.factory(Repo, lambda _: Repo())

    m = module(declare)
    with pytest.raises(BindingNotFoundError):
        m.instance(Repo)


def test_producers_resolve_when_they_run():
    def declare(b: ModuleBuilder) -> None:
        b.factory(Service, lambda _: Service(b.instance(Repo)))
        b.factory(Repo, lambda _: Repo())

    assert isinstance(module(declare).instance(Service).repo, Repo)


def test_declaration_can_resolve_parent_bindings_eagerly():
    core = module(lambda b: b.singleton(Repo, lambda _: Repo()))

    def declare(b: ModuleBuilder) -> None:
        repo = b.instance(Repo)
        b.factory(Service, lambda _: Service(repo))

    app = module(declare, dependencies=[core])
    assert app.instance(Service).repo is app.instance(Repo)


def test_circular_singleton_raises_resolution_error():
    class Node:
        def __init__(self, other):
            self.other = other

    def declare(b: ModuleBuilder) -> None:
        b.singleton(Node, lambda _: Node(b.instance(Node)))

    m = module(declare)
    with pytest.raises(ResolutionError, match="Circular"):
        m.instance(Node)


def test_module_reentered_from_its_own_declaration_raises():
    holder = {}

    def declare(b: ModuleBuilder) -> None:
        holder["module"].instance(Repo)

    holder["module"] = module(declare)
    with pytest.raises(ResolutionError, match="being built"):
        holder["module"].instance(Repo)
