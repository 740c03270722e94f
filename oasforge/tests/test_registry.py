"""Test the schema registry."""

import pytest

from oasforge.codegen.document import Document
from oasforge.codegen.keywords import Keyword, SchemaNode
from oasforge.codegen.registry import SchemaRegistry

from .fixtures import BROKEN_COMPONENT_SPEC, PETSTORE_SPEC, RECURSIVE_SPEC


def _registry(spec) -> SchemaRegistry:
    return SchemaRegistry(Document(spec)).build().freeze()


class TestSchemaRegistry:
    """Test registration and lookups."""

    def test_build_registers_every_definition(self):
        registry = _registry(PETSTORE_SPEC)

        assert len(registry) == 5
        assert [info.name for info in registry] == [
            'Pet',
            'Category',
            'PetStatus',
            'Pets',
            'Error',
        ]
        assert 'Pet' in registry
        assert registry.frozen

    def test_get_returns_shared_tree(self):
        registry = _registry(PETSTORE_SPEC)

        assert registry.get('Pet') is registry.get('Pet')
        assert registry.get('Missing') is None

    def test_lookup_expands_ref_nodes(self):
        registry = _registry(PETSTORE_SPEC)
        ref = registry.get('Pets').primary.args.items.primary

        assert registry.lookup(ref) is registry.get('Pet')

    def test_lookup_rejects_other_nodes(self):
        registry = _registry(PETSTORE_SPEC)

        with pytest.raises(ValueError):
            registry.lookup(SchemaNode(Keyword.STRING))

    def test_frozen_registry_rejects_new_names(self):
        registry = SchemaRegistry(Document(PETSTORE_SPEC))
        registry.register('Pet')
        registry.freeze()

        assert registry.register('Pet').name == 'Pet'
        with pytest.raises(RuntimeError):
            registry.register('Category')

    def test_definitions_are_read_only_once_frozen(self):
        registry = _registry(PETSTORE_SPEC)

        with pytest.raises(TypeError):
            registry.definitions['Other'] = None

    def test_dependencies(self):
        registry = _registry(PETSTORE_SPEC)

        assert registry.dependencies('Pet') == {'Category', 'PetStatus'}
        assert registry.dependencies('Pets') == {'Pet'}
        assert registry.dependencies('Error') == set()
        with pytest.raises(KeyError):
            registry.dependencies('Missing')


class TestDependencyOrder:
    """Test ordering and cycle detection."""

    def test_dependencies_come_first(self):
        registry = _registry(PETSTORE_SPEC)

        order = [info.name for info in registry.in_dependency_order()]

        assert order == ['Category', 'PetStatus', 'Pet', 'Pets', 'Error']

    def test_cycles_keep_walk_order(self):
        registry = _registry(RECURSIVE_SPEC)

        order = [info.name for info in registry.in_dependency_order()]

        assert order == ['Node', 'B', 'A']

    def test_is_recursive(self):
        registry = _registry(RECURSIVE_SPEC)

        assert registry.is_recursive('A', 'B')
        assert registry.is_recursive('B', 'A')
        assert registry.is_recursive('Node', 'Node')

    def test_is_not_recursive(self):
        registry = _registry(PETSTORE_SPEC)

        assert not registry.is_recursive('Pet', 'Category')
        assert not registry.is_recursive('Pet', 'Missing')

    def test_dependency_graph(self):
        graph = _registry(PETSTORE_SPEC).dependency_graph()

        assert set(graph.successors('Pet')) == {'Category', 'PetStatus'}
        assert set(graph.nodes) == {'Pet', 'Category', 'PetStatus', 'Pets', 'Error'}

    def test_dependency_graph_is_a_copy(self):
        registry = _registry(PETSTORE_SPEC)

        registry.dependency_graph().add_edge('Category', 'Pet')

        assert not registry.is_recursive('Pet', 'Category')


class TestFailedDefinitions:
    """Test definitions that cannot be resolved."""

    def test_unresolvable_definition_is_recorded(self):
        registry = _registry(BROKEN_COMPONENT_SPEC)

        assert 'Animal' not in registry
        assert registry.failed['Animal'].reference == '#/components/schemas/Bird'

    def test_dependents_are_recorded(self):
        registry = _registry(BROKEN_COMPONENT_SPEC)

        assert [info.name for info in registry] == ['Pet']
        assert set(registry.failed) == {'Animal', 'Zoo'}
        assert "'Animal'" in str(registry.failed['Zoo'])

    def test_nothing_failed(self):
        assert _registry(PETSTORE_SPEC).failed == {}
