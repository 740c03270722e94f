"""Test operation descriptors and operation filters."""

import pytest

from oasforge.codegen.document import Document
from oasforge.codegen.keywords import Keyword
from oasforge.codegen.operations import (
    Exclude,
    Include,
    OperationDescriptor,
    OperationGenerator,
    Override,
    filter_operations,
    is_included,
    select_content_type,
)
from oasforge.codegen.plugins.base import PluginOptions
from oasforge.codegen.registry import SchemaRegistry
from oasforge.exceptions import OperationGenerationError, SchemaReferenceError

from .fixtures import BROKEN_COMPONENT_SPEC, BROKEN_OPERATION_SPEC, PETSTORE_SPEC


def _generate(spec, max_workers: int = 1):
    document = Document(spec)
    registry = SchemaRegistry(document).build().freeze()
    descriptors, errors = OperationGenerator(
        document, registry, max_workers=max_workers
    ).build()
    return registry, {d.operation_id: d for d in descriptors}, errors


class TestOperationGenerator:
    """Test descriptor construction."""

    def test_descriptors_in_document_order(self):
        _, operations, errors = _generate(PETSTORE_SPEC)

        assert list(operations) == ['listPets', 'createPet', 'showPetById', 'getInventory']
        assert [op.index for op in operations.values()] == [0, 1, 2, 3]
        assert errors == []

    def test_concurrent_build_keeps_order(self):
        _, sequential, _ = _generate(PETSTORE_SPEC)
        _, concurrent, _ = _generate(PETSTORE_SPEC, max_workers=4)

        assert list(concurrent) == list(sequential)

    def test_names(self):
        _, operations, _ = _generate(PETSTORE_SPEC)
        operation = operations['showPetById']

        assert operation.name == 'show_pet_by_id'
        assert operation.type_name == 'ShowPetById'
        assert operation.method == 'get'
        assert operation.tags == ('pets',)
        assert operation.summary == 'Info for a specific pet'

    def test_query_and_header_parameters(self):
        _, operations, _ = _generate(PETSTORE_SPEC)
        operation = operations['listPets']

        assert [p.name for p in operation.params('query')] == ['limit']
        assert [p.name for p in operation.params('header')] == ['X-Request-ID']
        assert operation.params('cookie') == ()

        query = operation.query_params.primary.args
        assert query.get_property('limit').keywords == (
            Keyword.INTEGER,
            Keyword.MAX,
            Keyword.OPTIONAL,
        )
        header = operation.header_params.primary.args.get_property('X-Request-ID')
        assert header.find(Keyword.NAME).args == 'X-Request-ID'
        assert operation.path_params is None

    def test_path_parameters_are_required(self):
        _, operations, _ = _generate(PETSTORE_SPEC)

        (store_id,) = operations['getInventory'].params('path')
        (pet_id,) = operations['showPetById'].params('path')

        assert store_id.required
        assert pet_id.required
        assert pet_id.description == 'The id of the pet to retrieve'
        tree = operations['showPetById'].path_params.primary.args.get_property('petId')
        assert not tree.has(Keyword.OPTIONAL)

    def test_named_body_shares_registry_tree(self):
        registry, operations, _ = _generate(PETSTORE_SPEC)
        operation = operations['createPet']

        body = operation.request_body()
        assert body.content_type == 'application/json'
        assert body.ref == 'Pet'
        assert body.tree is registry.get('Pet')
        assert operation.body_required

    def test_response_shares_registry_tree(self):
        spec = {
            'openapi': '3.0.3',
            'info': {'title': 'Pets', 'version': '1.0.0'},
            'paths': {
                '/pets/{id}': {
                    'get': {
                        'operationId': 'getPet',
                        'parameters': [
                            {'name': 'id', 'in': 'path', 'schema': {'type': 'integer'}}
                        ],
                        'responses': {
                            '200': {
                                'description': 'The pet',
                                'content': {
                                    'application/json': {
                                        'schema': {'$ref': '#/components/schemas/Pet'}
                                    }
                                },
                            }
                        },
                    }
                }
            },
            'components': {
                'schemas': {
                    'Pet': {
                        'type': 'object',
                        'required': ['id', 'name'],
                        'properties': {
                            'id': {'type': 'integer'},
                            'name': {'type': 'string'},
                            'tag': {'type': 'string'},
                        },
                    }
                }
            },
        }

        registry, operations, _ = _generate(spec)

        pet = registry.get('Pet')
        args = pet.primary.args
        assert args.names == ('id', 'name', 'tag')
        assert args.get_property('id').keywords == (Keyword.INTEGER,)
        assert args.get_property('name').keywords == (Keyword.STRING,)
        assert args.get_property('tag').keywords == (Keyword.STRING, Keyword.OPTIONAL)
        response = operations['getPet'].response('200')
        assert response.ref == 'Pet'
        assert response.tree is pet

    def test_responses(self):
        _, operations, _ = _generate(PETSTORE_SPEC)
        operation = operations['listPets']

        assert list(operation.responses) == ['200', 'default']
        assert operation.success_status() == '200'
        assert operation.success_response().ref == 'Pets'
        assert operation.response('default').ref == 'Error'

    def test_response_without_content(self):
        _, operations, _ = _generate(PETSTORE_SPEC)
        operation = operations['createPet']

        assert operation.success_status() == '201'
        assert operation.success_response() is None

    def test_inline_response_schema(self):
        _, operations, _ = _generate(PETSTORE_SPEC)

        response = operations['getInventory'].success_response()

        assert response.ref is None
        assert response.tree.primary.keyword is Keyword.OBJECT

    def test_invalid_status_codes_are_skipped(self):
        spec = {
            'openapi': '3.0.0',
            'info': {'title': 'Test', 'version': '1.0.0'},
            'paths': {
                '/x': {
                    'get': {
                        'operationId': 'getX',
                        'responses': {
                            '2XX': {'description': 'ok'},
                            'oops': {'description': 'bad'},
                            '600': {'description': 'bad'},
                        },
                    }
                }
            },
        }

        _, operations, _ = _generate(spec)

        assert list(operations['getX'].responses) == ['2XX']
        assert operations['getX'].success_status() == '2XX'

    def test_derived_operation_id(self):
        spec = {
            'openapi': '3.0.0',
            'info': {'title': 'Test', 'version': '1.0.0'},
            'paths': {'/pets/{petId}': {'delete': {'responses': {}}}},
        }

        _, operations, _ = _generate(spec)

        assert list(operations) == ['delete_pets_pet_id']

    def test_unresolvable_operation_is_dropped(self):
        _, operations, errors = _generate(BROKEN_OPERATION_SPEC)

        assert list(operations) == ['getOk']
        assert len(errors) == 1
        error = errors[0]
        assert isinstance(error, OperationGenerationError)
        assert error.operation_id == 'postBroken'
        assert error.method == 'post'
        assert isinstance(error.cause, SchemaReferenceError)
        assert 'POST /broken' in str(error)

    def test_operations_reaching_a_failed_definition_are_dropped(self):
        _, operations, errors = _generate(BROKEN_COMPONENT_SPEC)

        assert list(operations) == ['listPets']
        assert [error.operation_id for error in errors] == ['getAnimal', 'createZoo']
        assert errors[0].cause.reference == '#/components/schemas/Animal'
        assert errors[1].cause.reference == '#/components/schemas/Zoo'


class TestSelectContentType:
    """Test media type selection."""

    def test_preferred(self):
        content = {'application/json': {}, 'application/xml': {}}

        assert select_content_type(content, 'application/xml') == 'application/xml'

    def test_json_first(self):
        content = {'text/plain': {}, 'application/problem+json': {}}

        assert select_content_type(content) == 'application/problem+json'

    def test_fallback_to_first(self):
        assert select_content_type({'text/plain': {}, 'image/png': {}}) == 'text/plain'
        assert select_content_type({}) is None


class TestFilters:
    """Test include, exclude and override filters."""

    @pytest.fixture
    def operations(self):
        _, operations, _ = _generate(PETSTORE_SPEC)
        return list(operations.values())

    def _ids(self, pairs):
        return [operation.operation_id for operation, _ in pairs]

    def test_no_filters(self, operations):
        options = PluginOptions(output={'path': 'out'})

        assert self._ids(filter_operations(operations, options)) == [
            'listPets',
            'createPet',
            'showPetById',
            'getInventory',
        ]

    def test_include_by_tag(self, operations):
        options = PluginOptions(
            output={'path': 'out'}, include=[Include(type='tag', pattern='^store$')]
        )

        assert self._ids(filter_operations(operations, options)) == ['getInventory']

    def test_exclude_by_method(self, operations):
        options = PluginOptions(
            output={'path': 'out'}, exclude=[Exclude(type='method', pattern='post')]
        )

        assert 'createPet' not in self._ids(filter_operations(operations, options))

    def test_include_tag_with_excluded_method(self):
        include = [Include(type='tag', pattern='pets')]
        exclude = [Exclude(type='method', pattern='delete')]

        def operation(method, tags):
            return OperationDescriptor(
                operation_id=f'{method}Pet', method=method, path='/pets/{id}', tags=tags
            )

        assert not is_included(operation('delete', ('pets',)), include, exclude)
        assert is_included(operation('get', ('pets',)), include, exclude)
        assert not is_included(operation('get', ()), include, exclude)
        assert not is_included(operation('delete', ()), include, exclude)

    def test_exclude_wins_over_include(self, operations):
        options = PluginOptions(
            output={'path': 'out'},
            include=[Include(type='path', pattern='^/pets')],
            exclude=[Exclude(type='operationId', pattern='^show')],
        )

        assert self._ids(filter_operations(operations, options)) == [
            'listPets',
            'createPet',
        ]

    def test_pattern_is_searched(self, operations):
        options = PluginOptions(
            output={'path': 'out'}, include=[Include(type='path', pattern='inventory')]
        )

        assert self._ids(filter_operations(operations, options)) == ['getInventory']

    def test_override_options(self, operations):
        options = PluginOptions(
            output={'path': 'out'},
            override=[
                Override(
                    type='operationId',
                    pattern='^createPet$',
                    options={'content_type': 'application/xml'},
                )
            ],
        )

        resolved = dict(
            (operation.operation_id, op_options)
            for operation, op_options in filter_operations(operations, options)
        )

        assert resolved['createPet'].content_type == 'application/xml'
        assert resolved['listPets'] is options

    def test_more_specific_override_wins(self, operations):
        options = PluginOptions(
            output={'path': 'out'},
            override=[
                Override(
                    type='operationId',
                    pattern='listPets',
                    options={'content_type': 'text/csv'},
                ),
                Override(type='tag', pattern='pets', options={'content_type': 'text/plain'}),
            ],
        )

        resolved = dict(
            (operation.operation_id, op_options)
            for operation, op_options in filter_operations(operations, options)
        )

        assert resolved['listPets'].content_type == 'text/csv'
        assert resolved['createPet'].content_type == 'text/plain'
