"""Test loading and querying of API documents."""

import json

import pytest
import yaml

from oasforge.codegen.document import Document
from oasforge.exceptions import (
    SchemaLoadError,
    SchemaValidationError,
    UnsupportedFeatureError,
)

from .fixtures import MINIMAL_OPENAPI_SPEC, PETSTORE_SPEC


class TestDocumentValidation:
    """Test version detection and document shape checks."""

    def test_accepts_openapi_3(self):
        document = Document(PETSTORE_SPEC)

        assert document.version == '3.0.3'
        assert document.title == 'Petstore'

    def test_rejects_swagger(self):
        with pytest.raises(UnsupportedFeatureError) as exc_info:
            Document({'swagger': '2.0', 'info': {}, 'paths': {}})

        assert 'Swagger 2.0' in str(exc_info.value)

    def test_rejects_other_versions(self):
        with pytest.raises(SchemaValidationError) as exc_info:
            Document({'openapi': '4.0.0', 'paths': {}})

        assert "unsupported openapi version '4.0.0'" in str(exc_info.value)

    def test_rejects_non_mapping(self):
        with pytest.raises(SchemaValidationError):
            Document(['openapi'])

    def test_rejects_invalid_paths(self):
        with pytest.raises(SchemaValidationError):
            Document({'openapi': '3.1.0', 'paths': []})

    def test_rejects_invalid_parameter(self):
        spec = {
            'openapi': '3.0.0',
            'info': {'title': 'Test', 'version': '1.0.0'},
            'paths': {
                '/x': {
                    'get': {
                        'parameters': [{'in': 'query'}],
                        'responses': {'200': {'description': 'ok'}},
                    }
                }
            },
        }

        with pytest.raises(SchemaValidationError) as exc_info:
            Document(spec)

        assert any('parameters.0' in error for error in exc_info.value.errors)

    def test_rejects_missing_info(self):
        with pytest.raises(SchemaValidationError) as exc_info:
            Document({'openapi': '3.1.0', 'paths': {}})

        assert any(error.startswith('info') for error in exc_info.value.errors)


class TestDocumentLoad:
    """Test loading documents from files."""

    def test_load_yaml(self, tmp_path):
        source = tmp_path / 'openapi.yaml'
        source.write_text(yaml.safe_dump(PETSTORE_SPEC, sort_keys=False))

        document = Document.load(source)

        assert document.source == str(source)
        assert list(document.schemas) == list(PETSTORE_SPEC['components']['schemas'])

    def test_load_json(self, tmp_path):
        source = tmp_path / 'openapi.json'
        source.write_text(json.dumps(MINIMAL_OPENAPI_SPEC))

        assert Document.load(source).title == 'Minimal API'

    def test_missing_file(self, tmp_path):
        with pytest.raises(SchemaLoadError) as exc_info:
            Document.load(tmp_path / 'missing.yaml')

        assert 'File not found' in str(exc_info.value)

    def test_unparsable_file(self, tmp_path):
        source = tmp_path / 'openapi.json'
        source.write_text('{not json')

        with pytest.raises(SchemaLoadError) as exc_info:
            Document.load(source)

        assert exc_info.value.cause is not None


class TestReferences:
    """Test reference helpers."""

    def test_ref_name(self):
        assert Document.ref_name('#/components/schemas/Pet') == 'Pet'
        assert Document.ref_name('#/components/schemas/a~1b~0c') == 'a/b~c'

    def test_ref_name_of_other_pointers(self):
        assert Document.ref_name('#/components/responses/Error') is None
        assert Document.ref_name('#/components/schemas/') is None
        assert Document.ref_name('other.yaml#/Pet') is None

    def test_dereference(self):
        document = Document(PETSTORE_SPEC)

        schema = document.dereference('#/components/schemas/Pet/properties/name')

        assert schema['minLength'] == 1

    def test_dereference_list_index(self):
        document = Document(PETSTORE_SPEC)

        parameter = document.dereference('#/paths/~1pets/get/parameters/0')

        assert parameter['name'] == 'limit'

    def test_dereference_missing(self):
        document = Document(PETSTORE_SPEC)

        with pytest.raises(KeyError):
            document.dereference('#/components/schemas/Missing')
        with pytest.raises(KeyError):
            document.dereference('external.yaml#/Pet')

    def test_resolve_follows_chains(self):
        spec = {
            'openapi': '3.0.0',
            'info': {'title': 'Test', 'version': '1.0.0'},
            'paths': {},
            'components': {
                'responses': {
                    'First': {'$ref': '#/components/responses/Second'},
                    'Second': {'description': 'the end'},
                }
            },
        }
        document = Document(spec)

        resolved = document.resolve({'$ref': '#/components/responses/First'})

        assert resolved == {'description': 'the end'}

    def test_resolve_cycle(self):
        spec = {
            'openapi': '3.0.0',
            'info': {'title': 'Test', 'version': '1.0.0'},
            'paths': {},
            'components': {
                'responses': {
                    'First': {'$ref': '#/components/responses/Second'},
                    'Second': {'$ref': '#/components/responses/First'},
                }
            },
        }

        assert Document(spec).resolve({'$ref': '#/components/responses/First'}) == {}

    def test_component_name_by_identity(self):
        document = Document(PETSTORE_SPEC)
        pet = PETSTORE_SPEC['components']['schemas']['Pet']

        assert document.component_name(pet) == 'Pet'
        assert document.component_name(dict(pet)) is None


class TestOperations:
    """Test operation enumeration."""

    def test_operations_in_document_order(self):
        document = Document(PETSTORE_SPEC)

        operations = [(path, method) for path, method, _, _ in document.operations()]

        assert operations == [
            ('/pets', 'get'),
            ('/pets', 'post'),
            ('/pets/{petId}', 'get'),
            ('/stores/{storeId}/inventory', 'get'),
        ]

    def test_non_method_keys_are_skipped(self):
        spec = {
            'openapi': '3.0.0',
            'info': {'title': 'Test', 'version': '1.0.0'},
            'paths': {
                '/items': {
                    'summary': 'Items',
                    'parameters': [],
                    'GET': {'responses': {}},
                }
            },
        }

        operations = list(Document(spec).operations())

        assert [method for _, method, _, _ in operations] == ['get']

    def test_operation_parameters_override_path_parameters(self):
        document = Document(PETSTORE_SPEC)
        path_item = {
            'parameters': [
                {'name': 'id', 'in': 'path', 'description': 'path level'},
                {'name': 'q', 'in': 'query'},
            ]
        }
        operation = {
            'parameters': [{'name': 'id', 'in': 'path', 'description': 'operation level'}]
        }

        parameters = document.parameters(path_item, operation)

        assert [p['name'] for p in parameters] == ['id', 'q']
        assert parameters[0]['description'] == 'operation level'
