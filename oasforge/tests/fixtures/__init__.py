"""Test fixtures for oasforge tests.

This module provides sample OpenAPI documents used across the test suite.
Documents are plain dicts; wrap them in ``Document`` before use.
"""

import copy

# Minimal OpenAPI 3.0 document without operations or schemas
MINIMAL_OPENAPI_SPEC = {
    'openapi': '3.0.0',
    'info': {'title': 'Minimal API', 'version': '1.0.0'},
    'paths': {},
}

# Petstore with named definitions, parameters of every supported location,
# shared path parameters and a few response shapes
PETSTORE_SPEC = {
    'openapi': '3.0.3',
    'info': {'title': 'Petstore', 'version': '1.0.0'},
    'paths': {
        '/pets': {
            'get': {
                'operationId': 'listPets',
                'summary': 'List all pets',
                'tags': ['pets'],
                'parameters': [
                    {
                        'name': 'limit',
                        'in': 'query',
                        'required': False,
                        'schema': {'type': 'integer', 'maximum': 100},
                    },
                    {
                        'name': 'X-Request-ID',
                        'in': 'header',
                        'schema': {'type': 'string'},
                    },
                    {
                        'name': 'session',
                        'in': 'cookie',
                        'schema': {'type': 'string'},
                    },
                ],
                'responses': {
                    '200': {
                        'description': 'A list of pets',
                        'content': {
                            'application/json': {
                                'schema': {'$ref': '#/components/schemas/Pets'}
                            }
                        },
                    },
                    'default': {'$ref': '#/components/responses/Error'},
                },
            },
            'post': {
                'operationId': 'createPet',
                'summary': 'Create a pet',
                'tags': ['pets'],
                'requestBody': {
                    'required': True,
                    'content': {
                        'application/json': {
                            'schema': {'$ref': '#/components/schemas/Pet'}
                        }
                    },
                },
                'responses': {'201': {'description': 'Null response'}},
            },
        },
        '/pets/{petId}': {
            'parameters': [
                {
                    'name': 'petId',
                    'in': 'path',
                    'required': True,
                    'description': 'The id of the pet to retrieve',
                    'schema': {'type': 'string'},
                }
            ],
            'get': {
                'operationId': 'showPetById',
                'summary': 'Info for a specific pet',
                'tags': ['pets'],
                'responses': {
                    '200': {
                        'description': 'Expected response to a valid request',
                        'content': {
                            'application/json': {
                                'schema': {'$ref': '#/components/schemas/Pet'}
                            }
                        },
                    },
                    'default': {'$ref': '#/components/responses/Error'},
                },
            },
        },
        '/stores/{storeId}/inventory': {
            'get': {
                'operationId': 'getInventory',
                'tags': ['store'],
                'parameters': [
                    {
                        'name': 'storeId',
                        'in': 'path',
                        'schema': {'type': 'integer'},
                    }
                ],
                'responses': {
                    '200': {
                        'description': 'Quantities by status',
                        'content': {
                            'application/json': {
                                'schema': {
                                    'type': 'object',
                                    'additionalProperties': {'type': 'integer'},
                                }
                            }
                        },
                    }
                },
            }
        },
    },
    'components': {
        'schemas': {
            'Pet': {
                'type': 'object',
                'description': 'A pet of the store.',
                'required': ['id', 'name'],
                'properties': {
                    'id': {'type': 'integer', 'format': 'int64'},
                    'name': {'type': 'string', 'minLength': 1, 'example': 'doggie'},
                    'tag': {'type': 'string'},
                    'status': {'$ref': '#/components/schemas/PetStatus'},
                    'category': {'$ref': '#/components/schemas/Category'},
                },
            },
            'Category': {
                'type': 'object',
                'properties': {
                    'id': {'type': 'integer', 'format': 'int64'},
                    'name': {'type': 'string'},
                },
            },
            'PetStatus': {
                'type': 'string',
                'enum': ['available', 'pending', 'sold'],
            },
            'Pets': {
                'type': 'array',
                'items': {'$ref': '#/components/schemas/Pet'},
            },
            'Error': {
                'type': 'object',
                'required': ['code', 'message'],
                'properties': {
                    'code': {'type': 'integer', 'format': 'int32'},
                    'message': {'type': 'string'},
                },
            },
        },
        'responses': {
            'Error': {
                'description': 'unexpected error',
                'content': {
                    'application/json': {
                        'schema': {'$ref': '#/components/schemas/Error'}
                    }
                },
            }
        },
    },
}

# Self-recursive and mutually recursive definitions
RECURSIVE_SPEC = {
    'openapi': '3.1.0',
    'info': {'title': 'Recursive API', 'version': '1.0.0'},
    'paths': {},
    'components': {
        'schemas': {
            'Node': {
                'type': 'object',
                'required': ['value'],
                'properties': {
                    'value': {'type': 'string'},
                    'children': {
                        'type': 'array',
                        'items': {'$ref': '#/components/schemas/Node'},
                    },
                },
            },
            'A': {
                'type': 'object',
                'required': ['b'],
                'properties': {'b': {'$ref': '#/components/schemas/B'}},
            },
            'B': {
                'type': 'object',
                'properties': {'a': {'$ref': '#/components/schemas/A'}},
            },
        }
    },
}

# Discriminated union and composition
POLYMORPHIC_SPEC = {
    'openapi': '3.0.3',
    'info': {'title': 'Polymorphic API', 'version': '1.0.0'},
    'paths': {},
    'components': {
        'schemas': {
            'Cat': {
                'type': 'object',
                'required': ['petType'],
                'properties': {
                    'petType': {'type': 'string'},
                    'meows': {'type': 'boolean'},
                },
            },
            'Dog': {
                'type': 'object',
                'required': ['petType'],
                'properties': {
                    'petType': {'type': 'string'},
                    'barks': {'type': 'boolean'},
                },
            },
            'Animal': {
                'oneOf': [
                    {'$ref': '#/components/schemas/Cat'},
                    {'$ref': '#/components/schemas/Dog'},
                ],
                'discriminator': {
                    'propertyName': 'petType',
                    'mapping': {
                        'cat': '#/components/schemas/Cat',
                        'dog': '#/components/schemas/Dog',
                    },
                },
            },
            'Base': {
                'type': 'object',
                'required': ['id'],
                'properties': {'id': {'type': 'integer'}},
            },
            'Extended': {
                'allOf': [
                    {'$ref': '#/components/schemas/Base'},
                    {
                        'type': 'object',
                        'properties': {'extra': {'type': 'string'}},
                    },
                ]
            },
        }
    },
}

# One valid operation and one whose body names a missing discriminator target
BROKEN_OPERATION_SPEC = {
    'openapi': '3.0.3',
    'info': {'title': 'Broken API', 'version': '1.0.0'},
    'paths': {
        '/ok': {
            'get': {
                'operationId': 'getOk',
                'responses': {
                    '200': {
                        'description': 'ok',
                        'content': {'application/json': {'schema': {'type': 'string'}}},
                    }
                },
            }
        },
        '/broken': {
            'post': {
                'operationId': 'postBroken',
                'requestBody': {
                    'content': {
                        'application/json': {
                            'schema': {
                                'oneOf': [{'$ref': '#/components/schemas/Thing'}],
                                'discriminator': {
                                    'propertyName': 'kind',
                                    'mapping': {'ghost': '#/components/schemas/Ghost'},
                                },
                            }
                        }
                    }
                },
                'responses': {'204': {'description': 'done'}},
            }
        },
    },
    'components': {
        'schemas': {
            'Thing': {
                'type': 'object',
                'properties': {'kind': {'type': 'string'}},
            }
        }
    },
}
# A named discriminated union mapping a missing schema, plus a schema using it
BROKEN_COMPONENT_SPEC = {
    'openapi': '3.0.3',
    'info': {'title': 'Zoo API', 'version': '1.0.0'},
    'paths': {
        '/pets': {
            'get': {
                'operationId': 'listPets',
                'responses': {
                    '200': {
                        'description': 'pets',
                        'content': {
                            'application/json': {
                                'schema': {
                                    'type': 'array',
                                    'items': {'$ref': '#/components/schemas/Pet'},
                                }
                            }
                        },
                    }
                },
            }
        },
        '/animals/{id}': {
            'get': {
                'operationId': 'getAnimal',
                'parameters': [
                    {'name': 'id', 'in': 'path', 'required': True, 'schema': {'type': 'integer'}}
                ],
                'responses': {
                    '200': {
                        'description': 'an animal',
                        'content': {
                            'application/json': {
                                'schema': {'$ref': '#/components/schemas/Animal'}
                            }
                        },
                    }
                },
            }
        },
        '/zoos': {
            'post': {
                'operationId': 'createZoo',
                'requestBody': {
                    'content': {
                        'application/json': {
                            'schema': {'$ref': '#/components/schemas/Zoo'}
                        }
                    }
                },
                'responses': {'204': {'description': 'created'}},
            }
        },
    },
    'components': {
        'schemas': {
            'Pet': {
                'type': 'object',
                'required': ['name'],
                'properties': {'name': {'type': 'string'}},
            },
            'Animal': {
                'oneOf': [{'$ref': '#/components/schemas/Pet'}],
                'discriminator': {
                    'propertyName': 'kind',
                    'mapping': {
                        'pet': '#/components/schemas/Pet',
                        'bird': '#/components/schemas/Bird',
                    },
                },
            },
            'Zoo': {
                'type': 'object',
                'properties': {
                    'animals': {
                        'type': 'array',
                        'items': {'$ref': '#/components/schemas/Animal'},
                    }
                },
            },
        }
    },
}


def spec_copy(spec: dict) -> dict:
    """Deep copy of a fixture document, for tests that modify it."""
    return copy.deepcopy(spec)
