"""API spec parser -- load, dereference, and extract endpoints.

This sub-package is responsible for the first half of the rulesmith pipeline:
turning a raw Swagger 2.0 or OpenAPI 3.x document (JSON or YAML, local file
or remote URL) into a list of :class:`~rulesmith.models.EndpointInfo` that
the rule renderer can consume.

Typical usage::

    from rulesmith.parser import extract_endpoints, load_spec, preprocess

    raw = load_spec("https://petstore.swagger.io/v2/swagger.json")
    endpoints = extract_endpoints(preprocess(raw), raw)

Sub-modules:

* :mod:`~rulesmith.parser.loader` -- I/O layer (URL, file, stdin) plus format
  detection and version validation.
* :mod:`~rulesmith.parser.resolver` -- ``$ref`` dereferencing and lenient
  pointer lookup.
* :mod:`~rulesmith.parser.preprocessor` -- Produces the dereferenced copy
  the extractor reads shapes from.
* :mod:`~rulesmith.parser.schema` -- ``allOf`` flattening, schema name
  recovery and schema simplification.
* :mod:`~rulesmith.parser.extractor` -- Walks both documents and produces
  :class:`~rulesmith.models.EndpointInfo` objects.
"""

from rulesmith.parser.extractor import extract_endpoints
from rulesmith.parser.loader import load_spec, validate_document, validate_spec_version
from rulesmith.parser.preprocessor import preprocess

__all__ = [
    "load_spec",
    "validate_spec_version",
    "validate_document",
    "preprocess",
    "extract_endpoints",
]
