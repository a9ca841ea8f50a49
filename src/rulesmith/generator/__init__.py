"""Rule file generation -- render extracted endpoints as Markdown for AI agents.

This sub-package is the second half of the rulesmith pipeline. It takes the
:class:`~rulesmith.models.EndpointInfo` list produced by
:func:`~rulesmith.parser.extract_endpoints` and writes:

* one Markdown rule file per endpoint, grouped into one folder per domain
  (first tag) unless domain splitting is disabled;
* ``README.md`` -- navigation for humans;
* ``agent.md`` -- implementation instructions for an AI agent;
* ``llms.txt`` -- a compact index of every rule file.

Usage::

    from rulesmith.generator import generate_rules

    outputs = generate_rules(endpoints, "./api-rules", language="en")
"""

from rulesmith.generator.rules import generate_rules, to_kebab_case

__all__ = ["generate_rules", "to_kebab_case"]
