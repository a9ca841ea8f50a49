"""Process exit codes.

A CI job can tell a broken spec (3) apart from an unwritable output
directory (4) or a bad invocation (2) without scraping stderr::

    rulesmith generate -i openapi.yaml -o api-rules || echo "exit $?"
"""

EXIT_SUCCESS = 0

# unexpected crash, bad config file
EXIT_GENERIC_FAILURE = 1

# no input or no output given, output would wipe the working directory
EXIT_INVALID_USAGE = 2

# unreadable source, undecodable text, unsupported version, broken $ref
EXIT_SPEC_PARSE_ERROR = 3

# output directory could not be cleared, created or written
EXIT_OUTPUT_ERROR = 4

# Ctrl+C / SIGTERM, 128 + SIGINT
EXIT_INTERRUPTED = 130
