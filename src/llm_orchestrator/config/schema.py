"""
JSON Schema for configuration files.
"""

CONFIG_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "openai": {
            "type": "object",
            "properties": {
                "api_key": {"type": ["string", "null"]},
                "base_url": {"type": ["string", "null"]},
                "model": {"type": "string"},
                "timeout": {"type": "number", "exclusiveMinimum": 0},
                "max_retries": {"type": "integer", "minimum": 0},
                "organization": {"type": ["string", "null"]},
            },
            "additionalProperties": False,
        },
        "cache": {
            "type": "object",
            "properties": {
                "enabled": {"type": "boolean"},
                "max_entries": {"type": ["integer", "null"], "minimum": 1},
            },
            "additionalProperties": False,
        },
        "agent": {
            "type": "object",
            "properties": {
                "max_turns": {"type": "integer", "minimum": 1},
                "max_invocations_per_turn": {"type": ["integer", "null"], "minimum": 1},
                "parallel_capabilities": {"type": "boolean"},
                "capability_timeout": {"type": ["number", "null"], "exclusiveMinimum": 0},
                "max_capability_output_chars": {"type": ["integer", "null"], "minimum": 1},
                "trace": {"type": "boolean"},
                "batch_concurrency": {"type": "integer", "minimum": 1},
            },
            "additionalProperties": False,
        },
        "retry": {
            "type": "object",
            "properties": {
                "attempts": {"type": "integer", "minimum": 1},
                "backoff": {"type": "number", "minimum": 0},
                "max_backoff": {"type": "number", "minimum": 0},
                "jitter": {"type": "number", "minimum": 0, "exclusiveMaximum": 1},
            },
            "additionalProperties": False,
        },
        "logging": {
            "type": "object",
            "properties": {
                "level": {"enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
                "format": {"enum": ["text", "json"]},
                "log_file": {"type": ["string", "null"]},
                "include_timestamp": {"type": "boolean"},
                "log_events": {"type": "boolean"},
            },
            "additionalProperties": False,
        },
    },
    "additionalProperties": False,
}


__all__ = ["CONFIG_SCHEMA"]
