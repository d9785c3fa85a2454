"""JSON schema for scenario structure validation."""

from __future__ import annotations

CONFIG_SCHEMA: dict = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "VM Scheduling Scenario",
    "type": "object",
    "required": ["version", "vms", "sim"],
    "properties": {
        "version": {"type": "string"},
        "vms": {
            "type": "array",
            "minItems": 1,
            "items": {"$ref": "#/$defs/Vm"},
        },
        "tasks": {
            "type": "array",
            "items": {"$ref": "#/$defs/Task"},
            "default": [],
        },
        "actions": {
            "type": "array",
            "items": {"$ref": "#/$defs/Action"},
            "default": [],
        },
        "sim": {
            "type": "object",
            "required": ["duration"],
            "properties": {
                "duration": {"type": "number", "exclusiveMinimum": 0},
                "min_time_between_events": {"type": "number", "exclusiveMinimum": 0},
            },
            "additionalProperties": False,
        },
    },
    "$defs": {
        "Vm": {
            "type": "object",
            "required": ["id", "pe_mips"],
            "properties": {
                "id": {"type": "string", "minLength": 1},
                "pe_mips": {
                    "type": "array",
                    "minItems": 1,
                    "items": {"type": "number", "minimum": 0},
                },
                "scheduler": {
                    "type": "object",
                    "required": ["name"],
                    "properties": {
                        "name": {"type": "string", "minLength": 1},
                        "params": {
                            "type": "object",
                            "default": {},
                            "properties": {
                                "min_time_between_events": {"type": "number", "exclusiveMinimum": 0},
                                "unit_conversion_factor": {"type": "number", "exclusiveMinimum": 0},
                            },
                        },
                    },
                    "additionalProperties": False,
                },
            },
            "additionalProperties": False,
        },
        "Utilization": {
            "type": "object",
            "properties": {
                "model": {"type": "string", "minLength": 1},
                "params": {"type": "object", "default": {}},
            },
            "additionalProperties": False,
        },
        "Task": {
            "type": "object",
            "required": ["id", "vm_id", "length"],
            "properties": {
                "id": {"type": "integer"},
                "vm_id": {"type": "string", "minLength": 1},
                "length": {"type": "number", "exclusiveMinimum": 0},
                "pe_count": {"type": "integer", "minimum": 1},
                "arrival": {"type": "number", "minimum": 0},
                "transfer_time": {"type": "number", "minimum": 0},
                "utilization": {
                    "type": "object",
                    "properties": {
                        "cpu": {"$ref": "#/$defs/Utilization"},
                        "ram": {"$ref": "#/$defs/Utilization"},
                        "bw": {"$ref": "#/$defs/Utilization"},
                    },
                    "additionalProperties": False,
                },
            },
            "additionalProperties": False,
        },
        "Action": {
            "type": "object",
            "required": ["time", "type"],
            "properties": {
                "time": {"type": "number", "minimum": 0},
                "type": {"type": "string", "enum": ["pause", "resume", "cancel", "migrate"]},
                "task_id": {"type": "integer"},
                "vm_id": {"type": "string", "minLength": 1},
                "target_vm_id": {"type": "string", "minLength": 1},
            },
            "additionalProperties": False,
        },
    },
    "additionalProperties": False,
}
