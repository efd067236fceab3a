"""
dddgen - Batch generation of NestJS DDD boilerplate

Plans module and entity generation from a declarative schema, orders
entities by their foreign-key relations and runs the plan inside a
rollback-capable transaction.
"""

__version__ = "0.1.0"

from dddgen.executor import BatchOptions, BatchResult, batch_generate
from dddgen.planner import GenerationPlan, build_generation_plan, topological_sort
from dddgen.schema import BatchSchema, load_schema, write_sample_schema
from dddgen.transaction import TransactionScope
from dddgen.validator import validate_schema

__all__ = [
    "BatchOptions",
    "BatchResult",
    "BatchSchema",
    "GenerationPlan",
    "TransactionScope",
    "batch_generate",
    "build_generation_plan",
    "load_schema",
    "topological_sort",
    "validate_schema",
    "write_sample_schema",
]
