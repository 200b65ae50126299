from .generation import command_generate, command_plan
from .inspection import command_list_managements, command_types

__all__ = [
    "command_generate",
    "command_list_managements",
    "command_plan",
    "command_types",
]
