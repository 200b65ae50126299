from .core import *  # noqa: F401,F403
from .commands import (
    command_generate,
    command_list_managements,
    command_plan,
    command_types,
)
