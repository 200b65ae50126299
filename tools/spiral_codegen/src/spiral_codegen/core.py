from __future__ import annotations

from ._core_base import *  # noqa: F401,F403
from ._core_types import *  # noqa: F401,F403
from ._core_collect import *  # noqa: F401,F403
from ._core_rings import *  # noqa: F401,F403
from ._core_methods import *  # noqa: F401,F403
from ._core_templates import *  # noqa: F401,F403
from ._core_emit import *  # noqa: F401,F403
from ._core_hookups import *  # noqa: F401,F403
from ._core_treadles import *  # noqa: F401,F403
from ._core_builtin import *  # noqa: F401,F403
from ._core_heddles import *  # noqa: F401,F403
from ._core_orchestration import *  # noqa: F401,F403
