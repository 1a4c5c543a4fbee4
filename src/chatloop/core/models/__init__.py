"""Domain models for the session layer.

Re-exports every public symbol so imports like
``from chatloop.core.models import PieceEvent`` work.
"""

from .constants import *  # noqa: F401, F403
from .events import *  # noqa: F401, F403
