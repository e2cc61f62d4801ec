"""Handler modules for CRD resources."""

# Import handlers to register them - all handlers register themselves via @kopf decorators
from . import ctlog  # noqa: F401
from . import fulcio  # noqa: F401
from . import securesign  # noqa: F401
from . import trillian  # noqa: F401
from . import tuf  # noqa: F401
